"""Optional section summarization.

Providers register a factory by name. The ``none`` provider, and any provider
without a registered factory, yields no summarizer: the planner then plans
no content changes.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    def summarize(self, text: str, hint: str) -> str:
        """Return a summary of `text`; `hint` is a length/style bucket such as ``short``."""
        ...


SummarizerFactory = Callable[[str | None], Summarizer]

_PROVIDERS: dict[str, SummarizerFactory] = {}


def register_summarizer(name: str, factory: SummarizerFactory) -> None:
    _PROVIDERS[name] = factory


def unregister_summarizer(name: str) -> None:
    _PROVIDERS.pop(name, None)


def get_summarizer(provider: str, model: str | None = None) -> Summarizer | None:
    if provider == "none":
        return None

    factory = _PROVIDERS.get(provider)
    if factory is None:
        logger.info("No summarizer registered for provider '%s'; content will not be summarized", provider)
        return None
    return factory(model)
