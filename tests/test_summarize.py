"""Tests for the summarizer provider registry."""

from __future__ import annotations

import pytest

from vaultage.config import AISettings, Configuration
from vaultage.pipeline import PipelineContext
from vaultage.summarize import get_summarizer, register_summarizer, unregister_summarizer


class EchoSummarizer:
    def __init__(self, model: str | None):
        self.model = model

    def summarize(self, text: str, hint: str) -> str:
        return f"{hint}: {text[:10]}"


@pytest.fixture
def echo_provider():
    register_summarizer("openai", EchoSummarizer)
    yield
    unregister_summarizer("openai")


def test_none_provider_has_no_summarizer() -> None:
    assert get_summarizer("none") is None


def test_unregistered_provider_has_no_summarizer() -> None:
    assert get_summarizer("anthropic") is None


def test_registered_provider_gets_model(echo_provider) -> None:
    summarizer = get_summarizer("openai", "small")

    assert isinstance(summarizer, EchoSummarizer)
    assert summarizer.model == "small"


def test_context_prefers_injected_summarizer(echo_provider, home) -> None:
    config = Configuration(ai=AISettings(provider="openai"))
    injected = EchoSummarizer("fixed")

    assert PipelineContext(home=home, summarizer=injected).summarizer_for(config) is injected
    assert isinstance(PipelineContext(home=home).summarizer_for(config), EchoSummarizer)
    assert PipelineContext(home=home).summarizer_for(Configuration()) is None
