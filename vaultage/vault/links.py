"""Link verification: external reachability and cross-reference resolution.

External checks use a HEAD request through urllib (no redirects followed) and
share a TTL cache owned by the caller. Internal references resolve against
the vault root by exact path first, then by basename.
"""

from __future__ import annotations

import http.client
import logging
import os
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal
from urllib.error import HTTPError, URLError
from urllib.parse import unquote
from urllib.request import HTTPRedirectHandler, OpenerDirector, Request, build_opener

from ..config.defaults import CONFIG_DIR_NAME
from .parser import split_cross_reference

logger = logging.getLogger(__name__)

ExternalStatus = Literal["valid", "broken", "redirect", "timeout", "error"]
InternalStatus = Literal["valid", "broken", "ambiguous"]

USER_AGENT = "vaultage-link-checker/1.0"

DEFAULT_TIMEOUT = 10.0
DEFAULT_CACHE_TTL = 24 * 60 * 60

VAULT_MARKERS = (".obsidian", CONFIG_DIR_NAME)
MAX_ROOT_LEVELS = 5
MAX_SEARCH_DEPTH = 3
SKIP_DIRS = {"node_modules", "Library", "System"}


@dataclass(frozen=True)
class ExternalLinkResult:
    url: str
    status: ExternalStatus
    code: int | None = None
    redirect_target: str | None = None
    error: str | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == "valid"


@dataclass(frozen=True)
class InternalLinkResult:
    reference: str
    status: InternalStatus
    resolved_path: Path | None = None
    alternatives: tuple[Path, ...] = ()


class LinkCache:
    """URL -> ExternalLinkResult cache with a time-to-live.

    Reads are lock-free dict lookups; writes take the lock. Concurrent misses
    for the same URL may both write; the last writer wins.
    """

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, ExternalLinkResult]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, url: str) -> ExternalLinkResult | None:
        entry = self._entries.get(url)
        if entry is None:
            self.misses += 1
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.ttl:
            with self._lock:
                self._entries.pop(url, None)
            self.misses += 1
            return None
        self.hits += 1
        return result

    def put(self, url: str, result: ExternalLinkResult) -> None:
        with self._lock:
            self._entries[url] = (self._clock(), result)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl,
        }


class _NoRedirect(HTTPRedirectHandler):
    """Surface 3xx responses as HTTPError instead of following them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # noqa: D401
        return None


def build_head_opener() -> OpenerDirector:
    return build_opener(_NoRedirect)


@dataclass
class LinkVerifier:
    """Verify external URLs and internal cross-references.

    Args:
        cache: Shared result cache; a private one is created when omitted
        timeout: Per-request timeout in seconds
        max_workers: Upper bound on concurrent external checks
        opener: Object with an ``open(request, timeout=...)`` method
        home: Directory where the upward vault-root search stops
    """

    cache: LinkCache = field(default_factory=LinkCache)
    timeout: float = DEFAULT_TIMEOUT
    max_workers: int = 4
    opener: Any = None
    home: Path | None = None

    def __post_init__(self) -> None:
        if self.cache is None:
            self.cache = LinkCache()
        if self.opener is None:
            self.opener = build_head_opener()
        self.home = (self.home or Path.home()).expanduser().resolve()

    # -------------------------------------------------------------------------
    # External links
    # -------------------------------------------------------------------------

    def verify_external(self, url: str) -> ExternalLinkResult:
        """Check one URL; never raises."""
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        result = self._check(url)
        self.cache.put(url, result)
        logger.debug("checked %s -> %s (%s)", url, result.status, result.code)
        return result

    def verify_many(self, urls: Iterable[str]) -> dict[str, ExternalLinkResult]:
        """Check distinct URLs concurrently; results keyed by URL in input order."""
        distinct = list(dict.fromkeys(urls))
        if not distinct:
            return {}

        workers = max(1, min(self.max_workers, len(distinct)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.verify_external, distinct))
        return dict(zip(distinct, results))

    def _check(self, url: str) -> ExternalLinkResult:
        started = time.monotonic()

        def done(status: ExternalStatus, **kwargs: Any) -> ExternalLinkResult:
            return ExternalLinkResult(url=url, status=status, elapsed=time.monotonic() - started, **kwargs)

        try:
            request = Request(url, method="HEAD", headers={"User-Agent": USER_AGENT})
        except ValueError as e:
            return done("error", error=f"Malformed URL: {e}")

        try:
            with self.opener.open(request, timeout=self.timeout) as response:
                code = _status_code(response)
                location = response.headers.get("Location") if response.headers else None
        except HTTPError as e:
            code = e.code
            location = e.headers.get("Location") if e.headers else None
        except (TimeoutError, socket.timeout):
            return done("timeout", error=f"Timed out after {self.timeout:g}s")
        except URLError as e:
            reason = e.reason
            if isinstance(reason, (TimeoutError, socket.timeout)):
                return done("timeout", error=f"Timed out after {self.timeout:g}s")
            if isinstance(reason, (socket.gaierror, ConnectionRefusedError)):
                return done("broken", error=str(reason))
            return done("error", error=str(reason))
        except ValueError as e:
            return done("error", error=f"Malformed URL: {e}")
        except http.client.HTTPException as e:
            # Protocol failures such as BadStatusLine are not OSError subclasses
            return done("error", error=f"{type(e).__name__}: {e}")
        except OSError as e:
            return done("error", error=str(e))

        return _map_status(code, location, done)

    # -------------------------------------------------------------------------
    # Internal references
    # -------------------------------------------------------------------------

    def verify_internal(self, reference: str, from_path: Path | str) -> InternalLinkResult:
        """Resolve a cross-reference or relative link from the note at `from_path`."""
        target = unquote(normalize_reference(reference))
        from_path = Path(from_path)
        if not target:
            return InternalLinkResult(reference=reference, status="broken")

        base_dir = from_path.parent
        root = self.find_vault_root(base_dir)

        matches = _exact_matches(target, base_dir, root)
        if not matches and "/" not in target:
            matches = _basename_matches(target, root)

        if not matches:
            return InternalLinkResult(reference=reference, status="broken")

        matches = sorted(set(matches))
        status: InternalStatus = "valid" if len(matches) == 1 else "ambiguous"
        return InternalLinkResult(
            reference=reference,
            status=status,
            resolved_path=matches[0],
            alternatives=tuple(matches[1:]),
        )

    def find_vault_root(self, start: Path) -> Path:
        """First ancestor holding a vault marker, else `start` itself."""
        start = start.resolve()
        current = start
        for _ in range(MAX_ROOT_LEVELS + 1):
            if any((current / marker).is_dir() for marker in VAULT_MARKERS):
                return current
            if current == self.home or current.parent == current:
                break
            current = current.parent
        return start


def normalize_reference(reference: str) -> str:
    """Strip `[[ ]]`, `|display` and `#heading` from a reference."""
    ref = reference.strip()
    if ref.startswith("!"):
        ref = ref[1:]
    if ref.startswith("[[") and ref.endswith("]]"):
        ref = ref[2:-2]
    ref, _ = split_cross_reference(ref)
    ref = ref.split("#", 1)[0]
    return ref.strip()


def _status_code(response: Any) -> int:
    code = getattr(response, "status", None)
    if code is None:
        code = response.getcode()
    return int(code)


def _map_status(code: int, location: str | None, done) -> ExternalLinkResult:
    if 200 <= code < 300:
        return done("valid", code=code)
    if 300 <= code < 400:
        return done("redirect", code=code, redirect_target=location)
    if code >= 400:
        return done("broken", code=code, error=f"HTTP {code}")
    return done("error", code=code, error=f"Unexpected status {code}")


def _exact_matches(target: str, base_dir: Path, root: Path) -> list[Path]:
    candidates = [target]
    if not target.lower().endswith((".md", ".markdown")):
        candidates.append(f"{target}.md")

    for directory in dict.fromkeys((base_dir.resolve(), root)):
        for name in candidates:
            path = directory / name
            if path.is_file():
                return [path.resolve()]
    return []


def _basename_matches(target: str, root: Path) -> list[Path]:
    wanted = {target.lower()}
    if not target.lower().endswith((".md", ".markdown")):
        wanted.add(f"{target.lower()}.md")

    matches: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        depth = len(Path(dirpath).relative_to(root).parts)
        if depth >= MAX_SEARCH_DEPTH:
            dirnames[:] = []
        else:
            dirnames[:] = [d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS]
        for filename in filenames:
            if filename.lower() in wanted:
                matches.append((Path(dirpath) / filename).resolve())
    return matches
