"""Content signals used by the type classifier.

Each category has one scoring function registered in CONTENT_SCORERS. A
scorer sums fixed weights for the signals whose trigger holds; weights for a
category add up to at most 1.0. Categories without a registered scorer fall
back to `score_heading_patterns`, driven by the profile's configured
heading patterns. Built-in scorers also count a heading as a category
heading when a configured pattern matches it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from .models import Document, Header

if TYPE_CHECKING:
    from .config import TypeProfile


@dataclass
class SignalScore:
    score: float = 0.0
    reasons: list[str] = field(default_factory=list)

    def hit(self, weight: float, reason: str) -> None:
        self.score += weight
        self.reasons.append(reason)

    def clamped(self) -> "SignalScore":
        self.score = min(max(self.score, 0.0), 1.0)
        return self


ContentScorer = Callable[[Document, "TypeProfile"], SignalScore]

CONTENT_SCORERS: dict[str, ContentScorer] = {}


def content_scorer(name: str) -> Callable[[ContentScorer], ContentScorer]:
    """Register a scorer for category `name`."""

    def decorator(func: ContentScorer) -> ContentScorer:
        CONTENT_SCORERS[name] = func
        return func

    return decorator


def get_scorer(name: str) -> ContentScorer:
    return CONTENT_SCORERS.get(name, score_heading_patterns)


def _headers_matching(headers: tuple[Header, ...], pattern: re.Pattern[str]) -> list[Header]:
    return [h for h in headers if pattern.search(h.text)]


def _category_headers(document: Document, builtin: re.Pattern[str], profile: "TypeProfile") -> list[Header]:
    """Headings matching the built-in pattern or any configured heading pattern."""
    patterns, _ = compile_patterns(profile.content.heading_patterns)
    patterns.insert(0, builtin)
    return [h for h in document.headers if any(p.search(h.text) for p in patterns)]


def compile_patterns(raw_patterns: list[str]) -> tuple[list[re.Pattern[str]], list[str]]:
    """Compile case-insensitive patterns; invalid ones are reported, not raised."""
    patterns: list[re.Pattern[str]] = []
    errors: list[str] = []
    for raw in raw_patterns:
        try:
            patterns.append(re.compile(raw, re.IGNORECASE))
        except re.error as e:
            errors.append(f"Invalid pattern {raw!r}: {e}")
    return patterns, errors


def _count(pattern: re.Pattern[str], text: str) -> int:
    return len(pattern.findall(text))


# -----------------------------------------------------------------------------
# meeting-notes
# -----------------------------------------------------------------------------

MEETING_HEADINGS = re.compile(r"agenda|discussion|action.?items|notes|attendees|decisions", re.IGNORECASE)
MEETING_WORDS = re.compile(r"\b(?:discussed|decided|agreed|meeting|agenda|follow.?up)\b", re.IGNORECASE)
TIME_REFERENCES = re.compile(r"\b\d{1,2}:\d{2}\b|\b(?:am|pm|morning|afternoon)\b", re.IGNORECASE)


@content_scorer("meeting-notes")
def score_meeting(document: Document, profile: "TypeProfile") -> SignalScore:
    result = SignalScore()
    body = document.body

    headers = _category_headers(document, MEETING_HEADINGS, profile)
    if headers:
        result.hit(0.3, f"Meeting headers: {', '.join(h.text for h in headers)}")

    if document.checklist:
        result.hit(0.4, f"{len(document.checklist)} action items found")

    if _count(MEETING_WORDS, body) > 2:
        result.hit(0.2, "Meeting language patterns")

    if TIME_REFERENCES.search(body):
        result.hit(0.1, "Time references found")

    return result.clamped()


# -----------------------------------------------------------------------------
# research
# -----------------------------------------------------------------------------

RESEARCH_HEADINGS = re.compile(r"methodology|findings|conclusion|results|analysis|summary|abstract", re.IGNORECASE)
RESEARCH_WORDS = re.compile(
    r"\b(?:study|research|analysis|methodology|findings|hypothesis|evidence|data)\b", re.IGNORECASE
)
CITATIONS = re.compile(r"\[\d+\]|\([^)]*\d{4}[^)]*\)|doi:|arxiv:", re.IGNORECASE)


@content_scorer("research")
def score_research(document: Document, profile: "TypeProfile") -> SignalScore:
    result = SignalScore()
    body = document.body

    headers = _category_headers(document, RESEARCH_HEADINGS, profile)
    if headers:
        result.hit(0.3, f"Research headers: {', '.join(h.text for h in headers)}")

    external = len(document.external_links)
    if external:
        result.hit(0.4, f"{external} external references")

    if _count(RESEARCH_WORDS, body) > 3:
        result.hit(0.2, "Research terminology")

    if CITATIONS.search(body):
        result.hit(0.1, "Citations/references found")

    return result.clamped()


# -----------------------------------------------------------------------------
# project-work
# -----------------------------------------------------------------------------

PROJECT_HEADINGS = re.compile(r"requirements|implementation|plan|progress|blockers|tasks|todo", re.IGNORECASE)
PROJECT_WORDS = re.compile(
    r"\b(?:task|project|implement|develop|build|feature|requirement|deadline)\b", re.IGNORECASE
)
PROGRESS_WORDS = re.compile(r"\b(?:progress|status|completed?|in.?progress|todo|done)\b", re.IGNORECASE)


@content_scorer("project-work")
def score_project(document: Document, profile: "TypeProfile") -> SignalScore:
    result = SignalScore()
    body = document.body

    headers = _category_headers(document, PROJECT_HEADINGS, profile)
    if headers:
        result.hit(0.3, f"Project headers: {', '.join(h.text for h in headers)}")

    if document.code_blocks:
        result.hit(0.3, f"{len(document.code_blocks)} code blocks")

    if _count(PROJECT_WORDS, body) > 2:
        result.hit(0.2, "Project terminology")

    if PROGRESS_WORDS.search(body):
        result.hit(0.2, "Progress indicators")

    return result.clamped()


# -----------------------------------------------------------------------------
# personal-notes
# -----------------------------------------------------------------------------

FIRST_PERSON = re.compile(r"\b(?:i think|i feel|my|personally|reflection|thoughts|ideas)\b", re.IGNORECASE)
REFLECTIVE_WORDS = re.compile(r"\b(?:feel|emotion|reflect|wonder|hope|wish|dream)\w*", re.IGNORECASE)
INFORMAL_WORDS = re.compile(r"\b(?:really|actually|basically|honestly|whatever|anyway)\b", re.IGNORECASE)
PERSONAL_HEADINGS = re.compile(r"random|thoughts|ideas|misc|various", re.IGNORECASE)


@content_scorer("personal-notes")
def score_personal(document: Document, profile: "TypeProfile") -> SignalScore:
    result = SignalScore()
    body = document.body

    if _count(FIRST_PERSON, body) > 2:
        result.hit(0.4, "First-person language")

    if REFLECTIVE_WORDS.search(body):
        result.hit(0.3, "Reflective/emotional content")

    if INFORMAL_WORDS.search(body):
        result.hit(0.2, "Informal tone")

    if _category_headers(document, PERSONAL_HEADINGS, profile):
        result.hit(0.1, "Personal note structure")

    return result.clamped()


# -----------------------------------------------------------------------------
# custom categories
# -----------------------------------------------------------------------------


def score_heading_patterns(document: Document, profile: "TypeProfile") -> SignalScore:
    """0.5 when any heading matches one of the profile's heading patterns."""
    result = SignalScore()
    patterns, _ = compile_patterns(profile.content.heading_patterns)
    for pattern in patterns:
        headers = _headers_matching(document.headers, pattern)
        if headers:
            result.hit(0.5, f"{profile.name} headers: {', '.join(h.text for h in headers)}")
            break
    return result.clamped()
