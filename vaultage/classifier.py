"""Multi-factor note classification.

    confidence = 0.4 * metadata + 0.4 * content + 0.2 * path

Each partial is clamped to [0, 1] before weighting and the total is clamped
again. The metadata partial gets a 1.2x bonus when three or more keep-fields
are present, so several modest matches can outrank one exact match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .config import Configuration, TypeProfile
from .models import Document
from .signals import compile_patterns, get_scorer

METADATA_WEIGHT = 0.4
CONTENT_WEIGHT = 0.4
PATH_WEIGHT = 0.2

RICH_METADATA_BONUS = 1.2
RICH_METADATA_MIN_FIELDS = 3
PATH_MATCH_SCORE = 0.8
LOW_CONFIDENCE = 0.5

TRANSIENT_FIELDS = ("author", "status", "draft")

# Fields worth having for the primary category, with the advice given when missing
TYPICAL_FIELDS: dict[str, list[tuple[str, str]]] = {
    "meeting-notes": [
        ("date", "Add date field for meeting context"),
        ("attendees", "Add attendees field for reference"),
    ],
    "research": [
        ("source", "Add source field for citation"),
        ("methodology", "Add methodology field for context"),
    ],
    "project-work": [
        ("project", "Add project field for categorization"),
        ("priority", "Add priority field for task management"),
    ],
}

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class TypeScore:
    type: str
    confidence: float
    reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class DetectionResult:
    primary_type: str
    all_scores: list[TypeScore] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def primary(self) -> TypeScore | None:
        return self.all_scores[0] if self.all_scores else None

    @property
    def confidence(self) -> float:
        return self.all_scores[0].confidence if self.all_scores else 0.0


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def is_valid_date(value: Any) -> bool:
    if isinstance(value, date):
        return True
    if isinstance(value, str) and ISO_DATE.match(value):
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


class TypeClassifier:
    """Score a document against every configured category."""

    def __init__(self, config: Configuration):
        self.config = config

    def classify(self, document: Document) -> DetectionResult:
        scores = [self.score(document, profile) for profile in self.config.types.values()]

        # Stable: ties keep configured order
        scores.sort(key=lambda s: s.confidence, reverse=True)

        primary = scores[0].type if scores else "unknown"
        return DetectionResult(
            primary_type=primary,
            all_scores=scores,
            recommendations=self.recommend(document, scores),
        )

    def score(self, document: Document, profile: TypeProfile) -> TypeScore:
        reasons: list[str] = []
        warnings: list[str] = []

        metadata_score = self._score_metadata(document, profile, reasons, warnings)

        signals = get_scorer(profile.name)(document, profile)
        reasons.extend(signals.reasons)

        path_score = self._score_path(document, profile, reasons, warnings)

        total = (
            METADATA_WEIGHT * _clamp(metadata_score)
            + CONTENT_WEIGHT * _clamp(signals.score)
            + PATH_WEIGHT * _clamp(path_score)
        )
        return TypeScore(
            type=profile.name,
            confidence=_clamp(total),
            reasons=[r for r in reasons if r],
            warnings=warnings,
        )

    def _score_metadata(
        self,
        document: Document,
        profile: TypeProfile,
        reasons: list[str],
        warnings: list[str],
    ) -> float:
        metadata = document.metadata
        keep = profile.metadata.keep

        matches = 0
        for name in keep:
            if name not in metadata:
                continue
            matches += 1
            reasons.append(f"Contains: {name}")

            value = metadata[name]
            if name == "date" and is_valid_date(value):
                reasons.append("Date format valid")
            elif name == "attendees" and isinstance(value, list):
                reasons.append(f"{len(value)} attendees listed")
            elif name == "tags" and isinstance(value, list):
                reasons.append(f"{len(value)} tags")

        for name in profile.metadata.remove:
            if name in metadata:
                warnings.append(f"Contains '{name}' field (usually removed for this type)")

        score = matches / len(keep) if keep else 0.0
        if matches >= RICH_METADATA_MIN_FIELDS:
            score *= RICH_METADATA_BONUS
            reasons.append("Rich frontmatter structure")
        return score

    def _score_path(
        self,
        document: Document,
        profile: TypeProfile,
        reasons: list[str],
        warnings: list[str],
    ) -> float:
        patterns, errors = compile_patterns(profile.path_patterns)
        warnings.extend(errors)

        full_path = str(document.path).lower()
        filename = document.path.name.lower()
        for pattern in patterns:
            if pattern.search(full_path) or pattern.search(filename):
                reasons.append(f"File path matches {profile.name} pattern")
                return PATH_MATCH_SCORE
        return 0.0

    def recommend(self, document: Document, scores: list[TypeScore]) -> list[str]:
        recommendations: list[str] = []
        metadata = document.metadata
        primary = scores[0] if scores else None

        if primary is None or primary.confidence < LOW_CONFIDENCE:
            recommendations.append("Low confidence in type detection - consider adding more specific frontmatter")

        transient = [name for name in TRANSIENT_FIELDS if name in metadata]
        if transient:
            recommendations.append(f"Consider removing temporary fields: {', '.join(transient)}")

        if primary is not None:
            for name, advice in TYPICAL_FIELDS.get(primary.type, []):
                if not metadata.get(name):
                    recommendations.append(advice)

        if len(document.checklist) > 5:
            recommendations.append("Many action items found - consider breaking into separate documents")

        if len(document.external_links) > 10:
            recommendations.append("Many external links - aging process will verify and potentially summarize these")

        return recommendations
