"""Change planning: compute what aging a note would do, then apply it.

`ChangePlanner.plan` is the diagnostic phase and writes nothing.
`apply_plan` is the pure part of the action phase: it produces the new
Document value; writing it to disk is the pipeline's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .classifier import DetectionResult
from .config import Configuration, ModifyRule, TypeProfile
from .errors import UnknownCategoryError
from .models import Document, slugify
from .planning import (
    ContentChange,
    ChangePlan,
    LinkChange,
    MetadataChange,
    compute_plan_metadata,
)
from .summarize import Summarizer
from .templates import TEMPLATE_FUNCTIONS, render_template
from .vault.links import LinkVerifier

logger = logging.getLogger(__name__)


@dataclass
class AppliedDocument:
    document: Document
    notes: list[str] = field(default_factory=list)


def apply_modification(current: Any, rule: ModifyRule) -> tuple[Any, str | None]:
    """Return (new value, warning) for one modify rule."""
    if rule.op == "replace":
        return rule.value, None

    if rule.op in ("append", "prepend"):
        if isinstance(current, list):
            extra = list(rule.value) if isinstance(rule.value, (list, tuple)) else [rule.value]
            return (current + extra if rule.op == "append" else extra + current), None
        if isinstance(current, str):
            text = "" if rule.value is None else str(rule.value)
            return (current + text if rule.op == "append" else text + current), None
        return current, f"Cannot {rule.op} to a {type(current).__name__} value"

    return current, f"Unknown modification type '{rule.op}'"


class ChangePlanner:
    """Build ChangePlans from a document, its configuration and its classification."""

    def __init__(
        self,
        verifier: LinkVerifier | None = None,
        summarizer: Summarizer | None = None,
        *,
        now: datetime | None = None,
    ):
        self.verifier = verifier or LinkVerifier()
        self.summarizer = summarizer
        self.now = now

    def plan(self, document: Document, config: Configuration, detection: DetectionResult) -> ChangePlan:
        category = detection.primary_type
        profile = config.profile(category)
        if profile is None:
            raise UnknownCategoryError(category)

        plan = ChangePlan(category=category)

        plan.metadata_changes.extend(self._plan_removals(document, profile))
        plan.metadata_changes.extend(self._plan_additions(document, profile, plan.warnings))
        plan.metadata_changes.extend(self._plan_modifications(document, profile, plan.warnings))

        requires_ai = False
        if profile.content.summarize:
            if self.summarizer is None:
                requires_ai = True
                plan.warnings.append(
                    f"'{category}' asks for summarization but no AI provider is configured; content left as is"
                )
            else:
                plan.content_changes.extend(
                    self._plan_content(document, profile, self.summarizer, plan.warnings)
                )

        if profile.content.url_processing:
            plan.link_changes.extend(self._plan_external_links(document))
        if profile.content.link_verification:
            plan.link_changes.extend(self._plan_internal_links(document, plan.warnings))

        plan.summary_info = compute_plan_metadata(
            document.size,
            plan.metadata_changes,
            plan.content_changes,
            plan.link_changes,
            requires_ai=requires_ai or bool(plan.content_changes),
        )

        for warning in plan.warnings:
            logger.warning("%s: %s", document.name, warning)
        return plan

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def _plan_removals(self, document: Document, profile: TypeProfile) -> list[MetadataChange]:
        return [
            MetadataChange(
                kind="remove",
                field=name,
                old=document.metadata[name],
                reason=f"Document type '{profile.name}' removes '{name}' field",
            )
            for name in profile.metadata.remove
            if name in document.metadata
        ]

    def _plan_additions(
        self, document: Document, profile: TypeProfile, warnings: list[str]
    ) -> list[MetadataChange]:
        now = self.now or datetime.now(timezone.utc)
        changes: list[MetadataChange] = []
        for name, template in profile.metadata.add.items():
            if name in document.metadata:
                continue
            value, template_warnings = render_template(template, document, now=now)
            warnings.extend(f"Field '{name}': {w}" for w in template_warnings)
            changes.append(
                MetadataChange(
                    kind="add",
                    field=name,
                    new=value,
                    reason=f"Document type '{profile.name}' adds '{name}' field",
                )
            )
        return changes

    def _plan_modifications(
        self, document: Document, profile: TypeProfile, warnings: list[str]
    ) -> list[MetadataChange]:
        changes: list[MetadataChange] = []
        for name, rule in profile.metadata.modify.items():
            if name not in document.metadata:
                continue
            old = document.metadata[name]
            new, warning = apply_modification(old, rule)
            if warning:
                warnings.append(f"Field '{name}': {warning}")
            if new != old:
                changes.append(
                    MetadataChange(
                        kind="modify",
                        field=name,
                        old=old,
                        new=new,
                        reason=f"Document type '{profile.name}' modifies '{name}' field",
                    )
                )
        return changes

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    def _plan_content(
        self,
        document: Document,
        profile: TypeProfile,
        summarizer: Summarizer,
        warnings: list[str],
    ) -> list[ContentChange]:
        preserved = {slugify(name) for name in profile.content.preserve}
        hint = TEMPLATE_FUNCTIONS["summary_length"](document, self.now or datetime.now(timezone.utc))

        changes: list[ContentChange] = []
        for section in document.sections():
            if section.id in preserved or not section.text:
                continue
            try:
                summary = summarizer.summarize(section.text, hint)
            except Exception as e:  # provider boundary: degrade to no change
                warnings.append(f"Summarizer failed on section '{section.id}': {e}")
                continue
            if summary and summary != section.text:
                changes.append(
                    ContentChange(
                        kind="summarize",
                        section=section.id,
                        old=section.text,
                        new=summary,
                        reason=f"Summarize section for '{profile.name}' ({hint})",
                    )
                )
        return changes

    # -------------------------------------------------------------------------
    # Links
    # -------------------------------------------------------------------------

    def _plan_external_links(self, document: Document) -> list[LinkChange]:
        urls = [link.target for link in document.external_links]
        results = self.verifier.verify_many(urls)

        changes: list[LinkChange] = []
        for url, result in results.items():
            if result.status == "broken":
                changes.append(
                    LinkChange(
                        kind="remove",
                        link_kind="external",
                        target=url,
                        status=result.status,
                        reason=f"External link is broken ({result.code or 'unreachable'})",
                    )
                )
            elif result.status == "redirect" and result.redirect_target:
                changes.append(
                    LinkChange(
                        kind="update",
                        link_kind="external",
                        target=url,
                        status=result.status,
                        replacement=result.redirect_target,
                        reason=f"External link redirects to {result.redirect_target}",
                    )
                )
            else:
                detail = result.code if result.code is not None else result.error or result.status
                changes.append(
                    LinkChange(
                        kind="verify",
                        link_kind="external",
                        target=url,
                        status=result.status,
                        reason=f"External link verified ({detail})",
                    )
                )
        return changes

    def _plan_internal_links(self, document: Document, warnings: list[str]) -> list[LinkChange]:
        changes: list[LinkChange] = []
        for target in dict.fromkeys(link.target for link in document.internal_links):
            result = self.verifier.verify_internal(target, document.path)
            if result.status == "broken":
                changes.append(
                    LinkChange(
                        kind="remove",
                        link_kind="internal",
                        target=target,
                        status=result.status,
                        reason="Internal vault link target not found",
                    )
                )
            elif result.status == "ambiguous":
                alternatives = ", ".join(str(p) for p in result.alternatives)
                warnings.append(
                    f"Link '{target}' is ambiguous; using {result.resolved_path} (also: {alternatives})"
                )
                changes.append(
                    LinkChange(
                        kind="verify",
                        link_kind="internal",
                        target=target,
                        status=result.status,
                        reason=f"Internal link found multiple matches: {result.resolved_path}, {alternatives}",
                    )
                )
            else:
                changes.append(
                    LinkChange(
                        kind="verify",
                        link_kind="internal",
                        target=target,
                        status=result.status,
                        reason=f"Internal link verified: {result.resolved_path}",
                    )
                )
        return changes


def apply_plan(document: Document, plan: ChangePlan) -> AppliedDocument:
    """Apply metadata changes (remove, then add, then modify) to a copy of the metadata.

    Link and content changes are not enacted; they come back as notes for
    manual follow-up.
    """
    metadata = dict(document.metadata)

    for kind in ("remove", "add", "modify"):
        for change in plan.metadata_changes:
            if change.kind != kind:
                continue
            if kind == "remove":
                metadata.pop(change.field, None)
            else:
                metadata[change.field] = change.new

    notes: list[str] = []
    updates = [c for c in plan.link_changes if c.kind == "update"]
    removals = [c for c in plan.link_changes if c.kind == "remove"]
    if updates:
        notes.append(f"{len(updates)} link redirect(s) found (manual update recommended)")
    if removals:
        notes.append(f"{len(removals)} broken link(s) found (manual removal recommended)")
    if plan.content_changes:
        notes.append(f"{len(plan.content_changes)} section summary(ies) proposed (manual edit recommended)")

    if metadata == document.metadata:
        return AppliedDocument(document=document, notes=notes)
    return AppliedDocument(document=document.with_metadata(metadata), notes=notes)
