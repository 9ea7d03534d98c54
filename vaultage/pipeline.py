"""
Single-note aging pipeline.

Orchestrates: parse -> classify -> plan -> [approval] -> backup -> apply -> validate

Nothing is written before approval. Once the backup exists, any failure
restores it before the error propagates, so the note is never left
half-edited.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from .backup import BackupManager, BackupRecord, atomic_write_bytes
from .classifier import DetectionResult, TypeClassifier
from .config import Configuration, ConfigResolver
from .errors import MalformedMetadataError, ProcessingFailed, VaultageError
from .models import Document
from .planner import ChangePlanner, apply_plan
from .planning import ChangePlan
from .summarize import Summarizer, get_summarizer
from .vault.links import LinkCache, LinkVerifier
from .vault.loader import load_document, render_document

logger = logging.getLogger(__name__)

MAX_APPROVAL_ROUNDS = 10

LIST_FIELDS = ("tags", "attendees")
DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


class PipelineState(str, Enum):
    PARSED = "parsed"
    CLASSIFIED = "classified"
    PLANNED = "planned"
    NO_CHANGES = "no_changes"
    APPROVED = "approved"
    REJECTED = "rejected"
    BACKED_UP = "backed_up"
    APPLIED = "applied"
    VALIDATED = "validated"
    FAILED = "failed"


class ApprovalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    PREVIEW = "preview"
    CONFIGURE = "configure"


Approver = Callable[[Document, ChangePlan, str], ApprovalDecision]
Previewer = Callable[[Document, ChangePlan], None]

CONFIGURE_MESSAGE = (
    "Rule editing is not available here; edit .age/config.json to customise processing rules"
)


class ValidationMismatch(VaultageError):
    """The rewritten note does not re-parse to the planned metadata."""


@dataclass
class PipelineContext:
    """Collaborators shared by one invocation.

    The link cache lives here rather than in module state so each
    invocation (or test) owns its own.
    """

    home: Path | None = None
    resolver: ConfigResolver | None = None
    backups: BackupManager | None = None
    link_cache: LinkCache = field(default_factory=LinkCache)
    verifier: LinkVerifier | None = None
    summarizer: Summarizer | None = None
    now: datetime | None = None

    def __post_init__(self) -> None:
        if self.resolver is None:
            self.resolver = ConfigResolver(home=self.home)
        if self.backups is None:
            self.backups = BackupManager(home=self.home)

    def verifier_for(self, config: Configuration) -> LinkVerifier:
        if self.verifier is not None:
            return self.verifier
        return LinkVerifier(
            cache=self.link_cache,
            timeout=config.processing.link_timeout,
            max_workers=config.processing.max_workers,
            home=self.home,
        )

    def summarizer_for(self, config: Configuration) -> Summarizer | None:
        if self.summarizer is not None:
            return self.summarizer
        return get_summarizer(config.ai.provider, config.ai.model)


@dataclass
class PipelineResult:
    path: Path
    state: PipelineState
    history: list[PipelineState] = field(default_factory=list)
    document: Document | None = None
    config: Configuration | None = None
    detection: DetectionResult | None = None
    plan: ChangePlan | None = None
    updated: Document | None = None
    backup: BackupRecord | None = None
    notes: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state in (PipelineState.VALIDATED, PipelineState.NO_CHANGES)

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("%s: %s", self.path.name, state.value)


def check_metadata_shape(metadata: dict[str, Any]) -> list[str]:
    """Advisory checks on rewritten metadata: date-like fields and list fields."""
    warnings: list[str] = []
    for name, value in metadata.items():
        if "date" in name and isinstance(value, str) and not DATE_PREFIX.match(value):
            warnings.append(f"Field '{name}' should be in YYYY-MM-DD format")
        elif "date" in name and not isinstance(value, (str, date)) and value is not None:
            warnings.append(f"Field '{name}' should be a date")
        if name in LIST_FIELDS and value is not None and not isinstance(value, list):
            warnings.append(f"Field '{name}' should be an array")
    return warnings


class Pipeline:
    """Run the aging state machine for one note at a time."""

    def __init__(self, context: PipelineContext | None = None, previewer: Previewer | None = None):
        self.context = context or PipelineContext()
        self.previewer = previewer

    def analyse(self, path: Path | str) -> PipelineResult:
        """Parse, resolve configuration, classify and plan; no side effects."""
        path = Path(path).expanduser().resolve()
        result = PipelineResult(path=path, state=PipelineState.PARSED)

        document = load_document(path)
        result.document = document
        result.warnings.extend(document.warnings)
        result.advance(PipelineState.PARSED)

        config = self.context.resolver.resolve(path)
        result.config = config
        result.warnings.extend(config.warnings)

        detection = TypeClassifier(config).classify(document)
        result.detection = detection
        result.advance(PipelineState.CLASSIFIED)

        planner = ChangePlanner(
            self.context.verifier_for(config),
            self.context.summarizer_for(config),
            now=self.context.now,
        )
        plan = planner.plan(document, config, detection)
        result.plan = plan
        result.warnings.extend(plan.warnings)
        result.advance(PipelineState.PLANNED)
        return result

    def run(
        self,
        path: Path | str,
        approver: Approver | None = None,
        *,
        interactive: bool = True,
        dry_run: bool = False,
    ) -> PipelineResult:
        """Age one note.

        With ``interactive`` off, or no approver, the plan is approved as
        computed.

        Raises:
            NoteNotFoundError, AccessDeniedError, UnsupportedExtensionError: invalid note
            UnknownCategoryError: the detected category has no rules
            MalformedMetadataError: the metadata block could not be loaded
            BackupIOError: the pre-write backup could not be taken
            ProcessingFailed: writing or validating failed (the note was restored)
        """
        result = self.analyse(path)
        document, plan = result.document, result.plan
        if document is None or plan is None:
            raise VaultageError(f"Analysis of {result.path.name} produced no plan")

        if plan.is_empty:
            result.advance(PipelineState.NO_CHANGES)
            return result

        if dry_run:
            return result

        # Rewriting would drop every key of a block that failed to load
        if document.metadata_error:
            raise MalformedMetadataError(result.path, document.metadata_error)

        if interactive and approver is not None:
            if not self._approve(result, approver):
                result.advance(PipelineState.REJECTED)
                return result
        result.advance(PipelineState.APPROVED)

        record = self.context.backups.backup(result.path)
        result.backup = record
        result.advance(PipelineState.BACKED_UP)

        try:
            applied = apply_plan(document, plan)
            result.notes.extend(applied.notes)
            atomic_write_bytes(result.path, render_document(applied.document).encode("utf-8"))
            result.updated = applied.document
            result.advance(PipelineState.APPLIED)

            self._validate(result, applied.document)
            result.advance(PipelineState.VALIDATED)
        except Exception as e:
            result.errors.append(f"{type(e).__name__}: {e}")
            restored = self._rollback(result, record)
            result.advance(PipelineState.FAILED)
            raise ProcessingFailed(
                f"Aging {result.path.name} failed: {e}"
                + (" (original restored from backup)" if restored else " (restore failed; see backup)"),
                errors=result.errors,
                warnings=result.warnings,
                restored=restored,
            ) from e

        return result

    def _approve(self, result: PipelineResult, approver: Approver) -> bool:
        document, plan = result.document, result.plan
        for _ in range(MAX_APPROVAL_ROUNDS):
            decision = ApprovalDecision(approver(document, plan, plan.category))
            if decision is ApprovalDecision.APPROVE:
                return True
            if decision is ApprovalDecision.REJECT:
                return False
            if decision is ApprovalDecision.PREVIEW:
                if self.previewer is not None:
                    self.previewer(document, plan)
            else:
                result.messages.append(CONFIGURE_MESSAGE)
                logger.info(CONFIGURE_MESSAGE)

        result.warnings.append(f"No decision after {MAX_APPROVAL_ROUNDS} prompts; treating as rejected")
        return False

    def _validate(self, result: PipelineResult, expected: Document) -> None:
        reparsed = load_document(result.path)
        if reparsed.metadata != expected.metadata:
            raise ValidationMismatch(
                f"Rewritten metadata does not match the plan for {result.path.name}"
            )
        if reparsed.body.strip() != expected.body.strip():
            raise ValidationMismatch(f"Body of {result.path.name} changed while rewriting metadata")
        result.warnings.extend(check_metadata_shape(reparsed.metadata))

    def _rollback(self, result: PipelineResult, record: BackupRecord) -> bool:
        try:
            self.context.backups.restore(record)
        except (VaultageError, OSError) as e:
            result.errors.append(f"Rollback failed: {e}")
            logger.error("Rollback of %s failed: %s", result.path, e)
            return False
        logger.warning("Restored %s from %s", result.path, record.backup_path)
        return True
