"""Layered configuration: defaults <- global <- vault <- local.

Tier files are JSON in the camelCase on-disk shape. Merging happens on the
raw data; the merged result is then coerced into typed dataclasses. A tier
that cannot be read or parsed is skipped with a warning.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from .defaults import (
    AI_PROVIDERS,
    BACKUP_DIR_NAME,
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_RETENTION,
    default_config_data,
)

logger = logging.getLogger(__name__)

RETENTION_PATTERN = re.compile(r"^(\d+)([dwhm])$")

MODIFY_OPERATIONS = ("append", "prepend", "replace")

# Rule lists merged by ordered union across tiers
_UNION_KEYS = ("keep", "remove", "preserve", "pathPatterns", "headingPatterns")

TierName = Literal["global", "vault", "local"]


# -----------------------------------------------------------------------------
# Typed configuration
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ModifyRule:
    op: str
    value: Any = None


@dataclass
class MetadataRules:
    keep: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    add: dict[str, Any] = field(default_factory=dict)
    modify: dict[str, ModifyRule] = field(default_factory=dict)


@dataclass
class ContentRules:
    summarize: bool = False
    preserve: list[str] = field(default_factory=list)
    url_processing: bool = False
    link_verification: bool = False
    heading_patterns: list[str] = field(default_factory=list)


@dataclass
class TypeProfile:
    """Transformation rules for one category."""

    name: str
    metadata: MetadataRules = field(default_factory=MetadataRules)
    content: ContentRules = field(default_factory=ContentRules)
    path_patterns: list[str] = field(default_factory=list)


@dataclass
class AISettings:
    provider: str = "none"
    model: str | None = None


@dataclass
class BackupSettings:
    retention: str = DEFAULT_RETENTION
    compress: bool = False
    max_size: str = "100MB"

    @property
    def retention_delta(self) -> timedelta:
        return parse_duration(self.retention)


@dataclass
class ProcessingSettings:
    interactive: bool = True
    batch_size: int = 10
    parallel: bool = False
    max_workers: int = 4
    link_timeout: float = 10.0


@dataclass
class Configuration:
    """Effective configuration for one note."""

    ai: AISettings = field(default_factory=AISettings)
    backup: BackupSettings = field(default_factory=BackupSettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)
    types: dict[str, TypeProfile] = field(default_factory=dict)
    sources: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def profile(self, name: str) -> TypeProfile | None:
        return self.types.get(name)

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "Configuration":
        ai = _coerce_dict(data.get("ai"))
        backup = _coerce_dict(data.get("backup"))
        processing = _coerce_dict(data.get("processing"))

        model = ai.get("model")
        types = {
            str(name): _profile_from_data(str(name), _coerce_dict(raw))
            for name, raw in _coerce_dict(data.get("documentTypes")).items()
        }

        return cls(
            ai=AISettings(
                provider=str(ai.get("provider", "none")),
                model=str(model) if isinstance(model, str) and model else None,
            ),
            backup=BackupSettings(
                retention=str(backup.get("retention", DEFAULT_RETENTION)),
                compress=bool(backup.get("compress", False)),
                max_size=str(backup.get("maxSize", "100MB")),
            ),
            processing=ProcessingSettings(
                interactive=bool(processing.get("interactive", True)),
                batch_size=_coerce_int(processing.get("batchSize"), 10),
                parallel=bool(processing.get("parallel", False)),
                max_workers=max(1, _coerce_int(processing.get("maxWorkers"), 4)),
                link_timeout=_coerce_float(processing.get("linkTimeout"), 10.0),
            ),
            types=types,
        )


@dataclass
class ConfigHierarchy:
    """The effective configuration plus the raw tier documents that built it."""

    effective: Configuration
    tiers: dict[TierName, dict[str, Any]] = field(default_factory=dict)
    paths: dict[TierName, Path] = field(default_factory=dict)


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return []


def _coerce_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _profile_from_data(name: str, raw: dict[str, Any]) -> TypeProfile:
    fm = _coerce_dict(raw.get("frontmatter"))
    content = _coerce_dict(raw.get("content"))

    modify: dict[str, ModifyRule] = {}
    for key, rule in _coerce_dict(fm.get("modify")).items():
        if isinstance(rule, dict):
            op = str(rule.get("operation", rule.get("op", "replace")))
            modify[str(key)] = ModifyRule(op=op, value=rule.get("value"))
        else:
            modify[str(key)] = ModifyRule(op="replace", value=rule)

    return TypeProfile(
        name=name,
        metadata=MetadataRules(
            keep=_coerce_list(fm.get("keep")),
            remove=_coerce_list(fm.get("remove")),
            add=dict(_coerce_dict(fm.get("add"))),
            modify=modify,
        ),
        content=ContentRules(
            summarize=bool(content.get("summarize", False)),
            preserve=_coerce_list(content.get("preserve")),
            url_processing=bool(content.get("urlProcessing", False)),
            link_verification=bool(content.get("linkVerification", False)),
            heading_patterns=_coerce_list(content.get("headingPatterns")),
        ),
        path_patterns=_coerce_list(raw.get("pathPatterns")),
    )


# -----------------------------------------------------------------------------
# Merging and validation (raw data)
# -----------------------------------------------------------------------------


def union(existing: list[Any], incoming: list[Any]) -> list[Any]:
    """Ordered union: existing order first, new elements appended, no duplicates."""
    result = list(existing)
    for item in incoming:
        if item not in result:
            result.append(item)
    return result


def _merge_rule_block(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    merged = dict(target)
    for key, value in source.items():
        if key in _UNION_KEYS:
            merged[key] = union(_coerce_list(merged.get(key)), _coerce_list(value))
        elif key in ("add", "modify"):
            merged[key] = {**_coerce_dict(merged.get(key)), **_coerce_dict(value)}
        else:
            merged[key] = value
    return merged


def merge_config(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge one tier document onto `target` and return the result.

    `target` is not modified.
    """
    merged = dict(target)

    for section in ("ai", "backup", "processing"):
        if isinstance(source.get(section), dict):
            merged[section] = {**_coerce_dict(merged.get(section)), **source[section]}

    incoming_types = source.get("documentTypes")
    if isinstance(incoming_types, dict):
        types = dict(_coerce_dict(merged.get("documentTypes")))
        for name, raw in incoming_types.items():
            if not isinstance(raw, dict):
                continue
            existing = _coerce_dict(types.get(name))
            combined = dict(existing)
            for key, value in raw.items():
                if key in ("frontmatter", "content") and isinstance(value, dict):
                    combined[key] = _merge_rule_block(_coerce_dict(existing.get(key)), value)
                elif key in _UNION_KEYS:
                    combined[key] = union(_coerce_list(existing.get(key)), _coerce_list(value))
                else:
                    combined[key] = value
            types[name] = combined
        merged["documentTypes"] = types

    return merged


def validate_config(data: dict[str, Any]) -> list[str]:
    """Replace invalid settings in `data` with defaults; return warnings."""
    warnings: list[str] = []

    ai = _coerce_dict(data.get("ai"))
    provider = ai.get("provider", "none")
    if provider not in AI_PROVIDERS:
        warnings.append(
            f"Invalid AI provider: {provider}. Must be one of: {', '.join(AI_PROVIDERS)}; using 'none'"
        )
        data["ai"] = {**ai, "provider": "none"}

    backup = _coerce_dict(data.get("backup"))
    retention = backup.get("retention", DEFAULT_RETENTION)
    if not isinstance(retention, str) or not RETENTION_PATTERN.match(retention):
        warnings.append(
            f"Invalid backup retention: {retention!r}. Must match <number><d|w|h|m>; using '{DEFAULT_RETENTION}'"
        )
        data["backup"] = {**backup, "retention": DEFAULT_RETENTION}

    return warnings


def parse_duration(value: str) -> timedelta:
    """Parse a retention string such as ``30d``, ``2w``, ``12h`` or ``6m`` (months of 30 days)."""
    match = RETENTION_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    amount, unit = int(match.group(1)), match.group(2)
    if unit == "h":
        return timedelta(hours=amount)
    if unit == "d":
        return timedelta(days=amount)
    if unit == "w":
        return timedelta(weeks=amount)
    return timedelta(days=30 * amount)


# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------


class ConfigResolver:
    """Resolve the effective configuration for notes.

    Results are memoised per note directory for the lifetime of the resolver.
    """

    def __init__(self, home: Path | None = None):
        self.home = (home or Path.home()).expanduser().resolve()
        self._cache: dict[Path, ConfigHierarchy] = {}

    @property
    def global_config_path(self) -> Path:
        return self.home / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def resolve(self, path: Path | str) -> Configuration:
        return self.resolve_hierarchy(path).effective

    def resolve_hierarchy(self, path: Path | str) -> ConfigHierarchy:
        directory = _note_directory(Path(path))
        cached = self._cache.get(directory)
        if cached is not None:
            return cached

        data = default_config_data()
        warnings: list[str] = []
        hierarchy = ConfigHierarchy(effective=Configuration())
        merged_files: list[Path] = []

        candidates: list[tuple[TierName, Path | None]] = [
            ("global", self.global_config_path),
            ("vault", self.find_vault_config(directory)),
            ("local", directory / CONFIG_DIR_NAME / CONFIG_FILE_NAME),
        ]

        for tier, config_path in candidates:
            if config_path is None or not config_path.is_file():
                continue
            config_path = config_path.resolve()
            if config_path in merged_files:
                logger.debug("%s tier %s already merged", tier, config_path)
                continue

            tier_data = _read_tier(tier, config_path, warnings)
            if tier_data is None:
                continue

            data = merge_config(data, tier_data)
            merged_files.append(config_path)
            hierarchy.tiers[tier] = tier_data
            hierarchy.paths[tier] = config_path

        warnings.extend(validate_config(data))
        for warning in warnings:
            logger.warning(warning)

        effective = Configuration.from_data(data)
        effective.sources = merged_files
        effective.warnings = warnings
        hierarchy.effective = effective

        self._cache[directory] = hierarchy
        return hierarchy

    def find_vault_config(self, directory: Path) -> Path | None:
        """First config file above `directory` (the local tier's own), else the home one."""
        current = directory.parent
        while True:
            candidate = current / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            if candidate.is_file():
                return candidate
            if current.parent == current:
                break
            current = current.parent

        fallback = self.global_config_path
        return fallback if fallback.is_file() else None


def _note_directory(path: Path) -> Path:
    path = path.expanduser().resolve()
    return path if path.is_dir() else path.parent


def _read_tier(tier: TierName, path: Path, warnings: list[str]) -> dict[str, Any] | None:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        warnings.append(f"Skipped {tier} config {path}: cannot read ({e})")
        return None
    except json.JSONDecodeError as e:
        warnings.append(f"Skipped {tier} config {path}: invalid JSON ({e.msg} at line {e.lineno})")
        return None

    if not isinstance(raw, dict):
        warnings.append(f"Skipped {tier} config {path}: expected a JSON object, got {type(raw).__name__}")
        return None
    return raw


# -----------------------------------------------------------------------------
# Scaffolding
# -----------------------------------------------------------------------------


_README = """# vaultage configuration

This directory holds vaultage settings for notes in and below this folder.

## Files

- `config.json` - main settings (AI provider, backup retention, processing)
- `document-types.json` - reference copy of the built-in category rules
- `backups/` - backups written before a note is aged

## Resolution order

Later tiers override earlier ones:

1. Built-in defaults
2. Global config (`~/.age/config.json`)
3. Vault config (nearest parent `.age/config.json`)
4. Local config (this `.age/config.json`)

Rule lists (`keep`, `remove`, `preserve`, `pathPatterns`) merge by union;
`add` and `modify` merge per key. To customise categories, copy entries from
`document-types.json` into `config.json` under `documentTypes`.
"""


def init_local_config(directory: Path, *, overwrite: bool = False) -> list[Path]:
    """Scaffold `.age/` in `directory`; return the paths written.

    Existing files are left alone unless `overwrite` is set.
    """
    age_dir = directory / CONFIG_DIR_NAME
    backups_dir = age_dir / BACKUP_DIR_NAME
    backups_dir.mkdir(parents=True, exist_ok=True)

    files = {
        age_dir / CONFIG_FILE_NAME: json.dumps({"processing": {"interactive": True}}, indent=2) + "\n",
        age_dir / "document-types.json": json.dumps(
            {"documentTypes": default_config_data()["documentTypes"]}, indent=2
        ) + "\n",
        age_dir / "README.md": _README,
    }

    written: list[Path] = []
    for path, content in files.items():
        if path.exists() and not overwrite:
            continue
        path.write_text(content, encoding="utf-8")
        written.append(path)

    return written
