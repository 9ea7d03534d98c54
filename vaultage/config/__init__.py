"""Layered configuration for note categories and processing settings."""

from .defaults import BACKUP_DIR_NAME, CONFIG_DIR_NAME, CONFIG_FILE_NAME, default_config_data
from .resolver import (
    AISettings,
    BackupSettings,
    ConfigHierarchy,
    ConfigResolver,
    Configuration,
    ContentRules,
    MetadataRules,
    ModifyRule,
    ProcessingSettings,
    TypeProfile,
    init_local_config,
    merge_config,
    parse_duration,
    validate_config,
)

__all__ = [
    "BACKUP_DIR_NAME",
    "CONFIG_DIR_NAME",
    "CONFIG_FILE_NAME",
    "default_config_data",
    "AISettings",
    "BackupSettings",
    "ConfigHierarchy",
    "ConfigResolver",
    "Configuration",
    "ContentRules",
    "MetadataRules",
    "ModifyRule",
    "ProcessingSettings",
    "TypeProfile",
    "init_local_config",
    "merge_config",
    "parse_duration",
    "validate_config",
]
