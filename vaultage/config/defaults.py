"""Compiled-in default configuration.

Stored in the on-disk JSON shape so tier files and defaults merge with the
same code path.
"""

from __future__ import annotations

import copy
from typing import Any

CONFIG_DIR_NAME = ".age"
CONFIG_FILE_NAME = "config.json"
BACKUP_DIR_NAME = "backups"

AI_PROVIDERS = ("openai", "anthropic", "none")

DEFAULT_RETENTION = "30d"

_DEFAULT_CONFIG: dict[str, Any] = {
    "ai": {
        "provider": "none",
    },
    "backup": {
        "retention": DEFAULT_RETENTION,
        "compress": False,
        "maxSize": "100MB",
    },
    "processing": {
        "interactive": True,
        "batchSize": 10,
        "parallel": False,
        "maxWorkers": 4,
        "linkTimeout": 10.0,
    },
    "documentTypes": {
        "meeting-notes": {
            "frontmatter": {
                "keep": ["date", "attendees", "project", "tags"],
                "remove": ["author", "status", "draft"],
                "add": {
                    "aged_date": "{{current_date}}",
                    "summary_length": "short",
                },
            },
            "content": {
                "summarize": False,
                "preserve": ["action-items", "decisions"],
                "urlProcessing": True,
                "linkVerification": True,
            },
            "pathPatterns": ["meeting", "notes", "agenda"],
        },
        "research": {
            "frontmatter": {
                "keep": ["source", "methodology", "tags", "references"],
                "remove": ["author", "status", "draft"],
                "add": {
                    "aged_date": "{{current_date}}",
                    "key_findings": "{{extract_key_findings}}",
                },
            },
            "content": {
                "summarize": False,
                "preserve": ["methodology", "findings", "conclusions"],
                "urlProcessing": True,
                "linkVerification": True,
            },
            "pathPatterns": ["research", "papers?", "studies", "analysis"],
        },
        "project-work": {
            "frontmatter": {
                "keep": ["project", "priority", "due_date", "tags"],
                "remove": ["status", "draft"],
                "add": {
                    "aged_date": "{{current_date}}",
                    "completion_status": "{{calculate_completion}}",
                },
            },
            "content": {
                "summarize": False,
                "preserve": ["requirements", "blockers", "progress"],
                "urlProcessing": False,
                "linkVerification": True,
            },
            "pathPatterns": ["projects?", "tasks?", "work", "dev"],
        },
        "personal-notes": {
            "frontmatter": {
                "keep": ["date", "tags", "mood"],
                "remove": ["author", "draft"],
                "add": {
                    "aged_date": "{{current_date}}",
                    "reflection_type": "{{detect_reflection_type}}",
                },
            },
            "content": {
                "summarize": False,
                "preserve": ["insights", "ideas"],
                "urlProcessing": False,
                "linkVerification": False,
            },
            "pathPatterns": ["personal", "journal", "diary", "thoughts"],
        },
    },
}


def default_config_data() -> dict[str, Any]:
    """Return a fresh deep copy of the defaults (callers may mutate it)."""
    return copy.deepcopy(_DEFAULT_CONFIG)
