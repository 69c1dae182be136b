"""Stable constants shared across advisor planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the config file directory unless overridden).
KNOWLEDGE_SEED_PATH: Final[PurePosixPath] = PurePosixPath("knowledge/entries.yaml")
DYNAMIC_RULES_SEED_PATH: Final[PurePosixPath] = PurePosixPath("knowledge/dynamic_rules_seed.yaml")
DYNAMIC_RULES_PATH: Final[PurePosixPath] = PurePosixPath("state/dynamic_rules.json")
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")

# Severity weights for deterministic sorting; higher ranks sort first.
SEVERITY_LEVELS: Final[tuple[str, ...]] = ("warning", "error", "critical")
SEVERITY_RANK: Final[dict[str, int]] = {
    "warning": 0,
    "error": 1,
    "critical": 2,
}

NO_PITFALLS_TEXT: Final[str] = "No pitfalls recorded yet."
PITFALL_SECTION_SEPARATOR: Final[str] = "\n\n---\n\n"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DYNAMIC_RULES_PATH",
    "DYNAMIC_RULES_SEED_PATH",
    "KNOWLEDGE_SEED_PATH",
    "LOG_DIR",
    "NO_PITFALLS_TEXT",
    "PITFALL_SECTION_SEPARATOR",
    "SEVERITY_LEVELS",
    "SEVERITY_RANK",
]
