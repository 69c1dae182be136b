"""
rule-advisor: configuration schema and validation.

File: src/rule_advisor/config/schema.py

Purpose
- Built-in defaults for the four ``advisor.toml`` sections.
- Strict validation against a per-field checker table. Every problem is reported
  as a ``ConfigValidationIssue(path, message)``; nothing stops at the first one.
- The deep merge used to layer file, env and CLI values over the defaults.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from rule_advisor.constants import (
    CONFIG_SCHEMA_VERSION,
    DYNAMIC_RULES_PATH,
    DYNAMIC_RULES_SEED_PATH,
    KNOWLEDGE_SEED_PATH,
    LOG_DIR,
)
from rule_advisor.domain.models import DEFAULT_DYNAMIC_RULE_SOURCE

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Anchored at the config file's directory by the loader.
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("paths", "knowledge_seed"),
    ("paths", "dynamic_rules"),
    ("paths", "dynamic_rules_seed"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    knowledge_seed: str
    dynamic_rules: str
    dynamic_rules_seed: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stderr: bool


class GeneratorConfig(TypedDict):
    default_source: str


class AdvisorConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    observability: ObservabilityConfig
    generator: GeneratorConfig


DEFAULT_CONFIG: Final[AdvisorConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "paths": {
        "knowledge_seed": str(KNOWLEDGE_SEED_PATH),
        "dynamic_rules": str(DYNAMIC_RULES_PATH),
        "dynamic_rules_seed": str(DYNAMIC_RULES_SEED_PATH),
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": f"{LOG_DIR}/",
        "log_to_stderr": False,
    },
    "generator": {"default_source": DEFAULT_DYNAMIC_RULE_SOURCE},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """``config`` is the normalized config, or ``None`` when ``issues`` is non-empty."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """The effective config broke one or more schema rules; see ``issues``."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- <root>: rejected"))


class _Rejected(Exception):
    """A field checker refused a value."""


def default_config() -> AdvisorConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade advisor.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the rule-advisor runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Return ``base`` with ``overlay`` merged in; tables merge, everything else replaces."""

    merged: dict[str, Any] = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, value in overlay.items():
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Check every section and field; issues are ordered unknown keys first, then schema order."""

    if not isinstance(config, Mapping):
        issue = ConfigValidationIssue("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=(issue,))

    issues: list[ConfigValidationIssue] = [
        ConfigValidationIssue(str(key), "unknown field")
        for key in sorted(config, key=str)
        if key not in _SCHEMA
    ]
    normalized: dict[str, Any] = {}
    for section, fields in _SCHEMA.items():
        if section not in config:
            issues.append(ConfigValidationIssue(section, "missing required field"))
            continue
        table = config[section]
        if not isinstance(table, Mapping):
            issues.append(
                ConfigValidationIssue(section, f"expected object, got {type(table).__name__}")
            )
            continue
        normalized[section] = _check_section(section, table, fields, issues)

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _check_section(
    section: str,
    table: Mapping[object, object],
    fields: Mapping[str, Callable[[object], object]],
    issues: list[ConfigValidationIssue],
) -> dict[str, Any]:
    issues.extend(
        ConfigValidationIssue(f"{section}.{key}", "unknown field")
        for key in sorted(table, key=str)
        if key not in fields
    )
    checked: dict[str, Any] = {}
    for key, check in fields.items():
        path = f"{section}.{key}"
        if key not in table:
            issues.append(ConfigValidationIssue(path, "missing required field"))
            continue
        try:
            checked[key] = check(table[key])
        except _Rejected as exc:
            issues.append(ConfigValidationIssue(path, str(exc)))
    return checked


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise _Rejected(f"expected string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise _Rejected("must not be empty")
    return stripped


def _path(value: object) -> str:
    text = _text(value)
    if "\x00" in text:
        raise _Rejected("must not contain NUL bytes")
    return text


def _flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise _Rejected(f"expected boolean, got {type(value).__name__}")
    return value


def _log_level(value: object) -> str:
    level = _text(value).upper()
    if level not in LOG_LEVELS:
        expected = ", ".join(sorted(LOG_LEVELS))
        raise _Rejected(f"invalid value {level!r}; expected one of: {expected}")
    return level


def _schema_version(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _Rejected(f"expected integer, got {type(value).__name__}")
    if value < 1:
        raise _Rejected("must be >= 1")
    if value != ConfigSchemaVersion:
        raise _Rejected(migration_guidance(value))
    return value


_SCHEMA: Final[dict[str, dict[str, Callable[[object], object]]]] = {
    "meta": {"schema_version": _schema_version},
    "paths": {"knowledge_seed": _path, "dynamic_rules": _path, "dynamic_rules_seed": _path},
    "observability": {"log_level": _log_level, "log_dir": _path, "log_to_stderr": _flag},
    "generator": {"default_source": _text},
}


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "AdvisorConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
