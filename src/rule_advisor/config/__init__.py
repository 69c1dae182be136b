"""
rule-advisor config package public API.

File: src/rule_advisor/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``advisor.toml`` + ``ADVISOR_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from rule_advisor.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    env_overrides,
    load_config,
    normalize_paths,
)
from rule_advisor.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    AdvisorConfig,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "AdvisorConfig",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "env_overrides",
    "load_config",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
