"""Layered config loading for rule-advisor.

Layers, lowest first: built-in defaults, ``advisor.toml``, one
``ADVISOR_<SECTION>_<KEY>`` environment variable per setting, then CLI
overrides given as dotted keys (``"observability.log_level"``). The file layer
is validated on its own so its mistakes are reported against the file; the
final result is validated again after path settings are anchored to the
directory holding the config file (the working directory when there is none).
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from rule_advisor.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "advisor.toml"
ENV_PREFIX: Final[str] = "ADVISOR_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


class ConfigLoadError(ValueError):
    """The config file is unreadable or an override has the wrong type."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the effective config: CLI > env > file > defaults.

    A missing ``advisor.toml`` in the working directory is fine; a missing file
    named explicitly through ``config_path`` is a :class:`ConfigLoadError`.
    """

    explicit = config_path is not None
    path = Path(config_path).expanduser().resolve() if explicit else Path.cwd() / DEFAULT_CONFIG_FILE
    effective = assert_valid_config(merge_config(default_config(), _read_toml(path, explicit)))

    variables = os.environ if environ is None else environ
    effective = merge_config(effective, env_overrides(effective, variables))
    effective = merge_config(effective, _nest_dotted(cli_overrides or {}))
    effective = assert_valid_config(effective)
    return assert_valid_config(normalize_paths(effective, base_dir=path.parent))


def env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


def env_overrides(config: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Typed overrides for every setting whose ``ADVISOR_`` variable is set.

    The current value of a setting decides how its variable is parsed, so
    ``ADVISOR_META_SCHEMA_VERSION`` must be an integer and
    ``ADVISOR_OBSERVABILITY_LOG_TO_STDERR`` a boolean word.
    """

    overrides: dict[str, Any] = {}
    for section in sorted(config):
        for key, current in sorted(config[section].items()):
            name = env_name_for_path((section, key))
            if name in environ:
                overrides.setdefault(section, {})[key] = _parse_env(name, environ[name], current)
    return overrides


def normalize_paths(config: Mapping[str, Any], *, base_dir: Path) -> dict[str, Any]:
    """Anchor every relative path setting at ``base_dir``."""

    anchored = merge_config({}, config)
    for section, key in PATH_FIELDS:
        value = anchored.get(section, {}).get(key)
        if isinstance(value, str):
            anchored[section][key] = _anchor(value, base_dir)
    return anchored


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False)


def _read_toml(path: Path, explicit: bool) -> dict[str, Any]:
    if not path.is_file():
        if explicit:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _parse_env(name: str, raw: str, current: object) -> object:
    text = raw.strip()
    if isinstance(current, bool):
        if text.lower() in _TRUTHY:
            return True
        if text.lower() in _FALSY:
            return False
        words = "/".join(sorted(_TRUTHY | _FALSY))
        raise ConfigLoadError(f"{name} must be a boolean ({words}), got {raw!r}")
    if isinstance(current, int):
        try:
            return int(text)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be an integer, got {raw!r}") from exc
    return text


def _nest_dotted(overrides: Mapping[str, object]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for dotted, value in sorted(overrides.items()):
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        if not section or not key or "." in key:
            raise ConfigLoadError(f"CLI override must look like 'section.key': {dotted!r}")
        nested.setdefault(section, {})[key] = value
    return nested


def _anchor(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "dump_effective_config",
    "env_name_for_path",
    "env_overrides",
    "load_config",
    "normalize_paths",
]
