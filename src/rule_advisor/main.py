"""Process entrypoint: run the CLI and turn escaped exceptions into exit codes.

Known failures print one ``error: ...`` line on stderr. Only an exception with
no known type anywhere in its cause/context chain is an internal error, and
only that case prints a traceback.
"""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterator
from enum import IntEnum
from typing import TYPE_CHECKING

from rule_advisor.config import ConfigLoadError, ConfigValidationError
from rule_advisor.knowledge_plane import (
    DynamicRulesCorruptError,
    PersistenceError,
    RuleNotFoundError,
    SeedDataError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    VIOLATIONS_FOUND = 1
    CONFIG_ERROR = 2
    NOT_FOUND = 3
    INTERNAL_ERROR = 4
    PERSISTENCE_ERROR = 5


# First match wins. RuleNotFoundError is a KeyError and PersistenceError an
# OSError, so both sit above the generic OS/value entries.
_EXIT_ROUTES: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
    ((RuleNotFoundError,), ExitCode.NOT_FOUND),
    ((PersistenceError,), ExitCode.PERSISTENCE_ERROR),
    (
        (ConfigLoadError, ConfigValidationError, SeedDataError, DynamicRulesCorruptError),
        ExitCode.CONFIG_ERROR,
    ),
    ((FileNotFoundError, NotADirectoryError, PermissionError, ValueError), ExitCode.CONFIG_ERROR),
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run ``rule-advisor`` with ``argv`` and return the process exit code."""

    try:
        from rule_advisor.ui.cli import run_cli

        return _exit_code_for(run_cli(argv))
    except SystemExit as exc:
        return _exit_code_for(exc.code)
    except Exception as exc:  # noqa: BLE001 - process boundary
        code = exit_code_for_exception(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            _report(f"error: {str(exc).strip() or type(exc).__name__}")
        return int(code)


def exit_code_for_exception(exc: BaseException) -> ExitCode:
    for link in _causes(exc):
        for types, code in _EXIT_ROUTES:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _exit_code_for(result: object) -> int:
    if result is None:
        return int(ExitCode.SUCCESS)
    if isinstance(result, int) and result in {code.value for code in ExitCode}:
        return result
    if isinstance(result, str) and result.strip():
        _report(result.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` then each explicit cause or unsuppressed context, once each."""

    seen: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in seen:
        seen.add(id(link))
        yield link
        if link.__cause__ is not None:
            link = link.__cause__
        elif not link.__suppress_context__:
            link = link.__context__
        else:
            link = None


def _report(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for_exception"]
