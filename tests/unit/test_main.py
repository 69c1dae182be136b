"""Unit tests for exception-to-exit-code routing at the process boundary."""

from __future__ import annotations

import pytest

from rule_advisor import main
from rule_advisor.config import ConfigLoadError
from rule_advisor.knowledge_plane import PersistenceError, RuleNotFoundError, SeedDataError
from rule_advisor.main import ExitCode, cli_entrypoint, exit_code_for_exception


def _chained(outer: BaseException, inner: BaseException) -> BaseException:
    try:
        try:
            raise inner
        except BaseException as exc:
            raise outer from exc
    except BaseException as raised:
        return raised


@pytest.mark.unit
@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (RuleNotFoundError("auto-x-v1"), ExitCode.NOT_FOUND),
        (PersistenceError("failed to persist dynamic rules"), ExitCode.PERSISTENCE_ERROR),
        (ConfigLoadError("config file not found"), ExitCode.CONFIG_ERROR),
        (SeedDataError("knowledge seed is invalid"), ExitCode.CONFIG_ERROR),
        (PermissionError("denied"), ExitCode.CONFIG_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_route_to_documented_exit_codes(exc: BaseException, expected: ExitCode) -> None:
    assert exit_code_for_exception(exc) is expected


@pytest.mark.unit
def test_routing_follows_the_cause_chain() -> None:
    wrapped = _chained(RuntimeError("ingest failed"), PersistenceError("disk full"))

    assert exit_code_for_exception(wrapped) is ExitCode.PERSISTENCE_ERROR
    assert exit_code_for_exception(_chained(RuntimeError("a"), RuntimeError("b"))) is (
        ExitCode.INTERNAL_ERROR
    )


@pytest.mark.unit
def test_persistence_failure_prints_one_line(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def _failing_run_cli(argv: object) -> int:
        raise PersistenceError("failed to persist dynamic rules to state/rules.json: read-only")

    monkeypatch.setattr("rule_advisor.ui.cli.run_cli", _failing_run_cli)

    code = cli_entrypoint(["ingest", "CHANGELOG.md", "--release", "1.0"])

    assert code == ExitCode.PERSISTENCE_ERROR == 5
    assert capsys.readouterr().err == (
        "error: failed to persist dynamic rules to state/rules.json: read-only\n"
    )


@pytest.mark.unit
def test_unknown_failures_print_a_traceback(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def _failing_run_cli(argv: object) -> int:
        raise RuntimeError("unexpected")

    monkeypatch.setattr("rule_advisor.ui.cli.run_cli", _failing_run_cli)

    assert cli_entrypoint([]) == ExitCode.INTERNAL_ERROR
    assert "Traceback" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.parametrize(
    ("result", "expected"),
    [(None, 0), (1, 1), (5, 5), (42, 4), ("usage problem", 4)],
)
def test_handler_results_normalize_to_exit_codes(result: object, expected: int) -> None:
    assert main._exit_code_for(result) == expected
