"""
rule-advisor: unit tests for the regex rule matcher

File: tests/unit/knowledge_plane/test_matcher.py

Purpose
- Validate rule evaluation against raw source text.

What this test file should cover
- Most-severe-first ordering with stable ties.
- Invalid patterns never match and never raise.
- Line anchors behave per line.
- Determinism across repeated calls.
"""

from __future__ import annotations

import pytest

from rule_advisor.domain.models import PatternRule, Severity
from rule_advisor.knowledge_plane.matcher import (
    compile_pattern,
    is_valid_pattern,
    match,
    severity_rank,
    sort_by_severity,
)


def _rule(rule_id: str, pattern: str, severity: Severity | str = Severity.ERROR) -> PatternRule:
    return PatternRule(
        id=rule_id,
        pattern=pattern,
        description=f"{rule_id} fired",
        correction_id=f"fix-{rule_id}",
        severity=severity,
    )


@pytest.mark.unit
def test_severity_rank_orders_critical_highest() -> None:
    assert severity_rank("critical") > severity_rank(Severity.ERROR) > severity_rank("warning")


@pytest.mark.unit
def test_match_returns_most_severe_first_and_keeps_input_order_for_ties() -> None:
    rules = (
        _rule("warn-a", "foo", Severity.WARNING),
        _rule("err-a", "foo", Severity.ERROR),
        _rule("crit", "foo", Severity.CRITICAL),
        _rule("err-b", "foo", Severity.ERROR),
        _rule("warn-b", "foo", Severity.WARNING),
    )

    result = match("call foo()", rules)

    assert [rule.id for rule in result] == ["crit", "err-a", "err-b", "warn-a", "warn-b"]


@pytest.mark.unit
def test_match_skips_rules_that_do_not_fire() -> None:
    rules = (_rule("hit", r"db\.query"), _rule("miss", r"pool\."))

    result = match("call db.query(x)", rules)

    assert [rule.id for rule in result] == ["hit"]


@pytest.mark.unit
def test_invalid_pattern_never_matches_and_never_raises() -> None:
    rules = (_rule("broken", "([unclosed"), _rule("ok", "x"))

    result = match("([unclosed x", rules)

    assert [rule.id for rule in result] == ["ok"]
    assert not is_valid_pattern("([unclosed")
    assert compile_pattern("([unclosed") is None


@pytest.mark.unit
def test_line_anchors_apply_per_line() -> None:
    rules = (_rule("anchored", r"^import legacy$"),)

    assert match("import os\nimport legacy\nprint()", rules)
    assert not match("from x import legacy", rules)


@pytest.mark.unit
def test_duplicate_ids_are_evaluated_independently() -> None:
    rules = (_rule("dup", "a"), _rule("dup", "b"))

    assert len(match("a b", rules)) == 2


@pytest.mark.unit
def test_empty_inputs() -> None:
    assert match("", (_rule("needs-text", "x"),)) == ()
    assert match("anything", ()) == ()
    assert [rule.id for rule in match("", (_rule("empty", ""),))] == ["empty"]


@pytest.mark.unit
def test_match_is_deterministic() -> None:
    rules = tuple(
        _rule(f"r{index}", "token", severity)
        for index, severity in enumerate(
            [Severity.WARNING, Severity.CRITICAL, Severity.ERROR] * 4
        )
    )
    code = "some token here"

    first = match(code, rules)
    for _ in range(5):
        assert match(code, rules) == first


@pytest.mark.unit
def test_sort_by_severity_accepts_any_iterable() -> None:
    rules = [_rule("w", "x", "warning"), _rule("c", "x", "critical")]

    assert [rule.id for rule in sort_by_severity(iter(rules))] == ["c", "w"]
