"""Regex rule matcher: evaluate pattern rules against opaque source text."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

import structlog

from rule_advisor.constants import SEVERITY_RANK
from rule_advisor.domain.models import Severity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rule_advisor.domain.models import PatternRule

_PATTERN_CACHE_SIZE = 1024

_logger = structlog.get_logger(__name__)


def severity_rank(severity: Severity | str) -> int:
    """Return the sort weight of ``severity``; ``critical`` ranks highest."""

    return SEVERITY_RANK[Severity(severity).value]


@lru_cache(maxsize=_PATTERN_CACHE_SIZE)
def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile ``pattern`` with line anchoring, or return ``None`` when it is invalid."""

    try:
        return re.compile(pattern, re.MULTILINE)
    except (re.error, RecursionError, OverflowError) as exc:
        _logger.debug("matcher_pattern_invalid", pattern=pattern, error=str(exc))
        return None


def is_valid_pattern(pattern: str) -> bool:
    return compile_pattern(pattern) is not None


def rule_matches(rule: PatternRule, code: str) -> bool:
    compiled = compile_pattern(rule.pattern)
    if compiled is None:
        return False
    return compiled.search(code) is not None


def sort_by_severity(rules: Iterable[PatternRule]) -> tuple[PatternRule, ...]:
    """Stable sort, most severe first; equal severities keep input order."""

    return tuple(sorted(rules, key=lambda rule: -severity_rank(rule.severity)))


def match(code: str, rules: Iterable[PatternRule]) -> tuple[PatternRule, ...]:
    """Return the rules whose pattern finds a match in ``code``, most severe first.

    Rules with an invalid pattern never match. Duplicate ids are evaluated
    independently and may each appear in the result.
    """

    return sort_by_severity(rule for rule in rules if rule_matches(rule, code))


__all__ = [
    "compile_pattern",
    "is_valid_pattern",
    "match",
    "rule_matches",
    "severity_rank",
    "sort_by_severity",
]
