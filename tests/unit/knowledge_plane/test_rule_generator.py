"""
rule-advisor: unit tests for dynamic rule generation

File: tests/unit/knowledge_plane/test_rule_generator.py

Purpose
- Validate the change-record -> draft-rule derivation.

What this test file should cover
- The renamed-type and removed-API scenarios end to end.
- Pattern shapes for type names, member names, calls and qualified names.
- Descriptions, correction ids and fix suggestions.
- Identifier scheme: plain ids, disambiguated ids, distinctness across inputs.
- Totality and purity apart from ``generated_at`` (property-based).
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from rule_advisor.domain.models import (
    ChangeCategory,
    ChangeRecord,
    DynamicRule,
    ReviewStatus,
    Severity,
)
from rule_advisor.knowledge_plane.matcher import is_valid_pattern, match
from rule_advisor.knowledge_plane.rule_generator import (
    GENERIC_MIGRATION_GUIDANCE,
    NEVER_MATCHES_PATTERN,
    RuleGenerator,
    escape_regex,
    generate_correction_id,
    generate_description,
    generate_pattern,
    generate_rule,
    generate_rule_id,
)

FIXED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)


def _renamed(old: str = "OldType", new: str | None = "NewType") -> ChangeRecord:
    return ChangeRecord(
        deprecated_api=old,
        category=ChangeCategory.RENAMED,
        description=f"Renamed to {new}" if new else "",
        replacement_api=new,
        migration_guidance=f"Replace all uses of `{old}` with `{new}`" if new else None,
    )


@pytest.mark.unit
def test_renamed_type_scenario() -> None:
    rule = generate_rule(_renamed(), "2.0.0", generated_at=FIXED_AT)

    assert rule.id.startswith("auto-oldtype-v2-0-0--")
    assert rule.severity is Severity.WARNING
    assert rule.pattern == r"\bOldType\b"
    assert rule.review_status is ReviewStatus.DRAFT
    assert rule.source_release == "2.0.0"
    assert rule.generated_at == FIXED_AT
    assert rule.fix_suggestion is not None
    assert rule.fix_suggestion.before == "# deprecated\ninstance = OldType()"
    assert rule.fix_suggestion.after == "# current\ninstance = NewType()"
    assert rule.fix_suggestion.explanation == (
        "Renamed to NewType. Replace all uses of `OldType` with `NewType`"
    )
    assert rule.description == "`OldType` has been renamed to `NewType`. Renamed to NewType"


@pytest.mark.unit
def test_removed_api_scenario() -> None:
    change = ChangeRecord(deprecated_api="Removed", category=ChangeCategory.REMOVED)

    rule = generate_rule(change, "3.1", generated_at=FIXED_AT)

    assert rule.id.startswith("auto-removed-v3-1--")
    assert rule.severity is Severity.ERROR
    assert rule.fix_suggestion is None
    assert rule.description == "`Removed` has been removed from the API."
    assert rule.correction_id == "deprecated-Removed-removed"


@pytest.mark.unit
def test_removed_with_replacement_mentions_it() -> None:
    change = ChangeRecord(
        deprecated_api="legacyRun",
        category=ChangeCategory.REMOVED,
        replacement_api="run",
    )

    description = generate_description(change)

    assert description == "`legacyRun` has been removed from the API; use `run` instead."


@pytest.mark.unit
def test_changed_without_replacement_is_a_breaking_change_warning() -> None:
    change = ChangeRecord(deprecated_api="timeout", category=ChangeCategory.CHANGED)

    rule = generate_rule(change, "1.0.0", generated_at=FIXED_AT)

    assert rule.severity is Severity.WARNING
    assert rule.description == "`timeout` has changed in a breaking way."
    assert rule.fix_suggestion is None


@pytest.mark.unit
def test_fix_suggestion_falls_back_to_generic_guidance() -> None:
    change = ChangeRecord(
        deprecated_api="fetch",
        category=ChangeCategory.RENAMED,
        replacement_api="load",
    )

    rule = generate_rule(change, "1.2.0", generated_at=FIXED_AT)

    assert rule.fix_suggestion is not None
    assert rule.fix_suggestion.explanation == GENERIC_MIGRATION_GUIDANCE
    assert rule.fix_suggestion.before == "# deprecated\nsome_object.fetch"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("api", "expected"),
    [
        ("OldType", r"\bOldType\b"),
        ("fetch", r"(\.fetch\b|\bfetch\s*\()"),
        ("app.run", r"app\.run"),
        ("configure(router:)", r"\bconfigure\s*\("),
        ("$macro(x)", r"\$macro\s*\("),
    ],
)
def test_pattern_shapes(api: str, expected: str) -> None:
    assert generate_pattern(api) == expected


@pytest.mark.unit
def test_generated_patterns_match_real_usages() -> None:
    cases = {
        "OldType": ("let x = OldType()", "let x = OldTypeHelper()"),
        "fetch": ("client.fetch(url)", "prefetch(url)"),
        "configure(router:)": ("configure (router: r)", "reconfigure(router: r)"),
    }
    for api, (hit, miss) in cases.items():
        rule = generate_rule(
            ChangeRecord(deprecated_api=api, category=ChangeCategory.REMOVED),
            "1.0.0",
            generated_at=FIXED_AT,
        ).as_pattern_rule()
        assert match(hit, (rule,)), api
        assert not match(miss, (rule,)), api


@pytest.mark.unit
def test_escape_regex_escapes_metacharacters() -> None:
    assert escape_regex("a.b+c*") == r"a\.b\+c\*"
    assert escape_regex("x/y|z") == r"x\/y\|z"
    assert re.fullmatch(escape_regex("[a](b){c}^$?"), "[a](b){c}^$?")


@pytest.mark.unit
def test_correction_id_sanitizes_api() -> None:
    change = ChangeRecord(deprecated_api="Router.add(route )", category=ChangeCategory.CHANGED)

    assert generate_correction_id(change) == "deprecated-Router-addroute--changed"


@pytest.mark.unit
def test_rule_ids_disambiguate_non_plain_inputs() -> None:
    assert generate_rule_id("fetch", "2.0.0") == "auto-fetch-v2-0-0"
    assert generate_rule_id("fetch", "2.0.0") == generate_rule_id("fetch", "2.0.0")

    qualified = generate_rule_id("app.run", "2.0.0")
    assert qualified.startswith("auto-app-run-v2-0-0--")
    assert len(qualified.rsplit("--", 1)[1]) == 8

    # "app.run" and "app-run" sanitize alike but must not collide.
    assert qualified != generate_rule_id("app-run", "2.0.0")
    assert generate_rule_id("a", "1.0") != generate_rule_id("a", "1-0")
    assert "--" in generate_rule_id("a", "2.0.0-beta")


@pytest.mark.unit
def test_names_differing_only_in_case_keep_distinct_rules() -> None:
    type_rule = generate_rule(
        ChangeRecord(deprecated_api="Config", category=ChangeCategory.RENAMED),
        "2.0.0",
        generated_at=FIXED_AT,
    )
    member_rule = generate_rule(
        ChangeRecord(deprecated_api="config", category=ChangeCategory.RENAMED),
        "2.0.0",
        generated_at=FIXED_AT,
    )

    assert type_rule.id != member_rule.id
    assert type_rule.id.startswith("auto-config-v2-0-0--")
    assert member_rule.id == "auto-config-v2-0-0"
    assert type_rule.pattern != member_rule.pattern


@pytest.mark.unit
@pytest.mark.parametrize("api", ["", "   ", "(x)", " (router:)"])
def test_blank_api_names_never_match(api: str) -> None:
    rule = generate_rule(
        ChangeRecord(deprecated_api=api, category=ChangeCategory.REMOVED),
        "1.0",
        generated_at=FIXED_AT,
    ).with_status(ReviewStatus.APPROVED)

    assert rule.pattern == NEVER_MATCHES_PATTERN
    assert is_valid_pattern(rule.pattern)
    assert match("print(x)\nlen(y)\nclient.fetch()\n", (rule.as_pattern_rule(),)) == ()


@pytest.mark.unit
def test_rule_generator_applies_its_source_tag() -> None:
    generator = RuleGenerator(source="release-notes-bot")

    rule = generator.generate(_renamed(), "2.0.0", generated_at=FIXED_AT)

    assert generator.source == "release-notes-bot"
    assert rule.source == "release-notes-bot"
    assert rule == generate_rule(
        _renamed(), "2.0.0", generated_at=FIXED_AT, source="release-notes-bot"
    )


@pytest.mark.unit
def test_generated_at_defaults_to_now() -> None:
    before = datetime.now(UTC)
    rule = generate_rule(_renamed(), "2.0.0")
    after = datetime.now(UTC)

    assert before <= rule.generated_at <= after


_changes = st.builds(
    ChangeRecord,
    deprecated_api=st.text(max_size=40),
    category=st.sampled_from(list(ChangeCategory)),
    description=st.text(max_size=40),
    replacement_api=st.none() | st.text(max_size=20),
    migration_guidance=st.none() | st.text(max_size=20),
)


@pytest.mark.unit
@settings(max_examples=200, deadline=None)
@given(change=_changes, release_version=st.text(max_size=12))
def test_generation_is_total_and_pure(change: ChangeRecord, release_version: str) -> None:
    first = generate_rule(change, release_version, generated_at=FIXED_AT)
    second = generate_rule(change, release_version, generated_at=FIXED_AT)

    assert isinstance(first, DynamicRule)
    assert first == second
    assert first.review_status is ReviewStatus.DRAFT
    assert first.id.startswith("auto-")
    assert is_valid_pattern(first.pattern)
    assert (first.fix_suggestion is None) == (change.replacement_api is None)


_versions = st.from_regex(r"[0-9]{1,2}(\.[0-9]{1,2}){0,2}", fullmatch=True) | st.text(max_size=8)


@pytest.mark.unit
@settings(max_examples=300, deadline=None)
@given(
    first=st.tuples(st.text(max_size=12), _versions),
    second=st.tuples(st.text(max_size=12), _versions),
)
def test_rule_ids_are_distinct_for_distinct_inputs(
    first: tuple[str, str], second: tuple[str, str]
) -> None:
    (api_a, version_a), (api_b, version_b) = first, second
    assume((api_a, version_a) != (api_b, version_b))

    assert generate_rule_id(api_a, version_a) != generate_rule_id(api_b, version_b)
