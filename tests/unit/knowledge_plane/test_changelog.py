"""
rule-advisor: unit tests for release-note parsing

File: tests/unit/knowledge_plane/test_changelog.py

Purpose
- Validate extraction of change records from markdown release notes and the
  ingestion path that turns them into stored draft rules.

What this test file should cover
- Rename, removal, behavior-change and inline-annotation line forms.
- Deprecation sections and fenced code blocks.
- Lines that look similar but describe no API change.
- Batch ingestion into a store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from rule_advisor.domain.models import ChangeCategory, ReviewStatus
from rule_advisor.knowledge_plane.changelog import (
    REMOVAL_GUIDANCE,
    SECTION_GUIDANCE,
    extract_api_name,
    ingest_changelog,
    is_deprecation_header,
    parse_change,
    parse_changelog,
    parse_inline_annotation,
    parse_removal,
    parse_rename,
)
from rule_advisor.knowledge_plane.knowledge_store import KnowledgeStore
from rule_advisor.knowledge_plane.rule_generator import RuleGenerator

if TYPE_CHECKING:
    from pathlib import Path

RELEASE_NOTES = """\
# 2.0.0

## Highlights
- Faster startup

## Breaking Changes
- `HBApplication` renamed to `Application`
- Removed `HBRequest.body`
- `Router.group` -> `RouterGroup`
- `Request.uri` is now `Request.url`
- `legacyMiddleware` is deprecated; use `Middleware` instead

```swift
// `Sample` renamed to `Other`
```

## Fixes
- Removed the flaky retry loop
"""


@pytest.mark.unit
def test_parse_changelog_extracts_records_in_document_order() -> None:
    records = parse_changelog(RELEASE_NOTES)

    assert [(record.deprecated_api, record.category) for record in records] == [
        ("HBApplication", ChangeCategory.RENAMED),
        ("HBRequest.body", ChangeCategory.REMOVED),
        ("Router.group", ChangeCategory.RENAMED),
        ("Request.uri", ChangeCategory.CHANGED),
        ("legacyMiddleware", ChangeCategory.CHANGED),
    ]
    assert records[0].replacement_api == "Application"
    assert records[2].replacement_api == "RouterGroup"
    assert records[3].replacement_api == "Request.url"
    assert records[4].migration_guidance == SECTION_GUIDANCE


@pytest.mark.unit
def test_fenced_code_is_ignored() -> None:
    markdown = "```\n`Foo` renamed to `Bar`\n```\n~~~\nRemoved `Baz`\n~~~\n"

    assert parse_changelog(markdown) == ()


@pytest.mark.unit
def test_bullets_outside_deprecation_sections_need_an_explicit_phrase() -> None:
    markdown = "## Features\n- `shinyNewThing` added\n\n## Deprecated\n- `oldThing`\n"

    records = parse_changelog(markdown)

    assert [record.deprecated_api for record in records] == ["oldThing"]
    assert records[0].migration_guidance is None


@pytest.mark.unit
def test_prose_removals_are_not_reported() -> None:
    assert parse_removal("- Removed the old cache layer") is None
    assert parse_removal("- Removed a deadlock in shutdown") is None
    assert parse_changelog("Fixed an issue that was mentioned as removed by mistake") == ()


@pytest.mark.unit
def test_rename_forms() -> None:
    plain = parse_rename("HBApplication renamed to Application")
    arrow = parse_rename("* `OldName` → `NewName`")

    assert plain is not None
    assert (plain.deprecated_api, plain.replacement_api) == ("HBApplication", "Application")
    assert plain.migration_guidance == "Replace all uses of `HBApplication` with `Application`"
    assert arrow is not None
    assert (arrow.deprecated_api, arrow.replacement_api) == ("OldName", "NewName")


@pytest.mark.unit
def test_call_chains_are_not_renames() -> None:
    assert parse_rename("start() -> running") is None


@pytest.mark.unit
def test_removal_forms() -> None:
    prefixed = parse_removal("- Removed `Foo.bar`")
    suffixed = parse_removal("`Baz` was removed")

    assert prefixed is not None
    assert prefixed.deprecated_api == "Foo.bar"
    assert prefixed.migration_guidance == REMOVAL_GUIDANCE
    assert prefixed.replacement_api is None
    assert suffixed is not None
    assert suffixed.deprecated_api == "Baz"


@pytest.mark.unit
def test_behavior_change_form() -> None:
    record = parse_change("`timeout` is now `requestTimeout`")

    assert record is not None
    assert record.category is ChangeCategory.CHANGED
    assert record.replacement_api == "requestTimeout"
    assert record.migration_guidance == "Update code to use new behavior: requestTimeout"


@pytest.mark.unit
def test_inline_annotation_form() -> None:
    record = parse_inline_annotation("`fetchAll` @deprecated since 1.4")

    assert record is not None
    assert record.deprecated_api == "fetchAll"
    assert parse_inline_annotation("`fetchAll` is fine") is None


@pytest.mark.unit
def test_header_and_name_helpers() -> None:
    assert is_deprecation_header("## Breaking Changes")
    assert is_deprecation_header("### Migration guide")
    assert not is_deprecation_header("## Features")
    assert extract_api_name("- **`Foo`** stuff") == "Foo"
    assert extract_api_name(" *Foo* ") == "Foo"


@pytest.mark.unit
def test_ingest_changelog_stores_drafts_in_one_batch(tmp_path: Path) -> None:
    durable = tmp_path / "state" / "dynamic_rules.json"
    store = KnowledgeStore(dynamic_rules_path=durable)
    generated_at = datetime(2026, 4, 1, tzinfo=UTC)

    rules = ingest_changelog(
        store,
        RELEASE_NOTES,
        "2.0.0",
        generator=RuleGenerator(source="release-notes"),
        generated_at=generated_at,
    )

    assert len(rules) == 5
    assert store.get_dynamic_violations() == rules
    assert all(rule.review_status is ReviewStatus.DRAFT for rule in rules)
    assert all(rule.source == "release-notes" for rule in rules)
    assert durable.exists()

    reloaded = KnowledgeStore(dynamic_rules_path=durable)
    assert reloaded.get_dynamic_violations() == rules


@pytest.mark.unit
def test_ingest_changelog_without_records_leaves_store_untouched(tmp_path: Path) -> None:
    durable = tmp_path / "dynamic_rules.json"
    store = KnowledgeStore(dynamic_rules_path=durable)

    assert ingest_changelog(store, "# 1.0.1\n- Bug fixes\n", "1.0.1") == ()
    assert not durable.exists()
