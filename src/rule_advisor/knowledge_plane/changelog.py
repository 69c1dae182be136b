"""Release-note parsing: markdown changelog text -> structured change records."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

import structlog

from rule_advisor.domain.models import ChangeCategory, ChangeRecord
from rule_advisor.knowledge_plane.rule_generator import RuleGenerator

if TYPE_CHECKING:
    from datetime import datetime

    from rule_advisor.domain.models import DynamicRule
    from rule_advisor.knowledge_plane.knowledge_store import KnowledgeStore

SECTION_KEYWORDS: Final[tuple[str, ...]] = (
    "deprecated",
    "breaking change",
    "removed",
    "migration",
)
MAX_API_NAME_LENGTH: Final[int] = 100

RENAME_GUIDANCE_TEMPLATE: Final[str] = "Replace all uses of `{old}` with `{new}`"
REMOVAL_GUIDANCE: Final[str] = "This API has been removed. Refactor code to remove dependency."
INLINE_GUIDANCE: Final[str] = "Check release notes for replacement API"
SECTION_GUIDANCE: Final[str] = "See release notes for migration guidance"

_API_NAME_STRIP: Final[str] = " \t`*-•"
_BULLET_PREFIXES: Final[tuple[str, ...]] = ("-", "*", "•")
_FENCE_PREFIXES: Final[tuple[str, ...]] = ("```", "~~~")

_BACKTICKED_RE: Final[re.Pattern[str]] = re.compile(r"`([^`]*)`")
_RENAMED_TO_RE: Final[re.Pattern[str]] = re.compile(r" renamed to ", re.IGNORECASE)
_REMOVED_PREFIX_RE: Final[re.Pattern[str]] = re.compile(
    r"^[\s\-*•]*removed\s+(?P<rest>.+)$", re.IGNORECASE
)
_REMOVED_SUFFIX_RE: Final[re.Pattern[str]] = re.compile(r" (?:was|is) removed", re.IGNORECASE)
_IS_NOW_RE: Final[re.Pattern[str]] = re.compile(r" is now ", re.IGNORECASE)
_INLINE_MARKER_RE: Final[re.Pattern[str]] = re.compile(r"@deprecated|deprecated:", re.IGNORECASE)
_INLINE_API_RE: Final[re.Pattern[str]] = re.compile(
    r"`?([^`\s]+)`?\s*[@:-]\s*deprecated", re.IGNORECASE
)
_PROSE_ARTICLE_RE: Final[re.Pattern[str]] = re.compile(r"^(?:the|a)\s", re.IGNORECASE)
_REPLACEMENT_HINT_RE: Final[re.Pattern[str]] = re.compile(r"use|instead", re.IGNORECASE)

_logger = structlog.get_logger(__name__)


def extract_api_name(text: str) -> str:
    """Return the first back-ticked name in ``text``, else ``text`` stripped of markup."""

    backticked = _BACKTICKED_RE.search(text)
    if backticked is not None:
        return backticked.group(1)
    return text.strip(_API_NAME_STRIP)


def is_section_header(line: str) -> bool:
    return line.startswith("#")


def is_deprecation_header(line: str) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in SECTION_KEYWORDS)


def _renamed(old: str, new: str) -> ChangeRecord:
    return ChangeRecord(
        deprecated_api=old,
        replacement_api=new,
        description=f"Renamed to {new}",
        category=ChangeCategory.RENAMED,
        migration_guidance=RENAME_GUIDANCE_TEMPLATE.format(old=old, new=new),
    )


def _removed(api: str) -> ChangeRecord:
    return ChangeRecord(
        deprecated_api=api,
        description="Removed from API",
        category=ChangeCategory.REMOVED,
        migration_guidance=REMOVAL_GUIDANCE,
    )


def parse_rename(line: str) -> ChangeRecord | None:
    parts = _RENAMED_TO_RE.split(line, maxsplit=1)
    if len(parts) == 2:
        old, new = extract_api_name(parts[0]), extract_api_name(parts[1])
        if old and new:
            return _renamed(old, new)

    separator = "→" if "→" in line else "->" if "->" in line else None
    if separator is None:
        return None
    head, _, tail = line.partition(separator)
    old, new = extract_api_name(head), extract_api_name(tail)
    # Call chains such as "foo() -> bar" describe control flow, not renames.
    if old and new and "(" not in old and len(old) < MAX_API_NAME_LENGTH:
        return _renamed(old, new)
    return None


def parse_removal(line: str) -> ChangeRecord | None:
    prefixed = _REMOVED_PREFIX_RE.match(line)
    if prefixed is not None:
        api = extract_api_name(prefixed.group("rest"))
        if api and _PROSE_ARTICLE_RE.match(api) is None:
            return _removed(api)

    suffixed = _REMOVED_SUFFIX_RE.search(line)
    if suffixed is not None:
        api = extract_api_name(line[: suffixed.start()])
        if api:
            return _removed(api)
    return None


def parse_change(line: str) -> ChangeRecord | None:
    parts = _IS_NOW_RE.split(line, maxsplit=1)
    if len(parts) != 2:
        return None
    old, new = extract_api_name(parts[0]), extract_api_name(parts[1])
    if not old or not new or len(old) >= MAX_API_NAME_LENGTH:
        return None
    return ChangeRecord(
        deprecated_api=old,
        replacement_api=new,
        description=f"Changed to {new}",
        category=ChangeCategory.CHANGED,
        migration_guidance=f"Update code to use new behavior: {new}",
    )


def parse_inline_annotation(line: str) -> ChangeRecord | None:
    if _INLINE_MARKER_RE.search(line) is None:
        return None
    found = _INLINE_API_RE.search(line)
    if found is None:
        return None
    api = found.group(1).strip(_API_NAME_STRIP)
    if not api:
        return None
    return ChangeRecord(
        deprecated_api=api,
        description="Deprecated API",
        category=ChangeCategory.CHANGED,
        migration_guidance=INLINE_GUIDANCE,
    )


def parse_section_item(line: str) -> ChangeRecord | None:
    """Bullet item naming a back-ticked API inside a deprecation section."""

    if not line.startswith(_BULLET_PREFIXES):
        return None
    backticked = _BACKTICKED_RE.search(line)
    if backticked is None or not backticked.group(1):
        return None
    hints_replacement = _REPLACEMENT_HINT_RE.search(line) is not None
    return ChangeRecord(
        deprecated_api=backticked.group(1),
        description="Deprecated in this release",
        category=ChangeCategory.CHANGED,
        migration_guidance=SECTION_GUIDANCE if hints_replacement else None,
    )


_LINE_PARSERS = (parse_rename, parse_removal, parse_change, parse_inline_annotation)


def parse_changelog(markdown: str) -> tuple[ChangeRecord, ...]:
    """Extract change records from release-note markdown, in document order.

    Each line yields at most one record. Lines inside fenced code blocks are
    skipped. A heading mentioning deprecations, breaking changes, removals or
    migration opens a section whose bullet items are reported even without an
    explicit rename or removal phrase; the next other heading closes it.
    """

    records: list[ChangeRecord] = []
    in_fence = False
    in_deprecation_section = False

    for raw_line in markdown.splitlines():
        line = raw_line.strip()
        if line.startswith(_FENCE_PREFIXES):
            in_fence = not in_fence
            continue
        if in_fence or not line:
            continue
        if is_section_header(line):
            in_deprecation_section = is_deprecation_header(line)
            continue

        record = next(
            (parsed for parsed in (parse(line) for parse in _LINE_PARSERS) if parsed is not None),
            None,
        )
        if record is None and in_deprecation_section:
            record = parse_section_item(line)
        if record is not None:
            records.append(record)

    return tuple(records)


def ingest_changelog(
    store: KnowledgeStore,
    markdown: str,
    release_version: str,
    *,
    generator: RuleGenerator | None = None,
    generated_at: datetime | None = None,
) -> tuple[DynamicRule, ...]:
    """Parse ``markdown``, generate one draft rule per record and store them all.

    Rules are written in a single persisted batch. A later record that maps to
    the same rule id replaces the earlier one, as with any upsert.
    """

    rule_generator = generator if generator is not None else RuleGenerator()
    changes = parse_changelog(markdown)
    rules = tuple(
        rule_generator.generate(change, release_version, generated_at=generated_at)
        for change in changes
    )
    if rules:
        store.upsert_dynamic_violations(rules)
    _logger.info(
        "changelog_ingested",
        release_version=release_version,
        change_count=len(changes),
        rule_count=len(rules),
    )
    return rules


__all__ = [
    "MAX_API_NAME_LENGTH",
    "SECTION_KEYWORDS",
    "extract_api_name",
    "ingest_changelog",
    "is_deprecation_header",
    "is_section_header",
    "parse_change",
    "parse_changelog",
    "parse_inline_annotation",
    "parse_removal",
    "parse_rename",
    "parse_section_item",
]
