"""Derive draft dynamic rules from structured change records.

Generation is total: every :class:`ChangeRecord`, including ones with empty or
non-ASCII API names, produces a valid :class:`DynamicRule` in ``draft`` status.
Apart from ``generated_at`` the output is a pure function of the inputs.
"""

from __future__ import annotations

import hashlib
import re
from datetime import UTC, datetime
from typing import Final

from rule_advisor.domain.models import (
    DEFAULT_DYNAMIC_RULE_SOURCE,
    ChangeCategory,
    ChangeRecord,
    DynamicRule,
    FixSuggestion,
    ReviewStatus,
    Severity,
)

REGEX_SPECIAL_CHARACTERS: Final[frozenset[str]] = frozenset(".+*?^$()[]{}|\\/")
GENERIC_MIGRATION_GUIDANCE: Final[str] = "Update all references to use the new API name."
RULE_ID_PREFIX: Final[str] = "auto-"

_SEVERITY_BY_CATEGORY: Final[dict[ChangeCategory, Severity]] = {
    ChangeCategory.REMOVED: Severity.ERROR,
    ChangeCategory.RENAMED: Severity.WARNING,
    ChangeCategory.CHANGED: Severity.WARNING,
}

_PLAIN_API_RE: Final[re.Pattern[str]] = re.compile(r"[a-z0-9_]+")
_PLAIN_VERSION_RE: Final[re.Pattern[str]] = re.compile(r"[0-9]+(?:\.[0-9]+)*")
_WORD_START_RE: Final[re.Pattern[str]] = re.compile(r"\w")
_DISAMBIGUATOR_LENGTH: Final[int] = 8

# Lookahead that can never succeed; used when there is no name to anchor on.
NEVER_MATCHES_PATTERN: Final[str] = r"(?!)"


def escape_regex(text: str) -> str:
    """Backslash-escape the regex metacharacters that can appear in API names."""

    return "".join(f"\\{char}" if char in REGEX_SPECIAL_CHARACTERS else char for char in text)


def _is_type_name(api: str) -> bool:
    return bool(api) and api[0].isupper()


def generate_pattern(deprecated_api: str) -> str:
    """Return the regex that flags uses of ``deprecated_api``.

    A blank name, or a call signature with a blank base such as ``"(x)"``,
    yields :data:`NEVER_MATCHES_PATTERN` so the rule stays inert.
    """

    if not deprecated_api.strip():
        return NEVER_MATCHES_PATTERN
    if "(" in deprecated_api:
        base = deprecated_api.split("(", 1)[0]
        if not base.strip():
            return NEVER_MATCHES_PATTERN
        boundary = r"\b" if _WORD_START_RE.match(base) else ""
        return rf"{boundary}{escape_regex(base)}\s*\("
    if "." in deprecated_api:
        return escape_regex(deprecated_api)
    escaped = escape_regex(deprecated_api)
    if _is_type_name(deprecated_api):
        return rf"\b{escaped}\b"
    return rf"(\.{escaped}\b|\b{escaped}\s*\()"


def severity_for(category: ChangeCategory) -> Severity:
    return _SEVERITY_BY_CATEGORY[category]


def generate_description(change: ChangeRecord) -> str:
    api = change.deprecated_api
    replacement = change.replacement_api
    if change.category is ChangeCategory.RENAMED:
        if replacement is not None:
            headline = f"`{api}` has been renamed to `{replacement}`."
        else:
            headline = f"`{api}` has been renamed without a documented replacement."
    elif change.category is ChangeCategory.REMOVED:
        if replacement is not None:
            headline = f"`{api}` has been removed from the API; use `{replacement}` instead."
        else:
            headline = f"`{api}` has been removed from the API."
    elif replacement is not None:
        headline = f"`{api}` has changed to `{replacement}`."
    else:
        headline = f"`{api}` has changed in a breaking way."

    if change.description:
        return f"{headline} {change.description}"
    return headline


def _sanitize_api(api: str) -> str:
    return api.replace("(", "").replace(")", "").replace(".", "-").replace(" ", "-")


def generate_correction_id(change: ChangeRecord) -> str:
    return f"deprecated-{_sanitize_api(change.deprecated_api)}-{change.category.value}"


def _example_usage(api: str) -> str:
    if "(" in api:
        return api
    if _is_type_name(api):
        return f"instance = {api}()"
    return f"some_object.{api}"


def generate_fix_suggestion(change: ChangeRecord) -> FixSuggestion | None:
    replacement = change.replacement_api
    if replacement is None:
        return None

    guidance = change.migration_guidance or GENERIC_MIGRATION_GUIDANCE
    summary = change.description.strip().rstrip(".")
    explanation = f"{summary}. {guidance}" if summary else guidance
    return FixSuggestion(
        before=f"# deprecated\n{_example_usage(change.deprecated_api)}",
        after=f"# current\n{_example_usage(replacement)}",
        explanation=explanation,
    )


def generate_rule_id(deprecated_api: str, release_version: str) -> str:
    """Return ``auto-<slug>-v<version>`` for ``deprecated_api`` in ``release_version``.

    Plain ids are only produced when the sanitization is reversible: a lowercase
    ASCII word API name and a dotted numeric version. Anything else, including
    any name with an uppercase letter, gets a ``--`` separated SHA-256
    disambiguator of the exact pair, which plain ids can never contain. So
    ``Config`` and ``config`` keep distinct ids.
    """

    slug = _sanitize_api(deprecated_api.lower())
    version = release_version.replace(".", "-")
    rule_id = f"{RULE_ID_PREFIX}{slug}-v{version}"
    if _PLAIN_API_RE.fullmatch(deprecated_api) and _PLAIN_VERSION_RE.fullmatch(
        release_version
    ):
        return rule_id

    digest = hashlib.sha256(f"{deprecated_api}\x00{release_version}".encode()).hexdigest()
    return f"{rule_id}--{digest[:_DISAMBIGUATOR_LENGTH]}"


def generate_rule(
    change: ChangeRecord,
    release_version: str,
    *,
    generated_at: datetime | None = None,
    source: str = DEFAULT_DYNAMIC_RULE_SOURCE,
) -> DynamicRule:
    """Build the draft rule that flags uses of ``change.deprecated_api``."""

    return DynamicRule(
        id=generate_rule_id(change.deprecated_api, release_version),
        pattern=generate_pattern(change.deprecated_api),
        description=generate_description(change),
        correction_id=generate_correction_id(change),
        severity=severity_for(change.category),
        source_release=release_version,
        generated_at=generated_at if generated_at is not None else datetime.now(UTC),
        fix_suggestion=generate_fix_suggestion(change),
        review_status=ReviewStatus.DRAFT,
        source=source,
    )


class RuleGenerator:
    """Injectable wrapper around :func:`generate_rule` with a fixed provenance tag."""

    def __init__(self, *, source: str = DEFAULT_DYNAMIC_RULE_SOURCE) -> None:
        self._source = source

    @property
    def source(self) -> str:
        return self._source

    def generate(
        self,
        change: ChangeRecord,
        release_version: str,
        *,
        generated_at: datetime | None = None,
    ) -> DynamicRule:
        return generate_rule(
            change, release_version, generated_at=generated_at, source=self._source
        )


__all__ = [
    "GENERIC_MIGRATION_GUIDANCE",
    "NEVER_MATCHES_PATTERN",
    "REGEX_SPECIAL_CHARACTERS",
    "RULE_ID_PREFIX",
    "RuleGenerator",
    "escape_regex",
    "generate_correction_id",
    "generate_description",
    "generate_fix_suggestion",
    "generate_pattern",
    "generate_rule",
    "generate_rule_id",
    "severity_for",
]
