"""Dataclass domain models with strict validation and canonical serialization."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import NoReturn, TypeVar, cast

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

DEFAULT_DYNAMIC_RULE_SOURCE = "auto-generated-from-change"


class Severity(StrEnum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ReviewStatus(StrEnum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"


class ChangeCategory(StrEnum):
    REMOVED = "removed"
    RENAMED = "renamed"
    CHANGED = "changed"


class ArchitecturalLayer(StrEnum):
    CONTROLLER = "controller"
    SERVICE = "service"
    REPOSITORY = "repository"
    MODEL = "model"
    MIDDLEWARE = "middleware"
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    CONTEXT = "context"


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(value: object, path: str) -> str:
    """Non-empty identifier-like string, surrounding whitespace removed."""

    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        _fail(path, "must not be empty")
    return normalized


def _as_text(value: object, path: str) -> str:
    # Free text is kept verbatim: patterns and API names are whitespace-sensitive.
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_optional_text(value: object, path: str) -> str | None:
    if value is None:
        return None
    return _as_text(value, path)


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_unit_float(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    if parsed < 0.0 or parsed > 1.0:
        _fail(path, "must be within [0, 1]")
    return parsed


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    return _as_datetime(value, path)


def _datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return tuple(_as_str(item, f"{path}[{index}]") for index, item in enumerate(value))


def _as_str_dict(value: object, path: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, str] = {}
    for key in sorted(value, key=str):
        if not isinstance(key, str):
            _fail(path, f"key must be string, got {type(key).__name__}")
        parsed_key = _as_str(key, f"{path}.<key>")
        parsed[parsed_key] = _as_str(value[key], f"{path}.{parsed_key}")
    return parsed


def _as_str_pairs(value: object, path: str) -> tuple[tuple[str, str], ...]:
    """Mapping, or sequence of pairs, as a key-sorted tuple of string pairs."""

    if isinstance(value, Mapping):
        return tuple(_as_str_dict(value, path).items())
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected object, got {type(value).__name__}")
    pairs: dict[str, object] = {}
    for index, item in enumerate(value):
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            _fail(f"{path}[{index}]", "expected a (key, value) pair")
        key, raw = item
        pairs[_as_str(key, f"{path}[{index}]")] = raw
    return tuple(_as_str_dict(pairs, path).items())


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return _datetime_to_iso8601z(value)
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            out_obj[dataclass_field.name] = _serialize_value(
                getattr(value, dataclass_field.name),
                f"{path}.{dataclass_field.name}",
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class FixSuggestion(CanonicalModel):
    """Before/after example pair attached to a rule."""

    before: str
    after: str
    explanation: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "before", _as_text(self.before, "FixSuggestion.before"))
        object.__setattr__(self, "after", _as_text(self.after, "FixSuggestion.after"))
        object.__setattr__(
            self, "explanation", _as_text(self.explanation, "FixSuggestion.explanation")
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> FixSuggestion:
        parsed = _expect_object(
            data, "FixSuggestion", required={"before", "after", "explanation"}
        )
        return cls(
            before=_as_text(parsed["before"], "FixSuggestion.before"),
            after=_as_text(parsed["after"], "FixSuggestion.after"),
            explanation=_as_text(parsed["explanation"], "FixSuggestion.explanation"),
        )


def _as_optional_fix(value: object, path: str) -> FixSuggestion | None:
    if value is None or isinstance(value, FixSuggestion):
        return value
    if isinstance(value, Mapping):
        try:
            return FixSuggestion.from_dict(value)
        except ValueError as exc:
            _fail(path, str(exc))
    _fail(path, f"expected object or null, got {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class PatternRule(CanonicalModel):
    """One regex rule matched against raw source text."""

    id: str
    pattern: str
    description: str
    correction_id: str
    severity: Severity
    fix_suggestion: FixSuggestion | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "PatternRule.id"))
        object.__setattr__(self, "pattern", _as_text(self.pattern, "PatternRule.pattern"))
        object.__setattr__(
            self, "description", _as_text(self.description, "PatternRule.description")
        )
        object.__setattr__(
            self, "correction_id", _as_str(self.correction_id, "PatternRule.correction_id")
        )
        object.__setattr__(
            self, "severity", _as_enum(Severity, self.severity, "PatternRule.severity")
        )
        object.__setattr__(
            self,
            "fix_suggestion",
            _as_optional_fix(self.fix_suggestion, "PatternRule.fix_suggestion"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PatternRule:
        parsed = _expect_object(
            data,
            "PatternRule",
            required={"id", "pattern", "description", "correction_id", "severity"},
            optional={"fix_suggestion"},
        )
        return cls(
            id=_as_str(parsed["id"], "PatternRule.id"),
            pattern=_as_text(parsed["pattern"], "PatternRule.pattern"),
            description=_as_text(parsed["description"], "PatternRule.description"),
            correction_id=_as_str(parsed["correction_id"], "PatternRule.correction_id"),
            severity=_as_enum(Severity, parsed["severity"], "PatternRule.severity"),
            fix_suggestion=_as_optional_fix(
                parsed.get("fix_suggestion"), "PatternRule.fix_suggestion"
            ),
        )


@dataclass(frozen=True, slots=True)
class DynamicRule(CanonicalModel):
    """Pattern rule derived from a change record, gated by review status."""

    id: str
    pattern: str
    description: str
    correction_id: str
    severity: Severity
    source_release: str
    generated_at: datetime
    fix_suggestion: FixSuggestion | None = None
    review_status: ReviewStatus = ReviewStatus.DRAFT
    source: str = DEFAULT_DYNAMIC_RULE_SOURCE

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "DynamicRule.id"))
        object.__setattr__(self, "pattern", _as_text(self.pattern, "DynamicRule.pattern"))
        object.__setattr__(
            self, "description", _as_text(self.description, "DynamicRule.description")
        )
        object.__setattr__(
            self, "correction_id", _as_str(self.correction_id, "DynamicRule.correction_id")
        )
        object.__setattr__(
            self, "severity", _as_enum(Severity, self.severity, "DynamicRule.severity")
        )
        object.__setattr__(
            self,
            "source_release",
            _as_text(self.source_release, "DynamicRule.source_release"),
        )
        object.__setattr__(
            self, "generated_at", _as_datetime(self.generated_at, "DynamicRule.generated_at")
        )
        object.__setattr__(
            self,
            "fix_suggestion",
            _as_optional_fix(self.fix_suggestion, "DynamicRule.fix_suggestion"),
        )
        object.__setattr__(
            self,
            "review_status",
            _as_enum(ReviewStatus, self.review_status, "DynamicRule.review_status"),
        )
        object.__setattr__(self, "source", _as_str(self.source, "DynamicRule.source"))

    @property
    def is_approved(self) -> bool:
        return self.review_status is ReviewStatus.APPROVED

    def as_pattern_rule(self) -> PatternRule:
        return PatternRule(
            id=self.id,
            pattern=self.pattern,
            description=self.description,
            correction_id=self.correction_id,
            severity=self.severity,
            fix_suggestion=self.fix_suggestion,
        )

    def with_status(self, status: ReviewStatus | str) -> DynamicRule:
        """Return a copy carrying ``status``; every other field is unchanged."""

        return DynamicRule(
            id=self.id,
            pattern=self.pattern,
            description=self.description,
            correction_id=self.correction_id,
            severity=self.severity,
            source_release=self.source_release,
            generated_at=self.generated_at,
            fix_suggestion=self.fix_suggestion,
            review_status=_as_enum(ReviewStatus, status, "review_status"),
            source=self.source,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DynamicRule:
        parsed = _expect_object(
            data,
            "DynamicRule",
            required={
                "id",
                "pattern",
                "description",
                "correction_id",
                "severity",
                "source_release",
                "generated_at",
            },
            optional={"fix_suggestion", "review_status", "source"},
        )
        return cls(
            id=_as_str(parsed["id"], "DynamicRule.id"),
            pattern=_as_text(parsed["pattern"], "DynamicRule.pattern"),
            description=_as_text(parsed["description"], "DynamicRule.description"),
            correction_id=_as_str(parsed["correction_id"], "DynamicRule.correction_id"),
            severity=_as_enum(Severity, parsed["severity"], "DynamicRule.severity"),
            source_release=_as_text(parsed["source_release"], "DynamicRule.source_release"),
            generated_at=_as_datetime(parsed["generated_at"], "DynamicRule.generated_at"),
            fix_suggestion=_as_optional_fix(
                parsed.get("fix_suggestion"), "DynamicRule.fix_suggestion"
            ),
            review_status=_as_enum(
                ReviewStatus,
                parsed.get("review_status", ReviewStatus.DRAFT.value),
                "DynamicRule.review_status",
            ),
            source=_as_str(
                parsed.get("source", DEFAULT_DYNAMIC_RULE_SOURCE), "DynamicRule.source"
            ),
        )


@dataclass(frozen=True, slots=True)
class KnowledgeEntry(CanonicalModel):
    """Freeform advisory record describing a recommended pattern or an anti-pattern."""

    id: str
    title: str
    content: str
    source: str
    confidence: float = 1.0
    layer: ArchitecturalLayer | None = None
    pattern_ids: tuple[str, ...] = ()
    violation_ids: tuple[str, ...] = ()
    version_ranges: tuple[tuple[str, str], ...] = ()
    is_tutorial_pattern: bool = False
    correction_id: str | None = None
    last_verified_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "KnowledgeEntry.id"))
        object.__setattr__(self, "title", _as_str(self.title, "KnowledgeEntry.title"))
        object.__setattr__(self, "content", _as_text(self.content, "KnowledgeEntry.content"))
        object.__setattr__(self, "source", _as_str(self.source, "KnowledgeEntry.source"))
        object.__setattr__(
            self, "confidence", _as_unit_float(self.confidence, "KnowledgeEntry.confidence")
        )
        if self.layer is not None:
            object.__setattr__(
                self, "layer", _as_enum(ArchitecturalLayer, self.layer, "KnowledgeEntry.layer")
            )
        object.__setattr__(
            self, "pattern_ids", _as_str_tuple(self.pattern_ids, "KnowledgeEntry.pattern_ids")
        )
        object.__setattr__(
            self,
            "violation_ids",
            _as_str_tuple(self.violation_ids, "KnowledgeEntry.violation_ids"),
        )
        object.__setattr__(
            self,
            "version_ranges",
            _as_str_pairs(self.version_ranges or (), "KnowledgeEntry.version_ranges"),
        )
        object.__setattr__(
            self,
            "is_tutorial_pattern",
            _as_bool(self.is_tutorial_pattern, "KnowledgeEntry.is_tutorial_pattern"),
        )
        if self.correction_id is not None:
            object.__setattr__(
                self,
                "correction_id",
                _as_str(self.correction_id, "KnowledgeEntry.correction_id"),
            )
        if self.is_tutorial_pattern and self.correction_id is None:
            _fail("KnowledgeEntry.correction_id", "required when is_tutorial_pattern is true")
        object.__setattr__(
            self,
            "last_verified_at",
            _as_optional_datetime(self.last_verified_at, "KnowledgeEntry.last_verified_at"),
        )

    def version_range(self, component: str) -> str | None:
        return dict(self.version_ranges).get(component)

    def to_dict(self) -> dict[str, JSONValue]:
        # Stored as key-sorted pairs; serialized as an object.
        serialized = CanonicalModel.to_dict(self)
        serialized["version_ranges"] = dict(self.version_ranges)
        return serialized

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> KnowledgeEntry:
        parsed = _expect_object(
            data,
            "KnowledgeEntry",
            required={"id", "title", "content", "source"},
            optional={
                "confidence",
                "layer",
                "pattern_ids",
                "violation_ids",
                "version_ranges",
                "is_tutorial_pattern",
                "correction_id",
                "last_verified_at",
            },
        )
        layer_raw = parsed.get("layer")
        correction_raw = parsed.get("correction_id")
        return cls(
            id=_as_str(parsed["id"], "KnowledgeEntry.id"),
            title=_as_str(parsed["title"], "KnowledgeEntry.title"),
            content=_as_text(parsed["content"], "KnowledgeEntry.content"),
            source=_as_str(parsed["source"], "KnowledgeEntry.source"),
            confidence=_as_unit_float(parsed.get("confidence", 1.0), "KnowledgeEntry.confidence"),
            layer=(
                _as_enum(ArchitecturalLayer, layer_raw, "KnowledgeEntry.layer")
                if layer_raw is not None
                else None
            ),
            pattern_ids=_as_str_tuple(parsed.get("pattern_ids", ()), "KnowledgeEntry.pattern_ids"),
            violation_ids=_as_str_tuple(
                parsed.get("violation_ids", ()), "KnowledgeEntry.violation_ids"
            ),
            version_ranges=_as_str_pairs(
                parsed.get("version_ranges") or (), "KnowledgeEntry.version_ranges"
            ),
            is_tutorial_pattern=_as_bool(
                parsed.get("is_tutorial_pattern", False), "KnowledgeEntry.is_tutorial_pattern"
            ),
            correction_id=(
                _as_str(correction_raw, "KnowledgeEntry.correction_id")
                if correction_raw is not None
                else None
            ),
            last_verified_at=_as_optional_datetime(
                parsed.get("last_verified_at"), "KnowledgeEntry.last_verified_at"
            ),
        )


@dataclass(frozen=True, slots=True)
class ChangeRecord(CanonicalModel):
    """One API-level change parsed from release notes."""

    deprecated_api: str
    category: ChangeCategory
    description: str = ""
    replacement_api: str | None = None
    migration_guidance: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "deprecated_api",
            _as_text(self.deprecated_api, "ChangeRecord.deprecated_api"),
        )
        object.__setattr__(
            self, "category", _as_enum(ChangeCategory, self.category, "ChangeRecord.category")
        )
        object.__setattr__(
            self, "description", _as_text(self.description, "ChangeRecord.description")
        )
        object.__setattr__(
            self,
            "replacement_api",
            _as_optional_text(self.replacement_api, "ChangeRecord.replacement_api"),
        )
        object.__setattr__(
            self,
            "migration_guidance",
            _as_optional_text(self.migration_guidance, "ChangeRecord.migration_guidance"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ChangeRecord:
        parsed = _expect_object(
            data,
            "ChangeRecord",
            required={"deprecated_api", "category"},
            optional={"description", "replacement_api", "migration_guidance"},
        )
        return cls(
            deprecated_api=_as_text(parsed["deprecated_api"], "ChangeRecord.deprecated_api"),
            category=_as_enum(ChangeCategory, parsed["category"], "ChangeRecord.category"),
            description=_as_text(parsed.get("description", ""), "ChangeRecord.description"),
            replacement_api=_as_optional_text(
                parsed.get("replacement_api"), "ChangeRecord.replacement_api"
            ),
            migration_guidance=_as_optional_text(
                parsed.get("migration_guidance"), "ChangeRecord.migration_guidance"
            ),
        )


__all__ = [
    "DEFAULT_DYNAMIC_RULE_SOURCE",
    "ArchitecturalLayer",
    "CanonicalModel",
    "ChangeCategory",
    "ChangeRecord",
    "DynamicRule",
    "FixSuggestion",
    "JSONScalar",
    "JSONValue",
    "KnowledgeEntry",
    "PatternRule",
    "ReviewStatus",
    "Severity",
]
