"""
Thread-safe knowledge store: entries, fixed rules and reviewable dynamic rules.

Knowledge entries are seeded at startup and upserted by refresh collaborators.
Fixed rules come from the shipped catalogue and never change. Dynamic rules are
generated from change notices, start out as drafts, and only take part in
matching once approved. Every dynamic-rule mutation rewrites the durable JSON
file in full through :func:`rule_advisor.utils.fs.atomic_write_json`.

All public operations hold one re-entrant lock, so callers on any thread see
each mutation as atomic. Snapshots are returned as tuples.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import structlog
import yaml

from rule_advisor.constants import NO_PITFALLS_TEXT, PITFALL_SECTION_SEPARATOR
from rule_advisor.domain.models import (
    ArchitecturalLayer,
    DynamicRule,
    KnowledgeEntry,
    PatternRule,
    ReviewStatus,
)
from rule_advisor.knowledge_plane.catalogue import DEFAULT_RULES
from rule_advisor.knowledge_plane.matcher import match
from rule_advisor.utils.fs import atomic_write_json

if TYPE_CHECKING:
    from rule_advisor.utils.fs import PathLike


class KnowledgeStoreError(Exception):
    """Base class for knowledge store failures."""


class SeedDataError(KnowledgeStoreError, FileNotFoundError):
    """A seed file is missing or cannot be decoded."""


class DynamicRulesCorruptError(KnowledgeStoreError, ValueError):
    """The durable dynamic-rule file exists but cannot be decoded."""


class RuleNotFoundError(KnowledgeStoreError, KeyError):
    """No dynamic rule carries the requested id."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"dynamic rule not found: {self.rule_id!r}"


class PersistenceError(KnowledgeStoreError, OSError):
    """Writing the durable dynamic-rule file failed; the in-memory change stands."""


class KnowledgeStore:
    """Single-writer store for knowledge entries and pattern rules."""

    def __init__(
        self,
        entries: Iterable[KnowledgeEntry] = (),
        *,
        fixed_rules: Iterable[PatternRule] = DEFAULT_RULES,
        dynamic_rules_path: PathLike | None = None,
        dynamic_rules_seed_path: PathLike | None = None,
        logger: Any | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._fixed_rules: tuple[PatternRule, ...] = tuple(fixed_rules)
        self._entries: dict[str, KnowledgeEntry] = {}
        for entry in entries:
            self._entries[entry.id] = entry
        self._dynamic_rules_path = (
            Path(dynamic_rules_path) if dynamic_rules_path is not None else None
        )
        self._dynamic_rules: dict[str, DynamicRule] = {}
        self._load_dynamic_rules(
            Path(dynamic_rules_seed_path) if dynamic_rules_seed_path is not None else None
        )

    @classmethod
    def load(
        cls,
        entries_seed_path: PathLike,
        *,
        fixed_rules: Iterable[PatternRule] = DEFAULT_RULES,
        dynamic_rules_path: PathLike | None = None,
        dynamic_rules_seed_path: PathLike | None = None,
        logger: Any | None = None,
    ) -> KnowledgeStore:
        """Build a store from the mandatory knowledge-entry seed file."""

        entries = load_entries_seed(entries_seed_path)
        return cls(
            entries,
            fixed_rules=fixed_rules,
            dynamic_rules_path=dynamic_rules_path,
            dynamic_rules_seed_path=dynamic_rules_seed_path,
            logger=logger,
        )

    @classmethod
    def from_config(
        cls, config: Mapping[str, object], *, logger: Any | None = None
    ) -> KnowledgeStore:
        """Build a store from an effective config mapping (see ``config.loader``)."""

        paths = cast("Mapping[str, object]", config["paths"])
        seed_path = paths.get("dynamic_rules_seed")
        return cls.load(
            cast("str", paths["knowledge_seed"]),
            dynamic_rules_path=cast("str", paths["dynamic_rules"]),
            dynamic_rules_seed_path=cast("str", seed_path) if seed_path else None,
            logger=logger,
        )

    # Reads -------------------------------------------------------------------------------

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def dynamic_rules_path(self) -> Path | None:
        return self._dynamic_rules_path

    @property
    def fixed_rules(self) -> tuple[PatternRule, ...]:
        return self._fixed_rules

    def entry(self, entry_id: str) -> KnowledgeEntry | None:
        with self._lock:
            return self._entries.get(entry_id)

    def all_entries(self) -> tuple[KnowledgeEntry, ...]:
        with self._lock:
            return tuple(self._entries.values())

    def entries(self, layer: ArchitecturalLayer | str) -> tuple[KnowledgeEntry, ...]:
        wanted = ArchitecturalLayer(layer)
        with self._lock:
            return tuple(entry for entry in self._entries.values() if entry.layer is wanted)

    def pitfalls(self) -> tuple[KnowledgeEntry, ...]:
        """Non-tutorial entries, highest confidence first; ties keep insertion order."""

        with self._lock:
            candidates = [entry for entry in self._entries.values() if not entry.is_tutorial_pattern]
        return tuple(sorted(candidates, key=lambda entry: -entry.confidence))

    def anti_pattern_entries(self) -> tuple[KnowledgeEntry, ...]:
        with self._lock:
            return tuple(entry for entry in self._entries.values() if entry.is_tutorial_pattern)

    def entries_by_source(self, source: str) -> tuple[KnowledgeEntry, ...]:
        with self._lock:
            return tuple(entry for entry in self._entries.values() if entry.source == source)

    def pitfall_catalogue_text(self) -> str:
        items = self.pitfalls()
        if not items:
            return NO_PITFALLS_TEXT
        return PITFALL_SECTION_SEPARATOR.join(
            f"## {index}. {entry.title}\n{entry.content}"
            for index, entry in enumerate(items, start=1)
        )

    def get_dynamic_violations(self) -> tuple[DynamicRule, ...]:
        """Every dynamic rule regardless of review status, in insertion order."""

        with self._lock:
            return tuple(self._dynamic_rules.values())

    def dynamic_violation(self, rule_id: str) -> DynamicRule | None:
        with self._lock:
            return self._dynamic_rules.get(rule_id)

    def active_rules(self) -> tuple[PatternRule, ...]:
        """Fixed rules followed by the approved dynamic rules."""

        with self._lock:
            approved = tuple(
                rule.as_pattern_rule() for rule in self._dynamic_rules.values() if rule.is_approved
            )
        return self._fixed_rules + approved

    def detect_violations(self, code: str) -> tuple[PatternRule, ...]:
        """Rules matching ``code``, most severe first; fixed rules win severity ties."""

        return match(code, self.active_rules())

    # Knowledge entry updates ----------------------------------------------------------

    def upsert(self, entry: KnowledgeEntry) -> None:
        with self._lock:
            self._entries[entry.id] = entry

    def upsert_all(self, entries: Iterable[KnowledgeEntry]) -> None:
        batch = tuple(entries)
        with self._lock:
            for entry in batch:
                self._entries[entry.id] = entry

    # Dynamic rule updates -------------------------------------------------------------

    def upsert_dynamic_violation(self, rule: DynamicRule) -> None:
        """Replace the rule with the same id in place, or append it, then persist."""

        self.upsert_dynamic_violations((rule,))

    def upsert_dynamic_violations(self, rules: Iterable[DynamicRule]) -> None:
        batch = tuple(rules)
        with self._lock:
            for rule in batch:
                replaced = rule.id in self._dynamic_rules
                self._dynamic_rules[rule.id] = rule
                self._logger.info(
                    "knowledge_store_dynamic_rule_upserted",
                    rule_id=rule.id,
                    replaced=replaced,
                    review_status=rule.review_status.value,
                    source_release=rule.source_release,
                )
            self._persist()

    def update_review_status(self, rule_id: str, status: ReviewStatus | str) -> DynamicRule:
        """Set ``status`` on rule ``rule_id`` and persist; returns the updated rule."""

        new_status = ReviewStatus(status)
        with self._lock:
            current = self._dynamic_rules.get(rule_id)
            if current is None:
                self._logger.warning("knowledge_store_rule_not_found", rule_id=rule_id)
                raise RuleNotFoundError(rule_id)
            updated = current.with_status(new_status)
            self._dynamic_rules[rule_id] = updated
            self._logger.info(
                "knowledge_store_review_status_updated",
                rule_id=rule_id,
                previous_status=current.review_status.value,
                review_status=new_status.value,
            )
            self._persist()
            return updated

    # Persistence ------------------------------------------------------------------------

    def _persist(self) -> None:
        if self._dynamic_rules_path is None:
            return
        payload = [rule.to_dict() for rule in self._dynamic_rules.values()]
        try:
            atomic_write_json(self._dynamic_rules_path, payload)
        except OSError as exc:
            self._logger.error(
                "knowledge_store_persist_failed",
                path=str(self._dynamic_rules_path),
                error=str(exc),
            )
            raise PersistenceError(
                f"failed to persist dynamic rules to {self._dynamic_rules_path}: {exc}"
            ) from exc

    def _load_dynamic_rules(self, seed_path: Path | None) -> None:
        durable = self._dynamic_rules_path
        if durable is not None and durable.exists():
            try:
                rules = _decode_dynamic_rules(_read_structured(durable), location=str(durable))
            except (ValueError, yaml.YAMLError, OSError) as exc:
                raise DynamicRulesCorruptError(
                    f"dynamic rules file is corrupt: {durable}: {exc}"
                ) from exc
            origin = "durable"
        elif seed_path is not None and seed_path.exists():
            try:
                rules = _decode_dynamic_rules(_read_structured(seed_path), location=str(seed_path))
            except (ValueError, yaml.YAMLError, OSError) as exc:
                raise SeedDataError(f"dynamic rules seed is invalid: {seed_path}: {exc}") from exc
            origin = "seed"
        else:
            rules = ()
            origin = "empty"

        with self._lock:
            for rule in rules:
                self._dynamic_rules[rule.id] = rule
            if origin == "seed":
                self._persist()
        self._logger.info(
            "knowledge_store_dynamic_rules_loaded",
            origin=origin,
            rule_count=len(self._dynamic_rules),
            path=str(durable) if durable is not None else None,
        )


def load_entries_seed(path: PathLike) -> tuple[KnowledgeEntry, ...]:
    """Read a YAML (or JSON) list of knowledge entries."""

    seed = Path(path)
    if not seed.is_file():
        raise SeedDataError(f"knowledge seed file does not exist: {seed}")
    try:
        loaded = _read_structured(seed)
        if not isinstance(loaded, list):
            raise ValueError(f"expected top-level sequence, got {type(loaded).__name__}")
        return tuple(
            KnowledgeEntry.from_dict(_as_mapping(item, f"{seed}[{index}]"))
            for index, item in enumerate(loaded)
        )
    except (ValueError, yaml.YAMLError, OSError) as exc:
        raise SeedDataError(f"knowledge seed is invalid: {seed}: {exc}") from exc


def _read_structured(path: Path) -> object:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def _decode_dynamic_rules(loaded: object, *, location: str) -> tuple[DynamicRule, ...]:
    if loaded is None:
        return ()
    if not isinstance(loaded, list):
        raise ValueError(f"{location}: expected top-level sequence, got {type(loaded).__name__}")
    return tuple(
        DynamicRule.from_dict(_as_mapping(item, f"{location}[{index}]"))
        for index, item in enumerate(loaded)
    )


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{path}: expected object, got {type(value).__name__}")
    return cast("Mapping[str, object]", value)


__all__ = [
    "DynamicRulesCorruptError",
    "KnowledgeStore",
    "KnowledgeStoreError",
    "PersistenceError",
    "RuleNotFoundError",
    "SeedDataError",
    "load_entries_seed",
]
