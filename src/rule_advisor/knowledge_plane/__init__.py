"""
rule-advisor: knowledge plane

File: src/rule_advisor/knowledge_plane/__init__.py

Purpose
- Rule matching, rule generation from change notices, release-note parsing,
  the fixed rule catalogue, and the thread-safe knowledge store.
"""

from rule_advisor.knowledge_plane.catalogue import DEFAULT_RULES
from rule_advisor.knowledge_plane.changelog import ingest_changelog, parse_changelog
from rule_advisor.knowledge_plane.knowledge_store import (
    DynamicRulesCorruptError,
    KnowledgeStore,
    KnowledgeStoreError,
    PersistenceError,
    RuleNotFoundError,
    SeedDataError,
    load_entries_seed,
)
from rule_advisor.knowledge_plane.matcher import (
    compile_pattern,
    is_valid_pattern,
    match,
    severity_rank,
)
from rule_advisor.knowledge_plane.rule_generator import (
    RuleGenerator,
    generate_rule,
    generate_rule_id,
)

__all__ = [
    "DEFAULT_RULES",
    "DynamicRulesCorruptError",
    "KnowledgeStore",
    "KnowledgeStoreError",
    "PersistenceError",
    "RuleGenerator",
    "RuleNotFoundError",
    "SeedDataError",
    "compile_pattern",
    "generate_rule",
    "generate_rule_id",
    "ingest_changelog",
    "is_valid_pattern",
    "load_entries_seed",
    "match",
    "parse_changelog",
    "severity_rank",
]
