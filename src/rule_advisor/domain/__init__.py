"""
rule-advisor domain types

File: src/rule_advisor/domain/__init__.py

Purpose
- Domain types shared across planes: PatternRule, DynamicRule, KnowledgeEntry, ChangeRecord.

Functional requirements
- Domain objects must be serializable and validated on construction.

Non-functional requirements
- Domain layer has no IO side effects and no third-party dependencies.
"""

from rule_advisor.domain.models import (
    DEFAULT_DYNAMIC_RULE_SOURCE,
    ArchitecturalLayer,
    ChangeCategory,
    ChangeRecord,
    DynamicRule,
    FixSuggestion,
    KnowledgeEntry,
    PatternRule,
    ReviewStatus,
    Severity,
)

__all__ = [
    "DEFAULT_DYNAMIC_RULE_SOURCE",
    "ArchitecturalLayer",
    "ChangeCategory",
    "ChangeRecord",
    "DynamicRule",
    "FixSuggestion",
    "KnowledgeEntry",
    "PatternRule",
    "ReviewStatus",
    "Severity",
]
