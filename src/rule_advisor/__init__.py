"""
rule-advisor: package root.

File: src/rule_advisor/__init__.py

Purpose
- Pattern-rule advisor for generated code: a fixed rule catalogue, rules drafted
  from release notes and gated by human review, and a thread-safe knowledge store.

Import boundary
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
