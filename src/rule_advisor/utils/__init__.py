"""Utility exports for filesystem helpers."""

from rule_advisor.utils.fs import atomic_write, atomic_write_json

__all__ = [
    "atomic_write",
    "atomic_write_json",
]
