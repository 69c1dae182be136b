"""End-to-end CLI tests that run ``python -m rule_advisor`` in a subprocess."""
