"""Module entrypoint for ``python -m rule_advisor``."""

from __future__ import annotations

from rule_advisor.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
