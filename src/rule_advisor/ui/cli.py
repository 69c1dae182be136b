"""Command-line interface router for rule-advisor."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog

from rule_advisor.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from rule_advisor.constants import SEVERITY_LEVELS, SEVERITY_RANK
from rule_advisor.domain.models import ArchitecturalLayer, PatternRule, ReviewStatus
from rule_advisor.knowledge_plane import (
    KnowledgeStore,
    RuleGenerator,
    ingest_changelog,
    parse_changelog,
)
from rule_advisor.observability import SessionSettings, log_session, new_session_id
from rule_advisor.ui.render import CLIRenderer, create_renderer

STDIN_MARKER: Final[str] = "-"
FAIL_ON_NEVER: Final[str] = "never"
FAIL_ON_CHOICES: Final[tuple[str, ...]] = (*SEVERITY_LEVELS, FAIL_ON_NEVER)
DEFAULT_FAIL_ON: Final[str] = "error"

_logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="rule-advisor",
        description=(
            "rule-advisor: pattern-rule advisor for generated code.\n\n"
            "Common workflows:\n"
            "  rule-advisor check handler.ts           Report rule violations in a file\n"
            "  rule-advisor ingest CHANGELOG.md --release 2.0.0\n"
            "                                          Draft rules from release notes\n"
            "  rule-advisor review RULE_ID approved    Activate a drafted rule\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to advisor TOML config (default: ./advisor.toml if present).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON to stdout.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show fix suggestions and extra detail.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Match source text against the active rule set.",
    )
    check_parser.add_argument("source", help="Source file to check, or '-' for stdin.")
    check_parser.add_argument(
        "--fail-on",
        choices=FAIL_ON_CHOICES,
        default=DEFAULT_FAIL_ON,
        help="Lowest severity that produces a non-zero exit (default: error).",
    )
    check_parser.set_defaults(handler=_cmd_check)

    ingest_parser = subparsers.add_parser(
        "ingest",
        parents=[common],
        help="Parse release notes and store drafted rules.",
    )
    ingest_parser.add_argument("changelog", help="Markdown release notes, or '-' for stdin.")
    ingest_parser.add_argument(
        "--release",
        dest="release_version",
        required=True,
        help="Release version the notes belong to.",
    )
    ingest_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the rules that would be generated without storing them.",
    )
    ingest_parser.set_defaults(handler=_cmd_ingest)

    rules_parser = subparsers.add_parser(
        "rules",
        parents=[common],
        help="List dynamic rules and their review status.",
    )
    rules_parser.add_argument(
        "--status",
        choices=[status.value for status in ReviewStatus],
        default=None,
        help="Only list rules in this review status.",
    )
    rules_parser.add_argument(
        "--include-fixed",
        action="store_true",
        help="Also list the built-in catalogue rules.",
    )
    rules_parser.set_defaults(handler=_cmd_rules)

    review_parser = subparsers.add_parser(
        "review",
        parents=[common],
        help="Set the review status of a dynamic rule.",
    )
    review_parser.add_argument("rule_id", help="Dynamic rule id.")
    review_parser.add_argument(
        "status",
        choices=[status.value for status in ReviewStatus],
        help="New review status.",
    )
    review_parser.set_defaults(handler=_cmd_review)

    pitfalls_parser = subparsers.add_parser(
        "pitfalls",
        parents=[common],
        help="Print the pitfall catalogue text.",
    )
    pitfalls_parser.set_defaults(handler=_cmd_pitfalls)

    entries_parser = subparsers.add_parser(
        "entries",
        parents=[common],
        help="List knowledge entries.",
    )
    entries_parser.add_argument(
        "--layer",
        choices=[layer.value for layer in ArchitecturalLayer],
        default=None,
        help="Only list entries for this architectural layer.",
    )
    entries_parser.set_defaults(handler=_cmd_entries)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration.",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_check(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    source_arg = str(args.source)
    code = _read_input(source_arg)
    fail_on = str(args.fail_on)

    with _command_session(config, "check"):
        store = KnowledgeStore.from_config(config)
        violations = store.detect_violations(code)
        _logger.info(
            "cli_check_completed",
            source=source_arg,
            violation_count=len(violations),
            fail_on=fail_on,
        )

    failing = _breaches_threshold(violations, fail_on)
    if _flag(args, "json"):
        _emit_json(
            {
                "command": "check",
                "source": source_arg,
                "fail_on": fail_on,
                "count": len(violations),
                "violations": [rule.to_dict() for rule in violations],
            }
        )
        return 1 if failing else 0

    renderer = _get_renderer(args)
    if not violations:
        renderer.text("No violations found.")
        return 0

    renderer.heading(f"{len(violations)} violation(s) in {source_arg}")
    for rule in violations:
        _render_violation(renderer, rule)
    return 1 if failing else 0


def _cmd_ingest(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    changelog_arg = str(args.changelog)
    release_version = str(args.release_version).strip()
    if not release_version:
        raise CLIError("--release must not be empty", exit_code=2)
    markdown = _read_input(changelog_arg)
    generator = RuleGenerator(source=config["generator"]["default_source"])
    dry_run = _flag(args, "dry_run")

    with _command_session(config, "ingest", release_version=release_version):
        if dry_run:
            rules = tuple(
                generator.generate(change, release_version)
                for change in parse_changelog(markdown)
            )
        else:
            store = KnowledgeStore.from_config(config)
            rules = ingest_changelog(store, markdown, release_version, generator=generator)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "ingest",
                "release_version": release_version,
                "dry_run": dry_run,
                "count": len(rules),
                "rules": [rule.to_dict() for rule in rules],
            }
        )
        return 0

    renderer = _get_renderer(args)
    verb = "Would generate" if dry_run else "Generated"
    renderer.heading(f"{verb} {len(rules)} rule(s) for release {release_version}")
    renderer.table(
        ["ID", "SEVERITY", "STATUS", "PATTERN"],
        [[rule.id, rule.severity.value, rule.review_status.value, rule.pattern] for rule in rules],
    )
    return 0


def _cmd_rules(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    status = getattr(args, "status", None)
    include_fixed = _flag(args, "include_fixed")

    with _command_session(config, "rules"):
        store = KnowledgeStore.from_config(config)
        dynamic = store.get_dynamic_violations()
        fixed = store.fixed_rules if include_fixed else ()

    if status is not None:
        dynamic = tuple(rule for rule in dynamic if rule.review_status.value == status)

    if _flag(args, "json"):
        payload: dict[str, object] = {
            "command": "rules",
            "dynamic_rules": [rule.to_dict() for rule in dynamic],
        }
        if include_fixed:
            payload["fixed_rules"] = [rule.to_dict() for rule in fixed]
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    if fixed:
        renderer.table(
            ["ID", "SEVERITY", "CORRECTION"],
            [[rule.id, rule.severity.value, rule.correction_id] for rule in fixed],
            title="Built-in rules:",
        )
    if not dynamic:
        renderer.section("No dynamic rules.")
        return 0
    renderer.table(
        ["ID", "SEVERITY", "STATUS", "RELEASE"],
        [
            [rule.id, rule.severity.value, rule.review_status.value, rule.source_release]
            for rule in dynamic
        ],
        title="Dynamic rules:",
    )
    return 0


def _cmd_review(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    rule_id = str(args.rule_id)

    with _command_session(config, "review"):
        store = KnowledgeStore.from_config(config)
        updated = store.update_review_status(rule_id, str(args.status))

    if _flag(args, "json"):
        _emit_json({"command": "review", "rule": updated.to_dict()})
        return 0

    renderer = _get_renderer(args)
    renderer.kv(updated.id, updated.review_status.value)
    if updated.is_approved:
        renderer.text("Rule is now active for matching.")
    return 0


def _cmd_pitfalls(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)

    with _command_session(config, "pitfalls"):
        store = KnowledgeStore.from_config(config)
        text = store.pitfall_catalogue_text()
        count = len(store.pitfalls())

    if _flag(args, "json"):
        _emit_json({"command": "pitfalls", "count": count, "text": text})
        return 0

    _get_renderer(args).text(text)
    return 0


def _cmd_entries(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    layer = getattr(args, "layer", None)

    with _command_session(config, "entries"):
        store = KnowledgeStore.from_config(config)
        entries = store.entries(layer) if layer is not None else store.all_entries()

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "entries",
                "count": len(entries),
                "entries": [entry.to_dict() for entry in entries],
            }
        )
        return 0

    renderer = _get_renderer(args)
    if not entries:
        renderer.text("No knowledge entries.")
        return 0
    renderer.table(
        ["ID", "LAYER", "TUTORIAL", "TITLE"],
        [
            [
                entry.id,
                entry.layer.value if entry.layer is not None else "-",
                "yes" if entry.is_tutorial_pattern else "no",
                entry.title,
            ]
            for entry in entries
        ],
    )
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": config})
        return 0

    _get_renderer(args).text(dump_effective_config(config))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _command_session(
    config: Mapping[str, Any], command: str, **fields: str | None
) -> Iterator[None]:
    """Run one command inside its own log session with ``command`` bound."""

    settings = SessionSettings.from_config(
        config["observability"], session_id=new_session_id(command)
    )
    with log_session(settings, command=command, **fields):
        yield


def _breaches_threshold(violations: Sequence[PatternRule], fail_on: str) -> bool:
    if fail_on == FAIL_ON_NEVER:
        return False
    threshold = SEVERITY_RANK[fail_on]
    return any(SEVERITY_RANK[rule.severity.value] >= threshold for rule in violations)


def _render_violation(renderer: CLIRenderer, rule: PatternRule) -> None:
    renderer.section(f"[{rule.severity.value.upper()}] {rule.id}")
    renderer.text(f"  {rule.description}")
    renderer.text(f"  correction: {rule.correction_id}")
    if renderer.verbose and rule.fix_suggestion is not None:
        renderer.text("  before:")
        renderer.items(rule.fix_suggestion.before.splitlines(), prefix="  ")
        renderer.text("  after:")
        renderer.items(rule.fix_suggestion.after.splitlines(), prefix="  ")
        renderer.text(f"  {rule.fix_suggestion.explanation}")


def _read_input(arg: str) -> str:
    if arg == STDIN_MARKER:
        return sys.stdin.read()
    path = Path(arg).expanduser()
    if not path.is_file():
        raise CLIError(f"input file not found: {path}", exit_code=2)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CLIError(f"unable to read {path}: {exc}", exit_code=2) from exc


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    try:
        return load_config(config_path)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
