"""Fixed rule catalogue shipped with the advisor.

These rules never change at runtime. Dynamic rules generated from release notes
are merged after them by :class:`~rule_advisor.knowledge_plane.knowledge_store.KnowledgeStore`.
"""

from __future__ import annotations

from typing import Final

from rule_advisor.domain.models import FixSuggestion, PatternRule, Severity

_HANDLER = r"router\.(get|post|put|delete|patch).*\{[^}]*"
_ASYNC_SCOPE = r"(async\s+func|async\s+throws|async\s*\{)[^}]*"

DEFAULT_RULES: Final[tuple[PatternRule, ...]] = (
    # Critical: generated code containing these is rejected outright.
    PatternRule(
        id="inline-db-in-handler",
        pattern=_HANDLER + r"(\.query|pool\.|db\.)",
        description=(
            "Database call inside a route handler closure. Handlers only dispatch; "
            "data access belongs in the repository layer behind a service."
        ),
        correction_id="route-handler-dispatcher-only",
        severity=Severity.CRITICAL,
    ),
    PatternRule(
        id="service-construction-in-handler",
        pattern=_HANDLER + r"\w+Service\s*\(",
        description=(
            "Service constructed inside a route handler. Services are injected through "
            "the request context, not built per request."
        ),
        correction_id="dependency-injection-via-context",
        severity=Severity.CRITICAL,
    ),
    # Error: wrong architecture.
    PatternRule(
        id="raw-error-thrown-from-handler",
        pattern=r"throw\s+(?!HTTPError|AppError)\w+Error",
        description=(
            "Raw or third-party error thrown directly. Wrap errors in the application "
            "error type so responses stay consistent and internals do not leak."
        ),
        correction_id="typed-errors-app-error",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="domain-model-in-request-decode",
        pattern=r"request\.decode\(as:\s*\w+(Model|Entity)\.self",
        description=(
            "Domain model decoded straight from a request body. Decode into a DTO and "
            "convert to the domain model in the service layer."
        ),
        correction_id="dtos-at-boundaries",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="direct-env-access",
        pattern=r"(ProcessInfo\.processInfo\.environment\[|getenv\(|os\.environ\[)",
        description=(
            "Environment variable read directly in application code. Load configuration "
            "once at startup through a central configuration object."
        ),
        correction_id="centralized-configuration",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="hardcoded-credentials",
        pattern=(
            r"(let|var)\s+\w*(password|secret|key|token|apiKey|apiSecret)\w*"
            r"\s*=\s*\"[^\"]+\"(?!\")"
        ),
        description=(
            "Credential or secret assigned from a string literal. Secrets come from "
            "secure runtime configuration, never from source."
        ),
        correction_id="secure-configuration",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="swallowed-error",
        pattern=r"catch\s*\{\s*\}",
        description=(
            "Empty catch block discards the error. Log it, wrap it, or handle it explicitly."
        ),
        correction_id="typed-errors-app-error",
        severity=Severity.ERROR,
        fix_suggestion=FixSuggestion(
            before="do {\n    try service.save(item)\n} catch {}",
            after=(
                "do {\n    try service.save(item)\n} catch {\n"
                "    logger.error(\"save failed\", metadata: [\"error\": \"\\(error)\"])\n"
                "    throw AppError.persistence(error)\n}"
            ),
            explanation="Every caught error is either logged and wrapped or handled explicitly.",
        ),
    ),
    PatternRule(
        id="missing-error-wrapping",
        pattern=r"catch\s+let\s+(\w+)\s*\{[^}]*throw\s+\1\s*\}",
        description=(
            "Caught error re-thrown unchanged. Wrap external errors with context about "
            "the operation that failed."
        ),
        correction_id="typed-errors-app-error",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="print-in-error-handler",
        pattern=r"catch[^}]*\{[^}]*(print\(|debugPrint\()",
        description=(
            "print() used for error reporting. Use the structured logger with a level "
            "and context fields."
        ),
        correction_id="structured-logging",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="sleep-in-handler",
        pattern=_HANDLER + r"(sleep\(|Thread\.sleep|usleep\()",
        description=(
            "Blocking sleep inside a route handler stalls the worker pool. Use an "
            "awaitable delay instead."
        ),
        correction_id="async-concurrency-patterns",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="blocking-sleep-in-async",
        pattern=_ASYNC_SCOPE + r"(sleep\(|Thread\.sleep|usleep\()",
        description=(
            "Blocking sleep in an async context blocks the cooperative executor. "
            "Await a task sleep instead."
        ),
        correction_id="async-concurrency-patterns",
        severity=Severity.ERROR,
    ),
    PatternRule(
        id="nonisolated-unsafe-usage",
        pattern=r"nonisolated\s*\(unsafe\)",
        description=(
            "nonisolated(unsafe) switches off data-race checking. Use proper isolation "
            "or immutable shared values."
        ),
        correction_id="actor-for-shared-state",
        severity=Severity.ERROR,
    ),
    # Warning: suboptimal but not incorrect.
    PatternRule(
        id="shared-mutable-state-without-actor",
        pattern=r"var\s+\w+\s*:\s*\[.*\]\s*=\s*\[.*\]",
        description=(
            "Mutable collection held as shared state without synchronisation."
        ),
        correction_id="actor-for-shared-state",
        severity=Severity.WARNING,
    ),
    PatternRule(
        id="magic-numbers",
        pattern=r"(timeout|limit|maxConnections|port|bufferSize|retryCount)\s*[=:]\s*\d{2,}",
        description=(
            "Configuration value embedded as a numeric literal. Name it as a constant or "
            "load it from configuration."
        ),
        correction_id="centralized-configuration",
        severity=Severity.WARNING,
    ),
)

__all__ = ["DEFAULT_RULES"]
