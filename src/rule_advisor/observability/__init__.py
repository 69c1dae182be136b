"""Per-command JSON-lines log sessions fed by structlog."""

from rule_advisor.observability.logging import (
    CORRELATION_FIELDS,
    LogSession,
    SessionSettings,
    close_active_session,
    log_session,
    new_session_id,
    open_session,
    redact,
)

__all__ = [
    "CORRELATION_FIELDS",
    "LogSession",
    "SessionSettings",
    "close_active_session",
    "log_session",
    "new_session_id",
    "open_session",
    "redact",
]
