"""Per-command JSON-lines log sessions.

Every CLI command runs inside one :class:`LogSession`. Component code logs
through ``structlog.get_logger(__name__)``; while a session is open those events
are handed to the stdlib ``rule_advisor`` logger, queued on the calling thread
and written by a listener thread to ``<log_dir>/<session_id>/advisor.jsonl``,
one redacted JSON object per line.

Correlation fields passed to :func:`log_session` (the command name, the release
being ingested) are bound with ``structlog.contextvars`` and lifted onto the top
level of every line; all other event keys land under ``"fields"``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import queue
import re
import sys
import threading
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

import structlog

SESSION_LOGGER_NAME: Final[str] = "rule_advisor"
SESSION_LOG_FILENAME: Final[str] = "advisor.jsonl"
CORRELATION_FIELDS: Final[tuple[str, ...]] = ("command", "release_version")
REDACTED: Final[str] = "***REDACTED***"

_SECRET_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
)
_INLINE_SECRET_RE: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret)(\s*[:=]\s*)[^\s,;]+"
)
_BEARER_RE: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[\w.~+/-]+=*")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.makeLogRecord({}))
) | {"message", "asctime"}

_active_lock = threading.Lock()
_active_session: LogSession | None = None


def new_session_id(command: str) -> str:
    """``<command>-<UTC stamp>-<8 hex>``, unique per invocation."""

    stamp = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())
    return f"{command}-{stamp}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Where and how verbosely one command session logs."""

    session_id: str
    log_dir: Path
    level: int = logging.INFO
    echo_to_stderr: bool = False

    def __post_init__(self) -> None:
        session_id = self.session_id.strip()
        if not session_id or Path(session_id).name != session_id:
            raise ValueError(f"invalid session id: {self.session_id!r}")
        object.__setattr__(self, "session_id", session_id)
        object.__setattr__(self, "log_dir", Path(self.log_dir))

    @classmethod
    def from_config(
        cls, observability: Mapping[str, object], *, session_id: str
    ) -> SessionSettings:
        """Build settings from the ``[observability]`` config section."""

        level_name = str(observability.get("log_level", "INFO")).upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"unsupported log level: {level_name!r}")
        return cls(
            session_id=session_id,
            log_dir=Path(str(observability.get("log_dir", "logs"))),
            level=level,
            echo_to_stderr=bool(observability.get("log_to_stderr", False)),
        )

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.session_id / SESSION_LOG_FILENAME


class JsonLineFormatter(logging.Formatter):
    """Render one record as a redacted, key-sorted JSON object."""

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self._session_id = session_id

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "session_id": self._session_id,
        }
        fields: dict[str, object] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRIBUTES or key.startswith("_"):
                continue
            if key in CORRELATION_FIELDS and isinstance(value, str):
                line[key] = value
            else:
                fields[key] = value
        if fields:
            line["fields"] = redact(fields)
        if record.exc_info:
            line["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), default=str)


class LogSession:
    """An open session: a queue handler on the calling side, a file writer thread."""

    def __init__(self, settings: SessionSettings) -> None:
        self.settings = settings
        self.log_path = settings.log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        formatter = JsonLineFormatter(settings.session_id)
        sinks: list[logging.Handler] = [logging.FileHandler(self.log_path, encoding="utf-8")]
        if settings.echo_to_stderr:
            sinks.append(logging.StreamHandler(sys.stderr))
        for sink in sinks:
            sink.setFormatter(formatter)
        self._sinks = tuple(sinks)

        log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        self._queue_handler = logging.handlers.QueueHandler(log_queue)
        self._listener = logging.handlers.QueueListener(log_queue, *self._sinks)
        self._logger = logging.getLogger(SESSION_LOGGER_NAME)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._logger.setLevel(self.settings.level)
        self._logger.propagate = False
        self._logger.addHandler(self._queue_handler)
        self._listener.start()
        route_structlog_to_stdlib()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._logger.removeHandler(self._queue_handler)
        # stop() drains every queued record before the sinks are closed.
        self._listener.stop()
        for sink in self._sinks:
            sink.close()


def open_session(settings: SessionSettings) -> LogSession:
    """Start a session, closing whichever session was active before it."""

    global _active_session
    session = LogSession(settings)
    with _active_lock:
        previous, _active_session = _active_session, session
    if previous is not None:
        previous.close()
    session.start()
    return session


def close_active_session() -> None:
    with _active_lock:
        session = _active_session
    if session is not None:
        _release(session)


def _release(session: LogSession) -> None:
    global _active_session
    with _active_lock:
        if _active_session is session:
            _active_session = None
    session.close()


@contextmanager
def log_session(settings: SessionSettings, **correlation: str | None) -> Iterator[LogSession]:
    """Open a session with ``correlation`` bound for every event logged inside it."""

    bound = {key: value for key, value in correlation.items() if value}
    session = open_session(settings)
    try:
        with structlog.contextvars.bound_contextvars(**bound):
            yield session
    finally:
        _release(session)


def route_structlog_to_stdlib() -> None:
    """Hand structlog events to stdlib logging, keeping stdout free for command output."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def redact(value: object) -> object:
    """Mask secret-looking keys and inline credentials, recursing into containers."""

    if isinstance(value, str):
        masked = _INLINE_SECRET_RE.sub(lambda match: f"{match[1]}{match[2]}{REDACTED}", value)
        return _BEARER_RE.sub(f"Bearer {REDACTED}", masked)
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED if _is_secret_key(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(term in lowered for term in _SECRET_KEY_TERMS)


__all__ = [
    "CORRELATION_FIELDS",
    "REDACTED",
    "SESSION_LOGGER_NAME",
    "SESSION_LOG_FILENAME",
    "JsonLineFormatter",
    "LogSession",
    "SessionSettings",
    "close_active_session",
    "log_session",
    "new_session_id",
    "open_session",
    "redact",
    "route_structlog_to_stdlib",
]
