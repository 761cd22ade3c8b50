"""
Structured JSON logging for the ledger (stdlib `logging` only).

Each line written to stdout is one JSON object carrying:
- service / env / version identity (from env, with overrides)
- request_id (bound per portfolio computation)
- event_type + severity
- any `extra=` fields the caller attached (decimals kept exact as strings)

Library modules only call `logging.getLogger(__name__)` and `log_event`;
whoever embeds the package decides whether to call `init_structured_logging`.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterator, Optional


_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("positionbook_request_id", default=None)

# Attributes every LogRecord has, plus the keys the formatter writes itself.
_RECORD_BUILTINS: frozenset[str] = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}
_PAYLOAD_KEYS: frozenset[str] = frozenset(
    {"timestamp", "severity", "service", "env", "version", "request_id", "event_type", "logger"}
)

_SEVERITIES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_SEVERITY_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def _clean_text(v: Any, *, max_len: int = 2000) -> str:
    s = "" if v is None else str(v)
    s = " ".join(s.splitlines()).strip()
    if len(s) > max_len:
        s = s[: max_len - 1] + "…"
    return s


def _first_env(names: tuple[str, ...], default: str) -> str:
    for name in names:
        s = _clean_text(os.getenv(name), max_len=128)
        if s:
            return s
    return default


def _normalize_severity(level: str | int | None) -> str:
    if isinstance(level, int):
        level = logging.getLevelName(level)
    s = _clean_text(level or "INFO", max_len=16).upper()
    s = _SEVERITY_ALIASES.get(s, s)
    return s if s in _SEVERITIES else "INFO"


def _json_default(v: Any) -> Any:
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, (set, frozenset, tuple)):
        return list(v)
    return str(v)


def default_service_name() -> str:
    return _first_env(("SERVICE_NAME", "OTEL_SERVICE_NAME"), "positionbook")


def default_env_name() -> str:
    return _first_env(("ENV", "ENVIRONMENT"), "unknown")


def default_version() -> str:
    return _first_env(("APP_VERSION", "VERSION"), "unknown")


def get_request_id() -> Optional[str]:
    return _REQUEST_ID.get()


@contextmanager
def bind_request_id(*, request_id: str | None = None) -> Iterator[str]:
    """Bind a request id for the duration of the block (a fresh uuid4 hex by default)."""

    rid = _clean_text(request_id, max_len=128) or uuid.uuid4().hex
    token = _REQUEST_ID.set(rid)
    try:
        yield rid
    finally:
        _REQUEST_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, service: str | None = None, env: str | None = None, version: str | None = None) -> None:
        super().__init__()
        self._identity = {
            "service": _clean_text(service, max_len=128) or default_service_name(),
            "env": _clean_text(env, max_len=64) or default_env_name(),
            "version": _clean_text(version, max_len=128) or default_version(),
        }

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (logging API)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": _normalize_severity(getattr(record, "severity", None) or record.levelname),
            **self._identity,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "event_type": _clean_text(getattr(record, "event_type", None), max_len=128) or "log",
            "message": _clean_text(record.getMessage(), max_len=4000),
            "logger": record.name,
        }

        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]

        for k, v in record.__dict__.items():
            if k in _RECORD_BUILTINS or k in _PAYLOAD_KEYS or k.startswith("_"):
                continue
            payload[k] = v

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    level: str | int | None = None,
) -> None:
    """
    Route the root logger to stdout as JSON lines.

    Replaces existing root handlers, so calling it again reconfigures rather
    than duplicating output.
    """
    lvl = level or os.getenv("LOG_LEVEL", "INFO").upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service=service, env=env, version=version))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(lvl)


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """Log a semantic event; `fields` become top-level JSON keys."""

    lvl = getattr(logging, _normalize_severity(severity), logging.INFO)
    logger.log(lvl, message or event_type, extra={"event_type": event_type, **fields})


__all__ = [
    "JsonLogFormatter",
    "bind_request_id",
    "get_request_id",
    "init_structured_logging",
    "log_event",
]
