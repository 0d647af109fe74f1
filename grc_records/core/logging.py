"""Structured log output shared by the API process and ``grc-migrate``.

Every record becomes one JSON object carrying the current request id (when
there is one) and the caller's ``extra`` fields, with credentials and
connection strings masked before they reach a handler.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from grc_records.core.config import LogSettings, settings

_current_request_id: ContextVar[str | None] = ContextVar("grc_request_id", default=None)

REDACTED_KEYS: frozenset[str] = frozenset({
    "api_key",
    "x-api-key",
    "app_api_keys",
    "authorization",
    "cookie",
    "set-cookie",
    "password",
    "secret",
    "token",
    "uri",
    "mongodb_uri",
    "connection_string",
})
MASK = "[REDACTED]"

# Standard LogRecord attributes that never go into the extra payload
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def set_request_id(request_id: str | None) -> None:
    _current_request_id.set(request_id)


def get_request_id() -> str | None:
    return _current_request_id.get()


def clear_request_id() -> None:
    _current_request_id.set(None)


def _mask(key: Any, value: Any, keys: frozenset[str]) -> Any:
    if str(key).lower() in keys:
        return MASK
    if isinstance(value, Mapping):
        return {k: _mask(k, v, keys) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(None, item, keys) for item in value)
    return value


def _extra_fields(record: LogRecord, keys: frozenset[str]) -> dict[str, Any]:
    """Masked copy of the fields passed through ``extra=``."""

    return {
        key: _mask(key, value, keys)
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        current = get_request_id()
        if current and getattr(record, "request_id", None) is None:
            record.request_id = current
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask credential-bearing ``extra`` fields in place, for any formatter."""

    def __init__(self, keys: Iterable[str] = REDACTED_KEYS) -> None:
        super().__init__()
        self.keys = frozenset(k.lower() for k in keys)

    def filter(self, record: LogRecord) -> bool:
        vars(record).update(_extra_fields(record, self.keys))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: fixed envelope first, then ``extra`` fields."""

    def __init__(self, *, keys: Iterable[str] = REDACTED_KEYS) -> None:
        super().__init__()
        self.keys = frozenset(k.lower() for k in keys)

    def format(self, record: LogRecord) -> str:
        envelope: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            envelope["request_id"] = request_id
        envelope.update(_extra_fields(record, self.keys))
        if record.exc_info:
            envelope["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(envelope, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    output = log_settings.output.lower()
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    if output != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/grc_records.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single masked, request-aware handler on the root logger.

    Args:
        log_settings: Overrides ``settings.log``; the CLI passes a copy that
            writes to stderr so stdout stays free for reports.
    """

    cfg = log_settings or settings.log
    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
