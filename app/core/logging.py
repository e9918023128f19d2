"""Logging setup for the medtrack API.

Every record leaves the process as one JSON line (or a plain line when
LOG_FORMAT=plain) carrying the id of the HTTP request that produced it, so a
throttling decision can be traced back to its request.

Rate limit keys are personal data: they embed user ids and client addresses.
Log fingerprint(identifier) instead of the raw key; fields named like an
identifier, a forwarded address or a credential are masked regardless.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"
DEFAULT_LOG_FILE = "logs/medtrack-api.log"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Field names masked wherever they appear in extras, nested mappings included.
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        # principals and client addresses
        "identifier",
        "user_id",
        "x-user-id",
        "x-forwarded-for",
        "client_ip",
        "email",
        # credentials forwarded by the gateway
        "authorization",
        "api_key",
        "x-api-key",
        "token",
        "access_token",
        "refresh_token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
    }
)

# Attributes every LogRecord has; anything else on a record came from extra=.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "stack"}


def set_request_id(request_id: str | None) -> None:
    """Bind the current HTTP request id to the running context."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Return the request id bound by the middleware, if any."""

    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def fingerprint(value: str, *, length: int = 16) -> str:
    """Return a short, stable SHA-256 fingerprint of a rate limit key.

    Two log lines about the same caller share a fingerprint, which is enough to
    follow a client through its quota without writing its id or address.

    Args:
        value: Raw value that must not be logged (e.g. "user:42").
        length: Number of hex characters to keep.

    Returns:
        Hex digest prefix.
    """

    return hashlib.sha256(value.encode()).hexdigest()[:length]


def _mask(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Mask sensitive keys inside headers dicts, lists of them and so on."""

    if isinstance(value, Mapping):
        return {
            key: REDACTED if key.lower() in sensitive_keys else _mask(item, sensitive_keys)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(item, sensitive_keys) for item in value)
    return value


def _extra_fields(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the fields passed through ``extra=``, masked."""

    fields: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        fields[key] = REDACTED if key.lower() in sensitive_keys else _mask(value, sensitive_keys)
    return fields


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id of the request being served.

    Records logged outside a request (startup, the sweeper thread) are left
    without one.
    """

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask identifiers and credentials on the record itself.

    Runs on the handler so the plain formatter never sees raw values either.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(key.lower() for key in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extra_fields(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON object.

    Fixed keys are ``timestamp``, ``level``, ``logger``, ``message`` and, inside
    a request, ``request_id``; the masked extras follow. Event names such as
    ``rate_limit.exceeded`` go in the message.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(key.lower() for key in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_extra_fields(record, self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Open stdout, or the log file when LOG_OUTPUT=file.

    Without LOG_MAX_BYTES the file is never rotated.
    """

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or DEFAULT_LOG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes or 0,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Route all service logs (limiter, middleware, uvicorn) to one handler.

    Called once by create_app(). Replaces whatever handlers the root logger
    had, so calling it again (tests build several apps) does not duplicate
    output.

    Args:
        log_settings: Overrides ``settings.log``.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records from reaching root twice
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
