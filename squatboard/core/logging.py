"""
Structured logging for squatboard.

Every record can carry the request id (from a ContextVar set by
RequestIdMiddleware) and the board fields we correlate on: user, event type
and error code. Anything else passed through ``extra`` is rendered as
key=value pairs in development and as JSON keys in production.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Tuple

LOGGER_NAME = "squatboard"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything outside this set came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}
_CORRELATION_FIELDS = ("request_id", "user_id", "event_type", "error_code")

_LATENCY_BUCKETS: Tuple[Tuple[float, str], ...] = (
    (10, "<10ms"),
    (100, "10-100ms"),
    (500, "100-500ms"),
    (1000, "500-1000ms"),
)

_EXTRA_LIMIT = 500


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return default if rid is None else rid


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for upper, label in _LATENCY_BUCKETS:
        if latency_ms < upper:
            return label
    return ">=1000ms"


def _utc_stamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _event_fields(record: logging.LogRecord) -> Iterator[Tuple[str, object]]:
    """Fields supplied via ``extra`` that are not correlation ids."""
    for name, value in record.__dict__.items():
        if name in _RECORD_ATTRS or name in _CORRELATION_FIELDS or name.startswith("_"):
            continue
        yield name, value


class RequestIdFilter(logging.Filter):
    """Fill in request_id from the context when the caller did not pass one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; empty correlation fields are omitted."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "timestamp": _utc_stamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for name in _CORRELATION_FIELDS[1:]:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        payload.update(_event_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = "".join(
            f" [{label}={value}]"
            for label, value in (("rid", getattr(record, "request_id", None)), ("user", getattr(record, "user_id", None)))
            if value
        )
        details = " ".join(f"{k}={v}" for k, v in _event_fields(record))
        line = f"{_utc_stamp(record)} {record.levelname} [{LOGGER_NAME}]{tags} {record.getMessage()}"
        if details:
            line = f"{line} | {details}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """JSON to stdout in production, pretty lines elsewhere."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    for noisy in ("uvicorn", "uvicorn.error"):
        logging.getLogger(noisy).propagate = False


def _safe_truncate(value, limit: int = _EXTRA_LIMIT) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Emit a board event on the squatboard logger.

    Unknown level names log at INFO. Values in ``extra`` are stringified and
    truncated; keys that clash with LogRecord attributes are prefixed with
    ``x_``.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {"request_id": request_id or get_request_id(), "user_id": user_id}
    if event_type:
        fields["event_type"] = event_type
    if error_code:
        fields["error_code"] = error_code
    for key, value in (extra or {}).items():
        fields[f"x_{key}" if key in _RECORD_ATTRS else key] = _safe_truncate(value)

    levelno = logging.getLevelName(level.upper())
    logger.log(levelno if isinstance(levelno, int) else logging.INFO, msg, extra=fields)
