# app/utils/log_config.py
"""JSON logs tagged with the request and booking being handled.

The request middleware binds a request id and settlement code binds the
booking it is working on; ``LogContextFilter`` copies both onto every
record so a webhook delivery can be followed across services.
"""
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Iterator, Optional

from ..config import settings

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_booking_id: ContextVar[Optional[str]] = ContextVar("booking_id", default=None)

SETTLEMENT_FIELDS = (
    "request_id", "booking_id", "cleaner_id", "client_id", "reference", "amount",
    "transaction_id", "tracking_id", "outcome", "error", "path",
    "method", "status_code", "duration_ms", "requires_manual_intervention",
)


def current_request_id() -> Optional[str]:
    return _request_id.get()


@contextmanager
def request_log_context(request_id: str) -> Iterator[None]:
    token = _request_id.set(request_id)
    try:
        yield
    finally:
        _request_id.reset(token)


@contextmanager
def booking_log_context(booking_id: Any) -> Iterator[None]:
    token = _booking_id.set(str(booking_id) if booking_id is not None else None)
    try:
        yield
    finally:
        _booking_id.reset(token)


class LogContextFilter(logging.Filter):
    """Fill in request_id/booking_id unless the call passed its own via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = _request_id.get()
        if getattr(record, "booking_id", None) is None:
            record.booking_id = _booking_id.get()
        return True


class SettlementJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name))
            for name in SETTLEMENT_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(SettlementJsonFormatter())
    handler.addFilter(LogContextFilter())
    return handler


def configure_logging() -> None:
    handlers = [_handler(logging.StreamHandler())]
    if settings.log_file:
        handlers.append(_handler(RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )))
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
