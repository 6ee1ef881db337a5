"""Structured JSON logging for the storefront.

Every record is one JSON object. Records emitted while a request is being
served carry its ``request_id`` (bound by ``ObservabilityMiddleware``), and
fields that could leak credentials or payment payloads are masked.
"""

from __future__ import annotations

import json
import logging
import logging.config
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

from app.core.config import settings

_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

REDACTED = "***"
SENSITIVE_FIELDS = frozenset(
    {"password", "hashed_password", "access_token", "refresh_token", "authorization", "pix_key", "qr_code"}
)

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def bind_request_id(request_id: str | None) -> Token:
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def current_request_id() -> str | None:
    return _request_id.get()


def _mask(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: REDACTED if key.lower() in SENSITIVE_FIELDS else value for key, value in fields.items()}


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str = "storefront") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = current_request_id()
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in record.__dict__.items() if key not in _RESERVED}
        if extra:
            entry["extra"] = _mask(extra)
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter, "service": settings.METRICS_NAMESPACE}},
            "handlers": {"stdout": {"class": "logging.StreamHandler", "formatter": "json"}},
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": {
                # los eventos de negocio se mantienen aunque el root quede en WARNING
                "app.cart": {"level": min(level, logging.INFO)},
                "app.checkout": {"level": min(level, logging.INFO)},
                "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
                "sqlalchemy.engine": {"level": logging.WARNING},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def domain_event(logger: logging.Logger, event: str, **context: Any) -> None:
    """Log a business event (``cart.coupon_removed``, ``checkout.order_created``...) at INFO."""
    logger.info(event, extra={"event": event, **context})


def security_alert(message: str, **context: Any) -> None:
    get_logger("app.security").warning(message, extra={"alert": True, **context})
