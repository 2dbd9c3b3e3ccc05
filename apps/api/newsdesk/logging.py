from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from newsdesk.context import get_correlation_id
from newsdesk.core.config import Settings, get_settings


# Extra attributes copied into the "fields" object; anything else passed via
# ``extra`` stays out of the log line.
LOGGED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "permission",
        "menu",
        "role",
        "service",
        "error",
    }
)
MAX_ERROR_LENGTH = 500


def _stamp_correlation_id(record: logging.LogRecord) -> logging.LogRecord:
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


def _correlating_factory(base: Callable[..., logging.LogRecord]) -> Callable[..., logging.LogRecord]:
    def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        return _stamp_correlation_id(base(*args, **kwargs))

    factory._newsdesk_correlating = True  # type: ignore[attr-defined]
    return factory


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_correlation_id(record)
        return True


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record with the request correlation id on top."""

    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in record.__dict__.items() if key in LOGGED_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str)


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    root_logger = logging.getLogger()
    if getattr(root_logger, "_newsdesk_configured", False):
        return

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter(service=settings.app_name))
    handler.addFilter(CorrelationIdFilter())

    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    current_factory = logging.getLogRecordFactory()
    if not getattr(current_factory, "_newsdesk_correlating", False):
        logging.setLogRecordFactory(_correlating_factory(current_factory))
    root_logger._newsdesk_configured = True  # type: ignore[attr-defined]
