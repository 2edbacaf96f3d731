"""
Ledger Logging Module

One JSON object per line for every transfer and account event, so rejected
and committed transfers can be traced by their transfer id.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

APP_LOGGER = "fx_ledger"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Record attributes set by log_action, emitted in this order
STRUCTURED_FIELDS = ("correlation_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """Render a record and its ledger fields as a single JSON line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Decimals and datetimes fall back to str
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", log_format: str = "json",
                  logger_name: str = APP_LOGGER) -> logging.Logger:
    """
    Attach a single stream handler to the application logger.

    Calling it again replaces the handler, so reconfiguring never
    duplicates output.
    """
    logger = logging.getLogger(logger_name)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format.lower() == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               correlation_id: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a ledger event with its structured fields.

    Args:
        logger: Logger to emit through
        level: Level name such as "info" or "warning"
        message: Human-readable summary
        action: Operation name, e.g. "transfer" or "open_account"
        resource: Target such as "transfer:<id>" or "account:<id>"
        correlation_id: Id tying together the records of one transfer
        extra: Amounts, currencies and account ids for the event
    """
    fields = {
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra or None,
    }
    logger.log(
        getattr(logging, level.upper()), message,
        extra={key: value for key, value in fields.items() if value is not None}
    )
