"""
Structured logging configuration.

JSON output in production, coloured console output in development.
Modules get their logger with `get_logger(__name__)` and log key/value
events:

    logger.info("cart_item_saved", customer_id=..., motorcycle_id=...)
"""
import logging
import os
import sys
from datetime import datetime, timezone

import structlog


def add_timestamp(logger, method_name, event_dict):
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_service_info(logger, method_name, event_dict):
    event_dict["service"] = os.getenv("APP_NAME", "motorcycle-rental-api")
    event_dict["environment"] = os.getenv("APP_ENV", "development")
    return event_dict


def rename_event_key(logger, method_name, event_dict):
    """Rename 'event' to 'message' for log shippers."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def configure_logging(json_format: bool = None, log_level: str = "INFO") -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        json_format: JSON lines when True, console renderer when False.
                     None picks JSON only when APP_ENV is "production".
        log_level: Minimum level name (DEBUG, INFO, WARNING, ...).
    """
    if json_format is None:
        json_format = os.getenv("APP_ENV", "development") == "production"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_timestamp,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.extend([
            add_service_info,
            rename_event_key,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
