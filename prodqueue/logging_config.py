"""
Structured logging for the queue service.

structlog renders JSON events through the stdlib logging tree: a console
handler always, and a rotating JSON file handler when LOG_FILE is set.
"""
import logging.config
import os
import sys
import uuid
from datetime import datetime
from typing import Optional

import structlog


def _handlers(log_level: str, log_file: Optional[str]) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "plain",
            "stream": sys.stdout,
        }
    }
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
        }
    return handlers


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_file: Optional path for JSON file output; stdout only when None
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = _handlers(log_level, log_file)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
            "json": {"format": "%(message)s"},
        },
        "handlers": handlers,
        "root": {"level": log_level, "handlers": list(handlers)},
    })

    logger = structlog.get_logger("prodqueue")
    logger.info("Logging configured", level=log_level, file=log_file)
    return logger


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class OperationContext:
    """
    Log one queue mutation as started / completed / failed under a short
    correlation id, with its duration. Exceptions are never suppressed.
    """

    def __init__(self, operation_type: str, operation_id: Optional[str] = None, **context):
        self.log = get_logger("prodqueue.operations").bind(
            operation_type=operation_type,
            operation_id=operation_id or uuid.uuid4().hex[:8],
            **context
        )
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.log.info("Queue operation started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        if exc_type is None:
            self.log.info("Queue operation completed", duration_seconds=duration)
        else:
            self.log.error(
                "Queue operation failed",
                duration_seconds=duration,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
            )
        return False
