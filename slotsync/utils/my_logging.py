# slotsync/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from slotsync.config.settings import get_settings

# Set by the correlation middleware for the lifetime of one request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
JSON_FIELDS = ("asctime", "levelname", "name", "message", "request_id")


class RequestContextFilter(logging.Filter):
    """Injects the current request id into every record.

    A request_id passed explicitly through ``extra`` wins over the context value.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        # Fields passed through ``extra`` (source_id, duration_ms, ...) are appended
        return JsonFormatter(
            " ".join(f"%({field})s" for field in JSON_FIELDS),
            rename_fields={"levelname": "level", "name": "logger"},
        )
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(verbose=True):
    """Configure application logging"""
    settings = get_settings()

    if verbose:
        level = getattr(logging, settings.LOG_LEVEL.upper())
    else:
        level = logging.WARNING

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings.LOG_FORMAT))
    handler.addFilter(RequestContextFilter())

    logging.basicConfig(level=level, handlers=[handler], force=True)

    if not verbose:
        # Silence noisy loggers
        noisy_loggers = [
            "sqlalchemy",
            "sqlalchemy.engine",
            "alembic",
            "httpx",
            "httpcore",
            "celery",
            "uvicorn",
            "uvicorn.error",
            "uvicorn.access",
        ]
        for name in noisy_loggers:
            logger = logging.getLogger(name)
            logger.setLevel(logging.ERROR)
            logger.propagate = False
