"""
Structured logging configuration for feedsession.

Provides JSON-formatted logging stamped with the active session id and a filter
that keeps access tokens and client secrets out of log output.
"""

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from feedsession.core.config import settings

# Context variable for the session id (set by SessionController while it runs)
session_id_ctx: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

_STANDARD_RECORD_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
    'session_id', 'message', 'asctime',
}


class SensitiveDataFilter(logging.Filter):
    """
    Mask OAuth tokens and client secrets in log messages.

    Also stamps the current session id on every record so formatters can use it.
    """

    _PATTERNS = [
        # key=value / key: value pairs
        (re.compile(r'(access_token|client_secret|token|secret|password)([\s"\']*[=:][\s"\']*)[^\s,"\'}]+', re.IGNORECASE), r'\1\2****'),
        # Authorization headers
        (re.compile(r'(Bearer\s+)[A-Za-z0-9._~+/=-]+'), r'\1****'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = session_id_ctx.get()

        if isinstance(record.msg, str):
            record.msg = self.sanitize(record.msg)

        return True

    @classmethod
    def sanitize(cls, message: str) -> str:
        for pattern, replacement in cls._PATTERNS:
            message = pattern.sub(replacement, message)
        return message


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    """

    def __init__(self, include_sensitive: bool = False):
        """
        Initialize structured formatter.

        Args:
            include_sensitive: Whether to include potentially sensitive extra fields
        """
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        session_id = getattr(record, "session_id", None) or session_id_ctx.get()
        if session_id:
            log_entry["session_id"] = session_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_FIELDS:
                continue
            if not self.include_sensitive and self._is_sensitive_field(key):
                extra_fields[key] = "[REDACTED]"
            else:
                extra_fields[key] = value

        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=self._json_default)

    def _is_sensitive_field(self, key: str) -> bool:
        """Check if field contains sensitive data"""
        sensitive_keywords = {'token', 'secret', 'password', 'credential', 'authorization'}
        key_lower = key.lower()
        return any(keyword in key_lower for keyword in sensitive_keywords)

    def _json_default(self, obj: Any) -> str:
        """JSON serializer for objects not serializable by default"""
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)


def setup_logging(
    log_level: str = "INFO",
    enable_json: bool = True,
    log_file: Optional[str] = None,
    include_sensitive: bool = False,
) -> None:
    """
    Configure logging for the feedsession package.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json: Whether to use JSON formatting
        log_file: Optional file path for logging
        include_sensitive: Whether to include sensitive extra fields in JSON logs
    """
    if enable_json:
        formatter: logging.Formatter = StructuredFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(session_id)s] %(message)s'
        )

    sensitive_filter = SensitiveDataFilter()

    package_logger = logging.getLogger("feedsession")
    package_logger.handlers.clear()
    package_logger.setLevel(getattr(logging, log_level.upper()))
    package_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(sensitive_filter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(sensitive_filter)
        package_logger.addHandler(file_handler)

    # Reduce noise from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def set_session_id(session_id: Optional[str]) -> None:
    """Set the session id stamped on log records in the current context"""
    session_id_ctx.set(session_id)


def init_application_logging() -> None:
    """Initialize logging from application settings"""
    is_dev = settings.DEV_MODE
    log_level = "DEBUG" if is_dev else settings.LOG_LEVEL

    setup_logging(
        log_level=log_level,
        enable_json=settings.JSON_LOGGING and not is_dev,
        log_file=settings.LOG_FILE,
        include_sensitive=is_dev,  # Only include sensitive data in dev mode
    )

    logger = logging.getLogger("feedsession.startup")
    logger.info(
        "Logging initialized",
        extra={
            "dev_mode": is_dev,
            "log_level": log_level,
            "app_version": settings.VERSION,
        },
    )
