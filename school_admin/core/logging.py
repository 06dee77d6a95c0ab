"""
Logging Configuration and Utilities

Structured logging for the school administration backend: JSON or text
console output, optional rotating file output, structlog rendering and a
context-carrying logger adapter used by services and middleware.
"""

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pythonjsonlogger import jsonlogger

from school_admin.config.settings import settings

# Context variables for request tracking
request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
school_id: ContextVar[Optional[int]] = ContextVar('school_id', default=None)

SENSITIVE_KEYS = (
    'password', 'token', 'secret', 'credentials', 'authorization', 'cookie',
)


class RequestContextProcessor:
    """Add request context to log records"""

    def __call__(self, logger, method_name, event_dict):
        req_id = request_id.get()
        if req_id:
            event_dict['request_id'] = req_id

        sid = school_id.get()
        if sid is not None:
            event_dict['school_id'] = sid

        event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
        event_dict['service'] = 'school-admin'
        event_dict['environment'] = settings.ENVIRONMENT

        return event_dict


class SensitiveDataProcessor:
    """Mask sensitive values before rendering"""

    def __call__(self, logger, method_name, event_dict):
        self._sanitize_event_dict(event_dict)
        return event_dict

    def _sanitize_event_dict(self, event_dict: Dict[str, Any]):
        for key in list(event_dict.keys()):
            if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                event_dict[key] = '[REDACTED]'
            elif isinstance(event_dict[key], dict):
                self._sanitize_event_dict(event_dict[key])


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        req_id = request_id.get()
        if req_id and 'request_id' not in log_record:
            log_record['request_id'] = req_id


class LoggingConfig:
    """Centralized logging configuration"""

    @staticmethod
    def shared_processors():
        return [
            RequestContextProcessor(),
            SensitiveDataProcessor(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

    @staticmethod
    def configure_structured_logging():
        """Configure structlog for both its own loggers and stdlib records"""
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *LoggingConfig.shared_processors(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def build_formatter(log_format: str, structured: bool) -> logging.Formatter:
        """
        Build the handler formatter for the configured output style.

        Args:
            log_format: "json" or "text"
            structured: Render records through structlog processors

        Returns:
            Formatter instance
        """
        if structured:
            renderer = (
                structlog.processors.JSONRenderer()
                if log_format == "json"
                else structlog.processors.KeyValueRenderer(
                    key_order=['timestamp', 'level', 'logger', 'event']
                )
            )
            return structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=LoggingConfig.shared_processors(),
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
            )

        if log_format == "json":
            return CustomJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s')

        return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    @staticmethod
    def configure_standard_logging():
        """Configure standard Python logging"""
        level = getattr(logging, settings.LOG_LEVEL)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        formatter = LoggingConfig.build_formatter(
            settings.LOG_FORMAT, settings.ENABLE_STRUCTURED_LOGGING
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_path = Path(settings.LOG_FILE)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.TimedRotatingFileHandler(
                log_path,
                when='midnight',
                interval=1,
                backupCount=14,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        LoggingConfig._configure_library_loggers()

    @staticmethod
    def _configure_library_loggers():
        """Configure logging for external libraries"""
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.error").setLevel(logging.INFO)

        if settings.LOG_SQL_QUERIES:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
        else:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

        logging.getLogger("httpx").setLevel(logging.WARNING)


class LoggerAdapter:
    """Logger wrapper that always passes a fresh extra dict and the caller's stack level"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level: int, message: str, *args, **kwargs):
        extra = dict(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        kwargs.setdefault('stacklevel', 3)

        self.logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self._log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: str, *args, **kwargs):
        kwargs.setdefault('exc_info', True)
        self._log(logging.ERROR, message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs):
        self._log(logging.CRITICAL, message, *args, **kwargs)


def get_logger(name: Optional[str] = None) -> LoggerAdapter:
    """
    Get configured logger instance.

    Args:
        name: Logger name (defaults to "school_admin")

    Returns:
        Enhanced logger adapter
    """
    return LoggerAdapter(logging.getLogger(name or 'school_admin'))


def setup_logging():
    """Initialize logging configuration"""
    if settings.ENABLE_STRUCTURED_LOGGING:
        LoggingConfig.configure_structured_logging()

    LoggingConfig.configure_standard_logging()

    get_logger(__name__).info("Logging system initialized", extra={
        'log_level': settings.LOG_LEVEL,
        'log_format': settings.LOG_FORMAT,
        'structured_logging': settings.ENABLE_STRUCTURED_LOGGING,
    })


# Initialize logging when module is imported
setup_logging()

__all__ = [
    'get_logger',
    'setup_logging',
    'LoggerAdapter',
    'LoggingConfig',
    'request_id',
    'school_id',
]
