"""
Structured logging configuration for the Casedesk service.

This module provides logging setup with:
- JSON formatted logs for production
- Human-readable logs for development
- Request correlation IDs
- Optional log rotation
- Flask request lifecycle integration
"""

import logging
import logging.handlers
import os
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from typing import Any, Dict, List, Optional

import structlog
from flask import Flask, g, has_request_context, request
from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "casedesk"
NO_REQUEST = "no-request"

# Values stamped on records logged outside a request (startup, CLI, tests)
SYSTEM_CONTEXT = {
    "correlation_id": NO_REQUEST,
    "request_method": "SYSTEM",
    "request_path": "system",
    "remote_addr": "system",
}

DEV_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
    "[%(correlation_id)s] %(request_method)s %(request_path)s - %(message)s"
)


def _request_context() -> Dict[str, Any]:
    if not has_request_context():
        return dict(SYSTEM_CONTEXT)
    return {
        "correlation_id": getattr(g, "correlation_id", NO_REQUEST),
        "request_method": request.method,
        "request_path": request.path,
        "remote_addr": request.remote_addr or "unknown",
    }


class RequestContextFilter(logging.Filter):
    """Stamp the current request's correlation id, method, path and caller on each record."""

    def filter(self, record):
        for key, value in _request_context().items():
            setattr(record, key, value)
        return True


class CustomJSONFormatter(JsonFormatter):
    """JSON formatter that stamps service metadata on every record."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["level"] = record.levelname.upper()
        log_record["name"] = record.name
        log_record["service"] = SERVICE_NAME


class ColoredFormatter(logging.Formatter):
    """Development console formatter; the level name is wrapped in an ANSI color."""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }

    def format(self, record):
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelname)
        if not color:
            return text
        return text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class LogSettings:
    level: str = "INFO"
    format: str = "development"
    file: str = ""
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    console: bool = True

    @property
    def json(self) -> bool:
        return self.format.lower() == "json"

    @classmethod
    def from_app(cls, app: Flask) -> "LogSettings":
        config = app.config
        return cls(
            level=config.get("LOG_LEVEL", cls.level),
            format=config.get("LOG_FORMAT", cls.format),
            file=config.get("LOG_FILE", "logs/app.log"),
            max_bytes=config.get("LOG_MAX_BYTES", cls.max_bytes),
            backup_count=config.get("LOG_BACKUP_COUNT", cls.backup_count),
            console=config.get("LOG_ENABLE_CONSOLE", cls.console),
        )

    @classmethod
    def from_env(cls, **overrides) -> "LogSettings":
        settings = cls(
            level=os.getenv("LOG_LEVEL", cls.level),
            format=os.getenv("LOG_FORMAT", cls.format),
            file=os.getenv("LOG_FILE", ""),
            max_bytes=int(os.getenv("LOG_MAX_BYTES", str(cls.max_bytes))),
            backup_count=int(os.getenv("LOG_BACKUP_COUNT", str(cls.backup_count))),
            console=_env_flag("LOG_ENABLE_CONSOLE", "true"),
        )
        for key, value in overrides.items():
            setattr(settings, key, value)
        return settings


def _build_handlers(settings: LogSettings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    json_formatter = CustomJSONFormatter("%(message)s") if settings.json else None

    if settings.file:
        directory = os.path.dirname(settings.file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            settings.file, maxBytes=settings.max_bytes, backupCount=settings.backup_count
        )
        rotating.setFormatter(json_formatter or logging.Formatter(DEV_FORMAT))
        handlers.append(rotating)

    if settings.console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(json_formatter or ColoredFormatter(DEV_FORMAT))
        handlers.append(stream)

    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
    return handlers or [logging.NullHandler()]


def _configure_structlog(json_output: bool) -> None:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class StructuredLogger:
    """Owns the root ``casedesk`` logger; configured once per process."""

    def __init__(self, name: str = SERVICE_NAME):
        self.name = name
        self.logger: Optional[Logger] = None
        self._configured = False

    def configure(self, app: Optional[Flask] = None, **overrides) -> Logger:
        if self._configured and self.logger is not None:
            return self.logger

        settings = LogSettings.from_app(app) if app else LogSettings.from_env(**overrides)

        logger = logging.getLogger(self.name)
        logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
        logger.handlers.clear()
        for handler in _build_handlers(settings):
            logger.addHandler(handler)

        _configure_structlog(settings.json)

        self.logger = logger
        self._configured = True
        logger.info(
            "Logging ready",
            extra={
                "event": "logging_configured",
                "log_level": settings.level,
                "log_format": settings.format,
                "log_file": settings.file,
                "enable_console": settings.console,
            },
        )
        return logger

    def get_logger(self, name: Optional[str] = None) -> Logger:
        if not self._configured or self.logger is None:
            raise RuntimeError("Logging has not been configured")
        return logging.getLogger(f"{self.name}.{name}") if name else self.logger


structured_logger = StructuredLogger()


def setup_flask_logging(app: Flask) -> Logger:
    """Route ``app.logger`` through the service handlers and log each request's start and end."""

    logger = structured_logger.configure(app)

    app.logger.handlers[:] = list(logger.handlers)
    app.logger.setLevel(logger.level)

    @app.before_request
    def assign_correlation_id():
        g.correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex[:8]
        g.request_start_time = datetime.now(timezone.utc)
        logger.info(
            "Request started",
            extra={"event": "request_start", "content_length": request.content_length},
        )

    @app.after_request
    def log_request_end(response):
        started = getattr(g, "request_start_time", None)
        elapsed_ms = (datetime.now(timezone.utc) - started).total_seconds() * 1000 if started else 0.0
        logger.info(
            "Request completed",
            extra={"event": "request_end", "status_code": response.status_code, "duration_ms": round(elapsed_ms, 2)},
        )
        response.headers["X-Correlation-ID"] = getattr(g, "correlation_id", NO_REQUEST)
        return response

    return logger


def get_logger(name: Optional[str] = None) -> Logger:
    """Child of the ``casedesk`` logger, configuring from the environment on first use."""
    if not structured_logger._configured:
        structured_logger.configure()
    return structured_logger.get_logger(name)


def log_database_operation(operation: str, collection: Optional[str] = None, **kwargs):
    get_logger("database").debug(
        f"Store operation: {operation}",
        extra={"event": "database_operation", "operation": operation, "collection": collection, **kwargs},
    )


def log_security_event(event_type: str, details: Dict[str, Any]):
    """Log a security event through structlog, bound to the request correlation id."""
    if not structured_logger._configured:
        structured_logger.configure()

    context = _request_context()
    structlog.get_logger(f"{SERVICE_NAME}.security").warning(
        "security_event",
        event_type=event_type,
        correlation_id=context["correlation_id"],
        remote_addr=context["remote_addr"],
        **details,
    )


def log_business_event(event_type: str, entity_type: Optional[str] = None, entity_id: Optional[str] = None, **kwargs):
    get_logger("business").info(
        f"Business event: {event_type}",
        extra={
            "event": "business_event",
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_id": entity_id,
            **kwargs,
        },
    )
