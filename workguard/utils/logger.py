"""
WorkGuard - Logging Utilities

Structured logging configuration for the compliance engine: structlog for
processors, stdlib handlers with a JSON formatter for the audit log file.
"""

import logging
import logging.config
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from flask import Flask, has_request_context, request
from pythonjsonlogger import jsonlogger


class RequestContextFilter(logging.Filter):
    """Add Flask request context to log records."""

    def filter(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
            record.request_id = request.headers.get("X-Request-Id")
            record.request_actor = request.headers.get("X-Actor-Id")
            record.method = request.method
        else:
            record.url = None
            record.remote_addr = None
            record.request_id = None
            record.request_actor = None
            record.method = None
        return True


class WorkGuardFormatter(logging.Formatter):
    """Formatter that stamps service metadata on every record."""

    def format(self, record):
        record.timestamp = datetime.now(timezone.utc).isoformat()
        record.service = "workguard-api"
        record.version = os.getenv("APP_VERSION", "1.0.0")
        record.environment = os.getenv("FLASK_ENV", "development")
        return super().format(record)


def setup_logging(app: Flask) -> None:
    """
    Setup logging for the application.

    Args:
        app: Flask application instance
    """
    log_level = app.config.get("LOG_LEVEL", "INFO").upper()
    log_file = app.config.get("LOG_FILE", "logs/workguard.log")
    log_to_file = app.config.get("LOG_TO_FILE", True)

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
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "level": log_level,
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "filters": ["request_context"],
            "stream": sys.stdout,
        },
    }
    if log_to_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "level": "INFO",
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filters": ["request_context"],
            "filename": log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 10,
            "encoding": "utf8",
        }
    handler_names = list(handlers)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": WorkGuardFormatter,
                "format": "[%(timestamp)s] %(levelname)s in %(name)s [%(service)s:%(environment)s]: "
                "%(message)s [req_id:%(request_id)s actor:%(request_actor)s %(method)s %(url)s]",
            },
            "json": {
                "()": jsonlogger.JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s "
                "%(request_id)s %(request_actor)s %(remote_addr)s %(method)s %(url)s",
            },
        },
        "filters": {
            "request_context": {
                "()": RequestContextFilter,
            }
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "level": log_level,
                "handlers": handler_names,
                "propagate": False,
            },
            "workguard": {
                "level": log_level,
                "handlers": handler_names,
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING" if not app.debug else "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "werkzeug": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
    app.logger.setLevel(getattr(logging, log_level))

    app.logger.info(
        "Logging system initialized",
        extra={
            "log_level": log_level,
            "log_file": log_file if log_to_file else None,
            "environment": app.config.get("ENV", "unknown"),
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def log_compliance_event(event_type: str, worker_id: Any, **kwargs) -> None:
    """
    Log compliance-related events with structured data.

    Args:
        event_type: Type of event (risk_computed, allocation_created, refusal_registered, ...)
        worker_id: Worker identifier
        **kwargs: Additional event data
    """
    logger = get_logger("workguard.compliance")

    event_data = {
        "event_type": event_type,
        "worker_id": worker_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **kwargs,
    }

    logger.info(f"Compliance event: {event_type}", extra=event_data)


def log_block_event(
    action: str,
    worker_id: Any,
    actor_id: str,
    reason: str,
    block_type: Optional[str] = None,
    **kwargs,
) -> None:
    """
    Log block and unblock actions for the audit trail.

    Args:
        action: blocked or unblocked
        worker_id: Worker identifier
        actor_id: Who performed the action (the system actor for automated ones)
        reason: Free-text reason stored in the ledger
        block_type: temporary or permanent
        **kwargs: Additional event data
    """
    logger = get_logger("workguard.blocks")

    event_data = {
        "event_type": f"worker_{action}",
        "worker_id": worker_id,
        "actor_id": actor_id,
        "reason": reason,
        "block_type": block_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **kwargs,
    }

    if action == "blocked":
        logger.warning(f"Worker {worker_id} blocked", extra=event_data)
    else:
        logger.info(f"Worker {worker_id} unblocked", extra=event_data)
