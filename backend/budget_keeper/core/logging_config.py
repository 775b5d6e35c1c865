"""
Structured logging configuration.

Sets up structlog on top of stdlib logging. In production (or with
LOG_FORMAT=json) records are rendered as JSON for log aggregation; in
development they are rendered for the console.

Usage:
    from budget_keeper.core.logging_config import setup_logging, get_logger

    setup_logging()

    logger = get_logger(__name__)
    logger.info("budget_rolled_over", budget_id=str(budget.id))
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

from budget_keeper.config import settings


def _use_json() -> bool:
    return settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"


def setup_logging() -> None:
    """
    Configure structured logging for the application and the workers.

    Safe to call more than once; the last call wins.
    """
    use_json = _use_json()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_stdlib_handlers(use_json)

    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("celery").setLevel(logging.WARNING)


def _configure_stdlib_handlers(use_json: bool = False) -> None:
    """Render uvicorn and celery stdlib records as JSON when requested."""
    if not use_json:
        return

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "celery"]:
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.addHandler(handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Structured logger with context support
    """
    return structlog.get_logger(name)


def log_celery_task(
    logger: structlog.stdlib.BoundLogger,
    task_name: str,
    status: str,
    duration_ms: float = 0,
    **kwargs,
) -> None:
    """Log Celery task execution."""
    logger.info(
        "celery_task",
        task_name=task_name,
        status=status,
        duration_ms=duration_ms,
        **kwargs,
    )
