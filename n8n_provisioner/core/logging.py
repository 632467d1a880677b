"""Structured logging for the provisioner (structlog over stdlib logging)."""

import sys
import structlog
import logging
from pathlib import Path
from typing import List
from n8n_provisioner.core.config import Settings

# Third-party loggers that would drown deployment events at INFO
NOISY_LOGGERS = (
    "apscheduler",
    "httpx",
    "httpcore",
    "uvicorn.access",
)


def _build_handlers(settings: Settings, level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _build_processors(settings: Settings) -> list:
    """Shared processor chain followed by the renderer for ``log_format``."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(1, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=40,
            exception_formatter=structlog.dev.plain_traceback
        ))
    return processors


def configure_logging(settings: Settings) -> None:
    """Configure structured logging based on settings. Safe to call again."""
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        handlers=_build_handlers(settings, level),
        format="%(message)s",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(settings),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values) -> structlog.stdlib.BoundLogger:
    """Lazy logger; ``initial_values`` are bound to every event it logs."""
    return structlog.get_logger(name, **initial_values)


def log_remote_call(logger: structlog.stdlib.BoundLogger, operation: str,
                    success: bool, attempts: int, **kwargs) -> None:
    """Log the outcome of a (possibly retried) n8n API call."""
    log = logger.info if success else logger.warning
    log(
        "n8n call succeeded" if success else "n8n call failed",
        operation=operation,
        attempts=attempts,
        **kwargs
    )
