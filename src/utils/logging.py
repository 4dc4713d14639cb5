"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, Processor

from src.config.settings import AppConfig


def add_run_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Promote run_id bound by the pipeline to the front of the event."""
    run_id = event_dict.pop("run_id", None)
    if run_id:
        return {"run_id": run_id, **event_dict}
    return event_dict


def configure_logging(app_config: Optional[AppConfig] = None) -> None:
    """Configure structured logging."""
    config = app_config or AppConfig()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
        structlog.processors.StackInfoRenderer(),
    ]

    if config.log_format == "json":
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)
