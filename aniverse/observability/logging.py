"""
Structured logging for the relay.

Every event is a snake_case name plus key/value context, rendered as one
JSON object per line (or coloured console output with LOG_FORMAT=console).
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from aniverse.config import settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def setup_logging() -> None:
    """
    Route structlog through stdlib logging at LOG_LEVEL.

    A debited generation, for example, is emitted as:
    {
        "event": "credits_debited",
        "user_id": "6f1c...",
        "generation_id": "0b9e...",
        "remaining_credits": 1,
        "request_id": "req-42",
        "level": "info",
        "logger": "aniverse.services.ledger",
        "service": "aniverse-api",
        "version": "0.1.0",
        "timestamp": "2026-10-18T09:30:00.000000Z"
    }

    `request_id` comes from the X-Request-ID header, bound for the
    duration of the request by the HTTP middleware via log_context.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind key/values onto every event logged inside the block.

        with log_context(request_id="req-42"):
            logger.info("request_started", path="/generate")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
