"""
structlog setup for roleguard.

Guard, CSRF and audit events carry UUIDs and optional request fields; the
processors here turn those into plain strings and drop the empty ones before
rendering.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from roleguard.core.config import settings

IDENTIFIER_KEYS = ("correlation_id", "actor_id", "principal_id", "role_id", "parent_id", "organization_id")
OPTIONAL_REQUEST_KEYS = ("request_path", "request_method", "client_ip")


def stringify_identifiers(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in IDENTIFIER_KEYS:
        value = event_dict.get(key)
        if value is not None:
            event_dict[key] = str(value)
    return event_dict


def drop_empty_request_fields(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in OPTIONAL_REQUEST_KEYS:
        if key in event_dict and not event_dict[key]:
            del event_dict[key]
    return event_dict


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Route structlog through the stdlib root logger.

    Args:
        level: Overrides LOG_LEVEL
        log_format: "json" or "console"; overrides LOG_FORMAT
    """
    level_name = (level or settings.log_level).upper()
    renderer_name = (log_format or settings.log_format).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        stringify_identifiers,
        drop_empty_request_fields,
    ]
    if renderer_name == "json":
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


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Bind fields (correlation_id, request_path, client_ip) to every later log call in this context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
