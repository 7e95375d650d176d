"""
Structured logging for the connector, built on structlog.

Development gets coloured console output; every other environment emits one
JSON object per line. Each event carries the local connector id, and fields
that may hold a Dynamic Attribute Token are masked before rendering.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from dsconnector.core.config import get_settings

REDACTED = "***"
_SECRET_FIELDS = frozenset({"security_token", "token_value", "authorization"})

# Outbound requests are logged by the IDS client itself
_QUIET_LOGGERS = ("httpx", "httpcore")


def redact_secrets(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask token-bearing fields so credentials never reach the log sink."""
    for key in _SECRET_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _connector_identity(connector_id: str) -> Processor:
    def add_connector_id(
        _logger: WrappedLogger, _method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("connector_id", connector_id)
        return event_dict

    return add_connector_id


def _renderers(environment: str) -> list[Processor]:
    if environment == "development":
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Values bound through ``structlog.contextvars`` (the request id assigned
    by the middleware) are merged into every event.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _connector_identity(settings.connector_id),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        redact_secrets,
        *_renderers(settings.environment),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for ``name``."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
