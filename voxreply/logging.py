"""Structured logging for reply composition, built on structlog."""

from __future__ import annotations

import json
import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from voxreply.config.schema import LoggingConfig
    from voxreply.event import ConversationEvent

ROOT_LOGGER = "voxreply"

# Platform credentials and user identifiers that show up in request envelopes
_SECRET_PATTERNS = [
    re.compile(r"Bearer\s+[A-Za-z0-9_\-.]{10,}"),              # Authorization headers
    re.compile(r"eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_\-.]+"),    # JWT-shaped apiAccessToken
    re.compile(r"amzn1\.ask\.account\.[A-Za-z0-9_-]{10,}"),    # Alexa user ids
    re.compile(r"amzn1\.ask\.device\.[A-Za-z0-9_-]{10,}"),     # Alexa device ids
    re.compile(r"Atza\|[A-Za-z0-9_\-.|]{10,}"),                # Login-with-Amazon access tokens
]


def mask_secret(value: str) -> str:
    """Mask a secret value, keeping first 4 and last 4 chars visible.

    >>> mask_secret("eyJhbGciOiJSUzI1NiJ9")
    'eyJh****NiJ9'
    """
    if len(value) <= 8:
        return "****"
    return value[:4] + "****" + value[-4:]


def _redact_value(value: str) -> str:
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(lambda m: mask_secret(m.group(0)), value)
    return value


def _redact_event(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Structlog processor that redacts credentials and user ids from string values."""
    for key, val in event_dict.items():
        if isinstance(val, str):
            event_dict[key] = _redact_value(val)
    return event_dict


def _renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer(
            serializer=lambda obj, **kw: json.dumps(obj, ensure_ascii=False, **kw),
        )
    return structlog.dev.ConsoleRenderer()


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    json_output: bool | None = None,
    level: str | None = None,
) -> None:
    """Route voxreply logs through stdlib logging to stderr.

    Explicit ``json_output`` / ``level`` arguments override *config*.
    """
    if json_output is None:
        json_output = config.json_output if config is not None else True
    if level is None:
        level = config.level if config is not None else "INFO"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _redact_event,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output),
        ],
    ))

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper()))


def bind_turn_context(event: ConversationEvent) -> None:
    """Bind the identifiers of the turn being composed to every following log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=event.request_id,
        session_id=event.session.session_id,
        locale=event.locale,
    )


def get_logger(name: str = ROOT_LOGGER) -> structlog.stdlib.BoundLogger:
    """Return a structlog bound logger for the given name."""
    return structlog.get_logger(name)
