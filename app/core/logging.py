"""Structured logging with structlog, request_id context and secret redaction."""

import logging
import re
from collections.abc import MutableMapping
from contextvars import ContextVar
from typing import Any

import structlog

from app.core.config import get_settings

# Context variable for request correlation
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Keys whose values never reach log output verbatim
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "refresh_token",
        "client_secret",
        "api_key",
        "pat",
        "secret",
        "signature",
    }
)

_BEARER_RE = re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)", re.IGNORECASE)


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Mask a credential, keeping a short prefix for correlation.

    Args:
        value: Secret value.
        visible: Number of leading characters to keep.

    Returns:
        Masked representation such as ``"eyJh***"``.
    """
    if not value:
        return "***"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"


def mask_bearer(text: str) -> str:
    """Replace bearer tokens embedded in free text."""
    return _BEARER_RE.sub(lambda m: f"{m.group(1)}{mask_secret(m.group(2))}", text)


def add_request_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add request_id from context to log events."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def redact_secrets(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask sensitive keys and bearer tokens in log events."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS and isinstance(value, str):
            event_dict[key] = mask_secret(value)
        elif isinstance(value, str) and "bearer" in value.lower():
            event_dict[key] = mask_bearer(value)
    return event_dict


def configure_logging() -> None:
    """Configure structlog for the application."""
    settings = get_settings()

    shared_processors: list[structlog.types.Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_request_id,
        redact_secrets,
    ]

    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module).

    Returns:
        Configured structlog logger.
    """
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger
