"""
Structured logging with request correlation.

Every event carries an ISO timestamp, level, logger name and, inside a
request, the request id and authenticated admin. Values under keys that
look like credentials are masked before rendering. Development gets the
colored console renderer; every other environment emits JSON lines.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from dulceria.core.config import get_settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
admin_email_ctx: ContextVar[Optional[str]] = ContextVar("admin_email", default=None)

REDACTED = "***"
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "password_hash",
        "token",
        "client_secret",
        "secret_key",
        "setup_key",
        "authorization",
        "card",
    }
)

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "botocore": logging.WARNING,
    "stripe": logging.WARNING,
}


def add_correlation(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Attach the current request id and admin, when set."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    admin = admin_email_ctx.get()
    if admin:
        event_dict.setdefault("admin", admin)
    return event_dict


def redact_sensitive(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def configure_logging() -> None:
    """Configure structlog and the stdlib root handler from settings."""
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_correlation,
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.is_development:
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

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind the request id for the current context.

    Returns:
        The given id, or a freshly generated UUID when none was supplied
    """
    request_id = request_id or str(uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> str:
    return request_id_ctx.get()


def set_admin_email(admin_email: Optional[str]) -> None:
    admin_email_ctx.set(admin_email)


def clear_context() -> None:
    """Reset correlation state at the end of a request."""
    request_id_ctx.set("")
    admin_email_ctx.set(None)


@contextmanager
def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    slow_threshold_ms: float = 500.0,
    **context: Any,
) -> Iterator[None]:
    """
    Time a block and log its duration.

    Blocks slower than ``slow_threshold_ms`` log at warning level; a block
    that raises logs an error and re-raises.

    Example:
        >>> with log_performance(logger, "retrieve_payment_intent", intent="pi_123"):
        ...     await stripe_client.retrieve_payment_intent("pi_123")
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(
            "Operation failed",
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            error_type=type(e).__name__,
            **context,
        )
        raise

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    log = logger.warning if duration_ms > slow_threshold_ms else logger.info
    log("Operation completed", operation=operation, duration_ms=duration_ms, **context)
