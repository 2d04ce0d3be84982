"""Structured logging configuration for the retrieval services.

Logs are rendered by ``structlog`` as JSON (aggregation) or colored console
lines (local development). Service identity is bound once at startup and
per-request identity is bound through context variables, so every line
emitted while serving a search carries both without threading loggers
through call sites.

Typical usage
- Call ``configure_logging(service_name, log_level, log_format)`` at startup
- Acquire loggers via ``structlog.get_logger(name)``
- Wrap request handling in ``request_context(request_id=...)``
"""

import logging
import sys
from typing import Any, ContextManager, Iterable

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

# Client libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = ("opensearch", "urllib3", "httpx", "httpcore", "asyncio")


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
    **kwargs: Any
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Logical service identifier bound to each log line
    - log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` (case‑insensitive)
    - log_format: ``json`` for production; ``console`` for local dev
    - quiet_loggers: stdlib loggers capped at ``WARNING`` unless debugging
    - kwargs: Extra context bound to every log line (e.g. ``env="prod"``)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if level > logging.DEBUG:
        for name in quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, **kwargs)


def request_context(**context: Any) -> ContextManager:
    """Bind ``context`` to every log line emitted inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**context)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log the duration of a unit of work.

    Parameters
    - operation: A stable identifier for the measured unit of work
    - duration_ms: Elapsed time in milliseconds
    - kwargs: Additional dimensions (e.g., retrieval mode, result count)
    """
    get_logger("performance").info(
        "Operation completed",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **kwargs
    )
