"""Logging for the digest pipeline, on structlog over stdlib handlers.

Records carry whatever pipeline context is bound (user, account, digest date),
the ids of the active OpenTelemetry span, and have OAuth secrets masked before
any handler sees them. Console output is human-readable; ``LOG_FILE`` gets JSONL.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from opentelemetry import trace

from inbox_digest.config import LOG_FILE, LOG_LEVEL, VERBOSE_LOGGING

BoundLogger = structlog.stdlib.BoundLogger

# Keys whose values are credentials wherever they show up in an event
SECRET_KEYS = frozenset({"access_token", "refresh_token", "auth_token", "authorization", "client_secret"})
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")

# Request/response lines from these drown out pipeline events
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine", "opentelemetry")

_configured = False


def _mask(value: Any) -> str:
    text = str(value)
    return "***" if len(text) <= 8 else f"***{text[-4:]}"


def mask_secrets(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask token-valued keys and scrub bearer tokens out of free-text fields."""
    for key, value in event_dict.items():
        if value is None:
            continue
        if key.lower() in SECRET_KEYS:
            event_dict[key] = _mask(value)
        elif isinstance(value, str) and "Bearer" in value:
            event_dict[key] = _BEARER_RE.sub(r"\1***", value)
    return event_dict


def add_trace_ids(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Attach the current span's ids so log lines join up with the pipeline trace."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict.setdefault("trace_id", format(ctx.trace_id, "032x"))
        event_dict.setdefault("span_id", format(ctx.span_id, "016x"))
    return event_dict


def _effective_level() -> int:
    if VERBOSE_LOGGING:
        return logging.DEBUG
    if LOG_LEVEL.isdigit():
        return int(LOG_LEVEL)
    return getattr(logging, LOG_LEVEL, logging.INFO)


def _handler(handler: logging.Handler, renderer: Any, level: int, pre_chain: list) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))
    return handler


def configure_logging() -> None:
    global _configured
    if _configured:
        return

    level = _effective_level()
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_trace_ids,
        mask_secrets,
    ]

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(), structlog.dev.ConsoleRenderer(), level, shared))
    root.addHandler(
        _handler(
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
            structlog.processors.JSONRenderer(),
            level,
            shared,
        )
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str = "inbox_digest", **bindings: Any) -> BoundLogger:
    configure_logging()
    logger = structlog.get_logger(name)
    return logger.bind(**bindings) if bindings else logger


def bind_context(**context: Any) -> None:
    """Bind command-level context (``command``, ``user_id``) until :func:`clear_context`."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def pipeline_context(**context: Any) -> Iterator[None]:
    """Bind pipeline keys (``account_id``, ``digest_date`` ...) for the duration of a block.

    Only the keys bound here are reset on exit, so nested blocks and
    command-level context survive. ``None`` values are not bound.
    """
    with structlog.contextvars.bound_contextvars(**{k: v for k, v in context.items() if v is not None}):
        yield


def log_pipeline_step(stage: str, message: str, **counts: Any) -> None:
    """One line per pipeline stage transition, with its counts as fields."""
    get_logger("inbox_digest.pipeline").info(message, stage=stage, kind="pipeline_step", **counts)
