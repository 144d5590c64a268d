"""Structured logging configuration using structlog.

JSON output when LOG_JSON=true, colored console otherwise.
Secret masking processor keeps the Manifold API key out of the logs.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import Any

import structlog

# Event keys that carry the Manifold credential
_SECRET_KEYS = re.compile(r"api[-_]?key|authorization", re.IGNORECASE)
_MASK = "***REDACTED***"


def _mask_secrets(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Redact the API key and any `Key <token>` header value."""
    for key in list(event_dict.keys()):
        if _SECRET_KEYS.search(key):
            event_dict[key] = _MASK
        elif isinstance(event_dict[key], str) and event_dict[key].startswith("Key "):
            # Manifold authorization header value
            event_dict[key] = "Key " + _MASK
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool | None = None) -> None:
    """Configure structlog and stdlib logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Force JSON output. If None, read LOG_JSON from the environment.
    """
    if json_output is None:
        json_output = os.getenv("LOG_JSON", "false").lower() == "true"

    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _mask_secrets,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Silence noisy third-party loggers
    for noisy in ("aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(module: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger with module context."""
    return structlog.get_logger(module=module)
