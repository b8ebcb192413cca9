# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Both structlog loggers and plain ``logging.getLogger(__name__)`` loggers
end up in one stdout handler whose ProcessorFormatter renders colored
console lines in development and JSON lines elsewhere. Context bound
with log_context() (class ID, notification event) is attached to every
record emitted inside the block, whichever logger emitted it.

Example:
    >>> from src.utils.logging import setup_logging, get_logger, log_context
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> with log_context(class_id="abc", notification_event="class_cancelled"):
    ...     logger.info("Class notification started")
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from src.core.config.settings import Settings

# Chatty libraries kept at WARNING regardless of the application level.
QUIET_LOGGERS = (
    "aiosmtplib",
    "asyncio",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
    "uvicorn.access",
)

_PRE_CHAIN: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso"),
]


def _renderer(settings: "Settings") -> Processor:
    if settings.is_development or settings.debug:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def setup_logging(settings: "Settings") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings providing log_level, environment
            and debug.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            _renderer(settings),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A structlog logger that accepts key-value event data.
    """
    return structlog.stdlib.get_logger(name)


@contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Bind key-value pairs to every log record emitted inside the block.

    Previously bound values with the same keys are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
