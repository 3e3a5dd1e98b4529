"""Structured logging setup shared by the pipeline, queue and CLI."""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from structlog.types import FilteringBoundLogger

from .config import config


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> FilteringBoundLogger:
    """Configure structlog and the standard library root logger.

    Logs go to stderr so command output on stdout stays machine-readable.
    ``level`` and ``log_format`` override the configured values, which the
    CLI uses for ``--verbose``.
    """
    level_name = (level or config.app.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    renderer_name = (log_format or config.app.log_format).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if renderer_name == "json":
        processors.extend([
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ])
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    return structlog.get_logger()


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a logger instance for the given name."""
    return structlog.get_logger(name)


@contextmanager
def repository_context(repository_id: str, **extra: str) -> Iterator[None]:
    """Bind ``repository_id`` (and extras) to every log line in the block."""
    with structlog.contextvars.bound_contextvars(repository_id=repository_id, **extra):
        yield


# Initialize logging
logger = configure_logging()
