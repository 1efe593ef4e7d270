"""Structured logging setup for cachebin using structlog.

Every cachebin module logs snake_case events with keyword context
(``cache_read_failed bin=page error=...``).  ``configure_logging`` installs a
shared processor chain in front of a coloured ConsoleRenderer for local
work, or a JSONRenderer when ``APP_ENV=production`` or ``json_output`` is set.

Standard-library ``logging`` goes through the same formatter, with
``aiosqlite`` held at WARNING because it logs every statement at DEBUG.

``bin_context`` binds a bin name (plus any extra fields) into structlog's
context variables, so events emitted by storage code that only knows a table
still carry the bin and, in the CLI, the command that triggered them.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog for cachebin.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output.  When False, JSON is still used if
                     ``APP_ENV`` is ``production``.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"

    # merge_contextvars must run first so bin_context fields reach every event.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # aiosqlite logs every executed statement at DEBUG.
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger named *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def bin_context(bin_name: str, **fields: object) -> Iterator[None]:
    """Bind ``bin`` (and *fields*) to every event logged inside the block.

    Bindings are restored on exit, including when the block raises.
    """
    with structlog.contextvars.bound_contextvars(bin=bin_name, **fields):
        yield
