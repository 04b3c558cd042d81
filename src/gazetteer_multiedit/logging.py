"""Structured logging for batch runs.

Every event logged while a batch is running carries the batch's ``batch_id``,
change ``kind`` and ``authority``. The values are bound with
:func:`batch_context` through structlog's contextvars, so the fetch loop and
each save task inherit them without passing loggers around.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def configure_logging(*, json_output: bool = False, level: int = logging.INFO) -> None:
    """Configure structlog for the engine and the CLI.

    Logs go to stderr so the CLI's progress and summary on stdout stay readable.

    Args:
        json_output: Emit one JSON object per event instead of console lines.
        level: Minimum level logged (default: INFO).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def batch_context(batch_id: str, kind: str, authority: str) -> Iterator[None]:
    """Bind batch identifiers to every event logged inside the block.

    Tasks created inside the block copy the bound values and keep them after
    the block exits.
    """
    with structlog.contextvars.bound_contextvars(
        batch_id=batch_id, kind=kind, authority=authority
    ):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger that tags each event with the emitting module."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name, module=name)
    return logger
