"""structlog rendering for the ``graphval`` logger.

The library logs through stdlib ``logging`` under the ``graphval`` logger and
never touches the root logger or the host's structlog configuration. Hosts
that want readable or machine-parsable output call :func:`configure_logging`,
which renders those records with a structlog ``ProcessorFormatter``:

- Human (default): colored console output to stderr
- JSON (``log_json=True``): structured JSON lines to stderr
"""

from __future__ import annotations

import logging
import sys

import structlog

LOGGER_NAME = "graphval"


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Attach a structlog-rendering stderr handler to the ``graphval`` logger.

    The handler belongs to the ``graphval`` logger alone and replaces any
    handler a previous call attached, so calling this twice is harmless.
    Propagation to the root logger is switched off: records already rendered
    here would otherwise be emitted a second time by the host's handlers.

    Args:
        verbose: Enable DEBUG-level output (metadata computation, swallowed
            member getter faults, traversal start/finish). When False, only
            WARNING+.
        log_json: Use JSON renderer instead of console renderer.
    """
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_json),
        ],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    graphval_logger = logging.getLogger(LOGGER_NAME)
    graphval_logger.handlers.clear()
    graphval_logger.addHandler(handler)
    graphval_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    graphval_logger.propagate = False
