"""Structlog setup for pedigree-graph.

Library modules only call ``get_logger``. Applications call
``configure_logging`` once at startup (the CLI does so from its settings);
until then structlog's defaults apply, which is what tests capture against.
"""
from __future__ import annotations

import logging
import sys
from typing import Literal, TextIO

import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: LogLevel = "INFO", *, stream: TextIO | None = None) -> None:
    """Emit JSON lines at ``level`` and above.

    Output goes to stderr by default so command output on stdout stays
    machine-readable. Calling again replaces the previous setup.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=lambda *args: structlog.PrintLogger(stream or sys.stderr),
        # Module-level loggers must pick up a later reconfiguration.
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "pedigree_graph"):
    return structlog.get_logger(name)
