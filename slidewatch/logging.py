"""Shared structlog configuration for the runner and the test suite.

Flow logs are structured events (``stage_started``, ``poll_status_changed``,
``poll_finished`` ...) rendered for a terminal in development and as JSON
lines elsewhere. ``project_context`` tags every event emitted while a deck
project is under test with its ``project_id``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO

import structlog

from slidewatch.config import settings


class _TeeWriter:
    """Copy flow logs to a file as well as stdout.

    Long full-flow runs are easier to inspect afterwards from the file. Any
    error opening or writing it drops back to stdout only.
    """

    def __init__(self, file_path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a")  # noqa: SIM115
        except OSError as exc:
            # structlog is not configured yet at this point
            print(
                f"WARNING: Could not open log file {file_path!r}: {exc}. "
                "Falling back to stdout-only logging.",
                file=sys.stderr,
            )

    def _disable(self, action: str) -> None:
        self._file = None
        print(f"WARNING: Log file {action} failed. File logging disabled.", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._disable("write")

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError):
            self._disable("flush")


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Configure structlog from SLIDEWATCH_ENVIRONMENT, _LOG_LEVEL and _LOG_FILE."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    # PrintLoggerFactory only uses write() and flush() from the file object
    output = _TeeWriter(settings.log_file) if settings.log_file else None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),  # type: ignore[arg-type]
        # Off so tests can reconfigure between cases
        cache_logger_on_first_use=False,
    )


@contextmanager
def project_context(project_id: str) -> Iterator[None]:
    """Tag log entries emitted inside the block with ``project_id``.

    On exit the previous tag, if any, is restored.
    """
    with structlog.contextvars.bound_contextvars(project_id=project_id):
        yield
