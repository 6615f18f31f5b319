"""Run the deck flow against a live API.

    python -m slidewatch.runner          # full flow: idea -> outline -> descriptions -> images -> pptx
    python -m slidewatch.runner quick    # project CRUD only, no AI generation

Configuration comes from SLIDEWATCH_* environment variables (see .env.example).
In full mode Ctrl-C or SIGTERM stops the current wait, abandoning any status
call in flight.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog

from slidewatch.client import DeckClient
from slidewatch.config import settings
from slidewatch.errors import PollCancelledError, SlidewatchError
from slidewatch.logging import configure_logging
from slidewatch.pipeline import run_full_flow, run_quick_flow

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

MODES = ("full", "quick")


def _install_cancel_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            logger.debug("signal_handler_unavailable", signal=sig.name)


async def run(mode: str = "full", cancel_event: asyncio.Event | None = None) -> int:
    """Run one flow and map its result to a process exit code."""
    if cancel_event is None:
        cancel_event = asyncio.Event()
        # Only the full flow waits on the event. In quick mode Ctrl-C keeps its
        # default effect and interrupts the request in flight.
        if mode == "full":
            _install_cancel_handlers(cancel_event)

    logger.info("flow_starting", mode=mode, base_url=settings.base_url)
    async with DeckClient.from_settings(settings) as client:
        try:
            if mode == "quick":
                report = await run_quick_flow(client)
            else:
                report = await run_full_flow(client, settings, cancel_event=cancel_event)
        except PollCancelledError:
            logger.warning("flow_cancelled", mode=mode)
            return EXIT_CANCELLED
        except SlidewatchError as exc:
            logger.error("flow_failed", mode=mode, error=str(exc), error_type=type(exc).__name__)
            return EXIT_FAILED

    logger.info("flow_completed", mode=mode, **report.model_dump())
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for `python -m slidewatch.runner`."""
    args = sys.argv[1:] if argv is None else argv
    mode = args[0] if args else "full"
    if mode not in MODES:
        print(f"usage: python -m slidewatch.runner [{'|'.join(MODES)}]", file=sys.stderr)
        return 2

    configure_logging()
    try:
        return asyncio.run(run(mode))
    except KeyboardInterrupt:
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
