"""Wait for an external resource to reach a terminal status.

``poll_status`` calls a status accessor on a fixed interval until the status
matches a success or failure condition, the deadline passes, or the caller
sets a cancel event. Each call yields exactly one ``PollOutcome``:

    outcome = await poll_status(
        lambda: client.task_status(project_id, task_id),
        success=TaskStatus.COMPLETED,
        failure=TaskStatus.FAILED,
        interval=5.0,
        timeout=120.0,
        target_id=f"task {task_id}",
    )

``wait_for_status`` takes the same arguments and raises a ``PollError``
subclass for anything other than success.

Accessor failures listed in ``transient`` (``TransientFetchError`` by
default) do not end the wait; every other exception propagates. Each call
is bounded by the time left before the deadline.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass
from typing import Any

import structlog

from slidewatch.errors import TransientFetchError
from slidewatch.models.contracts import PollOutcome, PollOutcomeKind, StatusSnapshot

logger = structlog.get_logger()

StatusFetcher = Callable[[], Awaitable[Any]]
StatusCondition = Any  # value, collection of values, or predicate


def _as_matcher(condition: StatusCondition) -> Callable[[Any], bool]:
    if condition is None:
        return lambda _status: False
    if callable(condition) and not isinstance(condition, type):
        return condition
    if isinstance(condition, (set, frozenset, tuple, list)):
        values: Collection[Any] = condition
        return lambda status: status in values
    return lambda status: status == condition


def _as_snapshot(observed: Any) -> StatusSnapshot:
    if isinstance(observed, StatusSnapshot):
        return observed
    return StatusSnapshot(status=observed)


def _label(status: Any) -> Any:
    """Plain value for log output (enum members render as their value)."""
    return getattr(status, "value", status)


_INTERRUPTED = object()


async def _fetch_within(
    fetch: StatusFetcher, budget: float, cancel_event: asyncio.Event | None
) -> Any:
    """Run one accessor call, giving up when the deadline or the cancel event wins.

    Returns ``_INTERRUPTED`` if the call was abandoned. Exceptions raised by
    the accessor propagate from here.
    """
    call = asyncio.ensure_future(fetch())
    racers = {call}
    if cancel_event is not None:
        racers.add(asyncio.ensure_future(cancel_event.wait()))
    try:
        await asyncio.wait(racers, timeout=budget, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in racers if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    if call.cancelled():
        return _INTERRUPTED
    return call.result()


async def _sleep_or_cancel(delay: float, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


async def poll_status(
    fetch: StatusFetcher,
    *,
    success: StatusCondition,
    failure: StatusCondition = None,
    interval: float,
    timeout: float,
    target_id: str = "resource",
    cancel_event: asyncio.Event | None = None,
    transient: tuple[type[BaseException], ...] = (TransientFetchError,),
) -> PollOutcome:
    """Poll ``fetch`` until a terminal condition, the deadline, or cancellation.

    Args:
        fetch: Zero-argument coroutine function returning the current status,
            either a bare value or a ``StatusSnapshot`` carrying a diagnostic.
        success: Value, collection of values, or predicate marking success.
        failure: Value, collection of values, or predicate marking failure.
            Checked before ``success``.
        interval: Seconds between accessor calls.
        timeout: Wall-clock seconds from the start of this call.
        target_id: Names the watched resource in logs and outcome messages.
        cancel_event: When set, the wait stops. An accessor call still in
            flight is abandoned, as is one that outlives the deadline.
        transient: Exception types that mark a tick inconclusive.

    Returns:
        The terminal ``PollOutcome``. Never a non-terminal status.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    if timeout < 0:
        raise ValueError(f"timeout must be non-negative, got {timeout}")

    is_success = _as_matcher(success)
    is_failure = _as_matcher(failure)
    log = logger.bind(target=target_id)

    loop = asyncio.get_running_loop()
    started = loop.time()
    attempts = 0
    last: StatusSnapshot | None = None

    def finish(kind: PollOutcomeKind, message: str | None) -> PollOutcome:
        outcome = PollOutcome(
            kind=kind,
            target_id=target_id,
            last_status=last.status if last is not None else None,
            message=message,
            attempts=attempts,
            elapsed=loop.time() - started,
        )
        log_fn = log.info if kind == "succeeded" else log.warning
        log_fn(
            "poll_finished",
            outcome=kind,
            last_status=_label(outcome.last_status),
            attempts=attempts,
            elapsed_s=round(outcome.elapsed, 3),
        )
        return outcome

    def timed_out() -> PollOutcome:
        last_seen = _label(last.status) if last is not None else None
        return finish(
            "timed_out",
            f"Timed out after {timeout}s waiting for {target_id} (last status: {last_seen})",
        )

    while True:
        if cancel_event is not None and cancel_event.is_set():
            return finish("cancelled", f"Wait for {target_id} was cancelled")

        attempts += 1
        budget = max(timeout - (loop.time() - started), 0.0)
        try:
            observed = await _fetch_within(fetch, budget, cancel_event)
        except transient as exc:
            log.warning(
                "poll_fetch_failed",
                attempt=attempts,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            if observed is _INTERRUPTED:
                log.warning("poll_fetch_abandoned", attempt=attempts)
                if cancel_event is not None and cancel_event.is_set():
                    return finish("cancelled", f"Wait for {target_id} was cancelled")
                return timed_out()

            snapshot = _as_snapshot(observed)
            if last is None or snapshot.status != last.status:
                log.info(
                    "poll_status_changed",
                    status=_label(snapshot.status),
                    previous=_label(last.status) if last is not None else None,
                    attempt=attempts,
                )
            last = snapshot

            if is_failure(snapshot.status):
                return finish(
                    "failed",
                    snapshot.message
                    or f"{target_id} reached failure status {_label(snapshot.status)}",
                )
            if is_success(snapshot.status):
                return finish("succeeded", snapshot.message)

        remaining = timeout - (loop.time() - started)
        if remaining <= 0:
            return timed_out()
        await _sleep_or_cancel(min(interval, remaining), cancel_event)


async def wait_for_status(fetch: StatusFetcher, **kwargs: Any) -> PollOutcome:
    """Like ``poll_status`` but raises ``PollError`` unless the wait succeeded."""
    outcome = await poll_status(fetch, **kwargs)
    return outcome.raise_for_outcome()


@dataclass(frozen=True)
class PollTarget:
    """A watched resource: an identifier plus its status accessor."""

    target_id: str
    fetch: StatusFetcher

    async def poll(self, **kwargs: Any) -> PollOutcome:
        return await poll_status(self.fetch, target_id=self.target_id, **kwargs)

    async def wait(self, **kwargs: Any) -> PollOutcome:
        return await wait_for_status(self.fetch, target_id=self.target_id, **kwargs)
