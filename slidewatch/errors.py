"""Error types shared across the client, poller, and flow driver."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slidewatch.models.contracts import PollOutcome


class SlidewatchError(Exception):
    """Base class for every error raised by this package."""


class TransientFetchError(SlidewatchError):
    """A status fetch that did not complete (network, throttling, 5xx).

    The poller treats this as an inconclusive tick and keeps waiting.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeckApiError(SlidewatchError):
    """The deck API rejected a request or returned an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class PollError(SlidewatchError):
    """A poll operation ended without reaching its success condition."""

    def __init__(self, outcome: PollOutcome) -> None:
        super().__init__(outcome.message or f"{outcome.target_id}: {outcome.kind}")
        self.outcome = outcome


class PollFailedError(PollError):
    """The provider reported a failure status."""


class PollTimeoutError(PollError, TimeoutError):
    """No terminal status was observed before the deadline."""


class PollCancelledError(PollError):
    """The caller asked the wait to stop."""


class FlowVerificationError(SlidewatchError):
    """Provider output did not meet what the flow expects of it."""
