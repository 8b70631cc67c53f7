"""Cancellation signal for operations that walk many days."""

import threading
import time
from typing import Any, Optional, Sequence

from shopledger.domain.errors import OperationCancelledError


class CancelToken:
    """Caller-supplied deadline and/or cancel event.

    Multi-day operations call ``check()`` between days. Work completed before
    the stop is kept by the caller; each day is persisted on its own.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        event: Optional[threading.Event] = None,
        clock=time.monotonic,
    ):
        """Initialize the token.

        Args:
            timeout: Seconds from now after which the operation must stop
            event: Event another thread sets to request cancellation
            clock: Monotonic clock, replaceable in tests
        """
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None
        self._event = event if event is not None else threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def check(self, completed: Sequence[Any] = ()) -> None:
        """Raise if the operation should stop.

        Raises:
            OperationCancelledError: Carrying the results completed so far
        """
        if self.cancelled:
            raise OperationCancelledError("Operation cancelled", completed)
        if self.expired:
            raise OperationCancelledError("Operation deadline exceeded", completed)
