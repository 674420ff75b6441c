"""Cancellation and wait primitives for blocking workflows.

Every network call and every sleep in the login flow accepts a
``CancelToken``. Calling ``cancel()`` from another thread wakes a
pending ``wait`` at once instead of letting the sleep run out.

Usage:
    cancel = CancelToken(timeout=300)
    threading.Timer(30, cancel.cancel).start()
    login(client, session, "alice", password, cancel=cancel)
"""

import threading
import time
from typing import Optional

from .errors import DeadlineExceededError, OperationCancelledError


class CancelToken:
    """External cancellation signal with an optional deadline.

    Args:
        timeout: Seconds from now after which the token counts as
            cancelled. None means no deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """Cancel the operation and wake any pending wait."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._deadline_passed()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("operation cancelled")
        if self._deadline_passed():
            raise DeadlineExceededError("operation deadline exceeded")

    def wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            OperationCancelledError: If ``cancel()`` is called during the wait.
            DeadlineExceededError: If the deadline falls within the wait.
        """
        self.raise_if_cancelled()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            self.raise_if_cancelled()
            # Woken exactly at the deadline
            raise DeadlineExceededError("operation deadline exceeded")
        if self._event.wait(max(0.0, seconds)):
            raise OperationCancelledError("operation cancelled")

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline


class SystemClock:
    """Monotonic clock and cancellable sleep backed by the real time source."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: Optional[CancelToken] = None) -> None:
        if cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)


class Budget:
    """Wall-clock budget for one polling loop, measured from creation."""

    def __init__(self, seconds: float, clock: SystemClock):
        self.seconds = seconds
        self._clock = clock
        self._started = clock.monotonic()

    @property
    def elapsed(self) -> float:
        return self._clock.monotonic() - self._started

    @property
    def exhausted(self) -> bool:
        return self.elapsed >= self.seconds
