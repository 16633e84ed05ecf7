"""Cancellation and deadline primitives shared by the solver and responder."""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

from acme_external_dns.exceptions import DeadlineExceeded, OperationCancelled


class StopSignal:
    """Process-wide stop indicator.

    One instance is shared by the reconciler, the responder's listener and
    the sync loop so that a single ``stop()`` tears all of them down.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def stop(self) -> None:
        """Fire the signal. Safe to call more than once."""
        self._event.set()

    def is_stopped(self) -> bool:
        """Non-blocking check."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stopped or until timeout elapses.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Returns:
            True if the signal fired, False on timeout.
        """
        return self._event.wait(timeout)


class Deadline:
    """A point in time after which an operation must give up.

    Args:
        timeout: Seconds from now until the deadline.
        stop: Optional stop signal that cancels the deadline early.
    """

    def __init__(self, timeout: float, stop: StopSignal | None = None) -> None:
        self.timeout = timeout
        self._stop = stop
        self._expires_at = time.monotonic() + timeout

    @property
    def cancelled(self) -> bool:
        return self._stop is not None and self._stop.is_stopped()

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self._expires_at - time.monotonic())

    def check(self) -> None:
        """Raise if the deadline passed or the stop signal fired.

        Raises:
            OperationCancelled: If the stop signal fired.
            DeadlineExceeded: If the deadline passed.
        """
        if self.cancelled:
            raise OperationCancelled("operation cancelled: stop signal received")
        if self.expired:
            raise DeadlineExceeded(f"operation exceeded deadline of {self.timeout}s")


@contextmanager
def timeout_scope(timeout: float, stop: StopSignal | None = None) -> Iterator[Deadline]:
    """Derive a deadline scope for a single operation.

    The deadline is checked on entry; stores check it again before each
    request they issue.
    """
    deadline = Deadline(timeout, stop)
    deadline.check()
    yield deadline
