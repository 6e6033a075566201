"""
Call context threaded through every outbound call to a BlockService.

A CallContext carries an optional deadline and a cancellation flag. It is
owned by the caller: the reader never cancels it and never extends it, it
only checks it before talking to the remote service.
"""

import threading
import time
from typing import Optional

from ebs_file.errors import CancelledError, DeadlineExceededError


class CallContext:
    """
    Cancellable, deadline-bearing context for blocking remote calls.

    Safe to share between threads: cancel() may be called from any thread
    while other threads are reading.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        """
        Args:
            timeout: Seconds from now after which check() fails with
                     DeadlineExceededError. None means no deadline.
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be non-negative; got {timeout}")

        self.deadline: Optional[float] = (
            None if timeout is None else time.monotonic() + timeout
        )
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Raise if no further outbound call may be made under this context.
        """
        if self._cancelled.is_set():
            raise CancelledError("context cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise DeadlineExceededError("context deadline exceeded")
