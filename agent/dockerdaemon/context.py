"""
Call context - cancellation signal and optional deadline for one daemon call
"""

import threading
import time
from typing import Callable, List, Optional

from .exceptions import DeadlineExceeded, RequestCancelled


class Context:
    """
    Cancellation signal shared between a caller and an in-flight request.

    A context is cancelled explicitly with cancel() (from any thread) or
    implicitly once its deadline passes. Requests register a callback that
    aborts their socket so blocked reads return promptly.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize context

        Args:
            timeout: Seconds until the deadline (None: no deadline)
        """
        self.deadline = None if timeout is None else time.monotonic() + timeout
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @classmethod
    def background(cls) -> 'Context':
        """Context that is never cancelled and has no deadline"""
        return cls()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None if unbounded"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def err(self) -> Optional[RequestCancelled]:
        """Return the cancellation error if the context is done, else None"""
        if self._cancelled:
            return RequestCancelled("context canceled")
        if self.expired:
            return DeadlineExceeded("context deadline exceeded")
        return None

    def cancel(self):
        """Cancel the context and run registered callbacks once"""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_cancel_callback(self, callback: Callable[[], None]):
        """Run callback on cancel(); runs immediately if already cancelled"""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def remove_cancel_callback(self, callback: Callable[[], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
