from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import CancellationError


class Context:
    """Cancellation and deadline carrier passed to every step verb.

    A context is done once it is cancelled, its deadline passes, or its parent
    is done. Steps call :meth:`check` before blocking work and use
    :meth:`remaining` to bound subprocess waits and HTTP timeouts.
    """

    def __init__(self, deadline: Optional[float] = None, parent: Optional["Context"] = None) -> None:
        self._deadline = deadline
        self._parent = parent
        self._cancelled = threading.Event()
        self._reason: Optional[str] = None

    @classmethod
    def background(cls) -> "Context":
        """A context that is never done unless cancelled."""
        return cls()

    def with_timeout(self, seconds: float) -> "Context":
        return Context(deadline=time.monotonic() + seconds, parent=self)

    def with_cancel(self) -> "Context":
        return Context(parent=self)

    def cancel(self, reason: str = "context cancelled") -> None:
        if not self._cancelled.is_set():
            self._reason = reason
            self._cancelled.set()

    @property
    def deadline(self) -> Optional[float]:
        deadlines = [d for d in (self._deadline, self._parent.deadline if self._parent else None) if d is not None]
        return min(deadlines) if deadlines else None

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, ``None`` without one, never negative."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent.cancelled() if self._parent else False

    def done(self) -> bool:
        if self.cancelled():
            return True
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    def err(self) -> Optional[CancellationError]:
        if self._cancelled.is_set():
            return CancellationError(self._reason or "context cancelled")
        if self._parent is not None:
            parent_err = self._parent.err()
            if parent_err is not None:
                return parent_err
        deadline = self.deadline
        if deadline is not None and time.monotonic() >= deadline:
            return CancellationError("context deadline exceeded")
        return None

    def check(self) -> None:
        """Raise :class:`CancellationError` if the context is done."""
        err = self.err()
        if err is not None:
            raise err

