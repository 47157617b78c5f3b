"""
Deadlines and cancellation for repository operations.

An ``OperationContext`` is handed to ``clone``/``pull``. It carries an
optional deadline and a cancellation flag. Each operation derives its own
context, so concurrent operations never share one unless the caller does
so on purpose (for example to cancel a batch of clones at once).

Example:
    ```python
    ctx = OperationContext.background()
    threading.Timer(5.0, ctx.cancel).start()
    client.clone(url, path, context=ctx)        # CancelledError after 5 s

    ctx = OperationContext.with_deadline_in(0.001)
    client.clone(url, path, context=ctx)        # TimeoutExceededError
    ```
"""

import threading
import time
from typing import Optional


class OperationContext:
    """Deadline plus cancellation flag shared by one operation."""

    def __init__(
        self,
        deadline: Optional[float] = None,
        parent: Optional["OperationContext"] = None,
    ):
        """
        Args:
            deadline: Absolute deadline on the ``time.monotonic()`` clock
            parent: Context whose cancellation propagates to this one
        """
        self._deadline = deadline
        self._parent = parent
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "OperationContext":
        """A context with no deadline."""
        return cls()

    @classmethod
    def with_deadline_in(cls, seconds: float) -> "OperationContext":
        """A context that expires ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> Optional[float]:
        """The effective deadline, including the parent's."""
        deadlines = [d for d in (self._deadline, self._parent_deadline()) if d is not None]
        return min(deadlines) if deadlines else None

    def _parent_deadline(self) -> Optional[float]:
        return self._parent.deadline if self._parent else None

    @property
    def has_deadline(self) -> bool:
        return self.deadline is not None

    def with_timeout(self, seconds: Optional[float]) -> "OperationContext":
        """
        Bind a timeout unless a deadline is already attached.

        A caller-supplied deadline is never overridden: in that case the
        context itself is returned. Otherwise a child context with a fresh
        deadline is returned; cancelling this context cancels the child.
        """
        if self.has_deadline or seconds is None:
            return self
        return OperationContext(deadline=time.monotonic() + seconds, parent=self)

    def cancel(self) -> None:
        """Request cancellation of every operation using this context."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent.cancelled if self._parent else False

    @property
    def expired(self) -> bool:
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), or None."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def __repr__(self) -> str:
        return (
            f"OperationContext(remaining={self.remaining()!r}, "
            f"cancelled={self.cancelled})"
        )
