"""RunContext — deadline and cancellation signal passed to every tool.

A context may have a parent; cancelling the parent cancels every child and
a child's deadline never extends past its parent's.  Long-running tools
call :meth:`RunContext.check` at regular points so that an abandoned
attempt stops soon after the manager gives up on it.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from code_insight.tools.errors import ToolCancelledError, ToolTimeoutError


class RunContext:
    __slots__ = ("_deadline", "_cancelled", "_parent", "_timeout")

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        parent: Optional["RunContext"] = None,
    ) -> None:
        self._parent = parent
        self._cancelled = threading.Event()
        self._timeout = timeout if timeout and timeout > 0 else None
        deadline = time.monotonic() + self._timeout if self._timeout else None
        parent_deadline = parent.deadline if parent is not None else None
        if parent_deadline is not None and (deadline is None or parent_deadline < deadline):
            deadline = parent_deadline
        self._deadline = deadline

    @classmethod
    def background(cls) -> "RunContext":
        """A context with no deadline that is never cancelled by anyone else."""
        return cls()

    def with_timeout(self, timeout: Optional[float]) -> "RunContext":
        return RunContext(timeout=timeout, parent=self)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def done(self) -> bool:
        return self.cancelled or self.expired()

    def check(self) -> None:
        """Raise if the caller cancelled or the deadline has passed."""
        if self.cancelled:
            raise ToolCancelledError()
        if self.expired():
            raise ToolTimeoutError(timeout=self._timeout or 0.0)
