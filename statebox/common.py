"""Exception types shared across statebox.

These signal misuse of the synchronous accessors on a `StateBox`. Errors
produced by the wrapped computations themselves are never wrapped in these.
"""

from __future__ import annotations

from asyncio import Future
from typing import Any

__all__ = [
    "PendingValueError",
    "Suspension",
]


class PendingValueError(Exception):
    """Raised when reading the value of a box that has not settled yet.

    Check `is_ready()` first, or await `future()`.
    """

    pass


class Suspension(Exception):
    """Raised by `StateBox.suspend` while the box is still pending.

    Carries the pending future so a caller can await it and retry, which is
    how render-deferral hooks consume it. This is a control-flow signal, not
    a failure of the wrapped computation.
    """

    def __init__(self, future: Future[Any]):
        super().__init__("Value is not ready yet")
        self.future = future
