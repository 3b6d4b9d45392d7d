"""A synchronous view over a value that may still be computing.

A `StateBox` is "maybe a future": it wraps either a plain value, an error, or
an awaitable, and lets you check synchronously whether the result is in. When
it is, you can read it without awaiting anything. When it is not, you can
attach continuations with `when` or await `future()`.

Chains stay synchronous for as long as every step is already settled, so
code written against boxes pays no event-loop round trip for data that is
already at hand:

    >>> StateBox.from_(10).when(lambda v: v * 2).when(lambda v: v + 5).value()
    25

Boxes that resolve to other boxes are unwrapped down to the innermost plain
value, however deep the nesting, and settle exactly once.

A box is deliberately not awaitable (it has no `__await__`), so it is never
mistaken for a future. Await `box.future()` instead.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    List,
    Optional,
    TypeVar,
    Union,
    cast,
)

from statebox.common import PendingValueError, Suspension
from statebox.futures import (
    is_future_like,
    rejected_future,
    resolved_future,
    suppress,
    then,
)

__all__ = [
    "StateBox",
]

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Missing:
    pass


_MISSING = Missing()


def _check_error(error: Any) -> BaseException:
    if not isinstance(error, BaseException):
        raise TypeError(f"error must be BaseException, got {type(error).__name__}")
    return error


class StateBox(Generic[T]):
    """A value, an error, or a pending computation, inspectable synchronously.

    Exactly one of pending, resolved or rejected holds at any time. A pending
    box tracks a future derived from its source and settles at most once.
    """

    def __init__(
        self,
        thing: Union[T, Awaitable[T], StateBox[T]],
        is_error: bool = False,
        error: Union[BaseException, Missing] = _MISSING,
    ):
        """Wrap a value, an awaitable, or another box.

        Args:
            thing: A plain value, anything awaitable, or a `StateBox` to adopt.
            is_error: If True and `thing` is a plain value, build a rejected
                box instead of a resolved one.
            error: The error of a rejected box. Defaults to `thing` itself.

        Raises:
            TypeError: If a rejected box would hold something that is not an
                exception.
        """
        self._is_ready = True
        self._is_error = False
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._wrapped_future: Optional[Future[T]] = None

        if is_future_like(thing):
            self._is_ready = False
            # Track a future derived from the source rather than the source
            # itself, so awaiting it also waits for this box to settle.
            self._wrapped_future = suppress(
                then(
                    cast(Awaitable[T], thing),
                    self._handle_resolve,
                    self._handle_reject,
                )
            )
        elif isinstance(thing, StateBox):
            self._become(thing)
        elif is_error:
            self._is_error = True
            self._error = _check_error(thing if isinstance(error, Missing) else error)
        else:
            self._value = thing

    @staticmethod
    def from_(thing: Union[U, Awaitable[U], StateBox[U]]) -> StateBox[U]:
        """Wrap `thing` in a box, returning it unchanged if it already is one."""
        if isinstance(thing, StateBox):
            return thing
        return StateBox(thing)

    @staticmethod
    def build(
        is_ready: bool,
        value_getter: Callable[[], U],
        future_getter: Callable[[], Awaitable[U]],
    ) -> StateBox[U]:
        """Build a box from whichever source is appropriate.

        Only the selected getter is called, so the other may have side effects
        such as starting a fetch.

        Args:
            is_ready: Whether the value is available synchronously.
            value_getter: Produces the value when `is_ready` is True.
            future_getter: Produces an awaitable when `is_ready` is False.

        Returns:
            A box over the selected getter's result.
        """
        if is_ready:
            return StateBox(value_getter())
        return StateBox(future_getter())

    @staticmethod
    def is_state_box(thing: Any) -> bool:
        return isinstance(thing, StateBox)

    @staticmethod
    def from_error(error: BaseException) -> StateBox[Any]:
        """Create a box that is already rejected with `error`."""
        return StateBox(error, is_error=True)

    @staticmethod
    def all(things: Iterable[Any]) -> StateBox[List[Any]]:
        """Combine values, awaitables and boxes into a box of a list.

        - If every entry is resolved, the result is resolved right away with
          the values in input order.
        - Otherwise, if any entry is already rejected, the first rejected
          entry is returned as-is. Pending entries are not waited for.
        - Otherwise the result is pending and settles like `asyncio.gather`
          over every entry's `future()`.

        Args:
            things: Plain values, awaitables or boxes, in any mix.

        Returns:
            A box of the ordered list of values.
        """
        boxes = [StateBox.from_(thing) for thing in things]
        if all(box.is_resolved() for box in boxes):
            return StateBox([box.value() for box in boxes])

        for box in boxes:
            if box.is_rejected():
                return box

        return StateBox(asyncio.gather(*(box.future() for box in boxes)))

    def is_ready(self) -> bool:
        """Check whether the box has settled, either way."""
        return self._is_ready

    def is_pending(self) -> bool:
        return not self._is_ready

    def is_resolved(self) -> bool:
        """Check whether `value()` would return synchronously."""
        return self._is_ready and not self._is_error

    def is_rejected(self) -> bool:
        """Check whether `value()` would raise the stored error."""
        return self._is_ready and self._is_error

    def value(self) -> T:
        """Read the settled value.

        Gate calls on `is_ready`, `is_resolved` or `is_rejected`.

        Returns:
            The resolved value.

        Raises:
            PendingValueError: If the box has not settled yet.
            BaseException: The stored error, if the box is rejected.
        """
        if self.is_resolved():
            return cast(T, self._value)
        if self.is_rejected():
            raise cast(BaseException, self._error)
        raise PendingValueError("Cannot get value of a StateBox that is not ready")

    def value_or_error(self) -> Union[T, BaseException]:
        """Like `value`, but returns the error of a rejected box instead of raising it.

        Raises:
            PendingValueError: If the box has not settled yet.
        """
        if self.is_resolved():
            return cast(T, self._value)
        if self.is_rejected():
            return cast(BaseException, self._error)
        raise PendingValueError(
            "Cannot get value or error of a StateBox that is not ready"
        )

    def future(self) -> Future[T]:
        """Convert the box back into a future.

        A settled box gives a new, already-settled future on the running loop.
        A pending box gives the very future it tracks, which completes only
        after the box itself has settled.
        """
        if self.is_resolved():
            return resolved_future(cast(T, self._value))
        if self.is_rejected():
            return rejected_future(cast(BaseException, self._error))
        return self._pending_future()

    def when(
        self,
        on_resolve: Optional[Callable[[T], Any]] = None,
        on_reject: Optional[Callable[[BaseException], Any]] = None,
    ) -> StateBox[Any]:
        """Chain handlers onto the box, like `then` on a promise.

        The matching handler is called with the value or the error, right away
        if the box has settled, and its result is wrapped with `from_`. A
        handler may return a plain value, an awaitable or another box. When no
        handler matches a settled box, the box itself is returned.

        This never raises: an exception from a handler becomes a rejected box.

        Args:
            on_resolve: Called with the resolved value.
            on_reject: Called with the rejection error.

        Returns:
            A box for the handler's result.
        """
        if self.is_resolved():
            if on_resolve is None:
                return self
            try:
                return StateBox.from_(on_resolve(cast(T, self._value)))
            except (Exception, asyncio.CancelledError) as exc:
                return StateBox.from_error(exc)

        if self.is_rejected():
            if on_reject is None:
                return self
            try:
                return StateBox.from_(on_reject(cast(BaseException, self._error)))
            except (Exception, asyncio.CancelledError) as exc:
                return StateBox.from_error(exc)

        return StateBox.from_(then(self._pending_future(), on_resolve, on_reject))

    def catch(self, on_reject: Callable[[BaseException], Any]) -> StateBox[Any]:
        """Chain a handler for the rejected case only."""
        return self.when(None, on_reject)

    def finally_(self, on_finally: Callable[[], Any]) -> StateBox[T]:
        """Run `on_finally` once the box settles, either way.

        `on_finally` takes no arguments and may return an awaitable or box,
        which is waited for. The result keeps the original value or error;
        only a failure of `on_finally` itself replaces it.
        """

        def after_resolve(value: T) -> StateBox[T]:
            return StateBox.from_(on_finally()).when(lambda _: value)

        def after_reject(error: BaseException) -> StateBox[T]:
            return StateBox.from_(on_finally()).when(
                lambda _: StateBox.from_error(error)
            )

        return self.when(after_resolve, after_reject)

    def suspend(self) -> T:
        """Return the value if there is one, or signal that it is still coming.

        Raises:
            Suspension: Carrying the pending future, if the box has not settled.
            BaseException: The stored error, if the box is rejected.
        """
        if self.is_ready():
            return self.value()
        raise Suspension(self._pending_future())

    def __repr__(self) -> str:
        if self.is_resolved():
            return f"StateBox(resolved={self._value!r})"
        if self.is_rejected():
            return f"StateBox(rejected={self._error!r})"
        return "StateBox(pending)"

    def _pending_future(self) -> Future[T]:
        assert self._wrapped_future is not None
        return self._wrapped_future

    def _become(self, other: StateBox[T]) -> None:
        # Copy the current state, then follow the other box if it has not
        # settled. The tracked future must include the time to run our own
        # handlers, so other's future cannot simply be shared.
        self._is_ready = other._is_ready
        self._is_error = other._is_error
        self._value = other._value
        self._error = other._error
        self._wrapped_future = None

        if other.is_pending():
            tracker = other.when(self._handle_resolve, self._handle_reject)
            self._wrapped_future = tracker._pending_future()

    def _handle_resolve(self, value: Any) -> Any:
        # Every eventual resolution lands here. The return value re-fulfils
        # the derived future so chaining keeps working. Awaitable values are
        # followed like boxes, so a box never resolves to a future.
        if is_future_like(value):
            value = StateBox(value)
        if isinstance(value, StateBox):
            self._become(value)
            if self._is_ready:
                return self.value()
            return self._wrapped_future

        self._is_ready = True
        self._value = value
        self._wrapped_future = None
        return value

    def _handle_reject(self, error: BaseException) -> Any:
        # Every eventual rejection lands here. Re-raise to keep the derived
        # future failed. Rejections are exceptions, never boxes, so there is
        # nothing to unwrap.
        self._is_ready = True
        self._is_error = True
        self._error = error
        self._wrapped_future = None
        raise error
