"""Plumbing between callbacks, awaitables and asyncio futures.

asyncio futures have no `then`: continuations are attached with
`add_done_callback` and run from the loop's callback queue. The helpers here
rebuild promise-style chaining on top of that, which is all `StateBox` and
`Runner` need from the event loop:

- `is_future_like` tells awaitables apart from plain values.
- `make_deferred` hands out a future together with its settle functions.
- `then` derives a new future from an existing one through handlers.
"""

from __future__ import annotations

import asyncio
import inspect
from asyncio import AbstractEventLoop, Future
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from statebox.constants import DEFAULT_POLL_INTERVAL

T = TypeVar("T")

__all__ = [
    "Deferred",
    "delay",
    "is_future_like",
    "make_deferred",
    "poll_for_condition",
    "rejected_future",
    "resolved_future",
    "serialize",
    "suppress",
    "then",
]


def is_future_like(thing: Any) -> bool:
    """Check whether a value is an awaitable handle rather than a plain value.

    This is a structural check: anything with a callable `__await__` counts,
    so futures, tasks, coroutines and third-party awaitables are all accepted.
    `None` and classes are never future-like.

    Args:
        thing: The value to inspect.

    Returns:
        True if the value can be awaited.
    """
    return inspect.isawaitable(thing)


@dataclass(frozen=True, eq=False)
class Deferred(Generic[T]):
    """A pending future bundled with the functions that settle it.

    Settling twice is a no-op; only the first call has an effect.
    """

    future: Future[T]
    resolve: Callable[[T], None]
    reject: Callable[[BaseException], None]


def make_deferred(loop: Optional[AbstractEventLoop] = None) -> Deferred[T]:
    """Create a future that settles only when told to.

    Args:
        loop: Loop to create the future on. Defaults to the running loop.

    Returns:
        A `Deferred` whose `resolve` adopts awaitable values and whose
        `reject` takes an exception.
    """
    future: Future[T] = (loop or asyncio.get_running_loop()).create_future()
    return Deferred(
        future=future,
        resolve=partial(_resolve_into, future),
        reject=partial(_reject_into, future),
    )


def resolved_future(value: T) -> Future[T]:
    """Create an already-fulfilled future on the running loop."""
    future: Future[T] = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def rejected_future(error: BaseException) -> Future[Any]:
    """Create an already-failed future on the running loop."""
    future: Future[Any] = asyncio.get_running_loop().create_future()
    future.set_exception(error)
    return future


def suppress(future: Future[T]) -> Future[T]:
    """Mark a future's eventual exception as retrieved.

    Silences asyncio's "exception was never retrieved" report for futures
    whose failure is already propagated through another path.

    Args:
        future: The future to silence.

    Returns:
        The same future.
    """
    future.add_done_callback(_retrieve)
    return future


def then(
    source: Awaitable[Any],
    on_resolve: Optional[Callable[[Any], Any]] = None,
    on_reject: Optional[Callable[[BaseException], Any]] = None,
) -> Future[Any]:
    """Derive a future from `source` through settlement handlers.

    When `source` settles, the matching handler runs with its value or
    exception. Whatever the handler returns fulfils the derived future, and an
    awaitable return value is followed until it settles. Whatever it raises
    fails the derived future. A missing handler passes the outcome through
    unchanged. A cancelled source counts as a rejection with
    `asyncio.CancelledError`.

    Args:
        source: Future, task or coroutine to continue from.
        on_resolve: Called with the fulfilled value.
        on_reject: Called with the failure.

    Returns:
        A new future on the same loop as `source`.
    """
    source_future = asyncio.ensure_future(source)
    target: Future[Any] = source_future.get_loop().create_future()
    source_future.add_done_callback(
        partial(_dispatch, target, on_resolve, on_reject)
    )
    return target


async def serialize(tasks: Iterable[Callable[[], Any]]) -> List[T]:
    """Run tasks one after another, each starting when the previous is done.

    Tasks may return plain values or awaitables. The first failure stops the
    sequence; later tasks never run.

    Args:
        tasks: Zero-argument callables.

    Returns:
        The results in task order.
    """
    results: List[T] = []
    for task in tasks:
        result = task()
        if is_future_like(result):
            result = await result
        results.append(result)
    return results


async def delay(seconds: float) -> None:
    """Sleep for `seconds` on the running loop, then resolve to None."""
    await asyncio.sleep(seconds)


async def poll_for_condition(
    condition: Callable[[], bool],
    timeout: Optional[float] = None,
    interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """Wait until `condition()` returns a truthy value.

    Args:
        condition: Checked immediately and then every `interval` seconds.
        timeout: Seconds to wait before giving up. If None, waits forever.
        interval: Seconds between checks.

    Raises:
        TimeoutError: If the condition did not hold within `timeout`.
    """
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(interval)


def _retrieve(future: Future[Any]) -> None:
    if not future.cancelled():
        future.exception()


def _failure(source: Future[Any]) -> Optional[BaseException]:
    if source.cancelled():
        return asyncio.CancelledError()
    return source.exception()


def _reject_into(target: Future[Any], error: BaseException) -> None:
    if not target.done():
        target.set_exception(error)


def _resolve_into(target: Future[Any], value: Any) -> None:
    if target.done():
        return
    if is_future_like(value):
        inner = asyncio.ensure_future(value, loop=target.get_loop())
        inner.add_done_callback(partial(_transfer, target))
    else:
        target.set_result(value)


def _transfer(target: Future[Any], source: Future[Any]) -> None:
    error = _failure(source)
    if error is None:
        _resolve_into(target, source.result())
    else:
        _reject_into(target, error)


def _dispatch(
    target: Future[Any],
    on_resolve: Optional[Callable[[Any], Any]],
    on_reject: Optional[Callable[[BaseException], Any]],
    source: Future[Any],
) -> None:
    error = _failure(source)
    try:
        if error is None:
            value = source.result()
            result = value if on_resolve is None else on_resolve(value)
        elif on_reject is None:
            _reject_into(target, error)
            return
        else:
            result = on_reject(error)
    except (Exception, asyncio.CancelledError) as exc:
        _reject_into(target, exc)
        return
    _resolve_into(target, result)
