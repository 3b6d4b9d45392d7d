"""Run async tasks with a cap on how many are in flight at once.

A task is a zero-argument callable that does nothing until invoked and
returns a value or an awaitable. If a slot is free, `Runner.perform` starts
the task right away. Otherwise the task waits in a FIFO backlog until a
running task settles and hands its slot over.
"""

from __future__ import annotations

import asyncio
import logging
from asyncio import Future
from collections import deque
from functools import partial
from logging import Logger
from typing import Any, Callable, Optional

from statebox.box import StateBox
from statebox.constants import DEFAULT_MAX_CONCURRENCY
from statebox.futures import (
    Deferred,
    is_future_like,
    make_deferred,
    rejected_future,
    resolved_future,
)

__all__ = [
    "Runner",
    "TaskThunk",
]

TaskThunk = Callable[[], Any]


class Runner:
    """Bounded-concurrency task runner.

    All methods must be called from the thread running the event loop; the
    loop serializes every change to the backlog and the running count.
    """

    def __init__(
        self,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        logger: Optional[Logger] = None,
    ):
        """Initialize an idle runner.

        Args:
            max_concurrency: How many tasks may run at once.
            logger: Logger for bookkeeping messages. Defaults to this module's.

        Raises:
            ValueError: If `max_concurrency` is less than 1.
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1: {max_concurrency}")
        self._max_concurrency = max_concurrency
        self._backlog: deque[Callable[[], None]] = deque()
        self._num_running = 0
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def num_running(self) -> int:
        return self._num_running

    def __len__(self) -> int:
        """Number of tasks waiting in the backlog."""
        return len(self._backlog)

    def perform(self, task: TaskThunk) -> Future[Any]:
        """Start the task now if a slot is free, otherwise queue it.

        Args:
            task: Zero-argument callable returning a value or an awaitable.
                It should not do any work until it is called.

        Returns:
            A future that settles with the task's result or failure, whether
            the task started immediately or was queued.
        """
        deferred: Deferred[Any] = make_deferred()
        if self._num_running < self._max_concurrency:
            self._num_running += 1
            self._logger.debug(
                "Starting task (running %d/%d)",
                self._num_running,
                self._max_concurrency,
            )
            self._start(deferred, task)
        else:
            self._backlog.append(partial(self._start, deferred, task))
            self._logger.debug("Queued task (backlog %d)", len(self._backlog))
        return deferred.future

    def perform_box(self, task: TaskThunk) -> StateBox[Any]:
        """Like `perform`, but gives a synchronous view of the task's result."""
        return StateBox.from_(self.perform(task))

    def _start(self, deferred: Deferred[Any], task: TaskThunk) -> None:
        try:
            result = task()
        except (Exception, asyncio.CancelledError) as exc:
            outcome: Future[Any] = rejected_future(exc)
        else:
            if is_future_like(result):
                outcome = asyncio.ensure_future(result)
            else:
                outcome = resolved_future(result)
        outcome.add_done_callback(partial(self._finish, deferred))

    def _finish(self, deferred: Deferred[Any], outcome: Future[Any]) -> None:
        if outcome.cancelled():
            deferred.reject(asyncio.CancelledError())
        elif (exc := outcome.exception()) is not None:
            deferred.reject(exc)
        else:
            deferred.resolve(outcome.result())

        # The freed slot goes straight to the next queued task, if any.
        if self._backlog:
            self._logger.debug("Dequeued task (backlog %d)", len(self._backlog) - 1)
            self._backlog.popleft()()
        else:
            self._num_running -= 1
            self._logger.debug(
                "Task slot freed (running %d/%d)",
                self._num_running,
                self._max_concurrency,
            )
