from statebox.box import StateBox
from statebox.common import PendingValueError, Suspension
from statebox.futures import (
    Deferred,
    delay,
    is_future_like,
    make_deferred,
    poll_for_condition,
    serialize,
    then,
)
from statebox.runner import Runner

__all__ = [
    "Deferred",
    "PendingValueError",
    "delay",
    "Runner",
    "StateBox",
    "Suspension",
    "is_future_like",
    "make_deferred",
    "poll_for_condition",
    "serialize",
    "then",
]
