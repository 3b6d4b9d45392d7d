"""Property-based tests for StateBox using Hypothesis."""

import asyncio
from typing import Any, List

from hypothesis import given
from hypothesis import strategies as st

from statebox.box import StateBox
from tests.statebox.hypo import configure_hypo

configure_hypo()


values = st.one_of(st.none(), st.booleans(), st.integers(), st.text(max_size=10))


async def later(thing: Any) -> Any:
    await asyncio.sleep(0)
    return thing


async def fail_later(error: BaseException) -> Any:
    await asyncio.sleep(0)
    raise error


def nest(thing: Any, layers: List[bool]) -> Any:
    """Wrap `thing` in layers: True adds a coroutine, False adds a box."""
    for as_future in layers:
        thing = later(thing) if as_future else StateBox.from_(thing)
    return thing


async def settle(box: StateBox[Any]) -> None:
    try:
        await box.future()
    except Exception:
        pass


@given(values)
def test_plain_value_resolves_synchronously(value: Any) -> None:
    box = StateBox.from_(value)
    assert box.is_resolved()
    assert box.value() == value
    assert box.value() == value


@given(st.text(max_size=10))
def test_error_rejects_synchronously(message: str) -> None:
    error = ValueError(message)
    box = StateBox.from_error(error)
    assert box.is_rejected()
    assert box.value_or_error() is error


@given(values)
def test_from_is_identity_on_boxes(value: Any) -> None:
    box = StateBox.from_(value)
    assert StateBox.from_(box) is box


@given(st.integers(), st.integers())
def test_when_chain_matches_direct_computation(start: int, offset: int) -> None:
    box = StateBox.from_(start).when(lambda v: v + offset).when(lambda v: v * 2)
    assert box.is_resolved()
    assert box.value() == (start + offset) * 2


@given(st.lists(st.booleans(), max_size=6), values)
def test_nested_layers_collapse_to_value(layers: List[bool], value: Any) -> None:
    async def scenario() -> None:
        box = StateBox.from_(nest(value, layers))
        settled: List[Any] = []
        box.when(settled.append)

        assert await box.future() == value
        for _ in range(3):
            await asyncio.sleep(0)
        assert box.is_resolved()
        assert box.value() == value
        assert settled == [value]

    asyncio.run(scenario())


@given(st.lists(st.booleans(), max_size=6), st.text(max_size=10))
def test_nested_layers_collapse_to_error(layers: List[bool], message: str) -> None:
    async def scenario() -> None:
        error = RuntimeError(message)
        box = StateBox.from_(nest(fail_later(error), layers))
        seen: List[BaseException] = []
        box.catch(seen.append)

        await settle(box)
        for _ in range(3):
            await asyncio.sleep(0)
        assert box.is_rejected()
        assert box.value_or_error() is error
        assert seen == [error]

    asyncio.run(scenario())


@given(st.one_of(values, st.text(max_size=10).map(KeyError)))
def test_future_round_trip(outcome: Any) -> None:
    async def scenario() -> None:
        is_error = isinstance(outcome, BaseException)
        source = fail_later(outcome) if is_error else later(outcome)
        box = StateBox.from_(source)
        await settle(box)

        again = StateBox.from_(box.future())
        await settle(again)
        assert again.is_ready() == box.is_ready()
        assert again.is_rejected() == box.is_rejected()
        assert again.value_or_error() is box.value_or_error()

    asyncio.run(scenario())


entries = st.one_of(
    st.integers().map(lambda n: StateBox.from_(n)),
    st.integers().map(lambda n: StateBox.from_error(ValueError(n))),
)


@given(st.lists(entries, max_size=10))
def test_all_of_settled_boxes(boxes: List[StateBox[int]]) -> None:
    result = StateBox.all(boxes)
    assert result.is_ready()
    rejected = [box for box in boxes if box.is_rejected()]
    if rejected:
        assert result is rejected[0]
    else:
        assert result.value() == [box.value() for box in boxes]


@given(st.lists(st.tuples(st.integers(), st.booleans()), max_size=8))
def test_all_of_pending_entries(items: List[Any]) -> None:
    async def scenario() -> None:
        things = [later(n) if pending else n for n, pending in items]
        box = StateBox.all(things)
        assert box.is_pending() == any(pending for _, pending in items)
        assert await box.future() == [n for n, _ in items]
        assert box.value() == [n for n, _ in items]

    asyncio.run(scenario())
