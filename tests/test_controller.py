import asyncio
import logging
from dataclasses import dataclass, replace

import pytest

from controller import EffectChannel, StateController, StateFlow
from helpers import drain


@dataclass(frozen=True)
class CounterState:
    counter: int = 0
    label: str = ""


@dataclass(frozen=True)
class Increment:
    pass


@dataclass(frozen=True)
class Emit:
    effect: str


@dataclass(frozen=True)
class Explode:
    pass


class CounterController(StateController[CounterState, object, str]):

    def create_initial_state(self):
        return CounterState()

    async def handle_event(self, event):
        if isinstance(event, Increment):
            # Cede el turno para que las tareas se intercalen
            await asyncio.sleep(0)
            self.update_state(lambda s: replace(s, counter=s.counter + 1))
        elif isinstance(event, Emit):
            self.emit_effect(event.effect)
        elif isinstance(event, Explode):
            raise RuntimeError("boom")


def test_concurrent_updates_are_not_lost():
    async def scenario():
        controller = CounterController()
        await asyncio.gather(*[controller.dispatch(Increment()) for _ in range(50)])
        return controller.current_state()

    assert asyncio.run(scenario()).counter == 50


def test_effect_reaches_attached_subscriber_once_and_never_a_late_one():
    async def scenario():
        controller = CounterController()
        early = controller.subscribe_effects()
        await controller.dispatch(Emit("navigate"))
        late = controller.subscribe_effects()
        return drain(early), drain(late)

    early, late = asyncio.run(scenario())

    assert early == ["navigate"]
    assert late == []


def test_effects_keep_emission_order_for_every_subscriber():
    async def scenario():
        controller = CounterController()
        first, second = controller.subscribe_effects(), controller.subscribe_effects()
        for name in ("a", "b", "c"):
            await controller.dispatch(Emit(name))
        return drain(first), drain(second)

    assert asyncio.run(scenario()) == (["a", "b", "c"], ["a", "b", "c"])


def test_effect_without_subscribers_is_dropped():
    channel = EffectChannel()
    assert channel.emit("lost") == 0
    subscription = channel.subscribe()
    assert drain(subscription) == []


def test_effect_buffer_is_bounded(caplog):
    channel = EffectChannel(maxsize=2)
    subscription = channel.subscribe()
    with caplog.at_level(logging.WARNING, logger="controller"):
        delivered = [channel.emit(n) for n in range(3)]

    assert delivered == [1, 1, 0]
    assert drain(subscription) == [0, 1]
    assert "buffer full" in caplog.text


def test_state_subscriber_gets_latest_then_updates():
    async def scenario():
        controller = CounterController()
        await controller.dispatch(Increment())
        states = controller.subscribe_state()
        seen = [await states.get()]
        await controller.dispatch(Increment())
        seen.append(await states.get())
        return seen

    assert [s.counter for s in asyncio.run(scenario())] == [1, 2]


def test_slow_state_subscriber_only_sees_latest():
    flow = StateFlow(0)
    subscription = flow.subscribe()
    for value in (1, 2, 3):
        flow.set(value)
    assert drain(subscription) == [3]


def test_equal_state_is_not_republished():
    flow = StateFlow(CounterState())
    subscription = flow.subscribe()
    drain(subscription)
    assert flow.set(CounterState()) is False
    assert drain(subscription) == []


def test_update_reads_latest_state_not_a_captured_copy():
    async def scenario():
        controller = CounterController()
        stale = controller.current_state()
        controller.set_state(label="x")
        controller.update_state(lambda s: replace(s, counter=s.counter + 1))
        return stale, controller.current_state()

    stale, latest = asyncio.run(scenario())
    assert stale == CounterState()
    assert latest == CounterState(counter=1, label="x")


def test_handler_errors_are_logged(caplog):
    async def scenario():
        controller = CounterController()
        controller.dispatch(Explode())
        await controller.join()
        return controller

    with caplog.at_level(logging.ERROR, logger="controller"):
        controller = asyncio.run(scenario())

    assert "boom" in caplog.text
    assert controller.in_flight == 0


def test_close_ends_subscriptions_and_rejects_events():
    async def scenario():
        controller = CounterController()
        states = controller.subscribe_state()
        effects = controller.subscribe_effects()
        await controller.close()
        seen = [state async for state in states]
        with pytest.raises(StopAsyncIteration):
            await effects.get()
        with pytest.raises(RuntimeError):
            controller.dispatch(Increment())
        return seen

    assert asyncio.run(scenario()) == []


def test_subscription_context_manager_unsubscribes():
    flow = StateFlow(0)
    with flow.subscribe():
        assert flow.subscriber_count == 1
    assert flow.subscriber_count == 0
