import asyncio

import pytest

from sobit_ecr.network.timers import Timers


@pytest.mark.asyncio
async def test_call_later_fires_once():
    fired = []
    handle = Timers().call_later(0.01, lambda: fired.append(True), name="once")
    await asyncio.sleep(0.05)
    assert fired == [True]
    assert not handle.active


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    fired = []
    handle = Timers().call_later(0.02, lambda: fired.append(True))
    handle.cancel()
    handle.cancel()
    await asyncio.sleep(0.05)
    assert fired == []
    assert handle.cancelled


@pytest.mark.asyncio
async def test_periodic_timer_runs_async_callbacks_until_cancelled():
    ticks = []

    async def tick():
        ticks.append(True)

    handle = Timers().call_periodic(0.01, tick)
    await asyncio.sleep(0.06)
    handle.cancel()
    seen = len(ticks)
    assert seen >= 2
    await asyncio.sleep(0.03)
    assert len(ticks) == seen


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_periodic_timer():
    calls = []

    def explode():
        calls.append(True)
        raise RuntimeError("boom")

    handle = Timers().call_periodic(0.01, explode)
    await asyncio.sleep(0.05)
    handle.cancel()
    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_timer_may_cancel_itself():
    timers = Timers()
    calls = []
    handle = None

    def once_then_stop():
        calls.append(True)
        handle.cancel()

    handle = timers.call_periodic(0.01, once_then_stop)
    await asyncio.sleep(0.05)
    assert calls == [True]
