import asyncio

import pytest

from asclepius.services.countdown import Countdown, CountdownRegistry


def test_display_format():
    assert Countdown(15).display() == "15:00"
    cd = Countdown(1)
    cd.remaining = 5
    assert cd.display() == "0:05"


@pytest.mark.asyncio
async def test_counts_down_to_zero_and_fires_once(instant_sleep):
    fired = []
    cd = Countdown(1, on_time_up=fired.append, sleep=instant_sleep)
    assert not cd.started
    cd.start()
    cd.start()  # no-op
    await cd.wait()

    assert cd.remaining == 0
    assert cd.time_up
    assert cd.display() == "0:00"
    assert fired == [cd]


@pytest.mark.asyncio
async def test_ticks_once_per_interval():
    ticks = []

    async def sleep(seconds):
        ticks.append(seconds)
        await asyncio.sleep(0)

    cd = Countdown(2, sleep=sleep)
    cd.start()
    await cd.wait()
    assert len(ticks) == 120
    assert set(ticks) == {1.0}


@pytest.mark.asyncio
async def test_registry_reuses_countdown_per_exercise(instant_sleep):
    registry = CountdownRegistry(sleep=instant_sleep)
    assert not registry.was_started("a", "e")

    first = registry.start("a", "e", 1)
    second = registry.start("a", "e", 1)
    assert first is second
    assert registry.was_started("a", "e")
    assert not registry.was_started("a", "other")
    await first.wait()


@pytest.mark.asyncio
async def test_cancel_all_stops_running_countdowns():
    gate = asyncio.Event()

    async def blocked_sleep(_):
        await gate.wait()

    registry = CountdownRegistry(sleep=blocked_sleep)
    cd = registry.start("a", "e", 10)
    await asyncio.sleep(0)
    await registry.cancel_all()

    assert not cd.time_up
    assert registry.get("a", "e") is None


@pytest.mark.asyncio
async def test_discard_forgets_and_stops_countdown():
    gate = asyncio.Event()

    async def blocked_sleep(_):
        await gate.wait()

    registry = CountdownRegistry(sleep=blocked_sleep)
    running = registry.start("a", "e1", 10)
    registry.start("a", "e2", 10)
    await asyncio.sleep(0)
    assert len(registry) == 2

    await registry.discard("a", "e1")
    await registry.discard("a", "never-started")

    assert len(registry) == 1
    assert registry.get("a", "e1") is None
    assert not registry.was_started("a", "e1")
    assert not running.time_up
    await registry.cancel_all()
