"""
Tests for lifecycle-aware polling
"""

import asyncio

import pytest

from sync.polling import ACTIVE, BACKGROUND, INACTIVE, AppLifecycle, ManualRefresher, PollingDriver


class Counter:
    def __init__(self, fail=False):
        self.count = 0
        self.fail = fail

    async def __call__(self):
        self.count += 1
        if self.fail:
            raise RuntimeError("ledger unavailable")


@pytest.mark.asyncio
async def test_polls_on_interval():
    refresh = Counter()
    driver = PollingDriver(refresh, interval=0.01)
    driver.start()
    await asyncio.sleep(0.055)
    driver.stop()

    assert refresh.count >= 3
    assert not driver.is_running


@pytest.mark.asyncio
async def test_refresh_errors_do_not_stop_polling():
    refresh = Counter(fail=True)
    driver = PollingDriver(refresh, interval=0.01)
    driver.start()
    await asyncio.sleep(0.045)

    assert driver.is_running
    driver.stop()
    assert refresh.count >= 2


@pytest.mark.asyncio
async def test_background_pauses_and_foreground_refreshes_immediately():
    lifecycle = AppLifecycle()
    refresh = Counter()
    driver = PollingDriver(refresh, lifecycle=lifecycle, interval=60)
    driver.start()
    assert driver.is_running

    lifecycle.transition(BACKGROUND)
    await asyncio.sleep(0)
    assert not driver.is_running
    assert refresh.count == 0

    lifecycle.transition(ACTIVE)
    await asyncio.sleep(0.01)
    assert refresh.count == 1
    assert driver.is_running
    driver.stop()


@pytest.mark.asyncio
async def test_start_while_backgrounded_waits_for_foreground():
    lifecycle = AppLifecycle(INACTIVE)
    refresh = Counter()
    driver = PollingDriver(refresh, lifecycle=lifecycle, interval=60)
    driver.start()
    assert not driver.is_running

    lifecycle.transition(ACTIVE)
    assert driver.is_running
    driver.stop()


@pytest.mark.asyncio
async def test_foreground_after_stop_does_nothing():
    lifecycle = AppLifecycle()
    refresh = Counter()
    driver = PollingDriver(refresh, lifecycle=lifecycle, interval=60)
    driver.start()
    driver.stop()

    lifecycle.transition(BACKGROUND)
    lifecycle.transition(ACTIVE)
    await asyncio.sleep(0.01)
    assert refresh.count == 0
    assert not driver.is_running


@pytest.mark.asyncio
async def test_background_cancels_running_foreground_refresh():
    lifecycle = AppLifecycle(BACKGROUND)
    started = asyncio.Event()
    outcome = []

    async def slow_refresh():
        started.set()
        try:
            await asyncio.sleep(60)
            outcome.append("finished")
        except asyncio.CancelledError:
            outcome.append("cancelled")
            raise

    driver = PollingDriver(slow_refresh, lifecycle=lifecycle, interval=60)
    driver.start()
    lifecycle.transition(ACTIVE)
    await started.wait()

    lifecycle.transition(BACKGROUND)
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert outcome == ["cancelled"]
    assert not driver.is_running
    driver.stop()


def test_unknown_state():
    with pytest.raises(ValueError):
        AppLifecycle("asleep")
    with pytest.raises(ValueError):
        AppLifecycle().transition("asleep")


def test_lifecycle_callbacks():
    events = []
    lifecycle = AppLifecycle()
    lifecycle.on_foreground(lambda: events.append("fg"))
    lifecycle.on_background(lambda: events.append("bg"))

    lifecycle.transition(INACTIVE)
    lifecycle.transition(BACKGROUND)
    lifecycle.transition(ACTIVE)
    lifecycle.transition(ACTIVE)

    assert events == ["bg", "bg", "fg"]


@pytest.mark.asyncio
async def test_manual_refresh_ignores_overlap():
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_refresh():
        started.set()
        await release.wait()

    refresher = ManualRefresher(slow_refresh)
    first = asyncio.create_task(refresher.refresh())
    await started.wait()

    assert await refresher.refresh() is False
    release.set()
    assert await first is True
    assert refresher.is_refreshing is False


@pytest.mark.asyncio
async def test_manual_refresh_swallows_errors():
    refresher = ManualRefresher(Counter(fail=True))
    assert await refresher.refresh() is True
    assert refresher.is_refreshing is False
