"""
Tests for the periodic pulse driver.
"""

import asyncio

import pytest

from tradeflow.engine.data_types import Side, SideRates
from tradeflow.engine.driver import PulseDriver
from tradeflow.engine.pulse import PulseScheduler


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def buy_active_scheduler():
    """Scheduler with BUY active since ts=100."""
    scheduler = PulseScheduler()
    scheduler.update_from_rates(SideRates(10, 10, 10, 10), 0)
    scheduler.update_from_rates(SideRates(20, 10, 20, 10), 100)
    assert scheduler.active_side is Side.BUY
    return scheduler


class TestStep:
    """Synchronous polling."""

    def test_silent_scheduler_never_fires(self):
        calls = []
        driver = PulseDriver(PulseScheduler(), on_fire=lambda *a: calls.append(a), clock=FakeClock(0))

        assert driver.step() is None
        assert calls == []
        assert driver.fire_count == 0

    def test_due_pulse_reaches_trigger(self):
        calls = []
        clock = FakeClock(100)
        driver = PulseDriver(buy_active_scheduler(), on_fire=lambda *a: calls.append(a), clock=clock)

        fire = driver.step()

        assert fire is not None
        assert driver.fire_count == 1
        side, pseudo_volume, duration_s = calls[0]
        assert side is Side.BUY
        assert pseudo_volume == fire.pseudo_volume
        assert duration_s == pytest.approx(0.045)

    def test_not_due_until_next_fire(self):
        clock = FakeClock(100)
        driver = PulseDriver(buy_active_scheduler(), clock=clock)

        fire = driver.step()
        assert driver.step() is None

        clock.now = fire.next_fire_at
        assert driver.step() is not None
        assert driver.fire_count == 2

    def test_trigger_error_is_isolated(self):
        calls = []

        def broken(*args):
            raise RuntimeError("audio device gone")

        driver = PulseDriver(buy_active_scheduler(), on_fire=broken, clock=FakeClock(100))
        driver.add_callback(lambda *a: calls.append(a))

        assert driver.step() is not None
        assert len(calls) == 1

    def test_remove_callback(self):
        calls = []
        callback = lambda *a: calls.append(a)  # noqa: E731
        driver = PulseDriver(buy_active_scheduler(), on_fire=callback, clock=FakeClock(100))

        driver.remove_callback(callback)
        driver.step()

        assert calls == []

    def test_interval_defaults_to_config(self):
        driver = PulseDriver(PulseScheduler())
        assert driver.interval_ms == 10

        assert PulseDriver(PulseScheduler(), interval_ms=25).interval_ms == 25


class TestLifecycle:
    """Async start/stop."""

    @pytest.mark.asyncio
    async def test_start_stop_idempotent(self):
        driver = PulseDriver(PulseScheduler(), clock=FakeClock(0))

        await driver.start()
        task = driver._task
        await driver.start()

        assert driver.is_running
        assert driver._task is task

        await driver.stop()
        await driver.stop()

        assert not driver.is_running
        assert driver._task is None

    @pytest.mark.asyncio
    async def test_running_driver_fires(self):
        calls = []
        clock = FakeClock(5000)
        driver = PulseDriver(
            buy_active_scheduler(), on_fire=lambda *a: calls.append(a), interval_ms=1, clock=clock
        )

        await driver.start()
        await asyncio.sleep(0.05)
        await driver.stop()

        # Armed at start; the frozen clock never reaches the next slot
        assert len(calls) == 1
        assert calls[0][0] is Side.BUY

    @pytest.mark.asyncio
    async def test_loop_survives_scheduler_errors(self):
        class Exploding(PulseScheduler):
            def advance(self, now):
                raise ValueError("boom")

        driver = PulseDriver(Exploding(), interval_ms=1, clock=FakeClock(0))

        await driver.start()
        await asyncio.sleep(0.02)

        assert driver.is_running
        assert not driver._task.done()
        await driver.stop()
