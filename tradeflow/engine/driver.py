"""
Periodic pulse driver.

Polls a PulseScheduler every `interval_ms` on the running asyncio loop and
hands due pulses to the audio-trigger collaborator. The scheduler itself
owns no timer; stopping the driver releases the only background resource.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from .data_types import PulseFire, Side
from .pulse import PulseScheduler

logger = logging.getLogger(__name__)

# (side, pseudo_volume, duration_seconds)
AudioTrigger = Callable[[Side, float, float], None]


def monotonic_ms() -> float:
    """Wall-clock milliseconds from a monotonic source."""
    return time.monotonic() * 1000


class PulseDriver:
    """
    Fixed-period driver for a PulseScheduler.

    start/stop are idempotent.

    Example:
        driver = PulseDriver(scheduler, on_fire=audio.play_trade)
        await driver.start()
        ...
        await driver.stop()
    """

    def __init__(
        self,
        scheduler: PulseScheduler,
        on_fire: Optional[AudioTrigger] = None,
        interval_ms: Optional[int] = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self._scheduler = scheduler
        self._interval_ms = interval_ms
        self._clock = clock
        self._callbacks: List[AudioTrigger] = []
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.fire_count = 0

        if on_fire:
            self.add_callback(on_fire)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_ms(self) -> int:
        if self._interval_ms is not None:
            return self._interval_ms
        return self._scheduler.config.tick_interval_ms

    def add_callback(self, callback: AudioTrigger) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: AudioTrigger) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def step(self) -> Optional[PulseFire]:
        """Poll the scheduler once and dispatch a due pulse."""
        fire = self._scheduler.advance(self._clock())
        if fire is None:
            return None

        self.fire_count += 1
        for callback in self._callbacks:
            try:
                callback(fire.side, fire.pseudo_volume, fire.duration_s)
            except Exception as e:
                logger.error(f"Audio trigger callback error: {e}")
        return fire

    async def start(self) -> None:
        """Start polling on the running loop."""
        if self._running:
            return

        self._running = True
        self._scheduler.arm(self._clock())
        self._task = asyncio.create_task(self._run())
        logger.info(f"Pulse driver started ({self.interval_ms}ms period)")

    async def stop(self) -> None:
        """Stop polling and release the task."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Pulse driver stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                self.step()
                await asyncio.sleep(max(1, self.interval_ms) / 1000)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Pulse driver error: {e}")
                await asyncio.sleep(max(1, self.interval_ms) / 1000)
