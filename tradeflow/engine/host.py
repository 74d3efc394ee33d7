"""
Engine host - runs the three analyzers side by side on one tick stream.

```
raw tick ──> normalize ──┬──> DominanceDetector  ──> FlowEvent ────────┐
                         ├──> TransitionDetector ──> TransitionEvent ──┼──> callbacks
                         └──> rate window ──> PulseScheduler <── PulseDriver (10ms) ──> audio
```

Each analyzer owns its own window; the host only fans ticks out and
routes outputs to the registered collaborators.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .aggregator import compute_window_stats
from .config import EngineConfig, merge_config
from .data_types import DominanceMetric, FlowEvent, PulseFire, Side, Tick, TransitionEvent
from .dominance import DominanceDetector
from .driver import AudioTrigger, PulseDriver, monotonic_ms
from .metrics import MetricsCollector
from .normalizer import RawTick, normalize_tick
from .pulse import PulseScheduler
from .rolling_window import TickWindow
from .transition import TransitionDetector

logger = logging.getLogger(__name__)


@dataclass
class EngineOutput:
    """What one ingested tick produced."""
    tick: Optional[Tick] = None
    flow: Optional[FlowEvent] = None
    transition: Optional[TransitionEvent] = None
    active_side: Optional[Side] = None

    @property
    def has_event(self) -> bool:
        return self.flow is not None or self.transition is not None


class TradeFlowEngine:
    """
    Host for the dominance, transition and pulse analyzers.

    Usage:
        engine = TradeFlowEngine()
        engine.on_flow(lambda e: print(e.side, e.strength))
        engine.on_pulse(audio.play_trade)

        await engine.start()        # pulse timer
        engine.ingest({"timestamp": ts, "side": "ASK", "volume": 3})
        await engine.stop()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.config = config or EngineConfig()
        self._clock = clock

        self.dominance = DominanceDetector(self.config.dominance)
        self.transition = TransitionDetector(self.config.transition)
        self.pulse = PulseScheduler(self.config.pulse)

        self._rate_window = TickWindow(
            self.config.rate_window_ms, self.config.rate_max_window_trades
        )
        self._driver = PulseDriver(self.pulse, clock=clock)
        self._driver.add_callback(self._handle_pulse_trigger)

        self._last_ts: Optional[int] = None

        self._on_flow: List[Callable[[FlowEvent], Any]] = []
        self._on_transition: List[Callable[[TransitionEvent], Any]] = []
        self._on_pulse: List[AudioTrigger] = []

        self._metrics = MetricsCollector()

    # === Properties ===

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def driver(self) -> PulseDriver:
        return self._driver

    @property
    def is_running(self) -> bool:
        return self._driver.is_running

    # === Callback registration ===

    def on_flow(self, callback: Callable[[FlowEvent], Any]) -> None:
        """Register a consumer for dominance flow events."""
        self._on_flow.append(callback)

    def on_transition(self, callback: Callable[[TransitionEvent], Any]) -> None:
        """Register a consumer for transition events."""
        self._on_transition.append(callback)

    def on_pulse(self, callback: AudioTrigger) -> None:
        """Register the audio trigger called as (side, pseudo_volume, duration_s)."""
        self._on_pulse.append(callback)

    def _dispatch(self, callbacks: List[Callable], *args: Any) -> None:
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                self._metrics.increment("callback_errors")
                logger.error(f"Callback error: {e}")

    def _handle_pulse_trigger(self, side: Side, pseudo_volume: float, duration_s: float) -> None:
        self._metrics.increment("pulses_fired")
        self._dispatch(self._on_pulse, side, pseudo_volume, duration_s)

    # === Ingestion ===

    def ingest(self, raw: RawTick) -> EngineOutput:
        """
        Fan one raw tick out to every enabled analyzer.

        Malformed ticks produce an empty output and never raise.
        """
        with self._metrics.time("ingest"):
            # Ticks without a timestamp are stamped with arrival time
            tick = normalize_tick(raw, default_ts=int(time.time() * 1000))
            if tick is None:
                self._metrics.increment("ticks_dropped")
                logger.debug(f"Dropping malformed tick: {raw!r}")
                return EngineOutput(active_side=self.pulse.active_side)

            self._metrics.increment("ticks_accepted")
            self._metrics.record_event("ticks")

            if self._last_ts is not None and tick.timestamp < self._last_ts:
                # Caller contract: ticks arrive in timestamp order. Counted, not fixed.
                self._metrics.increment("out_of_order_ticks")
                logger.debug(f"Out-of-order tick: {tick.timestamp} < {self._last_ts}")
            else:
                self._last_ts = tick.timestamp

            output = EngineOutput(tick=tick)
            cfg = self.config

            if cfg.enable_dominance:
                output.flow = self.dominance.ingest(tick)
            if cfg.enable_transition:
                output.transition = self.transition.ingest(tick)
            if cfg.enable_pulse:
                self._feed_pulse(tick)
            output.active_side = self.pulse.active_side

        if output.flow is not None:
            self._metrics.increment("flow_events")
            self._dispatch(self._on_flow, output.flow)
        if output.transition is not None:
            self._metrics.increment("transition_events")
            self._dispatch(self._on_transition, output.transition)

        return output

    def _feed_pulse(self, tick: Tick) -> None:
        self._rate_window.push(tick)
        self._rate_window.prune(tick.timestamp)
        stats = compute_window_stats(
            self._rate_window,
            self.config.rate_window_ms,
            DominanceMetric.VOLUME,
            tick.timestamp,
        )
        self.pulse.update_from_rates(stats.rates, self._clock())

    def poll_pulse(self) -> Optional[PulseFire]:
        """Drive the pulse schedule by hand (instead of start())."""
        return self._driver.step()

    # === Administration ===

    def update_config(self, partial: Mapping[str, Any]) -> EngineConfig:
        """
        Merge a partial config. Nested keys: dominance / transition / pulse.

        Example:
            engine.update_config({"dominance": {"enter_dominance": 0.8}})
        """
        self.config = merge_config(self.config, partial)
        self.dominance.update_config(_as_partial(self.config.dominance))
        self.transition.update_config(_as_partial(self.config.transition))
        self.pulse.update_config(_as_partial(self.config.pulse))
        self._rate_window.resize(self.config.rate_window_ms, self.config.rate_max_window_trades)
        return self.config

    def reset(self) -> None:
        """Clear every analyzer's window, history and state."""
        self.dominance.reset()
        self.transition.reset()
        self.pulse.reset()
        self._rate_window.clear()
        self._last_ts = None

    def get_state(self) -> Dict[str, Any]:
        """Read-only snapshot of all analyzers."""
        return {
            "config": self.config,
            "dominance": self.dominance.get_state(),
            "transition": self.transition.get_state(),
            "pulse": self.pulse.get_state(),
            "rate_window_size": len(self._rate_window),
            "last_ts": self._last_ts,
            "running": self.is_running,
        }

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the periodic pulse driver (idempotent)."""
        if self.config.enable_pulse:
            await self._driver.start()

    async def stop(self) -> None:
        """Stop the pulse driver (idempotent)."""
        await self._driver.stop()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


def _as_partial(config: Any) -> Dict[str, Any]:
    return {name: getattr(config, name) for name in config.__dataclass_fields__}
