"""
Transition Detector - discrete regime changes in order flow.

Reports STATE CHANGES rather than continuous dominance, so it fires a
handful of events per minute instead of one per tick.

Rules, first match wins:
1. THRUST_UP / THRUST_DOWN - strong imbalance that changed sharply vs ~1s
   ago, at enough velocity.
2. PULLBACK_EXHAUSTION - the ~1s reference was a counter-trend excursion
   against the last thrust and the current imbalance has faded.
3. ABSORPTION - from NEUTRAL, heavy two-sided activity with no net side.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .aggregator import compute_window_stats
from .config import TransitionConfig, merge_config
from .data_types import ImbalanceSample, TransitionEvent, TransitionType, WindowStats
from .normalizer import RawTick, normalize_tick
from .rolling_window import ImbalanceHistory, TickWindow

logger = logging.getLogger(__name__)


class RegimeState(Enum):
    """Current regime as seen by the transition detector."""

    NEUTRAL = "NEUTRAL"
    THRUST_UP = "THRUST_UP"
    THRUST_DOWN = "THRUST_DOWN"
    ABSORPTION = "ABSORPTION"


class ThrustDirection(Enum):
    """Direction of the last recorded thrust (pullback context)."""

    UP = "UP"
    DOWN = "DOWN"
    NONE = "NONE"


@dataclass
class TransitionState:
    """Mutable state of the transition detector."""

    current: RegimeState = RegimeState.NEUTRAL
    entered_at: Optional[int] = None
    last_event_at: Optional[int] = None  # None = never emitted
    thrust_direction: ThrustDirection = ThrustDirection.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_state": self.current.value,
            "state_entered_at": self.entered_at,
            "last_event_at": self.last_event_at,
            "thrust_direction": self.thrust_direction.value,
        }


@dataclass(frozen=True)
class _Detection:
    transition_type: TransitionType
    change: float


class TransitionDetector:
    """
    Event-based regime-transition detector.

    Owns its own tick window (independent of any dominance detector) and a
    bounded imbalance history.
    """

    def __init__(self, config: Optional[TransitionConfig] = None):
        self._config = config or TransitionConfig()
        self._window = TickWindow(self._config.window_ms, self._config.max_window_trades)
        self._history = ImbalanceHistory(self._history_depth_ms())
        self._state = TransitionState()
        self._last_stats: Optional[WindowStats] = None

    def _history_depth_ms(self) -> int:
        return int(self._config.history_depth_s * 1000)

    @property
    def config(self) -> TransitionConfig:
        return self._config

    @property
    def state(self) -> TransitionState:
        return replace(self._state)

    @property
    def current_state(self) -> RegimeState:
        return self._state.current

    @property
    def thrust_direction(self) -> ThrustDirection:
        return self._state.thrust_direction

    @property
    def last_stats(self) -> Optional[WindowStats]:
        return self._last_stats

    def update_config(self, partial: Mapping[str, Any]) -> TransitionConfig:
        self._config = merge_config(self._config, partial)
        self._window.resize(self._config.window_ms, self._config.max_window_trades)
        self._history.resize(self._history_depth_ms())
        return self._config

    def reset(self) -> None:
        self._window.clear()
        self._history.clear()
        self._state = TransitionState()
        self._last_stats = None

    def ingest(self, raw: RawTick) -> Optional[TransitionEvent]:
        """
        Process one raw tick.

        Returns:
            TransitionEvent when a transition is detected, else None
        """
        tick = normalize_tick(raw)
        if tick is None:
            logger.debug(f"Dropping malformed tick: {raw!r}")
            return None

        cfg = self._config
        now = tick.timestamp

        self._window.push(tick)
        self._window.prune(now)

        stats = compute_window_stats(self._window, cfg.window_ms, cfg.dominance_metric, now)
        self._last_stats = stats

        # History is updated on every tick, paced or not
        self._history.append(ImbalanceSample(now, stats.imbalance, stats.trades_per_sec))

        last = self._state.last_event_at
        if last is not None and now - last < cfg.min_event_interval_ms:
            return None

        detection = self._detect(stats)
        if detection is None:
            return None

        self._apply(detection.transition_type, now)
        self._state.last_event_at = now

        event = TransitionEvent(
            timestamp=now,
            transition_type=detection.transition_type,
            imbalance=stats.imbalance,
            velocity=stats.trades_per_sec,
            vol_per_sec=stats.vol_per_sec,
            window_ms=cfg.window_ms,
            buy_vol=stats.buy_vol,
            sell_vol=stats.sell_vol,
            buy_count=stats.buy_count,
            sell_count=stats.sell_count,
            change=detection.change,
            trend_direction=(
                self._state.thrust_direction.value
                if detection.transition_type is TransitionType.PULLBACK_EXHAUSTION
                else None
            ),
            total_vol=(
                stats.total_vol
                if detection.transition_type is TransitionType.ABSORPTION
                else None
            ),
        )

        if cfg.debug:
            logger.debug(f"[transition] emit {event.to_dict()}")

        return event

    def _detect(self, stats: WindowStats) -> Optional[_Detection]:
        cfg = self._config
        reference = self._history.reference(cfg.reference_lag_ms)
        if reference is None:
            return None

        current = stats.imbalance
        previous = reference.imbalance
        change = current - previous
        velocity = stats.trades_per_sec

        # 1. Thrust
        if velocity >= cfg.thrust_min_velocity:
            if current < -cfg.thrust_threshold and change < -cfg.thrust_change:
                return _Detection(TransitionType.THRUST_DOWN, change)
            if current > cfg.thrust_threshold and change > cfg.thrust_change:
                return _Detection(TransitionType.THRUST_UP, change)

        # 2. Pullback exhaustion (counter-move against the last thrust faded)
        trend = self._state.thrust_direction
        was_pullback = (
            trend is ThrustDirection.DOWN and previous > cfg.pullback_threshold
        ) or (
            trend is ThrustDirection.UP and previous < -cfg.pullback_threshold
        )
        if was_pullback and abs(current) < cfg.pullback_fade and abs(change) > cfg.pullback_fade:
            return _Detection(TransitionType.PULLBACK_EXHAUSTION, change)

        # 3. Absorption
        if (
            self._state.current is RegimeState.NEUTRAL
            and abs(current) < cfg.absorption_threshold
            and velocity >= cfg.absorption_min_velocity
            and stats.total_count >= cfg.absorption_min_trades
        ):
            return _Detection(TransitionType.ABSORPTION, change)

        return None

    def _apply(self, transition_type: TransitionType, now: int) -> None:
        if transition_type is TransitionType.THRUST_UP:
            self._state.current = RegimeState.THRUST_UP
            self._state.thrust_direction = ThrustDirection.UP
            self._state.entered_at = now
        elif transition_type is TransitionType.THRUST_DOWN:
            self._state.current = RegimeState.THRUST_DOWN
            self._state.thrust_direction = ThrustDirection.DOWN
            self._state.entered_at = now
        elif transition_type is TransitionType.PULLBACK_EXHAUSTION:
            # Back to neutral; thrust direction kept as trend context
            self._state.current = RegimeState.NEUTRAL
        elif transition_type is TransitionType.ABSORPTION:
            self._state.current = RegimeState.ABSORPTION
            self._state.entered_at = now

    def get_state(self) -> Dict[str, Any]:
        return {
            "config": self._config,
            **self._state.to_dict(),
            "imbalance_history": self._history.to_list(),
            "last_computed": self._last_stats.to_dict() if self._last_stats else None,
            "window_size": len(self._window),
        }
