"""
Dominance Detector - hysteresis state machine over window dominance.

States: NONE / BUY dominant / SELL dominant (modeled by `dominant_side`).

- Enter: a side's share >= enter_dominance while the other side is not.
- Exit: the dominant side's share falls below exit_dominance.
- Lock: for lock_side_ms after entering, side flips are suppressed
  (exit on collapse still applies).

The enter/exit gap keeps the state from flickering at a single boundary.
Emission is further gated by sustain time, pacing and an optional cooldown.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from .aggregator import compute_window_stats
from .config import DominanceConfig, merge_config
from .data_types import FlowEvent, Side, WindowStats
from .normalizer import RawTick, normalize_tick
from .rolling_window import TickWindow

logger = logging.getLogger(__name__)


@dataclass
class DominanceState:
    """Mutable state of the dominance state machine."""

    dominant_side: Optional[Side] = None
    dominant_since: Optional[int] = None
    locked_until: int = 0
    last_emit_at: Optional[int] = None  # None = never emitted
    cooldown_until: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dominant_side": self.dominant_side.value if self.dominant_side else None,
            "dominant_since": self.dominant_since,
            "locked_until": self.locked_until,
            "last_emit_at": self.last_emit_at,
            "cooldown_until": self.cooldown_until,
        }


class DominanceDetector:
    """
    Emits "flow" events while one side sustains dominance.

    Example:
        detector = DominanceDetector(DominanceConfig(window_ms=300))
        for raw in ticks:
            event = detector.ingest(raw)
            if event:
                audio.play(event.side, event.strength)
    """

    def __init__(self, config: Optional[DominanceConfig] = None):
        self._config = config or DominanceConfig()
        self._window = TickWindow(self._config.window_ms, self._config.max_window_trades)
        self._state = DominanceState()
        self._last_stats: Optional[WindowStats] = None

    @property
    def config(self) -> DominanceConfig:
        return self._config

    @property
    def state(self) -> DominanceState:
        """Copy of the current state (read-only view)."""
        return replace(self._state)

    @property
    def dominant_side(self) -> Optional[Side]:
        return self._state.dominant_side

    @property
    def last_stats(self) -> Optional[WindowStats]:
        return self._last_stats

    def update_config(self, partial: Mapping[str, Any]) -> DominanceConfig:
        """Merge `partial` into the config. Window bounds apply on the next tick."""
        self._config = merge_config(self._config, partial)
        self._window.resize(self._config.window_ms, self._config.max_window_trades)
        return self._config

    def reset(self) -> None:
        """Clear the window, state and last stats."""
        self._window.clear()
        self._state = DominanceState()
        self._last_stats = None

    def ingest(self, raw: RawTick) -> Optional[FlowEvent]:
        """
        Process one raw tick.

        Returns:
            FlowEvent if an event should fire on this tick, else None
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

        if now < self._state.cooldown_until:
            return None

        # Activity gates
        if stats.trades_per_sec < cfg.min_trades_per_sec:
            self._maybe_exit(stats)
            return None
        if stats.total_vol < cfg.min_total_volume_in_window:
            self._maybe_exit(stats)
            return None

        buy_qualifies = stats.buy_ratio >= cfg.enter_dominance
        sell_qualifies = stats.sell_ratio >= cfg.enter_dominance

        if now < self._state.locked_until:
            # Locked: no flips, but a collapse still exits
            self._maybe_exit(stats)
        elif buy_qualifies and not sell_qualifies:
            self._enter_or_continue(Side.BUY, now)
        elif sell_qualifies and not buy_qualifies:
            self._enter_or_continue(Side.SELL, now)
        else:
            # Balanced, in the hysteresis band, or conflicting
            self._maybe_exit(stats)
            return None

        side = self._state.dominant_side
        if side is None:
            return None

        # Sustain
        if (
            cfg.require_sustained_ms > 0
            and self._state.dominant_since is not None
            and now - self._state.dominant_since < cfg.require_sustained_ms
        ):
            return None

        # Pacing
        last = self._state.last_emit_at
        if last is not None and now - last < cfg.min_emit_interval_ms:
            return None

        self._state.last_emit_at = now
        if cfg.cooldown_ms > 0:
            self._state.cooldown_until = now + cfg.cooldown_ms

        event = FlowEvent(
            timestamp=now,
            side=side,
            strength=stats.ratio(side),
            trades_per_sec=stats.trades_per_sec,
            vol_per_sec=stats.vol_per_sec,
            window_ms=cfg.window_ms,
            buy_vol=stats.buy_vol,
            sell_vol=stats.sell_vol,
            buy_count=stats.buy_count,
            sell_count=stats.sell_count,
        )

        if cfg.debug:
            logger.debug(f"[dominance] emit {event.to_dict()}")

        return event

    def _enter_or_continue(self, side: Side, now: int) -> None:
        if self._state.dominant_side is side:
            return

        self._state.dominant_side = side
        self._state.dominant_since = now
        if self._config.lock_side_ms > 0:
            self._state.locked_until = now + self._config.lock_side_ms

    def _maybe_exit(self, stats: WindowStats) -> None:
        side = self._state.dominant_side
        if side is None:
            return

        if stats.ratio(side) < self._config.exit_dominance:
            self._state.dominant_side = None
            self._state.dominant_since = None
            self._state.locked_until = 0

    def get_state(self) -> Dict[str, Any]:
        """Introspection snapshot for UI collaborators."""
        return {
            "config": self._config,
            **self._state.to_dict(),
            "last_computed": self._last_stats.to_dict() if self._last_stats else None,
            "window_size": len(self._window),
        }
