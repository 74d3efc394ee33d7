"""
Adaptive Baseline Pulse Scheduler.

Pace = trades/sec, loudness = vol/sec, each measured against a per-side
adaptive EMA baseline. One side plays at a time; switching sides needs a
z-score margin and a minimum dwell so near-equal pressure does not thrash.

Not event based: the scheduler holds a scheduling intent (active side, next
fire time) and an external driver polls `advance(now)`, getting back zero or
one fire instructions per call.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from .config import PulseConfig, merge_config
from .data_types import PulseFire, Side, SideRates

logger = logging.getLogger(__name__)

PACE = "pace"
LOUDNESS = "loudness"

_MIN_DEV = 1e-3


@dataclass
class EmaBaseline:
    """
    EMA of a rate plus an EMA of absolute deviation (running spread).

    The smoothing factor is time based: alpha = 1 - exp(-dt / tau).
    """

    ema: float = 0.0
    mean_abs_deviation: float = 1.0
    initialized: bool = False
    last_update_ts: float = 0.0

    def update(self, value: float, ts: float, tau_ms: float) -> None:
        if not self.initialized:
            self.ema = value
            self.mean_abs_deviation = max(_MIN_DEV, value * 0.25 + 1)
            self.initialized = True
            self.last_update_ts = ts
            return

        dt = max(1.0, ts - self.last_update_ts)
        self.last_update_ts = ts

        alpha = 1 - math.exp(-dt / tau_ms)
        self.ema += alpha * (value - self.ema)

        abs_err = abs(value - self.ema)
        self.mean_abs_deviation = max(
            _MIN_DEV, self.mean_abs_deviation + alpha * (abs_err - self.mean_abs_deviation)
        )

    def z_score(self, value: float, sensitivity_k: float, floor: float) -> float:
        """How far `value` sits above max(floor, ema + k*dev), in deviation units."""
        threshold = max(floor, self.ema + sensitivity_k * self.mean_abs_deviation)
        return (value - threshold) / max(_MIN_DEV, self.mean_abs_deviation)


def _fresh_baselines() -> Dict[Side, Dict[str, EmaBaseline]]:
    return {side: {PACE: EmaBaseline(), LOUDNESS: EmaBaseline()} for side in Side}


class PulseScheduler:
    """
    Picks the dominant side from adaptive baselines and paces pulses for it.

    Example:
        scheduler = PulseScheduler()
        scheduler.update_from_rates(stats.rates, ts=now_ms)
        fire = scheduler.advance(now_ms)
        if fire:
            audio.play_trade(fire.side, fire.pseudo_volume, fire.duration_s)
    """

    def __init__(self, config: Optional[PulseConfig] = None):
        self._config = config or PulseConfig()
        self._baselines = _fresh_baselines()
        self._latest = SideRates()
        self._latest_ts: float = 0.0

        self._active_side: Optional[Side] = None
        self._active_score: float = 0.0
        self._last_switch_at: float = 0.0
        self._next_fire_at: float = 0.0

    @property
    def config(self) -> PulseConfig:
        return self._config

    @property
    def active_side(self) -> Optional[Side]:
        return self._active_side

    @property
    def active_score(self) -> float:
        """Pace z-score of the active side (0 when silent)."""
        return self._active_score

    @property
    def next_fire_at(self) -> float:
        return self._next_fire_at

    @property
    def latest_rates(self) -> SideRates:
        return self._latest

    def baseline(self, side: Side, metric: str) -> EmaBaseline:
        """Copy of one baseline tuple."""
        return replace(self._baselines[side][metric])

    def update_config(self, partial: Mapping[str, Any]) -> PulseConfig:
        self._config = merge_config(self._config, partial)
        return self._config

    def reset(self) -> None:
        """Drop baselines and scheduling state."""
        self._baselines = _fresh_baselines()
        self._latest = SideRates()
        self._latest_ts = 0.0
        self._active_side = None
        self._active_score = 0.0
        self._last_switch_at = 0.0
        self._next_fire_at = 0.0

    def arm(self, now: float) -> None:
        """Allow an immediate fire at `now` (used when a driver starts)."""
        self._next_fire_at = now

    # === Baselines ===

    def _tau_ms(self) -> float:
        return max(2000.0, float(self._config.baseline_window_ms))

    def z_score(self, side: Side, metric: str, value: Optional[float] = None) -> float:
        """Z-score of `value` (default: latest rate) against the side's baseline."""
        cfg = self._config
        if metric == PACE:
            floor = cfg.min_abs_trades_per_sec
            if value is None:
                value = self._latest.trades_per_sec(side)
        else:
            floor = cfg.min_abs_vol_per_sec
            if value is None:
                value = self._latest.vol_per_sec(side)
        return self._baselines[side][metric].z_score(value, cfg.sensitivity_k, floor)

    def update_from_rates(self, rates: SideRates, ts: float) -> Optional[Side]:
        """
        Feed per-side rates, update baselines and re-select the active side.

        Returns:
            Active side after the update (None = silence)
        """
        self._latest = rates
        self._latest_ts = ts

        tau = self._tau_ms()
        for side in Side:
            self._baselines[side][PACE].update(rates.trades_per_sec(side), ts, tau)
            self._baselines[side][LOUDNESS].update(rates.vol_per_sec(side), ts, tau)

        self._select_active_side(ts)
        return self._active_side

    # === Side selection ===

    def _select_active_side(self, ts: float) -> None:
        buy_z = self.z_score(Side.BUY, PACE)
        sell_z = self.z_score(Side.SELL, PACE)

        if buy_z <= 0 and sell_z <= 0:
            self._active_side = None
            self._active_score = 0.0
            return

        if buy_z > sell_z:
            candidate, cand_z = Side.BUY, buy_z
        elif sell_z > buy_z:
            candidate, cand_z = Side.SELL, sell_z
        else:
            # Tie favours whoever is already playing
            candidate = self._active_side or Side.BUY
            cand_z = buy_z

        if self._active_side is None:
            self._switch_to(candidate, cand_z, ts)
            return

        if candidate is self._active_side:
            self._active_score = cand_z
            return

        # Keep the active side's score current while it holds
        self._active_score = self.z_score(self._active_side, PACE)

        if ts - self._last_switch_at < self._config.min_switch_ms:
            return

        if cand_z >= self._active_score + self._config.switch_margin_z:
            self._switch_to(candidate, cand_z, ts)

    def _switch_to(self, side: Side, score: float, ts: float) -> None:
        previous = self._active_side
        self._active_side = side
        self._active_score = score
        self._last_switch_at = ts
        self._next_fire_at = ts
        logger.debug(
            f"Pulse side {previous.value if previous else 'NONE'} -> {side.value} (z={score:.2f})"
        )

    # === Shaping ===

    @staticmethod
    def _intensity(z: float, full_scale_z: float) -> float:
        return max(0.0, min(1.0, z / max(_MIN_DEV, full_scale_z)))

    def rate_from_intensity(self, intensity: float) -> float:
        cfg = self._config
        # rate_curve < 0 is treated as 0
        shaped = intensity ** max(0.0, cfg.rate_curve)
        return cfg.min_rate + shaped * (cfg.max_rate - cfg.min_rate)

    def pseudo_volume_from_intensity(self, intensity: float) -> float:
        cfg = self._config
        return cfg.min_pseudo_volume + intensity * (cfg.max_pseudo_volume - cfg.min_pseudo_volume)

    # === Scheduling ===

    def advance(self, now: float) -> Optional[PulseFire]:
        """
        Poll the schedule.

        Returns:
            PulseFire if a pulse is due at `now` and a side is active, else None
        """
        side = self._active_side
        if side is None:
            return None
        if now < self._next_fire_at:
            return None

        cfg = self._config
        pace_i = self._intensity(self._active_score, cfg.full_scale_z_pace)
        rate = self.rate_from_intensity(pace_i)

        vol_z = self.z_score(side, LOUDNESS)
        vol_i = self._intensity(vol_z, cfg.full_scale_z_vol)
        pseudo_volume = self.pseudo_volume_from_intensity(vol_i)

        self._next_fire_at = now + 1000.0 / max(0.1, rate)

        return PulseFire(
            fired_at=int(now),
            side=side,
            pseudo_volume=pseudo_volume,
            duration_s=cfg.click_duration_s,
            rate=rate,
            pace_z=self._active_score,
            vol_z=vol_z,
            next_fire_at=self._next_fire_at,
        )

    def get_state(self) -> Dict[str, Any]:
        return {
            "config": self._config,
            "active_side": self._active_side.value if self._active_side else None,
            "active_score": self._active_score,
            "last_switch_at": self._last_switch_at,
            "next_fire_at": self._next_fire_at,
            "latest_ts": self._latest_ts,
            "latest_rates": self._latest,
            "baselines": {
                side.value: {metric: replace(b) for metric, b in per_side.items()}
                for side, per_side in self._baselines.items()
            },
        }
