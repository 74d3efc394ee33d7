"""
Core data types for the order-flow signal engine.

These are the atomic units flowing through the system:
raw tick -> Tick -> WindowStats -> FlowEvent / TransitionEvent / PulseFire.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# =============================================================================
# ENUMS
# =============================================================================


class Side(Enum):
    """Aggressor side of a trade."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class DominanceMetric(Enum):
    """What a dominance ratio / imbalance is measured on."""

    VOLUME = "volume"
    COUNT = "count"


# =============================================================================
# TICKS
# =============================================================================


@dataclass(frozen=True, slots=True)
class Tick:
    """
    Single normalized trade tick.

    Immutable once built by the normalizer. `price` may be NaN when the
    upstream producer did not send one; nothing in the engine reads it.
    """

    timestamp: int  # ms
    side: Side
    volume: float
    price: float = math.nan
    symbol: str = ""

    @property
    def is_buy(self) -> bool:
        return self.side is Side.BUY

    @property
    def signed_volume(self) -> float:
        """Positive for buys, negative for sells."""
        return self.volume if self.is_buy else -self.volume


# =============================================================================
# WINDOW STATISTICS
# =============================================================================


@dataclass(frozen=True, slots=True)
class SideRates:
    """Per-side trade and volume rates (per second)."""

    buy_trades_per_sec: float = 0.0
    sell_trades_per_sec: float = 0.0
    buy_vol_per_sec: float = 0.0
    sell_vol_per_sec: float = 0.0

    def trades_per_sec(self, side: Side) -> float:
        return self.buy_trades_per_sec if side is Side.BUY else self.sell_trades_per_sec

    def vol_per_sec(self, side: Side) -> float:
        return self.buy_vol_per_sec if side is Side.BUY else self.sell_vol_per_sec


@dataclass(frozen=True)
class WindowStats:
    """Statistics recomputed over the current window contents."""

    now_ts: int
    window_ms: int
    metric: DominanceMetric

    buy_vol: float = 0.0
    sell_vol: float = 0.0
    buy_count: int = 0
    sell_count: int = 0

    trades_per_sec: float = 0.0
    vol_per_sec: float = 0.0

    # Share of the chosen metric, 0 when the window is empty
    buy_ratio: float = 0.0
    sell_ratio: float = 0.0

    # Signed dominance in [-1, +1], positive = buy heavy
    imbalance: float = 0.0

    rates: SideRates = field(default_factory=SideRates)

    @property
    def total_vol(self) -> float:
        return self.buy_vol + self.sell_vol

    @property
    def total_count(self) -> int:
        return self.buy_count + self.sell_count

    def ratio(self, side: Side) -> float:
        return self.buy_ratio if side is Side.BUY else self.sell_ratio

    def to_dict(self) -> Dict[str, Any]:
        return {
            "now_ts": self.now_ts,
            "window_ms": self.window_ms,
            "metric": self.metric.value,
            "buy_vol": self.buy_vol,
            "sell_vol": self.sell_vol,
            "total_vol": self.total_vol,
            "buy_count": self.buy_count,
            "sell_count": self.sell_count,
            "total_count": self.total_count,
            "trades_per_sec": self.trades_per_sec,
            "vol_per_sec": self.vol_per_sec,
            "buy_ratio": self.buy_ratio,
            "sell_ratio": self.sell_ratio,
            "imbalance": self.imbalance,
        }


@dataclass(frozen=True, slots=True)
class ImbalanceSample:
    """One entry of the transition detector's imbalance history."""

    timestamp: int
    imbalance: float
    velocity: float  # trades/sec at the time of the sample


# =============================================================================
# EMITTED OUTPUTS
# =============================================================================


@dataclass(frozen=True)
class FlowEvent:
    """
    Emitted by the dominance detector when one side sustains dominance.

    strength is the dominant side's share of the chosen metric (0..1).
    """

    timestamp: int
    side: Side
    strength: float
    trades_per_sec: float
    vol_per_sec: float
    window_ms: int
    buy_vol: float
    sell_vol: float
    buy_count: int
    sell_count: int
    type: str = "flow"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "side": self.side.value,
            "strength": self.strength,
            "trades_per_sec": self.trades_per_sec,
            "vol_per_sec": self.vol_per_sec,
            "window_ms": self.window_ms,
            "buy_vol": self.buy_vol,
            "sell_vol": self.sell_vol,
            "buy_count": self.buy_count,
            "sell_count": self.sell_count,
        }


class TransitionType(Enum):
    """Discrete regime changes the transition detector can report."""

    THRUST_UP = "THRUST_UP"
    THRUST_DOWN = "THRUST_DOWN"
    PULLBACK_EXHAUSTION = "PULLBACK_EXHAUSTION"
    ABSORPTION = "ABSORPTION"


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted by the transition detector on a detected regime change."""

    timestamp: int
    transition_type: TransitionType
    imbalance: float
    velocity: float  # trades/sec
    vol_per_sec: float
    window_ms: int
    buy_vol: float
    sell_vol: float
    buy_count: int
    sell_count: int

    # Transition-specific context
    change: Optional[float] = None  # imbalance delta vs the ~1s reference
    trend_direction: Optional[str] = None  # "UP" / "DOWN" on pullback exhaustion
    total_vol: Optional[float] = None  # set on absorption
    type: str = "transition"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "transition_type": self.transition_type.value,
            "timestamp": self.timestamp,
            "imbalance": self.imbalance,
            "velocity": self.velocity,
            "vol_per_sec": self.vol_per_sec,
            "window_ms": self.window_ms,
            "buy_vol": self.buy_vol,
            "sell_vol": self.sell_vol,
            "buy_count": self.buy_count,
            "sell_count": self.sell_count,
            "change": self.change,
            "trend_direction": self.trend_direction,
            "total_vol": self.total_vol,
        }


@dataclass(frozen=True)
class PulseFire:
    """
    One fire instruction from the pulse scheduler.

    The audio-trigger collaborator receives (side, pseudo_volume, duration_s).
    """

    fired_at: int
    side: Side
    pseudo_volume: float
    duration_s: float
    rate: float  # pulses/sec the next fire was scheduled with
    pace_z: float
    vol_z: float
    next_fire_at: float
