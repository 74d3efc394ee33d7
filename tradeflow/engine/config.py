"""
Configuration for the order-flow analyzers.

Each analyzer gets an immutable config struct at construction. Updates go
through `merge_config`, which returns a new struct and never raises: unknown
keys and unusable values are logged and skipped.
"""

import dataclasses
import logging
import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, TypeVar

from .data_types import DominanceMetric

logger = logging.getLogger(__name__)

C = TypeVar("C")


@dataclass(frozen=True)
class DominanceConfig:
    """Configuration for the dominance (flow) detector."""

    # Rolling window
    window_ms: int = 200
    max_window_trades: int = 1000  # safety cap

    # Hysteresis thresholds
    enter_dominance: float = 0.70
    exit_dominance: float = 0.60

    # Activity gates
    min_trades_per_sec: float = 20.0
    min_total_volume_in_window: float = 0.0

    # Emission pacing
    max_events_per_sec: float = 25.0
    cooldown_ms: int = 0

    # State behavior
    require_sustained_ms: int = 0
    lock_side_ms: int = 0

    dominance_metric: DominanceMetric = DominanceMetric.VOLUME
    debug: bool = False

    @property
    def min_emit_interval_ms(self) -> float:
        """Minimum spacing between emitted events (rate clamped to >= 1/s)."""
        return 1000.0 / max(1.0, self.max_events_per_sec)


@dataclass(frozen=True)
class TransitionConfig:
    """Configuration for the regime-transition detector."""

    window_ms: int = 1000
    max_window_trades: int = 500

    # Thrust: directional acceleration
    thrust_threshold: float = 0.6
    thrust_change: float = 0.3
    thrust_min_velocity: float = 20.0

    # Pullback exhaustion
    pullback_threshold: float = 0.3
    pullback_fade: float = 0.2

    # Absorption: two-sided activity, no net direction
    absorption_threshold: float = 0.2
    absorption_min_velocity: float = 20.0
    absorption_min_trades: int = 15

    history_depth_s: float = 3.0
    reference_lag_ms: int = 1000  # "previous" sample is looked up this far back
    min_event_interval_ms: int = 500

    dominance_metric: DominanceMetric = DominanceMetric.VOLUME
    debug: bool = False


@dataclass(frozen=True)
class PulseConfig:
    """Configuration for the adaptive-baseline pulse scheduler."""

    # Baselines
    baseline_window_ms: int = 45_000
    sensitivity_k: float = 1.0  # threshold = ema + K * deviation
    min_abs_trades_per_sec: float = 4.0
    min_abs_vol_per_sec: float = 7.0

    # Side selection
    switch_margin_z: float = 0.6
    min_switch_ms: int = 60

    # Pulse shaping
    min_rate: float = 3.0
    max_rate: float = 28.0
    rate_curve: float = 1.7
    click_duration_s: float = 0.045

    # Loudness mapping
    min_pseudo_volume: float = 4.0
    max_pseudo_volume: float = 100.0
    full_scale_z_vol: float = 3.0
    full_scale_z_pace: float = 3.0

    # Driver period
    tick_interval_ms: int = 10


@dataclass(frozen=True)
class EngineConfig:
    """Host-level configuration bundling all three analyzers."""

    dominance: DominanceConfig = field(default_factory=DominanceConfig)
    transition: TransitionConfig = field(default_factory=TransitionConfig)
    pulse: PulseConfig = field(default_factory=PulseConfig)

    # Window that feeds per-side rates into the pulse scheduler
    rate_window_ms: int = 1000
    rate_max_window_trades: int = 5000

    enable_dominance: bool = True
    enable_transition: bool = True
    enable_pulse: bool = True

    @classmethod
    def from_env(cls, prefix: str = "TRADEFLOW_") -> "EngineConfig":
        """
        Build a config from environment overrides.

        Keys look like TRADEFLOW_DOMINANCE__ENTER_DOMINANCE=0.75 for nested
        fields and TRADEFLOW_RATE_WINDOW_MS=2000 for host fields.
        """
        config = cls()
        nested: dict = {}
        top: dict = {}
        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue
            name = key[len(prefix):].lower()
            if "__" in name:
                section, attr = name.split("__", 1)
                nested.setdefault(section, {})[attr] = value
            else:
                top[name] = value
        for section, partial in nested.items():
            top[section] = partial
        return merge_config(config, top)


def _coerce(current: Any, value: Any) -> Any:
    """Coerce `value` to the type of `current`. Raises ValueError/TypeError."""
    if isinstance(current, Enum):
        if isinstance(value, type(current)):
            return value
        return type(current)(str(value).strip().lower())
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
        raise ValueError(f"not a boolean: {value!r}")
    if isinstance(current, (int, float)):
        if isinstance(value, bool):
            raise TypeError("boolean given for numeric field")
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"non-finite value: {value!r}")
        if isinstance(current, int):
            return int(number)
        return number
    return value


def merge_config(config: C, partial: Optional[Mapping[str, Any]]) -> C:
    """
    Return a new config with `partial` applied on top of `config`.

    Nested config structs accept nested mappings (or a replacement struct).
    Unknown keys and values that cannot be coerced are logged and ignored.
    """
    if not partial:
        return config
    if not isinstance(partial, Mapping):
        logger.warning(
            f"{type(config).__name__}: ignoring non-mapping update {type(partial).__name__}"
        )
        return config

    fields = {f.name: f for f in dataclasses.fields(config)}
    changes = {}

    for key, value in partial.items():
        if key not in fields:
            logger.warning(f"{type(config).__name__}: ignoring unknown key '{key}'")
            continue

        current = getattr(config, key)
        if dataclasses.is_dataclass(current) and not isinstance(value, type(current)):
            if isinstance(value, Mapping):
                changes[key] = merge_config(current, value)
            else:
                logger.warning(
                    f"{type(config).__name__}: '{key}' expects a mapping, got {type(value).__name__}"
                )
            continue

        try:
            changes[key] = _coerce(current, value)
        except (TypeError, ValueError) as e:
            logger.warning(f"{type(config).__name__}: ignoring '{key}'={value!r} ({e})")

    if not changes:
        return config
    return dataclasses.replace(config, **changes)
