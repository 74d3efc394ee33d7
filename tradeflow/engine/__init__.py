"""
Order-Flow Signal Engine

Three independent analyzers over one stream of tape prints:

```
TICKS (timestamp, side, volume)
        ↓
NORMALIZER (field aliases, ASK→BUY / BID→SELL)
        ↓
├─ DOMINANCE   200ms window, hysteresis     → FlowEvent (continuous)
├─ TRANSITION  1s window + 3s imbalance log → TransitionEvent (discrete)
└─ PULSE       1s per-side rates vs EMA     → (side, pseudo_volume, duration)
```

Usage:
    from tradeflow.engine import TradeFlowEngine

    async def main():
        engine = TradeFlowEngine()
        engine.on_flow(lambda e: print(e.side, e.strength))
        engine.on_transition(lambda e: print(e.transition_type))

        async with engine:
            for raw in ticks:
                engine.ingest(raw)

    asyncio.run(main())

Each analyzer can also be used on its own:

    detector = DominanceDetector()
    event = detector.ingest({"timestamp": 1_700_000_000_000, "side": "ASK", "volume": 3})
"""

from .aggregator import compute_window_stats
from .config import DominanceConfig, EngineConfig, PulseConfig, TransitionConfig, merge_config
from .data_types import (
    DominanceMetric,
    FlowEvent,
    ImbalanceSample,
    PulseFire,
    Side,
    SideRates,
    Tick,
    TransitionEvent,
    TransitionType,
    WindowStats,
)
from .dominance import DominanceDetector, DominanceState
from .driver import AudioTrigger, PulseDriver
from .host import EngineOutput, TradeFlowEngine
from .ingestion import StreamState, StreamStats, TradeFlowStream
from .metrics import EngineMetrics, LatencyTracker, MetricsCollector, RateTracker
from .normalizer import FIELD_ALIASES, SIDE_ALIASES, normalize_tick
from .pulse import EmaBaseline, PulseScheduler
from .rolling_window import ImbalanceHistory, TickWindow
from .transition import RegimeState, ThrustDirection, TransitionDetector, TransitionState

__all__ = [
    # Data types
    "Side",
    "DominanceMetric",
    "Tick",
    "SideRates",
    "WindowStats",
    "ImbalanceSample",
    "FlowEvent",
    "TransitionType",
    "TransitionEvent",
    "PulseFire",
    # Config
    "DominanceConfig",
    "TransitionConfig",
    "PulseConfig",
    "EngineConfig",
    "merge_config",
    # Normalization / windows
    "normalize_tick",
    "FIELD_ALIASES",
    "SIDE_ALIASES",
    "TickWindow",
    "ImbalanceHistory",
    "compute_window_stats",
    # Analyzers
    "DominanceDetector",
    "DominanceState",
    "TransitionDetector",
    "TransitionState",
    "RegimeState",
    "ThrustDirection",
    "EmaBaseline",
    "PulseScheduler",
    "PulseDriver",
    "AudioTrigger",
    # Host
    "TradeFlowEngine",
    "EngineOutput",
    # Ingestion
    "TradeFlowStream",
    "StreamState",
    "StreamStats",
    # Metrics
    "MetricsCollector",
    "EngineMetrics",
    "LatencyTracker",
    "RateTracker",
]
