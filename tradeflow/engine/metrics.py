"""
Engine telemetry.

Ingest latency, tick throughput and emitted-event counts, kept apart from
analyzer state so a host can report on the engine without touching it.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple


def _percentile(ordered: List[float], q: float) -> float:
    """Nearest-rank percentile over an already sorted list."""
    if not ordered:
        return 0.0
    return ordered[min(int(len(ordered) * q), len(ordered) - 1)]


@dataclass
class LatencyStats:
    """Latency summary for one timed operation (milliseconds)."""
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    # Over the retained samples only
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


@dataclass
class RateStats:
    """Event rate over a trailing window."""
    total_count: int = 0
    window_count: int = 0
    window_ms: int = 1000
    rate_per_second: float = 0.0


class LatencyTracker:
    """Running latency totals plus a bounded sample buffer for percentiles."""

    def __init__(self, window_size: int = 1000):
        self._samples: Deque[float] = deque(maxlen=window_size)
        self._lock = threading.Lock()
        self._reset_totals()

    def _reset_totals(self) -> None:
        self._count = 0
        self._total_ms = 0.0
        self._min_ms = float("inf")
        self._max_ms = 0.0
        self._last_ms = 0.0

    def record(self, latency_ms: float) -> None:
        with self._lock:
            self._samples.append(latency_ms)
            self._count += 1
            self._total_ms += latency_ms
            self._last_ms = latency_ms
            if latency_ms < self._min_ms:
                self._min_ms = latency_ms
            if latency_ms > self._max_ms:
                self._max_ms = latency_ms

    def get_stats(self) -> LatencyStats:
        with self._lock:
            ordered = sorted(self._samples)
            return LatencyStats(
                count=self._count,
                total_ms=self._total_ms,
                min_ms=self._min_ms if self._count else 0.0,
                max_ms=self._max_ms,
                last_ms=self._last_ms,
                p50_ms=_percentile(ordered, 0.50),
                p95_ms=_percentile(ordered, 0.95),
                p99_ms=_percentile(ordered, 0.99),
            )

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
            self._reset_totals()


class RateTracker:
    """
    Events per second over a trailing window of monotonic time.

    Each `record` call is one bucket; buckets older than the window are
    evicted on every record and read.
    """

    def __init__(self, window_ms: int = 1000, clock: Callable[[], float] = time.monotonic):
        self._window_ms = window_ms
        self._clock = clock
        self._buckets: Deque[Tuple[float, int]] = deque()
        self._window_count = 0
        self._total_count = 0
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self._window_ms / 1000.0
        while self._buckets and self._buckets[0][0] < cutoff:
            _, count = self._buckets.popleft()
            self._window_count -= count

    def record(self, count: int = 1) -> None:
        now = self._clock()
        with self._lock:
            self._buckets.append((now, count))
            self._window_count += count
            self._total_count += count
            self._evict(now)

    def get_stats(self) -> RateStats:
        now = self._clock()
        with self._lock:
            self._evict(now)
            window_s = max(self._window_ms, 1) / 1000.0
            return RateStats(
                total_count=self._total_count,
                window_count=self._window_count,
                window_ms=self._window_ms,
                rate_per_second=self._window_count / window_s,
            )

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._window_count = 0
            self._total_count = 0


class Timer:
    """Context manager feeding elapsed wall time into a LatencyTracker."""

    def __init__(self, tracker: LatencyTracker):
        self._tracker = tracker
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc) -> None:
        self._tracker.record((time.perf_counter() - self._started) * 1000.0)


@dataclass
class EngineMetrics:
    """Point-in-time engine telemetry."""
    timestamp_ms: int
    ticks_per_second: float = 0.0
    ticks_accepted: int = 0
    ticks_dropped: int = 0
    out_of_order_ticks: int = 0
    flow_events: int = 0
    transition_events: int = 0
    pulses_fired: int = 0
    callback_errors: int = 0
    ingest_latency: LatencyStats = field(default_factory=LatencyStats)


class MetricsCollector:
    """
    Counters, latency and rate trackers for one engine host.

    Usage:
        metrics = MetricsCollector()
        with metrics.time("ingest"):
            engine.ingest(raw)
        metrics.increment("flow_events")
        logger.info(metrics.get_summary())
    """

    COUNTERS = (
        "ticks_accepted",
        "ticks_dropped",
        "out_of_order_ticks",
        "flow_events",
        "transition_events",
        "pulses_fired",
        "callback_errors",
    )

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._latencies: Dict[str, LatencyTracker] = {"ingest": LatencyTracker()}
        self._rates: Dict[str, RateTracker] = {"ticks": RateTracker(clock=clock)}
        self._counters: Dict[str, int] = dict.fromkeys(self.COUNTERS, 0)
        self._lock = threading.Lock()
        self._started = clock()

    def time(self, operation: str) -> Timer:
        tracker = self._latencies.get(operation)
        if tracker is None:
            tracker = self._latencies[operation] = LatencyTracker()
        return Timer(tracker)

    def record_event(self, event_type: str, count: int = 1) -> None:
        tracker = self._rates.get(event_type)
        if tracker is None:
            tracker = self._rates[event_type] = RateTracker(clock=self._clock)
        tracker.record(count)

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] = self._counters.get(counter, 0) + amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_latency_stats(self, operation: str) -> Optional[LatencyStats]:
        tracker = self._latencies.get(operation)
        if tracker is None:
            return None
        return tracker.get_stats()

    def get_rate_stats(self, event_type: str) -> Optional[RateStats]:
        tracker = self._rates.get(event_type)
        if tracker is None:
            return None
        return tracker.get_stats()

    def get_snapshot(self) -> EngineMetrics:
        with self._lock:
            counters = dict(self._counters)
        return EngineMetrics(
            timestamp_ms=int(time.time() * 1000),
            ticks_per_second=self._rates["ticks"].get_stats().rate_per_second,
            ingest_latency=self._latencies["ingest"].get_stats(),
            **{name: counters.get(name, 0) for name in self.COUNTERS},
        )

    def get_summary(self) -> Dict[str, Any]:
        """Nested dict for logging or the console runner."""
        snap = self.get_snapshot()
        latency = snap.ingest_latency
        return {
            "uptime_seconds": round(self._clock() - self._started, 1),
            "ticks": {
                "per_second": f"{snap.ticks_per_second:.1f}",
                "accepted": snap.ticks_accepted,
                "dropped": snap.ticks_dropped,
                "out_of_order": snap.out_of_order_ticks,
            },
            "events": {
                "flow": snap.flow_events,
                "transition": snap.transition_events,
                "pulses": snap.pulses_fired,
            },
            "ingest_latency_ms": {
                "mean": f"{latency.mean_ms:.3f}",
                "p95": f"{latency.p95_ms:.3f}",
                "max": f"{latency.max_ms:.3f}",
            },
        }

    def reset(self) -> None:
        for latency in self._latencies.values():
            latency.reset()
        for rate in self._rates.values():
            rate.reset()
        with self._lock:
            self._counters = dict.fromkeys(self._counters, 0)
        self._started = self._clock()
