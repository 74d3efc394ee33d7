"""
Rolling windows over the tick stream.

Time-bounded, size-capped sequences owned by one analyzer instance each.
Appends and front-evictions are O(1) amortized (deque).
"""

from collections import deque
from typing import Deque, Iterator, List, Optional

from .data_types import ImbalanceSample, Tick


class TickWindow:
    """
    Time-bounded, size-capped window of ticks in arrival order.

    `push` only appends; callers prune after every push. After `prune(now)`:
    - every tick has timestamp >= now - window_ms
    - len(window) <= max_trades

    Example:
        window = TickWindow(window_ms=200, max_trades=1000)
        window.push(tick)
        window.prune(tick.timestamp)
    """

    def __init__(self, window_ms: int, max_trades: int = 1000):
        self._window_ms = window_ms
        self._max_trades = max_trades
        self._ticks: Deque[Tick] = deque()

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def max_trades(self) -> int:
        return self._max_trades

    def resize(self, window_ms: int, max_trades: int) -> None:
        """Apply new bounds; takes effect on the next prune."""
        self._window_ms = window_ms
        self._max_trades = max_trades

    def push(self, tick: Tick) -> None:
        self._ticks.append(tick)

    def prune(self, now_ts: int) -> int:
        """
        Evict ticks older than the window, then enforce the size cap.

        Returns:
            Number of ticks removed
        """
        cutoff = now_ts - self._window_ms
        removed = 0

        while self._ticks and self._ticks[0].timestamp < cutoff:
            self._ticks.popleft()
            removed += 1

        # Safety cap against pathological burst rates
        cap = max(1, self._max_trades)
        while len(self._ticks) > cap:
            self._ticks.popleft()
            removed += 1

        return removed

    def clear(self) -> None:
        self._ticks.clear()

    def newest(self) -> Optional[Tick]:
        return self._ticks[-1] if self._ticks else None

    def oldest(self) -> Optional[Tick]:
        return self._ticks[0] if self._ticks else None

    def __iter__(self) -> Iterator[Tick]:
        return iter(self._ticks)

    def __len__(self) -> int:
        return len(self._ticks)

    def __bool__(self) -> bool:
        return bool(self._ticks)


class ImbalanceHistory:
    """
    Short history of imbalance samples covering the last `depth_ms`.

    Used by the transition detector to find a "previous" reference sample.
    """

    def __init__(self, depth_ms: int):
        self._depth_ms = depth_ms
        self._samples: Deque[ImbalanceSample] = deque()

    @property
    def depth_ms(self) -> int:
        return self._depth_ms

    def resize(self, depth_ms: int) -> None:
        self._depth_ms = depth_ms

    def append(self, sample: ImbalanceSample) -> None:
        """Add a sample and drop everything older than depth."""
        self._samples.append(sample)
        self.prune(sample.timestamp)

    def prune(self, now_ts: int) -> None:
        cutoff = now_ts - self._depth_ms
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()

    def closest_to(self, target_ts: int) -> Optional[ImbalanceSample]:
        """
        Nearest-neighbour lookup by timestamp over the whole history.

        Ties resolve to the older sample.
        """
        if not self._samples:
            return None
        return min(self._samples, key=lambda s: abs(s.timestamp - target_ts))

    def reference(self, lag_ms: int) -> Optional[ImbalanceSample]:
        """
        Sample closest to `lag_ms` before the newest one.

        Needs at least two samples; a lone sample has no reference.
        """
        if len(self._samples) < 2:
            return None
        return self.closest_to(self._samples[-1].timestamp - lag_ms)

    def newest(self) -> Optional[ImbalanceSample]:
        return self._samples[-1] if self._samples else None

    def to_list(self) -> List[ImbalanceSample]:
        return list(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)
