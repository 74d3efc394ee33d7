"""
Exponential backoff for reconnecting network clients.

Used by the tick stream client between websocket reconnect attempts.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff calculator with jitter.

    Stateless via `calculate(attempt)`, or stateful via `next_delay()` /
    `reset()` for reconnect loops that count their own failures.

    Args:
        base: Base delay in seconds (default: 1.0)
        multiplier: Exponential growth factor (default: 2.0)
        max_delay: Maximum delay cap in seconds (default: 30.0)
        jitter: Add up to +/-25% random jitter (default: True)

    Example:
        >>> backoff = ExponentialBackoff(base=1.0, multiplier=2.0, jitter=False)
        >>> backoff.next_delay()
        1.0
        >>> backoff.next_delay()
        2.0
        >>> backoff.reset()
        >>> backoff.next_delay()
        1.0
    """

    def __init__(
        self,
        base: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float = 30.0,
        jitter: bool = True,
    ):
        self.base = base
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter
        self._attempt = 0

    @property
    def attempts(self) -> int:
        """Consecutive delays handed out since the last reset."""
        return self._attempt

    def calculate(self, attempt: int) -> float:
        """
        Calculate delay for given retry attempt.

        Args:
            attempt: Retry attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(self.base * (self.multiplier**attempt), self.max_delay)

        if self.jitter:
            jitter_amount = delay * 0.25
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)

    def next_delay(self) -> float:
        """Delay for the next attempt; advances the attempt counter."""
        delay = self.calculate(self._attempt)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        """Call after a successful connection."""
        self._attempt = 0
