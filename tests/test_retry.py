"""
Tests for reconnect backoff.
"""

import pytest

from tradeflow.utils.retry import ExponentialBackoff


class TestExponentialBackoff:
    """Tests for ExponentialBackoff class."""

    def test_calculate_no_jitter(self):
        """Test exponential backoff calculation without jitter."""
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=60.0, jitter=False)

        assert backoff.calculate(0) == 1.0
        assert backoff.calculate(1) == 2.0
        assert backoff.calculate(2) == 4.0
        assert backoff.calculate(5) == 32.0
        assert backoff.calculate(6) == 60.0  # Capped at max_delay

    def test_calculate_with_jitter(self):
        """Delays stay within +/-25% of the unjittered value."""
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=60.0, jitter=True)

        for attempt in range(5):
            delay = backoff.calculate(attempt)
            base_delay = min(1.0 * (2.0**attempt), 60.0)
            assert 0.75 * base_delay <= delay <= 1.25 * base_delay

    def test_max_delay_cap(self):
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=10.0, jitter=False)

        assert backoff.calculate(10) == 10.0
        assert backoff.calculate(100) == 10.0

    def test_defaults_suit_reconnects(self):
        backoff = ExponentialBackoff()

        assert backoff.base == 1.0
        assert backoff.max_delay == 30.0
        assert backoff.jitter is True


class TestReconnectSequence:
    """Stateful next_delay()/reset() used by the stream client."""

    def test_next_delay_advances(self):
        backoff = ExponentialBackoff(base=0.5, multiplier=3.0, jitter=False)

        delays = [backoff.next_delay() for _ in range(3)]

        assert delays == [0.5, 1.5, 4.5]
        assert backoff.attempts == 3

    def test_reset_after_connect(self):
        backoff = ExponentialBackoff(jitter=False)
        backoff.next_delay()
        backoff.next_delay()

        backoff.reset()

        assert backoff.attempts == 0
        assert backoff.next_delay() == 1.0

    def test_long_outage_stays_capped(self):
        backoff = ExponentialBackoff(base=1.0, max_delay=30.0, jitter=False)

        delays = [backoff.next_delay() for _ in range(20)]

        assert max(delays) == 30.0
        assert delays[-1] == 30.0

    @pytest.mark.parametrize("base", [0.0, 0.01])
    def test_never_negative(self, base):
        backoff = ExponentialBackoff(base=base, jitter=True)

        assert all(backoff.next_delay() >= 0.0 for _ in range(10))
