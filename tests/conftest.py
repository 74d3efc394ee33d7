import os
import sys

import pytest

TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradeflow.engine.data_types import Side, Tick  # noqa: E402


def make_tick(ts, side="BUY", volume=1.0):
    """Canonical tick; `side` may be a Side or its name."""
    if isinstance(side, str):
        side = Side[side]
    return Tick(timestamp=int(ts), side=side, volume=float(volume))


def burst(start_ts, count, spacing_ms, side="BUY", volume=1.0):
    """Evenly spaced ticks on one side."""
    return [make_tick(start_ts + i * spacing_ms, side, volume) for i in range(count)]


def alternating(start_ts, count, spacing_ms, volume=1.0):
    """Evenly spaced ticks alternating BUY, SELL, BUY, ..."""
    return [
        make_tick(start_ts + i * spacing_ms, "BUY" if i % 2 == 0 else "SELL", volume)
        for i in range(count)
    ]


@pytest.fixture
def tick():
    return make_tick


@pytest.fixture
def buy_burst():
    """100 BUY ticks of volume 10 spread over 297ms."""
    return burst(0, 100, 3, "BUY", 10.0)


@pytest.fixture
def balanced_ticks():
    """200 alternating ticks at 2ms spacing (50/50 by count and volume)."""
    return alternating(0, 200, 2, 5.0)
