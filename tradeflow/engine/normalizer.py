"""
Tick normalization.

Upstream producers (the socket bridge, exchange feeds, CSV exports) disagree
on field names and side conventions. Everything is resolved here, once, at
the ingestion boundary: every other module only ever sees `Tick`.
"""

import math
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .data_types import Side, Tick

RawTick = Union[Mapping[str, Any], Tick]

# Accepted field names, in lookup priority order
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "timestamp": ("timestamp", "ts", "time", "T"),
    "side": ("side", "s", "aggressor"),
    "volume": ("volume", "v", "qty", "quantity", "q", "size"),
    "price": ("price", "p"),
    "symbol": ("symbol", "sym"),
    "is_buyer_maker": ("is_buyer_maker", "m"),
}

# Trade at the ask = aggressive buy, trade at the bid = aggressive sell
SIDE_ALIASES: Dict[str, Side] = {
    "BUY": Side.BUY,
    "B": Side.BUY,
    "ASK": Side.BUY,
    "LONG": Side.BUY,
    "SELL": Side.SELL,
    "S": Side.SELL,
    "BID": Side.SELL,
    "SHORT": Side.SELL,
}

_MISSING = object()


def _lookup(raw: Mapping[str, Any], field_name: str) -> Any:
    for alias in FIELD_ALIASES[field_name]:
        value = raw.get(alias, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return _MISSING


def _to_finite(value: Any) -> Optional[float]:
    """Parse a finite float, or None. Booleans are not numbers here."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _resolve_side(raw: Mapping[str, Any]) -> Optional[Side]:
    value = _lookup(raw, "side")
    if isinstance(value, Side):
        return value
    if isinstance(value, str):
        side = SIDE_ALIASES.get(value.strip().upper())
        if side is not None:
            return side

    # Exchange style: buyer is maker -> seller aggressed
    maker = _lookup(raw, "is_buyer_maker")
    if isinstance(maker, bool):
        return Side.SELL if maker else Side.BUY
    return None


def normalize_tick(raw: RawTick, default_ts: Optional[int] = None) -> Optional[Tick]:
    """
    Canonicalize a raw tick-like record.

    Args:
        raw: Mapping with any of the aliased field names, or a Tick
        default_ts: Timestamp (ms) to use when the record carries none

    Returns:
        Normalized Tick, or None if the record cannot be resolved
    """
    if isinstance(raw, Tick):
        return raw
    if not isinstance(raw, Mapping):
        return None

    side = _resolve_side(raw)
    if side is None:
        return None

    ts_value = _lookup(raw, "timestamp")
    if ts_value is _MISSING:
        if default_ts is None:
            return None
        ts_value = default_ts
    timestamp = _to_finite(ts_value)
    if timestamp is None:
        return None

    vol_value = _lookup(raw, "volume")
    volume = 0.0 if vol_value is _MISSING else _to_finite(vol_value)
    if volume is None or volume < 0:
        return None

    price_value = _lookup(raw, "price")
    price = math.nan
    if price_value is not _MISSING:
        parsed = _to_finite(price_value)
        if parsed is not None:
            price = parsed

    symbol_value = _lookup(raw, "symbol")
    symbol = "" if symbol_value is _MISSING else str(symbol_value)

    return Tick(
        timestamp=int(timestamp),
        side=side,
        volume=volume,
        price=price,
        symbol=symbol,
    )
