"""
Market snapshots and data provider interfaces.

The evaluator reads indicator values, OHLC prices and position metrics
through three small provider protocols. ``EvaluationContext`` implements
all of them over a window of per-bar ``MarketSnapshot`` objects, which is
how both the live runner and the history evaluator feed the engine.

Providers return None instead of raising when a value is unavailable
(warm-up period, first bar of a series, no open position).
"""

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Mapping, Optional, Protocol, Sequence

from signal_rules.rules.models import PriceField


def clean_value(value) -> Optional[float]:
    """Normalise a raw value to float, mapping None/NaN to None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


class IndicatorDataProvider(Protocol):
    def get_indicator_value(self, indicator_ref: int, field: str, offset: int = 0) -> Optional[float]:
        ...


class PriceDataProvider(Protocol):
    def get_price(self, price_field: str, offset: int = 0) -> Optional[float]:
        ...


class PositionDataProvider(Protocol):
    def get_position_metric(self, field: str) -> Optional[float]:
        ...


@dataclass(frozen=True)
class PriceBar:
    """OHLC prices of one bar."""
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None

    def get(self, price_field: str) -> Optional[float]:
        """Price by condition field name (closePrice, openPrice, ...)."""
        field_str = price_field.value if hasattr(price_field, 'value') else price_field
        mapping = {
            PriceField.CLOSE.value: self.close,
            PriceField.OPEN.value: self.open,
            PriceField.HIGH.value: self.high,
            PriceField.LOW.value: self.low,
        }
        return clean_value(mapping.get(field_str))


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Everything the evaluator may read for a single bar.

    Attributes:
        timestamp: Bar timestamp, if known
        indicators: indicator_ref -> field -> value
        price: OHLC prices of the bar
        position: Position metrics (changePercent, holdingMinutes, ...)
    """
    timestamp: Optional[datetime] = None
    indicators: Mapping[int, Mapping[str, Optional[float]]] = field(default_factory=dict)
    price: PriceBar = field(default_factory=PriceBar)
    position: Mapping[str, Optional[float]] = field(default_factory=dict)

    def get_indicator_value(self, indicator_ref: int, field_name: str) -> Optional[float]:
        values = self.indicators.get(indicator_ref)
        if values is None:
            return None
        return clean_value(values.get(field_name))


class EvaluationContext:
    """
    Evaluation input for one tick.

    Holds a window of snapshots ordered oldest to newest; the newest one is
    the current bar. ``offset`` counts bars back from the current bar, so
    offset 1 is the previous bar. Offsets outside the window read as None.
    Position metrics always come from the current bar.
    """

    def __init__(self, snapshots: Sequence[MarketSnapshot]):
        self._snapshots: List[MarketSnapshot] = list(snapshots)

    @classmethod
    def from_ticks(
        cls,
        current: MarketSnapshot,
        previous: Optional[MarketSnapshot] = None,
    ) -> "EvaluationContext":
        """Build a context from the current and (optional) previous snapshot."""
        if previous is None:
            return cls([current])
        return cls([previous, current])

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def current(self) -> Optional[MarketSnapshot]:
        return self.snapshot_at(0)

    def snapshot_at(self, offset: int) -> Optional[MarketSnapshot]:
        if offset < 0 or offset >= len(self._snapshots):
            return None
        return self._snapshots[-1 - offset]

    def get_indicator_value(self, indicator_ref: int, field: str, offset: int = 0) -> Optional[float]:
        if indicator_ref is None or not field:
            return None
        snapshot = self.snapshot_at(offset)
        if snapshot is None:
            return None
        return snapshot.get_indicator_value(indicator_ref, field)

    def get_price(self, price_field: str, offset: int = 0) -> Optional[float]:
        snapshot = self.snapshot_at(offset)
        if snapshot is None:
            return None
        return snapshot.price.get(price_field)

    def get_position_metric(self, field: str) -> Optional[float]:
        snapshot = self.current
        if snapshot is None or not field:
            return None
        return clean_value(snapshot.position.get(field))


class SnapshotBuffer:
    """
    Rolling window of recent snapshots for one instrument.

    The caller owns one buffer per instrument/timeframe and pushes every
    completed bar; ``context()`` then yields the evaluation input with the
    previous bars needed for crossover detection and bar offsets.
    """

    def __init__(self, maxlen: int = 6):
        if maxlen < 2:
            raise ValueError("Snapshot buffer needs room for at least two bars")
        self._snapshots: Deque[MarketSnapshot] = deque(maxlen=maxlen)

    def push(self, snapshot: MarketSnapshot) -> None:
        self._snapshots.append(snapshot)

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def maxlen(self) -> int:
        return self._snapshots.maxlen

    def context(self) -> EvaluationContext:
        return EvaluationContext(list(self._snapshots))


def snapshot_from_mapping(
    indicators: Dict[int, Dict[str, Optional[float]]],
    price: Optional[Dict[str, Optional[float]]] = None,
    position: Optional[Dict[str, Optional[float]]] = None,
    timestamp: Optional[datetime] = None,
) -> MarketSnapshot:
    """Convenience constructor from plain dicts (price keys: open/high/low/close)."""
    price = price or {}
    return MarketSnapshot(
        timestamp=timestamp,
        indicators=indicators,
        price=PriceBar(
            open=clean_value(price.get("open")),
            high=clean_value(price.get("high")),
            low=clean_value(price.get("low")),
            close=clean_value(price.get("close")),
        ),
        position=position or {},
    )
