"""
Rule History Evaluator Module

Evaluates condition trees across historical bar data, one bar at a time,
through the same evaluator the live engine uses. Used for chart overlays
("when was this rule true?") and for the backtest condition log.

Data layout:
    bars: DataFrame with open/high/low/close columns and either a
        'timestamp' column or a DatetimeIndex
    indicators: indicator_ref -> DataFrame aligned row-by-row with
        ``bars``, one column per indicator field. NaN means "no value".
    positions: optional DataFrame of position metrics aligned with ``bars``
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from signal_rules.config.settings import get_settings
from signal_rules.rules.conditions import evaluate_condition
from signal_rules.rules.engine import RuleEngine
from signal_rules.rules.models import (
    Condition,
    PositionField,
    SignalRule,
    SignalRuleSet,
)
from signal_rules.rules.snapshots import (
    MarketSnapshot,
    PriceBar,
    SnapshotBuffer,
    clean_value,
)
from signal_rules.rules.trace import ConditionLog, PositionState, SignalAction


logger = logging.getLogger(__name__)


def _default_window() -> int:
    return get_settings().engine.snapshot_window


def _get_timestamps(bars: pd.DataFrame) -> List[Optional[datetime]]:
    """Bar timestamps from a 'timestamp' column or a DatetimeIndex."""
    if 'timestamp' in bars.columns:
        return [ts.to_pydatetime() if not pd.isna(ts) else None for ts in pd.to_datetime(bars['timestamp'])]
    if isinstance(bars.index, pd.DatetimeIndex):
        return [ts.to_pydatetime() for ts in bars.index]
    return [None] * len(bars)


def _frame_records(frame: Optional[pd.DataFrame], length: int, name: str) -> List[Dict[str, Any]]:
    if frame is None:
        return [{} for _ in range(length)]
    if len(frame) != length:
        raise ValueError(f"{name} has {len(frame)} rows but bars have {length}")
    return frame.to_dict('records')


def build_snapshots(
    bars: pd.DataFrame,
    indicators: Dict[int, pd.DataFrame],
    positions: Optional[pd.DataFrame] = None,
) -> List[MarketSnapshot]:
    """
    Convert bar, indicator and position frames into per-bar snapshots.

    Args:
        bars: OHLC bar data
        indicators: indicator_ref -> frame of indicator fields
        positions: Optional frame of position metrics

    Returns:
        One MarketSnapshot per bar, oldest first

    Raises:
        ValueError: If a frame is not aligned with ``bars``
    """
    n = len(bars)
    timestamps = _get_timestamps(bars)
    ohlc = _frame_records(bars, n, "bars")
    indicator_records = {
        ref: _frame_records(frame, n, f"indicator {ref}") for ref, frame in indicators.items()
    }
    position_records = _frame_records(positions, n, "positions")

    snapshots: List[MarketSnapshot] = []
    for i in range(n):
        row = ohlc[i]
        snapshots.append(MarketSnapshot(
            timestamp=timestamps[i],
            indicators={ref: records[i] for ref, records in indicator_records.items()},
            price=PriceBar(
                open=clean_value(row.get('open')),
                high=clean_value(row.get('high')),
                low=clean_value(row.get('low')),
                close=clean_value(row.get('close')),
            ),
            position=position_records[i],
        ))
    return snapshots


def evaluate_condition_history(
    condition: Condition,
    bars: pd.DataFrame,
    indicators: Dict[int, pd.DataFrame],
    positions: Optional[pd.DataFrame] = None,
    window: Optional[int] = None,
) -> pd.Series:
    """
    Evaluate a condition on every bar.

    Args:
        condition: Leaf or group to evaluate
        bars: OHLC bar data
        indicators: indicator_ref -> frame of indicator fields
        positions: Optional frame of position metrics
        window: Number of bars visible to each evaluation

    Returns:
        pd.Series of booleans aligned with ``bars.index``
    """
    if bars is None or len(bars) == 0:
        return pd.Series(dtype=bool)

    buffer = SnapshotBuffer(window or _default_window())
    result = np.zeros(len(bars), dtype=bool)

    for i, snapshot in enumerate(build_snapshots(bars, indicators, positions)):
        buffer.push(snapshot)
        result[i] = evaluate_condition(condition, buffer.context()).passed

    return pd.Series(result, index=bars.index)


def evaluate_rule_history(
    rule: SignalRule,
    bars: pd.DataFrame,
    indicators: Dict[int, pd.DataFrame],
    positions: Optional[pd.DataFrame] = None,
    window: Optional[int] = None,
) -> pd.Series:
    """
    Evaluate a rule's condition tree on every bar.

    Returns a boolean Series indicating for each bar whether the rule
    passed, ignoring position state.
    """
    return evaluate_condition_history(rule.conditions, bars, indicators, positions, window)


def get_last_true_info(
    rule: SignalRule,
    bars: pd.DataFrame,
    indicators: Dict[int, pd.DataFrame],
    positions: Optional[pd.DataFrame] = None,
) -> dict:
    """
    Get information about when the rule was last TRUE.

    Args:
        rule: The SignalRule to evaluate
        bars: OHLC bar data
        indicators: indicator_ref -> frame of indicator fields
        positions: Optional frame of position metrics

    Returns:
        Dict with keys:
            - 'last_true_idx': Index label of last TRUE bar (or None)
            - 'last_true_datetime': Datetime of last TRUE bar (or None)
            - 'bars_ago': Number of bars since last TRUE (or None)
            - 'total_true_count': Total number of TRUE occurrences
    """
    history = evaluate_rule_history(rule, bars, indicators, positions)

    true_positions = np.flatnonzero(history.to_numpy(dtype=bool))

    if len(true_positions) == 0:
        return {
            'last_true_idx': None,
            'last_true_datetime': None,
            'bars_ago': None,
            'total_true_count': 0,
        }

    last_pos = int(true_positions[-1])
    last_true_idx = history.index[last_pos]

    return {
        'last_true_idx': last_true_idx,
        'last_true_datetime': _get_timestamps(bars)[last_pos],
        'bars_ago': len(bars) - 1 - last_pos,
        'total_true_count': len(true_positions),
    }


class PositionTracker:
    """
    Signal-only position bookkeeping for replays.

    Tracks the entry price, best close and entry time of a hypothetical
    position so POSITION conditions can be evaluated. No orders are placed.
    """

    def __init__(self):
        self.state = PositionState.NONE
        self.entry_price: Optional[float] = None
        self.entry_time: Optional[datetime] = None
        self.high_price: Optional[float] = None

    def enter(self, price: Optional[float], timestamp: Optional[datetime]) -> None:
        self.state = PositionState.HOLDING
        self.entry_price = price
        self.entry_time = timestamp
        self.high_price = price

    def exit(self) -> None:
        self.state = PositionState.NONE
        self.entry_price = None
        self.entry_time = None
        self.high_price = None

    def metrics(self, close: Optional[float], timestamp: Optional[datetime]) -> Dict[str, Optional[float]]:
        """
        Position metrics at the given close price.

        Returns an empty dict while flat. Percentages are in percent units;
        trailingPercent is the (non-positive) distance from the best close.
        """
        if self.state != PositionState.HOLDING or not self.entry_price or close is None:
            return {}

        if self.high_price is None or close > self.high_price:
            self.high_price = close

        holding_minutes = None
        if timestamp is not None and self.entry_time is not None:
            holding_minutes = (timestamp - self.entry_time).total_seconds() / 60.0

        return {
            PositionField.CHANGE_PERCENT.value: (close - self.entry_price) / self.entry_price * 100.0,
            PositionField.HIGH_CHANGE_PERCENT.value: (self.high_price - self.entry_price) / self.entry_price * 100.0,
            PositionField.TRAILING_PERCENT.value: (close - self.high_price) / self.high_price * 100.0,
            PositionField.HOLDING_MINUTES.value: holding_minutes,
        }


def replay_condition_logs(
    rule_set: SignalRuleSet,
    bars: pd.DataFrame,
    indicators: Dict[int, pd.DataFrame],
    window: Optional[int] = None,
) -> List[ConditionLog]:
    """
    Replay a rule set over historical bars and log every tick.

    While flat, BUY rules are evaluated and a passing rule opens a
    hypothetical position at the bar's close; while holding, SELL rules
    are evaluated with position metrics derived from that entry.

    Args:
        rule_set: BUY and SELL rules
        bars: OHLC bar data
        indicators: indicator_ref -> frame of indicator fields
        window: Number of bars visible to each evaluation

    Returns:
        One ConditionLog per bar
    """
    if bars is None or len(bars) == 0:
        return []

    engine = RuleEngine(rule_set)
    tracker = PositionTracker()
    buffer = SnapshotBuffer(window or _default_window())
    logs: List[ConditionLog] = []

    for snapshot in build_snapshots(bars, indicators):
        close = snapshot.price.close
        position = tracker.metrics(close, snapshot.timestamp)
        if position:
            snapshot = MarketSnapshot(
                timestamp=snapshot.timestamp,
                indicators=snapshot.indicators,
                price=snapshot.price,
                position=position,
            )

        buffer.push(snapshot)
        log = engine.evaluate_tick(buffer.context(), tracker.state)
        logs.append(log)

        if log.action == SignalAction.ENTRY.value:
            tracker.enter(close, snapshot.timestamp)
        elif log.action == SignalAction.EXIT.value:
            tracker.exit()

    entries = sum(1 for log in logs if log.action == SignalAction.ENTRY.value)
    logger.debug(f"Replayed {len(logs)} bars: {entries} entries")

    return logs
