"""Shared fixtures for the signal rules test suite."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from signal_rules.config import settings as settings_module
from signal_rules.rules.models import (
    ComparisonOperator,
    ConditionGroup,
    CrossCondition,
    CrossOperator,
    GroupLogic,
    PositionCondition,
    PriceCondition,
    PriceField,
    SignalRule,
    SignalRuleSet,
    SignalRuleType,
    ThresholdCondition,
)
from signal_rules.rules.snapshots import EvaluationContext, snapshot_from_mapping


RSI_REF = 1
EMA_FAST_REF = 2
EMA_SLOW_REF = 3


def make_context(*bars, position=None) -> EvaluationContext:
    """
    Build a context from per-bar indicator dicts, oldest first.

    Each bar is either ``{ref: {field: value}}`` or a tuple of
    ``(indicators, price)`` where price uses open/high/low/close keys.
    Position metrics are attached to the newest bar.
    """
    start = datetime(2024, 1, 2, 9, 30)
    snapshots = []
    for i, bar in enumerate(bars):
        indicators, price = bar if isinstance(bar, tuple) else (bar, None)
        is_last = i == len(bars) - 1
        snapshots.append(snapshot_from_mapping(
            indicators,
            price=price,
            position=position if is_last else None,
            timestamp=start + timedelta(minutes=5 * i),
        ))
    return EvaluationContext(snapshots)


@pytest.fixture
def rsi_above_70():
    return ThresholdCondition(indicator_ref=RSI_REF, field="value", operator=ComparisonOperator.GT, value=70)


@pytest.fixture
def ema_cross_up():
    return CrossCondition(
        indicator_ref=EMA_FAST_REF,
        field="value",
        operator=CrossOperator.CROSS_ABOVE,
        target_ref=EMA_SLOW_REF,
        target_field="value",
    )


@pytest.fixture
def ema_cross_down():
    return CrossCondition(
        indicator_ref=EMA_FAST_REF,
        field="value",
        operator=CrossOperator.CROSS_BELOW,
        target_ref=EMA_SLOW_REF,
        target_field="value",
    )


@pytest.fixture
def ema_above_close():
    return PriceCondition(
        indicator_ref=EMA_FAST_REF,
        field="value",
        operator=ComparisonOperator.GT,
        price_field=PriceField.CLOSE,
    )


@pytest.fixture
def stop_loss():
    return PositionCondition(field="changePercent", operator=ComparisonOperator.LTE, value=-5)


@pytest.fixture
def nested_tree(rsi_above_70, ema_cross_up, ema_above_close):
    """
    AND(
        OR(rsi > 70, ema_fast crosses above ema_slow),
        ema_fast > close,
        AND(rsi > 70),
    )
    """
    return ConditionGroup(
        logic=GroupLogic.AND,
        conditions=(
            ConditionGroup(logic=GroupLogic.OR, conditions=(rsi_above_70, ema_cross_up)),
            ema_above_close,
            ConditionGroup(logic=GroupLogic.AND, conditions=(rsi_above_70,)),
        ),
    )


@pytest.fixture
def sample_rule_set(rsi_above_70, ema_cross_up, ema_cross_down, stop_loss):
    """Two BUY rules and two SELL rules (one stop-loss)."""
    return SignalRuleSet(
        buy_rules=(
            SignalRule(
                rule_no=1,
                rule_type=SignalRuleType.BUY,
                priority=2,
                conditions=ConditionGroup(conditions=(rsi_above_70,)),
            ),
            SignalRule(
                rule_no=2,
                rule_type=SignalRuleType.BUY,
                priority=1,
                conditions=ConditionGroup(conditions=(ema_cross_up,)),
            ),
        ),
        sell_rules=(
            SignalRule(
                rule_no=3,
                rule_type=SignalRuleType.SELL,
                priority=1,
                conditions=ConditionGroup(conditions=(ema_cross_down,)),
            ),
            SignalRule(
                rule_no=4,
                rule_type=SignalRuleType.SELL,
                priority=0,
                conditions=ConditionGroup(conditions=(stop_loss,)),
            ),
        ),
    )


@pytest.fixture
def reset_settings(monkeypatch, tmp_path):
    """
    Isolate the global settings cache and point the loader at an empty
    config directory; tests write the YAML files they need.
    """
    for key in (
        "SIGNAL_RULES_ENV",
        "SIGNAL_RULES_DOTENV_PATH",
        "LOG_LEVEL",
        "SIGNAL_RULES_SNAPSHOT_WINDOW",
        "SIGNAL_RULES_LOG_FILE_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SIGNAL_RULES_CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(settings_module, "_settings", None)
    yield tmp_path
    settings_module._settings = None


@pytest.fixture
def build_context():
    """Factory fixture wrapping ``make_context``."""
    return make_context
