"""
Unit Tests for Condition Tree Validation
"""

import pytest

from signal_rules.config import settings as settings_module
from signal_rules.config.limits import MAX_DEPTH, MAX_RULES_PER_TYPE
from signal_rules.rules.defaults import (
    create_default_cross,
    create_default_group,
    create_default_position,
    create_default_price,
    create_default_threshold,
)
from signal_rules.rules.editor import get_condition_depth
from signal_rules.rules.models import (
    ConditionGroup,
    PositionCondition,
    SignalRule,
    SignalRuleSet,
    ThresholdCondition,
)
from signal_rules.rules.validator import (
    EMPTY_GROUP_ERROR,
    validate_condition_tree,
    validate_rule_set,
    validate_signal_rule,
)


def nest(depth: int, leaf) -> ConditionGroup:
    """Chain of ``depth`` single-child groups ending in ``leaf``."""
    node = leaf
    for _ in range(depth):
        node = ConditionGroup(conditions=(node,))
    return node


# ============================================================================
# Tree Structure
# ============================================================================

class TestTreeStructure:
    """Empty groups and nesting depth."""

    def test_valid_tree(self, nested_tree):
        assert validate_condition_tree(nested_tree) == []

    def test_empty_root(self):
        assert validate_condition_tree(create_default_group()) == [EMPTY_GROUP_ERROR]
        assert EMPTY_GROUP_ERROR == "Empty condition group found"

    def test_empty_nested_group(self, rsi_above_70):
        tree = ConditionGroup(conditions=(rsi_above_70, ConditionGroup()))

        assert validate_condition_tree(tree) == [EMPTY_GROUP_ERROR]

    def test_depth_three_is_allowed(self, rsi_above_70):
        assert validate_condition_tree(nest(3, rsi_above_70)) == []

    def test_depth_errors_reported_per_group(self, rsi_above_70):
        """Each group beyond the limit adds its own message."""
        errors = validate_condition_tree(nest(5, rsi_above_70))

        assert errors == ["Max nesting depth (3) exceeded"] * 2

    def test_custom_max_depth(self, rsi_above_70):
        assert validate_condition_tree(nest(2, rsi_above_70), max_depth=1) == ["Max nesting depth (1) exceeded"]

    def test_errors_in_depth_first_order(self):
        tree = ConditionGroup(conditions=(
            create_default_position().model_copy(update={"field": ""}),
            ConditionGroup(),
            create_default_price(),
        ))

        assert validate_condition_tree(tree) == [
            "Position: field required",
            EMPTY_GROUP_ERROR,
            "Price: indicator required",
            "Price: field required",
        ]

    def test_validation_is_deterministic(self, nested_tree):
        broken = ConditionGroup(conditions=(nested_tree, ConditionGroup(), create_default_cross()))

        assert validate_condition_tree(broken) == validate_condition_tree(broken)

    def test_accepted_trees_respect_depth_limit(self, rsi_above_70):
        for depth in range(1, 6):
            tree = nest(depth, rsi_above_70)
            if not validate_condition_tree(tree):
                assert get_condition_depth(tree) <= 3


# ============================================================================
# Leaf Required Fields
# ============================================================================

class TestLeafFields:
    """Per-kind required field checks on placeholder leaves."""

    def test_default_threshold(self):
        tree = ConditionGroup(conditions=(create_default_threshold(),))

        assert validate_condition_tree(tree) == [
            "Threshold: indicator required",
            "Threshold: field required",
        ]

    def test_default_cross(self):
        tree = ConditionGroup(conditions=(create_default_cross(),))

        assert validate_condition_tree(tree) == [
            "Cross: source indicator required",
            "Cross: source field required",
            "Cross: target indicator required",
            "Cross: target field required",
        ]

    def test_cross_with_empty_target_field(self, ema_cross_up):
        tree = ConditionGroup(conditions=(ema_cross_up.model_copy(update={"target_field": ""}),))

        assert validate_condition_tree(tree) == ["Cross: target field required"]

    def test_default_price(self):
        tree = ConditionGroup(conditions=(create_default_price(),))

        assert validate_condition_tree(tree) == [
            "Price: indicator required",
            "Price: field required",
        ]

    def test_default_position_is_complete(self):
        tree = ConditionGroup(conditions=(create_default_position(),))

        assert validate_condition_tree(tree) == []

    def test_operator_value_shape_not_checked(self):
        """BETWEEN with a scalar and GT with a pair pass validation."""
        tree = ConditionGroup(conditions=(
            ThresholdCondition(indicator_ref=1, field="value", operator="BETWEEN", value=5),
            PositionCondition(field="changePercent", operator="GT", value=(1, 2)),
        ))

        assert validate_condition_tree(tree) == []


# ============================================================================
# Rules and Rule Sets
# ============================================================================

class TestRuleValidation:
    """Rule labels, limits and uniqueness."""

    def test_rule_errors_are_prefixed(self):
        rule = SignalRule(rule_no=4, rule_type="BUY")

        assert validate_signal_rule(rule) == [f"[BUY Rule #4] {EMPTY_GROUP_ERROR}"]

    def test_valid_rule_set(self, sample_rule_set):
        assert validate_rule_set(sample_rule_set, max_depth=3, max_rules_per_type=5) == []

    def test_too_many_rules(self, rsi_above_70):
        tree = ConditionGroup(conditions=(rsi_above_70,))
        rules = tuple(SignalRule(rule_no=i, rule_type="BUY", conditions=tree) for i in range(1, 7))

        errors = validate_rule_set(SignalRuleSet(buy_rules=rules), max_depth=3, max_rules_per_type=5)

        assert errors == ["Too many BUY rules: 6 (max 5)"]

    def test_duplicate_rule_numbers(self, rsi_above_70):
        tree = ConditionGroup(conditions=(rsi_above_70,))
        rule_set = SignalRuleSet(
            buy_rules=(SignalRule(rule_no=1, rule_type="BUY", conditions=tree),),
            sell_rules=(SignalRule(rule_no=1, rule_type="SELL", conditions=tree),),
        )

        assert validate_rule_set(rule_set, max_depth=3, max_rules_per_type=5) == [
            "Duplicate rule numbers found: 1",
        ]

    def test_rule_listed_under_wrong_type(self, rsi_above_70):
        tree = ConditionGroup(conditions=(rsi_above_70,))
        rule_set = SignalRuleSet(sell_rules=(SignalRule(rule_no=2, rule_type="BUY", conditions=tree),))

        assert validate_rule_set(rule_set, max_depth=3, max_rules_per_type=5) == [
            "Rule #2 has type BUY but is listed with SELL rules",
        ]

    def test_default_limits(self, rsi_above_70):
        tree = ConditionGroup(conditions=(rsi_above_70,))
        count = MAX_RULES_PER_TYPE + 1
        rules = tuple(SignalRule(rule_no=i, rule_type="SELL", conditions=tree) for i in range(1, count + 1))

        assert validate_rule_set(SignalRuleSet(sell_rules=rules)) == [
            f"Too many SELL rules: {count} (max {MAX_RULES_PER_TYPE})",
        ]

    def test_entry_points_agree_on_depth(self, rsi_above_70):
        rule = SignalRule(rule_no=1, rule_type="BUY", conditions=nest(MAX_DEPTH + 1, rsi_above_70))

        expected = [f"[BUY Rule #1] Max nesting depth ({MAX_DEPTH}) exceeded"]
        assert validate_signal_rule(rule) == expected
        assert validate_rule_set(SignalRuleSet(buy_rules=(rule,))) == expected

    def test_environment_is_not_consulted(self, reset_settings, monkeypatch, rsi_above_70):
        """A broken environment cannot make validation raise or change its limits."""
        monkeypatch.setenv("SIGNAL_RULES_SNAPSHOT_WINDOW", "abc")
        monkeypatch.setenv("SIGNAL_RULES_MAX_DEPTH", "5")
        rule = SignalRule(rule_no=1, rule_type="BUY", conditions=nest(MAX_DEPTH + 1, rsi_above_70))

        assert validate_rule_set(SignalRuleSet()) == []
        assert validate_rule_set(SignalRuleSet(buy_rules=(rule,))) == validate_signal_rule(rule)
        assert settings_module._settings is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
