"""
Condition Evaluator Module

Evaluates condition trees against one tick of market data and records a
trace of every comparison. Handles the four leaf kinds (threshold,
crossover, price, position) and AND/OR groups.

Missing data is never an error: a leaf whose operands are unavailable
fails with ``passed=False`` and None values in its trace.
"""

import logging
from typing import Union

from signal_rules.rules.models import (
    ComparisonOperator,
    Condition,
    ConditionGroup,
    ConditionKind,
    CrossCondition,
    GroupLogic,
    PositionCondition,
    PriceCondition,
    ThresholdCondition,
    is_condition_group,
)
from signal_rules.rules.snapshots import EvaluationContext, clean_value
from signal_rules.rules.trace import GroupTrace, LeafTrace
from signal_rules.utils.indicators import compare, crosses_above, crosses_below


logger = logging.getLogger(__name__)


ConditionTraceNode = Union[GroupTrace, LeafTrace]


class ConditionEvaluator:
    """
    Evaluates a condition (leaf or group) against an evaluation context.

    Children of a group are always evaluated in order, without
    short-circuiting, so the trace covers the whole tree.
    """

    def __init__(self, condition: Condition):
        """
        Initialize the evaluator with a condition.

        Args:
            condition: The condition to evaluate
        """
        self.condition = condition

    def evaluate(self, context: EvaluationContext) -> ConditionTraceNode:
        """
        Evaluate the condition against the given tick.

        Args:
            context: Indicator, price and position data for the tick

        Returns:
            Trace node mirroring the condition
        """
        return self._evaluate_node(self.condition, context)

    def _evaluate_node(self, node: Condition, context: EvaluationContext) -> ConditionTraceNode:
        if is_condition_group(node):
            return self._evaluate_group(node, context)

        kind = node.type

        if kind == ConditionKind.THRESHOLD.value:
            return self._evaluate_threshold(node, context)

        elif kind == ConditionKind.CROSS.value:
            return self._evaluate_cross(node, context)

        elif kind == ConditionKind.PRICE.value:
            return self._evaluate_price(node, context)

        elif kind == ConditionKind.POSITION.value:
            return self._evaluate_position(node, context)

        else:
            raise ValueError(f"Unsupported condition type: {kind}")

    def _evaluate_group(self, group: ConditionGroup, context: EvaluationContext) -> GroupTrace:
        """Evaluate every child in order and combine with AND/OR."""
        children = tuple(self._evaluate_node(child, context) for child in group.conditions)

        if not children:
            passed = False
        elif group.logic == GroupLogic.OR.value:
            passed = any(child.passed for child in children)
        else:
            passed = all(child.passed for child in children)

        return GroupTrace(logic=group.logic, passed=passed, conditions=children)

    def _evaluate_threshold(self, condition: ThresholdCondition, context: EvaluationContext) -> LeafTrace:
        """Evaluate THRESHOLD: indicator field vs constant."""
        actual = context.get_indicator_value(condition.indicator_ref, condition.field, condition.index)
        passed = compare(actual, condition.operator, condition.value)

        return LeafTrace(
            type=condition.type,
            passed=passed,
            indicator_ref=condition.indicator_ref,
            field=condition.field,
            operator=condition.operator,
            actual_value=actual,
            **_target_fields(condition.operator, condition.value),
        )

    def _evaluate_cross(self, condition: CrossCondition, context: EvaluationContext) -> LeafTrace:
        """
        Evaluate CROSS: source series crossing a target series.

        Needs the current and the previous bar of both series; on the
        first bar of a series the previous values are None and the
        condition fails.
        """
        operator = condition.operator

        actual = context.get_indicator_value(condition.indicator_ref, condition.field, condition.index)
        prev = context.get_indicator_value(condition.indicator_ref, condition.field, condition.index + 1)
        target = context.get_indicator_value(condition.target_ref, condition.target_field, condition.target_index)
        prev_target = context.get_indicator_value(
            condition.target_ref, condition.target_field, condition.target_index + 1
        )

        if operator == "CROSS_ABOVE":
            passed = crosses_above(prev, prev_target, actual, target)
        else:
            passed = crosses_below(prev, prev_target, actual, target)

        return LeafTrace(
            type=condition.type,
            passed=passed,
            indicator_ref=condition.indicator_ref,
            field=condition.field,
            operator=operator,
            actual_value=actual,
            target_value=target,
            prev_value=prev,
            prev_target_value=prev_target,
        )

    def _evaluate_price(self, condition: PriceCondition, context: EvaluationContext) -> LeafTrace:
        """Evaluate PRICE: indicator field vs OHLC price of the same bar."""
        actual = context.get_indicator_value(condition.indicator_ref, condition.field, condition.index)
        target = context.get_price(condition.price_field, condition.index)

        if condition.operator == ComparisonOperator.BETWEEN.value:
            # A single price cannot bound a range
            passed = False
        else:
            passed = compare(actual, condition.operator, target)

        return LeafTrace(
            type=condition.type,
            passed=passed,
            indicator_ref=condition.indicator_ref,
            field=condition.field,
            operator=condition.operator,
            actual_value=actual,
            target_value=target,
            price_field=condition.price_field,
        )

    def _evaluate_position(self, condition: PositionCondition, context: EvaluationContext) -> LeafTrace:
        """Evaluate POSITION: position metric vs constant."""
        actual = context.get_position_metric(condition.field)
        passed = compare(actual, condition.operator, condition.value)

        return LeafTrace(
            type=condition.type,
            passed=passed,
            indicator_ref=None,
            field=condition.field,
            operator=condition.operator,
            actual_value=actual,
            **_target_fields(condition.operator, condition.value),
        )


def _target_fields(operator: str, value) -> dict:
    """Trace target keys for a constant operand: scalar or BETWEEN range."""
    if operator == ComparisonOperator.BETWEEN.value:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return {"target_value": None, "target_range": (float(value[0]), float(value[1]))}
        return {"target_value": None}
    if isinstance(value, (tuple, list)):
        return {"target_value": None}
    return {"target_value": clean_value(value)}


def evaluate_condition(condition: Condition, context: EvaluationContext) -> ConditionTraceNode:
    """
    Convenience function to evaluate a condition.

    Args:
        condition: Leaf or group to evaluate
        context: Data for the tick

    Returns:
        Trace node; ``.passed`` holds the result
    """
    evaluator = ConditionEvaluator(condition)
    return evaluator.evaluate(context)


def evaluate_group(group: ConditionGroup, context: EvaluationContext) -> GroupTrace:
    """Evaluate a rule's root group and return its trace."""
    return ConditionEvaluator(group).evaluate(context)
