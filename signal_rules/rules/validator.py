"""
Condition Tree Validation Module

Checks condition trees and signal rules for structural completeness
before they are saved or deployed.

Validation checks:
- No empty condition groups
- Group nesting stays within the maximum depth
- Each leaf has its required indicator references and fields
- Rule sets respect the per-type rule limit and have unique rule numbers

Validation never raises: callers receive a list of messages and decide
whether to block the save. Operator/value shape (e.g. BETWEEN with a
scalar value) is intentionally not checked here.
"""

import logging
from collections import Counter
from typing import List

from signal_rules.config.limits import MAX_DEPTH, MAX_RULES_PER_TYPE
from signal_rules.rules.models import (
    Condition,
    ConditionGroup,
    ConditionKind,
    SignalRule,
    SignalRuleSet,
    SignalRuleType,
    is_condition_group,
)


logger = logging.getLogger(__name__)

EMPTY_GROUP_ERROR = "Empty condition group found"


def validate_condition_tree(tree: ConditionGroup, max_depth: int = MAX_DEPTH) -> List[str]:
    """
    Validate a condition tree.

    Walks the tree depth-first starting at depth 1. Depth errors are
    reported for every group beyond ``max_depth``, so one deep branch can
    produce several messages.

    Args:
        tree: Root group of the tree
        max_depth: Maximum group nesting depth

    Returns:
        List of error messages (empty if valid)
    """
    errors: List[str] = []

    def walk(node: Condition, depth: int) -> None:
        if is_condition_group(node):
            if not node.conditions:
                errors.append(EMPTY_GROUP_ERROR)
            if depth > max_depth:
                errors.append(f"Max nesting depth ({max_depth}) exceeded")
            for child in node.conditions:
                walk(child, depth + 1)
        else:
            errors.extend(_validate_leaf(node))

    walk(tree, 1)
    return errors


def _validate_leaf(node: Condition) -> List[str]:
    """Required-field checks for a single leaf."""
    errors: List[str] = []
    kind = node.type

    if kind == ConditionKind.THRESHOLD.value:
        if node.indicator_ref is None:
            errors.append("Threshold: indicator required")
        if not node.field:
            errors.append("Threshold: field required")

    elif kind == ConditionKind.CROSS.value:
        if node.indicator_ref is None:
            errors.append("Cross: source indicator required")
        if not node.field:
            errors.append("Cross: source field required")
        if node.target_ref is None:
            errors.append("Cross: target indicator required")
        if not node.target_field:
            errors.append("Cross: target field required")

    elif kind == ConditionKind.PRICE.value:
        if node.indicator_ref is None:
            errors.append("Price: indicator required")
        if not node.field:
            errors.append("Price: field required")

    elif kind == ConditionKind.POSITION.value:
        if not node.field:
            errors.append("Position: field required")

    return errors


def validate_signal_rule(rule: SignalRule, max_depth: int = MAX_DEPTH) -> List[str]:
    """
    Validate a single signal rule's condition tree.

    Args:
        rule: The SignalRule to validate
        max_depth: Maximum group nesting depth

    Returns:
        List of error messages prefixed with the rule label
    """
    prefix = f"[{rule.rule_type} Rule #{rule.rule_no}] "
    return [f"{prefix}{message}" for message in validate_condition_tree(rule.conditions, max_depth)]


def validate_rule_set(
    rule_set: SignalRuleSet,
    max_depth: int = MAX_DEPTH,
    max_rules_per_type: int = MAX_RULES_PER_TYPE,
) -> List[str]:
    """
    Validate all BUY and SELL rules of a strategy.

    Args:
        rule_set: The SignalRuleSet to validate
        max_depth: Maximum group nesting depth
        max_rules_per_type: Maximum number of rules per rule type

    Returns:
        List of error message strings (empty if valid)
    """
    errors: List[str] = []

    # 1. Per-type limits and placement
    for rule_type, rules in (
        (SignalRuleType.BUY.value, rule_set.buy_rules),
        (SignalRuleType.SELL.value, rule_set.sell_rules),
    ):
        if len(rules) > max_rules_per_type:
            errors.append(f"Too many {rule_type} rules: {len(rules)} (max {max_rules_per_type})")
        for rule in rules:
            if rule.rule_type != rule_type:
                errors.append(
                    f"Rule #{rule.rule_no} has type {rule.rule_type} but is listed with {rule_type} rules"
                )

    # 2. Duplicate rule numbers
    rule_nos = [r.rule_no for r in rule_set.all_rules()]
    duplicates = [str(no) for no, count in Counter(rule_nos).items() if count > 1]
    if duplicates:
        errors.append(f"Duplicate rule numbers found: {', '.join(duplicates)}")

    # 3. Each rule's condition tree
    for rule in rule_set.all_rules():
        errors.extend(validate_signal_rule(rule, max_depth))

    if errors:
        logger.debug(f"Rule set validation found {len(errors)} error(s)")

    return errors
