"""
Serialization utilities for condition trees and signal rules.

Trees are stored as JSON with camelCase keys and an explicit ``type`` tag
on every node, groups included. Older payloads whose groups carry only
``logic``/``conditions`` are upgraded by ``upgrade_legacy_tree`` at load
time; nothing else in the package guesses node kinds from their shape.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from signal_rules.rules.models import ConditionGroup, ConditionKind, SignalRule, SignalRuleSet
from signal_rules.rules.trace import ConditionLog, RuleEvalResult


class TreeSerializationError(Exception):
    """Raised when condition tree serialization/deserialization fails."""
    pass


_LEAF_KINDS = {
    ConditionKind.THRESHOLD.value,
    ConditionKind.CROSS.value,
    ConditionKind.PRICE.value,
    ConditionKind.POSITION.value,
}


def upgrade_legacy_tree(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Add explicit GROUP tags to a stored tree that predates them.

    A node is upgraded only when it has no ``type`` key and carries both
    ``logic`` and ``conditions``. Leaves must already be tagged. The input
    is not modified.

    Args:
        data: Tree as loaded from storage

    Returns:
        Tree with every group tagged ``type: "GROUP"``

    Raises:
        TreeSerializationError: If a node cannot be classified
    """
    def upgrade(node: Any, path: Tuple[int, ...]) -> Dict[str, Any]:
        if not isinstance(node, dict):
            raise TreeSerializationError(f"Condition at path {list(path)} is not an object")

        node_type = node.get("type")
        if node_type is None:
            if "logic" in node and "conditions" in node:
                node["type"] = ConditionKind.GROUP.value
                node_type = ConditionKind.GROUP.value
            else:
                raise TreeSerializationError(f"Condition at path {list(path)} has no type tag")

        if node_type == ConditionKind.GROUP.value:
            children = node.get("conditions") or []
            node["conditions"] = [upgrade(child, path + (i,)) for i, child in enumerate(children)]
        elif node_type not in _LEAF_KINDS:
            raise TreeSerializationError(f"Unknown condition type {node_type!r} at path {list(path)}")

        return node

    return upgrade(copy.deepcopy(data), ())


def tree_to_dict(tree: ConditionGroup) -> Dict[str, Any]:
    """Convert a condition tree to its wire dict."""
    return tree.model_dump(mode='json', by_alias=True)


def tree_from_dict(data: Dict[str, Any], legacy: bool = False) -> ConditionGroup:
    """
    Build a condition tree from its wire dict.

    Args:
        data: Tree dict (camelCase or snake_case keys)
        legacy: Upgrade untagged groups first

    Raises:
        TreeSerializationError: If the dict is not a valid tree
    """
    try:
        if legacy:
            data = upgrade_legacy_tree(data)
        return ConditionGroup.model_validate(data)
    except ValidationError as e:
        raise TreeSerializationError(f"Invalid condition tree: {e}") from e


def tree_to_json(tree: ConditionGroup, pretty: bool = False) -> str:
    """Convert a condition tree to a JSON string."""
    tree_dict = tree_to_dict(tree)
    if pretty:
        return json.dumps(tree_dict, indent=2, ensure_ascii=False)
    return json.dumps(tree_dict, ensure_ascii=False)


def tree_from_json(json_str: str, legacy: bool = False) -> ConditionGroup:
    """
    Create a condition tree from a JSON string.

    Raises:
        TreeSerializationError: If parsing fails
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise TreeSerializationError(f"Invalid JSON: {e}") from e
    return tree_from_dict(data, legacy=legacy)


def rule_to_dict(rule: SignalRule) -> Dict[str, Any]:
    """Convert a signal rule to its wire dict."""
    return rule.model_dump(mode='json', by_alias=True)


def rule_from_dict(data: Dict[str, Any], legacy: bool = False) -> SignalRule:
    """
    Build a signal rule from its wire dict.

    Raises:
        TreeSerializationError: If the dict is not a valid rule
    """
    try:
        if legacy and isinstance(data.get("conditions"), dict):
            data = dict(data, conditions=upgrade_legacy_tree(data["conditions"]))
        return SignalRule.model_validate(data)
    except ValidationError as e:
        raise TreeSerializationError(f"Invalid signal rule: {e}") from e


def rule_set_to_dict(rule_set: SignalRuleSet) -> Dict[str, Any]:
    return rule_set.model_dump(mode='json', by_alias=True)


def rule_set_from_dict(data: Dict[str, Any], legacy: bool = False) -> SignalRuleSet:
    """
    Build a rule set from ``{"buyRules": [...], "sellRules": [...]}``.

    Raises:
        TreeSerializationError: If any rule is invalid
    """
    buy = [rule_from_dict(r, legacy=legacy) for r in data.get("buyRules", data.get("buy_rules", []))]
    sell = [rule_from_dict(r, legacy=legacy) for r in data.get("sellRules", data.get("sell_rules", []))]
    return SignalRuleSet(buy_rules=tuple(buy), sell_rules=tuple(sell))


def trace_to_dict(result: Union[RuleEvalResult, ConditionLog]) -> Dict[str, Any]:
    """Wire dict of a rule result or condition log."""
    return result.to_dict()


def save_rule_set(rule_set: SignalRuleSet, path: Path) -> None:
    """
    Save a rule set to a JSON file.

    Raises:
        TreeSerializationError: If serialization fails
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(rule_set_to_dict(rule_set), f, indent=2, ensure_ascii=False)
    except (OSError, TypeError, ValueError) as e:
        raise TreeSerializationError(f"Failed to save rules to {path}: {e}") from e


def load_rule_set(path: Path, legacy: bool = False) -> SignalRuleSet:
    """
    Load a rule set from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        TreeSerializationError: If loading or parsing fails
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TreeSerializationError(f"Invalid JSON in {path}: {e}") from e

    return rule_set_from_dict(data, legacy=legacy)


def validate_tree_json(json_str: str) -> Tuple[bool, Optional[str], Optional[ConditionGroup]]:
    """
    Validate a JSON string as a condition tree.

    Returns:
        (True, None, tree) if valid, (False, error_message, None) otherwise
    """
    try:
        return True, None, tree_from_json(json_str)
    except TreeSerializationError as e:
        return False, str(e), None
