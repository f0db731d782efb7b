"""
Path-Addressed Editor

Pure, immutable edits of a condition tree. A path is a sequence of
zero-based child indices from the root; the empty path is the root itself.
Every operation returns a new root and leaves its input untouched. Paths
are positional, so a path taken before an insert or removal of a sibling
may point at a different node afterwards.
"""

import logging
import operator
from typing import Callable, Optional, Sequence, Tuple, Union

from signal_rules.config.limits import MAX_DEPTH
from signal_rules.rules.defaults import create_default_group
from signal_rules.rules.models import (
    Condition,
    ConditionGroup,
    GroupLogic,
    is_condition_group,
)


logger = logging.getLogger(__name__)


Path = Sequence[int]
Updater = Callable[[Condition], Optional[Condition]]


class PathError(IndexError):
    """Raised when a path does not address a node of the tree."""

    def __init__(self, message: str, path: Path):
        super().__init__(message)
        self.path = tuple(path)


def get_condition_depth(node: Condition) -> int:
    """
    Nesting depth of a node.

    A leaf has depth 0, an empty group 1, and a non-empty group one more
    than its deepest child.
    """
    if not is_condition_group(node):
        return 0
    if not node.conditions:
        return 1
    return 1 + max(get_condition_depth(child) for child in node.conditions)


def can_add_nested_group(current_depth: int, max_depth: int = MAX_DEPTH) -> bool:
    """Whether a group at ``current_depth`` may receive a nested group.

    Advisory only: the editor never enforces the limit, the validator does.
    """
    return current_depth < max_depth


def _rebuild(group: ConditionGroup, **changes) -> ConditionGroup:
    """Copy of ``group`` with ``changes`` applied, validated like a new group."""
    data = {"logic": group.logic, "conditions": group.conditions}
    data.update(changes)
    return ConditionGroup(**data)


def _check_index(group: ConditionGroup, index, full_path: Path, position: int) -> int:
    """Normalise a path segment (numpy integers included) and bounds-check it."""
    try:
        normalised = None if isinstance(index, bool) else operator.index(index)
    except TypeError:
        normalised = None
    if normalised is None:
        raise PathError(f"Path segment {index!r} at position {position} is not an integer", full_path)

    index = normalised
    if index < 0 or index >= len(group.conditions):
        raise PathError(
            f"Path index {index} at position {position} is out of range "
            f"(group has {len(group.conditions)} conditions)",
            full_path,
        )
    return index


def _update(
    group: ConditionGroup,
    path: Path,
    updater: Updater,
    full_path: Path,
    position: int,
    strict: bool,
) -> ConditionGroup:
    rest = path[1:]
    index = _check_index(group, path[0], full_path, position)

    new_conditions = list(group.conditions)

    if not rest:
        result = updater(new_conditions[index])
        if result is None:
            del new_conditions[index]
        else:
            new_conditions[index] = result
    else:
        child = new_conditions[index]
        if is_condition_group(child):
            new_conditions[index] = _update(child, rest, updater, full_path, position + 1, strict)
        elif strict:
            raise PathError(
                f"Path descends into a {child.type} leaf at position {position}",
                full_path,
            )
        else:
            logger.debug(f"Path {tuple(full_path)} descends into a leaf; edit ignored")
            return group

    return _rebuild(group, conditions=tuple(new_conditions))


def update_at_path(
    root: ConditionGroup,
    path: Path,
    updater: Updater,
    strict: bool = False,
) -> ConditionGroup:
    """
    Apply ``updater`` to the node at ``path`` and return the new root.

    Args:
        root: Root group of the tree
        path: Child indices from the root; empty for the root itself
        updater: Receives the addressed node and returns its replacement,
            or None to delete it. At the root, None yields a fresh empty
            AND group.
        strict: Raise PathError instead of ignoring a path that descends
            into a leaf

    Returns:
        New root group

    Raises:
        PathError: If an index is out of range (or, with ``strict``, if
            the path descends into a leaf)
        ValidationError: If the updater returns something that is not a
            condition (or, at the root, not a group)
    """
    if len(path) == 0:
        result = updater(root)
        if result is None:
            return create_default_group()
        return ConditionGroup.model_validate(result)

    return _update(root, tuple(path), updater, tuple(path), 0, strict)


def add_at_path(
    root: ConditionGroup,
    group_path: Path,
    new_child: Condition,
    strict: bool = False,
) -> ConditionGroup:
    """Append ``new_child`` to the group at ``group_path``.

    No-op if the addressed node is a leaf.
    """
    def _append(node: Condition) -> Condition:
        if is_condition_group(node):
            return _rebuild(node, conditions=node.conditions + (new_child,))
        return node

    return update_at_path(root, group_path, _append, strict=strict)


def remove_at_path(root: ConditionGroup, path: Path, strict: bool = False) -> ConditionGroup:
    """Remove the node at ``path``. Removing the root resets it to an empty AND group."""
    return update_at_path(root, path, lambda node: None, strict=strict)


def replace_at_path(
    root: ConditionGroup,
    path: Path,
    replacement: Condition,
    strict: bool = False,
) -> ConditionGroup:
    """Replace the node at ``path`` with ``replacement``."""
    return update_at_path(root, path, lambda node: replacement, strict=strict)


def set_group_logic(
    root: ConditionGroup,
    group_path: Path,
    logic: Union[GroupLogic, str],
    strict: bool = False,
) -> ConditionGroup:
    """Set the AND/OR logic of the group at ``group_path``. No-op on a leaf."""
    def _set_logic(node: Condition) -> Condition:
        if is_condition_group(node):
            return _rebuild(node, logic=GroupLogic(logic))
        return node

    return update_at_path(root, group_path, _set_logic, strict=strict)


def get_at_path(root: ConditionGroup, path: Path) -> Condition:
    """
    Look up the node at ``path``.

    Raises:
        PathError: If the path is out of range or descends into a leaf
    """
    node: Condition = root
    full_path: Tuple[int, ...] = tuple(path)
    for position, index in enumerate(full_path):
        if not is_condition_group(node):
            raise PathError(f"Path descends into a {node.type} leaf at position {position}", full_path)
        node = node.conditions[_check_index(node, index, full_path, position)]
    return node
