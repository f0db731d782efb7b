"""
Default condition creators.

Each creator returns a well-typed placeholder node that the editor can
insert straight away. Placeholders are deliberately incomplete (no
indicator reference, empty field) so the validator flags them until the
user fills in real references.
"""

from typing import Union

from signal_rules.rules.models import (
    ComparisonOperator,
    ConditionGroup,
    ConditionKind,
    CrossCondition,
    CrossOperator,
    GroupLogic,
    LeafCondition,
    PositionCondition,
    PositionField,
    PriceCondition,
    PriceField,
    ThresholdCondition,
)


def create_default_group() -> ConditionGroup:
    """Empty AND group; the initial tree of every new rule."""
    return ConditionGroup(logic=GroupLogic.AND, conditions=())


def create_default_threshold() -> ThresholdCondition:
    return ThresholdCondition(
        indicator_ref=None,
        field="",
        operator=ComparisonOperator.GT,
        value=0,
    )


def create_default_cross() -> CrossCondition:
    return CrossCondition(
        indicator_ref=None,
        field="",
        operator=CrossOperator.CROSS_ABOVE,
        target_ref=None,
        target_field=None,
    )


def create_default_price() -> PriceCondition:
    return PriceCondition(
        indicator_ref=None,
        field="",
        operator=ComparisonOperator.GT,
        price_field=PriceField.CLOSE,
    )


def create_default_position() -> PositionCondition:
    """Stop-loss style placeholder: changePercent <= -5."""
    return PositionCondition(
        field=PositionField.CHANGE_PERCENT.value,
        operator=ComparisonOperator.LTE,
        value=-5,
    )


def create_default_leaf(kind: Union[ConditionKind, str]) -> LeafCondition:
    """
    Create a default leaf of the given kind.

    Args:
        kind: THRESHOLD, CROSS, PRICE or POSITION

    Returns:
        Placeholder leaf condition

    Raises:
        ValueError: If ``kind`` is not a leaf kind
    """
    kind_str = kind.value if hasattr(kind, 'value') else kind

    if kind_str == ConditionKind.THRESHOLD.value:
        return create_default_threshold()
    elif kind_str == ConditionKind.CROSS.value:
        return create_default_cross()
    elif kind_str == ConditionKind.PRICE.value:
        return create_default_price()
    elif kind_str == ConditionKind.POSITION.value:
        return create_default_position()
    else:
        raise ValueError(f"Unsupported leaf condition type: {kind_str}")
