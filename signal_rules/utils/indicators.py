"""
Scalar comparison and crossover primitives.

These are the only places where operand values are compared, so the live
evaluator and the history evaluator agree on every bar. Equality is exact.
"""

from typing import Optional, Tuple, Union


def compare(
    actual: Optional[float],
    operator: str,
    target: Union[float, Tuple[float, float], None],
) -> bool:
    """
    Compare ``actual`` against ``target`` with a comparison operator.

    BETWEEN expects a (low, high) pair and is inclusive on both ends; the
    pair may be given in either order. Every other operator expects a
    scalar. A missing operand or a value of the wrong shape is False.

    Example:
        >>> compare(75.0, "GT", 70.0)
        True
        >>> compare(5.0, "BETWEEN", (10.0, 1.0))
        True
    """
    if actual is None or target is None:
        return False

    op = operator.value if hasattr(operator, 'value') else operator

    if op == "BETWEEN":
        if not isinstance(target, (tuple, list)) or len(target) != 2:
            return False
        low, high = min(target), max(target)
        return low <= actual <= high

    if isinstance(target, (tuple, list)):
        return False

    if op == "GT":
        return actual > target
    elif op == "GTE":
        return actual >= target
    elif op == "LT":
        return actual < target
    elif op == "LTE":
        return actual <= target
    elif op == "EQ":
        return actual == target
    return False


def crosses_above(
    prev_a: Optional[float],
    prev_b: Optional[float],
    curr_a: Optional[float],
    curr_b: Optional[float],
) -> bool:
    """
    Check if A crossed above B between the previous and the current bar.

    A crossover occurs when:
        - Previous bar: A <= B
        - Current bar: A > B

    Example:
        >>> crosses_above(9.0, 10.0, 11.0, 10.0)
        True
        >>> crosses_above(11.0, 10.0, 12.0, 10.0)  # already above
        False
    """
    if None in (prev_a, prev_b, curr_a, curr_b):
        return False
    return prev_a <= prev_b and curr_a > curr_b


def crosses_below(
    prev_a: Optional[float],
    prev_b: Optional[float],
    curr_a: Optional[float],
    curr_b: Optional[float],
) -> bool:
    """
    Check if A crossed below B between the previous and the current bar.

    A crossunder occurs when:
        - Previous bar: A >= B
        - Current bar: A < B
    """
    if None in (prev_a, prev_b, curr_a, curr_b):
        return False
    return prev_a >= prev_b and curr_a < curr_b
