"""
Pydantic models for strategy condition trees and signal rules.

A condition tree is a discriminated union on the explicit ``type`` field:
``GROUP`` nodes combine their children with AND/OR logic, and the four leaf
kinds (THRESHOLD, CROSS, PRICE, POSITION) compare a numeric field against
a constant, another indicator series, an OHLC price or a position metric.

All models are frozen. Edits never mutate a tree in place; they produce a
new root value (see ``editor.py``).
"""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from signal_rules.config.limits import MAX_BAR_OFFSET


class GroupLogic(str, Enum):
    """Logical combinator of a condition group."""
    AND = "AND"
    OR = "OR"


class ConditionKind(str, Enum):
    """Discriminant values of the condition union."""
    GROUP = "GROUP"
    THRESHOLD = "THRESHOLD"
    CROSS = "CROSS"
    PRICE = "PRICE"
    POSITION = "POSITION"


class ComparisonOperator(str, Enum):
    """Operators for threshold, price and position comparisons."""
    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"
    EQ = "EQ"
    BETWEEN = "BETWEEN"


class CrossOperator(str, Enum):
    """Operators for crossover conditions.

    Older rule payloads store GT and LT; ``CrossCondition`` maps them
    through ``LEGACY_CROSS_OPERATOR_ALIASES`` when it is built.
    """
    CROSS_ABOVE = "CROSS_ABOVE"
    CROSS_BELOW = "CROSS_BELOW"


LEGACY_CROSS_OPERATOR_ALIASES: Dict[str, str] = {
    "GT": "CROSS_ABOVE",
    "LT": "CROSS_BELOW",
}


class PriceField(str, Enum):
    """OHLC price fields a PRICE condition can compare against."""
    CLOSE = "closePrice"
    OPEN = "openPrice"
    HIGH = "highPrice"
    LOW = "lowPrice"


class PositionField(str, Enum):
    """Known position metrics supplied by the position data provider."""
    CHANGE_PERCENT = "changePercent"        # % change since entry
    TRAILING_PERCENT = "trailingPercent"    # % below the high since entry
    HIGH_CHANGE_PERCENT = "highChangePercent"  # best % change since entry
    HOLDING_MINUTES = "holdingMinutes"      # minutes since entry


class SignalRuleType(str, Enum):
    """Action a signal rule produces when it passes."""
    BUY = "BUY"
    SELL = "SELL"


COMPARISON_OPERATOR_LABELS: Dict[str, str] = {
    "GT": ">",
    "GTE": ">=",
    "LT": "<",
    "LTE": "<=",
    "EQ": "=",
    "BETWEEN": "between",
}

CROSS_OPERATOR_LABELS: Dict[str, str] = {
    "CROSS_ABOVE": "crosses above",
    "CROSS_BELOW": "crosses below",
}

PRICE_FIELD_LABELS: Dict[str, str] = {
    "closePrice": "Close",
    "openPrice": "Open",
    "highPrice": "High",
    "lowPrice": "Low",
}


ConditionValue = Union[float, Tuple[float, float]]


def resolve_cross_operator(operator):
    """Map a stored cross operator (possibly a legacy alias) to CROSS_ABOVE/CROSS_BELOW.

    Anything that is not a known alias is returned unchanged for the
    model to accept or reject.
    """
    op = operator.value if hasattr(operator, 'value') else operator
    if isinstance(op, str):
        return LEGACY_CROSS_OPERATOR_ALIASES.get(op, op)
    return op


def _format_value(value: ConditionValue) -> str:
    if isinstance(value, tuple):
        return f"{value[0]:g} and {value[1]:g}"
    return f"{value:g}"


class _TreeModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ThresholdCondition(_TreeModel):
    """
    Compares an indicator field against a constant.

    Examples:
        - RSI(14).value > 70
        - BOLLINGER.bandwidth BETWEEN (0.02, 0.05)
    """
    type: Literal["THRESHOLD"] = "THRESHOLD"
    indicator_ref: Optional[int] = Field(None, description="Indicator config supplying the field")
    field: str = Field("", description="Indicator output field, e.g. 'value' or 'signal'")
    operator: ComparisonOperator = ComparisonOperator.GT
    value: ConditionValue = 0.0
    index: int = Field(0, ge=0, le=MAX_BAR_OFFSET, description="Bars back from the latest bar")

    def to_display_string(self) -> str:
        op = COMPARISON_OPERATOR_LABELS.get(self.operator, self.operator)
        return f"ref({self.indicator_ref}).{self.field or '?'} {op} {_format_value(self.value)}"


class CrossCondition(_TreeModel):
    """
    Detects a source series crossing a target series between two bars.

    Examples:
        - EMA(9).value crosses above EMA(21).value
        - MACD.macd crosses below MACD.signal
    """
    type: Literal["CROSS"] = "CROSS"
    indicator_ref: Optional[int] = None
    field: str = ""
    operator: CrossOperator = CrossOperator.CROSS_ABOVE
    target_ref: Optional[int] = None
    target_field: Optional[str] = None
    index: int = Field(0, ge=0, le=MAX_BAR_OFFSET)
    target_index: int = Field(0, ge=0, le=MAX_BAR_OFFSET)

    @field_validator('operator', mode='before')
    @classmethod
    def resolve_legacy_operator(cls, v):
        """Legacy GT/LT become CROSS_ABOVE/CROSS_BELOW before validation."""
        return resolve_cross_operator(v)

    def to_display_string(self) -> str:
        op = CROSS_OPERATOR_LABELS.get(self.operator, self.operator)
        return (
            f"ref({self.indicator_ref}).{self.field or '?'} {op} "
            f"ref({self.target_ref}).{self.target_field or '?'}"
        )


class PriceCondition(_TreeModel):
    """Compares an indicator field against an OHLC price of the same bar."""
    type: Literal["PRICE"] = "PRICE"
    indicator_ref: Optional[int] = None
    field: str = ""
    operator: ComparisonOperator = ComparisonOperator.GT
    price_field: PriceField = PriceField.CLOSE
    index: int = Field(0, ge=0, le=MAX_BAR_OFFSET)

    def to_display_string(self) -> str:
        op = COMPARISON_OPERATOR_LABELS.get(self.operator, self.operator)
        price = PRICE_FIELD_LABELS.get(self.price_field, self.price_field)
        return f"ref({self.indicator_ref}).{self.field or '?'} {op} {price}"


class PositionCondition(_TreeModel):
    """Compares a position metric (e.g. changePercent) against a constant."""
    type: Literal["POSITION"] = "POSITION"
    field: str = ""
    operator: ComparisonOperator = ComparisonOperator.LTE
    value: ConditionValue = 0.0

    def to_display_string(self) -> str:
        op = COMPARISON_OPERATOR_LABELS.get(self.operator, self.operator)
        return f"position.{self.field or '?'} {op} {_format_value(self.value)}"


class ConditionGroup(_TreeModel):
    """
    AND/OR combinator over an ordered sequence of child conditions.

    Children may be leaves or nested groups. Child order is evaluation
    order and is preserved by every edit.
    """
    type: Literal["GROUP"] = "GROUP"
    logic: GroupLogic = GroupLogic.AND
    conditions: Tuple["Condition", ...] = ()

    def to_display_string(self) -> str:
        if not self.conditions:
            return "()"
        joiner = f" {self.logic} "
        return "(" + joiner.join(c.to_display_string() for c in self.conditions) + ")"


LeafCondition = Union[ThresholdCondition, CrossCondition, PriceCondition, PositionCondition]

Condition = Annotated[
    Union[ConditionGroup, ThresholdCondition, CrossCondition, PriceCondition, PositionCondition],
    Field(discriminator="type"),
]

ConditionGroup.model_rebuild()


def is_condition_group(node) -> bool:
    """True if ``node`` is a ConditionGroup (checked by its type tag)."""
    return getattr(node, "type", None) == ConditionKind.GROUP.value


class SignalRule(_TreeModel):
    """
    A BUY or SELL rule owning one condition tree.

    Among passing rules of the same type, the lowest ``priority`` number wins.
    """
    rule_no: int = Field(..., ge=0, description="Rule identifier")
    rule_type: SignalRuleType
    priority: int = Field(0, ge=0)
    is_active: bool = True
    conditions: ConditionGroup = Field(default_factory=ConditionGroup)

    def to_display_string(self) -> str:
        active = "✓" if self.is_active else "✗"
        return f"[{active}] {self.rule_type} #{self.rule_no} (P{self.priority}): {self.conditions.to_display_string()}"


class SignalRuleSet(_TreeModel):
    """BUY and SELL rules of one strategy."""
    buy_rules: Tuple[SignalRule, ...] = ()
    sell_rules: Tuple[SignalRule, ...] = ()

    def get_rules(self, rule_type: Union[SignalRuleType, str]) -> List[SignalRule]:
        """Active rules of ``rule_type`` sorted by priority (stable)."""
        type_str = rule_type.value if hasattr(rule_type, 'value') else rule_type
        rules = self.buy_rules if type_str == SignalRuleType.BUY.value else self.sell_rules
        return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)

    def all_rules(self) -> List[SignalRule]:
        return list(self.buy_rules) + list(self.sell_rules)
