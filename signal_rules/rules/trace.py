"""
Evaluation trace models.

A trace is isomorphic to the condition tree that produced it: every group
becomes a ``GroupTrace`` and every leaf a ``LeafTrace`` recording the
operand values that were compared. Traces are what the backtest condition
log and the live signal log store, so their serialized shape must stay
stable across engines.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from signal_rules.rules.models import GroupLogic, SignalRuleType


class PositionState(str, Enum):
    """Whether a position is open when a tick is evaluated."""
    NONE = "NONE"
    HOLDING = "HOLDING"


class SignalAction(str, Enum):
    """Action taken on a tick."""
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class _TraceModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys).

        Optional keys that were never set (e.g. ``prevValue`` on a
        threshold leaf) are omitted; keys set to None are kept.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class LeafTrace(_TraceModel):
    """Outcome of one leaf condition."""
    type: Literal["THRESHOLD", "CROSS", "PRICE", "POSITION"]
    passed: bool
    indicator_ref: Optional[int]
    field: str
    operator: str
    actual_value: Optional[float]
    target_value: Optional[float]
    prev_value: Optional[float] = None
    prev_target_value: Optional[float] = None
    price_field: Optional[str] = None
    target_range: Optional[Tuple[float, float]] = None


class GroupTrace(_TraceModel):
    """Outcome of a group: ``passed`` is the AND/OR of its children."""
    type: Literal["GROUP"] = "GROUP"
    logic: GroupLogic
    passed: bool
    conditions: Tuple["ConditionTrace", ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        # exclude_unset would drop the defaulted tag and empty children
        data = self.model_dump(mode="json", by_alias=True, include={"type", "logic", "passed"})
        data["conditions"] = [child.to_dict() for child in self.conditions]
        return data


ConditionTrace = Annotated[Union[GroupTrace, LeafTrace], Field(discriminator="type")]

GroupTrace.model_rebuild()


class RuleEvalResult(_TraceModel):
    """Outcome of one signal rule on one tick."""
    rule_no: int
    rule_type: SignalRuleType
    priority: int
    passed: bool
    condition_trace: GroupTrace

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"condition_trace"})
        data["conditionTrace"] = self.condition_trace.to_dict()
        return data


class ConditionLog(_TraceModel):
    """
    Per-bar record of a backtest or live run.

    Flat ticks evaluate BUY rules, holding ticks evaluate SELL rules. The
    first passing rule by priority sets ``action`` and ``action_rule_no``.
    """
    candle_timestamp: Optional[datetime] = None
    open_price: Optional[float] = None
    high_price: Optional[float] = None
    low_price: Optional[float] = None
    close_price: Optional[float] = None
    position_state: PositionState
    evaluated_rule_type: SignalRuleType
    rule_results: Tuple[RuleEvalResult, ...] = ()
    action: Optional[SignalAction] = None
    action_rule_no: Optional[int] = None

    @property
    def any_passed(self) -> bool:
        return any(result.passed for result in self.rule_results)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"rule_results"})
        data["ruleResults"] = [result.to_dict() for result in self.rule_results]
        return data


def flatten_leaf_traces(trace: Union[GroupTrace, LeafTrace]) -> List[LeafTrace]:
    """All leaf traces of a trace tree in evaluation order."""
    if isinstance(trace, LeafTrace):
        return [trace]
    leaves: List[LeafTrace] = []
    for child in trace.conditions:
        leaves.extend(flatten_leaf_traces(child))
    return leaves
