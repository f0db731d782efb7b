"""
Rule Engine Module

Evaluates a strategy's signal rules on one tick and decides the action.

Evaluation flow:
1. Flat position -> BUY rules are evaluated, holding -> SELL rules
2. Every active rule of that type is evaluated and traced
3. The passing rule with the lowest priority number triggers the action
   (ENTRY for BUY, EXIT for SELL)
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from signal_rules.rules.conditions import evaluate_group
from signal_rules.rules.models import SignalRule, SignalRuleSet, SignalRuleType
from signal_rules.rules.snapshots import EvaluationContext
from signal_rules.rules.trace import (
    ConditionLog,
    GroupTrace,
    PositionState,
    RuleEvalResult,
    SignalAction,
)


logger = logging.getLogger(__name__)


def evaluate_rule(rule: SignalRule, context: EvaluationContext) -> RuleEvalResult:
    """
    Evaluate one signal rule.

    Any unexpected error is logged and the rule is recorded as failed, so a
    single bad rule never stops signal generation.
    """
    try:
        trace = evaluate_group(rule.conditions, context)
    except Exception as e:
        logger.error(f"Error evaluating {rule.rule_type} rule #{rule.rule_no}: {e}")
        trace = GroupTrace(logic=rule.conditions.logic, passed=False, conditions=())

    return RuleEvalResult(
        rule_no=rule.rule_no,
        rule_type=rule.rule_type,
        priority=rule.priority,
        passed=trace.passed,
        condition_trace=trace,
    )


def evaluate_rules(rules: Iterable[SignalRule], context: EvaluationContext) -> List[RuleEvalResult]:
    """Evaluate rules in priority order (lowest number first, stable)."""
    ordered = sorted(rules, key=lambda r: r.priority)
    return [evaluate_rule(rule, context) for rule in ordered]


def select_triggered_rule(results: Sequence[RuleEvalResult]) -> Optional[RuleEvalResult]:
    """
    Pick the rule that determines the action.

    Returns:
        The passing result with the lowest priority number (ties keep
        input order), or None if no rule passed
    """
    passing = [r for r in results if r.passed]
    if not passing:
        return None
    return min(passing, key=lambda r: r.priority)


class RuleEngine:
    """
    Signal rule evaluation engine.

    Holds the active rule set of one strategy and evaluates it tick by tick.
    The engine does not own market data: the caller supplies an
    EvaluationContext (typically from a SnapshotBuffer) on every tick.
    """

    def __init__(self, rule_set: SignalRuleSet):
        """
        Initialize the rule engine with a rule set.

        Args:
            rule_set: BUY and SELL rules to evaluate
        """
        self.rule_set = rule_set
        self._buy_rules = rule_set.get_rules(SignalRuleType.BUY)
        self._sell_rules = rule_set.get_rules(SignalRuleType.SELL)
        self._rule_results: Dict[int, bool] = {}  # Last result per rule number

    def reload_rules(self, rule_set: SignalRuleSet) -> None:
        """
        Swap in a new rule set (e.g. after an edit or a version restore).

        Args:
            rule_set: New rule set to use
        """
        self.rule_set = rule_set
        self._buy_rules = rule_set.get_rules(SignalRuleType.BUY)
        self._sell_rules = rule_set.get_rules(SignalRuleType.SELL)
        self._rule_results.clear()
        logger.info(
            f"Rules reloaded: {len(self._buy_rules)} BUY, {len(self._sell_rules)} SELL active"
        )

    def get_rules(self, rule_type: Union[SignalRuleType, str]) -> List[SignalRule]:
        type_str = rule_type.value if hasattr(rule_type, 'value') else rule_type
        return list(self._buy_rules if type_str == SignalRuleType.BUY.value else self._sell_rules)

    def evaluate_rule_type(
        self,
        rule_type: Union[SignalRuleType, str],
        context: EvaluationContext,
    ) -> List[RuleEvalResult]:
        """
        Evaluate all active rules of one type.

        Args:
            rule_type: BUY or SELL
            context: Data for the tick

        Returns:
            Results in priority order
        """
        results = evaluate_rules(self.get_rules(rule_type), context)
        for result in results:
            self._rule_results[result.rule_no] = result.passed
            logger.debug(f"{result.rule_type} rule #{result.rule_no}: {result.passed}")
        return results

    def evaluate_tick(
        self,
        context: EvaluationContext,
        position_state: Union[PositionState, str] = PositionState.NONE,
    ) -> ConditionLog:
        """
        Evaluate one tick and build its condition log entry.

        Args:
            context: Data for the tick
            position_state: NONE evaluates BUY rules, HOLDING evaluates SELL rules

        Returns:
            ConditionLog with every rule's trace and the resulting action
        """
        state = PositionState(position_state)
        if state == PositionState.HOLDING:
            rule_type, action = SignalRuleType.SELL, SignalAction.EXIT
        else:
            rule_type, action = SignalRuleType.BUY, SignalAction.ENTRY

        results = self.evaluate_rule_type(rule_type, context)
        triggered = select_triggered_rule(results)

        snapshot = context.current
        price = snapshot.price if snapshot is not None else None

        if triggered is not None:
            logger.info(f"{rule_type.value} rule #{triggered.rule_no} triggered {action.value}")

        return ConditionLog(
            candle_timestamp=snapshot.timestamp if snapshot is not None else None,
            open_price=price.open if price is not None else None,
            high_price=price.high if price is not None else None,
            low_price=price.low if price is not None else None,
            close_price=price.close if price is not None else None,
            position_state=state,
            evaluated_rule_type=rule_type,
            rule_results=tuple(results),
            action=action if triggered is not None else None,
            action_rule_no=triggered.rule_no if triggered is not None else None,
        )

    def get_rule_result(self, rule_no: int) -> Optional[bool]:
        """
        Get the last evaluation result for a specific rule.

        Args:
            rule_no: The rule's number

        Returns:
            Last evaluation result, or None if not yet evaluated
        """
        return self._rule_results.get(rule_no)

    def get_all_rule_results(self) -> Dict[int, bool]:
        """Get all rule evaluation results from the last cycle."""
        return self._rule_results.copy()


def create_rule_engine(rule_set: SignalRuleSet) -> RuleEngine:
    """
    Convenience function to create a rule engine.

    Args:
        rule_set: Rules to evaluate

    Returns:
        Configured RuleEngine instance
    """
    return RuleEngine(rule_set)
