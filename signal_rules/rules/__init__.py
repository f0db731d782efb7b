"""
Signal rule data models and evaluation.

This module provides condition trees, their editor and validator, and the
engine that evaluates BUY/SELL signal rules against market snapshots.
"""

from signal_rules.config.limits import MAX_BAR_OFFSET, MAX_DEPTH, MAX_RULES_PER_TYPE

from .models import (
    GroupLogic,
    ConditionKind,
    ComparisonOperator,
    CrossOperator,
    PriceField,
    PositionField,
    SignalRuleType,
    ThresholdCondition,
    CrossCondition,
    PriceCondition,
    PositionCondition,
    ConditionGroup,
    LeafCondition,
    Condition,
    SignalRule,
    SignalRuleSet,
    is_condition_group,
    resolve_cross_operator,
)
from .defaults import (
    create_default_group,
    create_default_threshold,
    create_default_cross,
    create_default_price,
    create_default_position,
    create_default_leaf,
)
from .editor import (
    PathError,
    get_condition_depth,
    can_add_nested_group,
    update_at_path,
    add_at_path,
    remove_at_path,
    replace_at_path,
    set_group_logic,
    get_at_path,
)
from .validator import (
    EMPTY_GROUP_ERROR,
    validate_condition_tree,
    validate_signal_rule,
    validate_rule_set,
)
from .snapshots import (
    IndicatorDataProvider,
    PriceDataProvider,
    PositionDataProvider,
    PriceBar,
    MarketSnapshot,
    EvaluationContext,
    SnapshotBuffer,
    snapshot_from_mapping,
)
from .trace import (
    PositionState,
    SignalAction,
    LeafTrace,
    GroupTrace,
    RuleEvalResult,
    ConditionLog,
    flatten_leaf_traces,
)
from .conditions import (
    ConditionEvaluator,
    evaluate_condition,
    evaluate_group,
)
from .engine import (
    RuleEngine,
    create_rule_engine,
    evaluate_rule,
    evaluate_rules,
    select_triggered_rule,
)
from .evaluator import (
    build_snapshots,
    evaluate_rule_history,
    evaluate_condition_history,
    get_last_true_info,
    PositionTracker,
    replay_condition_logs,
)
from .serialization import (
    TreeSerializationError,
    upgrade_legacy_tree,
    tree_to_dict,
    tree_from_dict,
    tree_to_json,
    tree_from_json,
    rule_to_dict,
    rule_from_dict,
    rule_set_to_dict,
    rule_set_from_dict,
    trace_to_dict,
    save_rule_set,
    load_rule_set,
    validate_tree_json,
)

__all__ = [
    # Limits
    'MAX_DEPTH',
    'MAX_RULES_PER_TYPE',
    'MAX_BAR_OFFSET',
    # Enums
    'GroupLogic',
    'ConditionKind',
    'ComparisonOperator',
    'CrossOperator',
    'PriceField',
    'PositionField',
    'SignalRuleType',
    # Models
    'ThresholdCondition',
    'CrossCondition',
    'PriceCondition',
    'PositionCondition',
    'ConditionGroup',
    'LeafCondition',
    'Condition',
    'SignalRule',
    'SignalRuleSet',
    'is_condition_group',
    'resolve_cross_operator',
    # Defaults
    'create_default_group',
    'create_default_threshold',
    'create_default_cross',
    'create_default_price',
    'create_default_position',
    'create_default_leaf',
    # Editor
    'PathError',
    'get_condition_depth',
    'can_add_nested_group',
    'update_at_path',
    'add_at_path',
    'remove_at_path',
    'replace_at_path',
    'set_group_logic',
    'get_at_path',
    # Validation
    'EMPTY_GROUP_ERROR',
    'validate_condition_tree',
    'validate_signal_rule',
    'validate_rule_set',
    # Snapshots
    'IndicatorDataProvider',
    'PriceDataProvider',
    'PositionDataProvider',
    'PriceBar',
    'MarketSnapshot',
    'EvaluationContext',
    'SnapshotBuffer',
    'snapshot_from_mapping',
    # Traces
    'PositionState',
    'SignalAction',
    'LeafTrace',
    'GroupTrace',
    'RuleEvalResult',
    'ConditionLog',
    'flatten_leaf_traces',
    # Conditions
    'ConditionEvaluator',
    'evaluate_condition',
    'evaluate_group',
    # Engine
    'RuleEngine',
    'create_rule_engine',
    'evaluate_rule',
    'evaluate_rules',
    'select_triggered_rule',
    # Evaluator (history)
    'build_snapshots',
    'evaluate_rule_history',
    'evaluate_condition_history',
    'get_last_true_info',
    'PositionTracker',
    'replay_condition_logs',
    # Serialization
    'TreeSerializationError',
    'upgrade_legacy_tree',
    'tree_to_dict',
    'tree_from_dict',
    'tree_to_json',
    'tree_from_json',
    'rule_to_dict',
    'rule_from_dict',
    'rule_set_to_dict',
    'rule_set_from_dict',
    'trace_to_dict',
    'save_rule_set',
    'load_rule_set',
    'validate_tree_json',
]
