"""Rule Evaluation - visibility, requiredness and option overrides

Pure functions over (rules, context). Nothing here raises: malformed
rules degrade to the permissive outcome (visible, not required, no
option override).
"""
from typing import Any, Dict, List, Mapping, Optional

from ..domain.models import FieldRule, normalize_rules, migrate_legacy_dependency
from ..domain.enums import RuleEffect, RuleLogic
from .condition_evaluator import evaluate_condition
from .expression_parser import evaluate_expression

__all__ = [
    "normalize_rules",
    "migrate_legacy_dependency",
    "evaluate_rule",
    "should_show",
    "is_dynamically_required",
    "resolve_options",
    "merged_context",
    "should_show_column",
    "is_column_dynamically_required",
    "resolve_column_options",
]


def evaluate_rule(rule: FieldRule, context: Mapping[str, Any]) -> bool:
    """Evaluate the conditions of one rule; an expression overrides conditions"""
    if rule.expression and rule.expression.strip():
        return evaluate_expression(rule.expression, context)

    if not rule.conditions:
        return True

    if rule.logic == RuleLogic.OR:
        return any(evaluate_condition(c, context) for c in rule.conditions)
    return all(evaluate_condition(c, context) for c in rule.conditions)


def _rules_with_effect(rules: List[FieldRule], effect: RuleEffect) -> List[FieldRule]:
    return [r for r in rules if r.effect == effect]


def should_show(rules: List[FieldRule], context: Mapping[str, Any]) -> bool:
    """No show rules means always visible; otherwise any true show rule"""
    show_rules = _rules_with_effect(rules, RuleEffect.SHOW)
    if not show_rules:
        return True
    return any(evaluate_rule(r, context) for r in show_rules)


def is_dynamically_required(rules: List[FieldRule], context: Mapping[str, Any]) -> bool:
    """Any true required rule; callers OR this with the static flag"""
    return any(evaluate_rule(r, context) for r in _rules_with_effect(rules, RuleEffect.REQUIRED))


def resolve_options(
    rules: List[FieldRule],
    context: Mapping[str, Any],
    target_column_key: Optional[str] = None
) -> Optional[List[str]]:
    """
    Option override from the first matching options rule

    Args:
        rules: Rules attached to the field
        context: Value context
        target_column_key: None for the field's own options, a column key
            for a column of a table field

    Returns:
        optionValues of the first rule (declared order) that holds, or
        None so the caller falls back to the static options
    """
    for rule in _rules_with_effect(rules, RuleEffect.OPTIONS):
        if (rule.target_column_key or None) != target_column_key:
            continue
        if evaluate_rule(rule, context):
            return list(rule.option_values or [])
    return None


# --- Column-level helpers ---
# Row values are merged over form values so column rules can reference
# sibling columns and top-level fields; a sibling column shadows a
# top-level field with the same key.

def merged_context(row_values: Mapping[str, Any], form_values: Mapping[str, Any]) -> Dict[str, Any]:
    return {**form_values, **row_values}


def should_show_column(
    rules: List[FieldRule],
    row_values: Mapping[str, Any],
    form_values: Mapping[str, Any]
) -> bool:
    return should_show(rules, merged_context(row_values, form_values))


def is_column_dynamically_required(
    rules: List[FieldRule],
    row_values: Mapping[str, Any],
    form_values: Mapping[str, Any]
) -> bool:
    return is_dynamically_required(rules, merged_context(row_values, form_values))


def resolve_column_options(
    rules: List[FieldRule],
    row_values: Mapping[str, Any],
    form_values: Mapping[str, Any]
) -> Optional[List[str]]:
    """Per-row option override from a column's own options rules"""
    return resolve_options(rules, merged_context(row_values, form_values))
