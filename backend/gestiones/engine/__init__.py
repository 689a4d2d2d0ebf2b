"""Engine - Form rules evaluation and the approval workflow state machine"""
from .condition_evaluator import ConditionEvaluator, evaluate_condition
from .expression_parser import parse_expression, evaluate_expression, conditions_to_expression
from .rules import normalize_rules, should_show, is_dynamically_required, resolve_options
from .form_model import build_form_state, validate_dynamic_form, empty_row
from .level_resolver import LevelResolver
from .permission_guard import PermissionGuard
from .audit_writer import AuditWriter
from .workflow_engine import WorkflowEngine

__all__ = [
    "ConditionEvaluator",
    "evaluate_condition",
    "parse_expression",
    "evaluate_expression",
    "conditions_to_expression",
    "normalize_rules",
    "should_show",
    "is_dynamically_required",
    "resolve_options",
    "build_form_state",
    "validate_dynamic_form",
    "empty_row",
    "LevelResolver",
    "PermissionGuard",
    "AuditWriter",
    "WorkflowEngine",
]
