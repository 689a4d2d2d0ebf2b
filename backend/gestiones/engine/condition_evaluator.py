"""Condition Evaluator - Safe evaluation of single field conditions"""
import math
from typing import Any, Dict, Mapping

from ..domain.models import FieldCondition
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)


def to_text(value: Any) -> str:
    """
    Loose string coercion used by equality and contains

    Booleans render as "true"/"false", integral floats drop the ".0"
    and missing values render as an empty string (for contains and
    serialization), so "1" equals 1 and a checkbox value True equals the
    literal "true".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def to_number(value: Any) -> float:
    """
    Numeric coercion for ordered comparisons

    Anything non-numeric (including missing and empty values) becomes NaN,
    which makes every ordered comparison false.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def loose_equals(actual: Any, expected: Any) -> bool:
    """
    Equality on the loose text form

    A missing value only equals another missing value, so an untouched
    field is never equal to "" and "not_equals" holds for it.
    """
    if actual is None or expected is None:
        return actual is None and expected is None
    return to_text(actual) == to_text(expected)


class ConditionEvaluator:
    """
    Evaluate field conditions against a value context

    Uses a fixed operator set - no eval() or exec(). Unknown operators
    evaluate to true so a misconfigured rule never hides a field.
    """

    def evaluate(self, condition: FieldCondition, context: Mapping[str, Any]) -> bool:
        """
        Evaluate a single condition

        Args:
            condition: Condition to check
            context: Field key -> value map

        Returns:
            True if the condition holds
        """
        actual = context.get(condition.field_key)
        return self._compare(actual, condition.operator, condition.value)

    def _compare(self, actual: Any, operator: str, expected: Any) -> bool:
        """Compare values using operator"""

        if operator == ConditionOperator.EQUALS:
            return loose_equals(actual, expected)

        elif operator == ConditionOperator.NOT_EQUALS:
            return not loose_equals(actual, expected)

        elif operator == ConditionOperator.CONTAINS:
            return to_text(expected).lower() in to_text(actual).lower()

        elif operator == ConditionOperator.GREATER_THAN:
            return to_number(actual) > to_number(expected)

        elif operator == ConditionOperator.LESS_THAN:
            return to_number(actual) < to_number(expected)

        logger.debug(f"Unknown condition operator '{operator}', treating as satisfied")
        return True


_evaluator = ConditionEvaluator()


def evaluate_condition(condition: FieldCondition, context: Dict[str, Any]) -> bool:
    """Evaluate one condition with the shared evaluator"""
    return _evaluator.evaluate(condition, context)
