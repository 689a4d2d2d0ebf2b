"""Field Validations - type-aware value constraints"""
import math
import re
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..domain.models import (
    TextValidation, NumberValidation, DateValidation, FieldValidation
)
from ..domain.enums import FieldType
from .condition_evaluator import to_number, to_text
from ..utils.logger import get_logger

logger = get_logger(__name__)

_VALIDATION_MODELS = {
    FieldType.TEXT.value: TextValidation,
    FieldType.NUMBER.value: NumberValidation,
    FieldType.DATE.value: DateValidation,
}


def is_empty(value: Any) -> bool:
    """Missing, None and empty string count as empty"""
    return value is None or value == ""


def to_input_number(value: Any) -> float:
    """Numeric value of a number input; whitespace-only input reads as 0"""
    if isinstance(value, str) and value and not value.strip():
        return 0.0
    return to_number(value)


def parse_validation(
    field_type: str,
    raw: Union[Dict[str, Any], FieldValidation, None]
) -> Optional[FieldValidation]:
    """
    Read stored validation settings for a field type

    Returns None when the type has no validation or the stored settings
    are malformed (logged, never raised).
    """
    if raw is None:
        return None
    model = _VALIDATION_MODELS.get(getattr(field_type, "value", field_type))
    if model is None:
        return None
    if isinstance(raw, model):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed {field_type} validation: {e.error_count()} errors")
        return None


def validate_field_value(
    value: Any,
    field_type: str,
    validation: Union[Dict[str, Any], FieldValidation, None]
) -> Optional[str]:
    """
    Validate a single value against its validation settings

    Returns:
        Error message, or None if the value is valid or empty
    """
    parsed = parse_validation(field_type, validation)
    if parsed is None or is_empty(value):
        return None

    if isinstance(parsed, TextValidation):
        return _validate_text(to_text(value), parsed)
    if isinstance(parsed, NumberValidation):
        return _validate_number(to_input_number(value), parsed)
    if isinstance(parsed, DateValidation):
        return _validate_date(str(value), parsed)
    return None


def validate_cell_value(
    value: Any,
    column_type: str,
    validation: Union[Dict[str, Any], FieldValidation, None]
) -> Optional[str]:
    """Validate a table cell against its column validation"""
    return validate_field_value(value, column_type, validation)


def _validate_text(value: str, v: TextValidation) -> Optional[str]:
    if v.min_length and v.min_length > 0 and len(value) < v.min_length:
        return f"Mínimo {v.min_length} caracteres (actual: {len(value)})"
    if v.max_length and v.max_length > 0 and len(value) > v.max_length:
        return f"Máximo {v.max_length} caracteres (actual: {len(value)})"
    if v.pattern:
        try:
            if not re.search(v.pattern, value):
                return v.pattern_message or "No cumple el formato requerido"
        except re.error as e:
            logger.warning(f"Ignoring invalid validation pattern {v.pattern!r}: {e}")
    return None


def _validate_number(value: float, v: NumberValidation) -> Optional[str]:
    if math.isnan(value):
        return None
    if v.min is not None and value < v.min:
        return f"El valor mínimo es {to_text(v.min)}"
    if v.max is not None and value > v.max:
        return f"El valor máximo es {to_text(v.max)}"
    return None


def _validate_date(value: str, v: DateValidation) -> Optional[str]:
    # ISO dates compare correctly as strings
    if v.min_date and value < v.min_date:
        return f"La fecha mínima es {v.min_date}"
    if v.max_date and value > v.max_date:
        return f"La fecha máxima es {v.max_date}"
    return None


def describe_validation(
    field_type: str,
    validation: Union[Dict[str, Any], FieldValidation, None]
) -> str:
    """Human-readable hint of the constraints, shown under the input"""
    parsed = parse_validation(field_type, validation)
    if parsed is None:
        return ""

    parts = []
    if isinstance(parsed, TextValidation):
        if parsed.min_length:
            parts.append(f"mín. {parsed.min_length} car.")
        if parsed.max_length:
            parts.append(f"máx. {parsed.max_length} car.")
        if parsed.pattern:
            parts.append(f"patrón: {parsed.pattern}")
    elif isinstance(parsed, NumberValidation):
        if parsed.min is not None:
            parts.append(f"≥ {to_text(parsed.min)}")
        if parsed.max is not None:
            parts.append(f"≤ {to_text(parsed.max)}")
    elif isinstance(parsed, DateValidation):
        if parsed.min_date:
            parts.append(f"desde {parsed.min_date}")
        if parsed.max_date:
            parts.append(f"hasta {parsed.max_date}")

    return ", ".join(parts)
