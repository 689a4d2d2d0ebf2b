"""Dynamic Form Model - effective field state and form validation

Given a template's fields and sections plus the current values, computes
what is visible, what is required and which options apply (including per
row and column of table fields), and validates the values. Hidden fields
keep their stored values but are neither required nor validated.
"""
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..domain.models import (
    FieldSchema, FormSection, TableColumnSchema, CellState, TableState,
    FieldState, SectionState, FormState, FormValidationResult
)
from ..domain.enums import FieldType, ColumnType
from .rules import (
    should_show, is_dynamically_required, resolve_options,
    should_show_column, is_column_dynamically_required, resolve_column_options
)
from .validations import is_empty, to_input_number, validate_field_value, validate_cell_value
from ..utils.logger import get_logger

logger = get_logger(__name__)


def sort_fields(fields: Iterable[FieldSchema]) -> List[FieldSchema]:
    return sorted(fields, key=lambda f: f.field_order)


def sort_sections(sections: Iterable[FormSection]) -> List[FormSection]:
    return sorted(sections, key=lambda s: s.section_order)


def table_rows(value: Any) -> List[Dict[str, Any]]:
    """Rows of a table value; anything that is not a list of dicts counts as no rows"""
    if not isinstance(value, list):
        return []
    return [row if isinstance(row, dict) else {} for row in value]


def empty_row(columns: List[TableColumnSchema]) -> Dict[str, Any]:
    """Defaults for a newly added table row"""
    return {
        col.key: False if col.type == ColumnType.BOOLEAN else ""
        for col in columns
    }


def is_field_visible(field: FieldSchema, values: Mapping[str, Any]) -> bool:
    return should_show(field.dependency, values)


def is_field_required(field: FieldSchema, values: Mapping[str, Any]) -> bool:
    if field.is_required:
        return True
    return is_dynamically_required(field.dependency, values)


def field_options(field: FieldSchema, values: Mapping[str, Any]) -> List[str]:
    """Rule-provided options, falling back to the static ones"""
    dynamic = resolve_options(field.dependency, values)
    if dynamic is not None:
        return dynamic
    return list(field.options)


def evaluate_cell(
    field: FieldSchema,
    column: TableColumnSchema,
    row: Mapping[str, Any],
    values: Mapping[str, Any],
    column_overrides: Mapping[str, List[str]]
) -> CellState:
    """State of one column in one row"""
    visible = should_show_column(column.rules, row, values)
    required = column.required or is_column_dynamically_required(column.rules, row, values)

    options = resolve_column_options(column.rules, row, values)
    if options is None:
        options = column_overrides.get(column.key)
    if options is None:
        options = list(column.options)

    return CellState(visible=visible, required=required, options=options)


def evaluate_table(field: FieldSchema, values: Mapping[str, Any]) -> TableState:
    """
    Per-row, per-column state of a table field

    A column appears in the header when it is visible in at least one
    row. With no rows every column is shown so the table can be filled.
    """
    columns = field.table_schema
    rows = table_rows(values.get(field.field_key))

    column_overrides: Dict[str, List[str]] = {}
    for column in columns:
        override = resolve_options(field.dependency, values, column.key)
        if override is not None:
            column_overrides[column.key] = override

    row_states = [
        {column.key: evaluate_cell(field, column, row, values, column_overrides) for column in columns}
        for row in rows
    ]

    if not rows:
        visible_columns = [column.key for column in columns]
    else:
        visible_columns = [
            column.key for column in columns
            if any(state[column.key].visible for state in row_states)
        ]

    return TableState(
        visible_columns=visible_columns,
        column_options=column_overrides,
        rows=row_states,
    )


def evaluate_field(field: FieldSchema, values: Mapping[str, Any]) -> FieldState:
    """Effective state of a single field"""
    table = None
    if field.field_type == FieldType.TABLE:
        table = evaluate_table(field, values)

    return FieldState(
        field_key=field.field_key,
        visible=is_field_visible(field, values),
        required=is_field_required(field, values),
        options=field_options(field, values),
        table=table,
    )


def build_form_state(
    fields: List[FieldSchema],
    sections: Optional[List[FormSection]],
    values: Mapping[str, Any]
) -> FormState:
    """
    Compute the renderable state of a form

    Fields are ordered by field_order and sections by section_order.
    Fields without a (known) section are unsectioned. A section whose
    fields are all hidden is left out entirely.
    """
    ordered_fields = sort_fields(fields)
    ordered_sections = sort_sections(sections or [])
    section_ids = {section.id for section in ordered_sections}

    states = {field.field_key: evaluate_field(field, values) for field in ordered_fields}

    unsectioned = [
        states[field.field_key] for field in ordered_fields
        if not field.section_id or field.section_id not in section_ids
    ]

    section_states = []
    for section in ordered_sections:
        members = [
            states[field.field_key] for field in ordered_fields
            if field.section_id == section.id
        ]
        if not any(state.visible for state in members):
            continue
        section_states.append(SectionState(section=section, fields=members))

    return FormState(fields=states, unsectioned=unsectioned, sections=section_states)


def _validate_table_cells(
    field: FieldSchema,
    rows: List[Dict[str, Any]],
    values: Mapping[str, Any]
) -> Optional[str]:
    """First cell error of a table field; later cell errors are not reported"""
    for row_index, row in enumerate(rows, start=1):
        for column in field.table_schema:
            if not should_show_column(column.rules, row, values):
                continue

            cell_value = row.get(column.key)
            prefix = f"{field.label}, fila {row_index}, {column.label}"

            if is_empty(cell_value):
                required = column.required or is_column_dynamically_required(column.rules, row, values)
                if required:
                    return f"{prefix}: es requerido"
                continue

            cell_error = validate_cell_value(cell_value, column.type, column.validation)
            if cell_error:
                return f"{prefix}: {cell_error}"
    return None


def validate_dynamic_form(
    fields: List[FieldSchema],
    values: Mapping[str, Any]
) -> FormValidationResult:
    """
    Validate form values against the template

    Only visible fields are checked. Each field reports at most one error,
    keyed by field_key. This is the gate for submit actions.
    """
    errors: Dict[str, str] = {}

    for field in sort_fields(fields):
        if not is_field_visible(field, values):
            continue

        key = field.field_key
        value = values.get(key)

        if is_field_required(field, values):
            if field.field_type == FieldType.TABLE:
                if not table_rows(value):
                    errors[key] = f"{field.label} requiere al menos una fila"
            elif is_empty(value):
                errors[key] = f"{field.label} es requerido"

        if is_empty(value):
            continue

        if field.field_type == FieldType.TABLE:
            if isinstance(value, list):
                cell_error = _validate_table_cells(field, table_rows(value), values)
                if cell_error and key not in errors:
                    errors[key] = cell_error
            continue

        if field.field_type == FieldType.NUMBER and math.isnan(to_input_number(value)):
            errors[key] = f"{field.label} debe ser un número válido"

        validation_error = validate_field_value(value, field.field_type, field.validation)
        if validation_error:
            errors[key] = f"{field.label}: {validation_error}"

    if errors:
        logger.debug(f"Form validation failed for {len(errors)} fields")

    return FormValidationResult(valid=not errors, errors=errors)
