"""Tests for form state evaluation and dynamic form validation"""

from gestiones.domain.models import FormSection, TableColumnSchema
from gestiones.engine.form_model import (
    build_form_state, evaluate_field, validate_dynamic_form, empty_row, table_rows, field_options
)

from .conftest import make_field


def show_when(field_key, operator, value):
    return [{"effect": "show", "logic": "and",
             "conditions": [{"fieldKey": field_key, "operator": operator, "value": value}]}]


def scenario_fields():
    return [
        make_field("monto", "number", is_required=True, field_order=1),
        make_field("motivo", "text", label="motivo", is_required=True, field_order=2,
                   dependency_json=show_when("monto", "greater_than", 1000)),
    ]


def items_table(**kwargs):
    columns = [
        {"key": "producto", "label": "Producto", "type": "text", "required": True},
        {"key": "cantidad", "label": "Cantidad", "type": "number", "validation": {"min": 1}},
        {"key": "unidad", "label": "Unidad", "type": "select", "options": ["kg", "l"]},
        {"key": "serie", "label": "Serie", "type": "text",
         "rules": show_when("categoria", "equals", "tecnologia")},
    ]
    return make_field("items", "table", label="Items", table_schema_json=columns, **kwargs)


class TestScenario:

    def test_hidden_motivo_is_not_required(self):
        result = validate_dynamic_form(scenario_fields(), {"monto": 500})
        assert result.valid
        assert "motivo" not in result.errors

    def test_visible_motivo_is_required(self):
        result = validate_dynamic_form(scenario_fields(), {"monto": 1500, "motivo": ""})
        assert not result.valid
        assert result.errors == {"motivo": "motivo es requerido"}

    def test_missing_monto(self):
        result = validate_dynamic_form(scenario_fields(), {})
        assert result.errors == {"monto": "Monto es requerido"}


class TestFieldValidation:

    def test_hidden_invalid_value_does_not_block(self):
        # Hidden fields keep their value but are not validated
        fields = [
            make_field("tipo", "select", options_json=["compra", "servicio"]),
            make_field("codigo", "text", validation_json={"minLength": 5},
                       dependency_json=show_when("tipo", "equals", "compra")),
        ]
        result = validate_dynamic_form(fields, {"tipo": "servicio", "codigo": "x"})
        assert result.valid

        result = validate_dynamic_form(fields, {"tipo": "compra", "codigo": "x"})
        assert result.errors == {"codigo": "Codigo: Mínimo 5 caracteres (actual: 1)"}

    def test_dynamic_requirement(self):
        fields = [
            make_field("monto", "number"),
            make_field("justificacion", "text", dependency_json=[{
                "effect": "required",
                "conditions": [{"fieldKey": "monto", "operator": "greater_than", "value": 5000}],
            }]),
        ]
        assert validate_dynamic_form(fields, {"monto": 100}).valid
        errors = validate_dynamic_form(fields, {"monto": 9000}).errors
        assert errors == {"justificacion": "Justificacion es requerido"}

    def test_number_type_check(self):
        fields = [make_field("monto", "number")]
        assert validate_dynamic_form(fields, {"monto": "doce"}).errors == {
            "monto": "Monto debe ser un número válido"
        }
        assert validate_dynamic_form(fields, {"monto": "12.5"}).valid

    def test_blank_number_input_reads_as_zero(self):
        assert validate_dynamic_form([make_field("monto", "number")], {"monto": " "}).valid
        fields = [make_field("monto", "number", validation_json={"min": 1})]
        assert validate_dynamic_form(fields, {"monto": "  "}).errors == {"monto": "Monto: El valor mínimo es 1"}

    def test_zero_and_false_satisfy_required(self):
        fields = [
            make_field("cantidad", "number", is_required=True),
            make_field("urgente", "boolean", is_required=True),
        ]
        assert validate_dynamic_form(fields, {"cantidad": 0, "urgente": False}).valid

    def test_constraint_error_replaces_type_error(self):
        fields = [make_field("monto", "number", validation_json={"min": 10})]
        assert validate_dynamic_form(fields, {"monto": 3}).errors == {"monto": "Monto: El valor mínimo es 10"}

    def test_legacy_dependency_is_honoured(self):
        fields = [
            make_field("tipo", "text"),
            make_field("detalle", "text", is_required=True, dependency_json={
                "fieldKey": "tipo", "operator": "equals", "value": "otro", "effect": "show"
            }),
        ]
        assert validate_dynamic_form(fields, {"tipo": "compra"}).valid
        assert "detalle" in validate_dynamic_form(fields, {"tipo": "otro"}).errors


class TestTableValidation:

    def test_required_table_needs_a_row(self):
        fields = [items_table(is_required=True)]
        assert validate_dynamic_form(fields, {"items": []}).errors == {"items": "Items requiere al menos una fila"}
        assert validate_dynamic_form(fields, {}).errors == {"items": "Items requiere al menos una fila"}

    def test_required_cell(self):
        rows = [{"producto": "Silla", "cantidad": 2}, {"producto": "", "cantidad": 1}]
        errors = validate_dynamic_form([items_table()], {"items": rows}).errors
        assert errors == {"items": "Items, fila 2, Producto: es requerido"}

    def test_first_cell_error_wins(self):
        rows = [{"producto": "Silla", "cantidad": 0}, {"producto": ""}]
        errors = validate_dynamic_form([items_table()], {"items": rows}).errors
        assert errors == {"items": "Items, fila 1, Cantidad: El valor mínimo es 1"}

    def test_hidden_column_is_skipped(self):
        columns = [{"key": "serie", "label": "Serie", "required": True,
                    "rules": show_when("categoria", "equals", "tecnologia")}]
        field = make_field("items", "table", label="Items", table_schema_json=columns)

        assert validate_dynamic_form([field], {"items": [{"serie": ""}]}).valid
        errors = validate_dynamic_form([field], {"items": [{"serie": "", "categoria": "tecnologia"}]}).errors
        assert errors == {"items": "Items, fila 1, Serie: es requerido"}

    def test_valid_rows(self):
        rows = [{"producto": "Silla", "cantidad": 4, "unidad": "kg"}]
        assert validate_dynamic_form([items_table(is_required=True)], {"items": rows}).valid


class TestFormState:

    def test_field_state(self):
        fields = scenario_fields()
        state = build_form_state(fields, [], {"monto": 500})
        assert state.fields["monto"].visible
        assert state.fields["monto"].required
        assert not state.fields["motivo"].visible
        assert [f.field_key for f in state.unsectioned] == ["monto", "motivo"]

    def test_fields_are_ordered(self):
        fields = [make_field("b", field_order=2), make_field("a", field_order=1)]
        state = build_form_state(fields, None, {})
        assert [f.field_key for f in state.unsectioned] == ["a", "b"]

    def test_sections_with_only_hidden_fields_are_omitted(self):
        sections = [
            FormSection(id="S2", name="Detalle", section_order=2),
            FormSection(id="S1", name="General", section_order=1),
        ]
        fields = [
            make_field("monto", "number", section_id="S1"),
            make_field("motivo", section_id="S2", dependency_json=show_when("monto", "greater_than", 1000)),
            make_field("nota", section_id="S-missing"),
        ]

        state = build_form_state(fields, sections, {"monto": 10})
        assert [s.section.id for s in state.sections] == ["S1"]
        assert [f.field_key for f in state.unsectioned] == ["nota"]

        state = build_form_state(fields, sections, {"monto": 5000})
        assert [s.section.id for s in state.sections] == ["S1", "S2"]

    def test_options_rule_overrides_static_options(self):
        field = make_field("subtipo", "select", options_json=["General"], dependency_json=[{
            "effect": "options",
            "conditions": [{"fieldKey": "tipo", "operator": "equals", "value": "compra"}],
            "optionValues": ["Insumos", "Equipos"],
        }])
        assert field_options(field, {"tipo": "compra"}) == ["Insumos", "Equipos"]
        assert field_options(field, {"tipo": "otro"}) == ["General"]


class TestTableState:

    def test_header_lists_columns_visible_in_some_row(self):
        rows = [{"producto": "Silla"}, {"producto": "PC", "categoria": "tecnologia"}]
        table = evaluate_field(items_table(), {"items": rows}).table

        assert table.visible_columns == ["producto", "cantidad", "unidad", "serie"]
        assert not table.rows[0]["serie"].visible
        assert table.rows[1]["serie"].visible

    def test_column_hidden_in_every_row_leaves_header(self):
        table = evaluate_field(items_table(), {"items": [{"producto": "Silla"}]}).table
        assert "serie" not in table.visible_columns

    def test_no_rows_shows_all_columns(self):
        table = evaluate_field(items_table(), {}).table
        assert table.visible_columns == ["producto", "cantidad", "unidad", "serie"]
        assert table.rows == []

    def test_field_rule_overrides_column_options(self):
        field = items_table(dependency_json=[{
            "effect": "options",
            "conditions": [{"fieldKey": "tipo", "operator": "equals", "value": "liquidos"}],
            "optionValues": ["ml", "l"],
            "targetColumnKey": "unidad",
        }])
        table = evaluate_field(field, {"tipo": "liquidos", "items": [{"producto": "Agua"}]}).table

        assert table.column_options == {"unidad": ["ml", "l"]}
        assert table.rows[0]["unidad"].options == ["ml", "l"]

        table = evaluate_field(field, {"tipo": "solidos", "items": [{"producto": "Arena"}]}).table
        assert table.rows[0]["unidad"].options == ["kg", "l"]

    def test_column_rule_beats_field_override(self):
        field = make_field("items", "table", table_schema_json=[{
            "key": "unidad", "type": "select", "options": ["u"],
            "rules": [{"effect": "options", "optionValues": ["caja"],
                       "conditions": [{"fieldKey": "tipo", "operator": "equals", "value": "fila"}]}],
        }], dependency_json=[{"effect": "options", "optionValues": ["campo"], "targetColumnKey": "unidad"}])

        table = evaluate_field(field, {"tipo": "formulario", "items": [{"tipo": "fila"}, {}]}).table
        assert table.rows[0]["unidad"].options == ["caja"]
        assert table.rows[1]["unidad"].options == ["campo"]

    def test_rows_and_defaults(self):
        columns = [
            TableColumnSchema(key="nombre"),
            TableColumnSchema(key="activo", type="boolean"),
        ]
        assert empty_row(columns) == {"nombre": "", "activo": False}
        assert table_rows("texto") == []
        assert table_rows([{"a": 1}, "x"]) == [{"a": 1}, {}]
