"""Form Service - Template schema loading and form evaluation"""
from typing import Any, Dict, List, Mapping, Optional

from ..domain.models import (
    FieldSchema, FormSection, FormTemplate, FormState, FormValidationResult, FieldCondition
)
from ..domain.enums import RuleLogic
from ..domain.errors import FormValidationError
from ..engine.form_model import build_form_state, validate_dynamic_form
from ..engine.expression_parser import parse_expression, evaluate_node, conditions_to_expression
from ..repositories.schema_repo import SchemaRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FormService:
    """Service for form schema and evaluation operations"""

    def __init__(self, schema_repo: Optional[SchemaRepository] = None):
        self._schema_repo = schema_repo

    @property
    def schema_repo(self) -> SchemaRepository:
        # Pure evaluation endpoints never need the database
        if self._schema_repo is None:
            self._schema_repo = SchemaRepository()
        return self._schema_repo

    # =========================================================================
    # Schema
    # =========================================================================

    def get_template_schema(self, template_id: str) -> Dict[str, Any]:
        """Template with its ordered fields and sections"""
        template: FormTemplate = self.schema_repo.get_template_or_raise(template_id)
        fields, sections = self.schema_repo.get_schema(template_id)
        return {"template": template, "fields": fields, "sections": sections}

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(
        self,
        fields: List[FieldSchema],
        sections: Optional[List[FormSection]],
        values: Mapping[str, Any]
    ) -> FormState:
        return build_form_state(fields, sections, values)

    def validate(self, fields: List[FieldSchema], values: Mapping[str, Any]) -> FormValidationResult:
        return validate_dynamic_form(fields, values)

    def validate_for_template(self, template_id: str, values: Mapping[str, Any]) -> FormValidationResult:
        fields = self.schema_repo.get_fields(template_id)
        return validate_dynamic_form(fields, values)

    def require_valid(self, template_id: str, values: Mapping[str, Any]) -> None:
        """
        Gate for submission

        Raises:
            FormValidationError: With the field-keyed error map
        """
        result = self.validate_for_template(template_id, values)
        if not result.valid:
            logger.info(
                f"Submission blocked by {len(result.errors)} form errors",
                extra={"template_id": template_id}
            )
            raise FormValidationError("El formulario tiene errores", errors=result.errors)

    # =========================================================================
    # Expressions
    # =========================================================================

    def evaluate_expression(self, expression: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Evaluate an expression for the editor preview

        Unlike rule evaluation, the parse error is reported back instead
        of being mapped to true.
        """
        if not expression or not expression.strip():
            return {"result": True, "error": None}

        parsed = parse_expression(expression)
        if not parsed.ok:
            return {"result": None, "error": parsed.error}
        return {"result": evaluate_node(parsed.node, dict(values)), "error": None}

    def serialize_conditions(self, conditions: List[FieldCondition], logic: RuleLogic) -> str:
        return conditions_to_expression(conditions, logic)
