"""
Form Routes

Evaluation endpoints used by the form renderer and the rule editor:
- Effective form state for the current values
- Validation gate
- Expression preview and condition serialization
"""

from fastapi import APIRouter, Depends

from ..deps import get_form_service
from ...domain.models import FormState, FormValidationResult
from ...services.form_service import FormService
from .schemas import (
    EvaluateFormRequest, ValidateFormRequest, EvaluateExpressionRequest,
    EvaluateExpressionResponse, SerializeConditionsRequest, SerializeConditionsResponse
)

router = APIRouter()


@router.post("/evaluate", response_model=FormState)
async def evaluate_form(
    request: EvaluateFormRequest,
    service: FormService = Depends(get_form_service)
):
    """Visibility, requiredness and options of every field and table cell"""
    return service.evaluate(request.fields, request.sections, request.values)


@router.post("/validate", response_model=FormValidationResult)
async def validate_form(
    request: ValidateFormRequest,
    service: FormService = Depends(get_form_service)
):
    """Validate values; hidden fields are not checked"""
    return service.validate(request.fields, request.values)


@router.post("/expressions/evaluate", response_model=EvaluateExpressionResponse)
async def evaluate_expression(
    request: EvaluateExpressionRequest,
    service: FormService = Depends(get_form_service)
):
    """Preview an expression; parse errors are returned instead of mapped to true"""
    return EvaluateExpressionResponse(**service.evaluate_expression(request.expression, request.values))


@router.post("/expressions/serialize", response_model=SerializeConditionsResponse)
async def serialize_conditions(
    request: SerializeConditionsRequest,
    service: FormService = Depends(get_form_service)
):
    """Structured conditions to the equivalent expression text"""
    return SerializeConditionsResponse(
        expression=service.serialize_conditions(request.conditions, request.logic)
    )
