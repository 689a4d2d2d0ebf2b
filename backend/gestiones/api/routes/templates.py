"""Template Routes - Form template schema"""

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_form_service
from ...domain.errors import DomainError
from ...services.form_service import FormService
from .schemas import TemplateSchemaResponse

router = APIRouter()


@router.get("/{template_id}/schema", response_model=TemplateSchemaResponse)
async def get_template_schema(
    template_id: str,
    service: FormService = Depends(get_form_service)
):
    """Template with fields ordered by field_order and sections by section_order"""
    try:
        return TemplateSchemaResponse(**service.get_template_schema(template_id))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
