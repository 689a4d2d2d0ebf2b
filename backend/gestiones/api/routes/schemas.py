"""
API Schemas

Request and response models for the form and request endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.models import (
    FieldSchema, FormSection, FormTemplate, FieldCondition, Request,
    RequestWorkflowStep, RequestStatusHistory
)
from ...domain.enums import RequestStatus, RuleLogic


# =============================================================================
# Form Schemas
# =============================================================================

class EvaluateFormRequest(BaseModel):
    """Fields, sections and current values of a form"""
    fields: List[FieldSchema]
    sections: List[FormSection] = Field(default_factory=list)
    values: Dict[str, Any] = Field(default_factory=dict)


class ValidateFormRequest(BaseModel):
    """Fields and values to validate"""
    fields: List[FieldSchema]
    values: Dict[str, Any] = Field(default_factory=dict)


class EvaluateExpressionRequest(BaseModel):
    expression: str = Field(..., max_length=2000)
    values: Dict[str, Any] = Field(default_factory=dict)


class EvaluateExpressionResponse(BaseModel):
    result: Optional[bool] = None
    error: Optional[str] = None


class SerializeConditionsRequest(BaseModel):
    conditions: List[FieldCondition]
    logic: RuleLogic = RuleLogic.AND


class SerializeConditionsResponse(BaseModel):
    expression: str


class TemplateSchemaResponse(BaseModel):
    """Template with its ordered fields and sections"""
    template: FormTemplate
    fields: List[FieldSchema]
    sections: List[FormSection]


# =============================================================================
# Request Schemas
# =============================================================================

class CreateRequestRequest(BaseModel):
    """Request to create a request from a template"""
    template_id: str
    title: str = Field(..., max_length=300)
    data_json: Dict[str, Any] = Field(default_factory=dict)
    group_id: Optional[str] = None
    submit: bool = False


class UpdateRequestRequest(BaseModel):
    """Request to edit a draft or returned request"""
    title: Optional[str] = Field(None, max_length=300)
    data_json: Optional[Dict[str, Any]] = None


class CommentRequest(BaseModel):
    """Optional comment attached to an action"""
    comment: Optional[str] = Field(None, max_length=2000)


class ChangeStatusRequest(BaseModel):
    """Administrative status override"""
    status: RequestStatus
    comment: Optional[str] = Field(None, max_length=2000)


class TransitionResponse(BaseModel):
    """Outcome of a request action"""
    request: Request
    status_label: str
    steps: List[RequestWorkflowStep]
    history: RequestStatusHistory
    event_key: Optional[str] = None


class HistoryResponse(BaseModel):
    items: List[RequestStatusHistory]
    total: int
