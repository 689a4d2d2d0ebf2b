"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .enums import (
    RequestStatus, StepStatus, FieldType, ColumnType, RuleEffect, RuleLogic,
    NotificationStatus, NotificationEventType, STATUS_LABELS
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

ConditionValue = Union[bool, int, float, str]


# ============================================================================
# Actor
# ============================================================================

class ActorContext(BaseModel):
    """Current actor, as supplied by the calling layer"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="Profile ID of the acting user")
    name: str = Field(default="Usuario", description="Display name")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")

    def has_role(self, role: str) -> bool:
        return role in self.roles


class User(BaseModel):
    """User profile as seen by the notification fan-out"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    group_ids: List[str] = Field(default_factory=list)


# ============================================================================
# Rules
# ============================================================================

class FieldCondition(BaseModel):
    """Single comparison of a context value against a literal"""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    field_key: str = Field(..., alias="fieldKey")
    # Kept as raw text: unknown operators are tolerated and evaluate to true
    operator: str = Field(..., description="equals, not_equals, contains, greater_than, less_than")
    value: ConditionValue = ""


class FieldRule(BaseModel):
    """Condition set plus the effect it produces on a field or table column"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    conditions: List[FieldCondition] = Field(default_factory=list)
    logic: RuleLogic = RuleLogic.AND
    effect: RuleEffect
    option_values: Optional[List[str]] = Field(None, alias="optionValues")
    target_column_key: Optional[str] = Field(None, alias="targetColumnKey")
    expression: Optional[str] = Field(None, description="Free-text expression, overrides conditions")

    @field_validator("logic", mode="before")
    @classmethod
    def _lower_logic(cls, v: Any) -> Any:
        # Anything but "or" combines with AND
        if isinstance(v, str) and v.lower() == RuleLogic.OR.value:
            return RuleLogic.OR
        if v == RuleLogic.OR:
            return v
        return RuleLogic.AND

    @field_validator("conditions", mode="before")
    @classmethod
    def _none_conditions(cls, v: Any) -> Any:
        return v or []


class LegacyFieldDependency(BaseModel):
    """Single-condition dependency stored before multi-rule support"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    field_key: str = Field(..., alias="fieldKey")
    operator: str
    value: ConditionValue = ""
    effect: RuleEffect = RuleEffect.SHOW


def migrate_legacy_dependency(dep: LegacyFieldDependency) -> List[FieldRule]:
    """Wrap a legacy dependency into a one-rule, one-condition rule list"""
    return [
        FieldRule(
            id="migrated_1",
            conditions=[
                FieldCondition(field_key=dep.field_key, operator=dep.operator, value=dep.value)
            ],
            logic=RuleLogic.AND,
            effect=dep.effect,
        )
    ]


def _is_legacy_shape(raw: Any) -> bool:
    if isinstance(raw, LegacyFieldDependency):
        return True
    return isinstance(raw, dict) and "fieldKey" in raw and "operator" in raw


def normalize_rules(dep: Any) -> List[FieldRule]:
    """
    Normalize any stored dependency shape into a rule list

    Accepts a rule list (models or dicts), a legacy single-condition
    dependency, or None. Malformed input degrades to no rules (always
    visible, never dynamically required) with a warning.
    """
    if not dep:
        return []

    if _is_legacy_shape(dep):
        try:
            legacy = dep if isinstance(dep, LegacyFieldDependency) else LegacyFieldDependency.model_validate(dep)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed legacy dependency: {e.error_count()} errors")
            return []
        return migrate_legacy_dependency(legacy)

    if not isinstance(dep, (list, tuple)):
        logger.warning(f"Ignoring dependency of unexpected type {type(dep).__name__}")
        return []

    rules: List[FieldRule] = []
    for index, raw in enumerate(dep):
        if isinstance(raw, FieldRule):
            rules.append(raw)
            continue
        try:
            rules.append(FieldRule.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed rule at position {index}: {e.error_count()} errors")
    return rules


# ============================================================================
# Validation
# ============================================================================

class TextValidation(BaseModel):
    """Validation rules for text fields"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min_length: Optional[int] = Field(None, alias="minLength")
    max_length: Optional[int] = Field(None, alias="maxLength")
    pattern: Optional[str] = None
    pattern_message: Optional[str] = Field(None, alias="patternMessage")


class NumberValidation(BaseModel):
    """Validation rules for number fields"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None


class DateValidation(BaseModel):
    """Validation rules for date fields (ISO dates, compared lexically)"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    min_date: Optional[str] = Field(None, alias="minDate")
    max_date: Optional[str] = Field(None, alias="maxDate")


FieldValidation = Union[TextValidation, NumberValidation, DateValidation]


# ============================================================================
# Form Template Schema
# ============================================================================

def _list_or_empty(v: Any) -> Any:
    return v if v is not None else []


def _dict_or_none(v: Any) -> Any:
    return v if isinstance(v, dict) and v else None


class TableColumnSchema(BaseModel):
    """Column definition for table-type fields"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: str
    label: str = ""
    type: ColumnType = ColumnType.TEXT
    required: bool = False
    options: List[str] = Field(default_factory=list)
    validation: Optional[Dict[str, Any]] = None
    rules: List[FieldRule] = Field(default_factory=list, description="Rules evaluated per row")

    @field_validator("options", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return _list_or_empty(v)

    @field_validator("validation", mode="before")
    @classmethod
    def _validation_dict(cls, v: Any) -> Any:
        return _dict_or_none(v)

    @field_validator("rules", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> List[FieldRule]:
        return normalize_rules(v)


class FieldSchema(BaseModel):
    """Form field definition"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    template_id: Optional[str] = None
    field_key: str = Field(..., description="Unique key within the template")
    label: str
    field_type: FieldType
    is_required: bool = False
    placeholder: Optional[str] = None
    options: List[str] = Field(default_factory=list, alias="options_json")
    table_schema: List[TableColumnSchema] = Field(default_factory=list, alias="table_schema_json")
    dependency: List[FieldRule] = Field(default_factory=list, alias="dependency_json")
    validation: Optional[Dict[str, Any]] = Field(None, alias="validation_json")
    field_order: int = 0
    section_id: Optional[str] = None

    @field_validator("options", "table_schema", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return _list_or_empty(v)

    @field_validator("validation", mode="before")
    @classmethod
    def _validation_dict(cls, v: Any) -> Any:
        return _dict_or_none(v)

    @field_validator("dependency", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> List[FieldRule]:
        return normalize_rules(v)


class FormSection(BaseModel):
    """Form section for grouping fields"""
    model_config = ConfigDict(extra="ignore")

    id: str
    template_id: Optional[str] = None
    name: str = ""
    description: Optional[str] = None
    section_order: int = 0
    is_collapsible: bool = False


class FormTemplate(BaseModel):
    """Form template; the assigned workflow decides review vs auto-approval"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    default_workflow_id: Optional[str] = None
    executor_group_id: Optional[str] = None


# ============================================================================
# Form State (evaluation output)
# ============================================================================

class CellState(BaseModel):
    """Effective state of one column in one table row"""
    visible: bool = True
    required: bool = False
    options: List[str] = Field(default_factory=list)


class TableState(BaseModel):
    """Effective state of a table-type field"""
    visible_columns: List[str] = Field(default_factory=list, description="Column keys shown in the header")
    column_options: Dict[str, List[str]] = Field(default_factory=dict, description="Field-level option overrides per column")
    rows: List[Dict[str, CellState]] = Field(default_factory=list)


class FieldState(BaseModel):
    """Effective state of a field for the current values"""
    field_key: str
    visible: bool = True
    required: bool = False
    options: List[str] = Field(default_factory=list)
    table: Optional[TableState] = None


class SectionState(BaseModel):
    """A section with at least one visible field"""
    section: FormSection
    fields: List[FieldState] = Field(default_factory=list)


class FormState(BaseModel):
    """Renderable state of a whole form"""
    fields: Dict[str, FieldState] = Field(default_factory=dict)
    unsectioned: List[FieldState] = Field(default_factory=list)
    sections: List[SectionState] = Field(default_factory=list)


class FormValidationResult(BaseModel):
    """Field-keyed validation outcome"""
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)


# ============================================================================
# Requests & Workflow
# ============================================================================

def format_request_number(number: int) -> str:
    """Display form of a request number, zero-padded to 6 digits"""
    return str(number).zfill(6)


class Request(BaseModel):
    """User-submitted request"""
    model_config = ConfigDict(extra="ignore")

    id: str
    request_number: int = 0
    title: str = ""
    status: RequestStatus = RequestStatus.BORRADOR
    data_json: Dict[str, Any] = Field(default_factory=dict)
    template_id: Optional[str] = None
    created_by: str
    group_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("data_json", mode="before")
    @classmethod
    def _none_to_dict(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self.status]


class WorkflowTemplate(BaseModel):
    """Approval workflow definition"""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None


class WorkflowStep(BaseModel):
    """Step of a workflow definition; equal step_order means a parallel level"""
    model_config = ConfigDict(extra="ignore")

    id: str
    workflow_id: str
    step_order: int
    role_name: str
    label: str = ""


class RequestWorkflowStep(BaseModel):
    """Per-request copy of a workflow step"""
    model_config = ConfigDict(extra="ignore")

    id: str
    request_id: str
    step_order: int
    role_name: str
    label: str = ""
    status: StepStatus = StepStatus.PENDING
    approved_by: Optional[str] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RequestStatusHistory(BaseModel):
    """Append-only status audit row"""
    model_config = ConfigDict(extra="ignore")

    id: str
    request_id: str
    from_status: Optional[RequestStatus] = None
    to_status: RequestStatus
    changed_by: str
    comment: Optional[str] = None
    created_at: datetime


class WorkflowSnapshot(BaseModel):
    """Workflow progress as seen by one actor"""
    steps: List[RequestWorkflowStep] = Field(default_factory=list)
    current_level: Optional[int] = None
    active_step_ids: List[str] = Field(default_factory=list)
    actionable_step_id: Optional[str] = None


class TransitionResult(BaseModel):
    """Outcome of a workflow transition"""
    request: Request
    steps: List[RequestWorkflowStep] = Field(default_factory=list)
    history: RequestStatusHistory
    event_key: Optional[str] = Field(None, description="Notification event resolved for this transition")


# ============================================================================
# Notifications
# ============================================================================

class NotificationEvent(BaseModel):
    """Configurable notification event (e.g. status_to_aprobada)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    event_key: str
    name: str = ""
    description: Optional[str] = None
    is_system: bool = False
    is_active: bool = True


class NotificationConfig(BaseModel):
    """Recipients, channels and templates for one event"""
    model_config = ConfigDict(extra="ignore")

    event_id: str
    target_roles: List[str] = Field(default_factory=list)
    include_creator: bool = False
    channel_inapp: bool = True
    channel_email: bool = False
    inapp_title_template: str = ""
    inapp_body_template: str = ""
    email_subject_template: str = ""
    email_body_template: str = ""


class NotificationDispatch(BaseModel):
    """Notification call issued by request transitions"""
    model_config = ConfigDict(extra="forbid")

    request_id: str
    event_type: str
    title: str
    message: str
    triggered_by: str
    new_status: Optional[RequestStatus] = None
    comment: Optional[str] = None

    @property
    def event_key(self) -> str:
        """Configured event for this dispatch; status changes are keyed per target status"""
        if self.event_type == NotificationEventType.STATUS_CHANGE and self.new_status:
            return f"status_to_{self.new_status.value}"
        return self.event_type


class NotificationOutbox(BaseModel):
    """Resolved notification waiting for delivery"""
    model_config = ConfigDict(extra="ignore")

    id: str
    request_id: str
    event_key: str
    recipients: List[str] = Field(default_factory=list)
    channel_inapp: bool = True
    channel_email: bool = False
    title: str = ""
    body: str = ""
    email_subject: str = ""
    email_body: str = ""
    variables: Dict[str, str] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime
