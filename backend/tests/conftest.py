"""
Pytest Configuration and Fixtures

In-memory stand-ins for the MongoDB repositories plus builders for the
domain objects used across the test modules.
"""

from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from gestiones.domain.models import (
    ActorContext, FieldSchema, FormSection, FormTemplate, Request, RequestWorkflowStep,
    RequestStatusHistory, WorkflowStep, NotificationEvent, NotificationConfig,
    NotificationOutbox, User
)
from gestiones.domain.enums import RequestStatus, StepStatus
from gestiones.domain.errors import (
    ConcurrencyError, NotFoundError, PersistenceError, RequestNotFoundError, TemplateNotFoundError
)
from gestiones.engine.audit_writer import AuditWriter
from gestiones.engine.permission_guard import PermissionGuard
from gestiones.engine.workflow_engine import WorkflowEngine
from gestiones.services.notification_service import NotificationService
from gestiones.services.form_service import FormService
from gestiones.services.request_service import RequestService
from gestiones.utils.time import utc_now


# =============================================================================
# In-memory repositories
# =============================================================================

class FailureInjection:
    """Raise PersistenceError from the named methods"""

    def __init__(self):
        self.fail_on: Set[str] = set()

    def check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(f"Simulated failure in {operation}", details={"operation": operation})


class InMemorySchemaRepository(FailureInjection):
    def __init__(self):
        super().__init__()
        self.templates: Dict[str, FormTemplate] = {}
        self.fields: Dict[str, List[FieldSchema]] = {}
        self.sections: Dict[str, List[FormSection]] = {}

    def get_template(self, template_id: str) -> Optional[FormTemplate]:
        return self.templates.get(template_id)

    def get_template_or_raise(self, template_id: str) -> FormTemplate:
        template = self.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    def get_fields(self, template_id: str) -> List[FieldSchema]:
        return sorted(self.fields.get(template_id, []), key=lambda f: f.field_order)

    def get_sections(self, template_id: str) -> List[FormSection]:
        return sorted(self.sections.get(template_id, []), key=lambda s: s.section_order)

    def get_schema(self, template_id: str):
        return self.get_fields(template_id), self.get_sections(template_id)


class InMemoryWorkflowRepository(FailureInjection):
    def __init__(self):
        super().__init__()
        self.steps: Dict[str, List[WorkflowStep]] = {}

    def get_workflow_steps(self, workflow_id: str) -> List[WorkflowStep]:
        return sorted(self.steps.get(workflow_id, []), key=lambda s: s.step_order)


class InMemoryRequestRepository(FailureInjection):
    def __init__(self):
        super().__init__()
        self.requests: Dict[str, Request] = {}
        self.steps: Dict[str, RequestWorkflowStep] = {}
        self.counter = 0

    def add_request(self, request: Request) -> Request:
        self.requests[request.id] = request.model_copy()
        return request

    def next_request_number(self) -> int:
        self.counter += 1
        return self.counter

    def create_request(self, request: Request) -> Request:
        self.check("create_request")
        self.requests[request.id] = request.model_copy()
        return request

    def delete_request(self, request_id: str) -> None:
        self.requests.pop(request_id, None)

    def update_request_data(self, request_id: str, updates: Dict[str, Any],
                            expected_status: RequestStatus) -> Request:
        self.check("update_request_data")
        current = self.requests.get(request_id)
        if current is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        if current.status != expected_status:
            raise ConcurrencyError(f"Request {request_id} was modified")
        updated = current.model_copy(update={**updates, "updated_at": utc_now()})
        self.requests[request_id] = updated
        return updated.model_copy()

    def get_request(self, request_id: str) -> Optional[Request]:
        request = self.requests.get(request_id)
        return request.model_copy() if request else None

    def get_request_or_raise(self, request_id: str) -> Request:
        request = self.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return request

    def update_status(self, request_id: str, to_status: RequestStatus, expected_from: RequestStatus) -> Request:
        self.check("update_status")
        current = self.requests.get(request_id)
        if current is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        if current.status != expected_from:
            raise ConcurrencyError(f"Request {request_id} was modified")
        updated = current.model_copy(update={"status": to_status, "updated_at": utc_now()})
        self.requests[request_id] = updated
        return updated.model_copy()

    def restore_request(self, request: Request) -> None:
        self.check("restore_request")
        self.requests[request.id] = request.model_copy()

    def get_steps(self, request_id: str) -> List[RequestWorkflowStep]:
        steps = [s.model_copy() for s in self.steps.values() if s.request_id == request_id]
        return sorted(steps, key=lambda s: s.step_order)

    def create_steps(self, steps: List[RequestWorkflowStep]) -> List[RequestWorkflowStep]:
        self.check("create_steps")
        for step in steps:
            self.steps[step.id] = step.model_copy()
        return steps

    def delete_steps(self, request_id: str) -> int:
        doomed = [step_id for step_id, s in self.steps.items() if s.request_id == request_id]
        for step_id in doomed:
            del self.steps[step_id]
        return len(doomed)

    def update_step_if_pending(self, step_id: str, updates: Dict[str, Any]) -> RequestWorkflowStep:
        self.check("update_step_if_pending")
        step = self.steps.get(step_id)
        if step is None:
            raise NotFoundError(f"Workflow step {step_id} not found")
        if step.status != StepStatus.PENDING:
            raise ConcurrencyError(f"Step {step_id} was already resolved")
        updated = RequestWorkflowStep.model_validate({**step.model_dump(), **updates, "updated_at": utc_now()})
        self.steps[step_id] = updated
        return updated.model_copy()

    def reset_steps(self, request_id: str) -> int:
        self.check("reset_steps")
        count = 0
        for step_id, step in list(self.steps.items()):
            if step.request_id == request_id:
                self.steps[step_id] = step.model_copy(update={
                    "status": StepStatus.PENDING, "approved_by": None, "comment": None
                })
                count += 1
        return count

    def restore_steps(self, steps: List[RequestWorkflowStep]) -> None:
        self.check("restore_steps")
        for step in steps:
            self.steps[step.id] = step.model_copy()


class InMemoryHistoryRepository(FailureInjection):
    def __init__(self):
        super().__init__()
        self.entries: List[RequestStatusHistory] = []

    def append(self, entry: RequestStatusHistory) -> RequestStatusHistory:
        self.check("append")
        self.entries.append(entry)
        return entry

    def delete(self, entry_id: str) -> None:
        self.entries = [e for e in self.entries if e.id != entry_id]

    def list_for_request(self, request_id: str, limit: int = 200) -> List[RequestStatusHistory]:
        return [e for e in self.entries if e.request_id == request_id][:limit]


class InMemoryNotificationRepository(FailureInjection):
    def __init__(self):
        super().__init__()
        self.events: Dict[str, NotificationEvent] = {}
        self.configs: Dict[str, NotificationConfig] = {}
        self.outbox: List[NotificationOutbox] = []

    def add(self, event: NotificationEvent, config: NotificationConfig) -> None:
        self.events[event.event_key] = event
        self.configs[config.event_id] = config

    def get_event(self, event_key: str) -> Optional[NotificationEvent]:
        return self.events.get(event_key)

    def get_config(self, event_id: str) -> Optional[NotificationConfig]:
        return self.configs.get(event_id)

    def create_outbox_entry(self, entry: NotificationOutbox) -> NotificationOutbox:
        self.check("create_outbox_entry")
        self.outbox.append(entry)
        return entry


class InMemoryUserRepository:
    def __init__(self):
        self.users: Dict[str, User] = {}

    def add(self, user_id: str, name: str, roles: List[str], group_ids: Sequence[str] = ()) -> User:
        user = User(id=user_id, name=name, roles=roles, group_ids=list(group_ids))
        self.users[user_id] = user
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def list_user_ids_by_roles(self, roles: List[str], group_id: Optional[str] = None) -> List[str]:
        return [
            u.id for u in self.users.values()
            if set(u.roles) & set(roles) and (group_id is None or group_id in u.group_ids)
        ]


class Stores:
    """All in-memory repositories of one test"""

    def __init__(self):
        self.schema = InMemorySchemaRepository()
        self.workflows = InMemoryWorkflowRepository()
        self.requests = InMemoryRequestRepository()
        self.history = InMemoryHistoryRepository()
        self.notifications = InMemoryNotificationRepository()
        self.users = InMemoryUserRepository()


# =============================================================================
# Builders
# =============================================================================

def make_field(key: str, field_type: str = "text", label: Optional[str] = None, **kwargs) -> FieldSchema:
    return FieldSchema(field_key=key, label=label or key.capitalize(), field_type=field_type, **kwargs)


def make_actor(user_id: str, *roles: str, name: Optional[str] = None) -> ActorContext:
    return ActorContext(user_id=user_id, name=name or user_id.capitalize(), roles=list(roles))


def make_step(request_id: str, step_order: int, role_name: str, status: StepStatus = StepStatus.PENDING,
              step_id: Optional[str] = None) -> RequestWorkflowStep:
    return RequestWorkflowStep(
        id=step_id or f"STEP-{request_id}-{step_order}-{role_name}",
        request_id=request_id,
        step_order=step_order,
        role_name=role_name,
        label=role_name.capitalize(),
        status=status,
    )


def make_request(request_id: str = "REQ-1", status: RequestStatus = RequestStatus.EN_REVISION,
                 created_by: str = "creator", template_id: Optional[str] = "TPL-1",
                 data: Optional[Dict[str, Any]] = None, group_id: Optional[str] = None) -> Request:
    now = utc_now()
    return Request(
        id=request_id,
        request_number=42,
        title="Compra de equipos",
        status=status,
        data_json=data or {},
        template_id=template_id,
        created_by=created_by,
        group_id=group_id,
        created_at=now,
        updated_at=now,
    )


def status_event(status: RequestStatus, target_roles=("administrador",), include_creator=True,
                 **config) -> tuple:
    key = f"status_to_{status.value}"
    event = NotificationEvent(id=f"EVT-{key}", event_key=key, name=key)
    return event, NotificationConfig(
        event_id=event.id, target_roles=list(target_roles), include_creator=include_creator, **config
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def stores() -> Stores:
    stores = Stores()
    stores.schema.templates["TPL-1"] = FormTemplate(id="TPL-1", name="Compras", default_workflow_id="WF-1")
    stores.users.add("creator", "Carla Creadora", ["solicitante"])
    stores.users.add("admin", "Ana Admin", ["administrador"])
    return stores


@pytest.fixture
def notification_service(stores) -> NotificationService:
    return NotificationService(
        repo=stores.notifications,
        user_repo=stores.users,
        request_repo=stores.requests,
        schema_repo=stores.schema,
        frontend_url="https://gestiones.example.com",
    )


@pytest.fixture
def engine(stores, notification_service) -> WorkflowEngine:
    return WorkflowEngine(
        request_repo=stores.requests,
        workflow_repo=stores.workflows,
        schema_repo=stores.schema,
        audit_writer=AuditWriter(stores.history),
        notification_service=notification_service,
        permission_guard=PermissionGuard(admin_role="administrador", executor_role="ejecutor"),
    )


@pytest.fixture
def request_service(engine, stores) -> RequestService:
    return RequestService(engine=engine, form_service=FormService(stores.schema))


@pytest.fixture
def two_level_request(stores):
    """en_revision request: level 1 = compras + finanzas (parallel), level 2 = gerencia"""
    stores.requests.add_request(make_request("REQ-1"))
    for step in (
        make_step("REQ-1", 1, "compras"),
        make_step("REQ-1", 1, "finanzas"),
        make_step("REQ-1", 2, "gerencia"),
    ):
        stores.requests.steps[step.id] = step
    return stores.requests.get_request("REQ-1")
