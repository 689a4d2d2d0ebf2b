"""Request Service - Request workflow operations exposed to the API"""
from typing import Any, Dict, List, Optional

from ..domain.models import (
    ActorContext, Request, RequestStatusHistory, TransitionResult, WorkflowSnapshot
)
from ..domain.enums import RequestStatus
from ..domain.errors import PermissionDeniedError
from ..engine.workflow_engine import WorkflowEngine
from ..repositories.history_repo import HistoryRepository
from .form_service import FormService
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RequestService:
    """
    Facade over the workflow engine

    Adds the form validation gate in front of submission and the read
    views (workflow progress, history) used by the detail screens.
    """

    def __init__(
        self,
        engine: Optional[WorkflowEngine] = None,
        form_service: Optional[FormService] = None,
        history_repo: Optional[HistoryRepository] = None
    ):
        self.engine = engine or WorkflowEngine()
        self.form_service = form_service or FormService(self.engine.schema_repo)
        self.history_repo = history_repo or self.engine.audit_writer.repo

    def get_request(self, request_id: str) -> Request:
        return self.engine.request_repo.get_request_or_raise(request_id)

    def get_workflow(self, request_id: str, actor: ActorContext) -> WorkflowSnapshot:
        request = self.get_request(request_id)
        if not self.engine.permission_guard.can_view_workflow(actor, request):
            raise PermissionDeniedError(
                "No puedes ver el flujo de esta solicitud",
                details={"request_id": request_id}
            )
        steps = self.engine.request_repo.get_steps(request_id)
        return self.engine.level_resolver.snapshot(steps, actor)

    def get_history(self, request_id: str) -> List[RequestStatusHistory]:
        self.get_request(request_id)
        return self.history_repo.list_for_request(request_id)

    # =========================================================================
    # Transitions
    # =========================================================================

    def create_request(
        self,
        actor: ActorContext,
        template_id: str,
        title: str,
        data_json: Optional[Dict[str, Any]] = None,
        group_id: Optional[str] = None,
        submit: bool = False
    ) -> TransitionResult:
        """Create a draft; when submitting right away the data must be valid"""
        if submit:
            self.form_service.require_valid(template_id, data_json or {})
        return self.engine.create_request(actor, template_id, title, data_json, group_id, submit)

    def update_request(
        self,
        request_id: str,
        actor: ActorContext,
        title: Optional[str] = None,
        data_json: Optional[Dict[str, Any]] = None
    ) -> Request:
        return self.engine.update_request(request_id, actor, title, data_json)

    def submit(self, request_id: str, actor: ActorContext) -> TransitionResult:
        """Validate the stored data against the template, then submit"""
        request = self.get_request(request_id)
        if request.template_id:
            self.form_service.require_valid(request.template_id, request.data_json)
        return self.engine.submit(request_id, actor)

    def approve(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self.engine.approve(request_id, actor, comment)

    def reject(self, request_id: str, actor: ActorContext, comment: Optional[str]) -> TransitionResult:
        return self.engine.reject(request_id, actor, comment)

    def return_request(self, request_id: str, actor: ActorContext, comment: Optional[str]) -> TransitionResult:
        return self.engine.return_request(request_id, actor, comment)

    def annul(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self.engine.annul(request_id, actor, comment)

    def await_third_party(self, request_id: str, actor: ActorContext) -> TransitionResult:
        return self.engine.await_third_party(request_id, actor)

    def execution(
        self,
        request_id: str,
        actor: ActorContext,
        action: str,
        comment: Optional[str] = None
    ) -> TransitionResult:
        """Dispatch an execution action: start, pause, resume or complete"""
        handlers = {
            "start": self.engine.start_execution,
            "pause": self.engine.pause_execution,
            "resume": self.engine.resume_execution,
            "complete": self.engine.complete,
        }
        return handlers[action](request_id, actor, comment)

    def change_status(
        self,
        request_id: str,
        actor: ActorContext,
        new_status: RequestStatus,
        comment: Optional[str] = None
    ) -> TransitionResult:
        return self.engine.change_status(request_id, actor, new_status, comment)
