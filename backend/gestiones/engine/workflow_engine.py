"""
Workflow Engine - Request lifecycle and multi-level approval transitions

Every transition follows the same shape:

1. Load the request (and its steps) and check preconditions. Violations
   raise before anything is written.
2. Apply conditional writes: steps only change while pending and the
   request status only changes from the status that was read.
3. Append exactly one status history row.
4. Hand a notification to the fan-out service (fire-and-forget).

If a write fails with PersistenceError or loses a conditional update,
the writes already applied by that transition are undone from the
snapshot taken in step 1 and the error is re-raised.
"""
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TYPE_CHECKING

from ..domain.models import (
    ActorContext, Request, RequestWorkflowStep, RequestStatusHistory,
    NotificationDispatch, TransitionResult
)
from ..domain.enums import (
    RequestStatus, StepStatus, NotificationEventType, WorkflowAction,
    STATUS_LABELS, TERMINAL_STATUSES, SUBMITTABLE_STATUSES
)
from ..domain.errors import (
    ValidationError, InvalidStateError, ConcurrencyError, PersistenceError
)
from ..repositories.request_repo import RequestRepository
from ..repositories.workflow_repo import WorkflowRepository
from ..repositories.schema_repo import SchemaRepository
from .level_resolver import LevelResolver
from .permission_guard import PermissionGuard
from .audit_writer import AuditWriter
from ..utils.idgen import generate_request_id, generate_request_step_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..services.notification_service import NotificationService

logger = get_logger(__name__)


class _Rollback:
    """Undo actions registered by a transition, run newest first"""

    def __init__(self, request_id: str, action: str):
        self.request_id = request_id
        self.action = action
        self._undo: List[Tuple[str, Callable[[], None]]] = []

    def add(self, label: str, undo: Callable[[], None]) -> None:
        self._undo.append((label, undo))

    def run(self) -> None:
        for label, undo in reversed(self._undo):
            try:
                undo()
            except PersistenceError as e:
                logger.error(
                    f"Compensation {label} failed: {e.message}",
                    extra={"request_id": self.request_id, "action": self.action}
                )


class WorkflowEngine:
    """
    Orchestrates request transitions

    Collaborators are injected so the engine can run against in-memory
    stores; by default the MongoDB repositories are used.
    """

    def __init__(
        self,
        request_repo: Optional[RequestRepository] = None,
        workflow_repo: Optional[WorkflowRepository] = None,
        schema_repo: Optional[SchemaRepository] = None,
        audit_writer: Optional[AuditWriter] = None,
        notification_service: Optional["NotificationService"] = None,
        permission_guard: Optional[PermissionGuard] = None
    ):
        self.request_repo = request_repo or RequestRepository()
        self.workflow_repo = workflow_repo or WorkflowRepository()
        self.schema_repo = schema_repo or SchemaRepository()
        self.audit_writer = audit_writer or AuditWriter()
        if notification_service is None:
            from ..services.notification_service import NotificationService
            notification_service = NotificationService()
        self.notification_service = notification_service
        self.permission_guard = permission_guard or PermissionGuard()
        self.level_resolver: LevelResolver = self.permission_guard.level_resolver

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _transition(self, request: Request, action: str) -> Iterator[_Rollback]:
        rollback = _Rollback(request.id, action)
        try:
            yield rollback
        except (PersistenceError, ConcurrencyError) as e:
            logger.error(
                f"Transition {action} on {request.id} aborted: {e.message}",
                extra={"request_id": request.id, "action": action, "error_code": e.error_code}
            )
            rollback.run()
            raise

    def _require_status(
        self,
        request: Request,
        allowed: Iterable[RequestStatus],
        action: str
    ) -> None:
        allowed = set(allowed)
        if request.status not in allowed:
            raise InvalidStateError(
                f"No se puede {action} una solicitud en estado {request.status_label}",
                details={
                    "request_id": request.id,
                    "action": action,
                    "status": request.status.value,
                    "allowed": sorted(s.value for s in allowed),
                }
            )

    @staticmethod
    def _require_comment(comment: Optional[str], action: str) -> str:
        text = (comment or "").strip()
        if not text:
            raise ValidationError(
                "Debe indicar un comentario para esta acción",
                details={"action": action, "field": "comment"}
            )
        return text

    @staticmethod
    def _clean_comment(comment: Optional[str]) -> Optional[str]:
        text = (comment or "").strip()
        return text or None

    def _write_history(
        self,
        rollback: _Rollback,
        request: Request,
        from_status: Optional[RequestStatus],
        to_status: RequestStatus,
        actor: ActorContext,
        comment: Optional[str]
    ) -> RequestStatusHistory:
        history = self.audit_writer.write_transition(
            request_id=request.id,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            comment=comment,
        )
        rollback.add("revoke_history", lambda: self.audit_writer.revoke(history))
        return history

    def _update_status(
        self,
        rollback: _Rollback,
        request: Request,
        to_status: RequestStatus
    ) -> Request:
        updated = self.request_repo.update_status(request.id, to_status, expected_from=request.status)
        rollback.add("restore_request", lambda: self.request_repo.restore_request(request))
        return updated

    def _notify(
        self,
        request: Request,
        event_type: str,
        actor: ActorContext,
        title: str,
        message: str,
        new_status: Optional[RequestStatus] = None,
        comment: Optional[str] = None
    ) -> str:
        dispatch = NotificationDispatch(
            request_id=request.id,
            event_type=event_type,
            title=title,
            message=message,
            triggered_by=actor.user_id,
            new_status=new_status,
            comment=comment,
        )
        self.notification_service.dispatch_safely(dispatch)
        return dispatch.event_key

    def _notify_status(
        self,
        request: Request,
        actor: ActorContext,
        new_status: RequestStatus,
        comment: Optional[str] = None
    ) -> str:
        label = STATUS_LABELS[new_status]
        return self._notify(
            request,
            NotificationEventType.STATUS_CHANGE.value,
            actor,
            title=f"Solicitud {label}",
            message=f"{actor.name} cambió el estado de la solicitud a {label}",
            new_status=new_status,
            comment=comment,
        )

    def _simple_transition(
        self,
        request: Request,
        actor: ActorContext,
        to_status: RequestStatus,
        action: str,
        comment: Optional[str] = None
    ) -> TransitionResult:
        """Status-only transition: CAS the status, append history, notify"""
        with self._transition(request, action) as rollback:
            updated = self._update_status(rollback, request, to_status)
            history = self._write_history(rollback, request, request.status, to_status, actor, comment)

        logger.info(
            f"Request {request.id}: {action}",
            extra={"request_id": request.id, "actor_id": actor.user_id, "action": action, "status": to_status.value}
        )
        event_key = self._notify_status(updated, actor, to_status, comment)
        return TransitionResult(
            request=updated,
            steps=self.request_repo.get_steps(request.id),
            history=history,
            event_key=event_key,
        )

    # =========================================================================
    # Step instantiation
    # =========================================================================

    def instantiate_steps(self, request: Request, workflow_id: str) -> List[RequestWorkflowStep]:
        """Clone the workflow definition into pending steps for the request"""
        definition = sorted(self.workflow_repo.get_workflow_steps(workflow_id), key=lambda s: s.step_order)
        now = utc_now()
        steps = [
            RequestWorkflowStep(
                id=generate_request_step_id(),
                request_id=request.id,
                step_order=step.step_order,
                role_name=step.role_name,
                label=step.label,
                status=StepStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            for step in definition
        ]
        if steps:
            self.request_repo.create_steps(steps)
        return steps

    # =========================================================================
    # Creation and editing
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
        """
        Create a request as a draft, or submit it straight away

        The first history row has no from_status. A submitted request
        gets its steps cloned at once and lands in en_revision, or in
        aprobada when the template has no workflow steps.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Debe indicar un título", details={"field": "title"})

        template = self.schema_repo.get_template_or_raise(template_id)
        now = utc_now()
        request = Request(
            id=generate_request_id(),
            request_number=self.request_repo.next_request_number(),
            title=title,
            status=RequestStatus.BORRADOR,
            data_json=data_json or {},
            template_id=template.id,
            created_by=actor.user_id,
            group_id=group_id,
            created_at=now,
            updated_at=now,
        )

        steps: List[RequestWorkflowStep] = []
        with self._transition(request, "create") as rollback:
            if submit and template.default_workflow_id:
                steps = self.instantiate_steps(request, template.default_workflow_id)
                if steps:
                    rollback.add("delete_steps", lambda: self.request_repo.delete_steps(request.id))

            if submit:
                to_status = RequestStatus.EN_REVISION if steps else RequestStatus.APROBADA
                comment = "Solicitud enviada a revisión"
            else:
                to_status = RequestStatus.BORRADOR
                comment = "Solicitud creada como borrador"

            request = self.request_repo.create_request(request.model_copy(update={"status": to_status}))
            rollback.add("delete_request", lambda: self.request_repo.delete_request(request.id))
            history = self._write_history(rollback, request, None, to_status, actor, comment)

        logger.info(
            f"Request {request.id} created",
            extra={"request_id": request.id, "actor_id": actor.user_id, "action": "create", "status": to_status.value}
        )
        event_key = self._notify_status(request, actor, to_status) if submit else None
        return TransitionResult(request=request, steps=steps, history=history, event_key=event_key)

    def update_request(
        self,
        request_id: str,
        actor: ActorContext,
        title: Optional[str] = None,
        data_json: Optional[Dict[str, Any]] = None
    ) -> Request:
        """Edit title or form data of a request that has not been sent to review"""
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_owner_or_admin(actor, request, "update")
        self._require_status(request, SUBMITTABLE_STATUSES, "editar")

        updates: Dict[str, Any] = {}
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Debe indicar un título", details={"field": "title"})
            updates["title"] = title
        if data_json is not None:
            updates["data_json"] = data_json
        if not updates:
            return request

        updated = self.request_repo.update_request_data(request_id, updates, expected_status=request.status)
        logger.info(
            f"Request {request_id} updated",
            extra={"request_id": request_id, "actor_id": actor.user_id, "action": "update"}
        )
        return updated

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, request_id: str, actor: ActorContext) -> TransitionResult:
        """
        Send a request to review

        With a workflow the request goes to en_revision (steps are cloned
        on first submission and reused after a return). Without one, or
        with an empty one, the request is approved at once.
        """
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_owner_or_admin(actor, request, "submit")
        self._require_status(request, SUBMITTABLE_STATUSES, "enviar")

        workflow_id = None
        if request.template_id:
            template = self.schema_repo.get_template_or_raise(request.template_id)
            workflow_id = template.default_workflow_id

        steps = self.request_repo.get_steps(request_id)

        with self._transition(request, "submit") as rollback:
            if workflow_id and not steps:
                steps = self.instantiate_steps(request, workflow_id)
                if steps:
                    rollback.add("delete_steps", lambda: self.request_repo.delete_steps(request.id))

            to_status = RequestStatus.EN_REVISION if steps else RequestStatus.APROBADA
            if request.status == RequestStatus.DEVUELTA:
                comment = "Solicitud corregida y reenviada a revisión"
            else:
                comment = "Solicitud enviada a revisión"
            updated = self._update_status(rollback, request, to_status)
            history = self._write_history(rollback, request, request.status, to_status, actor, comment)

        logger.info(
            f"Request {request_id} submitted with {len(steps)} steps",
            extra={"request_id": request_id, "actor_id": actor.user_id, "action": "submit", "status": to_status.value}
        )
        event_key = self._notify_status(updated, actor, to_status)
        return TransitionResult(request=updated, steps=steps, history=history, event_key=event_key)

    def await_third_party(self, request_id: str, actor: ActorContext) -> TransitionResult:
        """Park a draft while an external guest fills in their fields"""
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_owner_or_admin(actor, request, "await_third_party")
        self._require_status(request, {RequestStatus.BORRADOR}, "enviar a un tercero")
        return self._simple_transition(request, actor, RequestStatus.ESPERANDO_TERCERO, "await_third_party")

    def annul(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_owner_or_admin(actor, request, "annul")
        if request.status in TERMINAL_STATUSES:
            raise InvalidStateError(
                f"No se puede anular una solicitud en estado {request.status_label}",
                details={"request_id": request.id, "action": "annul", "status": request.status.value}
            )
        return self._simple_transition(
            request, actor, RequestStatus.ANULADA, "annul", self._clean_comment(comment)
        )

    # =========================================================================
    # Review actions
    # =========================================================================

    def approve(
        self,
        request_id: str,
        actor: ActorContext,
        comment: Optional[str] = None
    ) -> TransitionResult:
        """
        Approve the actor's step at the current level

        Approving the last pending step of the last level approves the
        request. Completing any other level advances to the next one.
        """
        action = WorkflowAction.APPROVE.value
        request = self.request_repo.get_request_or_raise(request_id)
        self._require_status(request, {RequestStatus.EN_REVISION}, "aprobar")

        steps = self.request_repo.get_steps(request_id)
        step = self.permission_guard.require_actionable_step(actor, request, steps, action)
        level = step.step_order
        comment = self._clean_comment(comment)

        with self._transition(request, action) as rollback:
            self.request_repo.update_step_if_pending(step.id, {
                "status": StepStatus.APPROVED.value,
                "approved_by": actor.user_id,
                "comment": comment,
            })
            rollback.add("restore_step", lambda: self.request_repo.restore_steps([step]))

            # A return or rejection may have landed while the step was written
            current = self.request_repo.get_request_or_raise(request_id)
            if current.status != RequestStatus.EN_REVISION:
                raise ConcurrencyError(
                    f"Request {request_id} changed to {current.status.value} during approval",
                    details={"request_id": request_id, "status": current.status.value}
                )

            steps_after = self.request_repo.get_steps(request_id)
            level_done = self.level_resolver.level_complete(steps_after, level)
            final = level_done and not self.level_resolver.has_next_level(steps_after, level)

            updated = current
            if final:
                try:
                    updated = self._update_status(rollback, request, RequestStatus.APROBADA)
                except ConcurrencyError:
                    # A parallel approver of the same level closed the request first
                    updated = self.request_repo.get_request_or_raise(request_id)
                    if updated.status != RequestStatus.APROBADA:
                        raise
                    final = False
                    level_done = False

            from_status = request.status if final else updated.status
            history = self._write_history(rollback, request, from_status, updated.status, actor, comment)

        log_extra = {"request_id": request_id, "step_id": step.id, "actor_id": actor.user_id, "action": action}
        if final:
            logger.info(f"Request {request_id} approved at final level {level}", extra=log_extra)
            event_key = self._notify_status(updated, actor, RequestStatus.APROBADA, comment)
        elif level_done:
            next_level = self.level_resolver.current_level(steps_after)
            logger.info(f"Request {request_id} advanced from level {level} to {next_level}", extra=log_extra)
            event_key = self._notify(
                updated,
                NotificationEventType.LEVEL_ADVANCED.value,
                actor,
                title="Solicitud avanzó de nivel",
                message=f"{actor.name} completó el nivel {level}; la solicitud pasa al nivel {next_level}",
                comment=comment,
            )
        else:
            logger.info(f"Step {step.id} approved at level {level}", extra=log_extra)
            event_key = self._notify(
                updated,
                NotificationEventType.STEP_APPROVED.value,
                actor,
                title="Paso aprobado",
                message=f"{actor.name} aprobó el paso {step.label or step.role_name}",
                comment=comment,
            )

        return TransitionResult(request=updated, steps=steps_after, history=history, event_key=event_key)

    def reject(self, request_id: str, actor: ActorContext, comment: Optional[str]) -> TransitionResult:
        """Reject the request from the actor's active step; a reason is mandatory"""
        action = WorkflowAction.REJECT.value
        comment = self._require_comment(comment, action)
        request = self.request_repo.get_request_or_raise(request_id)
        self._require_status(request, {RequestStatus.EN_REVISION}, "rechazar")

        steps = self.request_repo.get_steps(request_id)
        step = self.permission_guard.require_actionable_step(actor, request, steps, action)

        with self._transition(request, action) as rollback:
            self.request_repo.update_step_if_pending(step.id, {
                "status": StepStatus.REJECTED.value,
                "approved_by": actor.user_id,
                "comment": comment,
            })
            rollback.add("restore_step", lambda: self.request_repo.restore_steps([step]))
            updated = self._update_status(rollback, request, RequestStatus.RECHAZADA)
            history = self._write_history(
                rollback, request, request.status, RequestStatus.RECHAZADA, actor, comment
            )

        logger.info(
            f"Request {request_id} rejected at level {step.step_order}",
            extra={"request_id": request_id, "step_id": step.id, "actor_id": actor.user_id, "action": action}
        )
        event_key = self._notify_status(updated, actor, RequestStatus.RECHAZADA, comment)
        return TransitionResult(
            request=updated,
            steps=self.request_repo.get_steps(request_id),
            history=history,
            event_key=event_key,
        )

    def return_request(self, request_id: str, actor: ActorContext, comment: Optional[str]) -> TransitionResult:
        """
        Send the request back to its creator

        Every step goes back to pending (approvals already given are
        discarded) so the whole workflow restarts on resubmission.
        """
        action = WorkflowAction.RETURN.value
        comment = self._require_comment(comment, action)
        request = self.request_repo.get_request_or_raise(request_id)
        self._require_status(request, {RequestStatus.EN_REVISION}, "devolver")

        steps = self.request_repo.get_steps(request_id)
        step = self.permission_guard.require_actionable_step(actor, request, steps, action)

        with self._transition(request, action) as rollback:
            # Status first so an approval racing with the return fails its recheck
            updated = self._update_status(rollback, request, RequestStatus.DEVUELTA)
            self.request_repo.reset_steps(request_id)
            rollback.add("restore_steps", lambda: self.request_repo.restore_steps(steps))
            history = self._write_history(
                rollback, request, request.status, RequestStatus.DEVUELTA, actor, comment
            )

        logger.info(
            f"Request {request_id} returned from level {step.step_order}",
            extra={"request_id": request_id, "step_id": step.id, "actor_id": actor.user_id, "action": action}
        )
        event_key = self._notify_status(updated, actor, RequestStatus.DEVUELTA, comment)
        return TransitionResult(
            request=updated,
            steps=self.request_repo.get_steps(request_id),
            history=history,
            event_key=event_key,
        )

    # =========================================================================
    # Execution
    # =========================================================================

    def _execution_transition(
        self,
        request_id: str,
        actor: ActorContext,
        from_status: RequestStatus,
        to_status: RequestStatus,
        action: str,
        verb: str,
        comment: Optional[str] = None
    ) -> TransitionResult:
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_executor(actor, request, action)
        self._require_status(request, {from_status}, verb)
        return self._simple_transition(request, actor, to_status, action, self._clean_comment(comment))

    def start_execution(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self._execution_transition(
            request_id, actor, RequestStatus.APROBADA, RequestStatus.EN_EJECUCION,
            "start_execution", "iniciar la ejecución de", comment
        )

    def pause_execution(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self._execution_transition(
            request_id, actor, RequestStatus.EN_EJECUCION, RequestStatus.EN_ESPERA,
            "pause_execution", "pausar", comment
        )

    def resume_execution(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self._execution_transition(
            request_id, actor, RequestStatus.EN_ESPERA, RequestStatus.EN_EJECUCION,
            "resume_execution", "reanudar", comment
        )

    def complete(self, request_id: str, actor: ActorContext, comment: Optional[str] = None) -> TransitionResult:
        return self._execution_transition(
            request_id, actor, RequestStatus.EN_EJECUCION, RequestStatus.COMPLETADA,
            "complete", "completar", comment
        )

    # =========================================================================
    # Administration
    # =========================================================================

    def change_status(
        self,
        request_id: str,
        actor: ActorContext,
        new_status: RequestStatus,
        comment: Optional[str] = None
    ) -> TransitionResult:
        """Force a status (administrators only); always audited"""
        request = self.request_repo.get_request_or_raise(request_id)
        self.permission_guard.require_admin(actor, "change_status", request)

        if new_status == request.status:
            raise ValidationError(
                f"La solicitud ya está en estado {request.status_label}",
                details={"request_id": request_id, "status": new_status.value}
            )

        comment = self._clean_comment(comment) or (
            f"Estado cambiado por administrador: {request.status_label} → {STATUS_LABELS[new_status]}"
        )
        return self._simple_transition(request, actor, new_status, "change_status", comment)
