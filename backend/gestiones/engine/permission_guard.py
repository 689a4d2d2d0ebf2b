"""Permission Guard - Authorization checks for request transitions"""
from typing import List, Optional

from ..domain.models import ActorContext, Request, RequestWorkflowStep
from ..domain.enums import RequestStatus
from ..domain.errors import PermissionDeniedError
from ..config.settings import settings
from .level_resolver import LevelResolver
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for request operations

    Rules:
    - Reviewers act only on an active step assigned to one of their roles
    - Administrators may act on any active step and force any status
    - Creators (or administrators) submit, send to a third party and annul
    - Executors (or administrators) drive execution
    """

    def __init__(
        self,
        level_resolver: Optional[LevelResolver] = None,
        admin_role: Optional[str] = None,
        executor_role: Optional[str] = None
    ):
        self.admin_role = admin_role or settings.admin_role
        self.executor_role = executor_role or settings.executor_role
        self.level_resolver = level_resolver or LevelResolver(self.admin_role)

    def is_admin(self, actor: ActorContext) -> bool:
        return actor.has_role(self.admin_role)

    def is_owner_or_admin(self, actor: ActorContext, request: Request) -> bool:
        return actor.user_id == request.created_by or self.is_admin(actor)

    def require_actionable_step(
        self,
        actor: ActorContext,
        request: Request,
        steps: List[RequestWorkflowStep],
        action: str
    ) -> RequestWorkflowStep:
        """
        Get the step the actor acts on, or raise

        Raises:
            PermissionDeniedError: If no active step matches the actor
        """
        step = self.level_resolver.find_actionable_step(steps, actor)
        if step is None:
            logger.warning(
                f"Actor {actor.user_id} has no actionable step on {request.id}",
                extra={"request_id": request.id, "actor_id": actor.user_id, "action": action}
            )
            raise PermissionDeniedError(
                "No tienes un paso pendiente en el nivel actual de esta solicitud",
                details={"request_id": request.id, "action": action, "roles": actor.roles}
            )
        return step

    def require_owner_or_admin(self, actor: ActorContext, request: Request, action: str) -> None:
        if not self.is_owner_or_admin(actor, request):
            raise PermissionDeniedError(
                "Solo el creador de la solicitud o un administrador puede realizar esta acción",
                details={"request_id": request.id, "action": action}
            )

    def require_executor(self, actor: ActorContext, request: Request, action: str) -> None:
        if not (actor.has_role(self.executor_role) or self.is_admin(actor)):
            raise PermissionDeniedError(
                "Solo un ejecutor o un administrador puede gestionar la ejecución",
                details={"request_id": request.id, "action": action}
            )

    def require_admin(self, actor: ActorContext, action: str, request: Optional[Request] = None) -> None:
        if not self.is_admin(actor):
            raise PermissionDeniedError(
                "Solo un administrador puede realizar esta acción",
                details={"request_id": request.id if request else None, "action": action}
            )

    def can_view_workflow(self, actor: ActorContext, request: Request) -> bool:
        # Any authenticated actor may follow progress; actions are guarded separately
        return request.status != RequestStatus.BORRADOR or self.is_owner_or_admin(actor, request)
