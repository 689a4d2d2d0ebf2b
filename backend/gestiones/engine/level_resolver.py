"""Level Resolver - Determine the active parallel level of a request workflow

Steps sharing a step_order form one level. The current level is the lowest
step_order that still has a pending step; every pending step at that level
is active and may be acted on in any order.
"""
from typing import Iterable, List, Optional

from ..domain.models import ActorContext, RequestWorkflowStep, WorkflowSnapshot
from ..domain.enums import StepStatus
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Statuses that no longer block a level from completing
RESOLVED_STEP_STATUSES = frozenset({StepStatus.APPROVED, StepStatus.SKIPPED})


class LevelResolver:
    """
    Resolve levels and actionable steps

    Given the steps of a request:
    1. current level = min step_order among pending steps (None if none)
    2. active steps = pending steps at the current level
    3. the actor acts on the first active step matching one of their roles
    4. administrators may act on any active step
    """

    def __init__(self, admin_role: Optional[str] = None):
        self.admin_role = admin_role or settings.admin_role

    def current_level(self, steps: Iterable[RequestWorkflowStep]) -> Optional[int]:
        pending = [s.step_order for s in steps if s.status == StepStatus.PENDING]
        return min(pending) if pending else None

    def active_steps(self, steps: List[RequestWorkflowStep]) -> List[RequestWorkflowStep]:
        level = self.current_level(steps)
        if level is None:
            return []
        return [
            s for s in steps
            if s.step_order == level and s.status == StepStatus.PENDING
        ]

    def has_next_level(self, steps: Iterable[RequestWorkflowStep], level: int) -> bool:
        return any(s.step_order > level for s in steps)

    def level_complete(self, steps: Iterable[RequestWorkflowStep], level: int) -> bool:
        """True when every step at the level is approved (or skipped)"""
        return all(
            s.status in RESOLVED_STEP_STATUSES
            for s in steps if s.step_order == level
        )

    def find_actionable_step(
        self,
        steps: List[RequestWorkflowStep],
        actor: ActorContext
    ) -> Optional[RequestWorkflowStep]:
        """
        Find the active step the actor may approve, reject or return

        Args:
            steps: All steps of the request
            actor: Current actor

        Returns:
            The step, or None if the actor has nothing to act on
        """
        active = self.active_steps(steps)
        if not active:
            return None

        for step in active:
            if step.role_name in actor.roles:
                return step

        if actor.has_role(self.admin_role):
            logger.debug(
                f"Admin override on step {active[0].id}",
                extra={"step_id": active[0].id, "actor_id": actor.user_id}
            )
            return active[0]

        return None

    def snapshot(
        self,
        steps: List[RequestWorkflowStep],
        actor: Optional[ActorContext] = None
    ) -> WorkflowSnapshot:
        """Progress view of the workflow, optionally from one actor's side"""
        ordered = sorted(steps, key=lambda s: s.step_order)
        actionable = self.find_actionable_step(ordered, actor) if actor else None
        return WorkflowSnapshot(
            steps=ordered,
            current_level=self.current_level(ordered),
            active_step_ids=[s.id for s in self.active_steps(ordered)],
            actionable_step_id=actionable.id if actionable else None,
        )
