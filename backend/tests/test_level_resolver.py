"""Tests for parallel level resolution and permission checks"""

import pytest

from gestiones.domain.enums import RequestStatus, StepStatus
from gestiones.domain.errors import PermissionDeniedError
from gestiones.engine.level_resolver import LevelResolver
from gestiones.engine.permission_guard import PermissionGuard

from .conftest import make_actor, make_request, make_step


@pytest.fixture
def resolver():
    return LevelResolver(admin_role="administrador")


def approve(step):
    return step.model_copy(update={"status": StepStatus.APPROVED})


class TestLevels:

    def test_parallel_level_gating(self, resolver):
        a = make_step("REQ-1", 1, "A")
        b = make_step("REQ-1", 1, "B")
        c = make_step("REQ-1", 2, "C")
        actor_c = make_actor("carlos", "C")

        steps = [a, b, c]
        assert resolver.current_level(steps) == 1
        assert resolver.find_actionable_step(steps, actor_c) is None

        steps = [approve(a), b, c]
        assert resolver.current_level(steps) == 1
        assert resolver.find_actionable_step(steps, actor_c) is None

        steps = [approve(a), approve(b), c]
        assert resolver.current_level(steps) == 2
        assert resolver.find_actionable_step(steps, actor_c).id == c.id

    def test_active_steps_are_pending_steps_of_current_level(self, resolver):
        steps = [
            approve(make_step("REQ-1", 1, "A")),
            make_step("REQ-1", 2, "B"),
            make_step("REQ-1", 2, "C"),
            make_step("REQ-1", 3, "D"),
        ]
        assert [s.role_name for s in resolver.active_steps(steps)] == ["B", "C"]

    def test_no_pending_steps(self, resolver):
        steps = [approve(make_step("REQ-1", 1, "A"))]
        assert resolver.current_level(steps) is None
        assert resolver.active_steps(steps) == []
        assert resolver.current_level([]) is None

    def test_level_complete_counts_skipped_steps(self, resolver):
        steps = [
            approve(make_step("REQ-1", 1, "A")),
            make_step("REQ-1", 1, "B", status=StepStatus.SKIPPED),
            make_step("REQ-1", 2, "C"),
        ]
        assert resolver.level_complete(steps, 1)
        assert not resolver.level_complete(steps, 2)
        assert resolver.has_next_level(steps, 1)
        assert not resolver.has_next_level(steps, 2)

    def test_role_match_is_preferred(self, resolver):
        steps = [make_step("REQ-1", 1, "A"), make_step("REQ-1", 1, "B")]
        actor = make_actor("ana", "administrador", "B")
        assert resolver.find_actionable_step(steps, actor).role_name == "B"

    def test_admin_acts_on_first_active_step(self, resolver):
        steps = [make_step("REQ-1", 2, "B"), make_step("REQ-1", 2, "A")]
        actor = make_actor("ana", "administrador")
        assert resolver.find_actionable_step(steps, actor).role_name == "B"

    def test_snapshot(self, resolver):
        steps = [make_step("REQ-1", 2, "C"), make_step("REQ-1", 1, "A"), make_step("REQ-1", 1, "B")]
        snapshot = resolver.snapshot(steps, make_actor("bruno", "B"))

        assert [s.step_order for s in snapshot.steps] == [1, 1, 2]
        assert snapshot.current_level == 1
        assert len(snapshot.active_step_ids) == 2
        assert snapshot.actionable_step_id == "STEP-REQ-1-1-B"

        assert resolver.snapshot(steps).actionable_step_id is None


class TestPermissionGuard:

    @pytest.fixture
    def guard(self):
        return PermissionGuard(admin_role="administrador", executor_role="ejecutor")

    def test_step_required(self, guard):
        request = make_request()
        steps = [make_step("REQ-1", 1, "compras")]

        with pytest.raises(PermissionDeniedError):
            guard.require_actionable_step(make_actor("x", "ventas"), request, steps, "approve")

        step = guard.require_actionable_step(make_actor("y", "compras"), request, steps, "approve")
        assert step.role_name == "compras"

    def test_owner_or_admin(self, guard):
        request = make_request(created_by="creator")
        guard.require_owner_or_admin(make_actor("creator"), request, "annul")
        guard.require_owner_or_admin(make_actor("ana", "administrador"), request, "annul")
        with pytest.raises(PermissionDeniedError):
            guard.require_owner_or_admin(make_actor("otro", "compras"), request, "annul")

    def test_executor(self, guard):
        request = make_request()
        guard.require_executor(make_actor("eva", "ejecutor"), request, "start")
        guard.require_executor(make_actor("ana", "administrador"), request, "start")
        with pytest.raises(PermissionDeniedError):
            guard.require_executor(make_actor("creator"), request, "start")

    def test_admin(self, guard):
        guard.require_admin(make_actor("ana", "administrador"), "change_status")
        with pytest.raises(PermissionDeniedError) as exc_info:
            guard.require_admin(make_actor("eva", "ejecutor"), "change_status", make_request())
        assert exc_info.value.details["request_id"] == "REQ-1"

    def test_drafts_are_private(self, guard):
        draft = make_request(status=RequestStatus.BORRADOR)
        assert guard.can_view_workflow(make_actor("creator"), draft)
        assert not guard.can_view_workflow(make_actor("otro"), draft)
        assert guard.can_view_workflow(make_actor("otro"), make_request())
