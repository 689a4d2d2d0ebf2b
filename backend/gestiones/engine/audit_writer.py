"""Audit Writer - Append-only request status history"""
from typing import Optional

from ..domain.models import RequestStatusHistory, ActorContext
from ..domain.enums import RequestStatus
from ..repositories.history_repo import HistoryRepository
from ..utils.idgen import generate_history_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditWriter:
    """
    Write status history rows (append-only)

    Every transition produces exactly one row, including approvals that
    leave the request status unchanged.
    """

    def __init__(self, repo: Optional[HistoryRepository] = None):
        self.repo = repo or HistoryRepository()

    def write_transition(
        self,
        request_id: str,
        from_status: Optional[RequestStatus],
        to_status: RequestStatus,
        actor: ActorContext,
        comment: Optional[str] = None
    ) -> RequestStatusHistory:
        entry = RequestStatusHistory(
            id=generate_history_id(),
            request_id=request_id,
            from_status=from_status,
            to_status=to_status,
            changed_by=actor.user_id,
            comment=comment,
            created_at=utc_now(),
        )
        return self.repo.append(entry)

    def revoke(self, entry: RequestStatusHistory) -> None:
        """Drop a row whose transition was rolled back"""
        self.repo.delete(entry.id)
        logger.warning(
            f"Revoked status history {entry.id}",
            extra={"request_id": entry.request_id}
        )
