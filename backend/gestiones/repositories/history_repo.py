"""History Repository - Append-only request status history"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import RequestStatusHistory
from ..utils.logger import get_logger

logger = get_logger(__name__)


class HistoryRepository:
    """Repository for status history rows (append-only)"""

    def __init__(self, history: Optional[Collection] = None):
        self._history: Collection = history if history is not None else get_collection("request_status_history")

    def append(self, entry: RequestStatusHistory) -> RequestStatusHistory:
        doc = entry.model_dump(mode="json")
        doc["_id"] = entry.id

        with translate_errors("append_history"):
            self._history.insert_one(doc)
        logger.info(
            f"Recorded status history: {entry.from_status.value if entry.from_status else None} -> {entry.to_status.value}",
            extra={"request_id": entry.request_id, "actor_id": entry.changed_by}
        )
        return entry

    def delete(self, entry_id: str) -> None:
        """Remove a row written by a transition that was rolled back"""
        with translate_errors("delete_history"):
            self._history.delete_one({"id": entry_id})

    def list_for_request(self, request_id: str, limit: int = 200) -> List[RequestStatusHistory]:
        """History of a request, oldest first"""
        with translate_errors("list_history"):
            docs = list(
                self._history.find({"request_id": request_id}).sort("created_at", ASCENDING).limit(limit)
            )
        return [RequestStatusHistory.model_validate(strip_id(doc)) for doc in docs]
