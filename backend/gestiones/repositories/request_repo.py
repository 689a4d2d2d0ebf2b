"""Request Repository - Requests and their workflow steps"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import Request, RequestWorkflowStep
from ..domain.enums import RequestStatus, StepStatus
from ..domain.errors import RequestNotFoundError, ConcurrencyError, NotFoundError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RequestRepository:
    """
    Repository for requests and request workflow steps

    Status and step writes are conditional (compare-and-swap) so two
    reviewers racing on the same request cannot both win.
    """

    def __init__(
        self,
        requests: Optional[Collection] = None,
        steps: Optional[Collection] = None,
        counters: Optional[Collection] = None
    ):
        self._requests: Collection = requests if requests is not None else get_collection("requests")
        self._steps: Collection = steps if steps is not None else get_collection("request_workflow_steps")
        self._counters: Collection = counters if counters is not None else self._requests.database["counters"]

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> Optional[Request]:
        with translate_errors("get_request"):
            doc = self._requests.find_one({"id": request_id})
        if doc is None:
            return None
        return Request.model_validate(strip_id(doc))

    def get_request_or_raise(self, request_id: str) -> Request:
        request = self.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(
                f"Request {request_id} not found",
                details={"request_id": request_id}
            )
        return request

    def next_request_number(self) -> int:
        """Allocate the next sequential request number"""
        with translate_errors("next_request_number"):
            doc = self._counters.find_one_and_update(
                {"_id": "request_number"},
                {"$inc": {"value": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        return int(doc["value"])

    def create_request(self, request: Request) -> Request:
        doc = request.model_dump()
        doc["_id"] = request.id
        doc["status"] = request.status.value

        with translate_errors("create_request"):
            self._requests.insert_one(doc)
        logger.info(
            f"Created request {request.id}",
            extra={"request_id": request.id, "status": request.status.value}
        )
        return request

    def delete_request(self, request_id: str) -> None:
        with translate_errors("delete_request"):
            self._requests.delete_one({"id": request_id})

    def update_request_data(
        self,
        request_id: str,
        updates: Dict[str, Any],
        expected_status: RequestStatus
    ) -> Request:
        """
        Change title or form data while the request is still in expected_status

        Raises:
            ConcurrencyError: If the status changed in the meantime
            RequestNotFoundError: If the request does not exist
        """
        with translate_errors("update_request_data"):
            result = self._requests.find_one_and_update(
                {"id": request_id, "status": expected_status.value},
                {"$set": {**updates, "updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER
            )
            exists = result is not None or self._requests.find_one({"id": request_id}) is not None

        if result is None:
            if exists:
                raise ConcurrencyError(
                    f"Request {request_id} was modified. Please refresh and try again.",
                    details={"request_id": request_id, "expected_status": expected_status.value}
                )
            raise RequestNotFoundError(f"Request {request_id} not found", details={"request_id": request_id})
        return Request.model_validate(strip_id(result))

    def update_status(
        self,
        request_id: str,
        to_status: RequestStatus,
        expected_from: RequestStatus
    ) -> Request:
        """
        Move a request to a new status if it is still in expected_from

        Raises:
            ConcurrencyError: If the status changed in the meantime
            RequestNotFoundError: If the request does not exist
        """
        with translate_errors("update_status"):
            result = self._requests.find_one_and_update(
                {"id": request_id, "status": expected_from.value},
                {"$set": {"status": to_status.value, "updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER
            )
            exists = result is not None or self._requests.find_one({"id": request_id}) is not None

        if result is None:
            if exists:
                raise ConcurrencyError(
                    f"Request {request_id} was modified. Please refresh and try again.",
                    details={"request_id": request_id, "expected_status": expected_from.value}
                )
            raise RequestNotFoundError(f"Request {request_id} not found", details={"request_id": request_id})

        logger.info(
            f"Request status {expected_from.value} -> {to_status.value}",
            extra={"request_id": request_id, "status": to_status.value}
        )
        return Request.model_validate(strip_id(result))

    def restore_request(self, request: Request) -> None:
        """Write back the status of a snapshot taken before a failed transition"""
        with translate_errors("restore_request"):
            self._requests.update_one(
                {"id": request.id},
                {"$set": {"status": request.status.value, "updated_at": request.updated_at}}
            )
        logger.warning(
            f"Restored request {request.id} to {request.status.value}",
            extra={"request_id": request.id, "status": request.status.value}
        )

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    def get_steps(self, request_id: str) -> List[RequestWorkflowStep]:
        """Steps of a request ordered by step_order"""
        with translate_errors("get_steps"):
            docs = list(self._steps.find({"request_id": request_id}).sort("step_order", ASCENDING))
        return [RequestWorkflowStep.model_validate(strip_id(doc)) for doc in docs]

    def create_steps(self, steps: List[RequestWorkflowStep]) -> List[RequestWorkflowStep]:
        if not steps:
            return []

        docs = []
        for step in steps:
            doc = step.model_dump(mode="json")
            doc["_id"] = step.id
            docs.append(doc)

        with translate_errors("create_steps"):
            self._steps.insert_many(docs)
        logger.info(f"Created {len(steps)} workflow steps", extra={"request_id": steps[0].request_id})
        return steps

    def delete_steps(self, request_id: str) -> int:
        with translate_errors("delete_steps"):
            result = self._steps.delete_many({"request_id": request_id})
        return result.deleted_count

    def update_step_if_pending(self, step_id: str, updates: Dict[str, Any]) -> RequestWorkflowStep:
        """
        Update a step only while it is still pending

        Raises:
            ConcurrencyError: If another actor resolved the step first
            NotFoundError: If the step does not exist
        """
        updates = {**updates, "updated_at": utc_now()}
        with translate_errors("update_step"):
            result = self._steps.find_one_and_update(
                {"id": step_id, "status": StepStatus.PENDING.value},
                {"$set": updates},
                return_document=ReturnDocument.AFTER
            )
            exists = result is not None or self._steps.find_one({"id": step_id}) is not None

        if result is None:
            if exists:
                raise ConcurrencyError(
                    f"Step {step_id} was already resolved. Please refresh and try again.",
                    details={"step_id": step_id}
                )
            raise NotFoundError(f"Workflow step {step_id} not found", details={"step_id": step_id})

        logger.info(f"Updated workflow step: {step_id}", extra={"step_id": step_id})
        return RequestWorkflowStep.model_validate(strip_id(result))

    def reset_steps(self, request_id: str) -> int:
        """Put every step of a request back to pending, clearing approver and comment"""
        with translate_errors("reset_steps"):
            result = self._steps.update_many(
                {"request_id": request_id},
                {"$set": {
                    "status": StepStatus.PENDING.value,
                    "approved_by": None,
                    "comment": None,
                    "updated_at": utc_now(),
                }}
            )
        logger.info(f"Reset {result.modified_count} workflow steps", extra={"request_id": request_id})
        return result.modified_count

    def restore_steps(self, steps: List[RequestWorkflowStep]) -> None:
        """Write back step snapshots taken before a failed transition"""
        with translate_errors("restore_steps"):
            for step in steps:
                self._steps.update_one(
                    {"id": step.id},
                    {"$set": {
                        "status": step.status.value,
                        "approved_by": step.approved_by,
                        "comment": step.comment,
                        "updated_at": step.updated_at,
                    }}
                )
        if steps:
            logger.warning(f"Restored {len(steps)} workflow steps", extra={"request_id": steps[0].request_id})
