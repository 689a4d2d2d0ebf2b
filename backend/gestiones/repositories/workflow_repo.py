"""Workflow Repository - Approval workflow definitions"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import WorkflowTemplate, WorkflowStep
from ..domain.errors import WorkflowNotFoundError


class WorkflowRepository:
    """Read access to workflow templates and their steps"""

    def __init__(self, workflows: Optional[Collection] = None, steps: Optional[Collection] = None):
        self._workflows: Collection = workflows if workflows is not None else get_collection("workflow_templates")
        self._steps: Collection = steps if steps is not None else get_collection("workflow_steps")

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowTemplate]:
        with translate_errors("get_workflow"):
            doc = self._workflows.find_one({"id": workflow_id})
        if doc is None:
            return None
        return WorkflowTemplate.model_validate(strip_id(doc))

    def get_workflow_or_raise(self, workflow_id: str) -> WorkflowTemplate:
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow

    def get_workflow_steps(self, workflow_id: str) -> List[WorkflowStep]:
        """Steps of a workflow ordered by step_order"""
        with translate_errors("get_workflow_steps"):
            docs = list(self._steps.find({"workflow_id": workflow_id}).sort("step_order", ASCENDING))
        return [WorkflowStep.model_validate(strip_id(doc)) for doc in docs]
