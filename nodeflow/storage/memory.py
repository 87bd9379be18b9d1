"""In-memory workflow store."""

from typing import Dict, List

from ..core.exceptions import WorkflowAlreadyExistsError, WorkflowNotFoundError
from ..core.logging import get_logger
from ..models.core import Workflow
from .base import WorkflowStore, prepare_new_workflow, prepare_updated_workflow
from .rwlock import ReadWriteLock

logger = get_logger(__name__)


class InMemoryWorkflowStore(WorkflowStore):
    """Arena of workflows indexed by ID, guarded by a reader/writer lock."""

    def __init__(self):
        self._workflows: Dict[str, Workflow] = {}
        self._lock = ReadWriteLock()

    def create(self, workflow: Workflow) -> Workflow:
        stored = prepare_new_workflow(workflow)
        with self._lock.write_locked():
            if stored.id in self._workflows:
                raise WorkflowAlreadyExistsError(stored.id, operation="create")
            self._workflows[stored.id] = stored
        logger.info(f"Created workflow '{stored.name}' with ID: {stored.id}")
        return stored.model_copy(deep=True)

    def get(self, workflow_id: str) -> Workflow:
        with self._lock.read_locked():
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id, operation="get")
            return workflow.model_copy(deep=True)

    def update(self, workflow: Workflow) -> Workflow:
        with self._lock.write_locked():
            existing = self._workflows.get(workflow.id)
            if existing is None:
                raise WorkflowNotFoundError(workflow.id, operation="update")
            stored = prepare_updated_workflow(workflow, existing)
            self._workflows[stored.id] = stored
        logger.info(f"Updated workflow {stored.id}")
        return stored.model_copy(deep=True)

    def delete(self, workflow_id: str) -> None:
        with self._lock.write_locked():
            if workflow_id not in self._workflows:
                raise WorkflowNotFoundError(workflow_id, operation="delete")
            del self._workflows[workflow_id]
        logger.info(f"Deleted workflow {workflow_id}")

    def list(self) -> List[Workflow]:
        with self._lock.read_locked():
            return [workflow.model_copy(deep=True) for workflow in self._workflows.values()]
