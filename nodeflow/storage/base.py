"""Workflow store contract."""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from ..models.core import Workflow, WorkflowStatus


class WorkflowStore(ABC):
    """Keyed storage of workflow definitions.

    Implementations hand out deep copies only: callers never hold a reference
    into the store's own state.
    """

    @abstractmethod
    def create(self, workflow: Workflow) -> Workflow:
        """Store a new workflow and return the stored copy.

        An empty ID is replaced by a generated one; timestamps are set and the
        status is reset to ``inactive``.

        Raises:
            WorkflowAlreadyExistsError: If the ID is already in use
        """

    @abstractmethod
    def get(self, workflow_id: str) -> Workflow:
        """Return a copy of the stored workflow.

        Raises:
            WorkflowNotFoundError: If the ID is unknown
        """

    @abstractmethod
    def update(self, workflow: Workflow) -> Workflow:
        """Replace a stored workflow, keeping its creation timestamp.

        Raises:
            WorkflowNotFoundError: If the ID is unknown
        """

    @abstractmethod
    def delete(self, workflow_id: str) -> None:
        """Remove a stored workflow.

        Raises:
            WorkflowNotFoundError: If the ID is unknown
        """

    @abstractmethod
    def list(self) -> List[Workflow]:
        """Return copies of all stored workflows, oldest first."""


def prepare_new_workflow(workflow: Workflow) -> Workflow:
    """Copy a workflow for insertion: assign an ID, timestamps and initial status."""
    now = datetime.utcnow()
    return workflow.model_copy(
        update={
            "id": workflow.id.strip() or str(uuid.uuid4()),
            "status": WorkflowStatus.INACTIVE,
            "created_at": now,
            "updated_at": now,
        },
        deep=True
    )


def prepare_updated_workflow(workflow: Workflow, existing: Workflow) -> Workflow:
    """Copy a workflow for replacement of ``existing``."""
    return workflow.model_copy(
        update={
            "created_at": existing.created_at,
            "updated_at": datetime.utcnow(),
        },
        deep=True
    )
