"""Workflow storage layer."""

from .base import WorkflowStore
from .memory import InMemoryWorkflowStore
from .database import Base, DatabaseWorkflowStore, create_database_engine
from ..core.exceptions import ConfigurationError

__all__ = [
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "DatabaseWorkflowStore",
    "Base",
    "create_database_engine",
    "create_workflow_store",
]


def create_workflow_store(config) -> WorkflowStore:
    """Build the workflow store selected by ``config.store_backend``."""
    backend = config.store_backend
    if backend == "memory":
        return InMemoryWorkflowStore()
    if backend == "database":
        return DatabaseWorkflowStore.from_url(config.database_url, echo=config.database_echo)
    raise ConfigurationError(f"Unknown store backend: {backend}", config_key="store_backend")
