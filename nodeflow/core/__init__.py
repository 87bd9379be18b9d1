"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    GraphValidationError,
    CycleDetectedError,
    DanglingConnectionError,
    NodeNotFoundError,
    ExecutorRegistryError,
    UnregisteredNodeTypeError,
    NodeExecutionError,
    StorageError,
    WorkflowNotFoundError,
    WorkflowAlreadyExistsError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "WorkflowEngineError",
    "GraphValidationError",
    "CycleDetectedError",
    "DanglingConnectionError",
    "NodeNotFoundError",
    "ExecutorRegistryError",
    "UnregisteredNodeTypeError",
    "NodeExecutionError",
    "StorageError",
    "WorkflowNotFoundError",
    "WorkflowAlreadyExistsError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
]
