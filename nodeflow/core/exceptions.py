"""Exception hierarchy for nodeflow.

Every error carries a severity, a category, free-form details and a
context dict (workflow id, node id and the like) so the API layer can
render it without knowing the concrete class.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    DISPATCH = "dispatch"
    EXECUTION = "execution"
    STORAGE = "storage"
    CONFIGURATION = "configuration"


class WorkflowEngineError(Exception):
    """Base exception for all nodeflow errors.

    Subclasses set ``severity`` and ``category`` as class attributes;
    both can still be overridden per instance.
    """

    severity = ErrorSeverity.MEDIUM
    category = ErrorCategory.EXECUTION

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        category: Optional[ErrorCategory] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).__name__
        if severity is not None:
            self.severity = severity
        if category is not None:
            self.category = category
        self.details = dict(details or {})
        self.context = dict(context or {})
        self.timestamp = datetime.utcnow()

    def add_context(self, **kwargs):
        """Merge non-empty keyword values into the error context."""
        self.context.update({key: value for key, value in kwargs.items() if value is not None})
        return self


class GraphValidationError(WorkflowEngineError):
    """Raised when a workflow graph is structurally invalid."""

    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, workflow_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(workflow_id=workflow_id)


class CycleDetectedError(GraphValidationError):
    """Raised when the connections of a workflow form a cycle.

    ``cycle`` lists the node ids on one closed loop, starting from the
    smallest id; ``unresolved`` holds every node Kahn's algorithm could
    not place.
    """

    def __init__(self, cycle: List[str], unresolved: Optional[List[str]] = None, **kwargs):
        self.cycle = list(cycle)
        self.unresolved = list(unresolved or cycle)
        super().__init__(f"cycle detected: {' -> '.join(self.cycle + self.cycle[:1])}", **kwargs)
        self.details.update(cycle=self.cycle, unresolved_nodes=self.unresolved)


class DanglingConnectionError(GraphValidationError):
    """Raised when a connection references a node that is not in the workflow."""

    def __init__(self, connection_id: str, missing_node_id: str, endpoint: str, **kwargs):
        self.connection_id = connection_id
        self.missing_node_id = missing_node_id
        self.endpoint = endpoint
        super().__init__(
            f"connection {connection_id} references missing {endpoint} node: {missing_node_id}",
            **kwargs
        )
        self.details.update(
            connection_id=connection_id,
            missing_node_id=missing_node_id,
            endpoint=endpoint
        )


class NodeNotFoundError(WorkflowEngineError):
    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(self, node_id: str, **kwargs):
        super().__init__(f"node not found: {node_id}", **kwargs)
        self.node_id = node_id
        self.add_context(node_id=node_id)


class ExecutorRegistryError(WorkflowEngineError):
    """Raised when executor registry operations fail."""

    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, node_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(node_type=node_type)


class UnregisteredNodeTypeError(ExecutorRegistryError):
    """Raised at dispatch when no executor is registered for a node type."""

    category = ErrorCategory.DISPATCH

    def __init__(self, node_type: str, **kwargs):
        super().__init__(f"no executor for node type: {node_type}", node_type=node_type, **kwargs)
        self.node_type = node_type


class NodeExecutionError(WorkflowEngineError):
    """Typed failure returned by a node executor."""

    severity = ErrorSeverity.HIGH

    def __init__(self, message: str, node_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(node_id=node_id)


class StorageError(WorkflowEngineError):
    """Raised when workflow store operations fail."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.STORAGE

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(operation=operation)


class WorkflowNotFoundError(StorageError):
    severity = ErrorSeverity.LOW

    def __init__(self, workflow_id: str, **kwargs):
        super().__init__(f"workflow not found: {workflow_id}", **kwargs)
        self.workflow_id = workflow_id
        self.add_context(workflow_id=workflow_id)


class WorkflowAlreadyExistsError(StorageError):
    severity = ErrorSeverity.LOW

    def __init__(self, workflow_id: str, **kwargs):
        super().__init__(f"workflow already exists: {workflow_id}", **kwargs)
        self.workflow_id = workflow_id
        self.add_context(workflow_id=workflow_id)


class ConfigurationError(WorkflowEngineError):
    """Raised when configuration is invalid or missing."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(config_key=config_key)


_STATUS_CODES = (
    ((WorkflowNotFoundError, NodeNotFoundError), 404),
    ((WorkflowAlreadyExistsError,), 409),
    ((GraphValidationError,), 400),
)


def get_status_code_for_error(error: WorkflowEngineError) -> int:
    """Map a nodeflow error to an HTTP status code, 500 when unmapped."""
    for error_types, status_code in _STATUS_CODES:
        if isinstance(error, error_types):
            return status_code
    return 500


def create_error_response(error: WorkflowEngineError) -> Dict[str, Any]:
    """Build the JSON error body shared by HTTP handlers and middleware."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "severity": error.severity.value,
            "category": error.category.value,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }
