"""Data models for the workflow engine."""

from .core import (
    PropertyValue,
    NodeType,
    WorkflowStatus,
    ExecutionStatusEnum,
    Node,
    Connection,
    Workflow,
    ExecutionPlan,
    ExecutionResult,
    ExecutionEvent,
    NodeTypeInfo,
    node_type_key,
)

__all__ = [
    "PropertyValue",
    "NodeType",
    "WorkflowStatus",
    "ExecutionStatusEnum",
    "Node",
    "Connection",
    "Workflow",
    "ExecutionPlan",
    "ExecutionResult",
    "ExecutionEvent",
    "NodeTypeInfo",
    "node_type_key",
]
