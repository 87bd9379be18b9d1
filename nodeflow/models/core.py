"""Core Pydantic models for the workflow engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, JsonValue, field_validator

from ..core.exceptions import DanglingConnectionError, NodeNotFoundError

# Loosely-typed node property / executor input / executor output value:
# str, int, float, bool, None, list of values or str-keyed mapping of values.
PropertyValue = JsonValue


class NodeType(str, Enum):
    """Built-in node type tags."""
    WEBHOOK = "webhook"
    TIMER = "timer"
    HTTP = "http"
    EMAIL = "email"
    DATABASE = "database"
    CONDITION = "condition"
    LOOP = "loop"
    TRANSFORM = "transform"
    SLACK = "slack"
    SHEETS = "sheets"
    OPENAI = "openai"


class WorkflowStatus(str, Enum):
    """Lifecycle status of a stored workflow."""
    INACTIVE = "inactive"
    ACTIVE = "active"


class ExecutionStatusEnum(str, Enum):
    """Enumeration of workflow execution statuses."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def node_type_key(node_type: Any) -> str:
    """Normalize a node type tag (enum member or plain string) to its string form."""
    if isinstance(node_type, Enum):
        return str(node_type.value)
    return str(node_type).strip()


class Node(BaseModel):
    """One workflow step."""
    id: str = Field(..., description="Unique identifier of the node within its workflow")
    type: str = Field(..., description="Node type tag used to select an executor")
    name: str = Field(default="", description="Display name")
    x: float = Field(default=0.0, description="Horizontal position in the editor")
    y: float = Field(default=0.0, description="Vertical position in the editor")
    properties: Dict[str, PropertyValue] = Field(default_factory=dict, description="Executor properties")

    @field_validator('id')
    @classmethod
    def validate_id(cls, id_value):
        """Ensure node ID is not empty."""
        if not id_value or not id_value.strip():
            raise ValueError("Node ID cannot be empty")
        return id_value.strip()

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, type_value):
        """Accept NodeType members as well as free-form tags."""
        if type_value is None:
            raise ValueError("Node type cannot be empty")
        type_value = node_type_key(type_value)
        if not type_value:
            raise ValueError("Node type cannot be empty")
        return type_value


class Connection(BaseModel):
    """Directed edge from one node's output to another node's input."""
    id: str = Field(default="", description="Connection identifier")
    from_id: str = Field(..., description="Source node ID")
    to_id: str = Field(..., description="Destination node ID")

    @field_validator('from_id', 'to_id')
    @classmethod
    def validate_node_ids(cls, node_id):
        """Ensure endpoint IDs are not empty."""
        if not node_id or not node_id.strip():
            raise ValueError("Connection endpoint cannot be empty")
        return node_id.strip()

    @property
    def label(self) -> str:
        """Connection ID, or its endpoints when the ID is empty."""
        return self.id or f"{self.from_id}->{self.to_id}"


class Workflow(BaseModel):
    """A named graph of nodes and connections."""
    id: str = Field(default="", description="Workflow identifier, assigned by the store when empty")
    name: str = Field(default="", description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    nodes: List[Node] = Field(default_factory=list, description="Nodes of the workflow")
    connections: List[Connection] = Field(default_factory=list, description="Connections between nodes")
    status: WorkflowStatus = Field(default=WorkflowStatus.INACTIVE, description="Lifecycle status")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    @field_validator('nodes')
    @classmethod
    def validate_unique_node_ids(cls, nodes):
        """Ensure all node IDs are unique."""
        seen = set()
        for node in nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node ID: {node.id}")
            seen.add(node.id)
        return nodes

    def get_node(self, node_id: str) -> Node:
        """Return the node with the given ID or raise NodeNotFoundError."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise NodeNotFoundError(node_id)

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.nodes)

    def outgoing_connections(self, node_id: str) -> List[Connection]:
        return [c for c in self.connections if c.from_id == node_id]

    def incoming_connections(self, node_id: str) -> List[Connection]:
        return [c for c in self.connections if c.to_id == node_id]

    def predecessors(self, node_id: str) -> List[str]:
        """Distinct IDs of the nodes with a connection into ``node_id``, in declaration order."""
        return list(dict.fromkeys(c.from_id for c in self.incoming_connections(node_id)))

    def successors(self, node_id: str) -> List[str]:
        """Distinct IDs of the nodes ``node_id`` connects to, in declaration order."""
        return list(dict.fromkeys(c.to_id for c in self.outgoing_connections(node_id)))

    def is_source(self, node_id: str) -> bool:
        self.get_node(node_id)
        return not self.incoming_connections(node_id)

    def is_sink(self, node_id: str) -> bool:
        self.get_node(node_id)
        return not self.outgoing_connections(node_id)

    def validate_connections(self) -> None:
        """
        Check that every connection endpoint resolves to a node of this workflow.

        Raises:
            DanglingConnectionError: For the first connection with a missing endpoint
        """
        node_ids = {node.id for node in self.nodes}
        for connection in self.connections:
            if connection.from_id not in node_ids:
                raise DanglingConnectionError(
                    connection.label, connection.from_id, "source", workflow_id=self.id or None
                )
            if connection.to_id not in node_ids:
                raise DanglingConnectionError(
                    connection.label, connection.to_id, "destination", workflow_id=self.id or None
                )


class ExecutionPlan(BaseModel):
    """Deterministic topological ordering of a workflow's nodes."""
    workflow_id: str = Field(..., description="ID of the planned workflow")
    order: List[str] = Field(default_factory=list, description="Node IDs in execution order")
    predecessors: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Direct predecessors of every planned node"
    )


class ExecutionResult(BaseModel):
    """Terminal record of one execution attempt."""
    workflow_id: str = Field(..., description="ID of the executed workflow")
    status: ExecutionStatusEnum = Field(default=ExecutionStatusEnum.RUNNING, description="Execution status")
    start_time: datetime = Field(..., description="Timestamp when execution started")
    end_time: Optional[datetime] = Field(None, description="Timestamp when execution ended")
    results: Dict[str, PropertyValue] = Field(default_factory=dict, description="Outputs keyed by node ID")
    errors: List[str] = Field(default_factory=list, description="Ordered human-readable errors")


class ExecutionEvent(BaseModel):
    """Progress event pushed to real-time subscribers."""
    event_type: str = Field(..., description="node_update or execution_update")
    workflow_id: str = Field(..., description="ID of the executing workflow")
    node_id: Optional[str] = Field(None, description="ID of the node the event refers to")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Event timestamp")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")


class NodeTypeInfo(BaseModel):
    """Description of a node type for API consumers."""
    type: str = Field(..., description="Node type tag")
    registered: bool = Field(..., description="Whether an executor is registered for the type")
    description: str = Field(default="", description="Executor description")
