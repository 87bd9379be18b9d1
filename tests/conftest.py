"""Pytest configuration and fixtures."""

import pytest
from typing import Any, Dict, List

from nodeflow.config import get_testing_config, reset_config
from nodeflow.core.execution_coordinator import ExecutionCoordinator
from nodeflow.core.executor_registry import ExecutorRegistry, create_default_registry
from nodeflow.core.exceptions import NodeExecutionError
from nodeflow.executors.base import NodeExecutor
from nodeflow.models.core import Connection, Node, Workflow
from nodeflow.storage import DatabaseWorkflowStore, InMemoryWorkflowStore


class RecordingExecutor(NodeExecutor):
    """Test executor that records its calls and echoes its inputs."""

    description = "Records calls"

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def execute(self, properties, inputs):
        self.calls.append({"properties": properties, "inputs": inputs})
        return {"echo": properties.get("value"), "inputs": inputs}


class FailingExecutor(NodeExecutor):
    """Test executor that always fails with a typed error."""

    def __init__(self, cause: str = "boom"):
        self.cause = cause

    def execute(self, properties, inputs):
        raise NodeExecutionError(self.cause)


def make_workflow(node_specs, edges, workflow_id: str = "wf-test", name: str = "Test Workflow") -> Workflow:
    """Build a workflow from ``(id, type)`` pairs (or dicts) and ``(from, to)`` pairs."""
    nodes = []
    for entry in node_specs:
        if isinstance(entry, dict):
            nodes.append(Node(**entry))
        else:
            node_id, node_type = entry
            nodes.append(Node(id=node_id, type=node_type, name=node_id))

    connections = [
        Connection(id=f"c{index}", from_id=from_id, to_id=to_id)
        for index, (from_id, to_id) in enumerate(edges, start=1)
    ]
    return Workflow(id=workflow_id, name=name, nodes=nodes, connections=connections)


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


@pytest.fixture
def registry(recording_executor):
    """Open registry with a recording executor and a failing executor."""
    registry = ExecutorRegistry()
    registry.register("record", recording_executor)
    registry.register("fail", FailingExecutor())
    return registry


@pytest.fixture
def default_registry():
    return create_default_registry(timer_max_interval=0.5)


@pytest.fixture
def coordinator(registry):
    return ExecutionCoordinator(registry=registry)


@pytest.fixture
def memory_store():
    return InMemoryWorkflowStore()


@pytest.fixture
def database_store(tmp_path):
    """SQLite-backed store in a temporary file."""
    store = DatabaseWorkflowStore.from_url(f"sqlite:///{tmp_path / 'nodeflow-test.db'}")
    yield store
    store.close()


@pytest.fixture(params=["memory", "database"])
def store(request):
    """Every store backend."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def test_config():
    reset_config()
    yield get_testing_config()
    reset_config()


@pytest.fixture
def client(test_config):
    """Create a test client with the application lifespan running."""
    from fastapi.testclient import TestClient
    from nodeflow.factory import create_app

    with TestClient(create_app(test_config)) as test_client:
        yield test_client
