"""FastAPI REST and WebSocket endpoints for the nodeflow service."""

import json
from datetime import datetime
from typing import List, Optional, NoReturn
from fastapi import APIRouter, HTTPException, Depends, Response, status, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from ..core.execution_coordinator import ExecutionCoordinator
from ..core.executor_registry import ExecutorRegistry
from ..core.exceptions import WorkflowEngineError, create_error_response, get_status_code_for_error
from ..core.logging import get_logger
from ..core.websocket_manager import ConnectionManager
from ..models.core import ExecutionResult, NodeType, NodeTypeInfo, Workflow
from ..storage.base import WorkflowStore

logger = get_logger(__name__)

# Create routers
router = APIRouter(prefix="/api", tags=["workflows"])
ws_router = APIRouter(tags=["websocket"])

# Global instances (initialized by the application factory)
_store: Optional[WorkflowStore] = None
_coordinator: Optional[ExecutionCoordinator] = None
_registry: Optional[ExecutorRegistry] = None
_connection_manager: Optional[ConnectionManager] = None


def init_dependencies(
    store: WorkflowStore,
    coordinator: ExecutionCoordinator,
    registry: ExecutorRegistry,
    connection_manager: Optional[ConnectionManager] = None
):
    """Initialize the global dependencies."""
    global _store, _coordinator, _registry, _connection_manager
    _store = store
    _coordinator = coordinator
    _registry = registry
    _connection_manager = connection_manager


def get_store() -> WorkflowStore:
    """Dependency to get the workflow store."""
    if _store is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Workflow store not initialized"
        )
    return _store


def get_coordinator() -> ExecutionCoordinator:
    """Dependency to get the execution coordinator."""
    if _coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution coordinator not initialized"
        )
    return _coordinator


def get_registry() -> ExecutorRegistry:
    """Dependency to get the executor registry."""
    if _registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Executor registry not initialized"
        )
    return _registry


def _raise_http_error(error: WorkflowEngineError) -> NoReturn:
    raise HTTPException(
        status_code=get_status_code_for_error(error),
        detail=create_error_response(error)
    )


async def _execute_stored_workflow(workflow_id: str, store: WorkflowStore, coordinator: ExecutionCoordinator) -> ExecutionResult:
    """Load a workflow and run it on a worker thread."""
    workflow = await run_in_threadpool(store.get, workflow_id)
    return await run_in_threadpool(coordinator.execute, workflow)


# Workflow endpoints

@router.post(
    "/workflows",
    response_model=Workflow,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow"
)
async def create_workflow(
    workflow: Workflow,
    store: WorkflowStore = Depends(get_store)
) -> Workflow:
    """
    Store a new workflow definition.

    The store assigns an ID when none is given and resets the status to
    ``inactive``. Structural problems such as cycles are reported when the
    workflow is executed, not here.
    """
    try:
        return await run_in_threadpool(store.create, workflow)
    except WorkflowEngineError as e:
        logger.warning(f"Failed to create workflow: {e.message}")
        _raise_http_error(e)


@router.get(
    "/workflows",
    response_model=List[Workflow],
    summary="List workflows"
)
async def list_workflows(store: WorkflowStore = Depends(get_store)) -> List[Workflow]:
    try:
        return await run_in_threadpool(store.list)
    except WorkflowEngineError as e:
        _raise_http_error(e)


@router.get(
    "/workflows/{workflow_id}",
    response_model=Workflow,
    summary="Get a workflow"
)
async def get_workflow(workflow_id: str, store: WorkflowStore = Depends(get_store)) -> Workflow:
    try:
        return await run_in_threadpool(store.get, workflow_id)
    except WorkflowEngineError as e:
        _raise_http_error(e)


@router.put(
    "/workflows/{workflow_id}",
    response_model=Workflow,
    summary="Replace a workflow"
)
async def update_workflow(
    workflow_id: str,
    workflow: Workflow,
    store: WorkflowStore = Depends(get_store)
) -> Workflow:
    """Replace a stored workflow. The ID in the path wins over the body."""
    try:
        return await run_in_threadpool(store.update, workflow.model_copy(update={"id": workflow_id}))
    except WorkflowEngineError as e:
        logger.warning(f"Failed to update workflow {workflow_id}: {e.message}")
        _raise_http_error(e)


@router.delete(
    "/workflows/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a workflow"
)
async def delete_workflow(workflow_id: str, store: WorkflowStore = Depends(get_store)) -> Response:
    try:
        await run_in_threadpool(store.delete, workflow_id)
    except WorkflowEngineError as e:
        _raise_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=ExecutionResult,
    summary="Execute a workflow",
    description="Run a stored workflow to completion and return its execution result"
)
async def execute_workflow(
    workflow_id: str,
    store: WorkflowStore = Depends(get_store),
    coordinator: ExecutionCoordinator = Depends(get_coordinator)
) -> ExecutionResult:
    """
    Execute a stored workflow.

    Node failures do not fail the request: they are reported in the result's
    ``errors`` with status ``failed``. Only an unknown workflow ID is an
    HTTP error.
    """
    try:
        logger.info(f"Executing workflow {workflow_id}")
        return await _execute_stored_workflow(workflow_id, store, coordinator)
    except WorkflowEngineError as e:
        logger.warning(f"Failed to execute workflow {workflow_id}: {e.message}")
        _raise_http_error(e)


@router.get(
    "/node-types",
    response_model=List[NodeTypeInfo],
    summary="List node types"
)
async def list_node_types(registry: ExecutorRegistry = Depends(get_registry)) -> List[NodeTypeInfo]:
    """List built-in node types and any extra registered types, marking which can run."""
    descriptions = registry.describe()
    type_keys = [node_type.value for node_type in NodeType]
    type_keys.extend(key for key in descriptions if key not in type_keys)

    return [
        NodeTypeInfo(
            type=key,
            registered=key in descriptions,
            description=descriptions.get(key, "")
        )
        for key in type_keys
    ]


# WebSocket endpoint

@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time execution updates.

    Client messages:
    {"type": "ping"}
    {"type": "subscribe" | "unsubscribe" | "execute", "workflow_id": "..."}

    Server messages carry ``type`` (``pong``, ``subscribed``,
    ``unsubscribed``, ``node_update``, ``execution_update`` or ``error``);
    execution events additionally carry ``workflow_id``, ``node_id``,
    ``timestamp`` and ``data``.
    """
    if _connection_manager is None:
        await websocket.close(code=1011, reason="WebSocket updates not available")
        return

    manager = _connection_manager
    connection_id = None
    try:
        connection_id = await manager.connect(websocket)

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to_connection(connection_id, {
                    "type": "error",
                    "message": "Invalid JSON message format"
                })
                continue

            if not isinstance(message, dict):
                await manager.send_to_connection(connection_id, {
                    "type": "error",
                    "message": "Message must be a JSON object"
                })
                continue

            await _handle_message(manager, connection_id, message)

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected: {connection_id}")
    finally:
        if connection_id:
            await manager.disconnect(connection_id)


async def _handle_message(manager: ConnectionManager, connection_id: str, message: dict) -> None:
    message_type = message.get("type")
    workflow_id = message.get("workflow_id")

    if message_type == "ping":
        await manager.send_to_connection(connection_id, {"type": "pong"})
        return

    if message_type not in ("subscribe", "unsubscribe", "execute"):
        await manager.send_to_connection(connection_id, {
            "type": "error",
            "message": f"Unknown message type: {message_type}"
        })
        return

    if not isinstance(workflow_id, str) or not workflow_id:
        await manager.send_to_connection(connection_id, {
            "type": "error",
            "message": f"'{message_type}' requires a workflow_id"
        })
        return

    if message_type == "subscribe":
        manager.subscribe(connection_id, workflow_id)
        await manager.send_to_connection(connection_id, {"type": "subscribed", "workflow_id": workflow_id})

    elif message_type == "unsubscribe":
        manager.unsubscribe(connection_id, workflow_id)
        await manager.send_to_connection(connection_id, {"type": "unsubscribed", "workflow_id": workflow_id})

    else:
        try:
            result = await _execute_stored_workflow(workflow_id, get_store(), get_coordinator())
        except WorkflowEngineError as e:
            await manager.send_to_connection(connection_id, {
                "type": "error",
                "workflow_id": workflow_id,
                "message": e.message
            })
            return

        await manager.send_to_connection(connection_id, {
            "type": "execution_update",
            "workflow_id": workflow_id,
            "node_id": None,
            "timestamp": datetime.utcnow().isoformat(),
            "data": result.model_dump(mode="json")
        })
