"""WebSocket connection manager for real-time execution updates."""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Dict, Set, Any, Optional
from queue import Queue, Empty
from fastapi import WebSocket, WebSocketDisconnect

from ..models.core import ExecutionEvent
from .logging import get_logger

logger = get_logger(__name__)


def event_message(event: ExecutionEvent) -> Dict[str, Any]:
    """Render an execution event as a client message."""
    return {
        "type": event.event_type,
        "workflow_id": event.workflow_id,
        "node_id": event.node_id,
        "timestamp": event.timestamp.isoformat(),
        "data": event.data
    }


class WebSocketConnection:
    """A WebSocket connection with its subscriptions."""

    def __init__(self, websocket: WebSocket, connection_id: str):
        self.websocket = websocket
        self.connection_id = connection_id
        self.connected_at = datetime.utcnow()
        self.subscribed_workflows: Set[str] = set()
        self.is_active = True


class ConnectionManager:
    """Tracks WebSocket connections and broadcasts execution events.

    Execution runs on worker threads, so events arrive through
    :meth:`queue_event`, which only touches a thread-safe queue. An asyncio
    task started with :meth:`start_broadcast_processor` drains the queue on
    the event loop and fans each event out to subscribers of its workflow.
    """

    def __init__(self, poll_interval: float = 0.05):
        self._connections: Dict[str, WebSocketConnection] = {}
        self._workflow_subscribers: Dict[str, Set[str]] = {}  # workflow_id -> connection ids
        self._broadcast_lock = asyncio.Lock()

        self._broadcast_queue: Queue = Queue()
        self._queue_processor_task: Optional[asyncio.Task] = None
        self._processing_broadcasts = False
        self._poll_interval = poll_interval

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and return its connection ID."""
        await websocket.accept()

        connection_id = str(uuid.uuid4())
        self._connections[connection_id] = WebSocketConnection(websocket, connection_id)

        logger.info(f"WebSocket connection established: {connection_id}")
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and all of its subscriptions."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return

        connection.is_active = False
        for workflow_id in list(connection.subscribed_workflows):
            self._remove_subscriber(connection_id, workflow_id)

        logger.info(f"WebSocket connection disconnected and cleaned up: {connection_id}")

    def subscribe(self, connection_id: str, workflow_id: str) -> bool:
        """Subscribe a connection to events of one workflow."""
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_active:
            logger.warning(f"Attempted to subscribe unknown or inactive connection: {connection_id}")
            return False

        connection.subscribed_workflows.add(workflow_id)
        self._workflow_subscribers.setdefault(workflow_id, set()).add(connection_id)

        logger.info(f"Connection {connection_id} subscribed to workflow {workflow_id}")
        return True

    def unsubscribe(self, connection_id: str, workflow_id: str) -> bool:
        """Drop a connection's subscription to a workflow."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False

        connection.subscribed_workflows.discard(workflow_id)
        self._remove_subscriber(connection_id, workflow_id)

        logger.info(f"Connection {connection_id} unsubscribed from workflow {workflow_id}")
        return True

    def _remove_subscriber(self, connection_id: str, workflow_id: str) -> None:
        subscribers = self._workflow_subscribers.get(workflow_id)
        if subscribers is None:
            return
        subscribers.discard(connection_id)
        if not subscribers:
            del self._workflow_subscribers[workflow_id]

    async def broadcast_event(self, event: ExecutionEvent) -> None:
        """Send an event to every subscriber of its workflow."""
        subscribers = self._workflow_subscribers.get(event.workflow_id)
        if not subscribers:
            logger.debug(f"No subscribers for workflow {event.workflow_id}, skipping broadcast")
            return

        message = event_message(event)
        async with self._broadcast_lock:
            disconnected = []
            for connection_id in list(subscribers):
                if not await self.send_to_connection(connection_id, message):
                    disconnected.append(connection_id)

            for connection_id in disconnected:
                await self.disconnect(connection_id)

        logger.debug(f"Broadcasted {event.event_type} for workflow {event.workflow_id}")

    async def send_to_connection(self, connection_id: str, data: Dict[str, Any]) -> bool:
        """
        Send a JSON message to one connection.

        Returns:
            True if the message was sent, False if the connection is gone
        """
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_active:
            return False

        try:
            await connection.websocket.send_text(json.dumps(data, default=str))
            return True
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected during send: {connection_id}")
            connection.is_active = False
            return False
        except RuntimeError as e:
            # Starlette raises RuntimeError when sending on a closed socket
            logger.error(f"Error sending WebSocket message to {connection_id}: {str(e)}")
            connection.is_active = False
            return False

    def get_connection_count(self) -> int:
        return len([conn for conn in self._connections.values() if conn.is_active])

    def get_subscriber_count(self, workflow_id: str) -> int:
        return len(self._workflow_subscribers.get(workflow_id, set()))

    def queue_event(self, event: ExecutionEvent) -> None:
        """Queue an event for broadcasting. Safe to call from any thread."""
        self._broadcast_queue.put(event)

    def start_broadcast_processor(self) -> None:
        """Start draining the event queue on the running event loop."""
        if not self._processing_broadcasts:
            self._processing_broadcasts = True
            self._queue_processor_task = asyncio.create_task(self._process_broadcast_queue())
            logger.info("WebSocket broadcast processor started")

    async def stop_broadcast_processor(self) -> None:
        """Stop the broadcast processor and wait for it to exit."""
        self._processing_broadcasts = False
        task, self._queue_processor_task = self._queue_processor_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("WebSocket broadcast processor stopped")

    async def _process_broadcast_queue(self) -> None:
        while self._processing_broadcasts:
            try:
                event = self._broadcast_queue.get_nowait()
            except Empty:
                await asyncio.sleep(self._poll_interval)
                continue

            try:
                await self.broadcast_event(event)
            except Exception as e:
                logger.error(f"Error processing broadcast queue: {str(e)}")
            finally:
                self._broadcast_queue.task_done()
