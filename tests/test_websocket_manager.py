"""Tests for the WebSocket connection manager."""

import asyncio
import json
import threading

from nodeflow.core.websocket_manager import ConnectionManager, event_message
from nodeflow.models.core import ExecutionEvent


class FakeWebSocket:
    """Minimal stand-in for a Starlette WebSocket."""

    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def node_event(workflow_id: str = "wf", node_id: str = "a") -> ExecutionEvent:
    return ExecutionEvent(
        event_type="node_update",
        workflow_id=workflow_id,
        node_id=node_id,
        data={"status": "completed"}
    )


class TestConnectionManager:
    """Test cases for subscriptions and broadcasting."""

    def test_event_message_shape(self):
        message = event_message(node_event())
        assert set(message) == {"type", "workflow_id", "node_id", "timestamp", "data"}
        assert message["type"] == "node_update"

    def test_broadcast_reaches_only_subscribers(self):
        async def scenario():
            manager = ConnectionManager()
            subscribed, other = FakeWebSocket(), FakeWebSocket()
            first = await manager.connect(subscribed)
            await manager.connect(other)
            manager.subscribe(first, "wf")

            await manager.broadcast_event(node_event("wf"))
            await manager.broadcast_event(node_event("other-wf"))
            return subscribed, other

        subscribed, other = asyncio.run(scenario())

        assert subscribed.accepted
        assert [m["workflow_id"] for m in subscribed.sent] == ["wf"]
        assert other.sent == []

    def test_failed_connection_dropped(self):
        async def scenario():
            manager = ConnectionManager()
            connection_id = await manager.connect(FakeWebSocket(fail=True))
            manager.subscribe(connection_id, "wf")
            await manager.broadcast_event(node_event("wf"))
            return manager

        manager = asyncio.run(scenario())

        assert manager.get_connection_count() == 0
        assert manager.get_subscriber_count("wf") == 0

    def test_unsubscribe_and_disconnect(self):
        async def scenario():
            manager = ConnectionManager()
            connection_id = await manager.connect(FakeWebSocket())
            manager.subscribe(connection_id, "wf")
            manager.subscribe(connection_id, "wf-2")
            manager.unsubscribe(connection_id, "wf")
            counts = (manager.get_subscriber_count("wf"), manager.get_subscriber_count("wf-2"))
            await manager.disconnect(connection_id)
            return manager, counts

        manager, counts = asyncio.run(scenario())

        assert counts == (0, 1)
        assert manager.get_subscriber_count("wf-2") == 0
        assert not manager.subscribe("gone", "wf")

    def test_events_queued_from_threads_are_broadcast(self):
        async def scenario():
            manager = ConnectionManager(poll_interval=0.01)
            websocket = FakeWebSocket()
            connection_id = await manager.connect(websocket)
            manager.subscribe(connection_id, "wf")
            manager.start_broadcast_processor()

            workers = [
                threading.Thread(target=manager.queue_event, args=(node_event("wf", f"n{i}"),))
                for i in range(5)
            ]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()

            for _ in range(200):
                if len(websocket.sent) == 5:
                    break
                await asyncio.sleep(0.01)
            await manager.stop_broadcast_processor()
            return websocket

        websocket = asyncio.run(scenario())

        assert sorted(m["node_id"] for m in websocket.sent) == [f"n{i}" for i in range(5)]
