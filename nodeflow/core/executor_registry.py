"""Executor Registry mapping node type tags to node executors."""

from typing import Dict, List, Any

from ..executors.base import NodeExecutor
from ..models.core import node_type_key
from .exceptions import ExecutorRegistryError, UnregisteredNodeTypeError
from .logging import get_logger

logger = get_logger(__name__)


class ExecutorRegistry:
    """Registry of node executors keyed by node type.

    The registry is populated once during start-up and then frozen. After
    ``freeze()`` it is read-only, so concurrent lookups need no locking.
    """

    def __init__(self):
        self._executors: Dict[str, NodeExecutor] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, node_type: Any, executor: NodeExecutor) -> None:
        """Register the executor for a node type.

        Args:
            node_type: NodeType member or free-form type tag
            executor: Object implementing ``execute(properties, inputs)``

        Raises:
            ExecutorRegistryError: If the registry is frozen, the type is empty or
                already registered, or the executor has no ``execute`` method
        """
        key = node_type_key(node_type)
        if not key:
            raise ExecutorRegistryError("Node type cannot be empty")

        if self._frozen:
            raise ExecutorRegistryError(
                f"Cannot register executor for '{key}': registry is frozen",
                node_type=key
            )

        if not callable(getattr(executor, "execute", None)):
            raise ExecutorRegistryError(
                f"Executor for '{key}' must provide an execute method",
                node_type=key
            )

        if key in self._executors:
            raise ExecutorRegistryError(f"Node type '{key}' is already registered", node_type=key)

        self._executors[key] = executor
        logger.info(f"Registered executor {type(executor).__name__} for node type '{key}'")

    def freeze(self) -> "ExecutorRegistry":
        """Close the registry to further registration."""
        self._frozen = True
        logger.debug(f"Executor registry frozen with {len(self._executors)} node types")
        return self

    def get_executor(self, node_type: Any) -> NodeExecutor:
        """Return the executor for a node type.

        Raises:
            UnregisteredNodeTypeError: If no executor is registered for the type
        """
        key = node_type_key(node_type)
        executor = self._executors.get(key)
        if executor is None:
            raise UnregisteredNodeTypeError(key)
        return executor

    def is_registered(self, node_type: Any) -> bool:
        return node_type_key(node_type) in self._executors

    def registered_types(self) -> List[str]:
        return sorted(self._executors)

    def describe(self) -> Dict[str, str]:
        """Map each registered node type to its executor description."""
        return {
            key: getattr(self._executors[key], "description", "") or type(self._executors[key]).__name__
            for key in self.registered_types()
        }

    def __contains__(self, node_type: Any) -> bool:
        return self.is_registered(node_type)

    def __len__(self) -> int:
        return len(self._executors)


def create_default_registry(timer_max_interval: float = 300.0) -> ExecutorRegistry:
    """Build and freeze a registry holding the built-in executors."""
    from ..executors.builtin import (
        WebhookExecutor,
        TimerExecutor,
        HTTPExecutor,
        EmailExecutor,
        ConditionExecutor,
        TransformExecutor,
    )
    from ..models.core import NodeType

    registry = ExecutorRegistry()
    registry.register(NodeType.WEBHOOK, WebhookExecutor())
    registry.register(NodeType.TIMER, TimerExecutor(max_interval=timer_max_interval))
    registry.register(NodeType.HTTP, HTTPExecutor())
    registry.register(NodeType.EMAIL, EmailExecutor())
    registry.register(NodeType.CONDITION, ConditionExecutor())
    registry.register(NodeType.TRANSFORM, TransformExecutor())
    return registry.freeze()
