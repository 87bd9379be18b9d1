"""Executor contract shared by all node types."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.exceptions import NodeExecutionError
from ..models.core import PropertyValue

Number = Union[int, float]


class NodeExecutor(ABC):
    """
    Runs one node given its properties and the outputs of its direct predecessors.

    ``inputs`` maps predecessor node IDs to the values they produced. It is empty
    for source nodes and only partially populated when a predecessor failed, so
    implementations must not assume any particular key is present. Failures are
    reported by raising ``NodeExecutionError``.
    """

    description: str = ""

    @abstractmethod
    def execute(
        self,
        properties: Dict[str, PropertyValue],
        inputs: Dict[str, PropertyValue],
    ) -> PropertyValue:
        """Produce the node's output value."""


def get_string(properties: Mapping[str, Any], name: str, default: str = "") -> str:
    """Read a string property, failing on any other value type."""
    value = properties.get(name)
    if value is None:
        return default
    if not isinstance(value, str):
        raise NodeExecutionError(
            f"property '{name}' must be a string, got {type(value).__name__}"
        )
    return value


def get_number(properties: Mapping[str, Any], name: str, default: Number = 0) -> Number:
    """Read a numeric property; booleans are rejected."""
    value = properties.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise NodeExecutionError(
            f"property '{name}' must be a number, got {type(value).__name__}"
        )
    return value


def get_mapping(properties: Mapping[str, Any], name: str) -> Optional[Dict[str, Any]]:
    value = properties.get(name)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise NodeExecutionError(
            f"property '{name}' must be a mapping, got {type(value).__name__}"
        )
    return value


def get_list(properties: Mapping[str, Any], name: str) -> List[Any]:
    value = properties.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise NodeExecutionError(
            f"property '{name}' must be a list, got {type(value).__name__}"
        )
    return value
