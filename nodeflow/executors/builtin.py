"""Built-in node executors.

Integrations are simulated: they validate their properties and report what
they would have done, without performing network or mail I/O.
"""

import ast
import time
from typing import Any, Dict

from ..core.exceptions import NodeExecutionError
from ..core.logging import get_logger
from ..models.core import PropertyValue
from .base import NodeExecutor, get_list, get_mapping, get_number, get_string

logger = get_logger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")

_SAFE_BUILTINS = {
    'len': len,
    'str': str,
    'int': int,
    'float': float,
    'bool': bool,
    'isinstance': isinstance,
    'min': min,
    'max': max,
    'sum': sum,
    'abs': abs,
    'round': round,
    'sorted': sorted,
    'any': any,
    'all': all,
    'list': list,
    'dict': dict,
}


def _check_expression(expression: str) -> ast.Expression:
    """Parse ``expression`` and reject access to underscore names or attributes."""
    try:
        tree = ast.parse(expression, mode='eval')
    except SyntaxError as e:
        raise NodeExecutionError(f"invalid expression '{expression}': {e.msg}")

    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and node.attr.startswith('_'):
            raise NodeExecutionError(f"access to attribute '{node.attr}' is not allowed")
        if isinstance(node, ast.Name) and node.id.startswith('_'):
            raise NodeExecutionError(f"access to name '{node.id}' is not allowed")
    return tree


def evaluate_expression(expression: str, properties: Dict[str, Any], inputs: Dict[str, Any]) -> Any:
    """
    Evaluate an expression against a node's properties and inputs.

    The expression sees ``inputs``, ``properties`` and a small set of safe
    builtins. Names and attributes starting with an underscore are rejected
    before evaluation, which closes the dunder walk back to the interpreter.

    Raises:
        NodeExecutionError: If the expression is rejected or fails
    """
    tree = _check_expression(expression)

    eval_context = dict(_SAFE_BUILTINS)
    eval_context['inputs'] = inputs
    eval_context['properties'] = properties

    try:
        return eval(compile(tree, '<expression>', 'eval'), {"__builtins__": {}}, eval_context)
    except Exception as e:
        raise NodeExecutionError(f"failed to evaluate '{expression}': {e}")


class WebhookExecutor(NodeExecutor):
    """Receive HTTP requests."""

    description = "Receive HTTP requests"

    def execute(self, properties, inputs) -> PropertyValue:
        return {
            "status": "webhook_executed",
            "url": get_string(properties, "url"),
            "method": get_string(properties, "method"),
        }


class TimerExecutor(NodeExecutor):
    """Wait for ``interval`` seconds before completing."""

    description = "Schedule execution"

    def __init__(self, max_interval: float = 300.0):
        self.max_interval = max_interval

    def execute(self, properties, inputs) -> PropertyValue:
        interval = get_number(properties, "interval")
        if interval < 0:
            raise NodeExecutionError(f"interval must not be negative, got {interval}")

        if interval > self.max_interval:
            logger.warning(f"Timer interval {interval}s capped to {self.max_interval}s")
            interval = self.max_interval

        if interval:
            time.sleep(interval)

        return {
            "status": "timer_completed",
            "waited": interval,
        }


class HTTPExecutor(NodeExecutor):
    """Make API calls."""

    description = "Make API calls"

    def execute(self, properties, inputs) -> PropertyValue:
        url = get_string(properties, "url")
        method = get_string(properties, "method", "GET").upper() or "GET"
        if method not in HTTP_METHODS:
            raise NodeExecutionError(f"unsupported HTTP method: {method}")

        output = {
            "status": "http_request_sent",
            "url": url,
            "method": method,
        }
        headers = get_mapping(properties, "headers")
        if headers is not None:
            output["headers"] = headers
        return output


class EmailExecutor(NodeExecutor):
    """Send email messages."""

    description = "Send email messages"

    def execute(self, properties, inputs) -> PropertyValue:
        to = get_string(properties, "to").strip()
        if not to:
            raise NodeExecutionError("email recipient 'to' is required")

        output = {
            "status": "email_sent",
            "to": to,
            "subject": get_string(properties, "subject"),
        }
        cc = get_list(properties, "cc")
        if cc:
            output["cc"] = cc
        return output


class ConditionExecutor(NodeExecutor):
    """Evaluate a boolean expression over the node's inputs."""

    description = "Conditional logic"

    def execute(self, properties, inputs) -> PropertyValue:
        condition = get_string(properties, "condition").strip()
        result = True
        if condition:
            result = bool(evaluate_expression(condition, properties, inputs))

        return {
            "status": "condition_evaluated",
            "condition": condition,
            "result": result,
        }


class TransformExecutor(NodeExecutor):
    """Compute a new value from the node's inputs."""

    description = "Transform data"

    def execute(self, properties, inputs) -> PropertyValue:
        script = get_string(properties, "script").strip()
        if script:
            result = evaluate_expression(script, properties, inputs)
        else:
            result = inputs

        return {
            "status": "data_transformed",
            "script": script,
            "result": result,
        }
