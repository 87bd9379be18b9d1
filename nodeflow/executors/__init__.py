"""Node executors."""

from .base import NodeExecutor
from .builtin import (
    WebhookExecutor,
    TimerExecutor,
    HTTPExecutor,
    EmailExecutor,
    ConditionExecutor,
    TransformExecutor,
)

__all__ = [
    "NodeExecutor",
    "WebhookExecutor",
    "TimerExecutor",
    "HTTPExecutor",
    "EmailExecutor",
    "ConditionExecutor",
    "TransformExecutor",
]
