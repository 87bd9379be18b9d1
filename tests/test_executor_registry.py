"""Tests for the executor registry."""

import pytest

from nodeflow.core.exceptions import ExecutorRegistryError, UnregisteredNodeTypeError
from nodeflow.core.executor_registry import ExecutorRegistry, create_default_registry
from nodeflow.executors.builtin import TimerExecutor, WebhookExecutor
from nodeflow.models.core import NodeType


class TestExecutorRegistry:
    """Test cases for ExecutorRegistry."""

    def test_register_and_get_executor(self):
        registry = ExecutorRegistry()
        executor = WebhookExecutor()
        registry.register(NodeType.WEBHOOK, executor)

        assert registry.get_executor("webhook") is executor
        assert registry.get_executor(NodeType.WEBHOOK) is executor
        assert "webhook" in registry
        assert len(registry) == 1

    def test_unregistered_type_raises(self):
        registry = ExecutorRegistry()
        with pytest.raises(UnregisteredNodeTypeError) as exc_info:
            registry.get_executor("slack")
        assert exc_info.value.message == "no executor for node type: slack"

    def test_duplicate_registration_rejected(self):
        registry = ExecutorRegistry()
        original = WebhookExecutor()
        registry.register("webhook", original)

        with pytest.raises(ExecutorRegistryError):
            registry.register("webhook", WebhookExecutor())
        assert registry.get_executor("webhook") is original

    def test_registration_closed_after_freeze(self):
        registry = ExecutorRegistry()
        registry.register("webhook", WebhookExecutor())
        registry.freeze()

        assert registry.frozen
        with pytest.raises(ExecutorRegistryError):
            registry.register("timer", TimerExecutor())
        assert not registry.is_registered("timer")

    def test_executor_without_execute_rejected(self):
        registry = ExecutorRegistry()
        with pytest.raises(ExecutorRegistryError):
            registry.register("webhook", object())

    def test_empty_type_rejected(self):
        with pytest.raises(ExecutorRegistryError):
            ExecutorRegistry().register("  ", WebhookExecutor())


class TestDefaultRegistry:
    """Test cases for the built-in registry."""

    def test_builtin_types_registered_and_frozen(self):
        registry = create_default_registry()

        assert registry.frozen
        assert registry.registered_types() == ["condition", "email", "http", "timer", "transform", "webhook"]

    @pytest.mark.parametrize("node_type", ["database", "loop", "slack", "sheets", "openai"])
    def test_palette_only_types_unregistered(self, node_type):
        registry = create_default_registry()
        with pytest.raises(UnregisteredNodeTypeError):
            registry.get_executor(node_type)

    def test_describe(self):
        descriptions = create_default_registry().describe()
        assert descriptions["http"] == "Make API calls"
        assert list(descriptions) == sorted(descriptions)

    def test_timer_interval_cap_applied(self):
        registry = create_default_registry(timer_max_interval=0.0)
        assert registry.get_executor("timer").execute({"interval": 10}, {})["waited"] == 0.0
