"""Tests for the built-in node executors."""

import time

import pytest

from nodeflow.core.exceptions import NodeExecutionError
from nodeflow.executors.base import get_list, get_mapping, get_number, get_string
from nodeflow.executors.builtin import (
    ConditionExecutor,
    EmailExecutor,
    HTTPExecutor,
    TimerExecutor,
    TransformExecutor,
    WebhookExecutor,
    evaluate_expression,
)


class TestPropertyHelpers:
    """Test cases for typed property access."""

    def test_defaults_for_missing_properties(self):
        assert get_string({}, "url") == ""
        assert get_number({}, "interval", 5) == 5
        assert get_mapping({}, "headers") is None
        assert get_list({}, "cc") == []

    @pytest.mark.parametrize("helper, value", [
        (get_string, 42),
        (get_number, "10"),
        (get_number, True),
        (get_mapping, ["a"]),
        (get_list, {"a": 1}),
    ])
    def test_wrong_types_rejected(self, helper, value):
        with pytest.raises(NodeExecutionError) as exc_info:
            helper({"prop": value}, "prop")
        assert "property 'prop' must be" in exc_info.value.message


class TestSimulatedIntegrations:
    """Test cases for webhook, HTTP and email nodes."""

    def test_webhook(self):
        output = WebhookExecutor().execute({"url": "/hooks/in", "method": "POST"}, {})
        assert output == {"status": "webhook_executed", "url": "/hooks/in", "method": "POST"}

    def test_webhook_defaults(self):
        assert WebhookExecutor().execute({}, {}) == {"status": "webhook_executed", "url": "", "method": ""}

    def test_http_defaults_to_get(self):
        output = HTTPExecutor().execute({"url": "https://api.example.com"}, {})
        assert output == {"status": "http_request_sent", "url": "https://api.example.com", "method": "GET"}

    def test_http_method_normalized_and_headers_echoed(self):
        output = HTTPExecutor().execute({"url": "u", "method": "post", "headers": {"Accept": "json"}}, {})
        assert output["method"] == "POST"
        assert output["headers"] == {"Accept": "json"}

    def test_http_rejects_unknown_method(self):
        with pytest.raises(NodeExecutionError) as exc_info:
            HTTPExecutor().execute({"method": "BREW"}, {})
        assert exc_info.value.message == "unsupported HTTP method: BREW"

    def test_email(self):
        output = EmailExecutor().execute({"to": "ops@example.com", "subject": "Hi", "cc": ["a@example.com"]}, {})
        assert output == {
            "status": "email_sent",
            "to": "ops@example.com",
            "subject": "Hi",
            "cc": ["a@example.com"],
        }

    def test_email_requires_recipient(self):
        with pytest.raises(NodeExecutionError) as exc_info:
            EmailExecutor().execute({"to": "  "}, {})
        assert exc_info.value.message == "email recipient 'to' is required"


class TestTimer:
    """Test cases for the timer node."""

    def test_zero_interval_returns_immediately(self):
        assert TimerExecutor().execute({}, {}) == {"status": "timer_completed", "waited": 0}

    def test_waits_for_interval(self):
        start = time.monotonic()
        output = TimerExecutor().execute({"interval": 0.05}, {})
        assert time.monotonic() - start >= 0.05
        assert output["waited"] == 0.05

    def test_interval_capped(self):
        output = TimerExecutor(max_interval=0.01).execute({"interval": 3600}, {})
        assert output["waited"] == 0.01

    def test_negative_interval_rejected(self):
        with pytest.raises(NodeExecutionError):
            TimerExecutor().execute({"interval": -1}, {})


class TestExpressions:
    """Test cases for condition and transform nodes."""

    def test_condition_over_inputs(self):
        inputs = {"fetch": {"count": 7}}
        output = ConditionExecutor().execute({"condition": "inputs['fetch']['count'] > 5"}, inputs)
        assert output == {
            "status": "condition_evaluated",
            "condition": "inputs['fetch']['count'] > 5",
            "result": True,
        }

    def test_condition_result_is_boolean(self):
        output = ConditionExecutor().execute({"condition": "len(inputs)"}, {})
        assert output["result"] is False

    def test_empty_condition_is_true(self):
        assert ConditionExecutor().execute({}, {})["result"] is True

    def test_condition_error_is_executor_failure(self):
        with pytest.raises(NodeExecutionError) as exc_info:
            ConditionExecutor().execute({"condition": "inputs['missing']"}, {})
        assert exc_info.value.message.startswith("failed to evaluate 'inputs['missing']'")

    def test_transform_script(self):
        output = TransformExecutor().execute(
            {"script": "{'total': sum(inputs['a']['values']), 'label': properties['label']}", "label": "sum"},
            {"a": {"values": [1, 2, 3]}}
        )
        assert output == {
            "status": "data_transformed",
            "script": "{'total': sum(inputs['a']['values']), 'label': properties['label']}",
            "result": {"total": 6, "label": "sum"},
        }

    def test_empty_script_passes_inputs_through(self):
        output = TransformExecutor().execute({}, {"a": 1})
        assert output["result"] == {"a": 1}

    def test_interpreter_builtins_not_reachable(self):
        with pytest.raises(NodeExecutionError):
            evaluate_expression("__import__('os').getcwd()", {}, {})
        with pytest.raises(NodeExecutionError):
            evaluate_expression("open('/etc/hostname').read()", {}, {})
        with pytest.raises(NodeExecutionError):
            TransformExecutor().execute({"script": "().__class__.__base__.__subclasses__()"}, {})

    @pytest.mark.parametrize("expression", [
        "[c for c in ().__class__.__base__.__subclasses__() if c.__name__ == 'catch_warnings'][0]()"
        "._module.__builtins__['__import__']('os').getpid()",
        "inputs.__class__",
        "(lambda: 0).__globals__",
        "_private",
    ])
    def test_underscore_access_rejected_before_evaluation(self, expression):
        with pytest.raises(NodeExecutionError) as exc_info:
            evaluate_expression(expression, {}, {"a": 1})
        assert "is not allowed" in exc_info.value.message

    def test_public_methods_still_available(self):
        output = TransformExecutor().execute(
            {"script": "inputs['a'].get('name', '').upper()"},
            {"a": {"name": "nodeflow"}}
        )
        assert output["result"] == "NODEFLOW"

    def test_syntax_error_is_executor_failure(self):
        with pytest.raises(NodeExecutionError) as exc_info:
            evaluate_expression("inputs[", {}, {})
        assert exc_info.value.message.startswith("invalid expression")
