"""Tests for the command line interface."""

import json

import pytest

from nodeflow.startup import create_argument_parser, load_configuration, main


def write_workflow(path, nodes, connections=()):
    path.write_text(json.dumps({
        "id": "cli-wf",
        "name": "CLI",
        "nodes": nodes,
        "connections": list(connections),
    }))
    return str(path)


class TestRunWorkflowFile:
    """Test cases for one-shot execution of a workflow file."""

    def test_successful_run(self, tmp_path, capsys):
        path = write_workflow(
            tmp_path / "ok.json",
            [
                {"id": "hook", "type": "webhook", "properties": {"url": "/in"}},
                {"id": "shape", "type": "transform", "properties": {"script": "inputs['hook']['url']"}},
            ],
            [{"id": "c1", "from_id": "hook", "to_id": "shape"}],
        )

        with pytest.raises(SystemExit) as exc_info:
            main(["--env", "testing", "--run", path])

        assert exc_info.value.code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "completed"
        assert result["results"]["shape"]["result"] == "/in"

    def test_failed_run_exits_non_zero(self, tmp_path, capsys):
        path = write_workflow(tmp_path / "bad.json", [{"id": "x", "type": "sheets"}])

        with pytest.raises(SystemExit) as exc_info:
            main(["--env", "testing", "--run", path])

        assert exc_info.value.code == 1
        assert json.loads(capsys.readouterr().out)["errors"] == ["no executor for node type: sheets (node x)"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--env", "testing", "--run", str(tmp_path / "absent.json")])
        assert exc_info.value.code == 2


class TestArgumentOverrides:
    """Test cases for command line configuration overrides."""

    def test_overrides_applied_and_validated(self):
        args = create_argument_parser().parse_args(
            ["--env", "testing", "--port", "9001", "--store", "database", "--log-level", "ERROR", "--max-parallel-nodes", "3"]
        )
        config = load_configuration(args)

        assert config.port == 9001
        assert config.store_backend.value == "database"
        assert config.log_level.value == "ERROR"
        assert config.max_parallel_nodes == 3
