"""Tests for the click command-line interface."""

import pytest
import yaml
from click.testing import CliRunner

import echoflow.main as main_module
from echoflow.main import cli
from echoflow.workflow.invokers import TaskInvoker


@pytest.fixture
def runner():
    return CliRunner()


class FailingInvoker(TaskInvoker):
    def invoke(self, task, context):
        raise RuntimeError("model unavailable")


class TestRunCommand:

    def test_dry_run_succeeds(self, runner, tmp_dir):
        result = runner.invoke(cli, ["run", "--dry-run", "-d", str(tmp_dir), "fix", "the", "login", "bug"])
        assert result.exit_code == 0, result.output
        assert "Workflow Plan" in result.output
        assert "Workflow Summary" in result.output
        assert "[dry-run] specialist-code would debug: fix the login bug" in result.output

    def test_dry_run_multi_stage(self, runner, tmp_dir):
        result = runner.invoke(cli, [
            "run", "--dry-run", "--mode", "sequential", "-d", str(tmp_dir),
            "analyze the api, refactor it and document it",
        ])
        assert result.exit_code == 0, result.output
        assert "round 4" in result.output
        assert "round 5" not in result.output

    def test_failure_exit_code(self, runner, tmp_dir, monkeypatch):
        monkeypatch.setattr(main_module, "EchoInvoker", FailingInvoker)
        result = runner.invoke(cli, ["run", "--dry-run", "-d", str(tmp_dir), "build a thing"])
        assert result.exit_code == 1
        assert "failed" in result.output

    def test_empty_request(self, runner, tmp_dir):
        result = runner.invoke(cli, ["run", "--dry-run", "-d", str(tmp_dir), "   "])
        assert result.exit_code == 1
        assert "empty request" in result.output

    def test_invalid_mode_rejected(self, runner, tmp_dir):
        result = runner.invoke(cli, ["run", "--mode", "turbo", "x"])
        assert result.exit_code == 2

    def test_plan_file(self, runner, tmp_dir):
        plan = tmp_dir / "plan.json"
        plan.write_text(
            '[{"id": "a", "kind": "analyze", "description": "inspect the schema"},'
            ' {"id": "b", "kind": "generate", "description": "write the migration",'
            ' "depends_on": ["a"]}]'
        )
        result = runner.invoke(cli, ["run", "--dry-run", "--plan-file", str(plan), "-d", str(tmp_dir)])
        assert result.exit_code == 0, result.output
        assert "round 2" in result.output
        assert "write the migration" in result.output

    def test_plan_file_without_tasks(self, runner, tmp_dir):
        plan = tmp_dir / "plan.json"
        plan.write_text("no tasks here")
        result = runner.invoke(cli, ["run", "--dry-run", "--plan-file", str(plan), "-d", str(tmp_dir)])
        assert result.exit_code == 1
        assert "no tasks found" in result.output


class TestPlanCommand:

    def test_plan_does_not_execute(self, runner, tmp_dir):
        result = runner.invoke(cli, ["plan", "-d", str(tmp_dir), "review the code and build a cache"])
        assert result.exit_code == 0, result.output
        assert "Workflow Plan" in result.output
        assert "round" not in result.output
        assert "width 3" in result.output

    def test_plan_sequential_width(self, runner, tmp_dir):
        result = runner.invoke(cli, ["plan", "--mode", "sequential", "-d", str(tmp_dir), "build x"])
        assert result.exit_code == 0, result.output
        assert "mode sequential" in result.output
        assert "width 1" in result.output


class TestInfoCommands:

    def test_config(self, runner, tmp_dir):
        result = runner.invoke(cli, ["config", "-d", str(tmp_dir)])
        assert result.exit_code == 0, result.output
        assert "Execution mode" in result.output
        assert "hybrid" in result.output
        assert "local" in result.output

    def test_agents(self, runner, tmp_dir):
        result = runner.invoke(cli, ["agents", "-d", str(tmp_dir)])
        assert result.exit_code == 0, result.output
        assert "specialist-code" in result.output
        assert "synthesizer-main" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output


class TestConfigCommands:

    def test_set_saves_to_project_file(self, runner, tmp_dir, config_yaml_file):
        result = runner.invoke(cli, ["config", "-d", str(tmp_dir), "set", "max-parallel", "6"])
        assert result.exit_code == 0, result.output
        assert "Set max-parallel" in result.output
        with open(config_yaml_file) as f:
            assert yaml.safe_load(f)["max-parallel"] == 6

    def test_set_invalid_value(self, runner, tmp_dir, config_yaml_file):
        result = runner.invoke(cli, ["config", "-d", str(tmp_dir), "set", "max-parallel", "99"])
        assert result.exit_code == 1
        assert "between" in result.output
        with open(config_yaml_file) as f:
            assert yaml.safe_load(f)["max-parallel"] == 4

    def test_set_unknown_key(self, runner, tmp_dir):
        result = runner.invoke(cli, ["config", "-d", str(tmp_dir), "set", "colour", "blue"])
        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_reset(self, runner, tmp_dir, config_yaml_file):
        result = runner.invoke(cli, ["config", "-d", str(tmp_dir), "reset", "max-parallel"])
        assert result.exit_code == 0, result.output
        with open(config_yaml_file) as f:
            assert yaml.safe_load(f)["max-parallel"] == 3
