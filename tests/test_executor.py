"""Tests for BatchExecutor selection, concurrency, isolation and timeouts."""

import threading
import time

import pytest

from echoflow.errors import TaskExecutionError, TaskTimeoutError
from echoflow.workflow.agents import AgentRegistry
from echoflow.workflow.executor import BatchExecutor, ExecutionListener
from echoflow.workflow.invokers import FunctionInvoker
from echoflow.workflow.registry import TaskRegistry
from echoflow.workflow.tasks import Task, TaskKind, TaskPriority, TaskStatus


def _task(id, deps=None, priority=TaskPriority.MEDIUM, kind=TaskKind.GENERATE):
    return Task(id=id, kind=kind, description=f"Task {id}",
                dependencies=deps or [], priority=priority)


def _echo(task, context):
    return f"out-{task.id}"


class RecordingListener(ExecutionListener):
    def __init__(self):
        self.events = []

    def on_round_start(self, round_no, batch):
        self.events.append(("round", round_no, [t.id for t in batch]))

    def on_task_start(self, task):
        self.events.append(("start", task.id))

    def on_task_settled(self, task, result):
        self.events.append(("settled", task.id, result.status))


class TestSelect:

    def test_priority_then_insertion(self):
        tasks = [
            _task("a", priority=TaskPriority.LOW),
            _task("b", priority=TaskPriority.HIGH),
            _task("c", priority=TaskPriority.MEDIUM),
            _task("d", priority=TaskPriority.HIGH),
            _task("e", priority=TaskPriority.CRITICAL),
        ]
        reg = TaskRegistry(tasks)
        picked = BatchExecutor.select(tasks, 3, reg)
        assert [t.id for t in picked] == ["e", "b", "d"]

    def test_width_larger_than_ready(self):
        tasks = [_task("a"), _task("b")]
        reg = TaskRegistry(tasks)
        assert [t.id for t in BatchExecutor.select(tasks, 10, reg)] == ["a", "b"]

    def test_width_below_one_rejected(self):
        tasks = [_task("a")]
        with pytest.raises(ValueError):
            BatchExecutor.select(tasks, 0, TaskRegistry(tasks))


class TestExecute:

    def test_batch_runs_concurrently(self):
        barrier = threading.Barrier(3, timeout=5)

        def meet(task, context):
            barrier.wait()
            return task.id

        tasks = [_task("a"), _task("b"), _task("c")]
        reg = TaskRegistry(tasks)
        results = BatchExecutor(FunctionInvoker(meet)).execute(tasks, reg)
        assert [r.status for r in results] == [TaskStatus.COMPLETED] * 3
        assert reg.all_completed()

    def test_returns_only_after_whole_batch_settles(self):
        def slow_or_fast(task, context):
            if task.id == "slow":
                time.sleep(0.2)
            return task.id

        tasks = [_task("fast"), _task("slow")]
        reg = TaskRegistry(tasks)
        BatchExecutor(FunctionInvoker(slow_or_fast)).execute(tasks, reg)
        assert reg.snapshot() == {"fast": TaskStatus.COMPLETED, "slow": TaskStatus.COMPLETED}

    def test_failure_is_isolated(self):
        def flaky(task, context):
            if task.id == "bad":
                raise RuntimeError("boom")
            return task.id

        tasks = [_task("good1"), _task("bad"), _task("good2")]
        reg = TaskRegistry(tasks)
        results = BatchExecutor(FunctionInvoker(flaky)).execute(tasks, reg)

        assert [r.task_id for r in results] == ["good1", "bad", "good2"]
        assert reg.get_status("good1") == TaskStatus.COMPLETED
        assert reg.get_status("good2") == TaskStatus.COMPLETED
        assert reg.get_status("bad") == TaskStatus.FAILED

        bad = results[1]
        assert "RuntimeError: boom" in bad.error
        assert isinstance(bad.exception, TaskExecutionError)
        assert isinstance(bad.exception.__cause__, RuntimeError)

    def test_timeout_marks_task_failed(self):
        release = threading.Event()

        def hang(task, context):
            if task.id == "stuck":
                release.wait(5)
            return task.id

        tasks = [_task("quick"), _task("stuck")]
        reg = TaskRegistry(tasks)
        try:
            results = BatchExecutor(FunctionInvoker(hang), task_timeout=0.2).execute(tasks, reg)
        finally:
            release.set()

        assert results[0].ok
        assert not results[1].ok
        assert isinstance(results[1].exception, TaskTimeoutError)
        assert "timed out" in results[1].error
        assert reg.get_status("stuck") == TaskStatus.FAILED

    def test_context_passed_from_completed_deps(self):
        seen = {}

        def capture(task, context):
            seen[task.id] = dict(context)
            return f"out-{task.id}"

        a, b = _task("a"), _task("b", ["a"])
        reg = TaskRegistry([a, b])
        ex = BatchExecutor(FunctionInvoker(capture))
        ex.execute([a], reg)
        ex.execute([b], reg)
        assert seen == {"a": {}, "b": {"a": "out-a"}}

    def test_none_output_becomes_empty_string(self):
        tasks = [_task("a")]
        reg = TaskRegistry(tasks)
        results = BatchExecutor(FunctionInvoker(lambda t, c: None)).execute(tasks, reg)
        assert results[0].ok
        assert results[0].output == ""

    def test_empty_batch(self):
        reg = TaskRegistry([])
        assert BatchExecutor(FunctionInvoker(_echo)).execute([], reg) == []

    def test_listener_sees_start_before_settle(self):
        listener = RecordingListener()
        tasks = [_task("a"), _task("b")]
        reg = TaskRegistry(tasks)
        BatchExecutor(FunctionInvoker(_echo), listener=listener).execute(tasks, reg)
        assert listener.events == [
            ("start", "a"),
            ("start", "b"),
            ("settled", "a", TaskStatus.COMPLETED),
            ("settled", "b", TaskStatus.COMPLETED),
        ]

    def test_listener_error_after_batch_recorded(self):
        class ExplodingListener(ExecutionListener):
            def on_task_settled(self, task, result):
                raise RuntimeError("render failed")

        tasks = [_task("a"), _task("b"), _task("c")]
        reg = TaskRegistry(tasks)
        executor = BatchExecutor(FunctionInvoker(_echo), listener=ExplodingListener())
        with pytest.raises(RuntimeError, match="render failed"):
            executor.execute(tasks, reg)
        assert [reg.get_status(t) for t in ("a", "b", "c")] == [TaskStatus.COMPLETED] * 3


class TestWorkerAssignment:

    def test_default_worker_without_agents(self):
        tasks = [_task("a")]
        reg = TaskRegistry(tasks)
        results = BatchExecutor(FunctionInvoker(_echo)).execute(tasks, reg)
        assert results[0].worker == "default"
        assert reg.get_task("a").assigned_worker == "default"

    def test_agents_resolve_by_kind_and_record_metrics(self):
        agents = AgentRegistry()
        tasks = [
            _task("gen", kind=TaskKind.GENERATE),
            _task("ana", kind=TaskKind.ANALYZE),
        ]
        reg = TaskRegistry(tasks)
        BatchExecutor(FunctionInvoker(_echo), agents=agents).execute(tasks, reg)

        assert reg.get_task("gen").assigned_worker == "specialist-code"
        assert reg.get_task("ana").assigned_worker == "specialist-architecture"
        assert agents.get("specialist-code").metrics.tasks_completed == 1
        assert agents.get("specialist-architecture").metrics.tasks_completed == 1

    def test_run_detached(self):
        ex = BatchExecutor(FunctionInvoker(lambda t, c: ",".join(sorted(c))), agents=AgentRegistry())
        task = _task("syn", kind=TaskKind.SYNTHESIZE)
        result = ex.run_detached(task, {"x": "1", "y": "2"})
        assert result.ok
        assert result.output == "x,y"
        assert task.status == TaskStatus.COMPLETED
        assert task.assigned_worker == "synthesizer-main"
