"""Tests for ReadinessEvaluator ready/blocked computation."""

from echoflow.workflow.readiness import ReadinessEvaluator
from echoflow.workflow.registry import TaskRegistry
from echoflow.workflow.tasks import Task, TaskResult, TaskStatus


def _task(id, deps=None):
    return Task(id=id, description=f"Task {id}", dependencies=deps or [])


def _settle(reg, task_id, ok=True):
    reg.mark_in_progress(task_id)
    reg.settle(TaskResult(
        task_id=task_id, worker="w",
        status=TaskStatus.COMPLETED if ok else TaskStatus.FAILED,
        output="ok" if ok else "", started_at=0.0, finished_at=0.0,
        error=None if ok else "boom",
    ))


def _ids(tasks):
    return [t.id for t in tasks]


class TestReady:

    def test_roots_are_ready(self):
        reg = TaskRegistry([_task("a"), _task("b"), _task("c", ["a"])])
        assert _ids(ReadinessEvaluator().ready(reg)) == ["a", "b"]

    def test_ready_after_all_deps_complete(self):
        reg = TaskRegistry([_task("a"), _task("b"), _task("c", ["a", "b"])])
        ev = ReadinessEvaluator()
        _settle(reg, "a")
        assert _ids(ev.ready(reg)) == ["b"]
        _settle(reg, "b")
        assert _ids(ev.ready(reg)) == ["c"]

    def test_in_progress_is_not_ready(self):
        reg = TaskRegistry([_task("a")])
        reg.mark_in_progress("a")
        assert ReadinessEvaluator().ready(reg) == []

    def test_failed_dep_never_ready(self):
        reg = TaskRegistry([_task("a"), _task("b", ["a"])])
        _settle(reg, "a", ok=False)
        assert ReadinessEvaluator().ready(reg) == []

    def test_pure(self):
        reg = TaskRegistry([_task("a"), _task("b"), _task("c", ["b"])])
        ev = ReadinessEvaluator()
        first = _ids(ev.ready(reg))
        second = _ids(ev.ready(reg))
        assert first == second == ["a", "b"]
        assert reg.get_status("a") == TaskStatus.PENDING

    def test_insertion_order_kept(self):
        reg = TaskRegistry([_task("z"), _task("m"), _task("a")])
        assert _ids(ReadinessEvaluator().ready(reg)) == ["z", "m", "a"]


class TestBlocked:

    def test_transitive_block(self):
        reg = TaskRegistry([
            _task("a"), _task("b", ["a"]), _task("c", ["b"]), _task("d"),
        ])
        _settle(reg, "a", ok=False)
        ev = ReadinessEvaluator()
        assert ev.blocked(reg) == {"b", "c"}
        assert _ids(ev.ready(reg)) == ["d"]

    def test_nothing_blocked_without_failures(self):
        reg = TaskRegistry([_task("a"), _task("b", ["a"])])
        assert ReadinessEvaluator().blocked(reg) == set()

    def test_failed_roots(self):
        reg = TaskRegistry([
            _task("a"), _task("b"), _task("c", ["a"]), _task("d", ["c", "b"]),
        ])
        _settle(reg, "a", ok=False)
        _settle(reg, "b")
        ev = ReadinessEvaluator()
        assert ev.failed_roots(reg, {"c", "d"}) == ["a"]
