"""TaskRegistry: authoritative, validated task set for one workflow run."""

import threading
from typing import Dict, Iterable, List, Optional

from ..errors import (
    CyclicDependencyError,
    DuplicateTaskError,
    InvalidDependencyError,
    InvalidTransitionError,
)
from .tasks import ALLOWED_TRANSITIONS, Task, TaskResult, TaskStatus


class TaskRegistry:
    """Thread-safe task store with forward-only status transitions.

    The task set is fixed at construction and validated there: duplicate ids,
    dependencies on unknown ids and dependency cycles are all rejected before
    a run can start.
    """

    def __init__(self, tasks: Iterable[Task]):
        self._tasks: Dict[str, Task] = {}
        self._order: Dict[str, int] = {}   # task_id → insertion index
        self._results: Dict[str, TaskResult] = {}
        self._lock = threading.RLock()

        for task in tasks:
            if task.id in self._tasks:
                raise DuplicateTaskError(task.id)
            self._order[task.id] = len(self._tasks)
            self._tasks[task.id] = task

        self._validate_dependencies()
        cycle = self.find_cycle()
        if cycle:
            raise CyclicDependencyError(cycle)

    # ── Validation ────────────────────────────────────────────

    def _validate_dependencies(self) -> None:
        for task in self._tasks.values():
            for dep in task.dependencies:
                if dep not in self._tasks:
                    raise InvalidDependencyError(task.id, dep)

    def find_cycle(self) -> Optional[List[str]]:
        """Return one dependency cycle as a closed path (``[a, b, a]``), or None.

        Iterative three-colour DFS so deep chains do not hit the recursion limit.
        """
        white, grey, black = 0, 1, 2
        colour = {tid: white for tid in self._tasks}

        for root in self._tasks:
            if colour[root] != white:
                continue
            path: List[str] = [root]
            stack = [iter(self._tasks[root].dependencies)]
            colour[root] = grey
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    colour[path.pop()] = black
                    stack.pop()
                    continue
                if colour[dep] == grey:
                    start = path.index(dep)
                    # path runs dependent → dependency; report in execution order
                    cycle = path[start:] + [dep]
                    cycle.reverse()
                    return cycle
                if colour[dep] == white:
                    colour[dep] = grey
                    path.append(dep)
                    stack.append(iter(self._tasks[dep].dependencies))
        return None

    # ── Queries ───────────────────────────────────────────────

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def get_all_tasks(self) -> List[Task]:
        """All tasks in insertion order."""
        with self._lock:
            return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def insertion_index(self, task_id: str) -> int:
        return self._order[task_id]

    def get_status(self, task_id: str) -> Optional[TaskStatus]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.status if task else None

    def snapshot(self) -> Dict[str, TaskStatus]:
        """Consistent view of every task's status."""
        with self._lock:
            return {tid: t.status for tid, t in self._tasks.items()}

    def dependents_of(self, task_id: str) -> List[str]:
        """Ids of tasks that list ``task_id`` as a direct dependency."""
        with self._lock:
            return [t.id for t in self._tasks.values() if task_id in t.dependencies]

    def with_status(self, *statuses: TaskStatus) -> List[Task]:
        with self._lock:
            return [t for t in self._tasks.values() if t.status in statuses]

    def all_terminal(self) -> bool:
        """True when every task is completed or failed."""
        with self._lock:
            return all(t.status.is_terminal for t in self._tasks.values())

    def all_completed(self) -> bool:
        with self._lock:
            return all(t.status == TaskStatus.COMPLETED for t in self._tasks.values())

    def get_result(self, task_id: str) -> Optional[TaskResult]:
        with self._lock:
            return self._results.get(task_id)

    def get_results(self) -> List[TaskResult]:
        """Recorded results in task insertion order."""
        with self._lock:
            return [self._results[tid] for tid in self._tasks if tid in self._results]

    def get_context_for_task(self, task: Task) -> Dict[str, str]:
        """Outputs of the task's completed dependencies, keyed by dependency id."""
        with self._lock:
            context = {}
            for dep in task.dependencies:
                result = self._results.get(dep)
                if result and result.ok:
                    context[dep] = result.output
            return context

    # ── State transitions ─────────────────────────────────────

    def _transition(self, task_id: str, target: TaskStatus) -> Task:
        """Move a task to ``target`` (caller must hold _lock)."""
        task = self._tasks[task_id]
        if target not in ALLOWED_TRANSITIONS[task.status]:
            raise InvalidTransitionError(task_id, task.status.value, target.value)
        task.status = target
        return task

    def mark_in_progress(self, task_id: str, worker: Optional[str] = None) -> Task:
        with self._lock:
            task = self._transition(task_id, TaskStatus.IN_PROGRESS)
            if worker and not task.assigned_worker:
                task.assigned_worker = worker
            return task

    def mark_completed(self, task_id: str, result: TaskResult) -> None:
        with self._lock:
            self._transition(task_id, TaskStatus.COMPLETED)
            self._results[task_id] = result

    def mark_failed(self, task_id: str, result: TaskResult) -> None:
        with self._lock:
            self._transition(task_id, TaskStatus.FAILED)
            self._results[task_id] = result

    def settle(self, result: TaskResult) -> None:
        """Record a finished invocation with the matching terminal status."""
        if result.ok:
            self.mark_completed(result.task_id, result)
        else:
            self.mark_failed(result.task_id, result)
