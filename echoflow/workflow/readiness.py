"""Readiness evaluation: which pending tasks may start this round."""

from typing import List, Set

from .registry import TaskRegistry
from .tasks import Task, TaskStatus


class ReadinessEvaluator:
    """Computes the ready and blocked sets from a registry snapshot.

    A task is ready when it is pending and every dependency is completed.
    A task with a failed dependency, directly or through a chain of pending
    tasks, is blocked for good: it never becomes ready.
    """

    def ready(self, registry: TaskRegistry) -> List[Task]:
        """Ready tasks in insertion order. Pure: same registry state, same result."""
        states = registry.snapshot()
        ready = []
        for task in registry.get_all_tasks():
            if states[task.id] != TaskStatus.PENDING:
                continue
            if all(states[dep] == TaskStatus.COMPLETED for dep in task.dependencies):
                ready.append(task)
        return ready

    def blocked(self, registry: TaskRegistry) -> Set[str]:
        """Pending task ids that can never run because an upstream task failed."""
        states = registry.snapshot()
        blocked: Set[str] = set()
        frontier = [tid for tid, s in states.items() if s == TaskStatus.FAILED]
        while frontier:
            current = frontier.pop()
            for tid in registry.dependents_of(current):
                if tid in blocked or states[tid] != TaskStatus.PENDING:
                    continue
                blocked.add(tid)
                frontier.append(tid)
        return blocked

    def failed_roots(self, registry: TaskRegistry, task_ids: Set[str]) -> List[str]:
        """Failed tasks that are upstream of any of ``task_ids``."""
        roots: Set[str] = set()
        seen: Set[str] = set()
        stack = list(task_ids)
        while stack:
            tid = stack.pop()
            if tid in seen:
                continue
            seen.add(tid)
            task = registry.get_task(tid)
            for dep in task.dependencies:
                if registry.get_status(dep) == TaskStatus.FAILED:
                    roots.add(dep)
                else:
                    stack.append(dep)
        return sorted(roots, key=registry.insertion_index)
