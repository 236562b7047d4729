"""Structured error types for workflow orchestration."""

from typing import List, Sequence


class OrchestrationError(Exception):
    """Base error for all orchestration operations."""
    pass


class DuplicateTaskError(OrchestrationError):
    """Raised when two tasks in one run share an id."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Duplicate task id: {task_id}")


class InvalidDependencyError(OrchestrationError):
    """Raised when a task depends on an id that is not part of the run."""

    def __init__(self, task_id: str, dependency_id: str):
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(
            f"Task {task_id!r} depends on unknown task {dependency_id!r}"
        )


class CyclicDependencyError(OrchestrationError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class InvalidTransitionError(OrchestrationError):
    """Raised on a status change the task state machine does not allow."""

    def __init__(self, task_id: str, current: str, target: str):
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(f"Task {task_id!r}: cannot move from {current} to {target}")


class TaskExecutionError(OrchestrationError):
    """An individual task invocation failed. Recorded on the task, never raised to the caller."""

    def __init__(self, task_id: str, message: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id!r} failed: {message}")


class TaskTimeoutError(TaskExecutionError):
    """A task invocation exceeded its timeout."""

    def __init__(self, task_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(task_id, f"timed out after {timeout:g}s")


class StallError(OrchestrationError):
    """The driver cannot make progress: no task is ready but some are not terminal."""

    def __init__(self, stuck_task_ids: Sequence[str], blocked_by: Sequence[str] = ()):
        self.stuck_task_ids: List[str] = list(stuck_task_ids)
        self.blocked_by: List[str] = list(blocked_by)
        detail = f"Workflow stalled with {len(self.stuck_task_ids)} stuck task(s): " \
                 f"{', '.join(self.stuck_task_ids)}"
        if self.blocked_by:
            detail += f" (blocked by failed: {', '.join(self.blocked_by)})"
        super().__init__(detail)


class WorkflowNotFoundError(OrchestrationError):
    """Raised when a workflow id is not known to the engine."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} not found")
