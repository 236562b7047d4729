"""BatchExecutor: runs one bounded batch of ready tasks concurrently."""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import TaskExecutionError, TaskTimeoutError
from ..logger import get_logger
from .agents import AgentRegistry
from .invokers import TaskInvoker
from .registry import TaskRegistry
from .tasks import Task, TaskResult, TaskStatus

_log = get_logger(__name__)

DEFAULT_WORKER = "default"


class ExecutionListener:
    """Hooks called from the coordinating thread. Override what you need."""

    def on_round_start(self, round_no: int, batch: Sequence[Task]) -> None:
        pass

    def on_task_start(self, task: Task) -> None:
        pass

    def on_task_settled(self, task: Task, result: TaskResult) -> None:
        pass


class BatchExecutor:
    """Selects and executes one batch per call.

    All tasks of a batch start together and the call returns only after every
    one of them has settled; a finished slot is never refilled mid-batch. A
    failing task does not cancel its siblings.
    """

    def __init__(
        self,
        invoker: TaskInvoker,
        agents: Optional[AgentRegistry] = None,
        task_timeout: float = 0.0,
        listener: Optional[ExecutionListener] = None,
    ):
        self.invoker = invoker
        self.agents = agents
        self.task_timeout = task_timeout  # seconds; 0 = wait forever
        self.listener = listener or ExecutionListener()

    # ── Selection ─────────────────────────────────────────────

    @staticmethod
    def select(ready: Sequence[Task], width: int, registry: TaskRegistry) -> List[Task]:
        """Up to ``width`` tasks: highest priority first, then insertion order."""
        if width < 1:
            raise ValueError("max parallel width must be at least 1")
        ordered = sorted(
            ready,
            key=lambda t: (-t.priority.rank, registry.insertion_index(t.id)),
        )
        return ordered[:width]

    # ── Execution ─────────────────────────────────────────────

    def _worker_for(self, task: Task) -> str:
        if self.agents is not None:
            return self.agents.resolve(task)
        return task.assigned_worker or DEFAULT_WORKER

    def _run_one(self, task: Task, context: Mapping[str, str]) -> Tuple[str, float, float]:
        started = time.monotonic()
        output = self.invoker.invoke(task, context)
        return output, started, time.monotonic()

    def execute(self, batch: Sequence[Task], registry: TaskRegistry) -> List[TaskResult]:
        """Run ``batch`` concurrently and record every outcome on ``registry``.

        Returns the results in batch order.
        """
        if not batch:
            return []

        contexts: Dict[str, Mapping[str, str]] = {}
        for task in batch:
            registry.mark_in_progress(task.id, self._worker_for(task))
            contexts[task.id] = registry.get_context_for_task(task)
            self.listener.on_task_start(task)

        batch_start = time.monotonic()
        pool = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="task")
        timed_out = False
        try:
            futures: List[Tuple[Task, Future]] = [
                (task, pool.submit(self._run_one, task, contexts[task.id]))
                for task in batch
            ]
            results = []
            for task, future in futures:
                result = self._collect(task, future, batch_start)
                if isinstance(result.exception, TaskTimeoutError):
                    timed_out = True
                results.append(result)
        finally:
            # Timed-out invocations cannot be killed; leave their threads behind.
            pool.shutdown(wait=not timed_out, cancel_futures=True)

        for task, result in zip(batch, results):
            registry.settle(result)
            if self.agents is not None:
                self.agents.record(result)
            if not result.ok:
                _log.warning("Task %s failed: %s", task.id, result.error)
        # Listeners run only once the whole batch is recorded.
        for task, result in zip(batch, results):
            self.listener.on_task_settled(task, result)
        return results

    def run_detached(self, task: Task, context: Mapping[str, str]) -> TaskResult:
        """Invoke a task that lives outside any registry, with an explicit context.

        Used for the post-run synthesis step. The task's own status fields are
        updated directly.
        """
        if not task.assigned_worker:
            task.assigned_worker = self._worker_for(task)
        task.status = TaskStatus.IN_PROGRESS
        self.listener.on_task_start(task)

        start = time.monotonic()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="task")
        result = None
        try:
            result = self._collect(task, pool.submit(self._run_one, task, context), start)
        finally:
            timed_out = result is not None and isinstance(result.exception, TaskTimeoutError)
            pool.shutdown(wait=not timed_out, cancel_futures=True)

        task.status = result.status
        if self.agents is not None:
            self.agents.record(result)
        self.listener.on_task_settled(task, result)
        return result

    def _collect(self, task: Task, future: Future, batch_start: float) -> TaskResult:
        worker = task.assigned_worker or DEFAULT_WORKER
        timeout = None
        if self.task_timeout > 0:
            timeout = max(0.0, batch_start + self.task_timeout - time.monotonic())
        try:
            output, started, finished = future.result(timeout=timeout)
        except FutureTimeout:
            error = TaskTimeoutError(task.id, self.task_timeout)
            return TaskResult(
                task_id=task.id, worker=worker, status=TaskStatus.FAILED, output="",
                started_at=batch_start, finished_at=time.monotonic(),
                error=str(error), exception=error,
            )
        except Exception as e:
            error = TaskExecutionError(task.id, f"{type(e).__name__}: {e}")
            error.__cause__ = e
            return TaskResult(
                task_id=task.id, worker=worker, status=TaskStatus.FAILED, output="",
                started_at=batch_start, finished_at=time.monotonic(),
                error=str(error), exception=error,
            )
        return TaskResult(
            task_id=task.id, worker=worker, status=TaskStatus.COMPLETED,
            output=output if output is not None else "",
            started_at=started, finished_at=finished,
        )
