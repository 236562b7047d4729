"""WorkflowRun state and the round-based WorkflowDriver."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from ..errors import OrchestrationError, StallError
from ..logger import get_logger
from .executor import BatchExecutor
from .readiness import ReadinessEvaluator
from .registry import TaskRegistry
from .tasks import Task, TaskStatus

_log = get_logger(__name__)

DEFAULT_HYBRID_WIDTH = 3


class WorkflowStatus(Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionMode(Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    HYBRID = "hybrid"


def width_for_mode(mode: ExecutionMode, task_count: int,
                   hybrid_width: int = DEFAULT_HYBRID_WIDTH) -> int:
    """Batch width implied by an execution mode. Dependencies are honoured in every mode."""
    if mode == ExecutionMode.SEQUENTIAL:
        return 1
    if mode == ExecutionMode.PARALLEL:
        return max(1, task_count)
    return max(1, hybrid_width)


def new_workflow_id() -> str:
    return f"workflow-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class WorkflowRun:
    """One execution of a task set, from initialization to completion or failure."""

    registry: TaskRegistry
    max_parallel_width: int
    id: str = field(default_factory=new_workflow_id)
    name: str = ""
    description: str = ""
    execution_mode: ExecutionMode = ExecutionMode.HYBRID
    synthesis_required: bool = False
    status: WorkflowStatus = WorkflowStatus.INITIALIZED
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    rounds: List[List[str]] = field(default_factory=list)  # task ids dispatched per round
    stuck_task_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_parallel_width < 1:
            raise ValueError("max_parallel_width must be at least 1")

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task], max_parallel_width: int, **kwargs) -> "WorkflowRun":
        """Validate ``tasks`` into a registry and wrap it in a new run."""
        return cls(registry=TaskRegistry(tasks), max_parallel_width=max_parallel_width, **kwargs)

    @property
    def tasks(self) -> List[Task]:
        return self.registry.get_all_tasks()

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.monotonic()
        return end - self.start_time

    def count(self, status: TaskStatus) -> int:
        return len(self.registry.with_status(status))


class WorkflowDriver:
    """Loops readiness evaluation and batch execution until the run settles.

    Ends ``completed`` when every task completed, ``failed`` when all tasks are
    terminal but some failed. When nothing is ready yet some tasks are still
    pending, the run is stalled: it is marked ``failed`` and ``StallError`` is
    raised with the stuck task ids.
    """

    def __init__(self, executor: BatchExecutor, evaluator: Optional[ReadinessEvaluator] = None):
        self.executor = executor
        self.evaluator = evaluator or ReadinessEvaluator()

    def run(self, run: WorkflowRun) -> WorkflowRun:
        if run.status != WorkflowStatus.INITIALIZED:
            raise OrchestrationError(
                f"Workflow {run.id} already executed (status: {run.status.value})"
            )

        registry = run.registry
        run.status = WorkflowStatus.RUNNING
        run.start_time = time.monotonic()
        _log.info("Workflow %s: %d task(s), width %d",
                  run.id, len(registry), run.max_parallel_width)

        try:
            self._loop(run)
        except Exception:
            if run.status == WorkflowStatus.RUNNING:
                run.status = WorkflowStatus.FAILED
                run.end_time = time.monotonic()
            raise

        run.status = (WorkflowStatus.COMPLETED if registry.all_completed()
                      else WorkflowStatus.FAILED)
        run.end_time = time.monotonic()
        _log.info("Workflow %s %s after %d round(s)", run.id, run.status.value, len(run.rounds))
        return run

    def _loop(self, run: WorkflowRun) -> None:
        registry = run.registry
        while True:
            ready = self.evaluator.ready(registry)
            if not ready:
                if registry.all_terminal():
                    return
                self._stall(run)

            batch = self.executor.select(ready, run.max_parallel_width, registry)
            round_no = len(run.rounds) + 1
            run.rounds.append([t.id for t in batch])
            _log.info("Workflow %s round %d: %s",
                      run.id, round_no, ", ".join(t.id for t in batch))
            self.executor.listener.on_round_start(round_no, batch)
            self.executor.execute(batch, registry)

    def _stall(self, run: WorkflowRun) -> None:
        registry = run.registry
        stuck = [t.id for t in registry.get_all_tasks() if not t.status.is_terminal]
        blocked_by = self.evaluator.failed_roots(registry, set(stuck))
        run.stuck_task_ids = stuck
        run.status = WorkflowStatus.FAILED
        run.end_time = time.monotonic()
        _log.error("Workflow %s stalled; stuck: %s", run.id, ", ".join(stuck))
        raise StallError(stuck, blocked_by)
