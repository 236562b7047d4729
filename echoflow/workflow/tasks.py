"""Task definitions for workflow execution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class TaskKind(Enum):
    """Operation category. Descriptive only; scheduling never looks at it."""

    GENERATE = "generate"
    ANALYZE = "analyze"
    REFACTOR = "refactor"
    DEBUG = "debug"
    EXPLAIN = "explain"
    SYNTHESIZE = "synthesize"

    @classmethod
    def parse(cls, value, default: "TaskKind" = None) -> "TaskKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is not None:
                return default
            raise


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value, default: "TaskPriority" = None) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is not None:
                return default
            raise


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.CRITICAL: 3,
}


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


# pending -> in-progress -> {completed, failed}
ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


@dataclass
class Task:
    """A single unit of work in a workflow run."""

    id: str
    kind: TaskKind = TaskKind.GENERATE
    description: str = ""
    dependencies: List[str] = field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    assigned_worker: Optional[str] = None  # agent id, set lazily at dispatch


@dataclass
class TaskSpec:
    """Caller-side description of a task before the engine assigns an id.

    ``ref`` is a local name that other specs use in ``depends_on``.
    """

    ref: str
    kind: TaskKind
    description: str
    depends_on: List[str] = field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_worker: Optional[str] = None


@dataclass
class TaskResult:
    """Result of a single task execution."""

    task_id: str
    worker: str
    status: TaskStatus  # COMPLETED | FAILED
    output: str
    started_at: float
    finished_at: float
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def elapsed_seconds(self) -> float:
        return max(0.0, self.finished_at - self.started_at)

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.COMPLETED
