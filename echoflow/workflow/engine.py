"""OrchestrationEngine: builds workflows from task specs, runs them, reports."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..config import Config
from ..errors import DuplicateTaskError, StallError, WorkflowNotFoundError
from ..logger import get_logger
from .agents import AgentRegistry, AgentSpec, load_agents_from_config
from .decompose import decompose_request
from .driver import (
    ExecutionMode,
    WorkflowDriver,
    WorkflowRun,
    WorkflowStatus,
    new_workflow_id,
    width_for_mode,
)
from .executor import BatchExecutor, ExecutionListener
from .invokers import LLMInvoker, TaskInvoker
from .tasks import Task, TaskKind, TaskPriority, TaskResult, TaskSpec, TaskStatus

_log = get_logger(__name__)


@dataclass
class WorkflowMetrics:
    total_time: float
    tasks_completed: int
    tasks_failed: int
    tasks_pending: int
    rounds: int


@dataclass
class WorkflowReport:
    """Outcome of one ``execute_workflow`` call."""

    workflow_id: str
    status: WorkflowStatus
    results: List[TaskResult]
    metrics: WorkflowMetrics
    synthesis: Optional[TaskResult] = None
    stuck_task_ids: List[str] = field(default_factory=list)
    error: Optional[StallError] = None

    @property
    def success(self) -> bool:
        if self.status != WorkflowStatus.COMPLETED:
            return False
        return self.synthesis is None or self.synthesis.ok

    @property
    def final_output(self) -> str:
        """Synthesis output when there is one, else the completed outputs in order."""
        if self.synthesis is not None and self.synthesis.ok:
            return self.synthesis.output
        return "\n\n".join(r.output for r in self.results if r.ok)


class OrchestrationEngine:
    """Owns the agent roster, the invoker and every workflow it created.

    Construct one per request or per test; nothing here is process-global.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        invoker: Optional[TaskInvoker] = None,
        agents: Optional[AgentRegistry] = None,
        listener: Optional[ExecutionListener] = None,
    ):
        self.config = config or Config()
        self.agents = agents or AgentRegistry(load_agents_from_config(self.config.agents_config))
        self.invoker = invoker or LLMInvoker(self.config, self.agents)
        self.listener = listener or ExecutionListener()
        self._workflows: Dict[str, WorkflowRun] = {}

    # ── Workflows ─────────────────────────────────────────────

    def create_workflow(
        self,
        name: str,
        description: str,
        specs: Sequence[TaskSpec],
        mode: Optional[ExecutionMode] = None,
        max_parallel: Optional[int] = None,
        synthesis_required: Optional[bool] = None,
    ) -> WorkflowRun:
        """Assign ids to ``specs`` and build a validated run.

        Dependencies refer to spec refs and are rewritten to the generated
        task ids. Raises the registry's construction errors for bad graphs.
        """
        seen = set()
        for spec in specs:
            if spec.ref in seen:
                raise DuplicateTaskError(spec.ref)
            seen.add(spec.ref)

        if mode is None:
            mode = ExecutionMode(self.config.execution_mode)
        if synthesis_required is None:
            synthesis_required = self.config.synthesis_required

        workflow_id = new_workflow_id()
        ids = {spec.ref: f"{workflow_id}-task-{i}" for i, spec in enumerate(specs)}
        tasks = [
            Task(
                id=ids[spec.ref],
                kind=spec.kind,
                description=spec.description,
                dependencies=[ids.get(dep, dep) for dep in spec.depends_on],
                priority=spec.priority,
                assigned_worker=spec.assigned_worker,
            )
            for spec in specs
        ]
        width = width_for_mode(mode, len(tasks), max_parallel or self.config.max_parallel)
        run = WorkflowRun.from_tasks(
            tasks,
            max_parallel_width=width,
            id=workflow_id,
            name=name,
            description=description,
            execution_mode=mode,
            synthesis_required=synthesis_required,
        )
        self._workflows[workflow_id] = run
        return run

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowRun]:
        return self._workflows.get(workflow_id)

    def list_workflows(self) -> List[WorkflowRun]:
        return list(self._workflows.values())

    def get_agents(self) -> List[AgentSpec]:
        return self.agents.all()

    def _executor(self) -> BatchExecutor:
        return BatchExecutor(
            self.invoker,
            agents=self.agents,
            task_timeout=self.config.task_timeout,
            listener=self.listener,
        )

    def execute_workflow(self, workflow_id: str) -> WorkflowReport:
        """Run a created workflow to completion.

        A stall does not raise here: the run is marked failed and the report
        carries the ``StallError`` and the stuck task ids.
        """
        run = self._workflows.get(workflow_id)
        if run is None:
            raise WorkflowNotFoundError(workflow_id)

        executor = self._executor()
        stall: Optional[StallError] = None
        try:
            WorkflowDriver(executor).run(run)
        except StallError as e:
            stall = e

        synthesis = None
        if stall is None and self._needs_synthesis(run):
            synthesis = self._synthesize(run, executor)

        results = run.registry.get_results()
        report = WorkflowReport(
            workflow_id=run.id,
            status=run.status,
            results=results,
            synthesis=synthesis,
            stuck_task_ids=list(run.stuck_task_ids),
            error=stall,
            metrics=WorkflowMetrics(
                total_time=run.elapsed_seconds,
                tasks_completed=run.count(TaskStatus.COMPLETED),
                tasks_failed=run.count(TaskStatus.FAILED),
                tasks_pending=run.count(TaskStatus.PENDING),
                rounds=len(run.rounds),
            ),
        )
        _log.info("Workflow %s finished: %s (%d done, %d failed)", run.id,
                  run.status.value, report.metrics.tasks_completed, report.metrics.tasks_failed)
        return report

    def run_request(
        self,
        request: str,
        mode: Optional[ExecutionMode] = None,
        max_parallel: Optional[int] = None,
    ) -> WorkflowReport:
        """Decompose a user request, then create and execute its workflow."""
        specs = decompose_request(request)
        run = self.create_workflow(
            name=request[:60],
            description=request,
            specs=specs,
            mode=mode,
            max_parallel=max_parallel,
        )
        return self.execute_workflow(run.id)

    # ── Synthesis ─────────────────────────────────────────────

    @staticmethod
    def _needs_synthesis(run: WorkflowRun) -> bool:
        if not run.synthesis_required or run.status != WorkflowStatus.COMPLETED:
            return False
        if any(t.kind == TaskKind.SYNTHESIZE for t in run.tasks):
            return False
        return len(run.registry.get_results()) > 1

    def _synthesize(self, run: WorkflowRun, executor: BatchExecutor) -> TaskResult:
        completed = [t for t in run.tasks if t.status == TaskStatus.COMPLETED]
        task = Task(
            id=f"{run.id}-synthesis",
            kind=TaskKind.SYNTHESIZE,
            description=f"Synthesize workflow results for: {run.description or run.name}",
            dependencies=[t.id for t in completed],
            priority=TaskPriority.HIGH,
        )
        context = {t.id: run.registry.get_result(t.id).output for t in completed}
        return executor.run_detached(task, context)
