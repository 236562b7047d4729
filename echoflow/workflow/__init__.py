"""Dependency-aware workflow scheduling."""

from .tasks import Task, TaskKind, TaskPriority, TaskResult, TaskSpec, TaskStatus
from .registry import TaskRegistry
from .readiness import ReadinessEvaluator
from .agents import AgentRegistry, AgentSpec, select_agent_for_kind
from .invokers import (
    DispatchInvoker,
    EchoInvoker,
    FunctionInvoker,
    LLMInvoker,
    TaskInvoker,
)
from .executor import BatchExecutor, ExecutionListener
from .driver import ExecutionMode, WorkflowDriver, WorkflowRun, WorkflowStatus
from .decompose import decompose_request, infer_task_kind, parse_task_plan
from .engine import OrchestrationEngine, WorkflowMetrics, WorkflowReport

__all__ = [
    "Task",
    "TaskKind",
    "TaskPriority",
    "TaskResult",
    "TaskSpec",
    "TaskStatus",
    "TaskRegistry",
    "ReadinessEvaluator",
    "AgentRegistry",
    "AgentSpec",
    "select_agent_for_kind",
    "TaskInvoker",
    "FunctionInvoker",
    "EchoInvoker",
    "DispatchInvoker",
    "LLMInvoker",
    "BatchExecutor",
    "ExecutionListener",
    "ExecutionMode",
    "WorkflowDriver",
    "WorkflowRun",
    "WorkflowStatus",
    "decompose_request",
    "infer_task_kind",
    "parse_task_plan",
    "OrchestrationEngine",
    "WorkflowMetrics",
    "WorkflowReport",
]
