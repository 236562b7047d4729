"""Task invokers: the capability that actually performs a task's work.

The scheduler never knows what an invoker does. It hands over the task and
the outputs of its completed dependencies, and gets back the task output or
an exception.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, Mapping, Optional

from ..llm import LLMAdapter, build_system_prompt
from ..logger import get_logger
from .tasks import Task, TaskKind

if TYPE_CHECKING:
    from ..config import Config
    from .agents import AgentRegistry

_log = get_logger(__name__)


class TaskInvoker(ABC):
    """Performs the work a task represents."""

    @abstractmethod
    def invoke(self, task: Task, context: Mapping[str, str]) -> str:
        """Run ``task`` and return its output.

        Args:
            task: The task to run. ``assigned_worker`` is already set.
            context: Outputs of completed dependencies, keyed by task id.

        Raises:
            Any exception; the executor records it on the task.
        """


class FunctionInvoker(TaskInvoker):
    """Adapts a plain ``fn(task, context) -> str`` callable."""

    def __init__(self, fn: Callable[[Task, Mapping[str, str]], str]):
        self._fn = fn

    def invoke(self, task: Task, context: Mapping[str, str]) -> str:
        return self._fn(task, context)


class EchoInvoker(TaskInvoker):
    """Offline invoker for dry runs: describes what would have been done."""

    def invoke(self, task: Task, context: Mapping[str, str]) -> str:
        used = f" using {', '.join(context)}" if context else ""
        return f"[dry-run] {task.assigned_worker} would {task.kind.value}: {task.description}{used}"


class DispatchInvoker(TaskInvoker):
    """Routes each task to an invoker chosen by its kind."""

    def __init__(self, routes: Dict[TaskKind, TaskInvoker], default: Optional[TaskInvoker] = None):
        self._routes = dict(routes)
        self._default = default

    def invoke(self, task: Task, context: Mapping[str, str]) -> str:
        invoker = self._routes.get(task.kind, self._default)
        if invoker is None:
            raise LookupError(f"No invoker registered for task kind {task.kind.value!r}")
        return invoker.invoke(task, context)


def format_context(context: Mapping[str, str]) -> str:
    return "\n\n".join(
        f"--- Result from task '{tid}' ---\n{output}" for tid, output in context.items()
    )


class LLMInvoker(TaskInvoker):
    """Runs a task through the configured model, one chat call per task.

    A fresh ``LLMAdapter`` is built per call so concurrent tasks in one batch
    share no mutable client state.
    """

    def __init__(self, config: "Config", agents: "AgentRegistry"):
        self.config = config
        self.agents = agents

    def _adapter_for(self, worker: Optional[str]) -> LLMAdapter:
        preset = self.config.get_active_preset()
        agent = self.agents.get(worker) if worker else None
        if agent and agent.model_override and agent.model_override in self.config.models:
            preset = self.config.models[agent.model_override]
        kwargs = preset.get_llm_kwargs()
        if agent and agent.temperature_override is not None:
            kwargs["temperature"] = agent.temperature_override
        return LLMAdapter(**kwargs)

    def invoke(self, task: Task, context: Mapping[str, str]) -> str:
        agent = self.agents.get(task.assigned_worker) if task.assigned_worker else None
        system = build_system_prompt(task.kind.value, agent.instructions if agent else None)

        user = task.description
        if context:
            user += "\n\n## Context from previous tasks:\n" + format_context(context)

        llm = self._adapter_for(task.assigned_worker)
        response = llm.chat(messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ])
        _log.info("Task %s: %s tokens", task.id, response.total_tokens)
        if not response.content:
            raise ValueError("Model returned an empty response")
        return response.content
