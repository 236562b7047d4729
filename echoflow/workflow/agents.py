"""Agent roster and task-kind routing."""

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from ..logger import get_logger
from .tasks import Task, TaskKind, TaskResult

_log = get_logger(__name__)

AGENT_TYPES = ("reflective", "orchestrator", "specialist", "synthesizer")


@dataclass
class AgentMetrics:
    tasks_completed: int = 0
    tasks_failed: int = 0
    total_latency: float = 0.0

    @property
    def average_latency(self) -> float:
        settled = self.tasks_completed + self.tasks_failed
        return self.total_latency / settled if settled else 0.0


@dataclass
class AgentSpec:
    """Specification for an agent that tasks can be assigned to."""

    id: str
    name: str
    type: str
    capabilities: List[str] = field(default_factory=list)
    domain: Optional[str] = None
    instructions: str = ""
    model_override: Optional[str] = None
    temperature_override: Optional[float] = None
    metrics: AgentMetrics = field(default_factory=AgentMetrics)


DEFAULT_AGENTS = {
    "orchestrator-main": AgentSpec(
        id="orchestrator-main",
        name="Orchestrator",
        type="orchestrator",
        capabilities=["task_decomposition", "agent_coordination",
                      "workflow_management", "synthesis"],
        instructions="You coordinate the crew and explain results to the user.",
    ),
    "specialist-code": AgentSpec(
        id="specialist-code",
        name="Code Specialist",
        type="specialist",
        domain="coding",
        capabilities=["code_generation", "code_analysis", "refactoring", "debugging"],
        instructions="Write clean, tested code. Focus only on the task assigned to you.",
    ),
    "specialist-architecture": AgentSpec(
        id="specialist-architecture",
        name="Architecture Specialist",
        type="specialist",
        domain="architecture",
        capabilities=["system_design", "pattern_recognition", "optimization",
                      "scalability_analysis"],
        instructions="Reason about structure, interfaces and trade-offs before code.",
    ),
    "reflective-analyst": AgentSpec(
        id="reflective-analyst",
        name="Reflective Analyst",
        type="reflective",
        domain="analysis",
        capabilities=["performance_analysis", "quality_assessment",
                      "improvement_suggestions"],
        instructions="Assess the quality of prior work and suggest concrete improvements.",
    ),
    "synthesizer-main": AgentSpec(
        id="synthesizer-main",
        name="Knowledge Synthesizer",
        type="synthesizer",
        capabilities=["information_integration", "pattern_synthesis",
                      "coherence_checking"],
        instructions="Integrate the outputs of other agents into one answer.",
    ),
}

KIND_TO_AGENT = {
    TaskKind.GENERATE: "specialist-code",
    TaskKind.REFACTOR: "specialist-code",
    TaskKind.DEBUG: "specialist-code",
    TaskKind.ANALYZE: "specialist-architecture",
    TaskKind.SYNTHESIZE: "synthesizer-main",
    TaskKind.EXPLAIN: "orchestrator-main",
}

DEFAULT_AGENT_ID = "orchestrator-main"


def select_agent_for_kind(kind: TaskKind) -> str:
    return KIND_TO_AGENT.get(kind, DEFAULT_AGENT_ID)


def load_agents_from_config(agents_cfg: Optional[dict]) -> Dict[str, AgentSpec]:
    """Build the roster from defaults plus the ``agents:`` config section.

    Entries with a known id override fields of the default; unknown ids add
    new agents.
    """
    agents = {aid: replace(spec, metrics=AgentMetrics()) for aid, spec in DEFAULT_AGENTS.items()}

    if not isinstance(agents_cfg, dict):
        if agents_cfg:
            _log.warning("Ignoring agents config: expected a mapping, got %s", type(agents_cfg).__name__)
        return agents

    for agent_id, spec in agents_cfg.items():
        spec = spec or {}
        if not isinstance(spec, dict):
            _log.warning("Ignoring agents entry %r: expected a mapping, got %r", agent_id, spec)
            continue
        base = agents.get(agent_id)
        agent_type = spec.get("type", base.type if base else "specialist")
        if agent_type not in AGENT_TYPES:
            agent_type = "specialist"
        agents[agent_id] = AgentSpec(
            id=agent_id,
            name=spec.get("name", base.name if base else agent_id),
            type=agent_type,
            capabilities=list(spec.get("capabilities", base.capabilities if base else [])),
            domain=spec.get("domain", base.domain if base else None),
            instructions=spec.get("instructions", base.instructions if base else ""),
            model_override=spec.get("model-override"),
            temperature_override=spec.get("temperature-override"),
        )
    return agents


class AgentRegistry:
    """Per-engine agent roster. Routes tasks to agents and tracks their metrics."""

    def __init__(self, agents: Optional[Dict[str, AgentSpec]] = None):
        self._agents: Dict[str, AgentSpec] = dict(agents) if agents else load_agents_from_config(None)
        self._lock = threading.Lock()

    def register(self, agent: AgentSpec) -> None:
        with self._lock:
            self._agents[agent.id] = agent

    def get(self, agent_id: str) -> Optional[AgentSpec]:
        with self._lock:
            return self._agents.get(agent_id)

    def all(self) -> List[AgentSpec]:
        with self._lock:
            return list(self._agents.values())

    def resolve(self, task: Task) -> str:
        """Agent id for a task: its own assignment if set, else the kind table."""
        if task.assigned_worker:
            return task.assigned_worker
        agent_id = select_agent_for_kind(task.kind)
        with self._lock:
            if agent_id not in self._agents:
                agent_id = DEFAULT_AGENT_ID
        return agent_id

    def record(self, result: TaskResult) -> None:
        with self._lock:
            agent = self._agents.get(result.worker)
            if agent is None:
                return
            if result.ok:
                agent.metrics.tasks_completed += 1
            else:
                agent.metrics.tasks_failed += 1
            agent.metrics.total_latency += result.elapsed_seconds
