"""Console rendering for workflow runs: plan table, layered DAG, events, summary."""

import threading
from typing import Dict, List, Optional, Sequence

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .workflow.executor import ExecutionListener
from .workflow.tasks import Task, TaskResult, TaskStatus

ACCENT = "#7FA6D9"
BORDER = "#30363D"
DIM = "#6E7681"
SUCCESS = "#57DB9C"
WARN = "#E3B341"
ERROR = "#F85149"
INFO = "#79C0FF"

# 8-color palette for agent distinction
AGENT_COLORS = [
    "#7FA6D9",  # blue
    "#57DB9C",  # green
    "#D9A67F",  # orange
    "#D97FD9",  # magenta
    "#7FD9D9",  # cyan
    "#D9D97F",  # yellow
    "#9C7FD9",  # purple
    "#D97F7F",  # red
]

# Status display: (icon_char, color)
_STATUS_DISPLAY = {
    TaskStatus.PENDING:     ("○", DIM),
    TaskStatus.IN_PROGRESS: ("▸", INFO),
    TaskStatus.COMPLETED:   ("✓", SUCCESS),
    TaskStatus.FAILED:      ("✗", ERROR),
}

_PRIORITY_STYLE = {
    "critical": f"bold {ERROR}",
    "high": WARN,
    "medium": "",
    "low": DIM,
}


def _color_for(name: str) -> str:
    return AGENT_COLORS[sum(name.encode()) % len(AGENT_COLORS)]


def short_id(task_id: str) -> str:
    """``workflow-…-task-3`` → ``task-3`` for display."""
    marker = task_id.rfind("-task-")
    if marker >= 0:
        return task_id[marker + 1:]
    if task_id.endswith("-synthesis"):
        return "synthesis"
    return task_id


def topo_layers(tasks: Sequence[Task]) -> List[List[Task]]:
    """Group tasks into dependency layers; a task sits one layer below its deepest dependency."""
    placed: set = set()
    layers: List[List[Task]] = []
    remaining = list(tasks)

    while remaining:
        layer = [t for t in remaining if all(d in placed for d in t.dependencies)]
        if not layer:
            layer = remaining[:]  # cycle fallback
        for t in layer:
            placed.add(t.id)
        remaining = [t for t in remaining if t.id not in placed]
        layers.append(layer)
    return layers


class WorkflowRenderer(ExecutionListener):
    """Prints the plan up front and one line per task event while a run executes."""

    def __init__(self, console: Console):
        self.console = console
        self._lock = threading.Lock()

    def _print(self, markup: str) -> None:
        with self._lock:
            self.console.print(f"  {markup}")

    # ── Plan ──────────────────────────────────────────────────

    def render_plan(self, tasks: Sequence[Task], title: str = "Workflow Plan") -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {ACCENT}",
            border_style=BORDER,
            padding=(0, 1),
        )
        table.add_column("ID", style="bold", min_width=6)
        table.add_column("Kind", min_width=10)
        table.add_column("Priority", min_width=8)
        table.add_column("Description", min_width=30)
        table.add_column("Depends On", min_width=10)

        for task in tasks:
            color = _color_for(task.kind.value)
            deps = ", ".join(short_id(d) for d in task.dependencies) if task.dependencies else "-"
            prio = task.priority.value
            style = _PRIORITY_STYLE.get(prio, "")
            table.add_row(
                short_id(task.id),
                f"[{color}]{task.kind.value}[/{color}]",
                f"[{style}]{prio}[/{style}]" if style else prio,
                escape(task.description),
                deps,
            )

        with self._lock:
            self.console.print(Panel(
                Group(table, Text(""), self.build_layers(tasks)),
                title=f"[bold {ACCENT}] {title} [/bold {ACCENT}]",
                title_align="left",
                border_style=BORDER,
                padding=(0, 1),
            ))

    def build_layers(self, tasks: Sequence[Task],
                     statuses: Optional[Dict[str, TaskStatus]] = None) -> Text:
        """One line per dependency layer: ``L1  ○ task-0  ○ task-1``."""
        layers = topo_layers(tasks)
        if not layers:
            return Text("  (no tasks)")
        text = Text()
        for i, layer in enumerate(layers, 1):
            text.append(f"L{i} ", style=DIM)
            for task in layer:
                status = (statuses or {}).get(task.id, task.status)
                icon, color = _STATUS_DISPLAY[status]
                text.append(f" {icon} ", style=color)
                text.append(short_id(task.id), style=f"bold {_color_for(task.kind.value)}")
            if i < len(layers):
                text.append("\n")
        return text

    # ── Events ────────────────────────────────────────────────

    def on_round_start(self, round_no: int, batch: Sequence[Task]) -> None:
        ids = ", ".join(short_id(t.id) for t in batch)
        self._print(f"[{DIM}]round {round_no}: {ids}[/{DIM}]")

    def on_task_start(self, task: Task) -> None:
        color = _color_for(task.kind.value)
        worker = task.assigned_worker or "-"
        self._print(
            f"[{color}]▸ {worker}[/{color}] "
            f"[{DIM}]starting {short_id(task.id)} ({task.kind.value})[/{DIM}]"
        )

    def on_task_settled(self, task: Task, result: TaskResult) -> None:
        if result.ok:
            self._print(
                f"[{SUCCESS}]✓[/{SUCCESS}] [{DIM}]{short_id(task.id)} done "
                f"({result.elapsed_seconds:.1f}s)[/{DIM}]"
            )
        else:
            brief = (result.error or "unknown")[:120]
            self._print(f"[{ERROR}]✗ {short_id(task.id)}: {escape(brief)}[/{ERROR}]")

    # ── Summary ───────────────────────────────────────────────

    def render_summary(self, report, tasks: Sequence[Task]) -> None:
        table = Table(
            show_header=True,
            header_style=f"bold {ACCENT}",
            border_style=BORDER,
            padding=(0, 1),
        )
        table.add_column("Task", min_width=8)
        table.add_column("Agent", min_width=12)
        table.add_column("Status", min_width=8)
        table.add_column("Time", justify="right", min_width=8)

        results = {r.task_id: r for r in report.results}
        rows = list(tasks)
        if report.synthesis is not None:
            results[report.synthesis.task_id] = report.synthesis
        for task in rows:
            r = results.get(task.id)
            status = task.status
            icon, color = _STATUS_DISPLAY[status]
            label = "blocked" if task.id in report.stuck_task_ids else status.value
            table.add_row(
                short_id(task.id),
                task.assigned_worker or "-",
                f"[{color}]{icon} {label}[/{color}]",
                f"{r.elapsed_seconds:.1f}s" if r else "-",
            )
        if report.synthesis is not None:
            s = report.synthesis
            icon, color = _STATUS_DISPLAY[s.status]
            table.add_row("synthesis", s.worker, f"[{color}]{icon} {s.status.value}[/{color}]",
                          f"{s.elapsed_seconds:.1f}s")

        m = report.metrics
        footer = (f"{m.total_time:.1f}s total | {m.rounds} round(s) | "
                  f"{m.tasks_completed} done, {m.tasks_failed} failed")
        outcome = f"[{SUCCESS}]completed[/{SUCCESS}]" if report.success \
            else f"[{ERROR}]{report.status.value}[/{ERROR}]"
        with self._lock:
            self.console.print(Panel(
                table,
                title=f"[bold {ACCENT}] Workflow Summary [/bold {ACCENT}] {outcome}",
                subtitle=f"[{DIM}]{footer}[/{DIM}]",
                title_align="left",
                border_style=BORDER,
                padding=(0, 1),
            ))
            if report.error is not None:
                self.console.print(f"  [{ERROR}]{escape(str(report.error))}[/{ERROR}]")
