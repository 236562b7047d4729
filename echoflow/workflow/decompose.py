"""Request decomposition: turn a user request into task specs.

Classification lives here and nowhere else; the scheduler only ever sees
the resulting ``TaskSpec`` list.
"""

import json
import re
from typing import List, Sequence, Tuple

from ..logger import get_logger
from .tasks import TaskKind, TaskPriority, TaskSpec

_log = get_logger(__name__)

_JSON_ARRAY_RE = re.compile(r'```(?:\w*)\s*\n(.*?)```', re.DOTALL)


def _words(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(words) + r")\w*", re.IGNORECASE)


# Checked in order; first match wins.
KIND_KEYWORDS: Sequence[Tuple[TaskKind, re.Pattern]] = (
    (TaskKind.GENERATE, _words("create", "build", "implement")),
    (TaskKind.ANALYZE, _words("analy[sz]", "review")),
    (TaskKind.REFACTOR, _words("refactor", "improv", "optimi[sz]")),
    (TaskKind.DEBUG, _words("fix", "debug", "error")),
    (TaskKind.EXPLAIN, _words("explain", "how", "why")),
)

# Stages of a complex request, in pipeline order.
STAGE_KEYWORDS: Sequence[Tuple[TaskKind, re.Pattern, TaskPriority, str]] = (
    (TaskKind.ANALYZE, _words("analy[sz]", "review", "check"),
     TaskPriority.HIGH, "Analyze the requirements: {request}"),
    (TaskKind.GENERATE, _words("create", "build", "implement"),
     TaskPriority.HIGH, "Generate code for: {request}"),
    (TaskKind.REFACTOR, _words("optimi[sz]", "improv", "refactor"),
     TaskPriority.MEDIUM, "Optimize and refactor: {request}"),
    (TaskKind.EXPLAIN, _words("explain", "document", "describ"),
     TaskPriority.MEDIUM, "Explain and document: {request}"),
)

COMPLEX_LENGTH = 200
_CONJUNCTION_RE = re.compile(r"\b(?:and|also)\b", re.IGNORECASE)


def infer_task_kind(text: str) -> TaskKind:
    for kind, pattern in KIND_KEYWORDS:
        if pattern.search(text):
            return kind
    return TaskKind.GENERATE


def is_complex_request(text: str) -> bool:
    """Long, conjunctive or multi-sentence requests get split into stages."""
    return (
        len(text) > COMPLEX_LENGTH
        or bool(_CONJUNCTION_RE.search(text))
        or len(text.split(".")) > 2
    )


def decompose_request(text: str) -> List[TaskSpec]:
    """Split a request into a dependency chain of task specs.

    Each detected stage depends on the one before it. With more than two
    stages a synthesize task is appended that depends on all of them.
    """
    request = text.strip()
    if not request:
        return []

    if not is_complex_request(request):
        return [TaskSpec(
            ref="t1",
            kind=infer_task_kind(request),
            description=request,
            priority=TaskPriority.HIGH,
        )]

    specs: List[TaskSpec] = []
    for kind, pattern, priority, template in STAGE_KEYWORDS:
        if not pattern.search(request):
            continue
        specs.append(TaskSpec(
            ref=f"t{len(specs) + 1}",
            kind=kind,
            description=template.format(request=request),
            depends_on=[specs[-1].ref] if specs else [],
            priority=priority,
        ))

    if not specs:
        return [TaskSpec(
            ref="t1",
            kind=infer_task_kind(request),
            description=request,
            priority=TaskPriority.HIGH,
        )]

    if len(specs) > 2:
        specs.append(TaskSpec(
            ref=f"t{len(specs) + 1}",
            kind=TaskKind.SYNTHESIZE,
            description="Integrate and synthesize all results",
            depends_on=[s.ref for s in specs],
            priority=TaskPriority.HIGH,
        ))
    return specs


def parse_task_plan(raw: str) -> List[TaskSpec]:
    """Parse a JSON task list (as produced by a planning model) into specs.

    Accepts a bare array or one inside a fenced code block. Unknown kinds fall
    back to ``generate`` and unknown priorities to ``medium``.
    """
    text = raw.strip()

    m = _JSON_ARRAY_RE.search(text)
    if m:
        text = m.group(1).strip()

    if not text.startswith('['):
        start = text.find('[')
        end = text.rfind(']')
        if start >= 0 and end > start:
            text = text[start:end + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        _log.error("Failed to parse task JSON: %s", text[:200])
        return []

    if not isinstance(data, list):
        return []

    specs = []
    for item in data:
        if not isinstance(item, dict):
            continue
        depends_on = item.get("depends_on", item.get("dependencies", [])) or []
        specs.append(TaskSpec(
            ref=str(item.get("id", f"t{len(specs) + 1}")),
            kind=TaskKind.parse(item.get("kind", item.get("type", "")), TaskKind.GENERATE),
            description=str(item.get("description", "")),
            depends_on=[str(d) for d in depends_on],
            priority=TaskPriority.parse(item.get("priority", ""), TaskPriority.MEDIUM),
            assigned_worker=item.get("assigned_agent"),
        ))
    return specs
