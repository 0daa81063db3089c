"""Parse and render the marker-delimited task ledger.

The ledger dialect is intentionally narrow: everything between the START and
END markers is split into ``## TASK-#### | STATUS | title`` sections, and only
the fields listed in ``TOP_LEVEL_FIELDS`` are understood. Anything else is
ignored. Parsing never raises; malformed sections are dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    Blocker,
    BlockerType,
    SubState,
    SubStatePhase,
    Task,
    TaskStatus,
)
from .roadmap import is_valid_roadmap_id
from .timestamps import now_iso

logger = logging.getLogger("projitive.ledger")

TASKS_START = "<!-- PROJITIVE:TASKS:START -->"
TASKS_END = "<!-- PROJITIVE:TASKS:END -->"
NONE_PLACEHOLDER = "(none)"
EMPTY_LEDGER_PLACEHOLDER = "(no tasks)"
MAINTENANCE_NOTE = "This file is maintained by Projitive MCP. Keep the Markdown structure valid when editing by hand."

SECTION_SPLIT_REGEX = re.compile(r"\n(?=##\s+TASK-\d{4}\s+\|\s+(?:TODO|IN_PROGRESS|BLOCKED|DONE)\s+\|)")
HEADER_REGEX = re.compile(r"^##\s+(TASK-\d{4})\s+\|\s+(TODO|IN_PROGRESS|BLOCKED|DONE)\s+\|\s+(.+)$")
TASK_ID_SCAN_REGEX = re.compile(r"TASK-\d{4}")
LIST_ITEM_REGEX = re.compile(r"^-\s+(.+)$")
LINE_BREAK_REGEX = re.compile(r"\s*[\r\n]+\s*")

TOP_LEVEL_FIELDS = (
    "- owner:",
    "- summary:",
    "- updatedAt:",
    "- roadmapRefs:",
    "- links:",
    "- hooks:",
    "- subState:",
    "- blocker:",
)

SUB_STATE_KEYS = {
    "phase": "phase",
    "confidence": "confidence",
    "estimatedCompletion": "estimated_completion",
}

BLOCKER_KEYS = {
    "type": "type",
    "description": "description",
    "blockingEntity": "blocking_entity",
    "unblockCondition": "unblock_condition",
    "escalationPath": "escalation_path",
}


def _marker_bounds(markdown: str) -> Optional[Tuple[int, int]]:
    start = markdown.find(TASKS_START)
    end = markdown.find(TASKS_END)
    if start == -1 or end == -1 or end <= start:
        return None
    return start, end


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):].strip()
    return "" if value == NONE_PLACEHOLDER else value


def _is_block_end(line: str) -> bool:
    return line.startswith(TOP_LEVEL_FIELDS) or line.startswith("## TASK-")


def _read_nested_block(lines: List[str], start: int, keys: Dict[str, str]) -> Tuple[Dict[str, str], int]:
    """Collect ``- key: value`` lines following ``lines[start]``.

    Returns the raw values keyed by attribute name and the index of the last
    line consumed.
    """
    values: Dict[str, str] = {}
    index = start + 1
    while index < len(lines):
        trimmed = lines[index].strip()
        if _is_block_end(trimmed):
            break
        for key, attribute in keys.items():
            prefix = f"- {key}:"
            if trimmed.startswith(prefix):
                value = _field_value(trimmed, prefix)
                if value:
                    values[attribute] = value
                break
        index += 1
    return values, index - 1


def _parse_confidence(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    # NaN fails both comparisons
    if 0 <= value <= 1:
        return value
    return None


def _parse_sub_state(lines: List[str], start: int) -> Tuple[Optional[SubState], int]:
    values, end = _read_nested_block(lines, start, SUB_STATE_KEYS)
    sub_state = SubState(
        phase=SubStatePhase.parse(values.get("phase")),
        confidence=_parse_confidence(values.get("confidence")),
        estimated_completion=values.get("estimated_completion"),
    )
    return (None if sub_state.is_empty() else sub_state), end


def _parse_blocker(lines: List[str], start: int) -> Tuple[Blocker, int]:
    values, end = _read_nested_block(lines, start, BLOCKER_KEYS)
    blocker_type = BlockerType.parse(values.get("type"))
    description = values.get("description")
    if blocker_type is None or not description:
        return Blocker.unknown(), end
    return (
        Blocker(
            type=blocker_type,
            description=description,
            blocking_entity=values.get("blocking_entity"),
            unblock_condition=values.get("unblock_condition"),
            escalation_path=values.get("escalation_path"),
        ),
        end,
    )


def _split_refs(payload: str) -> List[str]:
    if payload == NONE_PLACEHOLDER:
        return []
    return [value.strip() for value in payload.split(",") if value.strip()]


def _parse_section(section: str) -> Optional[Task]:
    lines = section.splitlines()
    header = HEADER_REGEX.match(lines[0]) if lines else None
    if header is None:
        return None

    task_id, status, title = header.groups()
    task = Task(id=task_id, title=title.strip(), status=TaskStatus(status))

    in_links = False
    body = lines[1:]
    index = 0
    while index < len(body):
        trimmed = body[index].strip()
        index += 1
        if not trimmed:
            continue

        if trimmed.startswith(TOP_LEVEL_FIELDS):
            in_links = False

        if trimmed.startswith("- owner:"):
            task.owner = _field_value(trimmed, "- owner:")
        elif trimmed.startswith("- summary:"):
            task.summary = _field_value(trimmed, "- summary:")
        elif trimmed.startswith("- updatedAt:"):
            task.updated_at = _field_value(trimmed, "- updatedAt:")
        elif trimmed.startswith("- roadmapRefs:"):
            task.roadmap_refs = _split_refs(trimmed[len("- roadmapRefs:"):].strip())
        elif trimmed == "- links:":
            in_links = True
        elif trimmed == "- hooks:":
            # hook items are consumed and discarded
            pass
        elif trimmed.startswith("- subState:"):
            task.sub_state, end = _parse_sub_state(body, index - 1)
            index = end + 1
        elif trimmed.startswith("- blocker:"):
            task.blocker, end = _parse_blocker(body, index - 1)
            index = end + 1
        elif in_links:
            item = LIST_ITEM_REGEX.match(trimmed)
            if item and item.group(1).strip() != NONE_PLACEHOLDER:
                task.links.append(item.group(1).strip())

    return normalize_task(task)


def parse_tasks_block(markdown: str) -> List[Task]:
    """Parse the marker region of ``markdown`` into normalized tasks.

    Missing or misordered markers mean "no ledger yet" and yield an empty
    list, as does an empty region or the ``(no tasks)`` placeholder.
    Duplicate ids are kept in document order.
    """
    bounds = _marker_bounds(markdown)
    if bounds is None:
        return []
    start, end = bounds
    body = markdown[start + len(TASKS_START):end].strip()
    if not body or body == EMPTY_LEDGER_PLACEHOLDER:
        return []

    tasks: List[Task] = []
    dropped = 0
    for section in SECTION_SPLIT_REGEX.split(body):
        section = section.strip()
        if not section.startswith("## TASK-"):
            continue
        task = _parse_section(section)
        if task is None:
            dropped += 1
            continue
        tasks.append(task)

    if dropped:
        logger.debug("Dropped %d malformed task section(s)", dropped)
    return tasks


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def _single_line(value: Optional[str]) -> str:
    """Collapse line breaks (and the whitespace around them) to one space."""
    if not value:
        return ""
    return LINE_BREAK_REGEX.sub(" ", str(value)).strip()


def _normalize_sub_state(sub_state: Optional[SubState]) -> Optional[SubState]:
    if sub_state is None or sub_state.is_empty():
        return None
    return SubState(
        phase=sub_state.phase,
        confidence=sub_state.confidence,
        estimated_completion=_single_line(sub_state.estimated_completion) or None,
    )


def _normalize_blocker(blocker: Optional[Blocker]) -> Optional[Blocker]:
    if blocker is None:
        return None
    return Blocker(
        type=blocker.type,
        description=_single_line(blocker.description),
        blocking_entity=_single_line(blocker.blocking_entity) or None,
        unblock_condition=_single_line(blocker.unblock_condition) or None,
        escalation_path=_single_line(blocker.escalation_path) or None,
    )


def normalize_task(task: Task) -> Task:
    """Return a copy of ``task`` that satisfies the record invariants.

    Unknown status becomes TODO, a blank title falls back to the id, empty
    ``updated_at`` is stamped with the current time, ``(none)`` links are
    dropped and roadmap refs are filtered to valid ids in first-seen order.
    Every free-text field is folded onto one line so that a rendered section
    cannot be split by its own content. Applying it twice yields the same record.
    """
    title = _single_line(task.title) or str(task.id)
    links = [_single_line(link) for link in task.links]
    return Task(
        id=str(task.id),
        title=title,
        status=TaskStatus.parse(task.status) or TaskStatus.TODO,
        owner=_single_line(task.owner),
        summary=_single_line(task.summary),
        updated_at=_single_line(task.updated_at) or now_iso(),
        links=[link for link in links if link and link != NONE_PLACEHOLDER],
        roadmap_refs=_unique(str(ref).strip() for ref in task.roadmap_refs if is_valid_roadmap_id(str(ref).strip())),
        sub_state=_normalize_sub_state(task.sub_state),
        blocker=_normalize_blocker(task.blocker),
    )


def format_confidence(value: float) -> str:
    """Render a confidence number the short way (``1`` rather than ``1.0``)."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def sub_state_lines(sub_state: SubState) -> List[str]:
    lines = ["- subState:"]
    if sub_state.phase is not None:
        lines.append(f"  - phase: {getattr(sub_state.phase, 'value', sub_state.phase)}")
    if isinstance(sub_state.confidence, (int, float)):
        lines.append(f"  - confidence: {format_confidence(sub_state.confidence)}")
    if sub_state.estimated_completion:
        lines.append(f"  - estimatedCompletion: {sub_state.estimated_completion}")
    return lines


def blocker_lines(blocker: Blocker) -> List[str]:
    lines = [
        "- blocker:",
        f"  - type: {getattr(blocker.type, 'value', blocker.type)}",
        f"  - description: {blocker.description}",
    ]
    if blocker.blocking_entity:
        lines.append(f"  - blockingEntity: {blocker.blocking_entity}")
    if blocker.unblock_condition:
        lines.append(f"  - unblockCondition: {blocker.unblock_condition}")
    if blocker.escalation_path:
        lines.append(f"  - escalationPath: {blocker.escalation_path}")
    return lines


def render_task_section(task: Task) -> str:
    """Render one ``##`` section with fields in ledger order."""
    lines = [
        f"## {task.header()}",
        f"- owner: {task.owner or NONE_PLACEHOLDER}",
        f"- summary: {task.summary or NONE_PLACEHOLDER}",
        f"- updatedAt: {task.updated_at}",
        f"- roadmapRefs: {', '.join(task.roadmap_refs) if task.roadmap_refs else NONE_PLACEHOLDER}",
        "- links:",
    ]
    if task.links:
        lines.extend(f"  - {link}" for link in task.links)
    else:
        lines.append(f"  - {NONE_PLACEHOLDER}")

    if task.sub_state is not None and task.status == TaskStatus.IN_PROGRESS:
        lines.extend(sub_state_lines(task.sub_state))
    if task.blocker is not None and task.status == TaskStatus.BLOCKED:
        lines.extend(blocker_lines(task.blocker))
    return "\n".join(lines)


def render_tasks_markdown(tasks: List[Task]) -> str:
    """Render the complete ``tasks.md`` document for ``tasks``."""
    sections = [render_task_section(task) for task in tasks]
    return "\n".join(
        [
            "# Tasks",
            "",
            MAINTENANCE_NOTE,
            "",
            TASKS_START,
            *(sections or [EMPTY_LEDGER_PLACEHOLDER]),
            TASKS_END,
            "",
        ]
    )


def find_task_ids_outside_markers(markdown: str) -> List[str]:
    """Unique task ids mentioned outside the marker region, in first-seen order."""
    bounds = _marker_bounds(markdown)
    if bounds is None:
        outside = markdown
    else:
        start, end = bounds
        outside = markdown[:start] + "\n" + markdown[end + len(TASKS_END):]
    return _unique(TASK_ID_SCAN_REGEX.findall(outside))
