"""Roadmap milestone ids and roadmap-to-task traceability lint."""

from __future__ import annotations

import re
from typing import Any, Iterable, List

from .models import LintSuggestion, Task


ROADMAP_ID_REGEX = re.compile(r"^ROADMAP-\d{4}$")
ROADMAP_ID_SCAN_REGEX = re.compile(r"ROADMAP-\d{4}")

ROADMAP_IDS_EMPTY = "ROADMAP_IDS_EMPTY"
ROADMAP_TASKS_EMPTY = "ROADMAP_TASKS_EMPTY"
ROADMAP_TASK_REFS_EMPTY = "ROADMAP_TASK_REFS_EMPTY"
ROADMAP_UNKNOWN_REFS = "ROADMAP_UNKNOWN_REFS"
ROADMAP_ZERO_LINKED_TASKS = "ROADMAP_ZERO_LINKED_TASKS"
ROADMAP_CONTEXT_RELATED_TASKS_EMPTY = "ROADMAP_CONTEXT_RELATED_TASKS_EMPTY"


def is_valid_roadmap_id(value: Any) -> bool:
    return isinstance(value, str) and ROADMAP_ID_REGEX.match(value) is not None


def extract_roadmap_ids(markdown: str) -> List[str]:
    """Unique ``ROADMAP-####`` ids in order of first appearance."""
    seen = set()
    ids: List[str] = []
    for match in ROADMAP_ID_SCAN_REGEX.findall(markdown):
        if match not in seen:
            seen.add(match)
            ids.append(match)
    return ids


def linked_tasks(roadmap_id: str, tasks: Iterable[Task]) -> List[Task]:
    return [task for task in tasks if roadmap_id in task.roadmap_refs]


def collect_roadmap_lint_suggestions(roadmap_ids: List[str], tasks: List[Task]) -> List[LintSuggestion]:
    """Traceability lint between roadmap milestones and task refs.

    Refs that fail the id format never reach this point because task
    normalization strips them; only well-formed ids missing from the roadmap
    are reported as unknown.
    """
    suggestions: List[LintSuggestion] = []

    if not roadmap_ids:
        suggestions.append(LintSuggestion(
            ROADMAP_IDS_EMPTY,
            "No roadmap IDs found in roadmap.md.",
            "Add at least one ROADMAP-xxxx milestone.",
        ))

    if not tasks:
        suggestions.append(LintSuggestion(
            ROADMAP_TASKS_EMPTY,
            "No tasks found in tasks.md.",
            "Add task cards and bind roadmapRefs for traceability.",
        ))
        return suggestions

    unbound = [task for task in tasks if not task.roadmap_refs]
    if unbound:
        suggestions.append(LintSuggestion(
            ROADMAP_TASK_REFS_EMPTY,
            f"{len(unbound)} task(s) have empty roadmapRefs.",
            "Bind ROADMAP-xxxx where applicable.",
        ))

    known = set(roadmap_ids)
    unknown: List[str] = []
    for task in tasks:
        for ref in task.roadmap_refs:
            if ref not in known and ref not in unknown:
                unknown.append(ref)
    if unknown:
        suggestions.append(LintSuggestion(
            ROADMAP_UNKNOWN_REFS,
            f"Unknown roadmapRefs detected: {', '.join(unknown)}.",
            "Add missing roadmap IDs or fix task references.",
        ))

    orphans = [roadmap_id for roadmap_id in roadmap_ids if not linked_tasks(roadmap_id, tasks)]
    if orphans:
        preview = ", ".join(orphans[:3]) + (", ..." if len(orphans) > 3 else "")
        suggestions.append(LintSuggestion(
            ROADMAP_ZERO_LINKED_TASKS,
            f"{len(orphans)} roadmap ID(s) have zero linked tasks.",
            f"Consider binding tasks to: {preview}.",
        ))

    return suggestions
