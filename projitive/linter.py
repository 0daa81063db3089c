"""Hygiene lint for task ledgers.

Lint is advisory: every rule yields at most one ``LintSuggestion`` and no
rule ever raises. Rules run in a fixed order so output is stable.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional, Set

from .ledger import find_task_ids_outside_markers
from .models import BlockerType, LintSuggestion, SubStatePhase, Task, TaskStatus
from .timestamps import is_parseable


TASK_DUPLICATE_ID = "TASK_DUPLICATE_ID"
TASK_IN_PROGRESS_OWNER_EMPTY = "TASK_IN_PROGRESS_OWNER_EMPTY"
TASK_DONE_LINKS_MISSING = "TASK_DONE_LINKS_MISSING"
TASK_BLOCKED_SUMMARY_EMPTY = "TASK_BLOCKED_SUMMARY_EMPTY"
TASK_UPDATED_AT_INVALID = "TASK_UPDATED_AT_INVALID"
TASK_ROADMAP_REFS_EMPTY = "TASK_ROADMAP_REFS_EMPTY"
TASK_OUTSIDE_MARKER = "TASK_OUTSIDE_MARKER"
TASK_BLOCKED_WITHOUT_BLOCKER = "TASK_BLOCKED_WITHOUT_BLOCKER"
TASK_BLOCKER_TYPE_INVALID = "TASK_BLOCKER_TYPE_INVALID"
TASK_BLOCKER_DESCRIPTION_EMPTY = "TASK_BLOCKER_DESCRIPTION_EMPTY"
TASK_IN_PROGRESS_WITHOUT_SUBSTATE = "TASK_IN_PROGRESS_WITHOUT_SUBSTATE"
TASK_SUBSTATE_PHASE_INVALID = "TASK_SUBSTATE_PHASE_INVALID"
TASK_SUBSTATE_CONFIDENCE_INVALID = "TASK_SUBSTATE_CONFIDENCE_INVALID"
TASK_FILTER_EMPTY = "TASK_FILTER_EMPTY"
TASK_LINK_TARGET_MISSING = "TASK_LINK_TARGET_MISSING"

BLOCKER_TYPE_HINT = f"Use one of: {', '.join(BlockerType.values())}."
PHASE_HINT = f"Use one of: {', '.join(SubStatePhase.values())}."
CONFIDENCE_HINT = "Confidence must be between 0.0 and 1.0."


def _is_blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def _blocker_type_invalid(task: Task) -> bool:
    return task.blocker is not None and BlockerType.parse(task.blocker.type) is None


def _blocker_description_empty(task: Task) -> bool:
    return task.blocker is not None and _is_blank(task.blocker.description)


def _phase_invalid(task: Task) -> bool:
    phase = task.sub_state.phase if task.sub_state is not None else None
    return bool(phase) and SubStatePhase.parse(phase) is None


def _confidence_invalid(task: Task) -> bool:
    confidence = task.sub_state.confidence if task.sub_state is not None else None
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return False
    return not 0 <= confidence <= 1


def collect_task_lint_suggestion_items(
    tasks: List[Task],
    markdown: Optional[str] = None,
    outside_marker_scope_ids: Optional[Set[str]] = None,
) -> List[LintSuggestion]:
    """Run the ledger-wide rule battery over ``tasks``.

    The outside-marker rule only runs when ``markdown`` is given, and only
    reports ids in ``outside_marker_scope_ids`` when that set is given.
    """
    suggestions: List[LintSuggestion] = []

    counts = Counter(task.id for task in tasks)
    duplicates = [task_id for task_id, count in counts.items() if count > 1]
    if duplicates:
        suggestions.append(LintSuggestion(
            TASK_DUPLICATE_ID,
            f"Duplicate task IDs detected: {', '.join(duplicates)}.",
            "Keep task IDs unique in marker block.",
        ))

    owner_empty = [t for t in tasks if t.status == TaskStatus.IN_PROGRESS and _is_blank(t.owner)]
    if owner_empty:
        suggestions.append(LintSuggestion(
            TASK_IN_PROGRESS_OWNER_EMPTY,
            f"{len(owner_empty)} IN_PROGRESS task(s) have empty owner.",
            "Set owner before continuing execution.",
        ))

    done_without_links = [t for t in tasks if t.status == TaskStatus.DONE and not t.links]
    if done_without_links:
        suggestions.append(LintSuggestion(
            TASK_DONE_LINKS_MISSING,
            f"{len(done_without_links)} DONE task(s) have no links evidence.",
            "Add at least one evidence link before keeping DONE.",
        ))

    blocked_without_summary = [t for t in tasks if t.status == TaskStatus.BLOCKED and _is_blank(t.summary)]
    if blocked_without_summary:
        suggestions.append(LintSuggestion(
            TASK_BLOCKED_SUMMARY_EMPTY,
            f"{len(blocked_without_summary)} BLOCKED task(s) have empty summary.",
            "Add blocker reason and unblock condition.",
        ))

    invalid_updated_at = [t for t in tasks if not is_parseable(t.updated_at)]
    if invalid_updated_at:
        suggestions.append(LintSuggestion(
            TASK_UPDATED_AT_INVALID,
            f"{len(invalid_updated_at)} task(s) have invalid updatedAt format.",
            "Use ISO8601 UTC timestamp.",
        ))

    missing_refs = [t for t in tasks if not t.roadmap_refs]
    if missing_refs:
        suggestions.append(LintSuggestion(
            TASK_ROADMAP_REFS_EMPTY,
            f"{len(missing_refs)} task(s) have empty roadmapRefs.",
            "Bind at least one ROADMAP-xxxx when applicable.",
        ))

    if isinstance(markdown, str):
        outside = [
            task_id
            for task_id in find_task_ids_outside_markers(markdown)
            if outside_marker_scope_ids is None or task_id in outside_marker_scope_ids
        ]
        if outside:
            suggestions.append(LintSuggestion(
                TASK_OUTSIDE_MARKER,
                f"TASK IDs found outside marker block: {', '.join(outside)}.",
                "Keep task source of truth inside marker region only.",
            ))

    blocked_without_blocker = [t for t in tasks if t.status == TaskStatus.BLOCKED and t.blocker is None]
    if blocked_without_blocker:
        suggestions.append(LintSuggestion(
            TASK_BLOCKED_WITHOUT_BLOCKER,
            f"{len(blocked_without_blocker)} BLOCKED task(s) have no blocker metadata.",
            "Add structured blocker metadata with type and description.",
        ))

    blocker_type_invalid = [t for t in tasks if _blocker_type_invalid(t)]
    if blocker_type_invalid:
        suggestions.append(LintSuggestion(
            TASK_BLOCKER_TYPE_INVALID,
            f"{len(blocker_type_invalid)} task(s) have invalid blocker type.",
            BLOCKER_TYPE_HINT,
        ))

    blocker_description_empty = [t for t in tasks if _blocker_description_empty(t)]
    if blocker_description_empty:
        suggestions.append(LintSuggestion(
            TASK_BLOCKER_DESCRIPTION_EMPTY,
            f"{len(blocker_description_empty)} task(s) have empty blocker description.",
            "Provide a clear description of why the task is blocked.",
        ))

    without_sub_state = [t for t in tasks if t.status == TaskStatus.IN_PROGRESS and t.sub_state is None]
    if without_sub_state:
        suggestions.append(LintSuggestion(
            TASK_IN_PROGRESS_WITHOUT_SUBSTATE,
            f"{len(without_sub_state)} IN_PROGRESS task(s) have no subState metadata.",
            "Add optional subState metadata for better progress tracking.",
        ))

    phase_invalid = [t for t in tasks if _phase_invalid(t)]
    if phase_invalid:
        suggestions.append(LintSuggestion(
            TASK_SUBSTATE_PHASE_INVALID,
            f"{len(phase_invalid)} task(s) have invalid subState phase.",
            PHASE_HINT,
        ))

    confidence_invalid = [t for t in tasks if _confidence_invalid(t)]
    if confidence_invalid:
        suggestions.append(LintSuggestion(
            TASK_SUBSTATE_CONFIDENCE_INVALID,
            f"{len(confidence_invalid)} task(s) have invalid confidence score.",
            CONFIDENCE_HINT,
        ))

    return suggestions


def collect_single_task_lint_suggestions(task: Task, markdown: Optional[str] = None) -> List[LintSuggestion]:
    """Per-task variant of the rule battery, worded for the current task."""
    suggestions: List[LintSuggestion] = []

    if task.status == TaskStatus.IN_PROGRESS and _is_blank(task.owner):
        suggestions.append(LintSuggestion(
            TASK_IN_PROGRESS_OWNER_EMPTY,
            "Current task is IN_PROGRESS but owner is empty.",
            "Set owner before continuing execution.",
        ))
    if task.status == TaskStatus.DONE and not task.links:
        suggestions.append(LintSuggestion(
            TASK_DONE_LINKS_MISSING,
            "Current task is DONE but has no links evidence.",
            "Add at least one evidence link.",
        ))
    if task.status == TaskStatus.BLOCKED and _is_blank(task.summary):
        suggestions.append(LintSuggestion(
            TASK_BLOCKED_SUMMARY_EMPTY,
            "Current task is BLOCKED but summary is empty.",
            "Add blocker reason and unblock condition.",
        ))
    if not is_parseable(task.updated_at):
        suggestions.append(LintSuggestion(
            TASK_UPDATED_AT_INVALID,
            "Current task updatedAt is invalid.",
            "Use ISO8601 UTC timestamp.",
        ))
    if not task.roadmap_refs:
        suggestions.append(LintSuggestion(
            TASK_ROADMAP_REFS_EMPTY,
            "Current task has empty roadmapRefs.",
            "Bind ROADMAP-xxxx where applicable.",
        ))
    if isinstance(markdown, str) and task.id in find_task_ids_outside_markers(markdown):
        suggestions.append(LintSuggestion(
            TASK_OUTSIDE_MARKER,
            f"Current task ID appears outside marker block ({task.id}).",
            "Keep task source of truth inside marker region.",
        ))
    if task.status == TaskStatus.BLOCKED and task.blocker is None:
        suggestions.append(LintSuggestion(
            TASK_BLOCKED_WITHOUT_BLOCKER,
            "Current task is BLOCKED but has no blocker metadata.",
            "Add structured blocker metadata with type and description.",
        ))
    if _blocker_type_invalid(task):
        suggestions.append(LintSuggestion(
            TASK_BLOCKER_TYPE_INVALID,
            f"Current task has invalid blocker type: {getattr(task.blocker.type, 'value', task.blocker.type)}.",
            BLOCKER_TYPE_HINT,
        ))
    if _blocker_description_empty(task):
        suggestions.append(LintSuggestion(
            TASK_BLOCKER_DESCRIPTION_EMPTY,
            "Current task has empty blocker description.",
            "Provide a clear description of why the task is blocked.",
        ))
    if task.status == TaskStatus.IN_PROGRESS and task.sub_state is None:
        suggestions.append(LintSuggestion(
            TASK_IN_PROGRESS_WITHOUT_SUBSTATE,
            "Current task is IN_PROGRESS but has no subState metadata.",
            "Add optional subState metadata for better progress tracking.",
        ))
    if _phase_invalid(task):
        suggestions.append(LintSuggestion(
            TASK_SUBSTATE_PHASE_INVALID,
            f"Current task has invalid subState phase: {task.sub_state.phase}.",
            PHASE_HINT,
        ))
    if _confidence_invalid(task):
        suggestions.append(LintSuggestion(
            TASK_SUBSTATE_CONFIDENCE_INVALID,
            f"Current task has invalid confidence score: {task.sub_state.confidence}.",
            CONFIDENCE_HINT,
        ))

    return suggestions


def filter_empty_suggestion(status: str) -> LintSuggestion:
    return LintSuggestion(
        TASK_FILTER_EMPTY,
        f"No tasks matched status={status}.",
        "Confirm status values or update task states.",
    )


def render_lint_suggestions(items: Iterable[LintSuggestion]) -> List[str]:
    """One ``- [CODE] message fixHint`` line per suggestion."""
    return [item.render() for item in items]


def collect_task_lint_suggestions(
    tasks: List[Task],
    markdown: Optional[str] = None,
    outside_marker_scope_ids: Optional[Set[str]] = None,
) -> List[str]:
    return render_lint_suggestions(
        collect_task_lint_suggestion_items(tasks, markdown, outside_marker_scope_ids)
    )
