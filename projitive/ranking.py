"""Cross-project ordering of actionable tasks."""

from __future__ import annotations

from datetime import timezone
from typing import Iterable, List

from .models import ActionableTaskCandidate, ProjectSnapshot, Task, TaskStatus
from .timestamps import parse_iso, to_epoch_ms


UNKNOWN_TIMESTAMP = "(unknown)"
RANK_RULE = "projectScore DESC -> taskPriority DESC -> taskUpdatedAt DESC -> governanceDir ASC -> taskId ASC"


def actionable_score(tasks: Iterable[Task]) -> int:
    """Project weight: each IN_PROGRESS task counts twice, each TODO once."""
    score = 0
    for task in tasks:
        if task.status == TaskStatus.IN_PROGRESS:
            score += 2
        elif task.status == TaskStatus.TODO:
            score += 1
    return score


def task_priority(status: TaskStatus) -> int:
    if status == TaskStatus.IN_PROGRESS:
        return 2
    if status == TaskStatus.TODO:
        return 1
    return 0


def to_task_updated_at_ms(value: str) -> int:
    return to_epoch_ms(value)


def latest_task_updated_at(tasks: Iterable[Task]) -> str:
    """Most recent parseable ``updated_at`` as a UTC ISO string, else ``(unknown)``."""
    parsed = [stamp for stamp in (parse_iso(task.updated_at) for task in tasks) if stamp is not None]
    if not parsed:
        return UNKNOWN_TIMESTAMP
    latest = max(parsed).astimezone(timezone.utc)
    return latest.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_actionable_candidates(snapshots: Iterable[ProjectSnapshot]) -> List[ActionableTaskCandidate]:
    """Join each TODO/IN_PROGRESS task with its project's aggregate signals."""
    candidates: List[ActionableTaskCandidate] = []
    for snapshot in snapshots:
        project_score = actionable_score(snapshot.tasks)
        project_latest = latest_task_updated_at(snapshot.tasks)
        for task in snapshot.tasks:
            if not task.is_actionable():
                continue
            candidates.append(ActionableTaskCandidate(
                governance_dir=snapshot.governance_dir,
                tasks_path=snapshot.tasks_path,
                task=task,
                project_score=project_score,
                project_latest_updated_at=project_latest,
                task_updated_at_ms=to_task_updated_at_ms(task.updated_at),
                task_priority=task_priority(task.status),
            ))
    return candidates


def _rank_key(candidate: ActionableTaskCandidate):
    return (
        -candidate.project_score,
        -candidate.task_priority,
        -candidate.task_updated_at_ms,
        candidate.governance_dir,
        candidate.task.id,
    )


def rank_actionable_task_candidates(candidates: Iterable[ActionableTaskCandidate]) -> List[ActionableTaskCandidate]:
    """Return a new list in the deterministic selection order (see ``RANK_RULE``)."""
    return sorted(candidates, key=_rank_key)
