"""Task status state machine."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional

from .errors import InvalidTransitionError
from .models import TaskStatus

logger = logging.getLogger("projitive.transitions")


ALLOWED_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.BLOCKED, TaskStatus.DONE}),
    TaskStatus.BLOCKED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.TODO}),
    TaskStatus.DONE: frozenset(),
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Return True when moving from ``from_status`` to ``to_status`` is allowed.

    Staying in the same status is always allowed. DONE is terminal.
    Unrecognized statuses are never valid endpoints.
    """
    source = TaskStatus.parse(from_status)
    target = TaskStatus.parse(to_status)
    if source is None or target is None:
        return False
    if source == target:
        return True
    return target in ALLOWED_TRANSITIONS[source]


def ensure_transition(from_status: TaskStatus, to_status: TaskStatus, task_id: Optional[str] = None) -> None:
    """Raise ``InvalidTransitionError`` unless the transition is allowed."""
    if not validate_transition(from_status, to_status):
        source = getattr(from_status, "value", from_status)
        target = getattr(to_status, "value", to_status)
        logger.debug("Rejected transition %s -> %s for %s", source, target, task_id or "(unknown)")
        raise InvalidTransitionError(str(source), str(target), task_id)
