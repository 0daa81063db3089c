"""Data models for the Projitive governance ledger.

This module contains the core data structures used throughout Projitive,
representing tasks, their nested progress and blocker metadata, ranking
candidates, lint suggestions and confidence scores.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


TASK_ID_REGEX = re.compile(r"^TASK-\d{4}$")


class _ClosedEnum(str, Enum):
    """String enum with a single tolerant parser shared by every call site."""

    @classmethod
    def parse(cls, value: Any) -> Optional["_ClosedEnum"]:
        """Return the member for ``value`` or None when it is not recognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return cls.parse(value) is not None

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class TaskStatus(_ClosedEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"


class SubStatePhase(_ClosedEnum):
    """Phase of work within IN_PROGRESS state."""

    DISCOVERY = "discovery"
    DESIGN = "design"
    IMPLEMENTATION = "implementation"
    TESTING = "testing"


class BlockerType(_ClosedEnum):
    INTERNAL_DEPENDENCY = "internal_dependency"
    EXTERNAL_DEPENDENCY = "external_dependency"
    RESOURCE = "resource"
    APPROVAL = "approval"


class Recommendation(_ClosedEnum):
    AUTO_CREATE = "auto_create"
    REVIEW_REQUIRED = "review_required"
    DO_NOT_CREATE = "do_not_create"


def is_valid_task_id(task_id: Any) -> bool:
    """Check the TASK-#### id format."""
    return isinstance(task_id, str) and TASK_ID_REGEX.match(task_id) is not None


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(slots=True)
class SubState:
    """Progress metadata for an IN_PROGRESS task."""

    phase: Optional[SubStatePhase] = None
    confidence: Optional[float] = None
    estimated_completion: Optional[str] = None

    def is_empty(self) -> bool:
        """True when no sub-field survived parsing."""
        return self.phase is None and self.confidence is None and not self.estimated_completion

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation, omitting unset fields."""
        data: Dict[str, Any] = {}
        if self.phase is not None:
            data["phase"] = _enum_value(self.phase)
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.estimated_completion:
            data["estimated_completion"] = self.estimated_completion
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubState":
        """Create from dictionary representation, dropping invalid sub-fields."""
        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = None
        elif not 0 <= confidence <= 1:
            confidence = None
        estimated = data.get("estimated_completion", data.get("estimatedCompletion"))
        return cls(
            phase=SubStatePhase.parse(data.get("phase")),
            confidence=float(confidence) if confidence is not None else None,
            estimated_completion=str(estimated) if estimated else None,
        )

    def merged(self, updates: "SubState") -> "SubState":
        """Return a copy with every field set on ``updates`` taking precedence."""
        return SubState(
            phase=updates.phase if updates.phase is not None else self.phase,
            confidence=updates.confidence if updates.confidence is not None else self.confidence,
            estimated_completion=updates.estimated_completion or self.estimated_completion,
        )


@dataclass(slots=True)
class Blocker:
    """Structured reason for a BLOCKED task."""

    type: BlockerType
    description: str
    blocking_entity: Optional[str] = None
    unblock_condition: Optional[str] = None
    escalation_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation, omitting unset optional fields."""
        data: Dict[str, Any] = {
            "type": _enum_value(self.type),
            "description": self.description,
        }
        if self.blocking_entity:
            data["blocking_entity"] = self.blocking_entity
        if self.unblock_condition:
            data["unblock_condition"] = self.unblock_condition
        if self.escalation_path:
            data["escalation_path"] = self.escalation_path
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Blocker":
        """Create from dictionary representation.

        The type is parsed through ``BlockerType``; an unknown value is kept
        as the raw string so that lint can report it.
        """
        raw_type = data.get("type")
        parsed = BlockerType.parse(raw_type)
        return cls(
            type=parsed if parsed is not None else str(raw_type or ""),
            description=str(data.get("description") or ""),
            blocking_entity=data.get("blocking_entity") or data.get("blockingEntity"),
            unblock_condition=data.get("unblock_condition") or data.get("unblockCondition"),
            escalation_path=data.get("escalation_path") or data.get("escalationPath"),
        )

    @classmethod
    def unknown(cls) -> "Blocker":
        """Sentinel used when a ledger blocker block lacks its required fields."""
        return cls(type=BlockerType.EXTERNAL_DEPENDENCY, description="Unknown blocker")


@dataclass(slots=True)
class Task:
    """One unit of work inside a ledger."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.TODO
    owner: str = ""
    summary: str = ""
    updated_at: str = ""
    links: List[str] = field(default_factory=list)
    roadmap_refs: List[str] = field(default_factory=list)
    sub_state: Optional[SubState] = None
    blocker: Optional[Blocker] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": _enum_value(self.status),
            "owner": self.owner,
            "summary": self.summary,
            "updated_at": self.updated_at,
            "links": list(self.links),
            "roadmap_refs": list(self.roadmap_refs),
        }
        if self.sub_state is not None:
            data["sub_state"] = self.sub_state.to_dict()
        if self.blocker is not None:
            data["blocker"] = self.blocker.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from dictionary representation.

        The result is not normalized; pass it through
        ``projitive.ledger.normalize_task`` before relying on its invariants.
        """
        sub_state = data.get("sub_state")
        blocker = data.get("blocker")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            status=TaskStatus.parse(data.get("status")) or TaskStatus.TODO,
            owner=data.get("owner") or "",
            summary=data.get("summary") or "",
            updated_at=data.get("updated_at") or "",
            links=list(data.get("links") or []),
            roadmap_refs=list(data.get("roadmap_refs") or []),
            sub_state=SubState.from_dict(sub_state) if isinstance(sub_state, dict) else None,
            blocker=Blocker.from_dict(blocker) if isinstance(blocker, dict) else None,
        )

    def is_actionable(self) -> bool:
        """Check if task is eligible for next-work selection."""
        return self.status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)

    def header(self) -> str:
        return f"{self.id} | {_enum_value(self.status)} | {self.title}"


@dataclass(slots=True)
class TaskDocument:
    """A loaded ledger file together with its raw markdown."""

    tasks_path: str
    tasks: List[Task]
    markdown: str

    def find(self, task_id: str) -> Optional[Task]:
        """Return the first task with ``task_id``, if any."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


@dataclass(slots=True)
class ProjectSnapshot:
    """One project's task population as gathered by a directory scan."""

    governance_dir: str
    tasks_path: str
    tasks: List[Task] = field(default_factory=list)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for task in self.tasks if task.status == status)


@dataclass(slots=True, frozen=True)
class ActionableTaskCandidate:
    """A task joined with its owning project's aggregate ranking signals."""

    governance_dir: str
    tasks_path: str
    task: Task
    project_score: int
    project_latest_updated_at: str
    task_updated_at_ms: int
    task_priority: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "governance_dir": self.governance_dir,
            "tasks_path": self.tasks_path,
            "task": self.task.to_dict(),
            "project_score": self.project_score,
            "project_latest_updated_at": self.project_latest_updated_at,
            "task_updated_at_ms": self.task_updated_at_ms,
            "task_priority": self.task_priority,
        }


@dataclass(slots=True, frozen=True)
class LintSuggestion:
    """Advisory, code-tagged hygiene diagnostic."""

    code: str
    message: str
    fix_hint: Optional[str] = None

    def render(self) -> str:
        suffix = f" {self.fix_hint}" if self.fix_hint else ""
        return f"- [{self.code}] {self.message}{suffix}"


@dataclass(slots=True)
class ConfidenceFactors:
    context_completeness: float
    similar_task_history: float
    specification_clarity: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "context_completeness": self.context_completeness,
            "similar_task_history": self.similar_task_history,
            "specification_clarity": self.specification_clarity,
        }


@dataclass(slots=True)
class ConfidenceScore:
    """Result of the auto-create confidence heuristic."""

    score: float
    factors: ConfidenceFactors
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "score": self.score,
            "factors": self.factors.to_dict(),
            "recommendation": self.recommendation.value,
        }


@dataclass(slots=True)
class PreCreationValidation:
    passed: bool
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "issues": list(self.issues)}
