"""Unit tests for Projitive data models.

This module tests the closed enums, task records and their nested
sub-state and blocker metadata.
"""

import pytest

from projitive.models import (
    ActionableTaskCandidate,
    Blocker,
    BlockerType,
    LintSuggestion,
    ProjectSnapshot,
    SubState,
    SubStatePhase,
    Task,
    TaskDocument,
    TaskStatus,
    is_valid_task_id,
)


class TestClosedEnums:
    """Test cases for the tolerant enum parser."""

    def test_parse_known_value(self):
        """Test parsing a known status string."""
        assert TaskStatus.parse("IN_PROGRESS") is TaskStatus.IN_PROGRESS
        assert TaskStatus.parse("  DONE ") is TaskStatus.DONE

    def test_parse_unknown_value(self):
        """Test that unknown values parse to None instead of raising."""
        assert TaskStatus.parse("done") is None
        assert TaskStatus.parse(None) is None
        assert BlockerType.parse(42) is None

    def test_parse_member_passthrough(self):
        """Test that members parse to themselves."""
        assert SubStatePhase.parse(SubStatePhase.TESTING) is SubStatePhase.TESTING

    def test_values(self):
        """Test listing enum values in declaration order."""
        assert TaskStatus.values() == ["TODO", "IN_PROGRESS", "BLOCKED", "DONE"]
        assert BlockerType.values() == [
            "internal_dependency",
            "external_dependency",
            "resource",
            "approval",
        ]
        assert SubStatePhase.is_valid("design")
        assert not SubStatePhase.is_valid("shipping")


class TestTaskId:
    """Test cases for task id validation."""

    @pytest.mark.parametrize("task_id", ["TASK-0001", "TASK-9999"])
    def test_valid_ids(self, task_id):
        """Test well-formed task ids."""
        assert is_valid_task_id(task_id)

    @pytest.mark.parametrize("task_id", ["TASK-001", "TASK-00001", "task-0001", "TASK-0001 ", "", None])
    def test_invalid_ids(self, task_id):
        """Test malformed task ids."""
        assert not is_valid_task_id(task_id)


class TestSubState:
    """Test cases for SubState."""

    def test_is_empty(self):
        """Test emptiness detection."""
        assert SubState().is_empty()
        assert not SubState(confidence=0.0).is_empty()

    def test_from_dict_drops_invalid_fields(self):
        """Test that out-of-range confidence and unknown phase are dropped."""
        sub_state = SubState.from_dict({"phase": "shipping", "confidence": 1.5})
        assert sub_state.phase is None
        assert sub_state.confidence is None
        assert sub_state.is_empty()

    def test_from_dict_accepts_camel_case(self):
        """Test reading estimatedCompletion in ledger spelling."""
        sub_state = SubState.from_dict({"phase": "testing", "estimatedCompletion": "2026-02-01"})
        assert sub_state.phase is SubStatePhase.TESTING
        assert sub_state.estimated_completion == "2026-02-01"

    def test_merged_prefers_updates(self):
        """Test that set fields on the update win and unset ones are kept."""
        current = SubState(SubStatePhase.DESIGN, 0.4, "2026-02-01")
        merged = current.merged(SubState(confidence=0.8))
        assert merged == SubState(SubStatePhase.DESIGN, 0.8, "2026-02-01")

    def test_to_dict_omits_unset(self):
        """Test dictionary serialization."""
        assert SubState(phase=SubStatePhase.TESTING).to_dict() == {"phase": "testing"}


class TestBlocker:
    """Test cases for Blocker."""

    def test_from_dict_keeps_unknown_type(self):
        """Test that an unknown type survives as a raw string for lint."""
        blocker = Blocker.from_dict({"type": "weather", "description": "storm"})
        assert blocker.type == "weather"
        assert BlockerType.parse(blocker.type) is None

    def test_from_dict_camel_case(self):
        """Test reading optional fields in ledger spelling."""
        blocker = Blocker.from_dict({
            "type": "approval",
            "description": "Needs sign-off",
            "blockingEntity": "security team",
        })
        assert blocker.type is BlockerType.APPROVAL
        assert blocker.blocking_entity == "security team"

    def test_unknown_sentinel(self):
        """Test the sentinel used for malformed ledger blockers."""
        blocker = Blocker.unknown()
        assert blocker.type is BlockerType.EXTERNAL_DEPENDENCY
        assert blocker.description == "Unknown blocker"

    def test_to_dict(self):
        """Test dictionary serialization."""
        blocker = Blocker(BlockerType.RESOURCE, "No GPU", unblock_condition="GPU quota granted")
        assert blocker.to_dict() == {
            "type": "resource",
            "description": "No GPU",
            "unblock_condition": "GPU quota granted",
        }


class TestTask:
    """Test cases for Task."""

    def test_defaults(self):
        """Test default field values."""
        task = Task(id="TASK-0001", title="Write docs")
        assert task.status is TaskStatus.TODO
        assert task.links == []
        assert task.sub_state is None
        assert task.blocker is None

    def test_header(self):
        """Test header line rendering."""
        task = Task(id="TASK-0002", title="Ship it", status=TaskStatus.IN_PROGRESS)
        assert task.header() == "TASK-0002 | IN_PROGRESS | Ship it"

    def test_is_actionable(self):
        """Test actionable status detection."""
        assert Task("TASK-0001", "a", TaskStatus.TODO).is_actionable()
        assert Task("TASK-0001", "a", TaskStatus.IN_PROGRESS).is_actionable()
        assert not Task("TASK-0001", "a", TaskStatus.BLOCKED).is_actionable()
        assert not Task("TASK-0001", "a", TaskStatus.DONE).is_actionable()

    def test_dict_round_trip(self):
        """Test to_dict and from_dict with nested metadata."""
        task = Task(
            id="TASK-0003",
            title="Blocked task",
            status=TaskStatus.BLOCKED,
            owner="alex",
            summary="Waiting",
            updated_at="2026-01-01T00:00:00.000Z",
            links=["./reports/a.md"],
            roadmap_refs=["ROADMAP-0001"],
            blocker=Blocker(BlockerType.APPROVAL, "Needs sign-off"),
        )
        restored = Task.from_dict(task.to_dict())
        assert restored == task

    def test_from_dict_unknown_status(self):
        """Test that an unknown status falls back to TODO."""
        task = Task.from_dict({"id": "TASK-0001", "title": "x", "status": "WAITING"})
        assert task.status is TaskStatus.TODO


class TestContainers:
    """Test cases for documents, snapshots and candidates."""

    def test_document_find(self):
        """Test finding the first task with an id."""
        first = Task("TASK-0001", "first")
        duplicate = Task("TASK-0001", "second")
        document = TaskDocument("tasks.md", [first, duplicate], "")
        assert document.find("TASK-0001") is first
        assert document.find("TASK-0002") is None

    def test_snapshot_count(self):
        """Test counting tasks by status."""
        snapshot = ProjectSnapshot("/p/.projitive", "/p/.projitive/tasks.md", [
            Task("TASK-0001", "a", TaskStatus.TODO),
            Task("TASK-0002", "b", TaskStatus.TODO),
            Task("TASK-0003", "c", TaskStatus.DONE),
        ])
        assert snapshot.count(TaskStatus.TODO) == 2
        assert snapshot.count(TaskStatus.BLOCKED) == 0

    def test_candidate_to_dict(self):
        """Test candidate serialization."""
        candidate = ActionableTaskCandidate(
            governance_dir="/p/.projitive",
            tasks_path="/p/.projitive/tasks.md",
            task=Task("TASK-0001", "a"),
            project_score=1,
            project_latest_updated_at="(unknown)",
            task_updated_at_ms=0,
            task_priority=1,
        )
        data = candidate.to_dict()
        assert data["task"]["id"] == "TASK-0001"
        assert data["project_score"] == 1

    def test_lint_suggestion_render(self):
        """Test lint line rendering with and without a hint."""
        assert LintSuggestion("CODE", "Message.").render() == "- [CODE] Message."
        assert LintSuggestion("CODE", "Message.", "Fix it.").render() == "- [CODE] Message. Fix it."
