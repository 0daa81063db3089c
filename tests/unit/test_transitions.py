"""Unit tests for the task status state machine and its errors."""

import pytest

from projitive.errors import InvalidTransitionError, ProjitiveError, TaskError
from projitive.models import TaskStatus
from projitive.transitions import ALLOWED_TRANSITIONS, ensure_transition, validate_transition


class TestValidateTransition:
    """Test cases for validate_transition."""

    @pytest.mark.parametrize("status", list(TaskStatus))
    def test_self_transition_allowed(self, status):
        """Test that staying in the same status is always allowed."""
        assert validate_transition(status, status)

    def test_done_is_terminal(self):
        """Test that nothing leaves DONE."""
        assert ALLOWED_TRANSITIONS[TaskStatus.DONE] == frozenset()
        for target in (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED):
            assert not validate_transition(TaskStatus.DONE, target)

    def test_todo_cannot_skip_to_done(self):
        """Test that work must start before it finishes."""
        assert not validate_transition(TaskStatus.TODO, TaskStatus.DONE)

    def test_accepts_strings(self):
        """Test that raw status strings are parsed."""
        assert validate_transition("BLOCKED", "TODO")

    def test_unknown_status(self):
        """Test that unknown statuses are never valid endpoints."""
        assert not validate_transition("WAITING", TaskStatus.TODO)
        assert not validate_transition(TaskStatus.TODO, "WAITING")


class TestEnsureTransition:
    """Test cases for ensure_transition."""

    def test_allowed_returns_none(self):
        """Test that allowed transitions pass silently."""
        assert ensure_transition(TaskStatus.IN_PROGRESS, TaskStatus.DONE) is None

    def test_rejected_raises(self):
        """Test the error raised for a forbidden transition."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(TaskStatus.DONE, TaskStatus.TODO, "TASK-0001")

        error = exc_info.value
        assert isinstance(error, TaskError)
        assert isinstance(error, ProjitiveError)
        assert error.code == "INVALID_TRANSITION"
        assert error.message == "Invalid status transition from DONE to TODO"
        assert error.details == {"from": "DONE", "to": "TODO", "task_id": "TASK-0001"}
        assert error.to_dict()["code"] == "INVALID_TRANSITION"
