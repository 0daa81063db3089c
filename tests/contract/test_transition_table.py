"""
Contract test for the task status state machine:
every status pair is either allowed or rejected exactly as the governance
workflow documents it, both in the pure check and through task_update.
"""

import itertools

import pytest

from projitive.config import ScanConfig
from projitive.errors import InvalidTransitionError
from projitive.models import Task, TaskStatus
from projitive.transitions import validate_transition
from projitive.workflow import GovernanceWorkflow
from projitive.workspace import Workspace, initialize_project

TODO = TaskStatus.TODO
IN_PROGRESS = TaskStatus.IN_PROGRESS
BLOCKED = TaskStatus.BLOCKED
DONE = TaskStatus.DONE

ALLOWED = {
    (TODO, TODO), (TODO, IN_PROGRESS), (TODO, BLOCKED),
    (IN_PROGRESS, IN_PROGRESS), (IN_PROGRESS, BLOCKED), (IN_PROGRESS, DONE),
    (BLOCKED, BLOCKED), (BLOCKED, IN_PROGRESS), (BLOCKED, TODO),
    (DONE, DONE),
}

ALL_PAIRS = list(itertools.product(TaskStatus, TaskStatus))


class TestTransitionTable:
    """Contract tests for the full 4x4 transition table."""

    @pytest.mark.parametrize("source,target", ALL_PAIRS)
    def test_validate_transition(self, source, target):
        """
        Contract Test: validate_transition matches the documented table.

        Given: Any pair of statuses
        When: validate_transition is called
        Then: It returns True exactly for the allowed pairs
        """
        assert validate_transition(source, target) == ((source, target) in ALLOWED)

    @pytest.mark.parametrize("source,target", ALL_PAIRS)
    def test_task_update_enforces_table(self, tmp_path, source, target):
        """
        Contract Test: task_update applies allowed transitions and rejects the rest.

        Given: A ledger with one task in the source status
        When: task_update requests the target status
        Then: Allowed pairs are persisted; forbidden pairs raise and leave the file unchanged
        """
        initialize_project(tmp_path)
        workspace = Workspace(tmp_path / ".projitive")
        workspace.save_tasks([Task(
            "TASK-0001", "Contract task", source,
            owner="alex", summary="s", updated_at="2026-01-01T00:00:00.000Z",
        )])
        before = workspace.tasks_path.read_text()
        workflow = GovernanceWorkflow(ScanConfig(tmp_path))

        if (source, target) in ALLOWED:
            workflow.task_update(str(tmp_path), "TASK-0001", {"status": target.value})
            assert workspace.load_tasks().find("TASK-0001").status is target
        else:
            with pytest.raises(InvalidTransitionError, match=f"from {source.value} to {target.value}"):
                workflow.task_update(str(tmp_path), "TASK-0001", {"status": target.value})
            assert workspace.tasks_path.read_text() == before
