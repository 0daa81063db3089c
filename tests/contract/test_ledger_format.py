"""
Contract test for the on-disk tasks.md format:
the rendered document layout, field order and placeholders are stable so
that humans and agents can edit the same file.
"""

from projitive.ledger import parse_tasks_block, render_tasks_markdown
from projitive.models import Blocker, BlockerType, SubState, SubStatePhase, Task, TaskStatus

EXPECTED = """# Tasks

This file is maintained by Projitive MCP. Keep the Markdown structure valid when editing by hand.

<!-- PROJITIVE:TASKS:START -->
## TASK-0001 | IN_PROGRESS | Implement ledger parser
- owner: alex
- summary: Parse marker-delimited sections
- updatedAt: 2026-01-02T03:04:05.000Z
- roadmapRefs: ROADMAP-0001, ROADMAP-0002
- links:
  - ./designs/parser.md
- subState:
  - phase: implementation
  - confidence: 0.6
  - estimatedCompletion: 2026-02-01
## TASK-0002 | BLOCKED | Publish release
- owner: (none)
- summary: Waiting on legal
- updatedAt: 2026-01-03T00:00:00.000Z
- roadmapRefs: (none)
- links:
  - (none)
- blocker:
  - type: approval
  - description: Legal review pending
  - blockingEntity: legal
  - unblockCondition: sign-off received
  - escalationPath: cto
<!-- PROJITIVE:TASKS:END -->
"""

TASKS = [
    Task(
        "TASK-0001",
        "Implement ledger parser",
        TaskStatus.IN_PROGRESS,
        owner="alex",
        summary="Parse marker-delimited sections",
        updated_at="2026-01-02T03:04:05.000Z",
        links=["./designs/parser.md"],
        roadmap_refs=["ROADMAP-0001", "ROADMAP-0002"],
        sub_state=SubState(SubStatePhase.IMPLEMENTATION, 0.6, "2026-02-01"),
    ),
    Task(
        "TASK-0002",
        "Publish release",
        TaskStatus.BLOCKED,
        summary="Waiting on legal",
        updated_at="2026-01-03T00:00:00.000Z",
        blocker=Blocker(BlockerType.APPROVAL, "Legal review pending", "legal", "sign-off received", "cto"),
    ),
]


class TestLedgerFormat:
    """Contract tests for tasks.md rendering."""

    def test_render_exact_document(self):
        """
        Contract Test: The rendered ledger matches the documented layout byte for byte.

        Given: Two tasks with nested metadata
        When: render_tasks_markdown is called
        Then: The output equals the reference document
        """
        assert render_tasks_markdown(TASKS) == EXPECTED

    def test_reference_document_parses_back(self):
        """
        Contract Test: The reference document parses to the same tasks.

        Given: The reference tasks.md text
        When: parse_tasks_block is called
        Then: The original records are returned
        """
        assert parse_tasks_block(EXPECTED) == TASKS

    def test_hand_edited_surroundings_ignored(self):
        """
        Contract Test: Text outside the marker region does not affect parsing.

        Given: Extra prose and headings around the marker block
        When: parse_tasks_block is called
        Then: Only the marker region contributes tasks
        """
        edited = "# Notes\n## TASK-0009 | TODO | Not a task\n\n" + EXPECTED + "\n## Appendix\n"
        assert [task.id for task in parse_tasks_block(edited)] == ["TASK-0001", "TASK-0002"]
