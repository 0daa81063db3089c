"""Unit tests for roadmap ids and traceability lint."""

from projitive.models import Task
from projitive.roadmap import (
    ROADMAP_IDS_EMPTY,
    ROADMAP_TASK_REFS_EMPTY,
    ROADMAP_TASKS_EMPTY,
    ROADMAP_UNKNOWN_REFS,
    ROADMAP_ZERO_LINKED_TASKS,
    collect_roadmap_lint_suggestions,
    extract_roadmap_ids,
    is_valid_roadmap_id,
    linked_tasks,
)


def task(task_id, *refs):
    return Task(task_id, "t", updated_at="2026-01-01", roadmap_refs=list(refs))


class TestRoadmapIds:
    """Test cases for roadmap id helpers."""

    def test_is_valid(self):
        """Test id format checks."""
        assert is_valid_roadmap_id("ROADMAP-0001")
        assert not is_valid_roadmap_id("ROADMAP-1")
        assert not is_valid_roadmap_id(None)

    def test_extract_unique_in_order(self):
        """Test scanning roadmap markdown."""
        markdown = "- [ ] ROADMAP-0002: b\n- [x] ROADMAP-0001: a\nsee ROADMAP-0002"
        assert extract_roadmap_ids(markdown) == ["ROADMAP-0002", "ROADMAP-0001"]

    def test_linked_tasks(self):
        """Test selecting tasks bound to a milestone."""
        tasks = [task("TASK-0001", "ROADMAP-0001"), task("TASK-0002")]
        assert [t.id for t in linked_tasks("ROADMAP-0001", tasks)] == ["TASK-0001"]


class TestRoadmapLint:
    """Test cases for collect_roadmap_lint_suggestions."""

    def test_empty_everything(self):
        """Test that missing tasks short-circuit the remaining rules."""
        items = collect_roadmap_lint_suggestions([], [])
        assert [item.code for item in items] == [ROADMAP_IDS_EMPTY, ROADMAP_TASKS_EMPTY]

    def test_clean(self):
        """Test a fully bound roadmap."""
        assert collect_roadmap_lint_suggestions(["ROADMAP-0001"], [task("TASK-0001", "ROADMAP-0001")]) == []

    def test_unbound_unknown_and_orphans(self):
        """Test the traceability rules together."""
        tasks = [task("TASK-0001"), task("TASK-0002", "ROADMAP-0009", "ROADMAP-0001")]
        roadmap_ids = ["ROADMAP-0001", "ROADMAP-0002", "ROADMAP-0003", "ROADMAP-0004", "ROADMAP-0005"]
        items = collect_roadmap_lint_suggestions(roadmap_ids, tasks)

        assert [item.code for item in items] == [
            ROADMAP_TASK_REFS_EMPTY,
            ROADMAP_UNKNOWN_REFS,
            ROADMAP_ZERO_LINKED_TASKS,
        ]
        assert items[1].message == "Unknown roadmapRefs detected: ROADMAP-0009."
        assert items[2].message == "4 roadmap ID(s) have zero linked tasks."
        assert items[2].fix_hint == "Consider binding tasks to: ROADMAP-0002, ROADMAP-0003, ROADMAP-0004, ...."
