"""Unit tests for governance root discovery and ledger file access."""

import pytest

from projitive.config import ScanConfig
from projitive.errors import GovernanceRootNotFoundError, ProjectPathError
from projitive.ledger import TASKS_END, TASKS_START, parse_tasks_block
from projitive.linter import TASK_LINK_TARGET_MISSING
from projitive.models import Task, TaskStatus
from projitive.workspace import (
    DEFAULT_NO_TASK_DISCOVERY_GUIDANCE,
    NO_TASK_DISCOVERY_HOOK_FILE,
    Workspace,
    discover_projects,
    initialize_project,
    normalize_governance_dir_name,
    resolve_governance_dir,
    to_project_path,
)


def make_root(directory):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / ".projitive").write_text("")
    return directory


class TestResolveGovernanceDir:
    """Test cases for resolve_governance_dir."""

    def test_directory_with_marker(self, tmp_path):
        """Test resolving a governance dir directly."""
        root = make_root(tmp_path / "proj" / ".projitive")
        assert resolve_governance_dir(root) == root.resolve()

    def test_project_dir_uses_child(self, tmp_path):
        """Test resolving from the project directory."""
        root = make_root(tmp_path / "proj" / ".projitive")
        assert resolve_governance_dir(tmp_path / "proj") == root.resolve()

    def test_walks_upward_from_file(self, tmp_path):
        """Test resolving from a nested source file."""
        root = make_root(tmp_path / "proj" / ".projitive")
        source = tmp_path / "proj" / "src" / "pkg" / "mod.py"
        source.parent.mkdir(parents=True)
        source.write_text("")
        assert resolve_governance_dir(source) == root.resolve()

    def test_prefers_default_child(self, tmp_path):
        """Test that .projitive wins over other marked children."""
        make_root(tmp_path / "proj" / "governance")
        root = make_root(tmp_path / "proj" / ".projitive")
        assert resolve_governance_dir(tmp_path / "proj") == root.resolve()

    def test_multiple_children_ambiguous(self, tmp_path):
        """Test the error for two non-default marked children."""
        make_root(tmp_path / "proj" / "gov-a")
        make_root(tmp_path / "proj" / "gov-b")
        with pytest.raises(ProjectPathError):
            resolve_governance_dir(tmp_path / "proj")

    def test_marker_directory_is_not_a_marker(self, tmp_path):
        """Test that only a marker file counts."""
        (tmp_path / "proj" / ".projitive" / ".projitive").mkdir(parents=True)
        with pytest.raises(GovernanceRootNotFoundError):
            resolve_governance_dir(tmp_path / "proj")

    def test_missing_path(self, tmp_path):
        """Test the error for a path that does not exist."""
        with pytest.raises(ProjectPathError) as exc_info:
            resolve_governance_dir(tmp_path / "nope")
        assert exc_info.value.code == "PROJECT_PATH_INVALID"

    def test_to_project_path(self, tmp_path):
        """Test mapping a governance dir back to its project."""
        assert to_project_path(tmp_path / "proj" / ".projitive") == str(tmp_path / "proj")


class TestDiscoverProjects:
    """Test cases for discover_projects."""

    def test_finds_roots_sorted(self, tmp_path):
        """Test discovery across sibling projects."""
        b = make_root(tmp_path / "b" / ".projitive")
        a = make_root(tmp_path / "a" / ".projitive")
        assert discover_projects(ScanConfig(tmp_path, 3)) == sorted([str(a.resolve()), str(b.resolve())])

    def test_respects_depth(self, tmp_path):
        """Test that roots beyond max depth are not found."""
        make_root(tmp_path / "l1" / "l2" / "l3" / "proj" / ".projitive")
        assert discover_projects(ScanConfig(tmp_path, 3)) == []
        assert len(discover_projects(ScanConfig(tmp_path, 4))) == 1

    def test_skips_ignored_dirs(self, tmp_path):
        """Test that dependency and build folders are not walked."""
        make_root(tmp_path / "node_modules" / "pkg" / ".projitive")
        make_root(tmp_path / "build" / "out" / ".projitive")
        assert discover_projects(ScanConfig(tmp_path, 5)) == []

    def test_empty_tree(self, tmp_path):
        """Test an empty scan root."""
        assert discover_projects(ScanConfig(tmp_path)) == []


class TestWorkspaceLedger:
    """Test cases for Workspace ledger I/O."""

    def test_load_creates_empty_ledger(self, tmp_path):
        """Test that a missing tasks.md is created on load."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        document = workspace.load_tasks()
        assert document.tasks == []
        assert workspace.tasks_path.is_file()
        assert "(no tasks)" in document.markdown

    def test_save_normalizes(self, tmp_path):
        """Test that saved tasks are normalized before writing."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        workspace.save_tasks([Task("TASK-0001", " ", status="bogus", roadmap_refs=["bad", "ROADMAP-0001"])])

        tasks = parse_tasks_block(workspace.tasks_path.read_text())
        assert tasks[0].title == "TASK-0001"
        assert tasks[0].status is TaskStatus.TODO
        assert tasks[0].roadmap_refs == ["ROADMAP-0001"]

    def test_round_trip(self, tmp_path):
        """Test save followed by load."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        task = Task("TASK-0002", "Write docs", TaskStatus.IN_PROGRESS, owner="sam", updated_at="2026-01-01T00:00:00.000Z")
        workspace.save_tasks([task])
        assert workspace.load_tasks().find("TASK-0002") == task

    def test_read_roadmap_ids(self, tmp_path):
        """Test reading milestone ids."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        assert workspace.read_roadmap_ids() == []
        workspace.roadmap_path.write_text("- ROADMAP-0002\n- ROADMAP-0001\n")
        assert workspace.read_roadmap_ids() == ["ROADMAP-0002", "ROADMAP-0001"]


class TestWorkspaceArtifacts:
    """Test cases for artifact discovery and references."""

    def test_discover_artifacts(self, tmp_path):
        """Test reporting files and markdown under artifact directories."""
        governance = make_root(tmp_path / ".projitive")
        (governance / "README.md").write_text("one\ntwo\n")
        (governance / "designs").mkdir()
        (governance / "designs" / "parser.md").write_text("TASK-0001\n")

        artifacts = {a.name: a for a in Workspace(governance).discover_artifacts()}
        assert artifacts["README.md"].exists
        assert artifacts["README.md"].line_count == 2
        assert not artifacts["roadmap.md"].exists
        assert artifacts["designs"].markdown_files[0]["line_count"] == 1
        assert artifacts["reports"].render().startswith("- [no] reports/")

    def test_collect_references(self, tmp_path):
        """Test locating id mentions across governance markdown."""
        governance = make_root(tmp_path / ".projitive")
        (governance / "reports").mkdir()
        (governance / "reports" / "r1.md").write_text("intro\n  Done TASK-0003 today \n")
        workspace = Workspace(governance)

        references = workspace.collect_references("TASK-0003")
        assert len(references) == 1
        assert references[0].line == 2
        assert references[0].text == "Done TASK-0003 today"
        assert references[0].render().endswith("r1.md#L2: Done TASK-0003 today")

    def test_link_lint(self, tmp_path):
        """Test missing local link targets; remote links are skipped."""
        governance = make_root(tmp_path / ".projitive")
        (governance / "designs").mkdir()
        (governance / "designs" / "ok.md").write_text("")
        task = Task("TASK-0001", "x", links=["./designs/ok.md", "./designs/missing.md", "https://example.com"])

        items = Workspace(governance).collect_link_lint_suggestions(task)
        assert [item.code for item in items] == [TASK_LINK_TARGET_MISSING]
        assert "./designs/missing.md" in items[0].message


class TestWorkspaceHooks:
    """Test cases for hook files."""

    def test_default_discovery_guidance(self, tmp_path):
        """Test the built-in checklist when no hook exists."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        assert workspace.no_task_discovery_guidance() == DEFAULT_NO_TASK_DISCOVERY_GUIDANCE

    def test_hook_checklist(self, tmp_path):
        """Test reading list items from the hook file."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        workspace.hooks_dir.mkdir()
        (workspace.hooks_dir / NO_TASK_DISCOVERY_HOOK_FILE).write_text("Objective:\n* audit logs\n- check tests\n")
        assert workspace.no_task_discovery_guidance() == ["- audit logs", "- check tests"]

    def test_validation_hook_created_once(self, tmp_path):
        """Test creating and then reading back the validation hook."""
        workspace = Workspace(make_root(tmp_path / ".projitive"))
        content = workspace.get_or_create_validation_hook()
        assert content.startswith("# Task Auto-Create Validation Hook")
        hook = workspace.hooks_dir / "task_auto_create_validation.md"
        hook.write_text("custom")
        assert workspace.get_or_create_validation_hook() == "custom"


class TestInitializeProject:
    """Test cases for initialize_project."""

    def test_creates_layout(self, tmp_path):
        """Test bootstrapping a fresh project."""
        result = initialize_project(tmp_path)
        governance = tmp_path.resolve() / ".projitive"

        assert result.governance_dir == str(governance)
        assert (governance / ".projitive").is_file()
        for name in ("designs", "reports", "hooks"):
            assert (governance / name).is_dir()
        assert len(result.files_with("created")) == 5

        tasks = parse_tasks_block((governance / "tasks.md").read_text())
        assert [(t.id, t.owner, t.roadmap_refs) for t in tasks] == [("TASK-0001", "unassigned", ["ROADMAP-0001"])]
        assert resolve_governance_dir(tmp_path) == governance

    def test_skips_existing_without_force(self, tmp_path):
        """Test that a second run leaves files alone."""
        initialize_project(tmp_path)
        (tmp_path / ".projitive" / "README.md").write_text("mine")

        result = initialize_project(tmp_path)
        assert len(result.files_with("skipped")) == 5
        assert (tmp_path / ".projitive" / "README.md").read_text() == "mine"

    def test_force_overwrites(self, tmp_path):
        """Test overwriting templates with force."""
        initialize_project(tmp_path)
        result = initialize_project(tmp_path, force=True)
        assert len(result.files_with("updated")) == 5

    def test_custom_governance_dir(self, tmp_path):
        """Test a non-default governance directory name."""
        result = initialize_project(tmp_path, "governance")
        assert result.governance_dir.endswith("governance")
        assert f"{TASKS_START}" in (tmp_path / "governance" / "tasks.md").read_text()
        assert f"{TASKS_END}" in (tmp_path / "governance" / "tasks.md").read_text()

    @pytest.mark.parametrize("name", ["../escape", "a/b", "..", "/abs"])
    def test_invalid_governance_dir_name(self, name):
        """Test rejected directory names."""
        with pytest.raises(ProjectPathError):
            normalize_governance_dir_name(name)

    def test_missing_project_path(self, tmp_path):
        """Test the error for a missing project directory."""
        with pytest.raises(ProjectPathError):
            initialize_project(tmp_path / "missing")
