"""Filesystem collaborators for Projitive governance roots.

A governance root is a directory holding a ``.projitive`` marker file
alongside ``tasks.md``, ``roadmap.md`` and friends. This module locates
those roots, discovers them across a directory tree, and reads and writes
the ledger files inside them.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import ScanConfig
from .confidence import (
    DEFAULT_TASK_AUTO_CREATE_VALIDATION_HOOK,
    validation_hook_path,
)
from .errors import GovernanceRootNotFoundError, ProjectPathError
from .ledger import parse_tasks_block, render_tasks_markdown, normalize_task
from .linter import TASK_LINK_TARGET_MISSING
from .models import LintSuggestion, Task, TaskDocument, TaskStatus
from .projitive_logging import (
    log_ledger_loaded,
    log_ledger_saved,
    log_operation,
    log_performance,
)
from .roadmap import extract_roadmap_ids
from .timestamps import now_iso

logger = logging.getLogger("projitive.workspace")

PathLike = Union[str, Path]

PROJECT_MARKER = ".projitive"
DEFAULT_GOVERNANCE_DIR = ".projitive"
IGNORED_DIR_NAMES = frozenset({"node_modules", ".git", ".next", "dist", "build"})

NO_TASK_DISCOVERY_HOOK_FILE = "task_no_actionable.md"

DEFAULT_NO_TASK_DISCOVERY_GUIDANCE = [
    "- Check whether current code violates project guide/spec conventions; create TODO tasks for each actionable gap.",
    "- Check unit/integration test coverage and identify high-value missing tests; create TODO tasks for meaningful coverage improvements.",
    "- Check development/testing workflow for bottlenecks (slow feedback, fragile scripts, unclear runbooks); create TODO tasks to improve reliability.",
    "- Scan for TODO/FIXME/HACK comments and convert feasible items into governed TODO tasks with evidence links.",
    "- Check dependency freshness and security advisories; create tasks for safe upgrades when needed.",
    "- Check repeated manual operations that can be automated (lint/test/release checks); create tasks to reduce operational toil.",
]

HOOK_CHECKLIST_REGEX = re.compile(r"^[-*+]\s+")
HTTP_LINK_REGEX = re.compile(r"^https?://", re.IGNORECASE)


# ----------------------------------------------------------------------
# Governance root resolution
# ----------------------------------------------------------------------


def has_project_marker(directory: PathLike) -> bool:
    """True when ``directory`` holds a ``.projitive`` marker *file*."""
    return (Path(directory) / PROJECT_MARKER).is_file()


def to_project_path(governance_dir: PathLike) -> str:
    """The project directory that owns ``governance_dir``."""
    return str(Path(governance_dir).parent)


def _child_dirs(parent: Path) -> List[Path]:
    try:
        return [entry for entry in parent.iterdir() if entry.is_dir()]
    except OSError:
        return []


def _child_governance_dirs(parent: Path) -> List[Path]:
    return sorted(child for child in _child_dirs(parent) if has_project_marker(child))


def _resolve_child_governance_dir(parent: Path) -> Optional[Path]:
    candidates = _child_governance_dirs(parent)
    if not candidates:
        return None
    preferred = parent / DEFAULT_GOVERNANCE_DIR
    if preferred in candidates:
        return preferred
    if len(candidates) == 1:
        return candidates[0]
    raise ProjectPathError(
        f"Multiple governance roots found under path: {parent}. Use projectPath/governanceDir explicitly.",
        str(parent),
    )


def resolve_governance_dir(input_path: PathLike) -> Path:
    """Walk upward from ``input_path`` to the nearest governance root.

    At each level the directory itself wins if it carries the marker;
    otherwise a marked child directory is used, preferring ``.projitive``.
    """
    absolute = Path(input_path).expanduser().resolve()
    if not absolute.exists():
        raise ProjectPathError(f"Path not found: {absolute}", str(absolute))

    cursor: Optional[Path] = absolute if absolute.is_dir() else absolute.parent
    while cursor is not None:
        if has_project_marker(cursor):
            return cursor
        child = _resolve_child_governance_dir(cursor)
        if child is not None:
            return child
        cursor = cursor.parent if cursor.parent != cursor else None

    raise GovernanceRootNotFoundError(str(absolute))


@log_performance("discover_projects")
def discover_projects(config: ScanConfig) -> List[str]:
    """Depth-limited search for governance roots under ``config.root``."""
    results = set()

    def walk(current: Path, depth: int) -> None:
        if depth > config.max_depth:
            return
        if has_project_marker(current):
            results.add(str(current))
        children = _child_dirs(current)
        for child in children:
            if has_project_marker(child):
                results.add(str(child))
        for child in children:
            if child.name not in IGNORED_DIR_NAMES:
                walk(child, depth + 1)

    walk(config.root, 0)
    projects = sorted(results)
    logger.debug(f"Discovered {len(projects)} governance root(s) under {config.root}")
    return projects


# ----------------------------------------------------------------------
# Workspace
# ----------------------------------------------------------------------


@dataclass(slots=True)
class GovernanceArtifact:
    name: str
    kind: str
    path: str
    exists: bool
    line_count: Optional[int] = None
    markdown_files: List[Dict[str, Any]] = field(default_factory=list)

    def render(self) -> str:
        mark = "yes" if self.exists else "no"
        if self.kind == "file":
            lines = "-" if self.line_count is None else str(self.line_count)
            return f"- [{mark}] {self.name} | path: {self.path} | lineCount: {lines}"
        text = f"- [{mark}] {self.name}/ | path: {self.path}"
        nested = [f"  - {entry['path']} (lines: {entry['line_count']})" for entry in self.markdown_files]
        return "\n".join([text, *nested])


@dataclass(slots=True, frozen=True)
class TextReference:
    file_path: str
    line: int
    text: str

    def render(self) -> str:
        return f"- {self.file_path}#L{self.line}: {self.text}"


def _line_count(path: Path) -> int:
    return len(path.read_text(encoding="utf-8", errors="replace").splitlines())


class Workspace:
    """File access for a single governance root."""

    ARTIFACT_FILES = ("README.md", "roadmap.md", "tasks.md")
    ARTIFACT_DIRS = ("designs", "reports", "hooks")

    def __init__(self, governance_dir: PathLike):
        self.governance_dir = Path(governance_dir).resolve()

    @classmethod
    def locate(cls, input_path: PathLike) -> "Workspace":
        return cls(resolve_governance_dir(input_path))

    @property
    def tasks_path(self) -> Path:
        return self.governance_dir / "tasks.md"

    @property
    def roadmap_path(self) -> Path:
        return self.governance_dir / "roadmap.md"

    @property
    def hooks_dir(self) -> Path:
        return self.governance_dir / "hooks"

    @property
    def project_path(self) -> str:
        return to_project_path(self.governance_dir)

    # ------------------------------------------------------------------
    # Ledger I/O
    # ------------------------------------------------------------------

    def ensure_tasks_file(self) -> Path:
        """Create an empty ledger if ``tasks.md`` does not exist yet."""
        self.governance_dir.mkdir(parents=True, exist_ok=True)
        if not self.tasks_path.exists():
            self.tasks_path.write_text(render_tasks_markdown([]), encoding="utf-8")
            logger.info(f"Created empty ledger at {self.tasks_path}")
        return self.tasks_path

    def load_tasks(self) -> TaskDocument:
        tasks_path = self.ensure_tasks_file()
        markdown = tasks_path.read_text(encoding="utf-8", errors="replace")
        tasks = parse_tasks_block(markdown)
        log_ledger_loaded(str(self.governance_dir), str(tasks_path), len(tasks))
        return TaskDocument(tasks_path=str(tasks_path), tasks=tasks, markdown=markdown)

    def save_tasks(self, tasks: List[Task]) -> Path:
        """Normalize ``tasks`` and rewrite the whole ledger file."""
        normalized = [normalize_task(task) for task in tasks]
        with log_operation("save_tasks", tasks_path=str(self.tasks_path), task_count=len(normalized)):
            self.governance_dir.mkdir(parents=True, exist_ok=True)
            self.tasks_path.write_text(render_tasks_markdown(normalized), encoding="utf-8")
        log_ledger_saved(str(self.governance_dir), str(self.tasks_path), len(normalized))
        return self.tasks_path

    def read_roadmap_ids(self) -> List[str]:
        if not self.roadmap_path.is_file():
            return []
        return extract_roadmap_ids(self.roadmap_path.read_text(encoding="utf-8", errors="replace"))

    # ------------------------------------------------------------------
    # Artifacts and references
    # ------------------------------------------------------------------

    def discover_artifacts(self) -> List[GovernanceArtifact]:
        artifacts: List[GovernanceArtifact] = []
        for name in self.ARTIFACT_FILES:
            path = self.governance_dir / name
            exists = path.is_file()
            artifacts.append(GovernanceArtifact(
                name=name,
                kind="file",
                path=str(path),
                exists=exists,
                line_count=_line_count(path) if exists else None,
            ))
        for name in self.ARTIFACT_DIRS:
            path = self.governance_dir / name
            exists = path.is_dir()
            markdown_files = []
            if exists:
                markdown_files = [
                    {"path": str(item), "line_count": _line_count(item)}
                    for item in sorted(path.rglob("*.md"))
                    if item.is_file()
                ]
            artifacts.append(GovernanceArtifact(
                name=name,
                kind="directory",
                path=str(path),
                exists=exists,
                markdown_files=markdown_files,
            ))
        return artifacts

    def candidate_files(self, artifacts: Optional[List[GovernanceArtifact]] = None) -> List[str]:
        """Existing markdown files worth searching for id references."""
        files: List[str] = []
        for artifact in artifacts if artifacts is not None else self.discover_artifacts():
            if not artifact.exists:
                continue
            if artifact.kind == "file":
                files.append(artifact.path)
            else:
                files.extend(entry["path"] for entry in artifact.markdown_files)
        return files

    @staticmethod
    def find_text_references(file_path: PathLike, needle: str) -> List[TextReference]:
        path = Path(file_path)
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        return [
            TextReference(str(path), index, line.strip())
            for index, line in enumerate(lines, start=1)
            if needle in line
        ]

    def collect_references(self, needle: str) -> List[TextReference]:
        references: List[TextReference] = []
        for file_path in self.candidate_files():
            references.extend(self.find_text_references(file_path, needle))
        return references

    def collect_link_lint_suggestions(self, task: Task) -> List[LintSuggestion]:
        """Report local link targets that do not exist; http(s) links are skipped."""
        suggestions: List[LintSuggestion] = []
        for link in task.links:
            normalized = link.strip()
            if not normalized or HTTP_LINK_REGEX.match(normalized):
                continue
            resolved = (self.governance_dir / normalized).resolve()
            if not resolved.exists():
                suggestions.append(LintSuggestion(
                    TASK_LINK_TARGET_MISSING,
                    f"Link target not found: {normalized} (resolved: {resolved}).",
                ))
        return suggestions

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def no_task_discovery_guidance(self) -> List[str]:
        """Checklist lines from the no-actionable-task hook, or the built-in list."""
        hook_path = self.hooks_dir / NO_TASK_DISCOVERY_HOOK_FILE
        if not hook_path.is_file():
            return list(DEFAULT_NO_TASK_DISCOVERY_GUIDANCE)
        checklist = []
        for line in hook_path.read_text(encoding="utf-8", errors="replace").splitlines():
            trimmed = line.strip()
            if not HOOK_CHECKLIST_REGEX.match(trimmed):
                continue
            checklist.append(f"-{trimmed[1:]}" if trimmed.startswith(("*", "+")) else trimmed)
        return checklist or list(DEFAULT_NO_TASK_DISCOVERY_GUIDANCE)

    def get_or_create_validation_hook(self) -> str:
        """Return the auto-create validation hook, writing the default when absent."""
        hook_path = validation_hook_path(self.governance_dir)
        if hook_path.is_file():
            return hook_path.read_text(encoding="utf-8", errors="replace")
        hook_path.parent.mkdir(parents=True, exist_ok=True)
        hook_path.write_text(DEFAULT_TASK_AUTO_CREATE_VALIDATION_HOOK, encoding="utf-8")
        logger.info(f"Created default validation hook at {hook_path}")
        return DEFAULT_TASK_AUTO_CREATE_VALIDATION_HOOK


# ----------------------------------------------------------------------
# Project initialization
# ----------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class InitArtifact:
    path: str
    action: str


@dataclass(slots=True)
class ProjectInitResult:
    project_path: str
    governance_dir: str
    marker_path: str
    directories: List[InitArtifact]
    files: List[InitArtifact]

    def files_with(self, action: str) -> List[InitArtifact]:
        return [item for item in self.files if item.action == action]


def normalize_governance_dir_name(name: Optional[str]) -> str:
    value = (name or "").strip() or DEFAULT_GOVERNANCE_DIR
    if os.path.isabs(value):
        raise ProjectPathError("governanceDir must be a relative directory name", value)
    if "/" in value or "\\" in value:
        raise ProjectPathError("governanceDir must not contain path separators", value)
    if value in (".", ".."):
        raise ProjectPathError("governanceDir must be a normal directory name", value)
    return value


def default_readme_markdown(governance_dir_name: str) -> str:
    return "\n".join([
        "# Projitive Governance Workspace",
        "",
        f"This directory (`{governance_dir_name}/`) is the governance root for this project.",
        "",
        "## Conventions",
        "- Keep roadmap/task/design/report files in markdown.",
        "- Keep IDs stable (TASK-xxxx / ROADMAP-xxxx).",
        "- Update report evidence before status transitions.",
    ])


def default_roadmap_markdown() -> str:
    return "\n".join([
        "# Roadmap",
        "",
        "## Active Milestones",
        "- [ ] ROADMAP-0001: Bootstrap governance baseline",
    ])


def default_seed_task() -> Task:
    return Task(
        id="TASK-0001",
        title="Bootstrap governance workspace",
        status=TaskStatus.TODO,
        owner="unassigned",
        summary="Create initial governance artifacts and confirm task execution loop.",
        updated_at=now_iso(),
        roadmap_refs=["ROADMAP-0001"],
    )


def default_no_task_discovery_hook_markdown() -> str:
    return "\n".join([
        "Objective:",
        "- When no actionable task exists, proactively discover meaningful work and convert it into TODO tasks.",
        "",
        "Checklist:",
        "- Check whether code violates project guides/specs; create tasks for each actionable gap.",
        "- Check test coverage improvement opportunities; create tasks for high-value missing tests.",
        "- Check development/testing workflow bottlenecks; create tasks for reliability and speed improvements.",
        "- Check TODO/FIXME/HACK comments; turn feasible items into governed tasks.",
        "- Check dependency/security hygiene and stale tooling; create tasks where upgrades are justified.",
        "",
        "Output Format:",
        "- Candidate findings (3-10)",
        "- Proposed tasks (TASK-xxxx style)",
        "- Priority rationale",
    ])


def _write_text_file(path: Path, content: str, force: bool) -> InitArtifact:
    exists = path.exists()
    if exists and not force:
        return InitArtifact(str(path), "skipped")
    path.write_text(content, encoding="utf-8")
    return InitArtifact(str(path), "updated" if exists else "created")


@log_performance("initialize_project")
def initialize_project(
    project_path: PathLike,
    governance_dir_name: Optional[str] = None,
    force: bool = False,
) -> ProjectInitResult:
    """Bootstrap a governance root with marker, baseline docs, seed task and hook.

    Existing files are left alone unless ``force`` is set.
    """
    root = Path(project_path).expanduser().resolve()
    name = normalize_governance_dir_name(governance_dir_name)
    if not root.exists():
        raise ProjectPathError(f"Path not found: {root}", str(root))
    if not root.is_dir():
        raise ProjectPathError(f"projectPath must be a directory: {root}", str(root))

    governance = root / name
    directories: List[InitArtifact] = []
    for directory in (governance, governance / "designs", governance / "reports", governance / "hooks"):
        existed = directory.exists()
        directory.mkdir(parents=True, exist_ok=True)
        directories.append(InitArtifact(str(directory), "skipped" if existed else "created"))

    marker = governance / PROJECT_MARKER
    files = [
        _write_text_file(marker, "", force),
        _write_text_file(governance / "README.md", default_readme_markdown(name), force),
        _write_text_file(governance / "roadmap.md", default_roadmap_markdown(), force),
        _write_text_file(governance / "tasks.md", render_tasks_markdown([default_seed_task()]), force),
        _write_text_file(
            governance / "hooks" / NO_TASK_DISCOVERY_HOOK_FILE,
            default_no_task_discovery_hook_markdown(),
            force,
        ),
    ]
    logger.info(
        f"Initialized governance root at {governance}",
        extra={"extra_fields": {
            "governance_dir": str(governance),
            "created": sum(1 for item in files if item.action == "created"),
            "force": force,
        }},
    )
    return ProjectInitResult(
        project_path=str(root),
        governance_dir=str(governance),
        marker_path=str(marker),
        directories=directories,
        files=files,
    )
