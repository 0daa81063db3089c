"""MCP server exposing the Projitive governance task ledger."""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from projitive.errors import ProjitiveError
from projitive.models import TaskStatus
from projitive.projitive_logging import setup_logging
from projitive.workflow import GovernanceWorkflow, error_report

mcp = FastMCP("projitive")

LOG_LEVEL_ENV = "PROJITIVE_LOG_LEVEL"

# Scan config is read from the environment per call, so it can change between calls.
workflow = GovernanceWorkflow()


def _run(tool_name: str, retry_example: Optional[str], action: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return action()
    except ProjitiveError as exc:
        return error_report(tool_name, exc, retry_example)


# ----------------------------------------------------------------------
# Project tools
# ----------------------------------------------------------------------


@mcp.tool()
def project_init(project_path: str, governance_dir: Optional[str] = None, force: bool = False) -> Dict[str, Any]:
    """Bootstrap a `.projitive` governance root (marker, README, roadmap, tasks, hooks).
    Existing files are skipped unless force is true."""
    return _run(
        "project_init",
        'project_init(project_path="/abs/path/to/project")',
        lambda: workflow.project_init(project_path, governance_dir, force),
    )


@mcp.tool()
def project_scan() -> Dict[str, Any]:
    """Discover governance roots under PROJITIVE_SCAN_ROOT_PATH up to PROJITIVE_SCAN_MAX_DEPTH."""
    return _run("project_scan", "project_scan()", workflow.project_scan)


@mcp.tool()
def project_next(limit: int = 10) -> Dict[str, Any]:
    """Rank discovered projects by actionable work and most recent activity."""
    return _run("project_next", "project_next(limit=10)", lambda: workflow.project_next(limit))


@mcp.tool()
def project_locate(input_path: str) -> Dict[str, Any]:
    """Resolve the nearest governance root from any path inside a project."""
    return _run(
        "project_locate",
        'project_locate(input_path="/abs/path/inside/project")',
        lambda: workflow.project_locate(input_path),
    )


@mcp.tool()
def project_context(project_path: str) -> Dict[str, Any]:
    """Summarize task counts, roadmap ids, governance artifacts and lint for one project."""
    return _run(
        "project_context",
        'project_context(project_path="/abs/path/to/project")',
        lambda: workflow.project_context(project_path),
    )


# ----------------------------------------------------------------------
# Task tools
# ----------------------------------------------------------------------


@mcp.tool()
def task_list(project_path: str, status: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
    """List ledger tasks, optionally filtered by status (TODO, IN_PROGRESS, BLOCKED, DONE)."""
    return _run(
        "task_list",
        f'task_list(project_path="{project_path}", status="{TaskStatus.TODO.value}")',
        lambda: workflow.task_list(project_path, status, limit),
    )


@mcp.tool()
def task_next(limit: int = 5) -> Dict[str, Any]:
    """Select the single best actionable task across every discovered project."""
    return _run("task_next", "task_next(limit=5)", lambda: workflow.task_next(limit))


@mcp.tool()
def task_context(project_path: str, task_id: str) -> Dict[str, Any]:
    """Return task metadata, reference locations, suggested read order and lint for one task."""
    return _run(
        "task_context",
        f'task_context(project_path="{project_path}", task_id="TASK-0001")',
        lambda: workflow.task_context(project_path, task_id),
    )


@mcp.tool()
def task_update(
    project_path: str,
    task_id: str,
    status: Optional[str] = None,
    owner: Optional[str] = None,
    summary: Optional[str] = None,
    roadmap_refs: Optional[List[str]] = None,
    links: Optional[List[str]] = None,
    sub_state: Optional[Dict[str, Any]] = None,
    blocker: Optional[Dict[str, Any]] = None,
    clear_sub_state: bool = False,
    clear_blocker: bool = False,
) -> Dict[str, Any]:
    """Update task fields and rewrite the ledger. Status changes must follow
    TODO -> IN_PROGRESS|BLOCKED, IN_PROGRESS -> BLOCKED|DONE, BLOCKED -> IN_PROGRESS|TODO.
    sub_state is merged into the existing value; blocker replaces it."""
    updates: Dict[str, Any] = {
        key: value
        for key, value in (
            ("status", status),
            ("owner", owner),
            ("summary", summary),
            ("roadmap_refs", roadmap_refs),
            ("links", links),
            ("sub_state", sub_state),
            ("blocker", blocker),
        )
        if value is not None
    }
    if clear_sub_state:
        updates["sub_state"] = None
    if clear_blocker:
        updates["blocker"] = None
    return _run(
        "task_update",
        f'task_update(project_path="{project_path}", task_id="{task_id}", status="IN_PROGRESS")',
        lambda: workflow.task_update(project_path, task_id, updates),
    )


@mcp.tool()
def task_calculate_confidence(
    project_path: str,
    candidate_task_summary: str,
    context_completeness: Optional[float] = None,
    similar_task_history: Optional[float] = None,
    specification_clarity: Optional[float] = None,
) -> Dict[str, Any]:
    """Score a candidate task for auto-creation; missing factors are computed from the project."""
    return _run(
        "task_calculate_confidence",
        f'task_calculate_confidence(project_path="{project_path}", candidate_task_summary="...")',
        lambda: workflow.task_calculate_confidence(
            project_path,
            candidate_task_summary,
            context_completeness,
            similar_task_history,
            specification_clarity,
        ),
    )


@mcp.tool()
def task_create_validation_hook(project_path: str) -> Dict[str, Any]:
    """Create (or read back) the task auto-create validation hook for a project."""
    return _run(
        "task_create_validation_hook",
        f'task_create_validation_hook(project_path="{project_path}")',
        lambda: workflow.task_create_validation_hook(project_path),
    )


# ----------------------------------------------------------------------
# Roadmap tools
# ----------------------------------------------------------------------


@mcp.tool()
def roadmap_list(project_path: str) -> Dict[str, Any]:
    """List roadmap milestone ids with linked task counts."""
    return _run(
        "roadmap_list",
        f'roadmap_list(project_path="{project_path}")',
        lambda: workflow.roadmap_list(project_path),
    )


@mcp.tool()
def roadmap_context(project_path: str, roadmap_id: str) -> Dict[str, Any]:
    """Show one roadmap milestone with its related tasks and reference locations."""
    return _run(
        "roadmap_context",
        f'roadmap_context(project_path="{project_path}", roadmap_id="ROADMAP-0001")',
        lambda: workflow.roadmap_context(project_path, roadmap_id),
    )


@mcp.resource("projitive://projects")
def resource_projects() -> str:
    """Markdown list of governance roots under the configured scan root."""
    result = _run("project_scan", "project_scan()", workflow.project_scan)
    return result["markdown"]


if __name__ == "__main__":
    setup_logging(os.getenv(LOG_LEVEL_ENV, "INFO").upper())
    mcp.run(transport="stdio")
