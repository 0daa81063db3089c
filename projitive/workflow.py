"""Governance workflow operations.

Each public method of ``GovernanceWorkflow`` backs one MCP tool. Methods
return a dict carrying the rendered ``markdown`` report plus the structured
values behind it, and raise ``ProjitiveError`` subclasses for failures that
the caller should report as errors.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import ScanConfig
from .confidence import (
    calculate_confidence_score,
    calculate_context_completeness,
    calculate_similar_task_history,
    calculate_specification_clarity,
    generate_confidence_report,
    run_pre_creation_validation,
    validation_hook_path,
)
from .errors import (
    InvalidTaskIdError,
    InvalidTaskUpdateError,
    ProjitiveError,
    TaskNotFoundError,
)
from .ledger import blocker_lines, sub_state_lines
from .linter import (
    collect_single_task_lint_suggestions,
    collect_task_lint_suggestion_items,
    filter_empty_suggestion,
    render_lint_suggestions,
)
from .models import (
    Blocker,
    BlockerType,
    ConfidenceFactors,
    LintSuggestion,
    ProjectSnapshot,
    Recommendation,
    SubState,
    SubStatePhase,
    Task,
    TaskStatus,
    is_valid_task_id,
)
from .projitive_logging import (
    log_confidence_calculated,
    log_error_with_context,
    log_operation,
    log_performance,
    log_task_selected,
    log_task_transition,
)
from .ranking import (
    RANK_RULE,
    actionable_score,
    build_actionable_candidates,
    latest_task_updated_at,
    to_task_updated_at_ms,
    rank_actionable_task_candidates,
)
from .response import (
    evidence_section,
    guidance_section,
    lint_section,
    next_call_section,
    render_error_markdown,
    render_tool_response_markdown,
    summary_section,
    tool_result,
)
from .roadmap import (
    ROADMAP_CONTEXT_RELATED_TASKS_EMPTY,
    collect_roadmap_lint_suggestions,
    is_valid_roadmap_id,
    linked_tasks,
)
from .timestamps import now_iso
from .transitions import ensure_transition
from .workspace import (
    DEFAULT_NO_TASK_DISCOVERY_GUIDANCE,
    Workspace,
    discover_projects,
    initialize_project,
    to_project_path,
)

logger = logging.getLogger("projitive.workflow")


STATUS_GUIDANCE: Dict[TaskStatus, List[str]] = {
    TaskStatus.TODO: [
        "- This task is TODO: confirm scope and set execution plan before edits.",
        "- Move to IN_PROGRESS only after owner and initial evidence are ready.",
    ],
    TaskStatus.IN_PROGRESS: [
        "- This task is IN_PROGRESS: prioritize finishing with report/design evidence updates.",
        "- Verify references stay consistent before marking DONE.",
    ],
    TaskStatus.BLOCKED: [
        "- This task is BLOCKED: identify blocker and required unblock condition first.",
        "- Reopen only after blocker evidence is documented.",
    ],
    TaskStatus.DONE: [
        "- This task is DONE: only reopen when new requirement changes scope.",
        "- Keep report evidence immutable unless correction is required.",
    ],
}

ERROR_NEXT_STEPS: Dict[str, List[str]] = {
    "INVALID_TASK_ID": ["expected format: TASK-0001", "retry with a valid task ID"],
    "TASK_NOT_FOUND": ["run `task_list` to discover available IDs", "retry with an existing task ID"],
    "INVALID_TRANSITION": [
        "allowed: TODO -> IN_PROGRESS|BLOCKED, IN_PROGRESS -> BLOCKED|DONE, BLOCKED -> IN_PROGRESS|TODO",
        "DONE is terminal; create a follow-up task instead of reopening",
    ],
    "INVALID_TASK_UPDATE": ["check the allowed values listed in the cause", "retry with a corrected updates payload"],
    "INVALID_ROADMAP_ID": ["expected format: ROADMAP-0001", "retry with a valid roadmap ID"],
    "GOVERNANCE_ROOT_NOT_FOUND": [
        "run `project_scan` to discover governance roots",
        "or call `project_init` to bootstrap one",
    ],
    "PROJECT_PATH_INVALID": ["verify the path exists and points inside a project", "retry with an explicit project path"],
    "CONFIGURATION_ERROR": [
        "set PROJITIVE_SCAN_ROOT_PATH to the directory to scan",
        "set PROJITIVE_SCAN_MAX_DEPTH to an integer between 0 and 8",
    ],
}


def task_status_guidance(task: Task) -> List[str]:
    return list(STATUS_GUIDANCE.get(task.status, STATUS_GUIDANCE[TaskStatus.DONE]))


def render_task_seed_template(roadmap_ref: str) -> List[str]:
    return [
        "```markdown",
        "## TASK-0001 | TODO | Define initial executable objective",
        "- owner: ai-copilot",
        "- summary: Convert one roadmap milestone or report gap into an actionable task.",
        "- updatedAt: 2026-01-01T00:00:00.000Z",
        f"- roadmapRefs: {roadmap_ref}",
        "- links:",
        "  - ./README.md",
        "  - ./roadmap.md",
        "```",
    ]


def error_report(tool_name: str, error: ProjitiveError, retry_example: Optional[str] = None) -> Dict[str, Any]:
    """Render a ``ProjitiveError`` as an error tool result."""
    log_error_with_context(error, {"operation": tool_name, **error.details})
    steps = ERROR_NEXT_STEPS.get(error.code, ["inspect the cause above", "retry after fixing the input"])
    markdown = render_error_markdown(tool_name, error.message, steps, retry_example)
    return tool_result(markdown, is_error=True, error=error.to_dict())


def _call(tool: str, **arguments: Any) -> str:
    rendered = ", ".join(f'{key}="{value}"' for key, value in arguments.items())
    return f"{tool}({rendered})"


def _task_line(task: Task) -> str:
    return f"- {task.header()} | owner={task.owner} | updatedAt={task.updated_at}"


def _sub_state_from_payload(payload: Mapping[str, Any]) -> SubState:
    phase = payload.get("phase")
    if phase is not None and SubStatePhase.parse(phase) is None:
        raise InvalidTaskUpdateError("sub_state.phase", phase, ", ".join(SubStatePhase.values()))
    confidence = payload.get("confidence")
    if confidence is not None:
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
            raise InvalidTaskUpdateError("sub_state.confidence", confidence, "a number between 0.0 and 1.0")
    return SubState.from_dict(dict(payload))


def _blocker_from_payload(payload: Mapping[str, Any]) -> Blocker:
    if BlockerType.parse(payload.get("type")) is None:
        raise InvalidTaskUpdateError("blocker.type", payload.get("type"), ", ".join(BlockerType.values()))
    if not str(payload.get("description") or "").strip():
        raise InvalidTaskUpdateError("blocker.description", payload.get("description"), "a non-empty description")
    return Blocker.from_dict(dict(payload))


class GovernanceWorkflow:
    """Operations over one or many governance roots."""

    def __init__(self, scan_config: Optional[ScanConfig] = None):
        self._scan_config = scan_config

    @property
    def scan_config(self) -> ScanConfig:
        """Explicit config when given, else read from the environment on each use."""
        if self._scan_config is not None:
            return self._scan_config
        return ScanConfig.from_env()

    def _snapshots(self, projects: List[str]) -> List[ProjectSnapshot]:
        snapshots = []
        for governance_dir in projects:
            document = Workspace(governance_dir).load_tasks()
            snapshots.append(ProjectSnapshot(governance_dir, document.tasks_path, document.tasks))
        return snapshots

    # ------------------------------------------------------------------
    # Project operations
    # ------------------------------------------------------------------

    @log_performance("project_init")
    def project_init(
        self,
        project_path: str,
        governance_dir: Optional[str] = None,
        force: bool = False,
    ) -> Dict[str, Any]:
        """Bootstrap governance files for a project without a ``.projitive`` root."""
        with log_operation("project_init", project_path=project_path, force=force):
            result = initialize_project(project_path, governance_dir, force)

        markdown = render_tool_response_markdown("project_init", [
            summary_section([
                f"- projectPath: {result.project_path}",
                f"- governanceDir: {result.governance_dir}",
                f"- markerPath: {result.marker_path}",
                f"- force: {'true' if force else 'false'}",
            ]),
            evidence_section([
                f"- createdFiles: {len(result.files_with('created'))}",
                f"- updatedFiles: {len(result.files_with('updated'))}",
                f"- skippedFiles: {len(result.files_with('skipped'))}",
                "- directories:",
                *[f"  - {item.action}: {item.path}" for item in result.directories],
                "- files:",
                *[f"  - {item.action}: {item.path}" for item in result.files],
            ]),
            guidance_section([
                "- If files were skipped and you want to overwrite templates, rerun with force=true.",
                "- Continue with project_context and task_list for execution.",
            ]),
            lint_section([
                "- After init, fill owner/roadmapRefs/links in tasks.md before marking DONE.",
                "- Keep task source-of-truth inside marker block only.",
            ]),
            next_call_section(_call("project_context", project_path=result.project_path)),
        ])
        return tool_result(
            markdown,
            project_path=result.project_path,
            governance_dir=result.governance_dir,
            files={item.path: item.action for item in result.files},
        )

    @log_performance("project_scan")
    def project_scan(self) -> Dict[str, Any]:
        """Discover every governance root under the configured scan root."""
        config = self.scan_config
        projects = discover_projects(config)

        markdown = render_tool_response_markdown("project_scan", [
            summary_section([
                f"- rootPath: {config.root}",
                f"- maxDepth: {config.max_depth}",
                f"- discoveredCount: {len(projects)}",
            ]),
            evidence_section(["- projects:", *[f"{index}. {item}" for index, item in enumerate(projects, 1)]]),
            guidance_section([
                "- Use one discovered project path and call `project_locate` to lock governance root.",
                "- Then call `project_context` to inspect current governance state.",
            ]),
            lint_section(
                ["- No governance root discovered. Add `.projitive` marker and baseline artifacts before execution."]
                if not projects
                else ["- Run `project_context` on a discovered project to receive module-level lint suggestions."]
            ),
            next_call_section(_call("project_locate", input_path=projects[0]) if projects else None),
        ])
        return tool_result(markdown, root=str(config.root), max_depth=config.max_depth, projects=projects)

    @log_performance("project_next")
    def project_next(self, limit: int = 10) -> Dict[str, Any]:
        """Rank projects by actionable score, then by most recent task update."""
        config = self.scan_config
        projects = discover_projects(config)
        rows = []
        for snapshot in self._snapshots(projects):
            rows.append({
                "governance_dir": snapshot.governance_dir,
                "tasks_path": snapshot.tasks_path,
                "in_progress": snapshot.count(TaskStatus.IN_PROGRESS),
                "todo": snapshot.count(TaskStatus.TODO),
                "blocked": snapshot.count(TaskStatus.BLOCKED),
                "done": snapshot.count(TaskStatus.DONE),
                "score": actionable_score(snapshot.tasks),
                "latest": latest_task_updated_at(snapshot.tasks),
                "tasks": snapshot.tasks,
            })
        actionable = [row for row in rows if row["in_progress"] + row["todo"] > 0]
        # stable sorts: primary key applied last
        actionable.sort(key=lambda row: to_task_updated_at_ms(row["latest"]), reverse=True)
        actionable.sort(key=lambda row: row["score"], reverse=True)
        ranked = actionable[:limit]

        lint_lines: List[str] = []
        if ranked:
            top = Workspace(ranked[0]["governance_dir"]).load_tasks()
            lint_lines = render_lint_suggestions(collect_task_lint_suggestion_items(top.tasks, top.markdown))

        markdown = render_tool_response_markdown("project_next", [
            summary_section([
                f"- rootPath: {config.root}",
                f"- maxDepth: {config.max_depth}",
                f"- matchedProjects: {len(projects)}",
                f"- actionableProjects: {len(ranked)}",
                f"- limit: {limit}",
            ]),
            evidence_section([
                "- rankedProjects:",
                *[
                    f"{index}. {row['governance_dir']} | actionable={row['in_progress'] + row['todo']}"
                    f" | in_progress={row['in_progress']} | todo={row['todo']} | blocked={row['blocked']}"
                    f" | done={row['done']} | latest={row['latest']} | tasksPath={row['tasks_path']}"
                    for index, row in enumerate(ranked, 1)
                ],
            ]),
            guidance_section([
                "- Pick top 1 project and call `project_context` with its project path.",
                "- Then call `task_list` and `task_context` to continue execution.",
            ]),
            lint_section(lint_lines),
            next_call_section(
                _call("project_context", project_path=to_project_path(ranked[0]["governance_dir"])) if ranked else None
            ),
        ])
        return tool_result(
            markdown,
            projects=[{k: v for k, v in row.items() if k != "tasks"} for row in ranked],
        )

    def project_locate(self, input_path: str) -> Dict[str, Any]:
        """Resolve the nearest governance root from any path inside a project."""
        resolved_from = str(Path(input_path).expanduser().resolve())
        workspace = Workspace.locate(resolved_from)
        project_path = workspace.project_path
        marker_path = str(workspace.governance_dir / ".projitive")

        markdown = render_tool_response_markdown("project_locate", [
            summary_section([
                f"- resolvedFrom: {resolved_from}",
                f"- projectPath: {project_path}",
                f"- governanceDir: {workspace.governance_dir}",
                f"- markerPath: {marker_path}",
            ]),
            guidance_section(["- Call `project_context` with this project path to get task and roadmap summaries."]),
            lint_section(["- Run `project_context` to get governance/module lint suggestions for this project."]),
            next_call_section(_call("project_context", project_path=project_path)),
        ])
        return tool_result(markdown, project_path=project_path, governance_dir=str(workspace.governance_dir))

    @log_performance("project_context")
    def project_context(self, project_path: str) -> Dict[str, Any]:
        """Project-level summary: task counts, roadmap ids, artifacts and lint."""
        workspace = Workspace.locate(project_path)
        document = workspace.load_tasks()
        roadmap_ids = workspace.read_roadmap_ids()
        artifacts = workspace.discover_artifacts()
        lint_lines = render_lint_suggestions(collect_task_lint_suggestion_items(document.tasks, document.markdown))
        counts = {status.value: sum(1 for t in document.tasks if t.status == status) for status in TaskStatus}

        markdown = render_tool_response_markdown("project_context", [
            summary_section([
                f"- projectPath: {workspace.project_path}",
                f"- governanceDir: {workspace.governance_dir}",
                f"- tasksFile: {document.tasks_path}",
                f"- roadmapIds: {len(roadmap_ids)}",
            ]),
            evidence_section([
                "### Task Summary",
                f"- total: {len(document.tasks)}",
                *[f"- {status}: {count}" for status, count in counts.items()],
                "",
                "### Artifacts",
                *[artifact.render() for artifact in artifacts],
            ]),
            guidance_section([
                "- Start from `task_list` to choose a target task.",
                "- Then call `task_context` with a task ID to retrieve evidence locations and reading order.",
            ]),
            lint_section(lint_lines),
            next_call_section(_call("task_list", project_path=workspace.project_path)),
        ])
        return tool_result(
            markdown,
            governance_dir=str(workspace.governance_dir),
            task_counts={"total": len(document.tasks), **counts},
            roadmap_ids=roadmap_ids,
        )

    # ------------------------------------------------------------------
    # Task operations
    # ------------------------------------------------------------------

    @log_performance("task_list")
    def task_list(self, project_path: str, status: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
        """List tasks, optionally filtered by status; lint is scoped to the listed ids."""
        status_filter = None
        if status is not None:
            status_filter = TaskStatus.parse(status)
            if status_filter is None:
                raise InvalidTaskUpdateError("status", status, ", ".join(TaskStatus.values()))

        workspace = Workspace.locate(project_path)
        document = workspace.load_tasks()
        filtered = [task for task in document.tasks if status_filter is None or task.status == status_filter]
        filtered = filtered[:limit]

        items = collect_task_lint_suggestion_items(filtered, document.markdown, {task.id for task in filtered})
        if status_filter is not None and not filtered:
            items.append(filter_empty_suggestion(status_filter.value))

        markdown = render_tool_response_markdown("task_list", [
            summary_section([
                f"- governanceDir: {workspace.governance_dir}",
                f"- tasksPath: {document.tasks_path}",
                f"- filter.status: {status_filter.value if status_filter else '(none)'}",
                f"- returned: {len(filtered)}",
            ]),
            evidence_section(["- tasks:", *[_task_line(task) for task in filtered]]),
            guidance_section(["- Pick one task ID and call `task_context`."]),
            lint_section(render_lint_suggestions(items)),
            next_call_section(
                _call("task_context", project_path=workspace.project_path, task_id=filtered[0].id) if filtered else None
            ),
        ])
        return tool_result(
            markdown,
            tasks=[task.to_dict() for task in filtered],
            lint=[item.code for item in items],
        )

    @log_performance("task_next")
    def task_next(self, limit: int = 5) -> Dict[str, Any]:
        """Select the highest-ranked actionable task across every discovered project."""
        config = self.scan_config
        projects = discover_projects(config)
        snapshots = self._snapshots(projects)
        ranked = rank_actionable_task_candidates(build_actionable_candidates(snapshots))

        if not ranked:
            return self._no_actionable_report(config, projects, snapshots)

        selected = ranked[0]
        log_task_selected(selected.governance_dir, selected.task.id, len(ranked))
        workspace = Workspace(selected.governance_dir)
        document = workspace.load_tasks()
        lint_lines = render_lint_suggestions(collect_task_lint_suggestion_items(document.tasks, document.markdown))
        references = workspace.collect_references(selected.task.id)
        task_location = next(iter(workspace.find_text_references(selected.tasks_path, selected.task.id)), None)
        related = list(dict.fromkeys(ref.file_path for ref in references))
        read_order = [selected.tasks_path, *[item for item in related if item != selected.tasks_path]]

        markdown = render_tool_response_markdown("task_next", [
            summary_section([
                f"- rootPath: {config.root}",
                f"- maxDepth: {config.max_depth}",
                f"- matchedProjects: {len(projects)}",
                f"- actionableTasks: {len(ranked)}",
                f"- selectedProject: {selected.governance_dir}",
                f"- selectedTaskId: {selected.task.id}",
                f"- selectedTaskStatus: {selected.task.status.value}",
            ]),
            evidence_section([
                "### Selected Task",
                f"- id: {selected.task.id}",
                f"- title: {selected.task.title}",
                f"- owner: {selected.task.owner or '(none)'}",
                f"- updatedAt: {selected.task.updated_at}",
                f"- roadmapRefs: {', '.join(selected.task.roadmap_refs) or '(none)'}",
                f"- taskLocation: {f'{task_location.file_path}#L{task_location.line}' if task_location else selected.tasks_path}",
                "",
                "### Top Candidates",
                *[
                    f"{index}. {item.task.header()} | project={item.governance_dir}"
                    f" | projectScore={item.project_score} | latest={item.project_latest_updated_at}"
                    for index, item in enumerate(ranked[:limit], 1)
                ],
                "",
                "### Selection Reason",
                f"- Rank rule: {RANK_RULE}.",
                f"- Selected candidate scores: projectScore={selected.project_score}, "
                f"taskPriority={selected.task_priority}, taskUpdatedAtMs={selected.task_updated_at_ms}.",
                "",
                "### Related Artifacts",
                *([f"- {item}" for item in related] or ["- (none)"]),
                "",
                "### Reference Locations",
                *([ref.render() for ref in references] or ["- (none)"]),
                "",
                "### Suggested Read Order",
                *[f"{index}. {item}" for index, item in enumerate(read_order, 1)],
            ]),
            guidance_section([
                "- Start immediately with Suggested Read Order and execute the selected task.",
                "- Update markdown artifacts directly while keeping TASK/ROADMAP IDs unchanged.",
                "- Re-run `task_context` for the selectedTaskId after edits to verify evidence consistency.",
            ]),
            lint_section(lint_lines),
            next_call_section(_call(
                "task_context",
                project_path=to_project_path(selected.governance_dir),
                task_id=selected.task.id,
            )),
        ])
        return tool_result(
            markdown,
            selected=selected.to_dict(),
            candidates=[item.to_dict() for item in ranked[:limit]],
        )

    def _no_actionable_report(
        self,
        config: ScanConfig,
        projects: List[str],
        snapshots: List[ProjectSnapshot],
    ) -> Dict[str, Any]:
        rows = []
        for snapshot in snapshots:
            roadmap_ids = Workspace(snapshot.governance_dir).read_roadmap_ids()
            rows.append(
                f"{len(rows) + 1}. {snapshot.governance_dir} | total={len(snapshot.tasks)}"
                f" | todo={snapshot.count(TaskStatus.TODO)} | in_progress={snapshot.count(TaskStatus.IN_PROGRESS)}"
                f" | blocked={snapshot.count(TaskStatus.BLOCKED)} | done={snapshot.count(TaskStatus.DONE)}"
                f" | roadmapIds={', '.join(roadmap_ids) or '(none)'} | tasksPath={snapshot.tasks_path}"
            )

        preferred = snapshots[0].governance_dir if snapshots else None
        preferred_roadmap_ids = Workspace(preferred).read_roadmap_ids() if preferred else []
        roadmap_ref = preferred_roadmap_ids[0] if preferred_roadmap_ids else "ROADMAP-0001"
        if preferred:
            discovery = Workspace(preferred).no_task_discovery_guidance()
        else:
            discovery = list(DEFAULT_NO_TASK_DISCOVERY_GUIDANCE)

        markdown = render_tool_response_markdown("task_next", [
            summary_section([
                f"- rootPath: {config.root}",
                f"- maxDepth: {config.max_depth}",
                f"- matchedProjects: {len(projects)}",
                "- actionableTasks: 0",
            ]),
            evidence_section([
                "### Project Snapshots",
                *(rows or ["- (none)"]),
                "",
                "### Seed Task Template",
                *render_task_seed_template(roadmap_ref),
            ]),
            guidance_section([
                "- No TODO/IN_PROGRESS task is available.",
                "- Use no-task discovery checklist below to proactively find and create meaningful TODO tasks.",
                "",
                "### No-Task Discovery Checklist",
                *discovery,
                "",
                "- If no tasks exist, derive 1-3 TODO tasks from roadmap milestones, README scope, or unresolved report gaps.",
                "- If only BLOCKED/DONE tasks exist, reopen one blocked item or create a follow-up TODO task.",
                "- After adding tasks inside marker block, rerun `task_next` to re-rank actionable work.",
            ]),
            lint_section([
                "- No actionable tasks found. Verify task statuses and required fields in marker block.",
                "- Ensure each new task has stable TASK-xxxx ID and at least one roadmapRefs item.",
            ]),
            next_call_section(
                _call("project_context", project_path=to_project_path(preferred)) if preferred else "project_scan()"
            ),
        ])
        return tool_result(markdown, selected=None, candidates=[], discovery_guidance=discovery)

    @log_performance("task_context")
    def task_context(self, project_path: str, task_id: str) -> Dict[str, Any]:
        """Deep context for one task: metadata, references, read order and lint."""
        if not is_valid_task_id(task_id):
            raise InvalidTaskIdError(task_id)

        workspace = Workspace.locate(project_path)
        document = workspace.load_tasks()
        task = document.find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        items = [
            *collect_single_task_lint_suggestions(task, document.markdown),
            *workspace.collect_link_lint_suggestions(task),
        ]
        task_location = next(iter(workspace.find_text_references(document.tasks_path, task_id)), None)
        references = workspace.collect_references(task_id)
        related = list(dict.fromkeys(ref.file_path for ref in references))
        read_order = [document.tasks_path, *[item for item in related if item != document.tasks_path]]

        summary = [
            f"- governanceDir: {workspace.governance_dir}",
            f"- taskId: {task.id}",
            f"- title: {task.title}",
            f"- status: {task.status.value}",
            f"- owner: {task.owner}",
            f"- updatedAt: {task.updated_at}",
            f"- roadmapRefs: {', '.join(task.roadmap_refs) or '(none)'}",
            f"- taskLocation: {f'{task_location.file_path}#L{task_location.line}' if task_location else document.tasks_path}",
        ]
        if task.sub_state is not None and task.status == TaskStatus.IN_PROGRESS:
            summary.extend(sub_state_lines(task.sub_state))
        if task.blocker is not None and task.status == TaskStatus.BLOCKED:
            summary.extend(blocker_lines(task.blocker))

        markdown = render_tool_response_markdown("task_context", [
            summary_section(summary),
            evidence_section([
                "### Related Artifacts",
                *([f"- {item}" for item in related] or ["- (none)"]),
                "",
                "### Reference Locations",
                *([ref.render() for ref in references] or ["- (none)"]),
                "",
                "### Suggested Read Order",
                *[f"{index}. {item}" for index, item in enumerate(read_order, 1)],
            ]),
            guidance_section([
                "- Read the files in Suggested Read Order.",
                "- Verify whether current status and evidence are consistent.",
                *task_status_guidance(task),
                "- If updates are needed, call `task_update` or edit tasks/designs/reports markdown directly and keep TASK IDs unchanged.",
                "- After editing, re-run `task_context` to verify references and context consistency.",
            ]),
            lint_section(render_lint_suggestions(items)),
            next_call_section(_call("task_context", project_path=workspace.project_path, task_id=task.id)),
        ])
        return tool_result(markdown, task=task.to_dict(), lint=[item.code for item in items])

    @log_performance("task_update")
    def task_update(self, project_path: str, task_id: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply ``updates`` to one task and rewrite the ledger.

        Recognized keys: ``status``, ``owner``, ``summary``, ``roadmap_refs``,
        ``links``, ``sub_state`` and ``blocker``. ``sub_state`` is merged into
        the existing value and ``blocker`` replaces it; passing None for
        either clears it. Status changes go through the state machine.
        """
        if not is_valid_task_id(task_id):
            raise InvalidTaskIdError(task_id)

        workspace = Workspace.locate(project_path)
        document = workspace.load_tasks()
        task = document.find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        original_status = task.status
        new_status = original_status
        if updates.get("status") is not None:
            new_status = TaskStatus.parse(updates["status"])
            if new_status is None:
                raise InvalidTaskUpdateError("status", updates["status"], ", ".join(TaskStatus.values()))
            ensure_transition(original_status, new_status, task_id)

        sub_state_update = None
        if updates.get("sub_state") is not None:
            sub_state_update = _sub_state_from_payload(updates["sub_state"])
        blocker_update = None
        if updates.get("blocker") is not None:
            blocker_update = _blocker_from_payload(updates["blocker"])

        with log_operation("task_update", governance_dir=str(workspace.governance_dir), task_id=task_id):
            task.status = new_status
            if updates.get("owner") is not None:
                task.owner = str(updates["owner"])
            if updates.get("summary") is not None:
                task.summary = str(updates["summary"])
            if updates.get("roadmap_refs") is not None:
                task.roadmap_refs = [str(ref) for ref in updates["roadmap_refs"]]
            if updates.get("links") is not None:
                task.links = [str(link) for link in updates["links"]]
            if "sub_state" in updates:
                if sub_state_update is None:
                    task.sub_state = None
                elif task.sub_state is None:
                    task.sub_state = sub_state_update
                else:
                    task.sub_state = task.sub_state.merged(sub_state_update)
            if "blocker" in updates:
                task.blocker = blocker_update
            task.updated_at = now_iso()
            workspace.save_tasks(document.tasks)

        if new_status != original_status:
            log_task_transition(str(workspace.governance_dir), task_id, original_status.value, new_status.value)
        else:
            logger.info(f"Updated task {task_id} without status change")

        updated = workspace.load_tasks().find(task_id) or task
        summary = [
            f"- taskId: {task_id}",
            f"- originalStatus: {original_status.value}",
            f"- newStatus: {updated.status.value}",
            f"- updatedAt: {updated.updated_at}",
        ]
        if updated.sub_state is not None:
            summary.extend(sub_state_lines(updated.sub_state))
        if updated.blocker is not None:
            summary.extend(blocker_lines(updated.blocker))

        details: List[str] = []
        if new_status != original_status:
            details.append(f"- status: {original_status.value} -> {new_status.value}")
        for key in ("owner", "summary"):
            if updates.get(key) is not None:
                details.append(f"- {key}: {updates[key]}")
        for key, label in (("roadmap_refs", "roadmapRefs"), ("links", "links")):
            if updates.get(key) is not None:
                details.append(f"- {label}: {', '.join(str(v) for v in updates[key])}")
        if "sub_state" in updates:
            details.append(f"- subState: {json.dumps(sub_state_update.to_dict()) if sub_state_update else 'cleared'}")
        if "blocker" in updates:
            details.append(f"- blocker: {json.dumps(blocker_update.to_dict()) if blocker_update else 'cleared'}")

        markdown = render_tool_response_markdown("task_update", [
            summary_section(summary),
            evidence_section([
                "### Updated Task",
                f"- {updated.header()}",
                f"- owner: {updated.owner or '(none)'}",
                f"- summary: {updated.summary or '(none)'}",
                "",
                "### Update Details",
                *(details or ["- (no field changes)"]),
            ]),
            guidance_section([
                "Task updated successfully. Run `task_context` to verify the changes.",
                "If status changed to DONE, ensure evidence links are added.",
                "If subState or blocker were updated, verify the metadata is correct.",
            ]),
            lint_section(render_lint_suggestions(collect_single_task_lint_suggestions(updated))),
            next_call_section(_call("task_context", project_path=workspace.project_path, task_id=task_id)),
        ])
        return tool_result(markdown, task=updated.to_dict(), original_status=original_status.value)

    @log_performance("task_calculate_confidence")
    def task_calculate_confidence(
        self,
        project_path: str,
        candidate_task_summary: str,
        context_completeness: Optional[float] = None,
        similar_task_history: Optional[float] = None,
        specification_clarity: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Score whether a candidate task should be auto-created.

        Factors that are not supplied are computed from the governance root.
        """
        workspace = Workspace.locate(project_path)
        document = workspace.load_tasks()
        governance_dir = workspace.governance_dir

        if context_completeness is None:
            context_completeness = calculate_context_completeness(governance_dir)
        if similar_task_history is None:
            similar_task_history = calculate_similar_task_history(document.tasks, candidate_task_summary)
        if specification_clarity is None:
            specification_clarity = calculate_specification_clarity(
                has_roadmap=bool(workspace.read_roadmap_ids()),
                has_design_docs=any((governance_dir / "designs").glob("*.md")),
                has_clear_acceptance_criteria=len(candidate_task_summary) > 50,
            )

        score = calculate_confidence_score(ConfidenceFactors(
            context_completeness=context_completeness,
            similar_task_history=similar_task_history,
            specification_clarity=specification_clarity,
        ))
        validation = run_pre_creation_validation(score, governance_dir)
        workspace.get_or_create_validation_hook()
        log_confidence_calculated(str(governance_dir), score.score, score.recommendation.value)

        guidance = {
            Recommendation.AUTO_CREATE: "Confidence is high - you can auto-create this task.",
            Recommendation.REVIEW_REQUIRED: "Confidence is medium - review recommended before creating.",
            Recommendation.DO_NOT_CREATE: "Confidence is low - do not auto-create this task.",
        }[score.recommendation]

        markdown = render_tool_response_markdown("task_calculate_confidence", [
            summary_section([
                f"- governanceDir: {governance_dir}",
                f"- confidenceScore: {score.score * 100:.0f}%",
                f"- recommendation: {score.recommendation.value}",
                f"- validationPassed: {'true' if validation.passed else 'false'}",
            ]),
            evidence_section([
                "### Confidence Report",
                *generate_confidence_report(score).split("\n"),
                "",
                "### Validation Issues",
                *([f"- {issue}" for issue in validation.issues] or ["- (none)"]),
                "",
                "### Validation Hook",
                f"- hook created/verified at: {validation_hook_path(governance_dir)}",
            ]),
            guidance_section([
                guidance,
                "",
                "### Next Steps",
                "- If recommendation is auto_create: add the task to the ledger and bind roadmapRefs",
                "- If review_required: review the factors and improve context before creating",
                "- If do_not_create: gather more requirements or context before attempting",
            ]),
            lint_section([]),
            next_call_section(
                _call("project_context", project_path=workspace.project_path)
                if score.recommendation != Recommendation.DO_NOT_CREATE
                else None
            ),
        ])
        return tool_result(markdown, confidence=score.to_dict(), validation=validation.to_dict())

    def task_create_validation_hook(self, project_path: str) -> Dict[str, Any]:
        """Create or read back the auto-create validation hook."""
        workspace = Workspace.locate(project_path)
        hook_path = validation_hook_path(workspace.governance_dir)
        existed = hook_path.is_file()
        content = workspace.get_or_create_validation_hook()

        markdown = render_tool_response_markdown("task_create_validation_hook", [
            summary_section([
                f"- governanceDir: {workspace.governance_dir}",
                f"- hookPath: {hook_path}",
                f"- status: {'verified' if existed else 'created'}",
            ]),
            evidence_section(["### Hook Content", "```markdown", *content.rstrip("\n").split("\n"), "```"]),
            guidance_section([
                "Validation hook is in place.",
                "Edit the hook file to customize pre-creation and post-creation actions.",
                "The hook is checked by task_calculate_confidence during validation.",
            ]),
            lint_section([]),
            next_call_section(_call(
                "task_calculate_confidence",
                project_path=workspace.project_path,
                candidate_task_summary="Your task summary here",
            )),
        ])
        return tool_result(markdown, hook_path=str(hook_path), created=not existed)

    # ------------------------------------------------------------------
    # Roadmap operations
    # ------------------------------------------------------------------

    def roadmap_list(self, project_path: str) -> Dict[str, Any]:
        """List roadmap ids with linked task counts and traceability lint."""
        workspace = Workspace.locate(project_path)
        roadmap_ids = workspace.read_roadmap_ids()
        tasks = workspace.load_tasks().tasks
        items = collect_roadmap_lint_suggestions(roadmap_ids, tasks)
        linked = {roadmap_id: len(linked_tasks(roadmap_id, tasks)) for roadmap_id in roadmap_ids}

        markdown = render_tool_response_markdown("roadmap_list", [
            summary_section([
                f"- governanceDir: {workspace.governance_dir}",
                f"- roadmapCount: {len(roadmap_ids)}",
            ]),
            evidence_section([
                "- roadmaps:",
                *[f"- {roadmap_id} | linkedTasks={count}" for roadmap_id, count in linked.items()],
            ]),
            guidance_section(["- Pick one roadmap ID and call `roadmap_context`."]),
            lint_section(render_lint_suggestions(items)),
            next_call_section(
                _call("roadmap_context", project_path=workspace.project_path, roadmap_id=roadmap_ids[0])
                if roadmap_ids
                else None
            ),
        ])
        return tool_result(markdown, roadmaps=linked, lint=[item.code for item in items])

    def roadmap_context(self, project_path: str, roadmap_id: str) -> Dict[str, Any]:
        """One roadmap milestone with its linked tasks and reference locations."""
        if not is_valid_roadmap_id(roadmap_id):
            raise ProjitiveError(
                f"Invalid roadmap ID format: {roadmap_id}",
                "INVALID_ROADMAP_ID",
                {"roadmap_id": roadmap_id},
            )

        workspace = Workspace.locate(project_path)
        references = workspace.collect_references(roadmap_id)
        tasks = workspace.load_tasks().tasks
        related = linked_tasks(roadmap_id, tasks)
        items = collect_roadmap_lint_suggestions(workspace.read_roadmap_ids(), tasks)
        if not related:
            items.append(LintSuggestion(
                ROADMAP_CONTEXT_RELATED_TASKS_EMPTY,
                f"relatedTasks=0 for {roadmap_id}.",
                "Batch bind task roadmapRefs to improve execution traceability.",
            ))

        markdown = render_tool_response_markdown("roadmap_context", [
            summary_section([
                f"- governanceDir: {workspace.governance_dir}",
                f"- roadmapId: {roadmap_id}",
                f"- relatedTasks: {len(related)}",
                f"- references: {len(references)}",
            ]),
            evidence_section([
                "### Related Tasks",
                *([f"- {task.header()}" for task in related] or ["- (none)"]),
                "",
                "### Reference Locations",
                *([ref.render() for ref in references] or ["- (none)"]),
            ]),
            guidance_section([
                "- Read roadmap references first, then related tasks.",
                "- Keep ROADMAP/TASK IDs unchanged while updating markdown files.",
                "- Re-run `roadmap_context` after edits to confirm references remain consistent.",
            ]),
            lint_section(render_lint_suggestions(items)),
            next_call_section(_call("roadmap_context", project_path=workspace.project_path, roadmap_id=roadmap_id)),
        ])
        return tool_result(
            markdown,
            related_tasks=[task.id for task in related],
            lint=[item.code for item in items],
        )
