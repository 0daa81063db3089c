"""Markdown report rendering shared by every tool response."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

LIST_LINE_REGEX = re.compile(r"^([-*+]|\d+\.)\s")
RAW_PREFIXES = ("#", ">", "```")


def _keep_raw(trimmed: str) -> bool:
    if not trimmed:
        return True
    if trimmed.startswith(RAW_PREFIXES):
        return True
    return LIST_LINE_REGEX.match(trimmed) is not None


def normalize_line(line: str) -> str:
    """Turn loose prose into a bullet; headings, lists and fences stay as they are."""
    trimmed = line.strip()
    if _keep_raw(trimmed):
        return line
    return f"- {trimmed}"


@dataclass(slots=True)
class Section:
    title: str
    lines: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.lines = [normalize_line(line) for line in self.lines]


def summary_section(lines: Iterable[str]) -> Section:
    return Section("Summary", list(lines))


def evidence_section(lines: Iterable[str]) -> Section:
    return Section("Evidence", list(lines))


def guidance_section(lines: Iterable[str]) -> Section:
    return Section("Agent Guidance", list(lines))


def lint_section(lines: Iterable[str]) -> Section:
    return Section("Lint Suggestions", list(lines))


def next_call_section(next_call: Optional[str] = None) -> Section:
    return Section("Next Call", [next_call] if next_call else [])


def render_tool_response_markdown(tool_name: str, sections: Iterable[Section]) -> str:
    """Render ``# tool_name`` followed by one ``##`` block per section.

    Empty sections render a single ``- (none)`` line.
    """
    lines = [f"# {tool_name}", ""]
    for section in sections:
        lines.append(f"## {section.title}")
        lines.extend(section.lines or ["- (none)"])
        lines.append("")
    return "\n".join(lines).rstrip()


def render_error_markdown(
    tool_name: str,
    cause: str,
    next_steps: List[str],
    retry_example: Optional[str] = None,
) -> str:
    return render_tool_response_markdown(
        tool_name,
        [
            Section("Error", [f"cause: {cause}"]),
            Section("Next Step", next_steps),
            Section("Retry Example", [retry_example or "(none)"]),
        ],
    )


def tool_result(markdown: str, is_error: bool = False, **payload: Any) -> Dict[str, Any]:
    """Bundle a rendered report with structured fields for MCP callers."""
    result: Dict[str, Any] = {"markdown": markdown, "is_error": is_error}
    result.update(payload)
    return result
