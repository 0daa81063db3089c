"""Unit tests for markdown tool responses."""

from projitive.response import (
    Section,
    evidence_section,
    next_call_section,
    normalize_line,
    render_error_markdown,
    render_tool_response_markdown,
    summary_section,
    tool_result,
)


class TestNormalizeLine:
    """Test cases for normalize_line."""

    def test_prose_becomes_bullet(self):
        """Test bulleting loose text."""
        assert normalize_line("  plain text ") == "- plain text"

    def test_structured_lines_kept(self):
        """Test that markdown structure passes through untouched."""
        for line in ("", "# Heading", "### Sub", "- item", "  - nested", "1. first", "> quote", "```markdown"):
            assert normalize_line(line) == line


class TestRender:
    """Test cases for report rendering."""

    def test_sections(self):
        """Test headings, normalization and empty placeholders."""
        markdown = render_tool_response_markdown("task_list", [
            summary_section(["- count: 1"]),
            evidence_section(["loose line"]),
            next_call_section(None),
        ])
        assert markdown == "\n".join([
            "# task_list",
            "",
            "## Summary",
            "- count: 1",
            "",
            "## Evidence",
            "- loose line",
            "",
            "## Next Call",
            "- (none)",
        ])

    def test_section_normalizes_on_construction(self):
        """Test that Section stores normalized lines."""
        assert Section("Any", ["text"]).lines == ["- text"]

    def test_error_markdown(self):
        """Test the error report layout."""
        markdown = render_error_markdown(
            "task_context",
            "Invalid task ID: bad",
            ["expected format: TASK-0001"],
            'task_context(project_path="/p", task_id="TASK-0001")',
        )
        assert markdown.splitlines() == [
            "# task_context",
            "",
            "## Error",
            "- cause: Invalid task ID: bad",
            "",
            "## Next Step",
            "- expected format: TASK-0001",
            "",
            "## Retry Example",
            '- task_context(project_path="/p", task_id="TASK-0001")',
        ]

    def test_tool_result(self):
        """Test bundling markdown with payload fields."""
        result = tool_result("# x", tasks=[])
        assert result == {"markdown": "# x", "is_error": False, "tasks": []}
        assert tool_result("# x", is_error=True)["is_error"] is True
