"""Projitive - markdown task ledger governance for MCP agents."""

# No imports at package level; import submodules directly where needed.

__all__ = [
    "config",
    "confidence",
    "errors",
    "ledger",
    "linter",
    "models",
    "projitive_logging",
    "ranking",
    "response",
    "roadmap",
    "timestamps",
    "transitions",
    "workflow",
    "workspace",
]
