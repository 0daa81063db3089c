"""Scan configuration for multi-project discovery."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError


ROOT_PATH_ENV = "PROJITIVE_SCAN_ROOT_PATH"
MAX_DEPTH_ENV = "PROJITIVE_SCAN_MAX_DEPTH"

DEFAULT_SCAN_DEPTH = 3
MAX_SCAN_DEPTH = 8


def clamp_depth(depth: int) -> int:
    return min(MAX_SCAN_DEPTH, max(0, int(depth)))


@dataclass(slots=True, frozen=True)
class ScanConfig:
    """Root and depth limit used when walking the filesystem for projects."""

    root: Path
    max_depth: int = DEFAULT_SCAN_DEPTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
        object.__setattr__(self, "max_depth", clamp_depth(self.max_depth))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScanConfig":
        """Build a config from ``PROJITIVE_SCAN_ROOT_PATH`` and ``PROJITIVE_SCAN_MAX_DEPTH``."""
        env = os.environ if environ is None else environ

        root = (env.get(ROOT_PATH_ENV) or "").strip()
        if not root:
            raise ConfigurationError(
                f"Environment variable {ROOT_PATH_ENV} is required for project discovery.",
                ROOT_PATH_ENV,
            )

        raw_depth = (env.get(MAX_DEPTH_ENV) or "").strip()
        if not raw_depth:
            return cls(Path(root), DEFAULT_SCAN_DEPTH)
        try:
            depth = int(raw_depth)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment variable {MAX_DEPTH_ENV} must be an integer, got '{raw_depth}'.",
                MAX_DEPTH_ENV,
            ) from exc
        return cls(Path(root), depth)
