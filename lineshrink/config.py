"""
Configuration for lineshrink.

Defaults live in module constants. ShrinkConfig bundles them for a run
and can be overridden from LINESHRINK_* environment variables.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Mapping, Optional


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Candidate span sizes, tried largest first at every position
WINDOW_SIZES = (3, 2, 1)

# Positions in the last TAIL_MARGIN lines are never attempted
TAIL_MARGIN = 5

# Diagnostic truncation
CANDIDATE_DIAGNOSTIC_LIMIT = 90
FATAL_DIAGNOSTIC_LIMIT = 1_000_000

# Last-good file: <source dir>/last_ok.<source extension>
LAST_OK_STEM = "last_ok"

# Exit status the `timeout` utility uses when it kills its child
TIMEOUT_EXIT_CODE = 124

# Project scaffold
DEFAULT_SCAFFOLD_INIT = ("cargo", "new", "--quiet")
DEFAULT_SCAFFOLD_ENTRY = "src/main.rs"
DEFAULT_SCAFFOLD_TOOL = "cargo"

ENV_PREFIX = "LINESHRINK_"


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= 0, got {value}")
    return value


@dataclass
class ShrinkConfig:
    """
    Settings for one reduction run.

    window_sizes must be non-empty and strictly decreasing; the engine
    always tries the largest window first.
    """
    window_sizes: tuple[int, ...] = WINDOW_SIZES
    tail_margin: int = TAIL_MARGIN
    candidate_diagnostic_limit: int = CANDIDATE_DIAGNOSTIC_LIMIT
    fatal_diagnostic_limit: int = FATAL_DIAGNOSTIC_LIMIT
    last_ok_stem: str = LAST_OK_STEM
    scratch_dir: str = field(default_factory=tempfile.gettempdir)

    def __post_init__(self):
        if not self.window_sizes:
            raise ValueError("window_sizes must not be empty")
        if any(size < 1 for size in self.window_sizes):
            raise ValueError(f"window sizes must be >= 1, got {self.window_sizes}")
        if list(self.window_sizes) != sorted(set(self.window_sizes), reverse=True):
            raise ValueError(
                f"window_sizes must be strictly decreasing, got {self.window_sizes}"
            )
        if self.tail_margin < 0:
            raise ValueError(f"tail_margin must be >= 0, got {self.tail_margin}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> ShrinkConfig:
        """Build a config from defaults plus LINESHRINK_* overrides."""
        if env is None:
            env = os.environ

        overrides: dict = {}

        tail_margin = _env_int(env, "TAIL_MARGIN")
        if tail_margin is not None:
            overrides["tail_margin"] = tail_margin

        limit = _env_int(env, "DIAGNOSTIC_LIMIT")
        if limit is not None:
            overrides["candidate_diagnostic_limit"] = limit

        scratch_dir = env.get(ENV_PREFIX + "SCRATCH_DIR")
        if scratch_dir:
            overrides["scratch_dir"] = scratch_dir

        return cls(**overrides)
