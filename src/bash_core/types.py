"""Core result and limit types for bash-core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ExecResult:
    """Result of executing a statement, function or script."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    env: Optional[dict[str, str]] = field(default=None, repr=False)
    """Snapshot of the variable namespace (only set by the top-level runner)."""


@dataclass
class ExecutionLimits:
    """Resource limits enforced by the core."""

    max_call_depth: int = 100
    """Maximum function recursion depth."""

    max_command_count: int = 10000
    """Maximum number of statements executed per run."""

    max_loop_iterations: int = 10000
    """Maximum iterations of a single loop."""
