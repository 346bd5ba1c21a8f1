"""Control-flow signals and shell errors.

Every non-local exit in the core is raised as one of these exceptions.
Scope-exit signals (break, continue, return) are caught by the nearest
loop or function; terminating signals travel to the top-level runner.
Each signal carries the stdout/stderr accumulated by the frames it
unwinds through, so no output is lost on the way up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..types import ExecResult
    from .types import InterpreterState


class ControlFlowError(Exception):
    """Base class for all shell control-flow signals."""

    def __init__(self, message: str = "", stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr

    def prepend_output(self, stdout: str, stderr: str) -> None:
        """Prepend output produced before this signal was raised."""
        self.stdout = stdout + self.stdout
        self.stderr = stderr + self.stderr


class BreakError(ControlFlowError):
    """Raised by `break [n]`."""

    def __init__(self, levels: int = 1, stdout: str = "", stderr: str = ""):
        super().__init__("break", stdout, stderr)
        self.levels = levels


class ContinueError(ControlFlowError):
    """Raised by `continue [n]`."""

    def __init__(self, levels: int = 1, stdout: str = "", stderr: str = ""):
        super().__init__("continue", stdout, stderr)
        self.levels = levels


class ReturnError(ControlFlowError):
    """Raised by `return [n]`."""

    def __init__(self, exit_code: int = 0, stdout: str = "", stderr: str = ""):
        super().__init__("return", stdout, stderr)
        self.exit_code = exit_code


class ErrexitError(ControlFlowError):
    """A command failed while `set -e` was active."""

    def __init__(self, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(f"errexit: command exited with status {exit_code}", stdout, stderr)
        self.exit_code = exit_code


class NounsetError(ControlFlowError):
    """An unset variable was referenced while `set -u` was active."""

    def __init__(self, var_name: str, stdout: str = "", stderr: str = ""):
        message = f"bash: {var_name}: unbound variable\n"
        super().__init__(message, stdout, stderr or message)
        self.var_name = var_name


class ExitError(ControlFlowError):
    """Raised by `exit [n]` and by fatal builtin errors."""

    def __init__(self, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(f"exit {exit_code}", stdout, stderr)
        self.exit_code = exit_code


class ArithError(ControlFlowError):
    """Arithmetic evaluation failed (division by zero, bad operand)."""

    exit_code = 1

    def __init__(self, message: str, stdout: str = "", stderr: str = "", fatal: bool = False):
        super().__init__(message, stdout, stderr or f"bash: {message}\n")
        self.fatal = fatal


class BadSubstitutionError(ControlFlowError):
    """A `${...}` expansion was malformed."""

    exit_code = 1

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message, stdout, stderr or f"bash: {message}: bad substitution\n")


class GlobError(ControlFlowError):
    """A glob matched nothing while `failglob` was active."""

    exit_code = 1

    def __init__(self, pattern: str, stdout: str = "", stderr: str = ""):
        super().__init__(f"no match: {pattern}", stdout, stderr or f"bash: no match: {pattern}\n")
        self.pattern = pattern


class BraceExpansionError(ControlFlowError):
    """Brace expansion would exceed its size limit."""

    exit_code = 1

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message, stdout, stderr or f"bash: {message}\n")


class ExecutionLimitError(ControlFlowError):
    """A resource limit (recursion, commands, iterations) was exceeded."""

    EXIT_CODE = 126

    def __init__(self, message: str, limit_type: str, stdout: str = "", stderr: str = ""):
        super().__init__(message, stdout, stderr or f"bash: {message}\n")
        self.limit_type = limit_type
        self.exit_code = self.EXIT_CODE


class SubshellExitError(ControlFlowError):
    """break/continue inside a subshell spawned from a loop exits the subshell."""

    def __init__(self, stdout: str = "", stderr: str = ""):
        super().__init__("subshell exit", stdout, stderr)
        self.exit_code = 0


class PosixFatalError(ControlFlowError):
    """A special-builtin error that is fatal in POSIX mode."""

    def __init__(self, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(f"posix fatal: {exit_code}", stdout, stderr)
        self.exit_code = exit_code


_SCOPE_EXIT = (BreakError, ContinueError, ReturnError)


def is_scope_exit_error(error: BaseException) -> bool:
    """Return True for break, continue and return."""
    return isinstance(error, _SCOPE_EXIT)


def is_terminating_error(error: BaseException) -> bool:
    """Return True for signals that must reach the top-level runner."""
    return isinstance(error, ControlFlowError) and not isinstance(error, _SCOPE_EXIT)


def exit_code_for(error: ControlFlowError) -> int:
    """Map a terminating signal to the script exit code."""
    if isinstance(error, NounsetError):
        return 1
    return getattr(error, "exit_code", 1)


def check_errexit(state: "InterpreterState", result: "ExecResult") -> None:
    """Raise ErrexitError if `set -e` applies to this result."""
    if (
        state.options.errexit
        and result.exit_code != 0
        and not state.in_condition
    ):
        raise ErrexitError(result.exit_code, result.stdout, result.stderr)
