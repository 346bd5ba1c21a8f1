"""Control flow builtins: break, continue, return, exit.

These builtins control the flow of script execution by raising the
matching signal from ``..errors``.
"""

from typing import TYPE_CHECKING

from ...types import ExecResult
from ..errors import BreakError, ContinueError, ExitError, ReturnError, SubshellExitError

if TYPE_CHECKING:
    from ..types import InterpreterContext


def _parse_levels(name: str, args: list[str]) -> int:
    """Parse the loop count of break/continue."""
    if not args:
        return 1
    try:
        levels = int(args[0])
    except ValueError:
        raise ExitError(
            128,
            stderr=f"bash: {name}: {args[0]}: numeric argument required\n",
        )
    if levels < 1:
        raise ExitError(
            128,
            stderr=f"bash: {name}: {args[0]}: loop count out of range\n",
        )
    return levels


def _loop_control(ctx: "InterpreterContext", name: str, args: list[str], error_cls) -> ExecResult:
    levels = _parse_levels(name, args)
    if len(args) > 1:
        # In bash, too many arguments still leaves the loop body
        if ctx.state.loop_depth > 0:
            raise error_cls(levels=levels)
        return ExecResult(stderr=f"bash: {name}: too many arguments\n", exit_code=1)

    # A subshell spawned from inside a loop exits instead
    if ctx.state.loop_depth == 0 and ctx.state.parent_has_loop_context:
        raise SubshellExitError()

    # If not inside a loop, print warning and return success (bash behavior)
    if ctx.state.loop_depth == 0:
        return ExecResult(
            stderr=f"bash: {name}: only meaningful in a `for', `while', or `until' loop\n",
            exit_code=0,
        )
    raise error_cls(levels=levels)


async def handle_break(ctx: "InterpreterContext", args: list[str]) -> ExecResult:
    """Execute the break builtin.

    Usage: break [n]

    Exit from within a for, while, until, or select loop.
    If n is specified, break out of n enclosing loops.
    """
    return _loop_control(ctx, "break", args, BreakError)


async def handle_continue(ctx: "InterpreterContext", args: list[str]) -> ExecResult:
    """Execute the continue builtin.

    Usage: continue [n]

    Resume the next iteration of an enclosing for, while, until, or select loop.
    If n is specified, resume at the nth enclosing loop.
    """
    return _loop_control(ctx, "continue", args, ContinueError)


async def handle_return(ctx: "InterpreterContext", args: list[str]) -> ExecResult:
    """Execute the return builtin.

    Usage: return [n]

    Return from a shell function or sourced script.
    n is the return value (0-255). If n is omitted, the return value is
    the exit status of the last command executed.
    """
    exit_code = ctx.state.last_exit_code
    if args:
        try:
            exit_code = int(args[0]) & 255  # Mask to 0-255
        except ValueError:
            return ExecResult(
                stderr=f"bash: return: {args[0]}: numeric argument required\n",
                exit_code=2,
            )

    raise ReturnError(exit_code)


async def handle_exit(ctx: "InterpreterContext", args: list[str]) -> ExecResult:
    """Execute the exit builtin.

    Usage: exit [n]

    Exit the shell with status n. If n is omitted, the exit status is
    that of the last command executed.
    """
    exit_code = ctx.state.last_exit_code
    if args:
        try:
            exit_code = int(args[0]) & 255  # Mask to 0-255
        except ValueError:
            raise ExitError(
                2,
                stderr=f"bash: exit: {args[0]}: numeric argument required\n",
            )

    raise ExitError(exit_code)


CONTROL_BUILTINS = {
    "break": handle_break,
    "continue": handle_continue,
    "return": handle_return,
    "exit": handle_exit,
}
