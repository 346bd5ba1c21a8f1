"""Control Flow Execution.

Drives statement lists and loops over host-supplied statements. A
statement is a coroutine function taking the InterpreterContext and
returning an ExecResult; the parser and command dispatcher that build
them live outside this package.

Handles:
- statement sequencing with errexit and the command limit
- for loops over a word list
- while/until loops
- break/continue level counting
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

from ..types import ExecResult
from .errors import BreakError, ContinueError, ControlFlowError, ExecutionLimitError, check_errexit
from .variables import VAR_NAME_RE, get_positional_params, set_variable

if TYPE_CHECKING:
    from .types import InterpreterContext

Statement = Callable[["InterpreterContext"], Awaitable[ExecResult]]


def _result(stdout: str, stderr: str, exit_code: int) -> ExecResult:
    """Create an ExecResult."""
    return ExecResult(stdout=stdout, stderr=stderr, exit_code=exit_code)


def _failure(stderr: str) -> ExecResult:
    """Create a failed result."""
    return ExecResult(stdout="", stderr=stderr, exit_code=1)


async def execute_statement(ctx: "InterpreterContext", statement: Statement) -> ExecResult:
    """Run one statement, record its status and apply errexit."""
    state = ctx.state
    state.command_count += 1
    if state.command_count > ctx.limits.max_command_count:
        raise ExecutionLimitError(
            f"too many commands executed (>{ctx.limits.max_command_count})",
            "commands",
        )
    result = await statement(ctx)
    state.last_exit_code = result.exit_code
    check_errexit(state, result)
    return result


async def execute_statements(
    ctx: "InterpreterContext",
    statements: Sequence[Statement],
    stdout: str = "",
    stderr: str = "",
) -> ExecResult:
    """Execute a list of statements."""
    exit_code = 0

    try:
        for stmt in statements:
            result = await execute_statement(ctx, stmt)
            stdout += result.stdout
            stderr += result.stderr
            exit_code = result.exit_code
    except ControlFlowError as error:
        # Prepend accumulated output before propagating control flow
        error.prepend_output(stdout, stderr)
        raise

    return _result(stdout, stderr, exit_code)


async def execute_condition(ctx: "InterpreterContext", condition: Sequence[Statement]) -> ExecResult:
    """Execute a condition list; errexit does not apply inside it."""
    saved_in_condition = ctx.state.in_condition
    ctx.state.in_condition = True
    try:
        return await execute_statements(ctx, condition)
    finally:
        ctx.state.in_condition = saved_in_condition


def _check_iterations(ctx: "InterpreterContext", iterations: int, kind: str) -> None:
    if iterations > ctx.limits.max_loop_iterations:
        raise ExecutionLimitError(
            f"{kind} loop: too many iterations ({ctx.limits.max_loop_iterations})",
            "iterations",
        )


async def execute_for(
    ctx: "InterpreterContext",
    variable: str,
    words: Optional[Sequence[str]],
    body: Sequence[Statement],
) -> ExecResult:
    """Execute ``for variable in words; do body; done``.

    ``words=None`` iterates over the positional parameters.
    """
    stdout = ""
    stderr = ""
    exit_code = 0
    iterations = 0

    if not VAR_NAME_RE.match(variable):
        return _failure(f"bash: `{variable}': not a valid identifier\n")

    if words is None:
        words = get_positional_params(ctx.state)

    ctx.state.loop_depth += 1
    try:
        for value in words:
            iterations += 1
            _check_iterations(ctx, iterations, "for")
            set_variable(ctx.state, variable, value)

            try:
                result = await execute_statements(ctx, body)
                stdout += result.stdout
                stderr += result.stderr
                exit_code = result.exit_code
            except BreakError as e:
                stdout += e.stdout
                stderr += e.stderr
                if e.levels > 1 and ctx.state.loop_depth > 1:
                    e.levels -= 1
                    e.stdout = stdout
                    e.stderr = stderr
                    raise
                break
            except ContinueError as e:
                stdout += e.stdout
                stderr += e.stderr
                if e.levels > 1 and ctx.state.loop_depth > 1:
                    e.levels -= 1
                    e.stdout = stdout
                    e.stderr = stderr
                    raise
                continue
            except ControlFlowError as e:
                e.prepend_output(stdout, stderr)
                raise
    finally:
        ctx.state.loop_depth -= 1

    return _result(stdout, stderr, exit_code)


async def execute_while(
    ctx: "InterpreterContext",
    condition: Sequence[Statement],
    body: Sequence[Statement],
    until: bool = False,
) -> ExecResult:
    """Execute a while loop (or an until loop when ``until`` is set)."""
    stdout = ""
    stderr = ""
    exit_code = 0
    iterations = 0
    kind = "until" if until else "while"

    ctx.state.loop_depth += 1
    try:
        while True:
            iterations += 1
            _check_iterations(ctx, iterations, kind)

            try:
                cond_result = await execute_condition(ctx, condition)
                stdout += cond_result.stdout
                stderr += cond_result.stderr
                if (cond_result.exit_code == 0) == until:
                    break

                result = await execute_statements(ctx, body)
                stdout += result.stdout
                stderr += result.stderr
                exit_code = result.exit_code
            except BreakError as e:
                stdout += e.stdout
                stderr += e.stderr
                if e.levels > 1 and ctx.state.loop_depth > 1:
                    e.levels -= 1
                    e.stdout = stdout
                    e.stderr = stderr
                    raise
                break
            except ContinueError as e:
                stdout += e.stdout
                stderr += e.stderr
                if e.levels > 1 and ctx.state.loop_depth > 1:
                    e.levels -= 1
                    e.stdout = stdout
                    e.stderr = stderr
                    raise
                continue
            except ControlFlowError as e:
                e.prepend_output(stdout, stderr)
                raise
    finally:
        ctx.state.loop_depth -= 1

    return _result(stdout, stderr, exit_code)
