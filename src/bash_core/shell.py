"""Main Shell class - the primary API for bash-core.

The core has no parser: a script is a list of statements, each a
coroutine function taking the InterpreterContext and returning an
ExecResult. The Shell owns the interpreter state and turns every
control-flow signal that reaches the top level into an exit code.

Example usage:
    from bash_core import Shell
    from bash_core.interpreter import set_variable

    async def greet(ctx):
        set_variable(ctx.state, "GREETING", "hello")
        return ExecResult(stdout="hello\\n")

    # Synchronous usage (for REPL, scripts)
    shell = Shell()
    result = shell.run([greet])
    print(result.stdout)  # "hello\\n"

    # Async usage (for async applications)
    shell = Shell()
    result = await shell.exec([greet])

    # With execution limits
    shell = Shell(limits=ExecutionLimits(max_call_depth=50))
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

import nest_asyncio  # type: ignore[import-untyped]

from .interpreter import (
    BadSubstitutionError,
    BreakError,
    Clock,
    ContinueError,
    ControlFlowError,
    ErrexitError,
    ExecutionLimitError,
    ExitError,
    InterpreterContext,
    InterpreterState,
    NounsetError,
    PosixFatalError,
    RandomSource,
    ReturnError,
    ShellOptions,
    Statement,
    VariableStore,
    execute_statement,
    exit_code_for,
    sync_option_variables,
)
from .types import ExecResult, ExecutionLimits

logger = logging.getLogger(__name__)

ExecFn = Callable[[str], Awaitable[ExecResult]]


class Shell:
    """Bash execution core.

    Holds the variable namespace, function table, option state and call
    stacks, and runs host-supplied statements against them.
    """

    def __init__(
        self,
        *,
        env: Optional[dict[str, str]] = None,
        limits: Optional[ExecutionLimits] = None,
        errexit: bool = False,
        pipefail: bool = False,
        nounset: bool = False,
        clock: Optional[Clock] = None,
        random_source: Optional[RandomSource] = None,
        exec_fn: Optional[ExecFn] = None,
    ):
        """Initialize the shell.

        Args:
            env: Additional environment variables.
            limits: Execution limits for security.
            errexit: Enable errexit (set -e) mode.
            pipefail: Enable pipefail mode.
            nounset: Enable nounset (set -u) mode.
            clock: Time source for $SECONDS. Defaults to the system clock.
            random_source: Generator for $RANDOM.
            exec_fn: Runs a command string for command substitution in patterns.
        """
        self._limits = limits or ExecutionLimits()
        self._clock = clock
        self._random_source = random_source
        self._exec_fn = exec_fn

        default_env = VariableStore({
            "PATH": "/usr/local/bin:/usr/bin:/bin",
            "HOME": "/home/user",
            "USER": "user",
            "SHELL": "/bin/bash",
            "PWD": "/home/user",
            "IFS": " \t\n",
            "SHLVL": "1",
            "BASH_VERSION": "5.0.0(1)-release",
            "OPTIND": "1",
        })
        # Mark default environment variables as exported (visible to subprocesses)
        for var in ("PATH", "HOME", "USER", "SHELL", "PWD", "SHLVL", "BASH_VERSION"):
            default_env.set_attribute(var, "x")
        if env:
            default_env.update(env)
            for var in env:
                default_env.set_attribute(var, "x")

        self._initial_env = default_env
        self._initial_options = ShellOptions(
            errexit=errexit,
            pipefail=pipefail,
            nounset=nounset,
        )
        self._ctx = self._create_context()

    def _create_context(self) -> InterpreterContext:
        state = InterpreterState(
            env=self._initial_env.copy(),
            options=ShellOptions(
                errexit=self._initial_options.errexit,
                pipefail=self._initial_options.pipefail,
                nounset=self._initial_options.nounset,
            ),
        )
        if self._clock is not None:
            state.clock = self._clock
        if self._random_source is not None:
            state.random_source = self._random_source
        state.start_time = state.clock.now()
        sync_option_variables(state)
        return InterpreterContext(state=state, limits=self._limits, exec_fn=self._exec_fn)

    @property
    def ctx(self) -> InterpreterContext:
        """Get the interpreter context statements run against."""
        return self._ctx

    @property
    def state(self) -> InterpreterState:
        """Get the interpreter state."""
        return self._ctx.state

    @property
    def env(self) -> dict[str, str]:
        """Get the variable namespace."""
        return self._ctx.state.env

    def _finish(self, stdout: str, stderr: str, exit_code: int) -> ExecResult:
        state = self._ctx.state
        state.last_exit_code = exit_code
        return ExecResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            env=dict(state.env),
        )

    async def exec(self, statements: Sequence[Statement]) -> ExecResult:
        """Execute a script.

        Args:
            statements: The statements to run, in order.

        Returns:
            ExecResult with stdout, stderr, exit_code, and final env.
        """
        ctx = self._ctx
        state = ctx.state
        state.command_count = 0
        stdout = ""
        stderr = ""
        exit_code = 0

        for statement in statements:
            try:
                result = await execute_statement(ctx, statement)
                stdout += result.stdout
                stderr += result.stderr
                exit_code = result.exit_code
            except (BreakError, ContinueError) as error:
                # Outside loops, silently continue
                stdout += error.stdout
                stderr += error.stderr
                continue
            except ReturnError as error:
                # At top level - warn and use return's exit code
                stdout += error.stdout
                stderr += error.stderr + "bash: return: can only `return' from a function or sourced script\n"
                exit_code = error.exit_code if error.exit_code != 0 else 1
                state.last_exit_code = exit_code
                continue
            except ExecutionLimitError as error:
                logger.debug("execution limit reached: %s (%s)", error, error.limit_type)
                return self._finish(
                    stdout + error.stdout, stderr + error.stderr, ExecutionLimitError.EXIT_CODE
                )
            except (ExitError, ErrexitError, PosixFatalError) as error:
                return self._finish(stdout + error.stdout, stderr + error.stderr, error.exit_code)
            except (NounsetError, BadSubstitutionError) as error:
                return self._finish(stdout + error.stdout, stderr + error.stderr, 1)
            except ControlFlowError as error:
                logger.debug("script terminated by %s", type(error).__name__)
                return self._finish(
                    stdout + error.stdout, stderr + error.stderr, exit_code_for(error)
                )

        return self._finish(stdout, stderr, exit_code)

    def run(self, statements: Sequence[Statement]) -> ExecResult:
        """Execute a script synchronously.

        This is a convenience wrapper around exec() that works in any context,
        including Jupyter notebooks and async frameworks.
        """
        try:
            asyncio.get_running_loop()
            # We're in an existing event loop (Jupyter, async framework, etc.)
            # Apply nest_asyncio to allow nested event loops
            nest_asyncio.apply()
        except RuntimeError:
            # No running event loop, asyncio.run() will work fine
            pass
        return asyncio.run(self.exec(statements))

    def reset(self) -> None:
        """Reset the interpreter state to initial values."""
        self._ctx = self._create_context()
