"""Tests for the top-level Shell runner."""

import pytest

from bash_core import ExecResult, ExecutionLimits, Shell
from bash_core.interpreter import (
    BadSubstitutionError,
    FunctionDef,
    call_function,
    define_function,
    execute_for,
    require_variable,
)
from bash_core.interpreter.builtins import handle_break, handle_exit, handle_return
from bash_core.interpreter.variables import get_variable, set_variable


def echo(text):
    async def stmt(ctx):
        return ExecResult(stdout=text + "\n")
    return stmt


def status(code):
    async def stmt(ctx):
        return ExecResult(exit_code=code)
    return stmt


def builtin(handler, *args):
    async def stmt(ctx):
        return await handler(ctx, list(args))
    return stmt


def assign(name, value):
    async def stmt(ctx):
        set_variable(ctx.state, name, value)
        return ExecResult()
    return stmt


class FixedRandom:
    def next(self) -> int:
        return 4

    def seed(self, value: int) -> None:
        pass


class TestBasicExecution:
    """Test running statements."""

    @pytest.mark.asyncio
    async def test_output_and_status(self):
        shell = Shell()
        result = await shell.exec([echo("hello"), status(2)])
        assert result.stdout == "hello\n"
        assert result.exit_code == 2
        assert get_variable(shell.state, "?") == "2"
        assert "?" not in result.env

    @pytest.mark.asyncio
    async def test_env_persists_between_runs(self):
        shell = Shell()
        await shell.exec([assign("x", "1")])
        result = await shell.exec([])
        assert result.env["x"] == "1"

    @pytest.mark.asyncio
    async def test_default_env(self):
        shell = Shell(env={"FOO": "bar"})
        assert shell.env["HOME"] == "/home/user"
        assert shell.env["FOO"] == "bar"
        assert shell.state.env.is_exported("FOO")
        assert shell.env["SHELLOPTS"] == "braceexpand:hashall:interactive-comments"

    @pytest.mark.asyncio
    async def test_options_from_constructor(self):
        shell = Shell(errexit=True, pipefail=True)
        assert shell.state.options.errexit
        assert "pipefail" in shell.env["SHELLOPTS"]

    @pytest.mark.asyncio
    async def test_random_source(self):
        shell = Shell(random_source=FixedRandom())
        assert get_variable(shell.state, "RANDOM") == "4"

    def test_sync_run(self):
        shell = Shell()
        result = shell.run([echo("sync")])
        assert result.stdout == "sync\n"

    @pytest.mark.asyncio
    async def test_reset(self):
        shell = Shell()
        await shell.exec([assign("x", "1")])
        shell.reset()
        assert "x" not in shell.env


class TestTerminatingSignals:
    """Test how signals reaching the top level become exit codes."""

    @pytest.mark.asyncio
    async def test_errexit_stops_script(self):
        shell = Shell(errexit=True)
        result = await shell.exec([echo("a"), status(3), echo("b")])
        assert result.stdout == "a\n"
        assert result.exit_code == 3

    @pytest.mark.asyncio
    async def test_nounset(self):
        shell = Shell(nounset=True)

        async def use_unset(ctx):
            return ExecResult(stdout=require_variable(ctx.state, "UNDEFINED"))

        result = await shell.exec([echo("before"), use_unset, echo("after")])
        assert result.stdout == "before\n"
        assert result.stderr == "bash: UNDEFINED: unbound variable\n"
        assert result.exit_code == 1

    @pytest.mark.asyncio
    async def test_bad_substitution(self):
        shell = Shell()

        async def bad(ctx):
            raise BadSubstitutionError("${x")

        result = await shell.exec([bad, echo("after")])
        assert result.exit_code == 1
        assert result.stderr == "bash: ${x: bad substitution\n"

    @pytest.mark.asyncio
    async def test_exit(self):
        shell = Shell()
        result = await shell.exec([echo("a"), builtin(handle_exit, "7"), echo("b")])
        assert result.stdout == "a\n"
        assert result.exit_code == 7

    @pytest.mark.asyncio
    async def test_posix_fatal(self):
        shell = Shell()
        shell.state.options.posix = True

        async def body(ctx, stdin):
            return ExecResult()

        async def define(ctx):
            return define_function(ctx.state, FunctionDef("set", body))

        result = await shell.exec([define, echo("after")])
        assert result.exit_code == 2
        assert "is a special builtin" in result.stderr
        assert result.stdout == ""

    @pytest.mark.asyncio
    async def test_recursion_limit(self):
        shell = Shell(limits=ExecutionLimits(max_call_depth=20))

        async def body(ctx, stdin):
            return await call_function(ctx, func, [])

        func = FunctionDef("recurse", body)

        async def start(ctx):
            return await call_function(ctx, func, [])

        result = await shell.exec([start, echo("after")])
        assert result.exit_code == 126
        assert "recurse: maximum recursion depth (20) exceeded" in result.stderr
        assert shell.state.call_depth == 0

    @pytest.mark.asyncio
    async def test_command_limit_resets_per_run(self):
        shell = Shell(limits=ExecutionLimits(max_command_count=2))
        result = await shell.exec([echo("a"), echo("b")])
        assert result.exit_code == 0
        result = await shell.exec([echo("c"), echo("d"), echo("e")])
        assert result.exit_code == 126
        assert result.stdout == "c\nd\n"


class TestStrayScopeExits:
    """Test break, continue and return at the top level."""

    @pytest.mark.asyncio
    async def test_break_outside_loop_is_noop(self):
        shell = Shell()
        result = await shell.exec([builtin(handle_break), echo("after")])
        assert result.stdout == "after\n"
        assert result.exit_code == 0
        assert "only meaningful" in result.stderr

    @pytest.mark.asyncio
    async def test_return_outside_function(self):
        shell = Shell()
        result = await shell.exec([builtin(handle_return, "3"), echo("after")])
        assert result.stdout == "after\n"
        assert "can only `return' from a function or sourced script" in result.stderr

    @pytest.mark.asyncio
    async def test_return_zero_outside_function(self):
        shell = Shell()
        result = await shell.exec([builtin(handle_return, "0")])
        assert result.exit_code == 1

    @pytest.mark.asyncio
    async def test_nested_loops_in_script(self):
        shell = Shell()

        async def outer(ctx):
            async def inner(ctx):
                async def maybe_break(ctx):
                    if get_variable(ctx.state, "j") == "b":
                        return await handle_break(ctx, ["2"])
                    i, j = get_variable(ctx.state, "i"), get_variable(ctx.state, "j")
                    return ExecResult(stdout=f"{i}.{j}\n")
                return await execute_for(ctx, "j", ["a", "b", "c"], [maybe_break])
            return await execute_for(ctx, "i", ["1", "2", "3"], [inner])

        result = await shell.exec([outer, echo("done")])
        assert result.stdout == "1.a\ndone\n"
        assert shell.state.loop_depth == 0


class TestCommandSubstitutionHook:
    """Test the exec_fn passed to Shell."""

    @pytest.mark.asyncio
    async def test_pattern_with_command_substitution(self):
        from bash_core.interpreter import expand_variables_in_pattern_async, match_pattern

        async def exec_fn(script):
            return ExecResult(stdout="foo\n")

        shell = Shell(exec_fn=exec_fn)

        async def check(ctx):
            pattern = await expand_variables_in_pattern_async(ctx.state, "$(pick)*", ctx.exec_fn)
            matched = match_pattern(ctx.state, "foobar", pattern)
            return ExecResult(exit_code=0 if matched else 1)

        result = await shell.exec([check])
        assert result.exit_code == 0
