"""Shell function definitions and call frames.

A call pushes one frame: an entry on each of the FUNCNAME, BASH_LINENO
and BASH_SOURCE stacks (index 0 is the innermost call), a local variable
scope, a local metadata scope, a set of locally exported names and the
caller's positional parameters. ``cleanup_function_call`` undoes all of
it, whether the body returned normally or raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..types import ExecResult
from .errors import ExecutionLimitError, PosixFatalError, ReturnError
from .variables import VAR_NAME_RE, get_array_indices, get_positional_params, set_positional_params

if TYPE_CHECKING:
    from ..types import ExecutionLimits
    from .types import InterpreterContext, InterpreterState

logger = logging.getLogger(__name__)

POSIX_SPECIAL_BUILTINS = frozenset({
    ":", ".", "break", "continue", "eval", "exec", "exit", "export",
    "readonly", "return", "set", "shift", "trap", "unset",
})

FunctionBody = Callable[["InterpreterContext", str], Awaitable[ExecResult]]


@dataclass
class FunctionDef:
    """A defined shell function."""

    name: str
    body: FunctionBody
    """Coroutine function run with (ctx, stdin)."""

    source_file: Optional[str] = None
    """File the function was defined in (BASH_SOURCE)."""


@dataclass
class FunctionCallContext:
    """What setup_function_call saved, for cleanup_function_call."""

    name: str
    scope_index: int
    saved_positional: list[str] = field(default_factory=list)
    saved_count: Optional[str] = None


def define_function(
    state: "InterpreterState", func: FunctionDef, current_source: Optional[str] = None
) -> ExecResult:
    """Register a function definition.

    In POSIX mode a function may not shadow a special builtin; that is
    a fatal error with status 2.
    """
    if state.options.posix and func.name in POSIX_SPECIAL_BUILTINS:
        raise PosixFatalError(
            2,
            stderr=f"bash: line {state.current_line}: `{func.name}': is a special builtin\n",
        )
    if func.source_file is None:
        func.source_file = current_source or "main"
    state.functions[func.name] = func
    return ExecResult()


def get_function(state: "InterpreterState", name: str) -> Optional[FunctionDef]:
    return state.functions.get(name)


def is_function_defined(state: "InterpreterState", name: str) -> bool:
    return name in state.functions


def unset_function(state: "InterpreterState", name: str) -> bool:
    """Remove a function; returns False if it wasn't defined."""
    return state.functions.pop(name, None) is not None


def get_function_names(state: "InterpreterState") -> list[str]:
    return sorted(state.functions)


def setup_function_call(
    state: "InterpreterState",
    func: FunctionDef,
    args: list[str],
    limits: "ExecutionLimits",
    call_line: Optional[int] = None,
) -> FunctionCallContext:
    """Push a call frame for ``func``.

    Raises ExecutionLimitError, leaving the state untouched, when the call
    would exceed ``limits.max_call_depth``.
    """
    state.call_depth += 1
    if state.call_depth > limits.max_call_depth:
        state.call_depth -= 1
        logger.debug("recursion limit hit calling %s at depth %d", func.name, state.call_depth)
        raise ExecutionLimitError(
            f"{func.name}: maximum recursion depth ({limits.max_call_depth}) exceeded",
            "recursion",
        )

    state.func_name_stack.insert(0, func.name)
    state.call_line_stack.insert(0, call_line if call_line is not None else state.current_line)
    state.source_stack.insert(0, func.source_file or "main")

    state.local_scopes.append({})
    state.env.push_local_meta_scope()
    state.local_exported_vars.append(set())

    call_ctx = FunctionCallContext(
        name=func.name,
        scope_index=len(state.local_scopes) - 1,
        saved_positional=get_positional_params(state),
        saved_count=state.env.get("#"),
    )
    set_positional_params(state, args)
    return call_ctx


def _element_keys(state: "InterpreterState", name: str) -> list[str]:
    if name in state.associative_arrays:
        prefix = f"{name}_"
        return [key for key in state.env if key.startswith(prefix)]
    return [f"{name}_{index}" for index in get_array_indices(state, name)]


def _clear_local_var_stack_for_scope(state: "InterpreterState", scope_index: int) -> None:
    for name in list(state.local_var_stack):
        stack = state.local_var_stack[name]
        while stack and stack[-1][1] == scope_index:
            stack.pop()
        if not stack:
            del state.local_var_stack[name]


def cleanup_function_call(state: "InterpreterState", call_ctx: FunctionCallContext) -> None:
    """Pop the frame pushed by setup_function_call."""
    env = state.env
    scope_index = call_ctx.scope_index

    scope = state.local_scopes.pop()
    # Array elements created for a local inside the call are dropped.
    for var_name, stack in state.local_var_stack.items():
        if stack and stack[-1][1] == scope_index:
            for key in _element_keys(state, var_name):
                if key not in scope:
                    del env[key]
    for var_name, original_value in scope.items():
        if original_value is None:
            env.pop(var_name, None)
        else:
            env[var_name] = original_value

    meta_scope = env.pop_local_meta_scope()
    env.restore_metadata_from_scope(meta_scope)
    for var_name in meta_scope:
        if "A" in env.get_attributes(var_name):
            state.associative_arrays.add(var_name)
        else:
            state.associative_arrays.discard(var_name)

    _clear_local_var_stack_for_scope(state, scope_index)
    state.fully_unset_locals = {
        name: index for name, index in state.fully_unset_locals.items() if index != scope_index
    }

    for var_name in state.local_exported_vars.pop():
        if var_name not in meta_scope:
            env.remove_attribute(var_name, "x")

    set_positional_params(state, call_ctx.saved_positional)
    if call_ctx.saved_count is None:
        env.pop("#", None)

    if state.func_name_stack:
        state.func_name_stack.pop(0)
    if state.call_line_stack:
        state.call_line_stack.pop(0)
    if state.source_stack:
        state.source_stack.pop(0)
    state.call_depth -= 1


async def call_function(
    ctx: "InterpreterContext",
    func: FunctionDef,
    args: list[str],
    stdin: str = "",
    call_line: Optional[int] = None,
) -> ExecResult:
    """Run ``func`` in a fresh call frame.

    ``return`` inside the body becomes the call's result; every other
    signal propagates after the frame is popped.
    """
    call_ctx = setup_function_call(ctx.state, func, args, ctx.limits, call_line)
    try:
        return await func.body(ctx, stdin)
    except ReturnError as e:
        return ExecResult(stdout=e.stdout, stderr=e.stderr, exit_code=e.exit_code)
    finally:
        cleanup_function_call(ctx.state, call_ctx)


def declare_local(state: "InterpreterState", name: str, value: Optional[str] = None) -> None:
    """Make ``name`` local to the current function.

    The previous value (scalar and any array elements) is saved in the
    current scope. Without a value an unset variable becomes empty and a
    set one keeps its value. Raises ValueError outside a function or for
    an invalid name.
    """
    if not state.local_scopes:
        raise ValueError("local: can only be used in a function")
    if not VAR_NAME_RE.match(name):
        raise ValueError(f"local: `{name}': not a valid identifier")

    env = state.env
    scope = state.local_scopes[-1]
    scope_index = len(state.local_scopes) - 1
    if name not in scope:
        scope[name] = env.get(name)
        state.local_var_stack.setdefault(name, []).append((env.get(name), scope_index))
        for key in _element_keys(state, name):
            scope.setdefault(key, env[key])
    env.save_metadata_in_scope(name)
    state.fully_unset_locals.pop(name, None)

    if value is not None:
        env[name] = value
    elif name not in env:
        env[name] = ""


def export_local(state: "InterpreterState", name: str) -> None:
    """Export ``name`` for the lifetime of the current function call."""
    state.env.set_attribute(name, "x")
    if state.local_exported_vars:
        state.local_exported_vars[-1].add(name)
