"""Interpreter types for bash-core."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Protocol

if TYPE_CHECKING:
    from ..types import ExecResult, ExecutionLimits
    from .functions import FunctionDef


@dataclass
class VariableMetadata:
    """Per-variable metadata that can't be represented in the flat env dict."""

    attributes: set[str] = field(default_factory=set)
    """Variable attributes: r=readonly, x=export, i=integer, l=lowercase,
    u=uppercase, n=nameref, a=indexed array, A=associative array."""


class VariableStore(dict):
    """Dict subclass that adds metadata tracking for variables.

    The flat key-value store is the variable namespace itself: scalars
    live under their name, array elements under ``<name>_<index-or-key>``.
    A parallel ``_metadata`` dict keeps attributes that have no string
    form. A nameref keeps its target name as its own value and carries
    the ``n`` attribute.
    """

    _metadata: dict[str, VariableMetadata]
    _local_meta_scopes: list[dict[str, VariableMetadata | None]]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._metadata = {}
        self._local_meta_scopes = []

    def get_metadata(self, name: str) -> VariableMetadata:
        """Get or create metadata for a variable."""
        if name not in self._metadata:
            self._metadata[name] = VariableMetadata()
        return self._metadata[name]

    def has_metadata(self, name: str) -> bool:
        return name in self._metadata

    def is_nameref(self, name: str) -> bool:
        meta = self._metadata.get(name)
        return meta is not None and "n" in meta.attributes

    def is_readonly(self, name: str) -> bool:
        meta = self._metadata.get(name)
        return meta is not None and "r" in meta.attributes

    def is_exported(self, name: str) -> bool:
        meta = self._metadata.get(name)
        return meta is not None and "x" in meta.attributes

    def set_attribute(self, name: str, attr: str) -> None:
        self.get_metadata(name).attributes.add(attr)

    def remove_attribute(self, name: str, attr: str) -> None:
        meta = self._metadata.get(name)
        if meta:
            meta.attributes.discard(attr)

    def get_attributes(self, name: str) -> set[str]:
        meta = self._metadata.get(name)
        return set(meta.attributes) if meta else set()

    def set_nameref(self, name: str, target: str) -> None:
        """Make ``name`` a nameref to ``target``."""
        self.get_metadata(name).attributes.add("n")
        self[name] = target

    def clear_nameref(self, name: str) -> None:
        self.remove_attribute(name, "n")

    def push_local_meta_scope(self) -> None:
        """Push a new local metadata scope (for function calls)."""
        self._local_meta_scopes.append({})

    def pop_local_meta_scope(self) -> dict[str, VariableMetadata | None]:
        return self._local_meta_scopes.pop()

    def save_metadata_in_scope(self, name: str) -> None:
        """Save variable's current metadata in the current local scope."""
        if self._local_meta_scopes:
            scope = self._local_meta_scopes[-1]
            if name not in scope:
                meta = self._metadata.get(name)
                scope[name] = (
                    VariableMetadata(attributes=set(meta.attributes)) if meta else None
                )

    def restore_metadata_from_scope(
        self, scope: dict[str, VariableMetadata | None]
    ) -> None:
        """Restore metadata from a saved local scope."""
        for name, saved_meta in scope.items():
            if saved_meta is None:
                self._metadata.pop(name, None)
            else:
                self._metadata[name] = saved_meta

    def copy(self) -> VariableStore:
        """Create a shallow copy that includes metadata."""
        new = VariableStore(super().copy())
        new._metadata = {
            k: VariableMetadata(attributes=set(v.attributes))
            for k, v in self._metadata.items()
        }
        return new

    def to_env_dict(self) -> dict[str, str]:
        """Return a plain dict copy (for ExecResult)."""
        return dict(self)


@dataclass
class ShellOptions:
    """Shell options (set -e, etc.)."""

    errexit: bool = False
    """set -e: Exit immediately if a command exits with non-zero status."""

    pipefail: bool = False
    """set -o pipefail: Return exit status of last failing command in pipeline."""

    nounset: bool = False
    """set -u: Treat unset variables as an error when substituting."""

    xtrace: bool = False
    """set -x: Print commands and their arguments as they are executed."""

    verbose: bool = False
    """set -v: Print shell input lines as they are read."""

    noglob: bool = False
    """set -f: Disable pathname expansion."""

    noclobber: bool = False
    """set -C: Don't overwrite files with > redirection."""

    allexport: bool = False
    """set -a: Export every variable that is assigned."""

    noexec: bool = False
    """set -n: Read commands but don't execute them."""

    posix: bool = False
    """set -o posix: Make special-builtin errors fatal."""

    vi: bool = False
    emacs: bool = False


class Clock(Protocol):
    """Time source for $SECONDS."""

    def now(self) -> float: ...


class RandomSource(Protocol):
    """Number source for $RANDOM."""

    def next(self) -> int: ...

    def seed(self, value: int) -> None: ...


class SystemClock:
    """Wall clock."""

    def now(self) -> float:
        return time.time()


class DefaultRandom:
    """$RANDOM backed by random.Random; values are 0..32767."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def next(self) -> int:
        return self._rng.randint(0, 32767)

    def seed(self, value: int) -> None:
        self._rng.seed(value)


@dataclass
class InterpreterState:
    """Mutable state maintained by the interpreter."""

    env: VariableStore = field(default_factory=VariableStore)
    """Variable namespace (VariableStore is a dict subclass)."""

    associative_arrays: set[str] = field(default_factory=set)
    """Names declared with ``declare -A``."""

    functions: dict[str, "FunctionDef"] = field(default_factory=dict)
    """Defined functions."""

    local_scopes: list[dict[str, Optional[str]]] = field(default_factory=list)
    """Stack of local variable scopes: name -> value before ``local`` (None if unset)."""

    local_var_stack: dict[str, list[tuple[Optional[str], int]]] = field(default_factory=dict)
    """Per name, the (shadowed value, scope index) entries pushed by ``local``."""

    fully_unset_locals: dict[str, int] = field(default_factory=dict)
    """Locals unset in the scope that declared them: name -> scope index."""

    local_exported_vars: list[set[str]] = field(default_factory=list)
    """Names exported inside each function scope."""

    call_depth: int = 0
    """Current function call depth."""

    source_depth: int = 0
    """Current source script nesting depth."""

    command_count: int = 0
    """Total statements executed (for limits)."""

    func_name_stack: list[str] = field(default_factory=list)
    """FUNCNAME; index 0 is the innermost call."""

    call_line_stack: list[int] = field(default_factory=list)
    """BASH_LINENO; index 0 is the line of the innermost call."""

    source_stack: list[str] = field(default_factory=list)
    """BASH_SOURCE; index 0 is the file of the innermost call."""

    last_exit_code: int = 0
    """Exit code of last command."""

    last_arg: str = ""
    """Last argument of previous command (for $_)."""

    start_time: float = 0.0
    """Clock reading when the shell started (for $SECONDS)."""

    seconds_reset_time: Optional[float] = None
    """Clock reading minus the assigned value after ``SECONDS=n``."""

    last_background_pid: int = 0
    """PID of last background job (for $!)."""

    bash_pid: int = 1
    """Simulated PID for $$ and $BASHPID."""

    current_line: int = 0
    """Current line number being executed (for $LINENO)."""

    options: ShellOptions = field(default_factory=ShellOptions)
    """Shell options."""

    shopts: dict[str, bool] = field(default_factory=dict)
    """shopt options that differ from their defaults."""

    in_condition: bool = False
    """True when executing condition for if/while/until."""

    loop_depth: int = 0
    """Current loop nesting depth (for break/continue)."""

    parent_has_loop_context: bool = False
    """True if spawned from within a loop context."""

    clock: Clock = field(default_factory=SystemClock, repr=False)
    random_source: RandomSource = field(default_factory=DefaultRandom, repr=False)


@dataclass
class InterpreterContext:
    """Context provided to interpreter functions."""

    state: InterpreterState
    """Mutable interpreter state."""

    limits: "ExecutionLimits"
    """Execution limits."""

    exec_fn: Optional[Callable[[str], Awaitable["ExecResult"]]] = None
    """Runs a command string (for command substitution)."""
