"""Variable, array and nameref resolution.

All reads go through ``get_variable`` (never fails, unset reads as "")
and ``is_variable_set``; ``require_variable`` adds the ``set -u`` check.
Arrays are stored flat in the VariableStore: element ``i`` of ``arr``
lives under ``arr_i`` (canonical decimal, no leading zeros) and element
``k`` of an associative array under ``arr_k``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional, Union

from .errors import NounsetError
from .ifs import get_ifs_separator
from .options import build_bashopts, build_shellopts, option_flags

if TYPE_CHECKING:
    from .types import InterpreterState

logger = logging.getLogger(__name__)

VAR_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
ARRAY_REF_RE = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)\[(.+)\]$", re.DOTALL)
_VALID_NAMEREF_TARGET_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\[.+\])?$", re.DOTALL)
_CANONICAL_INT_RE = re.compile(r"^(0|[1-9][0-9]*)$")

MAX_NAMEREF_DEPTH = 100

# Specials that always count as set.
ALWAYS_SET = frozenset({
    "?", "$", "-", "0", "#", "BASHPID", "LINENO", "RANDOM", "SECONDS",
    "SHELLOPTS", "BASHOPTS",
})

CALL_STACK_ARRAYS = ("FUNCNAME", "BASH_LINENO", "BASH_SOURCE")


# ---------------------------------------------------------------------------
# Namerefs
# ---------------------------------------------------------------------------


def resolve_nameref(
    state: "InterpreterState", name: str, max_depth: int = MAX_NAMEREF_DEPTH
) -> Optional[str]:
    """Follow a nameref chain to the name that finally holds the value.

    Returns ``name`` unchanged if it is not a nameref, and the last
    nameref in the chain if its target is empty or not a valid name.
    Returns None when the chain loops or is deeper than ``max_depth``.
    """
    env = state.env
    if not env.is_nameref(name):
        return name
    seen: set[str] = set()
    current = name
    for _ in range(max_depth):
        if current in seen:
            return None
        seen.add(current)
        if not env.is_nameref(current):
            return current
        target = env.get(current, "")
        if not target or not _VALID_NAMEREF_TARGET_RE.match(target):
            return current
        current = target
    return None


def get_nameref_target(state: "InterpreterState", name: str) -> Optional[str]:
    """The raw target stored in a nameref, or None if ``name`` is not one."""
    if not state.env.is_nameref(name):
        return None
    return state.env.get(name)


def _resolved_name(state: "InterpreterState", name: str) -> str:
    """Resolve a nameref for an accessor, falling back to the raw name."""
    if VAR_NAME_RE.match(name) and state.env.is_nameref(name):
        resolved = resolve_nameref(state, name)
        if resolved is None:
            logger.debug("%s: circular name reference", name)
            return name
        return resolved
    return name


# ---------------------------------------------------------------------------
# Arrays
# ---------------------------------------------------------------------------


def is_assoc(state: "InterpreterState", name: str) -> bool:
    return name in state.associative_arrays


def get_array_indices(state: "InterpreterState", name: str) -> list[int]:
    """Sorted indices of an indexed array (canonical integer keys only)."""
    prefix = f"{name}_"
    indices = []
    for key in state.env:
        if key.startswith(prefix):
            suffix = key[len(prefix):]
            if _CANONICAL_INT_RE.match(suffix):
                indices.append(int(suffix))
    indices.sort()
    return indices


def get_assoc_array_keys(state: "InterpreterState", name: str) -> list[str]:
    """Sorted keys of an associative array."""
    prefix = f"{name}_"
    return sorted(key[len(prefix):] for key in state.env if key.startswith(prefix))


def get_array_elements(
    state: "InterpreterState", name: str
) -> list[tuple[Union[int, str], str]]:
    """All elements as (index-or-key, value) pairs in iteration order."""
    stack = _call_stack_array(state, name)
    if stack is not None:
        return list(enumerate(stack))
    name = _resolved_name(state, name)
    env = state.env
    if is_assoc(state, name):
        return [(k, env[f"{name}_{k}"]) for k in get_assoc_array_keys(state, name)]
    return [(i, env[f"{name}_{i}"]) for i in get_array_indices(state, name)]


def get_array_keys(state: "InterpreterState", name: str) -> list[str]:
    """Indices (as strings) or keys, for ``${!arr[@]}``."""
    return [str(k) for k, _ in get_array_elements(state, name)]


def is_array(state: "InterpreterState", name: str) -> bool:
    """True if ``name`` is a declared or populated array."""
    if name in CALL_STACK_ARRAYS:
        return True
    if is_assoc(state, name):
        return True
    if state.env.get_attributes(name) & {"a", "A"}:
        return True
    return bool(get_array_indices(state, name))


def unquote_key(key: str) -> str:
    """Strip one layer of matching single or double quotes."""
    if len(key) >= 2 and key[0] == key[-1] and key[0] in "'\"":
        return key[1:-1]
    return key


def expand_simple_vars_in_subscript(state: "InterpreterState", subscript: str) -> str:
    """Substitute ``$VAR`` and ``${VAR}`` references in a subscript."""
    out = []
    n = len(subscript)
    i = 0
    while i < n:
        c = subscript[i]
        if c == "$" and i + 1 < n:
            if subscript[i + 1] == "{":
                close = subscript.find("}", i + 2)
                if close != -1:
                    out.append(get_variable(state, subscript[i + 2:close]))
                    i = close + 1
                    continue
            elif subscript[i + 1].isalpha() or subscript[i + 1] == "_":
                j = i + 1
                while j < n and (subscript[j].isalnum() or subscript[j] == "_"):
                    j += 1
                out.append(get_variable(state, subscript[i + 1:j]))
                i = j
                continue
        out.append(c)
        i += 1
    return "".join(out)


_TOKEN_RE = re.compile(r"\s*(?:(\d+)|([a-zA-Z_][a-zA-Z0-9_]*)|(.))")


def _tokenize(expr: str) -> list[str]:
    tokens = []
    for number, name, op in _TOKEN_RE.findall(expr):
        tokens.append(number or name or op)
    return [t for t in tokens if t.strip()]


class _SubscriptParser:
    """Recursive-descent evaluator for ``+ - * / %`` and parentheses."""

    def __init__(self, state: "InterpreterState", tokens: list[str]):
        self.state = state
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise ValueError("unexpected end of subscript")
        self.pos += 1
        return token

    def parse(self) -> int:
        value = self._expr()
        if self._peek() is not None:
            raise ValueError(f"unexpected token {self._peek()!r}")
        return value

    def _expr(self) -> int:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._next() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> int:
        value = self._unary()
        while self._peek() in ("*", "/", "%"):
            op = self._next()
            rhs = self._unary()
            if op == "*":
                value *= rhs
            elif rhs == 0:
                raise ValueError("division by 0")
            else:
                # Shell arithmetic truncates toward zero.
                quotient = abs(value) // abs(rhs)
                if (value < 0) != (rhs < 0):
                    quotient = -quotient
                value = quotient if op == "/" else value - quotient * rhs
        return value

    def _unary(self) -> int:
        token = self._peek()
        if token == "-":
            self._next()
            return -self._unary()
        if token == "+":
            self._next()
            return self._unary()
        return self._primary()

    def _primary(self) -> int:
        token = self._next()
        if token == "(":
            value = self._expr()
            if self._next() != ")":
                raise ValueError("missing )")
            return value
        if token.isdigit():
            return int(token)
        if VAR_NAME_RE.match(token):
            return _int_value(get_variable(self.state, token))
        raise ValueError(f"unexpected token {token!r}")


def _int_value(value: str) -> int:
    try:
        return int(value.strip() or "0")
    except ValueError:
        return 0


def evaluate_subscript(state: "InterpreterState", subscript: str) -> int:
    """Evaluate an indexed-array subscript to an integer.

    Supports integer literals, bare variable names, ``$var`` references
    and simple arithmetic. Raises ValueError for anything else.
    """
    expanded = expand_simple_vars_in_subscript(state, subscript.strip())
    return _SubscriptParser(state, _tokenize(expanded)).parse()


def _normalize_index(state: "InterpreterState", name: str, index: int) -> Optional[int]:
    """Map a negative index to one counting back from past the highest index."""
    if index >= 0:
        return index
    indices = get_array_indices(state, name)
    if not indices:
        return None
    index = indices[-1] + 1 + index
    return index if index >= 0 else None


def _assoc_key(state: "InterpreterState", subscript: str) -> str:
    return expand_simple_vars_in_subscript(state, unquote_key(subscript))


def _call_stack_array(state: "InterpreterState", name: str) -> Optional[list[str]]:
    if name == "FUNCNAME":
        return list(state.func_name_stack)
    if name == "BASH_LINENO":
        return [str(line) for line in state.call_line_stack]
    if name == "BASH_SOURCE":
        return list(state.source_stack)
    return None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_positional_params(state: "InterpreterState") -> list[str]:
    """Get all positional parameters ($1, $2, ...) as a list."""
    params = []
    i = 1
    while str(i) in state.env:
        params.append(state.env[str(i)])
        i += 1
    return params


def _get_array_ref(state: "InterpreterState", arr_name: str, subscript: str) -> str:
    env = state.env
    arr_name = _resolved_name(state, arr_name)

    stack = _call_stack_array(state, arr_name)
    if stack is not None:
        if subscript in ("@", "*"):
            return " ".join(stack)
        try:
            index = evaluate_subscript(state, subscript)
        except ValueError:
            return ""
        if index < 0:
            index += len(stack)
        return stack[index] if 0 <= index < len(stack) else ""

    if subscript in ("@", "*"):
        elements = get_array_elements(state, arr_name)
        if not elements:
            return env.get(arr_name, "")
        return " ".join(value for _, value in elements)

    if is_assoc(state, arr_name):
        return env.get(f"{arr_name}_{_assoc_key(state, subscript)}", "")

    try:
        index = _normalize_index(state, arr_name, evaluate_subscript(state, subscript))
    except ValueError:
        return ""
    if index is None:
        return ""
    key = f"{arr_name}_{index}"
    if key in env:
        return env[key]
    # ${scalar[0]} is the scalar itself
    if index == 0:
        return env.get(arr_name, "")
    return ""


def get_variable(state: "InterpreterState", name: str) -> str:
    """Get a variable value; unset variables read as the empty string.

    Handles special parameters, ``name[subscript]`` references and
    namerefs.
    """
    env = state.env

    if VAR_NAME_RE.match(name) and env.is_nameref(name):
        resolved = resolve_nameref(state, name)
        if resolved is not None and resolved != name:
            return get_variable(state, resolved)

    array_match = ARRAY_REF_RE.match(name)
    if array_match:
        return _get_array_ref(state, array_match.group(1), array_match.group(2))

    if name == "?":
        return str(state.last_exit_code)
    elif name in ("$", "BASHPID"):
        return str(state.bash_pid)
    elif name == "!":
        return str(state.last_background_pid) if state.last_background_pid else ""
    elif name == "#":
        return str(len(get_positional_params(state)))
    elif name == "@":
        return " ".join(get_positional_params(state))
    elif name == "*":
        return get_ifs_separator(env).join(get_positional_params(state))
    elif name == "-":
        return option_flags(state)
    elif name == "_":
        return state.last_arg
    elif name == "0":
        return env.get("0", "bash")
    elif name == "LINENO":
        return str(state.current_line)
    elif name == "RANDOM":
        return str(state.random_source.next())
    elif name == "SECONDS":
        base = state.seconds_reset_time
        if base is None:
            base = state.start_time
        return str(int(state.clock.now() - base))
    elif name == "SHELLOPTS":
        return build_shellopts(state)
    elif name == "BASHOPTS":
        return build_bashopts(state)

    stack = _call_stack_array(state, name)
    if stack is not None:
        return stack[0] if stack else ""

    value = env.get(name)
    if value is None:
        if VAR_NAME_RE.match(name) and is_array(state, name):
            return env.get(f"{name}_0", "")
        return ""
    return value


def is_variable_set(state: "InterpreterState", name: str) -> bool:
    """True if ``name`` is bound (empty values count as set)."""
    env = state.env

    if VAR_NAME_RE.match(name) and env.is_nameref(name):
        resolved = resolve_nameref(state, name)
        if resolved is not None and resolved != name:
            return is_variable_set(state, resolved)

    if name in ALWAYS_SET:
        return True
    if name in ("@", "*"):
        return bool(get_positional_params(state))
    if name == "!":
        return state.last_background_pid != 0

    array_match = ARRAY_REF_RE.match(name)
    if array_match:
        arr_name = _resolved_name(state, array_match.group(1))
        subscript = array_match.group(2)
        stack = _call_stack_array(state, arr_name)
        if subscript in ("@", "*"):
            if stack is not None:
                return bool(stack)
            return bool(get_array_elements(state, arr_name))
        if stack is not None:
            try:
                index = evaluate_subscript(state, subscript)
            except ValueError:
                return False
            return -len(stack) <= index < len(stack)
        if is_assoc(state, arr_name):
            return f"{arr_name}_{_assoc_key(state, subscript)}" in env
        try:
            index = _normalize_index(state, arr_name, evaluate_subscript(state, subscript))
        except ValueError:
            return False
        if index is None:
            return False
        if f"{arr_name}_{index}" in env:
            return True
        return index == 0 and arr_name in env

    stack = _call_stack_array(state, name)
    if stack is not None:
        return bool(stack)
    if name in env:
        return True
    return VAR_NAME_RE.match(name) is not None and is_array(state, name) and f"{name}_0" in env


def require_variable(state: "InterpreterState", name: str) -> str:
    """Like get_variable, but raise NounsetError under ``set -u``."""
    if state.options.nounset and name not in ("@", "*") and not is_variable_set(state, name):
        raise NounsetError(name)
    return get_variable(state, name)


def get_var_names_with_prefix(state: "InterpreterState", prefix: str) -> list[str]:
    """Sorted variable names starting with ``prefix`` (for ``${!prefix@}``)."""
    names = set()
    for key in state.env:
        if not VAR_NAME_RE.match(key):
            continue
        base = _element_base(state, key)
        name = key if base is None else base
        if name.startswith(prefix):
            names.add(name)
    for arr_name in state.associative_arrays:
        if arr_name.startswith(prefix):
            names.add(arr_name)
    return sorted(names)


def _element_base(state: "InterpreterState", key: str) -> Optional[str]:
    """The array name if ``key`` stores an array element, else None."""
    pos = key.find("_", 1)
    while pos != -1:
        base = key[:pos]
        if is_assoc(state, base):
            return base
        if _CANONICAL_INT_RE.match(key[pos + 1:]) and is_array(state, base):
            return base
        pos = key.find("_", pos + 1)
    return None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _check_writable(state: "InterpreterState", name: str) -> None:
    if state.env.is_readonly(name):
        raise ValueError(f"{name}: readonly variable")


def _resolve_for_write(state: "InterpreterState", name: str) -> Optional[str]:
    if not state.env.is_nameref(name):
        return name
    resolved = resolve_nameref(state, name)
    if resolved is None:
        logger.warning("%s: circular name reference", name)
    return resolved


def set_variable(state: "InterpreterState", name: str, value: str) -> None:
    """Assign a scalar or ``name[subscript]``, following namerefs.

    Raises ValueError for readonly variables. Assignments through a
    circular nameref are dropped.
    """
    array_match = ARRAY_REF_RE.match(name)
    if array_match:
        set_array_element(state, array_match.group(1), array_match.group(2), value)
        return
    target = _resolve_for_write(state, name)
    if target is None:
        return
    if target != name and ARRAY_REF_RE.match(target):
        set_variable(state, target, value)
        return

    _check_writable(state, target)
    if target == "RANDOM":
        state.random_source.seed(_int_value(value))
    elif target == "SECONDS":
        state.seconds_reset_time = state.clock.now() - _int_value(value)
    state.env[target] = value
    if state.options.allexport:
        state.env.set_attribute(target, "x")


def declare_assoc(state: "InterpreterState", name: str) -> None:
    """Declare ``name`` as an associative array."""
    state.associative_arrays.add(name)
    state.env.set_attribute(name, "A")


def set_array_element(state: "InterpreterState", name: str, subscript: str, value: str) -> None:
    """Assign one element; raises ValueError for a bad subscript."""
    name = _resolve_for_write(state, name)
    if name is None:
        return
    _check_writable(state, name)
    env = state.env
    if is_assoc(state, name):
        env[f"{name}_{_assoc_key(state, subscript)}"] = value
        return
    index = _normalize_index(state, name, evaluate_subscript(state, subscript))
    if index is None:
        raise ValueError(f"{name}[{subscript}]: bad array subscript")
    if name in env and not is_array(state, name):
        # Promote a scalar to element 0
        env[f"{name}_0"] = env.pop(name)
    env[f"{name}_{index}"] = value
    env.set_attribute(name, "a")


def clear_array(state: "InterpreterState", name: str) -> None:
    """Remove every element of an array."""
    env = state.env
    prefix = f"{name}_"
    if is_assoc(state, name):
        doomed = [k for k in env if k.startswith(prefix)]
    else:
        doomed = [f"{prefix}{i}" for i in get_array_indices(state, name)]
    for key in doomed:
        del env[key]


def set_array(state: "InterpreterState", name: str, values: list[str]) -> None:
    """Replace an indexed array with ``values`` at indices 0..n-1."""
    name = _resolve_for_write(state, name)
    if name is None:
        return
    _check_writable(state, name)
    clear_array(state, name)
    state.env.pop(name, None)
    for i, value in enumerate(values):
        state.env[f"{name}_{i}"] = value
    state.env.set_attribute(name, "a")


def set_assoc_array(state: "InterpreterState", name: str, items: dict[str, str]) -> None:
    """Replace an associative array with ``items``."""
    name = _resolve_for_write(state, name)
    if name is None:
        return
    _check_writable(state, name)
    declare_assoc(state, name)
    clear_array(state, name)
    for key, value in items.items():
        state.env[f"{name}_{key}"] = value


def unset_variable(state: "InterpreterState", name: str, nameref: bool = False) -> None:
    """Unset a variable, an array, or a single ``name[subscript]`` element.

    With ``nameref`` the nameref itself is removed instead of its target.
    """
    env = state.env
    array_match = ARRAY_REF_RE.match(name)
    if array_match:
        arr_name = _resolved_name(state, array_match.group(1))
        subscript = array_match.group(2)
        _check_writable(state, arr_name)
        if subscript in ("@", "*"):
            unset_variable(state, arr_name)
        elif is_assoc(state, arr_name):
            env.pop(f"{arr_name}_{_assoc_key(state, subscript)}", None)
        else:
            index = _normalize_index(state, arr_name, evaluate_subscript(state, subscript))
            if index is None:
                raise ValueError(f"{arr_name}[{subscript}]: bad array subscript")
            env.pop(f"{arr_name}_{index}", None)
        return

    if not nameref:
        target = _resolve_for_write(state, name)
        if target is None:
            return
        if target != name and ARRAY_REF_RE.match(target):
            unset_variable(state, target)
            return
        name = target

    _check_writable(state, name)
    clear_array(state, name)
    env.pop(name, None)
    state.associative_arrays.discard(name)
    for attr in ("a", "A", "n", "x"):
        env.remove_attribute(name, attr)
    if state.local_scopes and name in state.local_scopes[-1]:
        state.fully_unset_locals[name] = len(state.local_scopes) - 1


def set_positional_params(state: "InterpreterState", params: list[str]) -> None:
    """Replace $1..$N and update $#."""
    env = state.env
    i = 1
    while str(i) in env:
        del env[str(i)]
        i += 1
    for i, param in enumerate(params, start=1):
        env[str(i)] = param
    env["#"] = str(len(params))
