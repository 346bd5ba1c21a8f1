"""Expansion helpers.

Handles the parts of word expansion that sit between variable lookup and
the final list of words:
- Unquoted ``$@``/``$*``/``${arr[@]}``/``${arr[*]}`` expansion with IFS
  splitting, optionally after a per-element operation (slice, pattern
  removal, pattern replacement, case modification)
- ``${!arr[@]}`` and ``${!prefix@}`` in unquoted context
- Variable expansion inside patterns, where quoted text is protected
  from globbing and unquoted text stays active
- GLOBIGNORE filtering and pattern matching with the current shopts
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from .errors import ExitError
from .ifs import get_ifs, get_ifs_separator, split_by_ifs_for_expansion
from .options import get_shopt
from .pattern import (
    compile_glob,
    compute_fixed_length,
    escape_glob_chars,
    globignore_pattern_to_regex,
    has_glob_pattern,
    match_glob,
    split_globignore_patterns,
)
from .variables import (
    get_array_elements,
    get_positional_params,
    get_var_names_with_prefix,
    get_variable,
)

if TYPE_CHECKING:
    from ..types import ExecResult
    from .pattern import GlobMatcher
    from .types import InterpreterState


@dataclass
class UnquotedExpansionResult:
    """Words produced by an unquoted multi-value expansion."""

    values: list[str] = field(default_factory=list)
    quoted: bool = False


@dataclass
class Slice:
    """``${arr[@]:offset:length}``."""

    offset: int
    length: Optional[int] = None


@dataclass
class PatternRemoval:
    """``${arr[@]#pat}``, ``##``, ``%`` and ``%%``."""

    pattern: str
    greedy: bool = False
    from_end: bool = False


@dataclass
class PatternReplacement:
    """``${arr[@]/pat/rep}``; ``anchor`` is None, "start" (``/#``) or "end" (``/%``)."""

    pattern: str
    replacement: str = ""
    replace_all: bool = False
    anchor: Optional[str] = None


@dataclass
class CaseModification:
    """``${arr[@]^}``, ``^^``, ``,`` and ``,,`` with an optional pattern."""

    direction: str
    all: bool = False
    pattern: Optional[str] = None


ArrayOperation = Union[Slice, PatternRemoval, PatternReplacement, CaseModification]

ExecFn = Callable[[str], Awaitable["ExecResult"]]


# ---------------------------------------------------------------------------
# Single-value operations
# ---------------------------------------------------------------------------


def apply_pattern_removal(
    value: str,
    pattern: str,
    greedy: bool,
    from_end: bool,
    extglob: bool = False,
    nocase: bool = False,
) -> str:
    """Remove the shortest (or longest, if greedy) matching prefix or suffix."""
    regex = compile_glob(pattern, extglob, nocase)
    if regex is None:
        return value
    n = len(value)
    fixed = compute_fixed_length(pattern, extglob)

    if from_end:
        if fixed is not None:
            starts = [n - fixed] if fixed <= n else []
        else:
            starts = range(n + 1) if greedy else range(n, -1, -1)
        for start in starts:
            if regex.fullmatch(value[start:]):
                return value[:start]
    else:
        if fixed is not None:
            ends = [fixed] if fixed <= n else []
        else:
            ends = range(n, -1, -1) if greedy else range(n + 1)
        for end in ends:
            if regex.fullmatch(value[:end]):
                return value[end:]
    return value


def _replace_by_scan(value: str, matcher: "GlobMatcher", replacement: str, replace_all: bool) -> str:
    """Leftmost-longest replacement using whole-candidate matches.

    An empty match is only taken while nothing has been replaced yet.
    """
    n = len(value)
    out = []
    replaced = False
    i = 0
    while i < n:
        match_end = None
        lowest = i + 1 if replaced else i
        for end in range(n, lowest - 1, -1):
            if matcher.fullmatch(value[i:end]):
                match_end = end
                break
        if match_end is None:
            out.append(value[i])
            i += 1
            continue
        out.append(replacement)
        replaced = True
        if not replace_all:
            out.append(value[match_end:])
            return "".join(out)
        if match_end == i:
            out.append(value[i])
            i += 1
        else:
            i = match_end
    return "".join(out)


def apply_pattern_replacement(
    value: str,
    pattern: str,
    replacement: str,
    replace_all: bool = False,
    anchor: Optional[str] = None,
    extglob: bool = False,
    nocase: bool = False,
) -> str:
    """Apply ``${v/pat/rep}`` and its variants to a single value."""
    if not pattern:
        if anchor == "start":
            return replacement + value
        if anchor == "end":
            return value + replacement
        return value

    anchored = compile_glob(pattern, extglob, nocase)
    if anchored is None:
        return value
    n = len(value)
    if anchor == "start":
        for end in range(n, -1, -1):
            if anchored.fullmatch(value[:end]):
                return replacement + value[end:]
        return value
    if anchor == "end":
        for start in range(n + 1):
            if anchored.fullmatch(value[start:]):
                return value[:start] + replacement
        return value

    return _replace_by_scan(value, anchored, replacement, replace_all)


def apply_case_modification(
    value: str,
    direction: str,
    all_chars: bool = False,
    pattern: Optional[str] = None,
) -> str:
    """Upper- or lower-case the first character (or every character)."""
    transform = str.upper if direction == "upper" else str.lower
    if not pattern:
        if all_chars:
            return transform(value)
        return transform(value[:1]) + value[1:]
    chars = list(value)
    for i, c in enumerate(chars):
        if match_glob(c, pattern):
            chars[i] = transform(c)
            if not all_chars:
                break
    return "".join(chars)


# ---------------------------------------------------------------------------
# Multi-value expansion
# ---------------------------------------------------------------------------


def _slice_elements(elements: list[tuple[int, str]], operation: Slice) -> list[str]:
    """Slice (index, value) pairs by index, not by position.

    The slice starts at the first element whose index is at least the
    offset; a negative offset counts back from the highest index + 1.
    """
    offset = operation.offset
    if offset < 0:
        offset += elements[-1][0] + 1 if elements else 0
        if offset < 0:
            return []
    length = operation.length
    if length is not None and length < 0:
        raise ExitError(1, stderr=f"bash: {length}: substring expression < 0\n")
    values = [value for index, value in elements if index >= offset]
    return values if length is None else values[:length]


def _apply_operation(
    state: "InterpreterState",
    values: list[str],
    operation: Optional[ArrayOperation],
) -> list[str]:
    """Apply ``operation`` to every element of ``values``."""
    if operation is None:
        return values
    extglob = get_shopt(state, "extglob")

    if isinstance(operation, Slice):
        return _slice_elements(list(enumerate(values)), operation)

    if isinstance(operation, PatternRemoval):
        return [
            apply_pattern_removal(v, operation.pattern, operation.greedy, operation.from_end, extglob)
            for v in values
        ]

    if isinstance(operation, PatternReplacement):
        return [
            apply_pattern_replacement(
                v,
                operation.pattern,
                operation.replacement,
                operation.replace_all,
                operation.anchor,
                extglob,
            )
            for v in values
        ]

    if isinstance(operation, CaseModification):
        return [
            apply_case_modification(v, operation.direction, operation.all, operation.pattern)
            for v in values
        ]

    raise TypeError(f"unsupported array operation: {operation!r}")


def split_unquoted_value(state: "InterpreterState", value: str) -> list[str]:
    """Split one value with the current IFS."""
    return split_by_ifs_for_expansion(value, get_ifs(state.env))


def _split_unquoted(state: "InterpreterState", values: list[str], is_star: bool) -> UnquotedExpansionResult:
    if not values:
        return UnquotedExpansionResult()
    if is_star:
        joined = get_ifs_separator(state.env).join(values)
        return UnquotedExpansionResult(values=split_unquoted_value(state, joined))
    words: list[str] = []
    for value in values:
        words.extend(split_unquoted_value(state, value))
    return UnquotedExpansionResult(values=words)


def expand_unquoted_array(
    state: "InterpreterState",
    name: str,
    is_star: bool,
    operation: Optional[ArrayOperation] = None,
) -> UnquotedExpansionResult:
    """Expand unquoted ``${name[@]}`` / ``${name[*]}``.

    A slice of an indexed array selects by index, so sparse arrays skip
    their holes.
    """
    elements = get_array_elements(state, name)
    if isinstance(operation, Slice) and all(isinstance(k, int) for k, _ in elements):
        return _split_unquoted(state, _slice_elements(elements, operation), is_star)
    values = [v for _, v in elements]
    return _split_unquoted(state, _apply_operation(state, values, operation), is_star)


def expand_unquoted_positional(
    state: "InterpreterState",
    is_star: bool,
    operation: Optional[ArrayOperation] = None,
) -> UnquotedExpansionResult:
    """Expand unquoted ``$@`` / ``$*``.

    A slice indexes from ``$0``, so ``${@:0}`` includes the script name.
    """
    params = get_positional_params(state)
    if isinstance(operation, Slice):
        values = _apply_operation(state, [get_variable(state, "0")] + params, operation)
    else:
        values = _apply_operation(state, params, operation)
    return _split_unquoted(state, values, is_star)


def expand_unquoted_array_keys(
    state: "InterpreterState", name: str, is_star: bool
) -> UnquotedExpansionResult:
    """Expand unquoted ``${!name[@]}`` / ``${!name[*]}``."""
    keys = [str(k) for k, _ in get_array_elements(state, name)]
    return _split_unquoted(state, keys, is_star)


def expand_unquoted_var_name_prefix(
    state: "InterpreterState", prefix: str, is_star: bool
) -> UnquotedExpansionResult:
    """Expand unquoted ``${!prefix@}`` / ``${!prefix*}``."""
    return _split_unquoted(state, get_var_names_with_prefix(state, prefix), is_star)


# ---------------------------------------------------------------------------
# Variable expansion inside patterns
# ---------------------------------------------------------------------------

_SPECIAL_PARAMS = "?#$!@*-0123456789"


def pattern_has_command_substitution(pattern: str) -> bool:
    """True if an unquoted or double-quoted ``$(...)`` or backtick occurs."""
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if c == "\\" and i + 1 < n:
            i += 2
            continue
        if c == "'":
            close = pattern.find("'", i + 1)
            if close != -1:
                i = close + 1
                continue
        if c == "$" and i + 1 < n and pattern[i + 1] == "(":
            return True
        if c == "`":
            return True
        i += 1
    return False


def find_command_substitution_end(pattern: str, start: int) -> int:
    """Index of the ``)`` closing a ``$(`` whose body starts at ``start``, or -1."""
    depth = 1
    in_single = False
    in_double = False
    n = len(pattern)
    i = start
    while i < n:
        c = pattern[i]
        if c == "\\" and not in_single and i + 1 < n:
            i += 2
            continue
        if c == "'" and not in_double:
            in_single = not in_single
        elif c == '"' and not in_single:
            in_double = not in_double
        elif not in_single and not in_double:
            if c == "(":
                depth += 1
            elif c == ")":
                depth -= 1
                if depth == 0:
                    return i
        i += 1
    return -1


def _find_backtick_end(pattern: str, start: int) -> int:
    i = start
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == "`":
            return i
        i += 1
    return -1


def _find_double_quote_end(pattern: str, start: int) -> int:
    i = start
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == '"':
            return i
        i += 1
    return -1


def _scan_dollar(pattern: str, i: int) -> Optional[tuple[str, str, int]]:
    """Classify a ``$`` at ``i``: ("var", name, end), ("cmd", body, end) or ("raw", text, end)."""
    n = len(pattern)
    if i + 1 >= n:
        return None
    nxt = pattern[i + 1]
    if nxt == "(":
        if pattern.startswith("((", i + 1):
            close = pattern.find("))", i + 3)
            end = n if close == -1 else close + 2
            return "raw", pattern[i:end], end
        close = find_command_substitution_end(pattern, i + 2)
        if close == -1:
            return "raw", pattern[i:], n
        return "cmd", pattern[i + 2:close], close + 1
    if nxt == "{":
        close = pattern.find("}", i + 2)
        if close != -1:
            return "var", pattern[i + 2:close], close + 1
        return None
    if nxt.isalpha() or nxt == "_":
        j = i + 1
        while j < n and (pattern[j].isalnum() or pattern[j] == "_"):
            j += 1
        return "var", pattern[i + 1:j], j
    if nxt in _SPECIAL_PARAMS:
        return "var", nxt, i + 2
    return None


def _tokenize_pattern(pattern: str) -> list[tuple[str, str, bool]]:
    """Break a pattern into (kind, text, quoted) tokens.

    Kinds: "raw" (emit as-is), "literal" (quoted text, emit glob-escaped),
    "var" (variable name), "cmd" (command substitution body) and
    "cmdtext" (verbatim source of a command substitution).
    """
    tokens: list[tuple[str, str, bool]] = []
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if c == "'":
            close = pattern.find("'", i + 1)
            if close != -1:
                tokens.append(("literal", pattern[i + 1:close], True))
                i = close + 1
                continue
        if c == '"':
            close = _find_double_quote_end(pattern, i + 1)
            if close != -1:
                tokens.extend(_tokenize_double_quoted(pattern[i + 1:close]))
                i = close + 1
                continue
        if c == "$":
            scanned = _scan_dollar(pattern, i)
            if scanned is not None:
                kind, text, end = scanned
                if kind == "cmd":
                    tokens.append(("cmdtext", pattern[i:end], False))
                tokens.append((kind, text, False))
                i = end
                continue
        if c == "`":
            close = _find_backtick_end(pattern, i + 1)
            if close != -1:
                tokens.append(("cmdtext", pattern[i:close + 1], False))
                tokens.append(("cmd", pattern[i + 1:close], False))
                i = close + 1
                continue
        if c == "\\" and i + 1 < n:
            tokens.append(("raw", pattern[i:i + 2], False))
            i += 2
            continue
        tokens.append(("raw", c, False))
        i += 1
    return tokens


def _tokenize_double_quoted(content: str) -> list[tuple[str, str, bool]]:
    tokens: list[tuple[str, str, bool]] = []
    n = len(content)
    i = 0
    while i < n:
        c = content[i]
        if c == "\\" and i + 1 < n:
            if content[i + 1] in '$`\\"':
                tokens.append(("literal", content[i + 1], True))
                i += 2
                continue
            tokens.append(("literal", c, True))
            i += 1
            continue
        if c == "$":
            scanned = _scan_dollar(content, i)
            if scanned is not None:
                kind, text, end = scanned
                if kind == "cmd":
                    tokens.append(("cmdtext", content[i:end], True))
                elif kind == "raw":
                    kind = "literal"
                tokens.append((kind, text, True))
                i = end
                continue
        if c == "`":
            close = _find_backtick_end(content, i + 1)
            if close != -1:
                tokens.append(("cmdtext", content[i:close + 1], True))
                tokens.append(("cmd", content[i + 1:close], True))
                i = close + 1
                continue
        tokens.append(("literal", c, True))
        i += 1
    return tokens


def expand_variables_in_pattern(state: "InterpreterState", pattern: str) -> str:
    """Expand variables in a pattern without running commands.

    Single-quoted text is kept and glob-escaped; double-quoted text has
    ``$var``/``${var}`` expanded and is then glob-escaped; unquoted
    ``$var`` is substituted with its glob characters active. Command
    substitutions are left in place untouched.
    """
    out = []
    for kind, text, quoted in _tokenize_pattern(pattern):
        if kind == "raw":
            out.append(text)
        elif kind == "literal":
            out.append(escape_glob_chars(text))
        elif kind == "var":
            value = get_variable(state, text)
            out.append(escape_glob_chars(value) if quoted else value)
        elif kind == "cmdtext":
            out.append(text)
    return "".join(out)


async def expand_variables_in_pattern_async(
    state: "InterpreterState", pattern: str, exec_fn: ExecFn
) -> str:
    """Expand variables and command substitutions in a pattern.

    Command output has trailing newlines removed and is glob-escaped when
    it came from inside double quotes. The substitution's exit status is
    recorded as the last exit code.
    """
    out = []
    for kind, text, quoted in _tokenize_pattern(pattern):
        if kind == "raw":
            out.append(text)
        elif kind == "literal":
            out.append(escape_glob_chars(text))
        elif kind == "var":
            value = get_variable(state, text)
            out.append(escape_glob_chars(value) if quoted else value)
        elif kind == "cmd":
            result = await exec_fn(text)
            state.last_exit_code = result.exit_code
            value = result.stdout.rstrip("\n")
            out.append(escape_glob_chars(value) if quoted else value)
    return "".join(out)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def match_pattern(state: "InterpreterState", value: str, pattern: str) -> bool:
    """Match like ``case`` and ``[[ == ]]``: honors extglob and nocasematch."""
    return match_glob(
        value,
        pattern,
        extglob=get_shopt(state, "extglob"),
        nocase=get_shopt(state, "nocasematch"),
    )


def should_glob(state: "InterpreterState", word: str) -> bool:
    """True if ``word`` is subject to pathname expansion."""
    return not state.options.noglob and has_glob_pattern(word, get_shopt(state, "extglob"))


def filter_globignore(state: "InterpreterState", paths: list[str]) -> list[str]:
    """Drop glob results matched by GLOBIGNORE.

    When GLOBIGNORE is set, ``.`` and ``..`` are always dropped too.
    """
    patterns = split_globignore_patterns(state.env.get("GLOBIGNORE", ""))
    if not patterns:
        return paths
    regexes = [re.compile(globignore_pattern_to_regex(p), re.DOTALL) for p in patterns]
    kept = []
    for path in paths:
        basename = path.rsplit("/", 1)[-1]
        if basename in (".", ".."):
            continue
        if any(r.match(path) for r in regexes):
            continue
        kept.append(path)
    return kept
