"""IFS word splitting.

Splits expansion results and `read` input into fields according to the
IFS variable. IFS characters fall into two classes:

- IFS whitespace (space, tab, newline): runs collapse into a single
  boundary and leading/trailing runs produce no field.
- Non-whitespace IFS characters: each one is a boundary on its own, so
  two in a row delimit an empty field. Whitespace adjacent to one of
  them is absorbed into that boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_IFS = " \t\n"
_IFS_WHITESPACE = " \t\n"
_REGEX_SPECIAL = set("\\^$.*+?()[]{}|-")


@dataclass
class IfsExpansionSplitResult:
    """Fields from expansion splitting plus delimiter hints for word joining."""

    words: list[str] = field(default_factory=list)
    had_leading_delimiter: bool = False
    had_trailing_delimiter: bool = False


@dataclass
class IfsReadSplitResult:
    """Fields from `read` splitting plus the offset each field starts at."""

    words: list[str] = field(default_factory=list)
    word_starts: list[int] = field(default_factory=list)


def get_ifs(env: Mapping[str, str]) -> str:
    """Return IFS, or the default when it is unset."""
    return env.get("IFS", DEFAULT_IFS)


def is_ifs_empty(env: Mapping[str, str]) -> bool:
    """True if IFS is set to the empty string."""
    return env.get("IFS") == ""


def is_ifs_whitespace_only(env: Mapping[str, str]) -> bool:
    """True if IFS holds only whitespace (an empty IFS counts)."""
    return all(c in _IFS_WHITESPACE for c in get_ifs(env))


def get_ifs_separator(env: Mapping[str, str]) -> str:
    """Return the joiner used by `$*` and `${arr[*]}`.

    Unset IFS joins with a space, empty IFS joins with nothing, otherwise
    the first IFS character is used.
    """
    ifs = env.get("IFS")
    if ifs is None:
        return " "
    return ifs[:1]


def build_ifs_char_class_pattern(ifs: str) -> str:
    """Escape IFS characters for use inside a regex character class."""
    out = []
    for c in ifs:
        if c in _REGEX_SPECIAL:
            out.append("\\" + c)
        elif c == "\t":
            out.append("\\t")
        elif c == "\n":
            out.append("\\n")
        else:
            out.append(c)
    return "".join(out)


def _categorize(ifs: str) -> tuple[set[str], set[str]]:
    whitespace = {c for c in ifs if c in _IFS_WHITESPACE}
    non_whitespace = {c for c in ifs if c not in _IFS_WHITESPACE}
    return whitespace, non_whitespace


def split_by_ifs_for_expansion_ex(value: str, ifs: str) -> IfsExpansionSplitResult:
    """Split an unquoted expansion result, reporting edge delimiters."""
    if not ifs:
        return IfsExpansionSplitResult(words=[value] if value else [])
    if not value:
        return IfsExpansionSplitResult()

    whitespace, non_whitespace = _categorize(ifs)
    words: list[str] = []
    n = len(value)
    pos = 0

    while pos < n and value[pos] in whitespace:
        pos += 1
    had_leading = pos > 0
    if pos >= n:
        return IfsExpansionSplitResult(
            had_leading_delimiter=True, had_trailing_delimiter=True
        )

    # A leading non-whitespace separator delimits an empty first field.
    if value[pos] in non_whitespace:
        words.append("")
        pos += 1
        while pos < n and value[pos] in whitespace:
            pos += 1

    had_trailing = False
    while pos < n:
        start = pos
        while pos < n and value[pos] not in whitespace and value[pos] not in non_whitespace:
            pos += 1
        words.append(value[start:pos])
        if pos >= n:
            had_trailing = False
            break

        delimiter_start = pos
        while pos < n and value[pos] in whitespace:
            pos += 1
        if pos < n and value[pos] in non_whitespace:
            pos += 1
            while pos < n and value[pos] in whitespace:
                pos += 1
            while pos < n and value[pos] in non_whitespace:
                words.append("")
                pos += 1
                while pos < n and value[pos] in whitespace:
                    pos += 1
        if pos >= n and pos > delimiter_start:
            had_trailing = True

    return IfsExpansionSplitResult(
        words=words,
        had_leading_delimiter=had_leading,
        had_trailing_delimiter=had_trailing,
    )


def split_by_ifs_for_expansion(value: str, ifs: str) -> list[str]:
    """Split an unquoted expansion result into fields."""
    return split_by_ifs_for_expansion_ex(value, ifs).words


def split_by_ifs_for_read(
    value: str,
    ifs: str,
    max_split: Optional[int] = None,
    raw: bool = False,
) -> IfsReadSplitResult:
    """Split a line for the `read` builtin.

    Once ``max_split`` fields have been produced, scanning stops; the caller
    takes the rest of the line from the last entry of ``word_starts``.
    Without ``raw``, a backslash escapes the next character: the backslash
    is dropped and the character never acts as a separator.
    """
    if not ifs:
        if not value:
            return IfsReadSplitResult()
        return IfsReadSplitResult(words=[value], word_starts=[0])

    whitespace, non_whitespace = _categorize(ifs)
    words: list[str] = []
    starts: list[int] = []
    n = len(value)
    pos = 0

    while pos < n and value[pos] in whitespace:
        pos += 1
    if pos >= n:
        return IfsReadSplitResult()

    if value[pos] in non_whitespace:
        words.append("")
        starts.append(pos)
        pos += 1
        while pos < n and value[pos] in whitespace:
            pos += 1

    while pos < n:
        if max_split is not None and len(words) >= max_split:
            break
        starts.append(pos)
        word = []
        while pos < n:
            c = value[pos]
            if not raw and c == "\\":
                pos += 1
                if pos < n:
                    word.append(value[pos])
                    pos += 1
                continue
            if c in whitespace or c in non_whitespace:
                break
            word.append(c)
            pos += 1
        words.append("".join(word))
        if pos >= n:
            break

        while pos < n and value[pos] in whitespace:
            pos += 1
        if pos < n and value[pos] in non_whitespace:
            pos += 1
            while pos < n and value[pos] in whitespace:
                pos += 1
            while pos < n and value[pos] in non_whitespace:
                if max_split is not None and len(words) >= max_split:
                    break
                words.append("")
                starts.append(pos)
                pos += 1
                while pos < n and value[pos] in whitespace:
                    pos += 1

    return IfsReadSplitResult(words=words, word_starts=starts)


def _is_escaped(chars: str, index: int) -> bool:
    """True if chars[index] is preceded by an odd number of backslashes."""
    count = 0
    j = index - 1
    while j >= 0 and chars[j] == "\\":
        count += 1
        j -= 1
    return count % 2 == 1


def strip_trailing_ifs_whitespace(value: str, ifs: str, raw: bool = False) -> str:
    """Strip trailing IFS from the last `read` field.

    Trailing IFS whitespace is removed (an escaped whitespace character
    stops the strip in non-raw mode). Then a single trailing non-whitespace
    separator is removed, but only when no other non-whitespace separator
    occurs earlier in the value.
    """
    if not ifs:
        return value
    whitespace, non_whitespace = _categorize(ifs)

    end = len(value)
    while end > 0 and value[end - 1] in whitespace:
        if not raw and _is_escaped(value, end - 1):
            break
        end -= 1
    result = value[:end]

    if result and result[-1] in non_whitespace:
        if not raw and _is_escaped(result, len(result) - 1):
            return result
        head = result[:-1]
        if not any(c in non_whitespace for c in head):
            return head
    return result
