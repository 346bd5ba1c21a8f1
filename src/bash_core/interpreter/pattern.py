"""Glob and extglob pattern compilation.

Shell patterns are translated to Python regular expressions. Two modes
are supported:

- filename mode (``glob_to_regex``): ``*`` matches any sequence including
  ``/``, ``?`` any single character. Optional extglob groups.
- exclusion-list mode (``globignore_pattern_to_regex``): used for
  GLOBIGNORE entries, where ``*`` and ``?`` never cross a ``/``.

Supports:
- Bracket expressions with negation (``[!...]`` / ``[^...]``), a literal
  ``]`` right after the opening bracket, and POSIX classes (``[:alpha:]``)
- Backslash escapes
- Extended globs ``@() *() +() ?() !()`` with nested groups
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Optional, Union

logger = logging.getLogger(__name__)

POSIX_CLASSES = {
    "alnum": "a-zA-Z0-9",
    "alpha": "a-zA-Z",
    "ascii": "\\x00-\\x7F",
    "blank": " \\t",
    "cntrl": "\\x00-\\x1F\\x7F",
    "digit": "0-9",
    "graph": "!-~",
    "lower": "a-z",
    "print": " -~",
    "punct": "!-/:-@\\[-`{-~",
    "space": " \\t\\n\\r\\f\\v",
    "upper": "A-Z",
    "word": "a-zA-Z0-9_",
    "xdigit": "0-9A-Fa-f",
}

_REGEX_SPECIAL = set("\\^$.|+(){}[]*?")
_GLOB_SPECIAL = set("*?[]\\()|")
_EXTGLOB_CHARS = "@*+?!"
_EXTGLOB_RE = re.compile(r"[@*+?!]\(")


def _find_bracket_end(pattern: str, start: int) -> int:
    """Return the index of the ``]`` closing the bracket at ``start``, or -1."""
    n = len(pattern)
    i = start + 1
    if i < n and pattern[i] in "!^":
        i += 1
    if i < n and pattern[i] == "]":
        i += 1
    while i < n:
        c = pattern[i]
        if c == "\\" and i + 1 < n:
            i += 2
            continue
        if c == "]":
            return i
        if c == "[" and i + 1 < n and pattern[i + 1] == ":":
            close = pattern.find(":]", i + 2)
            if close != -1:
                i = close + 2
                continue
        i += 1
    return -1


def _convert_char_class(content: str) -> str:
    """Convert bracket expression content (without the brackets) to a regex class."""
    out = []
    n = len(content)
    i = 0
    negated = bool(n) and content[0] in "!^"
    if negated:
        i = 1
    while i < n:
        c = content[i]
        if c == "[" and i + 1 < n and content[i + 1] == ":":
            close = content.find(":]", i + 2)
            if close != -1:
                # Unknown class names contribute nothing.
                out.append(POSIX_CLASSES.get(content[i + 2:close], ""))
                i = close + 2
                continue
        if c == "\\" and i + 1 < n:
            out.append("\\" + content[i + 1])
            i += 2
            continue
        if c in "[]":
            out.append("\\" + c)
        else:
            out.append(c)
        i += 1
    body = "".join(out)
    if not body:
        # An empty set: [!...] matches any character, [...] nothing.
        return "." if negated else "(?!)"
    return ("[^" if negated else "[") + body + "]"


def _find_matching_paren(pattern: str, open_idx: int) -> int:
    depth = 1
    i = open_idx + 1
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def split_extglob_alternatives(content: str) -> list[str]:
    """Split an extglob group body on top-level ``|``."""
    alternatives = []
    current: list[str] = []
    depth = 0
    i = 0
    while i < len(content):
        c = content[i]
        if c == "\\":
            current.append(content[i:i + 2])
            i += 2
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        elif c == "|" and depth == 0:
            alternatives.append("".join(current))
            current = []
            i += 1
            continue
        current.append(c)
        i += 1
    alternatives.append("".join(current))
    return alternatives


def _escape_literal(c: str) -> str:
    return "\\" + c if c in _REGEX_SPECIAL else c


def _translate(pattern: str, extglob: bool, star: str, question: str) -> str:
    """Translate a glob pattern to an unanchored regex body.

    A ``!()`` group only rejects a span that runs to the end of the
    string; ``compile_glob`` matches top-level negations exactly.
    """
    out = []
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if extglob and c in _EXTGLOB_CHARS and i + 1 < n and pattern[i + 1] == "(":
            close = _find_matching_paren(pattern, i + 1)
            if close != -1:
                alts = split_extglob_alternatives(pattern[i + 2:close])
                group = "|".join(_translate(a, extglob, star, question) for a in alts)
                if c == "@":
                    out.append(f"(?:{group})")
                elif c == "*":
                    out.append(f"(?:{group})*")
                elif c == "+":
                    out.append(f"(?:{group})+")
                elif c == "?":
                    out.append(f"(?:{group})?")
                else:
                    out.append(f"(?:(?!(?:{group})$).*?)")
                i = close + 1
                continue
        if c == "\\" and i + 1 < n:
            out.append(_escape_literal(pattern[i + 1]))
            i += 2
        elif c == "*":
            out.append(star)
            i += 1
        elif c == "?":
            out.append(question)
            i += 1
        elif c == "[":
            end = _find_bracket_end(pattern, i)
            if end == -1:
                out.append("\\[")
                i += 1
            else:
                out.append(_convert_char_class(pattern[i + 1:end]))
                i = end + 1
        else:
            out.append(_escape_literal(c))
            i += 1
    return "".join(out)


def glob_to_regex(pattern: str, extglob: bool = False) -> str:
    """Translate a filename-mode pattern to an anchored regex."""
    return "^" + _translate(pattern, extglob, ".*", ".") + "$"


def globignore_pattern_to_regex(pattern: str) -> str:
    """Translate a GLOBIGNORE entry; wildcards never match ``/``."""
    return "^" + _translate(pattern, False, "[^/]*", "[^/]") + "$"


def split_globignore_patterns(globignore: str) -> list[str]:
    """Split GLOBIGNORE on ``:``, keeping escapes and bracket expressions intact."""
    if not globignore:
        return []
    patterns = []
    current: list[str] = []
    n = len(globignore)
    i = 0
    while i < n:
        c = globignore[i]
        if c == "\\" and i + 1 < n:
            current.append(globignore[i:i + 2])
            i += 2
            continue
        if c == "[":
            end = _find_bracket_end(globignore, i)
            if end != -1:
                current.append(globignore[i:end + 1])
                i = end + 1
                continue
        if c == ":":
            patterns.append("".join(current))
            current = []
        else:
            current.append(c)
        i += 1
    patterns.append("".join(current))
    return [p for p in patterns if p]


def compute_fixed_length(pattern: str, extglob: bool = False) -> Optional[int]:
    """Return the exact length every match of ``pattern`` has, or None.

    ``*`` and any extglob group other than an ``@()`` whose alternatives
    all share one fixed length make the length variable.
    """
    length = 0
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if extglob and c in _EXTGLOB_CHARS and i + 1 < n and pattern[i + 1] == "(":
            close = _find_matching_paren(pattern, i + 1)
            if close != -1:
                if c == "@":
                    lengths = [
                        compute_fixed_length(alt, extglob)
                        for alt in split_extglob_alternatives(pattern[i + 2:close])
                    ]
                    if lengths[0] is not None and all(x == lengths[0] for x in lengths):
                        length += lengths[0]
                        i = close + 1
                        continue
                return None
        if c == "*":
            return None
        if c == "[":
            end = _find_bracket_end(pattern, i)
            length += 1
            i = end + 1 if end != -1 else i + 1
            continue
        if c == "\\":
            length += 1
            i += 2
            continue
        length += 1
        i += 1
    return length


def has_glob_pattern(value: str, extglob: bool = False) -> bool:
    """True if ``value`` contains glob metacharacters."""
    if any(c in "*?[" for c in value):
        return True
    return bool(extglob and _EXTGLOB_RE.search(value))


def escape_glob_chars(s: str) -> str:
    """Backslash-escape glob and extglob metacharacters for literal matching."""
    return "".join("\\" + c if c in _GLOB_SPECIAL else c for c in s)


def unescape_glob_pattern(pattern: str) -> str:
    """Drop the backslash from every escaped character."""
    out = []
    i = 0
    while i < len(pattern):
        if pattern[i] == "\\" and i + 1 < len(pattern):
            out.append(pattern[i + 1])
            i += 2
        else:
            out.append(pattern[i])
            i += 1
    return "".join(out)


def _find_top_level_negation(pattern: str) -> Optional[tuple[int, int]]:
    """Return the (start, close) of the first ``!(...)`` outside any group."""
    n = len(pattern)
    i = 0
    while i < n:
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "[":
            end = _find_bracket_end(pattern, i)
            if end != -1:
                i = end + 1
                continue
        if c in _EXTGLOB_CHARS and i + 1 < n and pattern[i + 1] == "(":
            close = _find_matching_paren(pattern, i + 1)
            if close != -1:
                if c == "!":
                    return i, close
                i = close + 1
                continue
        i += 1
    return None


class NegationMatcher:
    """Whole-string matcher for a pattern holding a top-level ``!(...)``.

    The value is split as prefix, negated span and suffix. A split is
    accepted when the prefix and suffix match and the span matches none
    of the group's alternatives.
    """

    def __init__(self, prefix: str, alternatives: list[str], suffix: str, nocase: bool):
        self.prefix = compile_glob(prefix, True, nocase)
        self.alternatives = [compile_glob(alt, True, nocase) for alt in alternatives]
        self.suffix = compile_glob(suffix, True, nocase)

    def fullmatch(self, value: str) -> bool:
        if self.prefix is None or self.suffix is None:
            return False
        n = len(value)
        for start in range(n + 1):
            if not self.prefix.fullmatch(value[:start]):
                continue
            for end in range(start, n + 1):
                span = value[start:end]
                if any(alt is not None and alt.fullmatch(span) for alt in self.alternatives):
                    continue
                if self.suffix.fullmatch(value[end:]):
                    return True
        return False


GlobMatcher = Union[re.Pattern, NegationMatcher]


@lru_cache(maxsize=512)
def compile_glob(pattern: str, extglob: bool = False, nocase: bool = False) -> Optional[GlobMatcher]:
    """Compile a filename-mode pattern, or return None if the regex is invalid.

    The result only supports ``fullmatch``; callers test it for truth.
    """
    if extglob:
        negation = _find_top_level_negation(pattern)
        if negation is not None:
            start, close = negation
            return NegationMatcher(
                pattern[:start],
                split_extglob_alternatives(pattern[start + 2:close]),
                pattern[close + 1:],
                nocase,
            )
    flags = re.DOTALL | (re.IGNORECASE if nocase else 0)
    try:
        return re.compile(glob_to_regex(pattern, extglob), flags)
    except re.error as e:
        logger.debug("pattern %r did not compile: %s", pattern, e)
        return None


def match_glob(value: str, pattern: str, extglob: bool = False, nocase: bool = False) -> bool:
    """Match ``value`` against a whole shell pattern."""
    regex = compile_glob(pattern, extglob, nocase)
    if regex is None:
        return value == unescape_glob_pattern(pattern)
    return bool(regex.fullmatch(value))
