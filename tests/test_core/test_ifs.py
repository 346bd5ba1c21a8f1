"""Tests for IFS word splitting."""

from bash_core.interpreter.ifs import (
    DEFAULT_IFS,
    build_ifs_char_class_pattern,
    get_ifs,
    get_ifs_separator,
    is_ifs_empty,
    is_ifs_whitespace_only,
    split_by_ifs_for_expansion,
    split_by_ifs_for_expansion_ex,
    split_by_ifs_for_read,
    strip_trailing_ifs_whitespace,
)


class TestIfsLookup:
    """Test reading IFS from the environment."""

    def test_unset_uses_default(self):
        assert get_ifs({}) == DEFAULT_IFS

    def test_empty_ifs(self):
        assert is_ifs_empty({"IFS": ""})
        assert not is_ifs_empty({})

    def test_whitespace_only(self):
        assert is_ifs_whitespace_only({})
        assert is_ifs_whitespace_only({"IFS": " \t"})
        assert not is_ifs_whitespace_only({"IFS": ": "})

    def test_separator(self):
        """$* joins with the first IFS char, a space when unset, nothing when empty."""
        assert get_ifs_separator({}) == " "
        assert get_ifs_separator({"IFS": ":,"}) == ":"
        assert get_ifs_separator({"IFS": ""}) == ""

    def test_char_class_escaping(self):
        assert build_ifs_char_class_pattern(" \t\n") == " \\t\\n"
        assert build_ifs_char_class_pattern("-]") == "\\-\\]"


class TestExpansionSplit:
    """Test splitting of unquoted expansion results."""

    def test_whitespace_collapses(self):
        assert split_by_ifs_for_expansion("  a   b  ", DEFAULT_IFS) == ["a", "b"]

    def test_adjacent_separators_make_empty_field(self):
        assert split_by_ifs_for_expansion("a::b", ":") == ["a", "", "b"]

    def test_leading_separator_makes_empty_field(self):
        assert split_by_ifs_for_expansion(":a", ":") == ["", "a"]

    def test_trailing_separator_is_dropped(self):
        assert split_by_ifs_for_expansion("a:", ":") == ["a"]

    def test_whitespace_around_separator_is_absorbed(self):
        assert split_by_ifs_for_expansion("a : b", " :") == ["a", "b"]

    def test_empty_ifs_does_not_split(self):
        assert split_by_ifs_for_expansion("a b", "") == ["a b"]

    def test_empty_value(self):
        assert split_by_ifs_for_expansion("", DEFAULT_IFS) == []

    def test_delimiter_hints(self):
        result = split_by_ifs_for_expansion_ex(" a b ", DEFAULT_IFS)
        assert result.words == ["a", "b"]
        assert result.had_leading_delimiter
        assert result.had_trailing_delimiter

    def test_only_whitespace(self):
        result = split_by_ifs_for_expansion_ex("   ", DEFAULT_IFS)
        assert result.words == []
        assert result.had_leading_delimiter


class TestReadSplit:
    """Test splitting for the read builtin."""

    def test_basic(self):
        result = split_by_ifs_for_read("a b c", DEFAULT_IFS)
        assert result.words == ["a", "b", "c"]
        assert result.word_starts == [0, 2, 4]

    def test_max_split_leaves_rest(self):
        value = "a b c d"
        result = split_by_ifs_for_read(value, DEFAULT_IFS, max_split=2)
        assert result.words == ["a", "b"]
        assert value[result.word_starts[-1]:] == "b c d"

    def test_backslash_escapes_separator(self):
        result = split_by_ifs_for_read("a\\ b c", DEFAULT_IFS)
        assert result.words == ["a b", "c"]

    def test_raw_keeps_backslash(self):
        result = split_by_ifs_for_read("a\\ b", DEFAULT_IFS, raw=True)
        assert result.words == ["a\\", "b"]

    def test_empty_fields(self):
        result = split_by_ifs_for_read("a::b", ":")
        assert result.words == ["a", "", "b"]

    def test_empty_ifs(self):
        result = split_by_ifs_for_read("a b", "")
        assert result.words == ["a b"]
        assert result.word_starts == [0]


class TestStripTrailing:
    """Test stripping trailing IFS from the last read field."""

    def test_trailing_whitespace(self):
        assert strip_trailing_ifs_whitespace("a b  ", DEFAULT_IFS) == "a b"

    def test_single_trailing_separator(self):
        assert strip_trailing_ifs_whitespace("ab:", ":") == "ab"

    def test_separator_kept_when_another_precedes(self):
        assert strip_trailing_ifs_whitespace("a:b:", ":") == "a:b:"

    def test_escaped_whitespace_stops_strip(self):
        assert strip_trailing_ifs_whitespace("a\\ ", DEFAULT_IFS) == "a\\ "
        assert strip_trailing_ifs_whitespace("a\\ ", DEFAULT_IFS, raw=True) == "a\\"
