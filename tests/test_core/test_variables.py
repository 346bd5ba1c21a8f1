"""Tests for variable, array and nameref resolution."""

import pytest

from bash_core.interpreter import InterpreterState, NounsetError, ShellOptions
from bash_core.interpreter.variables import (
    declare_assoc,
    evaluate_subscript,
    get_array_elements,
    get_array_keys,
    get_var_names_with_prefix,
    get_variable,
    is_array,
    is_variable_set,
    require_variable,
    resolve_nameref,
    set_array,
    set_array_element,
    set_assoc_array,
    set_positional_params,
    set_variable,
    unset_variable,
)


class FixedClock:
    def __init__(self, now: float = 100.0):
        self.value = now

    def now(self) -> float:
        return self.value


@pytest.fixture
def state():
    return InterpreterState()


class TestScalars:
    """Test plain variable access."""

    def test_set_and_get(self, state):
        set_variable(state, "x", "1")
        assert get_variable(state, "x") == "1"

    def test_unset_reads_empty(self, state):
        assert get_variable(state, "missing") == ""
        assert not is_variable_set(state, "missing")

    def test_empty_value_counts_as_set(self, state):
        set_variable(state, "x", "")
        assert is_variable_set(state, "x")

    def test_readonly(self, state):
        set_variable(state, "x", "1")
        state.env.set_attribute("x", "r")
        with pytest.raises(ValueError, match="x: readonly variable"):
            set_variable(state, "x", "2")
        assert get_variable(state, "x") == "1"

    def test_allexport_marks_exported(self, state):
        state.options.allexport = True
        set_variable(state, "x", "1")
        assert state.env.is_exported("x")

    def test_unset(self, state):
        set_variable(state, "x", "1")
        unset_variable(state, "x")
        assert not is_variable_set(state, "x")


class TestSpecialParameters:
    """Test special parameters and dynamic variables."""

    def test_positional(self, state):
        set_positional_params(state, ["a", "b c"])
        assert get_variable(state, "1") == "a"
        assert get_variable(state, "2") == "b c"
        assert get_variable(state, "#") == "2"
        assert get_variable(state, "@") == "a b c"

    def test_star_joins_with_ifs(self, state):
        set_positional_params(state, ["a", "b"])
        state.env["IFS"] = ":"
        assert get_variable(state, "*") == "a:b"

    def test_exit_status(self, state):
        state.last_exit_code = 3
        assert get_variable(state, "?") == "3"

    def test_dollar_zero_default(self, state):
        assert get_variable(state, "0") == "bash"

    def test_option_flags(self, state):
        state.options.errexit = True
        assert "e" in get_variable(state, "-")

    def test_seconds(self, state):
        clock = FixedClock(100.0)
        state.clock = clock
        state.start_time = 100.0
        clock.value = 105.5
        assert get_variable(state, "SECONDS") == "5"
        set_variable(state, "SECONDS", "10")
        clock.value = 107.5
        assert get_variable(state, "SECONDS") == "12"

    def test_random_reseeds(self, state):
        set_variable(state, "RANDOM", "42")
        first = [get_variable(state, "RANDOM") for _ in range(3)]
        set_variable(state, "RANDOM", "42")
        second = [get_variable(state, "RANDOM") for _ in range(3)]
        assert first == second
        assert all(0 <= int(v) <= 32767 for v in first)

    def test_funcname_empty_outside_function(self, state):
        assert get_variable(state, "FUNCNAME") == ""
        assert get_variable(state, "FUNCNAME[@]") == ""


class TestIndexedArrays:
    """Test indexed array storage and subscripts."""

    def test_elements(self, state):
        set_array(state, "arr", ["a", "b", "c"])
        assert get_variable(state, "arr[0]") == "a"
        assert get_variable(state, "arr[2]") == "c"
        assert get_variable(state, "arr[@]") == "a b c"
        assert get_variable(state, "arr") == "a"
        assert is_array(state, "arr")

    def test_negative_index(self, state):
        set_array(state, "arr", ["a", "b", "c"])
        assert get_variable(state, "arr[-1]") == "c"
        assert get_variable(state, "arr[-3]") == "a"
        assert get_variable(state, "arr[-4]") == ""

    def test_negative_index_sparse(self, state):
        set_array(state, "arr", ["a"])
        set_array_element(state, "arr", "5", "z")
        assert get_variable(state, "arr[-1]") == "z"
        assert get_array_keys(state, "arr") == ["0", "5"]

    def test_arithmetic_subscript(self, state):
        set_array(state, "arr", ["a", "b", "c"])
        set_variable(state, "i", "1")
        assert get_variable(state, "arr[i+1]") == "c"
        assert get_variable(state, "arr[$i]") == "b"

    def test_scalar_index_zero(self, state):
        set_variable(state, "s", "scalar")
        assert get_variable(state, "s[0]") == "scalar"
        assert get_variable(state, "s[1]") == ""

    def test_element_assignment_promotes_scalar(self, state):
        set_variable(state, "s", "first")
        set_array_element(state, "s", "1", "second")
        assert [v for _, v in get_array_elements(state, "s")] == ["first", "second"]

    def test_bad_negative_assignment(self, state):
        with pytest.raises(ValueError, match="bad array subscript"):
            set_array_element(state, "empty", "-1", "x")

    def test_unset_element(self, state):
        set_array(state, "arr", ["a", "b", "c"])
        unset_variable(state, "arr[1]")
        assert get_array_keys(state, "arr") == ["0", "2"]
        assert not is_variable_set(state, "arr[1]")

    def test_unset_whole_array(self, state):
        set_array(state, "arr", ["a", "b"])
        unset_variable(state, "arr")
        assert get_array_elements(state, "arr") == []
        assert not is_array(state, "arr")

    def test_element_keys_not_reported_as_names(self, state):
        set_array(state, "arr", ["a"])
        set_variable(state, "arrow", "x")
        assert get_var_names_with_prefix(state, "arr") == ["arr", "arrow"]


class TestSubscriptEvaluation:
    """Test subscript arithmetic."""

    @pytest.mark.parametrize("expr,expected", [
        ("3", 3),
        ("2*3-1", 5),
        ("(1+2)*3", 9),
        ("7/2", 3),
        ("-7/2", -3),
        ("-7%3", -1),
    ])
    def test_evaluate(self, state, expr, expected):
        assert evaluate_subscript(state, expr) == expected

    def test_division_by_zero(self, state):
        with pytest.raises(ValueError):
            evaluate_subscript(state, "1/0")


class TestAssociativeArrays:
    """Test associative arrays."""

    def test_keys_and_values(self, state):
        set_assoc_array(state, "m", {"k": "v", "a": "b"})
        assert get_variable(state, "m[k]") == "v"
        assert get_variable(state, "m['k']") == "v"
        assert get_variable(state, 'm["a"]') == "b"
        assert get_array_keys(state, "m") == ["a", "k"]

    def test_variable_key(self, state):
        declare_assoc(state, "m")
        set_variable(state, "key", "name")
        set_array_element(state, "m", "$key", "value")
        assert get_variable(state, "m[name]") == "value"

    def test_unset_key(self, state):
        set_assoc_array(state, "m", {"k": "v"})
        unset_variable(state, "m[k]")
        assert not is_variable_set(state, "m[k]")

    def test_element_keys_not_reported_as_names(self, state):
        set_assoc_array(state, "conf", {"x": "1"})
        assert get_var_names_with_prefix(state, "con") == ["conf"]


class TestNamerefs:
    """Test name references."""

    def test_reads_and_writes_follow_target(self, state):
        set_variable(state, "x", "1")
        state.env.set_nameref("ref", "x")
        assert get_variable(state, "ref") == "1"
        set_variable(state, "ref", "2")
        assert get_variable(state, "x") == "2"

    def test_retarget(self, state):
        set_variable(state, "x", "1")
        set_variable(state, "y", "3")
        state.env.set_nameref("ref", "x")
        state.env.set_nameref("ref", "y")
        assert get_variable(state, "ref") == "3"

    def test_chain(self, state):
        set_variable(state, "x", "deep")
        state.env.set_nameref("b", "x")
        state.env.set_nameref("a", "b")
        assert resolve_nameref(state, "a") == "x"
        assert get_variable(state, "a") == "deep"

    def test_target_array_element(self, state):
        set_array(state, "arr", ["a", "b"])
        state.env.set_nameref("ref", "arr[1]")
        assert get_variable(state, "ref") == "b"
        set_variable(state, "ref", "B")
        assert get_variable(state, "arr[1]") == "B"

    def test_cycle(self, state):
        state.env.set_nameref("a", "b")
        state.env.set_nameref("b", "a")
        assert resolve_nameref(state, "a") is None
        set_variable(state, "a", "value")
        assert state.env["a"] == "b"
        assert state.env["b"] == "a"

    def test_unset_through_nameref(self, state):
        set_variable(state, "x", "1")
        state.env.set_nameref("ref", "x")
        unset_variable(state, "ref")
        assert not is_variable_set(state, "x")
        assert state.env.is_nameref("ref")

    def test_unset_nameref_itself(self, state):
        set_variable(state, "x", "1")
        state.env.set_nameref("ref", "x")
        unset_variable(state, "ref", nameref=True)
        assert not state.env.is_nameref("ref")
        assert get_variable(state, "x") == "1"


class TestNounset:
    """Test require_variable under set -u."""

    def test_raises_when_unset(self):
        state = InterpreterState(options=ShellOptions(nounset=True))
        with pytest.raises(NounsetError) as exc_info:
            require_variable(state, "missing")
        assert exc_info.value.stderr == "bash: missing: unbound variable\n"

    def test_at_and_star_exempt(self):
        state = InterpreterState(options=ShellOptions(nounset=True))
        assert require_variable(state, "@") == ""
        assert require_variable(state, "*") == ""

    def test_no_error_without_nounset(self, state):
        assert require_variable(state, "missing") == ""
