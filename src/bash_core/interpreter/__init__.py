"""Interpreter core: expansion, variables, functions and control flow."""

from .errors import (
    ArithError,
    BadSubstitutionError,
    BraceExpansionError,
    BreakError,
    ContinueError,
    ControlFlowError,
    ErrexitError,
    ExecutionLimitError,
    ExitError,
    GlobError,
    NounsetError,
    PosixFatalError,
    ReturnError,
    SubshellExitError,
    check_errexit,
    exit_code_for,
    is_scope_exit_error,
    is_terminating_error,
)
from .types import (
    Clock,
    DefaultRandom,
    InterpreterContext,
    InterpreterState,
    RandomSource,
    ShellOptions,
    SystemClock,
    VariableMetadata,
    VariableStore,
)
from .ifs import (
    get_ifs,
    get_ifs_separator,
    split_by_ifs_for_expansion,
    split_by_ifs_for_read,
    strip_trailing_ifs_whitespace,
)
from .pattern import compile_glob, compute_fixed_length, glob_to_regex, match_glob
from .options import (
    get_option,
    get_shopt,
    set_option,
    set_shopt,
    sync_option_variables,
)
from .variables import (
    get_variable,
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
from .expansion import (
    CaseModification,
    PatternRemoval,
    PatternReplacement,
    Slice,
    UnquotedExpansionResult,
    expand_unquoted_array,
    expand_unquoted_positional,
    expand_variables_in_pattern,
    expand_variables_in_pattern_async,
    match_pattern,
)
from .functions import (
    FunctionDef,
    call_function,
    cleanup_function_call,
    declare_local,
    define_function,
    setup_function_call,
)
from .control_flow import (
    Statement,
    execute_condition,
    execute_for,
    execute_statement,
    execute_statements,
    execute_while,
)
from .builtins import CONTROL_BUILTINS

__all__ = [
    # errors
    "ArithError",
    "BadSubstitutionError",
    "BraceExpansionError",
    "BreakError",
    "ContinueError",
    "ControlFlowError",
    "ErrexitError",
    "ExecutionLimitError",
    "ExitError",
    "GlobError",
    "NounsetError",
    "PosixFatalError",
    "ReturnError",
    "SubshellExitError",
    "check_errexit",
    "exit_code_for",
    "is_scope_exit_error",
    "is_terminating_error",
    # state
    "Clock",
    "DefaultRandom",
    "InterpreterContext",
    "InterpreterState",
    "RandomSource",
    "ShellOptions",
    "SystemClock",
    "VariableMetadata",
    "VariableStore",
    # ifs
    "get_ifs",
    "get_ifs_separator",
    "split_by_ifs_for_expansion",
    "split_by_ifs_for_read",
    "strip_trailing_ifs_whitespace",
    # pattern
    "compile_glob",
    "compute_fixed_length",
    "glob_to_regex",
    "match_glob",
    # options
    "get_option",
    "get_shopt",
    "set_option",
    "set_shopt",
    "sync_option_variables",
    # variables
    "get_variable",
    "is_variable_set",
    "require_variable",
    "resolve_nameref",
    "set_array",
    "set_array_element",
    "set_assoc_array",
    "set_positional_params",
    "set_variable",
    "unset_variable",
    # expansion
    "CaseModification",
    "PatternRemoval",
    "PatternReplacement",
    "Slice",
    "UnquotedExpansionResult",
    "expand_unquoted_array",
    "expand_unquoted_positional",
    "expand_variables_in_pattern",
    "expand_variables_in_pattern_async",
    "match_pattern",
    # functions
    "FunctionDef",
    "call_function",
    "cleanup_function_call",
    "declare_local",
    "define_function",
    "setup_function_call",
    # control flow
    "Statement",
    "execute_condition",
    "execute_for",
    "execute_statement",
    "execute_statements",
    "execute_while",
    "CONTROL_BUILTINS",
]
