"""Shell option state: `set -o` options and `shopt` options.

Options live on ``InterpreterState.options`` (a ShellOptions dataclass)
and ``InterpreterState.shopts``. Every mutation goes through this module
so that the read-only ``SHELLOPTS`` and ``BASHOPTS`` variables stay in
sync with the option state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import InterpreterState


# Default states for shopt options (bash names, alphabetical).
DEFAULT_SHOPTS = {
    "autocd": False,
    "assoc_expand_once": False,
    "cdable_vars": False,
    "cdspell": False,
    "checkhash": False,
    "checkjobs": False,
    "checkwinsize": True,
    "cmdhist": True,
    "complete_fullquote": True,
    "direxpand": False,
    "dirspell": False,
    "dotglob": False,
    "execfail": False,
    "expand_aliases": False,
    "extdebug": False,
    "extglob": False,
    "extquote": True,
    "failglob": False,
    "force_fignore": True,
    "globasciiranges": True,
    "globskipdots": True,
    "globstar": False,
    "gnu_errfmt": False,
    "histappend": False,
    "histreedit": False,
    "histverify": False,
    "hostcomplete": True,
    "huponexit": False,
    "inherit_errexit": False,
    "interactive_comments": True,
    "lastpipe": False,
    "lithist": False,
    "localvar_inherit": False,
    "localvar_unset": False,
    "login_shell": False,
    "mailwarn": False,
    "no_empty_cmd_completion": False,
    "nocaseglob": False,
    "nocasematch": False,
    "nullglob": False,
    "progcomp": True,
    "progcomp_alias": False,
    "promptvars": True,
    "restricted_shell": False,
    "shift_verbose": False,
    "sourcepath": True,
    "xpg_echo": False,
}

# shopt options reported in BASHOPTS.
BASHOPTS_NAMES = (
    "dotglob",
    "expand_aliases",
    "extglob",
    "failglob",
    "globskipdots",
    "globstar",
    "lastpipe",
    "nocaseglob",
    "nocasematch",
    "nullglob",
    "xpg_echo",
)

# set -o options backed by a ShellOptions field.
SET_O_OPTIONS = (
    "allexport",
    "emacs",
    "errexit",
    "noclobber",
    "noexec",
    "noglob",
    "nounset",
    "pipefail",
    "posix",
    "verbose",
    "vi",
    "xtrace",
)

# Recognized for compatibility; setting them has no effect.
INERT_SET_O_OPTIONS = (
    "errtrace",
    "functrace",
    "histexpand",
    "history",
    "ignoreeof",
    "keyword",
    "monitor",
    "nolog",
    "notify",
    "onecmd",
    "physical",
    "privileged",
)

ALWAYS_ON_OPTIONS = ("braceexpand", "hashall", "interactive-comments")

SHORT_OPTIONS = {
    "a": "allexport",
    "e": "errexit",
    "f": "noglob",
    "n": "noexec",
    "u": "nounset",
    "v": "verbose",
    "x": "xtrace",
    "C": "noclobber",
}

_INERT_SHORT_OPTIONS = "bhmptBH"


def is_set_o_option(name: str) -> bool:
    return name in SET_O_OPTIONS or name in INERT_SET_O_OPTIONS or name in ALWAYS_ON_OPTIONS


def get_option(state: "InterpreterState", name: str) -> bool:
    """Get the current state of a set -o option."""
    if name in ALWAYS_ON_OPTIONS:
        return True
    if name in SET_O_OPTIONS:
        return getattr(state.options, name)
    if name in INERT_SET_O_OPTIONS:
        return False
    raise ValueError(f"{name}: invalid option name")


def set_option(state: "InterpreterState", name: str, value: bool) -> None:
    """Set a set -o option. Raises ValueError for unknown names."""
    if name in SET_O_OPTIONS:
        setattr(state.options, name, value)
        # vi and emacs editing modes are mutually exclusive
        if value and name == "vi":
            state.options.emacs = False
        elif value and name == "emacs":
            state.options.vi = False
    elif not is_set_o_option(name):
        raise ValueError(f"{name}: invalid option name")
    sync_option_variables(state)


def set_short_option(state: "InterpreterState", char: str, value: bool) -> None:
    """Set an option by its single-letter flag (``set -e``)."""
    if char in SHORT_OPTIONS:
        set_option(state, SHORT_OPTIONS[char], value)
    elif char not in _INERT_SHORT_OPTIONS:
        raise ValueError(f"-{char}: invalid option")


def get_shopt(state: "InterpreterState", name: str) -> bool:
    """Get a shopt option (unknown names read as off)."""
    if name in state.shopts:
        return state.shopts[name]
    return DEFAULT_SHOPTS.get(name, False)


def set_shopt(state: "InterpreterState", name: str, value: bool) -> None:
    """Set a shopt option. Raises ValueError for unknown names."""
    if name not in DEFAULT_SHOPTS:
        raise ValueError(f"{name}: invalid shell option name")
    state.shopts[name] = value
    sync_option_variables(state)


def get_shopts(state: "InterpreterState") -> dict[str, bool]:
    """All shopt options with their current values."""
    return {name: get_shopt(state, name) for name in DEFAULT_SHOPTS}


def build_shellopts(state: "InterpreterState") -> str:
    """Colon-separated, alphabetically sorted enabled set -o options."""
    enabled = list(ALWAYS_ON_OPTIONS)
    enabled.extend(
        name for name in SET_O_OPTIONS
        if name not in ("vi", "emacs") and getattr(state.options, name)
    )
    return ":".join(sorted(enabled))


def build_bashopts(state: "InterpreterState") -> str:
    """Colon-separated enabled shopt options."""
    return ":".join(name for name in BASHOPTS_NAMES if get_shopt(state, name))


def sync_option_variables(state: "InterpreterState") -> None:
    """Write SHELLOPTS and BASHOPTS into the variable namespace."""
    state.env["SHELLOPTS"] = build_shellopts(state)
    state.env["BASHOPTS"] = build_bashopts(state)


def option_flags(state: "InterpreterState") -> str:
    """Build the value of ``$-``."""
    opts = state.options
    flags = ""
    if opts.allexport:
        flags += "a"
    if opts.errexit:
        flags += "e"
    # hashall is always on in non-interactive bash
    flags += "h"
    if opts.noglob:
        flags += "f"
    if opts.noexec:
        flags += "n"
    if opts.nounset:
        flags += "u"
    if opts.verbose:
        flags += "v"
    if opts.xtrace:
        flags += "x"
    flags += "B"
    if opts.noclobber:
        flags += "C"
    flags += "s"
    return flags
