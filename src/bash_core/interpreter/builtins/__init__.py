"""Builtin commands implemented by the core."""

from .control import (
    CONTROL_BUILTINS,
    handle_break,
    handle_continue,
    handle_exit,
    handle_return,
)

__all__ = [
    "CONTROL_BUILTINS",
    "handle_break",
    "handle_continue",
    "handle_exit",
    "handle_return",
]
