"""bash-core - the expansion and execution core of a bash interpreter.

Example usage:
    from bash_core import Shell

    shell = Shell()
    result = shell.run(statements)
"""

from .shell import Shell
from .types import ExecResult, ExecutionLimits

__all__ = ["Shell", "ExecResult", "ExecutionLimits"]
__version__ = "0.1.0"
