"""Shell module for the interactive distributed shell.

Provides the REPL, line parser and built-in commands.
"""

from __future__ import annotations

from kubedsh.shell.builtins import execute_builtin, is_builtin
from kubedsh.shell.interpreter import ExecutionContext, ShellError
from kubedsh.shell.parser import LineParser, parse_line
from kubedsh.shell.repl import REPL, run_lines, run_repl, run_script

__all__ = [
    "REPL",
    "LineParser",
    "ExecutionContext",
    "ShellError",
    "run_repl",
    "run_lines",
    "run_script",
    "parse_line",
    "is_builtin",
    "execute_builtin",
]
