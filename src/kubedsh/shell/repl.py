"""REPL (Read-Eval-Print Loop) for the interactive shell."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from kubedsh.shell.interpreter import ExecutionContext, ShellError

logger = logging.getLogger(__name__)

try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False
    logger.debug("readline not available - command history disabled")


class REPL:
    """Interactive shell loop; the prompt shows the current cluster context."""

    def __init__(self, context: ExecutionContext):
        """Initialize REPL.

        Args:
            context: Execution context
        """
        self.context = context
        self.running = False

        if HAS_READLINE:
            self._setup_readline()

    def _setup_readline(self) -> None:
        """Setup readline for command history and completion."""
        history_file = Path.home() / ".kubedsh_history"
        try:
            readline.read_history_file(str(history_file))
        except (FileNotFoundError, PermissionError):
            pass

        import atexit
        atexit.register(readline.write_history_file, str(history_file))

        readline.set_history_length(1000)
        readline.set_completer(self._complete)
        readline.parse_and_bind("tab: complete")

    def _complete(self, text: str, state: int) -> Optional[str]:
        from kubedsh.shell.builtins import get_registry

        matches = [
            cmd.name for cmd in get_registry().list_commands()
            if cmd.name.startswith(text)
        ]
        return matches[state] if state < len(matches) else None

    @property
    def prompt(self) -> str:
        kube_context = self.context.kube_context or "?"
        return f"[{kube_context}]$ "

    def run(self) -> None:
        """Run the REPL loop."""
        self.running = True
        self.context.refresh_kube_context()
        print("\nType 'help' to learn about available built-in commands.")
        while self.running:
            try:
                line = input(self.prompt).strip()
                if not line:
                    continue
                self._execute_line(line)
            except EOFError:
                # Ctrl+D
                print()
                break
            except KeyboardInterrupt:
                # Ctrl+C
                print()
                continue
            except SystemExit:
                break

    def _execute_line(self, line: str) -> None:
        try:
            result = self.context.execute(line)
        except ShellError as e:
            print(f"\n{e}\n", file=sys.stderr)
            return
        except SystemExit:
            raise
        except Exception as e:
            logger.exception("Execution failed")
            print(f"Error: {e}", file=sys.stderr)
            return
        if result:
            print(result)


def run_repl(context: ExecutionContext) -> None:
    """Run interactive REPL."""
    REPL(context).run()


def run_lines(lines: Iterable[str], context: ExecutionContext) -> None:
    """Run commands non-interactively, stopping at the first failure.

    Args:
        lines: Input lines (blank lines and ``#`` comments are skipped)
        context: Execution context

    Raises:
        ShellError: If a command fails
    """
    for line_num, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        logger.debug(f"Executing line {line_num}: {line}")
        try:
            result = context.execute(line)
        except ShellError as e:
            logger.error(f"Error on line {line_num}: {e}")
            raise
        if result:
            print(result)


def run_script(script_path: Path, context: ExecutionContext) -> None:
    """Run commands from a script file."""
    with open(script_path) as f:
        run_lines(f, context)
