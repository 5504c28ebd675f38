"""Parser for shell input lines.

Splits lines like ``kill myserver`` or ``python app.py &`` into a command
name and arguments, and recognises ``NAME=value`` assignments.
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

_ASSIGNMENT = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*)=(.*)$')


@dataclass
class Command:
    """Represents a single shell input line."""

    name: str
    args: List[str]
    line: str

    def __repr__(self) -> str:
        args_str = ', '.join(repr(a) for a in self.args)
        return f"Command({self.name!r}, [{args_str}])"


class LineParser:
    """Parser for shell input lines."""

    def parse(self, line: str) -> Optional[Command]:
        """Parse a line into a Command.

        Args:
            line: Input line

        Returns:
            Command, or None for blank lines and comments

        Raises:
            ValueError: If quoting is unbalanced
        """
        line = line.strip()
        if not line or line.startswith('#'):
            return None
        try:
            tokens = shlex.split(line)
        except ValueError as e:
            raise ValueError(f"Failed to parse command: {line}") from e
        if not tokens:
            return None
        return Command(name=tokens[0], args=tokens[1:], line=line)

    def parse_assignment(self, line: str) -> Optional[Tuple[str, str]]:
        """Split a ``NAME=value`` line.

        Returns:
            (name, value) with surrounding quotes stripped from the value, or
            None if the line is not an assignment
        """
        match = _ASSIGNMENT.match(line.strip())
        if match is None:
            return None
        name, value = match.groups()
        return name, value.strip().strip('"\'')


def parse_line(line: str) -> Optional[Command]:
    """Parse a line with a fresh parser."""
    return LineParser().parse(line)
