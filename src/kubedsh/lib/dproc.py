"""Distributed process data model.

A distributed process (dproc) is a user-launched program backed by a
workload in the cluster. Identity is the pair (id, context).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional, Tuple


class DProcKind(Enum):
    """How a dproc is tracked."""

    LONG_RUNNING = "long-running"
    EPHEMERAL = "ephemeral"


class SourceKind(Enum):
    """How a dproc was launched."""

    BINARY = "bin"
    SCRIPT = "script"


@dataclass(frozen=True)
class Source:
    """Provenance of a dproc: a binary path or a script path plus interpreter."""

    kind: SourceKind
    path: str
    interpreter: Optional[str] = None

    @classmethod
    def binary(cls, path: str) -> Source:
        return cls(SourceKind.BINARY, path)

    @classmethod
    def script(cls, path: str, interpreter: str) -> Source:
        return cls(SourceKind.SCRIPT, path, interpreter)

    @property
    def endpoint_name(self) -> str:
        """Name of the network endpoint: file name without its extension."""
        return PurePosixPath(self.path).stem

    def tag(self) -> str:
        """Render as the annotation value stored on the workload.

        Returns:
            ``bin:<path>`` or ``script:<interpreter>:<path>``
        """
        if self.kind == SourceKind.SCRIPT:
            return f"{self.kind.value}:{self.interpreter}:{self.path}"
        return f"{self.kind.value}:{self.path}"

    @classmethod
    def parse(cls, tag: str) -> Source:
        """Parse an annotation value produced by :meth:`tag`.

        Args:
            tag: Annotation value

        Returns:
            Parsed source

        Raises:
            ValueError: If the tag is malformed
        """
        prefix, sep, rest = tag.partition(':')
        if not sep or not rest:
            raise ValueError(f"Malformed source tag: {tag!r}")
        if prefix == SourceKind.BINARY.value:
            return cls.binary(rest)
        if prefix == SourceKind.SCRIPT.value:
            interpreter, sep, path = rest.partition(':')
            if not sep or not interpreter or not path:
                raise ValueError(f"Malformed script source tag: {tag!r}")
            return cls.script(path, interpreter)
        raise ValueError(f"Unknown source kind in tag: {tag!r}")

    def __str__(self) -> str:
        return self.tag()


@dataclass(frozen=True)
class DistributedProcess:
    """One tracked workload."""

    id: str
    kind: DProcKind
    context: str
    source: Source

    @property
    def key(self) -> Tuple[str, str]:
        return (self.id, self.context)
