"""Data models shared by the identity, link and audit layers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path


def new_identifier() -> str:
    """Generate a globally unique node identifier (UUID4, org-id style)."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class NoteFile:
    """A note as named by the file store."""

    path: Path
    title: str
    tags: frozenset[str] = frozenset()
    identifier: str = ""            # filename timestamp, not the graph identifier


@dataclass(frozen=True)
class Node:
    """A graph index entry.

    identifier is None for a title-only candidate that no file backs yet.
    """

    title: str
    file_path: Path | None = None
    identifier: str | None = None
    level: int = 0                  # 0 = file node, >0 = headline depth

    @property
    def is_persisted(self) -> bool:
        return self.identifier is not None


@dataclass(frozen=True)
class Reference:
    """An inline link to a node: [[id:<identifier>][<description>]]."""

    identifier: str
    description: str

    def render(self) -> str:
        return f"[[id:{self.identifier}][{self.description}]]"


@dataclass(frozen=True)
class Selection:
    """Half-open character span [start, end) marked in a buffer."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            msg = f"Invalid selection [{self.start}, {self.end})"
            raise ValueError(msg)

    @classmethod
    def parse(cls, text: str) -> Selection:
        """Parse 'START:END' as typed on the command line."""
        start, sep, end = text.partition(":")
        if not sep:
            msg = f"Selection must look like START:END, got {text!r}"
            raise ValueError(msg)
        return cls(int(start), int(end))


@dataclass(frozen=True)
class EditPoint:
    """Where a reference goes: a file, a cursor and an optional selection."""

    path: Path
    point: int = 0
    selection: Selection | None = None


@dataclass
class LinkResult:
    reference: Reference
    node: Node
    created: bool = False
    point: int = 0                  # cursor after the inserted reference


@dataclass
class FindResult:
    path: Path
    created: bool = False

