"""Identifier blocks at the head of org notes.

A note is addressable by the graph index when its text starts with

    :PROPERTIES:
    :ID:       3f1c9a52-0c1e-4c52-9a55-2b5e1f0d6c11
    :END:

at offset 0, with no blank lines in between. ensure_identifier() always
leaves exactly one such block: any drawer already at the top is removed
(through its :END: line) before a fresh one is prepended.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from notebridge.errors import UnsupportedFormat
from notebridge.models import new_identifier

if TYPE_CHECKING:
    from collections.abc import Callable

    from notebridge.buffers import BufferCache
    from notebridge.config import BridgeConfig

logger = logging.getLogger("notebridge.identity")

OPEN_MARKER = ":PROPERTIES:"
CLOSE_MARKER = ":END:"
SUPPORTED_FILE_TYPE = "org"
_BOM = "\ufeff"

_OPEN_RE = re.compile(r":PROPERTIES:[ \t]*(?:\r?\n|$)", re.IGNORECASE)
_CLOSE_RE = re.compile(r":END:", re.IGNORECASE)
_PROPERTY_RE = re.compile(r":[^\s:]+\+?:(?:\s|$)")
_ID_LINE_RE = re.compile(r":ID:[ \t]+(\S+)", re.IGNORECASE)
_BLOCK_RE = re.compile(
    r"^:PROPERTIES:[ \t]*\r?\n:ID:[ \t]+(\S+)[ \t]*\r?\n:END:[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)


def render_identifier_block(identifier: str) -> str:
    if not identifier or any(c.isspace() for c in identifier):
        msg = f"Invalid identifier: {identifier!r}"
        raise ValueError(msg)
    return f"{OPEN_MARKER}\n:ID:       {identifier}\n{CLOSE_MARKER}\n"


def has_identifier_block(prefix: str | bytes) -> bool:
    """True when prefix starts with the opening marker of an identifier block."""
    if isinstance(prefix, bytes):
        prefix = prefix.decode("utf-8", errors="replace")
    return _OPEN_RE.match(prefix.removeprefix(_BOM)) is not None


def _strip_one(text: str) -> str:
    lines = text.splitlines(keepends=True)
    for i in range(1, len(lines)):
        stripped = lines[i].strip()
        if _CLOSE_RE.fullmatch(stripped):
            return "".join(lines[i + 1:])
        if not _PROPERTY_RE.match(stripped):
            # Unterminated drawer: drop the opener and the properties seen so far
            return "".join(lines[i:])
    return ""


def strip_identifier_block(text: str) -> str:
    """Remove every drawer stacked at offset 0 (repairs stale and duplicate blocks)."""
    text = text.removeprefix(_BOM)
    while _OPEN_RE.match(text):
        text = _strip_one(text)
    return text


def insert_identifier_block(text: str, identifier: str) -> str:
    """Return text with a single fresh block for identifier at offset 0."""
    return render_identifier_block(identifier) + strip_identifier_block(text)


def extract_identifier(text: str) -> str | None:
    """Find the identifier of the first identifier block in text, if any."""
    m = _BLOCK_RE.search(text.removeprefix(_BOM))
    return m.group(1) if m else None


def file_identifier(text: str) -> str | None:
    """The :ID: of the drawer opening at offset 0, wherever it sits among the properties."""
    text = text.removeprefix(_BOM)
    if not _OPEN_RE.match(text):
        return None
    for line in text.splitlines()[1:]:
        stripped = line.strip()
        if _CLOSE_RE.fullmatch(stripped):
            return None
        m = _ID_LINE_RE.match(stripped)
        if m:
            return m.group(1)
        if not _PROPERTY_RE.match(stripped):
            return None
    return None


def check_format(path: Path, cfg: BridgeConfig) -> None:
    """Raise UnsupportedFormat unless path is an org note in an org store."""
    if cfg.file_type != SUPPORTED_FILE_TYPE or path.suffix.lower() != f".{SUPPORTED_FILE_TYPE}":
        raise UnsupportedFormat(path, cfg.file_type)


def ensure_identifier(
    path: Path | str,
    cfg: BridgeConfig,
    *,
    buffers: BufferCache | None = None,
    new_id: Callable[[], str] = new_identifier,
) -> str:
    """Give the note at path exactly one fresh identifier block and save it.

    Each call assigns a new identifier; any block already at the top is
    discarded. Exclusion policy (journal notes) is the caller's job.
    """
    path = Path(path)
    check_format(path, cfg)

    try:
        text = buffers.text(path) if buffers is not None else path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnsupportedFormat(path, cfg.file_type, "not valid UTF-8 text") from exc
    identifier = new_id()
    updated = insert_identifier_block(text, identifier)

    if buffers is not None:
        buffers.write(path, updated)
        buffers.save(path)
    else:
        path.write_text(updated, encoding="utf-8")

    logger.info("identifier assigned: %s -> %s", path.name, identifier)
    return identifier
