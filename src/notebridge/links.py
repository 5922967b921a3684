"""Compose [[id:...][...]] references and put them into note text.

compose_reference() and insert_reference() are pure; apply_reference() is
the one positional mutation on a file.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notebridge.models import Reference

if TYPE_CHECKING:
    from notebridge.buffers import BufferCache
    from notebridge.models import EditPoint, Selection

logger = logging.getLogger("notebridge.links")


def compose_reference(identifier: str, description: str) -> Reference:
    if not identifier:
        msg = "Reference needs a non-empty identifier"
        raise ValueError(msg)
    if not description or not description.strip():
        msg = "Reference needs a non-empty description"
        raise ValueError(msg)
    # Org link descriptions cannot hold newlines or a closing bracket pair
    description = " ".join(description.split()).replace("]]", "] ]")
    return Reference(identifier=identifier, description=description)


def selected_text(text: str, selection: Selection | None) -> str | None:
    if selection is None:
        return None
    return text[selection.start:selection.end]


def check_edit_point(text: str, point: int, selection: Selection | None = None) -> None:
    """Raise ValueError when point or selection falls outside text."""
    if selection is not None:
        if selection.end > len(text):
            msg = f"Selection [{selection.start}, {selection.end}) beyond end of text ({len(text)})"
            raise ValueError(msg)
    elif not 0 <= point <= len(text):
        msg = f"Point {point} outside text (0..{len(text)})"
        raise ValueError(msg)


def insert_reference(
    text: str,
    reference: Reference,
    point: int,
    selection: Selection | None = None,
) -> tuple[str, int]:
    """Return (new_text, cursor_after_reference).

    With a selection the span [start, end) is replaced and its text dropped;
    otherwise the reference goes in at point. Nothing else changes.
    """
    check_edit_point(text, point, selection)
    rendered = reference.render()
    if selection is not None:
        start, end = selection.start, selection.end
    else:
        start = end = point
    return text[:start] + rendered + text[end:], start + len(rendered)


def apply_reference(edit: EditPoint, reference: Reference, buffers: BufferCache) -> int:
    """Insert reference into the file at edit and save it. Returns the new point."""
    was_open = buffers.is_open(edit.path)
    buf = buffers.open(edit.path)
    updated, point = insert_reference(buf.text, reference, edit.point, edit.selection)
    buffers.write(edit.path, updated)
    buffers.save(edit.path)
    if not was_open:
        buffers.release(edit.path)
    logger.info("reference inserted: %s at %d in %s", reference.identifier, edit.point, edit.path.name)
    return point
