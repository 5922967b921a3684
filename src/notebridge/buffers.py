"""In-memory note buffers.

Stands in for the editor's visited buffers: the file store may leave a new
note open here, and anything that re-reads a note from disk must release
its buffer first so it never works on a stale unsaved copy.

    buffers = BufferCache()
    buffers.open(path)               # visit (loads from disk)
    buffers.write(path, new_text)    # dirty, not yet on disk
    buffers.release(path)            # save if dirty, then drop
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("notebridge.buffers")


@dataclass
class Buffer:
    path: Path
    text: str
    dirty: bool = False


class BufferCache:
    """Open buffers keyed by resolved path. Single session, single thread."""

    def __init__(self) -> None:
        self._buffers: dict[Path, Buffer] = {}

    @staticmethod
    def _key(path: Path | str) -> Path:
        return Path(path).resolve()

    def is_open(self, path: Path | str) -> bool:
        return self._key(path) in self._buffers

    def open(self, path: Path | str) -> Buffer:
        """Visit path, loading it from disk unless already open."""
        key = self._key(path)
        buf = self._buffers.get(key)
        if buf is None:
            text = key.read_text(encoding="utf-8") if key.exists() else ""
            buf = Buffer(path=key, text=text)
            self._buffers[key] = buf
        return buf

    def text(self, path: Path | str) -> str:
        """Current text: the open buffer if any, else the file on disk."""
        buf = self._buffers.get(self._key(path))
        if buf is not None:
            return buf.text
        return Path(path).read_text(encoding="utf-8")

    def write(self, path: Path | str, text: str) -> None:
        """Replace the text of path; goes to the buffer if open, else to disk."""
        buf = self._buffers.get(self._key(path))
        if buf is None:
            Path(path).write_text(text, encoding="utf-8")
            return
        buf.text = text
        buf.dirty = True

    def save(self, path: Path | str) -> None:
        """Persist an open, dirty buffer. No-op otherwise."""
        buf = self._buffers.get(self._key(path))
        if buf is None or not buf.dirty:
            return
        buf.path.write_text(buf.text, encoding="utf-8")
        buf.dirty = False
        logger.debug("saved buffer: %s", buf.path)

    def release(self, path: Path | str, *, save: bool = True) -> None:
        """Drop the buffer for path, persisting it first unless save=False."""
        if save:
            self.save(path)
        self._buffers.pop(self._key(path), None)

    def release_all(self) -> None:
        for key in list(self._buffers):
            self.release(key)
