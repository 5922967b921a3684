"""Flat, filename-encoded note store.

Every note lives in one file whose name carries its creation timestamp,
title and tags:

    20240105T093012--reading-list__books_todo.org
    ^ identifier    ^ title slug   ^ tags

FileStore is the public API:
    store = FileStore(cfg, buffers)
    path = store.create_note("Reading list", ["books", "todo"])
    store.classify(path)         # True
    store.read_note(path).tags   # frozenset({"books", "todo"})

create_note() leaves the new note open in the buffer cache (as an editor
would after visiting it) and runs the creation hooks; the default hook
writes the identifier block unless the note is in the excluded category.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from notebridge.buffers import BufferCache
from notebridge.errors import UnsupportedFormat
from notebridge.identity import check_format, ensure_identifier
from notebridge.models import NoteFile

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from notebridge.config import BridgeConfig

logger = logging.getLogger("notebridge.filestore")

_ID_FORMAT = "%Y%m%dT%H%M%S"

# file_type -> extension
FILE_TYPES: dict[str, str] = {
    "org": ".org",
    "markdown": ".md",
    "text": ".txt",
}
NOTE_EXTENSIONS = frozenset(FILE_TYPES.values())

_FILENAME_RE = re.compile(
    r"^(?P<identifier>\d{8}T\d{6})"
    r"(?:--(?P<title>[^_.]*?))?"
    r"(?:__(?P<tags>[^.]*))?"
    r"(?P<ext>\.[A-Za-z0-9]+)$"
)
_TITLE_LINE_RE = re.compile(r"^#\+title:[ \t]*(.*?)[ \t]*$", re.IGNORECASE | re.MULTILINE)
_YAML_TITLE_RE = re.compile(r"^title:[ \t]*\"?(.*?)\"?[ \t]*$", re.MULTILINE)


# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------

def slugify_title(title: str) -> str:
    """Lowercase, drop punctuation, join words with single hyphens."""
    words = re.findall(r"[^\W_]+", title.lower())
    return "-".join(words)


def sluggify_tag(tag: str) -> str:
    """Tags are single lowercase alphanumeric words (no '_' or '-')."""
    return "".join(re.findall(r"[^\W_]+", tag.lower()))


def normalize_tags(tags: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for tag in tags:
        slug = sluggify_tag(tag)
        if slug:
            seen.setdefault(slug, None)
    return sorted(seen)


def note_filename(identifier: str, title_slug: str, tags: Iterable[str], extension: str) -> str:
    name = identifier
    if title_slug:
        name += f"--{title_slug}"
    tag_part = "_".join(tags)
    if tag_part:
        name += f"__{tag_part}"
    return name + extension


def parse_filename(path: Path) -> NoteFile | None:
    """Decode a store filename, or None when the name is not a note name."""
    m = _FILENAME_RE.match(path.name)
    if m is None or m.group("ext").lower() not in NOTE_EXTENSIONS:
        return None
    tags = m.group("tags") or ""
    return NoteFile(
        path=path,
        title=(m.group("title") or "").replace("-", " "),
        tags=frozenset(t for t in tags.split("_") if t),
        identifier=m.group("identifier"),
    )


def iter_files(root: Path, *, recursive: bool) -> Iterator[Path]:
    """Yield regular files under root, sorted per directory; hidden dirs skipped."""
    if not recursive:
        for entry in sorted(root.iterdir()):
            if entry.is_file():
                yield entry
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            yield Path(dirpath) / name


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _org_front_matter(title: str, tags: list[str], identifier: str, created: datetime) -> str:
    lines = [
        f"#+title:      {title}",
        f"#+date:       [{created.strftime('%Y-%m-%d %a %H:%M')}]",
    ]
    if tags:
        lines.append(f"#+filetags:   :{':'.join(tags)}:")
    lines.append(f"#+identifier: {identifier}")
    return "\n".join(lines) + "\n\n"


def _markdown_front_matter(title: str, tags: list[str], identifier: str, created: datetime) -> str:
    tag_list = ", ".join(f'"{t}"' for t in tags)
    return (
        "---\n"
        f'title:      "{title}"\n'
        f"date:       {created.isoformat(timespec='seconds')}\n"
        f"tags:       [{tag_list}]\n"
        f'identifier: "{identifier}"\n'
        "---\n\n"
    )


def _text_front_matter(title: str, tags: list[str], identifier: str, created: datetime) -> str:
    return (
        f"title:      {title}\n"
        f"date:       {created.date().isoformat()}\n"
        f"tags:       {' '.join(tags)}\n"
        f"identifier: {identifier}\n"
        f"{'-' * 27}\n\n"
    )


_TEMPLATES: dict[str, Callable[[str, list[str], str, datetime], str]] = {
    "org": _org_front_matter,
    "markdown": _markdown_front_matter,
    "text": _text_front_matter,
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class FileStore:
    """Denote-style note store rooted at cfg.directory."""

    def __init__(
        self,
        cfg: BridgeConfig,
        buffers: BufferCache | None = None,
        *,
        creation_hooks: list[Callable[[Path], None]] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.cfg = cfg
        self.buffers = buffers if buffers is not None else BufferCache()
        self.creation_hooks = (
            creation_hooks if creation_hooks is not None else [self.assign_identifier]
        )
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self.cfg.directory

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def classify(self, path: Path | str) -> bool:
        """True when path is named like a note of this store."""
        return parse_filename(Path(path)) is not None

    def iter_notes(self, *, recursive: bool = True) -> Iterator[Path]:
        root = self.cfg.validate_directory()
        for path in iter_files(root, recursive=recursive):
            if self.classify(path):
                yield path

    def read_note(self, path: Path | str) -> NoteFile:
        path = Path(path)
        parsed = parse_filename(path)
        if parsed is None:
            msg = f"Not a note filename: {path.name}"
            raise ValueError(msg)
        title = _front_matter_title(self.buffers.text(path)) or parsed.title
        return NoteFile(path=path, title=title, tags=parsed.tags, identifier=parsed.identifier)

    def exists(self, identifier: str) -> bool:
        return any(self.directory.glob(f"{identifier}*"))

    def known_tags(self) -> list[str]:
        """All tags used by notes in the store, for tag prompts."""
        tags: set[str] = set()
        if not self.directory.is_dir():
            return []
        for path in self.iter_notes():
            parsed = parse_filename(path)
            if parsed is not None:
                tags |= parsed.tags
        return sorted(tags)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_note(self, title: str, tags: Iterable[str] = ()) -> Path:
        """Create a note from title and tags; returns its path.

        Raises DirectoryNotFound, UnsupportedFormat (before writing when the
        identifier hook cannot handle the store's file type) or ValueError
        for a title with no usable characters.
        """
        directory = self.cfg.validate_directory()
        title = title.strip()
        title_slug = slugify_title(title)
        if not title_slug:
            msg = f"Title has no usable characters: {title!r}"
            raise ValueError(msg)
        tag_list = normalize_tags(tags)

        extension = FILE_TYPES.get(self.cfg.file_type)
        if extension is None:
            raise UnsupportedFormat(directory / title_slug, self.cfg.file_type)

        created = self._clock().replace(microsecond=0)
        identifier = self._free_identifier(created)
        path = directory / note_filename(identifier, title_slug, tag_list, extension)

        if self.assign_identifier in self.creation_hooks and not self.cfg.is_excluded(path):
            check_format(path, self.cfg)

        template = _TEMPLATES[self.cfg.file_type]
        path.write_text(template(title, tag_list, identifier, created), encoding="utf-8")
        logger.info("note created: %s", path.name)

        self.buffers.open(path)
        for hook in self.creation_hooks:
            hook(path)
        return path

    def assign_identifier(self, path: Path) -> None:
        """Default creation hook: identifier block unless the note is excluded."""
        if self.cfg.is_excluded(path):
            logger.info("excluded from identifiers: %s", path.name)
            return
        ensure_identifier(path, self.cfg, buffers=self.buffers)

    def _free_identifier(self, created: datetime) -> str:
        """Timestamp identifier not yet used in the store (bumped a second at a time)."""
        candidate = created
        while self.exists(candidate.strftime(_ID_FORMAT)):
            candidate += timedelta(seconds=1)
        return candidate.strftime(_ID_FORMAT)


def _front_matter_title(text: str) -> str | None:
    head = text[:2048]
    m = _TITLE_LINE_RE.search(head) or _YAML_TITLE_RE.search(head)
    if m and m.group(1):
        return m.group(1)
    return None
