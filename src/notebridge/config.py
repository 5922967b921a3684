"""BridgeConfig: session configuration for the note bridge.

Layout (all relative to the note directory):

    <directory>/
        20240101T093000--some-title__tag1_tag2.org    # notes (file store)
        .notebridge/
            graph.db      # SQLite graph index cache (rebuildable)
            .gitignore    # auto-written: ignores everything in the cache dir

notebridge.toml example (searched upward from the working directory):

    [notebridge]
    directory = "~/notes"
    file_type = "org"          # identifier blocks are written for org only
    journal_keyword = "journal"
    link_journal = false       # give journal notes identifiers too
    index_dir = ".notebridge"
    prefix_bytes = 300         # bytes read per file by the unlinked audit

NOTEBRIDGE_DIRECTORY in the environment overrides `directory`.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from notebridge.errors import DirectoryNotFound

_CONFIG_FILENAME = "notebridge.toml"
_DEFAULT_INDEX_DIR = ".notebridge"
_DEFAULT_FILE_TYPE = "org"
_DEFAULT_JOURNAL_KEYWORD = "journal"
_DEFAULT_PREFIX_BYTES = 300
_GITIGNORE_CONTENT = "*\n"
_ENV_DIRECTORY = "NOTEBRIDGE_DIRECTORY"


@dataclass(frozen=True)
class BridgeConfig:
    """Resolved configuration. Built once per session, never mutated."""

    directory: Path                 # root of the note store
    file_type: str = _DEFAULT_FILE_TYPE
    journal_keyword: str = _DEFAULT_JOURNAL_KEYWORD
    link_journal: bool = False
    index_dir: Path = Path(_DEFAULT_INDEX_DIR)
    prefix_bytes: int = _DEFAULT_PREFIX_BYTES
    config_path: Path | None = None

    @property
    def index_path(self) -> Path:
        if self.index_dir.is_absolute():
            return self.index_dir
        return self.directory / self.index_dir

    @property
    def db_path(self) -> Path:
        return self.index_path / "graph.db"

    def validate_directory(self) -> Path:
        """Return the resolved note directory, or raise DirectoryNotFound."""
        if not self.directory.is_dir():
            raise DirectoryNotFound(self.directory)
        return self.directory.resolve()

    def ensure_dirs(self) -> None:
        """Create the index cache dir (the note directory must already exist)."""
        self.validate_directory()
        self.index_path.mkdir(parents=True, exist_ok=True)
        gitignore = self.index_path / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(_GITIGNORE_CONTENT)

    def is_excluded(self, path: Path | str) -> bool:
        """True for notes in the journal category unless it is opted in."""
        if self.link_journal:
            return False
        from notebridge.filestore import parse_filename

        parsed = parse_filename(Path(path))
        return parsed is not None and self.journal_keyword in parsed.tags


def load_config(root: Path | str | None = None) -> BridgeConfig:
    """Load notebridge.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    section = raw.get("notebridge", {})

    directory_raw = os.environ.get(_ENV_DIRECTORY) or section.get("directory") or str(root_path)
    directory = Path(directory_raw).expanduser()
    if not directory.is_absolute():
        directory = root_path / directory

    file_type = str(section.get("file_type", _DEFAULT_FILE_TYPE)).lower()

    return BridgeConfig(
        directory=directory,
        file_type=file_type,
        journal_keyword=str(section.get("journal_keyword", _DEFAULT_JOURNAL_KEYWORD)),
        link_journal=bool(section.get("link_journal", False)),
        index_dir=Path(section.get("index_dir", _DEFAULT_INDEX_DIR)),
        prefix_bytes=int(section.get("prefix_bytes", _DEFAULT_PREFIX_BYTES)),
        config_path=config_path if config_path.exists() else None,
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for notebridge.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, directory: str | None = None) -> Path:
    """Write a default notebridge.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"notebridge.toml already exists at {config_path}"
        raise FileExistsError(msg)

    notes_dir = directory or "."
    content = f"""\
[notebridge]
directory = "{notes_dir}"
# file_type = "org"            # only org notes receive identifier blocks
# journal_keyword = "journal"  # notes tagged with this are skipped...
# link_journal = false         # ...unless this is true
# index_dir = ".notebridge"    # graph index cache, relative to directory
# prefix_bytes = 300           # bytes read per file by `notebridge unlinked`
"""
    config_path.write_text(content)
    return config_path
