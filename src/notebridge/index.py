"""Graph index: SQLite cache of the identifier-bearing org notes under the note directory.

The DB is a pure derived cache: delete it and rebuild anytime. A node is
either a whole file (identifier block at offset 0, title from #+title:) or
a headline whose property drawer carries an :ID:.

Entry points:
    GraphIndex(cfg).rebuild()            # full rebuild
    GraphIndex(cfg).update_file(path)    # incremental, after a note is written
    GraphIndex(cfg).select_node(hint, prompter)
"""

from __future__ import annotations

import hashlib
import logging
import re
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from notebridge.errors import Cancelled
from notebridge.filestore import iter_files, parse_filename
from notebridge.identity import file_identifier
from notebridge.models import Node

if TYPE_CHECKING:
    from notebridge.config import BridgeConfig
    from notebridge.prompter import Prompter

logger = logging.getLogger("notebridge.index")

_INDEXED_SUFFIX = ".org"
_TITLE_RE = re.compile(r"^#\+title:[ \t]*(.*?)[ \t]*$", re.IGNORECASE | re.MULTILINE)
_HEADLINE_NODE_RE = re.compile(
    r"^(?P<stars>\*+)[ \t]+(?P<title>.*?)[ \t]*\r?\n"
    r"[ \t]*:PROPERTIES:[ \t]*\r?\n"
    r"(?P<props>(?:[ \t]*:.*\r?\n)*?)"
    r"[ \t]*:END:",
    re.IGNORECASE | re.MULTILINE,
)
_ID_PROP_RE = re.compile(r"^[ \t]*:ID:[ \t]+(\S+)", re.IGNORECASE | re.MULTILINE)
_HEADLINE_TAGS_RE = re.compile(r"[ \t]+:[\w@#%:]+:$")


def _get_conn(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if db_path.exists() and db_path.stat().st_size == 0:
        msg = f"SQLite DB is empty (0 bytes): {db_path}\nFix: rm {db_path}* && notebridge reindex"
        raise sqlite3.OperationalError(msg)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS files (
            file TEXT PRIMARY KEY,
            hash TEXT NOT NULL,
            mtime REAL
        );

        CREATE TABLE IF NOT EXISTS nodes (
            id TEXT PRIMARY KEY,
            file TEXT NOT NULL REFERENCES files(file) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 0,
            pos INTEGER NOT NULL DEFAULT 0,
            title TEXT
        );

        CREATE INDEX IF NOT EXISTS nodes_file ON nodes(file);
    """)


def _indexable(path: Path) -> bool:
    """Org notes named the way the file store names them."""
    return path.suffix.lower() == _INDEXED_SUFFIX and parse_filename(path) is not None


def _content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8", errors="replace")).hexdigest()[:16]


def parse_nodes(path: Path, text: str) -> list[tuple[str, int, int, str]]:
    """Return (identifier, level, pos, title) for every node in an org text."""
    nodes: list[tuple[str, int, int, str]] = []
    identifier = file_identifier(text)
    if identifier is not None:
        m = _TITLE_RE.search(text)
        title = m.group(1) if m and m.group(1) else path.stem
        nodes.append((identifier, 0, 0, title))
    for m in _HEADLINE_NODE_RE.finditer(text):
        id_match = _ID_PROP_RE.search(m.group("props"))
        if id_match is None:
            continue
        title = _HEADLINE_TAGS_RE.sub("", m.group("title")).strip()
        nodes.append((id_match.group(1), len(m.group("stars")), m.start(), title or path.stem))
    return nodes


class GraphIndex:
    """Identifier index over the org notes under cfg.directory."""

    def __init__(self, cfg: BridgeConfig) -> None:
        self.cfg = cfg
        self.db_path = cfg.db_path

    def _conn(self) -> sqlite3.Connection:
        conn = _get_conn(self.db_path)
        _ensure_schema(conn)
        return conn

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def rebuild(self) -> int:
        """Drop and re-scan every org note. Returns the node count."""
        root = self.cfg.validate_directory()
        conn = self._conn()
        try:
            with conn:
                conn.execute("DELETE FROM nodes")
                conn.execute("DELETE FROM files")
                for path in iter_files(root, recursive=True):
                    if _indexable(path):
                        self._index_file(conn, path)
            count = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
        finally:
            conn.close()
        logger.info("index rebuilt: %d nodes under %s", count, root)
        return int(count)

    def update_file(self, path: Path | str) -> int:
        """Re-scan one file under the note directory (or drop it when gone). Returns its node count."""
        path = Path(path).resolve()
        if not path.is_relative_to(self.cfg.directory.resolve()):
            logger.debug("outside note directory, not indexed: %s", path)
            return 0
        conn = self._conn()
        try:
            with conn:
                if not path.exists() or not _indexable(path):
                    conn.execute("DELETE FROM files WHERE file = ?", (str(path),))
                    return 0
                n = self._index_file(conn, path)
        finally:
            conn.close()
        logger.debug("file indexed: %s (%d nodes)", path.name, n)
        return n

    def _index_file(self, conn: sqlite3.Connection, path: Path) -> int:
        path = path.resolve()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning("unreadable file skipped: %s", path)
            return 0

        digest = _content_hash(text)
        row = conn.execute("SELECT hash FROM files WHERE file = ?", (str(path),)).fetchone()
        if row is not None and row[0] == digest:
            return int(conn.execute(
                "SELECT COUNT(*) FROM nodes WHERE file = ?", (str(path),),
            ).fetchone()[0])

        conn.execute("DELETE FROM files WHERE file = ?", (str(path),))
        conn.execute(
            "INSERT INTO files (file, hash, mtime) VALUES (?, ?, ?)",
            (str(path), digest, path.stat().st_mtime),
        )
        n = 0
        for identifier, level, pos, title in parse_nodes(path, text):
            cur = conn.execute(
                "INSERT OR IGNORE INTO nodes (id, file, level, pos, title) VALUES (?, ?, ?, ?, ?)",
                (identifier, str(path), level, pos, title),
            )
            if cur.rowcount == 0:
                logger.warning("duplicate identifier %s in %s ignored", identifier, path)
                continue
            n += 1
        return n

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list_nodes(self) -> list[Node]:
        """Every indexed node, ordered by file then position."""
        if not self.db_path.exists():
            return []
        conn = self._conn()
        try:
            rows = conn.execute(
                "SELECT id, file, level, title FROM nodes ORDER BY file, pos",
            ).fetchall()
        finally:
            conn.close()
        return [Node(title=t, file_path=Path(f), identifier=i, level=lvl) for i, f, lvl, t in rows]

    def search(self, text: str) -> list[Node]:
        """Nodes whose title contains text (case-insensitive)."""
        needle = text.lower()
        return [n for n in self.list_nodes() if needle in n.title.lower()]

    def get(self, identifier: str) -> Node | None:
        if not self.db_path.exists():
            return None
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT id, file, level, title FROM nodes WHERE id = ?", (identifier,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        i, f, lvl, t = row
        return Node(title=t, file_path=Path(f), identifier=i, level=lvl)

    def select_node(self, query_hint: str | None, prompter: Prompter) -> Node:
        """Let the user pick a node; free text comes back as a title-only Node.

        Raises Cancelled when the prompt is aborted or the answer is empty.
        """
        choice = prompter.choose_node(self.list_nodes(), query_hint or "")
        if isinstance(choice, Node):
            return choice
        title = choice.strip()
        if not title:
            raise Cancelled
        return Node(title=title)
