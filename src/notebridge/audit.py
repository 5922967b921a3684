"""Audit: which notes the graph index can see, and which it cannot.

scan_unlinked() is a read-only pass over the file store: a note is unlinked
when the first few hundred bytes do not open an identifier block.
scan_linked() asks the index instead and keeps the nodes whose file lies
under the given root.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from notebridge.errors import DirectoryNotFound, UnsupportedFormat
from notebridge.filestore import iter_files
from notebridge.identity import ensure_identifier, has_identifier_block

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from notebridge.buffers import BufferCache
    from notebridge.config import BridgeConfig
    from notebridge.filestore import FileStore
    from notebridge.index import GraphIndex

logger = logging.getLogger("notebridge.audit")

DEFAULT_PREFIX_BYTES = 300


def _read_prefix(path: Path, size: int) -> bytes:
    with path.open("rb") as f:
        return f.read(size)


def _check_root(root: Path | str) -> Path:
    root = Path(root).expanduser()
    if not root.is_dir():
        raise DirectoryNotFound(root)
    return root


def scan_unlinked(
    root: Path | str,
    recursive: bool,
    store: FileStore,
    *,
    prefix_bytes: int = DEFAULT_PREFIX_BYTES,
) -> Iterator[Path]:
    """Yield notes under root that do not start with an identifier block.

    DirectoryNotFound is raised here, before iteration starts.
    """
    return _iter_unlinked(_check_root(root), recursive, store, prefix_bytes)


def _iter_unlinked(root: Path, recursive: bool, store: FileStore, prefix_bytes: int) -> Iterator[Path]:
    for path in iter_files(root, recursive=recursive):
        if not store.classify(path):
            continue
        try:
            prefix = _read_prefix(path, prefix_bytes)
        except OSError:
            logger.warning("unreadable note skipped: %s", path)
            continue
        if not has_identifier_block(prefix):
            logger.debug("unlinked: %s", path)
            yield path


def _is_under(path: Path, root: Path) -> bool:
    try:
        return path.resolve().is_relative_to(root)
    except OSError:
        return False


def scan_linked(root: Path | str, index: GraphIndex) -> list[Path]:
    """Files of indexed nodes that lie under root (true paths compared)."""
    resolved_root = _check_root(root).resolve()
    seen: dict[Path, None] = {}
    for node in index.list_nodes():
        if node.file_path is None or not _is_under(node.file_path, resolved_root):
            continue
        seen.setdefault(node.file_path.resolve(), None)
    return list(seen)


def relative_listing(paths: Iterable[Path], base: Path | str) -> list[str]:
    """Paths relative to base, as handed to a listing view."""
    resolved_base = Path(base).resolve()
    listing: list[str] = []
    for path in paths:
        resolved = Path(path).resolve()
        if resolved.is_relative_to(resolved_base):
            listing.append(str(resolved.relative_to(resolved_base)))
        else:
            listing.append(str(resolved))
    return listing


def backfill_identifiers(
    root: Path | str,
    recursive: bool,
    cfg: BridgeConfig,
    store: FileStore,
    buffers: BufferCache | None = None,
) -> list[Path]:
    """Give every unlinked, non-excluded org note an identifier. Returns the paths changed."""
    changed: list[Path] = []
    # Materialise first: the scan must not see files it is rewriting
    candidates = list(scan_unlinked(root, recursive, store, prefix_bytes=cfg.prefix_bytes))
    for path in candidates:
        if cfg.is_excluded(path):
            logger.info("excluded from identifiers: %s", path.name)
            continue
        if path.suffix.lower() != ".org":
            logger.debug("not an org note, skipped: %s", path.name)
            continue
        try:
            ensure_identifier(path, cfg, buffers=buffers)
        except (OSError, UnsupportedFormat) as exc:
            logger.warning("note skipped: %s", exc)
            continue
        changed.append(path)
    return changed
