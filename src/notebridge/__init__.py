"""notebridge: keep a filename-encoded note store addressable by an ID-based graph index.

Layout (inside the configured note directory):
    20240105T093012--reading-list__books_todo.org    # one note per file
    .notebridge/
        graph.db          # SQLite graph index (fully reconstructable)

Each linked org note starts with an identifier block:
    :PROPERTIES:
    :ID:       <uuid4>
    :END:

and is referenced from other notes as [[id:<uuid4>][description]].
"""

from notebridge.buffers import BufferCache
from notebridge.config import BridgeConfig, init_config, load_config
from notebridge.errors import BridgeError, Cancelled, DirectoryNotFound, MissingIdentifier, UnsupportedFormat
from notebridge.filestore import FileStore
from notebridge.identity import ensure_identifier, extract_identifier
from notebridge.index import GraphIndex
from notebridge.models import EditPoint, Node, NoteFile, Reference, Selection
from notebridge.reconcile import Reconciler

__all__ = [
    "BridgeConfig",
    "BridgeError",
    "BufferCache",
    "Cancelled",
    "DirectoryNotFound",
    "EditPoint",
    "FileStore",
    "GraphIndex",
    "MissingIdentifier",
    "Node",
    "NoteFile",
    "Reconciler",
    "Reference",
    "Selection",
    "UnsupportedFormat",
    "ensure_identifier",
    "extract_identifier",
    "init_config",
    "load_config",
]
