"""Create-or-link: reuse an indexed note when one matches, otherwise create it.

    reconciler = Reconciler(cfg, store, index, prompter, buffers)
    result = reconciler.link_or_create(EditPoint(path, point=120))
    result.reference.render()   # "[[id:...][Title]]"

Per call:
    check:   point and selection must lie inside the origin text (ValueError)
    select:  index.select_node(); Cancelled ends the call with no effect
    linked:  node has an identifier: insert a reference to it
    create:  title-only node: read tags, create the note, flush its buffer,
             re-read it from disk and pull the identifier out of the block
             (MissingIdentifier if the creation hook did not write one),
             then insert a reference to it

A note created before a later failure is not removed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notebridge.errors import MissingIdentifier
from notebridge.identity import file_identifier
from notebridge.links import apply_reference, check_edit_point, compose_reference, selected_text
from notebridge.models import FindResult, LinkResult, Node

if TYPE_CHECKING:
    from notebridge.buffers import BufferCache
    from notebridge.config import BridgeConfig
    from notebridge.filestore import FileStore
    from notebridge.index import GraphIndex
    from notebridge.models import EditPoint
    from notebridge.prompter import Prompter

logger = logging.getLogger("notebridge.reconcile")


class Reconciler:
    def __init__(
        self,
        cfg: BridgeConfig,
        store: FileStore,
        index: GraphIndex,
        prompter: Prompter,
        buffers: BufferCache,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.index = index
        self.prompter = prompter
        self.buffers = buffers

    def link_or_create(self, edit: EditPoint, query_hint: str | None = None) -> LinkResult:
        """Insert a reference at edit to a matching node, creating the note if needed."""
        # Bad edit points fail here, before any prompt or note creation
        origin_text = self.buffers.text(edit.path)
        check_edit_point(origin_text, edit.point, edit.selection)
        selection_text = selected_text(origin_text, edit.selection)
        if query_hint is None:
            query_hint = selection_text

        node = self.index.select_node(query_hint, self.prompter)
        created = False
        if node.identifier is None:
            node = self._create(node)
            created = True

        description = selection_text if selection_text and selection_text.strip() else node.title
        reference = compose_reference(node.identifier or "", description)
        point = apply_reference(edit, reference, self.buffers)

        if node.file_path is not None:
            self.index.update_file(node.file_path)
        self.index.update_file(edit.path)
        return LinkResult(reference=reference, node=node, created=created, point=point)

    def find_or_create(self, query_hint: str | None = None) -> FindResult:
        """Return the note to visit: an existing node's file, or a freshly created note.

        No reference is written anywhere on either branch.
        """
        node = self.index.select_node(query_hint, self.prompter)
        if node.identifier is not None and node.file_path is not None:
            logger.info("visiting %s", node.file_path)
            return FindResult(path=node.file_path, created=False)

        tags = self.prompter.read_tags(self.store.known_tags())
        path = self.store.create_note(node.title, tags)
        self.buffers.release(path)
        self.index.update_file(path)
        return FindResult(path=path, created=True)

    def _create(self, node: Node) -> Node:
        tags = self.prompter.read_tags(self.store.known_tags())
        path = self.store.create_note(node.title, tags)

        # The store may have left the note open; persist and drop it before reading back
        self.buffers.release(path)
        identifier = file_identifier(path.read_text(encoding="utf-8"))
        if identifier is None:
            raise MissingIdentifier(path)

        logger.info("linked new note %s (%s)", path.name, identifier)
        return Node(title=node.title, file_path=path, identifier=identifier)
