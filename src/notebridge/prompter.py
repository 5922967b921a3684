"""Interactive prompts as a synchronous capability.

The reconciler only sees the Prompter protocol, so tests drive it with
scripted answers and the CLI with ClickPrompter. Every method raises
Cancelled when the user aborts.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol

import click

from notebridge.errors import Cancelled

if TYPE_CHECKING:
    from collections.abc import Sequence

    from notebridge.models import Node

_TAG_SPLIT_RE = re.compile(r"[,\s]+")


class Prompter(Protocol):
    def choose_node(self, candidates: Sequence[Node], initial: str) -> Node | str:
        """Return the chosen node, or free text naming a note that does not exist yet."""
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        ...

    def read_tags(self, known: Sequence[str]) -> list[str]:
        ...


def _format_candidate(node: Node) -> str:
    where = node.file_path.name if node.file_path else "?"
    indent = "  " * node.level
    return f"{indent}{node.title}  ({where})"


class ClickPrompter:
    """Terminal prompts via click. Ctrl-C / EOF raise Cancelled."""

    def choose_node(self, candidates: Sequence[Node], initial: str) -> Node | str:
        try:
            query = click.prompt("Node", default=initial, show_default=bool(initial)).strip()
            if not query:
                raise Cancelled
            needle = query.lower()
            matches = [n for n in candidates if needle in n.title.lower()]
            if not matches:
                return query
            click.echo(f"  0. (new note) {query}")
            for i, node in enumerate(matches, start=1):
                click.echo(f"{i:>3}. {_format_candidate(node)}")
            pick = click.prompt(
                "Choose",
                type=click.IntRange(0, len(matches)),
                default=1,
            )
        except click.Abort as exc:
            raise Cancelled from exc
        return query if pick == 0 else matches[pick - 1]

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return click.confirm(message, default=default)
        except click.Abort as exc:
            raise Cancelled from exc

    def read_tags(self, known: Sequence[str]) -> list[str]:
        if known:
            click.echo(f"Known tags: {', '.join(known)}")
        try:
            raw = click.prompt("Tags (comma separated)", default="", show_default=False)
        except click.Abort as exc:
            raise Cancelled from exc
        return [t for t in _TAG_SPLIT_RE.split(raw) if t]
