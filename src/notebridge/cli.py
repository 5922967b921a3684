"""notebridge CLI: keep a Denote-style note store addressable by an org-roam-style graph index.

Commands:
    notebridge init                 create notebridge.toml + index dir
    notebridge sync                 check the note directory, rebuild the index
    notebridge reindex              rebuild the index
    notebridge new TITLE -t TAG     create a note (gets an identifier block)
    notebridge add-id FILE          (re)write the identifier block of a note
    notebridge link FILE --point N  insert a reference, creating the note if needed
    notebridge find [QUERY]         visit a note, creating it if needed
    notebridge unlinked [DIR]       notes the index cannot see
    notebridge linked [DIR]         notes the index knows about
    notebridge backfill [DIR]       give unlinked notes an identifier
    notebridge status               summary table
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click

from notebridge.audit import backfill_identifiers, relative_listing, scan_linked, scan_unlinked
from notebridge.buffers import BufferCache
from notebridge.config import BridgeConfig, init_config, load_config
from notebridge.errors import BridgeError, Cancelled
from notebridge.filestore import FileStore
from notebridge.identity import ensure_identifier
from notebridge.index import GraphIndex
from notebridge.models import EditPoint, Selection
from notebridge.prompter import ClickPrompter
from notebridge.reconcile import Reconciler

if TYPE_CHECKING:
    from collections.abc import Iterator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> BridgeConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


@contextlib.contextmanager
def _surface_errors() -> Iterator[None]:
    """Turn BridgeError into a click error; a cancelled prompt exits quietly."""
    try:
        yield
    except Cancelled:
        click.get_current_context().exit(0)
    except BridgeError as exc:
        raise click.ClickException(str(exc)) from exc


def _session(cfg: BridgeConfig) -> tuple[BufferCache, FileStore, GraphIndex]:
    buffers = BufferCache()
    return buffers, FileStore(cfg, buffers), GraphIndex(cfg)


def _scan_root(cfg: BridgeConfig, directory: str | None) -> Path:
    return Path(directory).expanduser() if directory else cfg.directory


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="notebridge")
@click.option("-v", "--verbose", count=True, help="Log to stderr (-vv for debug)")
def cli(verbose: int) -> None:
    """notebridge: identifiers and links between a note store and its graph index."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(name)s %(message)s",
        )


# ---------------------------------------------------------------------------
# notebridge init / sync / reindex
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
@click.option("--directory", "notes_dir", default=None, help="Note directory (default: project root)")
def init(root: str, notes_dir: str | None) -> None:
    """Create notebridge.toml and the index directory."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, directory=notes_dir)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("notebridge.toml already exists, skipping init")

    cfg = load_config(root_path)
    with _surface_errors():
        cfg.ensure_dirs()
        n = GraphIndex(cfg).rebuild()
    click.echo(f"Notes dir : {cfg.directory}")
    click.echo(f"Index     : {cfg.db_path}")
    click.echo(f"Indexed {n} nodes")


@cli.command()
def sync() -> None:
    """Check the note directory and rebuild the graph index over it."""
    cfg = _load_cfg()
    with _surface_errors():
        directory = cfg.validate_directory()
        cfg.ensure_dirs()
        n = GraphIndex(cfg).rebuild()
    click.echo(f"Synced {directory}: {n} nodes")


@cli.command()
def reindex() -> None:
    """Rebuild the graph index from scratch."""
    cfg = _load_cfg()
    with _surface_errors():
        cfg.ensure_dirs()
        # Remove a 0-byte DB so the rebuild starts fresh
        if cfg.db_path.exists() and cfg.db_path.stat().st_size == 0:
            click.echo(f"Removing empty DB: {cfg.db_path}")
            for f in cfg.db_path.parent.glob(f"{cfg.db_path.name}*"):
                f.unlink(missing_ok=True)
        n = GraphIndex(cfg).rebuild()
    click.echo(f"Indexed {n} nodes")


# ---------------------------------------------------------------------------
# notebridge new / add-id
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag (repeatable)")
def new(title: str, tags: tuple[str, ...]) -> None:
    """Create a note in the store."""
    cfg = _load_cfg()
    buffers, store, index = _session(cfg)
    with _surface_errors():
        try:
            path = store.create_note(title, tags)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="TITLE") from exc
        buffers.release_all()
        index.update_file(path)
    click.echo(str(path))


@cli.command("add-id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Also for notes in the excluded (journal) category")
def add_id(file: Path, force: bool) -> None:
    """Write a fresh identifier block at the top of FILE."""
    cfg = _load_cfg()
    if cfg.is_excluded(file) and not force:
        raise click.ClickException(
            f"{file.name} is tagged '{cfg.journal_keyword}' and excluded from identifiers "
            "(use --force or set link_journal = true)"
        )
    with _surface_errors():
        identifier = ensure_identifier(file, cfg)
        GraphIndex(cfg).update_file(file)
    click.echo(identifier)


# ---------------------------------------------------------------------------
# notebridge link / find
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--point", type=click.IntRange(min=0), default=None, help="Insert at this character offset (default: end)")
@click.option("--select", "selection", default=None, help="Replace the span START:END")
@click.option("--query", default=None, help="Initial search text (default: selected text)")
def link(file: Path, point: int | None, selection: str | None, query: str | None) -> None:
    """Insert a reference into FILE, creating the target note if it does not exist."""
    cfg = _load_cfg()
    buffers, store, index = _session(cfg)
    try:
        span = Selection.parse(selection) if selection else None
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--select") from exc
    if point is None:
        point = len(file.read_text(encoding="utf-8"))

    reconciler = Reconciler(cfg, store, index, ClickPrompter(), buffers)
    with _surface_errors():
        try:
            result = reconciler.link_or_create(EditPoint(file, point, span), query)
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        buffers.release_all()
    if result.created:
        click.echo(f"Created {result.node.file_path}", err=True)
    click.echo(result.reference.render())


@cli.command()
@click.argument("query", required=False)
@click.option("--edit", is_flag=True, help="Open the note in $EDITOR")
def find(query: str | None, edit: bool) -> None:
    """Find a note by title, creating it if it does not exist; prints its path."""
    cfg = _load_cfg()
    buffers, store, index = _session(cfg)
    reconciler = Reconciler(cfg, store, index, ClickPrompter(), buffers)
    with _surface_errors():
        result = reconciler.find_or_create(query)
        buffers.release_all()
    if result.created:
        click.echo(f"Created {result.path.name}", err=True)
    click.echo(str(result.path))
    if edit:
        click.edit(filename=str(result.path))


# ---------------------------------------------------------------------------
# notebridge unlinked / linked / backfill
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("directory", required=False)
@click.option("--recursive/--no-recursive", default=None, help="Include subdirectories (asked when omitted)")
def unlinked(directory: str | None, recursive: bool | None) -> None:
    """List notes without an identifier block (invisible to the index)."""
    cfg = _load_cfg()
    _, store, _ = _session(cfg)
    root = _scan_root(cfg, directory)
    with _surface_errors():
        if recursive is None:
            recursive = ClickPrompter().confirm("Search recursively?", default=False)
        paths = list(scan_unlinked(root, recursive, store, prefix_bytes=cfg.prefix_bytes))
    for rel in relative_listing(paths, root):
        click.echo(rel)
    click.echo(f"{len(paths)} unlinked note(s) in {root}", err=True)


@cli.command()
@click.argument("directory", required=False)
def linked(directory: str | None) -> None:
    """List notes under DIRECTORY that the index already knows."""
    cfg = _load_cfg()
    root = _scan_root(cfg, directory)
    with _surface_errors():
        paths = scan_linked(root, GraphIndex(cfg))
    for rel in relative_listing(paths, root):
        click.echo(rel)
    click.echo(f"{len(paths)} linked note(s) in {root}", err=True)


@cli.command()
@click.argument("directory", required=False)
@click.option("--recursive/--no-recursive", default=False, show_default=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def backfill(directory: str | None, recursive: bool, yes: bool) -> None:
    """Assign identifiers to every unlinked note (journal notes excluded)."""
    cfg = _load_cfg()
    buffers, store, index = _session(cfg)
    root = _scan_root(cfg, directory)
    with _surface_errors():
        pending = list(scan_unlinked(root, recursive, store, prefix_bytes=cfg.prefix_bytes))
        if not pending:
            click.echo("Nothing to do")
            return
        if not yes and not ClickPrompter().confirm(f"Assign identifiers to up to {len(pending)} note(s)?"):
            return
        changed = backfill_identifiers(root, recursive, cfg, store, buffers)
        for path in changed:
            index.update_file(path)
    click.echo(f"Assigned {len(changed)} identifier(s)")


# ---------------------------------------------------------------------------
# notebridge status
# ---------------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Show the note directory, index and audit counts."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg()
    console = Console()
    _, store, index = _session(cfg)

    table = Table(title="notebridge", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Config", str(cfg.config_path or "[dim]none (defaults)[/dim]"))
    if not cfg.directory.is_dir():
        table.add_row("Directory", f"[red]missing: {cfg.directory}[/red]")
        console.print(table)
        return
    table.add_row("Directory", str(cfg.directory))
    table.add_row("File type", cfg.file_type)
    table.add_row("Journal notes", "linked" if cfg.link_journal else f"excluded ('{cfg.journal_keyword}')")
    table.add_row("", "")

    notes = list(store.iter_notes())
    missing = list(scan_unlinked(cfg.directory, True, store, prefix_bytes=cfg.prefix_bytes))
    table.add_row("Notes", str(len(notes)))
    if missing:
        table.add_row("  Unlinked", f"[yellow]⚠ {len(missing)}[/yellow]")
    else:
        table.add_row("  Unlinked", "0")

    if cfg.db_path.exists():
        table.add_row("Indexed nodes", str(len(index.list_nodes())))
    else:
        table.add_row("Index", "[red]missing, run `notebridge sync`[/red]")

    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
