from __future__ import annotations

from pathlib import Path

import pytest

from notebridge.audit import backfill_identifiers, relative_listing, scan_linked, scan_unlinked
from notebridge.errors import DirectoryNotFound
from notebridge.identity import extract_identifier, has_identifier_block
from notebridge.models import Node

from .conftest import linked_text, write_note


@pytest.fixture
def mixed(notes_dir: Path, index) -> dict[str, Path]:
    files = {
        "a": write_note(notes_dir, "20240101T000000--a.org", "#+title: A\n"),
        "b": write_note(notes_dir, "20240101T000001--b.org", linked_text("id-b", "B")),
        "c": write_note(notes_dir, "notes.txt", "not a note\n"),
    }
    index.rebuild()
    return files


class FakeIndex:
    def __init__(self, nodes: list[Node]) -> None:
        self.nodes = nodes

    def list_nodes(self) -> list[Node]:
        return list(self.nodes)


def test_unlinked_and_linked_partition(mixed, notes_dir, store, index):
    unlinked = list(scan_unlinked(notes_dir, False, store))
    linked = scan_linked(notes_dir, index)

    assert unlinked == [mixed["a"]]
    assert linked == [mixed["b"].resolve()]


def test_scan_does_not_modify_files(mixed, notes_dir, store):
    before = {p: p.read_bytes() for p in mixed.values()}
    list(scan_unlinked(notes_dir, True, store))
    assert {p: p.read_bytes() for p in mixed.values()} == before


def test_recursive_flag(notes_dir, store):
    top = write_note(notes_dir, "20240101T000000--top.org", "x")
    deep = write_note(notes_dir, "sub/inner/20240101T000001--deep.md", "y")
    write_note(notes_dir, ".hidden/20240101T000002--secret.org", "z")

    assert list(scan_unlinked(notes_dir, False, store)) == [top]
    assert list(scan_unlinked(notes_dir, True, store)) == [top, deep]


def test_only_prefix_is_read(notes_dir, store):
    late = write_note(notes_dir, "20240101T000000--late.org", " " * 400 + ":PROPERTIES:\n")
    assert list(scan_unlinked(notes_dir, False, store, prefix_bytes=300)) == [late]


def test_missing_root_raises_before_iteration(tmp_path, store, index):
    with pytest.raises(DirectoryNotFound):
        scan_unlinked(tmp_path / "gone", True, store)
    with pytest.raises(DirectoryNotFound):
        scan_linked(tmp_path / "gone", index)


def test_linked_excludes_nodes_outside_root(tmp_path, notes_dir):
    inside = write_note(notes_dir, "20240101T000000--in.org", "")
    outside = write_note(tmp_path / "elsewhere", "20240101T000001--out.org", "")
    fake = FakeIndex([
        Node(title="in", file_path=inside, identifier="1"),
        Node(title="out", file_path=outside, identifier="2"),
        Node(title="in again", file_path=inside, identifier="3", level=1),
    ])
    assert scan_linked(notes_dir, fake) == [inside.resolve()]


def test_linked_compares_true_paths(tmp_path, notes_dir):
    note = write_note(notes_dir, "20240101T000000--in.org", "")
    alias = tmp_path / "alias"
    alias.symlink_to(notes_dir, target_is_directory=True)
    fake = FakeIndex([Node(title="in", file_path=note, identifier="1")])

    assert scan_linked(alias, fake) == [note.resolve()]


def test_relative_listing(notes_dir):
    paths = [notes_dir / "a.org", notes_dir / "sub" / "b.org"]
    assert relative_listing(paths, notes_dir) == ["a.org", str(Path("sub") / "b.org")]


def test_backfill_skips_journal_and_non_org(mixed, notes_dir, cfg, store):
    journal = write_note(notes_dir, "20240101T000003--monday__journal.org", "#+title: Monday\n")
    md = write_note(notes_dir, "20240101T000004--readme.md", "# hi\n")

    changed = backfill_identifiers(notes_dir, False, cfg, store)

    assert changed == [mixed["a"]]
    assert extract_identifier(mixed["a"].read_text())
    assert not has_identifier_block(journal.read_text())
    assert md.read_text() == "# hi\n"
    assert extract_identifier(mixed["b"].read_text()) == "id-b"


def test_non_note_with_block_is_in_neither_list(mixed, notes_dir, store, index):
    write_note(notes_dir, "readme.org", linked_text("id-r", "Readme"))
    index.rebuild()

    assert list(scan_unlinked(notes_dir, False, store)) == [mixed["a"]]
    assert scan_linked(notes_dir, index) == [mixed["b"].resolve()]


def test_backfill_skips_undecodable_note(notes_dir, cfg, store):
    good = write_note(notes_dir, "20240101T000000--a.org", "#+title: A\n")
    bad = notes_dir / "20240101T000001--cafe.org"
    bad.write_bytes(b"#+title: caf\xe9\n")
    later = write_note(notes_dir, "20240101T000002--c.org", "#+title: C\n")

    changed = backfill_identifiers(notes_dir, False, cfg, store)

    assert changed == [good, later]
    assert bad.read_bytes() == b"#+title: caf\xe9\n"
    assert has_identifier_block(later.read_text())
