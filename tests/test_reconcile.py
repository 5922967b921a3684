from __future__ import annotations

from pathlib import Path

import pytest

from notebridge.errors import Cancelled, MissingIdentifier
from notebridge.filestore import FileStore
from notebridge.identity import extract_identifier
from notebridge.models import EditPoint, Selection
from notebridge.reconcile import Reconciler

from .conftest import FIXED_NOW, ScriptedPrompter, linked_text, write_note

ORIGIN_TEXT = "see foo here\n"


@pytest.fixture
def origin(notes_dir: Path) -> Path:
    return write_note(notes_dir, "20231231T120000--origin.org", ORIGIN_TEXT)


@pytest.fixture
def alpha(notes_dir: Path, index) -> Path:
    path = write_note(notes_dir, "20231230T120000--alpha.org", linked_text("id-a", "Alpha"))
    index.rebuild()
    return path


@pytest.fixture
def create_calls(store: FileStore, monkeypatch) -> list[tuple]:
    calls: list[tuple] = []
    real = store.create_note

    def spy(title, tags=()):
        calls.append((title, list(tags)))
        return real(title, tags)

    monkeypatch.setattr(store, "create_note", spy)
    return calls


def _reconciler(cfg, store, index, buffers, prompter) -> Reconciler:
    return Reconciler(cfg, store, index, prompter, buffers)


def _pick_first(candidates):
    return candidates[0]


def _new_notes(notes_dir: Path, before: set[Path]) -> list[Path]:
    return [p for p in notes_dir.glob("*.org") if p not in before]


# ---------------------------------------------------------------------------
# link_or_create
# ---------------------------------------------------------------------------


def test_existing_node_is_linked_without_creating(cfg, store, index, buffers, origin, alpha, create_calls):
    prompter = ScriptedPrompter(nodes=[_pick_first])

    result = _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 4))

    assert result.reference.identifier == "id-a"
    assert result.reference.description == "Alpha"
    assert not result.created
    assert create_calls == []
    assert prompter.tag_calls == 0
    assert origin.read_text() == "see [[id:id-a][Alpha]]foo here\n"


def test_selection_seeds_query_and_description(cfg, store, index, buffers, origin, alpha):
    prompter = ScriptedPrompter(nodes=[_pick_first])

    result = _reconciler(cfg, store, index, buffers, prompter).link_or_create(
        EditPoint(origin, 0, Selection(4, 7)),
    )

    assert prompter.choose_calls[0][1] == "foo"
    assert result.reference.description == "foo"
    assert origin.read_text() == "see [[id:id-a][foo]] here\n"


def test_explicit_query_overrides_selection(cfg, store, index, buffers, origin, alpha):
    prompter = ScriptedPrompter(nodes=[_pick_first])
    _reconciler(cfg, store, index, buffers, prompter).link_or_create(
        EditPoint(origin, 0, Selection(4, 7)), query_hint="alp",
    )
    assert prompter.choose_calls[0][1] == "alp"


def test_title_only_node_creates_note_and_links_it(cfg, store, index, buffers, notes_dir, origin, create_calls):
    before = set(notes_dir.glob("*.org"))
    prompter = ScriptedPrompter(nodes=["Brand New"], tags=[["ideas"]])

    result = _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 0))

    created = _new_notes(notes_dir, before)
    assert len(created) == 1
    assert created[0].name == "20240105T093012--brand-new__ideas.org"
    text = created[0].read_text()
    assert text.count(":PROPERTIES:") == 1
    assert text.startswith(":PROPERTIES:")
    identifier = extract_identifier(text)
    assert result.created
    assert result.reference.identifier == identifier
    assert create_calls == [("Brand New", ["ideas"])]
    assert origin.read_text() == f"[[id:{identifier}][Brand New]]{ORIGIN_TEXT}"
    assert index.get(identifier).title == "Brand New"
    assert not buffers.is_open(created[0])


def test_unsaved_buffer_is_flushed_before_reading_back(cfg, buffers, index, notes_dir, origin):
    def hook(path: Path) -> None:
        # Writes only to the open buffer; reading the disk copy would miss it
        buffers.write(path, ":PROPERTIES:\n:ID:       from-buffer\n:END:\n" + buffers.text(path))

    store = FileStore(cfg, buffers, creation_hooks=[hook], clock=lambda: FIXED_NOW)
    prompter = ScriptedPrompter(nodes=["Buffered"])

    result = _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 0))

    assert result.reference.identifier == "from-buffer"


def test_missing_identifier_leaves_created_file(cfg, buffers, index, notes_dir, origin):
    store = FileStore(cfg, buffers, creation_hooks=[], clock=lambda: FIXED_NOW)
    prompter = ScriptedPrompter(nodes=["Hookless"])

    with pytest.raises(MissingIdentifier) as excinfo:
        _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 0))

    assert excinfo.value.path.exists()
    assert excinfo.value.path.name == "20240105T093012--hookless.org"
    assert origin.read_text() == ORIGIN_TEXT


@pytest.mark.parametrize("edit_args", [(99, None), (0, Selection(4, 99))])
def test_out_of_range_edit_point_fails_before_prompting(
    cfg, store, index, buffers, notes_dir, origin, create_calls, edit_args,
):
    before = set(notes_dir.iterdir())
    prompter = ScriptedPrompter(nodes=["Orphan"], tags=[["misc"]])

    with pytest.raises(ValueError):
        _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, *edit_args))

    assert prompter.choose_calls == []
    assert create_calls == []
    assert set(notes_dir.iterdir()) == before
    assert origin.read_text() == ORIGIN_TEXT


def test_cancelled_selection_has_no_effect(cfg, store, index, buffers, notes_dir, origin, create_calls):
    before = set(notes_dir.iterdir())
    prompter = ScriptedPrompter(nodes=[Cancelled])

    with pytest.raises(Cancelled):
        _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 0))

    assert set(notes_dir.iterdir()) == before
    assert origin.read_text() == ORIGIN_TEXT
    assert create_calls == []


def test_cancelled_tag_prompt_creates_nothing(cfg, store, index, buffers, notes_dir, origin, create_calls):
    before = set(notes_dir.glob("*.org"))
    prompter = ScriptedPrompter(nodes=["Later"], tags=[Cancelled])

    with pytest.raises(Cancelled):
        _reconciler(cfg, store, index, buffers, prompter).link_or_create(EditPoint(origin, 0))

    assert _new_notes(notes_dir, before) == []
    assert create_calls == []
    assert origin.read_text() == ORIGIN_TEXT


# ---------------------------------------------------------------------------
# find_or_create
# ---------------------------------------------------------------------------


def test_find_existing_node_returns_its_file(cfg, store, index, buffers, alpha, create_calls):
    prompter = ScriptedPrompter(nodes=[_pick_first])

    result = _reconciler(cfg, store, index, buffers, prompter).find_or_create("alpha")

    assert result.path == alpha.resolve()
    assert not result.created
    assert create_calls == []


def test_find_missing_node_only_creates(cfg, store, index, buffers, notes_dir, origin):
    before = set(notes_dir.glob("*.org"))
    prompter = ScriptedPrompter(nodes=["Fresh"], tags=[["misc"]])

    result = _reconciler(cfg, store, index, buffers, prompter).find_or_create()

    assert result.created
    assert _new_notes(notes_dir, before) == [result.path]
    assert extract_identifier(result.path.read_text())
    assert origin.read_text() == ORIGIN_TEXT
    assert "[[id:" not in result.path.read_text()
    assert not buffers.is_open(result.path)
