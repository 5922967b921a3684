from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from notebridge.buffers import BufferCache
from notebridge.config import BridgeConfig
from notebridge.errors import Cancelled
from notebridge.filestore import FileStore
from notebridge.index import GraphIndex
from notebridge.models import Node

FIXED_NOW = datetime(2024, 1, 5, 9, 30, 12)


class ScriptedPrompter:
    """Prompter that replays canned answers and records what it was asked."""

    def __init__(self, nodes=(), tags=(), confirms=()):
        self.nodes = list(nodes)
        self.tags = list(tags)
        self.confirms = list(confirms)
        self.choose_calls: list[tuple[list[Node], str]] = []
        self.tag_calls = 0

    def choose_node(self, candidates, initial):
        self.choose_calls.append((list(candidates), initial))
        answer = self.nodes.pop(0)
        if answer is Cancelled:
            raise Cancelled
        if callable(answer):
            return answer(candidates)
        return answer

    def confirm(self, message, default=False):
        return self.confirms.pop(0) if self.confirms else default

    def read_tags(self, known):
        self.tag_calls += 1
        answer = self.tags.pop(0) if self.tags else []
        if answer is Cancelled:
            raise Cancelled
        return list(answer)


def write_note(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def linked_text(identifier: str, title: str, body: str = "") -> str:
    return f":PROPERTIES:\n:ID:       {identifier}\n:END:\n#+title:      {title}\n\n{body}"


@pytest.fixture
def notes_dir(tmp_path: Path) -> Path:
    d = tmp_path / "notes"
    d.mkdir()
    return d


@pytest.fixture
def cfg(notes_dir: Path) -> BridgeConfig:
    return BridgeConfig(directory=notes_dir)


@pytest.fixture
def buffers() -> BufferCache:
    return BufferCache()


@pytest.fixture
def store(cfg: BridgeConfig, buffers: BufferCache) -> FileStore:
    return FileStore(cfg, buffers, clock=lambda: FIXED_NOW)


@pytest.fixture
def index(cfg: BridgeConfig) -> GraphIndex:
    return GraphIndex(cfg)
