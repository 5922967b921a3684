"""Errors raised by user-facing actions.

Every error is surfaced at the action boundary (the CLI turns them into
click.ClickException); nothing here is retried.
"""

from __future__ import annotations

from pathlib import Path


class BridgeError(Exception):
    """Base class for notebridge errors."""


class DirectoryNotFound(BridgeError):
    """The configured or supplied root directory does not exist."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Directory not found: {self.path}")


class UnsupportedFormat(BridgeError):
    """The note is not in the markup dialect identifiers are written for."""

    def __init__(self, path: Path | str, file_type: str, reason: str | None = None) -> None:
        self.path = Path(path)
        self.file_type = file_type
        self.reason = reason
        detail = reason or "identifier blocks are only written to org notes"
        super().__init__(f"Unsupported note format for {self.path} (file_type={file_type!r}); {detail}")


class MissingIdentifier(BridgeError):
    """A freshly created note carries no identifier block.

    Means the file store's creation hook did not run; the file is left on
    disk for inspection.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"No identifier block found in newly created note: {self.path}")


class Cancelled(BridgeError):
    """The user aborted an interactive prompt. Not a failure."""
