from __future__ import annotations

import os
from typing import Sequence

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from symbol_masks.core.decorations import DecorationRange, DecorationSpec  # noqa: E402
from symbol_masks.core.document import TextDocument  # noqa: E402


class FakeEditor:
    """Decoration host that records every call instead of drawing."""

    def __init__(self, text: str = "", language_id: str = "plaintext", file_path: str | None = None):
        self.document = TextDocument(text=text, language_id=language_id, file_path=file_path)
        self.selections: list[tuple[int, int]] = [(0, 0)]
        self.specs: dict[int, DecorationSpec] = {}
        self.ranges: dict[int, list[DecorationRange]] = {}
        self.disposed: list[int] = []
        self.calls: list[tuple[str, int]] = []
        self._next_handle = 0

    # editor side
    def set_text(self, text: str) -> None:
        self.document = self.document.with_text(text)

    def set_caret(self, offset: int) -> None:
        self.selections = [(offset, offset)]

    def document_snapshot(self) -> TextDocument:
        return self.document

    def selection_offsets(self) -> Sequence[tuple[int, int]]:
        return list(self.selections)

    # host side
    def create_decoration_type(self, spec: DecorationSpec) -> int:
        self._next_handle += 1
        self.specs[self._next_handle] = spec
        self.ranges[self._next_handle] = []
        self.calls.append(("create", self._next_handle))
        return self._next_handle

    def set_decorations(self, handle: int, ranges: Sequence[DecorationRange]) -> None:
        self.ranges[handle] = list(ranges)
        self.calls.append(("set", handle))

    def dispose_decoration_type(self, handle: int) -> None:
        self.disposed.append(handle)
        self.specs.pop(handle, None)
        self.ranges.pop(handle, None)
        self.calls.append(("dispose", handle))

    @property
    def live_handles(self) -> list[int]:
        return list(self.specs)


@pytest.fixture
def fake_editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app
