"""Plain-text document snapshots shared by the tokenizer and the matcher."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class TextDocument:
    """Immutable view of one editor document.

    Offsets are character offsets into ``text``. Lines are split on ``\\n``
    only; a trailing newline produces a final empty line, the same way an
    editor counts its blocks.
    """

    text: str = ""
    language_id: str = "plaintext"
    file_path: str | None = None
    revision: int = 0
    dirty: bool = False
    _line_starts: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = [0]
        index = self.text.find("\n")
        while index >= 0:
            starts.append(index + 1)
            index = self.text.find("\n", index + 1)
        object.__setattr__(self, "_line_starts", tuple(starts))

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def line_text(self, line_number: int) -> str:
        start = self._line_starts[line_number]
        if line_number + 1 < len(self._line_starts):
            end = self._line_starts[line_number + 1] - 1
        else:
            end = len(self.text)
        return self.text[start:end]

    def position_at(self, offset: int) -> tuple[int, int]:
        """Return ``(line, character)`` for a document offset."""
        offset = max(0, min(int(offset), len(self.text)))
        line = bisect_right(self._line_starts, offset) - 1
        return line, offset - self._line_starts[line]

    def offset_at(self, line: int, character: int) -> int:
        line = max(0, min(int(line), len(self._line_starts) - 1))
        line_len = len(self.line_text(line))
        return self._line_starts[line] + max(0, min(int(character), line_len))

    def with_text(self, text: str, *, dirty: bool = True) -> "TextDocument":
        return TextDocument(
            text=text,
            language_id=self.language_id,
            file_path=self.file_path,
            revision=self.revision + 1,
            dirty=dirty,
        )


def normalize_selection(anchor: int, active: int) -> tuple[int, int]:
    """Return ``(start, end)`` with ``start <= end`` for a possibly reversed selection."""
    a = int(anchor)
    b = int(active)
    if b < a:
        return b, a
    return a, b
