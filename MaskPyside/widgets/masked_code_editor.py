"""Plain-text editor that renders symbol masks as decoration layers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from PySide6.QtCore import QEvent, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QFontMetricsF, QPainter, QPen, QTextCursor, QTextFormat
from PySide6.QtWidgets import QPlainTextEdit, QTextEdit, QToolTip

from symbol_masks.core.decorations import DecorationRange, DecorationSpec
from symbol_masks.core.document import TextDocument
from symbol_masks.services.language_id import language_id_for_path

_TRANSPARENT = QColor(0, 0, 0, 0)
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_RGB_COLOR_RE = re.compile(r"^rgba?\(\s*([^)]*)\)$", re.IGNORECASE)
_PX_RE = re.compile(r"^(\d+(?:\.\d+)?)px$", re.IGNORECASE)

_BLOCK_CURSOR_STYLES = {"block", "block-outline", "underline", "underline-thin"}


def parse_css_declarations(css: str | None) -> dict[str, str]:
    out: dict[str, str] = {}
    for part in str(css or "").split(";"):
        name, sep, value = part.partition(":")
        if not sep:
            continue
        name = name.strip().lower()
        value = value.strip()
        if name and value:
            out[name] = value
    return out


def css_color(value: str | None) -> QColor | None:
    """Parse a CSS color; ``#RRGGBBAA`` keeps alpha last as in CSS."""
    text = str(value or "").strip()
    if not text:
        return None
    if _HEX_COLOR_RE.match(text):
        digits = text[1:]
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) if len(digits) == 8 else 255
        return QColor(r, g, b, a)
    rgb = _RGB_COLOR_RE.match(text)
    if rgb:
        parts = [p.strip() for p in rgb.group(1).split(",")]
        try:
            r, g, b = (max(0, min(255, int(float(p)))) for p in parts[:3])
            a = 255
            if len(parts) > 3:
                a = max(0, min(255, int(round(float(parts[3]) * 255))))
        except ValueError:
            return None
        return QColor(r, g, b, a)
    color = QColor(text)
    return color if color.isValid() else None


@dataclass(slots=True)
class LayerStyle:
    foreground: QColor | None = None
    background: QColor | None = None
    italic: bool = False
    bold: bool = False
    underline: bool = False
    border_color: QColor | None = None
    border_width: float = 0.0


def _is_bold(weight: str | None) -> bool:
    text = str(weight or "").strip().lower()
    if text in ("bold", "bolder"):
        return True
    try:
        return int(text) >= 600
    except ValueError:
        return False


def _parse_border(value: str | None) -> tuple[float, QColor | None]:
    width = 0.0
    color = None
    for part in str(value or "").split():
        px = _PX_RE.match(part)
        if px:
            width = float(px.group(1))
            continue
        parsed = css_color(part)
        if parsed is not None:
            color = parsed
    if color is not None and width <= 0:
        width = 1.0
    return width, color


def resolve_layer_style(spec: DecorationSpec) -> LayerStyle:
    style = spec.style
    css = parse_css_declarations(style.css)

    resolved = LayerStyle()
    resolved.foreground = css_color(css.get("color") or style.color)
    resolved.background = css_color(css.get("background-color") or css.get("background") or style.background_color)
    resolved.italic = str(css.get("font-style") or style.font_style or "").strip().lower() in ("italic", "oblique")
    resolved.bold = _is_bold(css.get("font-weight") or style.font_weight)
    resolved.underline = "underline" in str(css.get("text-decoration") or "").lower()

    width, color = _parse_border(css.get("border") or style.border)
    border_color = css_color(css.get("border-color") or style.border_color)
    if border_color is not None:
        color = border_color
        width = width or 1.0
    resolved.border_color = color
    resolved.border_width = width if color is not None else 0.0
    return resolved


@dataclass(slots=True)
class _DecorationLayer:
    spec: DecorationSpec
    style: LayerStyle
    ranges: list[DecorationRange] = field(default_factory=list)


class MaskedCodeEditor(QPlainTextEdit):
    documentSaved = Signal()
    languageChanged = Signal(str)
    extraCursorsChanged = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._file_path: str | None = None
        self._cursor_style = "line"
        self._layers: dict[int, _DecorationLayer] = {}
        self._next_handle = 0
        self._mask_selections: list[QTextEdit.ExtraSelection] = []
        self._snapshot: TextDocument | None = None
        self._snapshot_key: tuple | None = None
        self._snapshot_astral = False
        self._hover_text = ""
        self._extra_cursors: list[QTextCursor] = []

        font = QFont("Monospace")
        font.setStyleHint(QFont.StyleHint.TypeWriter)
        self.setFont(font)
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.viewport().setMouseTracking(True)
        self.viewport().installEventFilter(self)
        self.cursorPositionChanged.connect(self._rebuild_extra_selections)

    # --------- files ---------

    def file_path(self) -> str | None:
        return self._file_path

    def set_file_path(self, file_path: str | None) -> None:
        before = self.language_id()
        self._file_path = str(file_path) if file_path else None
        after = self.language_id()
        if after != before:
            self.languageChanged.emit(after)

    def language_id(self) -> str:
        return language_id_for_path(self._file_path)

    def load_file(self, file_path: str | Path) -> None:
        path = Path(file_path)
        text = path.read_text(encoding="utf-8")
        self.clear_extra_cursors()
        self.setPlainText(text)
        self.document().setModified(False)
        self.set_file_path(str(path))

    def save_file(self, file_path: str | Path | None = None) -> None:
        target = Path(file_path) if file_path else (Path(self._file_path) if self._file_path else None)
        if target is None:
            raise ValueError("No file path to save to.")
        target.write_text(self.toPlainText(), encoding="utf-8")
        self.document().setModified(False)
        self.set_file_path(str(target))
        self.documentSaved.emit()

    # --------- caret ---------

    @property
    def cursor_style(self) -> str:
        return self._cursor_style

    @cursor_style.setter
    def cursor_style(self, style: str) -> None:
        self._cursor_style = str(style or "line").strip().lower() or "line"
        if self._cursor_style in _BLOCK_CURSOR_STYLES:
            width = QFontMetricsF(self.font()).horizontalAdvance("M")
            self.setCursorWidth(max(1, int(round(width))))
        else:
            self.setCursorWidth(1)

    def extra_cursors(self) -> list[QTextCursor]:
        return [QTextCursor(cursor) for cursor in self._extra_cursors]

    def add_extra_cursor(self, offset: int) -> bool:
        """Add a caret at ``offset`` next to the primary one (Alt+click)."""
        position = self._to_qt_position(max(0, int(offset)))
        position = min(position, max(0, self.document().characterCount() - 1))
        taken = [self.textCursor().position(), *(c.position() for c in self._extra_cursors)]
        if position in taken:
            return False
        cursor = QTextCursor(self.document())
        cursor.setPosition(position)
        self._extra_cursors.append(cursor)
        self.viewport().update()
        self.extraCursorsChanged.emit()
        return True

    def clear_extra_cursors(self) -> None:
        if not self._extra_cursors:
            return
        self._extra_cursors.clear()
        self.viewport().update()
        self.extraCursorsChanged.emit()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            if bool(event.modifiers() & Qt.KeyboardModifier.AltModifier):
                pos = event.position().toPoint() if hasattr(event, "position") else event.pos()
                self.add_extra_cursor(self._from_qt_position(self.cursorForPosition(pos).position()))
                event.accept()
                return
            self.clear_extra_cursors()
        super().mousePressEvent(event)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Escape and self._extra_cursors:
            self.clear_extra_cursors()
            event.accept()
            return
        super().keyPressEvent(event)

    # --------- document access ---------

    def document_snapshot(self) -> TextDocument:
        doc = self.document()
        key = (int(doc.revision()), self._file_path, bool(doc.isModified()))
        if self._snapshot is None or key != self._snapshot_key:
            self._snapshot = TextDocument(
                text=self.toPlainText(),
                language_id=self.language_id(),
                file_path=self._file_path,
                revision=int(doc.revision()),
                dirty=bool(doc.isModified()),
            )
            self._snapshot_key = key
            text = self._snapshot.text
            self._snapshot_astral = bool(text) and max(text) > "\uffff"
        return self._snapshot

    def selection_offsets(self) -> list[tuple[int, int]]:
        cursors = [self.textCursor(), *self._extra_cursors]
        return [
            (self._from_qt_position(c.anchor()), self._from_qt_position(c.position()))
            for c in cursors
        ]

    def _has_astral_text(self) -> bool:
        self.document_snapshot()
        return self._snapshot_astral

    def _to_qt_position(self, offset: int) -> int:
        if not self._has_astral_text():
            return offset
        prefix = self.document_snapshot().text[:offset]
        return len(prefix.encode("utf-16-le")) // 2

    def _from_qt_position(self, position: int) -> int:
        if not self._has_astral_text():
            return position
        text = self.document_snapshot().text
        units = 0
        for index, ch in enumerate(text):
            if units >= position:
                return index
            units += 2 if ch > "\uffff" else 1
        return len(text)

    # --------- decoration host ---------

    def create_decoration_type(self, spec: DecorationSpec) -> int:
        self._next_handle += 1
        handle = self._next_handle
        self._layers[handle] = _DecorationLayer(spec=spec, style=resolve_layer_style(spec))
        return handle

    def set_decorations(self, handle: int, ranges: Sequence[DecorationRange]) -> None:
        layer = self._layers.get(handle)
        if layer is None:
            return
        layer.ranges = list(ranges)
        self._rebuild_mask_selections()

    def dispose_decoration_type(self, handle: int) -> None:
        if self._layers.pop(handle, None) is not None:
            self._rebuild_mask_selections()

    def decoration_ranges(self, handle: int) -> list[DecorationRange]:
        layer = self._layers.get(handle)
        return list(layer.ranges) if layer is not None else []

    def decoration_handles(self) -> list[int]:
        return list(self._layers)

    def _rebuild_mask_selections(self) -> None:
        selections: list[QTextEdit.ExtraSelection] = []
        for layer in self._layers.values():
            style = layer.style
            for rng in layer.ranges:
                sel = QTextEdit.ExtraSelection()
                cursor = QTextCursor(self.document())
                cursor.setPosition(self._to_qt_position(rng.start))
                cursor.setPosition(self._to_qt_position(rng.end), QTextCursor.MoveMode.KeepAnchor)
                sel.cursor = cursor
                if layer.spec.hide_source:
                    sel.format.setForeground(_TRANSPARENT)
                elif style.foreground is not None:
                    sel.format.setForeground(style.foreground)
                if style.background is not None:
                    sel.format.setBackground(style.background)
                if style.italic:
                    sel.format.setFontItalic(True)
                if style.bold:
                    sel.format.setFontWeight(QFont.Weight.Bold)
                if style.underline and not layer.spec.hide_source:
                    sel.format.setFontUnderline(True)
                selections.append(sel)
        self._mask_selections = selections
        self._rebuild_extra_selections()
        self.viewport().update()

    def _rebuild_extra_selections(self) -> None:
        extra = list(self._mask_selections)
        if not self.isReadOnly():
            line = QTextEdit.ExtraSelection()
            line_color = QColor(self.palette().color(self.viewport().backgroundRole()))
            line_color = line_color.lighter(130) if line_color.lightness() < 128 else line_color.darker(112)
            line_color.setAlpha(140)
            line.format.setBackground(line_color)
            line.format.setProperty(QTextFormat.Property.FullWidthSelection, True)
            line.cursor = self.textCursor()
            line.cursor.clearSelection()
            extra.insert(0, line)
        self.setExtraSelections(extra)

    # --------- painting ---------

    def paintEvent(self, event):
        super().paintEvent(event)
        self._paint_mask_overlays(event)
        self._paint_extra_cursors(event)

    def _paint_extra_cursors(self, event) -> None:
        if not self._extra_cursors:
            return
        color = QColor(self.palette().color(self.foregroundRole()))
        if self._cursor_style in _BLOCK_CURSOR_STYLES:
            color.setAlpha(110)
        painter = QPainter(self.viewport())
        try:
            painter.setClipRect(event.rect())
            for cursor in self._extra_cursors:
                rect = self.cursorRect(cursor)
                rect.setWidth(max(1, self.cursorWidth()))
                painter.fillRect(rect, color)
        finally:
            painter.end()

    def _range_rect(self, rng: DecorationRange) -> QRectF | None:
        start = QTextCursor(self.document())
        start.setPosition(self._to_qt_position(rng.start))
        end = QTextCursor(self.document())
        end.setPosition(self._to_qt_position(rng.end))
        if start.blockNumber() != end.blockNumber():
            return None
        left = self.cursorRect(start)
        right = self.cursorRect(end)
        if left.top() != right.top():
            return None
        return QRectF(left.left(), left.top(), max(1, right.left() - left.left()), left.height())

    def _paint_mask_overlays(self, event) -> None:
        if not self._layers:
            return
        painter = QPainter(self.viewport())
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            painter.setClipRect(event.rect())
            visible = QRectF(event.rect())
            default_pen = self.palette().color(self.foregroundRole())
            for layer in self._layers.values():
                style = layer.style
                text = layer.spec.text if layer.spec.hide_source else None
                if not text and style.border_color is None:
                    continue
                font = QFont(self.font())
                font.setItalic(style.italic)
                font.setBold(style.bold)
                font.setUnderline(style.underline)
                painter.setFont(font)
                for rng in layer.ranges:
                    rect = self._range_rect(rng)
                    if rect is None or not rect.intersects(visible):
                        continue
                    if text:
                        painter.setPen(style.foreground or default_pen)
                        painter.drawText(rect, int(Qt.AlignmentFlag.AlignCenter), text)
                    if style.border_color is not None:
                        painter.setPen(QPen(style.border_color, style.border_width))
                        painter.setBrush(Qt.BrushStyle.NoBrush)
                        painter.drawRect(rect.adjusted(0.5, 0.5, -0.5, -0.5))
        finally:
            painter.end()

    # --------- hover ---------

    def hover_text_at(self, offset: int) -> str | None:
        for layer in self._layers.values():
            for rng in layer.ranges:
                if rng.hover and rng.start <= offset < rng.end:
                    return rng.hover
        return None

    def eventFilter(self, watched, event):
        if watched is self.viewport() and event.type() == QEvent.Type.MouseMove:
            pos = event.position().toPoint() if hasattr(event, "position") else event.pos()
            offset = self._from_qt_position(self.cursorForPosition(pos).position())
            hover = self.hover_text_at(offset)
            if hover:
                if hover != self._hover_text:
                    QToolTip.showText(self.viewport().mapToGlobal(pos), hover, self.viewport())
                self._hover_text = hover
            elif self._hover_text:
                QToolTip.hideText()
                self._hover_text = ""
        return super().eventFilter(watched, event)
