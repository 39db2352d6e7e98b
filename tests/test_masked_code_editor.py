"""Tests for the MaskedCodeEditor decoration host."""

from __future__ import annotations

from pathlib import Path

import pytest
from PySide6.QtCore import Qt
from PySide6.QtGui import QTextCursor
from PySide6.QtTest import QTest

from MaskPyside.widgets import MaskedCodeEditor
from MaskPyside.widgets.masked_code_editor import css_color, parse_css_declarations, resolve_layer_style
from symbol_masks.core.decorations import DecorationRange, DecorationSpec
from symbol_masks.core.masks import MaskStyle
from symbol_masks.services.grammar_registry import GrammarRegistry
from symbol_masks.ui.controllers import MaskUpdateController


@pytest.fixture
def editor(qapp):
    widget = MaskedCodeEditor()
    yield widget
    widget.deleteLater()


class TestCss:
    """Test style parsing."""

    def test_declarations(self) -> None:
        assert parse_css_declarations("color: red; font-weight:bold;;junk") == {"color": "red", "font-weight": "bold"}

    def test_hex_alpha_last(self) -> None:
        color = css_color("#ff000080")
        assert (color.red(), color.green(), color.blue(), color.alpha()) == (255, 0, 0, 128)

    def test_rgba(self) -> None:
        assert css_color("rgba(0, 0, 255, 0.5)").alpha() == 128

    def test_invalid(self) -> None:
        assert css_color("not-a-color") is None
        assert css_color(None) is None

    def test_layer_style(self) -> None:
        spec = DecorationSpec(
            style=MaskStyle(color="#00ff00", font_weight="700", border="1px solid red", css="font-style: italic")
        )
        style = resolve_layer_style(spec)
        assert style.foreground.green() == 255
        assert style.bold
        assert style.italic
        assert style.border_width == 1.0
        assert style.border_color.red() == 255


class TestDecorationHost:
    """Test the host protocol."""

    def test_layers(self, editor) -> None:
        editor.setPlainText("a === b")
        handle = editor.create_decoration_type(DecorationSpec(text="≡", hide_source=True))
        editor.set_decorations(handle, [DecorationRange(2, 5, "strict")])
        assert editor.decoration_ranges(handle) == [DecorationRange(2, 5, "strict")]
        selections = editor.extraSelections()
        assert any(sel.cursor.selectionStart() == 2 and sel.cursor.selectionEnd() == 5 for sel in selections)

        editor.dispose_decoration_type(handle)
        assert editor.decoration_handles() == []
        assert editor.decoration_ranges(handle) == []

    def test_hover(self, editor) -> None:
        editor.setPlainText("a === b")
        handle = editor.create_decoration_type(DecorationSpec())
        editor.set_decorations(handle, [DecorationRange(2, 5, "strict")])
        assert editor.hover_text_at(3) == "strict"
        assert editor.hover_text_at(5) is None

    def test_unknown_handle(self, editor) -> None:
        editor.set_decorations(99, [DecorationRange(0, 1)])
        editor.dispose_decoration_type(99)
        assert editor.decoration_handles() == []

    def test_paint_with_layers(self, editor) -> None:
        editor.setPlainText("a === b")
        handle = editor.create_decoration_type(
            DecorationSpec(text="≡", hide_source=True, style=MaskStyle(border="1px solid red"))
        )
        editor.set_decorations(handle, [DecorationRange(2, 5)])
        editor.resize(300, 100)
        editor.viewport().grab()


class TestDocumentAccess:
    """Test snapshots and selections."""

    def test_snapshot_cached_per_revision(self, editor) -> None:
        editor.setPlainText("x = 1")
        first = editor.document_snapshot()
        assert editor.document_snapshot() is first
        editor.insertPlainText("!")
        second = editor.document_snapshot()
        assert second is not first
        assert second.revision >= first.revision
        assert "!" in second.text

    def test_selection_offsets(self, editor) -> None:
        editor.setPlainText("abcdef")
        cursor = editor.textCursor()
        cursor.setPosition(4)
        cursor.setPosition(1, QTextCursor.MoveMode.KeepAnchor)
        editor.setTextCursor(cursor)
        assert editor.add_extra_cursor(6) is True
        assert editor.selection_offsets() == [(4, 1), (6, 6)]
        assert editor.add_extra_cursor(6) is False
        assert editor.add_extra_cursor(1) is False
        assert [c.position() for c in editor.extra_cursors()] == [6]

    def test_extra_cursors_follow_edits(self, editor) -> None:
        editor.setPlainText("abcdef")
        editor.add_extra_cursor(4)
        cursor = QTextCursor(editor.document())
        cursor.setPosition(0)
        cursor.insertText("xx")
        assert editor.selection_offsets()[1] == (6, 6)

    def test_astral_offsets(self, editor) -> None:
        editor.setPlainText("\U0001F600 === x")
        cursor = editor.textCursor()
        cursor.setPosition(3)
        editor.setTextCursor(cursor)
        assert editor.selection_offsets() == [(2, 2)]

        handle = editor.create_decoration_type(DecorationSpec())
        editor.set_decorations(handle, [DecorationRange(2, 5)])
        mask_selection = [sel for sel in editor.extraSelections() if sel.cursor.hasSelection()][0]
        assert (mask_selection.cursor.selectionStart(), mask_selection.cursor.selectionEnd()) == (3, 6)


class TestFiles:
    """Test file and language handling."""

    def test_load_and_save(self, editor, tmp_path: Path) -> None:
        path = tmp_path / "demo.py"
        path.write_text("x != 1\n", encoding="utf-8")
        languages: list[str] = []
        saved: list[bool] = []
        editor.languageChanged.connect(languages.append)
        editor.documentSaved.connect(lambda: saved.append(True))

        editor.load_file(path)
        assert editor.language_id() == "python"
        assert languages == ["python"]
        assert editor.document_snapshot().language_id == "python"

        editor.insertPlainText("y")
        editor.save_file()
        assert saved == [True]
        assert path.read_text(encoding="utf-8").startswith("y")
        assert not editor.document().isModified()

    def test_save_without_path(self, editor) -> None:
        with pytest.raises(ValueError):
            editor.save_file()

    def test_cursor_style(self, editor) -> None:
        editor.cursor_style = "block"
        assert editor.cursor_style == "block"
        assert editor.cursorWidth() > 1
        editor.cursor_style = "line"
        assert editor.cursorWidth() == 1


class TestExtraCursors:
    """Test Alt+click carets."""

    @staticmethod
    def _point_at(editor, position: int):
        cursor = QTextCursor(editor.document())
        cursor.setPosition(position)
        return editor.cursorRect(cursor).center()

    def test_alt_click_adds_cursor(self, editor, qapp) -> None:
        editor.setPlainText("abcdef")
        editor.resize(400, 200)
        editor.show()
        qapp.processEvents()
        changes: list[bool] = []
        editor.extraCursorsChanged.connect(lambda: changes.append(True))

        QTest.mouseClick(editor.viewport(), Qt.MouseButton.LeftButton, Qt.KeyboardModifier.AltModifier,
                         self._point_at(editor, 6))
        assert editor.textCursor().position() == 0
        assert editor.selection_offsets() == [(0, 0), (6, 6)]
        assert changes == [True]

        QTest.mouseClick(editor.viewport(), Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier,
                         self._point_at(editor, 3))
        assert editor.selection_offsets() == [(3, 3)]
        assert changes == [True, True]

    def test_escape_clears(self, editor, qapp) -> None:
        editor.setPlainText("abcdef")
        editor.add_extra_cursor(2)
        editor.add_extra_cursor(5)
        QTest.keyClick(editor, Qt.Key.Key_Escape)
        assert editor.extra_cursors() == []
        assert editor.toPlainText() == "abcdef"

    def test_load_file_clears(self, editor, tmp_path: Path) -> None:
        path = tmp_path / "a.py"
        path.write_text("x = 1\n", encoding="utf-8")
        editor.setPlainText("abcdef")
        editor.add_extra_cursor(3)
        editor.load_file(path)
        assert editor.extra_cursors() == []


class TestWithController:
    """Test the widget driven by a real controller."""

    def test_masks_follow_text(self, editor) -> None:
        editor.setPlainText("a === b")
        cursor = editor.textCursor()
        cursor.setPosition(0)
        editor.setTextCursor(cursor)
        settings = {"masks": [{"selector": "*", "patterns": [{"pattern": "===", "replace": "≡"}]}]}
        registry = GrammarRegistry([])
        controller = MaskUpdateController(editor, registry=registry, settings=settings)
        try:
            controller.flush_pending_update()
            handle = controller.mask_controller.cache.handle_for("===")
            assert editor.decoration_ranges(handle) == [DecorationRange(2, 5)]

            cursor.setPosition(3)
            editor.setTextCursor(cursor)
            assert controller.has_pending_update()
            controller.flush_pending_update()
            assert editor.decoration_ranges(handle) == []
        finally:
            controller.shutdown()
            registry.shutdown()

    def test_deleted_editor_is_dropped(self, qapp) -> None:
        import shiboken6

        widget = MaskedCodeEditor()
        widget.setPlainText("a === b")
        settings = {"masks": [{"selector": "*", "patterns": [{"pattern": "===", "replace": "≡"}]}]}
        registry = GrammarRegistry([])
        controller = MaskUpdateController(widget, registry=registry, settings=settings)
        try:
            controller.flush_pending_update()
            assert len(controller.mask_controller.cache) == 1

            shiboken6.delete(widget)
            controller.schedule_update()
            controller.flush_pending_update()
            controller.set_editor(None)
            assert len(controller.mask_controller.cache) == 0
            assert controller.editor() is None
        finally:
            controller.shutdown()
            registry.shutdown()

    def test_extra_cursor_reveals_mask(self, editor) -> None:
        editor.setPlainText("a === b")
        cursor = editor.textCursor()
        cursor.setPosition(0)
        editor.setTextCursor(cursor)
        settings = {"masks": [{"selector": "*", "patterns": [{"pattern": "===", "replace": "≡"}]}]}
        registry = GrammarRegistry([])
        controller = MaskUpdateController(editor, registry=registry, settings=settings)
        try:
            controller.flush_pending_update()
            handle = controller.mask_controller.cache.handle_for("===")
            assert editor.decoration_ranges(handle) == [DecorationRange(2, 5)]

            editor.add_extra_cursor(3)
            assert controller.has_pending_update()
            controller.flush_pending_update()
            assert editor.decoration_ranges(handle) == []

            editor.clear_extra_cursors()
            controller.flush_pending_update()
            assert editor.decoration_ranges(handle) == [DecorationRange(2, 5)]
        finally:
            controller.shutdown()
            registry.shutdown()
