"""Qt-aware controller that keeps an editor's symbol masks up to date."""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Mapping

from PySide6.QtCore import QObject, QTimer, Signal
from shiboken6 import isValid as _is_qobject_valid

from symbol_masks.core.document import TextDocument
from symbol_masks.core.grammar import Grammar
from symbol_masks.core.mask_controller import MaskController, MaskEditor
from symbol_masks.core.masks import MaskConfigError, mask_from_settings, pattern_from_settings
from symbol_masks.core.tokenizer import ScopedDocument
from symbol_masks.services.grammar_registry import GrammarRegistry
from symbol_masks.services.language_id import selector_matches
from symbol_masks.settings_models import SymbolMasksSettings, normalize_symbol_masks_settings

_LOG = logging.getLogger(__name__)


class MaskUpdateController(QObject):
    """Debounces editor events into mask update passes.

    Every event restarts one single-shot timer, so a burst of edits or caret
    moves results in a single pass once the editor has been quiet for
    ``debounce_ms``. Grammars load on a worker thread; their results are
    drained on the Qt thread by a pump timer.
    """

    masksApplied = Signal(int)      # patterns applied in the pass
    grammarChanged = Signal(str)    # scope name, empty when cleared

    GRAMMAR_PUMP_INTERVAL_MS = 20

    def __init__(
        self,
        editor: MaskEditor | None = None,
        registry: GrammarRegistry | None = None,
        settings: Mapping[str, Any] | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._owns_registry = registry is None
        self._registry = registry if registry is not None else GrammarRegistry.builtin()
        self._settings: SymbolMasksSettings = normalize_symbol_masks_settings(settings)
        self._scoped_document = ScopedDocument()
        self._mask_controller = MaskController(None, self._scoped_document)
        self._editor: MaskEditor | None = None

        self._language_scope_name = ""
        self._tokens_stale = True
        self._tokenized_key: tuple[int, int] | None = None
        self._grammar_token = 0
        self._grammar_pending: dict[concurrent.futures.Future, tuple[int, str]] = {}

        self._update_timer = QTimer(self)
        self._update_timer.setSingleShot(True)
        self._update_timer.setInterval(int(self._settings["debounce_ms"]))
        self._update_timer.timeout.connect(self._run_update)

        self._grammar_pump = QTimer(self)
        self._grammar_pump.setInterval(self.GRAMMAR_PUMP_INTERVAL_MS)
        self._grammar_pump.timeout.connect(self._drain_grammar_tasks)

        if editor is not None:
            self.set_editor(editor)

    @property
    def update_timer(self) -> QTimer:
        return self._update_timer

    @property
    def mask_controller(self) -> MaskController:
        return self._mask_controller

    @property
    def scoped_document(self) -> ScopedDocument:
        return self._scoped_document

    @property
    def language_scope_name(self) -> str:
        return self._language_scope_name

    @property
    def settings(self) -> SymbolMasksSettings:
        return self._settings

    def editor(self) -> MaskEditor | None:
        return self._editor

    # ---------- host events ----------

    def set_editor(self, editor: MaskEditor | None) -> None:
        """Active editor changed."""
        if editor is self._editor:
            return
        if self._editor is not None:
            if _is_qobject_valid(self._editor):
                self._disconnect_editor_signals(self._editor)
            else:
                self._mask_controller.cache.forget_all()
        self._mask_controller.set_editor(editor)
        self._editor = editor
        self._scoped_document.set_document(editor.document_snapshot() if editor is not None else None)
        self._tokens_stale = True
        if editor is not None:
            self._connect_editor_signals(editor)
        self._request_grammar()
        self.schedule_update()

    def on_document_saved(self) -> None:
        # Saving can change the file name and therefore the grammar.
        self._request_grammar()
        self.schedule_update()

    def on_language_changed(self, *_args) -> None:
        self._request_grammar()
        self.schedule_update()

    def on_text_changed(self) -> None:
        self._tokens_stale = True
        self.schedule_update()

    def on_selection_changed(self) -> None:
        self.schedule_update()

    def update_settings(self, settings: Mapping[str, Any] | None) -> None:
        """Configuration changed: drop every cached decoration and start over."""
        self._settings = normalize_symbol_masks_settings(settings)
        self._update_timer.setInterval(int(self._settings["debounce_ms"]))
        self._mask_controller.clear()
        self._tokens_stale = True
        self.schedule_update()

    # ---------- scheduling ----------

    def schedule_update(self) -> None:
        self._update_timer.start()

    def has_pending_update(self) -> bool:
        return self._update_timer.isActive()

    def flush_pending_update(self) -> None:
        if not self._update_timer.isActive():
            return
        self._update_timer.stop()
        self._run_update()

    def shutdown(self) -> None:
        self._update_timer.stop()
        self._grammar_pump.stop()
        self._grammar_pending.clear()
        if self._editor is not None and not _is_qobject_valid(self._editor):
            self._mask_controller.cache.forget_all()
        elif self._editor is not None:
            self._disconnect_editor_signals(self._editor)
        self._mask_controller.clear()
        if self._owns_registry:
            self._registry.shutdown()

    def cursor_style(self) -> str:
        style = getattr(self._editor, "cursor_style", None) if self._editor is not None else None
        if callable(style):
            style = style()
        return str(style or self._settings.get("cursor_style") or "line")

    # ---------- update pass ----------

    def _run_update(self) -> None:
        editor = self._editor
        if editor is None or not _is_qobject_valid(editor):
            return
        if not self._settings.get("enabled", True):
            self._mask_controller.clear()
            return
        document = editor.document_snapshot()
        if document is None:
            return

        self._ensure_tokenized(document)
        cursor_style = self.cursor_style()
        applied = 0
        with self._mask_controller.update_pass():
            for rule in self._settings.get("masks", []):
                selector = rule.get("selector", rule.get("language"))
                if not selector_matches(selector, document.language_id, document.file_path):
                    continue
                patterns = rule.get("patterns")
                if not isinstance(patterns, list):
                    continue
                for entry in patterns:
                    try:
                        pattern = pattern_from_settings(entry)
                        mask = mask_from_settings(entry)
                    except MaskConfigError as exc:
                        source = entry.get("pattern") if isinstance(entry, dict) else entry
                        _LOG.warning("Skipping mask pattern %r: %s", source, exc)
                        continue
                    self._mask_controller.apply(pattern, mask, cursor_style=cursor_style)
                    applied += 1

        _LOG.debug("Mask pass applied %d pattern(s) to %s", applied, document.file_path or "<untitled>")
        self.masksApplied.emit(applied)

    def _ensure_tokenized(self, document: TextDocument) -> None:
        key = (int(document.revision), id(self._scoped_document.grammar))
        self._scoped_document.set_document(document)
        if not self._tokens_stale and key == self._tokenized_key:
            return
        self._scoped_document.tokenize()
        self._tokens_stale = False
        self._tokenized_key = (int(document.revision), id(self._scoped_document.grammar))

    # ---------- grammar loading ----------

    def _request_grammar(self) -> None:
        self._grammar_token += 1
        token = self._grammar_token
        editor = self._editor
        document = editor.document_snapshot() if editor is not None and _is_qobject_valid(editor) else None
        scope_name = self._registry.scope_name_for_language(document.language_id) if document is not None else None
        self._language_scope_name = scope_name or ""
        if not scope_name:
            self._set_grammar(None, "")
            return

        future = self._registry.load_grammar_async(scope_name)
        self._grammar_pending[future] = (token, scope_name)
        if not self._grammar_pump.isActive():
            self._grammar_pump.start()

    def _drain_grammar_tasks(self) -> None:
        if not self._grammar_pending:
            self._grammar_pump.stop()
            return

        done: list[concurrent.futures.Future] = []
        for future, payload in list(self._grammar_pending.items()):
            if not future.done():
                continue
            done.append(future)
            token, scope_name = payload
            try:
                result = future.result()
                error = None
            except Exception as exc:
                result = None
                error = exc
            self._handle_grammar_result(token, scope_name, result, error)

        for future in done:
            self._grammar_pending.pop(future, None)

        if not self._grammar_pending:
            self._grammar_pump.stop()

    def _handle_grammar_result(
        self, token: int, scope_name: str, grammar: Grammar | None, error: Exception | None
    ) -> None:
        if token != self._grammar_token:
            return
        if error is not None:
            _LOG.warning("Could not load grammar %s: %s", scope_name, error)
            self._set_grammar(None, "")
        elif grammar is None:
            _LOG.info("No grammar contributes scope %s", scope_name)
            self._set_grammar(None, "")
        else:
            self._set_grammar(grammar, scope_name)
        self.schedule_update()

    def _set_grammar(self, grammar: Grammar | None, scope_name: str) -> None:
        if grammar is None:
            self._scoped_document.clear_grammar()
        else:
            self._scoped_document.set_grammar(grammar)
        self._tokens_stale = True
        self.grammarChanged.emit(scope_name)

    # ---------- editor wiring ----------

    def _editor_signal_slots(self):
        return (
            ("selectionChanged", self.on_selection_changed),
            ("cursorPositionChanged", self.on_selection_changed),
            ("extraCursorsChanged", self.on_selection_changed),
            ("textChanged", self.on_text_changed),
            ("documentSaved", self.on_document_saved),
            ("languageChanged", self.on_language_changed),
        )

    def _connect_editor_signals(self, editor: MaskEditor) -> None:
        for name, slot in self._editor_signal_slots():
            signal = getattr(editor, name, None)
            if signal is not None and hasattr(signal, "connect"):
                signal.connect(slot)

    def _disconnect_editor_signals(self, editor: MaskEditor) -> None:
        for name, slot in self._editor_signal_slots():
            signal = getattr(editor, name, None)
            if signal is None or not hasattr(signal, "disconnect"):
                continue
            try:
                signal.disconnect(slot)
            except (RuntimeError, TypeError):
                pass
