"""Decide which pattern matches get masked and push them to the editor."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Literal, Protocol, Sequence

from symbol_masks.core.decorations import DecorationCache, DecorationHost, DecorationRange, DecorationSpec
from symbol_masks.core.document import TextDocument, normalize_selection
from symbol_masks.core.masks import Mask, MatchOverride, Pattern
from symbol_masks.core.tokenizer import ScopedDocument, token_at, token_within

_LOG = logging.getLogger(__name__)

KEY_SEPARATOR = "@@@"

CursorStyle = Literal["line", "line-thin", "block", "block-outline", "underline", "underline-thin"]
CURSOR_STYLES: tuple[str, ...] = ("line", "line-thin", "block", "block-outline", "underline", "underline-thin")


class MaskEditor(DecorationHost, Protocol):
    def document_snapshot(self) -> TextDocument | None:
        ...

    def selection_offsets(self) -> Sequence[tuple[int, int]]:
        ...


def reveals_early(cursor_style: str) -> bool:
    """Block and underline carets are drawn one character left of the caret offset."""
    return not str(cursor_style or "").startswith("line")


def derived_key(base_key: str, literal: str) -> str:
    return f"{base_key}{KEY_SEPARATOR}{literal}"


def base_spec(mask: Mask) -> DecorationSpec:
    text = mask.literal_text
    return DecorationSpec(text=text, hide_source=bool(text), style=mask.style)


def override_spec(override: MatchOverride) -> DecorationSpec:
    return DecorationSpec(text=override.text, hide_source=bool(override.text), style=override.style)


class MaskController:
    """Applies one pattern/mask pair at a time to the active editor.

    Each ``apply`` evicts cached decorations that belong to other patterns.
    Wrap the calls of one update in ``update_pass()`` so that every pattern
    applied in that pass keeps its decorations.
    """

    def __init__(self, editor: MaskEditor | None = None, scoped_document: ScopedDocument | None = None):
        self._editor = editor
        self._scoped_document = scoped_document
        self._cache = DecorationCache(editor)
        self._pass_keys: set[str] | None = None

    @property
    def cache(self) -> DecorationCache:
        return self._cache

    def get_editor(self) -> MaskEditor | None:
        return self._editor

    def set_editor(self, editor: MaskEditor | None) -> None:
        self._cache.set_host(editor)
        self._editor = editor

    def set_scoped_document(self, scoped_document: ScopedDocument | None) -> None:
        self._scoped_document = scoped_document

    def clear(self) -> None:
        """Remove every mask from the editor."""
        self._cache.clear()

    @contextmanager
    def update_pass(self) -> Iterator["MaskController"]:
        outer = self._pass_keys
        self._pass_keys = set()
        try:
            yield self
            if self._editor is not None:
                self._cache.evict_all_except(self._pass_keys)
        finally:
            self._pass_keys = outer

    def apply(self, pattern: Pattern, mask: Mask, *, cursor_style: str = "line") -> int:
        """Decorate every match of ``pattern`` with ``mask``; return the number of ranges."""
        editor = self._editor
        if editor is None:
            return 0
        document = editor.document_snapshot()
        if document is None:
            return 0

        base_key = pattern.key
        self._cache.get_or_create(base_key, base_spec(mask))

        selections = [normalize_selection(anchor, active) for anchor, active in editor.selection_offsets()]
        early = reveals_early(cursor_style)
        keyed = mask.replace if mask.is_keyed else None

        ranges_by_key: dict[str, list[DecorationRange]] = {base_key: []}
        derived_keys: list[str] = []
        line_tokens: dict[int, tuple | None] = {}
        decorated = 0

        for match in pattern.regex.finditer(document.text):
            start, end = match.span()
            if start == end:
                break

            override = keyed.lookup(match.group(0)) if keyed is not None else None

            if self._revealed(start, end, selections, early):
                continue

            scope_filter = (override.scope if override is not None else None) or mask.scope
            if scope_filter and not self._in_scope(document, start, scope_filter, line_tokens):
                continue

            if override is not None:
                key = derived_key(base_key, match.group(0))
                hover = override.hover
                if key not in ranges_by_key:
                    ranges_by_key[key] = []
                    derived_keys.append(key)
                    self._cache.get_or_create(key, override_spec(override))
            else:
                key = base_key
                hover = mask.hover
            ranges_by_key[key].append(DecorationRange(start, end, hover))
            decorated += 1

        for key in derived_keys:
            self._cache.render(key, ranges_by_key[key])
        self._cache.render(base_key, ranges_by_key[base_key])

        keep = {base_key, *derived_keys}
        if self._pass_keys is not None:
            self._pass_keys.update(keep)
            keep = keep | self._pass_keys
        self._cache.evict_all_except(keep)

        _LOG.debug("Pattern %r: %d range(s) under %d key(s)", base_key, decorated, len(keep))
        return decorated

    # ---------- helpers ----------

    @staticmethod
    def _revealed(start: int, end: int, selections: list[tuple[int, int]], early: bool) -> bool:
        threshold = start - 1 if early else start
        for sel_start, sel_end in selections:
            if sel_end >= threshold and sel_start <= end:
                return True
        return False

    def _in_scope(self, document: TextDocument, offset: int, scope_filter: str,
                  cache: dict[int, tuple | None]) -> bool:
        if self._scoped_document is None:
            return False
        line, character = document.position_at(offset)
        if line not in cache:
            cache[line] = self._scoped_document.get_tokens(line)
        tokens = cache[line]
        if not tokens:
            return False
        # Only the token under the first character decides, so a pattern may
        # span several tokens.
        token = token_at(tokens, character)
        return token is not None and token_within(token, scope_filter)
