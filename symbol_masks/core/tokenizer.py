"""Scope-aware wrapper around a document and its grammar."""

from __future__ import annotations

import logging
from typing import Iterable

from symbol_masks.core.document import TextDocument
from symbol_masks.core.grammar import Grammar, GrammarError, StateStack, Token

_LOG = logging.getLogger(__name__)


def scope_within(scope: str, scope_filter: str) -> bool:
    """True when ``scope`` equals ``scope_filter`` or is a dotted child of it."""
    if not scope_filter or not scope.startswith(scope_filter):
        return False
    remainder = scope[len(scope_filter):]
    return not remainder or remainder.startswith(".")


def token_within(token: Token, scope_filter: str) -> bool:
    return any(scope_within(scope, scope_filter) for scope in token.scopes)


def token_at(tokens: Iterable[Token], character: int) -> Token | None:
    for token in tokens:
        if token.start <= character < token.end:
            return token
    return None


class ScopedDocument:
    """Tracks the grammar state at the end of every line of a document.

    ``tokenize()`` always rebuilds the whole state map from line 0. Call it
    after the document or the grammar changed and before any scope lookup
    that depends on fresh data.
    """

    def __init__(self, document: TextDocument | None = None, grammar: Grammar | None = None):
        self._document = document
        self._grammar = grammar
        self._grammar_state: dict[int, StateStack | None] = {}
        self.tokenize()

    @property
    def document(self) -> TextDocument | None:
        return self._document

    @property
    def grammar(self) -> Grammar | None:
        return self._grammar

    def has_grammar(self) -> bool:
        return self._grammar is not None

    def set_document(self, document: TextDocument | None) -> None:
        self._document = document

    def set_grammar(self, grammar: Grammar | None) -> None:
        grammar = grammar or None
        if grammar is not self._grammar:
            # End states are only meaningful to the grammar that produced them.
            self._grammar_state.clear()
        self._grammar = grammar

    def clear_grammar(self) -> None:
        self._grammar_state.clear()
        self._grammar = None

    def get_tokens(self, line_number: int) -> tuple[Token, ...] | None:
        """Tokenize one line against its predecessor's cached end state.

        Make sure the document was tokenized before calling this. The state
        map is left untouched.
        """
        if self._grammar is None:
            return None
        text = self._document.line_text(line_number) if self._document is not None else ""
        previous = self._grammar_state.get(line_number - 1)
        try:
            return self._grammar.tokenize_line(text, previous).tokens
        except GrammarError:
            _LOG.warning("Grammar failed on line %d; no scope data", line_number, exc_info=True)
            return None

    def tokenize(self) -> None:
        self._grammar_state.clear()
        if self._document is None or self._grammar is None:
            return

        try:
            previous: StateStack | None = None
            for line_number in range(self._document.line_count):
                result = self._grammar.tokenize_line(self._document.line_text(line_number), previous)
                self._grammar_state[line_number] = result.rule_stack
                previous = result.rule_stack
        except GrammarError:
            _LOG.exception("Grammar %r cannot tokenize the document; dropping it",
                           getattr(self._grammar, "scope_name", self._grammar))
            self.clear_grammar()

    def end_state(self, line_number: int) -> StateStack | None:
        return self._grammar_state.get(line_number)
