from .decorations import DecorationCache, DecorationHost, DecorationRange, DecorationSpec
from .document import TextDocument, normalize_selection
from .grammar import Grammar, GrammarError, LineTokens, RegexGrammar, StateStack, Token, parse_raw_grammar
from .mask_controller import (
    CURSOR_STYLES,
    KEY_SEPARATOR,
    CursorStyle,
    MaskController,
    MaskEditor,
    derived_key,
    reveals_early,
)
from .masks import (
    KeyedReplace,
    LiteralReplace,
    Mask,
    MaskConfigError,
    MaskStyle,
    MatchOverride,
    Pattern,
    mask_from_settings,
    pattern_from_settings,
)
from .tokenizer import ScopedDocument, scope_within, token_at, token_within

__all__ = [
    "CURSOR_STYLES",
    "KEY_SEPARATOR",
    "CursorStyle",
    "DecorationCache",
    "DecorationHost",
    "DecorationRange",
    "DecorationSpec",
    "Grammar",
    "GrammarError",
    "KeyedReplace",
    "LineTokens",
    "LiteralReplace",
    "Mask",
    "MaskConfigError",
    "MaskController",
    "MaskEditor",
    "MaskStyle",
    "MatchOverride",
    "Pattern",
    "RegexGrammar",
    "ScopedDocument",
    "StateStack",
    "TextDocument",
    "Token",
    "derived_key",
    "mask_from_settings",
    "normalize_selection",
    "parse_raw_grammar",
    "pattern_from_settings",
    "reveals_early",
    "scope_within",
    "token_at",
    "token_within",
]
