from .grammar_registry import BUILTIN_GRAMMARS_DIR, GrammarContribution, GrammarLoadError, GrammarRegistry
from .language_id import language_id_for_path, selector_matches

__all__ = [
    "BUILTIN_GRAMMARS_DIR",
    "GrammarContribution",
    "GrammarLoadError",
    "GrammarRegistry",
    "language_id_for_path",
    "selector_matches",
]
