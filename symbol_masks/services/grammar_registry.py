"""Grammar discovery and loading.

A registry owns a list of grammar contributions (language id, scope name,
grammar file) and turns scope names into compiled grammars. Each update
controller gets its own registry; nothing here is module-global.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from symbol_masks.core.grammar import GrammarError, RegexGrammar, parse_raw_grammar

_LOG = logging.getLogger(__name__)

BUILTIN_GRAMMARS_DIR = Path(__file__).resolve().parent.parent / "grammars"
MANIFEST_FILENAME = "contributions.json"


class GrammarLoadError(RuntimeError):
    """Raised when a contributed grammar file cannot be read or compiled."""


@dataclass(frozen=True, slots=True)
class GrammarContribution:
    scope_name: str
    path: Path
    language: str | None = None


class GrammarRegistry:
    def __init__(self, contributions: Iterable[GrammarContribution] = ()) -> None:
        self._contributions: list[GrammarContribution] = list(contributions)
        self._grammars: dict[str, RegexGrammar] = {}
        self._lock = threading.Lock()
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None

    @classmethod
    def builtin(cls) -> "GrammarRegistry":
        return cls.from_manifest(BUILTIN_GRAMMARS_DIR / MANIFEST_FILENAME)

    @classmethod
    def from_manifest(cls, manifest_path: Path | str) -> "GrammarRegistry":
        """Read a ``{"grammars": [{language, scopeName, path}]}`` manifest.

        Relative grammar paths resolve against the manifest's directory.
        """
        manifest = Path(manifest_path)
        try:
            raw = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise GrammarLoadError(f"Could not read grammar manifest '{manifest}': {exc}") from exc

        entries = raw.get("grammars") if isinstance(raw, dict) else None
        contributions: list[GrammarContribution] = []
        for entry in entries if isinstance(entries, list) else []:
            if not isinstance(entry, dict):
                continue
            scope_name = str(entry.get("scopeName") or "").strip()
            rel_path = str(entry.get("path") or "").strip()
            if not scope_name or not rel_path:
                continue
            language = str(entry.get("language") or "").strip().lower() or None
            contributions.append(
                GrammarContribution(scope_name=scope_name, path=(manifest.parent / rel_path).resolve(), language=language)
            )
        return cls(contributions)

    @property
    def contributions(self) -> list[GrammarContribution]:
        return list(self._contributions)

    def register(self, contribution: GrammarContribution) -> None:
        with self._lock:
            self._contributions.append(contribution)
            self._grammars.pop(contribution.scope_name, None)

    def scope_name_for_language(self, language_id: str | None) -> str | None:
        language = str(language_id or "").strip().lower()
        if not language:
            return None
        for contribution in self._contributions:
            if contribution.language == language:
                return contribution.scope_name
        return None

    def load_grammar(self, scope_name: str | None) -> RegexGrammar | None:
        if not scope_name:
            return None
        with self._lock:
            cached = self._grammars.get(scope_name)
            if cached is not None:
                return cached
            contribution = next((c for c in self._contributions if c.scope_name == scope_name), None)
        if contribution is None:
            return None

        try:
            text = contribution.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise GrammarLoadError(f"Could not read grammar '{contribution.path}': {exc}") from exc
        try:
            grammar = parse_raw_grammar(text, source=str(contribution.path))
        except GrammarError as exc:
            raise GrammarLoadError(str(exc)) from exc

        with self._lock:
            self._grammars[scope_name] = grammar
        _LOG.debug("Loaded grammar %s from %s", scope_name, contribution.path)
        return grammar

    def load_grammar_async(self, scope_name: str | None) -> concurrent.futures.Future:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="symbol-masks-grammar")
        return self._executor.submit(self.load_grammar, scope_name)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
