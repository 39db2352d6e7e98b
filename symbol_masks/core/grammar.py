"""Line tokenizer driven by TextMate-style JSON grammars.

Only the subset of the TextMate grammar format needed for scope lookups is
supported:

- ``match`` rules with ``name`` and ``captures``
- ``begin``/``end`` rules with ``name``, ``contentName``, ``beginCaptures``,
  ``endCaptures``, ``captures`` and nested ``patterns``
- ``include`` of ``#repository-key``, ``$self`` and ``$base``
- plain ``patterns`` groups

Every line is tokenized against the state left by the previous line, so a
block that opens on one line keeps its scopes on the following lines until
its ``end`` pattern matches.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

_BACKREF_PATTERN = re.compile(r"\\(\d+)")


class GrammarError(ValueError):
    """Raised when a grammar definition is invalid or cannot tokenize a line."""


@dataclass(frozen=True, slots=True)
class Token:
    """Half-open span ``[start, end)`` of one line and its scopes, outermost first."""

    start: int
    end: int
    scopes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class _Frame:
    rule_id: int
    scopes: tuple[str, ...]
    content_scopes: tuple[str, ...]
    end_source: str | None = None


@dataclass(frozen=True, slots=True)
class StateStack:
    """End-of-line tokenizer state. Immutable; equal stacks compare equal."""

    frames: tuple[_Frame, ...]

    @property
    def depth(self) -> int:
        return len(self.frames)

    @property
    def top(self) -> _Frame:
        return self.frames[-1]

    @property
    def scopes(self) -> tuple[str, ...]:
        return self.top.content_scopes

    def push(self, frame: _Frame) -> "StateStack":
        return StateStack(self.frames + (frame,))

    def pop(self) -> "StateStack":
        if len(self.frames) <= 1:
            return self
        return StateStack(self.frames[:-1])


@dataclass(frozen=True, slots=True)
class LineTokens:
    tokens: tuple[Token, ...]
    rule_stack: StateStack


class Grammar(Protocol):
    scope_name: str

    def tokenize_line(self, text: str, previous_state: StateStack | None = None) -> LineTokens:
        ...


@dataclass(slots=True)
class _Rule:
    id: int
    name: str | None = None
    content_name: str | None = None
    match: re.Pattern[str] | None = None
    begin: re.Pattern[str] | None = None
    end_source: str | None = None
    captures: dict[int, str] = field(default_factory=dict)
    begin_captures: dict[int, str] = field(default_factory=dict)
    end_captures: dict[int, str] = field(default_factory=dict)
    patterns: list[int] = field(default_factory=list)


class _GrammarCompiler:
    def __init__(self, raw: Mapping[str, Any], source: str) -> None:
        self.raw = raw
        self.source = source
        self.rules: list[_Rule] = []
        self._repository = raw.get("repository") or {}
        if not isinstance(self._repository, Mapping):
            raise GrammarError(f"{source}: 'repository' must be an object")
        self._repository_ids: dict[str, int] = {}
        self._resolving: set[str] = set()

    def compile(self) -> list[_Rule]:
        root = _Rule(id=0)
        self.rules.append(root)
        root.patterns = self._compile_patterns(self.raw.get("patterns"))
        return self.rules

    def _compile_regex(self, source: Any, what: str) -> re.Pattern[str]:
        if not isinstance(source, str):
            raise GrammarError(f"{self.source}: '{what}' must be a string")
        try:
            return re.compile(source)
        except re.error as exc:
            raise GrammarError(f"{self.source}: invalid {what} pattern {source!r}: {exc}") from exc

    def _compile_captures(self, raw: Any) -> dict[int, str]:
        out: dict[int, str] = {}
        if not isinstance(raw, Mapping):
            return out
        for key, value in raw.items():
            try:
                group = int(key)
            except (TypeError, ValueError):
                continue
            if isinstance(value, Mapping) and isinstance(value.get("name"), str):
                out[group] = value["name"]
        return out

    def _compile_patterns(self, raw: Any) -> list[int]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise GrammarError(f"{self.source}: 'patterns' must be a list")
        ids: list[int] = []
        for item in raw:
            rule_id = self._compile_rule(item)
            if rule_id is not None:
                ids.append(rule_id)
        return ids

    def _compile_rule(self, raw: Any, repository_key: str | None = None) -> int | None:
        if not isinstance(raw, Mapping):
            raise GrammarError(f"{self.source}: grammar rules must be objects")
        if "include" in raw:
            return self._resolve_include(raw["include"])

        rule = _Rule(id=len(self.rules))
        self.rules.append(rule)
        if repository_key is not None:
            # Registered before the children so that recursive includes resolve.
            self._repository_ids[repository_key] = rule.id

        name = raw.get("name")
        rule.name = name if isinstance(name, str) and name else None
        content_name = raw.get("contentName")
        rule.content_name = content_name if isinstance(content_name, str) and content_name else None
        rule.captures = self._compile_captures(raw.get("captures"))

        if "match" in raw:
            rule.match = self._compile_regex(raw["match"], "match")
        elif "begin" in raw:
            rule.begin = self._compile_regex(raw["begin"], "begin")
            end = raw.get("end")
            if not isinstance(end, str):
                raise GrammarError(f"{self.source}: 'begin' rule without an 'end' pattern")
            # Back-references are resolved against the begin match at tokenize time.
            self._compile_regex(_BACKREF_PATTERN.sub("x", end), "end")
            rule.end_source = end
            rule.begin_captures = self._compile_captures(raw.get("beginCaptures"))
            rule.end_captures = self._compile_captures(raw.get("endCaptures"))

        rule.patterns = self._compile_patterns(raw.get("patterns"))
        return rule.id

    def _resolve_include(self, reference: Any) -> int | None:
        if not isinstance(reference, str) or not reference:
            raise GrammarError(f"{self.source}: 'include' must be a non-empty string")
        if reference in ("$self", "$base"):
            return 0
        if not reference.startswith("#"):
            # Other grammars are not composed; their rules are left out.
            return None
        key = reference[1:]
        if key in self._repository_ids:
            return self._repository_ids[key]
        if key not in self._repository:
            raise GrammarError(f"{self.source}: unknown repository include {reference!r}")
        if key in self._resolving:
            raise GrammarError(f"{self.source}: circular include {reference!r}")
        self._resolving.add(key)
        try:
            rule_id = self._compile_rule(self._repository[key], repository_key=key)
        finally:
            self._resolving.discard(key)
        if rule_id is not None:
            self._repository_ids[key] = rule_id
        return rule_id


class RegexGrammar:
    """Compiled grammar able to tokenize one line at a time."""

    def __init__(self, raw: Mapping[str, Any], *, source: str = "<grammar>") -> None:
        scope_name = raw.get("scopeName")
        if not isinstance(scope_name, str) or not scope_name.strip():
            raise GrammarError(f"{source}: grammar has no 'scopeName'")
        self.scope_name = scope_name.strip()
        self.name = str(raw.get("name") or self.scope_name)
        self.source = source
        self._rules = _GrammarCompiler(raw, source).compile()
        self._candidates: dict[int, tuple[_Rule, ...]] = {}
        self._end_regex_cache: dict[str, re.Pattern[str]] = {}
        root_scopes = (self.scope_name,)
        self._initial_state = StateStack((_Frame(0, root_scopes, root_scopes),))

    def __repr__(self) -> str:
        return f"RegexGrammar({self.scope_name!r})"

    @property
    def initial_state(self) -> StateStack:
        return self._initial_state

    def tokenize_line(self, text: str, previous_state: StateStack | None = None) -> LineTokens:
        stack = previous_state if previous_state is not None else self._initial_state
        if not isinstance(stack, StateStack) or not self._owns(stack):
            raise GrammarError(f"{self.source}: unexpected continuation state {stack!r}")

        tokens: list[Token] = []
        length = len(text)
        pos = 0
        empty_seen: set[tuple[int, str, int]] = set()

        while True:
            found = self._next_match(text, pos, stack)
            if found is None:
                break
            kind, rule, m = found
            start, end = m.span()

            if start == end:
                marker = (start, kind, rule.id)
                if marker in empty_seen:
                    # An empty match that cannot advance: take one character as content.
                    if start >= length:
                        break
                    self._emit(tokens, pos, start + 1, stack.scopes)
                    pos = start + 1
                    continue
                empty_seen.add(marker)

            self._emit(tokens, pos, start, stack.scopes)
            frame = stack.top

            if kind == "end":
                self._emit_match(tokens, m, frame.scopes, rule.end_captures or rule.captures)
                stack = stack.pop()
            elif rule.begin is not None:
                scopes = frame.content_scopes + ((rule.name,) if rule.name else ())
                self._emit_match(tokens, m, scopes, rule.begin_captures or rule.captures)
                content = scopes + ((rule.content_name,) if rule.content_name else ())
                stack = stack.push(_Frame(rule.id, scopes, content, self._resolve_end(rule, m)))
            else:
                scopes = frame.content_scopes + ((rule.name,) if rule.name else ())
                self._emit_match(tokens, m, scopes, rule.captures)
            pos = end

        self._emit(tokens, pos, length, stack.scopes)
        if not tokens:
            tokens.append(Token(0, length, stack.scopes))
        return LineTokens(tuple(tokens), stack)

    # ---------- helpers ----------

    def _owns(self, stack: StateStack) -> bool:
        """True when ``stack`` was produced by this grammar."""
        if not stack.frames or stack.frames[0] != self._initial_state.top:
            return False
        return all(0 <= frame.rule_id < len(self._rules) for frame in stack.frames)

    def _next_match(self, text: str, pos: int, stack: StateStack):
        frame = stack.top
        rule = self._rules[frame.rule_id]
        best = None
        if frame.end_source is not None:
            m = self._end_regex(frame.end_source).search(text, pos)
            if m is not None:
                best = ("end", rule, m)
                if m.start() == pos:
                    return best

        for candidate in self._candidates_for(frame.rule_id):
            regex = candidate.match if candidate.match is not None else candidate.begin
            m = regex.search(text, pos)
            if m is None:
                continue
            if best is None or m.start() < best[2].start():
                best = ("rule", candidate, m)
                if m.start() == pos:
                    break
        return best

    def _candidates_for(self, rule_id: int) -> tuple[_Rule, ...]:
        cached = self._candidates.get(rule_id)
        if cached is not None:
            return cached
        out: list[_Rule] = []
        visited: set[int] = set()

        def walk(ids: list[int]) -> None:
            for child_id in ids:
                child = self._rules[child_id]
                if child.match is not None or child.begin is not None:
                    out.append(child)
                    continue
                if child_id in visited:
                    continue
                visited.add(child_id)
                walk(child.patterns)

        visited.add(rule_id)
        walk(self._rules[rule_id].patterns)
        result = tuple(out)
        self._candidates[rule_id] = result
        return result

    def _resolve_end(self, rule: _Rule, begin_match: re.Match[str]) -> str:
        end = rule.end_source or ""

        def replace(ref: re.Match[str]) -> str:
            index = int(ref.group(1))
            try:
                value = begin_match.group(index)
            except IndexError:
                value = None
            return re.escape(value or "")

        return _BACKREF_PATTERN.sub(replace, end)

    def _end_regex(self, source: str) -> re.Pattern[str]:
        regex = self._end_regex_cache.get(source)
        if regex is None:
            try:
                regex = re.compile(source)
            except re.error as exc:
                raise GrammarError(f"{self.source}: invalid end pattern {source!r}: {exc}") from exc
            self._end_regex_cache[source] = regex
        return regex

    @staticmethod
    def _emit(tokens: list[Token], start: int, end: int, scopes: tuple[str, ...]) -> None:
        if end > start:
            tokens.append(Token(start, end, scopes))

    def _emit_match(
        self,
        tokens: list[Token],
        m: re.Match[str],
        scopes: tuple[str, ...],
        captures: Mapping[int, str],
    ) -> None:
        start, end = m.span()
        if captures.get(0):
            scopes = scopes + (captures[0],)
        spans: list[tuple[int, int, str]] = []
        for group, name in captures.items():
            if group == 0 or group > (m.re.groups or 0):
                continue
            g_start, g_end = m.span(group)
            if g_start < 0 or g_end <= g_start:
                continue
            spans.append((g_start, g_end, name))
        spans.sort()

        cursor = start
        for g_start, g_end, name in spans:
            if g_start < cursor:
                continue
            self._emit(tokens, cursor, g_start, scopes)
            self._emit(tokens, g_start, g_end, scopes + (name,))
            cursor = g_end
        self._emit(tokens, cursor, end, scopes)


def parse_raw_grammar(raw: Mapping[str, Any] | str, *, source: str = "<grammar>") -> RegexGrammar:
    """Build a grammar from a mapping or from JSON text."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GrammarError(f"{source}: invalid grammar JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise GrammarError(f"{source}: grammar root must be a JSON object")
    return RegexGrammar(raw, source=source)
