"""Pattern and mask models built from the ``symbol_masks.masks`` settings."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Union

# settings key -> MaskStyle attribute
_STYLE_KEYS = {
    "backgroundColor": "background_color",
    "border": "border",
    "borderColor": "border_color",
    "color": "color",
    "fontStyle": "font_style",
    "fontWeight": "font_weight",
    "css": "css",
}


class MaskConfigError(ValueError):
    """Raised when a pattern entry cannot be turned into a Pattern/Mask pair."""


@dataclass(frozen=True, slots=True)
class MaskStyle:
    background_color: str | None = None
    border: str | None = None
    border_color: str | None = None
    color: str | None = None
    font_style: str | None = None
    font_weight: str | None = None
    css: str | None = None

    @classmethod
    def from_settings(cls, raw: Mapping[str, Any] | None) -> "MaskStyle":
        if not isinstance(raw, Mapping):
            return cls()
        values: dict[str, str | None] = {}
        for key, attr in _STYLE_KEYS.items():
            value = raw.get(key)
            values[attr] = str(value) if value not in (None, "") else None
        return cls(**values)


@dataclass(frozen=True, slots=True)
class MatchOverride:
    """Per-literal replacement inside a keyed map."""

    text: str
    scope: str | None = None
    hover: str | None = None
    style: MaskStyle = field(default_factory=MaskStyle)


@dataclass(frozen=True, slots=True)
class LiteralReplace:
    """Same replacement text (or none) for every match."""

    text: str | None = None


@dataclass(frozen=True, slots=True)
class KeyedReplace:
    """Replacement chosen by the exact matched text."""

    overrides: Mapping[str, MatchOverride]

    def __post_init__(self) -> None:
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    def lookup(self, matched_text: str) -> MatchOverride | None:
        return self.overrides.get(matched_text)


Replacement = Union[LiteralReplace, KeyedReplace]


@dataclass(frozen=True, slots=True)
class Mask:
    replace: Replacement = field(default_factory=LiteralReplace)
    scope: str | None = None
    hover: str | None = None
    style: MaskStyle = field(default_factory=MaskStyle)

    @property
    def is_keyed(self) -> bool:
        return isinstance(self.replace, KeyedReplace)

    @property
    def literal_text(self) -> str | None:
        if isinstance(self.replace, LiteralReplace):
            return self.replace.text
        return None


@dataclass(frozen=True, slots=True)
class Pattern:
    source: str
    ignore_case: bool = False
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.source, str) or not self.source:
            raise MaskConfigError("pattern must be a non-empty string")
        flags = re.IGNORECASE if self.ignore_case else 0
        try:
            regex = re.compile(self.source, flags)
        except re.error as exc:
            raise MaskConfigError(f"invalid pattern {self.source!r}: {exc}") from exc
        object.__setattr__(self, "_regex", regex)

    @property
    def regex(self) -> re.Pattern[str]:
        return self._regex

    @property
    def key(self) -> str:
        return self.source


def _optional_text(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MaskConfigError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def pattern_from_settings(entry: Mapping[str, Any]) -> Pattern:
    if not isinstance(entry, Mapping):
        raise MaskConfigError("pattern entries must be objects")
    ignore_case = entry.get("ignoreCase", False)
    if not isinstance(ignore_case, bool):
        raise MaskConfigError(f"'ignoreCase' must be a boolean, got {type(ignore_case).__name__}")
    return Pattern(entry.get("pattern"), ignore_case=ignore_case)


def _override_from_settings(literal: str, raw: Any) -> MatchOverride:
    if isinstance(raw, str):
        return MatchOverride(text=raw)
    if not isinstance(raw, Mapping):
        raise MaskConfigError(f"replacement for {literal!r} must be an object")
    text = raw.get("text", raw.get("value"))
    if not isinstance(text, str):
        raise MaskConfigError(f"replacement for {literal!r} needs a 'text' string")
    return MatchOverride(
        text=text,
        scope=_optional_text(raw, "scope"),
        hover=_optional_text(raw, "hover"),
        style=MaskStyle.from_settings(raw),
    )


def mask_from_settings(entry: Mapping[str, Any]) -> Mask:
    if not isinstance(entry, Mapping):
        raise MaskConfigError("pattern entries must be objects")
    raw_replace = entry.get("replace")
    if raw_replace is None or isinstance(raw_replace, str):
        replace: Replacement = LiteralReplace(raw_replace or None)
    elif isinstance(raw_replace, Mapping):
        replace = KeyedReplace(
            {str(literal): _override_from_settings(str(literal), raw) for literal, raw in raw_replace.items()}
        )
    else:
        raise MaskConfigError("'replace' must be a string or an object")

    return Mask(
        replace=replace,
        scope=_optional_text(entry, "scope"),
        hover=_optional_text(entry, "hover"),
        style=MaskStyle.from_settings(entry.get("style")),
    )
