from __future__ import annotations

from copy import deepcopy
from typing import Literal, TypedDict, Union, get_args

CursorStyleSetting = Literal["line", "line-thin", "block", "block-outline", "underline", "underline-thin"]


class MaskStyleSettings(TypedDict, total=False):
    backgroundColor: str
    border: str
    borderColor: str
    color: str
    fontStyle: str
    fontWeight: str
    css: str


class MatchReplaceSettings(MaskStyleSettings, total=False):
    scope: str
    text: str
    hover: str


class MaskPatternSettings(TypedDict, total=False):
    pattern: str
    ignoreCase: bool
    replace: Union[str, dict[str, MatchReplaceSettings]]
    scope: str
    hover: str
    style: MaskStyleSettings


class MaskRuleSettings(TypedDict, total=False):
    selector: Union[str, list[str]]
    language: Union[str, list[str]]  # Legacy alias of selector.
    patterns: list[MaskPatternSettings]


class SymbolMasksSettings(TypedDict, total=False):
    enabled: bool
    debounce_ms: int
    cursor_style: CursorStyleSetting
    masks: list[MaskRuleSettings]


class AppSettings(TypedDict, total=False):
    symbol_masks: SymbolMasksSettings


DEBOUNCE_MS_DEFAULT = 50
DEBOUNCE_MS_MIN = 10
DEBOUNCE_MS_MAX = 2000


def default_symbol_masks_settings() -> SymbolMasksSettings:
    defaults: SymbolMasksSettings = {
        "enabled": True,
        "debounce_ms": DEBOUNCE_MS_DEFAULT,
        "cursor_style": "line",
        "masks": [
            {
                "selector": ["javascript", "typescript"],
                "patterns": [
                    {
                        "pattern": r"(?<=[\s])===(?=[\s])",
                        "replace": "≡",
                        "scope": "keyword.operator",
                        "style": {"fontWeight": "bold"},
                    },
                    {
                        "pattern": r"=>",
                        "replace": "⇒",
                        "scope": "storage.type.function.arrow",
                    },
                ],
            },
            {
                "selector": "python",
                "patterns": [
                    {
                        "pattern": r"!=|<=|>=|->|\blambda\b",
                        "replace": {
                            "!=": {"text": "≠", "scope": "keyword.operator.comparison"},
                            "<=": {"text": "≤", "scope": "keyword.operator.comparison"},
                            ">=": {"text": "≥", "scope": "keyword.operator.comparison"},
                            "->": {"text": "→", "scope": "punctuation.separator.annotation.result"},
                            "lambda": {"text": "λ", "scope": "storage.type.function.lambda", "hover": "lambda"},
                        },
                    },
                ],
            },
        ],
    }
    return deepcopy(defaults)


def default_app_settings() -> AppSettings:
    return {"symbol_masks": default_symbol_masks_settings()}


def normalize_symbol_masks_settings(raw: object) -> SymbolMasksSettings:
    """Merge ``raw`` over the defaults and clamp out-of-range values."""
    cfg = default_symbol_masks_settings()
    if isinstance(raw, dict):
        for key, value in raw.items():
            cfg[key] = deepcopy(value)

    cfg["enabled"] = bool(cfg.get("enabled", True))
    try:
        debounce_ms = int(cfg.get("debounce_ms", DEBOUNCE_MS_DEFAULT))
    except (TypeError, ValueError):
        debounce_ms = DEBOUNCE_MS_DEFAULT
    cfg["debounce_ms"] = max(DEBOUNCE_MS_MIN, min(DEBOUNCE_MS_MAX, debounce_ms))

    cursor_style = str(cfg.get("cursor_style") or "line").strip().lower()
    if cursor_style not in get_args(CursorStyleSetting):
        cursor_style = "line"
    cfg["cursor_style"] = cursor_style

    masks = cfg.get("masks")
    cfg["masks"] = [rule for rule in masks if isinstance(rule, dict)] if isinstance(masks, list) else []
    return cfg
