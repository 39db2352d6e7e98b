"""Language-id resolution and document selector matching.

Pure utility functions that map filenames/extensions to a language id and
decide whether a mask rule-set selector applies to a document.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path, PurePosixPath
from typing import Iterable

# Keep ids aligned with the ids grammar contributions declare.
_EXTENSION_LANGUAGE_IDS: dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".pyi": "python",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cc": "cpp",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".json": "json",
    ".html": "html",
    ".css": "css",
    ".sh": "shell",
    ".bash": "shell",
    ".md": "markdown",
}

_FILENAME_LANGUAGE_IDS: dict[str, str] = {
    "makefile": "make",
    ".bashrc": "shell",
    ".zshrc": "shell",
}

_GLOB_CHARS = set("*?[/\\")


def language_id_for_path(file_path: str | None, *, default: str = "plaintext") -> str:
    """Return a normalized language id for a file path."""
    path_text = str(file_path or "").strip()
    if not path_text:
        return str(default or "plaintext").strip().lower() or "plaintext"

    name = Path(path_text).name.lower()
    if name in _FILENAME_LANGUAGE_IDS:
        return _FILENAME_LANGUAGE_IDS[name]

    suffix = Path(path_text).suffix.lower()
    if suffix in _EXTENSION_LANGUAGE_IDS:
        return _EXTENSION_LANGUAGE_IDS[suffix]

    return str(default or "plaintext").strip().lower() or "plaintext"


def _is_glob(selector: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in selector)


def _glob_matches(pattern: str, file_path: str) -> bool:
    path = PurePosixPath(file_path.replace("\\", "/"))
    if fnmatch.fnmatch(str(path), pattern):
        return True
    # "**/*.js" should also match a bare "main.js".
    if pattern.startswith("**/") and fnmatch.fnmatch(path.name, pattern[3:]):
        return True
    return fnmatch.fnmatch(path.name, pattern)


def selector_matches(selector: str | Iterable[str] | None, language_id: str | None, file_path: str | None = None) -> bool:
    """True when a language id, glob, or list of either selects the document."""
    if selector is None:
        return False
    if isinstance(selector, str):
        candidates = [selector]
    else:
        candidates = [item for item in selector if isinstance(item, str)]

    language = str(language_id or "").strip().lower()
    for candidate in candidates:
        text = candidate.strip()
        if not text:
            continue
        if text == "*":
            return True
        if _is_glob(text):
            if file_path and _glob_matches(text, str(file_path)):
                return True
            continue
        if text.lower() == language:
            return True
    return False
