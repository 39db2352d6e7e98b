"""Reusable PySide widgets that host symbol masks."""

from .masked_code_editor import MaskedCodeEditor

__all__ = ["MaskedCodeEditor"]
