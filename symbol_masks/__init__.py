"""Visually replace source symbols with alternate glyphs without editing the text."""

__version__ = "0.1.0"
