"""Tabbed terminal panel: many shell sessions behind one UI panel."""

__version__ = "0.1.0"
