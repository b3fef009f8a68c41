"""Markdown compiler with attribute lists, relaxed tables and table reconciliation."""

from .renderer import render_markdown

__all__ = ["render_markdown"]
__version__ = "0.1.0"
