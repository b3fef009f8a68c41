# decomark/engine.py
"""
Thin adapter around markdown-it-py.

Exposes ``parse(text) -> tree`` and ``render(tree) -> html`` where the tree is a
``SyntaxTreeNode``. The renderer writes each node's decoration verbatim into
its opening tag. Table sections, rows and cells are the exception: their
decorations are structural directives from a table extension and are spliced
back by the table reconciliation postprocessor instead.

Cells marked ``data-remove`` produce no output, and a row whose every cell is
marked produces no ``<tr>`` at all.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from markdown_it import MarkdownIt
from markdown_it.renderer import RendererHTML
from markdown_it.token import Token
from markdown_it.tree import SyntaxTreeNode

from .config import get_markdown_config
from .decorations import REMOVE_MARKER, get_decoration, has_marker, render_decoration

logger = logging.getLogger(__name__)

TreeHook = Callable[[SyntaxTreeNode], None]

_TABLE_STRUCTURE = {
    "thead_open",
    "tbody_open",
    "tfoot_open",
    "tr_open",
    "th_open",
    "td_open",
}
_SECTION_PAIRS = {"thead_open": "thead_close", "tbody_open": "tbody_close"}


class DecoratingRenderer(RendererHTML):
    """HTML renderer that appends node decorations to opening tags."""

    def renderAttrs(self, token: Token) -> str:
        result = RendererHTML.renderAttrs(token)
        if token.type in _TABLE_STRUCTURE or token.type == "fence":
            return result
        return result + render_decoration(get_decoration(token))

    def fence(self, tokens, idx, options, env) -> str:
        html = super().fence(tokens, idx, options, env)
        decoration = render_decoration(get_decoration(tokens[idx]))
        if decoration and html.startswith("<pre"):
            html = "<pre" + decoration + html[4:]
        return html


def _matching_close(tokens: Sequence[Token], start: int) -> int:
    depth = 0
    for index in range(start, len(tokens)):
        depth += tokens[index].nesting
        if depth == 0:
            return index
    return len(tokens) - 1


def _cell_ranges(tokens: Sequence[Token], start: int, stop: int) -> List[Tuple[int, int]]:
    ranges = []
    index = start
    while index < stop:
        if tokens[index].nesting == 1:
            close = _matching_close(tokens, index)
            ranges.append((index, close + 1))
            index = close + 1
        else:
            index += 1
    return ranges


def suppress_removed_cells(tokens: Sequence[Token]) -> List[Token]:
    """Drop cells marked ``data-remove`` and rows left without any cell."""
    result: List[Token] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.type != "tr_open":
            result.append(token)
            index += 1
            continue

        close = _matching_close(tokens, index)
        cells = _cell_ranges(tokens, index + 1, close)
        kept = [
            (start, stop)
            for start, stop in cells
            if not has_marker(get_decoration(tokens[start]), REMOVE_MARKER)
        ]
        if cells and not kept:
            index = close + 1
            continue

        result.append(token)
        for start, stop in kept:
            result.extend(tokens[start:stop])
        result.append(tokens[close])
        index = close + 1

    # A section whose rows were all dropped would render as an empty element
    cleaned: List[Token] = []
    for token in result:
        if cleaned and _SECTION_PAIRS.get(cleaned[-1].type) == token.type:
            cleaned.pop()
            continue
        cleaned.append(token)
    return cleaned


def tree_to_tokens(tree: SyntaxTreeNode) -> List[Token]:
    """Recover the token stream, writing inline edits made on the tree back first."""
    for node in tree.walk():
        if node.type == "inline" and node.token is not None:
            node.token.children = [
                token for child in node.children for token in child.to_tokens()
            ]
    return tree.to_tokens()


class MarkdownEngine:
    """Parse/render pair around one configured ``MarkdownIt`` instance."""

    def __init__(self, config: Optional[dict] = None, tree_hooks: Optional[Iterable[TreeHook]] = None):
        self.config = config or get_markdown_config()
        self.md = MarkdownIt(
            self.config["preset"],
            self.config.get("options") or None,
            renderer_cls=DecoratingRenderer,
        )
        if self.config.get("enable"):
            self.md.enable(self.config["enable"])
        if tree_hooks is None:
            tree_hooks = self.config.get("table_extensions") or []
        self.tree_hooks: List[TreeHook] = list(tree_hooks)

    def parse(self, text: str) -> SyntaxTreeNode:
        tokens = self.md.parse(text, {})
        tree = SyntaxTreeNode(tokens)
        for hook in self.tree_hooks:
            hook(tree)
        return tree

    def render(self, tree: SyntaxTreeNode) -> str:
        tokens = suppress_removed_cells(tree_to_tokens(tree))
        return self.md.renderer.render(tokens, self.md.options, {})
