# decomark/decorations.py
"""
Per-node decorations shared by the decorator, the engine renderer and the
table reconciliation pass.

A decoration is an ordered list of renderer-ready attribute fragments stored in
``node.meta["decoration"]`` (``node`` being a ``SyntaxTreeNode`` or a bare
``Token``; both expose the same ``meta`` dict). Attaching a second fragment
appends it, so rendering concatenates fragments in attachment order.

Structural markers written by table extensions use the same field:

    data-remove          cell produces no output / paragraph to delete
    data-tfoot           row belongs to the table footer
    data-caption="..."   caption text for a table
    rowspan="N"          cell spans N rows
    colspan="N"          cell spans N columns
"""

from __future__ import annotations

import html
import re
from typing import List, Optional

DECORATION_KEY = "decoration"

REMOVE_MARKER = "data-remove"
FOOTER_MARKER = "data-tfoot"
CAPTION_ATTRIBUTE = "data-caption"

_CAPTION_RE = re.compile(r'\bdata-caption="([^"]*)"')
_SPAN_RES = {
    "rowspan": re.compile(r'(?<![\w-])rowspan="?(\d+)"?'),
    "colspan": re.compile(r'(?<![\w-])colspan="?(\d+)"?'),
}


def get_decoration(node) -> List[str]:
    """Return the fragments attached to ``node`` (empty list when undecorated)."""
    return list(node.meta.get(DECORATION_KEY) or [])


def attach_decoration(node, fragment: str) -> None:
    """Append ``fragment`` to the node's decoration."""
    fragment = (fragment or "").strip()
    if not fragment:
        return
    node.meta.setdefault(DECORATION_KEY, []).append(fragment)


def render_decoration(fragments: List[str]) -> str:
    """Join fragments into the string spliced into an opening tag (leading space included)."""
    return "".join(" " + fragment for fragment in fragments if fragment)


def has_marker(fragments: List[str], marker: str) -> bool:
    return any(re.search(rf"(?<![\w-]){re.escape(marker)}(?![\w-])", f) for f in fragments)


def span_value(fragments: List[str], name: str) -> int:
    """Return the rowspan/colspan carried by the fragments, 1 when absent."""
    pattern = _SPAN_RES[name]
    for fragment in fragments:
        match = pattern.search(fragment)
        if match:
            return max(1, int(match.group(1)))
    return 1


def caption_value(fragments: List[str]) -> Optional[str]:
    """Return the unescaped caption text, or None."""
    for fragment in fragments:
        match = _CAPTION_RE.search(fragment)
        if match:
            return html.unescape(match.group(1))
    return None


def strip_caption_attribute(tag: str) -> str:
    """Drop a ``data-caption`` attribute from a rendered opening tag."""
    return re.sub(r'\s+data-caption="[^"]*"', "", tag)
