# decomark/extensions/attribute_decorator.py
"""
Tree pass that turns attribute markers into node decorations.

Runs once after parsing and before rendering. Handles three marker forms:

Heading:
    ## Setup {#setup .wide}              → <h2 class="wide" id="setup">Setup</h2>

Span (inside paragraphs, recursively through em/strong/link):
    A [link](/x){: .ext} here            → <a href="/x" class="ext">link</a>
    *emphasis* {: title="t"}             → <em title="t">emphasis</em>

Block-trailing (next sibling paragraph holding only a marker):
    Paragraph text

    {: .lead}                            → <p class="lead">Paragraph text</p>

Marker paragraphs consumed by the block-trailing form are only collected
during the walk and unlinked once it has finished, so sibling and parent links
stay valid while the traversal is still using them.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from markdown_it.tree import SyntaxTreeNode

from ..attributes import (
    AttributeSet,
    find_leading_marker,
    find_trailing_marker,
    is_marker_only,
    marker_body,
    resolve_attributes,
    toc_options,
)
from ..decorations import attach_decoration

logger = logging.getLogger(__name__)

# Nodes that accept a decoration from a following marker paragraph
BLOCK_TARGETS = {
    "heading",
    "paragraph",
    "blockquote",
    "code_block",
    "fence",
    "bullet_list",
    "ordered_list",
    "list_item",
    "table",
}
SPAN_CONTAINERS = {"em", "strong", "link"}
SPAN_TARGETS = {"link", "image", "em", "strong", "code_inline"}


def _inline_child(node: SyntaxTreeNode) -> Optional[SyntaxTreeNode]:
    for child in node.children:
        if child.type == "inline":
            return child
    return None


def _remove_child(parent: SyntaxTreeNode, child: SyntaxTreeNode) -> None:
    parent.children = [node for node in parent.children if node is not child]
    child.parent = None


class AttributeDecorator:
    """
    Attach decorations for every marker in a parsed tree.

    Args:
        registry: Attribute definitions for this conversion
    """

    def __init__(self, registry: Optional[Mapping[str, AttributeSet]] = None):
        self.registry = registry or {}
        self.applied = 0
        self._pending_removal: List[SyntaxTreeNode] = []

    def resolve(self, marker: str) -> Optional[AttributeSet]:
        body = marker_body(marker)
        if toc_options(body) is not None:
            return None
        return resolve_attributes(body, self.registry)

    def run(self, tree: SyntaxTreeNode) -> int:
        """Decorate ``tree`` in place; return the number of decorations attached."""
        self._pending_removal = []
        stack = [tree]
        while stack:
            node = stack.pop()
            if any(node is pending for pending in self._pending_removal):
                continue
            self._visit(node)
            if node.type != "inline":
                stack.extend(reversed(node.children))

        # Second phase: nothing is visiting these any more
        for node in self._pending_removal:
            if node.parent is not None:
                _remove_child(node.parent, node)
        removed = len(self._pending_removal)
        self._pending_removal = []

        if self.applied:
            logger.debug(f"Attached {self.applied} decoration(s), removed {removed} marker paragraph(s)")
        return self.applied

    def _attach(self, node: SyntaxTreeNode, attributes: AttributeSet) -> None:
        attach_decoration(node, attributes.to_fragment())
        self.applied += 1

    def _visit(self, node: SyntaxTreeNode) -> None:
        if node.type == "heading":
            self._decorate_heading(node)
        elif node.type in ("paragraph", "th", "td"):
            inline = _inline_child(node)
            if inline is not None:
                self._decorate_spans(inline)

        if node.type in BLOCK_TARGETS:
            self._decorate_from_next_sibling(node)

    def _decorate_heading(self, heading: SyntaxTreeNode) -> None:
        inline = _inline_child(heading)
        if inline is None or not inline.children:
            return
        text_node = inline.children[-1]
        if text_node.type != "text":
            return

        content = text_node.token.content
        span = find_trailing_marker(content)
        if span is None:
            return
        attributes = self.resolve(content[span[0] : span[1]])
        if attributes is None:
            return

        self._attach(heading, attributes)
        remaining = content[: span[0]].rstrip()
        if remaining:
            text_node.token.content = remaining
        else:
            _remove_child(inline, text_node)

    def _decorate_spans(self, container: SyntaxTreeNode) -> None:
        """Apply markers found in the text children of ``container``, then recurse."""
        for child in list(container.children):
            if child.type == "text":
                self._apply_span_marker(container, child)
            elif child.type in SPAN_CONTAINERS:
                self._decorate_spans(child)

    def _preceding_target(self, text_node: SyntaxTreeNode) -> Optional[SyntaxTreeNode]:
        sibling = text_node.previous_sibling
        while sibling is not None:
            if sibling.type in SPAN_TARGETS:
                return sibling
            if sibling.type != "text":
                return None
            sibling = sibling.previous_sibling
        return None

    def _apply_span_marker(self, container: SyntaxTreeNode, text_node: SyntaxTreeNode) -> None:
        content = text_node.token.content
        span = find_leading_marker(content) or find_trailing_marker(content)
        if span is None:
            return

        target = self._preceding_target(text_node)
        if target is None or target.parent is not container:
            logger.debug(f"No element before marker {content[span[0]:span[1]]!r}, leaving it as text")
            return

        attributes = self.resolve(content[span[0] : span[1]])
        if attributes is None:
            return
        self._attach(target, attributes)

        prefix, suffix = content[: span[0]], content[span[1] :]
        remaining = prefix + suffix if suffix.strip() else prefix.rstrip()
        if remaining:
            text_node.token.content = remaining
        else:
            _remove_child(container, text_node)

    def _decorate_from_next_sibling(self, node: SyntaxTreeNode) -> None:
        sibling = node.next_sibling
        if sibling is None or sibling.type != "paragraph":
            return
        inline = _inline_child(sibling)
        if inline is None or len(inline.children) != 1 or inline.children[0].type != "text":
            return

        content = inline.children[0].token.content
        if not is_marker_only(content):
            return
        attributes = self.resolve(content.strip())
        if attributes is None:
            return

        self._attach(node, attributes)
        self._pending_removal.append(sibling)


def decorate_tree(tree: SyntaxTreeNode, registry: Optional[Mapping[str, AttributeSet]] = None) -> int:
    """Attach decorations for all markers in ``tree``; return how many were attached."""
    return AttributeDecorator(registry).run(tree)


def decorate_tree_default(tree: SyntaxTreeNode, context: dict) -> SyntaxTreeNode:
    """
    Default configuration for the attribute decorator.

    Reads the registry built by the definitions preprocessor from ``context``.
    """
    config = context.get("config") or {}
    if not config.get("attributes", True):
        return tree
    try:
        decorate_tree(tree, context.get("registry"))
    except Exception as e:
        logger.error(f"Attribute decoration failed: {e}", exc_info=True)
    return tree
