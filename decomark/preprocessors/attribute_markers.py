# decomark/preprocessors/attribute_markers.py
"""
Preprocessors for attribute markers.

Definitions:
    {:note: .warning #w1}      → removed, stored as registry["note"]

Standalone markers:
    Paragraph text             Paragraph text
    {: .lead}            →
                               {: .lead}

    {:toc max=3}         →     <!--TOC max=3-->

The registry is stored in ``context["registry"]`` for the tree decorator.
"""

import logging

from ..attributes import extract_definitions, separate_marker_lines

logger = logging.getLogger(__name__)


def attribute_definitions_default(text: str, context: dict) -> str:
    """
    Collect ``{:name: ...}`` definitions into the conversion's registry.

    This is the function that should be registered in PREPROCESSORS.
    """
    registry = context.setdefault("registry", {})
    config = context.get("config") or {}
    if not config.get("attributes", True):
        return text

    try:
        text, found = extract_definitions(text)
    except Exception as e:
        logger.error(f"Attribute definition extraction failed: {e}", exc_info=True)
        return text

    registry.update(found)
    return text


def marker_lines_default(text: str, context: dict) -> str:
    """
    Separate standalone marker lines and rewrite TOC directives.

    This is the function that should be registered in PREPROCESSORS.
    """
    config = context.get("config") or {}
    if not config.get("attributes", True):
        return text

    try:
        return separate_marker_lines(text)
    except Exception as e:
        logger.error(f"Marker line separation failed: {e}", exc_info=True)
        return text
