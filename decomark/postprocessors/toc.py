# decomark/postprocessors/toc.py
"""
Postprocessor that expands table-of-contents directives.

The marker preprocessor turns a ``{:toc min=2 max=3}`` line into an HTML
comment the engine passes through untouched:

    <!--TOC min=2 max=3-->

Each such comment is replaced by a nested list of links to the document's
headings:

    <nav class="toc">
        <ul>
            <li><a href="#setup">Setup</a>
                <ul><li><a href="#install">Install</a></li></ul>
            </li>
        </ul>
    </nav>
"""

import logging
import re
from typing import Dict, Optional

from bs4 import BeautifulSoup, Comment

from ..extensions.toc_extractor import build_toc_tag, extract_toc

logger = logging.getLogger(__name__)

_TOC_COMMENT_RE = re.compile(r"<!--\s*TOC\b", re.IGNORECASE)
_OPTION_RE = re.compile(r"(min|max)\s*=\s*([1-6])", re.IGNORECASE)


def parse_toc_options(options: str) -> Dict[str, int]:
    """Read ``min=N``/``max=N`` heading bounds from a TOC directive."""
    bounds = {"min": 1, "max": 6}
    for key, value in _OPTION_RE.findall(options or ""):
        bounds[key.lower()] = int(value)
    if bounds["min"] > bounds["max"]:
        bounds["min"], bounds["max"] = bounds["max"], bounds["min"]
    return bounds


def _is_toc_comment(text) -> bool:
    return isinstance(text, Comment) and text.strip().upper().startswith("TOC")


def insert_toc(html: str, context: dict, nav_class: Optional[str] = "toc") -> str:
    """
    Replace ``<!--TOC ...-->`` comments with a generated table of contents.

    Args:
        html: HTML string to process
        context: Context dictionary (not used currently)
        nav_class: Class for the ``<nav>`` wrapper

    Returns:
        Processed HTML, or ``html`` unchanged when it holds no TOC directive
    """
    if not _TOC_COMMENT_RE.search(html):
        return html

    soup = BeautifulSoup(html, "html.parser")
    for comment in soup.find_all(string=_is_toc_comment):
        bounds = parse_toc_options(comment.strip()[3:])
        nodes = extract_toc(soup, min_level=bounds["min"], max_level=bounds["max"])
        if nodes:
            comment.replace_with(build_toc_tag(soup, nodes, nav_class))
        else:
            logger.debug("TOC directive found but no headings in range, removing it")
            comment.extract()

    return str(soup)


def toc_default(html: str, context: dict) -> str:
    """
    Default configuration for insert_toc.

    This is the function that should be registered in POSTPROCESSORS.
    """
    config = (context.get("config") or {}).get("toc") or {}
    if not config.get("enabled", True):
        return html
    try:
        return insert_toc(html, context, nav_class=config.get("nav_class", "toc"))
    except Exception as e:
        logger.error(f"TOC insertion failed: {e}", exc_info=True)
        return html
