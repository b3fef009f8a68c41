# decomark/postprocessors/table_headers.py
"""
Postprocessor that removes blank table headers.

Headerless tables get a row of empty header cells from the table normalizer
so the engine will parse them. That row carries no content, so it is dropped
from the final HTML:

    <table>                          <table>
    <thead>                          <tbody>
    <tr><th></th><th></th></tr>  →   <tr><td>a</td><td>b</td></tr>
    </thead>                         </tbody>
    <tbody>...                       </table>
"""

import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Cheap pre-check so documents without a blank header are never re-serialised
_BLANK_HEADER_RE = re.compile(
    r"<thead>\s*<tr>\s*(?:<th\b[^>]*>\s*</th>\s*)+</tr>\s*</thead>", re.IGNORECASE
)


def strip_blank_table_headers(html: str, context: dict) -> str:
    """
    Remove ``<thead>`` elements whose header cells are all empty.

    Args:
        html: HTML string to process
        context: Context dictionary (not used currently)

    Returns:
        HTML without blank table headers, or ``html`` unchanged if none exist
    """
    if not _BLANK_HEADER_RE.search(html):
        return html

    soup = BeautifulSoup(html, "html.parser")
    removed = 0
    for thead in soup.find_all("thead"):
        cells = thead.find_all(["th", "td"])
        if cells and all(not cell.get_text(strip=True) and not cell.find(True) for cell in cells):
            # Drop the newline the engine writes after </thead> as well
            following = thead.next_sibling
            if following is not None and isinstance(following, str) and not following.strip():
                following.extract()
            thead.decompose()
            removed += 1

    if not removed:
        return html
    logger.debug(f"Removed {removed} blank table header(s)")
    return str(soup)


def table_headers_default(html: str, context: dict) -> str:
    """
    Default configuration for strip_blank_table_headers.

    This is the function that should be registered in POSTPROCESSORS.
    """
    try:
        return strip_blank_table_headers(html, context)
    except Exception as e:
        logger.error(f"Blank table header removal failed: {e}", exc_info=True)
        return html
