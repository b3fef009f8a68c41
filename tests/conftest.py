"""Shared test configuration and fixtures.

Table-span computation is not part of the package, so the tests install a
small table extension that writes the same markers a real one would:

    ^^     cell is merged into the cell above (rowspan on that cell)
    <<     cell is merged into the cell to its left (colspan on that cell)
    ===    a row of these separates the body from the footer rows below it
"""

# pylint: disable=missing-function-docstring

import pytest

from decomark import render_markdown
from decomark.decorations import FOOTER_MARKER, REMOVE_MARKER, attach_decoration
from decomark.engine import MarkdownEngine
from decomark.postprocessors.table_reconciler import literal_text


def make_span_extension(mark_placeholders: bool = True):
    """Build a tree hook that computes spans from ``^^``/``<<``/``===`` cells.

    With ``mark_placeholders=False`` the ``^^`` cells keep no marker, which
    leaves them in the rendered HTML for the reconciler to drop.
    """

    def extension(tree):
        for table in [node for node in tree.walk() if node.type == "table"]:
            rows = [tr for section in table.children for tr in section.children if tr.type == "tr"]
            grid = [[cell for cell in tr.children if cell.type in ("th", "td")] for tr in rows]
            texts = [[literal_text(cell).strip() for cell in row] for row in grid]

            removed = set()
            placeholders = set()
            rowspans = {}
            colspans = {}
            footer_from = None

            for r, row in enumerate(grid):
                if r == 0:
                    continue
                if row and all(text == "===" for text in texts[r]):
                    removed.update((r, c) for c in range(len(row)))
                    if footer_from is None:
                        footer_from = r + 1
                    continue
                for c in range(len(row)):
                    if texts[r][c] == "^^":
                        placeholders.add((r, c))
                        above = r - 1
                        while above > 1 and (above, c) in placeholders:
                            above -= 1
                        rowspans[(above, c)] = rowspans.get((above, c), 1) + 1
                    elif texts[r][c] == "<<" and c > 0:
                        removed.add((r, c))
                        left = c - 1
                        while left > 0 and (r, left) in removed:
                            left -= 1
                        colspans[(r, left)] = colspans.get((r, left), 1) + 1

            if mark_placeholders:
                removed |= placeholders
            for (r, c), count in rowspans.items():
                attach_decoration(grid[r][c], f'rowspan="{count}"')
            for (r, c), count in colspans.items():
                attach_decoration(grid[r][c], f'colspan="{count}"')
            for r, c in sorted(removed):
                attach_decoration(grid[r][c], REMOVE_MARKER)
            if footer_from is not None:
                for r in range(footer_from, len(rows)):
                    attach_decoration(rows[r], FOOTER_MARKER)

    return extension


@pytest.fixture
def span_extension():
    return make_span_extension()


@pytest.fixture
def engine():
    return MarkdownEngine()


@pytest.fixture
def render():
    """Render through the full pipeline; keyword arguments override config."""

    def _render(text, **overrides):
        context = {"markdown_config": overrides} if overrides else {}
        return render_markdown(text, context)

    return _render


@pytest.fixture
def render_tables(render):
    """Render with the span extension installed."""

    def _render(text, mark_placeholders=True, **overrides):
        extensions = [make_span_extension(mark_placeholders)]
        return render(text, table_extensions=extensions, **overrides)

    return _render
