# decomark/postprocessors/table_reconciler.py
"""
Postprocessor that applies table decorations to the rendered HTML.

The engine renders table rows and cells without their decorations, so span,
footer and caption directives attached by a table extension are lost in the
HTML. This pass walks the HTML and the decorated tree side by side and splices
them back in:

    <td>A</td>              → <td rowspan="2">A</td>
    <td>^^</td>             → (removed, covered by the span above)
    footer rows             → moved from <tbody> into <tfoot>
    [Caption] paragraph     → <figure class="table-figure"><figcaption>
    <td> :left</td>         → <td style="text-align: left">left</td>
    empty first header cell → body rows start with <th scope="row">

Because removed cells and rows never reach the HTML, the nth cell in the
markup is not the nth cell in the tree. Each rendered row is mapped back to a
tree row by skipping rows whose cells are all removed, and each rendered cell
is mapped to a tree column by skipping removed cells. A position match is
verified against the cell's text fingerprint; on a mismatch the cell is
looked up by content in the same row (a span-bearing record wins a tie), then
among span-bearing records within one row either side, and only a unique
match is ever applied.

A table without any of these markers, in a document without alignment
colons, is returned untouched.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from markdown_it.common.utils import escapeHtml
from markdown_it.tree import SyntaxTreeNode

from ..decorations import (
    FOOTER_MARKER,
    REMOVE_MARKER,
    caption_value,
    get_decoration,
    has_marker,
    render_decoration,
    span_value,
    strip_caption_attribute,
)

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 64
# Without a removed boundary row, this many leading rows never go to the footer
FOOTER_GUARD_ROWS = 3

_STRUCTURE_TAG_RE = re.compile(
    r"<(/?)(table|thead|tbody|tfoot|tr|th|td|p)(?=[\s>/])[^>]*>", re.IGNORECASE
)
_MARKUP_RE = re.compile(r"<[^>]+>")
_ALIGNMENT_COLON_RE = re.compile(r"<t[dh]\b[^>]*>\s*:|:\s*</t[dh]>", re.IGNORECASE)
_CAPTION_PARAGRAPH_RE = re.compile(r"^\[([^\[\]]+)\]$")
_RAW_TABLE_RE = re.compile(r"<table(?=[\s>/])", re.IGNORECASE)
# Text of a rendered cell that only stands in for a row span above it
ROWSPAN_PLACEHOLDERS = ("", "^^")
_STYLE_RE = re.compile(r"""\s+style=("[^"]*"|'[^']*')""", re.IGNORECASE)


def fingerprint(text: str) -> str:
    """Whitespace-normalised, trimmed and shortened text used to verify matches."""
    return " ".join(text.split())[:FINGERPRINT_LENGTH]


def html_text(fragment: str) -> str:
    """Fingerprint of the visible text of an HTML fragment."""
    return fingerprint(html_lib.unescape(_MARKUP_RE.sub("", fragment)))


def literal_text(node: SyntaxTreeNode) -> str:
    """Concatenate the literal text below ``node`` the way the renderer will show it."""
    parts: List[str] = []

    def collect(current: SyntaxTreeNode) -> None:
        for child in current.children:
            if child.type in ("text", "code_inline"):
                parts.append(child.content)
            elif child.type in ("softbreak", "hardbreak"):
                parts.append(" ")
            elif child.type != "image":
                collect(child)

    collect(node)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class CellRecord:
    row: int
    column: int
    fragments: List[str]
    fingerprint: str
    removed: bool = False
    rowspan: int = 1
    colspan: int = 1

    @property
    def has_span(self) -> bool:
        return self.rowspan > 1 or self.colspan > 1


@dataclass
class RowRecord:
    ordinal: int
    cells: List[CellRecord]
    header: bool = False
    footer: bool = False

    @property
    def all_removed(self) -> bool:
        return bool(self.cells) and all(cell.removed for cell in self.cells)

    def cell(self, column: int) -> Optional[CellRecord]:
        if 0 <= column < len(self.cells):
            return self.cells[column]
        return None


@dataclass
class TableRecord:
    ordinal: int
    rows: List[RowRecord] = field(default_factory=list)
    caption: Optional[str] = None
    caption_source: Optional[str] = None  # fingerprint of a sibling caption paragraph
    boundary: Optional[int] = None
    row_headers: bool = False
    rendered: List[RowRecord] = field(default_factory=list)

    def finish(self) -> "TableRecord":
        self.rendered = [row for row in self.rows if not row.all_removed]
        self.boundary = next((row.ordinal for row in self.rows if row.all_removed), None)
        first = self.rows[0] if self.rows else None
        self.row_headers = bool(
            first is not None
            and first.header
            and len(first.cells) > 1
            and first.cells[0].fingerprint == ""
            and any(cell.fingerprint for cell in first.cells[1:])
        )
        return self

    @property
    def has_markers(self) -> bool:
        if self.caption is not None or self.row_headers:
            return True
        return any(row.footer or any(cell.fragments for cell in row.cells) for row in self.rows)

    def rendered_row(self, html_row: int) -> Optional[RowRecord]:
        if 0 <= html_row < len(self.rendered):
            return self.rendered[html_row]
        return None

    def footer_allowed(self, row: RowRecord, html_row: int) -> bool:
        if self.boundary is None:
            return html_row >= FOOTER_GUARD_ROWS
        return row.ordinal > self.boundary

    def column_mapping(self, row: RowRecord) -> List[Tuple[int, bool]]:
        """
        Map the nth rendered cell of ``row`` to (tree column, is placeholder).

        Removed cells are never rendered. A rendered cell whose column is still
        covered by a row span started in an earlier row is a placeholder.
        """
        covered = set()
        for earlier in self.rows[: row.ordinal]:
            for cell in earlier.cells:
                if cell.removed or cell.rowspan <= 1:
                    continue
                if earlier.ordinal + cell.rowspan - 1 >= row.ordinal:
                    covered.update(range(cell.column, cell.column + cell.colspan))
        return [(cell.column, cell.column in covered) for cell in row.cells if not cell.removed]


@dataclass
class ReconcileRecords:
    tables: List[TableRecord] = field(default_factory=list)
    removals: List[str] = field(default_factory=list)  # paragraph fingerprints to delete

    def table(self, ordinal: int) -> Optional[TableRecord]:
        if 0 <= ordinal < len(self.tables):
            return self.tables[ordinal]
        return None

    @property
    def has_markers(self) -> bool:
        return bool(self.removals) or any(table.has_markers for table in self.tables)


def _cell_record(node: SyntaxTreeNode, row: int, column: int) -> CellRecord:
    fragments = get_decoration(node)
    return CellRecord(
        row=row,
        column=column,
        fragments=fragments,
        fingerprint=fingerprint(literal_text(node)),
        removed=has_marker(fragments, REMOVE_MARKER),
        rowspan=span_value(fragments, "rowspan"),
        colspan=span_value(fragments, "colspan"),
    )


def _sibling_caption(table: SyntaxTreeNode, claimed: set) -> Tuple[Optional[str], Optional[str]]:
    for sibling in (table.previous_sibling, table.next_sibling):
        if sibling is None or sibling.type != "paragraph" or id(sibling) in claimed:
            continue
        text = literal_text(sibling).strip()
        match = _CAPTION_PARAGRAPH_RE.match(text)
        if match and match.group(1).strip():
            claimed.add(id(sibling))
            return match.group(1).strip(), fingerprint(text)
    return None, None


def collect_records(tree: SyntaxTreeNode) -> ReconcileRecords:
    """Snapshot table, row, cell, caption and removal records from the decorated tree."""
    records = ReconcileRecords()
    claimed: set = set()

    for node in tree.walk():
        if node.type == "paragraph" and has_marker(get_decoration(node), REMOVE_MARKER):
            claimed.add(id(node))
            records.removals.append(fingerprint(literal_text(node)))
            continue
        if node.type in ("html_block", "html_inline"):
            # Raw tables are rendered too; give each an inert record so ordinals line up
            for _ in _RAW_TABLE_RE.finditer(node.content):
                records.tables.append(TableRecord(ordinal=len(records.tables)).finish())
            continue
        if node.type != "table":
            continue

        table = TableRecord(ordinal=len(records.tables))
        for section in node.children:
            for tr in section.children:
                if tr.type != "tr":
                    continue
                ordinal = len(table.rows)
                cells = [child for child in tr.children if child.type in ("th", "td")]
                table.rows.append(
                    RowRecord(
                        ordinal=ordinal,
                        cells=[_cell_record(cell, ordinal, column) for column, cell in enumerate(cells)],
                        header=section.type == "thead",
                        footer=has_marker(get_decoration(tr), FOOTER_MARKER),
                    )
                )

        table.caption = caption_value(get_decoration(node))
        if table.caption is None:
            table.caption, table.caption_source = _sibling_caption(node, claimed)
        records.tables.append(table.finish())

    records.removals.extend(table.caption_source for table in records.tables if table.caption_source)
    return records


# ---------------------------------------------------------------------------
# HTML pass
# ---------------------------------------------------------------------------


class TableReconciler:
    """
    Single pass over rendered HTML that applies the collected table records.

    Args:
        html: Rendered HTML
        records: Records collected from the decorated tree
        caption_position: "above" or "below" the table
        alignment_style: Inline style template with an ``{align}`` field
        timeout: Seconds before the rest of the HTML is copied through as-is
        figure_class: Class of the figure wrapping captioned tables
    """

    def __init__(
        self,
        html: str,
        records: ReconcileRecords,
        caption_position: str = "above",
        alignment_style: str = "text-align: {align}",
        timeout: float = 10.0,
        figure_class: str = "table-figure",
    ):
        self.html = html
        self.records = records
        self.caption_position = caption_position
        self.alignment_style = alignment_style
        self.timeout = timeout
        self.figure_class = figure_class

        self._out: List[str] = []
        self._pos = 0
        self._pending_removals = list(records.removals)
        self._table_index = -1
        self._table: Optional[TableRecord] = None
        self._reset_table()

    def _reset_table(self) -> None:
        self._section: Optional[str] = None
        self._in_footer = False
        self._html_row = -1
        self._row: Optional[RowRecord] = None
        self._mapping: List[Tuple[int, bool]] = []
        self._html_col = -1
        self._tbody_at: Optional[int] = None
        self._body_rows = 0

    def run(self) -> str:
        html = self.html
        deadline = time.monotonic() + self.timeout
        try:
            while self._pos < len(html):
                if time.monotonic() >= deadline:
                    logger.warning(
                        f"Table reconciliation exceeded {self.timeout}s, copying the rest through unchanged"
                    )
                    break
                match = _STRUCTURE_TAG_RE.search(html, self._pos)
                if match is None:
                    break
                self._out.append(html[self._pos : match.start()])
                self._pos = match.start()
                self._handle(match)
            self._out.append(html[self._pos :])
            return "".join(self._out)
        except MemoryError:
            logger.error("Table reconciliation ran out of memory, returning partial output", exc_info=True)
            return "".join(self._out) + html[self._pos :]

    # -- helpers ------------------------------------------------------------

    def _copy(self, match: re.Match) -> None:
        self._out.append(match.group(0))
        self._pos = match.end()

    def _skip_newline(self, position: int) -> int:
        if self.html.startswith("\n", position):
            return position + 1
        return position

    def _figcaption(self, caption: str) -> str:
        return f"<figcaption>{escapeHtml(caption)}</figcaption>"

    # -- dispatch -----------------------------------------------------------

    def _handle(self, match: re.Match) -> None:
        closing = match.group(1) == "/"
        name = match.group(2).lower()

        if name == "table":
            if closing:
                self._close_table(match)
            else:
                self._open_table(match)
        elif name == "p" and not closing:
            self._paragraph(match)
        elif self._table is None:
            self._copy(match)
        elif name in ("thead", "tbody", "tfoot"):
            self._section_tag(match, name, closing)
        elif name == "tr" and not closing:
            self._open_row(match)
        elif name in ("td", "th") and not closing and self._row is not None:
            self._cell(match, name)
        else:
            self._copy(match)

    def _open_table(self, match: re.Match) -> None:
        self._table_index += 1
        self._table = self.records.table(self._table_index)
        self._reset_table()

        tag = match.group(0)
        table = self._table
        if table is not None and table.caption is not None:
            self._out.append(f'<figure class="{self.figure_class}">\n')
            if self.caption_position != "below":
                self._out.append(self._figcaption(table.caption) + "\n")
            tag = strip_caption_attribute(tag)
        self._out.append(tag)
        self._pos = match.end()

    def _close_table(self, match: re.Match) -> None:
        table = self._table
        if table is not None and self._in_footer:
            self._out.append("</tfoot>\n")
        self._copy(match)
        if table is not None and table.caption is not None:
            if self.caption_position == "below":
                self._out.append("\n" + self._figcaption(table.caption))
            self._out.append("\n</figure>")
        self._table = None
        self._reset_table()

    def _section_tag(self, match: re.Match, name: str, closing: bool) -> None:
        if closing and name == "tbody" and self._in_footer:
            # The body was already closed when the footer opened
            self._pos = self._skip_newline(match.end())
            return
        if not closing:
            self._section = {"thead": "head", "tbody": "body", "tfoot": "foot"}[name]
            if name == "tbody":
                self._tbody_at = len(self._out)
        self._copy(match)

    def _open_row(self, match: re.Match) -> None:
        table = self._table
        self._html_row += 1
        self._html_col = -1
        self._row = table.rendered_row(self._html_row)
        self._mapping = table.column_mapping(self._row) if self._row is not None else []

        row = self._row
        if (
            row is not None
            and row.footer
            and self._section == "body"
            and not self._in_footer
            and table.footer_allowed(row, self._html_row)
        ):
            if self._body_rows == 0 and self._tbody_at is not None:
                # Every body row went to the footer, so the body is never opened
                self._out[self._tbody_at] = "<tfoot>"
            else:
                self._out.append("</tbody>\n<tfoot>\n")
            self._in_footer = True
        elif self._section == "body" and not self._in_footer:
            self._body_rows += 1
        self._copy(match)

    def _paragraph(self, match: re.Match) -> None:
        if self._pending_removals:
            close = self.html.find("</p>", match.end())
            if close != -1:
                text = html_text(self.html[match.end() : close])
                if text in self._pending_removals:
                    self._pending_removals.remove(text)
                    self._pos = self._skip_newline(close + len("</p>"))
                    return
        self._copy(match)

    # -- cells --------------------------------------------------------------

    def _identify(self, text: str) -> Tuple[Optional[CellRecord], bool, Optional[int]]:
        """Return (record, is placeholder, tree column) for the current rendered cell."""
        row = self._row
        column: Optional[int] = None

        if self._html_col < len(self._mapping):
            column, placeholder = self._mapping[self._html_col]
            if placeholder and text in ROWSPAN_PLACEHOLDERS:
                return None, True, column
            if placeholder:
                logger.debug(f"Cell {text!r} under a row span kept in table {self._table_index}, row {row.ordinal}")
            record = row.cell(column)
            if record is not None and record.fingerprint == text:
                return record, False, column

        candidates = [cell for cell in row.cells if cell.fingerprint == text]
        if len(candidates) == 1:
            return candidates[0], False, candidates[0].column
        spanning = [cell for cell in candidates if cell.has_span]
        if len(spanning) == 1:
            return spanning[0], False, spanning[0].column
        if candidates:
            logger.debug(f"Ambiguous cell match for {text!r} in table {self._table_index}, row {row.ordinal}")
            return None, False, column

        nearby = [
            cell
            for other in self._table.rows
            if abs(other.ordinal - row.ordinal) <= 1
            for cell in other.cells
            if cell.has_span and cell.fingerprint == text
        ]
        if len(nearby) == 1:
            return nearby[0], False, nearby[0].column
        return None, False, column

    def _cell(self, match: re.Match, name: str) -> None:
        close = re.compile(rf"</{name}\s*>", re.IGNORECASE).search(self.html, match.end())
        if close is None:
            self._copy(match)
            return

        self._html_col += 1
        tag = match.group(0)
        inner = self.html[match.end() : close.start()]
        record, placeholder, column = self._identify(html_text(inner))

        if placeholder or (record is not None and record.removed):
            self._pos = self._skip_newline(close.end())
            return

        if record is not None and record.fragments:
            self._out.append(tag[:-1] + render_decoration(record.fragments) + ">" + inner + close.group(0))
        elif self._promotes_row_header(name, column):
            self._out.append('<th scope="row"' + tag[3:] + inner + "</th>")
        else:
            aligned = self._align(tag, inner)
            if aligned is None:
                self._out.append(self.html[match.start() : close.end()])
            else:
                self._out.append(aligned + close.group(0))
        self._pos = close.end()

    def _promotes_row_header(self, name: str, column: Optional[int]) -> bool:
        if name != "td" or not self._table.row_headers:
            return False
        if self._section != "body" or self._in_footer:
            return False
        return column == 0 if column is not None else self._html_col == 0

    def _align(self, tag: str, inner: str) -> Optional[str]:
        """Turn ``:x``, ``x:`` and ``:x:`` cell text into an inline alignment style."""
        stripped = inner.strip()
        if len(stripped) < 2 or not stripped.strip(":").strip():
            return None
        leading, trailing = stripped.startswith(":"), stripped.endswith(":")
        if leading and trailing:
            align, text = "center", stripped[1:-1]
        elif leading:
            align, text = "left", stripped[1:]
        elif trailing:
            align, text = "right", stripped[:-1]
        else:
            return None

        style = self.alignment_style.format(align=align)
        tag = _STYLE_RE.sub("", tag)
        return tag[:-1] + f' style="{style}">' + text.strip()


def reconcile_tables(
    html: str,
    tree: Optional[SyntaxTreeNode],
    caption_position: str = "above",
    alignment_style: str = "text-align: {align}",
    timeout: float = 10.0,
    figure_class: str = "table-figure",
) -> str:
    """
    Apply table decorations from ``tree`` to the rendered ``html``.

    Args:
        html: HTML rendered from ``tree``
        tree: The decorated tree the HTML was rendered from
        caption_position: "above" or "below"
        alignment_style: Inline style template with an ``{align}`` field
        timeout: Wall-clock budget in seconds
        figure_class: Class for the figure wrapping captioned tables

    Returns:
        Reconciled HTML, or ``html`` itself when there was nothing to do
    """
    if not html or tree is None:
        return html

    records = collect_records(tree)
    if not records.has_markers and not _ALIGNMENT_COLON_RE.search(html):
        logger.debug("No table decorations to reconcile")
        return html

    return TableReconciler(
        html,
        records,
        caption_position=caption_position,
        alignment_style=alignment_style,
        timeout=timeout,
        figure_class=figure_class,
    ).run()


def table_reconciler_default(html: str, context: dict) -> str:
    """
    Default configuration for table_reconciler.

    This is the function that should be registered in POSTPROCESSORS.
    """
    config = (context.get("config") or {}).get("tables") or {}
    try:
        return reconcile_tables(
            html,
            context.get("tree"),
            caption_position=config.get("caption_position", "above"),
            alignment_style=config.get("alignment_style", "text-align: {align}"),
            timeout=config.get("timeout", 10.0),
            figure_class=config.get("figure_class", "table-figure"),
        )
    except Exception as e:
        logger.error(f"Table reconciliation failed: {e}", exc_info=True)
        return html
