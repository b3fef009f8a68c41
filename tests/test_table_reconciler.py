"""Unit tests for table reconciliation.

Covers span splicing and placeholder removal, footer sections, captions,
row-header promotion, alignment colons, the untouched fast path, fallback
matching when the HTML has drifted from the tree, and the time budget.
"""

# pylint: disable=missing-class-docstring,missing-function-docstring

import logging

from decomark.decorations import FOOTER_MARKER, REMOVE_MARKER, attach_decoration
from decomark.postprocessors.table_reconciler import (
    collect_records,
    fingerprint,
    html_text,
    reconcile_tables,
    table_reconciler_default,
)

SPAN_TABLE = "| H1 | H2 |\n|----|----|\n| A | B |\n| ^^ | C |\n"
SPAN_HTML = (
    "<table>\n<thead>\n<tr>\n<th>H1</th>\n<th>H2</th>\n</tr>\n</thead>\n"
    '<tbody>\n<tr>\n<td rowspan="2">A</td>\n<td>B</td>\n</tr>\n'
    "<tr>\n<td>C</td>\n</tr>\n</tbody>\n</table>\n"
)

FOOTER_TABLE = "| H |\n|---|\n| B1 |\n| === |\n| T1 |\n"
FOOTER_HTML = (
    "<table>\n<thead>\n<tr>\n<th>H</th>\n</tr>\n</thead>\n"
    "<tbody>\n<tr>\n<td>B1</td>\n</tr>\n</tbody>\n"
    "<tfoot>\n<tr>\n<td>T1</td>\n</tr>\n</tfoot>\n</table>\n"
)


def table_rows(tree, index=0):
    tables = [node for node in tree.walk() if node.type == "table"]
    return [tr for section in tables[index].children for tr in section.children]


# ===========================================================================
# Helpers
# ===========================================================================


class TestHelpers:

    def test_fingerprint_normalises_whitespace(self):
        assert fingerprint("  a \n  b  ") == "a b"

    def test_fingerprint_truncates(self):
        assert len(fingerprint("x" * 200)) == 64

    def test_html_text(self):
        assert html_text("<em>a</em> &amp; <code>b</code>") == "a & b"

    def test_records_skip_removed_rows(self, engine, span_extension):
        tree = engine.parse(FOOTER_TABLE)
        span_extension(tree)
        table = collect_records(tree).tables[0]
        assert [row.ordinal for row in table.rendered] == [0, 1, 3]
        assert table.boundary == 2
        assert table.rows[3].footer


# ===========================================================================
# Spans
# ===========================================================================


class TestSpans:

    def test_rowspan_with_removed_placeholder(self, render_tables):
        assert render_tables(SPAN_TABLE) == SPAN_HTML

    def test_rowspan_with_unmarked_placeholder(self, render_tables):
        assert render_tables(SPAN_TABLE, mark_placeholders=False) == SPAN_HTML

    def test_rowspan_over_three_rows(self, render_tables):
        html = render_tables("| H |\n|---|\n| A |\n| ^^ |\n| ^^ |\n| B |\n")
        assert '<td rowspan="3">A</td>' in html
        assert "^^" not in html
        assert html.count("<tr>") == 3

    def test_colspan(self, render_tables):
        html = render_tables("| H1 | H2 |\n|----|----|\n| wide | << |\n| a | b |\n")
        assert '<tr>\n<td colspan="2">wide</td>\n</tr>' in html
        assert "&lt;&lt;" not in html

    def test_covered_cell_with_text_kept(self, engine):
        tree = engine.parse("| H1 | H2 |\n|---|---|\n| A | B |\n| 7 | 9 |\n")
        attach_decoration(table_rows(tree)[1].children[0], 'rowspan="2"')
        html = reconcile_tables(engine.render(tree), tree)
        assert '<td rowspan="2">A</td>' in html
        assert "<tr>\n<td>7</td>\n<td>9</td>\n</tr>" in html

    def test_blank_covered_cell_dropped(self, engine):
        tree = engine.parse("| H1 | H2 |\n|---|---|\n| A | B |\n|   | C |\n")
        attach_decoration(table_rows(tree)[1].children[0], 'rowspan="2"')
        html = reconcile_tables(engine.render(tree), tree)
        assert "<tr>\n<td>C</td>\n</tr>" in html
        assert "<td></td>" not in html

    def test_row_count_matches_rendered_rows(self, engine, span_extension):
        tree = engine.parse(SPAN_TABLE)
        span_extension(tree)
        html = engine.render(tree)
        records = collect_records(tree)
        reconciled = reconcile_tables(html, tree)
        assert reconciled.count("<tr>") == len(records.tables[0].rendered) == 3


# ===========================================================================
# Footers
# ===========================================================================


class TestFooters:

    def test_footer_after_boundary_row(self, render_tables):
        assert render_tables(FOOTER_TABLE) == FOOTER_HTML

    def test_footer_guard_keeps_leading_rows_in_body(self, engine):
        tree = engine.parse("| H |\n|---|\n| r1 |\n| r2 |\n")
        for row in table_rows(tree)[1:]:
            attach_decoration(row, FOOTER_MARKER)
        html = reconcile_tables(engine.render(tree), tree)
        assert "<tfoot>" not in html
        assert html.count("</tbody>") == 1

    def test_footer_after_guard_rows(self, engine):
        tree = engine.parse("| H |\n|---|\n| r1 |\n| r2 |\n| r3 |\n")
        attach_decoration(table_rows(tree)[3], FOOTER_MARKER)
        html = reconcile_tables(engine.render(tree), tree)
        assert "<td>r2</td>\n</tr>\n</tbody>\n<tfoot>\n<tr>\n<td>r3</td>" in html
        assert html.endswith("</tr>\n</tfoot>\n</table>\n")
        assert html.count("</tbody>") == 1

    def test_all_rows_in_footer_drops_empty_body(self, render_tables):
        html = render_tables("| H |\n|---|\n| === |\n| F |\n")
        assert "</thead>\n<tfoot>\n<tr>\n<td>F</td>\n</tr>\n</tfoot>\n</table>\n" in html
        assert "tbody" not in html


# ===========================================================================
# Captions
# ===========================================================================


class TestCaptions:

    def test_caption_paragraph_above(self, render_tables):
        html = render_tables("[Sales]\n\n| a |\n|---|\n| 1 |\n")
        assert html.startswith('<figure class="table-figure">\n<figcaption>Sales</figcaption>\n<table>\n')
        assert html.endswith("</table>\n</figure>\n")
        assert "[Sales]" not in html

    def test_caption_below(self, render_tables):
        html = render_tables("[Sales]\n\n| a |\n|---|\n| 1 |\n", tables={"caption_position": "below"})
        assert html.startswith('<figure class="table-figure">\n<table>\n')
        assert html.endswith("</table>\n<figcaption>Sales</figcaption>\n</figure>\n")

    def test_caption_paragraph_after_table(self, render_tables):
        html = render_tables("| a |\n|---|\n| 1 |\n\n[After]\n")
        assert "<figcaption>After</figcaption>" in html
        assert "<p>" not in html

    def test_caption_decoration(self, engine):
        tree = engine.parse("| a |\n|---|\n| 1 |\n")
        attach_decoration(tree.children[0], 'data-caption="Q&amp;A"')
        html = reconcile_tables(engine.render(tree), tree, figure_class="fig")
        assert html.startswith('<figure class="fig">\n<figcaption>Q&amp;A</figcaption>\n<table>\n')
        assert "data-caption" not in html

    def test_plain_bracket_paragraph_kept(self, render):
        assert render("[not a caption]\n\nText\n") == "<p>[not a caption]</p>\n<p>Text</p>\n"


# ===========================================================================
# Cell rewrites
# ===========================================================================


class TestCellRewrites:

    def test_row_header_promotion(self, render):
        html = render("|   | Col |\n|---|-----|\n| Row 1 | x |\n| Row 2 | y |\n")
        assert '<th scope="row">Row 1</th>\n<td>x</td>' in html
        assert '<th scope="row">Row 2</th>' in html
        assert "<th></th>" in html

    def test_alignment_colons(self, render):
        html = render("| H |\n|---|\n| :left |\n| mid: |\n| :both: |\n")
        assert '<td style="text-align: left">left</td>' in html
        assert '<td style="text-align: right">mid</td>' in html
        assert '<td style="text-align: center">both</td>' in html

    def test_alignment_overrides_column_style(self, render):
        html = render("| H |\n|--:|\n| :left |\n")
        assert '<td style="text-align: left">left</td>' in html
        assert "text-align:right\">left" not in html

    def test_alignment_style_template(self, render):
        html = render("| H |\n|---|\n| :x |\n", tables={"alignment_style": "float: {align}"})
        assert '<td style="float: left">x</td>' in html

    def test_lone_colon_untouched(self, render):
        html = render("| H |\n|---|\n| : |\n")
        assert "<td>:</td>" in html

    def test_removed_paragraph(self, engine):
        tree = engine.parse("Keep\n\nGone\n")
        attach_decoration(tree.children[1], REMOVE_MARKER)
        assert reconcile_tables(engine.render(tree), tree) == "<p>Keep</p>\n"


# ===========================================================================
# Fast path and fallbacks
# ===========================================================================


class TestFallbacks:

    def test_unmarked_document_is_same_object(self, engine):
        tree = engine.parse("| H |\n|---|\n| a |\n\nText\n")
        html = engine.render(tree)
        assert reconcile_tables(html, tree) is html

    def test_missing_tree_is_same_object(self):
        html = "<p>x</p>\n"
        assert table_reconciler_default(html, {}) is html

    def test_content_match_and_ambiguity(self, engine):
        tree = engine.parse("| a | b | c |\n|---|---|---|\n| x | x | z |\n")
        cells = table_rows(tree)[1].children
        attach_decoration(cells[1], 'class="warm"')
        attach_decoration(cells[2], 'class="hot"')
        html = engine.render(tree).replace(
            "<td>x</td>\n<td>x</td>\n<td>z</td>", "<td>x</td>\n<td>z</td>\n<td>x</td>"
        )
        result = reconcile_tables(html, tree)
        assert '<td class="hot">z</td>' in result
        assert "warm" not in result

    def test_span_record_from_neighbouring_row(self, engine):
        tree = engine.parse("| H1 | H2 |\n|---|---|\n| A | B |\n| C | D |\n")
        attach_decoration(table_rows(tree)[1].children[0], 'colspan="2"')
        html = engine.render(tree).replace("<td>C</td>", "<td>A</td>")
        result = reconcile_tables(html, tree)
        assert result.count('<td colspan="2">A</td>') == 2

    def test_raw_html_table_before_markdown_table(self, render_tables):
        html = render_tables("<table><tr><td>raw</td></tr></table>\n\n" + SPAN_TABLE)
        assert html.startswith("<table><tr><td>raw</td></tr></table>\n")
        assert '<td rowspan="2">A</td>' in html
        assert "^^" not in html

    def test_raw_html_table_gets_inert_record(self, engine):
        tree = engine.parse("<table><tr><td>x</td></tr></table>\n\n| a |\n|---|\n| 1 |\n")
        records = collect_records(tree)
        assert len(records.tables) == 2
        assert not records.tables[0].rows
        assert not records.tables[0].has_markers

    def test_multiple_tables_matched_in_order(self, engine):
        tree = engine.parse("| a |\n|---|\n| 1 |\n\n| b |\n|---|\n| 1 |\n")
        attach_decoration(table_rows(tree, 1)[1].children[0], 'class="second"')
        result = reconcile_tables(engine.render(tree), tree)
        assert result.count('<td class="second">1</td>') == 1
        assert result.index("<th>b</th>") < result.index('class="second"')

    def test_timeout_copies_through(self, render_tables, caplog):
        with caplog.at_level(logging.WARNING, logger="decomark.postprocessors.table_reconciler"):
            html = render_tables("[Sales]\n\n| a |\n|---|\n| 1 |\n", tables={"timeout": 0})
        assert "<figure" not in html
        assert "<p>[Sales]</p>" in html
        assert "copying the rest through unchanged" in caplog.text
