"""Unit tests for the attribute decorator tree pass.

Covers heading markers, span markers (leading and trailing, nested inside
emphasis and links), block-trailing marker paragraphs, reference lookups and
the deferred removal of consumed marker paragraphs.
"""

# pylint: disable=missing-class-docstring,missing-function-docstring

from decomark.attributes import AttributeSet
from decomark.decorations import get_decoration
from decomark.extensions.attribute_decorator import AttributeDecorator, decorate_tree, decorate_tree_default


def decorate_and_render(engine, text, registry=None):
    tree = engine.parse(text)
    decorate_tree(tree, registry)
    return engine.render(tree)


# ===========================================================================
# Headings
# ===========================================================================


class TestHeadings:

    def test_trailing_marker(self, engine):
        html = decorate_and_render(engine, "## Setup {#setup .wide}\n")
        assert html == '<h2 class="wide" id="setup">Setup</h2>\n'

    def test_marker_after_emphasis(self, engine):
        html = decorate_and_render(engine, "# A *b* {: .c}\n")
        assert html == '<h1 class="c">A <em>b</em></h1>\n'

    def test_heading_without_marker(self, engine):
        assert decorate_and_render(engine, "# Plain\n") == "<h1>Plain</h1>\n"

    def test_brace_text_is_not_a_marker(self, engine):
        assert decorate_and_render(engine, "# Set {x}\n") == "<h1>Set {x}</h1>\n"


# ===========================================================================
# Spans
# ===========================================================================


class TestSpans:

    def test_link_leading_marker(self, engine):
        html = decorate_and_render(engine, "A [link](/x){: .ext} here\n")
        assert html == '<p>A <a href="/x" class="ext">link</a> here</p>\n'

    def test_emphasis_marker_consumes_text(self, engine):
        html = decorate_and_render(engine, '*emphasis*{: title="t"}\n')
        assert html == '<p><em title="t">emphasis</em></p>\n'

    def test_trailing_marker_after_space(self, engine):
        html = decorate_and_render(engine, "Some *word* {: .hl}\n")
        assert html == '<p>Some <em class="hl">word</em></p>\n'

    def test_inline_code(self, engine):
        html = decorate_and_render(engine, "Run `make`{: .cmd} now\n")
        assert html == '<p>Run <code class="cmd">make</code> now</p>\n'

    def test_nested_inside_strong(self, engine):
        html = decorate_and_render(engine, "**a *b*{: .x} c**\n")
        assert html == '<p><strong>a <em class="x">b</em> c</strong></p>\n'

    def test_no_target_leaves_text(self, engine):
        assert decorate_and_render(engine, "Plain {: .x} text\n") == "<p>Plain {: .x} text</p>\n"

    def test_marker_inside_table_cell(self, engine):
        html = decorate_and_render(engine, "| H |\n|---|\n| *x*{: .hl} |\n")
        assert "<td><em class=\"hl\">x</em></td>" in html


# ===========================================================================
# Block-trailing markers
# ===========================================================================


class TestBlockTrailing:

    def test_paragraph(self, engine):
        html = decorate_and_render(engine, "Lead text\n\n{: .lead}\n")
        assert html == '<p class="lead">Lead text</p>\n'

    def test_reference(self, engine):
        registry = {"note": AttributeSet(id="w1", classes=["warning"])}
        html = decorate_and_render(engine, "Text here.\n\n{: note}\n", registry)
        assert html == '<p class="warning" id="w1">Text here.</p>\n'

    def test_list(self, engine):
        html = decorate_and_render(engine, "- one\n- two\n\n{: .tight}\n")
        assert html.startswith('<ul class="tight">\n')
        assert "{: .tight}" not in html

    def test_fence(self, engine):
        html = decorate_and_render(engine, "```python\ncode\n```\n\n{: .numbered}\n")
        assert html == '<pre class="numbered"><code class="language-python">code\n</code></pre>\n'

    def test_blockquote(self, engine):
        html = decorate_and_render(engine, "> quoted\n\n{: .aside}\n")
        assert html.startswith('<blockquote class="aside">')

    def test_marker_paragraph_with_other_text_kept(self, engine):
        html = decorate_and_render(engine, "Text\n\n{: .a} more\n")
        assert html == "<p>Text</p>\n<p>{: .a} more</p>\n"

    def test_toc_marker_not_applied(self, engine):
        html = decorate_and_render(engine, "Text\n\n{:toc}\n")
        assert html == "<p>Text</p>\n<p>{:toc}</p>\n"


# ===========================================================================
# Traversal and removal
# ===========================================================================


class TestTraversal:

    def test_marker_paragraphs_removed_after_walk(self, engine):
        tree = engine.parse("One\n\n{: .a}\n\nTwo\n\n{: .b}\n")
        assert len(tree.children) == 4
        assert AttributeDecorator().run(tree) == 2
        assert [child.type for child in tree.children] == ["paragraph", "paragraph"]
        assert get_decoration(tree.children[0]) == ['class="a"']
        assert get_decoration(tree.children[1]) == ['class="b"']

    def test_consumed_marker_not_reused(self, engine):
        tree = engine.parse("One\n\n{: .a}\n\n{: .b}\n")
        decorate_tree(tree)
        assert get_decoration(tree.children[0]) == ['class="a"']
        assert len(tree.children) == 2

    def test_fragments_accumulate(self, engine):
        html = decorate_and_render(engine, "## Title {.one}\n\n{: .two}\n")
        assert html == '<h2 class="one" class="two">Title</h2>\n'

    def test_default_respects_config(self, engine):
        tree = engine.parse("Text\n\n{: .lead}\n")
        decorate_tree_default(tree, {"config": {"attributes": False}})
        assert len(tree.children) == 2
        assert get_decoration(tree.children[0]) == []
