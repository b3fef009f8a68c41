# decomark/renderer.py

from .config import get_markdown_config
from .engine import MarkdownEngine
from .extensions import decorate_tree_default
from .postprocessors import apply_postprocessors
from .preprocessors import apply_preprocessors


def render_markdown(text, context=None):
    """
    Main rendering function with pre/post processing pipeline using markdown-it

    Args:
        text: Raw markdown text
        context: Optional dict for processors that need additional data.
            ``markdown_config`` overrides configuration values; the pipeline
            adds ``config``, ``registry`` and ``tree`` while it runs.
    """
    context = context if context is not None else {}
    config = get_markdown_config(context.get("markdown_config"))
    context["config"] = config
    context["registry"] = {}

    # Pre-processing: Before markdown conversion
    text = apply_preprocessors(text, context)

    # Parse, then decorate the tree before it is rendered
    engine = MarkdownEngine(config)
    tree = engine.parse(text)
    tree = decorate_tree_default(tree, context)
    context["tree"] = tree

    html = engine.render(tree)

    # Post-processing: After markdown conversion
    html = apply_postprocessors(html, context)

    return html
