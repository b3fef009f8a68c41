# decomark/postprocessors/__init__.py

from .table_headers import table_headers_default
from .table_reconciler import table_reconciler_default
from .toc import toc_default

POSTPROCESSORS = [
    table_reconciler_default,  # Needs context["tree"]; must see the engine's HTML first
    table_headers_default,  # Drop blank headers written for headerless tables
    toc_default,  # Expand <!--TOC--> directives once heading ids are final
    # Order matters - they run sequentially
]


def apply_postprocessors(html, context):
    """Apply all postprocessors in order"""
    for processor in POSTPROCESSORS:
        html = processor(html, context)
    return html
