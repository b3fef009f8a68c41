# decomark/preprocessors/__init__.py

from .attribute_markers import attribute_definitions_default, marker_lines_default
from .image_attributes import image_attributes_default
from .table_normalizer import table_normalizer_default

PREPROCESSORS = [
    table_normalizer_default,  # Must run before parsing: relaxed and headerless tables
    image_attributes_default,  # ![alt](url width=300 .cls) → ![alt](url){: ...}
    attribute_definitions_default,  # Strip {:name: ...} lines into the registry
    marker_lines_default,  # Blank line before standalone markers, {:toc} directives
    # Order matters - they run sequentially
]


def apply_preprocessors(text, context):
    """Apply all preprocessors in order"""
    for processor in PREPROCESSORS:
        text = processor(text, context)
    return text
