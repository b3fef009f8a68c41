from typing import Optional


def get_markdown_config(overrides: Optional[dict] = None) -> dict:
    """
    Configuration for the markdown-it engine and the decoration pipeline.

    The engine runs the CommonMark preset with GFM tables and strikethrough.
    Raw HTML stays enabled because the TOC directive is carried through the
    engine as an HTML comment.

    Args:
        overrides: Optional dict merged over the defaults. Nested dicts
            (``options``, ``tables``, ``toc``) are merged one level deep.

    Returns:
        Configuration dictionary
    """
    config = {
        "preset": "commonmark",
        "options": {
            "html": True,
            "linkify": False,
            "typographer": False,
        },
        "enable": ["table", "strikethrough"],
        # Text-level rewrites before parsing
        "relaxed_tables": True,  # rows without a separator line
        "headerless_tables": True,  # separator line without a header row
        "attributes": True,  # {: ...} markers and {:name: ...} definitions
        # Callables run on the parsed tree before decoration, e.g. a table
        # extension attaching span/footer/caption markers.
        "table_extensions": [],
        "tables": {
            "caption_position": "above",  # or "below"
            "alignment_style": "text-align: {align}",
            "timeout": 10.0,  # seconds for the reconciliation pass
            "figure_class": "table-figure",
        },
        "toc": {
            "enabled": True,
            "nav_class": "toc",
        },
    }

    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value

    return config
