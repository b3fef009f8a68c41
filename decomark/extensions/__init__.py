# decomark/extensions/__init__.py

from .attribute_decorator import decorate_tree, decorate_tree_default

__all__ = ["decorate_tree", "decorate_tree_default"]
