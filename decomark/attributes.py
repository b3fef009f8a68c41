# decomark/attributes.py
"""
Attribute list grammar and the per-document definition registry.

Markers look like ``{: #id .class key="value"}`` (also ``{#id}`` and
``{.class}``). A body is scanned left to right:

    #name        set the id (last one wins)
    .name        append a class
    key=value    append a key/value pair; value may be "double", 'single'
                 or “curly” quoted, or a bare run up to whitespace or ``}``

A body whose first word has none of ``#``, ``.`` and ``=`` is a reference to a
named definition. Definitions are whole lines of the form ``{:name: body}``;
they are removed from the text before parsing and collected into a registry
that lives for one conversion.

Malformed tokens are skipped. Nothing in this module raises on bad input.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from markdown_it.common.utils import escapeHtml

from .utils import FenceTracker

logger = logging.getLogger(__name__)

MARKER_OPENERS = ("{:", "{#", "{.")

# Opening quote -> accepted closing quotes
_QUOTES = {
    '"': ('"',),
    "'": ("'",),
    "“": ("”", "“"),
    "‘": ("’", "‘"),
}
_REFERENCE_STOP = set("#.=")
_TOC_RE = re.compile(r"^toc(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)
_DEFINITION_RE = re.compile(r"^\s*\{:([^\s:{}=\"'#.]+):([^}]*)\}\s*$")

Registry = Dict[str, "AttributeSet"]


@dataclass
class AttributeSet:
    id: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    pairs: List[Tuple[str, str]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.id is None and not self.classes and not self.pairs

    def copy(self) -> "AttributeSet":
        return AttributeSet(self.id, list(self.classes), list(self.pairs))

    def merge(self, override: Optional["AttributeSet"]) -> "AttributeSet":
        """
        Return a new set with ``override`` applied on top of this one.

        The override id replaces ours, classes are appended (duplicates kept),
        and a pair replaces the first pair with the same key or is appended.
        """
        merged = self.copy()
        if override is None:
            return merged
        if override.id is not None:
            merged.id = override.id
        merged.classes.extend(override.classes)
        for key, value in override.pairs:
            for index, (existing, _) in enumerate(merged.pairs):
                if existing == key:
                    merged.pairs[index] = (key, value)
                    break
            else:
                merged.pairs.append((key, value))
        return merged

    def to_fragment(self) -> str:
        """Render as an attribute fragment: classes, then id, then pairs."""
        parts = []
        if self.classes:
            parts.append(f'class="{escapeHtml(" ".join(self.classes))}"')
        if self.id is not None:
            parts.append(f'id="{escapeHtml(self.id)}"')
        for key, value in self.pairs:
            parts.append(f'{key}="{escapeHtml(value)}"')
        return " ".join(parts)

    def to_marker(self) -> str:
        """Render as a marker body (``#id .class key="value"``) that parses back to this set."""
        parts = []
        if self.id is not None:
            parts.append(f"#{self.id}")
        parts.extend(f".{name}" for name in self.classes)
        for key, value in self.pairs:
            if '"' not in value:
                parts.append(f'{key}="{value}"')
            elif "'" not in value:
                parts.append(f"{key}='{value}'")
            else:
                parts.append(f"{key}=“{value}”")
        return " ".join(parts)

    @classmethod
    def from_fragment(cls, fragment: str) -> "AttributeSet":
        """Read a rendered fragment back into a set (``id``/``class`` keys unpacked)."""
        parsed = parse_attributes(fragment) or cls()
        result = cls()
        for key, value in parsed.pairs:
            value = html.unescape(value)
            if key == "id":
                result.id = value
            elif key == "class":
                result.classes.extend(value.split())
            else:
                result.pairs.append((key, value))
        return result


def _read_value(body: str, start: int) -> Tuple[str, int]:
    """Read an attribute value beginning at ``start``; return (value, next index)."""
    n = len(body)
    if start < n and body[start] in _QUOTES:
        closers = _QUOTES[body[start]]
        straight = body[start] in ("'", '"')
        j = start + 1
        while j < n and body[j] not in closers:
            # Backslash protects the next character but is kept in the value
            if straight and body[j] == "\\" and j + 1 < n:
                j += 2
                continue
            j += 1
        return body[start + 1 : j], min(j + 1, n)

    j = start
    while j < n and not body[j].isspace() and body[j] != "}":
        j += 1
    return body[start:j], j


def parse_attributes(body: str) -> Optional[AttributeSet]:
    """
    Parse ordinary attribute tokens.

    Args:
        body: Marker body, without the opening delimiter

    Returns:
        AttributeSet, or None when nothing usable was found
    """
    attributes = AttributeSet()
    n = len(body)
    i = 0

    while i < n:
        ch = body[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "}":
            break

        if ch == "#":
            j = i + 1
            while j < n and not body[j].isspace() and body[j] not in ".}":
                j += 1
            if j > i + 1:
                attributes.id = body[i + 1 : j]
            i = j
            continue

        if ch == ".":
            j = i + 1
            while j < n and not body[j].isspace() and body[j] not in ".#}":
                j += 1
            if j > i + 1:
                attributes.classes.append(body[i + 1 : j])
            i = j
            continue

        j = i
        while j < n and not body[j].isspace() and body[j] not in "=}":
            j += 1
        if j < n and body[j] == "=" and j > i:
            key = body[i:j]
            value, i = _read_value(body, j + 1)
            # Duplicate keys within one body accumulate
            attributes.pairs.append((key, value))
            continue

        # Unrecognised token, skip to the next whitespace
        while j < n and not body[j].isspace():
            j += 1
        logger.debug(f"Skipping malformed attribute token: {body[i:j]!r}")
        i = max(j, i + 1)

    if attributes.is_empty():
        return None
    return attributes


def split_reference(body: str) -> Tuple[Optional[str], str]:
    """Split a body into (reference name, remainder) when its first word is a bare name."""
    stripped = body.lstrip()
    if not stripped:
        return None, ""
    parts = stripped.split(None, 1)
    word = parts[0]
    if "}" in word or any(ch in _REFERENCE_STOP for ch in word):
        return None, body
    return word, parts[1] if len(parts) > 1 else ""


def resolve_attributes(body: str, registry: Optional[Mapping[str, AttributeSet]] = None) -> Optional[AttributeSet]:
    """
    Resolve a marker body, following a leading reference into the registry.

    A known reference is copied and the rest of the body is merged on top of it.
    An unknown reference falls back to parsing the whole body.
    """
    name, remainder = split_reference(body)
    if name is not None and registry and name in registry:
        return registry[name].merge(parse_attributes(remainder))
    if name is not None:
        logger.debug(f"Unknown attribute reference {name!r}")
    return parse_attributes(body)


# ---------------------------------------------------------------------------
# Marker location
# ---------------------------------------------------------------------------


def marker_body(marker: str) -> str:
    """Return the body of a ``{...}`` marker (``{:`` drops the colon, ``{#``/``{.`` keep the sigil)."""
    inner = marker[1:-1] if marker.endswith("}") else marker[1:]
    if inner.startswith(":"):
        inner = inner[1:]
    return inner


def toc_options(body: str) -> Optional[str]:
    """Return the options of a ``{:toc ...}`` directive, or None when the body is not one."""
    match = _TOC_RE.match(body.strip())
    if not match:
        return None
    return (match.group(1) or "").strip()


def find_leading_marker(text: str) -> Optional[Tuple[int, int]]:
    """Locate a marker at the very start of ``text`` (after whitespace); return (start, end)."""
    start = len(text) - len(text.lstrip())
    if not text.startswith(MARKER_OPENERS, start):
        return None
    close = text.find("}", start)
    if close == -1:
        return None
    return start, close + 1


def find_trailing_marker(text: str) -> Optional[Tuple[int, int]]:
    """Locate a marker at the very end of ``text`` (only whitespace after it); return (start, end)."""
    stripped = text.rstrip()
    if not stripped.endswith("}"):
        return None
    start = stripped.rfind("{")
    if start == -1 or not stripped.startswith(MARKER_OPENERS, start):
        return None
    if "}" in stripped[start:-1]:
        return None
    return start, len(stripped)


def is_marker_only(text: str) -> bool:
    """True when ``text``, trimmed, is exactly one marker."""
    stripped = text.strip()
    span = find_leading_marker(stripped)
    return span is not None and span == (0, len(stripped))


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


def parse_definition(line: str) -> Optional[Tuple[str, AttributeSet]]:
    """Parse a ``{:name: body}`` definition line."""
    match = _DEFINITION_RE.match(line)
    if not match:
        return None
    name, body = match.group(1), match.group(2)
    if toc_options(name) is not None:
        return None
    return name, parse_attributes(body) or AttributeSet()


def extract_definitions(text: str) -> Tuple[str, Registry]:
    """
    Collect attribute definitions and remove their lines from the text.

    Args:
        text: Markdown source

    Returns:
        Tuple of (text without definition lines, registry). The text is returned
        unchanged (same object) when no definition was found.
    """
    registry: Registry = {}
    kept: List[str] = []
    fences = FenceTracker()
    removed = 0

    for line in text.splitlines(keepends=True):
        if fences.feed(line):
            kept.append(line)
            continue
        definition = parse_definition(line.rstrip("\r\n"))
        if definition is None:
            kept.append(line)
            continue
        name, attributes = definition
        registry[name] = attributes
        removed += 1

    if not removed:
        return text, registry
    logger.debug(f"Collected {removed} attribute definition(s): {sorted(registry)}")
    return "".join(kept), registry


def separate_marker_lines(text: str) -> str:
    """
    Give standalone marker lines a paragraph of their own.

    A line that is exactly one marker and directly follows a content line gets
    a blank line inserted before it. A ``{:toc ...}`` line becomes an HTML
    comment ``<!--TOC options-->``. Returns the input object when unchanged.
    """
    output: List[str] = []
    fences = FenceTracker()
    previous_blank = True
    changed = False

    for line in text.splitlines(keepends=True):
        if fences.feed(line):
            output.append(line)
            previous_blank = False
            continue

        content = line.rstrip("\r\n")
        if is_marker_only(content):
            stripped = content.strip()
            options = toc_options(marker_body(stripped)) if stripped.startswith("{:") else None
            if not previous_blank:
                output.append("\n")
                changed = True
            if options is not None:
                ending = line[len(content):] or "\n"
                line = f"<!--TOC {options}-->{ending}" if options else f"<!--TOC-->{ending}"
                changed = True

        output.append(line)
        previous_blank = not content.strip()

    if not changed:
        return text
    return "".join(output)
