# decomark/preprocessors/image_attributes.py
"""
Preprocessor for attributes written inside image destinations.

Inline images:
    ![alt](/a.png width=300 .wide)        → ![alt](/a.png){: .wide width="300"}
    ![alt](/a.png "Title" #hero)          → ![alt](/a.png "Title"){: #hero}
    ![alt](/a.png height=80 "Title")      → ![alt](/a.png "Title"){: height="80"}

Reference definitions:
    [logo]: /logo.png width=120 .brand    → [logo]: /logo.png
    ![Logo][logo]                         → ![Logo][logo]{: .brand width="120"}

The rewritten markers are ordinary span markers, so the attribute decorator
attaches them to the image. A marker already following the image is merged
with the extracted attributes. Fenced code and code spans are left alone.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..attributes import AttributeSet, parse_attributes
from ..utils import FenceTracker

logger = logging.getLogger(__name__)

_INLINE_IMAGE_RE = re.compile(r"!\[(?P<alt>[^\]\n]*)\]\((?P<body>[^)\n]*)\)(?P<marker>\{[:#.])?")
_REFERENCE_IMAGE_RE = re.compile(r"!\[(?P<alt>[^\]\n]*)\]\[(?P<label>[^\]\n]*)\](?P<marker>\{[:#.])?")
_REFERENCE_DEFINITION_RE = re.compile(r"^(?P<lead> {0,3}\[(?P<label>[^\]\n]+)\]:)[ \t]+(?P<body>\S.*?)\s*$")
_CODE_SPAN_RE = re.compile(r"(`+).*?\1")
_ATTRIBUTE_START_RE = re.compile(r"""^(?:[#.][^\s#.]|[^\s="'()]+=)""")
_TRAILING_TITLE_RE = re.compile(r"""\s("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')$""")


def _normalize_label(label: str) -> str:
    return " ".join(label.split()).casefold()


def _split_destination(body: str) -> Tuple[str, str]:
    """Split an image destination into (url, rest)."""
    body = body.strip()
    if body.startswith("<"):
        end = body.find(">")
        if end != -1:
            return body[: end + 1], body[end + 1 :].strip()
    parts = body.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def _leading_title(rest: str) -> Tuple[Optional[str], str]:
    quote = rest[:1]
    if quote not in ('"', "'"):
        return None, rest
    j = 1
    while j < len(rest) and rest[j] != quote:
        j += 2 if rest[j] == "\\" else 1
    if j >= len(rest):
        return None, rest
    return rest[: j + 1], rest[j + 1 :].strip()


def parse_image_attributes(rest: str) -> Tuple[Optional[str], Optional[AttributeSet]]:
    """
    Read the part of an image destination that follows the URL.

    A quoted title may come before or after the attribute tokens and is
    returned as written (quotes included) so it stays a markdown title.

    Returns:
        Tuple of (title or None, attributes or None when the rest does not
        start like an attribute list)
    """
    title, rest = _leading_title(rest.strip())
    if title is None:
        trailing = _TRAILING_TITLE_RE.search(rest)
        if trailing:
            title, rest = trailing.group(1), rest[: trailing.start()].strip()
    if not _ATTRIBUTE_START_RE.match(rest):
        return title, None
    return title, parse_attributes(rest)


def _marker(attributes: AttributeSet, existing: Optional[str]) -> str:
    """Marker text for ``attributes``, opening up an ``existing`` marker it merges into."""
    if existing is None:
        return "{: " + attributes.to_marker() + "}"
    # The rest of the existing marker follows in the source
    sigil = existing[1:] if existing[1:] in ("#", ".") else ""
    return "{: " + attributes.to_marker() + " " + sigil


def _code_spans(line: str) -> List[Tuple[int, int]]:
    return [match.span() for match in _CODE_SPAN_RE.finditer(line)]


def _in_spans(position: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= position < end for start, end in spans)


def _collect_references(lines: List[str]) -> Tuple[List[str], Dict[str, AttributeSet]]:
    """Strip attributes from reference definition lines and collect them by label."""
    references: Dict[str, AttributeSet] = {}
    fences = FenceTracker()
    kept: List[str] = []

    for line in lines:
        if fences.feed(line):
            kept.append(line)
            continue
        match = _REFERENCE_DEFINITION_RE.match(line.rstrip("\r\n"))
        if match is None or match.group("label").startswith("^"):
            kept.append(line)
            continue
        url, rest = _split_destination(match.group("body"))
        title, attributes = parse_image_attributes(rest) if rest else (None, None)
        if attributes is None:
            kept.append(line)
            continue

        references[_normalize_label(match.group("label"))] = attributes
        ending = line[len(line.rstrip("\r\n")) :]
        kept.append(" ".join(part for part in (match.group("lead"), url, title) if part) + ending)

    return kept, references


def _rewrite_line(line: str, references: Dict[str, AttributeSet]) -> str:
    spans = _code_spans(line)

    def inline(match: re.Match) -> str:
        if _in_spans(match.start(), spans):
            return match.group(0)
        url, rest = _split_destination(match.group("body"))
        if not rest:
            return match.group(0)
        title, attributes = parse_image_attributes(rest)
        if attributes is None:
            return match.group(0)
        destination = f"{url} {title}" if title else url
        return f"![{match.group('alt')}]({destination})" + _marker(attributes, match.group("marker"))

    def reference(match: re.Match) -> str:
        if _in_spans(match.start(), spans):
            return match.group(0)
        label = match.group("label") or match.group("alt")
        attributes = references.get(_normalize_label(label))
        if attributes is None:
            return match.group(0)
        image = match.group(0)[: len(match.group(0)) - len(match.group("marker") or "")]
        return image + _marker(attributes, match.group("marker"))

    line = _INLINE_IMAGE_RE.sub(inline, line)
    if references:
        line = _REFERENCE_IMAGE_RE.sub(reference, line)
    return line


def extract_image_attributes(text: str) -> str:
    """
    Move attributes out of image destinations into span markers.

    Args:
        text: Markdown source

    Returns:
        Rewritten text, or ``text`` itself (same object) when no image carried
        attributes
    """
    if "![" not in text:
        return text

    lines, references = _collect_references(text.splitlines(keepends=True))
    fences = FenceTracker()
    rewritten: List[str] = []
    changed = bool(references)

    for line in lines:
        if fences.feed(line) or "![" not in line:
            rewritten.append(line)
            continue
        new_line = _rewrite_line(line, references)
        changed = changed or new_line != line
        rewritten.append(new_line)

    if not changed:
        return text
    logger.debug(f"Moved image attributes into markers ({len(references)} reference definition(s))")
    return "".join(rewritten)


def image_attributes_default(text: str, context: dict) -> str:
    """
    Default configuration for image attributes.

    This is the function that should be registered in PREPROCESSORS.
    """
    config = context.get("config") or {}
    if not config.get("attributes", True):
        return text

    try:
        return extract_image_attributes(text)
    except Exception as e:
        logger.error(f"Image attribute extraction failed: {e}", exc_info=True)
        return text
