from __future__ import annotations

from typing import Dict, Optional, TypedDict

from bs4 import BeautifulSoup, NavigableString, Tag
from django.utils.text import slugify

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


class HeadingNode(TypedDict):
    level: int
    id: str
    title: str
    title_html: str
    children: list["HeadingNode"]


def _heading_contents(heading: Tag) -> tuple[str, str]:
    """Return the plain text and inner HTML used for a heading's TOC entry."""
    text = heading.get_text(separator=" ", strip=True)
    html = "".join(str(child) for child in heading.contents).strip()
    if not html:
        html = text
    return text, html


def _unique_slug(base: str, used: Dict[str, int]) -> str:
    base = base or "section"
    count = used.get(base, 0) + 1
    used[base] = count
    return base if count == 1 else f"{base}-{count}"


def extract_toc(
    soup: BeautifulSoup,
    min_level: int = 1,
    max_level: int = 6,
    assign_ids: bool = True,
) -> list[HeadingNode]:
    """
    Build a hierarchical list of headings for a table of contents.

    Headings without an id get one from their text (``slugify``), made unique
    with ``-2``, ``-3`` suffixes, so TOC links always have a target.

    Args:
        soup: Parsed document; heading ids are written into it
        min_level: Shallowest heading level to include
        max_level: Deepest heading level to include
        assign_ids: Give headings without an id a slug id

    Returns:
        List of HeadingNode dictionaries with nested ``children``
    """
    used: Dict[str, int] = {}
    for heading in soup.find_all(_HEADING_TAGS):
        if heading.get("id"):
            used[heading["id"]] = used.get(heading["id"], 0) + 1

    toc: list[HeadingNode] = []
    stack: list[HeadingNode] = []
    for heading in soup.find_all(_HEADING_TAGS):
        level = int(heading.name[1])  # "h2" -> 2
        if level < min_level or level > max_level:
            continue
        text, html_contents = _heading_contents(heading)
        if not text:
            continue

        identifier = heading.get("id")
        if not identifier:
            identifier = _unique_slug(slugify(text), used)
            if assign_ids:
                heading["id"] = identifier

        node: HeadingNode = {
            "level": level,
            "id": identifier,
            "title": text,
            "title_html": html_contents,
            "children": [],
        }

        while stack and stack[-1]["level"] >= level:
            stack.pop()

        if stack:
            stack[-1]["children"].append(node)
        else:
            toc.append(node)

        stack.append(node)

    return toc


def build_toc_tag(soup: BeautifulSoup, nodes: list[HeadingNode], nav_class: Optional[str] = "toc") -> Tag:
    """Render HeadingNodes as ``<nav><ul><li><a href="#id">...</a></li></ul></nav>``."""

    def build_list(items: list[HeadingNode]) -> Tag:
        ul = soup.new_tag("ul")
        for item in items:
            li = soup.new_tag("li")
            anchor = soup.new_tag("a", href=f"#{item['id']}")
            fragment = BeautifulSoup(item["title_html"], "html.parser")
            for child in list(fragment.contents):
                anchor.append(child.extract() if isinstance(child, Tag) else NavigableString(str(child)))
            li.append(anchor)
            if item["children"]:
                li.append(build_list(item["children"]))
            ul.append(li)
        return ul

    nav = soup.new_tag("nav")
    if nav_class:
        nav["class"] = [nav_class]
    nav.append(build_list(nodes))
    return nav
