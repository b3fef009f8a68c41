# decomark/preprocessors/table_normalizer.py
"""
Preprocessor that rewrites non-standard table source into GFM tables.

Two independent passes:

Relaxed tables (missing separator):
    A | B          A | B
    1 | 2    →     --- | ---
                   1 | 2

Headerless tables (missing header):
    |---|---|      | | |
    | a | b |  →   |---|---|
                   | a | b |

Each line is classified as blank, horizontal rule, separator row, candidate
row or other. Both passes return their input object unchanged when nothing was
rewritten, so callers can use ``result is text`` as a cheap "no change" test.
"""

import logging
from typing import List, Optional

from ..utils import FenceTracker

logger = logging.getLogger(__name__)

BLANK = "blank"
RULE = "rule"
SEPARATOR = "separator"
ROW = "row"
OTHER = "other"

_SEPARATOR_CHARS = set("-|:+ \t")


def is_horizontal_rule(line: str) -> bool:
    stripped = line.strip()
    if "|" in stripped or stripped.count("-") < 3:
        return False
    return all(ch == "-" or ch.isspace() for ch in stripped)


def is_separator_row(line: str) -> bool:
    stripped = line.strip()
    if "-" not in stripped or "|" not in stripped:
        return False
    if any(ch not in _SEPARATOR_CHARS for ch in stripped):
        return False
    return not is_horizontal_rule(stripped)


def is_candidate_row(line: str) -> bool:
    return "|" in line and any(ch != "|" and ch != "-" and not ch.isspace() for ch in line)


def is_pipe_only_row(line: str) -> bool:
    """A row of blank cells, e.g. the dummy header written by the headerless pass."""
    stripped = line.strip()
    return "|" in stripped and not stripped.replace("|", "").strip()


def classify_line(line: str) -> str:
    """Classify one line (without its newline) for the table passes."""
    if not line.strip():
        return BLANK
    if is_horizontal_rule(line):
        return RULE
    if is_separator_row(line):
        return SEPARATOR
    if is_candidate_row(line) and count_columns(line) > 0:
        return ROW
    return OTHER


def starts_with_pipe(line: str) -> bool:
    return line.lstrip(" \t").startswith("|")


def count_columns(line: str) -> int:
    """
    Count columns from the pipe count.

    Rows starting with a pipe have one column fewer than their pipes, rows
    without one have one more. A non-positive result means "not a row".
    """
    pipes = line.count("|")
    if not pipes:
        return -1
    return pipes - 1 if starts_with_pipe(line) else pipes + 1


def separator_row(columns: int, leading_pipe: bool) -> str:
    if leading_pipe:
        return "| " + " | ".join(["---"] * columns) + " |"
    return " | ".join(["---"] * columns)


def dummy_header_row(columns: int) -> str:
    # Always bordered: markdown-it cannot parse an unbordered row of blank cells
    return "|" + " |" * columns


def _split_lines(text: str) -> List[str]:
    return text.split("\n")


def insert_missing_separators(text: str) -> str:
    """
    Insert a separator row under runs of table rows that lack one.

    Consecutive candidate rows with the same column count are accumulated.
    When the run ends (blank line, rule, other line, or a column count change)
    and holds at least two rows, a separator matching the first row's width
    and pipe style is written after the first row. Rows that follow a real
    separator belong to an existing table and are copied through.

    Args:
        text: Markdown source

    Returns:
        Rewritten text, or ``text`` itself when nothing changed
    """
    lines = _split_lines(text)
    output: List[str] = []
    pending: List[str] = []
    pending_columns = 0
    in_table = False
    inserted = 0
    fences = FenceTracker()

    def flush(synthesize: bool) -> None:
        nonlocal inserted
        if synthesize and len(pending) >= 2:
            output.append(pending[0])
            output.append(separator_row(pending_columns, starts_with_pipe(pending[0])))
            output.extend(pending[1:])
            inserted += 1
        else:
            output.extend(pending)
        pending.clear()

    for line in lines:
        if fences.feed(line):
            flush(True)
            in_table = False
            output.append(line)
            continue

        kind = classify_line(line)
        if kind == ROW:
            if in_table:
                output.append(line)
                continue
            columns = count_columns(line)
            if pending and columns != pending_columns:
                flush(True)
            pending.append(line)
            pending_columns = columns
            continue

        if kind == SEPARATOR:
            flush(False)
            in_table = True
            output.append(line)
            continue

        flush(True)
        in_table = False
        output.append(line)

    flush(True)

    if not inserted:
        return text
    logger.debug(f"Inserted {inserted} separator row(s) into relaxed tables")
    return "\n".join(output)


def _neighbour(lines: List[str], index: int, step: int) -> Optional[str]:
    index += step
    while 0 <= index < len(lines):
        if lines[index].strip():
            return lines[index]
        index += step
    return None


def insert_missing_headers(text: str) -> str:
    """
    Insert a blank header row above separator rows that have no header.

    A separator whose previous non-blank line is not a table row, but whose
    next non-blank line is, gets a row of empty cells placed directly above it.

    Args:
        text: Markdown source

    Returns:
        Rewritten text, or ``text`` itself when nothing changed
    """
    lines = _split_lines(text)
    output: List[str] = []
    inserted = 0
    fences = FenceTracker()

    for index, line in enumerate(lines):
        if fences.feed(line) or classify_line(line) != SEPARATOR:
            output.append(line)
            continue

        previous = _neighbour(lines, index, -1)
        following = _neighbour(lines, index, 1)
        previous_is_row = previous is not None and (
            classify_line(previous) == ROW or is_pipe_only_row(previous)
        )
        if not previous_is_row and following is not None and classify_line(following) == ROW:
            output.append(dummy_header_row(count_columns(line)))
            inserted += 1
        output.append(line)

    if not inserted:
        return text
    logger.debug(f"Inserted {inserted} header row(s) into headerless tables")
    return "\n".join(output)


def normalize_tables(text: str, relaxed: bool = True, headerless: bool = True) -> str:
    """Run the relaxed-table pass, then the headerless-table pass."""
    result = text
    if relaxed:
        result = insert_missing_separators(result)
    if headerless:
        result = insert_missing_headers(result)
    return result


def table_normalizer_default(text: str, context: dict) -> str:
    """
    Default configuration for the table normalizer.

    This is the function that should be registered in PREPROCESSORS.
    """
    config = context.get("config") or {}
    try:
        return normalize_tables(
            text,
            relaxed=config.get("relaxed_tables", True),
            headerless=config.get("headerless_tables", True),
        )
    except Exception as e:
        logger.error(f"Table normalization failed: {e}", exc_info=True)
        return text
