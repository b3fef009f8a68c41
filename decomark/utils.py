"""Small text helpers shared by the preprocessors."""

from __future__ import annotations

import re
from typing import Optional

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


class FenceTracker:
    """
    Track whether lines fed in order sit inside a fenced code block.

    ``feed(line)`` returns True for fence delimiters and for every line between
    them, so callers can copy those lines through untouched.
    """

    def __init__(self) -> None:
        self._fence: Optional[str] = None

    @property
    def inside(self) -> bool:
        return self._fence is not None

    def feed(self, line: str) -> bool:
        match = _FENCE_RE.match(line)
        if self._fence is None:
            if match and not (match.group(1)[0] == "`" and "`" in line[match.end():]):
                self._fence = match.group(1)
                return True
            return False

        if match and match.group(1)[0] == self._fence[0] and len(match.group(1)) >= len(self._fence):
            if not line[match.end():].strip():
                self._fence = None
        return True
