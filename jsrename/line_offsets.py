"""
Position Index — offset ⇄ (line, column) mapping for a text buffer.

Lines and columns are 0-indexed. ``\\n``, ``\\r`` and ``\\r\\n`` each count
as one line break. Out-of-range inputs clamp to the nearest valid line
instead of failing.
"""

from bisect import bisect_right
from typing import List, Tuple


class LineOffsets:
    """Sorted line-start offsets of a text, queried by binary search."""

    def __init__(self, text: str):
        self.length = len(text)
        self.offsets: List[int] = [0]
        i = 0
        n = len(text)
        while i < n:
            ch = text[i]
            if ch == "\n":
                self.offsets.append(i + 1)
            elif ch == "\r":
                if i + 1 < n and text[i + 1] == "\n":
                    i += 1
                self.offsets.append(i + 1)
            i += 1

    @property
    def line_count(self) -> int:
        return len(self.offsets)

    def line(self, offset: int) -> int:
        """Line containing ``offset``."""
        if offset < 0:
            return 0
        return bisect_right(self.offsets, offset) - 1

    def column(self, offset: int) -> int:
        return self.position(offset)[1]

    def position(self, offset: int) -> Tuple[int, int]:
        """Return ``(line, column)`` for a character offset."""
        line = self.line(offset)
        return line, offset - self.offsets[line]

    def offset(self, line: int, column: int = 0) -> int:
        """Inverse of :meth:`position`. The line number is clamped."""
        if line < 0:
            line = 0
        elif line >= len(self.offsets):
            line = len(self.offsets) - 1
        return self.offsets[line] + column
