"""
Result models shared by the locator, the renaming computation and the
public buffer API.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel


class Span(BaseModel):
    """Half-open character range ``[start, end)`` into a document."""
    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


class Fragment(BaseModel):
    """A piece of JavaScript located inside an HTML document.

    ``script``  — inline ``<script>`` body; ``code`` is set.
    ``extern``  — ``<script src=...>``; only ``href`` is set (no code).
    ``event``   — ``on*`` attribute; ``code``, ``attr`` and ``tag`` are set.
    ``href``    — ``<a href="javascript:...">``; ``code`` excludes the prefix.
    """
    kind: Literal["script", "extern", "event", "href"]
    code: Optional[Span] = None
    href: Optional[Span] = None
    attr: Optional[Span] = None
    tag: Optional[Span] = None


class Position(BaseModel):
    offset: int
    line: int     # 0-indexed
    column: int   # 0-indexed


class SourceRange(BaseModel):
    """One token to rename, in the coordinates of the original document.

    ``shorthand`` is set when the token is a shorthand object property
    (``{x}``), where one token is both the property key and a variable
    reference. ``"key"`` means only the property is renamed and
    ``"value"`` means only the variable is; the applier spells such a
    token out as ``key: value`` so the other binding is kept.
    """
    file: str
    start: Position
    end: Position
    shorthand: Optional[Literal["key", "value"]] = None

    @property
    def length(self) -> int:
        return self.end.offset - self.start.offset


RenameGroup = List[SourceRange]
