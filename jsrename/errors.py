"""
Error kinds raised by the rename engine.

Malformed input is an error; "no rename applies here" is not. Lookups that
land on a keyword, an undeclared label or an unresolvable receiver return
``None`` instead of raising.
"""

from typing import Optional


class RenameError(Exception):
    """Base class for all jsrename errors."""


class ParseError(RenameError):
    """The JavaScript parser rejected the source text.

    ``line`` and ``column`` are 0-indexed and, for fragments located inside
    an HTML document, expressed in document coordinates.
    """

    def __init__(self, message: str, line: Optional[int] = None,
                 column: Optional[int] = None, offset: Optional[int] = None,
                 file: Optional[str] = None):
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        self.file = file
        super().__init__(str(self))

    def __str__(self):
        where = ""
        if self.file is not None:
            where += f"{self.file}:"
        if self.line is not None:
            where += f"{self.line + 1}:{(self.column or 0) + 1}: "
        elif where:
            where += " "
        return f"{where}{self.message}"


class UnsupportedTypeError(RenameError):
    """``add`` was called with a source type other than ``js`` or ``html``."""

    def __init__(self, source_type: str):
        self.source_type = source_type
        super().__init__(f"Unrecognised type: {source_type}. Use html or js.")


class InvariantViolation(RenameError):
    """Programmer error: an internal assumption about the AST did not hold."""


class NestingTooDeepError(RenameError):
    """The source nests deeper than the analysis passes can follow."""
