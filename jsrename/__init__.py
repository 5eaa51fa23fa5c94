"""
jsrename — cross-reference-aware identifier renaming for JavaScript and
JavaScript embedded in HTML.
"""

from jsrename.buffer import JavaScriptBuffer, ProgramCollection
from jsrename.errors import (
    RenameError, ParseError, UnsupportedTypeError, InvariantViolation,
    NestingTooDeepError,
)
from jsrename.models import Position, SourceRange

__version__ = "0.1.0"

__all__ = [
    "JavaScriptBuffer",
    "ProgramCollection",
    "RenameError",
    "ParseError",
    "UnsupportedTypeError",
    "InvariantViolation",
    "NestingTooDeepError",
    "Position",
    "SourceRange",
]
