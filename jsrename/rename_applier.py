import os
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from jsrename.errors import RenameError
from jsrename.models import Position, RenameGroup, SourceRange

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[^\W\d][\w$]*$|^\$[\w$]*$", re.UNICODE)

RESERVED_WORDS = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends", "false",
    "finally", "for", "function", "if", "import", "in", "instanceof", "new",
    "null", "return", "super", "switch", "this", "throw", "true", "try",
    "typeof", "var", "void", "while", "with",
})


def is_valid_identifier(name: str) -> bool:
    return bool(_IDENTIFIER.match(name)) and name not in RESERVED_WORDS


def select_ranges(groups: List[RenameGroup], accepted: Optional[Iterable[int]] = None) -> List[SourceRange]:
    """Ranges of the accepted groups. Group 0 (the selected token) is always accepted."""
    if accepted is None:
        indices = set(range(len(groups)))
    else:
        indices = set(accepted)
        indices.add(0)
    ranges = []
    for i, group in enumerate(groups):
        if i in indices:
            ranges.extend(group)
    return ranges


@dataclass
class AppliedRename:
    text: str
    applied: int = 0
    skipped: List[SourceRange] = field(default_factory=list)
    # Where the originally selected token sits after the edit
    selection: Optional[Position] = None


class RenameApplier:
    """
    Applies accepted rename groups to source text.
    Edits are applied back-to-front so earlier offsets stay valid.
    """

    def __init__(self, new_name: str):
        if not is_valid_identifier(new_name):
            raise RenameError(f"Not a valid JavaScript identifier: {new_name!r}")
        self.new_name = new_name

    def replacement(self, r: SourceRange, old: str) -> str:
        """Text written over ``r``, whose current spelling is ``old``.

        A shorthand property is spelled out so the side that is not being
        renamed keeps its name: ``{x}`` becomes ``{x: y}`` when the variable
        is renamed and ``{y: x}`` when the property is.
        """
        if r.shorthand == "key":
            return f"{self.new_name}: {old}"
        if r.shorthand == "value":
            return f"{old}: {self.new_name}"
        return self.new_name

    def apply_to_text(self, text: str, ranges: List[SourceRange],
                      anchor: Optional[SourceRange] = None) -> AppliedRename:
        """Replace every range with the new name. Overlapping ranges are skipped."""
        sorted_ranges = sorted(_merge_duplicates(ranges), key=lambda r: r.start.offset, reverse=True)
        result = AppliedRename(text=text)
        last_start = float("inf")
        applied: List[Tuple[SourceRange, str]] = []
        for r in sorted_ranges:
            if r.end.offset > last_start:
                logger.warning("Overlapping rename in %s at offset %d-%d. Skipping.",
                               r.file, r.start.offset, r.end.offset)
                result.skipped.append(r)
                continue
            new_text = self.replacement(r, text[r.start.offset:r.end.offset])
            text = text[:r.start.offset] + new_text + text[r.end.offset:]
            last_start = r.start.offset
            applied.append((r, new_text))
        result.text = text
        result.applied = len(applied)
        if anchor is not None:
            result.selection = self._shift_anchor(anchor, applied)
        return result

    def _shift_anchor(self, anchor: SourceRange, applied: List[Tuple[SourceRange, str]]) -> Position:
        offset = anchor.start.offset
        column = anchor.start.column
        for r, new_text in applied:
            if r.file != anchor.file or r.start.offset > anchor.start.offset:
                continue
            if r.start.offset == anchor.start.offset:
                # a renamed shorthand value sits after "key: "
                if r.shorthand == "value":
                    shift = len(new_text) - len(self.new_name)
                    offset += shift
                    column += shift
                continue
            delta = len(new_text) - r.length
            offset += delta
            if r.start.line == anchor.start.line:
                column += delta
        return Position(offset=offset, line=anchor.start.line, column=column)

    def apply_to_files(self, groups: List[RenameGroup], accepted: Optional[Iterable[int]] = None,
                       root: Optional[str] = None, dry_run: bool = False) -> Dict[str, int]:
        """
        Rename in the files named by the ranges (relative to ``root``).
        Returns a summary of changes: {file: number_of_ranges_renamed}.
        """
        by_file: Dict[str, List[SourceRange]] = {}
        for r in select_ranges(groups, accepted):
            by_file.setdefault(r.file, []).append(r)

        summary = {}
        for file, ranges in by_file.items():
            path = os.path.join(root, file) if root else file
            try:
                summary[file] = self.apply_to_file(path, ranges, dry_run=dry_run).applied
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Failed to rename in %s: %s", path, e)
                summary[file] = 0
        return summary

    def apply_to_file(self, path: str, ranges: List[SourceRange],
                      anchor: Optional[SourceRange] = None, dry_run: bool = False) -> AppliedRename:
        """Rename ``ranges`` in the file at ``path``; in dry-run mode nothing is written."""
        if not os.path.exists(path):
            raise FileNotFoundError(f"File not found: {path}")

        # newline="" keeps \r\n intact so character offsets line up
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()

        result = self.apply_to_text(content, ranges, anchor=anchor)

        if dry_run:
            logger.info("[Dry Run] Would rename %d occurrence(s) in %s", result.applied, path)
        else:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(result.text)
            logger.info("Renamed %d occurrence(s) in %s", result.applied, path)
        return result


def _merge_duplicates(ranges: List[SourceRange]) -> List[SourceRange]:
    """One range per token; a shorthand renamed as both key and value renames as a whole."""
    merged: Dict[tuple, SourceRange] = {}
    for r in ranges:
        key = (r.file, r.start.offset, r.end.offset)
        seen = merged.get(key)
        if seen is None:
            merged[key] = r
        elif seen.shorthand != r.shorthand:
            merged[key] = seen.model_copy(update={"shorthand": None})
    return list(merged.values())
