"""
JavaScriptBuffer — the public API of the rename engine.

Files are identified by caller-chosen names and addressed by character
offsets. HTML input is split into its script fragments first; each
fragment becomes its own Program anchored in the HTML document, so every
range the buffer reports is in the coordinates of the file the caller
added.

Typical use::

    buf = JavaScriptBuffer()
    buf.add("app.js", source)
    buf.add("index.html", html, type="html")
    groups = buf.rename_token_at("app.js", offset)
"""

import logging
from typing import Dict, List, Optional

from jsrename.errors import ParseError, RenameError, UnsupportedTypeError
from jsrename.html_locator import locate_scripts
from jsrename.identifiers import LABEL, PROPERTY, VARIABLE, classify_id
from jsrename.js_ast import (
    Program, ProgramCollection, ProgramOffset, find_node, get_var_decl_scope,
    prepare,
)
from jsrename.js_parser import parse_script
from jsrename.line_offsets import LineOffsets
from jsrename.models import Fragment, RenameGroup
from jsrename.renaming import (
    compute_property_renaming, compute_renaming, reorder_groups_starting_at,
    to_ranges,
)
from jsrename.type_inference import infer_types

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("js", "html")

__all__ = ["JavaScriptBuffer", "ProgramCollection", "SOURCE_TYPES"]


class JavaScriptBuffer:
    """A set of JavaScript/HTML files analysed together for renaming.

    Not thread-safe: one buffer must not be used from several threads
    without external locking.
    """

    def __init__(self):
        self.asts = ProgramCollection()
        self._lines: Dict[str, LineOffsets] = {}
        self._sources: Dict[str, str] = {}
        self._fragments: Dict[str, List[Fragment]] = {}

    # ═══════════════════════════════════════════════════════════════
    #  Loading
    # ═══════════════════════════════════════════════════════════════

    def add(self, file: str, source_code: str, global_id: str = "default", type: str = "js"):
        """Parse ``source_code`` and add it to the buffer under ``file``.

        Files with the same ``global_id`` share one global object. Adding a
        file name again replaces its previous contents.

        Raises:
            UnsupportedTypeError: ``type`` is neither ``js`` nor ``html``.
            ParseError: the source (or one of its fragments) is not valid
                JavaScript; the position is in document coordinates.
        """
        if type not in SOURCE_TYPES:
            raise UnsupportedTypeError(type)

        lines = LineOffsets(source_code)
        global_id = global_id or "default"

        if type == "html":
            fragments = locate_scripts(source_code)
            programs = []
            for frag in fragments:
                if frag.kind == "extern":
                    continue  # externs have no code
                line, column = lines.position(frag.code.start)
                offset = ProgramOffset(frag.code.start, frag.code.end, line, column)
                programs.append(self._make_ast(file, frag.code.slice(source_code), offset, global_id, lines))
        else:
            fragments = []
            offset = ProgramOffset(0, len(source_code), 0, 0)
            programs = [self._make_ast(file, source_code, offset, global_id, lines)]

        if file in self._sources:
            logger.info("Replacing %s in buffer", file)
            self.asts.programs = [p for p in self.asts.programs if p.file != file]
        for program in programs:
            self.asts.add(program)
        self._lines[file] = lines
        self._sources[file] = source_code
        self._fragments[file] = fragments
        logger.info("Added %s (%s, global_id=%s): %d program(s)", file, type, global_id, len(programs))

    @staticmethod
    def _make_ast(file: str, code: str, offset: ProgramOffset, global_id: str,
                  lines: LineOffsets) -> Program:
        try:
            program = parse_script(code)
        except ParseError as e:
            absolute = offset.start + (e.offset or 0)
            line, column = lines.position(absolute)
            raise ParseError(e.message, line=line, column=column, offset=absolute, file=file) from e
        except RecursionError as e:
            raise ParseError("Expressions nest too deeply", line=offset.line, column=offset.column,
                             offset=offset.start, file=file) from e
        program.file = file
        program.global_id = global_id
        program.offset = offset
        return prepare(program)

    def clear(self):
        """Removes all contents of the buffer."""
        self.asts.clear()
        self._lines.clear()
        self._sources.clear()
        self._fragments.clear()

    # ═══════════════════════════════════════════════════════════════
    #  Queries
    # ═══════════════════════════════════════════════════════════════

    def classify(self, file: str, offset: int) -> Optional[str]:
        """``local``, ``global``, ``property``, ``label`` or None.

        For non-None results the identifier at ``offset`` can be renamed.
        """
        node = find_node(self.asts, file, offset)
        if node is None:
            return None
        clazz = classify_id(node)
        if clazz is None:
            return None
        if clazz.kind == VARIABLE:
            scope = get_var_decl_scope(node)
            return "global" if isinstance(scope, Program) else "local"
        if clazz.kind == PROPERTY:
            return "property"
        if clazz.kind == LABEL:
            return "label"
        return None

    def can_rename_locally(self, file: str, offset: int) -> bool:
        """True if renaming the identifier at ``offset`` does not affect other files."""
        return self.classify(file, offset) in ("local", "label")

    def rename_token_at(self, file: str, offset: int) -> Optional[List[RenameGroup]]:
        """Groups of ranges to rename with the token at ``offset``.

        The first group contains the token itself; ranges and groups are
        ordered from the query location onward.
        """
        groups = compute_renaming(self.asts, file, offset)
        if groups is None:
            return None
        ranges = to_ranges(groups, self._lines)
        if not ranges:
            return None
        reorder_groups_starting_at(ranges, file, offset)
        logger.info("Rename at %s:%d: %d group(s), %d range(s)",
                    file, offset, len(ranges), sum(len(g) for g in ranges))
        return ranges

    def rename_property_name(self, name: str) -> Optional[List[RenameGroup]]:
        """Groups of every property named ``name``, one group per inferred owner type."""
        infer_types(self.asts)
        ranges = to_ranges(compute_property_renaming(self.asts, name), self._lines)
        if not ranges:
            return None
        reorder_groups_starting_at(ranges, None, None)
        logger.info("Rename property %r: %d group(s)", name, len(ranges))
        return ranges

    def infer_types(self):
        """Run type inference over the whole buffer."""
        return infer_types(self.asts)

    # ═══════════════════════════════════════════════════════════════
    #  Positions and contents
    # ═══════════════════════════════════════════════════════════════

    def offset_at(self, file: str, line: int, column: int) -> int:
        """Character offset of a 0-indexed ``line``/``column`` in ``file``."""
        lines = self._lines.get(file)
        if lines is None:
            raise RenameError(f"File not loaded: {file}")
        return lines.offset(line, column)

    def position_of(self, file: str, offset: int):
        """0-indexed ``(line, column)`` of an offset in ``file``."""
        lines = self._lines.get(file)
        if lines is None:
            raise RenameError(f"File not loaded: {file}")
        return lines.position(offset)

    def source(self, file: str) -> Optional[str]:
        return self._sources.get(file)

    def fragments(self, file: str) -> List[Fragment]:
        """Script fragments located in an HTML file (empty for JavaScript)."""
        return list(self._fragments.get(file, []))

    @property
    def files(self) -> List[str]:
        return list(self._sources)

    @property
    def programs(self) -> List[Program]:
        return list(self.asts.programs)
