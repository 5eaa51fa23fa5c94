"""
JavaScript Rename Agent — MCP Server

Exposes tools to coding agents via the Model Context Protocol:

  1. load_workspace   — scan a workspace and load every .js/.html file
  2. add_source       — add one file (from disk or inline text) to the buffer
  3. classify_token   — what the identifier at a position is (local/global/...)
  4. rename_token     — groups of tokens that rename together with a token
  5. rename_property  — groups of every property with a given name
  6. apply_rename     — rename the accepted groups on disk or in the buffer
  7. list_fragments   — JavaScript fragments located in an HTML file
  8. clear_buffer     — discard everything loaded so far

Positions are 1-indexed line/column pairs, as shown by editors.
"""

from mcp.server.fastmcp import FastMCP
import os
import sys

# Ensure the jsrename package is importable
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from jsrename.buffer import JavaScriptBuffer
from jsrename.errors import RenameError
from jsrename.rename_applier import RenameApplier, select_ranges
from jsrename.workspace import SOURCE_EXTENSIONS, WorkspaceLoader

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("JavaScript Rename Agent")

buffer = JavaScriptBuffer()
loader = None
workspace_root = None

_CLASS_DESCRIPTIONS = {
    "local": "local variable — renaming stays inside its function",
    "global": "global variable — shared by every file with the same global id",
    "property": "property name — occurrences are grouped by inferred object type",
    "label": "statement label — renaming stays inside the labelled statement",
}


def _offset(file: str, line: int, column: int) -> int:
    """Convert a 1-indexed line/column into a buffer offset."""
    return buffer.offset_at(file, max(line - 1, 0), max(column - 1, 0))


def _format_groups(groups, title: str, anchored: bool = False) -> str:
    result = f"## {title}\n\n"
    total = sum(len(g) for g in groups)
    result += f"**{len(groups)} group(s), {total} occurrence(s).**\n\n"
    for i, group in enumerate(groups):
        label = " (contains the selected token)" if i == 0 and anchored else ""
        result += f"### Group {i}{label}\n"
        for r in group:
            text = buffer.source(r.file) or ""
            tail = text[r.start.offset - r.start.column:]
            line_text = tail.splitlines()[0] if tail else ""
            result += f"- `{r.file}:{r.start.line + 1}:{r.start.column + 1}`  `{line_text.strip()[:100]}`\n"
        result += "\n"
    return result


def _parse_accept(accept: str):
    accept = accept.strip().lower()
    if accept in ("", "all"):
        return None
    return [int(part) for part in accept.split(",") if part.strip()]


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Load Workspace
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def load_workspace(workspace_root_path: str, global_id: str = "default") -> str:
    """
    Scans a workspace and loads every JavaScript and HTML file into a fresh
    rename buffer. Files that fail to parse are reported and skipped.

    Args:
        workspace_root_path: Root directory of the web project.
        global_id:           Files loaded together share this global object.
    """
    global buffer, loader, workspace_root

    if not os.path.isdir(workspace_root_path):
        return f"Error: Workspace root not found at {workspace_root_path}"

    try:
        new_buffer = JavaScriptBuffer()
        new_loader = WorkspaceLoader(workspace_root_path, global_id=global_id, buffer=new_buffer)
        new_loader.load()
    except (OSError, RenameError) as e:
        return f"Error loading workspace: {e}"

    buffer, loader, workspace_root = new_buffer, new_loader, workspace_root_path
    s = loader.get_summary()
    result = (
        f"Successfully loaded workspace. {s['files_loaded']} files "
        f"({s['js_files']} .js, {s['html_files']} .html), {s['programs']} programs.\n"
    )
    if s["skipped"]:
        result += f"Skipped {s['skipped']} unreadable, binary or oversized file(s).\n"
    if loader.errors:
        result += f"\n### Parse errors ({len(loader.errors)})\n"
        for path, message in sorted(loader.errors.items()):
            result += f"- `{path}`: {message}\n"
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Add Source
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def add_source(file: str, source: str = "", source_type: str = "", global_id: str = "default") -> str:
    """
    Adds (or replaces) one file in the rename buffer.

    Args:
        file:        Name of the file. Relative to the workspace when loading from disk.
        source:      Source text. If empty, the file is read from disk.
        source_type: "js" or "html". If empty, derived from the file extension.
        global_id:   Files with the same global id share one global object.
    """
    if not source_type:
        source_type = SOURCE_EXTENSIONS.get(os.path.splitext(file)[1].lower(), "js")

    if not source:
        path = os.path.join(workspace_root, file) if workspace_root else file
        if not os.path.exists(path):
            return f"Error: File not found at {path}"
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                source = f.read()
        except (OSError, UnicodeDecodeError) as e:
            return f"Error reading {path}: {e}"

    try:
        buffer.add(file, source, global_id=global_id, type=source_type)
    except RenameError as e:
        return f"Error: {e}"

    programs = [p for p in buffer.programs if p.file == file]
    return f"Added `{file}` as {source_type}: {len(programs)} program(s)."


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — Classify Token
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def classify_token(file: str, line: int, column: int) -> str:
    """
    Tells what kind of identifier is at a position and whether renaming it
    can affect other files.

    Args:
        file:   File name as loaded into the buffer.
        line:   1-indexed line number.
        column: 1-indexed column number.
    """
    try:
        offset = _offset(file, line, column)
    except RenameError as e:
        return f"Error: {e}"

    kind = buffer.classify(file, offset)
    if kind is None:
        return f"No renameable identifier at `{file}:{line}:{column}`."
    scope = "local to this file" if buffer.can_rename_locally(file, offset) else "may affect other files"
    return f"`{file}:{line}:{column}` is a {_CLASS_DESCRIPTIONS[kind]} ({scope})."


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — Rename Token
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def rename_token(file: str, line: int, column: int) -> str:
    """
    Lists the groups of tokens that must be renamed together with the token
    at a position. Group 0 contains the token itself; every further group is
    a separate yes/no decision (e.g. an unrelated object with a property of
    the same name).

    Args:
        file:   File name as loaded into the buffer.
        line:   1-indexed line number.
        column: 1-indexed column number.
    """
    try:
        offset = _offset(file, line, column)
        groups = buffer.rename_token_at(file, offset)
    except RenameError as e:
        return f"Error: {e}"

    if groups is None:
        return f"No renameable identifier at `{file}:{line}:{column}`."
    first = groups[0][0]
    name = (buffer.source(first.file) or "")[first.start.offset:first.end.offset]
    return _format_groups(groups, f"Rename `{name}`", anchored=True)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5 — Rename Property
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def rename_property(name: str) -> str:
    """
    Lists every occurrence of a property name across the buffer, grouped by
    the inferred type of the object it belongs to.

    Args:
        name: The property name.
    """
    try:
        groups = buffer.rename_property_name(name)
    except RenameError as e:
        return f"Error: {e}"
    if groups is None:
        return f"No property `{name}` found."
    return _format_groups(groups, f"Property `{name}`")


# ═══════════════════════════════════════════════════════════════════════
#  Tool 6 — Apply Rename
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def apply_rename(file: str, line: int, column: int, new_name: str,
                 accept: str = "all", dry_run: bool = False) -> str:
    """
    Renames the token at a position together with the accepted groups.

    Files loaded from a workspace are rewritten on disk and reloaded; files
    added as inline text are updated in the buffer only.

    Args:
        file:     File name as loaded into the buffer.
        line:     1-indexed line number.
        column:   1-indexed column number.
        new_name: The new identifier.
        accept:   "all", or comma-separated group indices (group 0 is always renamed).
        dry_run:  If True, report what would change without changing anything.
    """
    try:
        applier = RenameApplier(new_name)
        accepted = _parse_accept(accept)
        offset = _offset(file, line, column)
        groups = buffer.rename_token_at(file, offset)
    except ValueError:
        return f"Error: accept must be 'all' or comma-separated group numbers, got {accept!r}"
    except RenameError as e:
        return f"Error: {e}"

    if groups is None:
        return f"No renameable identifier at `{file}:{line}:{column}`."

    anchor = groups[0][0]
    by_file = {}
    for r in select_ranges(groups, accepted):
        by_file.setdefault(r.file, []).append(r)

    result = f"## Rename to `{new_name}`{' (dry run)' if dry_run else ''}\n\n"
    for fname, ranges in sorted(by_file.items()):
        file_anchor = anchor if fname == anchor.file else None
        path = os.path.join(workspace_root, fname) if workspace_root is not None else None
        on_disk = path is not None and os.path.exists(path)
        try:
            if on_disk:
                applied = applier.apply_to_file(path, ranges, anchor=file_anchor, dry_run=dry_run)
            else:
                applied = applier.apply_to_text(buffer.source(fname), ranges, anchor=file_anchor)
        except (OSError, UnicodeDecodeError) as e:
            return f"Error renaming in `{fname}`: {e}"
        if not dry_run:
            source_type = SOURCE_EXTENSIONS.get(os.path.splitext(fname)[1].lower(), "js")
            global_id = next((p.global_id for p in buffer.programs if p.file == fname), "default")
            try:
                buffer.add(fname, applied.text, global_id=global_id, type=source_type)
            except RenameError as e:
                return f"Error: renaming produced invalid source in `{fname}`: {e}"
        where = "on disk" if on_disk else "in buffer"
        result += f"- `{fname}`: {applied.applied} occurrence(s) {where}"
        if applied.skipped:
            result += f", {len(applied.skipped)} overlapping skipped"
        result += "\n"
        if applied.selection is not None:
            result += (f"  Renamed token now at `{fname}:{applied.selection.line + 1}:"
                       f"{applied.selection.column + 1}`\n")
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 7 — List Fragments
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_fragments(file: str) -> str:
    """
    Lists the JavaScript found in an HTML file: inline scripts, external
    script references, event handler attributes and javascript: URLs.

    Args:
        file: HTML file name as loaded into the buffer.
    """
    text = buffer.source(file)
    if text is None:
        return f"Error: `{file}` is not loaded. Call load_workspace or add_source first."

    fragments = buffer.fragments(file)
    if not fragments:
        return f"No JavaScript fragments in `{file}`."

    result = f"## Fragments in `{file}`\n\n| Kind | Line | Code |\n|---|---|---|\n"
    for frag in fragments:
        span = frag.code if frag.code is not None else frag.href
        line, _ = buffer.position_of(file, span.start)
        snippet = " ".join(span.slice(text).split())
        short = snippet[:60] + "..." if len(snippet) > 60 else snippet
        result += f"| {frag.kind} | {line + 1} | `{short}` |\n"
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 8 — Clear Buffer
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def clear_buffer() -> str:
    """Discards every file loaded into the rename buffer."""
    global loader
    count = len(buffer.files)
    buffer.clear()
    loader = None
    return f"Cleared {count} file(s) from the buffer."


if __name__ == "__main__":
    tools = mcp._tool_manager._tools.keys() if hasattr(mcp, "_tool_manager") else []
    print(f"DEBUG: JavaScript Rename Agent starting with {len(tools)} tools: {list(tools)}", file=sys.stderr)
    mcp.run()
