"""
Renaming computation — which tokens must change together with the one
under the cursor.

Dispatch on the token's classification:
  • label     — the labelled statement and the break/continue statements
                that refer to it, never crossing a function boundary
  • local     — scope walk from the declaring scope, pruned where a nested
                scope shadows the name
  • global    — corpus walk over programs sharing the globalId; also picks
                up ``window.name``-style accesses on the global object type
  • property  — corpus walk bucketed by the inferred type of the base
                expression; one group per bucket

Groups are lists of AST nodes until :func:`to_ranges` turns them into
document-coordinate SourceRanges and :func:`reorder_groups_starting_at`
sorts them relative to the query location.
"""

import functools
import logging
from typing import Dict, List, Mapping, Optional

from jsrename.identifiers import LABEL, PROPERTY, VARIABLE, classify_id
from jsrename.js_ast import (
    BreakStatement, CatchClause, ContinueStatement, Function,
    FunctionDeclaration, Identifier, LabeledStatement, Literal, Node,
    Program, ProgramCollection, Property, Scope, find_node, get_enclosing_function,
    get_program, get_var_decl_scope, walk,
)
from jsrename.line_offsets import LineOffsets
from jsrename.models import Position, RenameGroup, SourceRange
from jsrename.type_inference import infer_types

logger = logging.getLogger(__name__)

NodeGroup = List[Node]


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch
# ═══════════════════════════════════════════════════════════════════════

def compute_renaming(collection: ProgramCollection, file: str, offset: int) -> Optional[List[NodeGroup]]:
    """Node groups for the token at ``offset`` in ``file``, or None."""
    node = find_node(collection, file, offset)
    if node is None:
        return None
    clazz = classify_id(node)
    if clazz is None:
        return None

    if clazz.kind == VARIABLE:
        scope = get_var_decl_scope(node)
        if scope is None:
            return None
        if isinstance(scope, Program):
            infer_types(collection)
            return compute_global_variable_renaming(collection, clazz.name, scope.global_id)
        return compute_local_variable_renaming(scope, clazz.name)

    if clazz.kind == LABEL:
        return compute_label_renaming(node)

    if clazz.kind == PROPERTY:
        infer_types(collection)
        if clazz.base is None or clazz.base.type_node is None:
            return None
        global_id = get_program(node).global_id
        if clazz.base.type_node.rep() is collection.global_type(global_id):
            return compute_global_variable_renaming(collection, clazz.name, global_id)
        return compute_property_renaming(collection, clazz.name)

    return None


# ═══════════════════════════════════════════════════════════════════════
#  Renaming modes
# ═══════════════════════════════════════════════════════════════════════

def compute_property_renaming(collection: ProgramCollection, name: str) -> List[NodeGroup]:
    """Group every ``.name`` access/definition by its base expression's type.

    Accesses on a global object type are left out; those rename as globals.
    """
    global_ids = {node.rep().id for node in collection.globals.values()}
    buckets: Dict[object, NodeGroup] = {}
    for program in collection:
        for node in walk(program):
            clazz = classify_id(node) if isinstance(node, (Identifier, Literal)) else None
            if clazz is None or clazz.kind != PROPERTY or clazz.name != name:
                continue
            if clazz.base.type_node is None:
                key = ("untyped", id(clazz.base))
            else:
                key = clazz.base.type_node.rep().id
                if key in global_ids:
                    continue
            buckets.setdefault(key, []).append(node)
    return list(buckets.values())


def compute_global_variable_renaming(collection: ProgramCollection, name: str,
                                     global_id: str = "default") -> List[NodeGroup]:
    """Direct references to global ``name`` plus accesses through the global object."""
    ids: NodeGroup = []
    global_type = collection.global_type(global_id)
    for program in collection:
        if program.global_id != global_id:
            continue
        stack = [(program, False)]
        while stack:
            node, shadowed = stack.pop()
            if isinstance(node, (Identifier, Literal)):
                clazz = classify_id(node)
                if clazz is not None and clazz.name == name:
                    if clazz.kind == VARIABLE and not shadowed:
                        ids.append(node)
                    elif (clazz.kind == PROPERTY and clazz.base.type_node is not None
                          and clazz.base.type_node.rep() is global_type):
                        ids.append(node)
            elif isinstance(node, (Function, CatchClause)) and name in node.env:
                if (not shadowed and isinstance(node, FunctionDeclaration)
                        and node.id is not None and node.id.name == name):
                    ids.append(node.id)  # names a binding of the outer scope
                shadowed = True
            stack.extend((child, shadowed) for child in reversed(list(node.children())))
    return [ids]


def compute_local_variable_renaming(scope: Scope, name: str) -> List[NodeGroup]:
    """References to ``name`` declared in ``scope``; ``with`` is ignored."""
    ids: NodeGroup = []
    if isinstance(scope, FunctionDeclaration):
        # the declaration's own name is not part of its scope
        roots = list(scope.params) + ([scope.body] if scope.body is not None else [])
    else:
        roots = [scope]

    stack: List[Node] = list(reversed(roots))
    while stack:
        node = stack.pop()
        if isinstance(node, Identifier):
            if node.name == name:
                clazz = classify_id(node)
                if clazz is not None and clazz.kind == VARIABLE:
                    ids.append(node)
        elif isinstance(node, (Function, CatchClause)) and node is not scope and name in node.env:
            if isinstance(node, FunctionDeclaration) and node.id is not None and node.id.name == name:
                ids.append(node.id)
            continue
        stack.extend(reversed(list(node.children())))
    return [ids]


def get_label_decl(node: Identifier) -> Optional[LabeledStatement]:
    name = node.name
    current: Optional[Node] = node
    while current is not None:
        if isinstance(current, LabeledStatement) and current.label is not None and current.label.name == name:
            return current
        current = current.parent
        if isinstance(current, Function):
            return None
    return None


def compute_label_renaming(node: Identifier) -> List[NodeGroup]:
    name = node.name
    decl = get_label_decl(node)
    if decl is None:
        # undeclared label: collect dangling references in the function
        result: NodeGroup = []
        search = get_enclosing_function(node)
        stack = list(reversed(list(search.children()))) if isinstance(search, Function) else [search]
    else:
        result = [decl.label]
        stack = [decl.body] if decl.body is not None else []

    while stack:
        current = stack.pop()
        if isinstance(current, LabeledStatement):
            if current.label is not None and current.label.name == name:
                continue  # shadowed
        elif isinstance(current, Function):
            continue
        elif isinstance(current, (BreakStatement, ContinueStatement)):
            if current.label is not None and current.label.name == name:
                result.append(current.label)
        stack.extend(reversed(list(current.children())))
    return [result]


# ═══════════════════════════════════════════════════════════════════════
#  Ranges and ordering
# ═══════════════════════════════════════════════════════════════════════

def identifier_range(node: Node, line_index: Mapping[str, LineOffsets]) -> SourceRange:
    """Document-coordinate range of an identifier (string literals exclude quotes)."""
    program = get_program(node)
    delta = 1 if isinstance(node, Literal) else 0
    start = program.offset.start + node.start + delta
    end = program.offset.start + node.end - delta
    lines = line_index[program.file]
    start_line, start_column = lines.position(start)
    end_line, end_column = lines.position(end)
    shorthand = None
    parent = node.parent
    if isinstance(parent, Property) and parent.shorthand:
        shorthand = "key" if parent.key is node else "value"
    return SourceRange(
        file=program.file,
        start=Position(offset=start, line=start_line, column=start_column),
        end=Position(offset=end, line=end_line, column=end_column),
        shorthand=shorthand,
    )


def to_ranges(groups: List[NodeGroup], line_index: Mapping[str, LineOffsets]) -> List[RenameGroup]:
    """Convert node groups to range groups, dropping duplicate ranges.

    A shorthand token reached both as key and as value renames as a whole.
    """
    result = []
    for group in groups:
        seen: Dict[tuple, int] = {}
        ranges = []
        for node in group:
            r = identifier_range(node, line_index)
            key = (r.file, r.start.offset, r.end.offset)
            if key in seen:
                index = seen[key]
                if ranges[index].shorthand != r.shorthand:
                    ranges[index] = ranges[index].model_copy(update={"shorthand": None})
                continue
            seen[key] = len(ranges)
            ranges.append(r)
        if ranges:
            result.append(ranges)
    return result


def reorder_groups_starting_at(groups: List[RenameGroup], file: Optional[str],
                               offset: Optional[int]) -> List[RenameGroup]:
    """Sort ranges and groups so the search proceeds from ``file``/``offset`` onward."""

    def compare(x: SourceRange, y: SourceRange) -> int:
        if x.file != y.file:
            if x.file == file:
                return -1
            if y.file == file:
                return 1
            return -1 if x.file < y.file else 1
        if x.file == file and offset is not None:
            if x.end.offset < offset <= y.end.offset:
                return 1
            if y.end.offset < offset <= x.end.offset:
                return -1
        return x.start.offset - y.start.offset

    key = functools.cmp_to_key(compare)
    for group in groups:
        group.sort(key=key)
    groups.sort(key=lambda g: key(g[0]))
    return groups
