"""
JavaScript AST — a closed, ESTree-shaped node model plus the preparation
passes run on every freshly parsed program.

Every node kind lists its child fields explicitly (``_child_fields``, in
source order), so traversal never mistakes derived data for children.
Ranges are ``[start, end)`` character offsets relative to the program's
own source text; ``Program.offset`` anchors them in the original document.

Preparation:
  • parent injection  — every node gets a non-owning ``parent`` link
  • environments      — Program, functions and catch clauses get ``env``,
                        a name → declaring-node map (``var`` semantics;
                        block scoping is not modeled)

Queries:
  • find_node            — deepest node enclosing an absolute offset
  • get_var_decl_scope   — nearest scope declaring an identifier's name
  • get_enclosing_function
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Sequence, Tuple


# ═══════════════════════════════════════════════════════════════════════
#  Base node
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Node:
    start: int
    end: int
    parent: Optional["Node"] = field(default=None, init=False, repr=False)
    # Set by type inference; see jsrename.type_inference.
    type_node: Any = field(default=None, init=False, repr=False)

    type: ClassVar[str] = "Node"
    _child_fields: ClassVar[Tuple[str, ...]] = ()

    @property
    def range(self) -> Tuple[int, int]:
        return self.start, self.end

    def contains(self, offset: int) -> bool:
        return self.start <= offset <= self.end

    def children(self) -> Iterator["Node"]:
        for name in self._child_fields:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, list):
                for item in value:
                    if item is not None:
                        yield item
            else:
                yield value


@dataclass(eq=False)
class Scope(Node):
    """A node that owns an environment: Program, functions, catch clauses."""
    env: Dict[str, Node] = field(default_factory=dict, init=False, repr=False)
    # Variable name → TypeNode, filled by type inference.
    env_type: Optional[Dict[str, Any]] = field(default=None, init=False, repr=False)


# ═══════════════════════════════════════════════════════════════════════
#  Program
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class ProgramOffset:
    """Where a program's source sits in the original document."""
    start: int
    end: int
    line: int
    column: int


@dataclass(eq=False)
class Program(Scope):
    body: List[Node] = field(default_factory=list)
    file: str = ""
    global_id: str = "default"
    offset: ProgramOffset = field(default_factory=lambda: ProgramOffset(0, 0, 0, 0))
    type: ClassVar[str] = "Program"
    _child_fields: ClassVar[Tuple[str, ...]] = ("body",)


# ═══════════════════════════════════════════════════════════════════════
#  Functions
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Function(Scope):
    id: Optional["Identifier"] = None
    params: List[Node] = field(default_factory=list)
    body: Optional[Node] = None
    _child_fields: ClassVar[Tuple[str, ...]] = ("id", "params", "body")


@dataclass(eq=False)
class FunctionDeclaration(Function):
    type: ClassVar[str] = "FunctionDeclaration"


@dataclass(eq=False)
class FunctionExpression(Function):
    type: ClassVar[str] = "FunctionExpression"


@dataclass(eq=False)
class ArrowFunctionExpression(Function):
    """Arrow function. ``body`` is an expression when ``expression`` is set."""
    expression: bool = False
    type: ClassVar[str] = "ArrowFunctionExpression"


# ═══════════════════════════════════════════════════════════════════════
#  Statements
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class EmptyStatement(Node):
    type: ClassVar[str] = "EmptyStatement"


@dataclass(eq=False)
class DebuggerStatement(Node):
    type: ClassVar[str] = "DebuggerStatement"


@dataclass(eq=False)
class BlockStatement(Node):
    body: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "BlockStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("body",)


@dataclass(eq=False)
class ExpressionStatement(Node):
    expression: Optional[Node] = None
    type: ClassVar[str] = "ExpressionStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("expression",)


@dataclass(eq=False)
class IfStatement(Node):
    test: Optional[Node] = None
    consequent: Optional[Node] = None
    alternate: Optional[Node] = None
    type: ClassVar[str] = "IfStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("test", "consequent", "alternate")


@dataclass(eq=False)
class LabeledStatement(Node):
    label: Optional["Identifier"] = None
    body: Optional[Node] = None
    type: ClassVar[str] = "LabeledStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("label", "body")


@dataclass(eq=False)
class BreakStatement(Node):
    label: Optional["Identifier"] = None
    type: ClassVar[str] = "BreakStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("label",)


@dataclass(eq=False)
class ContinueStatement(Node):
    label: Optional["Identifier"] = None
    type: ClassVar[str] = "ContinueStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("label",)


@dataclass(eq=False)
class WithStatement(Node):
    object: Optional[Node] = None
    body: Optional[Node] = None
    type: ClassVar[str] = "WithStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("object", "body")


@dataclass(eq=False)
class SwitchCase(Node):
    test: Optional[Node] = None   # None for ``default:``
    consequent: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "SwitchCase"
    _child_fields: ClassVar[Tuple[str, ...]] = ("test", "consequent")


@dataclass(eq=False)
class SwitchStatement(Node):
    discriminant: Optional[Node] = None
    cases: List[SwitchCase] = field(default_factory=list)
    type: ClassVar[str] = "SwitchStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("discriminant", "cases")


@dataclass(eq=False)
class ReturnStatement(Node):
    argument: Optional[Node] = None
    type: ClassVar[str] = "ReturnStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class ThrowStatement(Node):
    argument: Optional[Node] = None
    type: ClassVar[str] = "ThrowStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class CatchClause(Scope):
    param: Optional[Node] = None
    body: Optional[Node] = None
    type: ClassVar[str] = "CatchClause"
    _child_fields: ClassVar[Tuple[str, ...]] = ("param", "body")


@dataclass(eq=False)
class TryStatement(Node):
    block: Optional[Node] = None
    handler: Optional[CatchClause] = None
    finalizer: Optional[Node] = None
    type: ClassVar[str] = "TryStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("block", "handler", "finalizer")


@dataclass(eq=False)
class WhileStatement(Node):
    test: Optional[Node] = None
    body: Optional[Node] = None
    type: ClassVar[str] = "WhileStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("test", "body")


@dataclass(eq=False)
class DoWhileStatement(Node):
    body: Optional[Node] = None
    test: Optional[Node] = None
    type: ClassVar[str] = "DoWhileStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("body", "test")


@dataclass(eq=False)
class ForStatement(Node):
    init: Optional[Node] = None
    test: Optional[Node] = None
    update: Optional[Node] = None
    body: Optional[Node] = None
    type: ClassVar[str] = "ForStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("init", "test", "update", "body")


@dataclass(eq=False)
class ForInStatement(Node):
    """``for (left in right)``; also used for ``for (left of right)``."""
    left: Optional[Node] = None
    right: Optional[Node] = None
    body: Optional[Node] = None
    of: bool = False
    type: ClassVar[str] = "ForInStatement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("left", "right", "body")


@dataclass(eq=False)
class VariableDeclarator(Node):
    id: Optional[Node] = None
    init: Optional[Node] = None
    type: ClassVar[str] = "VariableDeclarator"
    _child_fields: ClassVar[Tuple[str, ...]] = ("id", "init")


@dataclass(eq=False)
class VariableDeclaration(Node):
    declarations: List[VariableDeclarator] = field(default_factory=list)
    kind: str = "var"
    type: ClassVar[str] = "VariableDeclaration"
    _child_fields: ClassVar[Tuple[str, ...]] = ("declarations",)


# ═══════════════════════════════════════════════════════════════════════
#  Expressions
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Identifier(Node):
    name: str = ""
    type: ClassVar[str] = "Identifier"


@dataclass(eq=False)
class Literal(Node):
    """String, number, boolean, null or regex literal.

    ``value`` holds the decoded Python value: ``str`` for strings only.
    """
    value: Any = None
    raw: str = ""
    type: ClassVar[str] = "Literal"

    @property
    def is_string(self) -> bool:
        return isinstance(self.value, str)


@dataclass(eq=False)
class TemplateLiteral(Node):
    expressions: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "TemplateLiteral"
    _child_fields: ClassVar[Tuple[str, ...]] = ("expressions",)


@dataclass(eq=False)
class ThisExpression(Node):
    type: ClassVar[str] = "ThisExpression"


@dataclass(eq=False)
class ArrayExpression(Node):
    elements: List[Optional[Node]] = field(default_factory=list)
    type: ClassVar[str] = "ArrayExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("elements",)


@dataclass(eq=False)
class Property(Node):
    """Object literal entry. ``kind`` is ``init``, ``get`` or ``set``."""
    key: Optional[Node] = None
    value: Optional[Node] = None
    kind: str = "init"
    computed: bool = False
    shorthand: bool = False
    method: bool = False
    type: ClassVar[str] = "Property"
    _child_fields: ClassVar[Tuple[str, ...]] = ("key", "value")


@dataclass(eq=False)
class ObjectExpression(Node):
    properties: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "ObjectExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("properties",)


@dataclass(eq=False)
class SequenceExpression(Node):
    expressions: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "SequenceExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("expressions",)


@dataclass(eq=False)
class UnaryExpression(Node):
    operator: str = ""
    argument: Optional[Node] = None
    type: ClassVar[str] = "UnaryExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class UpdateExpression(Node):
    operator: str = ""
    argument: Optional[Node] = None
    prefix: bool = False
    type: ClassVar[str] = "UpdateExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class BinaryExpression(Node):
    operator: str = ""
    left: Optional[Node] = None
    right: Optional[Node] = None
    type: ClassVar[str] = "BinaryExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(eq=False)
class LogicalExpression(Node):
    operator: str = ""
    left: Optional[Node] = None
    right: Optional[Node] = None
    type: ClassVar[str] = "LogicalExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(eq=False)
class AssignmentExpression(Node):
    operator: str = "="
    left: Optional[Node] = None
    right: Optional[Node] = None
    type: ClassVar[str] = "AssignmentExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(eq=False)
class ConditionalExpression(Node):
    test: Optional[Node] = None
    consequent: Optional[Node] = None
    alternate: Optional[Node] = None
    type: ClassVar[str] = "ConditionalExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("test", "consequent", "alternate")


@dataclass(eq=False)
class CallExpression(Node):
    callee: Optional[Node] = None
    arguments: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "CallExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("callee", "arguments")


@dataclass(eq=False)
class NewExpression(Node):
    callee: Optional[Node] = None
    arguments: List[Node] = field(default_factory=list)
    type: ClassVar[str] = "NewExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("callee", "arguments")


@dataclass(eq=False)
class MemberExpression(Node):
    object: Optional[Node] = None
    property: Optional[Node] = None
    computed: bool = False
    type: ClassVar[str] = "MemberExpression"
    _child_fields: ClassVar[Tuple[str, ...]] = ("object", "property")


@dataclass(eq=False)
class SpreadElement(Node):
    argument: Optional[Node] = None
    type: ClassVar[str] = "SpreadElement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class AssignmentPattern(Node):
    """Parameter with a default value: ``function f(left = right)``."""
    left: Optional[Node] = None
    right: Optional[Node] = None
    type: ClassVar[str] = "AssignmentPattern"
    _child_fields: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(eq=False)
class RestElement(Node):
    argument: Optional[Node] = None
    type: ClassVar[str] = "RestElement"
    _child_fields: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(eq=False)
class OpaqueNode(Node):
    """Syntax the engine does not model (classes, destructuring, ...).

    ``kind`` is the parser's name for the construct. Its convertible
    sub-trees are kept in ``items`` so identifiers inside stay addressable.
    """
    kind: str = ""
    items: List[Node] = field(default_factory=list)
    # Name introduced into the enclosing scope (class declarations).
    binding: Optional[Identifier] = None
    type: ClassVar[str] = "Opaque"
    _child_fields: ClassVar[Tuple[str, ...]] = ("items",)


PATTERN_KINDS = frozenset({"object_pattern", "array_pattern"})

STATEMENT_TYPES = (
    EmptyStatement, DebuggerStatement, BlockStatement, ExpressionStatement,
    IfStatement, LabeledStatement, BreakStatement, ContinueStatement,
    WithStatement, SwitchStatement, ReturnStatement, ThrowStatement,
    TryStatement, WhileStatement, DoWhileStatement, ForStatement,
    ForInStatement, FunctionDeclaration, VariableDeclaration,
)


# ═══════════════════════════════════════════════════════════════════════
#  ProgramCollection root
# ═══════════════════════════════════════════════════════════════════════

class ProgramCollection:
    """Ordered programs of one buffer session, one per file or fragment."""

    type = "ProgramCollection"

    def __init__(self):
        self.programs: List[Program] = []
        # globalId → TypeNode of the global object, filled by type inference
        self.globals: Dict[str, Any] = {}

    def add(self, program: Program):
        self.programs.append(program)

    def clear(self):
        self.programs = []
        self.globals = {}

    def global_type(self, global_id: str):
        """Representative type of the global object for ``global_id``."""
        node = self.globals.get(global_id)
        return node.rep() if node is not None else None

    def children(self) -> Iterator[Program]:
        return iter(self.programs)

    def __iter__(self):
        return iter(self.programs)

    def __len__(self):
        return len(self.programs)


# ═══════════════════════════════════════════════════════════════════════
#  Traversal helpers
# ═══════════════════════════════════════════════════════════════════════

def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal in source order."""
    stack: List[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(current.children())))


def param_identifier(param: Node) -> Optional[Identifier]:
    """The identifier bound by a simple parameter, or None for patterns."""
    if isinstance(param, AssignmentPattern):
        param = param.left
    elif isinstance(param, RestElement):
        param = param.argument
    if isinstance(param, Identifier):
        return param
    return None


def binding_identifiers(node: Optional[Node]) -> Iterator[Identifier]:
    """Identifiers bound by a declaration target (identifier or pattern)."""
    if isinstance(node, Identifier):
        yield node
    elif isinstance(node, AssignmentPattern):
        yield from binding_identifiers(node.left)
    elif isinstance(node, RestElement):
        yield from binding_identifiers(node.argument)
    elif isinstance(node, OpaqueNode) and node.kind in PATTERN_KINDS:
        for item in node.items:
            yield from binding_identifiers(item)


# ═══════════════════════════════════════════════════════════════════════
#  Preparation passes
# ═══════════════════════════════════════════════════════════════════════

def inject_parent_pointers(root: Node):
    """Give every node below ``root`` a link to its parent."""
    root.parent = None
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        for child in node.children():
            child.parent = node
            stack.append(child)


def build_envs(root: Program):
    """Annotate each scope node with the names it declares.

    Declarations are visited in source order with an explicit stack, so
    deeply nested expressions do not exhaust the interpreter stack.
    """
    stack: List[Tuple[Node, Scope]] = [(root, root)]
    while stack:
        node, scope = stack.pop()
        scope = _declare(node, scope)
        stack.extend((child, scope) for child in reversed(list(node.children())))


def _declare(node: Node, scope: Scope) -> Scope:
    """Record what ``node`` declares; returns the scope for its children."""
    if isinstance(node, Program):
        node.env = {}
        return node
    if isinstance(node, Function):
        if isinstance(node, FunctionDeclaration) and node.id is not None:
            scope.env[node.id.name] = node.id
        node.env = {}
        for p in node.params:
            for ident in binding_identifiers(p):
                node.env[ident.name] = ident
        if not isinstance(node, ArrowFunctionExpression):
            node.env.setdefault("arguments", node)
        if isinstance(node, FunctionExpression) and node.id is not None:
            node.env.setdefault(node.id.name, node.id)
        return node
    if isinstance(node, VariableDeclarator):
        for ident in binding_identifiers(node.id):
            scope.env[ident.name] = ident
    elif isinstance(node, CatchClause):
        node.env = {}
        for ident in binding_identifiers(node.param):
            node.env[ident.name] = ident
    elif isinstance(node, OpaqueNode) and node.binding is not None:
        scope.env[node.binding.name] = node.binding
    return scope


def prepare(program: Program) -> Program:
    inject_parent_pointers(program)
    build_envs(program)
    return program


# ═══════════════════════════════════════════════════════════════════════
#  Queries
# ═══════════════════════════════════════════════════════════════════════

def find_node(root: Any, file: str, offset: int) -> Optional[Node]:
    """Deepest node whose range contains ``offset`` in the given file.

    ``root`` is a ProgramCollection or a single Program; ``offset`` is
    absolute in the original document of ``file``.
    """
    programs: Sequence[Program] = root.programs if isinstance(root, ProgramCollection) else [root]
    for program in programs:
        if program.file != file:
            continue
        if program.offset.start > offset or program.offset.end < offset:
            continue
        found = _find_in(program, offset - program.offset.start)
        if found is not None:
            return found
    return None


def _find_in(node: Node, offset: int) -> Optional[Node]:
    if not isinstance(node, Program) and not node.contains(offset):
        return None
    while True:
        for child in node.children():
            if child.contains(offset):
                node = child
                break
        else:
            return node


def get_program(node: Node) -> Program:
    while not isinstance(node, Program):
        node = node.parent
    return node


def get_enclosing_function(node: Node) -> Scope:
    """Nearest enclosing function, or the Program."""
    while not isinstance(node, (Function, Program)):
        node = node.parent
    return node


def get_var_decl_scope(node: Identifier) -> Optional[Scope]:
    """Scope whose environment declares ``node.name``.

    A function declaration's own name belongs to the enclosing scope, so
    the search skips a FunctionDeclaration when coming up from its ``id``.
    Falls back to the Program (undeclared names are globals).
    """
    name = node.name
    prev: Node = node
    current = node.parent
    while current is not None:
        if isinstance(current, Program):
            return current
        if isinstance(current, FunctionDeclaration):
            if prev is not current.id and name in current.env:
                return current
        elif isinstance(current, (Function, CatchClause)):
            if name in current.env:
                return current
        prev = current
        current = current.parent
    return None
