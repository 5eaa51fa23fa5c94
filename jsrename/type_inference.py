"""
Type Inference — unification-based shape inference over JavaScript ASTs.

Every expression starts with its own type; a single traversal of the
program collection unifies types that must denote the same runtime
object, and a two-round saturation then merges method receivers with the
objects that own the method.

Building blocks:
  • TypeNode     — union-find element with a lazily created property map
  • TypeUnifier  — merges by rank; same-named properties of merged types
                   are queued and only unified by ``complete()``
  • infer_types  — the traversal, saturation and per-globalId global types

Synthetic names used in property maps and environments: ``@this``,
``@return``, ``@array`` (element type) and ``@prty-of`` (objects indexed
by a value of this type).
"""

import logging
from typing import Dict, List, Optional

from jsrename.errors import InvariantViolation, NestingTooDeepError
from jsrename.js_ast import (
    ArrayExpression, ArrowFunctionExpression, AssignmentExpression,
    AssignmentPattern, BinaryExpression, BlockStatement, BreakStatement,
    CallExpression, CatchClause, ConditionalExpression, ContinueStatement,
    DebuggerStatement, DoWhileStatement, EmptyStatement, ExpressionStatement,
    ForInStatement, ForStatement, Function, FunctionDeclaration,
    FunctionExpression, Identifier, IfStatement, LabeledStatement, Literal,
    LogicalExpression, MemberExpression, NewExpression, Node,
    ObjectExpression, OpaqueNode, Program, ProgramCollection, Property,
    RestElement, ReturnStatement, SequenceExpression, SpreadElement,
    STATEMENT_TYPES, SwitchStatement, TemplateLiteral, ThisExpression,
    ThrowStatement, TryStatement, UnaryExpression, UpdateExpression,
    VariableDeclaration, WhileStatement, WithStatement, binding_identifiers,
    param_identifier, walk,
)

logger = logging.getLogger(__name__)

THIS = "@this"
RETURN = "@return"
ARRAY = "@array"
PROPERTY_OF = "@prty-of"

# Undeclared names that denote the global object itself
GLOBAL_ALIASES = ("window", "self", "globalThis")

# Results of visiting an expression
PRIMITIVE = True
NOT_PRIMITIVE = False

# Whether the value of an expression is discarded
VOID = True
NOT_VOID = False


# ═══════════════════════════════════════════════════════════════════════
#  Union-find
# ═══════════════════════════════════════════════════════════════════════

class TypeNode:
    """Union-find element. Only representatives carry meaningful data."""

    __slots__ = ("id", "parent", "rank", "properties", "namespace", "_unifier")

    def __init__(self, node_id: int, unifier: "TypeUnifier"):
        self.id = node_id
        self.parent: "TypeNode" = self
        self.rank = 0
        self.properties: Dict[str, "TypeNode"] = {}
        self.namespace = False
        self._unifier = unifier

    def rep(self) -> "TypeNode":
        """Representative of this node's class, compressing the path."""
        root = self
        while root.parent is not root:
            root = root.parent
        node = self
        while node.parent is not root and node is not root:
            node.parent, node = root, node.parent
        return root

    def get_property(self, name: str) -> "TypeNode":
        """Type of property ``name``, created on first use. Returns a representative."""
        if not isinstance(name, str):
            raise InvariantViolation(f"Property name is not a string: {name!r}")
        owner = self.rep()
        node = owner.properties.get(name)
        if node is None:
            node = self._unifier.new_node()
            owner.properties[name] = node
        return node.rep()

    def __repr__(self):
        rep = self.rep()
        if rep is self:
            return f"TypeNode({self.id}, props={sorted(self.properties)}, ns={self.namespace})"
        return f"TypeNode({self.id} -> {rep.id})"


class TypeUnifier:
    """Owns the type nodes of one inference run and their deferred merges."""

    def __init__(self):
        self._next_id = 0
        self._queue: List[tuple] = []
        self.merges = 0
        self.deferred = 0

    @property
    def created(self) -> int:
        return self._next_id

    def new_node(self) -> TypeNode:
        self._next_id += 1
        return TypeNode(self._next_id, self)

    def unify(self, x: TypeNode, y: TypeNode):
        x = x.rep()
        y = y.rep()
        if x is y:
            return
        if x.rank < y.rank:
            x, y = y, x
        elif x.rank == y.rank:
            x.rank += 1
        y.parent = x
        x.namespace = x.namespace or y.namespace
        for name, prop in y.properties.items():
            existing = x.properties.get(name)
            if existing is not None:
                self.unify_later(prop, existing)
            else:
                x.properties[name] = prop
        # y is now a pure forwarding pointer
        y.rank = 0
        y.properties = {}
        y.namespace = False
        self.merges += 1

    def unify_later(self, x: TypeNode, y: TypeNode):
        if x is not y:
            self._queue.append((x, y))
            self.deferred += 1

    def complete(self):
        """Drain the deferred merges, including those they enqueue."""
        queue = self._queue
        while queue:
            x, y = queue.pop()
            self.unify(x, y)


# ═══════════════════════════════════════════════════════════════════════
#  Inference
# ═══════════════════════════════════════════════════════════════════════

def infer_types(collection: ProgramCollection) -> Dict[str, TypeNode]:
    """Annotate every expression of ``collection`` with a TypeNode.

    Previous annotations are discarded, so repeated runs over an unchanged
    collection produce the same equivalence classes. Returns (and stores on
    ``collection.globals``) the global object type of each globalId.
    """
    for program in collection:
        for node in walk(program):
            node.type_node = None
            if isinstance(node, (Function, CatchClause)):
                node.env_type = None
    inference = _TypeInference()
    try:
        inference.run(collection)
    except RecursionError as e:
        raise NestingTooDeepError("Expressions nest too deeply for type inference") from e
    collection.globals = inference.globals
    return inference.globals


class _TypeInference:

    def __init__(self):
        self.unifier = TypeUnifier()
        self.globals: Dict[str, TypeNode] = {}
        self.global_node: Optional[TypeNode] = None
        self.env: Dict[str, TypeNode] = {}
        self.env_stack: List[Dict[str, TypeNode]] = [self.env]
        # (owner, receiver) pairs recorded during traversal
        self.potential_methods: List[tuple] = []

    # ────────────────────────────────────────────────────────────────
    #  Driver
    # ────────────────────────────────────────────────────────────────

    def run(self, collection: ProgramCollection):
        for program in collection:
            self.visit_program(program)

        # Namespaces are only known once everything has been seen
        self.unifier.complete()
        unified = suppressed = 0
        for owner, receiver in self.potential_methods:
            owner = owner.rep()
            receiver = receiver.rep()
            if not owner.namespace and not receiver.namespace:
                self.unifier.unify_later(owner, receiver)
                unified += 1
            else:
                suppressed += 1
        self.unifier.complete()

        logger.debug(
            "Type inference: %d programs, %d type nodes, %d merges (%d deferred), "
            "%d potential methods unified, %d suppressed",
            len(collection), self.unifier.created, self.unifier.merges,
            self.unifier.deferred, unified, suppressed,
        )

    def visit_program(self, program: Program):
        self.global_node = self.global_for(program.global_id)
        program.type_node = self.global_node
        self.env = {THIS: self.global_node}
        self.env_stack = [self.env]
        program.env_type = self.env
        for statement in program.body:
            self.visit_stmt(statement)

    def global_for(self, global_id: str) -> TypeNode:
        node = self.globals.get(global_id)
        if node is None:
            node = self.unifier.new_node()
            for alias in GLOBAL_ALIASES:
                self.unifier.unify(node.get_property(alias), node)
            self.globals[global_id] = node
        return node

    # ────────────────────────────────────────────────────────────────
    #  Environments and types
    # ────────────────────────────────────────────────────────────────

    def get_var(self, name: str) -> TypeNode:
        for env in reversed(self.env_stack):
            node = env.get(name)
            if node is not None:
                return node
        return self.global_node.get_property(name)

    def add_var(self, name: str):
        if name not in self.env:
            self.env[name] = self.unifier.new_node()

    def push_env(self, scope: Node) -> Dict[str, TypeNode]:
        self.env = {}
        scope.env_type = self.env
        self.env_stack.append(self.env)
        return self.env

    def pop_env(self):
        self.env_stack.pop()
        self.env = self.env_stack[-1]

    def get_type(self, node) -> TypeNode:
        if isinstance(node, TypeNode):
            return node
        if node.type_node is None:
            node.type_node = self.unifier.new_node()
        return node.type_node

    @staticmethod
    def this_type(fun: Function) -> Optional[TypeNode]:
        return fun.env_type.get(THIS) if fun.env_type is not None else None

    @staticmethod
    def return_type(fun: Function) -> Optional[TypeNode]:
        return fun.env_type.get(RETURN) if fun.env_type is not None else None

    def argument_type(self, fun: Function, index: int) -> TypeNode:
        if index < len(fun.params):
            ident = param_identifier(fun.params[index])
            if ident is not None and fun.env_type is not None:
                return fun.env_type[ident.name]
        return self.unifier.new_node()

    def unify(self, first, *others):
        x = self.get_type(first)
        for other in others:
            if other is None:
                continue
            self.unifier.unify(x, self.get_type(other))

    def add_potential_method(self, owner, receiver):
        if receiver is None:
            return
        self.potential_methods.append((self.get_type(owner), self.get_type(receiver)))

    def mark_as_namespace(self, node: Node):
        self.get_type(node).rep().namespace = True

    def mark_as_constructor(self, node: Node):
        if isinstance(node, MemberExpression):
            self.mark_as_namespace(node.object)

    # ────────────────────────────────────────────────────────────────
    #  Functions
    # ────────────────────────────────────────────────────────────────

    def visit_function(self, fun: Function, expr: bool = False):
        arrow = isinstance(fun, ArrowFunctionExpression)
        env = self.push_env(fun)
        for param in fun.params:
            for ident in binding_identifiers(param):
                self.add_var(ident.name)
        for name in fun.env:
            self.add_var(name)
        if expr and fun.id is not None:
            self.add_var(fun.id.name)
            self.unify(fun, env[fun.id.name])
            fun.id.type_node = fun.type_node
        if not arrow:
            self.add_var(THIS)
            self.add_var("arguments")
        self.add_var(RETURN)
        if not arrow:
            self.unify(env[THIS], self.get_type(fun).get_property("prototype"))

        for param in fun.params:
            self.visit_exp(param, NOT_VOID)

        if arrow and fun.expression:
            if not self.visit_exp(fun.body, NOT_VOID):
                self.unify(fun.body, env[RETURN])
        else:
            self.visit_stmt(fun.body)
        self.pop_env()

    # ────────────────────────────────────────────────────────────────
    #  Expressions
    # ────────────────────────────────────────────────────────────────

    def visit_exp(self, node: Optional[Node], void_ctx: bool) -> Optional[bool]:
        """Visit an expression; returns PRIMITIVE when its value cannot be an object."""
        if node is None:
            return None

        if isinstance(node, (FunctionExpression, ArrowFunctionExpression)):
            self.visit_function(node, expr=True)
            return NOT_PRIMITIVE

        if isinstance(node, ThisExpression):
            self.unify(node, self.get_var(THIS))
            return NOT_PRIMITIVE

        if isinstance(node, ArrayExpression):
            typ = self.get_type(node)
            for element in node.elements:
                if element is None:
                    continue
                self.visit_exp(element, NOT_VOID)
                self.unify(typ.get_property(ARRAY), element)
            return NOT_PRIMITIVE

        if isinstance(node, ObjectExpression):
            self.visit_object(node)
            return NOT_PRIMITIVE

        if isinstance(node, SequenceExpression):
            if not node.expressions:
                return NOT_PRIMITIVE
            for expression in node.expressions[:-1]:
                self.visit_exp(expression, VOID)
            last = node.expressions[-1]
            primitive = self.visit_exp(last, void_ctx)
            self.unify(node, last)
            return primitive

        if isinstance(node, (UnaryExpression, UpdateExpression)):
            self.visit_exp(node.argument, VOID)
            return PRIMITIVE

        if isinstance(node, BinaryExpression):
            chain = [node]
            while isinstance(chain[-1].left, BinaryExpression):
                chain.append(chain[-1].left)
            self.visit_exp(chain[-1].left, VOID)
            for binary in reversed(chain):
                self.visit_exp(binary.right, VOID)
            return PRIMITIVE

        if isinstance(node, TemplateLiteral):
            for expression in node.expressions:
                self.visit_exp(expression, VOID)
            return PRIMITIVE

        if isinstance(node, AssignmentExpression):
            self.visit_exp(node.left, NOT_VOID)
            primitive = self.visit_exp(node.right, NOT_VOID)
            if node.operator != "=":
                return PRIMITIVE
            if not primitive:
                self.unify(node, node.left, node.right)
            if isinstance(node.left, MemberExpression) and isinstance(node.right, FunctionExpression):
                self.add_potential_method(node.left.object, self.this_type(node.right))
            return primitive

        if isinstance(node, LogicalExpression):
            return self.visit_logical(node, void_ctx)

        if isinstance(node, ConditionalExpression):
            self.visit_exp(node.test, VOID)
            consequent = self.visit_exp(node.consequent, void_ctx)
            alternate = self.visit_exp(node.alternate, void_ctx)
            if not void_ctx:
                self.unify(node, node.consequent, node.alternate)
            return consequent and alternate

        if isinstance(node, (CallExpression, NewExpression)):
            self.visit_call(node)
            return NOT_PRIMITIVE

        if isinstance(node, MemberExpression):
            self.visit_member(node)
            return NOT_PRIMITIVE

        if isinstance(node, Identifier):
            if node.name == "undefined":
                return PRIMITIVE
            self.unify(node, self.get_var(node.name))
            return NOT_PRIMITIVE

        if isinstance(node, Literal):
            return PRIMITIVE

        if isinstance(node, SpreadElement):
            self.visit_exp(node.argument, NOT_VOID)
            self.unify(node, self.get_type(node.argument).get_property(ARRAY))
            return NOT_PRIMITIVE

        if isinstance(node, AssignmentPattern):
            self.visit_exp(node.left, NOT_VOID)
            if not self.visit_exp(node.right, NOT_VOID):
                self.unify(node.left, node.right)
            return NOT_PRIMITIVE

        if isinstance(node, RestElement):
            self.visit_exp(node.argument, NOT_VOID)
            return NOT_PRIMITIVE

        if isinstance(node, OpaqueNode):
            self.visit_opaque(node)
            return NOT_PRIMITIVE

        raise InvariantViolation(f"Expression {node.type} not handled")

    def visit_logical(self, node: LogicalExpression, void_ctx: bool) -> Optional[bool]:
        """``a && b`` has the type of ``b``; ``a || b`` (and ``??``) of both.

        Left-nested chains are walked in a loop, innermost operand first.
        """
        chain = [(node, void_ctx)]
        while isinstance(chain[-1][0].left, LogicalExpression):
            outer, ctx = chain[-1]
            chain.append((outer.left, VOID if outer.operator == "&&" else ctx))
        innermost, ctx = chain[-1]
        primitive = self.visit_exp(innermost.left, VOID if innermost.operator == "&&" else ctx)
        for current, ctx in reversed(chain):
            if current.operator == "&&":
                primitive = self.visit_exp(current.right, ctx)
                self.unify(current, current.right)
                continue
            right = self.visit_exp(current.right, ctx)
            if not ctx:
                self.unify(current, current.left, current.right)
            primitive = primitive and right
        return primitive

    def visit_object(self, node: ObjectExpression):
        typ = self.get_type(node)
        for prop in node.properties:
            if not isinstance(prop, Property):
                self.visit_exp(prop, NOT_VOID)
                continue
            name = None
            if prop.computed:
                self.visit_exp(prop.key, VOID)
            elif isinstance(prop.key, Identifier):
                name = prop.key.name
            elif isinstance(prop.key, Literal) and prop.key.is_string:
                name = prop.key.value

            if prop.kind == "init" or not isinstance(prop.value, Function):
                self.visit_exp(prop.value, NOT_VOID)
                if name is None:
                    continue
                self.unify(typ.get_property(name), prop.value)
                if isinstance(prop.value, FunctionExpression):
                    self.add_potential_method(typ, self.this_type(prop.value))
            else:
                self.visit_function(prop.value)
                if name is None:
                    continue
                if prop.kind == "get":
                    self.unify(typ.get_property(name), self.return_type(prop.value))
                else:
                    self.unify(typ.get_property(name), self.argument_type(prop.value, 0))
                self.unify(typ, self.this_type(prop.value))

    def visit_call(self, node):
        self.visit_exp(node.callee, NOT_VOID)
        for argument in node.arguments:
            self.visit_exp(argument, NOT_VOID)
        callee = node.callee
        if isinstance(callee, (FunctionExpression, ArrowFunctionExpression)):
            for index, argument in enumerate(node.arguments[:len(callee.params)]):
                if isinstance(argument, SpreadElement):
                    break
                self.unify(argument, self.argument_type(callee, index))
            self.unify(node, self.return_type(callee))
            this_type = self.this_type(callee)
            if this_type is not None:
                if isinstance(node, NewExpression):
                    self.unify(node, this_type)
                else:
                    self.unify(self.global_node, this_type)
        if isinstance(node, NewExpression):
            self.mark_as_constructor(callee)

    def visit_member(self, node: MemberExpression):
        self.visit_exp(node.object, NOT_VOID)
        prop = node.property
        if node.computed:
            self.visit_exp(prop, VOID)
            if isinstance(prop, Literal) and prop.is_string:
                self.unify(node, self.get_type(node.object).get_property(prop.value))
            else:
                self.unify(self.get_type(prop).get_property(PROPERTY_OF), node.object)
        else:
            self.unify(node, self.get_type(node.object).get_property(prop.name))
            if prop.name == "prototype":
                self.mark_as_constructor(node.object)

    def visit_opaque(self, node: OpaqueNode):
        """Unmodelled syntax: visit what is inside, infer nothing about it."""
        for item in node.items:
            if isinstance(item, STATEMENT_TYPES):
                self.visit_stmt(item)
            else:
                self.visit_exp(item, VOID)

    # ────────────────────────────────────────────────────────────────
    #  Statements
    # ────────────────────────────────────────────────────────────────

    def visit_stmt(self, node: Optional[Node]):
        if node is None:
            return

        if isinstance(node, (EmptyStatement, BreakStatement, ContinueStatement, DebuggerStatement)):
            return

        if isinstance(node, BlockStatement):
            for statement in node.body:
                self.visit_stmt(statement)
        elif isinstance(node, ExpressionStatement):
            self.visit_exp(node.expression, VOID)
        elif isinstance(node, IfStatement):
            self.visit_exp(node.test, VOID)
            self.visit_stmt(node.consequent)
            self.visit_stmt(node.alternate)
        elif isinstance(node, LabeledStatement):
            self.visit_stmt(node.body)
        elif isinstance(node, WithStatement):
            self.visit_exp(node.object, NOT_VOID)
            self.visit_stmt(node.body)
        elif isinstance(node, SwitchStatement):
            primitive = self.visit_exp(node.discriminant, NOT_VOID)
            for case in node.cases:
                self.visit_exp(case.test, VOID if primitive else NOT_VOID)
                for statement in case.consequent:
                    self.visit_stmt(statement)
        elif isinstance(node, ReturnStatement):
            if node.argument is not None:
                self.visit_exp(node.argument, NOT_VOID)
                self.unify(node.argument, self.get_var(RETURN))
        elif isinstance(node, ThrowStatement):
            self.visit_exp(node.argument, VOID)
        elif isinstance(node, TryStatement):
            self.visit_stmt(node.block)
            self.visit_stmt(node.handler)
            self.visit_stmt(node.finalizer)
        elif isinstance(node, CatchClause):
            self.push_env(node)
            for ident in binding_identifiers(node.param):
                self.add_var(ident.name)
            self.visit_exp(node.param, NOT_VOID)
            self.visit_stmt(node.body)
            self.pop_env()
        elif isinstance(node, WhileStatement):
            self.visit_exp(node.test, VOID)
            self.visit_stmt(node.body)
        elif isinstance(node, DoWhileStatement):
            self.visit_stmt(node.body)
            self.visit_exp(node.test, VOID)
        elif isinstance(node, ForStatement):
            if isinstance(node.init, VariableDeclaration):
                self.visit_stmt(node.init)
            else:
                self.visit_exp(node.init, VOID)
            self.visit_exp(node.test, VOID)
            self.visit_exp(node.update, VOID)
            self.visit_stmt(node.body)
        elif isinstance(node, ForInStatement):
            if isinstance(node.left, VariableDeclaration):
                self.visit_stmt(node.left)
            else:
                self.visit_exp(node.left, VOID)
            self.visit_exp(node.right, NOT_VOID)
            self.visit_stmt(node.body)
        elif isinstance(node, FunctionDeclaration):
            self.visit_function(node)
            if node.id is not None:
                self.unify(node, self.get_var(node.id.name))
        elif isinstance(node, VariableDeclaration):
            self.visit_declaration(node)
        elif isinstance(node, OpaqueNode):
            self.visit_opaque(node)
        else:
            raise InvariantViolation(f"Unknown statement: {node.type}")

    def visit_declaration(self, node: VariableDeclaration):
        for decl in node.declarations:
            if isinstance(decl.id, Identifier):
                if decl.init is not None:
                    if not self.visit_exp(decl.init, NOT_VOID):
                        self.unify(self.get_var(decl.id.name), decl.init)
                decl.id.type_node = self.get_var(decl.id.name)
            else:
                self.visit_exp(decl.init, NOT_VOID)
                self.visit_exp(decl.id, NOT_VOID)
