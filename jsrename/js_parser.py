"""
JavaScript Parser — tree-sitter front end producing the jsrename AST.

tree-sitter yields a concrete syntax tree with byte positions; this module
converts it into the closed ESTree-shaped model of :mod:`jsrename.js_ast`
with character offsets:

  • parenthesized expressions are unwrapped, comments dropped
  • ``let``/``const`` become VariableDeclarations (function-scoped here)
  • ``&&``, ``||`` and ``??`` become LogicalExpressions
  • object-literal methods and accessors become Property + FunctionExpression
  • constructs the engine does not model (classes, ``yield``, modules, ...)
    become OpaqueNodes that keep their convertible sub-trees

tree-sitter recovers from syntax errors instead of failing; any ERROR or
missing node in the tree is reported as a :class:`ParseError`.
"""

import logging
from typing import Callable, Dict, List, Optional

import tree_sitter_javascript as tsjs
from tree_sitter import Language, Node as TSNode, Parser

from jsrename.errors import ParseError
from jsrename.js_ast import (
    ArrayExpression, ArrowFunctionExpression, AssignmentExpression,
    AssignmentPattern, BinaryExpression, BlockStatement, BreakStatement,
    CallExpression, CatchClause, ConditionalExpression, ContinueStatement,
    DebuggerStatement, DoWhileStatement, EmptyStatement, ExpressionStatement,
    ForInStatement, ForStatement, FunctionDeclaration, FunctionExpression,
    Identifier, IfStatement, LabeledStatement, Literal, LogicalExpression,
    MemberExpression, NewExpression, Node, ObjectExpression, OpaqueNode,
    Program, Property, RestElement, ReturnStatement, SequenceExpression,
    SpreadElement, SwitchCase, SwitchStatement, TemplateLiteral,
    ThisExpression, ThrowStatement, TryStatement, UnaryExpression,
    UpdateExpression, VariableDeclaration, VariableDeclarator,
    WhileStatement, WithStatement,
)
from jsrename.line_offsets import LineOffsets

logger = logging.getLogger(__name__)

JS_LANGUAGE = Language(tsjs.language())
_parser = Parser(JS_LANGUAGE)

# Extras that may appear anywhere in the tree
_TRIVIA = {"comment", "html_comment", "hash_bang_line"}

# Leaf tokens with no meaning outside their parent construct
_SKIPPED_LEAVES = {
    "property_identifier", "private_property_identifier", "string_fragment",
    "escape_sequence", "regex_pattern", "regex_flags", "statement_identifier",
    "html_character_reference", "optional_chain",
}

_LOGICAL_OPERATORS = {"&&", "||", "??"}

_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}


def parse_script(text: str) -> Program:
    """Parse ``text`` into an unprepared Program with local ranges.

    Raises:
        ParseError: positioned (0-indexed, local to ``text``) at the first
            syntax error tree-sitter recovered from.
    """
    source = text.encode("utf-8", errors="surrogatepass")
    tree = _parser.parse(source)
    converter = _Converter(text, source)
    root = tree.root_node
    if root.has_error:
        error = _first_error(root)
        offset = converter.char(error.start_byte) if error is not None else 0
        line, column = LineOffsets(text).position(offset)
        if error is not None and error.is_missing:
            message = f"Missing {error.type!r}"
        elif error is not None and error.end_byte > error.start_byte:
            snippet = converter.text_of(error).split("\n", 1)[0][:40]
            message = f"Unexpected token {snippet!r}"
        else:
            message = "Unexpected end of input"
        raise ParseError(message, line=line, column=column, offset=offset)
    return converter.program(root)


def _first_error(node: TSNode) -> Optional[TSNode]:
    """First ERROR or missing node in document order."""
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing or child.type == "ERROR":
            found = _first_error(child)
            if found is not None:
                return found
    return None


def _byte_to_char_map(text: str, source: bytes) -> Optional[List[int]]:
    """Map byte offsets to character offsets; None when they coincide."""
    if len(source) == len(text):
        return None
    mapping = [0] * (len(source) + 1)
    pos = 0
    for index, ch in enumerate(text):
        width = len(ch.encode("utf-8", errors="surrogatepass"))
        for _ in range(width):
            mapping[pos] = index
            pos += 1
    mapping[pos] = len(text)
    return mapping


def _unescape(sequence: str) -> str:
    """Decode one JavaScript escape sequence (including the backslash)."""
    body = sequence[1:]
    if not body:
        return ""
    head = body[0]
    if head in "\r\n  ":
        return ""  # line continuation
    if head == "x" and len(body) == 3:
        return chr(int(body[1:], 16))
    if head == "u":
        digits = body[2:-1] if body.startswith("u{") else body[1:]
        try:
            return chr(int(digits, 16))
        except ValueError:
            return body
    if head in _SIMPLE_ESCAPES and len(body) == 1:
        return _SIMPLE_ESCAPES[head]
    return body


def _number_value(raw: str):
    cleaned = raw.replace("_", "")
    if cleaned.endswith("n"):
        cleaned = cleaned[:-1]
    try:
        return int(cleaned, 0)
    except ValueError:
        pass
    try:
        return float(cleaned)
    except ValueError:
        return None


# ═══════════════════════════════════════════════════════════════════════
#  Converter
# ═══════════════════════════════════════════════════════════════════════

class _Converter:
    """Converts one tree-sitter tree into jsrename AST nodes."""

    def __init__(self, text: str, source: bytes):
        self.text = text
        self.source = source
        self._chars = _byte_to_char_map(text, source)
        self._statements: Dict[str, Callable[[TSNode], Node]] = {
            "expression_statement": self._expression_statement,
            "variable_declaration": self._variable_declaration,
            "lexical_declaration": self._variable_declaration,
            "function_declaration": self._function_declaration,
            "generator_function_declaration": self._function_declaration,
            "class_declaration": self._class_declaration,
            "statement_block": self._block,
            "if_statement": self._if,
            "switch_statement": self._switch,
            "for_statement": self._for,
            "for_in_statement": self._for_in,
            "while_statement": self._while,
            "do_statement": self._do_while,
            "try_statement": self._try,
            "with_statement": self._with,
            "break_statement": self._break,
            "continue_statement": self._continue,
            "return_statement": self._return,
            "throw_statement": self._throw,
            "empty_statement": self._empty,
            "labeled_statement": self._labeled,
            "debugger_statement": self._debugger,
        }
        self._expressions: Dict[str, Callable[[TSNode], Node]] = {
            "identifier": self._identifier,
            "shorthand_property_identifier": self._identifier,
            "undefined": self._identifier,
            "this": self._this,
            "number": self._number,
            "string": self._string,
            "template_string": self._template,
            "regex": self._regex,
            "true": self._keyword_literal,
            "false": self._keyword_literal,
            "null": self._keyword_literal,
            "parenthesized_expression": self._parenthesized,
            "sequence_expression": self._sequence,
            "array": self._array,
            "object": self._object,
            "function_expression": self._function_expression,
            "function": self._function_expression,
            "generator_function": self._function_expression,
            "arrow_function": self._arrow_function,
            "call_expression": self._call,
            "new_expression": self._new,
            "member_expression": self._member,
            "subscript_expression": self._subscript,
            "assignment_expression": self._assignment,
            "augmented_assignment_expression": self._assignment,
            "unary_expression": self._unary,
            "binary_expression": self._binary,
            "update_expression": self._update,
            "ternary_expression": self._ternary,
            "spread_element": self._spread,
            "method_definition": self._class_method,
        }

    # ────────────────────────────────────────────────────────────────
    #  Positions and text
    # ────────────────────────────────────────────────────────────────

    def char(self, byte_offset: int) -> int:
        if self._chars is None:
            return byte_offset
        return self._chars[byte_offset]

    def text_of(self, ts: TSNode) -> str:
        return self.source[ts.start_byte:ts.end_byte].decode("utf-8", errors="replace")

    def _span(self, ts: TSNode):
        return self.char(ts.start_byte), self.char(ts.end_byte)

    @staticmethod
    def _named(ts: TSNode) -> List[TSNode]:
        return [c for c in ts.named_children if c.type not in _TRIVIA]

    def _first_named(self, ts: Optional[TSNode]) -> Optional[TSNode]:
        if ts is None:
            return None
        named = self._named(ts)
        return named[0] if named else None

    # ────────────────────────────────────────────────────────────────
    #  Entry points
    # ────────────────────────────────────────────────────────────────

    def program(self, root: TSNode) -> Program:
        body = [self.statement(c) for c in self._named(root)]
        return Program(0, len(self.text), body=body)

    def statement(self, ts: TSNode) -> Node:
        handler = self._statements.get(ts.type)
        if handler is not None:
            return handler(ts)
        if ts.type in self._expressions:
            start, end = self._span(ts)
            return ExpressionStatement(start, end, expression=self.expression(ts))
        return self._opaque(ts)

    def expression(self, ts: Optional[TSNode]) -> Optional[Node]:
        if ts is None:
            return None
        handler = self._expressions.get(ts.type)
        if handler is not None:
            return handler(ts)
        return self._opaque(ts)

    def _any(self, ts: TSNode) -> Optional[Node]:
        if ts.type in _SKIPPED_LEAVES or ts.type in _TRIVIA:
            return None
        if ts.type in self._statements:
            return self.statement(ts)
        return self.expression(ts)

    def _opaque(self, ts: TSNode) -> OpaqueNode:
        start, end = self._span(ts)
        items = [n for n in (self._any(c) for c in self._named(ts)) if n is not None]
        return OpaqueNode(start, end, kind=ts.type, items=items)

    # ────────────────────────────────────────────────────────────────
    #  Statements
    # ────────────────────────────────────────────────────────────────

    def _expression_statement(self, ts: TSNode) -> ExpressionStatement:
        start, end = self._span(ts)
        return ExpressionStatement(start, end, expression=self.expression(self._first_named(ts)))

    def _variable_declaration(self, ts: TSNode) -> VariableDeclaration:
        start, end = self._span(ts)
        kind_node = ts.child_by_field_name("kind")
        kind = self.text_of(kind_node) if kind_node is not None else "var"
        declarations = []
        for c in self._named(ts):
            if c.type != "variable_declarator":
                continue
            d_start, d_end = self._span(c)
            declarations.append(VariableDeclarator(
                d_start, d_end,
                id=self._pattern(c.child_by_field_name("name")),
                init=self.expression(c.child_by_field_name("value")),
            ))
        return VariableDeclaration(start, end, declarations=declarations, kind=kind)

    def _function_declaration(self, ts: TSNode) -> FunctionDeclaration:
        start, end = self._span(ts)
        return FunctionDeclaration(
            start, end,
            id=self._optional_identifier(ts.child_by_field_name("name")),
            params=self._params(ts.child_by_field_name("parameters")),
            body=self._block(ts.child_by_field_name("body")),
        )

    def _class_declaration(self, ts: TSNode) -> OpaqueNode:
        node = self._opaque(ts)
        name = self._optional_identifier(ts.child_by_field_name("name"))
        if name is not None:
            # the opaque items already hold an Identifier for the name
            for item in node.items:
                if isinstance(item, Identifier) and item.start == name.start:
                    node.binding = item
                    break
        return node

    def _block(self, ts: Optional[TSNode]) -> Optional[BlockStatement]:
        if ts is None:
            return None
        start, end = self._span(ts)
        return BlockStatement(start, end, body=[self.statement(c) for c in self._named(ts)])

    def _if(self, ts: TSNode) -> IfStatement:
        start, end = self._span(ts)
        alternative = ts.child_by_field_name("alternative")
        if alternative is not None and alternative.type == "else_clause":
            alternative = self._first_named(alternative)
        return IfStatement(
            start, end,
            test=self.expression(ts.child_by_field_name("condition")),
            consequent=self.statement(ts.child_by_field_name("consequence")),
            alternate=self.statement(alternative) if alternative is not None else None,
        )

    def _switch(self, ts: TSNode) -> SwitchStatement:
        start, end = self._span(ts)
        cases = []
        body = ts.child_by_field_name("body")
        for c in self._named(body) if body is not None else []:
            if c.type not in ("switch_case", "switch_default"):
                continue
            c_start, c_end = self._span(c)
            test = self.expression(c.child_by_field_name("value")) if c.type == "switch_case" else None
            consequent = [self.statement(s) for s in c.children_by_field_name("body")
                          if s.type not in _TRIVIA]
            cases.append(SwitchCase(c_start, c_end, test=test, consequent=consequent))
        return SwitchStatement(
            start, end,
            discriminant=self.expression(ts.child_by_field_name("value")),
            cases=cases,
        )

    def _for_clause(self, ts: Optional[TSNode]) -> Optional[Node]:
        if ts is None or ts.type in ("empty_statement", ";"):
            return None
        if ts.type in ("variable_declaration", "lexical_declaration"):
            return self._variable_declaration(ts)
        if ts.type == "expression_statement":
            return self.expression(self._first_named(ts))
        return self.expression(ts)

    def _for(self, ts: TSNode) -> ForStatement:
        start, end = self._span(ts)
        return ForStatement(
            start, end,
            init=self._for_clause(ts.child_by_field_name("initializer")),
            test=self._for_clause(ts.child_by_field_name("condition")),
            update=self._for_clause(ts.child_by_field_name("increment")),
            body=self.statement(ts.child_by_field_name("body")),
        )

    def _for_in(self, ts: TSNode) -> ForInStatement:
        start, end = self._span(ts)
        left_ts = ts.child_by_field_name("left")
        kind_ts = ts.child_by_field_name("kind")
        operator = ts.child_by_field_name("operator")
        if kind_ts is not None:
            target = self._pattern(left_ts)
            d_start = self.char(kind_ts.start_byte)
            declarator = VariableDeclarator(target.start, target.end, id=target)
            left = VariableDeclaration(d_start, target.end, declarations=[declarator],
                                       kind=self.text_of(kind_ts))
        else:
            left = self.expression(left_ts)
        return ForInStatement(
            start, end,
            left=left,
            right=self.expression(ts.child_by_field_name("right")),
            body=self.statement(ts.child_by_field_name("body")),
            of=operator is not None and self.text_of(operator) == "of",
        )

    def _while(self, ts: TSNode) -> WhileStatement:
        start, end = self._span(ts)
        return WhileStatement(
            start, end,
            test=self.expression(ts.child_by_field_name("condition")),
            body=self.statement(ts.child_by_field_name("body")),
        )

    def _do_while(self, ts: TSNode) -> DoWhileStatement:
        start, end = self._span(ts)
        return DoWhileStatement(
            start, end,
            body=self.statement(ts.child_by_field_name("body")),
            test=self.expression(ts.child_by_field_name("condition")),
        )

    def _try(self, ts: TSNode) -> TryStatement:
        start, end = self._span(ts)
        handler = None
        handler_ts = ts.child_by_field_name("handler")
        if handler_ts is not None:
            h_start, h_end = self._span(handler_ts)
            param_ts = handler_ts.child_by_field_name("parameter")
            handler = CatchClause(
                h_start, h_end,
                param=self._pattern(param_ts) if param_ts is not None else None,
                body=self._block(handler_ts.child_by_field_name("body")),
            )
        finalizer = None
        finalizer_ts = ts.child_by_field_name("finalizer")
        if finalizer_ts is not None:
            finalizer = self._block(finalizer_ts.child_by_field_name("body"))
        return TryStatement(
            start, end,
            block=self._block(ts.child_by_field_name("body")),
            handler=handler,
            finalizer=finalizer,
        )

    def _with(self, ts: TSNode) -> WithStatement:
        start, end = self._span(ts)
        return WithStatement(
            start, end,
            object=self.expression(ts.child_by_field_name("object")),
            body=self.statement(ts.child_by_field_name("body")),
        )

    def _break(self, ts: TSNode) -> BreakStatement:
        start, end = self._span(ts)
        return BreakStatement(start, end, label=self._optional_identifier(ts.child_by_field_name("label")))

    def _continue(self, ts: TSNode) -> ContinueStatement:
        start, end = self._span(ts)
        return ContinueStatement(start, end, label=self._optional_identifier(ts.child_by_field_name("label")))

    def _return(self, ts: TSNode) -> ReturnStatement:
        start, end = self._span(ts)
        return ReturnStatement(start, end, argument=self.expression(self._first_named(ts)))

    def _throw(self, ts: TSNode) -> ThrowStatement:
        start, end = self._span(ts)
        return ThrowStatement(start, end, argument=self.expression(self._first_named(ts)))

    def _empty(self, ts: TSNode) -> EmptyStatement:
        start, end = self._span(ts)
        return EmptyStatement(start, end)

    def _debugger(self, ts: TSNode) -> DebuggerStatement:
        start, end = self._span(ts)
        return DebuggerStatement(start, end)

    def _labeled(self, ts: TSNode) -> LabeledStatement:
        start, end = self._span(ts)
        return LabeledStatement(
            start, end,
            label=self._optional_identifier(ts.child_by_field_name("label")),
            body=self.statement(ts.child_by_field_name("body")),
        )

    # ────────────────────────────────────────────────────────────────
    #  Functions and patterns
    # ────────────────────────────────────────────────────────────────

    def _optional_identifier(self, ts: Optional[TSNode]) -> Optional[Identifier]:
        if ts is None:
            return None
        start, end = self._span(ts)
        return Identifier(start, end, name=self.text_of(ts))

    def _params(self, ts: Optional[TSNode]) -> List[Node]:
        if ts is None:
            return []
        return [self._pattern(c) for c in self._named(ts)]

    def _pattern(self, ts: TSNode) -> Node:
        kind = ts.type
        start, end = self._span(ts)
        if kind in ("identifier", "shorthand_property_identifier_pattern", "undefined"):
            return Identifier(start, end, name=self.text_of(ts))
        if kind in ("assignment_pattern", "object_assignment_pattern"):
            return AssignmentPattern(
                start, end,
                left=self._pattern(ts.child_by_field_name("left")),
                right=self.expression(ts.child_by_field_name("right")),
            )
        if kind == "rest_pattern":
            inner = self._first_named(ts)
            return RestElement(start, end, argument=self._pattern(inner) if inner is not None else None)
        if kind == "pair_pattern":
            return self._pattern(ts.child_by_field_name("value"))
        if kind in ("object_pattern", "array_pattern"):
            return OpaqueNode(start, end, kind=kind, items=[self._pattern(c) for c in self._named(ts)])
        return self.expression(ts)

    def _function_parts(self, ts: TSNode):
        return (
            self._params(ts.child_by_field_name("parameters")),
            self._block(ts.child_by_field_name("body")),
        )

    def _function_expression(self, ts: TSNode) -> FunctionExpression:
        start, end = self._span(ts)
        params, body = self._function_parts(ts)
        return FunctionExpression(
            start, end,
            id=self._optional_identifier(ts.child_by_field_name("name")),
            params=params,
            body=body,
        )

    def _arrow_function(self, ts: TSNode) -> ArrowFunctionExpression:
        start, end = self._span(ts)
        single = ts.child_by_field_name("parameter")
        params = [self._pattern(single)] if single is not None else self._params(ts.child_by_field_name("parameters"))
        body_ts = ts.child_by_field_name("body")
        if body_ts is not None and body_ts.type == "statement_block":
            return ArrowFunctionExpression(start, end, params=params, body=self._block(body_ts))
        return ArrowFunctionExpression(start, end, params=params, body=self.expression(body_ts), expression=True)

    def _class_method(self, ts: TSNode) -> FunctionExpression:
        """Class-body method: only its function part is modelled."""
        params, body = self._function_parts(ts)
        params_ts = ts.child_by_field_name("parameters")
        start = self.char(params_ts.start_byte) if params_ts is not None else self.char(ts.start_byte)
        return FunctionExpression(start, self.char(ts.end_byte), params=params, body=body)

    # ────────────────────────────────────────────────────────────────
    #  Expressions
    # ────────────────────────────────────────────────────────────────

    def _identifier(self, ts: TSNode) -> Identifier:
        start, end = self._span(ts)
        return Identifier(start, end, name=self.text_of(ts))

    def _this(self, ts: TSNode) -> ThisExpression:
        start, end = self._span(ts)
        return ThisExpression(start, end)

    def _number(self, ts: TSNode) -> Literal:
        start, end = self._span(ts)
        raw = self.text_of(ts)
        return Literal(start, end, value=_number_value(raw), raw=raw)

    def _string(self, ts: TSNode) -> Literal:
        start, end = self._span(ts)
        raw = self.text_of(ts)
        parts = []
        named = self._named(ts)
        if not named:
            value = raw[1:-1]
        else:
            for c in named:
                if c.type == "escape_sequence":
                    parts.append(_unescape(self.text_of(c)))
                else:
                    parts.append(self.text_of(c))
            value = "".join(parts)
        return Literal(start, end, value=value, raw=raw)

    def _regex(self, ts: TSNode) -> Literal:
        start, end = self._span(ts)
        return Literal(start, end, value=None, raw=self.text_of(ts))

    def _keyword_literal(self, ts: TSNode) -> Literal:
        start, end = self._span(ts)
        value = {"true": True, "false": False}.get(ts.type)
        return Literal(start, end, value=value, raw=ts.type)

    def _template(self, ts: TSNode) -> TemplateLiteral:
        start, end = self._span(ts)
        expressions = []
        for c in self._named(ts):
            if c.type == "template_substitution":
                inner = self._first_named(c)
                if inner is not None:
                    expressions.append(self.expression(inner))
        return TemplateLiteral(start, end, expressions=expressions)

    def _parenthesized(self, ts: TSNode) -> Node:
        inner = self._first_named(ts)
        if inner is None:
            return self._opaque(ts)
        return self.expression(inner)

    def _sequence(self, ts: TSNode) -> SequenceExpression:
        start, end = self._span(ts)
        expressions: List[Node] = []

        def collect(node: TSNode):
            for c in self._named(node):
                if c.type == "sequence_expression":
                    collect(c)
                else:
                    expressions.append(self.expression(c))

        collect(ts)
        return SequenceExpression(start, end, expressions=expressions)

    def _array(self, ts: TSNode) -> ArrayExpression:
        start, end = self._span(ts)
        return ArrayExpression(start, end, elements=[self.expression(c) for c in self._named(ts)])

    def _property_key(self, ts: TSNode):
        """Returns ``(key_node, computed)``."""
        if ts.type == "computed_property_name":
            return self.expression(self._first_named(ts)), True
        if ts.type == "string":
            return self._string(ts), False
        if ts.type == "number":
            return self._number(ts), False
        return self._identifier(ts), False

    def _object(self, ts: TSNode) -> ObjectExpression:
        start, end = self._span(ts)
        properties: List[Node] = []
        for c in self._named(ts):
            c_start, c_end = self._span(c)
            if c.type == "pair":
                key, computed = self._property_key(c.child_by_field_name("key"))
                properties.append(Property(
                    c_start, c_end, key=key, computed=computed,
                    value=self.expression(c.child_by_field_name("value")),
                ))
            elif c.type == "shorthand_property_identifier":
                properties.append(Property(
                    c_start, c_end, shorthand=True,
                    key=self._identifier(c), value=self._identifier(c),
                ))
            elif c.type == "method_definition":
                properties.append(self._object_method(c))
            else:
                properties.append(self.expression(c))
        return ObjectExpression(start, end, properties=properties)

    def _object_method(self, ts: TSNode) -> Property:
        start, end = self._span(ts)
        name_ts = ts.child_by_field_name("name")
        kind = "init"
        for c in ts.children:
            if c.start_byte >= name_ts.start_byte:
                break
            if c.type in ("get", "set"):
                kind = c.type
        key, computed = self._property_key(name_ts)
        params, body = self._function_parts(ts)
        params_ts = ts.child_by_field_name("parameters")
        f_start = self.char(params_ts.start_byte) if params_ts is not None else end
        value = FunctionExpression(f_start, end, params=params, body=body)
        return Property(start, end, key=key, value=value, kind=kind,
                        computed=computed, method=kind == "init")

    def _arguments(self, ts: Optional[TSNode]) -> List[Node]:
        if ts is None:
            return []
        if ts.type == "template_string":
            return [self._template(ts)]
        return [self.expression(c) for c in self._named(ts)]

    def _call(self, ts: TSNode) -> CallExpression:
        start, end = self._span(ts)
        return CallExpression(
            start, end,
            callee=self.expression(ts.child_by_field_name("function")),
            arguments=self._arguments(ts.child_by_field_name("arguments")),
        )

    def _new(self, ts: TSNode) -> NewExpression:
        start, end = self._span(ts)
        return NewExpression(
            start, end,
            callee=self.expression(ts.child_by_field_name("constructor")),
            arguments=self._arguments(ts.child_by_field_name("arguments")),
        )

    def _member(self, ts: TSNode) -> MemberExpression:
        start, end = self._span(ts)
        return MemberExpression(
            start, end,
            object=self.expression(ts.child_by_field_name("object")),
            property=self._identifier(ts.child_by_field_name("property")),
        )

    def _subscript(self, ts: TSNode) -> MemberExpression:
        start, end = self._span(ts)
        return MemberExpression(
            start, end,
            object=self.expression(ts.child_by_field_name("object")),
            property=self.expression(ts.child_by_field_name("index")),
            computed=True,
        )

    def _assignment(self, ts: TSNode) -> AssignmentExpression:
        start, end = self._span(ts)
        operator_ts = ts.child_by_field_name("operator")
        left_ts = ts.child_by_field_name("left")
        if left_ts is not None and left_ts.type in ("object_pattern", "array_pattern"):
            left = self._pattern(left_ts)
        else:
            left = self.expression(left_ts)
        return AssignmentExpression(
            start, end,
            operator=self.text_of(operator_ts) if operator_ts is not None else "=",
            left=left,
            right=self.expression(ts.child_by_field_name("right")),
        )

    def _unary(self, ts: TSNode) -> UnaryExpression:
        start, end = self._span(ts)
        return UnaryExpression(
            start, end,
            operator=self.text_of(ts.child_by_field_name("operator")),
            argument=self.expression(ts.child_by_field_name("argument")),
        )

    def _binary(self, ts: TSNode) -> Node:
        # left-nested chains (a + b + c ...) are built bottom-up in a loop
        chain = [ts]
        while True:
            left_ts = chain[-1].child_by_field_name("left")
            if left_ts is None or left_ts.type != "binary_expression":
                break
            chain.append(left_ts)
        node = self.expression(chain[-1].child_by_field_name("left"))
        for current in reversed(chain):
            start, end = self._span(current)
            operator = self.text_of(current.child_by_field_name("operator"))
            right = self.expression(current.child_by_field_name("right"))
            if operator in _LOGICAL_OPERATORS:
                node = LogicalExpression(start, end, operator=operator, left=node, right=right)
            else:
                node = BinaryExpression(start, end, operator=operator, left=node, right=right)
        return node

    def _update(self, ts: TSNode) -> UpdateExpression:
        start, end = self._span(ts)
        operator_ts = ts.child_by_field_name("operator")
        argument_ts = ts.child_by_field_name("argument")
        return UpdateExpression(
            start, end,
            operator=self.text_of(operator_ts),
            argument=self.expression(argument_ts),
            prefix=operator_ts.start_byte < argument_ts.start_byte,
        )

    def _ternary(self, ts: TSNode) -> ConditionalExpression:
        start, end = self._span(ts)
        return ConditionalExpression(
            start, end,
            test=self.expression(ts.child_by_field_name("condition")),
            consequent=self.expression(ts.child_by_field_name("consequence")),
            alternate=self.expression(ts.child_by_field_name("alternative")),
        )

    def _spread(self, ts: TSNode) -> SpreadElement:
        start, end = self._span(ts)
        return SpreadElement(start, end, argument=self.expression(self._first_named(ts)))
