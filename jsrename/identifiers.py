"""
Identifier classification — decides what a token under the cursor names.

A token is a *property* (member access or object-literal key, with the
base expression it is accessed on), a *label* (of a labelled statement or
a break/continue), or a plain *variable*. Anything else is not renameable.
Classification is purely syntactic; it does not consult inferred types.
"""

from dataclasses import dataclass
from typing import Optional

from jsrename.errors import InvariantViolation
from jsrename.js_ast import (
    BreakStatement, ContinueStatement, Identifier, LabeledStatement, Literal,
    MemberExpression, Node, Property,
)

VARIABLE = "variable"
PROPERTY = "property"
LABEL = "label"


@dataclass
class ClassifiedIdentifier:
    kind: str
    name: str
    base: Optional[Node] = None   # object expression, for properties


def classify_id(node: Node) -> Optional[ClassifiedIdentifier]:
    """Classify an identifier or string-literal node, or return None."""
    if not isinstance(node, Node):
        raise InvariantViolation(f"Not an AST node: {node!r}")
    is_string = isinstance(node, Literal) and node.is_string
    if not isinstance(node, Identifier) and not is_string:
        return None

    parent = node.parent
    if isinstance(parent, MemberExpression) and parent.property is node:
        if not parent.computed and isinstance(node, Identifier):
            return ClassifiedIdentifier(PROPERTY, node.name, parent.object)
        if parent.computed and is_string:
            return ClassifiedIdentifier(PROPERTY, node.value, parent.object)
    elif isinstance(parent, Property) and parent.key is node and not parent.computed:
        name = node.name if isinstance(node, Identifier) else node.value
        return ClassifiedIdentifier(PROPERTY, name, parent.parent)
    elif isinstance(parent, (BreakStatement, ContinueStatement, LabeledStatement)):
        if parent.label is node:
            return ClassifiedIdentifier(LABEL, node.name)

    if isinstance(node, Identifier):
        return ClassifiedIdentifier(VARIABLE, node.name)
    return None
