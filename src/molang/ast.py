"""
Abstract Syntax Tree (AST) node types for the expression language.

The AST is produced by the parser and consumed by the evaluator. Nodes
are frozen; a parsed Expression can be cached and shared freely.
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Literal, Sequence, Tuple, Union

from .errors import Diagnostic

# ============================================================
# Operator Types
# ============================================================

UnaryOperator = Literal["!"]

BinaryOperator = Literal[
    "+",
    "-",
    "*",
    "/",
    "<",
    "<=",
    ">",
    ">=",
    "==",
    "!=",
    "&&",
    "||",
    "??",
]

StatementKind = Literal["return", "plain"]


# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    position: int
    """Offset in the normalized source (for diagnostics)."""


@dataclass(frozen=True)
class NumberLiteralNode(AstNodeBase):
    """Number literal node."""

    value: float

    @property
    def type(self) -> Literal["NumberLiteral"]:
        return "NumberLiteral"


@dataclass(frozen=True)
class IdentifierNode(AstNodeBase):
    """Identifier node, resolved against the variable scopes at evaluation time."""

    name: str

    @property
    def type(self) -> Literal["Identifier"]:
        return "Identifier"


@dataclass(frozen=True)
class StatementNode(AstNodeBase):
    """Statement wrapper; a return statement ends the expression early."""

    kind: StatementKind
    value: "AstNode"

    @property
    def type(self) -> Literal["Statement"]:
        return "Statement"


@dataclass(frozen=True)
class AssignmentNode(AstNodeBase):
    """Assignment to a fully-qualified variable (e.g. variable.x = 1)."""

    target: str
    value: "AstNode"

    @property
    def type(self) -> Literal["Assignment"]:
        return "Assignment"


@dataclass(frozen=True)
class FunctionCallNode(AstNodeBase):
    """Call to one of the math.* functions."""

    name: str
    args: Sequence["AstNode"]

    @property
    def type(self) -> Literal["FunctionCall"]:
        return "FunctionCall"


@dataclass(frozen=True)
class UnaryOpNode(AstNodeBase):
    """Unary operator node."""

    operator: UnaryOperator
    operand: "AstNode"

    @property
    def type(self) -> Literal["UnaryOp"]:
        return "UnaryOp"


@dataclass(frozen=True)
class BinaryOpNode(AstNodeBase):
    """Binary operator node."""

    operator: BinaryOperator
    left: "AstNode"
    right: "AstNode"

    @property
    def type(self) -> Literal["BinaryOp"]:
        return "BinaryOp"


@dataclass(frozen=True)
class TernaryOpNode(AstNodeBase):
    """Ternary operator node (condition ? consequent : alternate)."""

    condition: "AstNode"
    consequent: "AstNode"
    alternate: "AstNode"

    @property
    def type(self) -> Literal["TernaryOp"]:
        return "TernaryOp"


# Union type for all AST nodes
AstNode = Union[
    NumberLiteralNode,
    IdentifierNode,
    StatementNode,
    AssignmentNode,
    FunctionCallNode,
    UnaryOpNode,
    BinaryOpNode,
    TernaryOpNode,
]


@dataclass(frozen=True)
class Expression:
    """
    A parsed formula: one node per ';'-separated line.

    Lines are evaluated in order. The value of the expression is the
    value of the first return statement or, failing that, of the last
    line.
    """

    source: str
    lines: Tuple[AstNode, ...]
    diagnostics: Tuple[Diagnostic, ...] = field(default=(), compare=False)


# ============================================================
# AST Utilities
# ============================================================


def _children(node: AstNode) -> Tuple[AstNode, ...]:
    if isinstance(node, (StatementNode, AssignmentNode)):
        return (node.value,)
    if isinstance(node, FunctionCallNode):
        return tuple(node.args)
    if isinstance(node, UnaryOpNode):
        return (node.operand,)
    if isinstance(node, BinaryOpNode):
        return (node.left, node.right)
    if isinstance(node, TernaryOpNode):
        return (node.condition, node.consequent, node.alternate)
    return ()


def count_ast_nodes(node: AstNode) -> int:
    """Counts the total number of nodes in an AST."""
    return 1 + sum(count_ast_nodes(child) for child in _children(node))


def calculate_ast_depth(node: AstNode) -> int:
    """Calculates the maximum depth of an AST."""
    children = _children(node)
    if not children:
        return 1
    return 1 + max(calculate_ast_depth(child) for child in children)


def ast_to_string(node: AstNode, indent: int = 0) -> str:
    """Returns a human-readable representation of an AST node for debugging."""
    prefix = "  " * indent

    if isinstance(node, NumberLiteralNode):
        return f"{prefix}Number: {node.value}"

    if isinstance(node, IdentifierNode):
        return f"{prefix}Identifier: {node.name}"

    if isinstance(node, StatementNode):
        return f"{prefix}Statement: {node.kind}\n{ast_to_string(node.value, indent + 1)}"

    if isinstance(node, AssignmentNode):
        return f"{prefix}Assignment: {node.target}\n{ast_to_string(node.value, indent + 1)}"

    if isinstance(node, FunctionCallNode):
        args_str = "\n".join(ast_to_string(a, indent + 1) for a in node.args)
        return f"{prefix}FunctionCall: {node.name}\n{args_str}"

    if isinstance(node, UnaryOpNode):
        return f"{prefix}UnaryOp: {node.operator}\n{ast_to_string(node.operand, indent + 1)}"

    if isinstance(node, BinaryOpNode):
        return (
            f"{prefix}BinaryOp: {node.operator}\n"
            f"{ast_to_string(node.left, indent + 1)}\n"
            f"{ast_to_string(node.right, indent + 1)}"
        )

    if isinstance(node, TernaryOpNode):
        return (
            f"{prefix}TernaryOp:\n"
            f"{prefix}  condition:\n{ast_to_string(node.condition, indent + 2)}\n"
            f"{prefix}  consequent:\n{ast_to_string(node.consequent, indent + 2)}\n"
            f"{prefix}  alternate:\n{ast_to_string(node.alternate, indent + 2)}"
        )

    return f"{prefix}Unknown: {node}"
