"""
Parser for the expression language.

Turns normalized formula text into an Expression (one AST node per
';'-separated line). There is no tokenizer: each fragment is tested
against an ordered list of shapes, and operators are found by scanning
for top-level occurrences, so the first operator tested binds loosest.

Order of tests for a fragment:
1. Empty -> 0
2. Numeric literal
3. Enclosing parentheses (stripped, then re-parsed)
4. return <expr>
5. Assignment: temp.x= / variable.x= / t.x= / v.x=
6. Null coalescing: ??
7. Ternary: ? :
8. &&, ||, <=, <, >=, >, ==, !=, + (right to left), - (right to left),
   *, /, prefix !
9. math.* function calls and math.pi
10. Identifier
11. Anything else -> 0 (recorded as a diagnostic)

Parsing never raises. Unreadable fragments become ``0`` and are
reported on Expression.diagnostics.
"""

import logging
import math
from typing import List, Optional, Tuple

from .ast import (
    AssignmentNode,
    AstNode,
    BinaryOperator,
    BinaryOpNode,
    Expression,
    FunctionCallNode,
    IdentifierNode,
    NumberLiteralNode,
    StatementNode,
    TernaryOpNode,
    UnaryOpNode,
    ast_to_string,
    calculate_ast_depth,
    count_ast_nodes,
)
from .builtins import MATH_FUNCTIONS, FunctionRegistry
from .errors import Diagnostic, DiagnosticKind, limit_diagnostic
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_ast_depth,
    check_expression_length,
)
from .splitter import (
    OPERATOR_CHARS,
    find_assignment,
    is_balanced,
    is_identifier,
    normalize,
    parse_number,
    split_statements,
    split_top_level,
    strip_parentheses,
)

logger = logging.getLogger("molang.parser")

# Binary operators after '??' and the ternary, in the order they are tried.
# The flag marks a right-to-left scan.
BINARY_OPERATOR_ORDER: Tuple[Tuple[BinaryOperator, bool], ...] = (
    ("&&", False),
    ("||", False),
    ("<=", False),
    ("<", False),
    (">=", False),
    (">", False),
    ("==", False),
    ("!=", False),
    ("+", True),
    ("-", True),
    ("*", False),
    ("/", False),
)

RETURN_KEYWORD = "return"
MATH_PREFIX = "math."
MATH_PI = "math.pi"


class Parser:
    """Parser for normalized formula text."""

    def __init__(
        self,
        source: str,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
        functions: Optional[FunctionRegistry] = None,
    ):
        self._source = source
        self._limits = limits
        self._functions = functions or MATH_FUNCTIONS
        self._diagnostics: List[Diagnostic] = []

    def parse(self) -> Expression:
        """Parses the whole source into an Expression."""
        if not check_expression_length(self._source, self._limits):
            diagnostic = limit_diagnostic(
                "max_expression_length",
                self._limits.max_expression_length,
                len(self._source),
                self._source,
            )
            logger.warning(
                "expression_too_long",
                extra={"length": len(self._source), "limit": self._limits.max_expression_length},
            )
            return Expression(
                source=self._source,
                lines=(NumberLiteralNode(position=0, value=0.0),),
                diagnostics=(diagnostic,),
            )

        if not is_balanced(self._source):
            self._report("unbalanced_parentheses", "Unbalanced parentheses", 0)

        lines = tuple(
            self.parse_node(line, offset) for line, offset in split_statements(self._source)
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "expression_parsed",
                extra={
                    "source": self._source,
                    "node_count": sum(count_ast_nodes(line) for line in lines),
                    "ast_depth": max(calculate_ast_depth(line) for line in lines),
                    "tree": "\n".join(ast_to_string(line) for line in lines),
                },
            )
        return Expression(
            source=self._source,
            lines=lines,
            diagnostics=tuple(self._diagnostics),
        )

    def parse_node(self, s: str, position: int = 0, depth: int = 0) -> AstNode:
        """Parses a single fragment into an AST node."""
        if not check_ast_depth(depth, self._limits):
            self._diagnostics.append(
                limit_diagnostic(
                    "max_ast_depth", self._limits.max_ast_depth, depth, self._source
                )
            )
            return NumberLiteralNode(position=position, value=0.0)

        if not s:
            return NumberLiteralNode(position=position, value=0.0)

        number = parse_number(s)
        if number is not None:
            return NumberLiteralNode(position=position, value=number)

        # Stripped text is parsed from the top, so "(5)" reads as the number 5
        stripped, removed = strip_parentheses(s)
        if removed:
            return self.parse_node(stripped, position + removed, depth + 1)

        next_depth = depth + 1

        # Statement
        if len(s) > 5 and s.startswith(RETURN_KEYWORD):
            offset = len(RETURN_KEYWORD)
            return StatementNode(
                position=position,
                kind="return",
                value=self.parse_node(s[offset:], position + offset, next_depth),
            )

        # Assignment
        assignment = find_assignment(s)
        if assignment is not None:
            return AssignmentNode(
                position=position,
                target=assignment.target,
                value=self.parse_node(
                    assignment.value, position + assignment.value_index, next_depth
                ),
            )

        # Null coalescing
        node = self._try_binary(s, "??", False, position, next_depth)
        if node is not None:
            return node

        # Ternary
        split = split_top_level(s, "?")
        if split is not None:
            branch_position = position + split.index + 1
            branches = split_top_level(split.right, ":")
            if branches is not None:
                consequent = self.parse_node(branches.left, branch_position, next_depth)
                alternate = self.parse_node(
                    branches.right, branch_position + branches.index + 1, next_depth
                )
            else:
                consequent = self.parse_node(split.right, branch_position, next_depth)
                alternate = NumberLiteralNode(position=position + len(s), value=0.0)
            return TernaryOpNode(
                position=position,
                condition=self.parse_node(split.left, position, next_depth),
                consequent=consequent,
                alternate=alternate,
            )

        # Two part operators
        for operator, reverse in BINARY_OPERATOR_ORDER:
            if operator == "-":
                node = self._try_minus(s, position, next_depth)
            else:
                node = self._try_binary(s, operator, reverse, position, next_depth)
            if node is not None:
                return node

        # Negation
        if s[0] == "!" and len(s) > 1:
            return UnaryOpNode(
                position=position,
                operator="!",
                operand=self.parse_node(s[1:], position + 1, next_depth),
            )

        # Functions
        if s.startswith(MATH_PREFIX):
            node = self._parse_math(s, position, next_depth)
            if node is not None:
                return node

        if is_identifier(s):
            return IdentifierNode(position=position, name=s)

        self._report("unparsable", f"Cannot parse '{s}'", position)
        return NumberLiteralNode(position=position, value=0.0)

    def _try_binary(
        self,
        s: str,
        operator: BinaryOperator,
        reverse: bool,
        position: int,
        depth: int,
    ) -> Optional[AstNode]:
        split = split_top_level(s, operator, reverse)
        if split is None:
            return None
        return BinaryOpNode(
            position=position + split.index,
            operator=operator,
            left=self.parse_node(split.left, position, depth),
            right=self.parse_node(
                split.right, position + split.index + len(operator), depth
            ),
        )

    def _try_minus(self, s: str, position: int, depth: int) -> Optional[AstNode]:
        """
        Subtraction, found by the last top-level '-'.

        An empty left side reads as ``0 - right``. A '-' following another
        operator character is a sign, so the whole test fails and the
        fragment falls through to the lower-priority operators.
        """
        split = split_top_level(s, "-", reverse=True)
        if split is None:
            return None
        if split.left and split.left[-1] in OPERATOR_CHARS:
            return None
        right = self.parse_node(split.right, position + split.index + 1, depth)
        if not split.left:
            left: AstNode = NumberLiteralNode(position=position, value=0.0)
        else:
            left = self.parse_node(split.left, position, depth)
        return BinaryOpNode(
            position=position + split.index, operator="-", left=left, right=right
        )

    def _parse_math(self, s: str, position: int, depth: int) -> Optional[AstNode]:
        if s.startswith(MATH_PI):
            return NumberLiteralNode(position=position, value=math.pi)

        begin = s.find("(")
        if begin < 0 or not s.endswith(")"):
            return None

        name = s[len(MATH_PREFIX):begin]
        entry = self._functions.get(name)
        if entry is None:
            self._report("unknown_function", f"Unknown function: math.{name}", position)
            return NumberLiteralNode(position=position, value=0.0)

        inner_position = position + begin + 1
        params, overflow = self._split_arguments(s[begin + 1:-1], inner_position)
        count = 0 if params == [("", inner_position)] else len(params)
        if overflow or count != entry.arity:
            given = f"more than {count}" if overflow else str(count)
            self._report(
                "argument_count",
                f"math.{name}: expected {entry.arity} argument(s), got {given}",
                position,
            )

        args = tuple(
            self.parse_node(text, offset, depth) for text, offset in params[: entry.arity]
        )
        return FunctionCallNode(position=position, name=name, args=args)

    def _split_arguments(
        self, inner: str, position: int
    ) -> Tuple[List[Tuple[str, int]], bool]:
        """
        Splits a call's argument text into at most three arguments.

        The first top-level comma separates the first argument; when more
        follow, the remainder is split once more to recover a third. Text
        past a third comma stays attached to the third argument and is
        flagged as overflow.
        """
        first = split_top_level(inner, ",")
        if first is None:
            return [(inner, position)], False
        params = [(first.left, position)]
        rest_position = position + first.index + 1
        second = split_top_level(first.right, ",")
        if second is None:
            params.append((first.right, rest_position))
            return params, False
        params.append((second.left, rest_position))
        params.append((second.right, rest_position + second.index + 1))
        return params, split_top_level(second.right, ",") is not None

    def _report(self, kind: DiagnosticKind, message: str, position: int) -> None:
        logger.debug(
            "parse_fallback",
            extra={"kind": kind, "detail": message, "position": position},
        )
        self._diagnostics.append(
            Diagnostic(kind=kind, message=message, position=position, expression=self._source)
        )


def parse(
    text: str,
    limits: Optional[ExpressionLimits] = None,
    functions: Optional[FunctionRegistry] = None,
) -> Expression:
    """
    Normalizes and parses formula text into an Expression.

    Args:
        text: The formula text
        limits: Optional expression limits
        functions: Optional math function registry

    Returns:
        The parsed Expression; unreadable fragments parse as 0 and are
        listed in its diagnostics
    """
    return Parser(
        normalize(text),
        limits or DEFAULT_EXPRESSION_LIMITS,
        functions,
    ).parse()


def parse_normalized(
    source: str,
    limits: Optional[ExpressionLimits] = None,
    functions: Optional[FunctionRegistry] = None,
) -> Expression:
    """Parses text that has already been through normalize()."""
    return Parser(source, limits or DEFAULT_EXPRESSION_LIMITS, functions).parse()
