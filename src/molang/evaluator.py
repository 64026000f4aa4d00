"""
Expression evaluator.

Walks a parsed Expression against an EvaluationContext and returns a
number. Every value is a float: comparisons and logical operators yield
1.0 or 0.0, and zero and NaN are false.

Leniency:
- Unresolved identifiers evaluate to 0 and raise the context's
  unresolved flag, which only '??' consumes.
- Math domain errors produce NaN or an infinity, never an exception.
- Limit violations degrade to 0 and are recorded as diagnostics; in
  strict mode they raise instead.

Only the ternary and '??' skip evaluating an operand. Both sides of
'&&' and '||' are always evaluated, so their assignments always happen.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

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
)
from .builtins import call_builtin, divide, is_truthy
from .environment import (
    CONSTANTS,
    EvaluationContext,
    ExprValue,
    expand_name,
    to_number,
)
from .errors import Diagnostic, ExpressionError, limit_diagnostic
from .limits import check_indirection_depth

logger = logging.getLogger("molang.evaluator")


@dataclass
class EvaluationResult:
    """Result of expression evaluation with diagnostics."""

    value: float
    """The evaluated value (0 when evaluation failed)."""

    success: bool
    """Whether evaluation completed without a strict-mode error."""

    error: Optional[str] = None
    """Error message if evaluation failed."""

    diagnostics: Tuple[Diagnostic, ...] = ()
    """Anomalies recovered from while parsing and evaluating."""

    variables: Dict[str, ExprValue] = field(default_factory=dict)
    """Context scope after evaluation, including assignments."""


class Evaluator:
    """Evaluates AST nodes against an evaluation context."""

    def __init__(self, context: EvaluationContext):
        self._context = context

    def evaluate_expression(self, expression: Expression) -> float:
        """
        Evaluates the lines of an expression in order.

        Returns the value of the first return statement, or of the last
        line when there is none.
        """
        result = 0.0
        for line in expression.lines:
            result = self.evaluate(line)
            if isinstance(line, StatementNode) and line.kind == "return":
                return result
        return result

    def evaluate(self, node: AstNode) -> float:
        """Evaluates an AST node and returns the value."""
        if isinstance(node, NumberLiteralNode):
            return node.value

        if isinstance(node, IdentifierNode):
            return self._evaluate_identifier(node.name)

        if isinstance(node, StatementNode):
            return self.evaluate(node.value)

        if isinstance(node, AssignmentNode):
            value = self.evaluate(node.value)
            self._context.assign(node.target, value)
            return value

        if isinstance(node, BinaryOpNode):
            return self._evaluate_binary_op(node.operator, node.left, node.right)

        if isinstance(node, UnaryOpNode):
            return 1.0 if self.evaluate(node.operand) == 0 else 0.0

        if isinstance(node, TernaryOpNode):
            if is_truthy(self.evaluate(node.condition)):
                return self.evaluate(node.consequent)
            return self.evaluate(node.alternate)

        if isinstance(node, FunctionCallNode):
            return self._evaluate_function_call(node)

        return 0.0

    def _evaluate_identifier(self, raw_name: str) -> float:
        """Resolves an identifier through the context's scopes."""
        constant = CONSTANTS.get(raw_name)
        if constant is not None:
            return constant

        name = expand_name(raw_name)
        value = self._context.lookup(name)

        if value is None:
            self._context.unresolved = True
            logger.debug("unresolved_identifier", extra={"variable": name})
            return 0.0

        if isinstance(value, str):
            return self._evaluate_indirect(name, value)

        return to_number(value)

    def _evaluate_indirect(self, name: str, formula: str) -> float:
        """Evaluates a string-valued variable as a nested formula."""
        context = self._context
        depth = context.indirection_depth + 1
        if not check_indirection_depth(depth, context.limits):
            logger.warning(
                "indirection_depth_exceeded",
                extra={"variable": name, "depth": depth},
            )
            self._record(
                limit_diagnostic(
                    "max_indirection_depth",
                    context.limits.max_indirection_depth,
                    depth,
                    formula,
                )
            )
            return 0.0

        logger.debug("evaluating_indirect_variable", extra={"variable": name, "depth": depth})
        expression = context.parser(formula)
        for diagnostic in expression.diagnostics:
            self._record(diagnostic)

        context.indirection_depth = depth
        try:
            result = self.evaluate_expression(expression)
        finally:
            context.indirection_depth = depth - 1
        return 0.0 if math.isnan(result) else result

    def _evaluate_function_call(self, node: FunctionCallNode) -> float:
        """Evaluates a math function call."""
        args = [self.evaluate(arg) for arg in node.args]

        context = self._context
        recorded = len(context.diagnostics)
        result = call_builtin(node.name, args, context.builtin_context, context.functions)
        if context.strict and len(context.diagnostics) > recorded:
            raise context.diagnostics[recorded].to_error()
        return result

    def _evaluate_binary_op(
        self,
        operator: BinaryOperator,
        left: AstNode,
        right: AstNode,
    ) -> float:
        """Evaluates a binary operation."""
        if operator == "??":
            return self._evaluate_null_coalescing(left, right)

        left_value = self.evaluate(left)
        right_value = self.evaluate(right)

        if operator == "+":
            return left_value + right_value
        if operator == "-":
            return left_value - right_value
        if operator == "*":
            return left_value * right_value
        if operator == "/":
            return divide(left_value, right_value)

        if operator == "&&":
            return 1.0 if is_truthy(left_value) and is_truthy(right_value) else 0.0
        if operator == "||":
            return 1.0 if is_truthy(left_value) or is_truthy(right_value) else 0.0

        if operator == "<":
            return 1.0 if left_value < right_value else 0.0
        if operator == "<=":
            return 1.0 if left_value <= right_value else 0.0
        if operator == ">":
            return 1.0 if left_value > right_value else 0.0
        if operator == ">=":
            return 1.0 if left_value >= right_value else 0.0
        if operator == "==":
            return 1.0 if left_value == right_value else 0.0
        if operator == "!=":
            return 1.0 if left_value != right_value else 0.0

        return 0.0

    def _evaluate_null_coalescing(self, left: AstNode, right: AstNode) -> float:
        """
        Evaluates ``left ?? right``.

        The right side is used only when evaluating the left side hit an
        unresolved identifier. A variable bound to 0 counts as resolved.
        """
        context = self._context
        outer_unresolved = context.unresolved

        context.unresolved = False
        value = self.evaluate(left)
        if context.unresolved:
            context.unresolved = False
            value = self.evaluate(right)

        context.unresolved = outer_unresolved or context.unresolved
        return value

    def _record(self, diagnostic: Diagnostic) -> None:
        self._context.diagnostics.append(diagnostic)
        if self._context.strict:
            raise diagnostic.to_error()


def evaluate(expression: Expression, context: EvaluationContext) -> EvaluationResult:
    """
    Evaluates an expression against a context and returns the result.

    Args:
        expression: The parsed expression
        context: The evaluation context with variable scopes

    Returns:
        The evaluation result with value, diagnostics and the context
        scope after assignments
    """
    diagnostics = list(expression.diagnostics)
    try:
        if context.strict and diagnostics:
            raise diagnostics[0].to_error()
        value = Evaluator(context).evaluate_expression(expression)
    except ExpressionError as error:
        return EvaluationResult(
            value=0.0,
            success=False,
            error=error.message,
            diagnostics=tuple(diagnostics + context.diagnostics),
            variables=dict(context.variables),
        )
    except RecursionError:
        logger.warning("evaluation_recursion_limit", extra={"source": expression.source})
        diagnostics.append(
            Diagnostic(
                kind="limit_exceeded",
                message="Expression nesting exceeds the interpreter recursion limit",
                expression=expression.source,
                limit_name="recursion_depth",
            )
        )
        return EvaluationResult(
            value=0.0,
            success=False,
            error=diagnostics[-1].message,
            diagnostics=tuple(diagnostics + context.diagnostics),
            variables=dict(context.variables),
        )

    return EvaluationResult(
        value=value,
        success=True,
        diagnostics=tuple(diagnostics + context.diagnostics),
        variables=dict(context.variables),
    )
