"""
Error types for the expression engine.

The engine is lenient by default: anomalies degrade to ``0`` and are
reported as diagnostics. These errors surface only in strict mode and
when loading configuration. All of them extend ExpressionError.
"""

from dataclasses import dataclass
from typing import Literal, Optional

# Categories of degraded behaviour recorded instead of raising.
DiagnosticKind = Literal[
    "unparsable",
    "unknown_function",
    "argument_count",
    "unbalanced_parentheses",
    "limit_exceeded",
]


class ExpressionError(Exception):
    """
    Base error class for all expression-related errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.
        """
        if self.expression is None or self.position is None:
            return self.message

        pointer = " " * self.position + "^"
        return f"{self.message}\n  {self.expression}\n  {pointer}"


class ParseError(ExpressionError):
    """
    Error thrown when a formula contains a fragment the parser cannot read.
    """

    pass


class EvaluationError(ExpressionError):
    """
    Error thrown during evaluation (runtime error).
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        name: Optional[str] = None,
    ):
        super().__init__(message, position, expression)
        self.name = name


class LimitExceededError(EvaluationError):
    """
    Error thrown when expression limits are exceeded.
    """

    def __init__(self, limit_name: str, limit: int, actual: int):
        message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message, name=limit_name)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual


class ConfigurationError(ExpressionError):
    """
    Error thrown when engine configuration cannot be loaded or validated.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


@dataclass(frozen=True)
class Diagnostic:
    """
    An anomaly the engine recovered from.

    Diagnostics are collected on parsed expressions and evaluation
    results; strict mode converts the first one into an exception.
    """

    kind: DiagnosticKind
    message: str
    position: Optional[int] = None
    expression: Optional[str] = None

    # Populated for limit_exceeded diagnostics only
    limit_name: Optional[str] = None
    limit: Optional[int] = None
    actual: Optional[int] = None

    def to_error(self) -> ExpressionError:
        """Builds the exception strict mode raises for this diagnostic."""
        if self.kind == "limit_exceeded":
            return LimitExceededError(
                self.limit_name or "unknown",
                self.limit or 0,
                self.actual or 0,
            )
        return ParseError(self.message, self.position, self.expression)


def limit_diagnostic(
    limit_name: str,
    limit: int,
    actual: int,
    expression: Optional[str] = None,
) -> Diagnostic:
    """Creates a limit_exceeded diagnostic with the same wording as the error."""
    return Diagnostic(
        kind="limit_exceeded",
        message=f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})",
        expression=expression,
        limit_name=limit_name,
        limit=limit,
        actual=actual,
    )
