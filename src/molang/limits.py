"""
Resource limits for expression parsing and evaluation.

The checks never raise: each returns whether the value is within its
limit so callers can degrade to ``0`` and record a diagnostic.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum normalized expression length in characters
    max_expression_length: int = 4096

    # Maximum AST depth (nesting level) built by the parser
    max_ast_depth: int = 200

    # Maximum chain of string-valued variables re-parsed as formulas
    max_indirection_depth: int = 16

    # Maximum number of samples summed by math.die_roll / die_roll_integer
    max_die_rolls: int = 10_000


# Default expression limits.
#
# The die-roll cap sits well below the language's own 1e9 clamp so a
# caller-supplied count cannot stall the interpreter.
DEFAULT_EXPRESSION_LIMITS = ExpressionLimits()

# Upper bound the language itself applies to die-roll counts.
DIE_ROLL_CLAMP = 1e9


def check_expression_length(
    expression: str, limits: Optional[ExpressionLimits] = None
) -> bool:
    """Returns True if the expression length is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    return len(expression) <= limits.max_expression_length


def check_ast_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> bool:
    """Returns True if a parse depth is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    return depth <= limits.max_ast_depth


def check_indirection_depth(
    depth: int, limits: Optional[ExpressionLimits] = None
) -> bool:
    """Returns True if a variable indirection depth is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    return depth <= limits.max_indirection_depth
