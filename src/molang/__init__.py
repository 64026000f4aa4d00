"""
Molang expression engine.

This package provides a lenient interpreter for short numeric formulas
with ``;``-separated statements, scoped variables and a library of
``math.*`` functions. Formulas always evaluate to a number; anomalies
are reported as diagnostics unless strict mode is enabled.
"""

# Core types and utilities
from .ast import (
    AssignmentNode,
    AstNode,
    AstNodeBase,
    BinaryOperator,
    BinaryOpNode,
    Expression,
    FunctionCallNode,
    IdentifierNode,
    NumberLiteralNode,
    StatementNode,
    TernaryOpNode,
    UnaryOperator,
    UnaryOpNode,
    ast_to_string,
    calculate_ast_depth,
    count_ast_nodes,
)

# Math library
from .builtins import (
    MATH_FUNCTIONS,
    BuiltinContext,
    BuiltinFunction,
    FunctionRegistry,
    MathFunction,
    call_builtin,
    is_builtin_function,
)
from .cache import ExpressionCache
from .config import EngineConfig

# Engine
from .engine import MolangEngine, evaluate_formula, get_default_engine
from .environment import (
    EvaluationContext,
    ExprValue,
    GlobalScope,
    VariableResolver,
    expand_name,
    to_number,
)
from .errors import (
    ConfigurationError,
    Diagnostic,
    EvaluationError,
    ExpressionError,
    LimitExceededError,
    ParseError,
)

# Evaluator
from .evaluator import (
    EvaluationResult,
    Evaluator,
    evaluate,
)
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
)

# Parser
from .parser import (
    Parser,
    parse,
)
from .splitter import normalize

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "NumberLiteralNode",
    "IdentifierNode",
    "StatementNode",
    "AssignmentNode",
    "FunctionCallNode",
    "UnaryOpNode",
    "BinaryOpNode",
    "TernaryOpNode",
    "UnaryOperator",
    "BinaryOperator",
    "Expression",
    "count_ast_nodes",
    "calculate_ast_depth",
    "ast_to_string",
    # Errors
    "ExpressionError",
    "ParseError",
    "EvaluationError",
    "LimitExceededError",
    "ConfigurationError",
    "Diagnostic",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    # Parser
    "Parser",
    "parse",
    "normalize",
    # Environment
    "EvaluationContext",
    "ExprValue",
    "GlobalScope",
    "VariableResolver",
    "expand_name",
    "to_number",
    # Evaluator
    "EvaluationResult",
    "Evaluator",
    "evaluate",
    # Math library
    "BuiltinContext",
    "BuiltinFunction",
    "FunctionRegistry",
    "MathFunction",
    "MATH_FUNCTIONS",
    "call_builtin",
    "is_builtin_function",
    # Cache, configuration and engine
    "ExpressionCache",
    "EngineConfig",
    "MolangEngine",
    "evaluate_formula",
    "get_default_engine",
]
