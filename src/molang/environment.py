"""
Variable environment for expression evaluation.

Three scopes cooperate when an identifier is resolved:

- the context scope: per-call bindings (``temp.*``, ``variable.*`` and
  any ad-hoc names supplied by the caller),
- the global scope: owned by an engine and shared by all its calls,
- the host resolver: an optional callable consulted last.

An EvaluationContext bundles the scopes with the per-call scratch state
(unresolved flag, indirection depth, diagnostics) and is threaded
through every recursive evaluation step.
"""

import math
import random
import threading
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Protocol,
    Union,
)

from .ast import Expression
from .builtins import MATH_FUNCTIONS, BuiltinContext, FunctionRegistry
from .errors import Diagnostic
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits
from .parser import parse

# Runtime value types. Strings hold formulas and are evaluated on read.
ExprValue = Union[float, int, bool, str]

# Shorthand scope prefixes expanded before lookup.
SCOPE_ALIASES: Dict[str, str] = {
    "q": "query",
    "v": "variable",
    "t": "temp",
}

# Named constants recognized before any scope lookup.
CONSTANTS: Dict[str, float] = {
    "true": 1.0,
    "false": 0.0,
}


class VariableResolver(Protocol):
    """
    Host-supplied fallback for names no scope binds.

    Called with the fully-qualified name and the current context scope.
    Returning None leaves the name unresolved. Implementations may have
    side effects; the engine calls them at most once per lookup.
    """

    def __call__(
        self, name: str, variables: Mapping[str, ExprValue]
    ) -> Optional[ExprValue]: ...


def expand_name(name: str) -> str:
    """Expands ``q.``/``v.``/``t.`` shorthand to the full scope name."""
    if len(name) > 1 and name[1] == ".":
        scope = SCOPE_ALIASES.get(name[0])
        if scope is not None:
            return scope + name[1:]
    return name


def to_number(value: Any) -> float:
    """
    Coerces a non-string value to a number.

    Booleans read as 1/0. NaN, None and anything that is not a number
    read as 0.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        value = float(value)
        return 0.0 if math.isnan(value) else value
    return 0.0


class GlobalScope:
    """
    Variables shared by every evaluation of one engine.

    Reads and writes are serialized by a re-entrant lock, so concurrent
    evaluations see whole values and writes never interleave.
    """

    def __init__(self, initial: Optional[Mapping[str, ExprValue]] = None):
        self._values: Dict[str, ExprValue] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, name: str, default: Optional[ExprValue] = None) -> Optional[ExprValue]:
        with self._lock:
            return self._values.get(name, default)

    def set(self, name: str, value: ExprValue) -> None:
        with self._lock:
            self._values[name] = value

    def update(self, values: Mapping[str, ExprValue]) -> None:
        with self._lock:
            self._values.update(values)

    def delete(self, name: str) -> bool:
        """Removes a name; returns False if it was not bound."""
        with self._lock:
            if name not in self._values:
                return False
            del self._values[name]
            return True

    def snapshot(self) -> Dict[str, ExprValue]:
        """Returns a consistent copy of all bindings."""
        with self._lock:
            return dict(self._values)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())


@dataclass
class EvaluationContext:
    """Evaluation context with variable scopes and per-call state."""

    variables: MutableMapping[str, ExprValue] = field(default_factory=dict)
    """Context scope; assignments land here unless the global scope owns the name."""

    global_scope: GlobalScope = field(default_factory=GlobalScope)
    """Scope shared across calls."""

    resolver: Optional[VariableResolver] = None
    """Fallback for names neither scope binds."""

    use_radians: bool = False
    """Angle unit for trigonometric functions."""

    limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS
    """Expression limits."""

    rng: random.Random = field(default_factory=random.Random)
    """Source of randomness for math.random and friends."""

    functions: FunctionRegistry = field(default_factory=lambda: MATH_FUNCTIONS)
    """Math function registry."""

    parser: Callable[[str], Expression] = parse
    """Parses string-valued variables; engines route this through their cache."""

    strict: bool = False
    """Raise on limit diagnostics instead of degrading."""

    source: Optional[str] = None
    """Source expression for diagnostics."""

    diagnostics: List[Diagnostic] = field(default_factory=list)
    """Anomalies recorded during evaluation."""

    unresolved: bool = False
    """Set when an identifier could not be resolved; consumed by '??'."""

    indirection_depth: int = 0
    """Current depth of string-valued variables being evaluated."""

    _builtin_context: Optional[BuiltinContext] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def builtin_context(self) -> BuiltinContext:
        """Context handed to math functions; shares this context's diagnostics."""
        if self._builtin_context is None:
            self._builtin_context = BuiltinContext(
                use_radians=self.use_radians,
                rng=self.rng,
                limits=self.limits,
                diagnostics=self.diagnostics,
            )
        else:
            # The angle unit can change between calls on a reused context
            self._builtin_context.use_radians = self.use_radians
        return self._builtin_context

    def seed(self, bindings: Optional[Mapping[str, ExprValue]]) -> None:
        """Copies caller bindings into the context scope."""
        if bindings:
            for key, value in bindings.items():
                self.variables[key] = value

    def lookup(self, name: str) -> Optional[ExprValue]:
        """
        Resolves a fully-qualified name: context, then global, then resolver.

        Returns None when no scope binds the name.
        """
        value = self.variables.get(name)
        if value is None:
            value = self.global_scope.get(name)
        if value is None and self.resolver is not None:
            value = self.resolver(name, self.variables)
        return value

    def assign(self, name: str, value: float) -> None:
        """Stores an assigned value in the scope that owns the name."""
        if name not in self.variables and name in self.global_scope:
            self.global_scope.set(name, value)
        else:
            self.variables[name] = value
