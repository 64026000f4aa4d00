"""
Engine facade.

MolangEngine owns everything that outlives a single evaluation: the
configuration, the expression cache, the global scope, the random
number generator and the optional host resolver. Each call builds its
own EvaluationContext, so concurrent calls only share the (locked)
global scope.
"""

from __future__ import annotations

import logging
import math
import random
import threading
from typing import Any, List, Mapping, Optional, Tuple, Union

from molang.ast import Expression
from molang.builtins import MATH_FUNCTIONS
from molang.cache import ExpressionCache
from molang.config import EngineConfig
from molang.environment import (
    EvaluationContext,
    ExprValue,
    GlobalScope,
    VariableResolver,
)
from molang.errors import Diagnostic
from molang.evaluator import EvaluationResult, Evaluator, evaluate
from molang.parser import parse_normalized
from molang.splitter import normalize

logger = logging.getLogger("molang.engine")

# Formula input accepted by the engine; numbers pass straight through.
Source = Union[str, float, int]


class MolangEngine:
    """Evaluates formulas with a shared cache and global scope."""

    def __init__(
        self,
        config: Optional[Union[EngineConfig, Mapping[str, Any]]] = None,
        *,
        resolver: Optional[VariableResolver] = None,
        global_scope: Optional[GlobalScope] = None,
    ):
        if config is None:
            config = EngineConfig()
        elif not isinstance(config, EngineConfig):
            config = EngineConfig.from_mapping(config)

        self._config = config
        self._limits = config.to_limits()
        self._resolver = resolver
        self._use_radians = config.use_radians
        self._strict = config.strict
        self._rng = random.Random(config.random_seed)
        self._global_scope = global_scope or GlobalScope()
        self._global_scope.update(config.global_variables)
        self._cache = ExpressionCache(enabled=config.cache_enabled, parser=self._parse_normalized)

        logger.debug(
            "engine_created",
            extra={
                "cache_enabled": config.cache_enabled,
                "use_radians": config.use_radians,
                "strict": config.strict,
            },
        )

    # ============================================================
    # Configuration
    # ============================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def cache(self) -> ExpressionCache:
        return self._cache

    @property
    def global_scope(self) -> GlobalScope:
        return self._global_scope

    @property
    def cache_enabled(self) -> bool:
        return self._cache.enabled

    @cache_enabled.setter
    def cache_enabled(self, enabled: bool) -> None:
        self._cache.enabled = enabled

    @property
    def use_radians(self) -> bool:
        return self._use_radians

    @use_radians.setter
    def use_radians(self, use_radians: bool) -> None:
        self._use_radians = use_radians

    @property
    def resolver(self) -> Optional[VariableResolver]:
        return self._resolver

    @resolver.setter
    def resolver(self, resolver: Optional[VariableResolver]) -> None:
        self._resolver = resolver

    # ============================================================
    # Parsing
    # ============================================================

    def _parse_normalized(self, source: str) -> Expression:
        return parse_normalized(source, self._limits, MATH_FUNCTIONS)

    def parse(self, source: str) -> Expression:
        """Normalizes and parses a formula, going through the cache."""
        return self._cache.get_or_parse(normalize(source))

    def validate(self, source: str) -> List[Diagnostic]:
        """Returns the parse-time diagnostics for a formula."""
        return list(self.parse(source).diagnostics)

    # ============================================================
    # Evaluation
    # ============================================================

    def new_context(
        self, variables: Optional[Mapping[str, ExprValue]] = None
    ) -> EvaluationContext:
        """
        Creates an evaluation context bound to this engine.

        Pass the same context to several calls to keep ``temp.*`` and
        ``variable.*`` values between them.
        """
        context = EvaluationContext(
            global_scope=self._global_scope,
            resolver=self._resolver,
            use_radians=self._use_radians,
            limits=self._limits,
            rng=self._rng,
            functions=MATH_FUNCTIONS,
            parser=self.parse,
            strict=self._strict,
        )
        context.seed(variables)
        return context

    def evaluate_with_result(
        self,
        source: Source,
        variables: Optional[Mapping[str, ExprValue]] = None,
        *,
        context: Optional[EvaluationContext] = None,
    ) -> EvaluationResult:
        """
        Evaluates a formula and reports diagnostics alongside the value.

        Never raises: strict-mode errors come back as ``success=False``.
        """
        if not isinstance(source, str):
            return EvaluationResult(value=_number_input(source), success=True)

        expression, context = self._bind(source, variables, context)
        result = evaluate(expression, context)
        if not result.success:
            logger.debug(
                "evaluation_failed",
                extra={"source": expression.source, "error": result.error},
            )
        return result

    def evaluate(
        self,
        source: Source,
        variables: Optional[Mapping[str, ExprValue]] = None,
        *,
        context: Optional[EvaluationContext] = None,
    ) -> float:
        """
        Evaluates a formula and returns its value.

        Args:
            source: Formula text; a number is returned as-is (NaN as 0)
            variables: Bindings copied into the context scope
            context: Context to evaluate in; reusing one keeps assignments

        Returns:
            The value of the formula. Unreadable input evaluates to 0.

        Raises:
            ExpressionError: Only in strict mode
        """
        if not self._strict:
            return self.evaluate_with_result(source, variables, context=context).value

        if not isinstance(source, str):
            return _number_input(source)

        expression, context = self._bind(source, variables, context)
        if expression.diagnostics:
            raise expression.diagnostics[0].to_error()
        return Evaluator(context).evaluate_expression(expression)

    def _bind(
        self,
        source: str,
        variables: Optional[Mapping[str, ExprValue]],
        context: Optional[EvaluationContext],
    ) -> Tuple[Expression, EvaluationContext]:
        if context is None:
            context = self.new_context(variables)
        else:
            self._prepare_context(context, variables)
        expression = self.parse(source)
        context.source = expression.source
        return expression, context

    def _prepare_context(
        self,
        context: EvaluationContext,
        variables: Optional[Mapping[str, ExprValue]],
    ) -> None:
        """
        Resets per-call state on a reused context and seeds new bindings.

        Settings that can change on the engine between calls (angle unit,
        strictness) are copied onto the context again.
        """
        context.use_radians = self._use_radians
        context.strict = self._strict
        context.unresolved = False
        context.indirection_depth = 0
        context.diagnostics.clear()
        context.seed(variables)

    # ============================================================
    # Global scope
    # ============================================================

    def set_global(self, name: str, value: ExprValue) -> None:
        self._global_scope.set(name, value)

    def get_global(self, name: str) -> Optional[ExprValue]:
        return self._global_scope.get(name)

    def reset_globals(self) -> None:
        """Clears the global scope, then restores the configured initial values."""
        self._global_scope.clear()
        self._global_scope.update(self._config.global_variables)

    def clear_cache(self) -> None:
        self._cache.clear()


def _number_input(value: Any) -> float:
    """Numbers passed as formulas evaluate to themselves; NaN and non-numbers to 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    value = float(value)
    return 0.0 if math.isnan(value) else value


_default_engine: Optional[MolangEngine] = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> MolangEngine:
    """Returns the process-wide engine used by evaluate_formula()."""
    global _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            _default_engine = MolangEngine()
        return _default_engine


def evaluate_formula(
    source: Source, variables: Optional[Mapping[str, ExprValue]] = None
) -> float:
    """Evaluates a formula with the default engine."""
    return get_default_engine().evaluate(source, variables)
