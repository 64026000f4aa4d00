"""
Math library for the expression language.

Every ``math.*`` function available to formulas is registered in
MATH_FUNCTIONS together with its arity. The functions are pure apart
from the random family, which draws from the Random instance carried by
the BuiltinContext.

Numeric semantics follow IEEE-754 doubles: domain errors produce NaN and
overflow produces an infinity. Python's ``math`` module raises in those
cases, so the wrappers below translate instead of propagating.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .errors import Diagnostic, limit_diagnostic
from .limits import DEFAULT_EXPRESSION_LIMITS, DIE_ROLL_CLAMP, ExpressionLimits

logger = logging.getLogger("molang.builtins")

NAN = float("nan")
INF = float("inf")


class BuiltinContext:
    """Context passed to math functions."""

    def __init__(
        self,
        use_radians: bool = False,
        rng: Optional[random.Random] = None,
        limits: Optional[ExpressionLimits] = None,
        diagnostics: Optional[List[Diagnostic]] = None,
    ):
        self.use_radians = use_radians
        self.rng = rng or random.Random()
        self.limits = limits or DEFAULT_EXPRESSION_LIMITS
        self.diagnostics = diagnostics if diagnostics is not None else []

    @property
    def angle_factor(self) -> float:
        """Multiplier converting the configured angle unit to radians."""
        return 1.0 if self.use_radians else math.pi / 180


# Signature of a math function.
BuiltinFunction = Callable[[Sequence[float], BuiltinContext], float]


@dataclass(frozen=True)
class MathFunction:
    """A registered math function and the number of arguments it reads."""

    name: str
    arity: int
    fn: BuiltinFunction


# Function registry keyed by the name following ``math.``.
FunctionRegistry = Dict[str, MathFunction]


# ============================================================
# Numeric helpers
# ============================================================


def is_truthy(value: float) -> bool:
    """Truthiness of a number: zero and NaN are false."""
    return value == value and value != 0


def _finite_or(fn: Callable[[float], float], x: float) -> float:
    """Applies an integer-rounding function, passing NaN and infinities through."""
    if math.isnan(x) or math.isinf(x):
        return x
    return float(fn(x))


def _ieee(fn: Callable[..., float], *args: float) -> float:
    """Calls a math function, mapping domain errors to NaN and overflow to inf."""
    try:
        return fn(*args)
    except ValueError:
        return NAN
    except OverflowError:
        return INF


def divide(a: float, b: float) -> float:
    """IEEE division: x/0 is a signed infinity, 0/0 is NaN."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return NAN
        return math.copysign(INF, a) * math.copysign(1.0, b)
    return a / b


def fmod(a: float, b: float) -> float:
    """Remainder with the sign of the dividend."""
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return NAN
    if math.isinf(b):
        return a
    return math.fmod(a, b)


def power(a: float, b: float) -> float:
    """a raised to b with IEEE results on overflow and domain errors."""
    if a == 0 and b < 0:
        return INF
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and math.isfinite(b) and b == int(b) and int(b) % 2 == 1:
            return -INF
        return INF
    except ValueError:
        return NAN


def round_half_up(x: float) -> float:
    """Rounds to the nearest integer, halves towards positive infinity."""
    return _finite_or(lambda v: math.floor(v + 0.5), x)


def clamp(x: float, low: float, high: float) -> float:
    """Clamps x into [low, high]; NaN collapses to low."""
    if x > high:
        x = high
    if x < low or math.isnan(x):
        x = low
    return x


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def normalize_angle(degrees: float) -> float:
    """Wraps an angle in degrees into [0, 360)."""
    return degrees % 360.0


def lerp_rotate(start: float, end: float, t: float) -> float:
    """Interpolates between two angles along the shorter arc."""
    a = normalize_angle(start)
    b = normalize_angle(end)
    if a > b:
        a, b = b, a
    diff = b - a
    if diff > 180:
        return normalize_angle(b + t * (360 - diff))
    return a + t * diff


def hermite_blend(t: float) -> float:
    return 3 * power(t, 2) - 2 * power(t, 3)


def random_float(rng: random.Random, low: float, high: float) -> float:
    """Uniform sample in [low, high)."""
    return low + rng.random() * (high - low)


def random_int(rng: random.Random, low: float, high: float) -> float:
    """Uniform integer sample in [ceil(low), floor(high)]."""
    if not (math.isfinite(low) and math.isfinite(high)):
        return NAN
    low = math.ceil(low)
    high = math.floor(high)
    return float(low + math.floor(rng.random() * (high - low + 1)))


def _roll_count(count: float, ctx: BuiltinContext, function_name: str) -> int:
    """Clamps a die-roll count and caps it at the configured limit."""
    rolls = clamp(count, 0, DIE_ROLL_CLAMP)
    rolls = math.ceil(rolls)
    limit = ctx.limits.max_die_rolls
    if rolls > limit:
        logger.warning(
            "die_roll_capped",
            extra={"function": function_name, "requested": rolls, "limit": limit},
        )
        ctx.diagnostics.append(limit_diagnostic("max_die_rolls", limit, rolls))
        rolls = limit
    return rolls


# ============================================================
# Registered functions
# ============================================================


def _abs(args: Sequence[float], ctx: BuiltinContext) -> float:
    return abs(args[0])


def _sin(args: Sequence[float], ctx: BuiltinContext) -> float:
    """sin(x) - x in degrees unless the engine runs in radians mode."""
    return _ieee(math.sin, args[0] * ctx.angle_factor)


def _cos(args: Sequence[float], ctx: BuiltinContext) -> float:
    """cos(x) - x in degrees unless the engine runs in radians mode."""
    return _ieee(math.cos, args[0] * ctx.angle_factor)


def _exp(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _ieee(math.exp, args[0])


def _ln(args: Sequence[float], ctx: BuiltinContext) -> float:
    """ln(x) - natural logarithm; ln(0) is -inf, negative input is NaN."""
    x = args[0]
    if x == 0:
        return -INF
    return _ieee(math.log, x)


def _pow(args: Sequence[float], ctx: BuiltinContext) -> float:
    return power(args[0], args[1])


def _sqrt(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _ieee(math.sqrt, args[0])


def _random(args: Sequence[float], ctx: BuiltinContext) -> float:
    """random(low, high) - uniform float in [low, high)."""
    return random_float(ctx.rng, args[0], args[1])


def _random_integer(args: Sequence[float], ctx: BuiltinContext) -> float:
    """random_integer(low, high) - uniform integer in [low, high], inclusive."""
    return random_int(ctx.rng, args[0], args[1])


def _ceil(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _finite_or(math.ceil, args[0])


def _round(args: Sequence[float], ctx: BuiltinContext) -> float:
    return round_half_up(args[0])


def _trunc(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _finite_or(math.trunc, args[0])


def _floor(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _finite_or(math.floor, args[0])


def _mod(args: Sequence[float], ctx: BuiltinContext) -> float:
    return fmod(args[0], args[1])


def _min(args: Sequence[float], ctx: BuiltinContext) -> float:
    a, b = args[0], args[1]
    if math.isnan(a) or math.isnan(b):
        return NAN
    return min(a, b)


def _max(args: Sequence[float], ctx: BuiltinContext) -> float:
    a, b = args[0], args[1]
    if math.isnan(a) or math.isnan(b):
        return NAN
    return max(a, b)


def _clamp(args: Sequence[float], ctx: BuiltinContext) -> float:
    """clamp(x, low, high) - NaN collapses to low."""
    return clamp(args[0], args[1], args[2])


def _lerp(args: Sequence[float], ctx: BuiltinContext) -> float:
    """lerp(start, end, t) - start + (end - start) * t."""
    return lerp(args[0], args[1], args[2])


def _lerprotate(args: Sequence[float], ctx: BuiltinContext) -> float:
    """lerprotate(start, end, t) - shortest-arc interpolation in degrees."""
    return lerp_rotate(args[0], args[1], args[2])


def _asin(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _ieee(math.asin, args[0]) / ctx.angle_factor


def _acos(args: Sequence[float], ctx: BuiltinContext) -> float:
    return _ieee(math.acos, args[0]) / ctx.angle_factor


def _atan(args: Sequence[float], ctx: BuiltinContext) -> float:
    return math.atan(args[0]) / ctx.angle_factor


def _atan2(args: Sequence[float], ctx: BuiltinContext) -> float:
    """atan2(y, x) - angle of the vector (x, y)."""
    return math.atan2(args[0], args[1]) / ctx.angle_factor


def _die_roll(args: Sequence[float], ctx: BuiltinContext) -> float:
    """
    die_roll(count, low, high) -> float

    Sums ``count`` independent uniform samples in [low, high).
    """
    rolls = _roll_count(args[0], ctx, "die_roll")
    return sum(random_float(ctx.rng, args[1], args[2]) for _ in range(rolls))


def _die_roll_integer(args: Sequence[float], ctx: BuiltinContext) -> float:
    """
    die_roll_integer(count, low, high) -> float

    Sums ``count`` independent uniform integer samples in [low, high].
    """
    rolls = _roll_count(args[0], ctx, "die_roll_integer")
    return float(sum(random_int(ctx.rng, args[1], args[2]) for _ in range(rolls)))


def _hermite_blend(args: Sequence[float], ctx: BuiltinContext) -> float:
    """hermite_blend(t) - smoothstep easing 3t^2 - 2t^3."""
    return hermite_blend(args[0])


# ============================================================
# Registry
# ============================================================


def _entry(name: str, arity: int, fn: BuiltinFunction) -> MathFunction:
    return MathFunction(name=name, arity=arity, fn=fn)


# Registry of all math functions.
MATH_FUNCTIONS: FunctionRegistry = {
    f.name: f
    for f in (
        _entry("abs", 1, _abs),
        _entry("sin", 1, _sin),
        _entry("cos", 1, _cos),
        _entry("exp", 1, _exp),
        _entry("ln", 1, _ln),
        _entry("pow", 2, _pow),
        _entry("sqrt", 1, _sqrt),
        _entry("random", 2, _random),
        _entry("ceil", 1, _ceil),
        _entry("round", 1, _round),
        _entry("trunc", 1, _trunc),
        _entry("floor", 1, _floor),
        _entry("mod", 2, _mod),
        _entry("min", 2, _min),
        _entry("max", 2, _max),
        _entry("clamp", 3, _clamp),
        _entry("lerp", 3, _lerp),
        _entry("lerprotate", 3, _lerprotate),
        _entry("asin", 1, _asin),
        _entry("acos", 1, _acos),
        _entry("atan", 1, _atan),
        _entry("atan2", 2, _atan2),
        _entry("die_roll", 3, _die_roll),
        _entry("die_roll_integer", 3, _die_roll_integer),
        _entry("hermite_blend", 1, _hermite_blend),
        _entry("random_integer", 2, _random_integer),
    )
}


def call_builtin(
    name: str,
    args: Sequence[float],
    context: BuiltinContext,
    functions: Optional[FunctionRegistry] = None,
) -> float:
    """
    Calls a math function by name.

    Missing arguments read as 0; unknown names evaluate to 0. The parser
    reports both cases as diagnostics, so they are not re-reported here.
    """
    functions = functions or MATH_FUNCTIONS
    entry = functions.get(name)
    if entry is None:
        return 0.0
    padded = list(args[: entry.arity])
    padded.extend(0.0 for _ in range(entry.arity - len(padded)))
    return float(entry.fn(padded, context))


def is_builtin_function(
    name: str, functions: Optional[FunctionRegistry] = None
) -> bool:
    """Checks if a name is a registered math function."""
    functions = functions or MATH_FUNCTIONS
    return name in functions
