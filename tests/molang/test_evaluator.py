"""
Tests for expression evaluation.
"""

import math

import pytest

from molang import (
    EvaluationContext,
    Evaluator,
    ExprValue,
    GlobalScope,
    LimitExceededError,
    evaluate,
    parse,
)
from molang.limits import ExpressionLimits


def eval_expr(
    expression: str,
    variables: dict[str, ExprValue] | None = None,
    **context_kwargs,
) -> float:
    """Helper to evaluate an expression and return the value."""
    ast = parse(expression)
    context = EvaluationContext(
        variables=dict(variables or {}),
        source=ast.source,
        **context_kwargs,
    )
    result = evaluate(ast, context)
    if not result.success:
        raise RuntimeError(result.error)
    return result.value


class TestArithmetic:
    """Tests for arithmetic operators."""

    def test_precedence(self):
        assert eval_expr("1 + 2 * 3") == 7

    def test_parentheses(self):
        assert eval_expr("(1 + 2) * 3") == 9

    def test_subtraction_chain(self):
        assert eval_expr("10 - 2 - 3") == 5

    def test_unary_minus(self):
        assert eval_expr("-(2 + 3)") == -5
        assert eval_expr("2 * -3") == -6

    def test_division(self):
        assert eval_expr("10 / 4") == 2.5
        assert eval_expr("1 / 0") == math.inf

    def test_division_groups_right(self):
        assert eval_expr("8 / 4 / 2") == 4

    def test_scientific_and_hex_literals(self):
        assert eval_expr("1e2 + 0x10") == 116

    def test_numbers_are_floats(self):
        assert isinstance(eval_expr("2"), float)


class TestComparisonAndLogic:
    """Tests for comparison and logical operators."""

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("3 > 2", 1),
            ("2 >= 2", 1),
            ("1 < 1", 0),
            ("1 <= 1", 1),
            ("1 == 1", 1),
            ("1 != 1", 0),
            ("1 < 2 && 2 < 3", 1),
            ("0 || 0", 0),
            ("0 || 2", 1),
            ("!0", 1),
            ("!5", 0),
        ],
    )
    def test_results_are_one_or_zero(self, expression, expected):
        assert eval_expr(expression) == expected

    def test_true_and_false(self):
        assert eval_expr("true + true") == 2
        assert eval_expr("!false") == 1

    def test_logical_operators_evaluate_both_sides(self):
        context = EvaluationContext()
        evaluate(parse("0 && (v.b = 2)"), context)
        assert context.variables["variable.b"] == 2

    def test_nan_is_false(self):
        assert eval_expr("q.x ? 1 : 2", {"query.x": float("nan")}) == 2
        assert eval_expr("math.sqrt(-1) ? 1 : 2") == 2


class TestVariables:
    """Tests for variable resolution and assignment."""

    def test_assignment_then_read(self):
        assert eval_expr("variable.x = 5; variable.x + 1") == 6

    def test_shorthand_prefixes(self):
        assert eval_expr("q.speed * 2", {"query.speed": 3}) == 6
        assert eval_expr("t.x = 2; temp.x + 1") == 3

    def test_temp_chain(self):
        assert eval_expr("t.a = 2; t.b = t.a * 3; t.a + t.b") == 8

    def test_assignment_value(self):
        assert eval_expr("v.a = 4") == 4

    def test_unresolved_reads_zero(self):
        assert eval_expr("query.missing + 1") == 1

    def test_boolean_binding(self):
        assert eval_expr("q.flag * 3", {"query.flag": True}) == 3

    def test_resolver(self):
        def resolver(name, variables):
            return 7 if name == "query.host" else None

        assert eval_expr("q.host + 1", resolver=resolver) == 8

    def test_global_scope(self):
        scope = GlobalScope({"variable.g": 10.0})
        assert eval_expr("v.g + 1", global_scope=scope) == 11
        eval_expr("v.g = 3", global_scope=scope)
        assert scope.get("variable.g") == 3

    def test_result_carries_context_scope(self):
        context = EvaluationContext()
        result = evaluate(parse("t.a = 1; v.b = 2"), context)
        assert result.variables == {"temp.a": 1.0, "variable.b": 2.0}


class TestIndirection:
    """Tests for string-valued variables."""

    def test_string_is_evaluated_as_formula(self):
        variables = {"variable.f": "q.a + 1", "query.a": 2}
        assert eval_expr("v.f * 2", variables) == 6

    def test_nested_strings(self):
        variables = {"variable.a": "v.b * 2", "variable.b": "3"}
        assert eval_expr("v.a", variables) == 6

    def test_nan_result_reads_zero(self):
        assert eval_expr("v.f + 1", {"variable.f": "math.sqrt(-1)"}) == 1

    def test_self_reference_is_bounded(self):
        context = EvaluationContext(variables={"variable.a": "v.a + 1"})
        result = evaluate(parse("v.a"), context)
        assert result.success
        assert result.value == 16
        limit = [d for d in result.diagnostics if d.kind == "limit_exceeded"]
        assert len(limit) == 1
        assert limit[0].limit_name == "max_indirection_depth"

    def test_self_reference_raises_in_strict_mode(self):
        context = EvaluationContext(variables={"variable.a": "v.a"}, strict=True)
        with pytest.raises(LimitExceededError):
            Evaluator(context).evaluate_expression(parse("v.a"))

    def test_custom_indirection_limit(self):
        context = EvaluationContext(
            variables={"variable.a": "v.a + 1"},
            limits=ExpressionLimits(max_indirection_depth=2),
        )
        assert evaluate(parse("v.a"), context).value == 2


class TestStatements:
    """Tests for multi-line formulas."""

    def test_value_of_last_line(self):
        assert eval_expr("1; 2; 3") == 3

    def test_return_ends_evaluation(self):
        context = EvaluationContext()
        result = evaluate(parse("v.a = 1; return v.a * 3; v.a = 100"), context)
        assert result.value == 3
        assert context.variables["variable.a"] == 1

    def test_return_in_first_line(self):
        assert eval_expr("return 1; 2") == 1

    def test_unparsable_line_reads_zero(self):
        ast = parse("1 + 1; a$b")
        result = evaluate(ast, EvaluationContext())
        assert result.success
        assert result.value == 0
        assert [d.kind for d in result.diagnostics] == ["unparsable"]


class TestTernary:
    """Tests for the conditional operator."""

    def test_only_chosen_branch_runs(self):
        context = EvaluationContext()
        evaluate(parse("1 ? (v.a = 1) : (v.b = 2)"), context)
        assert context.variables == {"variable.a": 1.0}

        context = EvaluationContext()
        evaluate(parse("0 ? (v.a = 1) : (v.b = 2)"), context)
        assert context.variables == {"variable.b": 2.0}

    def test_missing_else_is_zero(self):
        assert eval_expr("0 ? 5") == 0
        assert eval_expr("1 ? 5") == 5


class TestFunctions:
    """Tests for math calls inside formulas."""

    def test_clamp(self):
        assert eval_expr("math.clamp(15, 0, 10)") == 10

    def test_nan_word_is_an_unresolved_identifier(self):
        # "nan" is not a numeric literal, so clamp receives 0
        assert eval_expr("math.clamp(NaN, 0, 10)") == 0
        assert eval_expr("math.clamp(NaN, 0, 10) ?? 7") == 7

    def test_clamp_of_nan_result_is_low_bound(self):
        assert eval_expr("math.clamp(math.sqrt(-1), 3, 10)") == 3

    def test_nested_calls(self):
        assert eval_expr("math.min(3, math.max(1, 2))") == 2
        assert eval_expr("math.clamp(math.max(1, 20), 0, 10)") == 10

    def test_degrees_by_default(self):
        assert eval_expr("math.sin(90)") == pytest.approx(1)

    def test_radians(self):
        assert eval_expr("math.sin(1.5707963)", use_radians=True) == pytest.approx(1)

    def test_pi(self):
        assert eval_expr("math.cos(math.pi)", use_radians=True) == pytest.approx(-1)

    def test_lerprotate(self):
        assert eval_expr("math.lerprotate(350, 10, 0.5)") == pytest.approx(0, abs=1e-9)

    def test_mod(self):
        assert eval_expr("math.mod(-7, 3)") == -1

    def test_unknown_function_reads_zero(self):
        assert eval_expr("math.foo(1) + 2") == 2

    def test_die_roll_cap_raises_in_strict_mode(self):
        context = EvaluationContext(strict=True)
        with pytest.raises(LimitExceededError):
            Evaluator(context).evaluate_expression(parse("math.die_roll(1e12, 1, 1)"))

    def test_die_roll_cap_is_reported(self):
        result = evaluate(parse("math.die_roll(1e12, 1, 1)"), EvaluationContext())
        assert result.value == 10_000
        assert result.diagnostics[0].limit_name == "max_die_rolls"


class TestStrictEvaluate:
    """Tests for evaluate() in strict mode."""

    def test_parse_diagnostic_fails_result(self):
        result = evaluate(parse("math.foo(1)"), EvaluationContext(strict=True))
        assert not result.success
        assert result.value == 0
        assert "math.foo" in result.error

    def test_unresolved_identifier_is_not_an_error(self):
        result = evaluate(parse("q.missing"), EvaluationContext(strict=True))
        assert result.success
        assert result.value == 0
