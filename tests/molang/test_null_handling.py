"""
Tests for unresolved identifiers and the '??' operator.
"""

from molang import EvaluationContext, evaluate, parse


def eval_expr(expression, variables=None, resolver=None):
    context = EvaluationContext(variables=dict(variables or {}), resolver=resolver)
    return evaluate(parse(expression), context).value


class TestNullCoalescing:
    """Tests for left ?? right."""

    def test_missing_uses_fallback(self):
        assert eval_expr("query.missing ?? 10") == 10

    def test_bound_value_wins(self):
        assert eval_expr("q.a ?? 10", {"query.a": 3}) == 3

    def test_zero_counts_as_resolved(self):
        assert eval_expr("v.zero ?? 10", {"variable.zero": 0}) == 0

    def test_false_counts_as_resolved(self):
        assert eval_expr("q.flag ?? 10", {"query.flag": False}) == 0

    def test_nan_binding_counts_as_resolved(self):
        assert eval_expr("q.n ?? 4", {"query.n": float("nan")}) == 0

    def test_chain(self):
        assert eval_expr("q.a ?? q.b ?? 7") == 7
        assert eval_expr("q.a ?? q.b ?? 7", {"query.b": 2}) == 2

    def test_unresolved_anywhere_on_left(self):
        assert eval_expr("v.missing + 1 ?? 5") == 5

    def test_parenthesized_inside_arithmetic(self):
        assert eval_expr("(q.a ?? 2) + 1") == 3

    def test_resolver_binding_is_resolved(self):
        assert eval_expr("q.x ?? 1", resolver=lambda name, variables: 5) == 5

    def test_resolver_returning_none_is_unresolved(self):
        assert eval_expr("q.x ?? 1", resolver=lambda name, variables: None) == 1

    def test_fallback_skipped_when_resolved(self):
        context = EvaluationContext(variables={"query.a": 1})
        evaluate(parse("q.a ?? (v.side = 1)"), context)
        assert "variable.side" not in context.variables

    def test_flag_is_restored_for_outer_expression(self):
        context = EvaluationContext()
        evaluate(parse("q.missing + (q.other ?? 1)"), context)
        assert context.unresolved

    def test_flag_does_not_leak_between_calls(self):
        context = EvaluationContext()
        evaluate(parse("q.missing"), context)
        context.unresolved = False
        assert evaluate(parse("1 ?? 2"), context).value == 1
