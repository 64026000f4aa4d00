"""
Tests for the parsed-expression cache.
"""

import logging

from molang.cache import ExpressionCache
from molang.parser import parse_normalized


class CountingParser:
    def __init__(self):
        self.calls = 0

    def __call__(self, source):
        self.calls += 1
        return parse_normalized(source)


class TestExpressionCache:
    """Tests for ExpressionCache."""

    def test_parses_once_per_source(self):
        parser = CountingParser()
        cache = ExpressionCache(parser=parser)

        first = cache.get_or_parse("1+2")
        second = cache.get_or_parse("1+2")

        assert first is second
        assert parser.calls == 1
        assert "1+2" in cache
        assert len(cache) == 1

    def test_disabled_cache_parses_every_time(self):
        parser = CountingParser()
        cache = ExpressionCache(enabled=False, parser=parser)

        first = cache.get_or_parse("1+2")
        second = cache.get_or_parse("1+2")

        assert first == second
        assert parser.calls == 2
        assert len(cache) == 0

    def test_clear(self):
        cache = ExpressionCache()
        cache.get_or_parse("q.a")
        cache.clear()
        assert len(cache) == 0

    def test_logs_hits_and_misses(self, caplog):
        caplog.set_level(logging.DEBUG, logger="molang.cache")
        cache = ExpressionCache()

        cache.get_or_parse("v.a")
        cache.get_or_parse("v.a")

        messages = [r.getMessage() for r in caplog.records if r.name == "molang.cache"]
        assert messages == ["expression_cache_miss", "expression_cache_hit"]
