"""
Cache of parsed expressions keyed by normalized source text.

Formulas are typically drawn from a small, stable set, so the cache has
no eviction policy.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from .ast import Expression
from .parser import parse_normalized

logger = logging.getLogger("molang.cache")

# Parses already-normalized text.
ParseFunction = Callable[[str], Expression]


class ExpressionCache:
    """Memoizes parsed expressions; disabled caches parse every time."""

    def __init__(self, enabled: bool = True, parser: Optional[ParseFunction] = None):
        self.enabled = enabled
        self._parser = parser or parse_normalized
        self._entries: Dict[str, Expression] = {}
        self._lock = threading.Lock()

    def get_or_parse(self, normalized_text: str) -> Expression:
        """
        Returns the cached expression for the text, parsing it on a miss.

        When the cache is disabled, both lookup and storage are skipped.
        """
        if not self.enabled:
            return self._parser(normalized_text)

        expression = self._entries.get(normalized_text)
        if expression is not None:
            logger.debug("expression_cache_hit", extra={"source": normalized_text})
            return expression

        logger.debug("expression_cache_miss", extra={"source": normalized_text})
        expression = self._parser(normalized_text)
        with self._lock:
            return self._entries.setdefault(normalized_text, expression)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, normalized_text: object) -> bool:
        return normalized_text in self._entries

    def __len__(self) -> int:
        return len(self._entries)
