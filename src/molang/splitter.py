"""
Text primitives for the expression parser.

The language is parsed by splitting strings at top-level (parenthesis
depth zero) operator occurrences rather than by tokenizing. This module
holds the normalization step and the depth-aware scans the parser is
built from.
"""

import re
from typing import NamedTuple, Optional

# Characters that make a following '-' a sign rather than a subtraction.
OPERATOR_CHARS = "+*/<>=|&?:"

# Statement separator runs collapse to a single ';'.
_SEPARATOR_RUN = re.compile(r";{2,}")

_WHITESPACE = re.compile(r"\s+")

_NUMBER = re.compile(
    r"[+-]?(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?|0x[0-9a-f]+",
)

_IDENTIFIER = re.compile(r"[a-z0-9._]+")

_ASSIGNMENT = re.compile(r"(temp|variable|t|v)\.(\w+)=")

_PREFIX_EXPANSIONS = {"t": "temp", "v": "variable"}


class Split(NamedTuple):
    """Result of a top-level split: both operands and the operator offset."""

    left: str
    right: str
    index: int


class AssignmentMatch(NamedTuple):
    """A top-level assignment prefix: fully-qualified target and value text."""

    target: str
    value: str
    value_index: int


def normalize(text: str) -> str:
    """
    Normalizes formula text.

    Lower-cases, removes all whitespace, collapses runs of ';' and drops
    a trailing ';'. The result is the cache key for the formula and is a
    fixed point: normalize(normalize(s)) == normalize(s).
    """
    text = _WHITESPACE.sub("", text.lower())
    text = _SEPARATOR_RUN.sub(";", text)
    if text.endswith(";"):
        text = text[:-1]
    return text


def split_statements(text: str) -> list[tuple[str, int]]:
    """Splits normalized text on top-level ';', returning (line, offset) pairs."""
    lines: list[tuple[str, int]] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == ";" and depth == 0:
            lines.append((text[start:i], start))
            start = i + 1
    lines.append((text[start:], start))
    return lines


def parse_number(s: str) -> Optional[float]:
    """Returns the value of s if the whole string is a numeric literal."""
    if not _NUMBER.fullmatch(s):
        return None
    if s.startswith("0x"):
        return float(int(s, 16))
    return float(s)


def is_identifier(s: str) -> bool:
    """True if s is a single bare identifier token (letters, digits, '.', '_')."""
    return _IDENTIFIER.fullmatch(s) is not None


def can_trim_parentheses(s: str) -> bool:
    """
    True if s is wrapped in one pair of parentheses spanning the whole string.

    "(a)+(b)" starts and ends with parentheses, but its depth returns to
    zero before the last character, so it cannot be trimmed.
    """
    if not (s.startswith("(") and s.endswith(")")):
        return False
    depth = 0
    for ch in s[:-1]:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if depth == 0:
            return False
    return True


def strip_parentheses(s: str) -> tuple[str, int]:
    """Strips enclosing parentheses repeatedly; returns the text and chars removed per side."""
    removed = 0
    while can_trim_parentheses(s):
        s = s[1:-1]
        removed += 1
    return s, removed


def is_balanced(s: str) -> bool:
    """True if parentheses in s are balanced and never close below depth zero."""
    depth = 0
    for ch in s:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def split_top_level(s: str, token: str, reverse: bool = False) -> Optional[Split]:
    """
    Splits s at the first top-level occurrence of token.

    Scans left to right, or right to left when ``reverse`` is set (used
    by '+' and '-' so that chains associate to the left). Occurrences
    inside parentheses are skipped.
    """
    direction = -1 if reverse else 1
    i = len(s) - 1 if reverse else 0
    depth = 0
    while 0 <= i < len(s):
        ch = s[i]
        if ch == "(":
            depth += direction
        elif ch == ")":
            depth -= direction
        elif depth == 0 and s.startswith(token, i):
            return Split(s[:i], s[i + len(token):], i)
        i += direction
    return None


def _depths(s: str) -> list[int]:
    depths = []
    depth = 0
    for ch in s:
        depths.append(depth)
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
    return depths


def find_assignment(s: str) -> Optional[AssignmentMatch]:
    """
    Finds the first top-level ``<scope>.<name>=`` prefix in s.

    ``t.`` and ``v.`` expand to ``temp.`` and ``variable.``. A scope
    keyword preceded by an identifier character belongs to a longer name
    (``query.v.x``) and a match inside parentheses belongs to a nested
    fragment, so both are skipped. If the first remaining candidate is
    followed by another '=' it is an equality test and the text is not
    an assignment at all.
    """
    if len(s) <= 4:
        return None
    depths = None
    pos = 0
    while True:
        match = _ASSIGNMENT.search(s, pos)
        if match is None:
            return None
        pos = match.start() + 1
        if match.start() > 0 and (s[match.start() - 1].isalnum() or s[match.start() - 1] in "._"):
            continue
        if depths is None:
            depths = _depths(s)
        if depths[match.start()] != 0:
            continue
        end = match.end()
        if end < len(s) and s[end] == "=":
            return None
        scope = _PREFIX_EXPANSIONS.get(match.group(1), match.group(1))
        return AssignmentMatch(f"{scope}.{match.group(2)}", s[end:], end)
