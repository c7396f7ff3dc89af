"""
Mira - Expression Evaluator
============================
Safe arithmetic evaluation for expressions extracted from free text.
No ``eval``: a tokenizer feeds a small recursive-descent parser.

Grammar (three precedence levels, left-associative)::

    expression := term (('+' | '-') term)*
    term       := factor (('*' | '/') factor)*
    factor     := number | '(' expression ')' | ('-' | '+') factor

Before parsing, ``sanitize_expression`` lowercases the input, removes
whitespace and maps spoken operators (``plus``, ``times``,
``divided by`` …) to symbols.  Sanitisation is best-effort: anything
it cannot map is left in place and rejected by validation.

Usage:
    from mira.src.core.expression import evaluate
    evaluate("(2 + 3) * 4")       # → 20
    evaluate("10 divided by 4")   # → 2.5
"""

from __future__ import annotations

import math
import re

from mira.src.core.errors import DivisionByZeroError, InvalidExpressionError

Number = int | float

# ── Sanitisation tables ────────────────────────────────────────────────
# Applied in order, after whitespace removal.  Longer phrases first so
# "multipliedby" is not half-eaten by a shorter rule.
_WORD_OPERATORS: list[tuple[str, str]] = [
    ("multipliedby", "*"),
    ("dividedby", "/"),
    ("times", "*"),
    ("plus", "+"),
    ("minus", "-"),
]

_FILLER_RE = re.compile(r"whatis|what's|calculate|compute|evaluate|solve|equals|equal|[?=]")

_VALID_CHARS_RE = re.compile(r"^[0-9+\-*/().]+$")

_OPERATORS = "+-*/()"

_RESULT_PRECISION = 6


def sanitize_expression(expression: str) -> str:
    """Normalise *expression* into the symbol alphabet accepted by the parser."""
    clean = re.sub(r"\s+", "", expression).lower()
    for word, symbol in _WORD_OPERATORS:
        clean = clean.replace(word, symbol)
    return _FILLER_RE.sub("", clean)


def evaluate(expression: str) -> Number:
    """
    Sanitise, parse and evaluate an arithmetic expression.

    Returns
    -------
    int | float
        The value rounded to 6 decimal places; integral values are
        returned as ``int``.

    Raises
    ------
    InvalidExpressionError
        Empty input, characters outside ``0-9 . + - * / ( )``, malformed
        syntax, or a non-finite result.
    DivisionByZeroError
        A ``/`` operand evaluated to zero.
    """
    clean = sanitize_expression(expression)
    if not clean:
        raise InvalidExpressionError("Expression is empty")
    if not _VALID_CHARS_RE.match(clean):
        raise InvalidExpressionError(f"Invalid characters in expression: {clean!r}")

    value = _Parser(_tokenize(clean)).parse()

    if not math.isfinite(value):
        raise InvalidExpressionError(f"Result of {clean!r} is not a finite number")

    rounded = round(value, _RESULT_PRECISION)
    if rounded == 0:
        return 0
    return int(rounded) if rounded.is_integer() else rounded


def _tokenize(expression: str) -> list[str]:
    """Split a sanitised expression into number and operator tokens."""
    tokens: list[str] = []
    current = ""

    for char in expression:
        if char in _OPERATORS:
            if current:
                tokens.append(current)
                current = ""
            tokens.append(char)
        else:
            current += char

    if current:
        tokens.append(current)
    return tokens


class _Parser:
    """Recursive-descent parser over a token list.  One instance per evaluation."""

    __slots__ = ("_tokens", "_pos")

    def __init__(self, tokens: list[str]) -> None:
        self._tokens = tokens
        self._pos = 0


    def parse(self) -> float:
        value = self._expression()
        if self._pos != len(self._tokens):
            raise InvalidExpressionError(f"Unexpected token {self._tokens[self._pos]!r}")
        return value


    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None


    def _advance(self) -> str:
        token = self._peek()
        if token is None:
            raise InvalidExpressionError("Unexpected end of expression")
        self._pos += 1
        return token


    def _expression(self) -> float:
        result = self._term()
        while self._peek() in ("+", "-"):
            operator = self._advance()
            right = self._term()
            result = result + right if operator == "+" else result - right
        return result


    def _term(self) -> float:
        result = self._factor()
        while self._peek() in ("*", "/"):
            operator = self._advance()
            right = self._factor()
            if operator == "*":
                result *= right
            else:
                if right == 0:
                    raise DivisionByZeroError("Division by zero")
                result /= right
        return result


    def _factor(self) -> float:
        token = self._advance()

        if token == "(":
            value = self._expression()
            if self._advance() != ")":
                raise InvalidExpressionError("Missing closing parenthesis")
            return value
        if token == "-":
            return -self._factor()
        if token == "+":
            return self._factor()
        if token in _OPERATORS:
            raise InvalidExpressionError(f"Unexpected operator {token!r}")

        return self._number(token)


    @staticmethod
    def _number(token: str) -> float:
        if token.count(".") > 1 or token == ".":
            raise InvalidExpressionError(f"Malformed number {token!r}")
        return float(token)
