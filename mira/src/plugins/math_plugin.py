"""
Mira - Math Plugin
===================
Evaluates arithmetic found in a message via the expression evaluator.
Success payload: ``{"expression": <sanitised>, "result": <number>}``.
"""

from __future__ import annotations

from mira.src.core.errors import ErrorKind, InvalidExpressionError
from mira.src.core.expression import evaluate, sanitize_expression
from mira.src.core.intents import detect_math_intent, has_math_cues
from mira.src.plugins.base import BasePlugin, PluginPayload


class MathPlugin(BasePlugin):
    name = "math"
    description = "Evaluate mathematical expressions and solve calculations"
    capabilities = ("Basic arithmetic (+, -, *, /)", "Parentheses grouping", "Decimal numbers", "Spoken operators (plus, times, divided by)")
    missing_argument_kind = ErrorKind.INVALID_EXPRESSION

    def matches(self, message: str) -> bool:
        return has_math_cues(message)


    def extract_argument(self, message: str) -> str | None:
        return detect_math_intent(message).expression


    async def _run(self, argument: str) -> PluginPayload:
        if not argument or not argument.strip():
            raise InvalidExpressionError("Could not extract a mathematical expression")
        result = evaluate(argument)
        return {"expression": sanitize_expression(argument), "result": result}
