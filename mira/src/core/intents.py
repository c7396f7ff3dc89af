"""
Mira - Intent Detectors
========================
Pure functions mapping a free-text message to a structured intent.
They decide *whether* a tool applies and extract its argument; they
never validate the argument (that is the tool's job).

The two detectors are independent — one message may trigger both::

    >>> detect_math_intent("What is 15 + 25?")
    MathIntent(is_math=True, expression='15+25')
    >>> detect_weather_intent("What's the weather in Tokyo?")
    WeatherIntent(is_weather=True, location='Tokyo')
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from mira.config.settings import settings

# ── Math cues ──────────────────────────────────────────────────────────
_MATH_KEYWORDS: tuple[str, ...] = ("calculate", "compute", "evaluate", "solve", "what is", "what's", "equals", "=")
_MATH_OPERATOR_RE = re.compile(r"[+\-*/=]")
_DIGIT_RE = re.compile(r"\d")
_COMMAND_PREFIX_RE = re.compile(r"^\s*(?:what\s+is|what's|calculate|compute|evaluate|solve)\s*", re.IGNORECASE)
_TRAILING_PUNCTUATION_RE = re.compile(r"[?!.]*$")
_SPOKEN_OPERATOR_RE = re.compile(r"plus|minus|times|multiplied\s*by|divided\s*by|equals?", re.IGNORECASE)
_LETTER_RE = re.compile(r"[a-zA-Z]")
_ARITHMETIC_RUN_RE = re.compile(r"[\d(][\d.\s()+\-*/]*")

# ── Weather cues ───────────────────────────────────────────────────────
_WEATHER_KEYWORD_RE = re.compile(r"\b(?:weather|temperature|forecast|climate|hot|cold|rain|raining|sunny|cloudy|humid|humidity)\b", re.IGNORECASE)

# A location ends at a connective, a trailing time phrase, any character
# that is neither a letter nor a space, or the end of the text.
_LOCATION_END = r"(?=\s+(?:and|or|but|then|today|tonight|tomorrow|now|right\s+now|this|next|please)\b|\s*[^a-zA-Z\s]|\s*$)"

# Ordered: the first pattern that yields a valid location wins.
_LOCATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:in|at|for)\s+([a-zA-Z][a-zA-Z\s]*?)" + _LOCATION_END, re.IGNORECASE),
    re.compile(r"\bweather\s+(?:in|at|for)?\s*([a-zA-Z][a-zA-Z\s]*?)" + _LOCATION_END, re.IGNORECASE),
    re.compile(r"\b([a-zA-Z]+)\s+weather\b", re.IGNORECASE),
    # Bounded captures rejected: keep the single word after the preposition.
    re.compile(r"\b(?:in|at|for)\s+([a-zA-Z]+)", re.IGNORECASE),
)
_LOCATION_MIN_LEN = 2
_LOCATION_MAX_LEN = 49

# Words the patterns can capture that are never places.
_NOT_A_LOCATION: frozenset[str] = frozenset({
    "the", "a", "my", "our", "your", "local", "current", "today", "tonight", "tomorrow", "now", "me", "us", "it", "is",
    "how", "what", "whats", "like", "please", "check", "show", "get", "give", "tell", "find", "fetch", "and", "any", "some",
})



@dataclass(frozen=True, slots=True)
class MathIntent:
    is_math: bool
    expression: str | None = None


@dataclass(frozen=True, slots=True)
class WeatherIntent:
    is_weather: bool
    location: str | None = None


# ══════════════════════════════════════════════════════════════════════
#  MATH
# ══════════════════════════════════════════════════════════════════════


def has_math_cues(message: str) -> bool:
    """A digit plus either a math keyword or an arithmetic operator."""
    if not _DIGIT_RE.search(message):
        return False
    lower = message.lower()
    return any(keyword in lower for keyword in _MATH_KEYWORDS) or bool(_MATH_OPERATOR_RE.search(message))


def extract_expression(message: str) -> str:
    """
    Strip the command phrase, trailing punctuation and all whitespace.

    When the remainder still carries prose ("2+2 and is it raining in
    Paris"), the longest arithmetic run in the message is used instead.
    """
    expression = _COMMAND_PREFIX_RE.sub("", message)
    expression = _TRAILING_PUNCTUATION_RE.sub("", expression.strip())

    if _LETTER_RE.search(_SPOKEN_OPERATOR_RE.sub("", expression)):
        runs = [run.strip() for run in _ARITHMETIC_RUN_RE.findall(message) if _DIGIT_RE.search(run)]
        if runs:
            expression = max(runs, key=len)

    return re.sub(r"\s+", "", expression)


def detect_math_intent(message: str) -> MathIntent:
    if not has_math_cues(message):
        return MathIntent(is_math=False)
    expression = extract_expression(message)
    if not expression:
        return MathIntent(is_math=False)
    return MathIntent(is_math=True, expression=expression)


# ══════════════════════════════════════════════════════════════════════
#  WEATHER
# ══════════════════════════════════════════════════════════════════════


def has_weather_cues(message: str) -> bool:
    return bool(_WEATHER_KEYWORD_RE.search(message))


def extract_location(message: str) -> str | None:
    """
    Run the location patterns in order and return the first valid hit.

    A valid location is letters and spaces only, 2–49 characters after
    trimming.  The original casing of the message is preserved.
    """
    for pattern in _LOCATION_PATTERNS:
        for match in pattern.finditer(message):
            location = " ".join(match.group(1).split())
            if location.lower() in _NOT_A_LOCATION:
                continue
            if _LOCATION_MIN_LEN <= len(location) <= _LOCATION_MAX_LEN:
                return location
    return None


def detect_weather_intent(message: str, default_location: str | None = None) -> WeatherIntent:
    """
    Detect a weather question and extract its location.

    Falls back to *default_location* (``settings.DEFAULT_WEATHER_LOCATION``
    when omitted) if a weather keyword is present but no pattern matches.
    """
    if not has_weather_cues(message):
        return WeatherIntent(is_weather=False)
    location = extract_location(message) or default_location or settings.DEFAULT_WEATHER_LOCATION
    return WeatherIntent(is_weather=True, location=location)
