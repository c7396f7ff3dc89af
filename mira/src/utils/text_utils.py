"""
Mira - Text Utilities
======================
Stateless text helpers shared by the indexer, the embedders and the
intent detectors.

``clean_text`` prepares a knowledge-base document for paragraph
chunking: paragraph boundaries (blank lines) survive, everything else
is flattened to single spaces.
"""

from __future__ import annotations

import re
import unicodedata

# BOM, zero-width and directional marks, soft hyphens and C0/C1 controls
# other than \t and \n.
_INVISIBLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b-\u200f\u00ad\u2060\ufffe]")
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_SPACE_AROUND_NEWLINE_RE = re.compile(r" ?\n ?")
_EXTRA_BLANK_LINES_RE = re.compile(r"\n{3,}")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """
    Normalise raw document text before chunking.

    NFC-normalises, unifies line endings, drops invisible characters,
    squeezes inline whitespace, trims every line and keeps at most one
    blank line between paragraphs.
    """
    text = unicodedata.normalize("NFC", text).replace("\r\n", "\n").replace("\r", "\n")
    text = _INVISIBLE_RE.sub("", text)
    text = _INLINE_SPACE_RE.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE_RE.sub("\n", text)
    return _EXTRA_BLANK_LINES_RE.sub("\n\n", text).strip()


def split_paragraphs(text: str) -> list[str]:
    """Split *text* on blank-line boundaries, dropping empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_BREAK_RE.split(text) if p.strip()]


def normalize_whitespace(text: str) -> str:
    """Lowercase *text* and collapse every whitespace run to one space."""
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()
