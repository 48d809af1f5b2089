"""
Text helpers shared across the generation services.
"""

import math
import re
import time

from config import Config

_WS_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^a-z0-9\s]")


def count_words(text: str | None) -> int:
    """Whitespace-delimited word count."""
    if not text:
        return 0
    return len(text.split())


def estimate_duration_seconds(text_or_word_count: str | int | None) -> int:
    """Spoken duration at Config.words_per_second (2.5 words/s)."""
    if isinstance(text_or_word_count, int):
        words = text_or_word_count
    else:
        words = count_words(text_or_word_count)
    return round_half_up(words / Config.words_per_second)


def normalize_text(text: str | None) -> str:
    """Lowercase, drop punctuation, collapse whitespace. Used for fuzzy hook/script matching."""
    if not text:
        return ""
    text = _NON_WORD_RE.sub("", text.lower())
    return _WS_RE.sub(" ", text).strip()


def elapsed_ms(start: float) -> int:
    """Milliseconds since a time.time() start mark."""
    return int((time.time() - start) * 1000)


def average(values, ndigits: int | None = None) -> float:
    """Mean of values (0 for an empty list), optionally rounded."""
    values = [v for v in values if v is not None]
    if not values:
        return 0
    avg = sum(values) / len(values)
    return round(avg, ndigits) if ndigits is not None else avg


def round_half_up(value: float) -> int:
    """Nearest integer with .5 rounded up (round() would go to the even neighbour)."""
    return math.floor(value + 0.5)
