"""
split.py

Quote- and escape-aware splitting used by every Meteor grammar.

A delimiter only counts as a boundary outside an open double quote. A
backslash makes the following character literal (it is copied through
unchanged; decoding happens later in ``meteor.escape``). Multi-character
delimiters match as a whole: a partial match is kept as ordinary text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import UnbalancedQuotesError

QUOTE = '"'
BACKSLASH = "\\"

METEOR_DELIMITER = ":;:"


@dataclass(frozen=True)
class SplitConfig:
    """How a splitter treats escapes, whitespace and empty segments."""

    escapes: bool = True
    escapes_only_in_quotes: bool = False
    trim: bool = True
    keep_empty: bool = False

    @classmethod
    def semicolon_tokens(cls) -> "SplitConfig":
        # Token lists keep their surrounding whitespace; callers trim per token.
        return cls(escapes=True, escapes_only_in_quotes=True, trim=False)

    @classmethod
    def general_parsing(cls) -> "SplitConfig":
        return cls(escapes=True, escapes_only_in_quotes=False, trim=True)

    @classmethod
    def meteor_streams(cls) -> "SplitConfig":
        return cls(escapes=True, escapes_only_in_quotes=True, trim=True)


DEFAULT_CONFIG = SplitConfig()


def _scan(text: str, delimiter: str, config: SplitConfig):
    """
    Walk ``text`` once and return (segments, quote_open_at_end).

    Segments are raw; trimming and empty filtering happen in the caller.
    """
    if not delimiter:
        raise ValueError("delimiter must not be empty")

    segments: List[str] = []
    current: List[str] = []
    in_quotes = False
    width = len(delimiter)
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if (
            ch == BACKSLASH
            and config.escapes
            and (in_quotes or not config.escapes_only_in_quotes)
        ):
            current.append(text[i:i + 2])
            i += 2
            continue
        if ch == QUOTE:
            in_quotes = not in_quotes
            current.append(ch)
            i += 1
            continue
        if not in_quotes and text.startswith(delimiter, i):
            segments.append("".join(current))
            current = []
            i += width
            continue
        current.append(ch)
        i += 1

    segments.append("".join(current))
    return segments, in_quotes


def _finish(segments: List[str], config: SplitConfig) -> List[str]:
    if config.trim:
        segments = [s.strip() for s in segments]
    if not config.keep_empty:
        segments = [s for s in segments if s.strip()]
    return segments


def smart_split(text: str, delimiter: str = ";", config: SplitConfig = DEFAULT_CONFIG) -> List[str]:
    """Split ``text`` on a single-character delimiter outside quotes."""
    if len(delimiter) != 1:
        raise ValueError(f"smart_split expects a single character, got {delimiter!r}")
    segments, _ = _scan(text, delimiter, config)
    return _finish(segments, config)


def smart_split_multi(text: str, delimiter: str, config: SplitConfig = DEFAULT_CONFIG) -> List[str]:
    """Split ``text`` on a fixed multi-character delimiter such as ``:;:``."""
    segments, _ = _scan(text, delimiter, config)
    return _finish(segments, config)


def split_checked(text: str, delimiter: str, config: SplitConfig = DEFAULT_CONFIG) -> List[str]:
    """
    Like ``smart_split_multi`` but refuses to split when a quote is left open.

    Raises:
        UnbalancedQuotesError: the input ends inside a quoted section.
    """
    segments, open_quote = _scan(text, delimiter, config)
    if open_quote:
        raise UnbalancedQuotesError(text)
    return _finish(segments, config)


def smart_split_semicolons(text: str) -> Optional[List[str]]:
    """Token-list split; None when quoting does not close by end of input."""
    try:
        return split_checked(text, ";", SplitConfig.semicolon_tokens())
    except UnbalancedQuotesError:
        return None


def unquoted_positions(text: str, char: str) -> List[int]:
    """Indices of ``char`` in ``text`` that sit outside quotes and escapes."""
    positions = []
    in_quotes = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == BACKSLASH and in_quotes:
            i += 2
            continue
        if ch == QUOTE:
            in_quotes = not in_quotes
        elif ch == char and not in_quotes:
            positions.append(i)
        i += 1
    return positions


def has_consecutive_delimiters(text: str, delimiter: str = ";") -> bool:
    """True when two delimiters outside quotes are separated only by whitespace."""
    segments, _ = _scan(text, delimiter, SplitConfig.meteor_streams())
    # Leading and trailing delimiters leave empty edge segments; only interior ones count.
    return any(not s.strip() for s in segments[1:-1])
