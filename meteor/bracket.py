"""
bracket.py

Bracket notation <-> flat key rewriting.

    list[0]      -> list__i_0
    grid[2,3]    -> grid__i_2_3
    queue[]      -> queue__i_APPEND
    dict[name]   -> dict__i_name

``reverse_transform_key`` is best-effort: numeric and empty indices round
trip exactly, named indices containing '_' come back split.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .errors import BracketError, InvalidCharacterError

INDEX_SEPARATOR = "__"
INDEX_MARKER = "__i_"
APPEND = "APPEND"

_INDEX_CHARS = re.compile(r"[A-Za-z0-9_-]")
_INDEX_TOKEN = re.compile(r"[^,]+")


def has_brackets(key: str) -> bool:
    return "[" in key or "]" in key


def _indices(key: str, content: str, offset: int) -> List[str]:
    indices = []
    for m in _INDEX_TOKEN.finditer(content):
        raw = m.group(0)
        token = raw.strip()
        if not token:
            continue
        start = offset + m.start() + (len(raw) - len(raw.lstrip()))
        for i, ch in enumerate(token):
            if not _INDEX_CHARS.fullmatch(ch):
                raise InvalidCharacterError(key, ch, start + i)
        indices.append(token)
    return indices


def transform_key(key: str) -> str:
    """
    Flatten bracket notation in ``key``; keys without brackets pass through.

    Raises:
        BracketError: mismatched, misordered or nested brackets, an empty
            base name or text after the closing bracket.
        InvalidCharacterError: an index character outside [A-Za-z0-9_-];
            the reported position is an offset into ``key``.
    """
    has_open = "[" in key
    has_close = "]" in key
    if not has_open and not has_close:
        return key
    if has_open != has_close:
        raise BracketError(key, "mismatched brackets")

    open_pos = key.index("[")
    close_pos = key.rindex("]")
    if close_pos < open_pos:
        raise BracketError(key, "malformed bracket order")

    base = key[:open_pos]
    content = key[open_pos + 1:close_pos]
    if not base.strip():
        raise BracketError(key, "empty base name")
    if "[" in content or "]" in content:
        raise BracketError(key, "nested brackets are not allowed")
    suffix = key[close_pos + 1:]
    if suffix:
        raise BracketError(key, f"unexpected text '{suffix}' after closing bracket")

    indices = _indices(key, content, open_pos + 1)
    if not indices:
        return f"{base}{INDEX_MARKER}{APPEND}"
    return f"{base}{INDEX_MARKER}{'_'.join(indices)}"


def reverse_transform_key(flat_key: str) -> str:
    """Rebuild bracket notation from a flat key. Never fails."""
    sep = flat_key.find(INDEX_SEPARATOR)
    if sep == -1:
        return flat_key
    base = flat_key[:sep]
    suffix = flat_key[sep + len(INDEX_SEPARATOR):]
    if suffix == f"i_{APPEND}":
        return f"{base}[]"
    if suffix.startswith("i_"):
        return f"{base}[{','.join(suffix[2:].split('_'))}]"
    return f"{base}[{suffix}]"


def split_flat_key(flat_key: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    """
    Split a flattened key into (base, indices), or None for plain keys.

    An append slot yields an empty index tuple.
    """
    marker = flat_key.find(INDEX_MARKER)
    if marker <= 0:
        return None
    base = flat_key[:marker]
    rest = flat_key[marker + len(INDEX_MARKER):]
    if rest == APPEND:
        return base, ()
    return base, tuple(rest.split("_"))


def extract_base_name(key: str) -> str:
    """Base name of either form: ``list[0]`` and ``list__i_0`` both give ``list``."""
    if "[" in key:
        return key[:key.index("[")]
    parts = split_flat_key(key)
    return parts[0] if parts else key
