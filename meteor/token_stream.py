"""
token_stream.py

Implicit grammar: ``;``-separated segments read left to right against the
engine cursor.

    key=value          stored at <cursor context>:<cursor namespace>:key
    ns=ui.widgets      move the cursor namespace (not stored)
    ctx=user           move the cursor context (not stored)
    ctl:cmd=target     control command

Cursor moves made by ``process`` stay on the engine after the call.
"""

from __future__ import annotations

import logging
from typing import Iterator, List

from .aggregate import CONTROL_PREFIX, AddressedToken, BaseStreamParser, StreamItem, parse_control
from .errors import FormatError
from .escape import decode_value
from .split import SplitConfig, split_checked
from .types import Context, Key, Namespace, Token, split_assignment

logger = logging.getLogger(__name__)

NAMESPACE_SWITCH = "ns"
CONTEXT_SWITCH = "ctx"


class TokenStreamParser(BaseStreamParser):
    """Parser for ``key=value;ns=x;key2=value2`` streams."""

    def split(self, text: str) -> List[str]:
        return [s.strip() for s in split_checked(text, ";", SplitConfig.semicolon_tokens())]

    def _items(self, text: str, cursor) -> Iterator[StreamItem]:
        segments = self.split(text)
        logger.debug("token stream: %d segment(s)", len(segments))
        for segment in segments:
            if segment.startswith(CONTROL_PREFIX):
                yield parse_control(segment)
                continue

            key_text, raw_value = split_assignment(segment)
            if key_text == NAMESPACE_SWITCH:
                cursor.set_namespace(Namespace.parse(decode_value(raw_value)))
                logger.debug("cursor namespace -> %s", cursor.namespace)
                continue
            if key_text == CONTEXT_SWITCH:
                cursor.set_context(Context.parse(decode_value(raw_value)))
                logger.debug("cursor context -> %s", cursor.context)
                continue
            if ":" in key_text:
                raise FormatError(
                    f"Key '{key_text}' must not contain ':' in a token stream "
                    "(use ns=/ctx= or the meteor stream format)"
                )
            token = Token(Key(key_text), decode_value(raw_value))
            yield AddressedToken(cursor.context, cursor.namespace, token)
