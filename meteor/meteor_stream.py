"""
meteor_stream.py

Explicit grammar: records separated by ``:;:``, each holding one or more
``;``-separated tokens addressed as ``context:namespace:key=value``.

    app:ui:button=click :;: user:settings:theme=dark
    app:ui:message="hello; world"
    ctl:reset=cursor :;: app:ui:theme=dark

A bare ``key=value`` is accepted and lands in the default context and
namespace (app:main). This grammar never reads or moves the cursor.
"""

from __future__ import annotations

import logging
from typing import Iterator, List

from .aggregate import CONTROL_PREFIX, AddressedToken, BaseStreamParser, StreamItem, parse_control
from .errors import FormatError
from .escape import decode_value
from .split import METEOR_DELIMITER, SplitConfig, split_checked
from .types import Context, Key, Namespace, Token, split_assignment

logger = logging.getLogger(__name__)


def parse_addressed_token(text: str) -> AddressedToken:
    """
    Parse ``ctx:ns:key=value`` (or bare ``key=value``).

    Raises:
        FormatError: the address before '=' has one colon or more than two.
    """
    address, raw_value = split_assignment(text)
    colons = address.count(":")
    if colons == 0:
        context, namespace, key_text = Context(), Namespace.default(), address
    elif colons == 2:
        ctx_text, ns_text, key_text = address.split(":")
        context, namespace = Context.parse(ctx_text), Namespace.parse(ns_text)
    else:
        raise FormatError(
            f"Invalid meteor token '{text}': expected context:namespace:key=value, "
            f"found {colons} ':' in the address"
        )
    token = Token(Key(key_text.strip()), decode_value(raw_value), namespace)
    return AddressedToken(context, namespace, token)


class MeteorStreamParser(BaseStreamParser):
    """Parser for ``ctx:ns:key=value :;: ...`` streams."""

    delimiter = METEOR_DELIMITER

    def split(self, text: str) -> List[str]:
        return split_checked(text, self.delimiter, SplitConfig.meteor_streams())

    def _items(self, text: str, cursor) -> Iterator[StreamItem]:
        records = self.split(text)
        logger.debug("meteor stream: %d record(s)", len(records))
        for record in records:
            for segment in split_checked(record, ";", SplitConfig.meteor_streams()):
                if segment.startswith(CONTROL_PREFIX):
                    yield parse_control(segment)
                else:
                    yield parse_addressed_token(segment)
