"""
escape.py

Escape grammar for double-quoted values.

Recognized inside quotes:  \\"  \\\\  \\n  \\t  \\r  \\uXXXX
Anything else after a backslash is an error, as is a bare '"' inside
the quoted body or a quote left open.

The body grammar is a small PEG (arpeggio), parsed once per value and
folded to the decoded string by ``_EscapeVisitor``.
"""

from __future__ import annotations

import threading

from arpeggio import EOF, NoMatch, ParserPython, PTNodeVisitor, Terminal, ZeroOrMore, visit_parse_tree
from arpeggio import RegExMatch as _

from .errors import EscapeError, UnbalancedQuotesError

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
}

# ==========================================
# GRAMMAR
# ==========================================

def escape():       return _(r'\\(["\\ntr]|u[0-9a-fA-F]{4})')
def plain():        return _(r'[^"\\]+')
def quoted_body():  return ZeroOrMore([escape, plain]), EOF


class _EscapeVisitor(PTNodeVisitor):
    def visit_escape(self, node, children):
        seq = node.value[1:]
        if seq[0] == "u":
            code = int(seq[1:], 16)
            if 0xD800 <= code <= 0xDFFF:
                raise EscapeError(f"Invalid unicode code point: \\{seq}", node.position)
            return chr(code)
        return _SIMPLE_ESCAPES[seq]

    def visit_plain(self, node, children):
        return node.value

    def visit__default__(self, node, children):
        if isinstance(node, Terminal):
            return "" if node.suppress else node.value
        return "".join(c for c in children if isinstance(c, str))


_PARSER = None
_PARSER_LOCK = threading.Lock()


def _get_parser():
    global _PARSER
    with _PARSER_LOCK:
        if _PARSER is None:
            _PARSER = ParserPython(quoted_body, skipws=False)
    return _PARSER


def _describe_failure(body: str, pos: int) -> EscapeError:
    """Turn a grammar failure position into a readable escape error."""
    if pos >= len(body):
        return EscapeError("Unexpected end of quoted value", pos)
    ch = body[pos]
    if ch == '"':
        return EscapeError(f"Unescaped quote in quoted value at position {pos}", pos)
    if ch == "\\":
        if pos + 1 >= len(body):
            return EscapeError("Unexpected end of input after backslash", pos)
        nxt = body[pos + 1]
        if nxt == "u":
            return EscapeError(
                f"Invalid unicode escape: \\{body[pos + 1:pos + 6]} (expected 4 hex digits)", pos
            )
        return EscapeError(f"Invalid escape sequence: \\{nxt}", pos)
    return EscapeError(f"Unexpected character '{ch}' at position {pos}", pos)


def parse_escaped_value(body: str) -> str:
    """
    Decode the body of a quoted value (the text between the quotes).

    Raises:
        EscapeError: unknown escape, dangling backslash or a bare quote.
    """
    if not body:
        return ""
    parser = _get_parser()
    try:
        with _PARSER_LOCK:
            tree = parser.parse(body)
    except NoMatch as e:
        raise _describe_failure(body, e.position) from None
    return visit_parse_tree(tree, _EscapeVisitor())


def validate_escapes(body: str) -> bool:
    try:
        parse_escaped_value(body)
    except EscapeError:
        return False
    return True


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


def has_unescaped_quotes(text: str) -> bool:
    i = 0
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return True
        i += 1
    return False


def decode_value(raw: str) -> str:
    """
    Turn the raw right-hand side of ``key=value`` into the stored string.

    Quoted values are unwrapped and unescaped; anything else is returned
    trimmed and otherwise untouched.
    """
    value = raw.strip()
    if not value.startswith('"'):
        return value
    if len(value) < 2 or not value.endswith('"') or not _closes(value):
        raise UnbalancedQuotesError(value)
    return parse_escaped_value(value[1:-1])


def _closes(value: str) -> bool:
    # A trailing '"' closes the value unless it is itself escaped by an odd backslash run.
    run = 0
    i = len(value) - 2
    while i >= 1 and value[i] == "\\":
        run += 1
        i -= 1
    return run % 2 == 0


_NEEDS_QUOTING = (";", '"', "\\", "\n", "\t", "\r", "=", ":")


def encode_value(value: str) -> str:
    """Inverse of ``decode_value``: quote and escape when the raw text would not survive."""
    if value == value.strip() and not any(c in value for c in _NEEDS_QUOTING):
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'
