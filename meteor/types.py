"""
types.py

Value objects built fresh for every parse and never mutated afterwards:

    Context    isolation boundary ("app", "user", "system", ...)
    Namespace  dot-separated hierarchy inside a context ("ui.widgets")
    Key        user key plus its cached flat form (bracket notation removed)
    Token      key/value pair, optionally claiming a namespace
    Meteor     validated record: one context, one namespace, >= 1 token
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union

from .bracket import extract_base_name, has_brackets, transform_key
from .config import MeteorConfig
from .errors import (
    EmptyComponentError,
    EmptyTokensError,
    FormatError,
    NamespaceMismatchError,
)
from .escape import decode_value, encode_value
from .split import SplitConfig, split_checked, unquoted_positions

DEFAULT_CONTEXT = "app"
DEFAULT_NAMESPACE = "main"
PRIVILEGED_CONTEXTS = frozenset({"system"})

_FORBIDDEN_NAME_CHARS = re.compile(r"[\s:;=\"]")


def _check_name(kind: str, name: str) -> None:
    m = _FORBIDDEN_NAME_CHARS.search(name)
    if m:
        raise FormatError(f"Invalid character {m.group(0)!r} in {kind} '{name}'")


# -------------------------------------------------------------------------
# Context
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Context:
    name: str = DEFAULT_CONTEXT

    def __post_init__(self):
        if not self.name:
            raise EmptyComponentError("context")
        _check_name("context", self.name)

    @classmethod
    def parse(cls, text: str) -> "Context":
        return cls(text.strip())

    @classmethod
    def app(cls) -> "Context":
        return cls("app")

    @classmethod
    def user(cls) -> "Context":
        return cls("user")

    @classmethod
    def system(cls) -> "Context":
        return cls("system")

    @property
    def is_privileged(self) -> bool:
        return self.name in PRIVILEGED_CONTEXTS

    def __str__(self):
        return self.name


# -------------------------------------------------------------------------
# Namespace
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Namespace:
    """Dot-separated path; the empty tuple is the root namespace."""

    parts: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "parts", tuple(self.parts))
        for part in self.parts:
            if not part:
                raise FormatError(f"Empty segment in namespace '{'.'.join(self.parts)}'")
            _check_name("namespace", part)

    @classmethod
    def parse(cls, text: str) -> "Namespace":
        text = text.strip()
        if not text:
            return cls.root()
        return cls(tuple(p.strip() for p in text.split(".")))

    @classmethod
    def root(cls) -> "Namespace":
        return cls(())

    @classmethod
    def default(cls) -> "Namespace":
        return cls((DEFAULT_NAMESPACE,))

    @property
    def depth(self) -> int:
        return len(self.parts)

    @property
    def is_root(self) -> bool:
        return not self.parts

    def parent(self) -> Optional["Namespace"]:
        if self.is_root:
            return None
        return Namespace(self.parts[:-1])

    def child(self, name: str) -> "Namespace":
        return Namespace(self.parts + (name,))

    def is_parent_of(self, other: "Namespace") -> bool:
        """True when ``other`` is nested (at any depth) below this namespace."""
        return other.depth > self.depth and other.parts[: self.depth] == self.parts

    def should_warn(self, config: Optional[MeteorConfig] = None) -> bool:
        config = config or MeteorConfig()
        return self.depth >= config.namespace_warning_depth

    def is_too_deep(self, config: Optional[MeteorConfig] = None) -> bool:
        config = config or MeteorConfig()
        return self.depth >= config.namespace_error_depth

    def __str__(self):
        return ".".join(self.parts)


# -------------------------------------------------------------------------
# Key / Token
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Key:
    """
    A user key. ``transformed`` is computed once from ``original`` and is
    the form used for storage; ``original`` is kept for display.
    """

    original: str
    transformed: str = field(init=False, compare=False)

    def __post_init__(self):
        if not self.original or not self.original.strip():
            raise EmptyComponentError("key")
        flat = transform_key(self.original)
        # Whitespace is tolerated only inside brackets, where transform_key drops it.
        _check_name("key", flat)
        if any(not seg for seg in flat.split(".")):
            raise FormatError(f"Empty path segment in key '{self.original}'")
        object.__setattr__(self, "transformed", flat)

    @property
    def has_brackets(self) -> bool:
        return has_brackets(self.original)

    @property
    def base_name(self) -> str:
        return extract_base_name(self.original)

    def __eq__(self, other):
        if isinstance(other, Key):
            return self.transformed == other.transformed
        return NotImplemented

    def __hash__(self):
        return hash(self.transformed)

    def __str__(self):
        return self.original


def split_assignment(text: str) -> Tuple[str, str]:
    """
    Split ``left=right`` at its single unquoted '='.

    Raises:
        FormatError: zero or several '=' outside quotes.
    """
    positions = unquoted_positions(text, "=")
    if len(positions) != 1:
        raise FormatError(
            f"Invalid token format '{text}': expected exactly one '=' outside quotes, "
            f"found {len(positions)}"
        )
    eq = positions[0]
    return text[:eq].strip(), text[eq + 1:]


@dataclass(frozen=True)
class Token:
    """
    Immutable key/value pair. ``namespace`` is set only when the token was
    written with an explicit namespace; records check it against their own.
    """

    key: Key
    value: str
    namespace: Optional[Namespace] = None

    def __post_init__(self):
        if isinstance(self.key, str):
            object.__setattr__(self, "key", Key(self.key))
        if not isinstance(self.value, str):
            raise TypeError(f"Token value must be str, got {type(self.value).__name__}")

    @classmethod
    def parse(cls, text: str) -> "Token":
        """Parse ``key=value`` or ``namespace:key=value``."""
        left, raw_value = split_assignment(text.strip())
        namespace = None
        if ":" in left:
            if left.count(":") > 1:
                raise FormatError(f"Invalid token address '{left}': at most one ':' allowed")
            ns_text, left = left.split(":", 1)
            namespace = Namespace.parse(ns_text)
        return cls(Key(left), decode_value(raw_value), namespace)

    def __str__(self):
        prefix = f"{self.namespace}:" if self.namespace is not None else ""
        return f"{prefix}{self.key.original}={encode_value(self.value)}"


# -------------------------------------------------------------------------
# Meteor (record)
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class Meteor:
    """
    One context, one namespace, a non-empty ordered run of tokens.

    A token that names its own namespace must name this one; the check
    runs here, at construction, and never later.
    """

    context: Context
    namespace: Namespace
    tokens: Tuple[Token, ...]

    def __post_init__(self):
        tokens = tuple(self.tokens)
        if not tokens:
            raise EmptyTokensError()
        for token in tokens:
            if token.namespace is not None and token.namespace != self.namespace:
                raise NamespaceMismatchError(
                    str(self.namespace), [str(token.namespace)], token.key.original
                )
        object.__setattr__(self, "tokens", tokens)

    @classmethod
    def parse(cls, text: str) -> "Meteor":
        """
        Parse ``[context:][namespace:]key=value;key2=value2``.

        The address in front of the first '=' decides the layout: no colon
        means the default context and namespace, one colon a namespace, two
        colons a context and a namespace. Later tokens may carry their own
        ``namespace:`` prefix, which must match.
        """
        text = text.strip()
        eqs = unquoted_positions(text, "=")
        if not eqs:
            raise FormatError(f"Invalid meteor format '{text}': no '=' found")
        address = text[:eqs[0]]
        colons = address.count(":")
        if colons == 0:
            context, namespace, body = Context(), Namespace.default(), text
        elif colons == 1:
            ns_text, body = text.split(":", 1)
            context, namespace = Context(), Namespace.parse(ns_text)
        elif colons == 2:
            ctx_text, ns_text, body = text.split(":", 2)
            context, namespace = Context.parse(ctx_text), Namespace.parse(ns_text)
        else:
            raise FormatError(
                f"Invalid meteor format '{text}': expected at most context:namespace: before the first key"
            )

        tokens = [Token.parse(seg) for seg in split_checked(body, ";", SplitConfig.meteor_streams())]
        return cls(context, namespace, tuple(tokens))

    @property
    def token(self) -> Token:
        return self.tokens[0]

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(t.key.transformed for t in self.tokens)

    def get(self, key: Union[str, Key]) -> Optional[str]:
        """Last value written for ``key`` (either notation) in this record."""
        flat = key.transformed if isinstance(key, Key) else transform_key(key)
        for token in reversed(self.tokens):
            if token.key.transformed == flat:
                return token.value
        return None

    def __len__(self):
        return len(self.tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    def __str__(self):
        body = ";".join(f"{t.key.original}={encode_value(t.value)}" for t in self.tokens)
        return f"{self.context}:{self.namespace}:{body}"
