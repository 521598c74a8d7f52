"""
engine.py

MeteorEngine
------------

Owns one ``Storage``, the cursor used by the implicit token-stream grammar,
and the audit log of control commands.

Paths are colon separated:

    ctx:ns:key     one key (bracket notation allowed in key)
    ctx::key       key in the root namespace
    ctx:key        key in the default namespace (ctx:main:key)
    ctx:ns:        a whole namespace (delete)
    ctx:           the default namespace (delete)
    ctx            a whole context (delete only)

Tree queries read ``ctx:ns`` as a namespace rather than a key.

Set METEOR_DEBUG=1 to log the configuration summary when an engine is built.
"""

from __future__ import annotations

import logging
import os
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .bracket import split_flat_key
from .config import MeteorConfig
from .errors import ControlCommandError, MeteorError, PathError
from .storage import Storage
from .types import Context, Key, Meteor, Namespace, Token

logger = logging.getLogger(__name__)

_DEBUG_ENABLED = os.getenv("METEOR_DEBUG", "0") == "1"

CONTROL_COMMANDS = ("delete", "reset")
RESET_TARGETS = ("cursor", "storage", "all")


# ==========================================
# PATHS
# ==========================================

@dataclass(frozen=True)
class EnginePath:
    """A parsed engine path. ``namespace`` is None for context paths, ``key`` for non-key paths."""

    context: Context
    namespace: Optional[Namespace] = None
    key: Optional[Key] = None

    @property
    def kind(self) -> str:
        if self.key is not None:
            return "key"
        if self.namespace is not None:
            return "namespace"
        return "context"


def parse_path(path: str, tree: bool = False) -> EnginePath:
    """
    Two-part paths address the default namespace: ``ctx:k`` is the key
    ``ctx:main:k`` and ``ctx:`` is the namespace ``ctx:main``. With
    ``tree=True`` a two-part path names a namespace instead, as the tree
    queries expect (``ctx:ns``).

    Raises:
        PathError: more than three parts, an empty context, or a context,
            namespace or key that is not well formed.
    """
    parts = path.split(":")
    if len(parts) > 3:
        raise PathError(f"Invalid path '{path}': expected at most context:namespace:key")
    if not parts[0].strip():
        raise PathError(f"Invalid path '{path}': empty context")
    try:
        context = Context.parse(parts[0])
        if len(parts) == 1:
            return EnginePath(context)
        if len(parts) == 2 and not tree:
            if not parts[1]:
                return EnginePath(context, Namespace.default())
            return EnginePath(context, Namespace.default(), Key(parts[1]))
        namespace = Namespace.parse(parts[1])
        if len(parts) == 2 or not parts[2]:
            return EnginePath(context, namespace)
        return EnginePath(context, namespace, Key(parts[2]))
    except MeteorError as e:
        if isinstance(e, PathError):
            raise
        raise PathError(f"Invalid path '{path}': {e.message}") from e


def validate_control_command(command: str, target: str) -> None:
    """Static check of a control command; nothing is executed."""
    if command not in CONTROL_COMMANDS:
        raise ControlCommandError(f"Unknown control command: {command}")
    if command == "delete":
        parse_path(target)
    elif target not in RESET_TARGETS:
        raise ControlCommandError(f"Unknown reset target: {target}")


# ==========================================
# CURSOR / AUDIT
# ==========================================

@dataclass
class Cursor:
    """Current (context, namespace) used by the implicit grammar."""

    context: Context = field(default_factory=Context)
    namespace: Namespace = field(default_factory=Namespace.default)

    def set_context(self, context: Context) -> None:
        self.context = context

    def set_namespace(self, namespace: Namespace) -> None:
        self.namespace = namespace

    def reset(self) -> None:
        self.context = Context()
        self.namespace = Namespace.default()

    def copy(self) -> "Cursor":
        return Cursor(self.context, self.namespace)

    def position(self) -> Tuple[str, str]:
        return str(self.context), str(self.namespace)


@dataclass(frozen=True)
class ControlCommand:
    timestamp: float
    command_type: str
    target: str
    success: bool
    error_message: Optional[str] = None


@dataclass
class NamespaceView:
    """Snapshot of one namespace's entries."""

    context: str
    namespace: str
    entries: List[Tuple[str, str]]
    has_default: bool = False

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    def keys(self) -> List[str]:
        return [k for k, _ in self.entries]

    def values(self) -> List[str]:
        return [v for _, v in self.entries]

    def get(self, key: str) -> Optional[str]:
        return dict(self.entries).get(key)

    def has_key(self, key: str) -> bool:
        return any(k == key for k, _ in self.entries)


# ==========================================
# ENGINE
# ==========================================

def _index_sort_key(index: str):
    return (0, int(index), "") if index.isdigit() else (1, 0, index)


class MeteorEngine:
    def __init__(self, config: Optional[MeteorConfig] = None):
        self.config = config or MeteorConfig()
        self.storage = Storage()
        self._cursor = Cursor()
        self._history: deque = deque(maxlen=self.config.max_command_history)
        if _DEBUG_ENABLED:
            logger.info("MeteorEngine created\n%s", self.config.summary())

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def cursor(self) -> Cursor:
        return self._cursor

    @property
    def current_context(self) -> Context:
        return self._cursor.context

    @property
    def current_namespace(self) -> Namespace:
        return self._cursor.namespace

    def set_cursor(self, context: Context, namespace: Namespace) -> None:
        self._cursor.set_context(context)
        self._cursor.set_namespace(namespace)
        logger.debug("cursor -> %s:%s", context, namespace)

    def reset_cursor(self) -> None:
        self._cursor.reset()

    @contextmanager
    def cursor_guard(self):
        """Restore the cursor to its current position when the block exits."""
        saved = self._cursor.copy()
        try:
            yield self._cursor
        finally:
            self._cursor.set_context(saved.context)
            self._cursor.set_namespace(saved.namespace)

    # ------------------------------------------------------------------
    # Path API
    # ------------------------------------------------------------------

    def set(self, path: str, value: str) -> None:
        p = parse_path(path)
        if p.key is None:
            raise PathError(f"Cannot set '{path}': expected context:namespace:key")
        self.store(p.context, p.namespace, p.key, value)

    def store(self, context: Context, namespace: Namespace, key: Key, value: str) -> None:
        """Typed write used by the stream parsers."""
        self.storage.set(str(context), str(namespace), key.transformed, value)

    def get(self, path: str) -> Optional[str]:
        p = parse_path(path)
        if p.key is None:
            return None
        return self.storage.get(str(p.context), str(p.namespace), p.key.transformed)

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def delete(self, path: str) -> bool:
        """
        Delete a key, a namespace or a whole context.

        Returns False when nothing matched. Raises PathError when ``path``
        is malformed.
        """
        p = parse_path(path)
        if p.kind == "key":
            return self.storage.delete_key(str(p.context), str(p.namespace), p.key.transformed)
        if p.kind == "namespace":
            return self.storage.delete_namespace(str(p.context), str(p.namespace))
        return self.storage.delete_context(str(p.context))

    # ------------------------------------------------------------------
    # Control commands
    # ------------------------------------------------------------------

    def execute_control_command(self, command: str, target: str) -> bool:
        """
        Run ``ctl:<command>=<target>``. Every call, successful or not, is
        appended to the command history before returning or raising.
        """
        try:
            validate_control_command(command, target)
            if command == "delete":
                result = self.delete(target)
            else:
                result = self._reset(target)
        except MeteorError as e:
            self._record(command, target, False, str(e))
            logger.warning("control command %s=%s failed: %s", command, target, e)
            raise
        self._record(command, target, True)
        logger.debug("control command %s=%s -> %s", command, target, result)
        return result

    def _reset(self, target: str) -> bool:
        if target in ("cursor", "all"):
            self.reset_cursor()
        if target in ("storage", "all"):
            self.storage.clear()
        return True

    def _record(self, command: str, target: str, success: bool, error: Optional[str] = None) -> None:
        self._history.append(ControlCommand(time.time(), command, target, success, error))

    def command_history(self) -> List[ControlCommand]:
        return list(self._history)

    def last_command(self) -> Optional[ControlCommand]:
        return self._history[-1] if self._history else None

    def failed_commands(self) -> List[ControlCommand]:
        return [c for c in self._history if not c.success]

    def clear_history(self) -> None:
        self._history.clear()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def contexts(self) -> List[str]:
        return self.storage.contexts()

    def namespaces_in_context(self, context: str) -> List[str]:
        return self.storage.namespaces(context)

    def namespace_entries(self, context: str, namespace: str) -> List[Tuple[str, str]]:
        return self.storage.namespace_entries(context, namespace)

    def child_namespaces(self, context: str, namespace: str) -> List[str]:
        """Stored namespaces nested below ``namespace`` at any depth."""
        parent = Namespace.parse(namespace)
        return [
            ns for ns in self.storage.namespaces(context)
            if parent.is_parent_of(Namespace.parse(ns))
        ]

    def iter_entries(self) -> Iterator[Tuple[str, str, str, str]]:
        return self.storage.iter_entries()

    def namespace_view(self, context: str, namespace: str) -> NamespaceView:
        return NamespaceView(
            context,
            namespace,
            self.storage.namespace_entries(context, namespace),
            self.storage.has_default(context, namespace),
        )

    def meteor_for(self, context: str, namespace: str) -> Optional[Meteor]:
        """Stored namespace as a record; keys come back in their flat form."""
        entries = self.storage.namespace_entries(context, namespace)
        if not entries:
            return None
        ns = Namespace.parse(namespace)
        tokens = tuple(Token(Key(k), v, ns) for k, v in entries)
        return Meteor(Context(context), ns, tokens)

    def meteors(self) -> List[Meteor]:
        return [
            self.meteor_for(ctx, ns)
            for ctx in self.contexts()
            for ns in self.namespaces_in_context(ctx)
        ]

    # ------------------------------------------------------------------
    # Bracket-key queries
    # ------------------------------------------------------------------

    def bracket_keys(self, context: str, namespace: str) -> List[str]:
        return [
            k for k, _ in self.storage.namespace_entries(context, namespace)
            if split_flat_key(k) is not None
        ]

    def keys_with_base(self, context: str, namespace: str, base: str) -> List[str]:
        result = []
        for k, _ in self.storage.namespace_entries(context, namespace):
            parts = split_flat_key(k)
            if parts is not None and parts[0] == base:
                result.append(k)
        return result

    def array_values(self, context: str, namespace: str, base: str) -> List[Tuple[str, str]]:
        """(index, value) pairs under ``base``; numeric indices sort numerically."""
        pairs = []
        for k, v in self.storage.namespace_entries(context, namespace):
            parts = split_flat_key(k)
            if parts is None or parts[0] != base:
                continue
            index = "_".join(parts[1]) if parts[1] else "APPEND"
            pairs.append((index, v))
        return sorted(pairs, key=lambda p: _index_sort_key(p[0]))

    # ------------------------------------------------------------------
    # Tree queries (path = ctx:ns:dotted.path or ctx:ns)
    # ------------------------------------------------------------------

    def _tree_target(self, path: str) -> Tuple[str, str, str]:
        p = parse_path(path, tree=True)
        if p.namespace is None:
            raise PathError(f"Tree query '{path}' needs at least context:namespace")
        return str(p.context), str(p.namespace), p.key.transformed if p.key else ""

    def is_file(self, path: str) -> bool:
        return self.storage.is_file(*self._tree_target(path))

    def is_directory(self, path: str) -> bool:
        return self.storage.is_directory(*self._tree_target(path))

    def list_children(self, path: str) -> List[str]:
        return self.storage.list_children(*self._tree_target(path))

    def has_default(self, path: str) -> bool:
        return self.storage.has_default(*self._tree_target(path))

    def get_default(self, path: str) -> Optional[str]:
        return self.storage.get_default(*self._tree_target(path))

    def stats(self) -> Dict[str, int]:
        return {
            "contexts": len(self.contexts()),
            "keys": len(self.storage),
            "commands": len(self._history),
        }
