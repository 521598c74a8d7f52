"""
storage.py

Hybrid flat + tree storage, isolated per context.

For every context two views are kept in step:

    flat   "namespace:key" -> value, insertion ordered (system of record)
    trees  namespace -> DirectoryNode, the key split on '.' into nested
           directories ending in a FileNode that names the flat key

Every ``set`` writes both views. Every delete removes the flat entry and
prunes directories that became empty, bottom-up; an emptied namespace
root and an emptied context are dropped as well.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import PathConflictError

logger = logging.getLogger(__name__)

DEFAULT_KEY = "index"


@dataclass
class FileNode:
    canonical_key: str


@dataclass
class DirectoryNode:
    children: Dict[str, "Node"] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.children


Node = Union[DirectoryNode, FileNode]


def canonical_key(namespace: str, key: str) -> str:
    return f"{namespace}:{key}"


def split_canonical(canonical: str) -> Tuple[str, str]:
    # Namespaces never contain ':', so the first one is the separator.
    namespace, _, key = canonical.partition(":")
    return namespace, key


@dataclass
class ContextStore:
    flat: Dict[str, str] = field(default_factory=dict)
    trees: Dict[str, DirectoryNode] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.flat


def _prune(node: DirectoryNode, parts: List[str]) -> None:
    """Remove the file at ``parts`` and every directory it leaves empty."""
    head = parts[0]
    if len(parts) == 1:
        node.children.pop(head, None)
        return
    child = node.children.get(head)
    if isinstance(child, DirectoryNode):
        _prune(child, parts[1:])
        if child.is_empty():
            del node.children[head]


def _collect(node: DirectoryNode) -> Iterator[str]:
    for child in node.children.values():
        if isinstance(child, FileNode):
            yield child.canonical_key
        else:
            yield from _collect(child)


class Storage:
    """Context-isolated key/value store. Values are opaque strings."""

    def __init__(self):
        self._contexts: Dict[str, ContextStore] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set(self, context: str, namespace: str, key: str, value: str) -> None:
        """
        Store ``value`` at ``context:namespace:key``.

        Raises:
            PathConflictError: a prefix of ``key`` already holds a value, or
                ``key`` itself is already a directory. Nothing is written.
        """
        parts = key.split(".")
        store = self._contexts.get(context)
        root = store.trees.get(namespace) if store else None
        self._check_conflict(root, namespace, key, parts)

        if store is None:
            store = self._contexts[context] = ContextStore()
        if root is None:
            root = store.trees[namespace] = DirectoryNode()

        full = canonical_key(namespace, key)
        store.flat[full] = value
        node = root
        for part in parts[:-1]:
            node = node.children.setdefault(part, DirectoryNode())
        node.children[parts[-1]] = FileNode(full)
        logger.debug("set %s:%s", context, full)

    @staticmethod
    def _check_conflict(root: Optional[DirectoryNode], namespace: str, key: str, parts: List[str]) -> None:
        node = root
        for i, part in enumerate(parts):
            if node is None:
                return
            child = node.children.get(part)
            last = i == len(parts) - 1
            if isinstance(child, FileNode) and not last:
                prefix = ".".join(parts[: i + 1])
                raise PathConflictError(
                    f"Cannot set '{namespace}:{key}': '{prefix}' already holds a value"
                )
            if isinstance(child, DirectoryNode) and last:
                raise PathConflictError(
                    f"Cannot set '{namespace}:{key}': '{key}' is a directory"
                )
            node = child if isinstance(child, DirectoryNode) else None

    def delete_key(self, context: str, namespace: str, key: str) -> bool:
        """Remove one key. False (and no change) when it is not stored."""
        store = self._contexts.get(context)
        full = canonical_key(namespace, key)
        if store is None or full not in store.flat:
            return False

        del store.flat[full]
        root = store.trees.get(namespace)
        if root is not None:
            _prune(root, key.split("."))
            if root.is_empty():
                del store.trees[namespace]
        if store.is_empty():
            del self._contexts[context]
        logger.debug("delete %s:%s", context, full)
        return True

    def delete_namespace(self, context: str, namespace: str) -> bool:
        """Remove every key of exactly ``namespace``; nested namespaces stay."""
        store = self._contexts.get(context)
        if store is None:
            return False
        prefix = f"{namespace}:"
        doomed = [k for k in store.flat if k.startswith(prefix)]
        if not doomed:
            return False
        for k in doomed:
            del store.flat[k]
        store.trees.pop(namespace, None)
        if store.is_empty():
            del self._contexts[context]
        logger.debug("delete namespace %s:%s (%d keys)", context, namespace, len(doomed))
        return True

    def delete_context(self, context: str) -> bool:
        removed = self._contexts.pop(context, None)
        if removed is None:
            return False
        logger.debug("delete context %s (%d keys)", context, len(removed.flat))
        return True

    def clear(self) -> None:
        self._contexts.clear()

    def snapshot(self) -> Dict[str, ContextStore]:
        return copy.deepcopy(self._contexts)

    def restore(self, snapshot: Dict[str, ContextStore]) -> None:
        self._contexts = snapshot

    # ------------------------------------------------------------------
    # Point queries
    # ------------------------------------------------------------------

    def get(self, context: str, namespace: str, key: str) -> Optional[str]:
        store = self._contexts.get(context)
        if store is None:
            return None
        return store.flat.get(canonical_key(namespace, key))

    def exists(self, context: str, namespace: str, key: str) -> bool:
        store = self._contexts.get(context)
        return store is not None and canonical_key(namespace, key) in store.flat

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def contexts(self) -> List[str]:
        return sorted(self._contexts)

    def namespaces(self, context: str) -> List[str]:
        store = self._contexts.get(context)
        if store is None:
            return []
        return sorted({split_canonical(k)[0] for k in store.flat})

    def namespace_entries(self, context: str, namespace: str) -> List[Tuple[str, str]]:
        """(key, value) pairs of one namespace, in insertion order."""
        store = self._contexts.get(context)
        if store is None:
            return []
        prefix = f"{namespace}:"
        return [(k[len(prefix):], v) for k, v in store.flat.items() if k.startswith(prefix)]

    def iter_entries(self) -> Iterator[Tuple[str, str, str, str]]:
        """Yield (context, namespace, key, value) ordered by context then namespace."""
        for context in self.contexts():
            for namespace in self.namespaces(context):
                for key, value in self.namespace_entries(context, namespace):
                    yield context, namespace, key, value

    def __len__(self):
        return sum(len(s.flat) for s in self._contexts.values())

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def _node(self, context: str, namespace: str, path: str) -> Optional[Node]:
        store = self._contexts.get(context)
        if store is None:
            return None
        node: Optional[Node] = store.trees.get(namespace)
        if not path:
            return node
        for part in path.split("."):
            if not isinstance(node, DirectoryNode):
                return None
            node = node.children.get(part)
        return node

    def is_file(self, context: str, namespace: str, path: str) -> bool:
        return isinstance(self._node(context, namespace, path), FileNode)

    def is_directory(self, context: str, namespace: str, path: str = "") -> bool:
        return isinstance(self._node(context, namespace, path), DirectoryNode)

    def list_children(self, context: str, namespace: str, path: str = "") -> List[str]:
        node = self._node(context, namespace, path)
        if not isinstance(node, DirectoryNode):
            return []
        return sorted(node.children)

    @staticmethod
    def default_path(path: str) -> str:
        return f"{path}.{DEFAULT_KEY}" if path else DEFAULT_KEY

    def has_default(self, context: str, namespace: str, path: str = "") -> bool:
        return self.is_file(context, namespace, self.default_path(path))

    def get_default(self, context: str, namespace: str, path: str = "") -> Optional[str]:
        return self.get(context, namespace, self.default_path(path))

    def tree_keys(self, context: str) -> List[str]:
        """Canonical keys reachable through the tree of ``context``."""
        store = self._contexts.get(context)
        if store is None:
            return []
        return sorted(k for root in store.trees.values() for k in _collect(root))

    def flat_keys(self, context: str) -> List[str]:
        store = self._contexts.get(context)
        return sorted(store.flat) if store else []
