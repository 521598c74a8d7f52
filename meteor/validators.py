"""
validators.py

Format predicates and limit checks.

The engine trusts its callers; the stream parsers run every token through
``check_token`` against the engine's ``MeteorConfig`` before writing it.
Predicates (``is_valid_*``) answer True/False and never raise.
"""

from __future__ import annotations

import logging
from typing import AbstractSet

from .config import MeteorConfig
from .errors import LimitError, MeteorError, NamespaceDepthError
from .split import METEOR_DELIMITER, SplitConfig, has_consecutive_delimiters, split_checked, unquoted_positions
from .types import Context, Key, Meteor, Namespace

logger = logging.getLogger(__name__)


# ==========================================
# FORMAT PREDICATES
# ==========================================

def is_valid_token_format(text: str) -> bool:
    """Exactly one unquoted '=', and a non-empty key without whitespace."""
    positions = unquoted_positions(text, "=")
    if len(positions) != 1:
        return False
    key = text[:positions[0]].strip()
    return bool(key) and not any(c.isspace() for c in key)


def is_valid_meteor_format(text: str) -> bool:
    """A single ``[ctx:][ns:]k=v;...`` record that builds without error."""
    try:
        Meteor.parse(text)
    except MeteorError:
        return False
    return True


def is_valid_meteor_shower_format(text: str) -> bool:
    """
    A ``:;:``-separated run of records, each made of valid ``;``-separated
    tokens with no empty token between two semicolons.
    """
    try:
        records = split_checked(text, METEOR_DELIMITER, SplitConfig.meteor_streams())
    except MeteorError:
        return False
    if not records:
        return False
    for record in records:
        if has_consecutive_delimiters(record, ";"):
            return False
        tokens = split_checked(record, ";", SplitConfig.meteor_streams())
        if not tokens or not all(is_valid_token_format(t) for t in tokens):
            return False
    return True


# ==========================================
# LIMIT CHECKS
# ==========================================

def check_namespace(namespace: Namespace, config: MeteorConfig) -> None:
    for part in namespace.parts:
        if len(part) > config.max_namespace_part_length:
            raise LimitError(
                f"Namespace part '{part}' exceeds {config.max_namespace_part_length} characters"
            )
    if namespace.is_too_deep(config):
        raise NamespaceDepthError(str(namespace), namespace.depth, config.namespace_error_depth)
    if namespace.should_warn(config):
        logger.warning(
            "Namespace '%s' has depth %d (warning at %d, error at %d)",
            namespace, namespace.depth, config.namespace_warning_depth, config.namespace_error_depth,
        )


def check_key(key: Key, config: MeteorConfig) -> None:
    if len(key.original) > config.max_key_length:
        raise LimitError(f"Key '{key.original}' exceeds {config.max_key_length} characters")


def check_value(value: str, config: MeteorConfig) -> None:
    if len(value) > config.max_value_length:
        raise LimitError(f"Value exceeds {config.max_value_length} characters ({len(value)})")


def check_context_capacity(context: Context, known: AbstractSet[str], config: MeteorConfig) -> None:
    """Refuse a new context once ``max_contexts`` distinct contexts exist."""
    if context.name not in known and len(known) >= config.max_contexts:
        raise LimitError(
            f"Cannot add context '{context}': limit of {config.max_contexts} contexts reached"
        )


def check_token(
    context: Context,
    namespace: Namespace,
    key: Key,
    value: str,
    config: MeteorConfig,
    known_contexts: AbstractSet[str],
) -> None:
    """Run every limit that applies to one addressed write."""
    check_context_capacity(context, known_contexts, config)
    check_namespace(namespace, config)
    check_key(key, config)
    check_value(value, config)
