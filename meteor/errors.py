"""
errors.py

Error taxonomy for Meteor
-------------------------

Two families of failure are raised by the core layers:

    FormatError    : the text does not follow the grammar
                     (arity of ':' / '=', brackets, escapes, quotes,
                     malformed paths, unknown control commands)
    SemanticError  : the text parses but violates a rule
                     (empty record, namespace mismatch, depth, limits)

"Not found" is never an error: lookups return None and deletes return False.

Each class carries a stable ``code`` so callers (validation results, the
command audit log, CLI front ends) can report failures without matching on
message text.
"""

from __future__ import annotations

from typing import List, Optional


class MeteorError(Exception):
    """Base class for every Meteor failure."""

    code = "ERR_METEOR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# -------------------------------------------------------------------------
# Format errors
# -------------------------------------------------------------------------


class FormatError(MeteorError):
    """Raised when input text does not follow the stream grammar."""

    code = "ERR_FORMAT"


class UnbalancedQuotesError(FormatError):
    """Raised when a double quote is still open at end of input."""

    code = "ERR_UNBALANCED_QUOTES"

    def __init__(self, text: str):
        super().__init__(f"Unbalanced quotes in: {text}")
        self.text = text


class EscapeError(FormatError):
    """Raised on an unknown escape, a dangling backslash or a bare quote."""

    code = "ERR_ESCAPE"

    def __init__(self, message: str, position: int = 0):
        super().__init__(message)
        self.position = position


class BracketError(FormatError):
    """Raised when bracket notation in a key cannot be transformed."""

    code = "ERR_BRACKET"

    def __init__(self, key: str, reason: str):
        super().__init__(f"Invalid bracket notation in '{key}': {reason}")
        self.key = key
        self.reason = reason


class InvalidCharacterError(BracketError):
    """Raised when a bracket index holds a character outside [A-Za-z0-9_-]."""

    def __init__(self, key: str, found: str, position: int):
        super().__init__(
            key, f"invalid character '{found}' at position {position} in bracket index"
        )
        self.found = found
        self.position = position


class PathError(FormatError):
    """Raised when a context:namespace:key path has the wrong shape."""

    code = "ERR_PATH"


class ControlCommandError(FormatError):
    """Raised for malformed, unknown or disallowed control commands."""

    code = "ERR_CONTROL"


# -------------------------------------------------------------------------
# Semantic errors
# -------------------------------------------------------------------------


class SemanticError(MeteorError):
    """Raised when well-formed input violates a data-model rule."""

    code = "ERR_SEMANTIC"


class EmptyComponentError(SemanticError):
    """Raised when a required component (context, key) is empty."""

    code = "ERR_EMPTY"

    def __init__(self, component: str):
        super().__init__(f"Empty {component}")
        self.component = component


class EmptyTokensError(SemanticError):
    """Raised when a record is built from an empty token sequence."""

    code = "ERR_EMPTY_TOKENS"

    def __init__(self):
        super().__init__("Cannot create meteor with empty token list")


class NamespaceMismatchError(SemanticError):
    """Raised when a token claims a namespace other than its record's."""

    code = "ERR_NAMESPACE_MISMATCH"

    def __init__(
        self,
        meteor_namespace: str,
        token_namespaces: List[str],
        token_key: Optional[str] = None,
    ):
        if len(token_namespaces) == 1:
            message = (
                f"Token '{token_key}' has namespace '{token_namespaces[0]}' "
                f"but meteor namespace is '{meteor_namespace}'"
            )
        else:
            message = (
                f"Meteor namespace '{meteor_namespace}' conflicts with token "
                f"namespaces: {', '.join(token_namespaces)}"
            )
        super().__init__(message)
        self.meteor_namespace = meteor_namespace
        self.token_namespaces = token_namespaces
        self.token_key = token_key


class NamespaceDepthError(SemanticError):
    """Raised when a namespace reaches the configured error depth."""

    code = "ERR_NAMESPACE_DEPTH"

    def __init__(self, namespace: str, depth: int, max_depth: int):
        super().__init__(
            f"Namespace '{namespace}' too deep: depth {depth} (error at depth {max_depth})"
        )
        self.namespace = namespace
        self.depth = depth
        self.max_depth = max_depth


class LimitError(SemanticError):
    """Raised when a key, value, namespace part or context count exceeds a limit."""

    code = "ERR_LIMIT"


class PathConflictError(SemanticError):
    """Raised when a write would turn a file node into a directory or back."""

    code = "ERR_PATH_CONFLICT"


class ConfigError(MeteorError):
    """Raised when a configuration profile or file cannot be used."""

    code = "ERR_CONFIG"
