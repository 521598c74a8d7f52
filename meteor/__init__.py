"""
Meteor - structured token-data transport and its runtime engine.

Public API:
- MeteorEngine: context-isolated store with cursor and command audit log
- TokenStreamParser: implicit grammar (key=value;ns=ui;theme=dark)
- MeteorStreamParser: explicit grammar (app:ui:button=click :;: ...)
- Meteor / Token / Key / Context / Namespace: value types
- MeteorConfig: limit profiles (default, enterprise, embedded, strict)
- transform_key / reverse_transform_key: bracket notation rewriting
"""

from .aggregate import ValidationResult
from .bracket import reverse_transform_key, transform_key
from .config import MeteorConfig
from .engine import ControlCommand, MeteorEngine
from .errors import FormatError, MeteorError, SemanticError
from .meteor_stream import MeteorStreamParser
from .token_stream import TokenStreamParser
from .types import Context, Key, Meteor, Namespace, Token

# Derive version from package metadata
try:
    from importlib.metadata import version
    __version__ = version("meteor-stream")
except Exception:
    __version__ = "0.1.0"

__all__ = [
    "MeteorEngine",
    "ControlCommand",
    "TokenStreamParser",
    "MeteorStreamParser",
    "ValidationResult",
    "Meteor",
    "Token",
    "Key",
    "Context",
    "Namespace",
    "MeteorConfig",
    "MeteorError",
    "FormatError",
    "SemanticError",
    "transform_key",
    "reverse_transform_key",
]
