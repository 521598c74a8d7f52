"""
config.py

Limit profiles for Meteor
-------------------------

A ``MeteorConfig`` is an immutable bundle of limits handed to
``MeteorEngine(config=...)`` at construction time. The engine itself only
enforces the command history cap; the parsers and ``meteor.validators``
check the remaining limits against ``engine.config``.

Profiles:

    default     balanced limits for general use
    enterprise  large deployments (deep namespaces, long values)
    embedded    memory-constrained hosts
    strict      minimal surface for high-security environments

meteor.toml example:

    [meteor]
    profile = "embedded"

    [limits]
    max_value_length = 512      # optional per-limit override
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import ConfigError

_CONFIG_FILENAME = "meteor.toml"
_PROFILE_ENV = "METEOR_PROFILE"
DEFAULT_PROFILE = "default"


@dataclass(frozen=True)
class MeteorConfig:
    """Limits for one engine. Never mutated after construction."""

    profile: str = DEFAULT_PROFILE
    max_contexts: int = 100
    max_namespace_part_length: int = 64
    namespace_warning_depth: int = 3    # soft warning at or above this depth
    namespace_error_depth: int = 4      # validation error at or above this depth
    max_key_length: int = 128
    max_value_length: int = 2048
    max_command_history: int = 1000

    def __post_init__(self):
        for f in fields(self):
            if f.name == "profile":
                continue
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{f.name} must be a positive integer, got {value!r}")
        if self.namespace_warning_depth > self.namespace_error_depth:
            raise ConfigError(
                "namespace_warning_depth must not exceed namespace_error_depth "
                f"({self.namespace_warning_depth} > {self.namespace_error_depth})"
            )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_profile(cls, name: str) -> "MeteorConfig":
        """Return the built-in profile called ``name``."""
        try:
            return PROFILES[name]
        except KeyError:
            known = ", ".join(sorted(PROFILES))
            raise ConfigError(f"Unknown configuration profile '{name}' (known: {known})") from None

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "MeteorConfig":
        """Select a profile through ``METEOR_PROFILE``; unset means default."""
        env = os.environ if environ is None else environ
        return cls.from_profile(env.get(_PROFILE_ENV, DEFAULT_PROFILE) or DEFAULT_PROFILE)

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> "MeteorConfig":
        """
        Load a profile (and optional overrides) from a meteor.toml file.

        Args:
            path: file or directory; a directory is searched for meteor.toml.
                  None means the current working directory.

        A missing file yields the profile selected by the environment.
        ``METEOR_PROFILE`` wins over the file's ``[meteor] profile`` entry.
        """
        p = Path(path) if path is not None else Path.cwd()
        if p.is_dir():
            p = p / _CONFIG_FILENAME
        if not p.exists():
            return cls.from_env()

        try:
            with open(p, "rb") as f:
                raw = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Could not read {p}: {e}") from e

        section = raw.get("meteor", {})
        profile = os.environ.get(_PROFILE_ENV) or section.get("profile", DEFAULT_PROFILE)
        base = cls.from_profile(profile)
        return base.with_overrides(raw.get("limits", {}))

    def with_overrides(self, overrides: Dict[str, Any]) -> "MeteorConfig":
        """Return a copy with individual limits replaced."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)} - {"profile"}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown limit(s): {', '.join(unknown)}")
        return replace(self, **overrides)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def summary(self) -> str:
        return (
            f"Meteor Configuration Profile: {self.profile}\n"
            f"- Max namespace part length: {self.max_namespace_part_length}\n"
            f"- Namespace warning depth: {self.namespace_warning_depth}\n"
            f"- Namespace error depth: {self.namespace_error_depth}\n"
            f"- Max command history: {self.max_command_history}\n"
            f"- Max contexts: {self.max_contexts}\n"
            f"- Max token key length: {self.max_key_length}\n"
            f"- Max token value length: {self.max_value_length}"
        )


PROFILES: Dict[str, MeteorConfig] = {
    "default": MeteorConfig(),
    "enterprise": MeteorConfig(
        profile="enterprise",
        max_contexts=1_000,
        max_namespace_part_length=128,
        namespace_warning_depth=6,
        namespace_error_depth=8,
        max_key_length=256,
        max_value_length=8_192,
        max_command_history=10_000,
    ),
    "embedded": MeteorConfig(
        profile="embedded",
        max_contexts=10,
        max_namespace_part_length=32,
        max_key_length=32,
        max_value_length=256,
        max_command_history=100,
    ),
    "strict": MeteorConfig(
        profile="strict",
        max_contexts=5,
        max_namespace_part_length=16,
        max_key_length=16,
        max_value_length=128,
        max_command_history=500,
    ),
}
