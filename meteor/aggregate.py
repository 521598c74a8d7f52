"""
aggregate.py

Token -> record aggregation and the processing modes shared by both
stream grammars.

Each grammar turns text into a sequence of items (``AddressedToken`` or
``ControlRequest``). ``BaseStreamParser`` then offers three ways to run
that sequence against an engine:

    process             per token, committing as it goes (legacy path;
                        tokens before a failure stay written)
    process_aggregated  group by (context, namespace), build validated
                        records, then write them all or nothing
    validate            grammar, control command and limit checks, no writes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .engine import validate_control_command
from .errors import ControlCommandError, FormatError, MeteorError
from .escape import decode_value
from .types import Context, Meteor, Namespace, Token, split_assignment
from . import validators

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a validation-only run. Truthy when valid.

    ``error`` holds the first failure's message and ``code`` its stable
    error code (see ``meteor.errors``).
    """

    ok: bool
    error: Optional[str] = None
    code: Optional[str] = None

    def __bool__(self):
        return self.ok

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def failure(cls, exc: MeteorError) -> "ValidationResult":
        return cls(False, str(exc), exc.code)


@dataclass(frozen=True)
class AddressedToken:
    context: Context
    namespace: Namespace
    token: Token


@dataclass(frozen=True)
class ControlRequest:
    command: str
    target: str


StreamItem = Union[AddressedToken, ControlRequest]
GroupKey = Tuple[Context, Namespace]


def group_tokens(items: Iterable[AddressedToken]) -> List[Tuple[GroupKey, List[Token]]]:
    """Group tokens by (context, namespace), groups in first-seen order."""
    groups: Dict[GroupKey, List[Token]] = {}
    for item in items:
        groups.setdefault((item.context, item.namespace), []).append(item.token)
    return list(groups.items())


def build_records(groups: Iterable[Tuple[GroupKey, List[Token]]]) -> List[Meteor]:
    return [Meteor(context, namespace, tuple(tokens)) for (context, namespace), tokens in groups]


def commit_records(engine, records: List[Meteor]) -> None:
    """
    Write every token of every record. On any storage failure the engine's
    storage is restored to its state before the call and the error re-raised.
    """
    snapshot = engine.storage.snapshot()
    try:
        for record in records:
            for token in record:
                engine.store(record.context, record.namespace, token.key, token.value)
    except MeteorError:
        engine.storage.restore(snapshot)
        raise
    logger.debug("committed %d record(s)", len(records))


class BaseStreamParser:
    """
    Shared driver for the stream grammars. Subclasses implement ``split``
    and ``_items``; ``_items`` may read and move the cursor it is given.
    """

    def __init__(self, engine):
        self.engine = engine

    @property
    def config(self):
        return self.engine.config

    def split(self, text: str) -> List[str]:
        raise NotImplementedError

    def _items(self, text: str, cursor) -> Iterator[StreamItem]:
        raise NotImplementedError

    def _check(self, item: AddressedToken, known_contexts: Set[str]) -> None:
        validators.check_token(
            item.context, item.namespace, item.token.key, item.token.value,
            self.config, known_contexts,
        )

    # ------------------------------------------------------------------

    def process(self, text: str) -> int:
        """Run ``text`` token by token. Returns the number of tokens stored."""
        stored = 0
        for item in self._items(text, self.engine.cursor()):
            if isinstance(item, ControlRequest):
                self.engine.execute_control_command(item.command, item.target)
                continue
            self._check(item, set(self.engine.contexts()))
            self.engine.store(item.context, item.namespace, item.token.key, item.token.value)
            stored += 1
        logger.debug("%s stored %d token(s)", type(self).__name__, stored)
        return stored

    def _collect(self, text: str, cursor) -> List[Meteor]:
        known = set(self.engine.contexts())
        tokens: List[AddressedToken] = []
        for item in self._items(text, cursor):
            if isinstance(item, ControlRequest):
                raise ControlCommandError(
                    f"Control command 'ctl:{item.command}' is not allowed in aggregated processing"
                )
            self._check(item, known)
            known.add(item.context.name)
            tokens.append(item)
        return build_records(group_tokens(tokens))

    def process_aggregated(self, text: str) -> List[Meteor]:
        """Validate everything, then write all records or none."""
        cursor = self.engine.cursor().copy()
        records = self._collect(text, cursor)
        commit_records(self.engine, records)
        self.engine.set_cursor(cursor.context, cursor.namespace)
        return records

    def validate(self, text: str) -> ValidationResult:
        """Grammar and limit checks without touching the engine."""
        cursor = self.engine.cursor().copy()
        known = set(self.engine.contexts())
        tokens: List[AddressedToken] = []
        try:
            for item in self._items(text, cursor):
                if isinstance(item, ControlRequest):
                    validate_control_command(item.command, item.target)
                    if item.command == "reset" and item.target in ("cursor", "all"):
                        cursor.reset()
                    continue
                self._check(item, known)
                known.add(item.context.name)
                tokens.append(item)
            build_records(group_tokens(tokens))
        except MeteorError as e:
            return ValidationResult.failure(e)
        return ValidationResult.success()


CONTROL_PREFIX = "ctl:"


def parse_control(segment: str) -> ControlRequest:
    """Parse ``ctl:<command>=<target>``."""
    body = segment.strip()[len(CONTROL_PREFIX):]
    try:
        command, target = split_assignment(body)
    except FormatError:
        raise ControlCommandError(
            f"Invalid control command format '{segment.strip()}': expected ctl:<command>=<target>"
        ) from None
    target = decode_value(target)
    if not command or not target:
        raise ControlCommandError(
            f"Invalid control command format '{segment.strip()}': expected ctl:<command>=<target>"
        )
    return ControlRequest(command, target)
