"""
Validation Refresh Controller

Keeps the current operation validations per session and recomputes them
whenever one of their inputs changes. There is no TTL: a result is served
only for the exact snapshot it was computed from.
"""

import itertools
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

import structlog

from ..ports import SessionControl
from .models import OperationValidations, Session
from .validator import OperationValidator

logger = structlog.stdlib.get_logger(__name__)


class RefreshTrigger(str, Enum):
    """Input changes that invalidate stored validations."""

    INITIAL = "initial"
    SESSION_ID_CHANGED = "session_id_changed"
    BALANCE_CHANGED = "balance_changed"
    PAUSE_FLAG_CHANGED = "pause_flag_changed"
    STATUS_CHANGED = "status_changed"


def detect_triggers(previous: Optional[Session], current: Session) -> FrozenSet[RefreshTrigger]:
    """Return the triggers that fire between two snapshots."""
    if previous is None:
        return frozenset({RefreshTrigger.INITIAL})

    triggers = set()
    if previous.session_id != current.session_id:
        triggers.add(RefreshTrigger.SESSION_ID_CHANGED)
    if previous.balance != current.balance:
        triggers.add(RefreshTrigger.BALANCE_CHANGED)
    if previous.is_paused != current.is_paused:
        triggers.add(RefreshTrigger.PAUSE_FLAG_CHANGED)
    if previous.status != current.status:
        triggers.add(RefreshTrigger.STATUS_CHANGED)
    return frozenset(triggers)


@dataclass(frozen=True)
class _Entry:
    session: Session
    validations: OperationValidations
    generation: int


class ValidationRefreshController:
    """
    Re-derives validations on explicit triggers.

    Usage:
        controller = ValidationRefreshController(validator, session_control)

        # Push a snapshot from a poll or event
        validations = controller.observe(session)

        # Or pull a fresh one from the session manager
        validations = await controller.refresh("session-123")

    Concurrent refreshes for the same session collapse to the latest
    issued one: a fetch that completes after a newer fetch was issued is
    discarded instead of overwriting the newer result.

    At most max_sessions entries are kept; the least recently used session
    is dropped first.
    """

    def __init__(
        self,
        validator: Optional[OperationValidator] = None,
        session_control: Optional[SessionControl] = None,
        max_sessions: int = 1024,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")

        self.validator = validator or OperationValidator()
        self.session_control = session_control
        self.max_sessions = max_sessions
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        # Only tracked while a refresh for the session is in flight
        self._issued: Dict[str, int] = {}
        self._in_flight: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def observe(self, session: Session) -> OperationValidations:
        """Record a snapshot and return validations for it."""
        generation = self._issue(session.session_id)
        try:
            return self._apply(session, generation)
        finally:
            self._release(session.session_id)

    def current(self, session: Session) -> OperationValidations:
        """Validations for exactly this snapshot, recomputed if stored inputs differ."""
        entry = self._entries.get(session.session_id)
        if entry is not None and entry.session.snapshot_key == session.snapshot_key:
            self._entries.move_to_end(session.session_id)
            return entry.validations
        return self.observe(session)

    def latest(self, session_id: str) -> Optional[OperationValidations]:
        entry = self._entries.get(session_id)
        return entry.validations if entry else None

    async def refresh(self, session_id: str) -> OperationValidations:
        """
        Fetch a fresh snapshot from the session manager and validate it.

        Raises:
            RuntimeError: If no session-control client is configured.
            SessionNotFoundError, BackendUnavailableError: From the fetch.
        """
        if self.session_control is None:
            raise RuntimeError("ValidationRefreshController has no session-control client")

        generation = self._issue(session_id)
        self._in_flight[session_id] = self._in_flight.get(session_id, 0) + 1
        try:
            session = await self.session_control.get_session(session_id)

            if generation != self._issued.get(session_id):
                # A newer refresh was issued while this fetch was in flight
                logger.debug(
                    "validation_stale_discarded",
                    session_id=session_id,
                    generation=generation,
                    latest=self._issued.get(session_id),
                )
                return self.validator.validate(session)

            return self._apply(session, generation)
        finally:
            remaining = self._in_flight.pop(session_id) - 1
            if remaining:
                self._in_flight[session_id] = remaining
            self._release(session_id)

    def invalidate(self, session_id: str) -> None:
        self._entries.pop(session_id, None)
        self._release(session_id)

    def _issue(self, session_id: str) -> int:
        generation = next(self._counter)
        self._issued[session_id] = generation
        return generation

    def _release(self, session_id: str) -> None:
        if session_id not in self._in_flight:
            self._issued.pop(session_id, None)

    def _apply(self, session: Session, generation: int) -> OperationValidations:
        entry = self._entries.get(session.session_id)
        previous = entry.session if entry else None
        triggers = detect_triggers(previous, session)

        if entry is not None and not triggers:
            if generation > entry.generation:
                self._store(_Entry(session, entry.validations, generation))
            return entry.validations

        validations = self.validator.validate(session)
        self._store(_Entry(session, validations, generation))
        logger.debug(
            "validation_refreshed",
            session_id=session.session_id,
            triggers=sorted(t.value for t in triggers),
            pause=validations.pause.can_proceed,
            resume=validations.resume.can_proceed,
            stop=validations.stop.can_proceed,
        )
        return validations

    def _store(self, entry: _Entry) -> None:
        session_id = entry.session.session_id
        self._entries[session_id] = entry
        self._entries.move_to_end(session_id)
        while len(self._entries) > self.max_sessions:
            self._entries.popitem(last=False)
