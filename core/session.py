"""Typing session lifecycle: record, aggregate, persist, compact."""

import logging
import random
from collections.abc import Sequence
from datetime import date
from enum import Enum

from core.aggregator import aggregate
from core.compactor import Compactor
from core.models import SessionResult
from core.recorder import Recorder
from core.selector import WordSelector
from core.storage import Storage
from utils.config import AppSettings

log = logging.getLogger("klik.session")


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    AGGREGATING = "aggregating"
    PERSISTING = "persisting"
    COMPACTING = "compacting"


class SessionManager:
    """Runs one typing session at a time against a Storage.

    Persistence problems never abort a session: finish_session() returns the
    session's statistics whether or not they were saved.
    """

    def __init__(
        self,
        storage: Storage,
        settings: AppSettings | None = None,
        rng: random.Random | None = None,
    ):
        self.storage = storage
        self.settings = settings or storage.settings
        self.compactor = Compactor(storage.store, self.settings)
        self.selector = WordSelector(self.settings, rng)
        self.state = SessionState.IDLE
        self.recorder: Recorder | None = None

    def _require(self, state: SessionState) -> None:
        if self.state != state:
            raise RuntimeError(f"Session is {self.state.value}, expected {state.value}")

    def start_session(self) -> Recorder:
        """Begin a session.

        Raises:
            RuntimeError: If a session is already running
        """
        self._require(SessionState.IDLE)
        self.recorder = Recorder()
        self.state = SessionState.RECORDING
        return self.recorder

    def record_keypress(self, character: str, correct: bool, time_to_press_ms: int) -> None:
        self._require(SessionState.RECORDING)
        self.recorder.record(character, correct, time_to_press_ms)

    def finish_session(self, session_date: date | None = None) -> SessionResult:
        """Aggregate the session, persist it and compact if needed.

        Args:
            session_date: Date the rows are stored under, defaults to today

        Returns:
            SessionResult with the aggregated rows and what happened to them

        Raises:
            RuntimeError: If no session is running
        """
        self._require(SessionState.RECORDING)
        session_date = session_date or date.today()

        try:
            self.state = SessionState.AGGREGATING
            stats = aggregate(self.recorder.finalize(), session_date)

            committed = False
            compaction = None
            if stats:
                self.state = SessionState.PERSISTING
                committed = self.storage.commit(stats, session_date)

            if committed:
                self.state = SessionState.COMPACTING
                compaction = self.compactor.maybe_compact(session_date)
        finally:
            self.recorder = None
            self.state = SessionState.IDLE

        log.info(
            f"Session finished: {len(stats)} characters, "
            f"{'saved' if committed else 'not saved'}"
        )
        return SessionResult(
            session_date=session_date,
            stats=stats,
            committed=committed,
            compaction=compaction,
        )

    def abandon_session(self) -> None:
        """Drop the running session without persisting anything."""
        self._require(SessionState.RECORDING)
        self.recorder.abandon()
        self.recorder = None
        self.state = SessionState.IDLE
        log.debug("Session abandoned")

    def next_words(self, pool: Sequence[str], count: int | None = None) -> list[str]:
        """Select practice words from pool using the stored history."""
        count = count if count is not None else self.settings.number_of_words
        return self.selector.select(pool, count, self.storage.character_difficulties())
