"""Storage facade for klik - statistics queries and session commits."""

import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from core.database_adapter import (
    QueryError,
    StatsStore,
    StoreUnavailableError,
    WriteFailureError,
)
from core.models import (
    CharSessionStats,
    CharSummary,
    CharSummaryDelta,
    DatabaseInfo,
    MigrationResult,
)
from core.null_adapter import NullStatsStore
from core.sqlite_adapter import SQLiteStatsStore
from utils.app_dirs import db_path as default_db_path
from utils.config import AppSettings

log = logging.getLogger("klik.storage")


class Storage:
    """Character statistics storage.

    Wraps a StatsStore. If the database cannot be opened the facade falls
    back to a NullStatsStore, so typing keeps working without history.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        settings: AppSettings | None = None,
        store: StatsStore | None = None,
    ):
        """Initialize storage.

        Args:
            db_path: Path to the SQLite database, defaults to the XDG state dir
            settings: Application settings, defaults to AppSettings()
            store: Store to use instead of opening db_path
        """
        self.settings = settings or AppSettings()
        self.db_path = db_path if db_path is not None else default_db_path()
        if store is None:
            store = SQLiteStatsStore(self.db_path)

        try:
            self.migration_result = store.initialize()
        except StoreUnavailableError as e:
            log.warning(f"Statistics unavailable, continuing without history: {e}")
            store = NullStatsStore()
            self.migration_result = store.initialize()

        self.store = store
        if self.migration_result == MigrationResult.FAILED:
            log.warning("Legacy statistics were not migrated, will retry on next start")

    @property
    def available(self) -> bool:
        """Whether statistics are actually persisted."""
        return not isinstance(self.store, NullStatsStore)

    def close(self) -> None:
        self.store.close()

    # ========== Writes ==========

    def commit(self, stats: Sequence[CharSessionStats], session_date: date) -> bool:
        """Persist one session's rows.

        Returns:
            True if the rows were written, False if the write failed
        """
        try:
            self.store.commit(stats, session_date)
        except WriteFailureError as e:
            log.error(f"Session statistics were not saved: {e}")
            return False
        return self.available

    def clear(self) -> None:
        """Delete all statistics."""
        self.store.clear_all_stats()
        log.info("All character statistics cleared")

    # ========== Queries ==========
    # A failed query degrades to "no history" instead of raising.

    def avg_time_to_press(self, character: str) -> float | None:
        """Average press time of correct attempts, None without history."""
        try:
            summary = self.store.summary(character)
        except QueryError as e:
            log.warning(f"Average press time for {character!r} unavailable: {e}")
            return None
        return summary.avg_time_ms if summary else None

    def miss_rate(self, character: str) -> float:
        """Miss rate in percent, 0.0 without history."""
        try:
            summary = self.store.summary(character)
        except QueryError as e:
            log.warning(f"Miss rate for {character!r} unavailable: {e}")
            return 0.0
        return summary.miss_rate_pct if summary else 0.0

    def all_character_summaries(self) -> list[CharSummary]:
        try:
            return self.store.all_summaries()
        except QueryError as e:
            log.warning(f"Character summaries unavailable: {e}")
            return []

    def summary_with_deltas(self) -> list[CharSummaryDelta]:
        """Historical summaries paired with the latest session's change.

        History excludes the latest session. Characters seen only in the
        latest session get a summary built from that session and no deltas.
        """
        try:
            historical = {s.character: s for s in self.store.historical_summaries()}
            latest = {s.character: s for s in self.store.latest_session_summaries()}
        except QueryError as e:
            log.warning(f"Session deltas unavailable: {e}")
            return []

        deltas = []
        for character in sorted(historical.keys() | latest.keys()):
            base = historical.get(character)
            current = latest.get(character)
            if base is None:
                deltas.append(
                    CharSummaryDelta(summary=current, session_attempts=current.total_attempts)
                )
                continue
            if current is None:
                deltas.append(CharSummaryDelta(summary=base))
                continue

            avg_delta = None
            if base.avg_time_ms is not None and current.avg_time_ms is not None:
                avg_delta = current.avg_time_ms - base.avg_time_ms
            deltas.append(
                CharSummaryDelta(
                    summary=base,
                    avg_time_delta_ms=avg_delta,
                    miss_rate_delta_pct=current.miss_rate_pct - base.miss_rate_pct,
                    session_attempts=current.total_attempts,
                )
            )
        return deltas

    def database_info(self) -> DatabaseInfo:
        try:
            return self.store.database_info()
        except QueryError as e:
            log.warning(f"Database info unavailable: {e}")
            return DatabaseInfo()

    def character_difficulties(self) -> dict[str, CharSummary]:
        """Summaries of characters with enough attempts to be scored.

        A failed query yields no history, so selection falls back to uniform.
        """
        try:
            return self.store.character_difficulties(self.settings.min_attempts_for_scoring)
        except QueryError as e:
            log.warning(f"Character history unavailable: {e}")
            return {}
