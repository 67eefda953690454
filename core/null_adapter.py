"""No-op statistics store used when the database cannot be opened."""

import logging
from collections.abc import Sequence
from datetime import date

from core.database_adapter import StatsStore
from core.models import CharSessionStats, CharSummary, MigrationResult

log = logging.getLogger("klik.null_adapter")


class NullStatsStore(StatsStore):
    """Store that accepts every write and remembers nothing.

    Typing sessions keep working against it; only the history is lost.
    """

    def initialize(self) -> MigrationResult:
        return MigrationResult.NO_LEGACY_DATA

    def close(self) -> None:
        pass

    def commit(self, stats: Sequence[CharSessionStats], session_date: date) -> None:
        log.debug(f"Dropping {len(stats)} rows, statistics store unavailable")

    def clear_all_stats(self) -> None:
        pass

    def summary(self, character: str) -> CharSummary | None:
        return None

    def all_summaries(self) -> list[CharSummary]:
        return []

    def historical_summaries(self) -> list[CharSummary]:
        return []

    def latest_session_summaries(self) -> list[CharSummary]:
        return []

    def character_difficulties(self, min_attempts: int = 1) -> dict[str, CharSummary]:
        return {}

    def session_row_count(self) -> int:
        return 0

    def database_size(self) -> int:
        return 0

    def rows_before(self, cutoff: date) -> list[tuple[int, CharSessionStats]]:
        return []

    def replace_rows(self, row_ids: Sequence[int], merged: Sequence[CharSessionStats]) -> None:
        pass

    def reclaim_space(self) -> None:
        pass
