"""SQLite adapter for klik character statistics."""

import logging
import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path

from core.aggregator import summarize
from core.database_adapter import (
    AdapterError,
    CompactionFailureError,
    QueryError,
    StatsStore,
    StoreUnavailableError,
    WriteFailureError,
)
from core.models import CharSessionStats, CharSummary, MigrationResult
from core.sqlite_schema import (
    INSERT_STATS_SQL,
    STATS_COLUMNS,
    apply_migrations,
    migrate_legacy,
    row_to_stats,
    stats_to_params,
)

log = logging.getLogger("klik.sqlite_adapter")

MEMORY_DB = ":memory:"


class SQLiteStatsStore(StatsStore):
    """SQLite implementation of the statistics store.

    Uses one connection for the lifetime of the process. The connection runs
    in autocommit mode and every write opens its own transaction, so a
    session's rows become visible all at once or not at all.
    """

    def __init__(self, db_path: Path | str):
        """Initialize SQLite store.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def initialize(self) -> MigrationResult:
        """Open the database, apply schema migrations and convert legacy data."""
        try:
            if str(self.db_path) != MEMORY_DB:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._conn.execute("PRAGMA busy_timeout = 30000")
            version = apply_migrations(self._conn)
        except (sqlite3.Error, OSError) as e:
            self.close()
            raise StoreUnavailableError(
                f"Cannot open statistics database {self.db_path}: {e}"
            ) from e

        log.debug(f"Statistics database {self.db_path} at schema version {version}")
        return migrate_legacy(self._conn)

    @contextmanager
    def get_connection(self):
        """Get the store's database connection."""
        if self._conn is None:
            raise StoreUnavailableError("Store not initialized. Call initialize() first.")
        yield self._conn

    @contextmanager
    def _transaction(self):
        """Run the enclosed statements in one IMMEDIATE transaction."""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ========== Writes ==========

    def commit(self, stats: Sequence[CharSessionStats], session_date: date) -> None:
        """Insert one session's rows under a new session id."""
        if not stats:
            return

        try:
            with self._transaction() as conn:
                (last_session_id,) = conn.execute(
                    "SELECT COALESCE(MAX(session_id), 0) FROM char_session_stats"
                ).fetchone()
                session_id = last_session_id + 1
                conn.executemany(
                    INSERT_STATS_SQL,
                    [stats_to_params(s, session_id, session_date) for s in stats],
                )
        except (sqlite3.Error, AdapterError) as e:
            raise WriteFailureError(
                f"Failed to commit {len(stats)} rows for {session_date}: {e}"
            ) from e

        log.debug(f"Committed session {session_id} with {len(stats)} characters")

    def clear_all_stats(self) -> None:
        try:
            with self._transaction() as conn:
                conn.execute("DELETE FROM char_session_stats")
        except (sqlite3.Error, AdapterError) as e:
            raise WriteFailureError(f"Failed to clear statistics: {e}") from e

    # ========== Queries ==========

    def _summaries(self, where: str = "", params: tuple = (), having: str = "") -> list[CharSummary]:
        """Sum raw counters per character and build summaries from the sums."""
        query = f"""
            SELECT character,
                   SUM(total_attempts),
                   SUM(correct_attempts),
                   SUM(total_time_ms)
            FROM char_session_stats
            {where}
            GROUP BY character
            {having}
            ORDER BY character
        """
        try:
            with self.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise QueryError(f"Failed to query character summaries: {e}") from e

        return [
            summarize(character, total, correct, total_time)
            for character, total, correct, total_time in rows
        ]

    def summary(self, character: str) -> CharSummary | None:
        summaries = self._summaries("WHERE character = ?", (character,))
        return summaries[0] if summaries else None

    def all_summaries(self) -> list[CharSummary]:
        return self._summaries()

    def historical_summaries(self) -> list[CharSummary]:
        # Rows without a session id (compacted or migrated) always count as history.
        return self._summaries(
            """
            WHERE session_id IS NULL
               OR session_id < (SELECT MAX(session_id) FROM char_session_stats)
            """
        )

    def latest_session_summaries(self) -> list[CharSummary]:
        return self._summaries(
            "WHERE session_id = (SELECT MAX(session_id) FROM char_session_stats)"
        )

    def character_difficulties(self, min_attempts: int = 1) -> dict[str, CharSummary]:
        summaries = self._summaries(having="HAVING SUM(total_attempts) >= ?", params=(min_attempts,))
        return {s.character: s for s in summaries}

    def _scalar(self, query: str) -> int:
        try:
            with self.get_connection() as conn:
                (value,) = conn.execute(query).fetchone()
        except sqlite3.Error as e:
            raise QueryError(f"Query failed: {e}") from e
        return value or 0

    def session_row_count(self) -> int:
        return self._scalar("SELECT COUNT(*) FROM char_session_stats")

    def database_size(self) -> int:
        return self._scalar(
            "SELECT page_count * page_size FROM pragma_page_count(), pragma_page_size()"
        )

    # ========== Compaction ==========

    def rows_before(self, cutoff: date) -> list[tuple[int, CharSessionStats]]:
        try:
            with self.get_connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT id, {STATS_COLUMNS}
                    FROM char_session_stats
                    WHERE session_date < ?
                    ORDER BY id
                    """,
                    (cutoff.isoformat(),),
                ).fetchall()
        except sqlite3.Error as e:
            raise QueryError(f"Failed to read rows older than {cutoff}: {e}") from e

        return [(row[0], row_to_stats(row[1:])) for row in rows]

    def replace_rows(self, row_ids: Sequence[int], merged: Sequence[CharSessionStats]) -> None:
        try:
            with self._transaction() as conn:
                conn.executemany(
                    "DELETE FROM char_session_stats WHERE id = ?",
                    [(row_id,) for row_id in row_ids],
                )
                conn.executemany(INSERT_STATS_SQL, [stats_to_params(s, None) for s in merged])
        except (sqlite3.Error, AdapterError) as e:
            raise CompactionFailureError(f"Failed to replace {len(row_ids)} rows: {e}") from e

    def reclaim_space(self) -> None:
        try:
            with self.get_connection() as conn:
                conn.execute("VACUUM")
                conn.execute("ANALYZE")
        except sqlite3.Error as e:
            raise CompactionFailureError(f"Failed to vacuum database: {e}") from e
