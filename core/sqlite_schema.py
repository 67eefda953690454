"""Versioned schema migrations for the klik statistics database.

The schema version lives in PRAGMA user_version:

    0: unversioned (fresh file, or a database from before aggregation)
    1: char_session_stats aggregate table

Databases written by older releases keep one row per keystroke in
char_stats. That table is converted into aggregate rows and dropped by
migrate_legacy(), in a single transaction.

All functions expect a connection in autocommit mode (isolation_level=None)
so that transactions are controlled explicitly.
"""

import logging
import sqlite3
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, datetime

from core.aggregator import aggregate
from core.database_adapter import MigrationFailureError
from core.models import CharEvent, CharSessionStats, MigrationResult

log = logging.getLogger("klik.sqlite_schema")

LEGACY_TABLE = "char_stats"

MIGRATIONS: dict[int, list[str]] = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS char_session_stats (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id INTEGER,
            character TEXT NOT NULL,
            total_attempts INTEGER NOT NULL,
            correct_attempts INTEGER NOT NULL,
            total_time_ms INTEGER NOT NULL,
            min_time_ms INTEGER,
            max_time_ms INTEGER,
            session_date TEXT NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_char_session_stats_char ON char_session_stats(character)",
        "CREATE INDEX IF NOT EXISTS idx_char_session_stats_date ON char_session_stats(session_date)",
        "CREATE INDEX IF NOT EXISTS idx_char_session_stats_session ON char_session_stats(session_id)",
    ],
}

SCHEMA_VERSION = max(MIGRATIONS)

STATS_COLUMNS = (
    "character, total_attempts, correct_attempts, total_time_ms, "
    "min_time_ms, max_time_ms, session_date"
)

INSERT_STATS_SQL = f"""
    INSERT INTO char_session_stats (session_id, {STATS_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""


def stats_to_params(
    stats: CharSessionStats, session_id: int | None, session_date: date | None = None
) -> tuple:
    """Convert a stats row into INSERT_STATS_SQL parameters.

    session_date, when given, replaces the date carried by the row.
    """
    return (
        session_id,
        stats.character,
        stats.total_attempts,
        stats.correct_attempts,
        stats.total_time_ms,
        stats.min_time_ms,
        stats.max_time_ms,
        (session_date or stats.session_date).isoformat(),
    )


def row_to_stats(row: Sequence) -> CharSessionStats:
    """Convert a row selected with STATS_COLUMNS into a stats model."""
    return CharSessionStats(
        character=row[0],
        total_attempts=row[1],
        correct_attempts=row[2],
        total_time_ms=row[3],
        min_time_ms=row[4],
        max_time_ms=row[5],
        session_date=date.fromisoformat(row[6]),
    )


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def apply_migrations(conn: sqlite3.Connection) -> int:
    """Apply every schema version newer than the database's.

    Each version is applied in its own transaction together with the
    user_version bump.

    Returns:
        Schema version after migration

    Raises:
        sqlite3.Error: If a migration statement fails (the version is rolled back)
    """
    current = get_schema_version(conn)
    for version in sorted(MIGRATIONS):
        if version <= current:
            continue

        log.info(f"Applying schema version {version}")
        conn.execute("BEGIN IMMEDIATE")
        try:
            for statement in MIGRATIONS[version]:
                conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {version}")
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        current = version

    return current


def legacy_table_exists(conn: sqlite3.Connection) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (LEGACY_TABLE,)
    )
    return cursor.fetchone() is not None


def _legacy_event_date(timestamp) -> date:
    """Calendar date of a legacy keystroke timestamp.

    Timestamps were written as RFC 3339 text; integer epoch milliseconds are
    accepted as well.
    """
    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp / 1000).date()
    return date.fromisoformat(str(timestamp)[:10])


def _read_legacy_sessions(conn: sqlite3.Connection) -> dict[date, dict[str, list[CharEvent]]]:
    """Group legacy keystroke rows by calendar day and character.

    Raises:
        MigrationFailureError: If a row cannot be interpreted
    """
    sessions: dict[date, dict[str, list[CharEvent]]] = defaultdict(lambda: defaultdict(list))
    cursor = conn.execute(
        f"SELECT id, character, time_to_press_ms, was_correct, timestamp FROM {LEGACY_TABLE} "
        "ORDER BY id"
    )
    for row_id, character, time_to_press_ms, was_correct, timestamp in cursor:
        try:
            event_date = _legacy_event_date(timestamp)
            event = CharEvent(
                character=str(character),
                correct=bool(was_correct),
                time_to_press_ms=int(time_to_press_ms),
                timestamp_ms=0,
            )
        except (TypeError, ValueError) as e:
            raise MigrationFailureError(f"Unreadable legacy row {row_id}: {e}") from e
        if event.time_to_press_ms < 0 or not event.character:
            raise MigrationFailureError(f"Invalid legacy row {row_id}")
        sessions[event_date][event.character].append(event)

    return sessions


def migrate_legacy(conn: sqlite3.Connection) -> MigrationResult:
    """Convert the legacy per-keystroke table into aggregate rows.

    Keystrokes are grouped into one session per calendar day and reduced
    with the same rules as a live session. Context columns are dropped. The
    conversion and the removal of the legacy table happen in one
    transaction; on failure nothing changes and the next start retries.

    Returns:
        MigrationResult describing what happened
    """
    try:
        if not legacy_table_exists(conn):
            return MigrationResult.NO_LEGACY_DATA

        log.info(f"Found legacy {LEGACY_TABLE} table, converting to aggregate rows")
        conn.execute("BEGIN IMMEDIATE")
        sessions = _read_legacy_sessions(conn)

        # Legacy rows belong to no committed session.
        row_count = 0
        for session_date in sorted(sessions):
            stats = aggregate(sessions[session_date], session_date)
            conn.executemany(INSERT_STATS_SQL, [stats_to_params(s, None) for s in stats])
            row_count += len(stats)

        conn.execute(f"DROP TABLE {LEGACY_TABLE}")
        conn.execute("COMMIT")
    except (sqlite3.Error, MigrationFailureError, ValueError) as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        log.error(f"Legacy migration failed, keeping {LEGACY_TABLE} for retry: {e}")
        return MigrationResult.FAILED

    log.info(f"Migrated {len(sessions)} legacy sessions into {row_count} aggregate rows")
    return MigrationResult.MIGRATED
