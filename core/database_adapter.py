"""Statistics store abstraction for klik.

Session logic talks to this interface only, so the SQLite store can be
swapped for the no-op store (or a test double) without touching it.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from core.models import CharSessionStats, CharSummary, DatabaseInfo, MigrationResult

log = logging.getLogger("klik.database_adapter")


class StatsStore(ABC):
    """Abstract base class for character statistics stores."""

    @abstractmethod
    def initialize(self) -> MigrationResult:
        """Open the store and bring its schema up to date.

        Returns:
            Outcome of the one-time legacy schema migration

        Raises:
            StoreUnavailableError: If the store cannot be opened
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        pass

    # ========== Writes ==========

    @abstractmethod
    def commit(self, stats: Sequence[CharSessionStats], session_date: date) -> None:
        """Persist all rows of one session atomically.

        Args:
            stats: Aggregated rows, one per character
            session_date: Date stamped on every row

        Raises:
            WriteFailureError: If the batch could not be written
        """
        pass

    @abstractmethod
    def clear_all_stats(self) -> None:
        """Delete every persisted row."""
        pass

    # ========== Queries ==========

    @abstractmethod
    def summary(self, character: str) -> CharSummary | None:
        """Summary of a character across its whole history.

        Returns:
            CharSummary, or None if the character was never recorded
        """
        pass

    @abstractmethod
    def all_summaries(self) -> list[CharSummary]:
        """Summaries for every recorded character, ordered by character."""
        pass

    @abstractmethod
    def historical_summaries(self) -> list[CharSummary]:
        """Summaries excluding the most recently committed session."""
        pass

    @abstractmethod
    def latest_session_summaries(self) -> list[CharSummary]:
        """Summaries of the most recently committed session only."""
        pass

    @abstractmethod
    def character_difficulties(self, min_attempts: int = 1) -> dict[str, CharSummary]:
        """Summaries keyed by character, for characters with enough attempts.

        Args:
            min_attempts: Minimum total attempts for a character to be included
        """
        pass

    @abstractmethod
    def session_row_count(self) -> int:
        """Number of persisted aggregate rows."""
        pass

    @abstractmethod
    def database_size(self) -> int:
        """Size of the store in bytes."""
        pass

    def database_info(self) -> DatabaseInfo:
        """Row count and size, as used by the compaction trigger."""
        return DatabaseInfo(
            session_row_count=self.session_row_count(),
            size_bytes=self.database_size(),
        )

    # ========== Compaction ==========

    @abstractmethod
    def rows_before(self, cutoff: date) -> list[tuple[int, CharSessionStats]]:
        """Rows whose session date is strictly older than cutoff.

        Returns:
            List of (row_id, stats) tuples
        """
        pass

    @abstractmethod
    def replace_rows(self, row_ids: Sequence[int], merged: Sequence[CharSessionStats]) -> None:
        """Atomically delete row_ids and insert merged rows.

        Raises:
            CompactionFailureError: If the replacement could not be applied
        """
        pass

    @abstractmethod
    def reclaim_space(self) -> None:
        """Give freed pages back to the file system."""
        pass


class AdapterError(Exception):
    """Base exception for statistics store errors."""

    pass


class StoreUnavailableError(AdapterError):
    """Raised when the store cannot be opened or initialized."""

    pass


class WriteFailureError(AdapterError):
    """Raised when a session batch cannot be committed."""

    pass


class MigrationFailureError(AdapterError):
    """Raised when the legacy schema cannot be converted."""

    pass


class CompactionFailureError(AdapterError):
    """Raised when a compaction pass cannot be applied."""

    pass


class QueryError(AdapterError):
    """Raised when a read query fails."""

    pass
