"""Size-bounded compaction of old per-session statistics rows."""

import logging
from collections import defaultdict
from datetime import date, timedelta

from core.aggregator import merge_stats
from core.database_adapter import AdapterError, StatsStore
from core.models import COMPACTED_SESSION_DATE, CompactionReport, DatabaseInfo
from utils.config import AppSettings

log = logging.getLogger("klik.compactor")


class Compactor:
    """Merges rows older than the retention window into one row per character.

    Merging sums raw counters, so every summary computed from the store is
    the same before and after a pass.
    """

    def __init__(self, store: StatsStore, settings: AppSettings | None = None):
        self.store = store
        self.settings = settings or AppSettings()

    def compaction_info(self) -> DatabaseInfo:
        return self.store.database_info()

    def needs_compaction(self) -> bool:
        info = self.compaction_info()
        return (
            info.session_row_count > self.settings.compaction_max_rows
            or info.size_bytes > self.settings.compaction_max_size_bytes
        )

    def cutoff(self, today: date | None = None) -> date:
        """First day inside the retention window."""
        today = today or date.today()
        return today - timedelta(days=self.settings.compaction_retention_days)

    def compact(self, today: date | None = None) -> CompactionReport:
        """Run one compaction pass.

        Args:
            today: Reference date for the retention window, defaults to today

        Returns:
            CompactionReport of the pass

        Raises:
            QueryError: If the old rows cannot be read
            CompactionFailureError: If the merged rows cannot be written
        """
        cutoff = self.cutoff(today)
        rows_before = self.store.session_row_count()

        groups: defaultdict[str, list] = defaultdict(list)
        for row_id, stats in self.store.rows_before(cutoff):
            groups[stats.character].append((row_id, stats))

        row_ids = []
        merged = []
        for character in sorted(groups):
            group = groups[character]
            # A single row is already as compact as it gets.
            if len(group) < 2:
                continue
            row_ids.extend(row_id for row_id, _ in group)
            merged.append(merge_stats((stats for _, stats in group), COMPACTED_SESSION_DATE))

        report = CompactionReport(
            cutoff=cutoff,
            rows_before=rows_before,
            rows_compacted=len(row_ids),
            rows_created=len(merged),
            characters=[stats.character for stats in merged],
        )
        if not report.changed:
            log.debug(f"Nothing to compact before {cutoff}")
            return report

        self.store.replace_rows(row_ids, merged)
        self.store.reclaim_space()
        log.info(
            f"Compacted {report.rows_compacted} rows older than {cutoff} "
            f"into {report.rows_created} rows"
        )
        return report

    def maybe_compact(self, today: date | None = None) -> CompactionReport | None:
        """Compact once if the store has outgrown its limits.

        Failures are logged and left for the next trigger.

        Returns:
            CompactionReport if a pass ran, None otherwise
        """
        try:
            if not self.needs_compaction():
                return None
            return self.compact(today)
        except AdapterError as e:
            log.warning(f"Compaction skipped, will retry later: {e}")
            return None
