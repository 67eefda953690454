"""Tests for core.compactor module."""

from datetime import date, timedelta

import pytest

from core.compactor import Compactor
from core.database_adapter import CompactionFailureError, QueryError
from core.models import COMPACTED_SESSION_DATE
from utils.config import AppSettings

TODAY = date(2024, 6, 30)
CUTOFF = TODAY - timedelta(days=30)
IN_WINDOW = date(2024, 6, 20)


def all_rows(store):
    return store.rows_before(date.max)


def seed_old_rows(store, make_stats, count, characters="abcdefghij"):
    """Insert count rows dated before the retention window."""
    rows = []
    for i in range(count):
        character = characters[i % len(characters)]
        session_date = date(2024, 1, 1) + timedelta(days=i % 100)
        rows.append(make_stats(character, 4, 3, 300, 80, 120, session_date=session_date))
    store.replace_rows([], rows)


class TestTrigger:
    """Tests for needs_compaction()."""

    def test_small_database_does_not_need_compaction(self, store, make_stats):
        seed_old_rows(store, make_stats, 10)
        assert not Compactor(store).needs_compaction()

    def test_row_count_above_limit(self, store, make_stats):
        seed_old_rows(store, make_stats, 6)
        assert Compactor(store, AppSettings(compaction_max_rows=5)).needs_compaction()

    def test_row_count_at_limit(self, store, make_stats):
        seed_old_rows(store, make_stats, 5)
        assert not Compactor(store, AppSettings(compaction_max_rows=5)).needs_compaction()

    def test_size_above_limit(self, store):
        assert Compactor(store, AppSettings(compaction_max_size_bytes=1)).needs_compaction()

    def test_compaction_info(self, store, make_stats):
        seed_old_rows(store, make_stats, 3)
        assert Compactor(store).compaction_info().session_row_count == 3


class TestCompact:
    """Tests for compact()."""

    def test_merges_old_rows_per_character(self, store, make_stats):
        seed_old_rows(store, make_stats, 20, characters="ab")

        report = Compactor(store).compact(TODAY)

        assert report.cutoff == CUTOFF
        assert report.rows_before == 20
        assert report.rows_compacted == 20
        assert report.rows_created == 2
        assert report.characters == ["a", "b"]
        rows = {s.character: s for _, s in all_rows(store)}
        assert rows["a"].total_attempts == 40
        assert rows["a"].correct_attempts == 30
        assert rows["a"].total_time_ms == 3000
        assert rows["a"].session_date == COMPACTED_SESSION_DATE

    def test_summaries_unchanged(self, store, make_stats):
        seed_old_rows(store, make_stats, 30, characters="abc")
        store.commit([make_stats("a", 2, 1, 500)], IN_WINDOW)
        before = store.all_summaries()

        Compactor(store).compact(TODAY)

        assert store.all_summaries() == before

    def test_rows_inside_window_untouched(self, store, make_stats):
        seed_old_rows(store, make_stats, 4, characters="a")
        store.commit([make_stats("a", 1, 1, 10)], IN_WINDOW)
        store.commit([make_stats("a", 1, 1, 20)], CUTOFF)
        recent = [r for r in all_rows(store) if r[1].session_date >= CUTOFF]

        Compactor(store).compact(TODAY)

        assert [r for r in all_rows(store) if r[1].session_date >= CUTOFF] == recent

    def test_single_old_row_left_alone(self, store, make_stats):
        seed_old_rows(store, make_stats, 1)
        before = all_rows(store)

        report = Compactor(store).compact(TODAY)

        assert not report.changed
        assert all_rows(store) == before

    def test_second_pass_changes_nothing(self, store, make_stats):
        seed_old_rows(store, make_stats, 50)
        compactor = Compactor(store)
        compactor.compact(TODAY)
        after_first = all_rows(store)

        report = compactor.compact(TODAY)

        assert not report.changed
        assert all_rows(store) == after_first

    def test_later_pass_folds_into_compacted_row(self, store, make_stats):
        seed_old_rows(store, make_stats, 3, characters="a")
        compactor = Compactor(store)
        compactor.compact(TODAY)
        store.commit([make_stats("a", 1, 1, 10)], IN_WINDOW)

        compactor.compact(TODAY + timedelta(days=60))

        ((_, row),) = all_rows(store)
        assert row.total_attempts == 13
        assert row.is_compacted


class TestMaybeCompact:
    """Tests for maybe_compact()."""

    def test_1001_rows_trigger_exactly_one_pass(self, store, make_stats, monkeypatch):
        seed_old_rows(store, make_stats, 991)
        in_window = [make_stats(c, 2, 2, 200) for c in "klmnopqrst"]
        store.commit(in_window, IN_WINDOW)
        assert store.session_row_count() == 1001
        recent = [r for r in all_rows(store) if r[1].session_date == IN_WINDOW]

        passes = []
        replace_rows = store.replace_rows

        def counting_replace(row_ids, merged):
            passes.append(len(row_ids))
            replace_rows(row_ids, merged)

        monkeypatch.setattr(store, "replace_rows", counting_replace)
        compactor = Compactor(store)

        report = compactor.maybe_compact(TODAY)
        again = compactor.maybe_compact(TODAY)

        assert report is not None and report.changed
        assert again is None
        assert passes == [991]
        assert store.session_row_count() == 20
        assert [r for r in all_rows(store) if r[1].session_date == IN_WINDOW] == recent

    def test_within_limits_returns_none(self, store, make_stats):
        seed_old_rows(store, make_stats, 10)
        assert Compactor(store).maybe_compact(TODAY) is None
        assert store.session_row_count() == 10

    def test_failure_is_skipped(self, store, make_stats, monkeypatch):
        seed_old_rows(store, make_stats, 10, characters="ab")
        before = all_rows(store)

        def failing_replace(row_ids, merged):
            raise CompactionFailureError("disk full")

        monkeypatch.setattr(store, "replace_rows", failing_replace)
        compactor = Compactor(store, AppSettings(compaction_max_rows=5))

        assert compactor.maybe_compact(TODAY) is None
        assert all_rows(store) == before

    def test_query_failure_is_skipped(self, store, make_stats, monkeypatch):
        seed_old_rows(store, make_stats, 10)

        def failing_rows_before(cutoff):
            raise QueryError("locked")

        monkeypatch.setattr(store, "rows_before", failing_rows_before)
        assert Compactor(store, AppSettings(compaction_max_rows=5)).maybe_compact(TODAY) is None

    def test_compact_propagates_failure(self, store, make_stats, monkeypatch):
        seed_old_rows(store, make_stats, 10, characters="ab")

        def failing_replace(row_ids, merged):
            raise CompactionFailureError("disk full")

        monkeypatch.setattr(store, "replace_rows", failing_replace)
        with pytest.raises(CompactionFailureError):
            Compactor(store).compact(TODAY)
