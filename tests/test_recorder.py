"""Tests for core.recorder module."""

import pytest

from core.recorder import Recorder


class TestRecord:
    """Tests for Recorder.record."""

    def test_new_recorder_is_empty(self):
        recorder = Recorder()
        assert recorder.is_empty()
        assert recorder.characters == []

    def test_record_buckets_by_character(self):
        recorder = Recorder()
        recorder.record("b", True, 100, timestamp_ms=1)
        recorder.record("a", True, 120, timestamp_ms=2)
        recorder.record("b", False, 300, timestamp_ms=3)

        assert recorder.event_count == 3
        assert recorder.characters == ["a", "b"]

    def test_record_defaults_timestamp(self):
        recorder = Recorder()
        recorder.record("a", True, 100)
        events = recorder.finalize()["a"]
        assert events[0].timestamp_ms > 0

    def test_record_rejects_multi_character_string(self):
        with pytest.raises(ValueError):
            Recorder().record("ab", True, 100)

    def test_record_rejects_empty_string(self):
        with pytest.raises(ValueError):
            Recorder().record("", True, 100)

    def test_record_rejects_negative_time(self):
        with pytest.raises(ValueError):
            Recorder().record("a", True, -1)

    def test_record_accepts_whitespace_and_punctuation(self):
        recorder = Recorder()
        recorder.record(" ", True, 90)
        recorder.record(",", False, 400)
        assert recorder.characters == [" ", ","]


class TestFinalize:
    """Tests for Recorder.finalize and abandon."""

    def test_finalize_returns_events_and_empties_buffer(self):
        recorder = Recorder()
        recorder.record("a", True, 100, timestamp_ms=1)
        recorder.record("a", False, 200, timestamp_ms=2)

        buffer = recorder.finalize()

        assert [e.time_to_press_ms for e in buffer["a"]] == [100, 200]
        assert [e.correct for e in buffer["a"]] == [True, False]
        assert recorder.is_empty()
        assert recorder.finalize() == {}

    def test_recorder_reusable_after_finalize(self):
        recorder = Recorder()
        recorder.record("a", True, 100)
        recorder.finalize()
        recorder.record("z", True, 80)
        assert recorder.characters == ["z"]

    def test_abandon_discards_events(self):
        recorder = Recorder()
        recorder.record("a", True, 100)
        recorder.abandon()
        assert recorder.is_empty()
        assert recorder.finalize() == {}


class TestCurrentSummaries:
    """Tests for in-session summaries."""

    def test_current_summaries(self):
        recorder = Recorder()
        recorder.record("a", True, 100)
        recorder.record("a", True, 200)
        recorder.record("a", False, 900)

        (summary,) = recorder.current_summaries()

        assert summary.character == "a"
        assert summary.total_attempts == 3
        assert summary.avg_time_ms == 150.0
        assert summary.miss_rate_pct == pytest.approx(33.333, rel=1e-3)

    def test_current_summaries_do_not_drain(self):
        recorder = Recorder()
        recorder.record("a", True, 100)
        recorder.current_summaries()
        assert recorder.event_count == 1
