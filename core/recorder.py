"""Per-session keystroke buffering."""

import time
from collections import defaultdict

from core.aggregator import aggregate, summarize_stats
from core.models import CharEvent, CharSummary


class Recorder:
    """Buffers keystroke events for one typing session.

    The session lifecycle creates a Recorder when a session starts and drops
    it after finalize() or abandon(). It never touches storage.
    """

    def __init__(self):
        self._buckets: defaultdict[str, list[CharEvent]] = defaultdict(list)
        self.event_count = 0

    @property
    def characters(self) -> list[str]:
        return sorted(self._buckets)

    def is_empty(self) -> bool:
        return self.event_count == 0

    def record(
        self,
        character: str,
        correct: bool,
        time_to_press_ms: int,
        timestamp_ms: int | None = None,
    ) -> None:
        """Record one keystroke.

        Args:
            character: Expected character at the cursor
            correct: Whether the typed key matched it
            time_to_press_ms: Time since the previous keystroke (ms)
            timestamp_ms: Event time, defaults to now

        Raises:
            ValueError: If character is not a single character or time is negative
        """
        if len(character) != 1:
            raise ValueError(f"Expected a single character, got {character!r}")
        if time_to_press_ms < 0:
            raise ValueError("time_to_press_ms must not be negative")

        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)

        self._buckets[character].append(
            CharEvent(character, bool(correct), int(time_to_press_ms), timestamp_ms)
        )
        self.event_count += 1

    def current_summaries(self) -> list[CharSummary]:
        """Summaries of the session so far, ordered by character."""
        return summarize_stats(aggregate(self._buckets))

    def finalize(self) -> dict[str, list[CharEvent]]:
        """Drain the buffer, leaving the recorder empty.

        Returns:
            Mapping of character to its recorded events
        """
        buffer = dict(self._buckets)
        self.abandon()
        return buffer

    def abandon(self) -> None:
        """Drop everything recorded so far."""
        self._buckets = defaultdict(list)
        self.event_count = 0
