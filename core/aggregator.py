"""Reduction of keystroke events into per-character statistics.

Everything here is pure: no I/O and no shared state. The same rules serve
session finalization, the legacy schema migration and compaction.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import date

from core.models import CharEvent, CharSessionStats, CharSummary


def aggregate(
    buffer: Mapping[str, Sequence[CharEvent]],
    session_date: date | None = None,
) -> list[CharSessionStats]:
    """Reduce a session buffer to one stats row per character.

    Incorrect attempts count towards the attempt totals only; timings are
    taken from correct attempts.

    Args:
        buffer: Mapping of character to the events recorded for it
        session_date: Date stamped on every row (may be filled in on commit)

    Returns:
        Stats rows ordered by character code point
    """
    stats = []
    for character in sorted(buffer):
        events = buffer[character]
        if not events:
            continue

        correct_times = [e.time_to_press_ms for e in events if e.correct]
        stats.append(
            CharSessionStats(
                character=character,
                total_attempts=len(events),
                correct_attempts=len(correct_times),
                total_time_ms=sum(correct_times),
                min_time_ms=min(correct_times) if correct_times else None,
                max_time_ms=max(correct_times) if correct_times else None,
                session_date=session_date,
            )
        )
    return stats


def merge_stats(rows: Iterable[CharSessionStats], session_date: date | None) -> CharSessionStats:
    """Merge rows of the same character into one.

    The merge sums counts and times and reduces min/max element-wise, so it
    is associative and commutative.

    Raises:
        ValueError: If rows is empty or mixes characters
    """
    rows = list(rows)
    if not rows:
        raise ValueError("Cannot merge an empty set of rows")

    character = rows[0].character
    if any(row.character != character for row in rows):
        raise ValueError("Cannot merge rows of different characters")

    mins = [row.min_time_ms for row in rows if row.min_time_ms is not None]
    maxs = [row.max_time_ms for row in rows if row.max_time_ms is not None]

    return CharSessionStats(
        character=character,
        total_attempts=sum(row.total_attempts for row in rows),
        correct_attempts=sum(row.correct_attempts for row in rows),
        total_time_ms=sum(row.total_time_ms for row in rows),
        min_time_ms=min(mins) if mins else None,
        max_time_ms=max(maxs) if maxs else None,
        session_date=session_date,
    )


def summarize(
    character: str,
    total_attempts: int,
    correct_attempts: int,
    total_time_ms: int,
) -> CharSummary:
    """Build a summary from summed counters.

    Callers pass sums over raw counters, never averages of averages.
    """
    avg_time_ms = total_time_ms / correct_attempts if correct_attempts > 0 else None
    if total_attempts > 0:
        miss_rate_pct = (total_attempts - correct_attempts) / total_attempts * 100.0
    else:
        miss_rate_pct = 0.0

    return CharSummary(
        character=character,
        avg_time_ms=avg_time_ms,
        miss_rate_pct=miss_rate_pct,
        total_attempts=total_attempts,
        correct_attempts=correct_attempts,
    )


def summarize_stats(rows: Iterable[CharSessionStats]) -> list[CharSummary]:
    """Summarize stats rows per character, ordered by character."""
    totals: dict[str, list[int]] = {}
    for row in rows:
        counters = totals.setdefault(row.character, [0, 0, 0])
        counters[0] += row.total_attempts
        counters[1] += row.correct_attempts
        counters[2] += row.total_time_ms

    return [summarize(character, *totals[character]) for character in sorted(totals)]
