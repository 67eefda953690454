"""Adaptive practice-word selection.

Words are scored by how much practice their characters need, using the
persisted per-character summaries. Scoring is pure; randomness always comes
from an injected random.Random so selection is reproducible in tests.
"""

import logging
import math
import random
from collections.abc import Mapping, Sequence

from core.models import CharSummary, WordScore
from utils.config import AppSettings, SelectionMode

log = logging.getLogger("klik.selector")

Lookup = Mapping[str, CharSummary]


def _find_summary(character: str, lookup: Lookup) -> CharSummary | None:
    summary = lookup.get(character)
    if summary is None and character.lower() != character:
        summary = lookup.get(character.lower())
    return summary


def character_score(summary: CharSummary | None, settings: AppSettings) -> float:
    """Practice need of one character, higher means weaker.

    Characters without history get the neutral score.
    """
    if summary is None:
        return settings.neutral_char_score

    score = summary.miss_rate_pct * settings.miss_rate_weight
    if summary.avg_time_ms is not None:
        score += max(0.0, summary.avg_time_ms - settings.timing_baseline_ms) / settings.timing_scale_ms
    return score


def score_word(word: str, lookup: Lookup, settings: AppSettings) -> float:
    """Mean score of the characters in word.

    Args:
        word: Candidate word
        lookup: Character summaries keyed by character
        settings: Scoring weights

    Returns:
        Word score, the neutral score for an empty word
    """
    if not word:
        return settings.neutral_char_score
    scores = [character_score(_find_summary(ch, lookup), settings) for ch in word]
    return sum(scores) / len(scores)


def rank_words(pool: Sequence[str], lookup: Lookup, settings: AppSettings) -> list[WordScore]:
    """Score every pool entry, hardest first, ties in pool order."""
    scored = [
        WordScore(word=word, score=score_word(word, lookup, settings), position=position)
        for position, word in enumerate(pool)
    ]
    scored.sort(key=lambda ws: (-ws.score, ws.position))
    return scored


def eligible_words(ranked: Sequence[WordScore], top_fraction: float) -> list[WordScore]:
    """Top fraction of ranked words, extended with every word tied at the cutoff.

    With partial history many words share the neutral score, so a cutoff that
    lands among them makes all of them eligible, well past top_fraction.
    """
    if not ranked:
        return []
    # Rounded first so 10 * 0.3 yields 3, not 4.
    size = max(1, math.ceil(round(len(ranked) * top_fraction, 9)))
    size = min(size, len(ranked))
    cutoff_score = ranked[size - 1].score
    while size < len(ranked) and ranked[size].score == cutoff_score:
        size += 1
    return list(ranked[:size])


def _draw(
    candidates: Sequence[WordScore],
    count: int,
    rng: random.Random,
    previous: int | None = None,
) -> list[WordScore]:
    """Draw with replacement, never the same pool position twice in a row.

    Args:
        candidates: Entries to draw from
        count: Number of draws
        rng: Source of randomness
        previous: Pool position drawn right before this call
    """
    if not candidates or count <= 0:
        return []

    drawn = []
    positions = [c.position for c in candidates]
    last = positions.index(previous) if previous in positions else None
    for _ in range(count):
        if last is None or len(candidates) == 1:
            index = rng.randrange(len(candidates))
        else:
            # Skip over the last index to keep the draw uniform over the rest.
            index = rng.randrange(len(candidates) - 1)
            if index >= last:
                index += 1
        drawn.append(candidates[index])
        last = index
    return drawn


def select_words(
    pool: Sequence[str],
    count: int,
    lookup: Lookup,
    settings: AppSettings,
    rng: random.Random,
    previous: int | None = None,
) -> list[str]:
    """Pick count practice words, favouring words with weak characters.

    Without any history every word scores the same, so the whole pool is
    eligible and selection is uniform.

    Args:
        pool: Candidate words
        count: Number of words to return
        lookup: Character summaries keyed by character
        settings: Scoring weights and the eligible fraction
        rng: Source of randomness
        previous: Pool position of the word shown right before this batch

    Returns:
        Selected words, possibly repeating but never twice in a row
    """
    eligible = eligible_words(rank_words(pool, lookup, settings), settings.selection_top_fraction)
    return [ws.word for ws in _draw(eligible, count, rng, previous)]


def weakest_characters(lookup: Lookup, count: int, settings: AppSettings) -> list[str]:
    """Letters needing the most practice, weakest first."""
    letters = [summary for character, summary in lookup.items() if character.isalpha()]
    letters.sort(key=lambda s: (-character_score(s, settings), s.character))
    return [summary.character for summary in letters[:count]]


def substitute_characters(
    word: str,
    weak: Sequence[str],
    rng: random.Random,
    probability: float,
) -> str:
    """Replace some letters of word with weak characters.

    Each letter is replaced with the given probability. Case is preserved
    and non-letters are left alone.
    """
    if not word or not weak:
        return word

    result = []
    for ch in word:
        if ch.isalpha() and rng.random() < probability:
            replacement = rng.choice(weak)
            ch = replacement.upper() if ch.isupper() else replacement.lower()
        result.append(ch)
    return "".join(result)


class WordSelector:
    """Selects practice words according to the configured mode.

    Remembers the last drawn pool position so consecutive batches from the
    same pool never start with the word that ended the previous batch.
    """

    def __init__(self, settings: AppSettings | None = None, rng: random.Random | None = None):
        self.settings = settings or AppSettings()
        self.rng = rng or random.Random()
        self._last_position: int | None = None

    @property
    def mode(self) -> SelectionMode:
        return SelectionMode(self.settings.selection_mode)

    def select(self, pool: Sequence[str], count: int, lookup: Lookup) -> list[str]:
        """Select count words from pool.

        Args:
            pool: Candidate words
            count: Number of words
            lookup: Character summaries keyed by character

        Returns:
            Selected (and, in substitute mode, modified) words
        """
        if not pool or count <= 0:
            return []

        if self.mode == SelectionMode.ADAPTIVE:
            ranked = rank_words(pool, lookup, self.settings)
            candidates = eligible_words(ranked, self.settings.selection_top_fraction)
        else:
            candidates = [
                WordScore(word=word, score=0.0, position=position)
                for position, word in enumerate(pool)
            ]

        drawn = _draw(candidates, count, self.rng, self._last_position)
        self._last_position = drawn[-1].position
        words = [ws.word for ws in drawn]

        if self.mode == SelectionMode.SUBSTITUTE:
            weak = weakest_characters(lookup, self.settings.weak_character_count, self.settings)
            if not weak:
                log.debug("No character history yet, substitution skipped")
            words = [
                substitute_characters(word, weak, self.rng, self.settings.substitution_probability)
                for word in words
            ]

        return words
