"""Data models for klik typing statistics."""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Synthetic session date carried by rows produced by compaction.
COMPACTED_SESSION_DATE = date.min


class MigrationResult(str, Enum):
    """Outcome of the one-time legacy schema migration."""

    MIGRATED = "migrated"
    NO_LEGACY_DATA = "no_legacy_data"
    FAILED = "failed"


@dataclass
class CharEvent:
    """A single keystroke observation, kept in memory for one session only."""

    character: str
    correct: bool
    time_to_press_ms: int
    timestamp_ms: int


class CharSessionStats(BaseModel):
    """Aggregated statistics for one character in one session."""

    character: str = Field(..., min_length=1, description="Typed character")
    total_attempts: int = Field(..., ge=0, description="All attempts, correct or not")
    correct_attempts: int = Field(..., ge=0, description="Correct attempts")
    total_time_ms: int = Field(
        default=0, ge=0, description="Sum of press times of correct attempts (ms)"
    )
    min_time_ms: int | None = Field(
        default=None, ge=0, description="Fastest correct press (ms)"
    )
    max_time_ms: int | None = Field(
        default=None, ge=0, description="Slowest correct press (ms)"
    )
    session_date: date | None = Field(
        default=None, description="Session date, or the compaction sentinel"
    )

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="after")
    def check_invariants(self) -> "CharSessionStats":
        """Validate the relationship between attempt counts and timings."""
        if self.correct_attempts > self.total_attempts:
            raise ValueError(
                f"correct_attempts ({self.correct_attempts}) exceeds "
                f"total_attempts ({self.total_attempts})"
            )
        if self.correct_attempts == 0:
            if self.min_time_ms is not None or self.max_time_ms is not None:
                raise ValueError("timings must be absent without correct attempts")
            if self.total_time_ms != 0:
                raise ValueError("total_time_ms must be 0 without correct attempts")
        else:
            if self.min_time_ms is None or self.max_time_ms is None:
                raise ValueError("timings are required with correct attempts")
            if self.min_time_ms > self.max_time_ms:
                raise ValueError(
                    f"min_time_ms ({self.min_time_ms}) exceeds "
                    f"max_time_ms ({self.max_time_ms})"
                )
        return self

    @property
    def is_compacted(self) -> bool:
        return self.session_date == COMPACTED_SESSION_DATE


class CharSummary(BaseModel):
    """Historical performance of a character (sum of sums over sessions)."""

    character: str = Field(..., description="Typed character")
    avg_time_ms: float | None = Field(
        default=None, description="Average press time of correct attempts (ms)"
    )
    miss_rate_pct: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Incorrect attempts in percent"
    )
    total_attempts: int = Field(default=0, ge=0, description="All attempts")
    correct_attempts: int = Field(default=0, ge=0, description="Correct attempts")

    model_config = ConfigDict(extra="ignore")


class CharSummaryDelta(BaseModel):
    """Historical summary with the latest session's change against it.

    Negative deltas mean the latest session was better than the history.
    """

    summary: CharSummary = Field(..., description="Summary excluding the latest session")
    avg_time_delta_ms: float | None = Field(
        default=None, description="Latest average minus historical average (ms)"
    )
    miss_rate_delta_pct: float | None = Field(
        default=None, description="Latest miss rate minus historical miss rate"
    )
    session_attempts: int = Field(default=0, ge=0, description="Attempts in latest session")

    model_config = ConfigDict(extra="ignore")


class WordScore(BaseModel):
    """Difficulty score of a candidate practice word."""

    word: str = Field(..., description="Candidate word")
    score: float = Field(..., description="Higher means more practice needed")
    position: int = Field(..., ge=0, description="Index of the word in its pool")

    model_config = ConfigDict(extra="ignore")


class DatabaseInfo(BaseModel):
    """Size information used by the compaction trigger."""

    session_row_count: int = Field(default=0, ge=0, description="Rows in char_session_stats")
    size_bytes: int = Field(default=0, ge=0, description="Database size in bytes")

    model_config = ConfigDict(extra="ignore")

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)


class CompactionReport(BaseModel):
    """Outcome of one compaction pass."""

    cutoff: date = Field(..., description="Rows older than this date were eligible")
    rows_before: int = Field(default=0, ge=0, description="Row count before the pass")
    rows_compacted: int = Field(default=0, ge=0, description="Source rows removed")
    rows_created: int = Field(default=0, ge=0, description="Merged rows inserted")
    characters: list[str] = Field(default_factory=list, description="Merged characters")

    model_config = ConfigDict(extra="ignore")

    @property
    def changed(self) -> bool:
        return self.rows_compacted > 0


class SessionResult(BaseModel):
    """What a finished session produced, whether or not it was persisted."""

    session_date: date = Field(..., description="Date the session was committed under")
    stats: list[CharSessionStats] = Field(default_factory=list)
    committed: bool = Field(default=False, description="Whether the store accepted the rows")
    compaction: CompactionReport | None = Field(default=None)

    model_config = ConfigDict(extra="ignore")
