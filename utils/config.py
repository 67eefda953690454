"""Configuration management for klik."""

import json
import sqlite3
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class SelectionMode(str, Enum):
    """How practice words are drawn from the pool."""

    RANDOM = "random"
    ADAPTIVE = "adaptive"
    SUBSTITUTE = "substitute"


class AppSettings(BaseModel):
    """Application settings with validation."""

    # Compaction policy
    compaction_max_rows: int = Field(
        default=1000, gt=0, description="Row count above which compaction runs"
    )
    compaction_max_size_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Database size above which compaction runs (bytes)",
    )
    compaction_retention_days: int = Field(
        default=30, ge=1, description="Days of per-session rows kept uncompacted"
    )

    # Word selection
    selection_mode: SelectionMode = Field(
        default=SelectionMode.ADAPTIVE,
        validate_default=True,
        description="Word selection strategy",
    )
    number_of_words: int = Field(default=15, ge=1, description="Words per session")
    selection_top_fraction: float = Field(
        default=0.3,
        gt=0.0,
        le=1.0,
        description="Share of hardest words eligible for adaptive selection",
    )
    min_attempts_for_scoring: int = Field(
        default=3, ge=1, description="Attempts needed before a character's history is used"
    )
    neutral_char_score: float = Field(
        default=5.0, ge=0.0, description="Score of a character without history"
    )
    miss_rate_weight: float = Field(
        default=2.0, ge=0.0, description="Score points per percent of misses"
    )
    timing_baseline_ms: float = Field(
        default=200.0, ge=0.0, description="Press time that adds no timing penalty (ms)"
    )
    timing_scale_ms: float = Field(
        default=100.0, gt=0.0, description="Milliseconds above baseline per score point"
    )
    substitution_probability: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Chance of substituting each letter"
    )
    weak_character_count: int = Field(
        default=10, ge=1, description="Weakest characters used for substitution"
    )

    model_config = ConfigDict(extra="ignore", use_enum_values=True)


class Config:
    """Configuration manager using SQLite for persistence with Pydantic validation."""

    def __init__(self, db_path: Path):
        """Initialize config with database connection.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_settings_table()
        self._ensure_defaults()

    @contextmanager
    def _get_connection(self):
        """Open a connection that commits on success and always closes."""
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_settings_table(self) -> None:
        """Create settings table if not exists."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

    def _ensure_defaults(self) -> None:
        """Ensure all default settings exist in database."""
        defaults = AppSettings().model_dump()

        with self._get_connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
                [(key, self._serialize_value(value)) for key, value in defaults.items()],
            )

    def _serialize_value(self, value: Any) -> str:
        """Convert value to string for storage."""
        if isinstance(value, bool):
            return "True" if value else "False"
        if isinstance(value, Enum):
            return str(value.value)
        if isinstance(value, (list, dict)):
            return json.dumps(value)
        return str(value)

    def _simple_parse(self, value: str) -> Any:
        """Parse a stored string back into a Python value."""
        if value.startswith("[") or value.startswith("{"):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        return value

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get configuration value.

        Args:
            key: Setting key
            default: Default value if not found

        Returns:
            Setting value
        """
        with self._get_connection() as conn:
            result = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()

        if result:
            parsed = self._simple_parse(result[0])
            if key in AppSettings.model_fields:
                try:
                    return getattr(AppSettings(**{key: parsed}), key)
                except ValidationError:
                    return parsed
            return parsed
        if default is not None:
            return default
        if key in AppSettings.model_fields:
            return getattr(AppSettings(), key)
        return None

    def set(self, key: str, value: Any) -> None:
        """Set configuration value with pydantic validation.

        Args:
            key: Setting key
            value: Setting value

        Raises:
            ValueError: If value fails validation
        """
        if key in AppSettings.model_fields:
            try:
                value = getattr(AppSettings(**{key: value}), key)
            except ValidationError as e:
                raise ValueError(f"Invalid value for {key}: {e}") from e

        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, self._serialize_value(value)),
            )

    def get_all(self) -> dict[str, Any]:
        """Get all settings as dictionary."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
        return {key: self._simple_parse(value) for key, value in rows}

    def get_settings(self) -> AppSettings:
        """Get all known settings as a validated AppSettings model.

        Stored values that no longer validate fall back to their defaults.
        """
        values = {key: self.get(key) for key in AppSettings.model_fields}
        try:
            return AppSettings(**values)
        except ValidationError:
            return AppSettings()
