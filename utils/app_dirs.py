"""XDG locations for klik's state files."""

import os
from pathlib import Path

APP_NAME = "klik"


def state_dir() -> Path:
    """Directory holding the statistics database and logs.

    Honours XDG_STATE_HOME, defaulting to ~/.local/state.
    """
    xdg_state_home = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(xdg_state_home) / APP_NAME


def db_path() -> Path:
    return state_dir() / "stats.db"


def log_path() -> Path:
    return state_dir() / f"{APP_NAME}.log"
