#!/usr/bin/env python3
"""klik - character statistics maintenance.

Usage:
    python main.py summary
    python main.py info
    python main.py compact [--force]
    python main.py words POOL_FILE [--count N] [--mode adaptive|random|substitute]
    python main.py clear [--yes]
    python main.py config [KEY [VALUE]]
"""

import argparse
import logging
import sqlite3
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.compactor import Compactor
from core.database_adapter import AdapterError
from core.selector import WordSelector
from core.storage import Storage
from utils.app_dirs import db_path as default_db_path
from utils.app_dirs import log_path
from utils.config import AppSettings, Config, SelectionMode

log = logging.getLogger("klik")


def setup_logging(verbose: bool = False) -> None:
    """Log to a rotating file in the XDG state directory and to stderr."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_file = log_path()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # 5MB max, keep 5 backups
        handlers.append(RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5))
    except OSError as e:
        print(f"Logging to stderr only, cannot write {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def load_settings(db_path: Path) -> AppSettings:
    """Read settings stored next to the statistics, defaults if unreadable."""
    try:
        return Config(db_path).get_settings()
    except (sqlite3.Error, OSError) as e:
        log.warning(f"Using default settings, cannot read {db_path}: {e}")
        return AppSettings()


def _fmt(value: float | None, signed: bool = False) -> str:
    if value is None:
        return "-"
    return f"{value:+.1f}" if signed else f"{value:.1f}"


def cmd_summary(storage: Storage, args: argparse.Namespace) -> int:
    deltas = storage.summary_with_deltas()
    if not deltas:
        print("No statistics recorded yet.")
        return 0

    print(f"{'char':<6}{'attempts':>10}{'avg ms':>10}{'Δ ms':>10}{'miss %':>10}{'Δ %':>10}")
    print("-" * 56)
    for delta in deltas:
        s = delta.summary
        print(
            f"{s.character!r:<6}{s.total_attempts:>10}"
            f"{_fmt(s.avg_time_ms):>10}{_fmt(delta.avg_time_delta_ms, signed=True):>10}"
            f"{_fmt(s.miss_rate_pct):>10}{_fmt(delta.miss_rate_delta_pct, signed=True):>10}"
        )
    return 0


def cmd_info(storage: Storage, args: argparse.Namespace) -> int:
    info = storage.database_info()
    print(f"Database: {storage.db_path}")
    print(f"Available: {'yes' if storage.available else 'no'}")
    print(f"Session rows: {info.session_row_count:,}")
    print(f"Size: {info.size_mb:.2f} MB")
    return 0


def cmd_compact(storage: Storage, args: argparse.Namespace) -> int:
    compactor = Compactor(storage.store, storage.settings)
    if args.force:
        try:
            report = compactor.compact()
        except AdapterError as e:
            log.error(f"Compaction failed: {e}")
            return 1
    else:
        report = compactor.maybe_compact()

    if report is None:
        print("Database within limits, nothing to do.")
    elif not report.changed:
        print(f"No rows older than {report.cutoff} to compact.")
    else:
        print(
            f"Compacted {report.rows_compacted} rows into {report.rows_created} "
            f"({len(report.characters)} characters)."
        )
    return 0


def cmd_words(storage: Storage, args: argparse.Namespace) -> int:
    try:
        pool = [line.strip() for line in args.pool.read_text().splitlines() if line.strip()]
    except OSError as e:
        log.error(f"Cannot read word pool {args.pool}: {e}")
        return 1

    settings = storage.settings
    if args.mode:
        settings = settings.model_copy(update={"selection_mode": args.mode})
    count = args.count or settings.number_of_words

    selector = WordSelector(settings)
    print(" ".join(selector.select(pool, count, storage.character_difficulties())))
    return 0


def cmd_clear(storage: Storage, args: argparse.Namespace) -> int:
    if not args.yes:
        answer = input("Delete all character statistics? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1
    try:
        storage.clear()
    except AdapterError as e:
        log.error(f"Clearing statistics failed: {e}")
        return 1
    print("Statistics cleared.")
    return 0


def cmd_config(storage: Storage, args: argparse.Namespace) -> int:
    try:
        config = Config(storage.db_path)
    except (sqlite3.Error, OSError) as e:
        log.error(f"Cannot open settings in {storage.db_path}: {e}")
        return 1

    if args.key is None:
        stored = config.get_all()
        defaults = AppSettings()
        for key in AppSettings.model_fields:
            print(f"{key} = {stored.get(key, getattr(defaults, key))}")
        return 0

    if args.key not in AppSettings.model_fields:
        log.error(f"Unknown setting: {args.key}")
        return 1

    if args.value is not None:
        try:
            config.set(args.key, args.value)
        except ValueError as e:
            log.error(str(e))
            return 1
    print(f"{args.key} = {config.get(args.key)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="klik character statistics maintenance")
    parser.add_argument("--db", type=Path, help="Statistics database (default: XDG state dir)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("summary", help="Per-character summary with latest-session deltas")
    sub.add_parser("info", help="Row count and database size")

    compact = sub.add_parser("compact", help="Compact rows outside the retention window")
    compact.add_argument("--force", action="store_true", help="Compact even within limits")

    words = sub.add_parser("words", help="Select practice words from a pool file")
    words.add_argument("pool", type=Path, help="Newline-separated word list")
    words.add_argument("--count", "-n", type=int, help="Number of words")
    words.add_argument(
        "--mode", choices=[mode.value for mode in SelectionMode], help="Selection mode"
    )

    clear = sub.add_parser("clear", help="Delete all statistics")
    clear.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    config = sub.add_parser("config", help="Show or change settings")
    config.add_argument("key", nargs="?", help="Setting name (all settings if omitted)")
    config.add_argument("value", nargs="?", help="New value")
    return parser


COMMANDS = {
    "summary": cmd_summary,
    "info": cmd_info,
    "compact": cmd_compact,
    "words": cmd_words,
    "clear": cmd_clear,
    "config": cmd_config,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    db_path = args.db or default_db_path()
    storage = Storage(db_path, load_settings(db_path))
    try:
        return COMMANDS[args.command](storage, args)
    finally:
        storage.close()


if __name__ == "__main__":
    sys.exit(main())
