"""
Marvel Champions play-log form automation: entry point

Usage:
    python main.py plays.json
    python main.py plays.json 2024-01-01 --workers 4
    python main.py plays.json --sequential --dry-run
    python main.py plays.json --config path/to/config.yaml
"""

import argparse
import os
import signal
import sys

from champions_form.errors import ConfigError, PlayDataError
from champions_form.filtering import filter_plays, log_filter_summary
from champions_form.records import load_plays, parse_date
from champions_form.tables import FormTables
from champions_form.utils import setup_logging, load_config
from champions_form.worker import run_parallel, run_sequential


def _start_date(value: str):
    try:
        return parse_date(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid start date '{value}' (expected YYYY-MM-DD)")


def _worker_count(value: str) -> int:
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of workers: '{value}'")
    if count < 1:
        raise argparse.ArgumentTypeError(f"number of workers must be >= 1, got {count}")
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Submit Marvel Champions plays to the community play-log form"
    )
    parser.add_argument("json_path", help="Path to the exported plays JSON file")
    parser.add_argument(
        "start_date", nargs="?", type=_start_date, default=None,
        help="Only process plays on or after this date (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--sequential", "-s", action="store_true",
        help="Process plays on a single worker (default: parallel)"
    )
    parser.add_argument(
        "--workers", "-w", type=_worker_count, default=None,
        help="Number of parallel workers (default: 8, max: max_workers_limit)"
    )
    parser.add_argument(
        "--dry-run", "-n", action="store_true",
        help="Fill every page but do not click Submit"
    )
    parser.add_argument(
        "--config", "-c", default=None,
        help="Path to config.yaml (default: ./config.yaml if present)"
    )
    parser.add_argument(
        "--headed", action="store_true",
        help="Show the browser windows"
    )
    return parser


def _exit_on_interrupt(signum, frame) -> None:
    print("\n⚠ Ctrl+C pressed. Exiting...")
    os._exit(1)


def main(argv=None) -> int:
    # Worker threads hold browsers open, so Ctrl+C exits the whole process
    signal.signal(signal.SIGINT, _exit_on_interrupt)

    # ── Parse arguments ──────────────────────────────────────────────
    parser = build_parser()
    args = parser.parse_args(argv)

    # ── Setup ────────────────────────────────────────────────────────
    logger = setup_logging()
    try:
        config = load_config(args.config)
    except ConfigError as e:
        parser.error(str(e))

    if args.headed:
        config["headless"] = False

    max_workers = args.workers if args.workers is not None else config["max_workers"]
    if max_workers > config["max_workers_limit"]:
        parser.error(
            f"argument --workers/-w: at most {config['max_workers_limit']} workers allowed, "
            f"got {max_workers}"
        )

    logger.info("Marvel Champions Form Automation")
    logger.info("=================================")
    logger.info(f"  Plays file:  {args.json_path}")
    logger.info(f"  Start date:  {args.start_date.isoformat() if args.start_date else 'all plays'}")
    if args.sequential:
        logger.info("  Mode:        Sequential processing")
    else:
        logger.info(f"  Mode:        Parallel processing with up to {max_workers} workers")
    logger.info(f"  Headless:    {config['headless']}")
    logger.info(f"  Dry run:     {args.dry_run}")

    # ── Load + filter ────────────────────────────────────────────────
    try:
        plays = load_plays(args.json_path)
    except PlayDataError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    tables = FormTables.from_config(config)
    filtered = filter_plays(plays, args.start_date, tables)
    log_filter_summary(filtered)

    # ── Run ──────────────────────────────────────────────────────────
    # Per-play failures are reported in the summary only; they do not
    # change the exit status.
    if args.sequential:
        run_sequential(filtered.plays, dry_run=args.dry_run, config=config, tables=tables)
    else:
        run_parallel(
            filtered.plays,
            max_workers=max_workers,
            dry_run=args.dry_run,
            config=config,
            tables=tables,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
