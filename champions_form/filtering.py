"""
Play filtering and partitioning.

filter_plays() drops plays the form cannot accept and sorts the rest
chronologically; chunk_plays() splits the result into balanced, contiguous
chunks, one per worker session.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from champions_form.records import parse_date
from champions_form.tables import FormTables, DEFAULT_TABLES

logger = logging.getLogger("champions_form")


@dataclass
class FilterStats:
    total: int = 0
    skipped_basic_aspect: int = 0
    skipped_empty_modular: int = 0
    skipped_before_date: int = 0


@dataclass
class FilterResult:
    plays: list = field(default_factory=list)
    stats: FilterStats = field(default_factory=FilterStats)
    start_date: date | None = None


def filter_plays(plays, start_date=None, tables: FormTables = DEFAULT_TABLES) -> FilterResult:
    """
    Filter and order plays for submission.

    Rules, applied in order (each rejected play is counted once):
      1. any hero without an aspect (the "Basic" sentinel)
      2. no modular sets, unless the scenario has no modular page
      3. dated before start_date (inclusive bound), when given
    Survivors are sorted oldest first; ties keep their input order.
    """
    if start_date is not None:
        start_date = parse_date(start_date)

    stats = FilterStats(total=len(plays))
    kept = []
    for play in plays:
        if any(h.aspect == tables.no_aspect_sentinel for h in play.heroes):
            stats.skipped_basic_aspect += 1
            continue
        if not play.modular_sets and play.villain not in tables.scenarios_without_modular_page:
            stats.skipped_empty_modular += 1
            continue
        if start_date is not None and play.date < start_date:
            stats.skipped_before_date += 1
            continue
        kept.append(play)

    # sorted() is stable
    kept = sorted(kept, key=lambda p: p.date)
    return FilterResult(plays=kept, stats=stats, start_date=start_date)


def log_filter_summary(result: FilterResult) -> None:
    """Print the pre-run filtering summary."""
    stats = result.stats
    logger.info("")
    logger.info("=== Filtering Summary ===")
    logger.info(f"Total plays in file: {stats.total}")
    if stats.skipped_basic_aspect:
        logger.info(f"Skipped (Basic/no aspect): {stats.skipped_basic_aspect}")
    if stats.skipped_empty_modular:
        logger.info(f"Skipped (empty modular sets): {stats.skipped_empty_modular}")
    if result.start_date is not None:
        logger.info(f"Start date filter: {result.start_date.isoformat()}")
        logger.info(f"Skipped (before start date): {stats.skipped_before_date}")
    logger.info(f"Plays to process: {len(result.plays)}")


def chunk_plays(plays, num_chunks: int) -> list:
    """
    Split plays into min(num_chunks, len(plays)) contiguous chunks.

    Chunk sizes differ by at most one; the leading chunks take the
    remainder.  With at least as many chunks as plays every play gets its
    own chunk.
    """
    if num_chunks <= 0:
        raise ValueError("Number of chunks must be positive")
    plays = list(plays)
    if num_chunks >= len(plays):
        return [[play] for play in plays]

    base, remainder = divmod(len(plays), num_chunks)
    chunks = []
    start = 0
    for i in range(num_chunks):
        size = base + (1 if i < remainder else 0)
        chunks.append(plays[start:start + size])
        start += size
    return chunks
