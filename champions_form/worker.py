"""
Worker orchestration: run the form navigator over the filtered plays.

Architecture:
  - The filtered plays are split into N contiguous chunks (N <= max_workers).
  - Each chunk is owned by one worker session running in its own thread.
    A session owns its own Playwright driver, browser, context and page;
    sessions share nothing mutable, only the read-only lookup tables.
  - Inside a session plays are entered strictly one after another.
  - After max_consecutive_failures failed plays in a row the session
    closes its page and opens a fresh one from the same context.  If that
    fails the rest of the chunk is abandoned; other sessions carry on.
  - The only synchronisation point is the final join, where the per-chunk
    (success, failed) counts are summed.

Sequential mode is one session over the whole list.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from playwright.sync_api import sync_playwright

from champions_form.errors import SessionError
from champions_form.filtering import chunk_plays
from champions_form.navigator import FormNavigator
from champions_form.tables import FormTables, DEFAULT_TABLES
from champions_form.utils import DEFAULT_TIMEOUT, launch_browser, new_context

logger = logging.getLogger("champions_form")

MAX_CONSECUTIVE_FAILURES = 3


@dataclass
class ChunkResult:
    success: int = 0
    failed: int = 0
    abandoned: int = 0       # plays never attempted (session gave up)
    recoveries: int = 0      # page reacquisitions

    def __add__(self, other: "ChunkResult") -> "ChunkResult":
        return ChunkResult(
            success=self.success + other.success,
            failed=self.failed + other.failed,
            abandoned=self.abandoned + other.abandoned,
            recoveries=self.recoveries + other.recoveries,
        )


@dataclass
class RunSummary:
    processed: int
    result: ChunkResult
    elapsed: float

    @property
    def success(self) -> int:
        return self.result.success

    @property
    def failed(self) -> int:
        return self.result.failed

    @property
    def average(self) -> float:
        return self.elapsed / self.processed if self.processed else 0.0

    def log_summary(self, title: str = "Final Summary") -> None:
        logger.info("")
        logger.info(f"=== {title} ===")
        logger.info(f"Total plays processed: {self.processed}")
        logger.info(f"Successful: {self.success}")
        logger.info(f"Failed: {self.failed}")
        if self.result.abandoned:
            logger.info(f"Not attempted (worker stopped early): {self.result.abandoned}")
        if self.result.recoveries:
            logger.info(f"Page recoveries: {self.result.recoveries}")
        logger.info(f"Time elapsed: {self.elapsed:.1f} seconds")
        logger.info(f"Average time per play: {self.average:.2f} seconds")


# =================================================================================
#  Session
# =================================================================================

class FormSession:
    """One isolated browser context plus the single page currently in use."""

    def __init__(self, session_id: int, context, config: dict = None):
        self.session_id = session_id
        self.context = context
        self.config = config or {}
        self.page = None

    @property
    def prefix(self) -> str:
        return f"[Worker {self.session_id}]"

    def open(self):
        """Open a page from the context with the element timeout applied."""
        try:
            page = self.context.new_page()
            page.set_default_timeout(self.config.get("default_timeout", DEFAULT_TIMEOUT))
        except Exception as e:
            raise SessionError(f"{self.prefix} could not open a page: {e}") from e
        self.page = page
        return page

    def close_page(self) -> None:
        try:
            if self.page and not self.page.is_closed():
                self.page.close()
        except Exception:
            pass
        self.page = None

    def reacquire(self):
        """Discard the current page and open a new one from the same context."""
        self.close_page()
        return self.open()

    def close(self) -> None:
        self.close_page()
        try:
            self.context.close()
        except Exception:
            pass

    def __repr__(self):
        return f"FormSession({self.session_id})"


def default_navigator_factory(tables: FormTables, dry_run: bool, config: dict):
    """Build the callable process_chunk uses to get a navigator for a session's page."""
    def _factory(session: FormSession) -> FormNavigator:
        return FormNavigator(
            session.page,
            worker_id=session.session_id,
            tables=tables,
            dry_run=dry_run,
            config=config,
        )
    return _factory


# =================================================================================
#  Chunk processing
# =================================================================================

def process_chunk(
    session: FormSession,
    plays: list,
    *,
    navigator_factory,
    config: dict = None,
    chunk_index: int = 0,
    total_chunks: int = 1,
    sleep=time.sleep,
) -> ChunkResult:
    """
    Enter every play of a chunk on the session's page, in order.

    navigator_factory(session) returns an object with submit_play(play) -> bool;
    it is called again after every page reacquisition.
    """
    config = config or {}
    max_failures = config.get("max_consecutive_failures", MAX_CONSECUTIVE_FAILURES)
    delay_ok = config.get("delay_after_success", 2.0)
    delay_fail = config.get("delay_after_failure", 3.0)
    recovery_pause = config.get("recovery_pause", 2.0)
    prefix = session.prefix

    logger.info(
        f"{prefix} Starting to process {len(plays)} plays "
        f"(chunk {chunk_index + 1}/{total_chunks})"
    )

    result = ChunkResult()
    consecutive_failures = 0
    navigator = navigator_factory(session)

    for position, play in enumerate(plays):
        if consecutive_failures >= max_failures:
            logger.error(
                f"{prefix} Too many consecutive failures ({consecutive_failures}). "
                f"Attempting page recovery..."
            )
            try:
                session.reacquire()
            except SessionError as e:
                result.abandoned = len(plays) - position
                logger.error(
                    f"{prefix} Failed to recover page ({e}). Stopping this worker: "
                    f"{result.abandoned} play(s) not attempted."
                )
                break
            consecutive_failures = 0
            result.recoveries += 1
            navigator = navigator_factory(session)
            logger.info(f"{prefix} Page recovered. Continuing...")
            sleep(recovery_pause)

        if navigator.submit_play(play):
            result.success += 1
            consecutive_failures = 0
            sleep(delay_ok)
        else:
            result.failed += 1
            consecutive_failures += 1
            sleep(delay_fail)

    logger.info(
        f"{prefix} Completed chunk {chunk_index + 1}/{total_chunks}: "
        f"{result.success} successful, {result.failed} failed"
    )
    return result


def _run_session(
    session_id: int,
    plays: list,
    *,
    chunk_index: int,
    total_chunks: int,
    tables: FormTables,
    dry_run: bool,
    config: dict,
) -> ChunkResult:
    """Thread body: own a Playwright driver + browser for one chunk."""
    # Sync Playwright objects are bound to the thread that created them,
    # so every worker starts its own driver.
    with sync_playwright() as p:
        browser = launch_browser(p, config)
        try:
            session = FormSession(session_id, new_context(browser, config), config)
            session.open()
            logger.info(f"  Worker {session_id} initialized")
            try:
                return process_chunk(
                    session,
                    plays,
                    navigator_factory=default_navigator_factory(tables, dry_run, config),
                    config=config,
                    chunk_index=chunk_index,
                    total_chunks=total_chunks,
                )
            finally:
                session.close()
        finally:
            try:
                browser.close()
            except Exception:
                pass


def _log_mode_banner(dry_run: bool) -> None:
    if dry_run:
        logger.info("⚠️  DRY RUN MODE: Forms will be filled but NOT submitted")


def run_parallel(
    plays: list,
    *,
    max_workers: int = 8,
    dry_run: bool = False,
    config: dict = None,
    tables: FormTables = DEFAULT_TABLES,
    session_runner=_run_session,
) -> RunSummary:
    """Process plays across min(max_workers, len(plays)) concurrent sessions."""
    config = config or {}
    num_workers = min(max_workers, len(plays))
    logger.info(f"Using {num_workers} parallel workers")
    _log_mode_banner(dry_run)

    if num_workers == 0:
        logger.info("No plays to process.")
        return RunSummary(processed=0, result=ChunkResult(), elapsed=0.0)

    chunks = chunk_plays(plays, num_workers)
    total = ChunkResult()
    start = time.time()

    logger.info("Starting parallel processing...")
    with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="worker") as executor:
        futures = {
            executor.submit(
                session_runner,
                index + 1,
                chunk,
                chunk_index=index,
                total_chunks=len(chunks),
                tables=tables,
                dry_run=dry_run,
                config=config,
            ): (index + 1, chunk)
            for index, chunk in enumerate(chunks)
        }
        for future in as_completed(futures):
            session_id, chunk = futures[future]
            try:
                total = total + future.result()
            except Exception as e:
                # Browser launch / first page failed: this chunk is lost,
                # the other sessions are unaffected.
                logger.error(f"[Worker {session_id}] Session failed before finishing: {e}")
                total = total + ChunkResult(abandoned=len(chunk))

    summary = RunSummary(processed=len(plays), result=total, elapsed=time.time() - start)
    summary.log_summary()
    return summary


def run_sequential(
    plays: list,
    *,
    dry_run: bool = False,
    config: dict = None,
    tables: FormTables = DEFAULT_TABLES,
    session_runner=_run_session,
) -> RunSummary:
    """Process every play on a single session, same per-play and recovery logic."""
    config = config or {}
    _log_mode_banner(dry_run)

    if not plays:
        logger.info("No plays to process.")
        return RunSummary(processed=0, result=ChunkResult(), elapsed=0.0)

    start = time.time()
    try:
        result = session_runner(
            1,
            plays,
            chunk_index=0,
            total_chunks=1,
            tables=tables,
            dry_run=dry_run,
            config=config,
        )
    except Exception as e:
        logger.error(f"[Worker 1] Session failed before finishing: {e}")
        result = ChunkResult(abandoned=len(plays))

    summary = RunSummary(processed=len(plays), result=result, elapsed=time.time() - start)
    summary.log_summary("Summary")
    return summary
