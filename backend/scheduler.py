"""
Periodic trigger for the scan, unlock and monthly report jobs.

Each job takes no arguments and is safe to invoke twice in quick
succession: a second scan only credits views gained in between, a second
unlock run finds nothing due, a second report run finds the month's
reports already taken.

Usage:
    python scheduler.py            # loop forever
    python scheduler.py scan       # one scan batch and exit
    python scheduler.py unlock     # one unlock run and exit
    python scheduler.py reports    # one monthly report run and exit
"""

import sys
import time
import logging
from datetime import datetime
from typing import Callable, Optional

import config
from database import init_db, make_engine, utcnow
from models.schemas import BulkUnlockResult, ReportGenerationResult, ScanBatchResult
from services.errors import EverNetError
from services.ledger import LedgerStore
from services.monthly_reports import generate_monthly_reports, previous_month
from services.rate_config import seed_rate_config
from services.scanner import ScanEngine
from services.unlocker import UnlockEngine
from services.youtube import YouTubeClient

logger = logging.getLogger(__name__)

TICK_SECONDS = 60


def _build_store() -> LedgerStore:
    store = LedgerStore(make_engine())
    init_db(store.engine)
    seed_rate_config(store)
    return store


# ===========================================================================
# Jobs
# ===========================================================================

def run_scan_job(store: Optional[LedgerStore] = None, client: Optional[YouTubeClient] = None) -> ScanBatchResult:
    store = store or _build_store()
    client = client or YouTubeClient()
    return ScanEngine(store, client).run_batch(config.SCAN_BATCH_SIZE)


def run_unlock_job(store: Optional[LedgerStore] = None) -> BulkUnlockResult:
    store = store or _build_store()
    return UnlockEngine(store).unlock_due()


def run_monthly_report_job(store: Optional[LedgerStore] = None) -> ReportGenerationResult:
    store = store or _build_store()
    return generate_monthly_reports(store)


# ===========================================================================
# Loop
# ===========================================================================

def _run_safely(name: str, job: Callable[[], object]) -> bool:
    """Run one job; run-level errors are logged and left for the next tick."""
    try:
        job()
        return True
    except EverNetError as e:
        logger.error(f"{name} job failed ({type(e).__name__}): {e.message}")
        return False
    except Exception as e:
        logger.exception(f"{name} job crashed: {e}")
        return False


def run_forever(
    store: Optional[LedgerStore] = None,
    client: Optional[YouTubeClient] = None,
    max_ticks: Optional[int] = None,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Fixed-interval loop.

    Scan every SCAN_INTERVAL_HOURS, unlock every UNLOCK_INTERVAL_HOURS,
    monthly reports once per new calendar month. A failed job is retried
    at its next interval, not immediately.

    Reports are generated on the first tick only when it falls on the
    1st of a month; a mid-month start waits for the next month boundary.
    """
    store = store or _build_store()
    client = client or YouTubeClient()

    scan_every = config.SCAN_INTERVAL_HOURS * 3600
    unlock_every = config.UNLOCK_INTERVAL_HOURS * 3600
    last_scan: Optional[datetime] = None
    last_unlock: Optional[datetime] = None
    last_report_month: Optional[str] = None

    logger.info(
        f"Scheduler started: scan every {config.SCAN_INTERVAL_HOURS}h, "
        f"unlock every {config.UNLOCK_INTERVAL_HOURS}h"
    )

    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        now = clock()

        if last_scan is None or (now - last_scan).total_seconds() >= scan_every:
            _run_safely("scan", lambda: run_scan_job(store, client))
            last_scan = now

        if last_unlock is None or (now - last_unlock).total_seconds() >= unlock_every:
            _run_safely("unlock", lambda: run_unlock_job(store))
            last_unlock = now

        month = previous_month(now)
        if ticks == 0 and now.day != 1:
            # Started mid-month: current counters already hold this month's views
            logger.info(
                f"Started mid-month; reports for {month} are left to "
                f"POST /api/reports/generate"
            )
            last_report_month = month
        if month != last_report_month:
            if _run_safely("monthly report", lambda: run_monthly_report_job(store)):
                last_report_month = month

        ticks += 1
        if max_ticks is None or ticks < max_ticks:
            sleep(TICK_SECONDS)


def main(argv: list[str]) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    jobs = {
        "scan": run_scan_job,
        "unlock": run_unlock_job,
        "reports": run_monthly_report_job,
    }
    if len(argv) > 1:
        if argv[1] not in jobs:
            logger.error(f"Unknown job '{argv[1]}', expected one of {sorted(jobs)}")
            return 2
        return 0 if _run_safely(argv[1], jobs[argv[1]]) else 1

    run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
