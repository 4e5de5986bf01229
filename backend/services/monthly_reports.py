"""
Monthly report generation.

Run on a calendar boundary (scheduler or admin). For every creator with
current-period earnings:
  - one locked report keyed "{creator_id}_{YYYY-MM}"
  - payout = Σ current_period_earnings over the creator's videos
  - locked_until = now + lock_period_days
  - the snapshotted amounts are subtracted from each video's current-period
    counters in the same transaction

Idempotent: a second run for the same month finds the report id taken and
skips the creator. Locked balances are NOT touched here; the scanner
credited them as earnings accrued.
"""

import logging
from datetime import datetime
from typing import Optional

from database import utcnow
from models.schemas import ReportGenerationResult
from services.earnings import calculate_lock_end
from services.rate_config import load_rate_config

logger = logging.getLogger(__name__)


def previous_month(now: datetime) -> str:
    """'YYYY-MM' of the calendar month before `now`."""
    if now.month == 1:
        return f"{now.year - 1}-12"
    return f"{now.year}-{now.month - 1:02d}"


def generate_monthly_reports(
    store,
    month: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReportGenerationResult:
    """
    Snapshot every creator's current period into a locked monthly report.

    Args:
        month: 'YYYY-MM' key; defaults to the month before `now`

    Raises:
        InvalidConfiguration: rate config missing/malformed (nothing written)
        PersistenceUnavailable: ledger unreachable
    """
    now = now or utcnow()
    month = month or previous_month(now)
    rates = load_rate_config(store)
    locked_until = calculate_lock_end(now, rates.lock_period_days)

    logger.info("=" * 60)
    logger.info(f"MONTHLY REPORTS: {month} (locked until {locked_until.date().isoformat()})")
    logger.info("=" * 60)

    creators = store.list_creators()
    result = ReportGenerationResult(month=month, creators_considered=len(creators))

    for creator in creators:
        report = store.create_monthly_report(creator.creator_id, month, locked_until, now)
        if report is None:
            result.reports_skipped += 1
            continue

        result.reports_generated += 1
        result.total_payout += report.payout_amount
        result.report_ids.append(report.report_id)
        logger.info(
            f"  {report.report_id}: ${report.payout_amount} "
            f"({report.total_views:,} views, {report.total_premium_views:,} premium)"
        )

    logger.info(
        f"Generated {result.reports_generated} report(s) totalling "
        f"${result.total_payout:,.2f}; {result.reports_skipped} creator(s) skipped"
    )
    return result
