"""
UnlockEngine — moves matured monthly payouts from locked to available.

State machine (MonthlyReport.status):
  locked --[CAS, now >= locked_until]--> unlocked      (unlocked is terminal)

Every unlock goes through LedgerStore.unlock_report, which does the CAS, the
balance transfer and the audit entry in one transaction. The transfer can
only happen as a consequence of a successful CAS, so concurrent or repeated
triggers move each report's money exactly once.

Entry points:
  - unlock_due(now):           scheduled run; CAS losers are skipped silently
  - unlock_one(report_id):     admin action; returns a reason on rejection
  - unlock_many(report_ids):   admin bulk action; per-id results, never stops early
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from database import utcnow
from models.schemas import BulkUnlockResult, UnlockFailure, UnlockResult
from services.errors import InsufficientBalance, LedgerConflict, RecordNotFound
from services.ledger import REPORT_LOCKED

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class UnlockEngine:
    def __init__(self, store, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self._clock = clock

    # =======================================================================
    # Scheduled run
    # =======================================================================

    def unlock_due(
        self,
        now: Optional[datetime] = None,
        actor: str = SYSTEM_ACTOR,
    ) -> BulkUnlockResult:
        """
        Unlock every locked report whose lock period has expired.

        A report already moved by a concurrent run is counted as skipped,
        not failed. A report whose payout exceeds the creator's locked
        balance stays locked and is counted as failed with a reason.
        PersistenceUnavailable propagates to the caller.
        """
        now = now or self._clock()

        logger.info("=" * 60)
        logger.info(f"UNLOCK RUN: now={now.isoformat()}")
        logger.info("=" * 60)

        due = self.store.list_due_reports(now)
        logger.info(f"{len(due)} report(s) due for unlock")

        result = BulkUnlockResult(requested=len(due))
        for report in due:
            try:
                unlocked = self.store.unlock_report(report.report_id, now, actor)
            except LedgerConflict as e:
                logger.info(f"  [{report.report_id}] skipped: {e.message}")
                result.skipped += 1
                continue
            except (InsufficientBalance, RecordNotFound) as e:
                logger.warning(f"  [{report.report_id}] unlock failed: {e.message}")
                result.failed += 1
                result.failures.append(UnlockFailure(report_id=report.report_id, reason=e.message))
                continue

            result.unlocked += 1
            result.total_amount += unlocked.payout_amount
            result.unlocked_ids.append(unlocked.report_id)
            logger.info(
                f"  [{unlocked.report_id}] unlocked ${unlocked.payout_amount} "
                f"for creator {unlocked.creator_id}"
            )

        logger.info(
            f"Unlock run complete: {result.unlocked} unlocked "
            f"(${result.total_amount:,.2f}), {result.skipped} skipped, {result.failed} failed"
        )
        return result

    # =======================================================================
    # Admin actions
    # =======================================================================

    def unlock_one(
        self,
        report_id: str,
        actor: str,
        now: Optional[datetime] = None,
    ) -> UnlockResult:
        """
        Unlock a single report on an admin's request.

        Rejections ("report not found", "report already unlocked",
        "still locked until YYYY-MM-DD") have no side effects.
        """
        now = now or self._clock()

        report = self.store.get_report(report_id)
        if report is None:
            return UnlockResult(report_id=report_id, success=False, reason="report not found")
        if report.status != REPORT_LOCKED:
            return UnlockResult(
                report_id=report_id,
                success=False,
                creator_id=report.creator_id,
                reason=f"report already {report.status}",
            )
        if now < report.locked_until:
            return UnlockResult(
                report_id=report_id,
                success=False,
                creator_id=report.creator_id,
                reason=f"still locked until {report.locked_until.date().isoformat()}",
            )

        # Pre-checks can go stale; the CAS inside unlock_report is authoritative
        try:
            unlocked = self.store.unlock_report(report_id, now, actor)
        except (LedgerConflict, InsufficientBalance) as e:
            logger.warning(f"Report {report_id} not unlocked: {e.message}")
            return UnlockResult(
                report_id=report_id, success=False, creator_id=report.creator_id, reason=e.message,
            )
        except RecordNotFound:
            return UnlockResult(report_id=report_id, success=False, reason="report not found")

        logger.info(f"Report {report_id} unlocked by {actor}: ${unlocked.payout_amount}")
        return UnlockResult(
            report_id=report_id,
            success=True,
            amount=unlocked.payout_amount,
            creator_id=unlocked.creator_id,
        )

    def unlock_many(
        self,
        report_ids: list[str],
        actor: str,
        now: Optional[datetime] = None,
    ) -> BulkUnlockResult:
        now = now or self._clock()
        unique_ids = list(dict.fromkeys(report_ids))

        logger.info(f"Bulk unlock of {len(unique_ids)} report(s) by {actor}")

        result = BulkUnlockResult(requested=len(unique_ids))
        for report_id in unique_ids:
            single = self.unlock_one(report_id, actor, now)
            if single.success:
                result.unlocked += 1
                result.total_amount += single.amount
                result.unlocked_ids.append(report_id)
            else:
                result.failed += 1
                result.failures.append(UnlockFailure(report_id=report_id, reason=single.reason))

        logger.info(
            f"Bulk unlock complete: {result.unlocked} unlocked, {result.failed} failed"
        )
        return result
