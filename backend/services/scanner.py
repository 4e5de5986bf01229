"""
ScanEngine — one bounded batch of the view scan.

Pipeline (run_batch):
  1. Read the rate config snapshot (InvalidConfiguration aborts before any work)
  2. Select up to batch_size scan-enabled videos (never-scanned / oldest first)
  3. fetch_many on their ids (50 per provider call)
  4. Per video, in a bounded thread pool:
       delta    = max(0, current - last_known)
       premium  = floor(delta × share% / 100)
       earnings = premium / 1000 × rate   (cents, ROUND_HALF_UP)
       apply_scan  — baseline CAS on the video record
       credit_scan_earnings — locked balance on the creator
  5. One ScanLogEntry for the batch

Failure semantics:
  - A video's fetch/apply failure is recorded on its result item and the
    batch continues. VideoNotFound is NOT auto-disabled; it is left for review.
  - ProviderUnavailable is retried by the next scheduled run.
  - PersistenceUnavailable propagates: the run fails, earlier per-video
    increments stay (each one is independently atomic).
  - A crash between the video increment and the creator credit loses only
    that one credit; it is tolerated, not compensated.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

import config
from database import utcnow
from models.schemas import FetchResult, ScanBatchResult, ScanItemResult, TrackedVideo
from services.audit_log import write_scan_log
from services.earnings import (
    calculate_earnings,
    calculate_premium_views,
    calculate_view_delta,
)
from services.errors import (
    EverNetError,
    LedgerConflict,
    RecordNotFound,
    VideoNotFound,
)
from services.rate_config import RateConfig, load_rate_config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MAX_APPLY_ATTEMPTS = 3  # baseline CAS retries when an overlapping scan moved it


class ScanEngine:
    def __init__(
        self,
        store,
        client,
        max_workers: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.client = client
        self.max_workers = max_workers or config.SCAN_MAX_WORKERS
        self._clock = clock

    # =======================================================================
    # Public API
    # =======================================================================

    def run_batch(self, batch_size: Optional[int] = None) -> ScanBatchResult:
        """
        Scan one batch of tracked videos.

        Returns:
            ScanBatchResult with per-video items. Per-video failures are
            reported in the result, never raised.

        Raises:
            InvalidConfiguration: rate config missing/malformed (no side effects)
            PersistenceUnavailable: ledger unreachable
        """
        batch_size = batch_size or config.SCAN_BATCH_SIZE
        now = self._clock()

        logger.info("=" * 60)
        logger.info(f"VIEW SCAN: batch_size={batch_size}")
        logger.info("=" * 60)

        # ------------------------------------------------------------------
        # Step 1: Rate snapshot for the whole batch
        # ------------------------------------------------------------------
        rates = load_rate_config(self.store)
        logger.info(
            f"Step 1: rates loaded — ${rates.payout_rate_per_1000} per 1000 premium views, "
            f"default premium share {rates.default_premium_share_percent}%"
        )

        # ------------------------------------------------------------------
        # Step 2: Select videos
        # ------------------------------------------------------------------
        videos = self.store.select_scannable_videos(batch_size)
        logger.info(f"Step 2: {len(videos)} videos selected")

        result = ScanBatchResult(total_selected=len(videos), started_at=now)

        if videos:
            # --------------------------------------------------------------
            # Step 3: Fetch current counts
            # --------------------------------------------------------------
            fetched = self.client.fetch_many([v.video_id for v in videos])

            # --------------------------------------------------------------
            # Step 4: Per-video delta + increments, bounded parallelism
            # --------------------------------------------------------------
            workers = max(1, min(self.max_workers, len(videos)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                items = list(pool.map(
                    lambda video: self._scan_video(video, fetched, rates, now),
                    videos,
                ))
            result.items = items

        # ------------------------------------------------------------------
        # Step 5: Summarize + scan log
        # ------------------------------------------------------------------
        for item in result.items:
            if item.ok:
                result.succeeded += 1
                result.total_earnings += item.earnings_delta
            else:
                result.failed += 1
            if item.status == "no_change":
                result.no_change += 1

        result.finished_at = self._clock()
        write_scan_log(self.store, result)

        logger.info(
            f"Scan complete: {result.succeeded} succeeded "
            f"({result.no_change} no change), {result.failed} failed, "
            f"total earnings ${result.total_earnings:,.2f}"
        )
        return result

    # =======================================================================
    # One video
    # =======================================================================

    def _scan_video(
        self,
        video: TrackedVideo,
        fetched: FetchResult,
        rates: RateConfig,
        now: datetime,
    ) -> ScanItemResult:
        video_id = video.video_id

        if video_id in fetched.errors:
            return self._failure(video, fetched.errors[video_id])

        stats = fetched.stats.get(video_id)
        if stats is None:
            # Conclusive answer from the provider: move it to the back of the queue
            return self._failure(video, VideoNotFound(video_id), scanned_at=now)

        current_views = stats.view_count
        baseline = video.last_known_external_views
        share = rates.premium_share_for(video.premium_share_percent)

        for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
            delta = calculate_view_delta(baseline, current_views)
            premium = calculate_premium_views(delta, share)
            earnings = calculate_earnings(premium, rates.payout_rate_per_1000)

            try:
                self.store.apply_scan(
                    video_id, baseline, current_views, delta, premium, earnings, now,
                )
                break
            except LedgerConflict:
                logger.info(
                    f"[{video_id}] baseline moved during scan "
                    f"(attempt {attempt}/{MAX_APPLY_ATTEMPTS}), re-reading"
                )
                fresh = self.store.get_video(video_id)
                if fresh is None:
                    return self._failure(video, RecordNotFound("video", video_id))
                if fresh.last_known_external_views >= current_views:
                    # An overlapping scan already recorded this count or a newer one
                    logger.info(
                        f"[{video_id}] observation {current_views:,} is not newer than "
                        f"baseline {fresh.last_known_external_views:,}, nothing to apply"
                    )
                    return ScanItemResult(
                        video_id=video_id,
                        creator_id=video.creator_id,
                        status="no_change",
                        old_views=fresh.last_known_external_views,
                        new_views=fresh.last_known_external_views,
                    )
                baseline = fresh.last_known_external_views
                share = rates.premium_share_for(fresh.premium_share_percent)
            except RecordNotFound as e:
                return self._failure(video, e)
        else:
            return self._failure(
                video,
                LedgerConflict(f"baseline kept moving after {MAX_APPLY_ATTEMPTS} attempts"),
            )

        item = ScanItemResult(
            video_id=video_id,
            creator_id=video.creator_id,
            status="success" if delta > 0 else "no_change",
            old_views=baseline,
            new_views=current_views,
            view_delta=delta,
            premium_delta=premium,
            earnings_delta=earnings,
        )

        if earnings > 0:
            try:
                self.store.credit_scan_earnings(video.creator_id, earnings)
            except RecordNotFound as e:
                logger.error(f"[{video_id}] video credited but creator missing: {e.message}")
                item.status = "failed"
                item.error_kind = type(e).__name__
                item.error_message = f"{e.message} (video counters already updated)"
                return item

        logger.debug(
            f"  [{video_id}] {baseline:,} → {current_views:,}: "
            f"delta={delta:,} premium={premium:,} earnings=${earnings}"
        )
        return item

    def _failure(
        self,
        video: TrackedVideo,
        error: EverNetError,
        scanned_at: Optional[datetime] = None,
    ) -> ScanItemResult:
        logger.warning(f"  [{video.video_id}] scan failed: {type(error).__name__}: {error.message}")
        try:
            self.store.record_scan_failure(video.video_id, error.message, scanned_at)
        except RecordNotFound:
            pass  # video vanished; the failure item below is all that is left

        return ScanItemResult(
            video_id=video.video_id,
            creator_id=video.creator_id,
            status="failed",
            old_views=video.last_known_external_views,
            error_kind=type(error).__name__,
            error_message=error.message,
        )

