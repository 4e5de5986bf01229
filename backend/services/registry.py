"""
Creator and tracked-video registration.

A video is verified on the provider before it is tracked. Its current view
count becomes the baseline, so only views gained after registration earn.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from database import utcnow
from models.schemas import CreatorAccount, TrackedVideo
from services.audit_log import write_audit
from services.errors import LedgerConflict, RecordNotFound

logger = logging.getLogger(__name__)


def create_creator(
    store,
    creator_id: str,
    display_name: Optional[str] = None,
) -> CreatorAccount:
    creator = store.create_creator(creator_id, display_name)
    logger.info(f"Creator account created: {creator_id}")
    return creator


def register_video(
    store,
    client,
    video_id: str,
    creator_id: str,
    actor: str,
    premium_share_percent: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> TrackedVideo:
    """
    Start tracking a video for a creator.

    Raises:
        RecordNotFound: unknown creator
        LedgerConflict: video already tracked
        VideoNotFound / ProviderUnavailable: provider lookup failed
    """
    now = now or utcnow()

    if store.get_creator(creator_id) is None:
        raise RecordNotFound("creator", creator_id)
    if store.get_video(video_id) is not None:
        raise LedgerConflict(f"video is already tracked: {video_id}")

    stats = client.fetch_one(video_id)

    video = store.add_video(TrackedVideo(
        video_id=video_id,
        creator_id=creator_id,
        title=stats.title,
        channel_id=stats.channel_id,
        published_at=stats.published_at,
        last_known_external_views=stats.view_count,
        premium_share_percent=premium_share_percent,
        scan_enabled=stats.is_public,
        created_at=now,
        added_by=actor,
    ))

    write_audit(
        store,
        action="video_added",
        actor=actor,
        entity_type="scanned_video",
        target_id=video_id,
        after={
            "creator_id": creator_id,
            "baseline_views": stats.view_count,
            "scan_enabled": stats.is_public,
        },
        details=f"Tracking '{stats.title or video_id}' from {stats.view_count:,} views",
        now=now,
    )

    if not stats.is_public:
        logger.warning(f"Video {video_id} is not public; registered with scanning disabled")
    logger.info(f"Video {video_id} registered for {creator_id} at {stats.view_count:,} views")
    return video


def set_scan_enabled(store, video_id: str, enabled: bool, actor: str) -> TrackedVideo:
    video = store.set_scan_enabled(video_id, enabled, actor)
    logger.info(f"Scanning {'enabled' if enabled else 'disabled'} for {video_id} by {actor}")
    return video
