"""
Scan log and audit log writer.

Both logs are append-only and exist for observability only. Audit entries
that must be atomic with a balance change (unlocks, withdrawals, scan
toggles) are written by the LedgerStore inside that transaction. This
module formats and appends the rest.
"""

import logging
from datetime import datetime
from typing import Optional

from models.schemas import AuditLogEntry, ScanBatchResult, ScanItemResult, ScanLogEntry
from services.earnings import format_money

logger = logging.getLogger(__name__)


def format_scan_line(item: ScanItemResult) -> str:
    """One human-readable line per scanned video."""
    if item.status == "failed":
        return f"{item.video_id}: failed [{item.error_kind}] {item.error_message}"
    if item.status == "no_change":
        return f"{item.video_id}: no change ({item.old_views:,} → {item.new_views:,})"
    return (
        f"{item.video_id}: +{item.view_delta:,} views "
        f"({item.old_views:,} → {item.new_views:,}), "
        f"+{item.premium_delta:,} premium, +{format_money(item.earnings_delta)}"
    )


def build_scan_log_entry(result: ScanBatchResult) -> ScanLogEntry:
    return ScanLogEntry(
        started_at=result.started_at,
        finished_at=result.finished_at,
        total_selected=result.total_selected,
        succeeded=result.succeeded,
        failed=result.failed,
        total_earnings=result.total_earnings,
        lines=[format_scan_line(item) for item in result.items],
    )


def write_scan_log(store, result: ScanBatchResult) -> int:
    entry = build_scan_log_entry(result)
    log_id = store.append_scan_log(entry)
    logger.info(
        f"Scan log #{log_id}: {entry.total_selected} selected, "
        f"{entry.succeeded} succeeded, {entry.failed} failed"
    )
    return log_id


def write_audit(
    store,
    action: str,
    actor: str,
    entity_type: str,
    target_id: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    details: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    return store.append_audit_log(AuditLogEntry(
        action=action,
        actor=actor,
        entity_type=entity_type,
        target_id=target_id,
        before=before,
        after=after,
        details=details,
        created_at=now,
    ))
