"""
Pydantic models for the EverNet earnings pipeline.

Models:
  - VideoStats: Public statistics for one video from the metadata provider
  - FetchResult: Partial result of a multi-video provider fetch
  - TrackedVideo / CreatorAccount / MonthlyReport: Ledger records (money as Decimal)
  - ScanItemResult / ScanBatchResult: Outcome of one scan batch
  - UnlockResult / BulkUnlockResult: Outcome of single and bulk unlocks
  - ScanLogEntry / AuditLogEntry: Append-only observability records
  - API request / response models for the admin surface
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from services.errors import ProviderUnavailable


# ---------------------------------------------------------------------------
# VideoStats — one entry of the provider's /videos response
# ---------------------------------------------------------------------------
class VideoStats(BaseModel):
    video_id: str
    view_count: int = Field(default=0, ge=0)
    is_public: bool = True
    title: Optional[str] = None
    channel_id: Optional[str] = None
    published_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# FetchResult — fetch_many never fails as a whole.
#   stats:   ids the provider returned
#   missing: ids the provider silently dropped (deleted / never existed)
#   errors:  ids whose chunk failed after retries
# ---------------------------------------------------------------------------
class FetchResult(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    stats: dict[str, VideoStats] = {}
    missing: list[str] = []
    errors: dict[str, ProviderUnavailable] = {}


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------
class CreatorAccount(BaseModel):
    creator_id: str
    display_name: Optional[str] = None
    locked_balance: Decimal = Decimal("0.00")
    available_balance: Decimal = Decimal("0.00")
    lifetime_earnings: Decimal = Decimal("0.00")
    total_withdrawn: Decimal = Decimal("0.00")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrackedVideo(BaseModel):
    video_id: str
    creator_id: str
    title: Optional[str] = None
    channel_id: Optional[str] = None
    published_at: Optional[datetime] = None
    last_known_external_views: int = 0
    accrued_tracked_views: int = 0
    accrued_premium_views: int = 0
    lifetime_earnings: Decimal = Decimal("0.00")
    current_period_views: int = 0
    current_period_premium_views: int = 0
    current_period_earnings: Decimal = Decimal("0.00")
    premium_share_percent: Optional[Decimal] = None  # None → platform default
    scan_enabled: bool = True
    scan_error_count: int = 0
    last_scan_error: Optional[str] = None
    last_scanned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    added_by: Optional[str] = None


class MonthlyReport(BaseModel):
    report_id: str  # "{creator_id}_{YYYY-MM}"
    creator_id: str
    month: str
    payout_amount: Decimal
    total_views: int = 0
    total_premium_views: int = 0
    status: str = "locked"  # "locked" or "unlocked"
    locked_until: datetime
    unlocked_at: Optional[datetime] = None
    unlocked_by: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Scan results
#
# status:
#   "success"   — delta > 0 credited
#   "no_change" — delta == 0 (baseline still updated); counts as a success
#   "failed"    — fetch or apply failed; error_kind names the error class
# ---------------------------------------------------------------------------
class ScanItemResult(BaseModel):
    video_id: str
    creator_id: Optional[str] = None
    status: str
    old_views: Optional[int] = None
    new_views: Optional[int] = None
    view_delta: int = 0
    premium_delta: int = 0
    earnings_delta: Decimal = Decimal("0.00")
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class ScanBatchResult(BaseModel):
    total_selected: int = 0
    succeeded: int = 0
    failed: int = 0
    no_change: int = 0
    total_earnings: Decimal = Decimal("0.00")
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    items: list[ScanItemResult] = []


# ---------------------------------------------------------------------------
# Unlock results
# ---------------------------------------------------------------------------
class UnlockResult(BaseModel):
    report_id: str
    success: bool
    amount: Decimal = Decimal("0.00")
    creator_id: Optional[str] = None
    reason: Optional[str] = None


class UnlockFailure(BaseModel):
    report_id: str
    reason: str


class BulkUnlockResult(BaseModel):
    requested: int = 0
    unlocked: int = 0
    failed: int = 0
    skipped: int = 0  # CAS lost to a concurrent run (unlock_due only)
    total_amount: Decimal = Decimal("0.00")
    unlocked_ids: list[str] = []
    failures: list[UnlockFailure] = []


# ---------------------------------------------------------------------------
# Append-only logs
# ---------------------------------------------------------------------------
class ScanLogEntry(BaseModel):
    id: Optional[int] = None
    started_at: datetime
    finished_at: datetime
    total_selected: int
    succeeded: int
    failed: int
    total_earnings: Decimal = Decimal("0.00")
    lines: list[str] = []


class AuditLogEntry(BaseModel):
    id: Optional[int] = None
    action: str  # e.g. "report_unlocked", "video_added", "withdrawal_approved"
    actor: str
    entity_type: str
    target_id: str
    before: Optional[dict] = None
    after: Optional[dict] = None
    amount: Optional[Decimal] = None
    details: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Other service results
# ---------------------------------------------------------------------------
class ReportGenerationResult(BaseModel):
    month: str
    creators_considered: int = 0
    reports_generated: int = 0
    reports_skipped: int = 0
    total_payout: Decimal = Decimal("0.00")
    report_ids: list[str] = []


class WithdrawalResult(BaseModel):
    creator_id: str
    success: bool
    amount: Decimal = Decimal("0.00")
    available_balance: Optional[Decimal] = None
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# API request / response models
# ---------------------------------------------------------------------------
class ScanRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, gt=0)


class UnlockRequest(BaseModel):
    actor_id: str


class BulkUnlockRequest(BaseModel):
    report_ids: list[str]
    actor_id: str


class GenerateReportsRequest(BaseModel):
    month: Optional[str] = Field(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")


class CreateCreatorRequest(BaseModel):
    creator_id: str
    display_name: Optional[str] = None


class RegisterVideoRequest(BaseModel):
    video_id: str
    creator_id: str
    actor_id: str
    premium_share_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)


class ScanToggleRequest(BaseModel):
    enabled: bool
    actor_id: str


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    actor_id: str


class ExportResponse(BaseModel):
    status: str
    filename: str
    summary: dict
