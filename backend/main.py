"""
EverNet earnings pipeline — admin FastAPI application.

Endpoints:

  POST  /api/scan                        runScanNow(batch_size) → ScanBatchResult
  POST  /api/reports/{report_id}/unlock  unlockOne → UnlockResult
  POST  /api/reports/unlock              unlockMany → BulkUnlockResult
  POST  /api/reports/unlock-due          unlock every matured report now
  POST  /api/reports/generate            monthly report generation
  GET   /api/reports/export              write the .xlsx export
  GET   /api/download/{filename}         serve a generated .xlsx file
  POST  /api/creators                    create a zero-balance creator
  GET   /api/creators/{creator_id}       creator balances
  POST  /api/creators/{id}/withdrawals   approve a withdrawal
  POST  /api/videos                      register a video for tracking
  PATCH /api/videos/{video_id}/scan      enable / disable scanning
  GET   /api/audit-logs                  newest audit entries
  GET   /api/scan-logs                   newest scan logs

Error handling:
  - Per-item failures (one video, one report) come back inside the result
    payload with a reason; they are never HTTP errors
  - Ledger unreachable            → 503
  - Rate configuration invalid    → 500
  - Unknown creator / video / file → 404
  - Duplicate creator / video      → 409
  - Provider failure on a synchronous single-video lookup → 502
"""

import os
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

import config
from database import init_db, make_engine
from models.schemas import (
    AuditLogEntry,
    BulkUnlockRequest,
    BulkUnlockResult,
    CreateCreatorRequest,
    CreatorAccount,
    ExportResponse,
    GenerateReportsRequest,
    RegisterVideoRequest,
    ReportGenerationResult,
    ScanBatchResult,
    ScanLogEntry,
    ScanRequest,
    ScanToggleRequest,
    TrackedVideo,
    UnlockRequest,
    UnlockResult,
    WithdrawalRequest,
    WithdrawalResult,
)
from services import registry
from services.errors import (
    EverNetError,
    InsufficientBalance,
    InvalidConfiguration,
    LedgerConflict,
    PersistenceUnavailable,
    ProviderUnavailable,
    RecordNotFound,
    VideoNotFound,
)
from services.excel_export import generate_report
from services.ledger import LedgerStore
from services.monthly_reports import generate_monthly_reports
from services.rate_config import seed_rate_config
from services.scanner import ScanEngine
from services.unlocker import SYSTEM_ACTOR, UnlockEngine
from services.withdrawals import withdraw
from services.youtube import YouTubeClient

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared collaborators (created on first use)
# ---------------------------------------------------------------------------
_store: Optional[LedgerStore] = None
_client: Optional[YouTubeClient] = None


def _get_store() -> LedgerStore:
    global _store
    if _store is None:
        _store = LedgerStore(make_engine())
    return _store


def _get_client() -> YouTubeClient:
    global _client
    if _client is None:
        _client = YouTubeClient()
    return _client


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="EverNet Earnings Pipeline",
    description="View scanning, locked earnings and payout unlocks for creators",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    store = _get_store()
    init_db(store.engine)
    if seed_rate_config(store):
        logger.info("Rate configuration was missing; seeded from environment")
    os.makedirs(config.OUTPUT_DIR, exist_ok=True)


def _http_error(status_code: int, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"status": "error", "message": message},
    )


def _run_level_error(e: EverNetError) -> HTTPException:
    """Map an error that escaped a service call to its HTTP status."""
    if isinstance(e, PersistenceUnavailable):
        logger.error(f"Ledger unavailable: {e.message}")
        return _http_error(503, e.message)
    if isinstance(e, InvalidConfiguration):
        logger.error(f"Invalid rate configuration: {e.message}")
        return _http_error(500, e.message)
    if isinstance(e, (RecordNotFound, VideoNotFound)):
        return _http_error(404, e.message)
    if isinstance(e, (LedgerConflict, InsufficientBalance)):
        return _http_error(409, e.message)
    if isinstance(e, ProviderUnavailable):
        logger.error(f"Provider unavailable: {e.message}")
        return _http_error(502, e.message)
    logger.error(f"Unexpected pipeline error: {e.message}")
    return _http_error(500, e.message)


# ===========================================================================
# POST /api/scan — runScanNow
# ===========================================================================

@app.post("/api/scan", response_model=ScanBatchResult)
def run_scan_now(request: Optional[ScanRequest] = None):
    """
    Run one scan batch synchronously.

    Per-video failures are reported in `items`; only run-level errors
    (rates unreadable, ledger down) become HTTP errors.
    """
    batch_size = request.batch_size if request else None
    try:
        return ScanEngine(_get_store(), _get_client()).run_batch(batch_size)
    except EverNetError as e:
        raise _run_level_error(e)


# ===========================================================================
# Report unlocks
# ===========================================================================

@app.post("/api/reports/unlock", response_model=BulkUnlockResult)
def unlock_many(request: BulkUnlockRequest):
    try:
        return UnlockEngine(_get_store()).unlock_many(request.report_ids, request.actor_id)
    except EverNetError as e:
        raise _run_level_error(e)


@app.post("/api/reports/unlock-due", response_model=BulkUnlockResult)
def unlock_due(request: Optional[UnlockRequest] = None):
    actor = request.actor_id if request else SYSTEM_ACTOR
    try:
        return UnlockEngine(_get_store()).unlock_due(actor=actor)
    except EverNetError as e:
        raise _run_level_error(e)


@app.post("/api/reports/{report_id}/unlock", response_model=UnlockResult)
def unlock_one(report_id: str, request: UnlockRequest):
    """
    Unlock a single report. A rejection ("report already unlocked",
    "still locked until ...") is a 200 with success=false and a reason.
    """
    try:
        return UnlockEngine(_get_store()).unlock_one(report_id, request.actor_id)
    except EverNetError as e:
        raise _run_level_error(e)


# ===========================================================================
# Monthly reports + export
# ===========================================================================

@app.post("/api/reports/generate", response_model=ReportGenerationResult)
def generate_reports(request: Optional[GenerateReportsRequest] = None):
    month = request.month if request else None
    try:
        return generate_monthly_reports(_get_store(), month=month)
    except EverNetError as e:
        raise _run_level_error(e)


@app.get("/api/reports/export", response_model=ExportResponse)
def export_reports():
    """Write the monthly reports / creator balances workbook and return its filename."""
    store = _get_store()
    try:
        reports = store.list_reports()
        creators = store.list_creators()
    except EverNetError as e:
        raise _run_level_error(e)

    filepath = generate_report(reports, creators, export_date=date.today())

    summary = {
        "total_reports": len(reports),
        "locked_reports": sum(1 for r in reports if r.status == "locked"),
        "unlocked_reports": sum(1 for r in reports if r.status == "unlocked"),
        "total_creators": len(creators),
        "total_payout": str(sum((r.payout_amount for r in reports), Decimal("0.00"))),
        "total_locked_balance": str(sum((c.locked_balance for c in creators), Decimal("0.00"))),
        "total_available_balance": str(sum((c.available_balance for c in creators), Decimal("0.00"))),
    }
    return ExportResponse(status="success", filename=os.path.basename(filepath), summary=summary)


@app.get("/api/download/{filename}")
def download_report(filename: str):
    """
    Download a generated .xlsx export from the output directory.

    Returns 404 if the file doesn't exist.
    """
    file_path = os.path.join(config.OUTPUT_DIR, os.path.basename(filename))

    if not os.path.exists(file_path):
        raise _http_error(404, f"Report not found: {filename}")

    return FileResponse(
        file_path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="{os.path.basename(filename)}"',
        },
    )


# ===========================================================================
# Creators + withdrawals
# ===========================================================================

@app.post("/api/creators", response_model=CreatorAccount)
def create_creator(request: CreateCreatorRequest):
    try:
        return registry.create_creator(_get_store(), request.creator_id, request.display_name)
    except EverNetError as e:
        raise _run_level_error(e)


@app.get("/api/creators/{creator_id}", response_model=CreatorAccount)
def get_creator(creator_id: str):
    try:
        creator = _get_store().get_creator(creator_id)
    except EverNetError as e:
        raise _run_level_error(e)
    if creator is None:
        raise _http_error(404, f"creator not found: {creator_id}")
    return creator


@app.post("/api/creators/{creator_id}/withdrawals", response_model=WithdrawalResult)
def create_withdrawal(creator_id: str, request: WithdrawalRequest):
    try:
        return withdraw(_get_store(), creator_id, request.amount, request.actor_id)
    except EverNetError as e:
        raise _run_level_error(e)


# ===========================================================================
# Tracked videos
# ===========================================================================

@app.post("/api/videos", response_model=TrackedVideo)
def register_video(request: RegisterVideoRequest):
    try:
        return registry.register_video(
            _get_store(),
            _get_client(),
            video_id=request.video_id,
            creator_id=request.creator_id,
            actor=request.actor_id,
            premium_share_percent=request.premium_share_percent,
        )
    except EverNetError as e:
        raise _run_level_error(e)


@app.patch("/api/videos/{video_id}/scan", response_model=TrackedVideo)
def toggle_scan(video_id: str, request: ScanToggleRequest):
    try:
        return registry.set_scan_enabled(_get_store(), video_id, request.enabled, request.actor_id)
    except EverNetError as e:
        raise _run_level_error(e)


# ===========================================================================
# Logs
# ===========================================================================

@app.get("/api/audit-logs", response_model=list[AuditLogEntry])
def list_audit_logs(limit: int = 100, target_id: Optional[str] = None):
    try:
        return _get_store().list_audit_logs(limit=limit, target_id=target_id)
    except EverNetError as e:
        raise _run_level_error(e)


@app.get("/api/scan-logs", response_model=list[ScanLogEntry])
def list_scan_logs(limit: int = 50):
    try:
        return _get_store().list_scan_logs(limit=limit)
    except EverNetError as e:
        raise _run_level_error(e)


# ===========================================================================
# Run with: python main.py
# ===========================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
