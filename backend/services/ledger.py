"""
LedgerStore — the only mutation path for balances and video counters.

All numeric mutations are single atomic UPDATE statements of the form
  SET col = col + :delta WHERE <key> [AND <precondition>]
so concurrent increments compose by addition instead of overwriting.
A rowcount of 0 means either the record is missing (RecordNotFound) or the
precondition failed (LedgerConflict, or InsufficientBalance for a guarded debit).

Primitives:
  - increment_video(id, increments, set_fields, expected)
  - increment_creator_balance(id, field, delta)
  - transition_report(id, from_status, to_status, extra)      — CAS
  - apply_scan(...)          — read-modify-write on the view baseline
  - unlock_report(...)       — CAS + locked→available transfer + audit, one txn
  - create_monthly_report(...) — snapshot + reset of current-period counters
  - withdraw(...)            — guarded available-balance debit

Money crosses this boundary as Decimal and is stored as integer cents.
Database connectivity errors are raised as PersistenceUnavailable.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import func, insert, nulls_first, or_, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from database import from_db_time, to_db_time, utcnow
from models.db_models import (
    AuditLogORM,
    CreatorORM,
    MonthlyReportORM,
    ScanLogORM,
    SettingORM,
    TrackedVideoORM,
)
from models.schemas import (
    AuditLogEntry,
    CreatorAccount,
    MonthlyReport,
    ScanLogEntry,
    TrackedVideo,
)
from services.earnings import from_cents, to_cents
from services.errors import (
    InvalidConfiguration,
    InsufficientBalance,
    LedgerConflict,
    PersistenceUnavailable,
    RecordNotFound,
)

logger = logging.getLogger(__name__)

_creators = CreatorORM.__table__
_videos = TrackedVideoORM.__table__
_reports = MonthlyReportORM.__table__
_scan_logs = ScanLogORM.__table__
_audit_logs = AuditLogORM.__table__
_settings = SettingORM.__table__

# ---------------------------------------------------------------------------
# Field whitelists for the generic increment primitives
# ---------------------------------------------------------------------------
VIDEO_COUNTERS = {
    "accrued_tracked_views",
    "accrued_premium_views",
    "lifetime_earnings_cents",
    "current_period_views",
    "current_period_premium_views",
    "current_period_earnings_cents",
    "scan_error_count",
}
VIDEO_SETTABLE = {
    "last_known_external_views",
    "last_scanned_at",
    "last_scan_error",
    "scan_error_count",
    "scan_enabled",
    "title",
    "channel_id",
    "published_at",
}
CREATOR_BALANCES = {
    "locked_balance": "locked_balance_cents",
    "available_balance": "available_balance_cents",
    "lifetime_earnings": "lifetime_earnings_cents",
    "total_withdrawn": "total_withdrawn_cents",
}

REPORT_LOCKED = "locked"
REPORT_UNLOCKED = "unlocked"


class LedgerStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        """One database transaction; commits on exit, rolls back on error."""
        try:
            with self._engine.begin() as conn:
                yield conn
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Ledger database unavailable: {e}")
            raise PersistenceUnavailable(f"ledger database unavailable: {e.orig}") from e

    # =======================================================================
    # Creators
    # =======================================================================

    def create_creator(
        self,
        creator_id: str,
        display_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CreatorAccount:
        now = to_db_time(now or utcnow())
        try:
            with self._transaction() as conn:
                conn.execute(insert(_creators).values(
                    creator_id=creator_id,
                    display_name=display_name,
                    locked_balance_cents=0,
                    available_balance_cents=0,
                    lifetime_earnings_cents=0,
                    total_withdrawn_cents=0,
                    created_at=now,
                    updated_at=now,
                ))
        except IntegrityError as e:
            raise LedgerConflict(f"creator already exists: {creator_id}") from e
        return self.get_creator(creator_id)

    def get_creator(self, creator_id: str) -> Optional[CreatorAccount]:
        with self._transaction() as conn:
            row = conn.execute(
                select(_creators).where(_creators.c.creator_id == creator_id)
            ).first()
        return _row_to_creator(row) if row else None

    def list_creators(self) -> list[CreatorAccount]:
        with self._transaction() as conn:
            rows = conn.execute(select(_creators).order_by(_creators.c.creator_id)).all()
        return [_row_to_creator(r) for r in rows]

    def increment_creator_balance(self, creator_id: str, field: str, delta: Decimal) -> None:
        """
        Atomically add `delta` to one balance field.

        A negative delta is applied only if the field stays >= 0,
        otherwise InsufficientBalance.
        """
        with self._transaction() as conn:
            self._increment_creator(conn, creator_id, {field: to_cents(delta)})

    def credit_scan_earnings(self, creator_id: str, amount: Decimal) -> None:
        """Scan credit: locked balance and lifetime earnings grow together."""
        cents = to_cents(amount)
        with self._transaction() as conn:
            self._increment_creator(
                conn, creator_id,
                {"locked_balance": cents, "lifetime_earnings": cents},
            )

    def _increment_creator(self, conn: Connection, creator_id: str, deltas: dict[str, int]) -> None:
        values = {"updated_at": to_db_time(utcnow())}
        stmt = update(_creators).where(_creators.c.creator_id == creator_id)

        for field, cents in deltas.items():
            if field not in CREATOR_BALANCES:
                raise ValueError(f"not a creator balance field: {field}")
            col = _creators.c[CREATOR_BALANCES[field]]
            values[col.name] = col + cents
            if cents < 0:
                stmt = stmt.where(col >= -cents)

        result = conn.execute(stmt.values(**values))
        if result.rowcount == 0:
            if not _exists(conn, _creators.c.creator_id, creator_id):
                raise RecordNotFound("creator", creator_id)
            debited = [field.replace("_", " ") for field, cents in deltas.items() if cents < 0]
            raise InsufficientBalance(
                f"insufficient {' and '.join(debited)} for creator {creator_id}"
            )

    # =======================================================================
    # Tracked videos
    # =======================================================================

    def add_video(self, video: TrackedVideo) -> TrackedVideo:
        now = to_db_time(video.created_at or utcnow())
        try:
            with self._transaction() as conn:
                conn.execute(insert(_videos).values(
                    video_id=video.video_id,
                    creator_id=video.creator_id,
                    title=video.title,
                    channel_id=video.channel_id,
                    published_at=to_db_time(video.published_at),
                    last_known_external_views=video.last_known_external_views,
                    accrued_tracked_views=0,
                    accrued_premium_views=0,
                    lifetime_earnings_cents=0,
                    current_period_views=0,
                    current_period_premium_views=0,
                    current_period_earnings_cents=0,
                    premium_share_percent=video.premium_share_percent,
                    scan_enabled=video.scan_enabled,
                    scan_error_count=0,
                    last_scanned_at=to_db_time(video.last_scanned_at),
                    created_at=now,
                    added_by=video.added_by,
                ))
        except IntegrityError as e:
            raise LedgerConflict(f"video is already tracked: {video.video_id}") from e
        return self.get_video(video.video_id)

    def get_video(self, video_id: str) -> Optional[TrackedVideo]:
        with self._transaction() as conn:
            row = conn.execute(select(_videos).where(_videos.c.video_id == video_id)).first()
        return _row_to_video(row) if row else None

    def list_videos(self, creator_id: Optional[str] = None) -> list[TrackedVideo]:
        stmt = select(_videos).order_by(_videos.c.video_id)
        if creator_id is not None:
            stmt = stmt.where(_videos.c.creator_id == creator_id)
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_video(r) for r in rows]

    def select_scannable_videos(self, limit: int) -> list[TrackedVideo]:
        """
        Up to `limit` scan-enabled videos, never-scanned first, then oldest
        scan first, ties broken by video_id. Deterministic for a given state.
        """
        stmt = (
            select(_videos)
            .where(_videos.c.scan_enabled.is_(True))
            .order_by(nulls_first(_videos.c.last_scanned_at.asc()), _videos.c.video_id)
            .limit(limit)
        )
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_video(r) for r in rows]

    def increment_video(
        self,
        video_id: str,
        increments: dict[str, int],
        set_fields: Optional[dict] = None,
        expected: Optional[dict] = None,
    ) -> None:
        """
        Atomically add `increments` and assign `set_fields` on one video.

        `expected` makes it a compare-and-swap: the update only applies if
        every listed field currently holds the given value.
        """
        with self._transaction() as conn:
            self._increment_video(conn, video_id, increments, set_fields or {}, expected or {})

    def _increment_video(
        self,
        conn: Connection,
        video_id: str,
        increments: dict[str, int],
        set_fields: dict,
        expected: dict,
    ) -> None:
        values = {}
        for field, delta in increments.items():
            if field not in VIDEO_COUNTERS:
                raise ValueError(f"not a video counter: {field}")
            values[field] = _videos.c[field] + int(delta)
        for field, value in set_fields.items():
            if field not in VIDEO_SETTABLE:
                raise ValueError(f"not a settable video field: {field}")
            values[field] = to_db_time(value) if isinstance(value, datetime) else value

        stmt = update(_videos).where(_videos.c.video_id == video_id)
        for field, value in expected.items():
            stmt = stmt.where(_videos.c[field] == value)

        result = conn.execute(stmt.values(**values))
        if result.rowcount == 0:
            if not _exists(conn, _videos.c.video_id, video_id):
                raise RecordNotFound("video", video_id)
            raise LedgerConflict(f"video {video_id} changed concurrently (expected {expected})")

    def apply_scan(
        self,
        video_id: str,
        baseline_views: int,
        current_views: int,
        view_delta: int,
        premium_delta: int,
        earnings: Decimal,
        now: datetime,
    ) -> None:
        """
        Record one scan result on a video.

        The new baseline is written in the same UPDATE that checks the old
        one, so two overlapping scans can never both credit a delta computed
        from the same stale baseline: the loser gets LedgerConflict.
        """
        cents = to_cents(earnings)
        self.increment_video(
            video_id,
            increments={
                "accrued_tracked_views": view_delta,
                "accrued_premium_views": premium_delta,
                "lifetime_earnings_cents": cents,
                "current_period_views": view_delta,
                "current_period_premium_views": premium_delta,
                "current_period_earnings_cents": cents,
            },
            set_fields={
                "last_known_external_views": current_views,
                "last_scanned_at": now,
                "scan_error_count": 0,
                "last_scan_error": None,
            },
            expected={"last_known_external_views": baseline_views},
        )

    def record_scan_failure(
        self,
        video_id: str,
        message: str,
        scanned_at: Optional[datetime] = None,
    ) -> None:
        """Bump the error counter for manual review. Never disables the video."""
        set_fields = {"last_scan_error": message[:500]}
        if scanned_at is not None:
            set_fields["last_scanned_at"] = scanned_at
        self.increment_video(video_id, {"scan_error_count": 1}, set_fields)

    def set_scan_enabled(self, video_id: str, enabled: bool, actor: str, now: Optional[datetime] = None) -> TrackedVideo:
        now = now or utcnow()
        with self._transaction() as conn:
            row = conn.execute(select(_videos).where(_videos.c.video_id == video_id)).first()
            if row is None:
                raise RecordNotFound("video", video_id)
            self._increment_video(conn, video_id, {}, {"scan_enabled": enabled}, {})
            self._append_audit(conn, AuditLogEntry(
                action="video_scan_enabled" if enabled else "video_scan_disabled",
                actor=actor,
                entity_type="scanned_video",
                target_id=video_id,
                before={"scan_enabled": bool(row.scan_enabled)},
                after={"scan_enabled": enabled},
                created_at=now,
            ))
        return self.get_video(video_id)

    # =======================================================================
    # Monthly reports
    # =======================================================================

    def get_report(self, report_id: str) -> Optional[MonthlyReport]:
        with self._transaction() as conn:
            row = conn.execute(select(_reports).where(_reports.c.report_id == report_id)).first()
        return _row_to_report(row) if row else None

    def list_reports(
        self,
        status: Optional[str] = None,
        creator_id: Optional[str] = None,
    ) -> list[MonthlyReport]:
        stmt = select(_reports).order_by(_reports.c.month.desc(), _reports.c.report_id)
        if status is not None:
            stmt = stmt.where(_reports.c.status == status)
        if creator_id is not None:
            stmt = stmt.where(_reports.c.creator_id == creator_id)
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_report(r) for r in rows]

    def list_due_reports(self, now: datetime) -> list[MonthlyReport]:
        """Locked reports whose lock period has expired, oldest first."""
        stmt = (
            select(_reports)
            .where(_reports.c.status == REPORT_LOCKED)
            .where(_reports.c.locked_until <= to_db_time(now))
            .order_by(_reports.c.locked_until, _reports.c.report_id)
        )
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_report(r) for r in rows]

    def transition_report(
        self,
        report_id: str,
        from_status: str,
        to_status: str,
        extra: Optional[dict] = None,
    ) -> None:
        """Compare-and-swap on report status. LedgerConflict if status != from_status."""
        with self._transaction() as conn:
            self._transition_report(conn, report_id, from_status, to_status, extra or {})

    def _transition_report(
        self,
        conn: Connection,
        report_id: str,
        from_status: str,
        to_status: str,
        extra: dict,
        due_by: Optional[datetime] = None,
    ) -> None:
        values = {"status": to_status}
        for field, value in extra.items():
            if field not in ("unlocked_at", "unlocked_by"):
                raise ValueError(f"not a report transition field: {field}")
            values[field] = to_db_time(value) if isinstance(value, datetime) else value

        stmt = (
            update(_reports)
            .where(_reports.c.report_id == report_id)
            .where(_reports.c.status == from_status)
        )
        if due_by is not None:
            stmt = stmt.where(_reports.c.locked_until <= to_db_time(due_by))

        result = conn.execute(stmt.values(**values))
        if result.rowcount == 0:
            row = conn.execute(select(_reports).where(_reports.c.report_id == report_id)).first()
            if row is None:
                raise RecordNotFound("report", report_id)
            if row.status != from_status:
                raise LedgerConflict(f"report already {row.status}")
            raise LedgerConflict(
                f"still locked until {from_db_time(row.locked_until).date().isoformat()}"
            )

    def unlock_report(self, report_id: str, now: datetime, actor: str) -> MonthlyReport:
        """
        locked → unlocked, then move payout_amount from locked to available,
        then append the audit entry. One transaction: the transfer happens
        only as a consequence of a successful CAS, so exactly once per report.

        Raises:
            RecordNotFound: no such report
            LedgerConflict: already unlocked, or lock period not over
            InsufficientBalance: creator's locked balance cannot cover the payout
        """
        with self._transaction() as conn:
            # CAS first so the write lock is taken before anything is read
            self._transition_report(
                conn, report_id, REPORT_LOCKED, REPORT_UNLOCKED,
                {"unlocked_at": now, "unlocked_by": actor},
                due_by=now,
            )
            row = conn.execute(select(_reports).where(_reports.c.report_id == report_id)).one()
            amount = row.payout_amount_cents
            try:
                self._increment_creator(
                    conn, row.creator_id,
                    {"locked_balance": -amount, "available_balance": amount},
                )
            except InsufficientBalance as e:
                # Raising rolls back the CAS; the report stays locked
                raise InsufficientBalance(
                    f"locked balance below payout amount (${from_cents(amount):,.2f})"
                ) from e
            self._append_audit(conn, AuditLogEntry(
                action="report_unlocked",
                actor=actor,
                entity_type="report",
                target_id=report_id,
                before={"status": REPORT_LOCKED},
                after={"status": REPORT_UNLOCKED, "unlocked_at": now.isoformat(), "unlocked_by": actor},
                amount=from_cents(amount),
                details=f"Report {report_id} unlocked, ${from_cents(amount)} moved to available balance",
                created_at=now,
            ))
        return _row_to_report(row)

    def create_monthly_report(
        self,
        creator_id: str,
        month: str,
        locked_until: datetime,
        now: datetime,
    ) -> Optional[MonthlyReport]:
        """
        Snapshot a creator's current-period counters into a locked report.

        The snapshot is subtracted from each video (not zeroed) so scan
        increments that land meanwhile carry into the next period.
        Returns None when the report already exists or there is nothing to pay.
        """
        report_id = f"{creator_id}_{month}"
        try:
            with self._transaction() as conn:
                if _exists(conn, _reports.c.report_id, report_id):
                    logger.info(f"Report {report_id} already exists, skipping")
                    return None

                rows = conn.execute(
                    select(
                        _videos.c.video_id,
                        _videos.c.current_period_views,
                        _videos.c.current_period_premium_views,
                        _videos.c.current_period_earnings_cents,
                    )
                    .where(_videos.c.creator_id == creator_id)
                    .where(or_(
                        _videos.c.current_period_views > 0,
                        _videos.c.current_period_earnings_cents > 0,
                    ))
                    .order_by(_videos.c.video_id)
                ).all()

                total_cents = sum(r.current_period_earnings_cents for r in rows)
                if total_cents <= 0:
                    return None

                for r in rows:
                    self._increment_video(
                        conn, r.video_id,
                        {
                            "current_period_views": -r.current_period_views,
                            "current_period_premium_views": -r.current_period_premium_views,
                            "current_period_earnings_cents": -r.current_period_earnings_cents,
                        },
                        {}, {},
                    )

                conn.execute(insert(_reports).values(
                    report_id=report_id,
                    creator_id=creator_id,
                    month=month,
                    payout_amount_cents=total_cents,
                    total_views=sum(r.current_period_views for r in rows),
                    total_premium_views=sum(r.current_period_premium_views for r in rows),
                    status=REPORT_LOCKED,
                    locked_until=to_db_time(locked_until),
                    created_at=to_db_time(now),
                ))
        except IntegrityError:
            # Lost the race to a concurrent generator; its snapshot stands
            logger.info(f"Report {report_id} created concurrently, skipping")
            return None
        return self.get_report(report_id)

    # =======================================================================
    # Withdrawals
    # =======================================================================

    def withdraw(self, creator_id: str, amount: Decimal, actor: str, now: Optional[datetime] = None) -> CreatorAccount:
        """available -= amount, total_withdrawn += amount; InsufficientBalance if short."""
        now = now or utcnow()
        cents = to_cents(amount)
        with self._transaction() as conn:
            self._increment_creator(
                conn, creator_id,
                {"available_balance": -cents, "total_withdrawn": cents},
            )
            self._append_audit(conn, AuditLogEntry(
                action="withdrawal_approved",
                actor=actor,
                entity_type="creator",
                target_id=creator_id,
                amount=from_cents(cents),
                details=f"Withdrawal of ${from_cents(cents)} approved",
                created_at=now,
            ))
        return self.get_creator(creator_id)

    # =======================================================================
    # Append-only logs
    # =======================================================================

    def append_scan_log(self, entry: ScanLogEntry) -> int:
        with self._transaction() as conn:
            result = conn.execute(insert(_scan_logs).values(
                started_at=to_db_time(entry.started_at),
                finished_at=to_db_time(entry.finished_at),
                total_selected=entry.total_selected,
                succeeded=entry.succeeded,
                failed=entry.failed,
                total_earnings_cents=to_cents(entry.total_earnings),
                lines=json.dumps(entry.lines),
            ))
            return result.inserted_primary_key[0]

    def list_scan_logs(self, limit: int = 50) -> list[ScanLogEntry]:
        stmt = select(_scan_logs).order_by(_scan_logs.c.id.desc()).limit(limit)
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_scan_log(r) for r in rows]

    def append_audit_log(self, entry: AuditLogEntry) -> int:
        with self._transaction() as conn:
            return self._append_audit(conn, entry)

    def _append_audit(self, conn: Connection, entry: AuditLogEntry) -> int:
        result = conn.execute(insert(_audit_logs).values(
            action=entry.action,
            actor=entry.actor,
            entity_type=entry.entity_type,
            target_id=entry.target_id,
            before=_dump_json(entry.before),
            after=_dump_json(entry.after),
            amount_cents=to_cents(entry.amount) if entry.amount is not None else None,
            details=entry.details,
            created_at=to_db_time(entry.created_at or utcnow()),
        ))
        return result.inserted_primary_key[0]

    def list_audit_logs(self, limit: int = 100, target_id: Optional[str] = None) -> list[AuditLogEntry]:
        stmt = select(_audit_logs).order_by(_audit_logs.c.id.desc()).limit(limit)
        if target_id is not None:
            stmt = stmt.where(_audit_logs.c.target_id == target_id)
        with self._transaction() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_audit(r) for r in rows]

    def count_audit_logs(self) -> int:
        with self._transaction() as conn:
            return conn.execute(select(func.count()).select_from(_audit_logs)).scalar_one()

    # =======================================================================
    # Settings
    # =======================================================================

    def read_settings(self, key: str) -> Optional[dict]:
        with self._transaction() as conn:
            value = conn.execute(
                select(_settings.c.value).where(_settings.c.key == key)
            ).scalar_one_or_none()
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"settings record '{key}' is not valid JSON") from e

    def write_settings(self, key: str, value: dict) -> None:
        payload = json.dumps(value)
        now = to_db_time(utcnow())
        with self._transaction() as conn:
            result = conn.execute(
                update(_settings).where(_settings.c.key == key).values(value=payload, updated_at=now)
            )
            if result.rowcount == 0:
                conn.execute(insert(_settings).values(key=key, value=payload, updated_at=now))


# ===========================================================================
# Row mapping helpers
# ===========================================================================

def _exists(conn: Connection, key_col, key: str) -> bool:
    return conn.execute(select(key_col).where(key_col == key)).first() is not None


def _dump_json(value: Optional[dict]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _load_json(value: Optional[str]) -> Optional[dict]:
    if value is None:
        return None
    return json.loads(value)


def _row_to_creator(row) -> CreatorAccount:
    return CreatorAccount(
        creator_id=row.creator_id,
        display_name=row.display_name,
        locked_balance=from_cents(row.locked_balance_cents),
        available_balance=from_cents(row.available_balance_cents),
        lifetime_earnings=from_cents(row.lifetime_earnings_cents),
        total_withdrawn=from_cents(row.total_withdrawn_cents),
        created_at=from_db_time(row.created_at),
        updated_at=from_db_time(row.updated_at),
    )


def _row_to_video(row) -> TrackedVideo:
    share = row.premium_share_percent
    return TrackedVideo(
        video_id=row.video_id,
        creator_id=row.creator_id,
        title=row.title,
        channel_id=row.channel_id,
        published_at=from_db_time(row.published_at),
        last_known_external_views=row.last_known_external_views,
        accrued_tracked_views=row.accrued_tracked_views,
        accrued_premium_views=row.accrued_premium_views,
        lifetime_earnings=from_cents(row.lifetime_earnings_cents),
        current_period_views=row.current_period_views,
        current_period_premium_views=row.current_period_premium_views,
        current_period_earnings=from_cents(row.current_period_earnings_cents),
        premium_share_percent=Decimal(str(share)) if share is not None else None,
        scan_enabled=bool(row.scan_enabled),
        scan_error_count=row.scan_error_count,
        last_scan_error=row.last_scan_error,
        last_scanned_at=from_db_time(row.last_scanned_at),
        created_at=from_db_time(row.created_at),
        added_by=row.added_by,
    )


def _row_to_report(row) -> MonthlyReport:
    return MonthlyReport(
        report_id=row.report_id,
        creator_id=row.creator_id,
        month=row.month,
        payout_amount=from_cents(row.payout_amount_cents),
        total_views=row.total_views,
        total_premium_views=row.total_premium_views,
        status=row.status,
        locked_until=from_db_time(row.locked_until),
        unlocked_at=from_db_time(row.unlocked_at),
        unlocked_by=row.unlocked_by,
        created_at=from_db_time(row.created_at),
    )


def _row_to_scan_log(row) -> ScanLogEntry:
    return ScanLogEntry(
        id=row.id,
        started_at=from_db_time(row.started_at),
        finished_at=from_db_time(row.finished_at),
        total_selected=row.total_selected,
        succeeded=row.succeeded,
        failed=row.failed,
        total_earnings=from_cents(row.total_earnings_cents),
        lines=json.loads(row.lines),
    )


def _row_to_audit(row) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        action=row.action,
        actor=row.actor,
        entity_type=row.entity_type,
        target_id=row.target_id,
        before=_load_json(row.before),
        after=_load_json(row.after),
        amount=from_cents(row.amount_cents) if row.amount_cents is not None else None,
        details=row.details,
        created_at=from_db_time(row.created_at),
    )
