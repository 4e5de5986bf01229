"""
SQLAlchemy tables for the ledger.

Money columns hold integer cents. Every counter is NOT NULL DEFAULT 0 so an
increment never meets an absent field.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class CreatorORM(Base):
    __tablename__ = "creators"

    creator_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    locked_balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    available_balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    lifetime_earnings_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_withdrawn_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TrackedVideoORM(Base):
    __tablename__ = "tracked_videos"

    video_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    channel_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    last_known_external_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    accrued_tracked_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    accrued_premium_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    lifetime_earnings_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_period_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_period_premium_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_period_earnings_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    # NULL → use the platform default from the rate config
    premium_share_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2, asdecimal=True), nullable=True)
    scan_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    scan_error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_scan_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    added_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_tracked_videos_scan_order", "scan_enabled", "last_scanned_at", "video_id"),
    )


class MonthlyReportORM(Base):
    __tablename__ = "monthly_reports"

    report_id: Mapped[str] = mapped_column(String(160), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    payout_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_premium_views: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="locked")
    locked_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    unlocked_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_monthly_reports_status_locked_until", "status", "locked_until"),
    )


class ScanLogORM(Base):
    __tablename__ = "scan_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_selected: Mapped[int] = mapped_column(Integer, nullable=False)
    succeeded: Mapped[int] = mapped_column(Integer, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, nullable=False)
    total_earnings_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # JSON list, one line per video
    lines: Mapped[str] = mapped_column(Text, nullable=False)


class AuditLogORM(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    before: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SettingORM(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
