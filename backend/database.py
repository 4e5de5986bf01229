"""
SQLAlchemy engine and declarative base for the ledger database.

Datetimes are stored as naive UTC (SQLite has no tz support) and handed
back to the domain as aware UTC.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

import config


class Base(DeclarativeBase):
    """Shared declarative base for all ledger tables."""

    pass


def make_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    url = url or config.DATABASE_URL
    connect_args = {}
    if url.startswith("sqlite"):
        # Scan workers share the engine across threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, echo=echo, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    import models.db_models  # noqa: F401 — register tables on Base.metadata

    Base.metadata.create_all(engine)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def from_db_time(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
