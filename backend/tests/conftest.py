"""
Shared test fixtures for the EverNet earnings pipeline test suite.

Every test gets its own on-disk SQLite ledger under tmp_path (on-disk rather
than :memory: so the scan/unlock thread pools share one database), with the
tables created from the SQLAlchemy metadata. `seeded_store` additionally
holds the standard rate record: $0.30 per 1000 premium views, 7% premium
share, 90-day lock, $50 minimum withdrawal.
"""

import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from database import init_db, make_engine
from services.ledger import LedgerStore
from services.rate_config import RateConfig, save_rate_config


STANDARD_RATES = RateConfig(
    payout_rate_per_1000=Decimal("0.30"),
    default_premium_share_percent=Decimal("7"),
    lock_period_days=90,
    minimum_withdrawal=Decimal("50.00"),
)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    """Empty ledger, no rate record."""
    return LedgerStore(engine)


@pytest.fixture
def seeded_store(store):
    """Ledger with the standard rate record."""
    save_rate_config(store, STANDARD_RATES)
    return store
