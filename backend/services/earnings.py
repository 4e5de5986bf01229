"""
Earnings math for the view scanner and report generator.

Pipeline for one scan of one video:
  1. calculate_view_delta(previous, current) → max(0, current - previous)
  2. calculate_premium_views(delta, percent) → floor(delta × percent / 100)
  3. calculate_earnings(premium_views, rate)  → premium / 1000 × rate, in cents

Money rules:
  - All money is Decimal, never float.
  - Earnings are quantized to cents (ROUND_HALF_UP) at the point of crediting.
    The quantized value is what lands on the video and the creator, so the
    sum of scan credits equals the sum of monthly report payouts exactly.
  - The ledger stores integer cents (to_cents / from_cents convert).
  - Premium view counts are integers (floor, never round).

Example (rate $0.30 per 1000 premium views, 7% premium share):
  1,000,000 → 1,150,000 views
  delta = 150,000 → premium = 10,500 → earnings = 10.5 × 0.30 = $3.15
"""

import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
CENT = Decimal("0.01")
VIEWS_PER_MILLE = 1000
PERCENT = 100

Number = Union[int, str, Decimal]


# ===========================================================================
# Step 1: View delta
# ===========================================================================

def calculate_view_delta(previous_views: int, current_views: int) -> int:
    """
    Non-negative increase in raw views between two scans.

    Provider counts are not monotonic (fraud takedowns, recounts), so a
    lower reported count yields 0, never a negative delta.
    """
    return max(0, current_views - previous_views)


# ===========================================================================
# Step 2: Premium views
# ===========================================================================

def calculate_premium_views(view_delta: int, premium_share_percent: Number) -> int:
    """Premium share of newly observed views, floored to a whole view."""
    if view_delta <= 0:
        return 0
    share = Decimal(view_delta) * Decimal(str(premium_share_percent)) / PERCENT
    return math.floor(share)


# ===========================================================================
# Step 3: Earnings
# ===========================================================================

def calculate_earnings(premium_views: int, payout_rate_per_1000: Number) -> Decimal:
    """Earnings for a number of premium views, quantized to cents."""
    if premium_views <= 0:
        return Decimal("0.00")
    raw = Decimal(premium_views) / VIEWS_PER_MILLE * Decimal(str(payout_rate_per_1000))
    return quantize_money(raw)


def quantize_money(amount: Number) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


# ===========================================================================
# Cents conversion (ledger storage unit)
# ===========================================================================

def to_cents(amount: Number) -> int:
    """Convert a money amount to integer cents: Decimal('3.15') → 315."""
    return int(quantize_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-decimal amount: 315 → Decimal('3.15')."""
    return (Decimal(cents or 0) / 100).quantize(CENT)


def format_money(amount: Number) -> str:
    """'$1,234.50' style display string."""
    return f"${quantize_money(amount):,.2f}"


# ===========================================================================
# Lock period helpers
# ===========================================================================

def calculate_lock_end(start: datetime, lock_period_days: int) -> datetime:
    return start + timedelta(days=lock_period_days)


def is_unlockable(locked_until: datetime, now: datetime) -> bool:
    return now >= locked_until


def days_until_unlock(locked_until: datetime, now: datetime) -> int:
    """Whole days remaining until unlock (ceil), 0 once unlockable."""
    remaining = (locked_until - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 86400)
