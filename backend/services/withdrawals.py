"""
Creator withdrawals from the available balance.

Rules:
  - amount must be at least the configured minimum_withdrawal
  - amount must not exceed the available balance
  - the debit is one guarded UPDATE (available >= amount), so two racing
    withdrawals can never overdraw the account
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from models.schemas import WithdrawalResult
from services.earnings import quantize_money
from services.errors import InsufficientBalance, RecordNotFound
from services.rate_config import load_rate_config

logger = logging.getLogger(__name__)


def withdraw(
    store,
    creator_id: str,
    amount: Decimal,
    actor: str,
    now: Optional[datetime] = None,
) -> WithdrawalResult:
    """
    Approve a withdrawal. Rejections come back as success=False with a reason.

    Raises:
        RecordNotFound: unknown creator
        InvalidConfiguration / PersistenceUnavailable: run-level failures
    """
    amount = quantize_money(amount)
    rates = load_rate_config(store)

    creator = store.get_creator(creator_id)
    if creator is None:
        raise RecordNotFound("creator", creator_id)

    if amount <= 0:
        return _rejected(creator_id, amount, creator.available_balance, "amount must be positive")
    if amount < rates.minimum_withdrawal:
        return _rejected(
            creator_id, amount, creator.available_balance,
            f"minimum withdrawal is ${rates.minimum_withdrawal:,.2f}",
        )
    if amount > creator.available_balance:
        return _rejected(
            creator_id, amount, creator.available_balance,
            f"insufficient available balance (${creator.available_balance:,.2f})",
        )

    try:
        updated = store.withdraw(creator_id, amount, actor, now)
    except InsufficientBalance:
        # Balance moved between the check and the guarded debit
        fresh = store.get_creator(creator_id)
        return _rejected(
            creator_id, amount, fresh.available_balance if fresh else None,
            "insufficient available balance",
        )

    logger.info(
        f"Withdrawal approved for {creator_id} by {actor}: ${amount:,.2f} "
        f"(available now ${updated.available_balance:,.2f})"
    )
    return WithdrawalResult(
        creator_id=creator_id,
        success=True,
        amount=amount,
        available_balance=updated.available_balance,
    )


def _rejected(
    creator_id: str,
    amount: Decimal,
    available: Optional[Decimal],
    reason: str,
) -> WithdrawalResult:
    logger.warning(f"Withdrawal rejected for {creator_id} (${amount}): {reason}")
    return WithdrawalResult(
        creator_id=creator_id,
        success=False,
        amount=amount,
        available_balance=available,
        reason=reason,
    )
