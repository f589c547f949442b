"""
rates.py - Rate Directory

The global rate is what new depositors lock in. It only ever decreases.
Each holder keeps the rate they locked until their principal returns to
zero, at which point a new deposit or an incoming transfer may replace it:

    deposit into zero principal   -> lock current global rate
    transfer into zero principal  -> inherit sender's locked rate
    anything into live principal  -> keep existing rate
"""

from __future__ import annotations
from typing import Optional

from .core import (
    LedgerView, AccrualState, PendingOperation, RateUpdate, Notification,
    OP_SET_GLOBAL_RATE, EVENT_RATE_CHANGED,
    RateCanOnlyDecrease,
    build_operation, require_amount, require_holder,
)


def validate_rate_decrease(current_rate: int, new_rate: int) -> None:
    """
    Raises:
        RateCanOnlyDecrease: If new_rate is not strictly below current_rate
    """
    if new_rate >= current_rate:
        raise RateCanOnlyDecrease(
            f"rate can only decrease: current {current_rate}, proposed {new_rate}"
        )


def compute_set_global_rate(view: LedgerView, new_rate: int) -> PendingOperation:
    """
    Lower the global rate.

    Existing holders keep their locked rates; only future locks see the
    new value.
    """
    require_amount(new_rate, "new_rate")
    current = view.global_rate
    validate_rate_decrease(current, new_rate)
    return build_operation(
        view, OP_SET_GLOBAL_RATE,
        rate_update=RateUpdate(current, new_rate),
        notifications=[Notification(
            kind=EVENT_RATE_CHANGED,
            timestamp=view.current_time,
            rate=new_rate,
        )],
    )


def lock_rate_for_holder(
    state: Optional[AccrualState],
    settled_principal: int,
    global_rate: int,
    now: int,
) -> AccrualState:
    """
    Accrual terms for a holder receiving a deposit.

    PURE FUNCTION - expects the holder to be settled already.

    A first-time holder, or one whose settled principal is zero, locks the
    current global rate. A holder with live principal keeps their rate even
    if the global rate has dropped since.
    """
    if state is None or settled_principal == 0:
        return AccrualState(global_rate, now)
    return state


def inherit_rate_on_transfer_in(
    state: Optional[AccrualState],
    settled_principal: int,
    sender_rate: int,
    now: int,
) -> AccrualState:
    """
    Accrual terms for a transfer recipient.

    PURE FUNCTION - expects the recipient to be settled already.

    A recipient with zero settled principal takes the sender's rate,
    whether it is higher or lower than their own.
    """
    if state is None or settled_principal == 0:
        return AccrualState(sender_rate, now)
    return state


def get_user_interest_rate(view: LedgerView, holder: str) -> int:
    """Locked rate of a holder, 0 if the holder has no record."""
    require_holder(holder)
    record = view.get_holder(holder)
    return record.locked_rate if record else 0
