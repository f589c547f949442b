"""
accrual.py - Accrual Engine

Pure functions that compute a holder's live balance from stored principal,
the holder's locked rate and elapsed logical time.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No LedgerView, no hidden state

2. CONVENIENCE FUNCTIONS (compute_*):
   - Read the holder record from a LedgerView once
   - Internally call calculate_*()

Key Formulas:
    elapsed    = now - last_settled_at
    multiplier = UNIT + locked_rate * elapsed
    live       = principal * multiplier // UNIT

Growth is linear within a settlement window: interest is
principal * rate * time and is only folded into principal when the holder
is settled.
"""

from __future__ import annotations
from typing import Optional

from .core import LedgerView, UNIT, ClockRegression


def calculate_interest_multiplier(
    locked_rate: int,
    last_settled_at: int,
    now: int,
) -> int:
    """
    Calculate the accumulated interest multiplier since last settlement.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        locked_rate: Holder's rate per tick, scaled by UNIT
        last_settled_at: Logical time of the last settlement
        now: Logical time to evaluate at

    Returns:
        UNIT + locked_rate * elapsed (UNIT when no time has elapsed)

    Raises:
        ClockRegression: If now is before last_settled_at
    """
    elapsed = now - last_settled_at
    if elapsed < 0:
        raise ClockRegression(
            f"now={now} is before last settlement at {last_settled_at}"
        )
    return UNIT + locked_rate * elapsed


def calculate_live_balance(
    principal: int,
    locked_rate: int,
    last_settled_at: int,
    now: int,
) -> int:
    """
    Calculate the balance a holder would see at `now`.

    PURE FUNCTION - All inputs explicit, no hidden state.

    The product principal * multiplier is formed at full width before the
    floor division, so the result matches the fixed-point formula exactly.

    Returns:
        principal * (UNIT + locked_rate * elapsed) // UNIT
    """
    multiplier = calculate_interest_multiplier(locked_rate, last_settled_at, now)
    return principal * multiplier // UNIT


def calculate_pending_interest(
    principal: int,
    locked_rate: int,
    last_settled_at: int,
    now: int,
) -> int:
    """
    Calculate interest accrued since last settlement but not yet materialized.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Returns:
        live balance - principal (always >= 0)
    """
    return calculate_live_balance(principal, locked_rate, last_settled_at, now) - principal


def compute_balance_of(view: LedgerView, holder: str, now: Optional[int] = None) -> int:
    """
    Live balance of a holder, read from a LedgerView.

    Args:
        view: Read-only ledger access
        holder: Holder identifier
        now: Time to evaluate at (default: view.current_time)

    Returns:
        Live balance including unsettled interest (0 for unknown holders)
    """
    if now is None:
        now = view.current_time
    record = view.get_holder(holder)
    if record is None:
        return view.principal_of(holder)
    return calculate_live_balance(
        record.principal, record.locked_rate, record.last_settled_at, now
    )


def compute_pending_interest(view: LedgerView, holder: str, now: Optional[int] = None) -> int:
    """Unsettled interest of a holder, read from a LedgerView."""
    if now is None:
        now = view.current_time
    record = view.get_holder(holder)
    if record is None:
        return 0
    return calculate_pending_interest(
        record.principal, record.locked_rate, record.last_settled_at, now
    )
