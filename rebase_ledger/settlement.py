"""
settlement.py - Settlement Protocol

Settlement converts a holder's accrued-but-unmaterialized interest into
principal and advances the holder's accrual clock. It is the mandatory
prelude to every principal-changing operation: compute_mint, compute_burn
and compute_transfer all start from settle_holder().

    Unsettled --settle--> Settled --apply delta--> Settled (until time moves)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .accrual import calculate_live_balance
from .core import (
    LedgerView, AccrualState, PendingOperation,
    PrincipalChange, RecordUpdate, Notification,
    OP_SETTLE, REASON_INTEREST, EVENT_INTEREST_MINTED,
    build_operation, require_holder,
)


@dataclass(frozen=True, slots=True)
class SettlementResult:
    """
    Outcome of settling one holder, before anything is applied.

    Attributes:
        holder: Holder identifier
        interest: Interest to credit (0 if none accrued)
        principal: Principal after the interest is credited
        old_state: Accrual terms before settlement (None if no record)
        new_state: Accrual terms after settlement (None if no record)
    """
    holder: str
    interest: int
    principal: int
    old_state: Optional[AccrualState]
    new_state: Optional[AccrualState]

    @property
    def has_record(self) -> bool:
        return self.new_state is not None

    @property
    def locked_rate(self) -> Optional[int]:
        return self.new_state.locked_rate if self.new_state else None


def calculate_settlement(
    principal: int,
    state: AccrualState,
    now: int,
) -> Tuple[int, AccrualState]:
    """
    Calculate the interest owed and the advanced accrual terms.

    PURE FUNCTION - All inputs explicit, no hidden state.

    The rate is carried over unchanged; last_settled_at moves to `now`
    even when no interest accrued.

    Returns:
        (interest, new_state)

    Raises:
        ClockRegression: If now is before state.last_settled_at
    """
    live = calculate_live_balance(principal, state.locked_rate, state.last_settled_at, now)
    return live - principal, AccrualState(state.locked_rate, now)


def settle_holder(view: LedgerView, holder: str, now: Optional[int] = None) -> SettlementResult:
    """
    Settle a holder against a read-only view.

    A holder without a record is a no-op: principal 0, no state.
    """
    if now is None:
        now = view.current_time
    record = view.get_holder(holder)
    if record is None:
        return SettlementResult(
            holder=holder,
            interest=0,
            principal=view.principal_of(holder),
            old_state=None,
            new_state=None,
        )
    interest, new_state = calculate_settlement(record.principal, record.state, now)
    return SettlementResult(
        holder=holder,
        interest=interest,
        principal=record.principal + interest,
        old_state=record.state,
        new_state=new_state,
    )


def settlement_effects(
    result: SettlementResult,
    now: int,
) -> Tuple[List[PrincipalChange], List[RecordUpdate], List[Notification]]:
    """Translate a SettlementResult into change records and notifications."""
    if not result.has_record:
        return [], [], []
    changes = []
    notifications = []
    if result.interest > 0:
        changes.append(PrincipalChange(result.holder, result.interest, REASON_INTEREST))
        notifications.append(Notification(
            kind=EVENT_INTEREST_MINTED,
            timestamp=now,
            holder=result.holder,
            amount=result.interest,
            rate=result.locked_rate,
        ))
    updates = []
    if result.old_state != result.new_state:
        updates.append(RecordUpdate(
            result.holder, result.old_state, result.new_state,
            old_principal=result.principal - result.interest,
        ))
    return changes, updates, notifications


def compute_settlement(view: LedgerView, holder: str) -> PendingOperation:
    """
    Standalone settlement of one holder at the view's current time.

    Returns:
        PendingOperation crediting accrued interest and advancing the
        holder's clock (empty if the holder has no record or is already
        settled at this instant)
    """
    require_holder(holder)
    now = view.current_time
    result = settle_holder(view, holder, now)
    changes, updates, notifications = settlement_effects(result, now)
    return build_operation(
        view, OP_SETTLE,
        principal_changes=changes,
        record_updates=updates,
        notifications=notifications,
    )
