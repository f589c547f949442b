"""
operations.py - Mint / Burn / Transfer orchestration

Pure functions that combine settlement, rate locking and principal
movement into a single PendingOperation:
1. compute_mint() - settle, lock rate, credit
2. compute_burn() - resolve sentinel, settle, debit
3. compute_transfer() - resolve sentinel, settle both parties, inherit rate, move
4. compute_transfer_from() - compute_transfer() plus an allowance spend
5. compute_approve() - set an allowance

Every function validates fully before returning, so a LedgerError raised
here means nothing has been applied.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .accrual import compute_balance_of
from .core import (
    LedgerView, AccrualState, PendingOperation,
    PrincipalChange, RecordUpdate, AllowanceChange, Notification,
    MAX_AMOUNT,
    OP_MINT, OP_BURN, OP_TRANSFER, OP_TRANSFER_FROM, OP_APPROVE,
    REASON_MINT, REASON_BURN, REASON_TRANSFER,
    EVENT_MINT, EVENT_BURN, EVENT_TRANSFER, EVENT_APPROVAL,
    ZeroAmount, InsufficientBalance, InsufficientAllowance,
    build_operation, require_amount, require_holder,
)
from .rates import lock_rate_for_holder, inherit_rate_on_transfer_in
from .settlement import SettlementResult, settle_holder, settlement_effects


class _Draft:
    """Accumulates the pieces of one operation while it is being computed."""

    def __init__(self, view: LedgerView, operation: str):
        self.view = view
        self.operation = operation
        self.now = view.current_time
        self.principal_changes: List[PrincipalChange] = []
        self.notifications: List[Notification] = []
        # holder -> (old_state, new_state); a holder touched twice keeps its first old_state
        self._records: Dict[str, Tuple[Optional[AccrualState], AccrualState]] = {}

    def settle(self, result: SettlementResult) -> None:
        changes, updates, notifications = settlement_effects(result, self.now)
        self.principal_changes.extend(changes)
        self.notifications.extend(notifications)
        for update in updates:
            self.set_record(update.holder, update.old_state, update.new_state)

    def set_record(self, holder: str, old_state: Optional[AccrualState], new_state: AccrualState) -> None:
        if holder in self._records:
            old_state = self._records[holder][0]
        self._records[holder] = (old_state, new_state)

    def move(self, holder: str, amount: int, reason: str) -> None:
        if amount:
            self.principal_changes.append(PrincipalChange(holder, amount, reason))

    def notify(self, kind: str, **fields) -> None:
        self.notifications.append(Notification(kind=kind, timestamp=self.now, **fields))

    def build(self) -> PendingOperation:
        updates = [
            RecordUpdate(holder, old, new, old_principal=self.view.principal_of(holder))
            for holder, (old, new) in self._records.items()
            if old != new
        ]
        return build_operation(
            self.view, self.operation,
            principal_changes=self.principal_changes,
            record_updates=updates,
            notifications=self.notifications,
        )


def resolve_amount(view: LedgerView, holder: str, amount: int) -> int:
    """Replace the MAX_AMOUNT sentinel with the holder's live balance."""
    if amount == MAX_AMOUNT:
        return compute_balance_of(view, holder)
    return amount


def compute_mint(view: LedgerView, holder: str, amount: int) -> PendingOperation:
    """
    Mint new principal to a holder.

    The holder is settled first; if the settled principal is zero (or the
    holder is new) the current global rate is locked.

    Raises:
        ZeroAmount: If amount is 0
        ValueError: If amount is negative or the MAX_AMOUNT sentinel
    """
    require_holder(holder)
    require_amount(amount)
    if amount == 0:
        raise ZeroAmount("mint amount must be positive")
    if amount == MAX_AMOUNT:
        raise ValueError("MAX_AMOUNT is a sentinel and cannot be minted")

    draft = _Draft(view, OP_MINT)
    settlement = settle_holder(view, holder, draft.now)
    draft.settle(settlement)

    state = lock_rate_for_holder(
        settlement.new_state, settlement.principal, view.global_rate, draft.now
    )
    draft.set_record(holder, settlement.old_state, state)
    draft.move(holder, amount, REASON_MINT)
    draft.notify(EVENT_MINT, holder=holder, amount=amount, rate=state.locked_rate)
    return draft.build()


def compute_burn(view: LedgerView, holder: str, amount: int) -> PendingOperation:
    """
    Burn principal from a holder.

    MAX_AMOUNT burns the whole live balance, which after settlement equals
    the holder's principal.

    Raises:
        InsufficientBalance: If amount exceeds the settled principal
    """
    require_holder(holder)
    require_amount(amount)
    amount = resolve_amount(view, holder, amount)

    draft = _Draft(view, OP_BURN)
    settlement = settle_holder(view, holder, draft.now)
    if amount > settlement.principal:
        raise InsufficientBalance(
            f"{holder}: burn {amount} exceeds settled principal {settlement.principal}"
        )
    draft.settle(settlement)
    draft.move(holder, -amount, REASON_BURN)
    draft.notify(EVENT_BURN, holder=holder, amount=amount)
    return draft.build()


def compute_transfer(
    view: LedgerView,
    sender: str,
    recipient: str,
    amount: int,
    operation: str = OP_TRANSFER,
) -> PendingOperation:
    """
    Move principal from sender to recipient.

    Both parties are settled (once, for a self-transfer). A recipient whose
    settled principal is zero inherits the sender's locked rate. MAX_AMOUNT
    moves the sender's whole live balance.

    Raises:
        InsufficientBalance: If amount exceeds the sender's settled principal
    """
    require_holder(sender, "sender")
    require_holder(recipient, "recipient")
    require_amount(amount)
    amount = resolve_amount(view, sender, amount)

    draft = _Draft(view, operation)
    sender_settlement = settle_holder(view, sender, draft.now)
    if amount > sender_settlement.principal:
        raise InsufficientBalance(
            f"{sender}: transfer {amount} exceeds settled principal {sender_settlement.principal}"
        )
    draft.settle(sender_settlement)

    if recipient != sender:
        recipient_settlement = settle_holder(view, recipient, draft.now)
        draft.settle(recipient_settlement)
        if sender_settlement.has_record:
            state = inherit_rate_on_transfer_in(
                recipient_settlement.new_state,
                recipient_settlement.principal,
                sender_settlement.locked_rate,
                draft.now,
            )
            draft.set_record(recipient, recipient_settlement.old_state, state)
        draft.move(sender, -amount, REASON_TRANSFER)
        draft.move(recipient, amount, REASON_TRANSFER)

    draft.notify(EVENT_TRANSFER, holder=sender, counterparty=recipient, amount=amount)
    return draft.build()


def compute_transfer_from(
    view: LedgerView,
    spender: str,
    sender: str,
    recipient: str,
    amount: int,
) -> PendingOperation:
    """
    Transfer on behalf of sender, spending spender's allowance.

    An allowance of MAX_AMOUNT is treated as unlimited and never decreases.

    Raises:
        InsufficientAllowance: If the resolved amount exceeds the allowance
        InsufficientBalance: If amount exceeds the sender's settled principal
    """
    require_holder(spender, "spender")
    require_holder(sender, "sender")
    require_amount(amount)
    amount = resolve_amount(view, sender, amount)

    current = view.allowance(sender, spender)
    if amount > current:
        raise InsufficientAllowance(
            f"{spender} may move {current} for {sender}, requested {amount}"
        )
    pending = compute_transfer(view, sender, recipient, amount, operation=OP_TRANSFER_FROM)
    if current == MAX_AMOUNT or amount == 0:
        return pending
    return replace(
        pending,
        allowance_changes=(AllowanceChange(sender, spender, current, current - amount),),
    )


def compute_approve(view: LedgerView, owner: str, spender: str, amount: int) -> PendingOperation:
    """Set spender's allowance over owner's balance (MAX_AMOUNT = unlimited)."""
    require_holder(owner, "owner")
    require_holder(spender, "spender")
    require_amount(amount)
    if owner == spender:
        raise ValueError("owner and spender must be different")
    current = view.allowance(owner, spender)
    changes = [] if current == amount else [AllowanceChange(owner, spender, current, amount)]
    return build_operation(
        view, OP_APPROVE,
        allowance_changes=changes,
        notifications=[Notification(
            kind=EVENT_APPROVAL,
            timestamp=view.current_time,
            holder=owner,
            counterparty=spender,
            amount=amount,
        )],
    )
