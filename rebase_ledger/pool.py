"""
pool.py - Pool / Custody collaborator

The pool takes base-asset deposits and mints ledger credits for them, and
takes redemptions, burning credits and paying the base asset back out.

Redemption is one atomic unit from the ledger's point of view:

    reserve check -> burn (settle + debit) -> payout -> notify
                                                |
                                            fails -> undo burn -> PayoutFailed

Accrued interest is paid from the reserve, which grows with deposits and
with add_rewards().
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .core import (
    Notification, Receipt,
    MAX_AMOUNT, EVENT_DEPOSIT, EVENT_REDEEM,
    ZeroAmount, PayoutFailed,
    require_amount, require_holder,
)
from .ledger import InterestLedger
from .operations import compute_burn, compute_mint


# (holder, amount) -> True if the base asset reached the holder
Payout = Callable[[str, int], bool]


@dataclass(frozen=True, slots=True)
class PoolReceipt:
    """Result of a deposit or redemption."""
    notification: Notification
    receipt: Receipt

    @property
    def amount(self) -> int:
        return self.notification.amount


class Pool:
    """
    Custodial pool in front of an InterestLedger.

    Example:
        ledger = InterestLedger("main", verbose=False)
        pool = Pool(ledger)
        pool.deposit("alice", 100)
        pool.add_rewards(10)
        pool.redeem("alice", MAX_AMOUNT)
    """

    def __init__(self, ledger: InterestLedger, payout: Optional[Payout] = None):
        """
        Args:
            ledger: Ledger whose credits this pool issues
            payout: Callable that releases the base asset to a holder. The
                default records payouts in self.paid_out and always succeeds.
        """
        self.ledger = ledger
        self.reserve = 0
        self.paid_out: Dict[str, int] = {}
        self.notifications: List[Notification] = []
        self._payout = payout if payout is not None else self._record_payout

    def _record_payout(self, holder: str, amount: int) -> bool:
        self.paid_out[holder] = self.paid_out.get(holder, 0) + amount
        return True

    def _record(self, kind: str, holder: str, amount: int, rate: Optional[int] = None) -> Notification:
        notification = Notification(
            kind=kind,
            timestamp=self.ledger.current_time,
            holder=holder,
            amount=amount,
            rate=rate,
        )
        self.notifications.append(notification)
        if self.ledger.verbose:
            print(f"✓ {kind}: {holder} {amount}")
        return notification

    def add_rewards(self, amount: int) -> None:
        """Fund the reserve that pays out accrued interest."""
        require_amount(amount)
        if amount == 0:
            raise ZeroAmount("reward amount must be positive")
        self.reserve += amount

    def deposit(self, holder: str, amount: int) -> PoolReceipt:
        """
        Take `amount` of base asset into custody and mint the same amount of credits.

        Raises:
            ZeroAmount: If amount is 0
            NotificationFailed: If the notifier failed after the deposit was
                committed (credits and reserve both stand)
        """
        require_holder(holder)
        require_amount(amount)
        if amount == 0:
            raise ZeroAmount("deposit amount must be positive")
        receipt = self.ledger.execute(compute_mint(self.ledger, holder, amount), notify=False)
        self.reserve += amount
        rate = self.ledger.get_user_interest_rate(holder)
        notification = self._record(EVENT_DEPOSIT, holder, amount, rate)
        self.ledger.deliver(receipt.notifications + (notification,))
        return PoolReceipt(notification, receipt)

    def redeem(self, holder: str, amount: int) -> PoolReceipt:
        """
        Burn credits and release the same amount of base asset.

        MAX_AMOUNT redeems the whole live balance. Notifications for the
        burn are only delivered once the payout has succeeded, so a
        rolled-back redemption is never observed.

        Raises:
            InsufficientBalance: If amount exceeds the holder's live balance
            PayoutFailed: If the reserve cannot cover the payout (nothing is
                burned) or the payout did not complete (the burn is undone)
            NotificationFailed: If the notifier failed after the redemption
                was committed and paid out
        """
        require_holder(holder)
        require_amount(amount)
        if amount == MAX_AMOUNT:
            amount = self.ledger.balance_of(holder)

        pending = compute_burn(self.ledger, holder, amount)
        if amount > self.reserve:
            raise PayoutFailed(f"reserve {self.reserve} cannot cover redemption of {amount}")

        receipt = self.ledger.execute(pending, notify=False)
        try:
            delivered = self._payout(holder, amount)
        except Exception as e:
            self.ledger.undo(receipt)
            raise PayoutFailed(f"payout of {amount} to {holder} raised {type(e).__name__}") from e
        if not delivered:
            self.ledger.undo(receipt)
            raise PayoutFailed(f"payout of {amount} to {holder} was not delivered")

        self.reserve -= amount
        notification = self._record(EVENT_REDEEM, holder, amount)
        self.ledger.deliver(receipt.notifications + (notification,))
        return PoolReceipt(notification, receipt)
