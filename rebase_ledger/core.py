"""
Core types and pure helpers for the interest-bearing ledger.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point UNIT, the MAX_AMOUNT sentinel, default rate
2. Protocols: LedgerView for read-only ledger access
3. Immutable data structures: AccrualState, HolderRecord, PrincipalChange,
   RecordUpdate, AllowanceChange, RateUpdate, Notification,
   PendingOperation, Receipt
4. Exceptions: LedgerError and domain-specific error types

All amounts and rates are Python ints. Rates are fixed-point numbers scaled
by UNIT and expressed per unit of logical time; timestamps are integer
logical clock ticks. Python ints are unbounded, so principal * multiplier
never overflows before the final division.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple, Any, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point 1.0. Rates and interest multipliers are scaled by this factor.
UNIT = 10 ** 18

# Reserved amount meaning "the holder's entire current live balance".
# Resolved once, via a pure read, before an operation mutates anything.
MAX_AMOUNT = 2 ** 256 - 1

# Global rate a fresh ledger offers to depositors (per tick, scaled by UNIT).
DEFAULT_INTEREST_RATE = 5 * 10 ** 10

DEFAULT_TOKEN_NAME = "Rebase Token"
DEFAULT_TOKEN_SYMBOL = "RBT"
DEFAULT_DECIMALS = 18

# Operation names (strings, same convention as unit types).
OP_MINT = "MINT"
OP_BURN = "BURN"
OP_TRANSFER = "TRANSFER"
OP_TRANSFER_FROM = "TRANSFER_FROM"
OP_APPROVE = "APPROVE"
OP_SETTLE = "SETTLE"
OP_SET_GLOBAL_RATE = "SET_GLOBAL_RATE"

# Reasons attached to principal changes.
REASON_INTEREST = "INTEREST"
REASON_MINT = "MINT"
REASON_BURN = "BURN"
REASON_TRANSFER = "TRANSFER"

# Notification kinds consumed by the observability collaborator.
EVENT_RATE_CHANGED = "RATE_CHANGED"
EVENT_INTEREST_MINTED = "INTEREST_MINTED"
EVENT_MINT = "MINT"
EVENT_BURN = "BURN"
EVENT_TRANSFER = "TRANSFER"
EVENT_APPROVAL = "APPROVAL"
EVENT_DEPOSIT = "DEPOSIT"
EVENT_REDEEM = "REDEEM"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class ZeroAmount(LedgerError):
    """Raised when a positive amount is required and zero was given."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a debit or transfer exceeds the settled principal."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a delegated transfer exceeds the spender's allowance."""
    pass


class RateCanOnlyDecrease(LedgerError):
    """Raised when a global rate update is not strictly lower than the current rate."""
    pass


class ClockRegression(LedgerError):
    """Raised when logical time moves backwards for a holder or the ledger."""
    pass


class PayoutFailed(LedgerError):
    """Raised by the pool when the base-asset payout of a redemption did not complete."""
    pass


class StaleOperation(LedgerError):
    """Raised when a pending operation was computed against a different ledger state."""
    pass


class NotificationFailed(LedgerError):
    """
    Raised after an operation was committed when the notifier failed.

    The ledger state is NOT rolled back: `failures` lists each
    (Notification, exception) pair that could not be delivered.
    """

    def __init__(self, message: str, failures: Sequence[Tuple[Notification, Exception]] = ()):
        super().__init__(message)
        self.failures = list(failures)


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_amount(amount: Any, label: str = "amount") -> int:
    """Return amount if it is a non-negative int, raise ValueError otherwise."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{label} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{label} must be non-negative, got {amount}")
    return amount


def require_holder(holder: Any, label: str = "holder") -> str:
    """Return holder if it is a non-empty identifier, raise ValueError otherwise."""
    if not isinstance(holder, str) or not holder.strip():
        raise ValueError(f"{label} cannot be empty")
    return holder


# ============================================================================
# HOLDER STATE
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccrualState:
    """
    Per-holder accrual terms stored by the rate directory.

    Attributes:
        locked_rate: Rate fixed at deposit or inheritance time (scaled by UNIT).
        last_settled_at: Logical time of the holder's most recent settlement.
    """
    locked_rate: int
    last_settled_at: int

    def __post_init__(self):
        require_amount(self.locked_rate, "locked_rate")
        require_amount(self.last_settled_at, "last_settled_at")


@dataclass(frozen=True, slots=True)
class HolderRecord:
    """
    Read-only snapshot of everything known about a holder.

    Combines the principal stored by the base ledger with the accrual
    terms stored by the rate directory.
    """
    holder: str
    principal: int
    locked_rate: int
    last_settled_at: int

    @property
    def state(self) -> AccrualState:
        return AccrualState(self.locked_rate, self.last_settled_at)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Pure compute_* functions take a LedgerView and never mutate it. The
    InterestLedger implements this protocol alongside its mutation methods;
    tests use FakeView, a plain immutable implementation.
    """

    @property
    def current_time(self) -> int:
        """Return the current logical time of the ledger."""
        ...

    @property
    def global_rate(self) -> int:
        """Return the rate offered to new depositors."""
        ...

    def principal_of(self, holder: str) -> int:
        """Return the materialized principal of a holder (0 if unknown)."""
        ...

    def get_holder(self, holder: str) -> Optional[HolderRecord]:
        """Return the holder's record, or None if it never held a balance."""
        ...

    def allowance(self, owner: str, spender: str) -> int:
        """Return how much spender may move on behalf of owner."""
        ...

    def list_holders(self) -> Set[str]:
        """Return every holder that has a record."""
        ...


# ============================================================================
# CHANGE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PrincipalChange:
    """
    A signed change to one holder's principal.

    Positive amounts are credits, negative amounts are debits.
    """
    holder: str
    amount: int
    reason: str

    def __post_init__(self):
        require_holder(self.holder)
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"PrincipalChange amount must be int, got {type(self.amount).__name__}")
        if self.amount == 0:
            raise ValueError("PrincipalChange amount cannot be zero")
        if not self.reason:
            raise ValueError("PrincipalChange reason cannot be empty")

    def __repr__(self) -> str:
        sign = "+" if self.amount > 0 else ""
        return f"PrincipalChange({self.holder}: {sign}{self.amount} [{self.reason}])"


@dataclass(frozen=True, slots=True)
class RecordUpdate:
    """
    Before/after snapshot of a holder's accrual terms.

    old_state is None when the update creates the holder's record.
    old_principal is the principal the new terms were derived from; a rate
    lock or inheritance is only valid while it still holds.
    """
    holder: str
    old_state: Optional[AccrualState]
    new_state: AccrualState
    old_principal: int = 0

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return field name -> (old, new) for fields that differ."""
        changes = {}
        for name in ("locked_rate", "last_settled_at"):
            old_val = getattr(self.old_state, name) if self.old_state else None
            new_val = getattr(self.new_state, name)
            if old_val != new_val:
                changes[name] = (old_val, new_val)
        return changes


@dataclass(frozen=True, slots=True)
class AllowanceChange:
    owner: str
    spender: str
    old_amount: int
    new_amount: int


@dataclass(frozen=True, slots=True)
class RateUpdate:
    old_rate: int
    new_rate: int


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Outbound event for the notifier collaborator.

    Attributes:
        kind: One of the EVENT_* constants.
        timestamp: Logical time of the operation.
        holder: Primary holder (sender for transfers, owner for approvals).
        amount: Amount moved, minted, burned or approved.
        counterparty: Recipient for transfers, spender for approvals.
        rate: Rate attached to the event (locked rate, or new global rate).
    """
    kind: str
    timestamp: int
    holder: Optional[str] = None
    amount: int = 0
    counterparty: Optional[str] = None
    rate: Optional[int] = None

    def __repr__(self) -> str:
        parts = [self.kind]
        if self.holder:
            parts.append(self.holder)
        if self.counterparty:
            parts.append(f"-> {self.counterparty}")
        if self.amount:
            parts.append(f"amount={self.amount}")
        if self.rate is not None:
            parts.append(f"rate={self.rate}")
        return f"Notification({' '.join(parts)} @ {self.timestamp})"


# ============================================================================
# OPERATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PendingOperation:
    """
    An operation computed against a LedgerView but not yet applied - INTENT.

    Produced by the pure compute_* functions and handed to
    InterestLedger.execute(), which applies it as one step.
    """
    operation: str
    timestamp: int
    principal_changes: Tuple[PrincipalChange, ...] = ()
    record_updates: Tuple[RecordUpdate, ...] = ()
    allowance_changes: Tuple[AllowanceChange, ...] = ()
    rate_update: Optional[RateUpdate] = None
    notifications: Tuple[Notification, ...] = ()

    def is_empty(self) -> bool:
        """Return True if applying this operation would change nothing."""
        return (
            not self.principal_changes
            and not self.record_updates
            and not self.allowance_changes
            and self.rate_update is None
        )

    def net_changes(self) -> Dict[str, int]:
        """Return holder -> net principal delta."""
        net: Dict[str, int] = {}
        for change in self.principal_changes:
            net[change.holder] = net.get(change.holder, 0) + change.amount
        return net

    def __repr__(self) -> str:
        return (
            f"PendingOperation({self.operation}, {len(self.principal_changes)} changes, "
            f"{len(self.record_updates)} records, {len(self.notifications)} notifications)"
        )


def build_operation(
    view: LedgerView,
    operation: str,
    principal_changes: Optional[List[PrincipalChange]] = None,
    record_updates: Optional[List[RecordUpdate]] = None,
    allowance_changes: Optional[List[AllowanceChange]] = None,
    rate_update: Optional[RateUpdate] = None,
    notifications: Optional[List[Notification]] = None,
) -> PendingOperation:
    """
    Build a PendingOperation stamped with the view's current time.

    This is the standard way for compute_* functions to return their result.
    """
    return PendingOperation(
        operation=operation,
        timestamp=view.current_time,
        principal_changes=tuple(principal_changes or ()),
        record_updates=tuple(record_updates or ()),
        allowance_changes=tuple(allowance_changes or ()),
        rate_update=rate_update,
        notifications=tuple(notifications or ()),
    )


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    An applied, immutable record of a ledger operation - FACT.

    Attributes:
        operation: Operation name (OP_* constant)
        sequence_number: Monotonic position within the ledger's log
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that applied it
        timestamp: Logical time at which it was applied
        principal_changes, record_updates, allowance_changes, rate_update:
            Exactly what was applied, enough to undo it
        notifications: Events emitted by the operation
    """
    operation: str
    sequence_number: int
    exec_id: str
    ledger_name: str
    timestamp: int
    principal_changes: Tuple[PrincipalChange, ...] = ()
    record_updates: Tuple[RecordUpdate, ...] = ()
    allowance_changes: Tuple[AllowanceChange, ...] = ()
    rate_update: Optional[RateUpdate] = None
    notifications: Tuple[Notification, ...] = ()

    def interest_minted(self) -> int:
        """Total interest materialized by the settlements in this operation."""
        return sum(c.amount for c in self.principal_changes if c.reason == REASON_INTEREST)

    def __repr__(self) -> str:
        w = 90
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' ' + self.operation + ': ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   timestamp : ' + str(self.timestamp))}│",
            f"│{pad('   sequence  : ' + str(self.sequence_number))}│",
        ]
        if self.rate_update:
            lines.append(f"│{pad(f'   rate      : {self.rate_update.old_rate} → {self.rate_update.new_rate}')}│")
        if self.principal_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Principal (' + str(len(self.principal_changes)) + '):')}│")
            for change in self.principal_changes:
                lines.append(f"│{pad(f'   {change.holder}: {change.amount:+d} [{change.reason}]')}│")
        if self.record_updates:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Records (' + str(len(self.record_updates)) + '):')}│")
            for update in self.record_updates:
                for field_name, (old_val, new_val) in update.changed_fields().items():
                    lines.append(f"│{pad(f'   {update.holder}.{field_name}: {old_val!r} → {new_val!r}')}│")
        if self.allowance_changes:
            lines.append(f"├{bar}┤")
            for ac in self.allowance_changes:
                lines.append(f"│{pad(f'   allowance {ac.owner}→{ac.spender}: {ac.old_amount} → {ac.new_amount}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
