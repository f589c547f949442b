"""
ledger.py - Stateful Interest-Bearing Ledger

InterestLedger is the central state manager. It is the only class that
mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Wraps a PrincipalBook (base ledger) and the per-holder accrual terms
    - Applies PendingOperations atomically (all changes succeed or none do)
    - Tracks logical time and keeps a receipt log that supports undo
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .accrual import compute_balance_of, compute_pending_interest
from .core import (
    # Types
    AccrualState, HolderRecord, PendingOperation, Receipt, Notification,
    # Constants
    DEFAULT_INTEREST_RATE, DEFAULT_TOKEN_NAME, DEFAULT_TOKEN_SYMBOL, DEFAULT_DECIMALS,
    # Exceptions
    LedgerError, ClockRegression, InsufficientBalance, StaleOperation, NotificationFailed,
    require_amount,
)
from .operations import (
    compute_mint, compute_burn, compute_transfer, compute_transfer_from, compute_approve,
)
from .principal import PrincipalBook
from .rates import compute_set_global_rate, get_user_interest_rate
from .settlement import compute_settlement


Notifier = Callable[[Notification], None]


class InterestLedger:
    """
    Interest-bearing ledger with lazy accrual and an audit trail.

    Balances grow linearly at each holder's locked rate without any batch
    job: balance_of() computes the live value on read, and every mutating
    operation settles the parties involved before moving principal.

    Design Principles:
        - Compute, then apply: every mutation is first computed as a
          PendingOperation by a pure function; execute() applies it in one
          step or rejects it untouched.
        - Always logs: every applied operation is recorded as a Receipt.

    Thread Safety:
        Not thread-safe. Operations are assumed to run strictly serially.

    Example:
        ledger = InterestLedger("main", initial_rate=5 * 10**10)
        ledger.mint("alice", 100 * 10**18)
        ledger.advance_time(2)
        ledger.balance_of("alice")  # 100_000_010_000_000_000_000
    """

    def __init__(
        self,
        name: str,
        initial_rate: int = DEFAULT_INTEREST_RATE,
        initial_time: int = 0,
        verbose: bool = True,
        notifier: Optional[Notifier] = None,
        token_name: str = DEFAULT_TOKEN_NAME,
        token_symbol: str = DEFAULT_TOKEN_SYMBOL,
        decimals: int = DEFAULT_DECIMALS,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_rate: Starting global rate (per tick, scaled by UNIT)
            initial_time: Starting logical time (default: 0)
            verbose: Print receipts and rejections (default: True)
            notifier: Optional callback receiving every applied Notification
            token_name, token_symbol, decimals: Base ledger metadata
        """
        require_amount(initial_rate, "initial_rate")
        require_amount(initial_time, "initial_time")
        self.name = name
        self.book = PrincipalBook(token_name, token_symbol, decimals)
        self._global_rate = initial_rate
        self._records: Dict[str, AccrualState] = {}
        self._current_time = initial_time
        self.verbose = verbose
        self.notifier = notifier
        self.transaction_log: List[Receipt] = []
        self._next_sequence = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def global_rate(self) -> int:
        return self._global_rate

    def principal_of(self, holder: str) -> int:
        return self.book.principal_of(holder)

    def get_holder(self, holder: str) -> Optional[HolderRecord]:
        state = self._records.get(holder)
        if state is None:
            return None
        return HolderRecord(
            holder=holder,
            principal=self.book.principal_of(holder),
            locked_rate=state.locked_rate,
            last_settled_at=state.last_settled_at,
        )

    def allowance(self, owner: str, spender: str) -> int:
        return self.book.allowance(owner, spender)

    def list_holders(self) -> Set[str]:
        return set(self._records)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def token_name(self) -> str:
        return self.book.name

    @property
    def token_symbol(self) -> str:
        return self.book.symbol

    @property
    def decimals(self) -> int:
        return self.book.decimals

    def balance_of(self, holder: str, at: Optional[int] = None) -> int:
        """
        Live balance of a holder, including unsettled interest.

        Args:
            holder: Holder identifier
            at: Logical time to evaluate at (default: current time). May be
                in the future to project growth; never mutates state.
        """
        return compute_balance_of(self, holder, at)

    def principal_balance_of(self, holder: str) -> int:
        """Materialized principal, excluding unsettled interest."""
        return self.book.principal_of(holder)

    def pending_interest_of(self, holder: str) -> int:
        return compute_pending_interest(self, holder)

    def get_user_interest_rate(self, holder: str) -> int:
        return get_user_interest_rate(self, holder)

    def get_interest_rate(self) -> int:
        """Rate a new depositor would lock right now."""
        return self._global_rate

    def total_principal(self) -> int:
        """Materialized supply (what the base ledger reports)."""
        return self.book.total_principal()

    def total_live_supply(self) -> int:
        """
        Sum of live balances across all holders.

        Holders are summed in sorted order for determinism. This walks every
        record and is meant for reporting and reconciliation, not hot paths.
        """
        return sum(self.balance_of(h) for h in sorted(self._records))

    def snapshot(self) -> Dict[str, Any]:
        """
        Persisted layout as plain data.

        Returns:
            {'global_rate': int, 'current_time': int,
             'holders': {holder: {'principal', 'locked_rate', 'last_settled_at'}}}
        """
        return {
            'global_rate': self._global_rate,
            'current_time': self._current_time,
            'holders': {
                holder: {
                    'principal': self.book.principal_of(holder),
                    'locked_rate': state.locked_rate,
                    'last_settled_at': state.last_settled_at,
                }
                for holder, state in sorted(self._records.items())
            },
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: int) -> None:
        """
        Advance the ledger's logical clock.

        Raises:
            ClockRegression: If new_time is before the current time
        """
        require_amount(new_time, "new_time")
        if new_time < self._current_time:
            raise ClockRegression(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def mint(self, holder: str, amount: int) -> Receipt:
        """Settle holder, lock rate if needed, credit amount."""
        return self._run(lambda: compute_mint(self, holder, amount))

    def burn(self, holder: str, amount: int) -> Receipt:
        """Settle holder and debit amount (MAX_AMOUNT = whole live balance)."""
        return self._run(lambda: compute_burn(self, holder, amount))

    def transfer(self, sender: str, recipient: str, amount: int) -> Receipt:
        """Settle both parties and move amount (MAX_AMOUNT = whole live balance)."""
        return self._run(lambda: compute_transfer(self, sender, recipient, amount))

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> Receipt:
        """transfer() on behalf of sender, spending spender's allowance."""
        return self._run(lambda: compute_transfer_from(self, spender, sender, recipient, amount))

    def approve(self, owner: str, spender: str, amount: int) -> Receipt:
        return self._run(lambda: compute_approve(self, owner, spender, amount))

    def settle(self, holder: str) -> Receipt:
        """Materialize a holder's accrued interest without moving principal."""
        return self._run(lambda: compute_settlement(self, holder))

    def set_global_rate(self, new_rate: int) -> Receipt:
        """Lower the global rate. Raises RateCanOnlyDecrease otherwise."""
        return self._run(lambda: compute_set_global_rate(self, new_rate))

    def _run(self, compute: Callable[[], PendingOperation]) -> Receipt:
        try:
            pending = compute()
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {type(e).__name__}: {e}")
            raise
        return self.execute(pending)

    # ========================================================================
    # EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{logical_time}
        """
        return f"exec:{self.name}:{sequence:012d}:{self._current_time}"

    def execute(self, pending: PendingOperation, notify: bool = True) -> Receipt:
        """
        Apply a PendingOperation atomically.

        The operation is validated in full before any state changes:
        - it must have been computed at the current logical time
        - every record update must start from the current stored state
        - no holder's principal may go negative

        Args:
            pending: PendingOperation from one of the compute_* functions
            notify: Deliver the receipt's notifications once committed. Callers
                that may still undo the receipt pass False and call deliver()
                themselves.

        Returns:
            Receipt describing what was applied

        Raises:
            StaleOperation: If the operation no longer matches ledger state
            InsufficientBalance: If a debit exceeds the holder's principal
            NotificationFailed: If the notifier failed after the operation was
                committed (state is NOT rolled back)
        """
        try:
            self._validate_pending(pending)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {type(e).__name__}: {e}")
            raise

        sequence = self._next_sequence
        self._next_sequence += 1
        receipt = Receipt(
            operation=pending.operation,
            sequence_number=sequence,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            timestamp=self._current_time,
            principal_changes=pending.principal_changes,
            record_updates=pending.record_updates,
            allowance_changes=pending.allowance_changes,
            rate_update=pending.rate_update,
            notifications=pending.notifications,
        )

        # Credits before debits so a holder settled and debited in the same
        # operation never dips below zero mid-apply.
        for change in pending.principal_changes:
            if change.amount > 0:
                self.book.credit(change.holder, change.amount)
        for change in pending.principal_changes:
            if change.amount < 0:
                self.book.debit(change.holder, -change.amount)
        for update in pending.record_updates:
            self._records[update.holder] = update.new_state
        for ac in pending.allowance_changes:
            self.book.set_allowance(ac.owner, ac.spender, ac.new_amount)
        if pending.rate_update is not None:
            self._global_rate = pending.rate_update.new_rate

        self.transaction_log.append(receipt)

        if self.verbose:
            self._print_receipt(receipt, "APPLIED", "✓")
        if notify:
            self.deliver(receipt.notifications)
        return receipt

    def deliver(self, notifications: Sequence[Notification]) -> None:
        """
        Send committed notifications to the notifier.

        Every notification is attempted even if an earlier one fails; the
        failures are then raised together as NotificationFailed.
        """
        if self.notifier is None:
            return
        failures = []
        for notification in notifications:
            try:
                self.notifier(notification)
            except Exception as e:
                failures.append((notification, e))
        if failures:
            kinds = ", ".join(n.kind for n, _ in failures)
            if self.verbose:
                print(f"✗ NOT DELIVERED: {kinds}")
            raise NotificationFailed(
                f"notifier failed for {len(failures)} committed notification(s): {kinds}",
                failures,
            ) from failures[0][1]

    def _validate_pending(self, pending: PendingOperation) -> None:
        if pending.timestamp != self._current_time:
            raise StaleOperation(
                f"{pending.operation} computed at t={pending.timestamp}, ledger is at t={self._current_time}"
            )
        for update in pending.record_updates:
            current = self._records.get(update.holder)
            if current != update.old_state:
                raise StaleOperation(
                    f"{pending.operation}: record of {update.holder} changed "
                    f"(expected {update.old_state!r}, found {current!r})"
                )
            principal = self.book.principal_of(update.holder)
            if principal != update.old_principal:
                raise StaleOperation(
                    f"{pending.operation}: principal of {update.holder} changed "
                    f"(expected {update.old_principal}, found {principal})"
                )
        if pending.rate_update is not None and pending.rate_update.old_rate != self._global_rate:
            raise StaleOperation(
                f"{pending.operation}: global rate changed "
                f"(expected {pending.rate_update.old_rate}, found {self._global_rate})"
            )
        for ac in pending.allowance_changes:
            if self.book.allowance(ac.owner, ac.spender) != ac.old_amount:
                raise StaleOperation(
                    f"{pending.operation}: allowance {ac.owner}->{ac.spender} changed"
                )
        for holder, delta in pending.net_changes().items():
            proposed = self.book.principal_of(holder) + delta
            if proposed < 0:
                raise InsufficientBalance(
                    f"{holder}: principal {self.book.principal_of(holder)} cannot absorb {delta}"
                )

    def _print_receipt(self, receipt: Receipt, result: str, icon: str) -> None:
        """Print a receipt with a result line in place of its closing border."""
        lines = repr(receipt).split('\n')
        w = 90
        bar = "─" * w
        text = f" {icon} {result}"
        for notification in receipt.notifications:
            text += f" | {notification.kind}"
        if len(text) > w:
            text = text[:w-3] + "..."
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{text + ' ' * (w - len(text))}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def undo(self, receipt: Receipt) -> None:
        """
        Reverse the most recently applied receipt.

        Restores principal, accrual records, allowances and the global rate
        exactly as they were before the receipt was applied, and drops it
        from the log. Only the last receipt can be undone, since later
        operations were computed on top of it.

        Raises:
            LedgerError: If receipt is not the last entry in the log
        """
        if not self.transaction_log or self.transaction_log[-1] is not receipt:
            raise LedgerError(f"Can only undo the latest receipt, not {receipt.exec_id}")

        for change in receipt.principal_changes:
            if change.amount < 0:
                self.book.credit(change.holder, -change.amount)
        for change in receipt.principal_changes:
            if change.amount > 0:
                self.book.debit(change.holder, change.amount)
        for update in receipt.record_updates:
            if update.old_state is None:
                del self._records[update.holder]
            else:
                self._records[update.holder] = update.old_state
        for ac in receipt.allowance_changes:
            self.book.set_allowance(ac.owner, ac.spender, ac.old_amount)
        if receipt.rate_update is not None:
            self._global_rate = receipt.rate_update.old_rate

        self.transaction_log.pop()
        self._next_sequence -= 1
        if self.verbose:
            print(f"↺ UNDONE: {receipt.operation} {receipt.exec_id}")

    def clone(self) -> InterestLedger:
        """
        Create an independent deep copy of this ledger.

        Cloned state includes balances, allowances, accrual records, the
        global rate, the receipt log and the current time. The notifier is
        not carried over.
        """
        cloned = InterestLedger.__new__(InterestLedger)
        cloned.name = self.name
        cloned.book = self.book.copy()
        cloned._global_rate = self._global_rate
        cloned._records = dict(self._records)
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned.notifier = None
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        return cloned
