"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ settlement, principal, records and allowances all change
        O fails ⟹ nothing changes, not even the settlement that preceded the check

Partial application is impossible by construction: every operation is
computed against a read-only view and applied in a single execute().
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rebase_ledger import (
    InterestLedger, Pool, UNIT, MAX_AMOUNT,
    LedgerError, InsufficientBalance, InsufficientAllowance, RateCanOnlyDecrease,
    ZeroAmount, StaleOperation, PayoutFailed,
    compute_mint, compute_transfer,
)


def _ledger():
    ledger = InterestLedger("atomicity", initial_rate=5 * 10 ** 10, verbose=False)
    ledger.mint("alice", 100 * UNIT)
    ledger.set_global_rate(10 ** 10)
    ledger.mint("bob", 50 * UNIT)
    ledger.approve("alice", "carol", UNIT)
    return ledger


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(
        st.integers(min_value=1, max_value=10 ** 7),
        st.integers(min_value=1, max_value=10 ** 20),
    )
    @settings(max_examples=50)
    def test_overdrawn_transfer_leaves_no_trace(self, elapsed, excess):
        """
        PROPERTY: A transfer above the live balance changes nothing,
        including the sender's unsettled interest.
        """
        ledger = _ledger()
        ledger.advance_time(elapsed)
        before = ledger.snapshot()
        log_length = len(ledger.transaction_log)

        with pytest.raises(InsufficientBalance):
            ledger.transfer("alice", "bob", ledger.balance_of("alice") + excess)

        assert ledger.snapshot() == before
        assert len(ledger.transaction_log) == log_length

    @given(st.integers(min_value=10 ** 10, max_value=10 ** 12))
    @settings(max_examples=30)
    def test_non_decreasing_rate_leaves_no_trace(self, new_rate):
        """
        PROPERTY: Rejected rate changes keep the old global rate.
        """
        ledger = _ledger()
        before = ledger.snapshot()
        with pytest.raises(RateCanOnlyDecrease):
            ledger.set_global_rate(new_rate)
        assert ledger.snapshot() == before


class TestAtomicityExamples:
    """Example-based atomicity tests."""

    @pytest.mark.parametrize("operation", [
        lambda l: l.mint("alice", 0),
        lambda l: l.burn("alice", 10 ** 30),
        lambda l: l.burn("nobody", 1),
        lambda l: l.transfer("bob", "alice", 10 ** 30),
        lambda l: l.transfer_from("carol", "alice", "dave", UNIT + 1),
        lambda l: l.transfer_from("eve", "alice", "dave", 1),
        lambda l: l.set_global_rate(10 ** 10),
    ])
    def test_rejections_leave_state_unchanged(self, operation):
        ledger = _ledger()
        ledger.advance_time(1000)
        before = ledger.snapshot()
        allowance = ledger.allowance("alice", "carol")
        log_length = len(ledger.transaction_log)

        with pytest.raises(LedgerError):
            operation(ledger)

        assert ledger.snapshot() == before
        assert ledger.allowance("alice", "carol") == allowance
        assert len(ledger.transaction_log) == log_length

    def test_allowance_rejection_keeps_sender_unsettled(self):
        ledger = _ledger()
        ledger.advance_time(1000)
        with pytest.raises(InsufficientAllowance):
            ledger.transfer_from("carol", "alice", "dave", MAX_AMOUNT)
        assert ledger.get_holder("alice").last_settled_at == 0

    def test_stale_operation_rejected_whole(self):
        ledger = _ledger()
        ledger.advance_time(10)
        pending = compute_transfer(ledger, "alice", "dave", UNIT)
        ledger.settle("alice")
        before = ledger.snapshot()
        with pytest.raises(StaleOperation):
            ledger.execute(pending)
        assert ledger.snapshot() == before
        assert ledger.get_holder("dave") is None

    def test_failed_redeem_restores_ledger_and_reserve(self):
        ledger = InterestLedger("atomicity", verbose=False)
        pool = Pool(ledger, payout=lambda holder, amount: False)
        pool.deposit("alice", UNIT)
        ledger.advance_time(50)
        before = ledger.snapshot()
        with pytest.raises(PayoutFailed):
            pool.redeem("alice", MAX_AMOUNT)
        assert ledger.snapshot() == before
        assert pool.reserve == UNIT
        assert pool.paid_out == {}

    def test_zero_mint_emits_nothing(self):
        seen = []
        ledger = InterestLedger("atomicity", verbose=False, notifier=seen.append)
        with pytest.raises(ZeroAmount):
            ledger.mint("alice", 0)
        assert seen == []

    def test_inheritance_rejected_once_recipient_is_funded(self):
        ledger = InterestLedger("atomicity", initial_rate=100, verbose=False)
        ledger.mint("alice", UNIT)
        ledger.set_global_rate(50)
        ledger.mint("bob", UNIT)
        ledger.burn("bob", MAX_AMOUNT)

        # computed while bob is empty, so it would hand bob alice's rate
        pending = compute_transfer(ledger, "alice", "bob", 1)
        ledger.mint("bob", 10 * UNIT)
        before = ledger.snapshot()

        with pytest.raises(StaleOperation, match="principal of bob"):
            ledger.execute(pending)
        assert ledger.snapshot() == before
        assert ledger.get_user_interest_rate("bob") == 50

    def test_rate_lock_rejected_once_holder_is_funded(self):
        ledger = InterestLedger("atomicity", initial_rate=100, verbose=False)
        ledger.mint("alice", UNIT)
        ledger.mint("bob", UNIT)
        ledger.burn("bob", MAX_AMOUNT)
        ledger.set_global_rate(50)

        # computed while bob is empty, so it would relock bob at 50
        pending = compute_mint(ledger, "bob", UNIT)
        ledger.transfer("alice", "bob", UNIT)

        with pytest.raises(StaleOperation, match="principal of bob"):
            ledger.execute(pending)
        assert ledger.get_user_interest_rate("bob") == 100
        assert ledger.principal_balance_of("bob") == UNIT
