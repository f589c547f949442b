"""
test_operations.py - Unit tests for mint / burn / transfer computation

All tests run the pure compute_* functions against a FakeView, so nothing
is applied; they check exactly which changes each operation would make.
"""

import pytest

from rebase_ledger import (
    UNIT, MAX_AMOUNT, AccrualState,
    ZeroAmount, InsufficientBalance, InsufficientAllowance,
    REASON_INTEREST, REASON_MINT, REASON_BURN, REASON_TRANSFER,
    EVENT_MINT, EVENT_BURN, EVENT_TRANSFER, EVENT_APPROVAL, EVENT_INTEREST_MINTED,
    OP_TRANSFER_FROM,
    compute_mint, compute_burn, compute_transfer, compute_transfer_from,
    compute_approve, resolve_amount,
)
from tests.fake_view import FakeView


RATE = 5 * 10 ** 10
GROWN = 100 * UNIT + 10 ** 13  # 100 units after 2 ticks at RATE


def _changes(pending):
    return [(c.holder, c.amount, c.reason) for c in pending.principal_changes]


def _records(pending):
    return {u.holder: (u.old_state, u.new_state) for u in pending.record_updates}


class TestResolveAmount:

    def test_sentinel_resolves_to_live_balance(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        assert resolve_amount(view, "alice", MAX_AMOUNT) == GROWN

    def test_plain_amount_passes_through(self):
        assert resolve_amount(FakeView(), "alice", 5) == 5


class TestComputeMint:

    def test_first_mint_locks_global_rate(self):
        view = FakeView(time=4, global_rate=RATE)
        pending = compute_mint(view, "alice", 100)
        assert _changes(pending) == [("alice", 100, REASON_MINT)]
        assert _records(pending) == {"alice": (None, AccrualState(RATE, 4))}
        assert pending.notifications[-1].kind == EVENT_MINT
        assert pending.notifications[-1].rate == RATE

    def test_mint_settles_first(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_mint(view, "alice", UNIT)
        assert _changes(pending) == [
            ("alice", 10 ** 13, REASON_INTEREST),
            ("alice", UNIT, REASON_MINT),
        ]
        assert [n.kind for n in pending.notifications] == [EVENT_INTEREST_MINTED, EVENT_MINT]

    def test_mint_keeps_higher_locked_rate(self):
        view = FakeView(holders={"alice": (UNIT, 2 * RATE, 0)}, time=1, global_rate=RATE)
        pending = compute_mint(view, "alice", UNIT)
        assert _records(pending)["alice"][1] == AccrualState(2 * RATE, 1)

    def test_mint_into_empty_record_relocks(self):
        view = FakeView(holders={"alice": (0, 2 * RATE, 0)}, time=1, global_rate=RATE)
        pending = compute_mint(view, "alice", UNIT)
        assert _records(pending)["alice"] == (AccrualState(2 * RATE, 0), AccrualState(RATE, 1))

    def test_zero_amount(self):
        with pytest.raises(ZeroAmount):
            compute_mint(FakeView(), "alice", 0)

    def test_sentinel_is_not_mintable(self):
        with pytest.raises(ValueError, match="sentinel"):
            compute_mint(FakeView(), "alice", MAX_AMOUNT)

    def test_negative_amount(self):
        with pytest.raises(ValueError):
            compute_mint(FakeView(), "alice", -5)


class TestComputeBurn:

    def test_burn_settles_then_debits(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_burn(view, "alice", UNIT)
        assert _changes(pending) == [
            ("alice", 10 ** 13, REASON_INTEREST),
            ("alice", -UNIT, REASON_BURN),
        ]
        assert pending.net_changes() == {"alice": 10 ** 13 - UNIT}

    def test_burn_max_leaves_zero(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_burn(view, "alice", MAX_AMOUNT)
        assert pending.net_changes() == {"alice": -100 * UNIT}
        assert pending.notifications[-1].kind == EVENT_BURN
        assert pending.notifications[-1].amount == GROWN

    def test_burn_exact_live_balance(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_burn(view, "alice", GROWN)
        assert pending.net_changes() == {"alice": -100 * UNIT}

    def test_burn_one_more_than_live_balance(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        with pytest.raises(InsufficientBalance):
            compute_burn(view, "alice", GROWN + 1)

    def test_burn_unknown_holder(self):
        with pytest.raises(InsufficientBalance):
            compute_burn(FakeView(), "nobody", 1)

    def test_burn_max_unknown_holder_is_zero(self):
        pending = compute_burn(FakeView(), "nobody", MAX_AMOUNT)
        assert pending.principal_changes == ()
        assert pending.notifications[-1].amount == 0


class TestComputeTransfer:

    def test_transfer_settles_both_parties(self):
        view = FakeView(
            holders={
                "alice": (100 * UNIT, RATE, 0),
                "bob": (100 * UNIT, 2 * RATE, 0),
            },
            time=2,
        )
        pending = compute_transfer(view, "alice", "bob", UNIT)
        assert _changes(pending) == [
            ("alice", 10 ** 13, REASON_INTEREST),
            ("bob", 2 * 10 ** 13, REASON_INTEREST),
            ("alice", -UNIT, REASON_TRANSFER),
            ("bob", UNIT, REASON_TRANSFER),
        ]
        # bob holds principal, so he keeps his own rate
        assert _records(pending)["bob"][1] == AccrualState(2 * RATE, 2)
        assert pending.notifications[-1].kind == EVENT_TRANSFER
        assert pending.notifications[-1].counterparty == "bob"

    def test_new_recipient_inherits_sender_rate(self):
        view = FakeView(holders={"alice": (UNIT, 3 * RATE, 0)}, time=1, global_rate=RATE)
        pending = compute_transfer(view, "alice", "bob", UNIT // 2)
        assert _records(pending)["bob"] == (None, AccrualState(3 * RATE, 1))

    def test_empty_recipient_inherits_lower_rate(self):
        view = FakeView(
            holders={"alice": (UNIT, RATE, 0), "bob": (0, 3 * RATE, 0)},
            time=1,
        )
        pending = compute_transfer(view, "alice", "bob", 1)
        assert _records(pending)["bob"] == (AccrualState(3 * RATE, 0), AccrualState(RATE, 1))

    def test_transfer_max(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_transfer(view, "alice", "bob", MAX_AMOUNT)
        assert pending.net_changes() == {"alice": -100 * UNIT, "bob": GROWN}

    def test_transfer_exceeds_settled_principal(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        with pytest.raises(InsufficientBalance):
            compute_transfer(view, "alice", "bob", GROWN + 1)

    def test_self_transfer_settles_once(self):
        view = FakeView(holders={"alice": (100 * UNIT, RATE, 0)}, time=2)
        pending = compute_transfer(view, "alice", "alice", UNIT)
        assert _changes(pending) == [("alice", 10 ** 13, REASON_INTEREST)]
        assert pending.notifications[-1].kind == EVENT_TRANSFER

    def test_zero_transfer_from_unknown_sender_creates_nothing(self):
        pending = compute_transfer(FakeView(time=3), "nobody", "bob", 0)
        assert pending.principal_changes == ()
        assert pending.record_updates == ()

    def test_empty_recipient_raises(self):
        with pytest.raises(ValueError, match="recipient cannot be empty"):
            compute_transfer(FakeView(), "alice", "", 1)


class TestComputeTransferFrom:

    def _view(self, allowance):
        return FakeView(
            holders={"alice": (100 * UNIT, RATE, 0)},
            time=2,
            allowances={("alice", "carol"): allowance},
        )

    def test_spends_allowance(self):
        pending = compute_transfer_from(self._view(5 * UNIT), "carol", "alice", "bob", UNIT)
        assert pending.operation == OP_TRANSFER_FROM
        (change,) = pending.allowance_changes
        assert (change.owner, change.spender) == ("alice", "carol")
        assert (change.old_amount, change.new_amount) == (5 * UNIT, 4 * UNIT)
        assert pending.net_changes()["bob"] == UNIT

    def test_unlimited_allowance_not_spent(self):
        pending = compute_transfer_from(self._view(MAX_AMOUNT), "carol", "alice", "bob", UNIT)
        assert pending.allowance_changes == ()

    def test_insufficient_allowance(self):
        with pytest.raises(InsufficientAllowance):
            compute_transfer_from(self._view(UNIT - 1), "carol", "alice", "bob", UNIT)

    def test_max_amount_checks_resolved_amount(self):
        with pytest.raises(InsufficientAllowance):
            compute_transfer_from(self._view(100 * UNIT), "carol", "alice", "bob", MAX_AMOUNT)
        pending = compute_transfer_from(self._view(GROWN), "carol", "alice", "bob", MAX_AMOUNT)
        assert pending.allowance_changes[0].new_amount == 0


class TestComputeApprove:

    def test_approve(self):
        pending = compute_approve(FakeView(), "alice", "carol", 10)
        (change,) = pending.allowance_changes
        assert (change.old_amount, change.new_amount) == (0, 10)
        assert pending.notifications[0].kind == EVENT_APPROVAL

    def test_approve_same_amount_changes_nothing(self):
        view = FakeView(allowances={("alice", "carol"): 10})
        assert compute_approve(view, "alice", "carol", 10).allowance_changes == ()

    def test_self_approve_raises(self):
        with pytest.raises(ValueError):
            compute_approve(FakeView(), "alice", "alice", 10)
