"""
principal.py - Base Ledger capability set

PrincipalBook stores materialized per-holder principal and delegated
allowances. It has no notion of interest: the InterestLedger wraps it and
runs settlement before every call that changes principal.
"""

from __future__ import annotations
from typing import Dict, Set, Tuple

from .core import (
    DEFAULT_TOKEN_NAME, DEFAULT_TOKEN_SYMBOL, DEFAULT_DECIMALS,
    InsufficientBalance,
    require_amount, require_holder,
)


class PrincipalBook:
    """
    Plain fungible balance book.

    Zero balances are dropped from the holder map to keep it compact;
    principal_of() still reports 0 for them.

    Example:
        book = PrincipalBook()
        book.credit("alice", 100)
        book.debit("alice", 40)
        book.principal_of("alice")  # 60
    """

    def __init__(
        self,
        name: str = DEFAULT_TOKEN_NAME,
        symbol: str = DEFAULT_TOKEN_SYMBOL,
        decimals: int = DEFAULT_DECIMALS,
    ):
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._principal: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total = 0

    def principal_of(self, holder: str) -> int:
        return self._principal.get(holder, 0)

    def total_principal(self) -> int:
        return self._total

    def holders(self) -> Set[str]:
        """Holders with non-zero principal."""
        return set(self._principal)

    def credit(self, holder: str, amount: int) -> None:
        """Increase a holder's principal. Never fails for a valid amount."""
        require_holder(holder)
        require_amount(amount)
        if amount == 0:
            return
        self._principal[holder] = self._principal.get(holder, 0) + amount
        self._total += amount

    def debit(self, holder: str, amount: int) -> None:
        """
        Decrease a holder's principal.

        Raises:
            InsufficientBalance: If amount exceeds the current principal.
        """
        require_holder(holder)
        require_amount(amount)
        current = self._principal.get(holder, 0)
        if amount > current:
            raise InsufficientBalance(
                f"{holder}: debit {amount} exceeds principal {current}"
            )
        if amount == 0:
            return
        remaining = current - amount
        if remaining:
            self._principal[holder] = remaining
        else:
            del self._principal[holder]
        self._total -= amount

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def set_allowance(self, owner: str, spender: str, amount: int) -> None:
        require_holder(owner, "owner")
        require_holder(spender, "spender")
        require_amount(amount)
        if amount:
            self._allowances[(owner, spender)] = amount
        else:
            self._allowances.pop((owner, spender), None)

    def copy(self) -> PrincipalBook:
        """Return an independent copy of this book."""
        cloned = PrincipalBook(self.name, self.symbol, self.decimals)
        cloned._principal = dict(self._principal)
        cloned._allowances = dict(self._allowances)
        cloned._total = self._total
        return cloned
