"""In-memory ERC-20 ledger standing in for on-chain token state.

``snapshot``/``restore`` model the execution environment's revert: a
settlement session snapshots before it starts and restores on any failure,
so no partial balance change is ever observable.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Tuple

from flasharb.common.errors import InsufficientAllowance, InsufficientBalance

LedgerSnapshot = Tuple[Dict[Tuple[str, str], int], Dict[Tuple[str, str, str], int]]


class TokenLedger:
    def __init__(self) -> None:
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)

    def balance_of(self, asset: str, holder: str) -> int:
        return self._balances.get((asset.lower(), holder.lower()), 0)

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        return self._allowances.get((asset.lower(), owner.lower(), spender.lower()), 0)

    def mint(self, asset: str, holder: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("mint amount must be non-negative")
        self._balances[(asset.lower(), holder.lower())] += amount

    def burn(self, asset: str, holder: str, amount: int) -> None:
        self._debit(asset, holder, amount)

    def transfer(self, asset: str, sender: str, to: str, amount: int) -> None:
        self._debit(asset, sender, amount)
        self._balances[(asset.lower(), to.lower())] += amount

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("allowance must be non-negative")
        self._allowances[(asset.lower(), owner.lower(), spender.lower())] = amount

    def transfer_from(self, asset: str, spender: str, owner: str, to: str, amount: int) -> None:
        key = (asset.lower(), owner.lower(), spender.lower())
        allowed = self._allowances.get(key, 0)
        if allowed < amount:
            raise InsufficientAllowance(f"{spender} may pull {allowed} of {asset} from {owner}, needs {amount}")
        self.transfer(asset, owner, to, amount)
        self._allowances[key] = allowed - amount

    def snapshot(self) -> LedgerSnapshot:
        return dict(self._balances), dict(self._allowances)

    def restore(self, snap: LedgerSnapshot) -> None:
        balances, allowances = snap
        self._balances = defaultdict(int, balances)
        self._allowances = defaultdict(int, allowances)

    def _debit(self, asset: str, holder: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        key = (asset.lower(), holder.lower())
        held = self._balances.get(key, 0)
        if held < amount:
            raise InsufficientBalance(f"{holder} holds {held} of {asset}, needs {amount}")
        self._balances[key] = held - amount


__all__ = ["TokenLedger", "LedgerSnapshot"]
