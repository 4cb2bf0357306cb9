"""Keep the settlement contract's working capital above a floor."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from flasharb.common import metrics
from flasharb.common.errors import InsufficientCapital
from flasharb.common.models import TxReceipt
from flasharb.common.units import format_units
from flasharb.visibility.notifier import EventKind, Notifier

log = logging.getLogger(__name__)


class TokenSource(Protocol):
    token: str

    async def balance_of(self, holder: str) -> int: ...

    async def approve(self, spender: str, amount: int) -> TxReceipt: ...


class FundableContract(Protocol):
    address: str

    async def fund_contract(self, token: str, amount: int) -> TxReceipt: ...


class FundingGuard:
    def __init__(
        self,
        token: TokenSource,
        settlement: FundableContract,
        operator: str,
        *,
        top_up_amount: int,
        notifier: Optional[Notifier] = None,
        symbol: str = "",
    ) -> None:
        self.token = token
        self.settlement = settlement
        self.operator = operator
        self.top_up_amount = top_up_amount
        self.notifier = notifier
        self.symbol = symbol

    async def ensure_funded(self, minimum_working_capital: int) -> None:
        """Top up from the operator when the contract holds less than the floor.

        No transaction is sent when the floor is already met. Otherwise an
        approve and a fund transaction are sent, each confirmed before the
        next step.
        """
        balance = await self.token.balance_of(self.settlement.address)
        metrics.CONTRACT_BALANCE.labels(token=self.token.token).set(balance)
        if balance >= minimum_working_capital:
            await self._notify(EventKind.FUNDING, f"Contract sufficiently funded: {self._fmt(balance)}", balance=balance)
            return

        await self._notify(EventKind.FUNDING, f"Contract needs funding. Current: {self._fmt(balance)}", balance=balance)
        top_up = max(self.top_up_amount, minimum_working_capital - balance)
        wallet = await self.token.balance_of(self.operator)
        if wallet < top_up:
            raise InsufficientCapital(wallet, top_up)

        await self.token.approve(self.settlement.address, top_up)
        await self.settlement.fund_contract(self.token.token, top_up)
        metrics.CONTRACT_BALANCE.labels(token=self.token.token).set(balance + top_up)
        log.info("FUNDED contract=%s amount=%d", self.settlement.address, top_up)
        await self._notify(EventKind.FUNDING, f"Contract funded with {self._fmt(top_up)}", amount=top_up)

    def _fmt(self, amount: int) -> str:
        return f"{format_units(amount)} {self.symbol}".strip()

    async def _notify(self, kind: EventKind, message: str, **data) -> None:
        if self.notifier is not None:
            await self.notifier.emit(kind, message, **data)
        else:
            log.info(message)


__all__ = ["FundingGuard", "TokenSource", "FundableContract"]
