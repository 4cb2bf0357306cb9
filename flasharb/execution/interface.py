"""Loan gateway interface over a lending protocol's borrow/callback/repay."""

from __future__ import annotations

import abc
from typing import Optional

from flasharb.common.models import LoanRequest, TxHandle, TxReceipt


class LoanGateway(abc.ABC):
    #: address whose logs carry settlement events, when known
    receiver: Optional[str] = None

    @abc.abstractmethod
    async def borrow(self, request: LoanRequest) -> TxHandle:
        """Submit one flash loan; returns once it has been broadcast."""
        raise NotImplementedError

    @abc.abstractmethod
    async def wait(self, handle: TxHandle) -> TxReceipt:
        """Block until the loan transaction is included (or times out)."""
        raise NotImplementedError

    @abc.abstractmethod
    async def poll(self, handle: TxHandle) -> Optional[TxReceipt]:
        """Non-blocking inclusion check."""
        raise NotImplementedError
