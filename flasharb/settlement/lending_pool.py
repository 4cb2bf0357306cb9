"""Simulated lending pool offering the simple flash-loan primitive."""

from __future__ import annotations

import logging
from typing import List

from flasharb.common.errors import SettlementError
from flasharb.common.models import normalize_address
from flasharb.settlement.contract import SettlementContract
from flasharb.settlement.events import ContractEvent
from flasharb.settlement.ledger import TokenLedger

log = logging.getLogger(__name__)

FLASH_LOAN_PREMIUM_BPS = 9


class SimulatedLendingPool:
    """Lend, call back, pull principal plus premium; revert everything on failure."""

    def __init__(self, ledger: TokenLedger, address: str, *, premium_bps: int = FLASH_LOAN_PREMIUM_BPS) -> None:
        self.ledger = ledger
        self.address = normalize_address(address)
        self.premium_bps = premium_bps

    def premium_for(self, amount: int) -> int:
        return amount * self.premium_bps // 10_000

    def flash_loan_simple(
        self,
        initiator: str,
        receiver: SettlementContract,
        asset: str,
        amount: int,
        params: bytes,
        referral_code: int = 0,
    ) -> List[ContractEvent]:
        """Run one loan; returns the events the receiver emitted."""
        snap = self.ledger.snapshot()
        emitted_before = len(receiver.events)
        premium = self.premium_for(amount)
        try:
            self.ledger.transfer(asset, self.address, receiver.address, amount)
            if not receiver.execute_operation(self.address, asset, amount, premium, initiator, params):
                raise SettlementError("invalid flash loan executor return")
            self.ledger.transfer_from(asset, self.address, receiver.address, self.address, amount + premium)
        except Exception:
            self.ledger.restore(snap)
            del receiver.events[emitted_before:]
            raise
        log.debug("FLASH_LOAN asset=%s amount=%d premium=%d referral=%d", asset, amount, premium, referral_code)
        return receiver.events[emitted_before:]


__all__ = ["SimulatedLendingPool", "FLASH_LOAN_PREMIUM_BPS"]
