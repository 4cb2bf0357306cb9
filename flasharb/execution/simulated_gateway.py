"""Loan gateway that settles against the in-memory pool and contract."""

from __future__ import annotations

import itertools
import logging
import time
from typing import Dict, Optional

from eth_utils import keccak

from flasharb.common import metrics
from flasharb.common.errors import FlashArbError
from flasharb.common.models import LoanRequest, TxHandle, TxReceipt
from flasharb.execution.interface import LoanGateway
from flasharb.settlement.contract import SettlementContract
from flasharb.settlement.events import encode_event_log
from flasharb.settlement.lending_pool import SimulatedLendingPool

log = logging.getLogger(__name__)


class SimulatedLoanGateway(LoanGateway):
    """Every loan is included immediately in its own block.

    A settlement failure yields a reverted receipt, as it would on-chain.
    """

    def __init__(self, pool: SimulatedLendingPool, contract: SettlementContract, initiator: str, *, start_block: int = 1) -> None:
        self.pool = pool
        self.contract = contract
        self.receiver = contract.address
        self.initiator = initiator
        self._blocks = itertools.count(start_block)
        self._nonces = itertools.count(0)
        self._receipts: Dict[str, TxReceipt] = {}

    async def borrow(self, request: LoanRequest) -> TxHandle:
        nonce = next(self._nonces)
        tx_hash = "0x" + keccak(text=f"sim:{self.initiator}:{nonce}").hex()
        block = next(self._blocks)
        try:
            events = self.pool.flash_loan_simple(
                self.initiator, self.contract, request.asset, request.amount, request.params, request.referral_code
            )
        except FlashArbError as exc:
            log.info("SIM_REVERT tx=%s reason=%s", tx_hash, exc)
            receipt = TxReceipt(tx_hash=tx_hash, status=0, block_number=block)
        else:
            logs = [encode_event_log(e, self.contract.address) for e in events]
            receipt = TxReceipt(tx_hash=tx_hash, status=1, block_number=block, logs=logs)
        self._receipts[tx_hash] = receipt
        metrics.LOANS_SUBMITTED.inc()
        return TxHandle(tx_hash=tx_hash, nonce=nonce, sent_at=time.time())

    async def wait(self, handle: TxHandle) -> TxReceipt:
        return self._receipts[handle.tx_hash]

    async def poll(self, handle: TxHandle) -> Optional[TxReceipt]:
        return self._receipts.get(handle.tx_hash)


__all__ = ["SimulatedLoanGateway"]
