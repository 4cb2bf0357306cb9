"""Loan gateway for the Aave V3 pool's ``flashLoanSimple``."""

from __future__ import annotations

import logging
from typing import Optional

from flasharb.chain.contracts import encode_call
from flasharb.chain.tx_sender import TransactionSender
from flasharb.common import metrics
from flasharb.common.models import LoanRequest, TxHandle, TxReceipt
from flasharb.execution.interface import LoanGateway

log = logging.getLogger(__name__)

FLASH_LOAN_SIMPLE_SIG = "flashLoanSimple(address,address,uint256,bytes,uint16)"


def encode_flash_loan_simple(receiver: str, request: LoanRequest) -> str:
    return encode_call(
        FLASH_LOAN_SIMPLE_SIG,
        ["address", "address", "uint256", "bytes", "uint16"],
        [receiver, request.asset, request.amount, request.params, request.referral_code],
    )


class AaveLoanGateway(LoanGateway):
    def __init__(self, sender: TransactionSender, pool: str, receiver: str, *, gas_limit: int = 500_000) -> None:
        self.sender = sender
        self.pool = pool
        self.receiver = receiver.lower()
        self.gas_limit = gas_limit

    async def borrow(self, request: LoanRequest) -> TxHandle:
        data = encode_flash_loan_simple(self.receiver, request)
        handle = await self.sender.send(self.pool, data, gas_limit=self.gas_limit)
        metrics.LOANS_SUBMITTED.inc()
        log.info("LOAN_SUBMITTED tx=%s asset=%s amount=%d", handle.tx_hash, request.asset, request.amount)
        return handle

    async def wait(self, handle: TxHandle) -> TxReceipt:
        return await self.sender.wait(handle)

    async def poll(self, handle: TxHandle) -> Optional[TxReceipt]:
        return await self.sender.poll(handle)


__all__ = ["AaveLoanGateway", "encode_flash_loan_simple", "FLASH_LOAN_SIMPLE_SIG"]
