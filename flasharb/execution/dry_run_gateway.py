"""Gateway that records loan requests without trading."""

from __future__ import annotations

import logging
from typing import List, Optional

from flasharb.common.models import LoanRequest, TxHandle, TxReceipt
from flasharb.execution.interface import LoanGateway

log = logging.getLogger(__name__)

DRY_RUN_HASH = "0x" + "0" * 64


class DryRunLoanGateway(LoanGateway):
    def __init__(self) -> None:
        self.requests: List[LoanRequest] = []

    async def borrow(self, request: LoanRequest) -> TxHandle:
        self.requests.append(request)
        log.info("DRY_RUN loan asset=%s amount=%d blob_bytes=%d", request.asset, request.amount, len(request.params))
        return TxHandle(tx_hash=DRY_RUN_HASH, nonce=None)

    async def wait(self, handle: TxHandle) -> TxReceipt:
        return TxReceipt(tx_hash=handle.tx_hash, status=1)

    async def poll(self, handle: TxHandle) -> Optional[TxReceipt]:
        return await self.wait(handle)


__all__ = ["DryRunLoanGateway", "DRY_RUN_HASH"]
