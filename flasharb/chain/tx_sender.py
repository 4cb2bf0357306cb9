"""Sign, broadcast and await transactions from the operator account."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from eth_account import Account
from eth_utils import to_checksum_address

from flasharb.chain.rpc_client import JsonRpcClient
from flasharb.common import metrics
from flasharb.common.errors import RpcError, SubmissionError, TransactionTimeout
from flasharb.common.models import TxHandle, TxReceipt

log = logging.getLogger(__name__)


class TransactionSender:
    """Single-account sender. Nonces come from the node's pending count."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        private_key: str,
        chain_id: int,
        *,
        default_gas_limit: int = 300_000,
        receipt_timeout: float = 180.0,
        poll_interval: float = 2.0,
    ) -> None:
        self.rpc = rpc
        self._account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.default_gas_limit = default_gas_limit
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval

    @property
    def address(self) -> str:
        return self._account.address

    async def send(self, to: str, data: str, *, gas_limit: int | None = None, value: int = 0) -> TxHandle:
        """Sign and broadcast; returns once the node accepted the transaction."""
        try:
            nonce = await self.rpc.get_transaction_count(self.address, "pending")
            gas_price = await self.rpc.gas_price()
        except RpcError as exc:
            raise SubmissionError(f"could not prepare transaction: {exc}") from exc
        tx = {
            "to": to_checksum_address(to),
            "data": data,
            "value": value,
            "gas": gas_limit or self.default_gas_limit,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self.chain_id,
        }
        signed = self._account.sign_transaction(tx)
        try:
            tx_hash = await self.rpc.send_raw_transaction(bytes(signed.raw_transaction))
        except RpcError as exc:
            raise SubmissionError(f"broadcast rejected: {exc}") from exc
        log.info("TX_SENT hash=%s nonce=%d to=%s gas_price=%d", tx_hash, nonce, to, gas_price)
        return TxHandle(tx_hash=tx_hash, nonce=nonce, sent_at=time.time())

    async def poll(self, handle: TxHandle) -> Optional[TxReceipt]:
        """Return the receipt if the transaction was included, else None."""
        raw = await self.rpc.get_transaction_receipt(handle.tx_hash)
        if not raw:
            return None
        return TxReceipt.from_rpc(raw)

    async def wait(self, handle: TxHandle, timeout: float | None = None) -> TxReceipt:
        """Poll for the receipt until it arrives or the deadline passes.

        The transaction is not replaced on timeout; the caller keeps the
        handle and may poll it again later.
        """
        deadline = time.monotonic() + (timeout if timeout is not None else self.receipt_timeout)
        while True:
            try:
                receipt = await self.poll(handle)
            except RpcError as exc:
                log.warning("Receipt poll failed for %s: %s", handle.tx_hash, exc)
                receipt = None
            if receipt is not None:
                if handle.sent_at:
                    metrics.observe_histogram(metrics.CONFIRMATION_SECONDS, max(0.0, time.time() - handle.sent_at))
                return receipt
            if time.monotonic() >= deadline:
                raise TransactionTimeout(handle.tx_hash, timeout if timeout is not None else self.receipt_timeout)
            await asyncio.sleep(self.poll_interval)

    async def send_and_wait(self, to: str, data: str, *, gas_limit: int | None = None) -> TxReceipt:
        handle = await self.send(to, data, gas_limit=gas_limit)
        receipt = await self.wait(handle)
        if not receipt.succeeded:
            raise SubmissionError(f"transaction {handle.tx_hash} reverted")
        return receipt


__all__ = ["TransactionSender"]
