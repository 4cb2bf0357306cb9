"""Calldata builders and thin clients for the contracts the bot touches."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from flasharb.chain.rpc_client import JsonRpcClient
from flasharb.chain.tx_sender import TransactionSender
from flasharb.common.models import TxReceipt

log = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def selector(signature: str) -> str:
    """0x-prefixed 4-byte selector for a canonical function signature."""
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def encode_call(signature: str, types: Sequence[str], args: Sequence[Any]) -> str:
    return selector(signature) + encode(list(types), list(args)).hex()


class Erc20Client:
    """balanceOf / approve / transfer on one token."""

    def __init__(self, rpc: JsonRpcClient, token: str, sender: TransactionSender | None = None) -> None:
        self.rpc = rpc
        self.token = token
        self.sender = sender

    async def balance_of(self, holder: str) -> int:
        data = encode_call("balanceOf(address)", ["address"], [holder])
        raw = await self.rpc.eth_call(self.token, data)
        return int(decode(["uint256"], raw)[0])

    async def approve(self, spender: str, amount: int) -> TxReceipt:
        data = encode_call("approve(address,uint256)", ["address", "uint256"], [spender, amount])
        return await self._require_sender().send_and_wait(self.token, data)

    async def transfer(self, to: str, amount: int) -> TxReceipt:
        data = encode_call("transfer(address,uint256)", ["address", "uint256"], [to, amount])
        return await self._require_sender().send_and_wait(self.token, data)

    def _require_sender(self) -> TransactionSender:
        if self.sender is None:
            raise RuntimeError("Erc20Client is read-only (no sender)")
        return self.sender


class SettlementClient:
    """Operator-side surface of the deployed settlement contract."""

    def __init__(self, rpc: JsonRpcClient, address: str, sender: TransactionSender | None = None) -> None:
        self.rpc = rpc
        self.address = address
        self.sender = sender

    async def fund_contract(self, token: str, amount: int) -> TxReceipt:
        data = encode_call("fundContract(address,uint256)", ["address", "uint256"], [token, amount])
        return await self._require_sender().send_and_wait(self.address, data)

    async def withdraw_token(self, token: str) -> TxReceipt:
        data = encode_call("withdrawToken(address)", ["address"], [token])
        return await self._require_sender().send_and_wait(self.address, data)

    async def emergency_withdraw(self, token: str, amount: int) -> TxReceipt:
        data = encode_call("emergencyWithdraw(address,uint256)", ["address", "uint256"], [token, amount])
        return await self._require_sender().send_and_wait(self.address, data)

    async def get_contract_balance(self, token: str) -> int:
        data = encode_call("getContractBalance(address)", ["address"], [token])
        raw = await self.rpc.eth_call(self.address, data)
        return int(decode(["uint256"], raw)[0])

    async def pool(self) -> str:
        raw = await self.rpc.eth_call(self.address, encode_call("POOL()", [], []))
        return decode(["address"], raw)[0]

    async def addresses_provider(self) -> str:
        raw = await self.rpc.eth_call(self.address, encode_call("ADDRESSES_PROVIDER()", [], []))
        return decode(["address"], raw)[0]

    def _require_sender(self) -> TransactionSender:
        if self.sender is None:
            raise RuntimeError("SettlementClient is read-only (no sender)")
        return self.sender


__all__ = ["selector", "encode_call", "Erc20Client", "SettlementClient"]
