"""Minimal async JSON-RPC client (no web3 dependency).

Quantities come back as hex strings and are converted to ``int`` here so
callers never see wire encoding.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from flasharb.chain.circuit_breaker import CircuitBreaker
from flasharb.common import metrics
from flasharb.common.errors import RpcError, RpcReplyError

log = logging.getLogger(__name__)


class JsonRpcClient:
    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_seconds: float = 15.0,
        breaker: CircuitBreaker | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._breaker = breaker or CircuitBreaker()
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC request and return its ``result`` member."""
        return await self._breaker.call(self._call, method, params)

    async def _call(self, method: str, params: list[Any]) -> Any:
        if self._session is None:
            await self.start()
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        start = time.perf_counter()
        try:
            async with self._session.post(self.rpc_url, json=payload) as resp:
                if resp.status != 200:
                    raise RpcError(f"{method} http {resp.status}")
                body = await resp.json(content_type=None)
        except RpcError:
            metrics.RPC_ERRORS.labels(method=method).inc()
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            metrics.RPC_ERRORS.labels(method=method).inc()
            raise RpcError(f"{method} request failed: {exc}") from exc
        finally:
            metrics.observe_histogram(metrics.RPC_LATENCY_SECONDS.labels(method=method), time.perf_counter() - start)
        if body.get("error"):
            err = body["error"]
            metrics.RPC_ERRORS.labels(method=method).inc()
            raise RpcReplyError(str(err.get("message", err)), code=err.get("code"))
        if "result" not in body:
            raise RpcError(f"{method} returned no result")
        return body["result"]

    # Helpers ----------------------------------------------------------------
    async def eth_call(self, to: str, data: str, *, sender: str | None = None, block: str = "latest") -> bytes:
        """Dry-run a call; never broadcast."""
        tx: Dict[str, str] = {"to": to, "data": data}
        if sender:
            tx["from"] = sender
        result = await self.call("eth_call", [tx, block])
        return bytes.fromhex(str(result).removeprefix("0x"))

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return int(await self.call("eth_getBalance", [address, block]), 16)

    async def gas_price(self) -> int:
        return int(await self.call("eth_gasPrice", []), 16)

    async def chain_id(self) -> int:
        return int(await self.call("eth_chainId", []), 16)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self.call("eth_getTransactionCount", [address, block]), 16)

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        return await self.call("eth_sendRawTransaction", ["0x" + raw_tx.hex()])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])


__all__ = ["JsonRpcClient"]
