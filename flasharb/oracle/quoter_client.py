"""Uniswap V3 quoter and V2-router price reads over JSON-RPC ``eth_call``.

The quoter functions are state-mutating on-chain (they revert internally to
return a result), so they are only ever issued as dry-run calls. We avoid a
web3 dependency and use eth-abi directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from flasharb.chain.contracts import encode_call
from flasharb.chain.rpc_client import JsonRpcClient

log = logging.getLogger(__name__)

QUOTER_V1_SIG = "quoteExactInputSingle(address,address,uint24,uint256,uint160)"
QUOTER_V2_SIG = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
V2_AMOUNTS_OUT_SIG = "getAmountsOut(uint256,address[])"


@dataclass
class QuoterResult:
    amount_out: int
    sqrt_price_after: int = 0
    initialized_ticks_crossed: int = 0
    gas_estimate: int = 0


async def quote_exact_input_single(
    rpc: JsonRpcClient,
    quoter: str,
    token_in: str,
    token_out: str,
    fee: int,
    amount_in: int,
    *,
    version: int = 1,
    sqrt_price_limit_x96: int = 0,
) -> QuoterResult:
    """Call ``quoteExactInputSingle`` on a V1 or V2 quoter.

    Raises ``RpcError`` on transport/revert and ``DecodingError`` on a
    malformed return value.
    """
    if version == 2:
        calldata = encode_call(
            QUOTER_V2_SIG,
            ["(address,address,uint256,uint24,uint160)"],
            [(token_in, token_out, amount_in, fee, sqrt_price_limit_x96)],
        )
    else:
        calldata = encode_call(
            QUOTER_V1_SIG,
            ["address", "address", "uint24", "uint256", "uint160"],
            [token_in, token_out, fee, amount_in, sqrt_price_limit_x96],
        )
    raw = await rpc.eth_call(quoter, calldata)
    if version == 2:
        decoded = decode(["uint256", "uint160", "uint32", "uint256"], raw)
        return QuoterResult(
            amount_out=int(decoded[0]),
            sqrt_price_after=int(decoded[1]),
            initialized_ticks_crossed=int(decoded[2]),
            gas_estimate=int(decoded[3]),
        )
    return QuoterResult(amount_out=int(decode(["uint256"], raw)[0]))


async def get_amounts_out(rpc: JsonRpcClient, router: str, amount_in: int, path: List[str]) -> List[int]:
    """Call a V2 router's ``getAmountsOut`` (a view function)."""
    if len(path) < 2:
        raise ValueError("path needs at least two tokens")
    calldata = encode_call(V2_AMOUNTS_OUT_SIG, ["uint256", "address[]"], [amount_in, path])
    raw = await rpc.eth_call(router, calldata)
    amounts = decode(["uint256[]"], raw)[0]
    if len(amounts) != len(path):
        raise DecodingError(f"expected {len(path)} amounts, got {len(amounts)}")
    return [int(a) for a in amounts]


__all__ = ["quote_exact_input_single", "get_amounts_out", "QuoterResult", "QUOTER_V1_SIG", "QUOTER_V2_SIG"]
