"""Price oracle adapters: one per venue, stateless per call."""

from __future__ import annotations

import abc
import logging

from eth_abi.exceptions import DecodingError

from flasharb.chain.rpc_client import JsonRpcClient
from flasharb.common import metrics
from flasharb.common.errors import QuoteUnavailable, RpcError
from flasharb.common.models import Quote
from flasharb.oracle.quoter_client import get_amounts_out, quote_exact_input_single

log = logging.getLogger(__name__)


class PriceOracleAdapter(abc.ABC):
    venue: str

    @abc.abstractmethod
    async def quote(self, token_in: str, token_out: str, amount_in: int, fee_tier: int | None = None) -> Quote:
        """Return the venue's output for ``amount_in``; raise QuoteUnavailable."""
        raise NotImplementedError

    def _ok(self, amount_in: int, amount_out: int) -> Quote:
        metrics.QUOTES.labels(venue=self.venue, status="ok").inc()
        return Quote(venue=self.venue, amount_in=amount_in, amount_out=amount_out)

    def _fail(self, detail: str) -> QuoteUnavailable:
        metrics.QUOTES.labels(venue=self.venue, status="error").inc()
        log.warning("%s price error: %s", self.venue, detail)
        return QuoteUnavailable(self.venue, detail)


class UniswapV3QuoterAdapter(PriceOracleAdapter):
    """Quotes via the V3 quoter, issued as a dry-run call."""

    def __init__(self, rpc: JsonRpcClient, quoter: str, *, fee_tier: int = 3000, version: int = 1, venue: str = "uniswap") -> None:
        self.rpc = rpc
        self.quoter = quoter
        self.fee_tier = fee_tier
        self.version = version
        self.venue = venue

    async def quote(self, token_in: str, token_out: str, amount_in: int, fee_tier: int | None = None) -> Quote:
        try:
            result = await quote_exact_input_single(
                self.rpc,
                self.quoter,
                token_in,
                token_out,
                fee_tier or self.fee_tier,
                amount_in,
                version=self.version,
            )
        except (RpcError, DecodingError) as exc:
            raise self._fail(str(exc)) from exc
        return self._ok(amount_in, result.amount_out)


class V2RouterAdapter(PriceOracleAdapter):
    """Quotes via a Uniswap-V2-style router (SushiSwap)."""

    def __init__(self, rpc: JsonRpcClient, router: str, *, venue: str = "sushiswap") -> None:
        self.rpc = rpc
        self.router = router
        self.venue = venue

    async def quote(self, token_in: str, token_out: str, amount_in: int, fee_tier: int | None = None) -> Quote:
        try:
            amounts = await get_amounts_out(self.rpc, self.router, amount_in, [token_in, token_out])
        except (RpcError, DecodingError) as exc:
            raise self._fail(str(exc)) from exc
        return self._ok(amount_in, amounts[-1])


__all__ = ["PriceOracleAdapter", "UniswapV3QuoterAdapter", "V2RouterAdapter"]
