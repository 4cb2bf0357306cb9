"""Opportunity scoring with integer fixed-point arithmetic.

    diff_bps        = |qa - qb| * 10000 // max(qa, qb)
    loan_fee        = notional * fee_bps // 10000
    estimated_profit = max(qa, qb) - min(qa, qb) - loan_fee

An opportunity exists only when ``diff_bps >= min_divergence_bps`` and
``estimated_profit >= min_profit``. Floating point is used for the display
percentage only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from flasharb.common import metrics
from flasharb.common.models import Opportunity, Quote
from flasharb.common.units import parse_units

log = logging.getLogger(__name__)

BPS = 10_000
MIN_DIVERGENCE_BPS = 50
LOAN_FEE_BPS = 9
MIN_PROFIT = parse_units("0.1")
DEFAULT_GAS_ESTIMATE = 200_000


@dataclass(frozen=True)
class EvaluatorPolicy:
    min_divergence_bps: int = MIN_DIVERGENCE_BPS
    loan_fee_bps: int = LOAN_FEE_BPS
    min_profit: int = MIN_PROFIT
    gas_estimate: int = DEFAULT_GAS_ESTIMATE


def divergence_bps(qa: int, qb: int) -> int:
    high = max(qa, qb)
    if high <= 0:
        return 0
    return abs(qa - qb) * BPS // high


def loan_fee(notional: int, fee_bps: int) -> int:
    return notional * fee_bps // BPS


class OpportunityEvaluator:
    def __init__(self, policy: EvaluatorPolicy | None = None) -> None:
        self.policy = policy or EvaluatorPolicy()

    def evaluate(
        self,
        quote_a: Quote,
        quote_b: Quote,
        notional: int,
        fee_rate_bps: int | None = None,
        *,
        token_a: str,
        token_b: str,
        pair: str = "",
    ) -> Optional[Opportunity]:
        """Score one pair of quotes; None when below either threshold."""
        qa, qb = quote_a.amount_out, quote_b.amount_out
        diff = divergence_bps(qa, qb)
        if diff < self.policy.min_divergence_bps:
            log.debug("NO_OPP pair=%s diff_bps=%d below %d", pair, diff, self.policy.min_divergence_bps)
            return None

        if qa > qb:
            buy, sell = quote_b, quote_a
        else:
            buy, sell = quote_a, quote_b
        fee = loan_fee(notional, self.policy.loan_fee_bps if fee_rate_bps is None else fee_rate_bps)
        profit = sell.amount_out - buy.amount_out - fee
        if profit < self.policy.min_profit:
            log.debug("NO_OPP pair=%s diff_bps=%d profit=%d below %d", pair, diff, profit, self.policy.min_profit)
            return None

        opp = Opportunity(
            token_a=token_a,
            token_b=token_b,
            pair=pair,
            amount=notional,
            buy_venue=buy.venue,
            sell_venue=sell.venue,
            buy_price=buy.amount_out,
            sell_price=sell.amount_out,
            loan_fee=fee,
            estimated_profit=profit,
            divergence_bps=diff,
            gas_estimate=self.policy.gas_estimate,
            timestamp_ms=int(time.time() * 1000),
        )
        label = pair or token_a
        metrics.OPPORTUNITIES.labels(pair=label).inc()
        metrics.OPP_PROFIT.labels(pair=label).set(profit)
        metrics.OPP_DIVERGENCE_BPS.labels(pair=label).set(diff)
        return opp


def rank(opportunities: Iterable[Optional[Opportunity]]) -> List[Opportunity]:
    """Drop empties and sort by estimated profit, best first (stable on ties)."""
    return sorted((o for o in opportunities if o is not None), key=lambda o: o.estimated_profit, reverse=True)


__all__ = [
    "BPS",
    "MIN_DIVERGENCE_BPS",
    "LOAN_FEE_BPS",
    "MIN_PROFIT",
    "EvaluatorPolicy",
    "OpportunityEvaluator",
    "divergence_bps",
    "loan_fee",
    "rank",
]
