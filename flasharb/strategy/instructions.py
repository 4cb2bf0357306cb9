"""Trade instruction producers.

The producer turns an opportunity into the ordered (target, payload) calls
the settlement contract will run. It is swappable: real venue calldata can be
plugged in without touching the orchestrator.
"""

from __future__ import annotations

from typing import Dict, List, Protocol

from flasharb.common.models import InstructionSet, LoanRequest, Opportunity, TradeInstruction
from flasharb.settlement.codec import encode_instructions


class TradeInstructionBuilder(Protocol):
    def build(self, opportunity: Opportunity) -> List[TradeInstruction]: ...


class RouterInstructionBuilder:
    """Buy leg then sell leg, each addressed to the venue's router.

    Payloads are empty placeholders until venue-specific calldata is wired
    in; the settlement contract treats them as opaque.
    """

    def __init__(self, routers: Dict[str, str]) -> None:
        self.routers = {k.lower(): v for k, v in routers.items()}

    def build(self, opportunity: Opportunity) -> List[TradeInstruction]:
        try:
            buy = self.routers[opportunity.buy_venue]
            sell = self.routers[opportunity.sell_venue]
        except KeyError as exc:
            raise ValueError(f"no router configured for venue {exc.args[0]!r}") from exc
        return [TradeInstruction(target=buy, payload=b""), TradeInstruction(target=sell, payload=b"")]


def build_loan_request(opportunity: Opportunity, builder: TradeInstructionBuilder, referral_code: int = 0) -> LoanRequest:
    """Encode the instruction blob and wrap it in a loan request.

    The blob's minimum profit is the opportunity's estimated profit.
    """
    instructions = builder.build(opportunity)
    blob = encode_instructions(InstructionSet.from_instructions(max(0, opportunity.estimated_profit), instructions))
    return LoanRequest(asset=opportunity.token_a, amount=opportunity.amount, params=blob, referral_code=referral_code)


__all__ = ["TradeInstructionBuilder", "RouterInstructionBuilder", "build_loan_request"]
