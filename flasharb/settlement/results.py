"""Turn a settlement transaction's receipt into a reportable outcome."""

from __future__ import annotations

import logging
from typing import Optional

from flasharb.common.models import Outcome, OutcomeKind, TxReceipt
from flasharb.settlement.events import ARBITRAGE_FAILURE, ARBITRAGE_PROFIT, decode_event_log

log = logging.getLogger(__name__)

REVERTED = "transaction reverted"


def interpret_receipt(receipt: TxReceipt, contract_address: Optional[str] = None) -> Outcome:
    """Profit if an ``ArbitrageProfit`` was emitted, failure on revert or
    ``ArbitrageFailure``, plain confirmation otherwise.

    When ``contract_address`` is given, logs from other emitters are ignored.
    """
    base = {"tx_hash": receipt.tx_hash, "block_number": receipt.block_number}
    if not receipt.succeeded:
        return Outcome(kind=OutcomeKind.FAILURE, reason=REVERTED, **base)

    profit: Optional[int] = None
    token: Optional[str] = None
    failure: Optional[str] = None
    for entry in receipt.logs:
        if contract_address and entry.address != contract_address.lower():
            continue
        event = decode_event_log(entry)
        if event is None:
            continue
        if event.name == ARBITRAGE_PROFIT:
            token, profit = event.args
        elif event.name == ARBITRAGE_FAILURE:
            failure = event.args[0]

    if profit is not None:
        return Outcome(kind=OutcomeKind.PROFIT, token=token, profit=int(profit), **base)
    if failure is not None:
        return Outcome(kind=OutcomeKind.FAILURE, reason=failure or "unspecified", **base)
    return Outcome(kind=OutcomeKind.CONFIRMED, **base)


__all__ = ["interpret_receipt", "REVERTED"]
