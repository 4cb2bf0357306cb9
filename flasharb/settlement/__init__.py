from flasharb.settlement.codec import decode_instructions, encode_instructions
from flasharb.settlement.contract import SettlementContract, SettlementSession, SettlementStep
from flasharb.settlement.lending_pool import SimulatedLendingPool
from flasharb.settlement.ledger import TokenLedger
from flasharb.settlement.results import interpret_receipt

__all__ = [
    "encode_instructions",
    "decode_instructions",
    "SettlementContract",
    "SettlementSession",
    "SettlementStep",
    "SimulatedLendingPool",
    "TokenLedger",
    "interpret_receipt",
]
