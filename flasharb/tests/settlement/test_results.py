from flasharb.common.models import LogEntry, OutcomeKind, TxReceipt
from flasharb.settlement.events import (
    ARBITRAGE_FAILURE,
    ARBITRAGE_PROFIT,
    DEBUG_LOG,
    ContractEvent,
    decode_event_log,
    encode_event_log,
)
from flasharb.settlement.results import REVERTED, interpret_receipt

CONTRACT = "0x" + "3" * 40
OTHER = "0x" + "9" * 40
DAI = "0x" + "d" * 40
TX = "0x" + "ab" * 32


def test_reverted_receipt_is_a_failure():
    outcome = interpret_receipt(TxReceipt(tx_hash=TX, status=0, block_number=7))
    assert outcome.kind == OutcomeKind.FAILURE
    assert outcome.reason == REVERTED


def test_profit_event_becomes_profit_outcome():
    log = encode_event_log(ContractEvent(ARBITRAGE_PROFIT, (DAI, 591)), CONTRACT)
    outcome = interpret_receipt(TxReceipt(tx_hash=TX, status=1, block_number=9, logs=[log]), CONTRACT)
    assert outcome.kind == OutcomeKind.PROFIT
    assert outcome.profit == 591
    assert outcome.token == DAI
    assert outcome.block_number == 9


def test_failure_event_carries_reason():
    log = encode_event_log(ContractEvent(ARBITRAGE_FAILURE, ("slippage",)), CONTRACT)
    outcome = interpret_receipt(TxReceipt(tx_hash=TX, status=1, logs=[log]))
    assert outcome.kind == OutcomeKind.FAILURE
    assert outcome.reason == "slippage"


def test_no_outcome_event_is_a_confirmation():
    log = encode_event_log(ContractEvent(DEBUG_LOG, ("profit retained", 41)), CONTRACT)
    outcome = interpret_receipt(TxReceipt(tx_hash=TX, status=1, block_number=12, logs=[log]), CONTRACT)
    assert outcome.kind == OutcomeKind.CONFIRMED
    assert outcome.block_number == 12


def test_logs_from_other_emitters_are_ignored():
    log = encode_event_log(ContractEvent(ARBITRAGE_PROFIT, (DAI, 5)), OTHER)
    outcome = interpret_receipt(TxReceipt(tx_hash=TX, status=1, logs=[log]), CONTRACT)
    assert outcome.kind == OutcomeKind.CONFIRMED


def test_unknown_topics_decode_to_none():
    assert decode_event_log(LogEntry(address=CONTRACT, topics=["0x" + "00" * 32])) is None
    assert decode_event_log(LogEntry(address=CONTRACT, topics=[])) is None


def test_receipt_from_rpc_parses_hex_fields():
    log = encode_event_log(ContractEvent(ARBITRAGE_PROFIT, (DAI, 10)), CONTRACT)
    raw = {
        "transactionHash": TX,
        "status": "0x1",
        "blockNumber": "0x10",
        "gasUsed": "0x5208",
        "logs": [{"address": CONTRACT, "topics": log.topics, "data": log.data}],
    }
    receipt = TxReceipt.from_rpc(raw)
    assert receipt.block_number == 16
    assert receipt.gas_used == 21000
    assert interpret_receipt(receipt, CONTRACT).profit == 10
