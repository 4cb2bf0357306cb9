"""Settlement contract events and their log encoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from flasharb.common.models import LogEntry

ARBITRAGE_PROFIT = "ArbitrageProfit"
ARBITRAGE_FAILURE = "ArbitrageFailure"
SWAP_EXECUTED = "SwapExecuted"
DEBUG_LOG = "DebugLog"


@dataclass(frozen=True)
class EventAbi:
    signature: str
    indexed: Tuple[str, ...]
    data: Tuple[str, ...]

    @property
    def topic(self) -> str:
        return "0x" + keccak(text=self.signature).hex()


EVENT_ABIS: Dict[str, EventAbi] = {
    ARBITRAGE_PROFIT: EventAbi("ArbitrageProfit(address,uint256)", ("address",), ("uint256",)),
    ARBITRAGE_FAILURE: EventAbi("ArbitrageFailure(string)", (), ("string",)),
    SWAP_EXECUTED: EventAbi("SwapExecuted(address,bool)", (), ("address", "bool")),
    DEBUG_LOG: EventAbi("DebugLog(string,uint256)", (), ("string", "uint256")),
}
_BY_TOPIC: Dict[str, str] = {abi.topic: name for name, abi in EVENT_ABIS.items()}


@dataclass(frozen=True)
class ContractEvent:
    name: str
    args: Tuple[Any, ...]

    def __post_init__(self) -> None:
        abi = EVENT_ABIS.get(self.name)
        if abi is None:
            raise ValueError(f"unknown event {self.name}")
        if len(self.args) != len(abi.indexed) + len(abi.data):
            raise ValueError(f"{self.name} takes {len(abi.indexed) + len(abi.data)} args")


def encode_event_log(event: ContractEvent, address: str) -> LogEntry:
    abi = EVENT_ABIS[event.name]
    n_idx = len(abi.indexed)
    topics = [abi.topic]
    for typ, value in zip(abi.indexed, event.args[:n_idx]):
        topics.append("0x" + encode([typ], [value]).hex())
    data = "0x" + encode(list(abi.data), list(event.args[n_idx:])).hex()
    return LogEntry(address=address, topics=topics, data=data)


def decode_event_log(log: LogEntry) -> Optional[ContractEvent]:
    """Decode one of our events; None for foreign or malformed logs."""
    if not log.topics:
        return None
    name = _BY_TOPIC.get(log.topics[0].lower())
    if name is None:
        return None
    abi = EVENT_ABIS[name]
    if len(log.topics) != 1 + len(abi.indexed):
        return None
    try:
        indexed = [
            decode([typ], bytes.fromhex(topic.removeprefix("0x")))[0]
            for typ, topic in zip(abi.indexed, log.topics[1:])
        ]
        data = decode(list(abi.data), bytes.fromhex(log.data.removeprefix("0x")))
    except (DecodingError, ValueError):
        return None
    types = (*abi.indexed, *abi.data)
    args = tuple(v.lower() if typ == "address" else v for typ, v in zip(types, (*indexed, *data)))
    return ContractEvent(name, args)


__all__ = [
    "ARBITRAGE_PROFIT",
    "ARBITRAGE_FAILURE",
    "SWAP_EXECUTED",
    "DEBUG_LOG",
    "EVENT_ABIS",
    "ContractEvent",
    "encode_event_log",
    "decode_event_log",
]
