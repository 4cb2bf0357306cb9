"""Shared, strongly validated data models for flasharb.

These Pydantic models define the contracts between the evaluator, the
orchestrator, the loan gateways and the settlement model. All token amounts
are integer base units; validation fails fast so a malformed quote or loan
request never reaches a signed transaction.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UINT256_MAX = 2**256 - 1


def _is_hex_address(value: str) -> bool:
    """Return True if the string looks like a 20-byte hex address."""
    if not isinstance(value, str):
        return False
    if not value.startswith("0x") or len(value) != 42:
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


def normalize_address(value: str) -> str:
    if not _is_hex_address(value):
        raise ValueError("address must be 0x-prefixed 40 hex chars")
    return value.lower()


class Quote(BaseModel):
    """One venue's answer for a notional amount in one cycle."""

    model_config = ConfigDict(frozen=True)

    venue: str = Field(..., description="Venue identifier, e.g. uniswap")
    amount_in: int = Field(..., gt=0)
    amount_out: int = Field(..., ge=0)

    @field_validator("venue")
    @classmethod
    def _venue(cls, v: str) -> str:
        if not v or not v.isascii():
            raise ValueError("venue must be ASCII and non-empty")
        return v.lower()

    def __repr__(self) -> str:  # pragma: no cover - convenience
        return f"Quote({self.venue} in={self.amount_in} out={self.amount_out})"


class Opportunity(BaseModel):
    """Fee-adjusted divergence between two venues for one pair."""

    model_config = ConfigDict(frozen=True)

    token_a: str = Field(..., description="Borrowed asset")
    token_b: str = Field(..., description="Counter asset")
    pair: str = Field("", description="Display label, e.g. DAI/WETH")
    amount: int = Field(..., gt=0, description="Notional borrowed amount")
    buy_venue: str
    sell_venue: str
    buy_price: int = Field(..., ge=0)
    sell_price: int = Field(..., ge=0)
    loan_fee: int = Field(..., ge=0)
    estimated_profit: int
    divergence_bps: int = Field(..., ge=0)
    gas_estimate: int = Field(200_000, ge=0)
    timestamp_ms: int = Field(0, ge=0)

    @field_validator("token_a", "token_b")
    @classmethod
    def _token_addr(cls, v: str) -> str:
        return normalize_address(v)

    @model_validator(mode="after")
    def _profit_formula(self) -> "Opportunity":
        if self.estimated_profit != self.sell_price - self.buy_price - self.loan_fee:
            raise ValueError("estimated_profit must equal sell_price - buy_price - loan_fee")
        if self.buy_venue == self.sell_venue:
            raise ValueError("buy and sell venue must differ")
        return self

    @property
    def divergence_pct(self) -> float:
        """Display-only percentage."""
        return self.divergence_bps / 100

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"Opportunity({self.pair or self.token_a} buy={self.buy_venue} "
            f"sell={self.sell_venue} profit={self.estimated_profit})"
        )


class TradeInstruction(BaseModel):
    """One (target, payload) call executed inside a settlement session."""

    model_config = ConfigDict(frozen=True)

    target: str
    payload: bytes = b""

    @field_validator("target")
    @classmethod
    def _target(cls, v: str) -> str:
        return normalize_address(v)


class InstructionSet(BaseModel):
    """Decoded form of the instruction blob."""

    model_config = ConfigDict(frozen=True)

    min_profit: int = Field(..., ge=0, le=UINT256_MAX)
    targets: List[str] = Field(default_factory=list)
    payloads: List[bytes] = Field(default_factory=list)

    @field_validator("targets")
    @classmethod
    def _targets(cls, v: List[str]) -> List[str]:
        return [normalize_address(t) for t in v]

    @model_validator(mode="after")
    def _lengths_match(self) -> "InstructionSet":
        if len(self.targets) != len(self.payloads):
            raise ValueError("targets and payloads must have equal length")
        return self

    @classmethod
    def from_instructions(cls, min_profit: int, instructions: List[TradeInstruction]) -> "InstructionSet":
        return cls(
            min_profit=min_profit,
            targets=[i.target for i in instructions],
            payloads=[i.payload for i in instructions],
        )

    def instructions(self) -> List[TradeInstruction]:
        return [TradeInstruction(target=t, payload=p) for t, p in zip(self.targets, self.payloads)]


class LoanRequest(BaseModel):
    """A flash loan ready to hand to a loan gateway."""

    model_config = ConfigDict(frozen=True)

    asset: str
    amount: int = Field(..., gt=0, le=UINT256_MAX)
    params: bytes = Field(..., description="Encoded instruction blob")
    referral_code: int = Field(0, ge=0, lt=2**16)

    @field_validator("asset")
    @classmethod
    def _asset(cls, v: str) -> str:
        return normalize_address(v)


class TxHandle(BaseModel):
    """A broadcast transaction."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    nonce: Optional[int] = None
    sent_at: float = 0.0


class LogEntry(BaseModel):
    """An emitted event as found in a receipt."""

    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"

    @field_validator("address")
    @classmethod
    def _addr(cls, v: str) -> str:
        return normalize_address(v)


class TxReceipt(BaseModel):
    """Subset of an execution receipt the core needs."""

    tx_hash: str
    status: int = Field(..., ge=0, le=1)
    block_number: int = Field(0, ge=0)
    gas_used: int = Field(0, ge=0)
    logs: List[LogEntry] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, raw: dict) -> "TxReceipt":
        """Build from an ``eth_getTransactionReceipt`` result (hex quantities)."""
        return cls(
            tx_hash=raw.get("transactionHash", ""),
            status=int(str(raw.get("status", "0x0")), 16),
            block_number=int(str(raw.get("blockNumber") or "0x0"), 16),
            gas_used=int(str(raw.get("gasUsed") or "0x0"), 16),
            logs=[
                LogEntry(address=log["address"], topics=list(log.get("topics", [])), data=log.get("data", "0x"))
                for log in raw.get("logs", [])
            ],
        )


class OutcomeKind(str, Enum):
    PROFIT = "profit"
    FAILURE = "failure"
    CONFIRMED = "confirmed"


class Outcome(BaseModel):
    """Reporting-only result of one settlement session."""

    kind: OutcomeKind
    tx_hash: str = ""
    block_number: int = 0
    token: Optional[str] = None
    profit: Optional[int] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _consistent(self) -> "Outcome":
        if self.kind == OutcomeKind.PROFIT and self.profit is None:
            raise ValueError("profit outcome requires profit")
        if self.kind == OutcomeKind.FAILURE and not self.reason:
            raise ValueError("failure outcome requires reason")
        return self


class ProfitRecord(BaseModel):
    timestamp_ms: int
    profit: int
    tx_hash: str = ""


class GasSample(BaseModel):
    timestamp_ms: int
    gas_price_wei: int


class CycleResult(BaseModel):
    """What one scan cycle did; returned for tests and logs."""

    action: Literal["skip", "execute", "error", "stopped"]
    reason: str = ""
    opportunity: Optional[Opportunity] = None
    outcome: Optional[Outcome] = None


__all__ = [
    "UINT256_MAX",
    "normalize_address",
    "Quote",
    "Opportunity",
    "TradeInstruction",
    "InstructionSet",
    "LoanRequest",
    "TxHandle",
    "LogEntry",
    "TxReceipt",
    "OutcomeKind",
    "Outcome",
    "ProfitRecord",
    "GasSample",
    "CycleResult",
]
