"""Settlement contract: the atomic flash-loan callback as a state machine.

One call to ``execute_operation`` is one settlement session:

    AUTHORIZE -> DECODE -> EXECUTE_TRADES -> VERIFY_SOLVENCY -> REPAY -> DISTRIBUTE

Any failure restores the ledger and drops the session's events, which is how
the execution environment's revert is modelled. Configuration (operator,
pool, provider) is fixed at construction; only token balances change.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from flasharb.common.errors import InsufficientRepayment, SwapFailed, Unauthorized
from flasharb.common.models import InstructionSet, normalize_address
from flasharb.settlement.codec import decode_instructions
from flasharb.settlement.events import (
    ARBITRAGE_PROFIT,
    DEBUG_LOG,
    SWAP_EXECUTED,
    ContractEvent,
)
from flasharb.settlement.ledger import TokenLedger

log = logging.getLogger(__name__)


class SettlementStep(str, Enum):
    AUTHORIZE = "authorize"
    DECODE = "decode"
    EXECUTE_TRADES = "execute_trades"
    VERIFY_SOLVENCY = "verify_solvency"
    REPAY = "repay"
    DISTRIBUTE = "distribute"
    DONE = "done"


# A trade target receives the contract and the opaque payload and returns
# True on success. It may move tokens through ``contract.ledger``.
TradeTarget = Callable[["SettlementContract", bytes], bool]


@dataclass
class SettlementSession:
    asset: str
    amount: int
    premium: int
    initiator: str
    instructions: Optional[InstructionSet] = None
    step: SettlementStep = SettlementStep.AUTHORIZE
    final_balance: int = 0
    distributed: int = 0
    retained: int = 0
    events: List[ContractEvent] = field(default_factory=list)

    @property
    def debt(self) -> int:
        return self.amount + self.premium


class SettlementContract:
    def __init__(
        self,
        ledger: TokenLedger,
        *,
        address: str,
        operator: str,
        pool: str,
        addresses_provider: str,
        targets: Dict[str, TradeTarget] | None = None,
    ) -> None:
        self.ledger = ledger
        self._address = normalize_address(address)
        self._operator = normalize_address(operator)
        self._pool = normalize_address(pool)
        self._provider = normalize_address(addresses_provider)
        self._targets: Dict[str, TradeTarget] = {normalize_address(k): v for k, v in (targets or {}).items()}
        self.events: List[ContractEvent] = []
        self.last_session: Optional[SettlementSession] = None

    # Read-only accessors -------------------------------------------------
    @property
    def address(self) -> str:
        return self._address

    @property
    def owner(self) -> str:
        return self._operator

    @property
    def pool(self) -> str:
        return self._pool

    @property
    def addresses_provider(self) -> str:
        return self._provider

    def get_contract_balance(self, asset: str) -> int:
        return self.ledger.balance_of(asset, self._address)

    def register_target(self, target: str, fn: TradeTarget) -> None:
        """Deploy a venue stand-in at ``target``."""
        self._targets[normalize_address(target)] = fn

    def is_contract(self, account: str) -> bool:
        """True for this contract and for registered venue stand-ins; False for plain accounts."""
        account = normalize_address(account)
        return account == self._address or account in self._targets

    # Flash-loan callback -------------------------------------------------
    def execute_operation(
        self,
        caller: str,
        asset: str,
        amount: int,
        premium: int,
        initiator: str,
        params: bytes,
    ) -> bool:
        session = SettlementSession(asset=asset.lower(), amount=amount, premium=premium, initiator=initiator.lower())
        self.last_session = session
        with self._atomic(session):
            # AUTHORIZE: both identities checked before any funds move
            if caller.lower() != self._pool:
                raise Unauthorized("Only pool")
            if session.initiator != self._operator:
                raise Unauthorized("Unauthorized initiator")

            session.step = SettlementStep.DECODE
            session.instructions = decode_instructions(params)

            session.step = SettlementStep.EXECUTE_TRADES
            for index, instr in enumerate(session.instructions.instructions()):
                self._run_trade(session, index, instr.target, instr.payload)

            session.step = SettlementStep.VERIFY_SOLVENCY
            session.final_balance = self.get_contract_balance(session.asset)
            if session.final_balance < session.debt:
                raise InsufficientRepayment(session.final_balance, session.debt)

            session.step = SettlementStep.REPAY
            self.ledger.approve(session.asset, self._address, self._pool, session.debt)

            session.step = SettlementStep.DISTRIBUTE
            surplus = session.final_balance - session.debt
            if surplus >= session.instructions.min_profit:
                self.ledger.transfer(session.asset, self._address, self._operator, surplus)
                session.distributed = surplus
                self._emit(session, ContractEvent(ARBITRAGE_PROFIT, (session.asset, surplus)))
            else:
                # below threshold: left in the contract for later cycles
                session.retained = surplus
                self._emit(session, ContractEvent(DEBUG_LOG, ("profit retained", surplus)))
            session.step = SettlementStep.DONE
        log.info(
            "SETTLED asset=%s amount=%d premium=%d distributed=%d retained=%d",
            session.asset,
            amount,
            premium,
            session.distributed,
            session.retained,
        )
        return True

    def _run_trade(self, session: SettlementSession, index: int, target: str, payload: bytes) -> None:
        fn = self._targets.get(target)
        if fn is None:
            raise SwapFailed(target, index, "no code at target")
        try:
            ok = fn(self, payload)
        except Exception as exc:
            # any failure inside the target reverts that call, like a low-level call
            raise SwapFailed(target, index, str(exc)) from exc
        if not ok:
            raise SwapFailed(target, index)
        self._emit(session, ContractEvent(SWAP_EXECUTED, (target, True)))

    # Operator actions ----------------------------------------------------
    def fund_contract(self, caller: str, asset: str, amount: int) -> None:
        """Pull working capital from the operator (needs a prior approve)."""
        self._only_operator(caller)
        self.ledger.transfer_from(asset, self._address, caller, self._address, amount)

    def withdraw_token(self, caller: str, asset: str) -> int:
        """Send the full balance of ``asset`` to the operator."""
        self._only_operator(caller)
        balance = self.get_contract_balance(asset)
        if balance:
            self.ledger.transfer(asset, self._address, self._operator, balance)
        return balance

    def emergency_withdraw(self, caller: str, asset: str, amount: int) -> None:
        self._only_operator(caller)
        self.ledger.transfer(asset, self._address, self._operator, amount)

    # Internals -----------------------------------------------------------
    def _only_operator(self, caller: str) -> None:
        if caller.lower() != self._operator:
            raise Unauthorized("Only owner")

    def _emit(self, session: SettlementSession, event: ContractEvent) -> None:
        session.events.append(event)

    @contextlib.contextmanager
    def _atomic(self, session: SettlementSession) -> Iterator[None]:
        snap = self.ledger.snapshot()
        try:
            yield
        except Exception as exc:
            self.ledger.restore(snap)
            session.events.clear()
            log.warning("SETTLEMENT_REVERT step=%s reason=%s", session.step.value, exc)
            raise
        self.events.extend(session.events)


__all__ = ["SettlementContract", "SettlementSession", "SettlementStep", "TradeTarget"]
