"""Execution orchestrator: the polling loop around evaluation and settlement.

States::

    IDLE -> STARTUP_CHECK -> SCAN -> (SKIP | EXECUTE) -> SCAN ...
    any -> STOPPED  (explicit stop or failed startup)

At most one loan is unresolved at any time: the operator account has a
single sequential nonce, so a second submission is refused while a loan is
outstanding, including one whose receipt wait timed out.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, List, Optional, Protocol, Sequence, Tuple

from flasharb.common import metrics
from flasharb.common.errors import LoanInFlight, StartupError, TransactionTimeout, TransientError
from flasharb.common.models import (
    CycleResult,
    GasSample,
    Opportunity,
    Outcome,
    OutcomeKind,
    ProfitRecord,
    TxHandle,
    TxReceipt,
)
from flasharb.common.units import ETHER, GWEI, format_units, to_gwei
from flasharb.execution.funding_guard import FundingGuard
from flasharb.execution.interface import LoanGateway
from flasharb.oracle.adapters import PriceOracleAdapter
from flasharb.settlement.results import interpret_receipt
from flasharb.strategy.evaluator import OpportunityEvaluator, rank
from flasharb.strategy.instructions import TradeInstructionBuilder, build_loan_request
from flasharb.visibility.notifier import EventKind, Notifier

log = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    STARTUP_CHECK = "startup_check"
    SCAN = "scan"
    SKIP = "skip"
    EXECUTE = "execute"
    STOPPED = "stopped"


_STATE_CODES = {s: i for i, s in enumerate(OrchestratorState)}


class ChainReader(Protocol):
    async def gas_price(self) -> int: ...

    async def get_balance(self, address: str, block: str = "latest") -> int: ...


@dataclass(frozen=True)
class TradePair:
    label: str
    token_a: str
    token_b: str

    @property
    def symbol(self) -> str:
        return self.label.split("/")[0]


@dataclass(frozen=True)
class OrchestratorConfig:
    notional: int = 10 * ETHER
    poll_interval: float = 60.0
    gas_backoff: float = 60.0
    max_gas_price_wei: int = 25 * GWEI
    fallback_gas_price_wei: int = 50 * GWEI
    min_gas_reserve_wei: int = ETHER // 100
    min_working_capital: int = 5 * ETHER
    fee_tier: Optional[int] = None
    gas_history_size: int = 20
    profit_history_size: int = 100
    recent_opportunities: int = 50
    explorer_tx_url: str = ""


class ExecutionOrchestrator:
    def __init__(
        self,
        *,
        adapters: Tuple[PriceOracleAdapter, PriceOracleAdapter],
        pairs: Sequence[TradePair],
        evaluator: OpportunityEvaluator,
        gateway: LoanGateway,
        chain: ChainReader,
        operator: str,
        instruction_builder: TradeInstructionBuilder,
        funding_guard: Optional[FundingGuard] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[OrchestratorConfig] = None,
    ) -> None:
        if not pairs:
            raise ValueError("at least one trade pair is required")
        self.adapters = adapters
        self.pairs = list(pairs)
        self.evaluator = evaluator
        self.gateway = gateway
        self.chain = chain
        self.operator = operator
        self.instruction_builder = instruction_builder
        self.funding_guard = funding_guard
        self.notifier = notifier or Notifier()
        self.config = config or OrchestratorConfig()

        self._state = OrchestratorState.IDLE
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._started_at: Optional[float] = None
        self._inflight = asyncio.Lock()
        self._pending: Optional[TxHandle] = None
        self.gas_history: Deque[GasSample] = deque(maxlen=self.config.gas_history_size)
        self.profit_history: Deque[ProfitRecord] = deque(maxlen=self.config.profit_history_size)
        self.total_profit = 0
        self.successful_trades = 0
        self.recent: Deque[Opportunity] = deque(maxlen=self.config.recent_opportunities)
        self.last_error: Optional[BaseException] = None

    # State ---------------------------------------------------------------
    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> Optional[TxHandle]:
        return self._pending

    def _set_state(self, state: OrchestratorState) -> None:
        if state != self._state:
            log.debug("STATE %s -> %s", self._state.value, state.value)
        self._state = state
        metrics.ORCHESTRATOR_STATE.set(_STATE_CODES[state])

    # Startup -------------------------------------------------------------
    async def startup_check(self) -> None:
        """Gas reserve and working-capital checks; raises on failure."""
        self._set_state(OrchestratorState.STARTUP_CHECK)
        await self.notifier.emit(EventKind.STARTUP, "Performing startup checks...")
        balance = await self.chain.get_balance(self.operator)
        metrics.OPERATOR_GAS_BALANCE.set(balance)
        if balance < self.config.min_gas_reserve_wei:
            raise StartupError(f"Insufficient gas balance: {format_units(balance)} (reserve {format_units(self.config.min_gas_reserve_wei)})")
        if self.funding_guard is not None:
            await self.funding_guard.ensure_funded(self.config.min_working_capital)
        gas_price = await self.current_gas_price()
        await self.notifier.emit(
            EventKind.STARTUP_COMPLETE,
            f"Startup checks complete. Wallet: {format_units(balance)} Gas: {to_gwei(gas_price):.2f} gwei",
            balance=balance,
            gas_price=gas_price,
        )

    # Scan ----------------------------------------------------------------
    async def current_gas_price(self) -> int:
        try:
            price = await self.chain.gas_price()
        except TransientError as exc:
            log.warning("Error getting gas price: %s; using fallback", exc)
            price = self.config.fallback_gas_price_wei
        self.gas_history.append(GasSample(timestamp_ms=int(time.time() * 1000), gas_price_wei=price))
        metrics.GAS_PRICE_GWEI.set(to_gwei(price))
        return price

    async def _quote_pair(self, pair: TradePair) -> Optional[Opportunity]:
        venue_a, venue_b = self.adapters
        amount = self.config.notional
        results = await asyncio.gather(
            venue_a.quote(pair.token_a, pair.token_b, amount, self.config.fee_tier),
            venue_b.quote(pair.token_a, pair.token_b, amount, self.config.fee_tier),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for exc in failures:
                if not isinstance(exc, Exception):
                    raise exc
                log.info("QUOTE_FAILED pair=%s error=%s", pair.label, exc)
            return None
        quote_a, quote_b = results
        return self.evaluator.evaluate(quote_a, quote_b, amount, token_a=pair.token_a, token_b=pair.token_b, pair=pair.label)

    async def scan(self) -> List[Opportunity]:
        """Quote every pair on both venues concurrently; best first."""
        found = await asyncio.gather(*(self._quote_pair(p) for p in self.pairs))
        return rank(found)

    # Execute -------------------------------------------------------------
    async def execute(self, opportunity: Opportunity) -> Outcome:
        """Submit one loan and block until it resolves.

        Raises ``LoanInFlight`` if another loan is unresolved.
        """
        if self._inflight.locked() or self._pending is not None:
            raise LoanInFlight("a loan request is already outstanding")
        async with self._inflight:
            self._set_state(OrchestratorState.EXECUTE)
            await self.notifier.emit(EventKind.EXECUTING, "Executing arbitrage trade...", pair=opportunity.pair)
            request = build_loan_request(opportunity, self.instruction_builder)
            handle = await self.gateway.borrow(request)
            self._pending = handle
            metrics.LOAN_IN_FLIGHT.set(1)
            await self.notifier.emit(
                EventKind.TX_SENT,
                f"Transaction sent: {self.config.explorer_tx_url}{handle.tx_hash}",
                tx_hash=handle.tx_hash,
            )
            try:
                receipt = await self.gateway.wait(handle)
            except TransactionTimeout as exc:
                await self.notifier.emit(EventKind.WARNING, f"Loan unresolved, deferring new submissions: {exc}", tx_hash=handle.tx_hash)
                raise
            return await self._resolve(receipt)

    async def _resolve(self, receipt: TxReceipt) -> Outcome:
        self._pending = None
        metrics.LOAN_IN_FLIGHT.set(0)
        outcome = interpret_receipt(receipt, self.gateway.receiver)
        await self._report(outcome)
        return outcome

    async def _check_pending(self) -> Optional[Outcome]:
        """Resolve a loan left over from a timed-out wait; raise if still pending."""
        if self._pending is None:
            return None
        receipt = await self.gateway.poll(self._pending)
        if receipt is None:
            raise LoanInFlight(f"loan {self._pending.tx_hash} still pending")
        return await self._resolve(receipt)

    async def _report(self, outcome: Outcome) -> None:
        metrics.SETTLEMENT_OUTCOMES.labels(kind=outcome.kind.value).inc()
        if outcome.kind == OutcomeKind.PROFIT:
            self.total_profit += outcome.profit or 0
            self.successful_trades += 1
            self.profit_history.append(
                ProfitRecord(timestamp_ms=int(time.time() * 1000), profit=outcome.profit or 0, tx_hash=outcome.tx_hash)
            )
            await self.notifier.emit(
                EventKind.TRADE_PROFIT,
                f"Arbitrage successful! Profit: {format_units(outcome.profit or 0)}",
                profit=outcome.profit,
                tx_hash=outcome.tx_hash,
            )
        elif outcome.kind == OutcomeKind.FAILURE:
            await self.notifier.emit(EventKind.TRADE_FAILED, f"Arbitrage failed: {outcome.reason}", tx_hash=outcome.tx_hash)
        else:
            await self.notifier.emit(
                EventKind.TRADE_CONFIRMED, f"Transaction confirmed in block {outcome.block_number}", tx_hash=outcome.tx_hash
            )

    # Cycle ---------------------------------------------------------------
    async def run_cycle(self) -> CycleResult:
        self._set_state(OrchestratorState.SCAN)
        try:
            await self._check_pending()
        except LoanInFlight as exc:
            return self._skip("loan_in_flight", str(exc))

        gas_price = await self.current_gas_price()
        if gas_price > self.config.max_gas_price_wei:
            return self._skip("gas_too_high", f"Gas too high: {to_gwei(gas_price):.2f} gwei")

        opportunities = await self.scan()
        if not opportunities:
            return self._skip("no_opportunity", "No profitable opportunities found")

        best = opportunities[0]
        self.recent.append(best)
        sym = self._symbol_for(best)
        await self.notifier.emit(
            EventKind.OPPORTUNITY,
            f"Opportunity Found! Pair: {best.pair} Expected Profit: {format_units(best.estimated_profit)} {sym} "
            f"Price Difference: {best.divergence_pct:.2f}%",
            pair=best.pair,
            buy=best.buy_venue,
            sell=best.sell_venue,
            profit=best.estimated_profit,
            divergence_bps=best.divergence_bps,
        )
        outcome = await self.execute(best)
        metrics.CYCLES.labels(result="execute").inc()
        return CycleResult(action="execute", opportunity=best, outcome=outcome)

    def _skip(self, reason: str, message: str) -> CycleResult:
        self._set_state(OrchestratorState.SKIP)
        metrics.increment_counter(metrics.CYCLE_SKIP, {"reason": reason})
        metrics.CYCLES.labels(result="skip").inc()
        log.info("CYCLE_SKIP reason=%s %s", reason, message)
        return CycleResult(action="skip", reason=reason)

    async def _guarded_cycle(self) -> CycleResult:
        start = time.perf_counter()
        try:
            return await self.run_cycle()
        except LoanInFlight as exc:
            return self._skip("loan_in_flight", str(exc))
        except Exception as exc:  # noqa: BLE001 - a cycle never takes the loop down
            self.last_error = exc
            metrics.CYCLES.labels(result="error").inc()
            log.exception("Trading cycle error")
            await self.notifier.emit(EventKind.CYCLE_ERROR, f"Trading cycle error: {exc}", error=type(exc).__name__)
            return CycleResult(action="error", reason=type(exc).__name__)
        finally:
            metrics.observe_histogram(metrics.CYCLE_DURATION_SECONDS, time.perf_counter() - start)

    # Loop ----------------------------------------------------------------
    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run until ``stop_event`` is set or startup fails."""
        if self._running:
            await self.notifier.emit(EventKind.WARNING, "Bot is already running!")
            return
        self._running = True
        self._started_at = time.time()
        self._stop_event = stop_event or asyncio.Event()
        await self.notifier.emit(EventKind.STARTUP, "Arbitrage bot started")
        try:
            try:
                await self.startup_check()
            except Exception as exc:  # noqa: BLE001 - any startup failure stops the bot
                self.last_error = exc
                log.error("STARTUP_FAILED error=%s", exc)
                await self.notifier.emit(EventKind.FATAL, f"Fatal bot error: {exc}", error=type(exc).__name__)
                return
            while not self._stop_event.is_set():
                result = await self._guarded_cycle()
                delay = self.config.gas_backoff if result.reason == "gas_too_high" else self.config.poll_interval
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        finally:
            self._running = False
            self._set_state(OrchestratorState.STOPPED)
            await self.notifier.emit(EventKind.STOPPED, "Bot stopped")

    def stop(self) -> None:
        """Request a stop; observed between cycles, never mid-transaction."""
        if self._stop_event is not None:
            self._stop_event.set()

    # Reporting -----------------------------------------------------------
    def status(self) -> Dict[str, object]:
        samples = list(self.gas_history)
        avg_gas = sum(s.gas_price_wei for s in samples) / len(samples) / GWEI if samples else 0.0
        return {
            "is_running": self._running,
            "state": self._state.value,
            "avg_gas_price_gwei": round(avg_gas, 2),
            "total_profit_wei": self.total_profit,
            "successful_trades": self.successful_trades,
            "uptime_seconds": (time.time() - self._started_at) if self._started_at else 0.0,
            "loan_in_flight": self._pending.tx_hash if self._pending else None,
        }

    def _symbol_for(self, opportunity: Opportunity) -> str:
        for pair in self.pairs:
            if pair.token_a == opportunity.token_a and pair.token_b == opportunity.token_b:
                return pair.symbol
        return ""


__all__ = ["OrchestratorState", "OrchestratorConfig", "TradePair", "ExecutionOrchestrator", "ChainReader"]
