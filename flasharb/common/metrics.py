"""Prometheus metrics helpers for flasharb."""

from __future__ import annotations

from typing import Dict

from prometheus_client import Counter, Gauge, Histogram

# Gauges
GAS_PRICE_GWEI = Gauge("flasharb_gas_price_gwei", "Last observed gas price (gwei)")
CONTRACT_BALANCE = Gauge("flasharb_contract_balance", "Settlement contract working capital (base units)", ["token"])
OPERATOR_GAS_BALANCE = Gauge("flasharb_operator_gas_balance_wei", "Operator gas-token balance")
ORCHESTRATOR_STATE = Gauge("flasharb_orchestrator_state", "Orchestrator state (0=idle,1=startup,2=scan,3=skip,4=execute,5=stopped)")
OPP_PROFIT = Gauge("flasharb_opportunity_profit", "Estimated profit of the last opportunity (base units)", ["pair"])
OPP_DIVERGENCE_BPS = Gauge("flasharb_opportunity_divergence_bps", "Divergence of the last opportunity", ["pair"])
CIRCUIT_STATE = Gauge("flasharb_circuit_state", "Circuit breaker state (0=closed,1=half_open,2=open)", ["component"])
LOAN_IN_FLIGHT = Gauge("flasharb_loan_in_flight", "1 while a loan is unresolved")

# Counters
QUOTES = Counter("flasharb_quotes_total", "Quotes requested", ["venue", "status"])
CYCLES = Counter("flasharb_cycles_total", "Scan cycles by result", ["result"])
CYCLE_SKIP = Counter("flasharb_cycle_skipped_total", "Cycles skipped with reason", ["reason"])
OPPORTUNITIES = Counter("flasharb_opportunities_total", "Opportunities found", ["pair"])
LOANS_SUBMITTED = Counter("flasharb_loans_submitted_total", "Flash loans submitted")
SETTLEMENT_OUTCOMES = Counter("flasharb_settlement_outcomes_total", "Settlement outcomes", ["kind"])
RPC_ERRORS = Counter("flasharb_rpc_errors_total", "RPC errors", ["method"])
NOTIFY_ERRORS = Counter("flasharb_notify_errors_total", "Notification delivery failures", ["sink"])

# Histograms
RPC_LATENCY_SECONDS = Histogram("flasharb_rpc_latency_seconds", "RPC call latency", ["method"], buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1, 2, 5))
CYCLE_DURATION_SECONDS = Histogram("flasharb_cycle_duration_seconds", "Scan cycle duration", buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 15, 60))
CONFIRMATION_SECONDS = Histogram("flasharb_confirmation_seconds", "Submission to receipt latency", buckets=(1, 5, 12, 24, 60, 120, 300))


def increment_counter(counter: Counter, labels: Dict[str, str]) -> None:
    """Increment a labeled counter safely."""
    counter.labels(**labels).inc()


def observe_histogram(hist: Histogram, value: float) -> None:
    """Record a value in a histogram."""
    hist.observe(value)


__all__ = [
    "GAS_PRICE_GWEI",
    "CONTRACT_BALANCE",
    "OPERATOR_GAS_BALANCE",
    "ORCHESTRATOR_STATE",
    "OPP_PROFIT",
    "OPP_DIVERGENCE_BPS",
    "CIRCUIT_STATE",
    "LOAN_IN_FLIGHT",
    "QUOTES",
    "CYCLES",
    "CYCLE_SKIP",
    "OPPORTUNITIES",
    "LOANS_SUBMITTED",
    "SETTLEMENT_OUTCOMES",
    "RPC_ERRORS",
    "NOTIFY_ERRORS",
    "RPC_LATENCY_SECONDS",
    "CYCLE_DURATION_SECONDS",
    "CONFIRMATION_SECONDS",
    "increment_counter",
    "observe_histogram",
]
