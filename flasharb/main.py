"""Entry point for the flash-loan arbitrage bot with optional status server."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
from typing import Optional

import uvicorn
from eth_account import Account

from flasharb.chain.circuit_breaker import CircuitBreaker
from flasharb.chain.contracts import Erc20Client, SettlementClient
from flasharb.chain.rpc_client import JsonRpcClient
from flasharb.chain.tx_sender import TransactionSender
from flasharb.common.config import Settings
from flasharb.execution.aave_gateway import AaveLoanGateway
from flasharb.execution.dry_run_gateway import DryRunLoanGateway
from flasharb.execution.funding_guard import FundingGuard
from flasharb.execution.orchestrator import ExecutionOrchestrator, OrchestratorConfig, TradePair
from flasharb.execution.supervisor import Supervisor
from flasharb.oracle.adapters import UniswapV3QuoterAdapter, V2RouterAdapter
from flasharb.strategy.evaluator import OpportunityEvaluator
from flasharb.strategy.instructions import RouterInstructionBuilder
from flasharb.visibility.dashboard_server import DashboardServer
from flasharb.visibility.notifier import Notifier, TelegramSink, WebhookSink

log = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_notifier(settings: Settings) -> Notifier:
    sinks = []
    if settings.telegram_bot_token and settings.telegram_chat_id:
        sinks.append(TelegramSink(settings.telegram_bot_token, settings.telegram_chat_id))
    urls = settings.alert_webhook_urls()
    if urls:
        sinks.append(WebhookSink(urls))
    return Notifier(sinks)


async def build_components(settings: Settings, *, dry_run: bool = False):
    """Initialize core components; caller decides what to start."""
    if not settings.private_key:
        raise SystemExit("PRIVATE_KEY is required")
    if not settings.flash_arbitrage_contract:
        raise SystemExit("FLASH_ARBITRAGE_CONTRACT is required")

    rpc = JsonRpcClient(settings.rpc_url, timeout_seconds=settings.rpc_timeout_seconds, breaker=CircuitBreaker(component="rpc"))
    await rpc.start()
    sender = TransactionSender(
        rpc,
        settings.private_key,
        settings.chain_id,
        receipt_timeout=settings.receipt_timeout_seconds,
        poll_interval=settings.receipt_poll_seconds,
    )
    operator = (settings.operator_address or Account.from_key(settings.private_key).address).lower()
    if operator != sender.address.lower():
        log.warning("OPERATOR_ADDRESS %s differs from signing key address %s", operator, sender.address)

    notifier = build_notifier(settings)
    settlement = SettlementClient(rpc, settings.flash_arbitrage_contract.lower(), sender)

    pairs = [TradePair(label, a, b) for label, a, b in settings.trade_pairs()]
    borrowed = pairs[0]
    guard = FundingGuard(
        Erc20Client(rpc, borrowed.token_a, sender),
        settlement,
        operator,
        top_up_amount=settings.funding_top_up_wei,
        notifier=notifier,
        symbol=borrowed.symbol,
    )

    if dry_run:
        gateway = DryRunLoanGateway()
        gateway.receiver = settlement.address
    else:
        pool = settings.aave_pool_address or await settlement.pool()
        gateway = AaveLoanGateway(sender, pool, settlement.address, gas_limit=settings.flash_loan_gas_limit)

    adapters = (
        UniswapV3QuoterAdapter(
            rpc,
            settings.uniswap_v3_quoter,
            fee_tier=settings.uniswap_fee_tier,
            version=settings.uniswap_v3_quoter_version,
        ),
        V2RouterAdapter(rpc, settings.sushiswap_router),
    )
    orchestrator = ExecutionOrchestrator(
        adapters=adapters,
        pairs=pairs,
        evaluator=OpportunityEvaluator(settings.policy()),
        gateway=gateway,
        chain=rpc,
        operator=operator,
        instruction_builder=RouterInstructionBuilder(settings.venue_routers()),
        funding_guard=None if dry_run else guard,
        notifier=notifier,
        config=OrchestratorConfig(
            notional=settings.default_amount_wei,
            poll_interval=settings.scan_interval_seconds,
            gas_backoff=settings.gas_backoff,
            max_gas_price_wei=settings.max_gas_price_wei,
            fallback_gas_price_wei=settings.fallback_gas_price_wei,
            min_gas_reserve_wei=settings.min_gas_reserve_wei,
            min_working_capital=settings.min_working_capital_wei,
            gas_history_size=settings.gas_history_size,
            profit_history_size=settings.profit_history_size,
            explorer_tx_url=settings.explorer_tx_url,
        ),
    )
    return {
        "settings": settings,
        "rpc": rpc,
        "sender": sender,
        "notifier": notifier,
        "gateway": gateway,
        "orchestrator": orchestrator,
        "supervisor": Supervisor(orchestrator),
        "dashboard": DashboardServer(orchestrator, notifier),
    }


async def serve_dashboard(app, host: str, port: int) -> None:
    """Start uvicorn server for the status/metrics app."""
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def run(args: Optional[list[str]] = None) -> None:
    settings = Settings()
    _configure_logging(settings.log_level)

    parser = argparse.ArgumentParser(description="Run the flash-loan arbitrage bot")
    parser.add_argument("--dry-run", action="store_true", help="Scan and build loan requests without submitting them")
    parser.add_argument("--no-dashboard", action="store_true", help="Do not start uvicorn status server")
    parser.add_argument("--host", default="0.0.0.0", help="Status server host (default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=settings.metrics_port, help=f"Status server port (default {settings.metrics_port})")
    parsed = parser.parse_args(args)

    comps = await build_components(settings, dry_run=parsed.dry_run)
    supervisor: Supervisor = comps["supervisor"]

    tasks: list[asyncio.Task] = []
    if not parsed.no_dashboard:
        tasks.append(asyncio.create_task(serve_dashboard(comps["dashboard"].app, parsed.host, parsed.port), name="uvicorn-dashboard"))
        log.info("Status server on http://%s:%s", parsed.host, parsed.port)

    supervisor.install_signal_handlers()
    supervisor.start()
    log.info("%s started (dry_run=%s)", settings.service_name, parsed.dry_run)
    try:
        await supervisor.wait()
    finally:
        for t in tasks:
            t.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await t
        await comps["rpc"].close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
