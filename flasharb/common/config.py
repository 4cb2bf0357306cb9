"""Environment-driven configuration for the flasharb service."""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from flasharb.common.units import ETHER, from_gwei, parse_units
from flasharb.strategy.evaluator import EvaluatorPolicy

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven configuration; only ``flasharb.main`` reads it."""

    service_name: str = Field("flasharb", alias="SERVICE_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    metrics_port: int = Field(9100, alias="METRICS_PORT")

    rpc_url: str = Field("http://127.0.0.1:8545", alias="RPC_URL")
    rpc_timeout_seconds: float = Field(15.0, alias="RPC_TIMEOUT_SECONDS")
    chain_id: int = Field(11155111, alias="CHAIN_ID")
    private_key: str | None = Field(None, alias="PRIVATE_KEY")
    operator_address: str | None = Field(None, alias="OPERATOR_ADDRESS")
    explorer_tx_url: str = Field("https://sepolia.etherscan.io/tx/", alias="EXPLORER_TX_URL")

    # lending protocol and settlement contract
    aave_pool_address: str | None = Field(None, alias="AAVE_POOL_ADDRESS")
    aave_addresses_provider: str = Field("0x012bAC54348C0E635dCAc9D5FB99f06F24136C9A", alias="AAVE_ADDRESSES_PROVIDER")
    flash_arbitrage_contract: str | None = Field(None, alias="FLASH_ARBITRAGE_CONTRACT")

    # venues (Sepolia defaults)
    uniswap_v3_quoter: str = Field("0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6", alias="UNISWAP_V3_QUOTER")
    uniswap_v3_quoter_version: int = Field(1, alias="UNISWAP_V3_QUOTER_VERSION")
    uniswap_v3_router: str = Field("0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD", alias="UNISWAP_V3_ROUTER")
    uniswap_fee_tier: int = Field(3000, alias="UNISWAP_FEE_TIER")
    sushiswap_router: str = Field("0x1b02dA8Cb0d097eB8D57A175b88c7D8b47997506", alias="SUSHISWAP_ROUTER")

    # tokens
    token_dai: str = Field("0xFF34B3d4Aee8ddCd6F9AFFFB6Fe49bD371b8a357", alias="TOKEN_DAI")
    token_weth: str = Field("0xC558DBdd856501FCd9aaF1E62eae57A9F0629a3c", alias="TOKEN_WETH")
    token_usdc: str = Field("0xda9d4f9b69ac6C22e444eD9aF0CfC043b7a7f53f", alias="TOKEN_USDC")
    trade_pairs_raw: str = Field("DAI:WETH", alias="TRADE_PAIRS")

    # strategy policy
    scan_interval_seconds: float = Field(60.0, alias="SCAN_INTERVAL_SECONDS")
    gas_backoff_seconds: float | None = Field(None, alias="GAS_BACKOFF_SECONDS")
    min_profit_wei: int = Field(parse_units("0.1"), alias="MIN_PROFIT_WEI")
    max_gas_price_gwei: float = Field(25.0, alias="MAX_GAS_PRICE_GWEI")
    fallback_gas_price_gwei: float = Field(50.0, alias="FALLBACK_GAS_PRICE_GWEI")
    default_amount_wei: int = Field(10 * ETHER, alias="DEFAULT_AMOUNT_WEI")
    min_price_difference_bps: int = Field(50, alias="MIN_PRICE_DIFFERENCE_BPS")
    loan_fee_bps: int = Field(9, alias="LOAN_FEE_BPS")
    gas_estimate: int = Field(200_000, alias="GAS_ESTIMATE")

    # funding
    min_gas_reserve_wei: int = Field(parse_units("0.01"), alias="MIN_GAS_RESERVE_WEI")
    min_working_capital_wei: int = Field(5 * ETHER, alias="MIN_WORKING_CAPITAL_WEI")
    funding_top_up_wei: int = Field(10 * ETHER, alias="FUNDING_TOP_UP_WEI")

    # submission
    flash_loan_gas_limit: int = Field(500_000, alias="FLASH_LOAN_GAS_LIMIT")
    receipt_timeout_seconds: float = Field(180.0, alias="RECEIPT_TIMEOUT_SECONDS")
    receipt_poll_seconds: float = Field(2.0, alias="RECEIPT_POLL_SECONDS")

    # reporting
    gas_history_size: int = Field(20, alias="GAS_HISTORY_SIZE")
    profit_history_size: int = Field(100, alias="PROFIT_HISTORY_SIZE")
    telegram_bot_token: str | None = Field(None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str | None = Field(None, alias="TELEGRAM_CHAT_ID")
    alert_webhook_urls_raw: str = Field("", alias="ALERT_WEBHOOK_URLS")

    # Load environment from standard dot-env files if present; ignore unrelated keys
    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=False, extra="ignore", populate_by_name=True)

    @field_validator("uniswap_v3_quoter_version")
    @classmethod
    def _quoter_version(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError("UNISWAP_V3_QUOTER_VERSION must be 1 or 2")
        return v

    # Convenience accessors -------------------------------------------------
    def token_addresses(self) -> Dict[str, str]:
        return {
            "DAI": self.token_dai.lower(),
            "WETH": self.token_weth.lower(),
            "USDC": self.token_usdc.lower(),
        }

    def trade_pairs(self) -> List[Tuple[str, str, str]]:
        """Parse ``TRADE_PAIRS`` into (label, borrowed asset, counter asset)."""
        tokens = self.token_addresses()
        pairs: List[Tuple[str, str, str]] = []
        for entry in filter(None, (p.strip() for p in self.trade_pairs_raw.split(","))):
            try:
                sym_a, sym_b = (s.strip().upper() for s in entry.split(":"))
            except ValueError as exc:
                raise ValueError(f"TRADE_PAIRS entry {entry!r} must be SYMBOL:SYMBOL") from exc
            if sym_a not in tokens or sym_b not in tokens:
                raise ValueError(f"TRADE_PAIRS entry {entry!r} references unknown token")
            pairs.append((f"{sym_a}/{sym_b}", tokens[sym_a], tokens[sym_b]))
        if not pairs:
            raise ValueError("TRADE_PAIRS is empty")
        log.info("Configured %d trade pairs: %s", len(pairs), [p[0] for p in pairs])
        return pairs

    def alert_webhook_urls(self) -> List[str]:
        return [u.strip() for u in self.alert_webhook_urls_raw.split(",") if u.strip()]

    @property
    def max_gas_price_wei(self) -> int:
        return from_gwei(self.max_gas_price_gwei)

    @property
    def fallback_gas_price_wei(self) -> int:
        return from_gwei(self.fallback_gas_price_gwei)

    @property
    def gas_backoff(self) -> float:
        return self.gas_backoff_seconds if self.gas_backoff_seconds is not None else self.scan_interval_seconds

    def policy(self) -> EvaluatorPolicy:
        return EvaluatorPolicy(
            min_divergence_bps=self.min_price_difference_bps,
            loan_fee_bps=self.loan_fee_bps,
            min_profit=self.min_profit_wei,
            gas_estimate=self.gas_estimate,
        )

    def venue_routers(self) -> Dict[str, str]:
        return {"uniswap": self.uniswap_v3_router.lower(), "sushiswap": self.sushiswap_router.lower()}


__all__ = ["Settings"]
