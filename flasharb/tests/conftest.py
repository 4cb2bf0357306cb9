import sys
from pathlib import Path

import pytest

# Ensure repository root is importable for `import flasharb.*`
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from flasharb.common.units import ETHER  # noqa: E402
from flasharb.settlement.contract import SettlementContract  # noqa: E402
from flasharb.settlement.ledger import TokenLedger  # noqa: E402
from flasharb.settlement.lending_pool import SimulatedLendingPool  # noqa: E402

OPERATOR = "0x" + "1" * 40
POOL = "0x" + "2" * 40
CONTRACT = "0x" + "3" * 40
PROVIDER = "0x" + "4" * 40
STRANGER = "0x" + "5" * 40
DAI = "0x" + "d" * 40
WETH = "0x" + "e" * 40
UNI_ROUTER = "0x" + "a" * 40
SUSHI_ROUTER = "0x" + "b" * 40
POOL_LIQUIDITY = 1_000 * ETHER


class SettlementEnv:
    """Ledger, pool and contract wired together; ``gain`` is what the sell leg earns."""

    OPERATOR = OPERATOR
    POOL = POOL
    CONTRACT = CONTRACT
    STRANGER = STRANGER
    DAI = DAI
    WETH = WETH
    UNI_ROUTER = UNI_ROUTER
    SUSHI_ROUTER = SUSHI_ROUTER

    def __init__(self, working_capital: int = 0, gain: int = 0):
        self.ledger = TokenLedger()
        self.contract = SettlementContract(
            self.ledger, address=CONTRACT, operator=OPERATOR, pool=POOL, addresses_provider=PROVIDER
        )
        self.pool = SimulatedLendingPool(self.ledger, POOL)
        self.ledger.mint(DAI, POOL, POOL_LIQUIDITY)
        if working_capital:
            self.ledger.mint(DAI, CONTRACT, working_capital)
        self.gain = gain
        self.contract.register_target(UNI_ROUTER, lambda c, payload: True)
        self.contract.register_target(SUSHI_ROUTER, self._sell)

    def _sell(self, contract, payload):
        if self.gain:
            contract.ledger.mint(DAI, contract.address, self.gain)
        return True

    def balance(self, holder):
        return self.ledger.balance_of(DAI, holder)


@pytest.fixture
def settlement_env():
    return SettlementEnv
