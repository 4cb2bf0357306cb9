import pytest

from flasharb.common.errors import InsufficientCapital
from flasharb.common.models import TxReceipt
from flasharb.common.units import ETHER
from flasharb.execution.funding_guard import FundingGuard
from flasharb.visibility.notifier import EventKind, Notifier

OPERATOR = "0x" + "1" * 40
CONTRACT = "0x" + "3" * 40
DAI = "0x" + "d" * 40


class FakeToken:
    def __init__(self, balances):
        self.token = DAI
        self.balances = dict(balances)
        self.approvals = []

    async def balance_of(self, holder):
        return self.balances.get(holder, 0)

    async def approve(self, spender, amount):
        self.approvals.append((spender, amount))
        return TxReceipt(tx_hash="0x1", status=1)


class FakeSettlement:
    address = CONTRACT

    def __init__(self, token):
        self.token = token
        self.funded = []

    async def fund_contract(self, token, amount):
        assert self.token.approvals, "fund before approve"
        self.funded.append((token, amount))
        self.token.balances[OPERATOR] -= amount
        self.token.balances[CONTRACT] = self.token.balances.get(CONTRACT, 0) + amount
        return TxReceipt(tx_hash="0x2", status=1)


def _guard(balances, notifier=None):
    token = FakeToken(balances)
    settlement = FakeSettlement(token)
    guard = FundingGuard(token, settlement, OPERATOR, top_up_amount=10 * ETHER, notifier=notifier, symbol="DAI")
    return guard, token, settlement


@pytest.mark.asyncio
async def test_sufficient_balance_sends_nothing():
    notifier = Notifier()
    guard, token, settlement = _guard({CONTRACT: 5 * ETHER, OPERATOR: 100 * ETHER}, notifier)
    await guard.ensure_funded(5 * ETHER)
    await guard.ensure_funded(5 * ETHER)
    assert token.approvals == []
    assert settlement.funded == []
    assert "sufficiently funded" in notifier.recent[-1].message


@pytest.mark.asyncio
async def test_low_balance_is_topped_up():
    notifier = Notifier()
    guard, token, settlement = _guard({CONTRACT: ETHER, OPERATOR: 50 * ETHER}, notifier)
    await guard.ensure_funded(5 * ETHER)
    assert token.approvals == [(CONTRACT, 10 * ETHER)]
    assert settlement.funded == [(DAI, 10 * ETHER)]
    assert token.balances[CONTRACT] == 11 * ETHER
    assert [e.kind for e in notifier.recent] == [EventKind.FUNDING, EventKind.FUNDING]

    # a second check is now a no-op
    await guard.ensure_funded(5 * ETHER)
    assert len(settlement.funded) == 1


@pytest.mark.asyncio
async def test_top_up_covers_a_large_floor():
    guard, token, settlement = _guard({CONTRACT: 0, OPERATOR: 50 * ETHER})
    await guard.ensure_funded(25 * ETHER)
    assert settlement.funded == [(DAI, 25 * ETHER)]


@pytest.mark.asyncio
async def test_poor_operator_cannot_fund():
    guard, token, settlement = _guard({CONTRACT: 0, OPERATOR: 3 * ETHER})
    with pytest.raises(InsufficientCapital) as info:
        await guard.ensure_funded(5 * ETHER)
    assert info.value.required == 10 * ETHER
    assert token.approvals == []
    assert settlement.funded == []
