import pytest

from flasharb.common.errors import (
    InstructionDecodeError,
    InsufficientBalance,
    InsufficientRepayment,
    SwapFailed,
    Unauthorized,
)
from flasharb.common.models import InstructionSet, LoanRequest
from flasharb.common.units import ETHER, parse_units
from flasharb.execution.simulated_gateway import SimulatedLoanGateway
from flasharb.settlement.codec import encode_instructions
from flasharb.settlement.contract import SettlementStep
from flasharb.settlement.events import ARBITRAGE_PROFIT, DEBUG_LOG, SWAP_EXECUTED

LOAN = 10 * ETHER
PREMIUM = parse_units("0.009")


def _blob(env, min_profit, targets=None):
    targets = targets if targets is not None else [env.UNI_ROUTER, env.SUSHI_ROUTER]
    return encode_instructions(InstructionSet(min_profit=min_profit, targets=targets, payloads=[b""] * len(targets)))


def test_profitable_session_repays_and_distributes(settlement_env):
    env = settlement_env(gain=parse_units("0.6"))
    events = env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, parse_units("0.591")))

    assert env.balance(env.OPERATOR) == parse_units("0.591")
    assert env.balance(env.CONTRACT) == 0
    assert env.balance(env.POOL) == 1_000 * ETHER + PREMIUM
    assert [e.name for e in events] == [SWAP_EXECUTED, SWAP_EXECUTED, ARBITRAGE_PROFIT]
    assert events[-1].args == (env.DAI, parse_units("0.591"))
    session = env.contract.last_session
    assert session.step == SettlementStep.DONE
    assert session.distributed == parse_units("0.591")


def test_surplus_below_threshold_is_retained(settlement_env):
    env = settlement_env(gain=parse_units("0.05"))
    events = env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, parse_units("0.591")))

    assert env.balance(env.OPERATOR) == 0
    assert env.balance(env.CONTRACT) == parse_units("0.041")
    assert events[-1].name == DEBUG_LOG
    assert events[-1].args == ("profit retained", parse_units("0.041"))


def test_working_capital_covers_the_premium(settlement_env):
    env = settlement_env(working_capital=5 * ETHER)
    env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0))
    # surplus is the whole balance above the debt
    assert env.balance(env.OPERATOR) == 5 * ETHER - PREMIUM
    assert env.balance(env.CONTRACT) == 0


def test_direct_call_from_non_pool_is_unauthorized(settlement_env):
    env = settlement_env(working_capital=5 * ETHER)
    with pytest.raises(Unauthorized, match="Only pool"):
        env.contract.execute_operation(env.OPERATOR, env.DAI, LOAN, PREMIUM, env.OPERATOR, _blob(env, 0))
    assert env.balance(env.CONTRACT) == 5 * ETHER
    assert env.contract.events == []


def test_foreign_initiator_is_unauthorized_and_reverts(settlement_env):
    env = settlement_env(working_capital=5 * ETHER, gain=ETHER)
    with pytest.raises(Unauthorized, match="Unauthorized initiator"):
        env.pool.flash_loan_simple(env.STRANGER, env.contract, env.DAI, LOAN, _blob(env, 0))
    assert env.balance(env.CONTRACT) == 5 * ETHER
    assert env.balance(env.POOL) == 1_000 * ETHER
    assert env.balance(env.OPERATOR) == 0


def test_unprofitable_trades_revert_everything(settlement_env):
    env = settlement_env()
    with pytest.raises(InsufficientRepayment) as info:
        env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0))
    assert info.value.debt == LOAN + PREMIUM
    assert env.balance(env.POOL) == 1_000 * ETHER
    assert env.balance(env.CONTRACT) == 0
    assert env.contract.events == []


def test_unknown_target_fails_the_swap(settlement_env):
    env = settlement_env(gain=ETHER)
    with pytest.raises(SwapFailed) as info:
        env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0, [env.UNI_ROUTER, env.STRANGER]))
    assert info.value.index == 1
    assert env.balance(env.POOL) == 1_000 * ETHER


def test_target_reporting_failure_fails_the_swap(settlement_env):
    env = settlement_env(gain=ETHER)
    env.contract.register_target(env.UNI_ROUTER, lambda c, payload: False)
    with pytest.raises(SwapFailed):
        env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0))
    assert env.contract.events == []


def test_malformed_blob_reverts(settlement_env):
    env = settlement_env(gain=ETHER)
    with pytest.raises(InstructionDecodeError):
        env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, b"\x00\x01")
    assert env.balance(env.POOL) == 1_000 * ETHER


def test_operator_funds_and_withdraws(settlement_env):
    env = settlement_env()
    env.ledger.mint(env.DAI, env.OPERATOR, 20 * ETHER)
    env.ledger.approve(env.DAI, env.OPERATOR, env.CONTRACT, 10 * ETHER)
    env.contract.fund_contract(env.OPERATOR, env.DAI, 10 * ETHER)
    assert env.contract.get_contract_balance(env.DAI) == 10 * ETHER

    env.contract.emergency_withdraw(env.OPERATOR, env.DAI, 4 * ETHER)
    assert env.balance(env.OPERATOR) == 14 * ETHER
    with pytest.raises(InsufficientBalance):
        env.contract.emergency_withdraw(env.OPERATOR, env.DAI, 7 * ETHER)

    assert env.contract.withdraw_token(env.OPERATOR, env.DAI) == 6 * ETHER
    assert env.balance(env.OPERATOR) == 20 * ETHER
    assert env.contract.withdraw_token(env.OPERATOR, env.DAI) == 0


def test_operator_actions_reject_others(settlement_env):
    env = settlement_env(working_capital=ETHER)
    with pytest.raises(Unauthorized, match="Only owner"):
        env.contract.withdraw_token(env.STRANGER, env.DAI)
    with pytest.raises(Unauthorized):
        env.contract.emergency_withdraw(env.STRANGER, env.DAI, 1)
    with pytest.raises(Unauthorized):
        env.contract.fund_contract(env.STRANGER, env.DAI, 1)
    assert env.balance(env.CONTRACT) == ETHER


def test_configuration_is_readable(settlement_env):
    env = settlement_env()
    assert env.contract.owner == env.OPERATOR
    assert env.contract.pool == env.POOL
    assert env.contract.address == env.CONTRACT


def test_surplus_equal_to_threshold_is_distributed(settlement_env):
    env = settlement_env(gain=parse_units("0.6"))
    surplus = parse_units("0.6") - PREMIUM
    events = env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, surplus))
    assert events[-1].name == ARBITRAGE_PROFIT
    assert env.balance(env.OPERATOR) == surplus
    assert env.balance(env.CONTRACT) == 0


def test_one_unit_short_of_threshold_is_retained(settlement_env):
    env = settlement_env(gain=parse_units("0.6"))
    surplus = parse_units("0.6") - PREMIUM
    events = env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, surplus + 1))
    assert events[-1].name == DEBUG_LOG
    assert env.balance(env.CONTRACT) == surplus


def test_zero_surplus_with_zero_threshold_records_profit(settlement_env):
    env = settlement_env(gain=PREMIUM)
    events = env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0))
    assert events[-1].name == ARBITRAGE_PROFIT
    assert events[-1].args == (env.DAI, 0)
    assert env.balance(env.POOL) == 1_000 * ETHER + PREMIUM


def _raising_target(exc):
    def target(contract, payload):
        raise exc

    return target


def test_target_raising_any_error_fails_the_swap(settlement_env):
    env = settlement_env(gain=ETHER)
    env.contract.register_target(env.SUSHI_ROUTER, _raising_target(RuntimeError("router reverted")))
    with pytest.raises(SwapFailed) as info:
        env.pool.flash_loan_simple(env.OPERATOR, env.contract, env.DAI, LOAN, _blob(env, 0))
    assert info.value.index == 1
    assert isinstance(info.value.__cause__, RuntimeError)
    assert env.balance(env.POOL) == 1_000 * ETHER
    assert env.balance(env.CONTRACT) == 0
    assert env.contract.events == []


@pytest.mark.asyncio
async def test_target_error_becomes_reverted_receipt(settlement_env):
    env = settlement_env(gain=ETHER)
    env.contract.register_target(env.UNI_ROUTER, _raising_target(ValueError("bad")))
    gateway = SimulatedLoanGateway(env.pool, env.contract, env.OPERATOR)
    handle = await gateway.borrow(LoanRequest(asset=env.DAI, amount=LOAN, params=_blob(env, 0)))
    receipt = await gateway.wait(handle)
    assert receipt.status == 0
    assert receipt.logs == []
    assert env.balance(env.POOL) == 1_000 * ETHER


def test_is_contract_distinguishes_code_from_accounts(settlement_env):
    env = settlement_env()
    assert env.contract.is_contract(env.CONTRACT)
    assert env.contract.is_contract(env.UNI_ROUTER.upper().replace("0X", "0x"))
    assert not env.contract.is_contract(env.OPERATOR)
    assert not env.contract.is_contract(env.STRANGER)
