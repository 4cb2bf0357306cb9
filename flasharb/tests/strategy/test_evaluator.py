import pytest

from flasharb.common.models import Quote
from flasharb.common.units import ETHER, parse_units
from flasharb.settlement.codec import decode_instructions
from flasharb.strategy.evaluator import (
    MIN_DIVERGENCE_BPS,
    MIN_PROFIT,
    EvaluatorPolicy,
    OpportunityEvaluator,
    divergence_bps,
    loan_fee,
    rank,
)
from flasharb.strategy.instructions import RouterInstructionBuilder, build_loan_request

DAI = "0x" + "d" * 40
WETH = "0x" + "e" * 40
UNI_ROUTER = "0x" + "a" * 40
SUSHI_ROUTER = "0x" + "b" * 40


def _quotes(out_a: int, out_b: int, amount: int = 10 * ETHER):
    return Quote(venue="uniswap", amount_in=amount, amount_out=out_a), Quote(venue="sushiswap", amount_in=amount, amount_out=out_b)


def test_profitable_divergence_buys_low_sells_high():
    qa, qb = _quotes(10 * ETHER, parse_units("10.6"))
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH, pair="DAI/WETH")
    assert opp is not None
    assert opp.divergence_bps == 566
    assert opp.loan_fee == parse_units("0.009")
    assert opp.estimated_profit == parse_units("0.591")
    assert opp.buy_venue == "uniswap"
    assert opp.sell_venue == "sushiswap"
    assert opp.gas_estimate == 200_000


def test_direction_follows_the_higher_output():
    qa, qb = _quotes(parse_units("10.6"), 10 * ETHER)
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH)
    assert opp.buy_venue == "sushiswap"
    assert opp.sell_venue == "uniswap"


def test_small_divergence_is_not_an_opportunity():
    qa, qb = _quotes(10 * ETHER, parse_units("10.04"))
    assert divergence_bps(qa.amount_out, qb.amount_out) == 39
    assert OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH) is None


def test_twenty_bps_spread_is_not_an_opportunity():
    qa, qb = _quotes(10 * ETHER, parse_units("10.02"))
    assert divergence_bps(qa.amount_out, qb.amount_out) < MIN_DIVERGENCE_BPS
    assert OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH) is None


def test_divergence_exactly_at_threshold_is_accepted():
    # 1 in 200 is exactly 50 bps; the 0.991 profit clears the profit bar
    qa, qb = _quotes(199 * ETHER, 200 * ETHER)
    assert divergence_bps(qa.amount_out, qb.amount_out) == MIN_DIVERGENCE_BPS
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH)
    assert opp is not None
    assert opp.divergence_bps == MIN_DIVERGENCE_BPS
    assert opp.estimated_profit == parse_units("0.991")


def test_profit_exactly_at_threshold_is_accepted():
    qa, qb = _quotes(10 * ETHER, parse_units("10.109"))
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH)
    assert opp is not None
    assert opp.estimated_profit == MIN_PROFIT

    qa, qb = _quotes(10 * ETHER, parse_units("10.109") - 1)
    assert OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH) is None


def test_divergence_without_enough_profit_is_rejected():
    # 566 bps but only 0.051 after the 0.009 fee on a 10 unit loan
    qa, qb = _quotes(ETHER, parse_units("1.06"))
    assert OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH) is None


def test_zero_outputs_never_divide():
    qa, qb = _quotes(0, 0)
    assert divergence_bps(0, 0) == 0
    assert OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH) is None


def test_explicit_fee_rate_and_policy():
    policy = EvaluatorPolicy(min_divergence_bps=10, loan_fee_bps=5, min_profit=0, gas_estimate=1)
    qa, qb = _quotes(ETHER, parse_units("1.01"))
    opp = OpportunityEvaluator(policy).evaluate(qa, qb, ETHER, 0, token_a=DAI, token_b=WETH)
    assert opp.loan_fee == 0
    assert opp.estimated_profit == parse_units("0.01")
    assert loan_fee(ETHER, 5) == parse_units("0.0005")


def test_rank_orders_by_profit_and_drops_empty():
    ev = OpportunityEvaluator()
    small = ev.evaluate(*_quotes(10 * ETHER, parse_units("10.2")), 10 * ETHER, token_a=DAI, token_b=WETH, pair="small")
    big = ev.evaluate(*_quotes(10 * ETHER, parse_units("10.6")), 10 * ETHER, token_a=DAI, token_b=WETH, pair="big")
    ranked = rank([small, None, big])
    assert [o.pair for o in ranked] == ["big", "small"]
    assert rank([]) == []


def test_loan_request_carries_expected_profit_and_routers():
    qa, qb = _quotes(10 * ETHER, parse_units("10.6"))
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH)
    builder = RouterInstructionBuilder({"uniswap": UNI_ROUTER, "sushiswap": SUSHI_ROUTER})
    request = build_loan_request(opp, builder)
    assert request.asset == DAI
    assert request.amount == 10 * ETHER
    decoded = decode_instructions(request.params)
    assert decoded.min_profit == opp.estimated_profit
    assert decoded.targets == [UNI_ROUTER, SUSHI_ROUTER]
    assert decoded.payloads == [b"", b""]


def test_unknown_venue_has_no_router():
    qa, qb = _quotes(10 * ETHER, parse_units("10.6"))
    opp = OpportunityEvaluator().evaluate(qa, qb, 10 * ETHER, token_a=DAI, token_b=WETH)
    with pytest.raises(ValueError):
        RouterInstructionBuilder({"uniswap": UNI_ROUTER}).build(opp)
