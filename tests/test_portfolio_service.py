import pytest

from conftest import make_holding
from services.portfolioService import (
    allocation, calculate_profit_sharing, summarize, top_movers,
)


def test_summarize():
    holdings = [
        make_holding("600519", buy_price=1600, quantity=10, current_price=1710, yesterday_price=1690),
        make_holding("000001", buy_price=10, quantity=1000, current_price=9),
    ]

    summary = summarize(holdings)

    assert summary.total_cost == 26000
    assert summary.total_market_value == 17100 + 9000
    assert summary.total_profit_loss == 100
    assert summary.total_return_rate == pytest.approx(100 / 26000 * 100)
    # 000001 没有昨收，不计入当日盈亏
    assert summary.total_day_profit_loss == 200


def test_summarize_empty():
    summary = summarize([])
    assert summary.total_cost == summary.total_return_rate == summary.total_day_profit_loss == 0


def test_zero_cost_return_rate_is_zero():
    summary = summarize([make_holding("600519", buy_price=0, quantity=10, current_price=5)])
    assert summary.total_profit_loss == 50
    assert summary.total_return_rate == 0


def test_sharing_between_3_and_5_percent():
    result = calculate_profit_sharing(100000, 4000)
    assert result.sharing_amount == pytest.approx(200)
    assert result.guarantee_amount == 0


def test_sharing_above_5_percent():
    assert calculate_profit_sharing(100000, 8000).sharing_amount == pytest.approx(1900)


def test_loss_is_guaranteed():
    result = calculate_profit_sharing(100000, -2500)
    assert result.guarantee_amount == 2500
    assert result.sharing_amount == 0


def test_zero_cost_has_no_sharing_or_guarantee():
    result = calculate_profit_sharing(0, 500)
    assert result.sharing_amount == result.guarantee_amount == 0


@pytest.mark.parametrize("cost", [1, 1000, 100000, 12345.67])
def test_no_sharing_up_to_3_percent(cost):
    for pl in (0, cost * 0.01, cost * 0.03):
        assert calculate_profit_sharing(cost, pl).sharing_amount == 0


@pytest.mark.parametrize("cost", [1000, 100000, 12345.67])
@pytest.mark.parametrize("rate", [0.03, 0.05])
def test_sharing_is_continuous_at_thresholds(cost, rate):
    eps = cost * 1e-9
    left = calculate_profit_sharing(cost, cost * rate - eps).sharing_amount
    right = calculate_profit_sharing(cost, cost * rate + eps).sharing_amount
    assert left == pytest.approx(right, abs=cost * 1e-8)


def test_sharing_is_monotonic():
    cost = 100000
    values = [calculate_profit_sharing(cost, pl).sharing_amount for pl in range(0, 20000, 250)]
    assert values == sorted(values)


def test_allocation_and_top_movers():
    holdings = [make_holding(str(600000 + i), buy_price=10, quantity=10, current_price=(i - 4) * 2.5 + 10)
                for i in range(10)]

    alloc = allocation(holdings)
    movers = top_movers(holdings)

    assert all(item.value > 0 for item in alloc)
    assert len(alloc) == 9
    assert len(movers) == 8
    assert abs(movers[0].pl) == 125
    assert [abs(m.pl) for m in movers] == sorted((abs(m.pl) for m in movers), reverse=True)
