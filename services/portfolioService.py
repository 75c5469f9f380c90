from typing import List

from schemas import AllocationItem, Holding, PortfolioSummary, ProfitLossItem, ProfitSharingResult

# 分成档位
SHARING_LOW_THRESHOLD = 0.03
SHARING_HIGH_THRESHOLD = 0.05
SHARING_LOW_RATE = 0.20
SHARING_HIGH_RATE = 0.50

TOP_MOVERS = 8


def summarize(holdings: List[Holding]) -> PortfolioSummary:
    """汇总成本、市值、累计与当日盈亏；成本为 0 时收益率为 0"""
    cost = value = day_pl = 0.0
    for h in holdings:
        cost += h.buy_price * h.quantity
        value += h.current_price * h.quantity
        # 没有昨收的持仓不计入当日盈亏
        if h.yesterday_price:
            day_pl += (h.current_price - h.yesterday_price) * h.quantity

    pl = value - cost
    return PortfolioSummary(
        total_cost=cost,
        total_market_value=value,
        total_profit_loss=pl,
        total_return_rate=pl / cost * 100 if cost else 0.0,
        total_day_profit_loss=day_pl,
    )


def calculate_profit_sharing(total_cost: float, total_profit_loss: float) -> ProfitSharingResult:
    """
    分成 / 保底计算

    亏损时保底金额等于亏损额；盈利率 <=3% 不分成，3%~5% 部分按 20% 分成，
    超过 5% 的部分按 50% 分成。
    """
    if total_cost == 0:
        return ProfitSharingResult()
    if total_profit_loss < 0:
        return ProfitSharingResult(guarantee_amount=abs(total_profit_loss))

    rate = total_profit_loss / total_cost
    profit_low = total_cost * SHARING_LOW_THRESHOLD
    profit_high = total_cost * SHARING_HIGH_THRESHOLD

    if rate <= SHARING_LOW_THRESHOLD:
        sharing = 0.0
    elif rate <= SHARING_HIGH_THRESHOLD:
        sharing = (total_profit_loss - profit_low) * SHARING_LOW_RATE
    else:
        sharing = (profit_high - profit_low) * SHARING_LOW_RATE \
            + (total_profit_loss - profit_high) * SHARING_HIGH_RATE
    return ProfitSharingResult(sharing_amount=sharing)


def allocation(holdings: List[Holding]) -> List[AllocationItem]:
    items = [AllocationItem(name=h.name, value=h.current_price * h.quantity) for h in holdings]
    return [item for item in items if item.value > 0]


def top_movers(holdings: List[Holding], limit: int = TOP_MOVERS) -> List[ProfitLossItem]:
    items = [ProfitLossItem(name=h.name, pl=(h.current_price - h.buy_price) * h.quantity) for h in holdings]
    return sorted(items, key=lambda item: abs(item.pl), reverse=True)[:limit]
