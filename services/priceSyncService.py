from typing import Dict, Iterable, List, Optional

from schemas import AssetType, Holding, QuoteRecord
from services.quoteService import QuoteAdapter, QuoteTransport, get_adapter
from tools.logConfig import log_config, SUCCESS_ICON, WAIT_ICON

logger = log_config('api')

_PRICE_FIELDS = ("name", "current_price", "yesterday_price", "price_date")


def merge_quote(holding: Holding, quote: QuoteRecord) -> Holding:
    """把一条报价合并回持仓；无效字段保留原值"""
    current_price = quote.current_price if quote.current_price and quote.current_price > 0 \
        else holding.current_price
    return holding.model_copy(update={
        "name": quote.name or holding.name,
        "current_price": current_price,
        # 没有昨收时以现价为基准，当日盈亏记为 0
        "yesterday_price": quote.yesterday_price or current_price,
        "price_date": quote.price_date or holding.price_date,
    })


class PriceSynchronizer:
    """
    按列表顺序逐个刷新持仓价格

    严格串行：基金估值接口通过固定的共享回调返回结果，并发请求会互相覆盖。
    单个持仓失败只跳过该项，返回列表长度、顺序、id 与输入一致。
    """

    def __init__(self, adapters: Optional[Dict[AssetType, QuoteAdapter]] = None,
                 transport: Optional[QuoteTransport] = None):
        if adapters is None:
            transport = transport or QuoteTransport()
            adapters = {asset_type: get_adapter(asset_type, transport) for asset_type in AssetType}
        self.adapters = adapters

    def synchronize(self, holdings: List[Holding]) -> List[Holding]:
        logger.info(f"{WAIT_ICON} 刷新 {len(holdings)} 个持仓行情...")
        updated: List[Holding] = []
        refreshed = 0
        for holding in holdings:
            try:
                quote = self.adapters[holding.asset_type].fetch(holding.code)
            except Exception as e:
                logger.error(f"刷新 {holding.code} 失败: {e}")
                quote = None

            if quote is None:
                updated.append(holding)
                continue
            updated.append(merge_quote(holding, quote))
            refreshed += 1

        logger.info(f"{SUCCESS_ICON} 行情刷新完成 {refreshed}/{len(holdings)}")
        return updated


def apply_refreshed(current: List[Holding], refreshed: Iterable[Holding]) -> List[Holding]:
    """把刷新结果按 id 写回最新的持仓集合，只覆盖行情字段"""
    fresh_by_id = {h.id: h for h in refreshed}
    merged = []
    for holding in current:
        fresh = fresh_by_id.get(holding.id)
        if fresh is None:
            merged.append(holding)
        else:
            merged.append(holding.model_copy(update={f: getattr(fresh, f) for f in _PRICE_FIELDS}))
    return merged
