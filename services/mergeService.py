import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from schemas import AssetType, Holding, HoldingIn
from tools.logConfig import log_config

logger = log_config('api')

# 批量导入: 名称, 代码, 价格, 数量；支持半角/全角逗号
_BATCH_SPLIT = re.compile(r'[,，]')


class DuplicateHoldingError(ValueError):
    """同一 (code, asset_type) 只能有一条持仓"""


@dataclass
class MergeResult:
    holdings: List[Holding]
    touched_ids: List[str] = field(default_factory=list)


def new_holding(entry: HoldingIn) -> Holding:
    """由已校验的录入生成新持仓，现价先取买入价，等待刷新"""
    code = entry.code.strip()
    return Holding(
        id=uuid.uuid4().hex,
        asset_type=entry.asset_type,
        code=code,
        name=(entry.name or "").strip() or code,
        buy_date=entry.buy_date or date.today().isoformat(),
        buy_price=entry.buy_price,
        quantity=entry.quantity,
        current_price=entry.buy_price,
    )


def weighted_average(price_a: float, qty_a: float, price_b: float, qty_b: float) -> float:
    total_qty = qty_a + qty_b
    if total_qty <= 0:
        return 0.0
    return (price_a * qty_a + price_b * qty_b) / total_qty


def merge_positions(holdings: List[Holding], incoming: List[Holding]) -> MergeResult:
    """
    把一批新录入合并进现有持仓

    按 (code, asset_type) 匹配：命中则数量相加、成本取加权平均，其余字段保留；
    否则追加为新持仓。同一批内的多条记录依次作用在累计结果上。

    Returns:
        MergeResult: 新的持仓列表与被新增/更新的持仓 id
    """
    merged = list(holdings)
    touched: List[str] = []

    for entry in incoming:
        index = next((i for i, h in enumerate(merged)
                      if h.code == entry.code and h.asset_type == entry.asset_type), None)
        if index is None:
            merged.append(entry)
            touched_id = entry.id
        else:
            existing = merged[index]
            merged[index] = existing.model_copy(update={
                "quantity": existing.quantity + entry.quantity,
                "buy_price": weighted_average(existing.buy_price, existing.quantity,
                                              entry.buy_price, entry.quantity),
            })
            touched_id = existing.id
        if touched_id not in touched:
            touched.append(touched_id)

    logger.debug(f"合并 {len(incoming)} 条录入，影响 {len(touched)} 个持仓")
    return MergeResult(holdings=merged, touched_ids=touched)


def parse_batch_text(text: str, today: Optional[str] = None) -> List[Holding]:
    """解析批量导入文本，无法解析的行直接跳过；导入记录一律按基金处理"""
    today = today or date.today().isoformat()
    entries = []
    for line in text.strip().splitlines():
        parts = [p.strip() for p in _BATCH_SPLIT.split(line)]
        if len(parts) < 4:
            continue
        name, code = parts[0], parts[1]
        try:
            price = float(parts[2])
            quantity = float(parts[3])
        except ValueError:
            continue
        if not code or math.isnan(price) or math.isnan(quantity):
            continue
        entries.append(Holding(
            id=uuid.uuid4().hex,
            asset_type=AssetType.FUND,
            code=code,
            name=name or code,
            buy_date=today,
            buy_price=price,
            quantity=quantity,
            current_price=price,
        ))
    return entries


def update_holding(holdings: List[Holding], holding_id: str, entry: HoldingIn) -> Optional[List[Holding]]:
    """
    编辑：整体替换可编辑字段（不合并、不刷新），id 不存在返回 None

    Raises:
        DuplicateHoldingError: 改后的 (code, asset_type) 与另一条持仓相同
    """
    code = entry.code.strip()
    for i, h in enumerate(holdings):
        if h.id == holding_id:
            clash = next((other for other in holdings if other.id != holding_id
                          and other.code == code and other.asset_type == entry.asset_type), None)
            if clash is not None:
                raise DuplicateHoldingError(f"已持有 {entry.asset_type.value} {code}（{clash.id}），请直接追加买入")
            updated = list(holdings)
            updated[i] = h.model_copy(update={
                "asset_type": entry.asset_type,
                "name": (entry.name or "").strip() or h.name,
                "code": code,
                "buy_date": entry.buy_date or h.buy_date,
                "buy_price": entry.buy_price,
                "quantity": entry.quantity,
            })
            return updated
    return None


def delete_holding(holdings: List[Holding], holding_id: str) -> Optional[List[Holding]]:
    remaining = [h for h in holdings if h.id != holding_id]
    if len(remaining) == len(holdings):
        return None
    return remaining
