import json
from typing import Callable, List, Optional

from pydantic import ValidationError

from models.LLM_model import llm_chat
from schemas import AssetAdvice, Holding
from tools.logConfig import log_config, ERROR_ICON, SUCCESS_ICON

logger = log_config('advisor')

SYSTEM_PROMPT = "You are a professional investment advisor. Reply with strictly valid JSON only."

ADVICE_PROMPT = """
I am a personal investor. Here is my current portfolio:
{portfolio}

For each unique asset, please analyze it briefly and suggest 3 "better" alternatives (funds or stocks in similar sectors/categories) that have historically performed better or have lower fees.

Return a JSON array, one element per asset:
[{{"asset_name": "...", "asset_code": "...", "alternatives": [{{"name": "...", "code": "...", "reason": "..."}}]}}]
"""


class AdvisorError(Exception):
    """顾问调用失败或返回无法解析"""


def unique_assets(holdings: List[Holding]) -> List[Holding]:
    seen = set()
    assets = []
    for h in holdings:
        key = (h.code, h.asset_type)
        if key not in seen:
            seen.add(key)
            assets.append(h)
    return assets


def build_prompt(holdings: List[Holding]) -> str:
    lines = [
        f"Type: {h.asset_type.value}, Name: {h.name}, Code: {h.code}, "
        f"Buy Price: {h.buy_price}, Current Price: {h.current_price}"
        for h in unique_assets(holdings)
    ]
    return ADVICE_PROMPT.format(portfolio="\n".join(lines))


def parse_advice(text: str) -> List[AssetAdvice]:
    # 模型偶尔在 JSON 外包裹说明文字，只取数组部分
    start = text.find('[')
    end = text.rfind(']') + 1
    if start < 0 or end <= start:
        raise AdvisorError("no JSON array in advisor response")
    try:
        items = json.loads(text[start:end])
        return [AssetAdvice.model_validate(item) for item in items]
    except (ValueError, ValidationError) as e:
        raise AdvisorError(f"invalid advisor response: {e}") from e


class SmartAdvisor:
    """组合替代建议；调用可失败，不影响持仓状态"""

    def __init__(self, chat: Optional[Callable] = None):
        self.chat = chat or llm_chat

    def advise(self, holdings: List[Holding]) -> List[AssetAdvice]:
        if not holdings:
            return []
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(holdings)},
        ]
        response = self.chat(messages=messages, json_mode=True)
        if not response:
            logger.error(f"{ERROR_ICON} 顾问未返回内容")
            raise AdvisorError("empty advisor response")
        advice = parse_advice(response)
        logger.info(f"{SUCCESS_ICON} 获得 {len(advice)} 条资产建议")
        return advice
