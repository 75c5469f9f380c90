import json
import math
import random
import re
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from core.config import get_settings
from schemas import AssetType, QuoteRecord
from tools.logConfig import log_config

logger = log_config('api')

# jsonpgz({...}); 天天基金固定回调名
_JSONPGZ_RE = re.compile(r'jsonpgz\((.*)\)', re.S)
# var hq_str_sh600519="...";
_HQ_STR_RE = re.compile(r'var\s+hq_str_(\w+)="([^"]*)"')


def _to_float(value) -> Optional[float]:
    """解析数值字段，空串/非数字/NaN 返回 None"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def market_prefix(code: str) -> str:
    """按代码首位推断交易所前缀（启发式，非权威路由）"""
    if code.startswith('6'):
        return 'sh'
    if code.startswith(('0', '3')):
        return 'sz'
    if code.startswith(('8', '4')):
        return 'bj'
    return 'sh'


class QuoteTransport:
    """
    行情请求通道

    基金估值接口总是回调同一个 jsonpgz，结果通过一个共享槽位返回，
    所以同一时刻只允许一个请求在途。所有行情请求都经过这把锁串行执行。
    """

    _lock = threading.Lock()

    def __init__(self, timeout: Optional[float] = None, max_retries: Optional[int] = None,
                 retry_delay: float = 0.5):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.quote_timeout
        self.max_retries = max(1, max_retries if max_retries is not None else settings.quote_max_retries)
        self.retry_delay = retry_delay

        # User-Agent池
        self.user_agents = [
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
        ]

    def _get_random_user_agent(self) -> str:
        return random.choice(self.user_agents)

    def fetch(self, url: str, headers: Optional[Dict[str, str]] = None,
              encoding: Optional[str] = None) -> Optional[str]:
        """
        带重试的 HTTP GET，失败（超时/非200/网络错误）返回 None

        Args:
            url: 请求URL
            headers: 额外请求头
            encoding: 响应编码，新浪接口为 GBK

        Returns:
            响应文本或None
        """
        request_headers = {
            'User-Agent': self._get_random_user_agent(),
            'Accept': '*/*',
            'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8',
        }
        request_headers.update(headers or {})

        with self._lock:
            for attempt in range(self.max_retries):
                try:
                    response = requests.get(url, headers=request_headers, timeout=self.timeout)
                    if response.status_code == 200:
                        if encoding:
                            response.encoding = encoding
                        return response.text
                    logger.debug(f"HTTP {response.status_code} (尝试 {attempt + 1}/{self.max_retries}): {url}")
                except requests.Timeout:
                    logger.debug(f"请求超时 (尝试 {attempt + 1}/{self.max_retries}): {url}")
                except requests.RequestException as e:
                    logger.debug(f"请求失败 (尝试 {attempt + 1}/{self.max_retries}): {e}")

                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay * (2 ** attempt))

        return None


class QuoteAdapter(ABC):
    """单个资产类型的行情适配器：按代码取一条标准化报价，失败返回 None"""

    asset_type: AssetType

    def __init__(self, transport: Optional[QuoteTransport] = None):
        self.transport = transport or QuoteTransport()

    def fetch(self, code: str) -> Optional[QuoteRecord]:
        text = self.request(code)
        if text is None:
            logger.warning(f"{self.asset_type.value} {code}: 行情请求失败")
            return None
        try:
            record = self.parse(code, text)
        except (ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning(f"{self.asset_type.value} {code}: 行情解析失败: {e}")
            return None
        if record is None:
            logger.warning(f"{self.asset_type.value} {code}: 无行情数据")
        return record

    @abstractmethod
    def request(self, code: str) -> Optional[str]:
        """发起请求，返回原始响应文本"""

    @abstractmethod
    def parse(self, code: str, text: str) -> Optional[QuoteRecord]:
        """把原始响应解析成 QuoteRecord"""


class FundQuoteAdapter(QuoteAdapter):
    """
    天天基金实时估值

    返回字段: fundcode, name, jzrq(净值日期), dwjz(单位净值), gsz(估算值), gszzl, gztime(估值时间)
    估值有效时优先使用估值，否则回落到单位净值；昨收始终取单位净值。
    """

    asset_type = AssetType.FUND

    def request(self, code: str) -> Optional[str]:
        url = get_settings().fund_quote_url.format(code=code)
        return self.transport.fetch(f"{url}?rt={int(time.time() * 1000)}")

    def parse(self, code: str, text: str) -> Optional[QuoteRecord]:
        match = _JSONPGZ_RE.search(text)
        if not match or not match.group(1).strip():
            return None
        data = json.loads(match.group(1))
        if not isinstance(data, dict) or data.get('fundcode') != code:
            return None

        estimate = _to_float(data.get('gsz'))
        nav = _to_float(data.get('dwjz'))
        estimate_valid = estimate is not None and estimate > 0
        current = estimate if estimate_valid else nav

        return QuoteRecord(
            name=data.get('name'),
            current_price=current if current is not None else 0.0,
            yesterday_price=nav if nav is not None else 0.0,
            price_date=data.get('gztime') if estimate_valid else data.get('jzrq'),
        )


class StockQuoteAdapter(QuoteAdapter):
    """
    新浪实时行情

    逗号分隔: 0 名称, 1 今开, 2 昨收, 3 现价, ... 30 日期, 31 时间
    收盘后现价即当日收盘价；现价无效时回落到昨收。
    """

    asset_type = AssetType.STOCK

    def request(self, code: str) -> Optional[str]:
        settings = get_settings()
        url = settings.stock_quote_url.format(symbol=f"{market_prefix(code)}{code}")
        return self.transport.fetch(url, headers={'Referer': settings.stock_quote_referer}, encoding='gbk')

    def parse(self, code: str, text: str) -> Optional[QuoteRecord]:
        expected = f"{market_prefix(code)}{code}"
        for symbol, payload in _HQ_STR_RE.findall(text):
            if symbol != expected:
                continue
            parts = payload.split(',')
            if len(parts) <= 31:
                return None
            prev_close = _to_float(parts[2])
            current = _to_float(parts[3])
            if prev_close is None and current is None:
                return None
            if current is None or current <= 0:
                current = prev_close or 0.0
            return QuoteRecord(
                name=parts[0].strip() or None,
                current_price=current,
                yesterday_price=prev_close if prev_close is not None else 0.0,
                price_date=f"{parts[30]} {parts[31]}".strip() or None,
            )
        return None


_ADAPTERS = {
    AssetType.FUND: FundQuoteAdapter,
    AssetType.STOCK: StockQuoteAdapter,
}


def get_adapter(asset_type: AssetType, transport: Optional[QuoteTransport] = None) -> QuoteAdapter:
    return _ADAPTERS[AssetType(asset_type)](transport)
