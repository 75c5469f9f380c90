# 测试时使用临时目录里的 SQLite / 本地存储 / 日志，必须在导入项目模块之前设置
import os
import sys
import tempfile

ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

_TMP = tempfile.mkdtemp(prefix="wealthtrack-test-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("LOCAL_STORE_DIR", os.path.join(_TMP, "data"))
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest

from schemas import AssetType, Holding, QuoteRecord


def make_holding(code: str, buy_price: float = 10.0, quantity: float = 100.0,
                 asset_type: AssetType = AssetType.STOCK, **kwargs) -> Holding:
    fields = dict(
        id=kwargs.pop("id", f"id-{code}-{asset_type.value}"),
        asset_type=asset_type,
        code=code,
        name=kwargs.pop("name", code),
        buy_date="2024-01-02",
        buy_price=buy_price,
        quantity=quantity,
        current_price=kwargs.pop("current_price", buy_price),
    )
    fields.update(kwargs)
    return Holding(**fields)


class FakeAdapter:
    """按代码返回预设报价；值为 Exception 时抛出，缺省返回 None"""

    def __init__(self, quotes=None):
        self.quotes = quotes or {}
        self.calls = []

    def fetch(self, code):
        self.calls.append(code)
        quote = self.quotes.get(code)
        if isinstance(quote, Exception):
            raise quote
        return quote


@pytest.fixture
def fake_adapters():
    return {AssetType.STOCK: FakeAdapter(), AssetType.FUND: FakeAdapter()}


@pytest.fixture
def quote():
    def _quote(current, yesterday=None, name=None, price_date=None):
        return QuoteRecord(name=name, current_price=current, yesterday_price=yesterday, price_date=price_date)
    return _quote
