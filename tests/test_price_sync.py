import threading
import time

import pytest
import requests

from conftest import FakeAdapter, make_holding
from schemas import AssetType, QuoteRecord
from services.portfolioService import summarize
from services.priceSyncService import PriceSynchronizer, apply_refreshed, merge_quote
from services.quoteService import QuoteTransport


def test_one_failed_fetch_keeps_prior_values(fake_adapters, quote):
    a = make_holding("600519", buy_price=1600, quantity=10, current_price=1650)
    b = make_holding("000001", buy_price=10, quantity=1000, current_price=10, yesterday_price=9.9)
    c = make_holding("161725", buy_price=1.0, quantity=5000, asset_type=AssetType.FUND)
    fake_adapters[AssetType.STOCK].quotes = {
        "600519": quote(1710, 1690, name="贵州茅台", price_date="2024-01-03 15:00:00"),
        "000001": requests.ConnectionError("reset"),
    }
    fake_adapters[AssetType.FUND].quotes = {"161725": quote(1.062, 1.05, price_date="2024-01-03 15:00")}

    result = PriceSynchronizer(adapters=fake_adapters).synchronize([a, b, c])

    assert [h.id for h in result] == [a.id, b.id, c.id]
    assert result[0].current_price == 1710 and result[0].yesterday_price == 1690
    assert result[0].name == "贵州茅台"
    assert result[1] == b
    assert result[2].current_price == 1.062

    summary = summarize(result)
    assert summary.total_market_value == pytest.approx(1710 * 10 + 10 * 1000 + 1.062 * 5000)
    assert summary.total_day_profit_loss == pytest.approx((1710 - 1690) * 10 + (10 - 9.9) * 1000 + (1.062 - 1.05) * 5000)


def test_all_failures_return_same_list(fake_adapters):
    holdings = [make_holding(str(600000 + i)) for i in range(7)]

    result = PriceSynchronizer(adapters=fake_adapters).synchronize(holdings)

    assert result == holdings


def test_fetches_in_list_order():
    adapter = FakeAdapter()
    adapters = {AssetType.STOCK: adapter, AssetType.FUND: adapter}
    holdings = [make_holding("161725", asset_type=AssetType.FUND), make_holding("600519"),
                make_holding("110011", asset_type=AssetType.FUND)]

    PriceSynchronizer(adapters=adapters).synchronize(holdings)

    assert adapter.calls == ["161725", "600519", "110011"]


def test_merge_quote_keeps_prior_on_invalid_fields():
    holding = make_holding("600519", current_price=1650, name="贵州茅台", price_date="old")

    merged = merge_quote(holding, QuoteRecord(name="", current_price=0, yesterday_price=None))

    assert merged.name == "贵州茅台"
    assert merged.current_price == 1650
    # 没有昨收时用现价作基准，当日盈亏为 0
    assert merged.yesterday_price == 1650
    assert merged.price_date == "old"


def test_merge_quote_zero_yesterday_falls_back_to_new_current():
    holding = make_holding("161725", current_price=1.0, asset_type=AssetType.FUND)

    merged = merge_quote(holding, QuoteRecord(current_price=1.2, yesterday_price=0))

    assert merged.current_price == 1.2
    assert merged.yesterday_price == 1.2


def test_apply_refreshed_only_overwrites_price_fields():
    current = [make_holding("600519", quantity=300), make_holding("600036")]
    refreshed = [make_holding("600519", quantity=100, current_price=1710, yesterday_price=1690,
                              name="贵州茅台", price_date="t")]

    merged = apply_refreshed(current, refreshed)

    assert merged[0].quantity == 300
    assert merged[0].current_price == 1710
    assert merged[0].yesterday_price == 1690
    assert merged[0].name == "贵州茅台"
    assert merged[1] == current[1]


def test_apply_refreshed_ignores_deleted_holdings():
    refreshed = [make_holding("600519", current_price=1710)]
    assert apply_refreshed([], refreshed) == []


class _Response:
    status_code = 200
    encoding = None

    def __init__(self, text):
        self.text = text


def test_overlapping_refreshes_never_overlap_quote_requests(monkeypatch):
    guard = threading.Lock()
    in_flight = {"now": 0, "max": 0, "calls": 0}

    def fake_get(url, headers=None, timeout=None):
        with guard:
            in_flight["now"] += 1
            in_flight["calls"] += 1
            in_flight["max"] = max(in_flight["max"], in_flight["now"])
        time.sleep(0.02)
        with guard:
            in_flight["now"] -= 1
        return _Response('jsonpgz({"fundcode":"161725","name":"招商中证白酒指数","jzrq":"2024-01-02",'
                         '"dwjz":"1.0500","gsz":"1.0620","gszzl":"1.14","gztime":"2024-01-03 15:00"});')

    monkeypatch.setattr(requests, "get", fake_get)
    holdings = [make_holding("161725", buy_price=1.0, asset_type=AssetType.FUND, id=f"f{i}") for i in range(3)]
    results = []

    def refresh():
        synchronizer = PriceSynchronizer(transport=QuoteTransport(max_retries=1, retry_delay=0))
        results.append(synchronizer.synchronize(holdings))

    threads = [threading.Thread(target=refresh) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert in_flight["calls"] == 6
    assert in_flight["max"] == 1
    assert [h.current_price for result in results for h in result] == pytest.approx([1.062] * 6)
