import threading
import time

import pytest

from conftest import make_holding
from schemas import AssetType, HoldingIn
from services.holdingService import HoldingService
from services.priceSyncService import PriceSynchronizer
from services.storageService import GUEST_KEY, HoldingRepository, LocalHoldingStore, StorageContext
from state import PortfolioState


class BlockingLocalStore(LocalHoldingStore):
    """第一次 save 停在 release 上，用来制造“写内存后、落盘前”的窗口"""

    def __init__(self, directory):
        super().__init__(directory=directory, namespace="svc")
        self.entered = threading.Event()
        self.release = threading.Event()
        self._blocked = False

    def save(self, holdings, key=GUEST_KEY):
        if not self._blocked:
            self._blocked = True
            self.entered.set()
            self.release.wait(timeout=5)
        super().save(holdings, key)


@pytest.fixture
def ctx():
    return StorageContext()


def _service(local, fake_adapters):
    return HoldingService(HoldingRepository(local), PriceSynchronizer(adapters=fake_adapters), PortfolioState())


def test_concurrent_update_and_delete_leave_store_matching_memory(tmp_path, fake_adapters, ctx):
    local = BlockingLocalStore(str(tmp_path))
    service = _service(local, fake_adapters)
    holding = make_holding("600519")
    service.state.set(ctx.key, [holding])
    entry = HoldingIn(asset_type=AssetType.STOCK, code="600519", buy_price=20, quantity=5)

    updater = threading.Thread(target=service.update, args=(ctx, holding.id, entry))
    deleter = threading.Thread(target=service.delete, args=(ctx, holding.id))
    updater.start()
    assert local.entered.wait(timeout=5)
    deleter.start()
    time.sleep(0.05)
    local.release.set()
    updater.join(timeout=5)
    deleter.join(timeout=5)

    assert service.holdings(ctx) == []
    assert local.load(ctx.key) == []


def test_add_entries_persists_refreshed_prices(tmp_path, fake_adapters, quote, ctx):
    local = LocalHoldingStore(directory=str(tmp_path), namespace="svc")
    service = _service(local, fake_adapters)
    fake_adapters[AssetType.FUND].quotes["110011"] = quote(2.5, 2.4, name="易方达优质精选")

    holdings, touched = service.add_entries(ctx, [make_holding("110011", buy_price=2, asset_type=AssetType.FUND)])

    assert touched == [holdings[0].id]
    assert local.load(ctx.key) == holdings
    assert holdings[0].current_price == 2.5


def test_users_do_not_share_holdings(tmp_path, fake_adapters):
    local = LocalHoldingStore(directory=str(tmp_path), namespace="svc")
    service = _service(local, fake_adapters)

    service.add_entries(StorageContext(user_id=1), [make_holding("110011", asset_type=AssetType.FUND)])

    assert service.holdings(StorageContext(user_id=2)) == []
    assert service.holdings(StorageContext()) == []
