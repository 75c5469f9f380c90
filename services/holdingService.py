from functools import lru_cache
from typing import Callable, List, Optional, Tuple

from schemas import DashboardOut, Holding, HoldingIn
from services.mergeService import delete_holding, merge_positions, update_holding
from services.portfolioService import allocation, calculate_profit_sharing, summarize, top_movers
from services.priceSyncService import PriceSynchronizer, apply_refreshed
from services.storageService import HoldingRepository, LocalHoldingStore, RemoteHoldingStore, StorageContext
from state import PortfolioState, portfolio_state
from tools.logConfig import log_config

logger = log_config('api')


class HoldingService:
    """
    持仓用例编排：合并 -> 持久化 -> 刷新受影响持仓 -> 写回

    内存状态即时生效；持久化失败只记录日志。写内存和落盘在同一段状态锁内完成，
    存储中的顺序与内存一致。行情请求在状态锁之外进行，刷新结果按 id 写回最新状态，
    并发刷新以后写者为准。
    """

    def __init__(self, repository: HoldingRepository, synchronizer: PriceSynchronizer,
                 state: PortfolioState):
        self.repository = repository
        self.synchronizer = synchronizer
        self.state = state

    def _loader(self, ctx: StorageContext):
        return lambda: self.repository.load(ctx)

    def holdings(self, ctx: StorageContext) -> List[Holding]:
        return self.state.get(ctx.key, self._loader(ctx))

    def _commit(self, ctx: StorageContext,
                fn: Callable[[List[Holding]], Optional[List[Holding]]]) -> Optional[List[Holding]]:
        """在锁内基于最新状态计算新集合、替换内存并落盘；fn 返回 None 时不做修改"""
        with self.state.lock:
            updated = fn(self.holdings(ctx))
            if updated is None:
                return None
            self.state.set(ctx.key, updated)
            self.repository.persist(updated, ctx)
            return list(updated)

    def add_entries(self, ctx: StorageContext, entries: List[Holding]) -> Tuple[List[Holding], List[str]]:
        result = None

        def merge(current):
            nonlocal result
            result = merge_positions(current, entries)
            return result.holdings

        merged = self._commit(ctx, merge)
        affected = [h for h in merged if h.id in result.touched_ids]
        refreshed = self.synchronizer.synchronize(affected)
        final = self._commit(ctx, lambda current: apply_refreshed(current, refreshed))
        self.state.touch(ctx.key)
        return final, result.touched_ids

    def update(self, ctx: StorageContext, holding_id: str, entry: HoldingIn) -> Optional[List[Holding]]:
        """id 不存在返回 None；与其他持仓冲突时抛 DuplicateHoldingError"""
        return self._commit(ctx, lambda current: update_holding(current, holding_id, entry))

    def delete(self, ctx: StorageContext, holding_id: str) -> Optional[List[Holding]]:
        return self._commit(ctx, lambda current: delete_holding(current, holding_id))

    def refresh(self, ctx: StorageContext) -> List[Holding]:
        refreshed = self.synchronizer.synchronize(self.holdings(ctx))
        final = self._commit(ctx, lambda current: apply_refreshed(current, refreshed))
        self.state.touch(ctx.key)
        return final

    def sync_on_sign_in(self, ctx: StorageContext, initial: Optional[List[Holding]] = None) -> List[Holding]:
        with self.state.lock:
            self.state.set(ctx.key, self.repository.sync_on_sign_in(ctx.user_id, initial))
        return self.refresh(ctx)

    def dashboard(self, ctx: StorageContext, holdings: Optional[List[Holding]] = None) -> DashboardOut:
        holdings = self.holdings(ctx) if holdings is None else holdings
        summary = summarize(holdings)
        return DashboardOut(
            holdings=holdings,
            summary=summary,
            profit_sharing=calculate_profit_sharing(summary.total_cost, summary.total_profit_loss),
            allocation=allocation(holdings),
            top_movers=top_movers(holdings),
            last_updated=self.state.last_updated(ctx.key),
        )


@lru_cache
def get_holding_service() -> HoldingService:
    from database.session import SessionLocal

    repository = HoldingRepository(LocalHoldingStore(), RemoteHoldingStore(SessionLocal))
    return HoldingService(repository, PriceSynchronizer(), portfolio_state)
