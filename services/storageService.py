import json
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from entity.portfolio import Portfolio
from schemas import Holding
from tools.logConfig import log_config, ERROR_ICON

logger = log_config('storage')

GUEST_KEY = "local"


class RemoteStoreError(Exception):
    """远端读写失败（区别于“该用户还没有数据”）"""


@dataclass(frozen=True)
class StorageContext:
    """调用时显式传入的会话信息，user_id 为 None 表示游客"""
    user_id: Optional[int] = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def key(self) -> str:
        return f"user:{self.user_id}" if self.authenticated else GUEST_KEY


def _load_holdings(rows) -> List[Holding]:
    return [Holding.model_validate(row) for row in rows or []]


def _dump_holdings(holdings: List[Holding]) -> list:
    return [h.model_dump(mode="json") for h in holdings]


class LocalHoldingStore:
    """本地离线存储：每个存储键（游客 / 用户）在固定命名空间下各占一个 JSON 文件"""

    def __init__(self, directory: Optional[str] = None, namespace: Optional[str] = None):
        settings = get_settings()
        self.directory = directory or settings.local_store_dir
        self.namespace = namespace or settings.local_store_namespace

    def path(self, key: str = GUEST_KEY) -> str:
        # user:3 -> <namespace>.user_3.json
        safe_key = re.sub(r'[^0-9A-Za-z_-]', '_', key)
        return os.path.join(self.directory, f"{self.namespace}.{safe_key}.json")

    def load(self, key: str = GUEST_KEY) -> List[Holding]:
        path = self.path(key)
        if not os.path.exists(path):
            return []
        try:
            with open(path, encoding="utf-8") as f:
                return _load_holdings(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"{ERROR_ICON} 读取本地持仓失败 ({key}): {e}")
            return []

    def save(self, holdings: List[Holding], key: str = GUEST_KEY) -> None:
        path = self.path(key)
        try:
            os.makedirs(self.directory, exist_ok=True)
            tmp_path = f"{path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(_dump_holdings(holdings), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"{ERROR_ICON} 保存本地持仓失败 ({key}): {e}")


class RemoteHoldingStore:
    """按用户存放的云端文档，一个用户一行 Portfolio"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load_for_user(self, user_id: int) -> Optional[List[Holding]]:
        """文档不存在返回 None；数据库错误抛 RemoteStoreError"""
        try:
            with self.session_factory() as db:
                pf = db.query(Portfolio).filter(Portfolio.user_id == user_id).first()
                if pf is None:
                    return None
                return _load_holdings(pf.holdings_data)
        except (SQLAlchemyError, ValidationError) as e:
            raise RemoteStoreError(f"load portfolio of user {user_id} failed: {e}") from e

    def save_for_user(self, user_id: int, holdings: List[Holding]) -> None:
        try:
            with self.session_factory() as db:
                pf = db.query(Portfolio).filter(Portfolio.user_id == user_id).first()
                if pf is None:
                    pf = Portfolio(user_id=user_id)
                    db.add(pf)
                pf.holdings_data = _dump_holdings(holdings)
                pf.updated_at = datetime.utcnow()
                db.commit()
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"save portfolio of user {user_id} failed: {e}") from e


class HoldingRepository:
    """
    持久化端口

    每次变更都先写本地缓存（按存储键隔离）；已登录时再尽力写云端，
    云端失败只记日志，不回滚内存状态。
    """

    def __init__(self, local: LocalHoldingStore, remote: Optional[RemoteHoldingStore] = None):
        self.local = local
        self.remote = remote

    def load(self, ctx: StorageContext) -> List[Holding]:
        if ctx.authenticated and self.remote is not None:
            return self.sync_on_sign_in(ctx.user_id)
        return self.local.load(ctx.key)

    def persist(self, holdings: List[Holding], ctx: StorageContext) -> None:
        self.local.save(holdings, ctx.key)
        if ctx.authenticated and self.remote is not None:
            try:
                self.remote.save_for_user(ctx.user_id, holdings)
            except RemoteStoreError as e:
                logger.error(f"{ERROR_ICON} 云端同步失败: {e}")

    def sync_on_sign_in(self, user_id: int, initial: Optional[List[Holding]] = None) -> List[Holding]:
        """
        登录同步：云端有数据则以云端为准；没有则上传初始状态。
        初始状态是客户端随登录带上来的游客持仓，未提供时用该用户自己的本地缓存，
        不会读取其他存储键的数据。
        读取出错不等于没有数据，此时保留本地缓存且不上传，避免覆盖云端。
        """
        ctx = StorageContext(user_id=user_id)
        if self.remote is None:
            return self.local.load(ctx.key)
        try:
            cloud = self.remote.load_for_user(user_id)
        except RemoteStoreError as e:
            logger.error(f"{ERROR_ICON} 读取云端持仓失败，保留本地数据: {e}")
            return self.local.load(ctx.key)

        if cloud is not None:
            logger.info(f"用户 {user_id} 使用云端持仓 ({len(cloud)} 条)")
            return cloud

        holdings = list(initial) if initial is not None else self.local.load(ctx.key)
        try:
            self.remote.save_for_user(user_id, holdings)
            logger.info(f"用户 {user_id} 无云端数据，已上传初始持仓 ({len(holdings)} 条)")
        except RemoteStoreError as e:
            logger.error(f"{ERROR_ICON} 上传初始持仓失败: {e}")
        return holdings
