import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from schemas import Holding

logger = logging.getLogger("api_state")


class PortfolioState:
    """内存中的持仓状态，按存储键（游客 / 用户）区分，整组替换，后写者生效"""

    def __init__(self):
        self.lock = threading.RLock()
        self._holdings: Dict[str, List[Holding]] = {}
        self._last_updated: Dict[str, datetime] = {}

    def get(self, key: str, loader: Callable[[], List[Holding]]) -> List[Holding]:
        """读取持仓，首次访问时通过 loader 从存储加载"""
        with self.lock:
            if key not in self._holdings:
                self._holdings[key] = list(loader())
                logger.debug(f"{key}: 加载 {len(self._holdings[key])} 条持仓")
            return list(self._holdings[key])

    def set(self, key: str, holdings: List[Holding]) -> None:
        with self.lock:
            self._holdings[key] = list(holdings)

    def touch(self, key: str) -> datetime:
        with self.lock:
            self._last_updated[key] = datetime.now()
            return self._last_updated[key]

    def last_updated(self, key: str) -> Optional[datetime]:
        with self.lock:
            return self._last_updated.get(key)


portfolio_state = PortfolioState()
