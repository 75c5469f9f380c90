from datetime import datetime
from enum import Enum
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

# Auth
class UserCreate(BaseModel):
    email: EmailStr
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Holdings
class AssetType(str, Enum):
    STOCK = "STOCK"
    FUND = "FUND"

class Holding(BaseModel):
    id: str
    asset_type: AssetType
    code: str
    name: str
    buy_date: str                     # YYYY-MM-DD，仅展示用
    buy_price: float                  # 加权平均成本
    quantity: float
    current_price: float
    yesterday_price: Optional[float] = None
    price_date: Optional[str] = None

class HoldingIn(BaseModel):
    """手工录入 / 编辑表单，必填项由 services.validation 校验"""
    asset_type: AssetType = AssetType.FUND
    code: str = ""
    name: Optional[str] = None
    buy_date: Optional[str] = None
    buy_price: Optional[float] = None
    quantity: Optional[float] = None

class BatchImportIn(BaseModel):
    # 每行: 名称, 代码, 价格, 数量
    text: str

class SyncIn(BaseModel):
    # 登录前在本客户端录入的游客持仓，云端无数据时作为初始状态上传
    holdings: Optional[List[Holding]] = None

class QuoteRecord(BaseModel):
    name: Optional[str] = None
    current_price: float = 0.0
    yesterday_price: Optional[float] = None
    price_date: Optional[str] = None

# Dashboard
class PortfolioSummary(BaseModel):
    total_cost: float = 0.0
    total_market_value: float = 0.0
    total_profit_loss: float = 0.0
    total_return_rate: float = 0.0
    total_day_profit_loss: float = 0.0

class ProfitSharingResult(BaseModel):
    sharing_amount: float = 0.0
    guarantee_amount: float = 0.0

class AllocationItem(BaseModel):
    name: str
    value: float

class ProfitLossItem(BaseModel):
    name: str
    pl: float

class DashboardOut(BaseModel):
    holdings: List[Holding] = []
    summary: PortfolioSummary
    profit_sharing: ProfitSharingResult
    allocation: List[AllocationItem] = []
    top_movers: List[ProfitLossItem] = []
    last_updated: Optional[datetime] = None

class MergeOut(DashboardOut):
    touched_ids: List[str] = []

# Advisor
class Alternative(BaseModel):
    name: str
    code: str
    reason: str = ""

class AssetAdvice(BaseModel):
    asset_name: str
    asset_code: str
    alternatives: List[Alternative] = Field(default_factory=list)
