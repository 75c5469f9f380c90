import secrets
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    #: The name of the application.
    app_name: str = "WealthTrack"

    #: The version of the application.
    app_version: str = "0.1.0"

    #: The database URL of the remote holding store.
    database_url: str = "sqlite:///./wealthtrack.db"

    #: The secret key used for JWT.
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32))

    #: The algorithm used for JWT.
    algorithm: str = "HS256"

    #: The access token expiration time.
    access_token_expire_minutes: int = 60 * 24 * 7

    #: Directory of the local (guest) holding store.
    local_store_dir: str = "./data"

    #: Fixed namespace key of the local holding store.
    local_store_namespace: str = "wealthtrack_holdings_v1"

    #: 天天基金估值接口, formatted with the fund code.
    fund_quote_url: str = "https://fundgz.1234567.com.cn/js/{code}.js"

    #: 新浪行情接口, formatted with the market-prefixed symbol.
    stock_quote_url: str = "https://hq.sinajs.cn/list={symbol}"

    #: Sina rejects requests without a finance.sina.com.cn referer.
    stock_quote_referer: str = "https://finance.sina.com.cn/"

    #: Per-request quote timeout in seconds.
    quote_timeout: float = 5.0

    #: Attempts per quote before giving up.
    quote_max_retries: int = 2

    #: Gemini API key for the smart advisor.
    gemini_api_key: Optional[str] = None

    #: Gemini model for the smart advisor.
    gemini_model: str = "gemini-2.5-flash"

    #: Log directory; defaults to ./logs next to the project.
    log_dir: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings.
    """
    return Settings()
