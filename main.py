from fastapi import FastAPI

from core.config import get_settings
from database.session import engine
from database.base import Base
from routers import advice, auth, portfolio
import entity.portfolio  # noqa: F401  注册表结构

settings = get_settings()
app = FastAPI(title=settings.app_name, version=settings.app_version)

# 自动建表（生产建议用 Alembic）
Base.metadata.create_all(bind=engine)

app.include_router(auth.router)
app.include_router(portfolio.router)
app.include_router(advice.router)

@app.get("/health")
def health():
    return {"status": "ok"}
