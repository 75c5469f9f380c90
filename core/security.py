from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.context import CryptContext
from .config import get_settings

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(p: str) -> str:
    return pwd_ctx.hash(p)

def verify_password(p: str, hp: str) -> bool:
    return pwd_ctx.verify(p, hp)

def create_access_token(sub: str, minutes: int = None) -> str:
    settings = get_settings()
    exp = datetime.now(tz=timezone.utc) + timedelta(
        minutes=minutes or settings.access_token_expire_minutes
    )
    to_encode = {"sub": sub, "exp": exp}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

def decode_access_token(token: str) -> int:
    """返回 token 中的用户 id，无效时抛 JWTError"""
    settings = get_settings()
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    return int(payload.get("sub"))
