# backend/lnedu/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
import jwt  # PyJWT
from passlib.context import CryptContext

from lnedu.core.config import settings

# -------------------- Password hashing --------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

# -------------------- JWT helpers --------------------
def _now() -> datetime:
    return datetime.now(timezone.utc)

def _encode(sub: str, kind: str, key: str, minutes: int, extra: dict | None) -> str:
    now = _now()
    payload = {
        "sub": sub,
        "type": kind,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, key, algorithm=settings.JWT_ALG)

def create_access_token(*, sub: str, extra: dict | None = None, minutes: int | None = None) -> str:
    """Gera Access Token (type=access). `minutes` sobrescreve o default se passado."""
    exp_min = minutes if minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    return _encode(sub, "access", settings.JWT_SECRET, exp_min, extra)

def create_refresh_token(*, sub: str, extra: dict | None = None, minutes: int | None = None) -> str:
    """Gera Refresh Token (type=refresh)."""
    exp_min = minutes if minutes is not None else settings.REFRESH_TOKEN_EXPIRE_MINUTES
    return _encode(sub, "refresh", settings.JWT_REFRESH_SECRET, exp_min, extra)

def issue_tokens(user) -> dict:
    extra = {"email": user.email, "name": user.name, "role": user.role.value}
    return {
        "access_token": create_access_token(sub=str(user.id), extra=extra),
        "refresh_token": create_refresh_token(sub=str(user.id)),
        "token_type": "bearer",
    }

def decode_token(token: str, *, expect: str = "access") -> dict:
    """Decodifica e valida tipo do token ('access' ou 'refresh')."""
    key = settings.JWT_REFRESH_SECRET if expect == "refresh" else settings.JWT_SECRET
    data = jwt.decode(token, key, algorithms=[settings.JWT_ALG])
    if data.get("type") != expect:
        raise jwt.InvalidTokenError("wrong token type")
    return data
