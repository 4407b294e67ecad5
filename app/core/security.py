from datetime import datetime, timedelta, timezone
from jose import jwt

from app.core.config import settings

ACCESS_TOKEN_TTL = timedelta(hours=12)


def create_access_token(user_id: str, email: str, expires_delta: timedelta = ACCESS_TOKEN_TTL) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": str(email or "").strip().lower(),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=["HS256"])
