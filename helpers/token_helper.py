import os
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from models.auth import User

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _jwt_key() -> str:
    return os.getenv("JWT_SECRET", "dev_secret_change_me")


def generate_user_token(payload: dict) -> str:
    ttl = int(os.getenv("JWT_TTL_MINUTES", str(60 * 24 * 7)))
    now = datetime.now(timezone.utc)
    claims = {
        **payload,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(claims, _jwt_key(), algorithm='HS256')


async def decode_user_token(token: str) -> User:
    try:
        payload = jwt.decode(token, _jwt_key(), algorithms=['HS256'])
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await User.get_or_none(id=payload.get('id'))
    if not user:
        raise HTTPException(status_code=401, detail="User does not exist")
    return user


async def get_current_user(credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)]) -> User:
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await decode_user_token(credentials.credentials)


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(optional_security)],
) -> Optional[User]:
    """Anonymous callers fall through to the process-wide token store."""
    if not credentials or not credentials.credentials:
        return None
    return await decode_user_token(credentials.credentials)
