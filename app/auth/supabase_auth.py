from jose import jwt, JWTError
from fastapi import Header, HTTPException

from app.config import settings


def verify_token(token: str | None) -> dict | None:
    """Claims of a valid access token, or None. Shared by REST and WebSocket auth."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload  # contains sub + email


def decode_token(token: str) -> dict:
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def get_current_user(authorization: str = Header(None)):
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing auth header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid auth header")

    token = authorization.replace("Bearer ", "", 1)
    return decode_token(token)
