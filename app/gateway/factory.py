import logging

from fastapi import Header

from app.config import settings
from app.database import engine
from app.gateway.base import Gateway
from app.gateway.sql_gateway import SqlGateway

logger = logging.getLogger(__name__)

_local_gateway: SqlGateway | None = None


def get_local_gateway() -> SqlGateway:
    """Process-wide local backend (one engine, one change feed)."""
    global _local_gateway
    if _local_gateway is None:
        _local_gateway = SqlGateway(engine)
    return _local_gateway


async def open_gateway(access_token: str | None = None) -> Gateway:
    if settings.GATEWAY_BACKEND == "supabase":
        # Imported lazily so the local backend runs without the hosted client configured
        from app.gateway.supabase_gateway import SupabaseGateway

        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        return await SupabaseGateway.connect(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            access_token,
        )

    return get_local_gateway()


def bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "", 1)
    return None


# --------------------------------------------------
# FastAPI dependency
# --------------------------------------------------
async def get_gateway(authorization: str = Header(None)):
    gateway = await open_gateway(bearer_token(authorization))
    try:
        yield gateway
    finally:
        await gateway.aclose()
