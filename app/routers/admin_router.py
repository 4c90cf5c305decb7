from typing import List, Optional

from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.admin_schema import AdminStats, AdminUserRow
from app.schemas.community_schema import CommunityOut
from app.services import admin_service


router = APIRouter(prefix="/admin", tags=["Admin"])


# --------------------------------------------------
# DB dependency with admin check
# --------------------------------------------------
async def get_admin_gateway(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
) -> Gateway:
    await admin_service.ensure_admin(gateway, current_user["sub"])
    return gateway


@router.get("/stats", response_model=AdminStats)
async def get_stats(gateway: Gateway = Depends(get_admin_gateway)):
    return await admin_service.stats(gateway)


@router.get("/users", response_model=List[AdminUserRow])
async def list_users(q: Optional[str] = None, gateway: Gateway = Depends(get_admin_gateway)):
    return await admin_service.users(gateway, q)


@router.get("/communities", response_model=List[CommunityOut])
async def list_communities(q: Optional[str] = None, gateway: Gateway = Depends(get_admin_gateway)):
    return await admin_service.communities(gateway, q)
