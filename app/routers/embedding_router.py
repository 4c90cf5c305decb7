from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.services import embedding_service


router = APIRouter(prefix="/api", tags=["Embeddings"])


@router.post("/update-profile-embedding")
async def update_profile_embedding(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await embedding_service.update_profile_embedding(gateway, current_user["sub"])
