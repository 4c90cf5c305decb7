import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from app.auth.supabase_auth import get_current_user
from app.core.session_cache import session_cache
from app.errors import RemoteError
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.hobby_schema import HobbyOut, HobbySelection
from app.schemas.profile_schema import (
    AvatarOut,
    NotificationSettings,
    ProfileOut,
    ProfileUpdate,
)
from app.services import embedding_service, profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


# ---------------------------------------------------------------------
# HOBBY CATALOG
# ---------------------------------------------------------------------
@router.get("/hobbies", response_model=List[HobbyOut])
async def list_hobbies(gateway: Gateway = Depends(get_gateway)):
    return await profile_service.list_hobbies(gateway)


@router.put("/hobbies")
async def replace_hobbies(
    payload: HobbySelection,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    user_id = current_user["sub"]
    changed = await profile_service.replace_hobbies(gateway, user_id, payload.hobby_ids)

    embedding = None
    if changed:
        # Recommendations fall back to exact matches until the next save
        try:
            embedding = await embedding_service.update_profile_embedding(gateway, user_id)
        except RemoteError as exc:
            logger.warning("Embedding refresh failed for %s: %s", user_id, exc.message)
            embedding = {"success": False, "message": exc.message}

    await session_cache.load(gateway, user_id, refresh=True)
    return {"changed": changed, "embedding": embedding}


# ---------------------------------------------------------------------
# PROFILE
# ---------------------------------------------------------------------
@router.put("/profile", response_model=ProfileOut)
async def update_profile(
    payload: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    profile = await profile_service.update_profile(gateway, current_user["sub"], payload)
    session_cache.forget(current_user["sub"])
    return profile


@router.put("/notifications", response_model=ProfileOut)
async def update_notifications(
    payload: NotificationSettings,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await profile_service.update_notifications(gateway, current_user["sub"], payload)


# ---------------------------------------------------------------------
# AVATAR
# ---------------------------------------------------------------------
@router.post("/avatar", response_model=AvatarOut)
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    data = await file.read()
    url = await profile_service.upload_avatar(
        gateway,
        current_user["sub"],
        file.filename,
        file.content_type,
        data,
    )
    session_cache.forget(current_user["sub"])
    return AvatarOut(profile_picture=url)
