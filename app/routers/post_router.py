from typing import List

from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.post_schema import CommentCreate, CommentView, PostView
from app.services import post_service


router = APIRouter(prefix="/posts", tags=["Posts"])


# --------------------------------------------------
# FEED
# --------------------------------------------------
@router.get("/feed", response_model=List[PostView])
async def get_feed(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await post_service.feed(gateway, current_user["sub"])


# --------------------------------------------------
# LIKES
# --------------------------------------------------
@router.post("/{post_id}/like")
async def like_post(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await post_service.get_post(gateway, post_id)
    await post_service.like(gateway, current_user["sub"], post_id)
    return {"post_id": post_id, "is_liked": True}


@router.delete("/{post_id}/like")
async def unlike_post(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await post_service.unlike(gateway, current_user["sub"], post_id)
    return {"post_id": post_id, "is_liked": False}


# --------------------------------------------------
# COMMENTS
# --------------------------------------------------
@router.get("/{post_id}/comments", response_model=List[CommentView])
async def list_comments(
    post_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await post_service.list_comments(gateway, post_id)


@router.post("/{post_id}/comments", response_model=CommentView)
async def add_comment(
    post_id: str,
    payload: CommentCreate,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await post_service.get_post(gateway, post_id)
    return await post_service.add_comment(gateway, current_user["sub"], post_id, payload.content)
