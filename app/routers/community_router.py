from typing import List, Optional

from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.community_schema import (
    CommunityCard,
    CommunityCreate,
    CommunityDetail,
    CommunityOut,
    MemberView,
)
from app.schemas.post_schema import PostCreate, PostView
from app.services import community_service, post_service


router = APIRouter(prefix="/communities", tags=["Communities"])


# --------------------------------------------------
# LIST + CREATE
# --------------------------------------------------
@router.get("", response_model=List[CommunityCard])
async def list_communities(
    tab: str = "discover",
    q: Optional[str] = None,
    category: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    cards = await community_service.list_communities(gateway, current_user["sub"])
    return community_service.filter_cards(cards, tab=tab, query=q, category=category)


@router.get("/categories", response_model=List[str])
def list_categories():
    return community_service.CATEGORIES


@router.post("", response_model=CommunityOut)
async def create_community(
    payload: CommunityCreate,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await community_service.create_community(gateway, current_user["sub"], payload)


# --------------------------------------------------
# DETAIL
# --------------------------------------------------
@router.get("/{community_id}", response_model=CommunityDetail)
async def get_community(
    community_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await community_service.get_detail(gateway, current_user["sub"], community_id)


@router.get("/{community_id}/members", response_model=List[MemberView])
async def list_members(
    community_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await community_service.list_members(gateway, current_user["sub"], community_id)


# --------------------------------------------------
# MEMBERSHIP
# --------------------------------------------------
@router.post("/{community_id}/join")
async def join_community(
    community_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await community_service.join(gateway, current_user["sub"], community_id)
    return {"message": "Joined", "community_id": community_id}


@router.post("/{community_id}/leave")
async def leave_community(
    community_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await community_service.leave(gateway, current_user["sub"], community_id)
    return {"message": "Left", "community_id": community_id}


# --------------------------------------------------
# POSTS
# --------------------------------------------------
@router.get("/{community_id}/posts", response_model=List[PostView])
async def list_posts(
    community_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await post_service.community_posts(gateway, current_user["sub"], community_id)


@router.post("/{community_id}/posts", response_model=PostView)
async def create_post(
    community_id: str,
    payload: PostCreate,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await community_service.get_community(gateway, community_id)
    return await post_service.create_post(gateway, current_user["sub"], payload.content, community_id)
