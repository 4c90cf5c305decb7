from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.core.session_cache import session_cache
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.profile_schema import OnboardingRequest, ProfileDetail, ProfileOut
from app.services import profile_service


router = APIRouter(prefix="/profiles", tags=["Profiles"])


# ---------------------------------------------------------------------
# OWN PROFILE
# ---------------------------------------------------------------------
@router.get("/me", response_model=ProfileOut)
async def get_my_profile(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await profile_service.get_profile(gateway, current_user["sub"])


# ---------------------------------------------------------------------
# ONBOARDING
# ---------------------------------------------------------------------
@router.post("/onboarding", response_model=ProfileOut)
async def complete_onboarding(
    payload: OnboardingRequest,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    profile = await profile_service.complete_onboarding(gateway, current_user["sub"], payload)
    await session_cache.load(gateway, current_user["sub"], refresh=True)
    return profile


# ---------------------------------------------------------------------
# PROFILE DETAIL (any user)
# ---------------------------------------------------------------------
@router.get("/{profile_id}", response_model=ProfileDetail)
async def get_profile_detail(
    profile_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await profile_service.get_profile_detail(gateway, current_user["sub"], profile_id)
