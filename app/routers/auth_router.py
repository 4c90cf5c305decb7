from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.supabase_auth import get_current_user
from app.errors import PermissionDeniedError
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.gateway.filters import eq
from app.schemas.auth_schema import (
    ForgotPasswordRequest,
    LoginRequest,
    SessionOut,
    SignUpRequest,
)
from app.services import auth_service, profile_service


router = APIRouter(prefix="/auth", tags=["Authentication"])


# ----------------- SIGN UP ------------------

@router.post("/signup", response_model=SessionOut)
async def signup(payload: SignUpRequest, gateway: Gateway = Depends(get_gateway)):
    return await auth_service.sign_up(gateway, payload)


# ------------------- LOGIN -------------------

@router.post("/login", response_model=SessionOut)
async def login(payload: LoginRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        return await auth_service.sign_in(gateway, payload.email, payload.password)
    except PermissionDeniedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        )


# ------------------- LOGOUT -------------------

@router.post("/logout")
async def logout(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await auth_service.sign_out(gateway, current_user["sub"])
    return {"message": "Signed out"}


# -------------------- FORGOT PASSWORD ---------------------

@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    gateway: Gateway = Depends(get_gateway),
):
    await auth_service.request_password_reset(gateway, payload.email)
    # Same answer whether or not the address is registered
    return {"message": "If that email is registered, a reset link is on its way"}


# -------------------- ME ---------------------

@router.get("/me")
async def get_me(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    profile = await gateway.select_one(
        "profiles",
        columns=profile_service.PREVIEW_COLUMNS,
        where=[eq("id", current_user["sub"])],
    )

    return {
        "id": current_user["sub"],
        "email": current_user.get("email"),
        "has_profile": profile is not None,
        "onboarded": bool(profile and profile.get("username")),
    }
