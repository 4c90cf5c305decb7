from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.auth.supabase_auth import get_current_user
from app.core import recommendations
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.recommendation_schema import RecommendationList


router = APIRouter(prefix="/discover", tags=["Discover"])


# --------------------------------------------------
# RECOMMENDATIONS
# --------------------------------------------------
@router.get("", response_model=RecommendationList)
async def get_recommendations(
    q: Optional[str] = None,
    interests: List[str] = Query(default=[]),
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    """
    Recommended and All tabs in one response. A failed scoring call still
    answers 200 with empty lists and ``error`` set, so the page can render
    its retry state.
    """
    return await recommendations.build_recommendations(
        gateway,
        current_user["sub"],
        query=q,
        interests=interests,
    )
