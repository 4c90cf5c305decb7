from typing import List, Optional

from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.message_schema import ConversationSummary, MessageCreate, MessageOut
from app.services import message_service, profile_service


router = APIRouter(prefix="/messages", tags=["Messages"])


# --------------------------------------------------
# CONVERSATIONS
# --------------------------------------------------
@router.get("/conversations", response_model=List[ConversationSummary])
async def list_conversations(
    q: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    items = await message_service.conversations(gateway, current_user["sub"])
    return message_service.filter_conversations(items, q)


# --------------------------------------------------
# THREAD
# --------------------------------------------------
@router.get("/thread/{partner_id}", response_model=List[MessageOut])
async def get_thread(
    partner_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await message_service.thread(gateway, current_user["sub"], partner_id)


# --------------------------------------------------
# SEND
# --------------------------------------------------
@router.post("", response_model=MessageOut)
async def send_message(
    payload: MessageCreate,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    # 404 for an unknown recipient instead of a foreign-key error
    await profile_service.get_profile(gateway, payload.receiver_id)
    return await message_service.send(
        gateway, current_user["sub"], payload.receiver_id, payload.content
    )


# --------------------------------------------------
# MARK READ
# --------------------------------------------------
@router.post("/thread/{partner_id}/read")
async def mark_thread_read(
    partner_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    rows = await message_service.mark_read(gateway, current_user["sub"], partner_id=partner_id)
    return {"marked_read": len(rows)}
