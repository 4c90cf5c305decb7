from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class MessageOut(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    receiver_id: str
    content: str

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value.strip()


# --------------------------------------------------
# CONVERSATION LIST (get_user_conversations)
# --------------------------------------------------
class ConversationSummary(BaseModel):
    partner_id: str
    partner_username: Optional[str] = None
    partner_display_name: Optional[str] = None
    partner_avatar: Optional[str] = None
    last_message_id: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_sender_id: Optional[str] = None
    unread_count: int = 0
