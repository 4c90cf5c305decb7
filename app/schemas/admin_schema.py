from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AdminStats(BaseModel):
    total_users: int
    total_communities: int
    total_messages: int
    total_connections: int
    new_users_today: int
    new_users_this_week: int


class AdminUserRow(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    is_admin: Optional[bool] = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
