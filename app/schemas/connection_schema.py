from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.schemas.profile_schema import ProfilePreview


# --------------------------------------------------
# CONNECTION ROW
# --------------------------------------------------
class ConnectionOut(BaseModel):
    id: str
    user1_id: str
    user2_id: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --------------------------------------------------
# CONNECTION + OTHER PARTY
# --------------------------------------------------
class ConnectionEntry(BaseModel):
    connection: ConnectionOut
    profile: ProfilePreview


class ConnectionsOverview(BaseModel):
    accepted: List[ConnectionEntry] = []
    incoming: List[ConnectionEntry] = []
    outgoing: List[ConnectionEntry] = []


class ConnectionRequest(BaseModel):
    target_id: str


class ConnectionStatusOut(BaseModel):
    user_id: str
    status: str
    connection_id: Optional[str] = None
