from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, computed_field, field_validator, model_validator

from app.schemas.profile_schema import ProfilePreview


class CommunityOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    created_by: Optional[str] = None
    member_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("member_count", mode="before")
    @classmethod
    def count_defaults_to_zero(cls, value):
        return value or 0


class CommunityCreate(BaseModel):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


# --------------------------------------------------
# COMPOSED VIEW TYPES
# --------------------------------------------------
class CommunityCard(BaseModel):
    community: CommunityOut
    is_member: bool = False


class CommunityDetail(BaseModel):
    community: CommunityOut
    is_member: bool = False
    admins: List[ProfilePreview]

    @model_validator(mode="after")
    def has_admin(self):
        # The creator is inserted as admin when the community is created
        if not self.admins:
            raise ValueError("A community always has at least one admin")
        return self


class MemberView(BaseModel):
    profile: ProfilePreview
    role: str = "member"
    joined_at: Optional[datetime] = None
    # none | pending_sent | pending_received | accepted | connecting
    connection_status: str = "none"
    is_self: bool = False

    @computed_field
    @property
    def display_status(self) -> str:
        # Your own row renders as connected; it is never a stored connection
        if self.is_self:
            return "accepted"
        return self.connection_status
