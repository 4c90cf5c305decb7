from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# --------------------------------------------------
# PROFILE PREVIEW (used in connections, members, posts)
# --------------------------------------------------
class ProfilePreview(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


# --------------------------------------------------
# FULL PROFILE
# --------------------------------------------------
class ProfileOut(ProfilePreview):
    email: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    is_admin: Optional[bool] = False

    push_notifications: Optional[bool] = True
    email_notifications: Optional[bool] = True
    community_alerts: Optional[bool] = True
    read_receipts_enabled: Optional[bool] = True
    show_online_status: Optional[bool] = True
    profile_visible: Optional[bool] = True

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileDetail(BaseModel):
    profile: ProfileOut
    hobbies: List[str] = []
    connection_count: int = 0
    community_count: int = 0
    connection_status: str = "none"
    is_own_profile: bool = False


# --------------------------------------------------
# UPDATES
# --------------------------------------------------
class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    email: Optional[EmailStr] = None


class NotificationSettings(BaseModel):
    push_notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    community_alerts: Optional[bool] = None
    read_receipts_enabled: Optional[bool] = None
    show_online_status: Optional[bool] = None
    profile_visible: Optional[bool] = None


class OnboardingRequest(BaseModel):
    username: str
    bio: Optional[str] = None
    location: Optional[str] = None
    hobby_ids: List[str] = Field(default_factory=list)


class AvatarOut(BaseModel):
    profile_picture: str
