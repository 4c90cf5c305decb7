from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.schemas.profile_schema import ProfilePreview


class PostOut(BaseModel):
    id: str
    community_id: Optional[str] = None
    user_id: str
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Post cannot be empty")
        return value.strip()


class PostView(BaseModel):
    post: PostOut
    author: Optional[ProfilePreview] = None
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False


# --------------------------------------------------
# COMMENTS
# --------------------------------------------------
class CommentOut(BaseModel):
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentView(BaseModel):
    comment: CommentOut
    author: Optional[ProfilePreview] = None


class CommentCreate(PostCreate):
    pass
