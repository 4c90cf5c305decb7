import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Text

from app.database import Base, utcnow


class Post(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    community_id = Column(String, ForeignKey("communities.id"), nullable=True, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
