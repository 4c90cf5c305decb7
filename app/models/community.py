import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text

from app.database import Base, utcnow


class Community(Base):
    __tablename__ = "communities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    image_url = Column(String, nullable=True)

    created_by = Column(String, ForeignKey("profiles.id"), nullable=False)

    # Denormalized; clients adjust it by ±1 on join/leave
    member_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
