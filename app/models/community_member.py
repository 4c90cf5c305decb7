import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from app.database import Base, utcnow


class CommunityMember(Base):
    __tablename__ = "community_members"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    community_id = Column(String, ForeignKey("communities.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)

    role = Column(String, default="member", nullable=False)  # member | admin
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_community_members_pair"),
    )
