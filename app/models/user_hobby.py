import uuid

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint

from app.database import Base


class UserHobby(Base):
    __tablename__ = "user_hobbies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    hobby_id = Column(String, ForeignKey("hobbies.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "hobby_id", name="uq_user_hobbies_pair"),
    )
