import uuid

from sqlalchemy import Column, String, DateTime, Boolean

from app.database import Base, utcnow


class User(Base):
    """
    Auth identities for the local gateway backend.
    On Supabase these live in auth.users and are never touched here.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
