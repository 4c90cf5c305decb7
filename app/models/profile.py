from sqlalchemy import Column, String, Boolean, DateTime, Text

from app.database import Base, utcnow


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth user
    id = Column(String, primary_key=True, index=True)

    username = Column(String, unique=True, nullable=True, index=True)
    display_name = Column(String, nullable=True)
    email = Column(String, nullable=True)

    profile_picture = Column(String, nullable=True)
    bio = Column(String, nullable=True)
    location = Column(String, nullable=True)

    is_admin = Column(Boolean, default=False, nullable=False)

    # -------------------------------------------------------
    # Notification / privacy preferences
    # -------------------------------------------------------
    push_notifications = Column(Boolean, default=True, nullable=False)
    email_notifications = Column(Boolean, default=True, nullable=False)
    community_alerts = Column(Boolean, default=True, nullable=False)
    read_receipts_enabled = Column(Boolean, default=True, nullable=False)
    show_online_status = Column(Boolean, default=True, nullable=False)
    profile_visible = Column(Boolean, default=True, nullable=False)

    # JSON-encoded vector, opaque to everything except the
    # recommendation procedure
    hobby_embedding = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
