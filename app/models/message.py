import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index

from app.database import Base, utcnow


class Message(Base):
    __tablename__ = "messages"

    # Clients may supply the id so optimistic copies match realtime echoes
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    sender_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    receiver_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_messages_receiver_unread", "receiver_id", "read_at"),
    )
