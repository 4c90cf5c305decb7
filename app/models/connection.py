import uuid

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    UniqueConstraint,
)

from app.database import Base, utcnow


class Connection(Base):
    __tablename__ = "connections"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # ------------------------------------
    # Directional origin
    # ------------------------------------
    # user1 sent the request, user2 received it
    user1_id = Column(
        String,
        ForeignKey("profiles.id"),
        nullable=False,
        index=True,
    )
    user2_id = Column(
        String,
        ForeignKey("profiles.id"),
        nullable=False,
        index=True,
    )

    # pending | accepted  (rejecting deletes the row)
    status = Column(
        String,
        nullable=False,
        default="pending",
        index=True,
    )

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "user1_id != user2_id",
            name="ck_connections_not_self",
        ),
        UniqueConstraint("user1_id", "user2_id", name="uq_connections_pair"),
        Index(
            "ix_connections_user2_status",
            "user2_id",
            "status",
        ),
    )
