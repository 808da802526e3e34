# edudash/models/notification.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.sql import func
from edudash.db.base import Base

NOTIFICATION_TYPES = (
    "evaluation",
    "badge",
    "announcement",
    "reminder",
    "message",
    "info",
    "success",
    "warning",
    "error",
)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    sender_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    sender_name = Column(String(100), nullable=True)
    sender_role = Column(String(20), nullable=True)

    type = Column(String(20), nullable=False, default="info", index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False, index=True)
    action_url = Column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
