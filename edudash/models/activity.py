# edudash/models/activity.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from edudash.db.base import Base


class Activity(Base):
    """Audit trail for XP and badge awards."""

    __tablename__ = "activity"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    awarded_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    type = Column(String(20), nullable=False)  # xp_awarded / badge_awarded
    xp_amount = Column(Integer, nullable=True)
    badge_id = Column(String(50), nullable=True)
    reason = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
