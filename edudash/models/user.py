# edudash/models/user.py
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from edudash.db.base import Base


class AuthAccount(Base):
    """Login credentials. The profile row in ``users`` shares its id."""

    __tablename__ = "auth_accounts"
    # never reuse ids: a profile may outlive its login
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login_at = Column(DateTime(timezone=True), nullable=True)


class User(Base):
    __tablename__ = "users"

    # same id as the AuthAccount; the profile outlives a deleted login
    id = Column(Integer, primary_key=True, index=True, autoincrement=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="student", index=True)

    # gamification
    xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    badges = Column(JSON, nullable=False, default=list)
    streak = Column(Integer, nullable=False, default=0)

    institution_id = Column(String(50), nullable=True, index=True)
    account_type = Column(String(20), nullable=False, default="individual")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
