# edudash/schemas/gamify.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class XpAwardRequest(BaseModel):
    # loosely typed on purpose: bad values are answered with 400 {error}
    model_config = ConfigDict(populate_by_name=True)

    user_id: Any = Field(default=None, alias="userId")
    amount: Any = None
    reason: Any = None


class BadgeAwardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Any = Field(default=None, alias="userId")
    badge_id: Any = Field(default=None, alias="badgeId")


class LeaderboardEntry(BaseModel):
    rank: int
    uid: int
    name: str
    xp: int
    level: int
    streak: int
    institution_id: str | None = None
