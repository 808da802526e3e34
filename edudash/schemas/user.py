# edudash/schemas/user.py
from datetime import datetime

from pydantic import BaseModel


class UserPublic(BaseModel):
    id: int
    email: str
    display_name: str
    role: str

    xp: int
    level: int
    badges: list[str] = []
    streak: int

    institution_id: str | None = None
    account_type: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
