# edudash/schemas/admin.py
from typing import Any

from pydantic import BaseModel


class AdminUserRequest(BaseModel):
    """Body of the admin user-management endpoint: ``{action, data}``."""

    action: str | None = None
    data: dict[str, Any] = {}

