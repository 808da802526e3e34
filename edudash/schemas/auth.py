# edudash/schemas/auth.py
from pydantic import BaseModel, EmailStr


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    # validated by the user service so field errors come back as 400 {error}
    email: str
    password: str
    display_name: str
    role: str = "student"


class SessionInfo(BaseModel):
    success: bool = True
    uid: int
    role: str


class RoleUpdate(BaseModel):
    uid: int | None = None
    role: str | None = None
