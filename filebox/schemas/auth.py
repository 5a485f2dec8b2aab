from typing import Optional
from pydantic import BaseModel
from datetime import datetime
import uuid


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime
    user_id: uuid.UUID
    username: Optional[str] = None
    email: str
    is_admin: bool
