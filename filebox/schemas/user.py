from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr
from datetime import datetime
import uuid


class UserBase(BaseModel):
    email: str
    username: Optional[str] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    username: Optional[str] = None


class User(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    is_admin: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
