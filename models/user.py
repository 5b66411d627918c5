import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

USERNAME_RE = re.compile(r"[A-Za-z0-9_]+")

class UserCredentials(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v

class User(BaseModel):
    id: str
    email: str
    created_at: str

    class Config:
        from_attributes = True

class SessionToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: str

class Profile(User):
    username: Optional[str] = None
    updated_at: str

class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)

    @field_validator('username', mode='before')
    @classmethod
    def normalize_username(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not USERNAME_RE.fullmatch(v):
                raise ValueError("Username can only contain letters, numbers, and underscores")
        return v
