from typing import Optional
from pydantic import BaseModel
from datetime import datetime


# Shared properties
class UserBase(BaseModel):
    username: str
    email: str
    role: str


class UserInDBBase(UserBase):
    id: int
    status: str
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Properties returned via API
class User(UserInDBBase):
    pass


# Compact user for nested responses (post author, revision editor)
class UserSummary(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str
    user: User
