from typing import Optional
from pydantic import BaseModel, EmailStr

from needflow.models.enums import UserRole

# Shared properties
class UserBase(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    department: Optional[str] = None
    role: Optional[UserRole] = UserRole.INITIATOR
    is_active: Optional[bool] = True

# Properties to receive via API on creation
class UserCreate(UserBase):
    username: str
    password: str
    role: UserRole = UserRole.INITIATOR

# Properties to return to client
class UserResponse(UserBase):
    id: int

    class Config:
        from_attributes = True
