"""Domain models for admin accounts and authentication."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field


class AdminPrincipal(BaseModel):
    """Authenticated admin resolved from a JWT.

    Attributes:
        id: Admin document id
        email: Admin email address
        role: Always ``admin`` for dashboard users
    """
    id: Optional[str] = None
    email: EmailStr
    role: str = "admin"


class TokenData(BaseModel):
    """JWT token payload data."""
    sub: str  # Admin email
    email: str
    role: str
    exp: datetime
    iat: Optional[int] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8)

    class Config:
        populate_by_name = True


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(alias="newPassword", min_length=8)

    class Config:
        populate_by_name = True


class BulkDeleteRequest(BaseModel):
    """Body of every bulk-delete endpoint."""
    ids: List[str] = Field(default_factory=list)
