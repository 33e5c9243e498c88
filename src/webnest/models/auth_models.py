from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from webnest.models.principal import AdminPermission


class LoginRequest(BaseModel):
    """
    Credentials for any of the three login endpoints.
    """
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, description="Numeric code sent by email")


class ResendOTPRequest(BaseModel):
    email: EmailStr


class CreateAdminRequest(BaseModel):
    """
    Request model for an owner creating another back office account.
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Literal["admin", "owner"] = "admin"
    permissions: List[AdminPermission] = Field(default_factory=list)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword", min_length=8)

    model_config = {"populate_by_name": True}


class RegisterUserRequest(BaseModel):
    """
    Client self-registration.
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None
    company: Optional[str] = None


class RegisterDeveloperRequest(BaseModel):
    """
    Developer self-registration.
    """
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    skills: List[str] = Field(default_factory=list)
    experience: int = Field(0, ge=0, description="Years of experience")
    hourly_rate: float = Field(0, ge=0)
    bio: Optional[str] = None


class DeviceInfo(BaseModel):
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_type: Literal["desktop", "mobile", "tablet", "unknown"] = "unknown"


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

    model_config = {"populate_by_name": True}


class RefreshTokenRecord(BaseModel):
    """
    Server-side refresh token as stored in `refresh_tokens`.
    """
    token: str
    user_id: str
    user_type: Literal["User", "Developer", "Admin"]
    expires_at: datetime
    is_active: bool = True
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    last_used: datetime
    created_at: datetime


class TokenPair(BaseModel):
    access_token: str = Field(..., serialization_alias="accessToken")
    refresh_token: str = Field(..., serialization_alias="refreshToken")
    token_type: str = Field("bearer", serialization_alias="tokenType")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8)
