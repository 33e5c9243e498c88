from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

UserRole = Literal["client", "premiumClient"]
DeveloperRole = Literal["developer", "leadDeveloper"]


class UserUpdateRequest(BaseModel):
    """
    Admin edits to a client account. Only provided fields are written.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    is_premium: Optional[bool] = None


class PromoteUserRequest(BaseModel):
    duration: int = Field(30, ge=1, le=3650, description="Premium duration in days")


class DeveloperUpdateRequest(BaseModel):
    """
    Admin edits to a developer account. Only provided fields are written.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    skills: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    bio: Optional[str] = None
    is_active: Optional[bool] = None
    is_available: Optional[bool] = None


class PromoteDeveloperRequest(BaseModel):
    # Validated by the service so an unknown role yields the documented 400 message
    role: str


class VerifyDeveloperRequest(BaseModel):
    is_verified: bool = Field(True, alias="isVerified")
    verification_notes: Optional[str] = Field(None, alias="verificationNotes")

    model_config = {"populate_by_name": True}
