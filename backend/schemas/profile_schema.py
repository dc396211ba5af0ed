from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from datetime import datetime

from backend.models.profile import ROLES


class ProfileCreate(BaseModel):
    email: EmailStr
    full_name: str
    role: str = "patient"
    bio: Optional[str] = ""
    avatar_url: Optional[str] = ""
    specialization: Optional[str] = ""
    organization: Optional[str] = ""

    @field_validator("role")
    def validate_role(cls, v):
        if v not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        return v

    @field_validator("full_name")
    def validate_full_name(cls, v):
        if not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    specialization: Optional[str] = None  # doctors only
    organization: Optional[str] = None  # ngos only


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    bio: Optional[str] = ""
    avatar_url: Optional[str] = ""
    specialization: Optional[str] = ""
    organization: Optional[str] = ""
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AuthorSummary(BaseModel):
    id: str
    full_name: str
    role: str
    avatar_url: Optional[str] = ""

    class Config:
        from_attributes = True
