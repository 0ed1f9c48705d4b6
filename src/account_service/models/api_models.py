from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .user import ProfileStats


class RegisterRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class OAuthRequest(BaseModel):
    email: str = ""
    name: str = ""
    provider: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: Dict[str, Any]


class ProfileUpdateRequest(BaseModel):
    """
    Partial profile update. Only fields that are present *and* non-empty are
    applied; everything else on the stored record is left untouched.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    program: Optional[str] = None
    location: Optional[str] = None
    college: Optional[str] = None
    year_of_study: Optional[str] = Field(default=None, alias="yearOfStudy")
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    achievements: Optional[List[str]] = None
    stats: Optional[ProfileStats] = None
    profile_picture_url: Optional[str] = Field(default=None, alias="profilePictureURL")

    def non_empty_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
            elif isinstance(value, list):
                value = [item.strip() for item in value if item.strip()]
            if isinstance(value, ProfileStats):
                if value.is_empty():
                    continue
            elif not value:
                continue
            fields[name] = value
        return fields


class UpdateCreditsRequest(BaseModel):
    credits: int


class DeductCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(default="", alias="userId")
    credits: int = 0
    reason: str = ""


class DeductCreditsResponse(BaseModel):
    message: str
    deducted: int
    remaining: int
    reason: str


class CreditsResponse(BaseModel):
    message: str
    credits: int


class MessageResponse(BaseModel):
    message: str


class UploadResponse(BaseModel):
    message: str
    url: str


class UserListResponse(BaseModel):
    data: List[Dict[str, Any]]
    count: int


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: int
