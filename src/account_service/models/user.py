from __future__ import annotations

import time
from typing import Any, ClassVar, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .base import DBSerializableModel


# Fields that together make a profile "complete"
COMPLETENESS_FIELDS = ("college", "program", "year_of_study")


def new_account_id() -> str:
    return str(ObjectId())


def is_valid_account_id(account_id: str) -> bool:
    return bool(account_id) and ObjectId.is_valid(account_id)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class ProfileStats(BaseModel):
    """
    Activity counters shown on a profile. Unknown keys sent by clients are
    kept so newer front-ends can extend the block without a migration.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tasks_completed: int = Field(default=0, alias="tasksCompleted")
    hours_earned: float = Field(default=0, alias="hoursEarned")
    hours_spent: float = Field(default=0, alias="hoursSpent")
    rating: float = 0
    reviews: int = 0

    def is_empty(self) -> bool:
        return self == ProfileStats()


class UserAccount(DBSerializableModel):
    """
    The user account record: identity, credential, profile and credit balance.

    Profile completeness is derived from the stored fields every time it is
    needed and is never persisted as a separate flag.
    """

    collection_name: ClassVar[str] = "MyClusterCol"
    indexes: ClassVar[list] = [("email", True)]

    id: Optional[str] = Field(default=None, alias="_id")
    email: str
    password: Optional[str] = Field(
        default=None,
        description="bcrypt hash; absent for OAuth-only accounts.",
    )
    name: Optional[str] = None

    program: Optional[str] = None
    location: Optional[str] = None
    college: Optional[str] = None
    year_of_study: Optional[str] = Field(default=None, alias="yearOfStudy")
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    stats: ProfileStats = Field(default_factory=ProfileStats)
    profile_picture_url: Optional[str] = Field(default=None, alias="profilePictureURL")
    cover_image_url: Optional[str] = Field(default=None, alias="coverImageURL")

    credits: int = 0
    created_at: int = Field(default_factory=lambda: int(time.time()), alias="createdAt")

    @field_validator("skills", "achievements", "stats", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info) -> Any:
        # Older documents store null for never-edited lists and stats
        if value is None:
            return ProfileStats() if info.field_name == "stats" else []
        return value

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def is_profile_complete(self) -> bool:
        return all(getattr(self, name) for name in COMPLETENESS_FIELDS)

    def to_public(self) -> Dict[str, Any]:
        """Serialize for API responses; the password hash is always dropped."""
        return self.model_dump(by_alias=True, exclude={"password"})
