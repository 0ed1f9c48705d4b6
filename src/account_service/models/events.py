from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AccountEventType(str, Enum):
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"


class AccountEvent(BaseModel):
    """
    Lifecycle event published for subsystems that keep per-account data
    (bookings, reviews, favourites) and must react to it themselves.
    """

    event_type: AccountEventType
    user_id: str
    email: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "user_id": self.user_id,
            "email": self.email,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }
