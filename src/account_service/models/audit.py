from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    ACCOUNT = "account"
    CREDITS = "credits"
    ERROR = "error"


class AuditEntry(BaseModel):
    """
    Structured audit entry mirrored to the append-only audit log file.
    """

    event_type: AuditEventType
    user_id: Optional[str] = None
    email: Optional[str] = None
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
