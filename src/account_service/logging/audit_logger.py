from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..models.audit import AuditEntry, AuditEventType


logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Structured audit logger for account and credit changes.

    Entries are appended to a file as line-delimited JSON for easier
    ingestion by log aggregators, and echoed to the standard logger.
    """

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    async def log_account(
        self,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        await self._log(AuditEventType.ACCOUNT, message, details, user_id, email)

    async def log_credits(
        self,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        await self._log(AuditEventType.CREDITS, message, details, user_id, email)

    async def log_error(
        self,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        await self._log(AuditEventType.ERROR, message, details, user_id, email)

    async def _log(
        self,
        event_type: AuditEventType,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str],
        email: Optional[str],
    ) -> None:
        entry = AuditEntry(
            event_type=event_type,
            user_id=user_id,
            email=email,
            message=message,
            details=details,
        )
        level = logging.WARNING if event_type is AuditEventType.ERROR else logging.INFO
        logger.log(level, "%s", message, extra={"user_id": user_id, "details": details})

        # The audit trail never fails the main flow.
        try:
            line = json.dumps(entry.model_dump(mode="json"), default=str)
            with self._file_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            logger.warning("Could not write audit entry to %s: %s", self._file_path, exc)
