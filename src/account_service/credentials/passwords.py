from __future__ import annotations

import logging
from typing import Optional

import bcrypt

from ..errors import HashingError, ValidationError


logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """
    bcrypt password hashing with a per-call random salt.

    ``rounds`` is the bcrypt cost factor (log2 of the iteration count).
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds
        # Compared against when there is no usable stored hash
        self._dummy_hash = bcrypt.hashpw(b"unused", bcrypt.gensalt(rounds=rounds))

    def hash_password(self, plaintext: str) -> str:
        raw = plaintext.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"password must be at most {MAX_PASSWORD_BYTES} bytes"
            )
        try:
            hashed = bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self._rounds))
        except MemoryError as exc:
            raise HashingError("failed to hash password") from exc
        return hashed.decode("ascii")

    def verify_password(self, hashed: Optional[str], plaintext: str) -> bool:
        """
        Compare ``plaintext`` against ``hashed``.

        A missing or malformed hash is reported as a plain mismatch so that
        callers cannot distinguish it from a wrong password, and it costs
        a full bcrypt comparison against a dummy hash so the response time
        does not tell them apart either.
        """
        candidate = plaintext.encode("utf-8")[:MAX_PASSWORD_BYTES]
        if hashed:
            try:
                return bcrypt.checkpw(candidate, hashed.encode("ascii"))
            except (ValueError, UnicodeEncodeError):
                logger.debug("Password check against malformed hash")
        bcrypt.checkpw(candidate, self._dummy_hash)
        return False
