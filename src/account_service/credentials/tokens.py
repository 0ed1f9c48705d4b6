from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..errors import AuthError, AuthErrorKind


ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(days=7)


@dataclass(frozen=True)
class IdentityClaims:
    email: str
    expires_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class TokenService:
    """
    Issues and verifies stateless HS256 session tokens.

    Tokens bind the account email and an expiry instant. There is no
    server-side session store, so a token stays valid until it expires.
    """

    def __init__(self, secret: str, default_ttl: timedelta = DEFAULT_TOKEN_TTL) -> None:
        if not secret:
            raise ValueError("a signing secret is required (set JWT_SECRET)")
        self._secret = secret
        self._default_ttl = default_ttl

    def issue_token(
        self,
        claims: IdentityClaims | Dict[str, Any],
        ttl: Optional[timedelta] = None,
    ) -> str:
        if isinstance(claims, IdentityClaims):
            payload: Dict[str, Any] = {**claims.extra, "email": claims.email}
        else:
            payload = dict(claims)
        if not payload.get("email"):
            raise ValueError("token claims must include an email")

        now = datetime.now(timezone.utc)
        payload["iat"] = now
        payload["exp"] = now + (ttl if ttl is not None else self._default_ttl)
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> IdentityClaims:
        try:
            data = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError(AuthErrorKind.EXPIRED) from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError(AuthErrorKind.MALFORMED) from exc

        email = data.pop("email", None)
        if not isinstance(email, str) or not email:
            raise AuthError(AuthErrorKind.MISSING_CLAIM)

        exp = data.pop("exp", None)
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
        return IdentityClaims(email=email, expires_at=expires_at, extra=data)
