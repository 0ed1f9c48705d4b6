from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings
from ..credentials.tokens import IdentityClaims, TokenService
from ..errors import AuthError, AuthErrorKind
from ..services.account_service import AccountService
from ..services.asset_service import AssetService


logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False, description="Session token issued at sign-in")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_asset_service(request: Request) -> AssetService:
    return request.app.state.asset_service


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    tokens: TokenService = Depends(get_token_service),
) -> IdentityClaims:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError(AuthErrorKind.MALFORMED, "authorization header missing or malformed")
    try:
        claims = tokens.verify_token(credentials.credentials)
    except AuthError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise
    return claims
