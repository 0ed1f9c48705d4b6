from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import PlainTextResponse

from .dependencies import (
    get_account_service,
    get_asset_service,
    get_current_identity,
    get_settings,
)
from ..config import Settings
from ..credentials.tokens import IdentityClaims
from ..errors import ValidationError
from ..models.api_models import (
    AuthResponse,
    CreditsResponse,
    DeductCreditsRequest,
    DeductCreditsResponse,
    HealthResponse,
    LoginRequest,
    MessageResponse,
    OAuthRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UpdateCreditsRequest,
    UploadResponse,
    UserListResponse,
)
from ..services.account_service import AccountService, AuthResult
from ..services.asset_service import AssetService, ImageUpload


SERVICE_NAME = "TradeMinutes User Service"

auth_router = APIRouter(prefix="/auth", tags=["auth"])
profile_router = APIRouter(prefix="/profile", tags=["profile"])
admin_router = APIRouter(tags=["admin"])
health_router = APIRouter(tags=["health"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, user=result.account.to_public())


# Auth
@auth_router.post("/register", response_model=AuthResponse)
async def register(
    payload: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    result = await accounts.register(payload.email, payload.password, payload.name)
    return _auth_response(result)


@auth_router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    result = await accounts.login(payload.email, payload.password)
    return _auth_response(result)


@auth_router.post("/oauth", response_model=AuthResponse)
@auth_router.post("/github", response_model=AuthResponse, include_in_schema=False)
async def oauth(
    payload: OAuthRequest,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    result = await accounts.oauth_sign_in(payload.email, payload.name, payload.provider)
    return _auth_response(result)


@auth_router.put("/update-credits", response_model=CreditsResponse)
async def update_credits(
    payload: UpdateCreditsRequest,
    identity: IdentityClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
) -> CreditsResponse:
    credits = await accounts.set_credits(identity.email, payload.credits)
    return CreditsResponse(message="Credits updated successfully", credits=credits)


@auth_router.post("/deduct-credits", response_model=DeductCreditsResponse)
async def deduct_credits(
    payload: DeductCreditsRequest,
    accounts: AccountService = Depends(get_account_service),
) -> DeductCreditsResponse:
    result = await accounts.deduct_credits(payload.user_id, payload.credits, payload.reason)
    return DeductCreditsResponse(
        message="Credits deducted successfully",
        deducted=result.deducted,
        remaining=result.remaining,
        reason=result.reason,
    )


# Profile
@profile_router.get("")
@profile_router.get("/get", include_in_schema=False)
@auth_router.get("/profile", include_in_schema=False)
async def get_own_profile(
    identity: IdentityClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
) -> dict:
    account = await accounts.get_profile(identity.email)
    return account.to_public()


@profile_router.post("/update-info", response_model=MessageResponse)
async def update_profile_info(
    payload: ProfileUpdateRequest,
    identity: IdentityClaims = Depends(get_current_identity),
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    await accounts.update_profile(identity.email, payload)
    return MessageResponse(message="Profile updated successfully")


async def _read_upload(image: Optional[UploadFile], max_bytes: int) -> ImageUpload:
    if image is None:
        raise ValidationError("no image file provided")
    # One byte past the limit is enough to reject an oversized file.
    data = await image.read(max_bytes + 1)
    return ImageUpload(
        filename=image.filename or "",
        content_type=image.content_type or "",
        data=data,
    )


@profile_router.post("/upload-image", response_model=UploadResponse)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    identity: IdentityClaims = Depends(get_current_identity),
    assets: AssetService = Depends(get_asset_service),
    settings: Settings = Depends(get_settings),
) -> UploadResponse:
    upload = await _read_upload(image, settings.MAX_IMAGE_BYTES)
    url = await assets.upload_profile_image(identity.email, upload)
    return UploadResponse(message="Profile picture uploaded successfully", url=url)


@profile_router.post("/upload-cover-image", response_model=UploadResponse)
async def upload_cover_image(
    image: Optional[UploadFile] = File(None),
    identity: IdentityClaims = Depends(get_current_identity),
    assets: AssetService = Depends(get_asset_service),
    settings: Settings = Depends(get_settings),
) -> UploadResponse:
    upload = await _read_upload(image, settings.MAX_IMAGE_BYTES)
    url = await assets.upload_cover_image(identity.email, upload)
    return UploadResponse(message="Cover image uploaded successfully", url=url)


@profile_router.get("/{user_id}")
@auth_router.get("/user/{user_id}", include_in_schema=False)
async def get_profile_by_id(
    user_id: str,
    accounts: AccountService = Depends(get_account_service),
) -> dict:
    account = await accounts.get_profile_by_id(user_id)
    return account.to_public()


# Admin
@admin_router.get("/users", response_model=UserListResponse)
@admin_router.get("/admin/users", response_model=UserListResponse, include_in_schema=False)
@auth_router.get("/users", response_model=UserListResponse, include_in_schema=False)
async def list_users(
    q: Optional[str] = None,
    accounts: AccountService = Depends(get_account_service),
) -> UserListResponse:
    users = [a.to_public() for a in await accounts.list_accounts(q)]
    return UserListResponse(data=users, count=len(users))


@admin_router.delete("/admin/delete/{user_id}", response_model=MessageResponse)
@auth_router.delete("/admin/delete/{user_id}", response_model=MessageResponse, include_in_schema=False)
async def delete_user(
    user_id: str,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    await accounts.delete_account(user_id)
    return MessageResponse(message="User deleted successfully")


# Health
@health_router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@health_router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return f"{SERVICE_NAME} is running"


@health_router.get("/api/admin/health", response_model=HealthResponse)
async def admin_health() -> HealthResponse:
    return HealthResponse(status="ok", service=SERVICE_NAME, timestamp=int(time.time()))
