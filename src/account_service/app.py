from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import install_error_handlers
from .api.middleware import RequestLoggingMiddleware
from .api.router import admin_router, auth_router, health_router, profile_router
from .config import Settings, get_settings
from .credentials.passwords import PasswordHasher
from .credentials.tokens import TokenService
from .db.base import BaseAccountStore
from .db.mongo import MongoAccountStore
from .events.queue import AsyncEventQueue, LoggingEventQueue
from .logging.audit_logger import AuditLogger
from .services.account_service import AccountService
from .services.asset_service import AssetService
from .storage.base import BaseImageHost, UnconfiguredImageHost
from .storage.cloudinary import CloudinaryImageHost
from .tasks.spawner import AsyncioTaskSpawner, TaskSpawner


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _create_store(settings: Settings) -> BaseAccountStore:
    return MongoAccountStore.from_client_uri(
        settings.MONGO_URI,
        settings.DB_NAME,
        collection_name=settings.USERS_COLLECTION,
        timeout=settings.STORE_TIMEOUT_SECONDS,
        list_timeout=settings.STORE_LIST_TIMEOUT_SECONDS,
    )


def _create_image_host(settings: Settings) -> BaseImageHost:
    if not settings.cloudinary_configured:
        logger.warning(
            "Cloudinary is not configured (CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, "
            "CLOUDINARY_API_SECRET); images will be stored inline"
        )
        return UnconfiguredImageHost()
    return CloudinaryImageHost(
        settings.CLOUDINARY_CLOUD_NAME,
        settings.CLOUDINARY_API_KEY,
        settings.CLOUDINARY_API_SECRET,
        timeout=settings.IMAGE_HOST_TIMEOUT_SECONDS,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[BaseAccountStore] = None,
    image_host: Optional[BaseImageHost] = None,
    spawner: Optional[TaskSpawner] = None,
    events: Optional[AsyncEventQueue] = None,
) -> FastAPI:
    """
    Build the application. Shared clients (store, image host, task spawner,
    event queue) are constructed once here and handed to the services; pass
    fakes to substitute them in tests.
    """
    settings = settings or get_settings()

    store = store or _create_store(settings)
    image_host = image_host or _create_image_host(settings)
    spawner = spawner or AsyncioTaskSpawner()
    events = events or LoggingEventQueue()

    token_service = TokenService(
        settings.JWT_SECRET, default_ttl=timedelta(days=settings.TOKEN_TTL_DAYS)
    )
    account_service = AccountService(
        store=store,
        hasher=PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
        tokens=token_service,
        audit=AuditLogger(file_path=settings.AUDIT_LOG_PATH),
        events=events,
        starting_credits=settings.STARTING_CREDITS,
    )
    asset_service = AssetService(
        store=store,
        image_host=image_host,
        spawner=spawner,
        folder=settings.CLOUDINARY_FOLDER,
        max_bytes=settings.MAX_IMAGE_BYTES,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.ensure_indexes()
        logger.info("Account store ready")
        try:
            yield
        finally:
            await spawner.drain()
            await image_host.close()
            await store.close()

    app = FastAPI(title="Account Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.token_service = token_service
    app.state.account_service = account_service
    app.state.asset_service = asset_service
    app.state.spawner = spawner

    app.add_middleware(RequestLoggingMiddleware, skip_paths=("/ping",))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    install_error_handlers(app)

    app.include_router(health_router)
    for router in (auth_router, profile_router, admin_router):
        app.include_router(router, prefix="/api")
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "account_service.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
    )


if __name__ == "__main__":
    main()
