from __future__ import annotations

from typing import List, Optional

import pytest

from account_service.credentials.passwords import PasswordHasher
from account_service.credentials.tokens import TokenService
from account_service.db.memory import InMemoryAccountStore
from account_service.events.queue import InMemoryEventQueue
from account_service.logging.audit_logger import AuditLogger
from account_service.services.account_service import AccountService
from account_service.services.asset_service import AssetService
from account_service.storage.base import BaseImageHost, ImageHostError
from account_service.storage.cloudinary import extract_public_id
from account_service.tasks.spawner import AsyncioTaskSpawner


SECRET = "test-secret"


class FakeImageHost(BaseImageHost):
    """Records uploads and deletions; can be switched to fail."""

    def __init__(self, fail_uploads: bool = False, fail_destroy: bool = False) -> None:
        self.fail_uploads = fail_uploads
        self.fail_destroy = fail_destroy
        self.uploads: List[str] = []
        self.destroyed: List[str] = []

    async def upload(
        self,
        data: bytes,
        content_type: str,
        public_id: str,
        transformation: Optional[str] = None,
    ) -> str:
        if self.fail_uploads:
            raise ImageHostError("host down")
        self.uploads.append(public_id)
        return f"https://res.cloudinary.com/demo/image/upload/v{len(self.uploads)}/{public_id}.jpg"

    async def destroy(self, public_id: str) -> None:
        if self.fail_destroy:
            raise ImageHostError("destroy failed")
        self.destroyed.append(public_id)

    def public_id_for(self, url: str) -> Optional[str]:
        return extract_public_id(url)


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def events():
    return InMemoryEventQueue()


@pytest.fixture
def tokens():
    return TokenService(SECRET)


@pytest.fixture
def service(store, events, tokens, tmp_path):
    return AccountService(
        store=store,
        hasher=PasswordHasher(rounds=4),
        tokens=tokens,
        audit=AuditLogger(file_path=tmp_path / "audit.log"),
        events=events,
    )


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def spawner():
    return AsyncioTaskSpawner()


@pytest.fixture
def assets(store, image_host, spawner):
    return AssetService(store=store, image_host=image_host, spawner=spawner)
