from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import AutoReconnect, DuplicateKeyError, ExecutionTimeout

from account_service.app import create_app
from account_service.config import Settings
from account_service.db.base import AccountFilter
from account_service.db.mongo import MongoAccountStore, stored_key
from account_service.errors import Conflict, StoreTimeout, StoreUnavailable
from account_service.models.user import ProfileStats, UserAccount, new_account_id


class FakeCollection:
    """Stands in for a motor collection; selected methods can fail or stall."""

    def __init__(
        self,
        failures: Optional[Dict[str, BaseException]] = None,
        delay: float = 0.0,
    ) -> None:
        self.failures = failures or {}
        self.delay = delay

    async def _respond(self, method: str, result: Any = None) -> Any:
        if self.delay:
            await asyncio.sleep(self.delay)
        if method in self.failures:
            raise self.failures[method]
        return result

    def create_index(self, *args, **kwargs):
        return self._respond("create_index", "email_1")

    def find_one(self, *args, **kwargs):
        return self._respond("find_one")

    def insert_one(self, *args, **kwargs):
        return self._respond("insert_one")


def test_stored_keys_use_document_aliases():
    assert stored_key("year_of_study") == "yearOfStudy"
    assert stored_key("profile_picture_url") == "profilePictureURL"
    assert stored_key("email") == "email"


def test_incomplete_profile_query():
    query = MongoAccountStore._to_query(
        AccountFilter.by_email("a@b.com", require_incomplete_profile=True)
    )
    assert query["email"] == "a@b.com"
    assert {"yearOfStudy": {"$in": [None, ""]}} in query["$or"]
    assert len(query["$or"]) == 3


def test_id_query_uses_object_id():
    account_id = new_account_id()
    query = MongoAccountStore._to_query(AccountFilter.by_id(account_id))
    assert query == {"_id": ObjectId(account_id)}


def test_prepare_fields_and_round_trip():
    fields = MongoAccountStore._prepare_fields(
        {"year_of_study": "3", "stats": ProfileStats(tasks_completed=2)}
    )
    assert fields["yearOfStudy"] == "3"
    assert fields["stats"]["tasksCompleted"] == 2

    account = UserAccount(id=new_account_id(), email="a@b.com", credits=5)
    doc = MongoAccountStore._prepare_insert(account)
    assert isinstance(doc["_id"], ObjectId)
    assert "password" not in doc

    decoded = MongoAccountStore._decode({**doc, "skills": None, "stats": None})
    assert decoded.id == account.id
    assert decoded.skills == []
    assert decoded.stats.is_empty()


def test_default_collection_matches_settings():
    assert Settings().USERS_COLLECTION == UserAccount.collection_name == "MyClusterCol"


@pytest.mark.asyncio
async def test_client_uri_store_uses_configured_collection():
    store = MongoAccountStore.from_client_uri("mongodb://localhost:27017", "trademinutes")
    try:
        assert store._col.name == "MyClusterCol"
    finally:
        await store.close()


async def _stall():
    await asyncio.sleep(1)


async def _fail(exc: BaseException):
    raise exc


@pytest.mark.asyncio
async def test_store_errors_are_relabelled():
    store = MongoAccountStore(FakeCollection(), timeout=0.01)

    with pytest.raises(StoreTimeout):
        await store._bounded(_stall())
    with pytest.raises(StoreTimeout):
        await store._bounded(_fail(ExecutionTimeout("operation exceeded time limit")))
    with pytest.raises(StoreUnavailable):
        await store._bounded(_fail(AutoReconnect("connection reset")))
    with pytest.raises(Conflict):
        await store._bounded(_fail(DuplicateKeyError("E11000 duplicate key error")))


@pytest.mark.asyncio
async def test_store_operations_surface_relabelled_errors():
    stalled = MongoAccountStore(FakeCollection(delay=1), timeout=0.01)
    with pytest.raises(StoreTimeout):
        await stalled.find_by_email("a@b.com")

    duplicate = MongoAccountStore(
        FakeCollection({"insert_one": DuplicateKeyError("E11000 duplicate key error")})
    )
    with pytest.raises(Conflict):
        await duplicate.insert(UserAccount(id=new_account_id(), email="a@b.com"))


@pytest.mark.parametrize(
    "collection, status, reason",
    [
        (FakeCollection({"find_one": AutoReconnect("connection reset")}), 500, "store_unavailable"),
        (FakeCollection({"insert_one": DuplicateKeyError("E11000 duplicate key error")}), 409, "conflict"),
    ],
)
def test_api_maps_store_failures(tmp_path, collection, status, reason):
    settings = Settings(JWT_SECRET="api-test-secret", BCRYPT_ROUNDS=4, AUDIT_LOG_PATH=tmp_path / "audit.log")
    app = create_app(settings, store=MongoAccountStore(collection, timeout=0.5))

    with TestClient(app) as client:
        resp = client.post(
            "/api/auth/register", json={"email": "a@b.com", "password": "pw", "name": "A"}
        )

    assert resp.status_code == status
    assert resp.json()["error"] == reason


def test_api_maps_store_timeout(tmp_path):
    settings = Settings(JWT_SECRET="api-test-secret", BCRYPT_ROUNDS=4, AUDIT_LOG_PATH=tmp_path / "audit.log")
    store = MongoAccountStore(FakeCollection(), timeout=0.05)
    app = create_app(settings, store=store)

    with TestClient(app) as client:
        store._col.delay = 1
        resp = client.get(f"/api/profile/{new_account_id()}")

    assert resp.status_code == 502
    assert resp.json()["error"] == "store_timeout"
