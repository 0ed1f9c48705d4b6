from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Dict, Iterable, Mapping, Optional, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pydantic import BaseModel
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import (
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
)

from .base import AccountFilter, BaseAccountStore
from ..errors import Conflict, StoreTimeout, StoreUnavailable
from ..models.user import COMPLETENESS_FIELDS, UserAccount, is_valid_account_id


logger = logging.getLogger(__name__)

T = TypeVar("T")


def stored_key(field_name: str) -> str:
    """Map a python field name of `UserAccount` to its stored document key."""
    info = UserAccount.model_fields[field_name]
    return info.alias or field_name


class MongoAccountStore(BaseAccountStore):
    """
    MongoDB implementation of BaseAccountStore using motor (async driver).

    Account ids are ObjectIds in the collection and 24-hex strings on the
    model. Email uniqueness is enforced by a unique index, so `insert` is the
    enforcement point for concurrent registrations.
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        timeout: float = 5.0,
        list_timeout: float = 10.0,
        client: Optional[AsyncIOMotorClient] = None,
    ) -> None:
        self._col = collection
        self._timeout = timeout
        self._list_timeout = list_timeout
        self._client = client

    @classmethod
    def from_client_uri(
        cls,
        uri: str,
        db_name: str,
        collection_name: str = UserAccount.collection_name,
        timeout: float = 5.0,
        list_timeout: float = 10.0,
    ) -> "MongoAccountStore":
        client = AsyncIOMotorClient(
            uri, serverSelectionTimeoutMS=int(timeout * 1000)
        )
        return cls(
            client[db_name][collection_name],
            timeout=timeout,
            list_timeout=list_timeout,
            client=client,
        )

    async def ensure_indexes(self) -> None:
        for field_name, unique in UserAccount.indexes:
            await self._bounded(
                self._col.create_index([(field_name, ASCENDING)], unique=unique)
            )

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()

    # Helper utilities
    async def _bounded(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout or self._timeout)
        except asyncio.TimeoutError as exc:
            raise StoreTimeout("account store did not respond in time") from exc
        except DuplicateKeyError as exc:
            raise Conflict("user already exists") from exc
        except (ExecutionTimeout, NetworkTimeout) as exc:
            raise StoreTimeout("account store did not respond in time") from exc
        except PyMongoError as exc:
            logger.error("Account store error: %s", exc)
            raise StoreUnavailable("account store unavailable") from exc

    @staticmethod
    def _prepare_insert(account: UserAccount) -> Dict[str, Any]:
        data = account.serialize_for_db()
        data["_id"] = ObjectId(account.id)
        return data

    @staticmethod
    def _prepare_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
        update: Dict[str, Any] = {}
        for name, value in fields.items():
            if isinstance(value, BaseModel):
                value = value.model_dump(by_alias=True)
            update[stored_key(name)] = value
        return update

    @staticmethod
    def _decode(doc: Optional[Mapping[str, Any]]) -> Optional[UserAccount]:
        if doc is None:
            return None
        data = dict(doc)
        data["_id"] = str(data["_id"])
        return UserAccount.model_validate(data)

    @staticmethod
    def _to_query(account_filter: AccountFilter) -> Dict[str, Any]:
        if account_filter.account_id is not None:
            query: Dict[str, Any] = {"_id": ObjectId(account_filter.account_id)}
        else:
            query = {"email": account_filter.email}
        if account_filter.require_incomplete_profile:
            query["$or"] = [
                {stored_key(name): {"$in": [None, ""]}} for name in COMPLETENESS_FIELDS
            ]
        return query

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        doc = await self._bounded(self._col.find_one({"email": email}))
        return self._decode(doc)

    async def find_by_id(self, account_id: str) -> Optional[UserAccount]:
        if not is_valid_account_id(account_id):
            return None
        doc = await self._bounded(self._col.find_one({"_id": ObjectId(account_id)}))
        return self._decode(doc)

    async def insert(self, account: UserAccount) -> UserAccount:
        await self._bounded(self._col.insert_one(self._prepare_insert(account)))
        return account

    async def update_fields(
        self, account_filter: AccountFilter, fields: Dict[str, Any]
    ) -> bool:
        if account_filter.account_id is not None and not is_valid_account_id(
            account_filter.account_id
        ):
            return False
        result = await self._bounded(
            self._col.update_one(
                self._to_query(account_filter),
                {"$set": self._prepare_fields(fields)},
            )
        )
        return result.matched_count > 0

    async def decrement_credits_if_sufficient(
        self, account_id: str, amount: int
    ) -> Optional[UserAccount]:
        if not is_valid_account_id(account_id):
            return None
        doc = await self._bounded(
            self._col.find_one_and_update(
                {"_id": ObjectId(account_id), "credits": {"$gte": amount}},
                {"$inc": {"credits": -amount}},
                return_document=ReturnDocument.AFTER,
            )
        )
        return self._decode(doc)

    async def delete(self, account_id: str) -> bool:
        if not is_valid_account_id(account_id):
            return False
        result = await self._bounded(
            self._col.delete_one({"_id": ObjectId(account_id)}),
            timeout=self._list_timeout,
        )
        return result.deleted_count > 0

    async def find_all(self, text_filter: Optional[str] = None) -> Iterable[UserAccount]:
        query: Dict[str, Any] = {}
        if text_filter:
            pattern = re.escape(text_filter)
            query = {
                "$or": [
                    {"name": {"$regex": pattern, "$options": "i"}},
                    {"email": {"$regex": pattern, "$options": "i"}},
                ]
            }
        docs = await self._bounded(
            self._col.find(query).to_list(length=None),
            timeout=self._list_timeout,
        )
        return [self._decode(d) for d in docs if d is not None]  # type: ignore[misc]
