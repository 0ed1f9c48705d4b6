from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, Optional

from .base import AccountFilter, BaseAccountStore
from ..errors import Conflict
from ..models.user import UserAccount


class InMemoryAccountStore(BaseAccountStore):
    """
    Simple in-memory implementation used for tests and local development.
    NOT suitable for production, but exercises the abstraction and services.

    Each operation yields to the event loop once before touching state and
    then applies its check and write without awaiting, which gives the same
    per-document atomicity a document store does.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, UserAccount] = {}

    def _match(self, account_filter: AccountFilter) -> Optional[UserAccount]:
        if account_filter.account_id is not None:
            account = self._accounts.get(account_filter.account_id)
        else:
            account = next(
                (a for a in self._accounts.values() if a.email == account_filter.email),
                None,
            )
        if account is None:
            return None
        if account_filter.require_incomplete_profile and account.is_profile_complete():
            return None
        return account

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        await asyncio.sleep(0)
        account = self._match(AccountFilter.by_email(email))
        return account.model_copy(deep=True) if account else None

    async def find_by_id(self, account_id: str) -> Optional[UserAccount]:
        await asyncio.sleep(0)
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def insert(self, account: UserAccount) -> UserAccount:
        await asyncio.sleep(0)
        if account.id is None:
            raise ValueError("Account must have id to be inserted")
        if any(a.email == account.email for a in self._accounts.values()):
            raise Conflict("user already exists")
        self._accounts[account.id] = account.model_copy(deep=True)
        return account

    async def update_fields(
        self, account_filter: AccountFilter, fields: Dict[str, Any]
    ) -> bool:
        await asyncio.sleep(0)
        account = self._match(account_filter)
        if account is None:
            return False
        self._accounts[account.id] = account.model_copy(update=fields, deep=True)  # type: ignore[index]
        return True

    async def decrement_credits_if_sufficient(
        self, account_id: str, amount: int
    ) -> Optional[UserAccount]:
        await asyncio.sleep(0)
        account = self._accounts.get(account_id)
        if account is None or account.credits < amount:
            return None
        account.credits -= amount
        return account.model_copy(deep=True)

    async def delete(self, account_id: str) -> bool:
        await asyncio.sleep(0)
        return self._accounts.pop(account_id, None) is not None

    async def find_all(self, text_filter: Optional[str] = None) -> Iterable[UserAccount]:
        await asyncio.sleep(0)
        accounts = list(self._accounts.values())
        if text_filter:
            needle = text_filter.lower()
            accounts = [
                a
                for a in accounts
                if needle in (a.name or "").lower() or needle in a.email.lower()
            ]
        return [a.model_copy(deep=True) for a in accounts]
