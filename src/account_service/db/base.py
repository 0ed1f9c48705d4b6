from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..models.user import UserAccount


@dataclass(frozen=True)
class AccountFilter:
    """
    Selects a single account by id or by (normalized) email.

    ``require_incomplete_profile`` additionally requires that at least one of
    the completeness fields is still empty when the write is applied, which
    lets the one-time completion grant ride on the same atomic update.
    """

    account_id: Optional[str] = None
    email: Optional[str] = None
    require_incomplete_profile: bool = False

    def __post_init__(self) -> None:
        if (self.account_id is None) == (self.email is None):
            raise ValueError("AccountFilter needs exactly one of account_id or email")

    @classmethod
    def by_id(cls, account_id: str) -> "AccountFilter":
        return cls(account_id=account_id)

    @classmethod
    def by_email(cls, email: str, *, require_incomplete_profile: bool = False) -> "AccountFilter":
        return cls(email=email, require_incomplete_profile=require_incomplete_profile)


class BaseAccountStore(ABC):
    """
    Store-agnostic async interface over user account records.

    Concrete implementations (MongoDB, in-memory) must bound every call in
    time and raise `StoreTimeout` / `StoreUnavailable` instead of leaking
    driver errors. `insert` raises `Conflict` when the email is taken.
    """

    async def ensure_indexes(self) -> None:
        """Create the indexes the account invariants depend on."""

    async def close(self) -> None:
        """Release any client resources."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserAccount]: ...

    @abstractmethod
    async def find_by_id(self, account_id: str) -> Optional[UserAccount]: ...

    @abstractmethod
    async def insert(self, account: UserAccount) -> UserAccount: ...

    @abstractmethod
    async def update_fields(
        self, account_filter: AccountFilter, fields: Dict[str, Any]
    ) -> bool:
        """
        Apply ``fields`` (python field names) to the matching account.
        Fields not present are left untouched. Returns whether a record
        matched the filter.
        """
        ...

    @abstractmethod
    async def decrement_credits_if_sufficient(
        self, account_id: str, amount: int
    ) -> Optional[UserAccount]:
        """
        Atomically subtract ``amount`` iff the balance is at least ``amount``.
        Returns the updated account, or None when nothing matched (missing
        account or insufficient balance).
        """
        ...

    @abstractmethod
    async def delete(self, account_id: str) -> bool: ...

    @abstractmethod
    async def find_all(self, text_filter: Optional[str] = None) -> Iterable[UserAccount]:
        """
        All accounts, or those whose name or email contains ``text_filter``
        (case-insensitive).
        """
        ...
