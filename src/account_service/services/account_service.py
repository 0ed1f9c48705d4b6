from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional

from ..credentials.passwords import PasswordHasher
from ..credentials.tokens import IdentityClaims, TokenService
from ..db.base import AccountFilter, BaseAccountStore
from ..errors import (
    Conflict,
    InsufficientCredits,
    InvalidAmount,
    NoOp,
    NotFound,
    Unauthorized,
    ValidationError,
)
from ..events.queue import AsyncEventQueue
from ..logging.audit_logger import AuditLogger
from ..models.api_models import ProfileUpdateRequest
from ..models.events import AccountEvent, AccountEventType
from ..models.user import (
    UserAccount,
    is_valid_account_id,
    new_account_id,
    normalize_email,
)


logger = logging.getLogger(__name__)

STARTING_CREDITS = 200


class AuthResult(NamedTuple):
    account: UserAccount
    token: str


class ProfileUpdateResult(NamedTuple):
    updated_fields: List[str]
    credits_granted: bool


class DeductionResult(NamedTuple):
    deducted: int
    remaining: int
    reason: str


class AccountService:
    """
    Account state machine: registration, sign-in, profile completion and
    the credit balance.

    The per-account state is ``{credits, profile complete}``, both read off
    the stored record. All concurrency control is delegated to the store's
    single-document atomic updates; nothing here holds a lock.
    """

    def __init__(
        self,
        store: BaseAccountStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: AuditLogger,
        events: Optional[AsyncEventQueue] = None,
        starting_credits: int = STARTING_CREDITS,
        oauth_lookup_attempts: int = 3,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._audit = audit
        self._events = events
        self._starting_credits = starting_credits
        self._oauth_lookup_attempts = oauth_lookup_attempts

    def _issue(self, account: UserAccount) -> str:
        return self._tokens.issue_token(IdentityClaims(email=account.email))

    async def _publish(self, event_type: AccountEventType, account: UserAccount) -> None:
        if self._events is None:
            return
        event = AccountEvent(event_type=event_type, user_id=account.id or "", email=account.email)
        await self._events.enqueue(event.to_message())

    # Sign-up / sign-in
    async def register(self, email: str, password: str, name: str) -> AuthResult:
        email = normalize_email(email or "")
        name = (name or "").strip()
        if not email or not password or not name:
            raise ValidationError("email, password, and name are required")

        if await self._store.find_by_email(email) is not None:
            raise Conflict("user already exists")

        hashed = await asyncio.to_thread(self._hasher.hash_password, password)
        account = UserAccount(
            id=new_account_id(),
            email=email,
            password=hashed,
            name=name,
            credits=self._starting_credits,
        )
        await self._store.insert(account)

        await self._audit.log_account(
            message="Account registered",
            details={"credits": account.credits},
            user_id=account.id,
            email=email,
        )
        await self._publish(AccountEventType.ACCOUNT_CREATED, account)
        return AuthResult(account, self._issue(account))

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Unknown email, OAuth-only account and wrong password all produce the
        same error so the response does not reveal which accounts exist.
        """
        account = await self._store.find_by_email(normalize_email(email or ""))
        hashed = account.password if account is not None else None
        ok = await asyncio.to_thread(self._hasher.verify_password, hashed, password or "")
        if account is None or not ok:
            raise Unauthorized("invalid credentials")
        return AuthResult(account, self._issue(account))

    async def oauth_sign_in(
        self, email: str, name: str, provider: Optional[str] = None
    ) -> AuthResult:
        """
        Sign in with an identity already verified by an OAuth provider,
        creating a password-less account on first use.

        The unique email index is what prevents duplicates when two first
        sign-ins race: the loser's insert conflicts and it re-reads the
        winner's account instead of failing.
        """
        email = normalize_email(email or "")
        name = (name or "").strip()
        if not email or not name:
            raise ValidationError("email and name are required")

        for attempt in range(self._oauth_lookup_attempts):
            existing = await self._store.find_by_email(email)
            if existing is not None:
                return AuthResult(existing, self._issue(existing))

            account = UserAccount(
                id=new_account_id(),
                email=email,
                name=name,
                credits=self._starting_credits,
            )
            try:
                await self._store.insert(account)
            except Conflict:
                logger.info("Concurrent first sign-in for %s, retrying lookup", email)
                continue

            await self._audit.log_account(
                message="Account created via OAuth",
                details={"provider": provider or "", "credits": account.credits},
                user_id=account.id,
                email=email,
            )
            await self._publish(AccountEventType.ACCOUNT_CREATED, account)
            return AuthResult(account, self._issue(account))

        raise Conflict("could not resolve concurrent sign-in")

    # Profile
    async def get_profile(self, email: str) -> UserAccount:
        account = await self._store.find_by_email(normalize_email(email))
        if account is None:
            raise NotFound("user not found")
        return account

    async def get_profile_by_id(self, account_id: str) -> UserAccount:
        if not is_valid_account_id(account_id):
            raise ValidationError("invalid user id")
        account = await self._store.find_by_id(account_id)
        if account is None:
            raise NotFound("user not found")
        return account

    async def list_accounts(self, query: Optional[str] = None) -> Iterable[UserAccount]:
        query = (query or "").strip()
        return await self._store.find_all(query or None)

    async def update_profile(
        self,
        email: str,
        update: ProfileUpdateRequest | Mapping[str, Any],
    ) -> ProfileUpdateResult:
        """
        Apply the non-empty fields of ``update``.

        If the merge of the stored record and the incoming fields completes
        the profile for the first time, the balance is *set* to the starting
        value in the same write. The write is conditioned on the profile
        still being incomplete, so two racing completions grant only once.
        """
        if not isinstance(update, ProfileUpdateRequest):
            update = ProfileUpdateRequest.model_validate(dict(update))
        fields: Dict[str, Any] = update.non_empty_fields()
        if not fields:
            raise NoOp("no valid fields to update")

        email = normalize_email(email)
        existing = await self._store.find_by_email(email)
        if existing is None:
            raise NotFound("user not found")

        was_incomplete = not existing.is_profile_complete()
        is_now_complete = existing.model_copy(update=fields).is_profile_complete()

        if was_incomplete and is_now_complete:
            granted = await self._store.update_fields(
                AccountFilter.by_email(email, require_incomplete_profile=True),
                {**fields, "credits": self._starting_credits},
            )
            if granted:
                await self._audit.log_credits(
                    message="Profile completed, credits set",
                    details={"credits": self._starting_credits},
                    user_id=existing.id,
                    email=email,
                )
                return ProfileUpdateResult(sorted(fields), True)
            # Completed concurrently by another request; apply without the grant.

        if not await self._store.update_fields(AccountFilter.by_email(email), fields):
            raise NotFound("user not found")
        return ProfileUpdateResult(sorted(fields), False)

    # Credits
    async def set_credits(self, email: str, amount: int) -> int:
        if amount < 0:
            raise InvalidAmount("credits must not be negative")
        email = normalize_email(email)
        if not await self._store.update_fields(AccountFilter.by_email(email), {"credits": amount}):
            raise NotFound("user not found")
        await self._audit.log_credits(
            message="Credits set",
            details={"credits": amount},
            email=email,
        )
        return amount

    async def deduct_credits(
        self, account_id: str, amount: int, reason: str = ""
    ) -> DeductionResult:
        if amount <= 0:
            raise InvalidAmount("credits to deduct must be positive")
        if not is_valid_account_id(account_id):
            raise ValidationError("invalid user id")

        updated = await self._store.decrement_credits_if_sufficient(account_id, amount)
        if updated is None:
            current = await self._store.find_by_id(account_id)
            if current is None:
                raise NotFound("user not found")
            await self._audit.log_error(
                message="Insufficient credits for deduction",
                details={"requested": amount, "balance": current.credits, "reason": reason},
                user_id=account_id,
            )
            raise InsufficientCredits("insufficient credits")

        await self._audit.log_credits(
            message="Credits deducted",
            details={"amount": amount, "new_balance": updated.credits, "reason": reason},
            user_id=account_id,
            email=updated.email,
        )
        return DeductionResult(deducted=amount, remaining=updated.credits, reason=reason)

    # Administration
    async def delete_account(self, account_id: str) -> None:
        """
        Remove the account. Other subsystems clean up their own data when
        they receive the published `account_deleted` event.
        """
        if not is_valid_account_id(account_id):
            raise ValidationError("invalid user id")
        account = await self._store.find_by_id(account_id)
        if account is None or not await self._store.delete(account_id):
            raise NotFound("user not found")

        await self._audit.log_account(
            message="Account deleted",
            details={},
            user_id=account_id,
            email=account.email,
        )
        await self._publish(AccountEventType.ACCOUNT_DELETED, account)
