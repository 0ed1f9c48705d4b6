from __future__ import annotations

import pytest

from account_service.db.base import AccountFilter
from account_service.db.memory import InMemoryAccountStore
from account_service.errors import Conflict
from account_service.models.user import UserAccount, new_account_id


def _account(email: str, name: str = "User", **fields) -> UserAccount:
    return UserAccount(id=new_account_id(), email=email, name=name, credits=100, **fields)


@pytest.mark.asyncio
async def test_insert_and_find():
    store = InMemoryAccountStore()
    account = await store.insert(_account("a@b.com"))

    assert (await store.find_by_email("a@b.com")).id == account.id
    assert (await store.find_by_id(account.id)).email == "a@b.com"
    assert await store.find_by_email("missing@b.com") is None

    with pytest.raises(Conflict):
        await store.insert(_account("a@b.com"))


@pytest.mark.asyncio
async def test_returned_records_are_copies():
    store = InMemoryAccountStore()
    account = await store.insert(_account("a@b.com"))

    found = await store.find_by_id(account.id)
    found.credits = 0
    found.skills.append("hacking")

    again = await store.find_by_id(account.id)
    assert again.credits == 100
    assert again.skills == []


@pytest.mark.asyncio
async def test_update_fields_only_touches_given_fields():
    store = InMemoryAccountStore()
    account = await store.insert(_account("a@b.com", bio="old", location="Paris"))

    assert await store.update_fields(AccountFilter.by_id(account.id), {"bio": "new"})
    stored = await store.find_by_id(account.id)
    assert stored.bio == "new"
    assert stored.location == "Paris"

    assert not await store.update_fields(AccountFilter.by_email("ghost@b.com"), {"bio": "x"})


@pytest.mark.asyncio
async def test_incomplete_profile_filter():
    store = InMemoryAccountStore()
    await store.insert(_account("done@b.com", college="MIT", program="CS", year_of_study="1"))
    await store.insert(_account("todo@b.com", college="MIT"))

    complete = AccountFilter.by_email("done@b.com", require_incomplete_profile=True)
    incomplete = AccountFilter.by_email("todo@b.com", require_incomplete_profile=True)

    assert not await store.update_fields(complete, {"credits": 200})
    assert await store.update_fields(incomplete, {"credits": 200})
    assert (await store.find_by_email("done@b.com")).credits == 100
    assert (await store.find_by_email("todo@b.com")).credits == 200


@pytest.mark.asyncio
async def test_conditional_decrement():
    store = InMemoryAccountStore()
    account = await store.insert(_account("a@b.com"))

    updated = await store.decrement_credits_if_sufficient(account.id, 60)
    assert updated is not None and updated.credits == 40

    assert await store.decrement_credits_if_sufficient(account.id, 41) is None
    assert (await store.find_by_id(account.id)).credits == 40
    assert await store.decrement_credits_if_sufficient(new_account_id(), 1) is None


@pytest.mark.asyncio
async def test_find_all_text_filter_and_delete():
    store = InMemoryAccountStore()
    alice = await store.insert(_account("alice@example.com", name="Alice"))
    await store.insert(_account("bob@example.com", name="Bob"))

    assert [a.name for a in await store.find_all("ALI")] == ["Alice"]
    assert len(list(await store.find_all())) == 2

    assert await store.delete(alice.id)
    assert not await store.delete(alice.id)
    assert [a.name for a in await store.find_all()] == ["Bob"]


def test_account_filter_requires_a_key():
    with pytest.raises(ValueError):
        AccountFilter()
