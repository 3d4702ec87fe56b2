"""SQL store tests — users and refresh_tokens tables."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from chirpy.auth.errors import Conflict, StorageFailure
from chirpy.auth.refresh_tokens import RefreshTokenGenerator


@pytest.mark.asyncio
async def test_create_and_find_user(user_store, clock):
    created = await user_store.create_user("b@example.com", "$2b$04$hash", clock.now())
    found = await user_store.find_user_by_email("b@example.com")
    assert found.id == created.id
    assert found.hashed_password == "$2b$04$hash"
    assert found.created_at == clock.now()
    assert found.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_user_repr_hides_hash(user_store, clock):
    created = await user_store.create_user("b@example.com", "$2b$04$hash", clock.now())
    assert "$2b$04$hash" not in repr(created)


@pytest.mark.asyncio
async def test_find_missing_user(user_store):
    assert await user_store.find_user_by_email("missing@example.com") is None


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(user_store, clock):
    await user_store.create_user("b@example.com", "h1", clock.now())
    with pytest.raises(Conflict):
        await user_store.create_user("b@example.com", "h2", clock.now())


@pytest.mark.asyncio
async def test_refresh_token_roundtrip(token_store, user, clock):
    record = RefreshTokenGenerator().new_record(user.id, clock.now(), timedelta(days=60))
    await token_store.create_refresh_token(record)

    found = await token_store.find_refresh_token(record.token)
    assert found == record


@pytest.mark.asyncio
async def test_duplicate_refresh_token_conflicts(token_store, user, clock):
    record = RefreshTokenGenerator().new_record(user.id, clock.now(), timedelta(days=60))
    await token_store.create_refresh_token(record)
    with pytest.raises(Conflict):
        await token_store.create_refresh_token(record)
    # The session is still usable after the failed insert.
    assert await token_store.find_refresh_token(record.token) == record


@pytest.mark.asyncio
async def test_find_missing_refresh_token(token_store):
    assert await token_store.find_refresh_token("00" * 32) is None


@pytest.mark.asyncio
async def test_revoke_is_compare_and_set(token_store, user, clock):
    record = RefreshTokenGenerator().new_record(user.id, clock.now(), timedelta(days=60))
    await token_store.create_refresh_token(record)

    first = clock.now() + timedelta(minutes=1)
    assert await token_store.revoke_refresh_token(record.token, first) is True
    assert await token_store.revoke_refresh_token(record.token, first + timedelta(hours=1)) is True

    found = await token_store.find_refresh_token(record.token)
    assert found.revoked_at == first
    assert found.updated_at == first


@pytest.mark.asyncio
async def test_revoke_missing_token(token_store, clock):
    assert await token_store.revoke_refresh_token(uuid.uuid4().hex, clock.now()) is False


@pytest.mark.asyncio
async def test_failed_rollback_is_still_storage_failure(
    token_store, db_session, clock, monkeypatch
):
    async def connection_lost(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(db_session, "execute", connection_lost)
    monkeypatch.setattr(db_session, "rollback", connection_lost)
    with pytest.raises(StorageFailure):
        await token_store.find_refresh_token("ab" * 32)
    with pytest.raises(StorageFailure):
        await token_store.revoke_refresh_token("ab" * 32, clock.now())
