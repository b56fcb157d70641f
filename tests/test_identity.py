from __future__ import annotations

import logging

import fakeredis
import pytest

from bakery2048.identity import ANONYMOUS, PROFILE_ID_KEY_PREFIX, Identity, ProfileIdCache, resolve_profile_id

from conftest import FakeProfileStore


@pytest.fixture()
def cache() -> ProfileIdCache:
    return ProfileIdCache(r=fakeredis.FakeRedis(decode_responses=True))


def test_identity_flags() -> None:
    assert ANONYMOUS.is_authenticated is False
    chef = Identity(token="t", username="chef", role="Admin")
    assert chef.is_authenticated
    assert chef.with_profile_id("9").profile_id == "9"
    assert chef.profile_id is None


def test_cache_round_trip(cache: ProfileIdCache) -> None:
    assert cache.get("baker") is None
    cache.set("baker", "42")
    assert cache.get("baker") == "42"
    assert cache._r.get(f"{PROFILE_ID_KEY_PREFIX}baker") == "42"
    cache.clear("baker")
    assert cache.get("baker") is None


@pytest.mark.asyncio
async def test_explicit_profile_id_wins(store: FakeProfileStore, cache: ProfileIdCache) -> None:
    cache.set("baker", "1")
    ident = Identity(token="token-123", username="baker", profile_id="99")
    assert await resolve_profile_id(identity=ident, client=store.make_client(), cache=cache) == "99"
    assert store.requests == []


@pytest.mark.asyncio
async def test_cached_id_skips_lookup(store: FakeProfileStore, cache: ProfileIdCache) -> None:
    cache.set("baker", "42")
    ident = Identity(token="token-123", username="baker")
    assert await resolve_profile_id(identity=ident, client=store.make_client(), cache=cache) == "42"
    assert store.requests == []


@pytest.mark.asyncio
async def test_lookup_by_username_populates_cache(store: FakeProfileStore, cache: ProfileIdCache) -> None:
    ident = Identity(token="token-123", username="baker")
    assert await resolve_profile_id(identity=ident, client=store.make_client(), cache=cache) == "42"
    assert cache.get("baker") == "42"

    await resolve_profile_id(identity=ident, client=store.make_client(), cache=cache)
    assert len(store.requests) == 1


@pytest.mark.asyncio
async def test_unknown_user_resolves_to_none(store: FakeProfileStore, cache: ProfileIdCache) -> None:
    ident = Identity(token="token-123", username="stranger")
    assert await resolve_profile_id(identity=ident, client=store.make_client(), cache=cache) is None
    assert cache.get("stranger") is None


@pytest.mark.asyncio
async def test_lookup_failure_resolves_to_none(store: FakeProfileStore) -> None:
    store.fail_methods = {"GET"}
    ident = Identity(token="token-123", username="baker")
    assert await resolve_profile_id(identity=ident, client=store.make_client()) is None


@pytest.mark.asyncio
async def test_anonymous_never_hits_the_store(store: FakeProfileStore) -> None:
    assert await resolve_profile_id(identity=ANONYMOUS, client=store.make_client()) is None
    assert store.requests == []


@pytest.mark.asyncio
async def test_rejected_token_resolves_to_none(
    store: FakeProfileStore, cache: ProfileIdCache, caplog: pytest.LogCaptureFixture
) -> None:
    ident = Identity(token="expired", username="baker")
    with caplog.at_level(logging.WARNING):
        assert await resolve_profile_id(identity=ident, client=store.make_client(token="expired"), cache=cache) is None
    assert "sign in again" in caplog.text
    assert cache.get("baker") is None
