from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import redis

from bakery2048.stats.client import ProfileStoreAuthError, ProfileStoreClient, ProfileStoreError

logger = logging.getLogger(__name__)

PROFILE_ID_KEY_PREFIX = "bakery:profile_id:"  # + {username}


@dataclass(frozen=True, slots=True)
class Identity:
    """Who is playing, as handed over by the auth layer. Role and token are opaque here."""

    token: str | None
    username: str | None
    role: str = "Player"
    profile_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def with_profile_id(self, profile_id: str | None) -> "Identity":
        return replace(self, profile_id=profile_id)


ANONYMOUS = Identity(token=None, username=None)


class ProfileIdCache:
    """username -> profile id, so the player list is only scanned once per user."""

    def __init__(self, *, r: redis.Redis) -> None:
        self._r = r

    @staticmethod
    def _key(username: str) -> str:
        return f"{PROFILE_ID_KEY_PREFIX}{username}"

    def get(self, username: str) -> str | None:
        raw = self._r.get(self._key(username))
        return str(raw) if raw else None

    def set(self, username: str, profile_id: str) -> None:
        self._r.set(self._key(username), profile_id)

    def clear(self, username: str) -> None:
        self._r.delete(self._key(username))


async def resolve_profile_id(
    *,
    identity: Identity,
    client: ProfileStoreClient,
    cache: ProfileIdCache | None = None,
) -> str | None:
    """Find the profile id for `identity`.

    Order: the id the identity already carries, the cache, then one lookup by
    username (cached on success). Returns None when there is nothing to attach
    stats to; lookup failures are logged, not raised.
    """

    if not identity.is_authenticated:
        return None
    if identity.profile_id:
        return identity.profile_id
    if not identity.username:
        return None

    if cache is not None:
        cached = cache.get(identity.username)
        if cached:
            return cached

    try:
        profile = await client.find_profile_by_username(identity.username)
    except ProfileStoreAuthError:
        logger.warning("Profile store rejected the token for %s; sign in again", identity.username)
        return None
    except ProfileStoreError as e:
        logger.warning("Failed to resolve profile id for %s: %s", identity.username, e)
        return None

    if profile is None:
        logger.info("No player profile found for %s", identity.username)
        return None

    if cache is not None:
        cache.set(identity.username, profile.id)
    return profile.id
