from __future__ import annotations

import os

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
REDIS_SOCKET_TIMEOUT_SECONDS = 2.0


def get_redis_url() -> str:
    return os.environ.get("REDIS_URL", DEFAULT_REDIS_URL)


def create_redis(url: str | None = None) -> redis.Redis:
    """Connection for the username -> profile id cache."""

    # decode_responses=True => profile ids come back as str
    return redis.Redis.from_url(
        url or get_redis_url(),
        decode_responses=True,
        socket_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
    )
