from __future__ import annotations

from collections.abc import Generator

import redis

from bakery2048.config import settings_from_env
from bakery2048.infra.redis_client import create_redis
from bakery2048.manager import SessionManager


_MANAGER: SessionManager | None = None


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def init_manager(manager: SessionManager | None = None) -> SessionManager:
    """Create (or install) the process-wide SessionManager used by the API routes."""

    global _MANAGER
    if manager is not None:
        _MANAGER = manager
    elif _MANAGER is None:
        _MANAGER = SessionManager(settings=settings_from_env())
    return _MANAGER


def reset_manager_for_tests() -> None:
    global _MANAGER
    _MANAGER = None


def get_manager() -> SessionManager:
    if _MANAGER is None:
        raise RuntimeError("Session manager not initialized. Call init_manager() at startup.")
    return _MANAGER
