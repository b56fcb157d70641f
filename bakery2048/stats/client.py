from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from bakery2048.stats.models import PlayerProfile, StatsSnapshot

logger = logging.getLogger(__name__)


class ProfileStoreError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProfileStoreAuthError(ProfileStoreError):
    """The store rejected our token (401). The identity needs to sign in again."""


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return

    try:
        data = response.json()
    except ValueError:
        data = {}
    message = "API Error"
    if isinstance(data, dict):
        message = str(data.get("message") or data.get("error") or message)

    method = response.request.method
    path = response.request.url.path
    if response.status_code == 401:
        raise ProfileStoreAuthError(f"{method} {path}: {message}", status_code=401)
    raise ProfileStoreError(f"{method} {path}: {message}", status_code=response.status_code)


def _snapshot_from(data: Any, *, where: str) -> StatsSnapshot:
    try:
        return StatsSnapshot.model_validate(data or {})
    except ValidationError as e:
        raise ProfileStoreError(f"{where}: malformed player record") from e


def _json_or_none(response: httpx.Response) -> Any:
    _raise_for_status(response)
    if response.status_code == 204 or not response.content:
        return None
    return response.json()


class ProfileStoreClient:
    """HTTP client for the profile/stats REST service.

    Async methods are used everywhere except the exit flush, which goes through
    the `*_blocking` variants so the write completes before the process tears down.
    Every failure (transport or non-2xx) surfaces as `ProfileStoreError`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        blocking_transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.base_url = base_url.rstrip("/")
        self._async = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=timeout_seconds, transport=transport
        )
        self._blocking = httpx.Client(
            base_url=self.base_url, headers=headers, timeout=timeout_seconds, transport=blocking_transport
        )

    async def aclose(self) -> None:
        await self._async.aclose()
        self._blocking.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._async.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"{method} {path}: {e}") from e
        return _json_or_none(response)

    def _request_blocking(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> Any:
        try:
            response = self._blocking.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"{method} {path}: {e}") from e
        return _json_or_none(response)

    # ---- players ----

    async def fetch_profile(self, profile_id: str) -> StatsSnapshot:
        data = await self._request("GET", f"/players/{profile_id}")
        return _snapshot_from(data, where=f"GET /players/{profile_id}")

    async def update_profile(self, profile_id: str, snapshot: StatsSnapshot) -> None:
        await self._request("PUT", f"/players/{profile_id}", json=snapshot.to_wire())

    async def list_profiles(self, *, top: int | None = None) -> list[PlayerProfile]:
        params = {"top": top} if top else None
        data = await self._request("GET", "/players", params=params)
        profiles: list[PlayerProfile] = []
        for item in data or []:
            try:
                profiles.append(PlayerProfile.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed player record: %r", item)
        return profiles

    async def find_profile_by_username(self, username: str) -> PlayerProfile | None:
        for profile in await self.list_profiles():
            if profile.username == username:
                return profile
        return None

    def fetch_profile_blocking(self, profile_id: str) -> StatsSnapshot:
        data = self._request_blocking("GET", f"/players/{profile_id}")
        return _snapshot_from(data, where=f"GET /players/{profile_id}")

    def update_profile_blocking(self, profile_id: str, snapshot: StatsSnapshot) -> None:
        self._request_blocking("PUT", f"/players/{profile_id}", json=snapshot.to_wire())

    # ---- tiles ----

    async def fetch_tiles(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/tiles")
        return list(data or [])
