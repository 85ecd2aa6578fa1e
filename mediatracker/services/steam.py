"""Client for game metadata from the Steam store and SteamSpy."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ExternalFetchFailed
from ..models import ProviderPayload
from ..utils import coerce_float, coerce_int, ensure_url, names_from, parse_year

logger = logging.getLogger(__name__)


class SteamClient:
    """Fetches Steam app details and SteamSpy playtime statistics."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def fetch_app(self, appid: str) -> ProviderPayload | None:
        url = f"{str(self._settings.steam_store_url).rstrip('/')}/api/appdetails"
        payload = await self._get_json(url, {"appids": appid, "l": "english", "cc": "us"})
        if not isinstance(payload, dict):
            return None
        entry = payload.get(str(appid))
        if not isinstance(entry, dict):
            entry = {}
        if not entry.get("success") or not isinstance(entry.get("data"), dict):
            logger.info("Steam has no app %s", appid)
            return None

        game = entry["data"]
        metacritic = game.get("metacritic")
        if not isinstance(metacritic, dict):
            metacritic = {}
        release = game.get("release_date")
        if not isinstance(release, dict):
            release = {"date": release}
        overview = game.get("short_description")
        return ProviderPayload(
            external_id=str(game.get("steam_appid") or appid),
            title=str(game.get("name") or "").strip(),
            year=parse_year(release.get("date")),
            genres=names_from(game.get("genres"), key="description"),
            poster_url=ensure_url(game.get("header_image")),
            banner_url=ensure_url(game.get("background_raw") or game.get("background")),
            score=coerce_float(metacritic.get("score")),
            overview=overview if isinstance(overview, str) and overview else None,
            extra={
                "developers": names_from(game.get("developers")),
                "publishers": names_from(game.get("publishers")),
            },
        )

    async def fetch_time_to_beat(self, appid: str) -> dict[str, Any] | None:
        """Return average playtime in hours as reported by SteamSpy."""

        payload = await self._get_json(
            str(self._settings.steamspy_api_url),
            {"request": "appdetails", "appid": appid},
        )
        if not isinstance(payload, dict):
            return None
        average = coerce_int(payload.get("average_forever"))
        median = coerce_int(payload.get("median_forever"))
        minutes = average or median
        if not minutes:
            return None
        return {"time_to_beat_hours": round(minutes / 60, 1)}

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ExternalFetchFailed("steam", f"{url}: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ExternalFetchFailed(
                "steam", f"{url} returned {response.status_code}: {response.text}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalFetchFailed("steam", f"{url} returned invalid JSON") from exc
