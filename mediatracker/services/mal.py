"""Client for anime metadata from the MyAnimeList v2 API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ExternalFetchFailed
from ..models import ProviderPayload
from ..utils import coerce_int, ensure_url, names_from, parse_year

logger = logging.getLogger(__name__)

ANIME_FIELDS = (
    "id,title,main_picture,start_date,end_date,mean,genres,num_episodes,"
    "average_episode_duration,status,synopsis,studios,related_anime"
)

# Relation types that continue or branch off the same story.
SEQUEL_RELATIONS = frozenset(
    {"sequel", "prequel", "alternative_version", "side_story", "spin_off", "parent_story", "full_story"}
)


class MyAnimeListClient:
    """Fetches anime entries and their related titles from MyAnimeList."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.mal_client_id:
            raise ValueError("MAL client id is required when initialising MyAnimeListClient")
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "X-MAL-CLIENT-ID": str(self._settings.mal_client_id),
            "User-Agent": f"{self._settings.app_name} (mediatracker)",
        }

    async def fetch_anime(self, anime_id: str) -> ProviderPayload | None:
        anime = await self._get_anime(anime_id)
        if anime is None:
            return None
        return self._to_payload(anime)

    async def fetch_related(self, anime_id: str) -> list[ProviderPayload]:
        """Return the sequels, prequels and side stories listed for ``anime_id``."""

        anime = await self._get_anime(anime_id)
        if anime is None:
            return []
        related: list[ProviderPayload] = []
        for entry in anime.get("related_anime") or []:
            if not isinstance(entry, dict):
                continue
            if entry.get("relation_type") not in SEQUEL_RELATIONS:
                continue
            node = entry.get("node") or {}
            if not node.get("id") or not node.get("title"):
                continue
            related.append(self._to_payload(node))
        return related

    async def _get_anime(self, anime_id: str) -> dict[str, Any] | None:
        path = f"/anime/{anime_id}"
        try:
            response = await self._client.get(
                path, params={"fields": ANIME_FIELDS}, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise ExternalFetchFailed("myanimelist", f"{path}: {exc}") from exc

        if response.status_code == 404:
            logger.info("MyAnimeList has no anime %s", anime_id)
            return None
        if response.status_code >= 400:
            raise ExternalFetchFailed(
                "myanimelist", f"{path} returned {response.status_code}: {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalFetchFailed("myanimelist", f"{path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ExternalFetchFailed("myanimelist", f"{path} returned an unexpected payload")
        return payload

    @staticmethod
    def _to_payload(anime: dict[str, Any]) -> ProviderPayload:
        picture = anime.get("main_picture") or {}
        duration_seconds = coerce_int(anime.get("average_episode_duration"))
        return ProviderPayload(
            external_id=str(anime["id"]) if anime.get("id") is not None else None,
            title=str(anime.get("title") or "").strip(),
            year=parse_year(anime.get("start_date")),
            genres=names_from(anime.get("genres")),
            poster_url=ensure_url(picture.get("large") or picture.get("medium")),
            banner_url=None,
            score=anime.get("mean"),
            overview=anime.get("synopsis") or None,
            extra={
                "episode_count": coerce_int(anime.get("num_episodes")),
                "episode_duration_minutes": round(duration_seconds / 60, 1)
                if duration_seconds
                else None,
                "status": anime.get("status") or None,
                "studios": names_from(anime.get("studios")),
            },
        )
