"""Client for movie, series and person metadata from The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ExternalFetchFailed
from ..models import ProviderPayload
from ..utils import coerce_int, names_from, parse_year

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"
PROFILE_BASE_URL = "https://image.tmdb.org/t/p/h632"


class TMDBClient:
    """Fetches single TMDB records and reshapes them into provider payloads."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def fetch_movie(self, tmdb_id: str) -> ProviderPayload | None:
        movie = await self._get(f"/movie/{tmdb_id}", append="external_ids")
        if movie is None:
            return None
        return ProviderPayload(
            title=str(movie.get("title") or movie.get("name") or "").strip(),
            year=parse_year(movie.get("release_date")),
            genres=names_from(movie.get("genres")),
            poster_url=self._build_image_url(movie.get("poster_path"), POSTER_BASE_URL),
            banner_url=self._build_image_url(movie.get("backdrop_path"), BACKDROP_BASE_URL),
            score=movie.get("vote_average"),
            overview=movie.get("overview") or None,
            extra={
                "runtime_minutes": coerce_int(movie.get("runtime")),
                "status": movie.get("status") or None,
                "imdb_id": movie.get("imdb_id")
                or (movie.get("external_ids") or {}).get("imdb_id"),
            },
        )

    async def fetch_series(self, tmdb_id: str) -> ProviderPayload | None:
        series = await self._get(f"/tv/{tmdb_id}", append="external_ids")
        if series is None:
            return None
        run_times = [
            value for value in series.get("episode_run_time") or [] if isinstance(value, (int, float))
        ]
        average_runtime = round(sum(run_times) / len(run_times)) if run_times else None
        return ProviderPayload(
            title=str(series.get("name") or series.get("title") or "").strip(),
            year=parse_year(series.get("first_air_date")),
            genres=names_from(series.get("genres")),
            poster_url=self._build_image_url(series.get("poster_path"), POSTER_BASE_URL),
            banner_url=self._build_image_url(series.get("backdrop_path"), BACKDROP_BASE_URL),
            score=series.get("vote_average"),
            overview=series.get("overview") or None,
            extra={
                "episode_count": coerce_int(series.get("number_of_episodes")),
                "season_count": coerce_int(series.get("number_of_seasons")),
                "episode_runtime_minutes": average_runtime,
                "status": series.get("status") or None,
            },
        )

    async def fetch_person(self, person_id: str) -> ProviderPayload | None:
        person = await self._get(f"/person/{person_id}", append="external_ids")
        if person is None:
            return None
        department = person.get("known_for_department") or None
        return ProviderPayload(
            title=str(person.get("name") or "").strip(),
            year=parse_year(person.get("birthday")),
            genres=[department] if department else [],
            poster_url=self._build_image_url(person.get("profile_path"), PROFILE_BASE_URL),
            banner_url=None,
            score=None,
            overview=person.get("biography") or None,
            extra={
                "birthday": person.get("birthday") or None,
                "place_of_birth": person.get("place_of_birth") or None,
                "known_for_department": department,
                "biography": person.get("biography") or None,
            },
        )

    async def _get(self, path: str, *, append: str | None = None) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "api_key": self._settings.tmdb_api_key,
            "language": "en-US",
        }
        if append:
            params["append_to_response"] = append
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ExternalFetchFailed("tmdb", f"{path}: {exc}") from exc

        if response.status_code == 404:
            logger.info("TMDB has no record at %s", path)
            return None
        if response.status_code >= 400:
            raise ExternalFetchFailed(
                "tmdb", f"{path} returned {response.status_code}: {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalFetchFailed("tmdb", f"{path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ExternalFetchFailed("tmdb", f"{path} returned an unexpected payload")
        return payload

    @staticmethod
    def _build_image_url(path: Any, base_url: str) -> str | None:
        if not path or not isinstance(path, str):
            return None
        if path.startswith("http"):
            return path
        return f"{base_url}{path}"
