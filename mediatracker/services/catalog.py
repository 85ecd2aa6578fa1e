"""Single capability boundary over the external catalog providers."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..models import EntityType, ProviderPayload
from .mal import MyAnimeListClient
from .steam import SteamClient
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


class ExternalCatalog(Protocol):
    """What the resolver needs from external providers, independent of their APIs."""

    async def fetch_external_entity(
        self, entity_type: EntityType, external_id: str
    ) -> ProviderPayload | None: ...

    async def fetch_external_entity_detail(
        self, entity_type: EntityType, external_id: str
    ) -> dict[str, Any] | None: ...

    async def fetch_related_entities(
        self, entity_type: EntityType, external_id: str
    ) -> list[ProviderPayload]: ...


class ProviderCatalog:
    """Routes each entity type to the provider client that knows it.

    Missing clients (no API key configured) make their entity types
    unresolvable rather than failing the whole catalog. Provider errors are
    raised as :class:`~mediatracker.errors.ExternalFetchFailed`.
    """

    def __init__(
        self,
        *,
        tmdb: TMDBClient | None = None,
        mal: MyAnimeListClient | None = None,
        steam: SteamClient | None = None,
    ) -> None:
        self._tmdb = tmdb
        self._mal = mal
        self._steam = steam

    async def fetch_external_entity(
        self, entity_type: EntityType, external_id: str
    ) -> ProviderPayload | None:
        if entity_type in ("movies", "tv", "actors"):
            if self._tmdb is None:
                logger.info("TMDB is not configured; cannot fetch %s %s", entity_type, external_id)
                return None
            if entity_type == "movies":
                return await self._tmdb.fetch_movie(external_id)
            if entity_type == "tv":
                return await self._tmdb.fetch_series(external_id)
            return await self._tmdb.fetch_person(external_id)

        if entity_type == "anime":
            if self._mal is None:
                logger.info("MyAnimeList is not configured; cannot fetch anime %s", external_id)
                return None
            return await self._mal.fetch_anime(external_id)

        if entity_type == "games":
            if self._steam is None:
                return None
            return await self._steam.fetch_app(external_id)

        logger.warning("Unsupported entity type %s", entity_type)
        return None

    async def fetch_external_entity_detail(
        self, entity_type: EntityType, external_id: str
    ) -> dict[str, Any] | None:
        """Return type-specific fields the base record does not carry."""

        if entity_type == "games" and self._steam is not None:
            return await self._steam.fetch_time_to_beat(external_id)
        return None

    async def fetch_related_entities(
        self, entity_type: EntityType, external_id: str
    ) -> list[ProviderPayload]:
        if entity_type == "anime" and self._mal is not None:
            return await self._mal.fetch_related(external_id)
        return []
