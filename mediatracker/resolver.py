"""Resolution of navigation states into concrete library or transient entities."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, TypeVar

from pydantic import ValidationError

from .errors import EntityNotFound, ExternalFetchFailed
from .matching import (
    FranchiseGroup,
    ScoredCandidate,
    auto_match_collection,
    base_name_for,
    find_franchise,
)
from .models import (
    ENTITY_ADAPTER,
    ENTITY_TYPES,
    ActorDetails,
    AnimeDetails,
    Collection,
    EntityType,
    GameDetails,
    LibraryItem,
    MovieDetails,
    NavigationState,
    ProviderPayload,
    RouteDescriptor,
    TransientEntity,
    TvDetails,
)
from .paths import parse_route_identifier
from .services.catalog import ExternalCatalog
from .store import EntityStore

logger = logging.getLogger(__name__)

DETAIL_MODELS = {
    "movies": MovieDetails,
    "tv": TvDetails,
    "anime": AnimeDetails,
    "games": GameDetails,
    "actors": ActorDetails,
}

ResolvedEntity = LibraryItem | TransientEntity

T = TypeVar("T")


def normalize_score(value: Any) -> float | None:
    """Map a provider score onto the 0-100 scale.

    Providers report either 0-10 (TMDB, MyAnimeList) or 0-100 (Metacritic);
    anything up to 10 is treated as the former.
    """

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number < 0:
        return None
    if number <= 10:
        number *= 10
    return round(min(number, 100.0), 1)


def build_details(entity_type: EntityType, fields: dict[str, Any]):
    """Build the type-specific payload from provider fields, or ``None``."""

    model = DETAIL_MODELS[entity_type]
    known = {
        name: value
        for name, value in fields.items()
        if name in model.model_fields and name != "type" and value not in (None, [], "")
    }
    if not known:
        return None
    try:
        return model.model_validate(known)
    except ValidationError as exc:
        logger.info("Discarding malformed %s details: %s", entity_type, exc)
        return None


def shape_transient(
    entity_type: EntityType,
    external_id: str,
    payload: ProviderPayload,
    extra: dict[str, Any] | None = None,
) -> TransientEntity:
    """Turn a provider payload into a transient entity."""

    fields = dict(payload.extra)
    if extra:
        fields.update(extra)
    return TransientEntity(
        type=entity_type,
        external_id=external_id,
        name=payload.title,
        year=payload.year,
        genres=tuple(payload.genres),
        poster_url=payload.poster_url,
        banner_url=payload.banner_url,
        score=normalize_score(payload.score),
        overview=payload.overview,
        details=build_details(entity_type, fields),
    )


@dataclass(frozen=True, slots=True)
class CollectionContents:
    collection: Collection
    members: tuple[LibraryItem, ...]
    matched: tuple[ScoredCandidate, ...]


class EntityResolver:
    """Produce an entity for a navigation state.

    Resolution order, first hit wins: the embedded ``snapshot``, ``item_id`` in
    the store, the route id's external id in the store, and finally a
    transient entity fetched from the external catalog. Failures of any kind
    end in ``None``; nothing is raised to the caller.
    """

    def __init__(self, store: EntityStore, catalog: ExternalCatalog):
        self._store = store
        self._catalog = catalog
        self._in_flight: dict[tuple[str, str], asyncio.Task[TransientEntity | None]] = {}

    @property
    def store(self) -> EntityStore:
        return self._store

    async def resolve(self, state: NavigationState) -> ResolvedEntity | None:
        snapshot_entity = self._from_snapshot(state)
        if snapshot_entity is not None:
            return snapshot_entity

        if state.item_id:
            item = await self._lookup(self._store.find_by_id(state.item_id))
            if item is not None:
                return item

        entity_type = state.item_type
        external_id = state.external_api_id
        if state.route_id and entity_type is not None:
            parsed = parse_route_identifier(state.route_id, entity_type)
            if parsed is not None:
                external_id = parsed
            elif state.route_id != state.item_id:
                item = await self._lookup(self._store.find_by_id(state.route_id))
                if item is not None and item.type == entity_type:
                    return item

        if entity_type is None or not external_id:
            logger.info("%s", EntityNotFound(entity_type, state.route_id or state.item_id))
            return None

        item = await self._lookup(self._store.find_by_external_id(entity_type, external_id))
        if item is not None:
            return item
        return await self.build_transient_entity(entity_type, external_id)

    async def resolve_route(self, route: RouteDescriptor) -> ResolvedEntity | None:
        if not route.is_detail:
            return None
        return await self.resolve(
            NavigationState(
                view="detail",
                item_type=route.entity_type,
                route_id=route.route_id,
                external_api_id=route.external_id,
                tab=route.tab,
            )
        )

    async def build_transient_entity(
        self, entity_type: EntityType, external_id: str
    ) -> TransientEntity | None:
        """Fetch and shape a transient entity, sharing any identical in-flight call."""

        key = (entity_type, external_id)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._build_transient(entity_type, external_id))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _build_transient(
        self, entity_type: EntityType, external_id: str
    ) -> TransientEntity | None:
        try:
            return await self._fetch_and_shape(entity_type, external_id)
        except ExternalFetchFailed as exc:
            logger.warning("External fetch failed for %s %s: %s", entity_type, external_id, exc)
        except ValidationError as exc:
            logger.warning("Provider payload for %s %s is unusable: %s", entity_type, external_id, exc)
        except Exception:
            logger.exception("Building transient %s %s failed", entity_type, external_id)
        return None

    async def _fetch_and_shape(
        self, entity_type: EntityType, external_id: str
    ) -> TransientEntity | None:
        payload = await self._catalog.fetch_external_entity(entity_type, external_id)
        if payload is None or not payload.title:
            logger.info("%s", EntityNotFound(entity_type, external_id))
            return None

        try:
            detail = await self._catalog.fetch_external_entity_detail(entity_type, external_id)
        except ExternalFetchFailed as exc:
            logger.info("Detail fetch failed for %s %s: %s", entity_type, external_id, exc)
            detail = None
        return shape_transient(entity_type, external_id, payload, detail)

    async def resolve_collection(self, collection_id: str) -> CollectionContents | None:
        collection = await self._lookup(self._store.find_collection(collection_id))
        if collection is None:
            logger.info("Collection %s not found", collection_id)
            return None

        members: list[LibraryItem] = []
        for item_id in collection.item_ids:
            item = await self._lookup(self._store.find_by_id(item_id))
            if item is not None:
                members.append(item)

        matched: list[ScoredCandidate] = []
        if collection.auto_match:
            candidates: list[LibraryItem] = []
            for entity_type in collection.match_types or ENTITY_TYPES:
                candidates.extend(await self._list(entity_type))
            matched = auto_match_collection(collection, candidates)
        return CollectionContents(
            collection=collection, members=tuple(members), matched=tuple(matched)
        )

    async def resolve_franchise(self, entity: ResolvedEntity) -> FranchiseGroup:
        """Return the library entries sharing ``entity``'s franchise."""

        return find_franchise(entity, await self._list(entity.type))

    async def resolve_related(self, entity: ResolvedEntity) -> FranchiseGroup:
        """Return provider-listed related entries, preferring library copies."""

        if isinstance(entity, TransientEntity):
            external_id: str | None = entity.external_id
        else:
            external_id = entity.external_api_id
            if external_id:
                external_id = parse_route_identifier(external_id, entity.type) or external_id

        entries: list[ResolvedEntity] = [entity]
        if external_id:
            try:
                related = await self._catalog.fetch_related_entities(entity.type, external_id)
            except ExternalFetchFailed as exc:
                logger.warning("Related lookup failed for %s %s: %s", entity.type, external_id, exc)
                related = []
            except Exception:
                logger.exception("Related lookup failed for %s %s", entity.type, external_id)
                related = []
            for payload in related:
                if not payload.external_id or not payload.title:
                    continue
                stored = await self._lookup(
                    self._store.find_by_external_id(entity.type, payload.external_id)
                )
                if stored is not None:
                    entries.append(stored)
                    continue
                try:
                    entries.append(shape_transient(entity.type, payload.external_id, payload))
                except ValidationError:
                    logger.debug("Skipping unusable related entry %s", payload.external_id)

        entries.sort(key=lambda e: (e.year if e.year is not None else 9999, e.name.lower()))
        return FranchiseGroup(
            base_name=base_name_for(entity),
            entity_type=entity.type,
            entries=tuple(entries),
        )

    def _from_snapshot(self, state: NavigationState) -> ResolvedEntity | None:
        if not state.snapshot:
            return None
        try:
            entity = ENTITY_ADAPTER.validate_python(state.snapshot)
        except ValidationError as exc:
            logger.debug("Ignoring unreadable history snapshot: %s", exc)
            return None
        if state.item_type is not None and entity.type != state.item_type:
            logger.debug("Ignoring %s snapshot for a %s route", entity.type, state.item_type)
            return None
        return entity

    async def _lookup(self, pending: Awaitable[T]) -> T | None:
        try:
            return await pending
        except Exception:
            logger.exception("Entity store lookup failed")
            return None

    async def _list(self, entity_type: EntityType) -> list[LibraryItem]:
        items = await self._lookup(self._store.list_by_type(entity_type))
        return list(items or [])
