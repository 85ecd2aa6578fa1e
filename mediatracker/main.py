"""Entry point for the FastAPI-powered navigation service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import settings
from .database import Database
from .matching import FranchiseGroup, group_franchises
from .models import (
    Collection,
    EntityType,
    LibraryItem,
    NavigationState,
    RouteDescriptor,
    TransientEntity,
    is_entity_type,
)
from .paths import build_path, parse_path, parse_route_identifier
from .resolver import CollectionContents, EntityResolver
from .services.catalog import ProviderCatalog
from .services.mal import MyAnimeListClient
from .services.steam import SteamClient
from .services.tmdb import TMDBClient
from .store import DatabaseEntityStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    timeout = httpx.Timeout(settings.provider_timeout_seconds, connect=5.0)

    tmdb: TMDBClient | None = None
    if settings.tmdb_api_key:
        tmdb_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(base_url=str(settings.tmdb_api_url), timeout=timeout)
        )
        tmdb = TMDBClient(settings, tmdb_http_client)
    else:
        logger.warning("TMDB_API_KEY is not set; movies, series and actors resolve from the library only")

    mal: MyAnimeListClient | None = None
    if settings.mal_client_id:
        mal_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(base_url=str(settings.mal_api_url), timeout=timeout)
        )
        mal = MyAnimeListClient(settings, mal_http_client)
    else:
        logger.warning("MAL_CLIENT_ID is not set; anime resolves from the library only")

    steam_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=timeout)
    )
    steam = SteamClient(settings, steam_http_client)

    database = Database(settings.database_url)
    await database.create_all()

    store = DatabaseEntityStore(database.session_factory)
    catalog = ProviderCatalog(tmdb=tmdb, mal=mal, steam=steam)

    app.state.database = database
    app.state.resolver = EntityResolver(store, catalog)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Route parsing and entity resolution for the media tracker",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_resolver(app: FastAPI) -> EntityResolver:
    resolver = getattr(app.state, "resolver", None)
    if not isinstance(resolver, EntityResolver):
        raise RuntimeError("Entity resolver not initialised")
    return resolver


def _entity_type_or_400(value: str) -> EntityType:
    if not is_entity_type(value):
        raise HTTPException(status_code=400, detail=f"Unknown entity type: {value}")
    return value  # type: ignore[return-value]


def _serialize_entity(entity: LibraryItem | TransientEntity) -> dict[str, Any]:
    payload = entity.model_dump(mode="json")
    payload["routeId"] = entity.route_id
    payload["path"] = build_path(entity.type, entity.route_id, settings.base_path)
    return payload


def _serialize_group(group: FranchiseGroup) -> dict[str, Any]:
    return {
        "baseName": group.base_name,
        "type": group.entity_type,
        "entries": [_serialize_entity(entry) for entry in group.entries],
    }


def _serialize_collection(contents: CollectionContents) -> dict[str, Any]:
    collection: Collection = contents.collection
    return {
        "collection": collection.model_dump(mode="json"),
        "members": [_serialize_entity(item) for item in contents.members],
        "matched": [
            {"score": candidate.score, "item": _serialize_entity(candidate.item)}
            for candidate in contents.matched
        ],
    }


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/routes/parse")
    async def parse_route(path: str = "/", tab: str | None = None) -> dict[str, Any]:
        route = parse_path(path, tab)
        return route.model_dump(mode="json")

    @fastapi_app.get("/api/routes/build")
    async def build_route(type: str, id: str) -> dict[str, str]:
        entity_type = _entity_type_or_400(type)
        try:
            return {"path": build_path(entity_type, id, settings.base_path)}
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @fastapi_app.post("/api/resolve")
    async def resolve_state(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        try:
            state = NavigationState.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        entity = await get_resolver(fastapi_app).resolve(state)
        if entity is None:
            raise HTTPException(status_code=404, detail="Entity could not be resolved")
        return _serialize_entity(entity)

    @fastapi_app.get("/api/entities/{entity_type}/{route_id}")
    async def resolve_entity(entity_type: str, route_id: str) -> dict[str, Any]:
        checked_type = _entity_type_or_400(entity_type)
        route = RouteDescriptor(
            view_kind="detail",
            entity_type=checked_type,
            route_id=route_id,
            external_id=parse_route_identifier(route_id, checked_type),
            tab=checked_type,
        )
        entity = await get_resolver(fastapi_app).resolve_route(route)
        if entity is None:
            raise HTTPException(status_code=404, detail=f"No {checked_type} entity for {route_id}")
        return _serialize_entity(entity)

    @fastapi_app.get("/api/franchises/{entity_type}")
    async def list_franchises(entity_type: str, min_size: int = 2) -> dict[str, Any]:
        checked_type = _entity_type_or_400(entity_type)
        if min_size < 1:
            raise HTTPException(status_code=400, detail="min_size must be at least 1")
        items = await get_resolver(fastapi_app).store.list_by_type(checked_type)
        groups = group_franchises(items, checked_type, min_size=min_size)
        return {"type": checked_type, "groups": [_serialize_group(group) for group in groups]}

    @fastapi_app.get("/api/collections/{collection_id}")
    async def get_collection(collection_id: str) -> dict[str, Any]:
        contents = await get_resolver(fastapi_app).resolve_collection(collection_id)
        if contents is None:
            raise HTTPException(status_code=404, detail="Collection not found")
        return _serialize_collection(contents)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "mediatracker.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
