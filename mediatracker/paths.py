"""Conversion between URL paths and route descriptors."""

from __future__ import annotations

import logging
from urllib.parse import quote, unquote

from .errors import RouteNotFound
from .models import (
    EXTERNAL_ID_PREFIXES,
    EntityType,
    LibraryItem,
    RouteDescriptor,
    TabId,
    TransientEntity,
    is_entity_type,
    is_tab,
)

logger = logging.getLogger(__name__)

# Longest first so ``tmdb_person_`` wins over ``tmdb_`` when the type is unknown.
_PREFIXES_BY_LENGTH: tuple[str, ...] = tuple(
    sorted(set(EXTERNAL_ID_PREFIXES.values()), key=len, reverse=True)
)


def normalize_base_path(base_path: str | None) -> str:
    """Return ``base_path`` with a single leading slash and no trailing slash."""

    if not base_path:
        return ""
    stripped = base_path.strip().strip("/")
    if not stripped:
        return ""
    return f"/{stripped}"


def split_path(path: str) -> list[str]:
    """Split a URL path into decoded, non-empty segments."""

    path = (path or "").split("?", 1)[0].split("#", 1)[0]
    return [unquote(segment) for segment in path.split("/") if segment]


def parse_route_identifier(
    route_id: str | None, entity_type: EntityType | None = None
) -> str | None:
    """Return the external id encoded in ``route_id`` or ``None`` if it is local."""

    if not route_id:
        return None
    if entity_type is not None:
        prefix = EXTERNAL_ID_PREFIXES[entity_type]
        if route_id.startswith(prefix) and len(route_id) > len(prefix):
            external_id = route_id[len(prefix):]
            # An actor route must not be read as a movie/tv id and vice versa.
            if entity_type != "actors" and external_id.startswith("person_"):
                return None
            return external_id
        return None

    for prefix in _PREFIXES_BY_LENGTH:
        if route_id.startswith(prefix) and len(route_id) > len(prefix):
            return route_id[len(prefix):]
    return None


def build_route_id(entity: LibraryItem | TransientEntity) -> str:
    """Return the route identifier used to address ``entity`` in a URL."""

    return entity.route_id


def build_path(entity_type: EntityType, route_id: str, base_path: str = "") -> str:
    """Return the detail path ``{base}/{entity_type}/{route_id}``."""

    if not is_entity_type(entity_type):
        raise ValueError(f"Unknown entity type: {entity_type!r}")
    if not route_id:
        raise ValueError("A route id is required to build a detail path")
    base = normalize_base_path(base_path)
    return f"{base}/{quote(entity_type, safe='')}/{quote(route_id, safe='')}"


def build_root_path(tab: TabId, base_path: str = "") -> str:
    """Return the path of a root tab; ``home`` maps to the base path itself."""

    base = normalize_base_path(base_path)
    if tab == "home" or not is_tab(tab):
        return base or "/"
    return f"{base}/{quote(tab, safe='')}"


def parse_path(path: str, search_tab: str | None = None) -> RouteDescriptor:
    """Parse ``path`` into a route descriptor.

    Unknown paths never raise: they fall back to the ``search_tab`` root view
    when that names a tab, and to ``home`` otherwise.
    """

    segments = split_path(path)
    fallback_tab: TabId = search_tab if is_tab(search_tab) else "home"  # type: ignore[assignment]

    if len(segments) >= 2 and is_entity_type(segments[-2]):
        entity_type: EntityType = segments[-2]  # type: ignore[assignment]
        route_id = segments[-1]
        tab: TabId = search_tab if is_tab(search_tab) else entity_type  # type: ignore[assignment]
        return RouteDescriptor(
            view_kind="detail",
            entity_type=entity_type,
            route_id=route_id,
            external_id=parse_route_identifier(route_id, entity_type),
            tab=tab,
        )

    if segments and is_tab(segments[-1]):
        return RouteDescriptor(view_kind="root", tab=segments[-1])  # type: ignore[arg-type]

    if segments:
        logger.debug("%s; defaulting to %s", RouteNotFound(path), fallback_tab)
    return RouteDescriptor(view_kind="root", tab=fallback_tab)


def is_known_route(path: str) -> bool:
    """Return whether ``path`` maps onto the URL grammar without falling back."""

    segments = split_path(path)
    if not segments:
        return True
    if len(segments) >= 2 and is_entity_type(segments[-2]):
        return True
    return is_tab(segments[-1])
