"""Pydantic models describing routes, history payloads and library entities."""

from __future__ import annotations

import logging
import time
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

EntityType = Literal["movies", "tv", "anime", "games", "actors"]
TabId = Literal["home", "movies", "tv", "anime", "games", "actors"]
HistoryView = Literal[
    "root", "detail", "sequels", "collection", "search", "insights", "malRelated"
]

ENTITY_TYPES: tuple[EntityType, ...] = ("movies", "tv", "anime", "games", "actors")
TABS: tuple[TabId, ...] = ("home", *ENTITY_TYPES)

EXTERNAL_ID_PREFIXES: dict[EntityType, str] = {
    "movies": "tmdb_",
    "tv": "tmdb_",
    "anime": "mal_",
    "games": "steam_",
    "actors": "tmdb_person_",
}


def is_entity_type(value: object) -> bool:
    return isinstance(value, str) and value in ENTITY_TYPES


def is_tab(value: object) -> bool:
    return isinstance(value, str) and value in TABS


def _now_ms() -> int:
    return int(time.time() * 1000)


class RouteDescriptor(BaseModel):
    """Structured form of a URL path before it becomes application state."""

    model_config = ConfigDict(frozen=True)

    view_kind: Literal["root", "detail"] = "root"
    entity_type: EntityType | None = None
    route_id: str | None = None
    external_id: str | None = None
    tab: TabId = "home"

    @property
    def is_detail(self) -> bool:
        return self.view_kind == "detail"

    @property
    def is_external(self) -> bool:
        return self.external_id is not None


class MovieDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["movies"] = "movies"
    runtime_minutes: int | None = None
    status: str | None = None
    imdb_id: str | None = None


class TvDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tv"] = "tv"
    episode_count: int | None = None
    season_count: int | None = None
    episode_runtime_minutes: int | None = None
    status: str | None = None


class AnimeDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["anime"] = "anime"
    episode_count: int | None = None
    episode_duration_minutes: float | None = None
    status: str | None = None
    studios: tuple[str, ...] = ()


class GameDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["games"] = "games"
    developers: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()
    time_to_beat_hours: float | None = None
    user_tags: tuple[str, ...] = ()


class ActorDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["actors"] = "actors"
    birthday: str | None = None
    place_of_birth: str | None = None
    known_for_department: str | None = None
    biography: str | None = None


EntityDetails = Annotated[
    Union[MovieDetails, TvDetails, AnimeDetails, GameDetails, ActorDetails],
    Field(discriminator="type"),
]


class _EntityBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EntityType
    name: str
    year: int | None = None
    genres: tuple[str, ...] = ()
    poster_url: str | None = None
    banner_url: str | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    overview: str | None = None
    details: EntityDetails | None = None

    @model_validator(mode="after")
    def _details_match_type(self) -> "_EntityBase":
        if self.details is not None and self.details.type != self.type:
            raise ValueError(
                f"{self.details.type} details cannot describe a {self.type} entity"
            )
        return self


class LibraryItem(_EntityBase):
    """An entity persisted in the local library."""

    kind: Literal["library"] = "library"
    id: str
    external_api_id: str | None = None

    @property
    def route_id(self) -> str:
        return self.id


class TransientEntity(_EntityBase):
    """An entity fetched on demand from an external provider and never stored."""

    kind: Literal["transient"] = "transient"
    external_id: str

    @property
    def route_id(self) -> str:
        return f"{EXTERNAL_ID_PREFIXES[self.type]}{self.external_id}"

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-compatible deep copy suitable for history payloads."""

        return self.model_dump(mode="json")


Entity = Annotated[Union[LibraryItem, TransientEntity], Field(discriminator="kind")]
ENTITY_ADAPTER: TypeAdapter[LibraryItem | TransientEntity] = TypeAdapter(Entity)


class Collection(BaseModel):
    """User-curated grouping of library items."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    item_ids: tuple[str, ...] = ()
    auto_match: bool = False
    match_types: tuple[EntityType, ...] = ()


class ProviderPayload(BaseModel):
    """Provider-neutral shape returned through the external catalog boundary."""

    title: str
    external_id: str | None = None
    year: int | None = None
    genres: list[str] = Field(default_factory=list)
    poster_url: str | None = None
    banner_url: str | None = None
    score: float | None = None
    overview: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class SearchState(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    query: str = ""
    item_type: EntityType | None = None
    filters: dict[str, str] = Field(default_factory=dict)


class NavigationState(BaseModel):
    """Payload stored with each history entry.

    The payload is persisted by the browser, so it only ever holds
    JSON-compatible values. ``item_id`` marks a persisted entity while a bare
    ``external_api_id`` or ``snapshot`` marks a transient one.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    view: HistoryView = "root"
    item_type: EntityType | None = None
    route_id: str | None = None
    external_api_id: str | None = None
    item_id: str | None = None
    collection_id: str | None = None
    tab: TabId = "home"
    previous_view: HistoryView | None = None
    snapshot: dict[str, Any] | None = None
    search_state: SearchState | None = None
    timestamp: int = Field(default_factory=_now_ms)

    @property
    def is_transient(self) -> bool:
        return self.item_id is None and bool(self.external_api_id or self.snapshot)

    def same_route(self, other: "NavigationState | None") -> bool:
        """Return whether ``other`` addresses the same view and entity."""

        if other is None:
            return False
        return (
            self.view == other.view
            and self.tab == other.tab
            and self.item_type == other.item_type
            and self.route_id == other.route_id
            and self.item_id == other.item_id
            and self.collection_id == other.collection_id
        )

    def to_history(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_history(cls, payload: object) -> "NavigationState | None":
        """Parse a history payload, returning ``None`` for missing or foreign state."""

        if not isinstance(payload, Mapping):
            return None
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            logger.debug("Ignoring unreadable history state: %s", exc)
            return None
