"""Read-only views over the persisted entity collection."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import CollectionRecord, LibraryItemRecord
from .models import EXTERNAL_ID_PREFIXES, Collection, EntityType, LibraryItem

logger = logging.getLogger(__name__)


class EntityStore(Protocol):
    """Lookups the navigation engine needs from the library."""

    async def find_by_id(self, item_id: str) -> LibraryItem | None: ...

    async def find_by_external_id(
        self, entity_type: EntityType, external_id: str
    ) -> LibraryItem | None: ...

    async def list_by_type(self, entity_type: EntityType) -> list[LibraryItem]: ...

    async def find_collection(self, collection_id: str) -> Collection | None: ...


def _external_id_variants(entity_type: EntityType, external_id: str) -> tuple[str, str]:
    """Stored external ids may or may not carry the route prefix."""

    return external_id, f"{EXTERNAL_ID_PREFIXES[entity_type]}{external_id}"


class InMemoryEntityStore:
    """Entity store over an in-process snapshot of the library."""

    def __init__(
        self,
        items: Iterable[LibraryItem] = (),
        collections: Iterable[Collection] = (),
    ) -> None:
        self._items: dict[str, LibraryItem] = {item.id: item for item in items}
        self._collections: dict[str, Collection] = {
            collection.id: collection for collection in collections
        }

    async def find_by_id(self, item_id: str) -> LibraryItem | None:
        return self._items.get(item_id)

    async def find_by_external_id(
        self, entity_type: EntityType, external_id: str
    ) -> LibraryItem | None:
        variants = _external_id_variants(entity_type, external_id)
        for item in self._items.values():
            if item.type == entity_type and item.external_api_id in variants:
                return item
        return None

    async def list_by_type(self, entity_type: EntityType) -> list[LibraryItem]:
        return [item for item in self._items.values() if item.type == entity_type]

    async def find_collection(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)


class DatabaseEntityStore:
    """Entity store reading library records through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_id(self, item_id: str) -> LibraryItem | None:
        async with self._session_factory() as session:
            record = await session.get(LibraryItemRecord, item_id)
            return record.to_entity() if record is not None else None

    async def find_by_external_id(
        self, entity_type: EntityType, external_id: str
    ) -> LibraryItem | None:
        variants = _external_id_variants(entity_type, external_id)
        statement = (
            select(LibraryItemRecord)
            .where(LibraryItemRecord.item_type == entity_type)
            .where(
                or_(*(LibraryItemRecord.external_api_id == value for value in variants))
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            record = (await session.execute(statement)).scalars().first()
            return record.to_entity() if record is not None else None

    async def list_by_type(self, entity_type: EntityType) -> list[LibraryItem]:
        statement = (
            select(LibraryItemRecord)
            .where(LibraryItemRecord.item_type == entity_type)
            .order_by(LibraryItemRecord.name)
        )
        async with self._session_factory() as session:
            records = (await session.execute(statement)).scalars().all()
        items: list[LibraryItem] = []
        for record in records:
            try:
                items.append(record.to_entity())
            except ValueError:
                logger.warning("Skipping unreadable library record %s", record.id)
        return items

    async def find_collection(self, collection_id: str) -> Collection | None:
        async with self._session_factory() as session:
            record = await session.get(CollectionRecord, collection_id)
            return record.to_collection() if record is not None else None
