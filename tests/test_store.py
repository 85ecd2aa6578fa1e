"""Tests for the in-memory and SQLAlchemy entity stores."""

from __future__ import annotations

import pytest

from mediatracker.database import Database
from mediatracker.db_models import CollectionRecord, LibraryItemRecord
from mediatracker.models import Collection, LibraryItem
from mediatracker.store import DatabaseEntityStore, InMemoryEntityStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_in_memory_store_matches_prefixed_and_bare_external_ids() -> None:
    store = InMemoryEntityStore(
        items=[
            LibraryItem(id="a", type="games", name="Hades", external_api_id="steam_1145360"),
            LibraryItem(id="b", type="movies", name="Heat", external_api_id="949"),
        ],
        collections=[Collection(id="c", name="Favourites", item_ids=("a",))],
    )

    assert (await store.find_by_external_id("games", "1145360")).id == "a"
    assert (await store.find_by_external_id("movies", "949")).id == "b"
    assert await store.find_by_external_id("tv", "949") is None
    assert [item.id for item in await store.list_by_type("games")] == ["a"]
    assert (await store.find_collection("c")).item_ids == ("a",)
    assert await store.find_by_id("missing") is None


@pytest.mark.anyio("asyncio")
async def test_database_store_reads_library_records(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    await database.create_all()
    async with database.session() as session:
        session.add_all(
            [
                LibraryItemRecord(
                    id="w3",
                    item_type="games",
                    name="The Witcher 3: Wild Hunt",
                    year=2015,
                    genres=["RPG"],
                    score=93.0,
                    external_api_id="steam_292030",
                    details={"developers": ["CD PROJEKT RED"]},
                ),
                LibraryItemRecord(id="w1", item_type="games", name="The Witcher", year=2007),
                LibraryItemRecord(id="m1", item_type="movies", name="Heat", external_api_id="949"),
                CollectionRecord(
                    id="rpg",
                    name="Witcher",
                    item_ids=["w1"],
                    auto_match=True,
                    match_types=["games"],
                ),
            ]
        )
        await session.commit()

    store = DatabaseEntityStore(database.session_factory)
    try:
        item = await store.find_by_id("w3")
        by_external = await store.find_by_external_id("games", "292030")
        games = await store.list_by_type("games")
        collection = await store.find_collection("rpg")
        missing = await store.find_by_external_id("movies", "292030")
    finally:
        await database.dispose()

    assert item is not None
    assert item.genres == ("RPG",)
    assert item.details is not None and item.details.developers == ("CD PROJEKT RED",)
    assert by_external is not None and by_external.id == "w3"
    assert [game.id for game in games] == ["w1", "w3"]
    assert collection == Collection(
        id="rpg", name="Witcher", item_ids=("w1",), auto_match=True, match_types=("games",)
    )
    assert missing is None
