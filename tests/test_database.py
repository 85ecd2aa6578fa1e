from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect, text

from mediatracker.database import Database


def _initialise_legacy_schema(database_path: str) -> None:
    """Create library tables from before external ids, details and auto-matching."""

    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE library_items (
                        id VARCHAR(64) PRIMARY KEY,
                        item_type VARCHAR(16),
                        name VARCHAR(255),
                        year INTEGER,
                        genres JSON,
                        poster_url VARCHAR(1024),
                        banner_url VARCHAR(1024),
                        score FLOAT,
                        overview TEXT,
                        created_at DATETIME,
                        updated_at DATETIME
                    )
                    """
                )
            )
            connection.execute(
                text(
                    """
                    CREATE TABLE collections (
                        id VARCHAR(64) PRIMARY KEY,
                        name VARCHAR(255),
                        item_ids JSON,
                        created_at DATETIME
                    )
                    """
                )
            )
            connection.execute(
                text("INSERT INTO collections (id, name, item_ids) VALUES ('c1', 'Marvel', '[]')")
            )
    finally:
        engine.dispose()


def test_create_all_adds_missing_columns(tmp_path) -> None:
    """Schema migrations should backfill columns added after the first release."""

    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        item_columns = {column["name"] for column in inspector.get_columns("library_items")}
        collection_columns = {column["name"] for column in inspector.get_columns("collections")}
        with inspector_engine.connect() as connection:
            row = connection.execute(
                text("SELECT auto_match, match_types FROM collections WHERE id = 'c1'")
            ).one()
    finally:
        inspector_engine.dispose()

    assert {"external_api_id", "details"} <= item_columns
    assert {"auto_match", "match_types"} <= collection_columns
    assert row[0] == 0
    assert row[1] == "[]"


def test_create_all_on_fresh_database(tmp_path) -> None:
    database_path = tmp_path / "fresh.db"

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        tables = set(inspect(inspector_engine).get_table_names())
    finally:
        inspector_engine.dispose()

    assert {"library_items", "collections"} <= tables
