"""SQLAlchemy ORM models backing the persisted library."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base
from .models import Collection, LibraryItem


class LibraryItemRecord(Base):
    """A movie, series, anime, game or person saved to the library."""

    __tablename__ = "library_items"
    __table_args__ = (
        Index("ix_library_items_type_external", "item_type", "external_api_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_type: Mapped[str] = mapped_column(String(16), index=True)
    name: Mapped[str] = mapped_column(String(255))
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    genres: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    banner_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_api_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_entity(self) -> LibraryItem:
        details = None
        if self.details:
            details = {**self.details, "type": self.item_type}
        return LibraryItem.model_validate(
            {
                "id": self.id,
                "type": self.item_type,
                "name": self.name,
                "year": self.year,
                "genres": tuple(self.genres or ()),
                "poster_url": self.poster_url,
                "banner_url": self.banner_url,
                "score": self.score,
                "overview": self.overview,
                "external_api_id": self.external_api_id,
                "details": details,
            }
        )


class CollectionRecord(Base):
    """A named grouping of library items."""

    __tablename__ = "collections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    item_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    auto_match: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    match_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def to_collection(self) -> Collection:
        return Collection.model_validate(
            {
                "id": self.id,
                "name": self.name,
                "item_ids": tuple(self.item_ids or ()),
                "auto_match": bool(self.auto_match),
                "match_types": tuple(self.match_types or ()),
            }
        )
