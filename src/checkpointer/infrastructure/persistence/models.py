"""SQLAlchemy ORM models for the Checkpointer game catalog."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - that's a "naive" datetime and causes bugs when servers sit in different timezones.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


def new_uuid() -> str:
    """Generate a new UUID4 string primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models.

    All models inherit from this to use the same metadata registry.
    """

    pass


# Listen up, GameModel is the CORE catalog entity. id is our own UUID (what the rest of the
# app - reviews, lists, sessions - points at); igdb_id is the provider key the sync upserts on.
# The sync only ever touches the IGDB-derived columns. rating/rating_count are derived from
# user reviews elsewhere and must NOT be overwritten by the sync. Games are never deleted by
# the sync either - stuff IGDB drops just stops getting updated.
class GameModel(Base):
    """A game in the catalog."""

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    igdb_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Not unique: IGDB occasionally re-assigns slugs and two rows can briefly collide
    slug: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    release_date: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # User-review aggregate (maintained by the review endpoints, not the sync)
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    rating_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    # IGDB total_rating (0-100)
    igdb_rating: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    genres: Mapped[list["GenreModel"]] = relationship(
        "GenreModel", secondary="game_genres", viewonly=True
    )
    platforms: Mapped[list["PlatformModel"]] = relationship(
        "PlatformModel", secondary="game_platforms", viewonly=True
    )
    keywords: Mapped[list["KeywordModel"]] = relationship(
        "KeywordModel", secondary="game_keywords", viewonly=True
    )
    images: Mapped[list["GameImageModel"]] = relationship(
        "GameImageModel",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameImageModel.position",
    )
    links: Mapped[list["GameLinkModel"]] = relationship(
        "GameLinkModel", back_populates="game", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("games_name_idx", "name"),
        Index("games_igdb_idx", "igdb_id"),
    )


# Hey future me - lookup entities are created ONCE (first time a game references them) and
# never updated afterwards. Both igdb_id and name are unique, so an insert-ignore on a genre
# that was renamed upstream is simply skipped.
class GenreModel(Base):
    """Game genre (RPG, Shooter, ...)."""

    __tablename__ = "genres"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    igdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    __table_args__ = (
        Index("genres_name_idx", "name"),
        Index("genres_igdb_idx", "igdb_id"),
    )


class PlatformModel(Base):
    """Gaming platform (PC, PlayStation 5, ...)."""

    __tablename__ = "platforms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    igdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    abbreviation: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("platforms_name_idx", "name"),
        Index("platforms_igdb_idx", "igdb_id"),
    )


class KeywordModel(Base):
    """Free-form IGDB keyword."""

    __tablename__ = "keywords"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    igdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    __table_args__ = (
        Index("keywords_name_idx", "name"),
        Index("keywords_igdb_idx", "igdb_id"),
    )


# Yo, junction tables use a composite primary key so an insert-ignore of the same pair is a
# no-op. ON DELETE CASCADE on both sides: deleting a game (admin only) cleans up its links.
class GameGenreModel(Base):
    """game <-> genre association."""

    __tablename__ = "game_genres"

    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    genre_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        Index("game_genres_game_idx", "game_id"),
        Index("game_genres_genre_idx", "genre_id"),
    )


class GamePlatformModel(Base):
    """game <-> platform association."""

    __tablename__ = "game_platforms"

    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    platform_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("platforms.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        Index("game_platforms_game_idx", "game_id"),
        Index("game_platforms_platform_idx", "platform_id"),
    )


class GameKeywordModel(Base):
    """game <-> keyword association."""

    __tablename__ = "game_keywords"

    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    keyword_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("keywords.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        Index("game_keywords_game_idx", "game_id"),
        Index("game_keywords_keyword_idx", "keyword_id"),
    )


class GameImageModel(Base):
    """Screenshot/artwork of a game.

    image_type is 'screenshot', 'artwork' or 'cover' (see ImageType). position is the
    index within IGDB's list for that type so the gallery keeps IGDB's ordering.
    """

    __tablename__ = "game_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    igdb_image_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_type: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    game: Mapped["GameModel"] = relationship("GameModel", back_populates="images")

    __table_args__ = (
        Index("game_images_game_idx", "game_id"),
        Index("game_images_type_idx", "game_id", "image_type"),
    )


class GameLinkModel(Base):
    """Outbound link of a game (store page, socials, wiki...)."""

    __tablename__ = "game_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)

    game: Mapped["GameModel"] = relationship("GameModel", back_populates="links")

    __table_args__ = (Index("game_links_game_idx", "game_id"),)


# =============================================================================
# APP SETTINGS MODEL (key -> JSON value)
# =============================================================================
# Hey future me - generic key-value storage. The catalog sync keeps its checkpoint
# here under the key "igdb_sync_state" (see SyncStateRepository). Admin-editable
# settings live in the same table under other keys.
# =============================================================================


class AppSettingsModel(Base):
    """Key-value application settings stored in the DB."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
