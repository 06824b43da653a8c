"""
Data Transfer Objects for IGDB catalog records.

Hey future me - these DTOs are what IGDBClient hands to the batch processor.
They only live for one fetched page, nothing here is persisted directly.

Why DTOs and not the raw JSON dicts?
1. IGDB omits fields freely (a game without genres has NO "genres" key at all)
2. from_api() normalises all of that into empty lists / None once
3. The batch processor then never has to do ig.get("genres") or [] dances

Flow: IGDB JSON -> CatalogRecord.from_api() -> CatalogBatchProcessor -> ORM rows
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class LookupRef:
    """A genre, platform or keyword as embedded in a catalog record."""

    igdb_id: int
    name: str
    slug: str
    abbreviation: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "LookupRef":
        return cls(
            igdb_id=int(data["id"]),
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            abbreviation=data.get("abbreviation"),
        )


@dataclass(frozen=True)
class ImageRefDTO:
    """A screenshot or artwork reference."""

    image_id: str
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ImageRefDTO":
        return cls(
            image_id=str(data["image_id"]),
            width=data.get("width"),
            height=data.get("height"),
        )


@dataclass(frozen=True)
class WebsiteDTO:
    """An outbound website link with its IGDB category code."""

    url: str
    category: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WebsiteDTO":
        return cls(url=str(data["url"]), category=data.get("category"))


@dataclass
class CatalogRecord:
    """One game as returned by the IGDB ``games`` endpoint.

    Only ``igdb_id`` is guaranteed. IGDB also returns non-game entries without a
    name - the batch processor skips those (see ``has_name``).
    """

    igdb_id: int
    name: str | None = None
    slug: str | None = None
    summary: str | None = None
    first_release_date: int | None = None
    cover_image_id: str | None = None
    total_rating: float | None = None
    total_rating_count: int | None = None
    updated_at: int | None = None
    genres: list[LookupRef] = field(default_factory=list)
    platforms: list[LookupRef] = field(default_factory=list)
    keywords: list[LookupRef] = field(default_factory=list)
    screenshots: list[ImageRefDTO] = field(default_factory=list)
    artworks: list[ImageRefDTO] = field(default_factory=list)
    websites: list[WebsiteDTO] = field(default_factory=list)

    @property
    def has_name(self) -> bool:
        return bool(self.name)

    # Yo, nested objects are skipped when their required key is missing (a website
    # without url, an image without image_id) - IGDB does return those occasionally.
    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CatalogRecord":
        """Build a record from one element of the IGDB JSON array."""
        cover = data.get("cover") or {}
        return cls(
            igdb_id=int(data["id"]),
            name=data.get("name"),
            slug=data.get("slug"),
            summary=data.get("summary"),
            first_release_date=data.get("first_release_date"),
            cover_image_id=cover.get("image_id") if isinstance(cover, dict) else None,
            total_rating=data.get("total_rating"),
            total_rating_count=data.get("total_rating_count"),
            updated_at=data.get("updated_at"),
            genres=[LookupRef.from_api(g) for g in data.get("genres") or [] if "id" in g],
            platforms=[
                LookupRef.from_api(p) for p in data.get("platforms") or [] if "id" in p
            ],
            keywords=[
                LookupRef.from_api(k) for k in data.get("keywords") or [] if "id" in k
            ],
            screenshots=[
                ImageRefDTO.from_api(s)
                for s in data.get("screenshots") or []
                if s.get("image_id")
            ],
            artworks=[
                ImageRefDTO.from_api(a)
                for a in data.get("artworks") or []
                if a.get("image_id")
            ],
            websites=[
                WebsiteDTO.from_api(w) for w in data.get("websites") or [] if w.get("url")
            ],
        )


__all__ = [
    "CatalogRecord",
    "ImageRefDTO",
    "LookupRef",
    "WebsiteDTO",
]
