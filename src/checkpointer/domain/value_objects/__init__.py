"""Domain value objects."""

from checkpointer.domain.value_objects.catalog import (
    IGDB_IMAGE_BASE_URL,
    WEBSITE_CATEGORY_MAP,
    ImageType,
    LinkCategory,
    igdb_cover_url,
    igdb_image_url,
    map_website_category,
)

__all__ = [
    "IGDB_IMAGE_BASE_URL",
    "WEBSITE_CATEGORY_MAP",
    "ImageType",
    "LinkCategory",
    "igdb_cover_url",
    "igdb_image_url",
    "map_website_category",
]
