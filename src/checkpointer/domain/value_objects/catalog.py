"""Catalog value objects: link categories, image types and IGDB image URLs.

Hey future me - the website category codes come from IGDB's ``websites.category``
enum. We only keep the ones the game page renders with a dedicated icon; the rest
(wikia, facebook, instagram, app stores...) collapse into OTHER. Unknown codes
(IGDB adds new ones every now and then) also land in OTHER instead of failing.
"""

from enum import Enum


class LinkCategory(str, Enum):
    """Category of an outbound game link."""

    OFFICIAL = "official"
    STEAM = "steam"
    GOG = "gog"
    EPIC = "epic"
    ITCH = "itch"
    WIKIPEDIA = "wikipedia"
    TWITTER = "twitter"
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    TWITCH = "twitch"
    DISCORD = "discord"
    OTHER = "other"


class ImageType(str, Enum):
    """Type of a stored game image."""

    SCREENSHOT = "screenshot"
    ARTWORK = "artwork"
    COVER = "cover"


WEBSITE_CATEGORY_MAP: dict[int, LinkCategory] = {
    1: LinkCategory.OFFICIAL,
    2: LinkCategory.OTHER,  # wikia
    3: LinkCategory.WIKIPEDIA,
    4: LinkCategory.OTHER,  # facebook
    5: LinkCategory.TWITTER,
    6: LinkCategory.TWITCH,
    8: LinkCategory.OTHER,  # instagram
    9: LinkCategory.YOUTUBE,
    10: LinkCategory.OTHER,  # iphone
    11: LinkCategory.OTHER,  # ipad
    12: LinkCategory.OTHER,  # android
    13: LinkCategory.STEAM,
    14: LinkCategory.REDDIT,
    15: LinkCategory.ITCH,
    16: LinkCategory.EPIC,
    17: LinkCategory.GOG,
    18: LinkCategory.DISCORD,
}

IGDB_IMAGE_BASE_URL = "https://images.igdb.com/igdb/image/upload"


def map_website_category(category: int | None) -> LinkCategory:
    """Map an IGDB website category code to a LinkCategory (OTHER if unknown)."""
    if category is None:
        return LinkCategory.OTHER
    return WEBSITE_CATEGORY_MAP.get(category, LinkCategory.OTHER)


def igdb_cover_url(image_id: str) -> str:
    """Build the cover URL (t_cover_big, 264x374) for an IGDB image id."""
    return f"{IGDB_IMAGE_BASE_URL}/t_cover_big/{image_id}.jpg"


def igdb_image_url(image_id: str) -> str:
    """Build the full-size URL (t_1080p) for a screenshot or artwork image id."""
    return f"{IGDB_IMAGE_BASE_URL}/t_1080p/{image_id}.jpg"
