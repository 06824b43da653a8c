"""create catalog schema (games, lookups, junctions, images, links, app_settings)

Revision ID: a1c0ffee0001
Revises:
Create Date: 2026-03-02 10:00:00.000000

Hey future me - THE INITIAL CATALOG SCHEMA!

Everything the IGDB sync writes:
- games             core rows, upserted on igdb_id (unique)
- genres/platforms/keywords   lookup rows, created once, never updated
- game_genres/game_platforms/game_keywords   junctions, composite PK = natural dedupe
- game_images/game_links      per-game media + outbound links
- app_settings      key -> JSON, holds the sync checkpoint ("igdb_sync_state")

KEY DESIGN DECISIONS:
1. UUID string primary keys everywhere (String(36)), igdb_id is just a unique column
2. games.slug is indexed but NOT unique (IGDB slugs can collide briefly)
3. Every child table cascades on game delete
4. UniqueConstraints are inline - SQLite can't ALTER TABLE ADD CONSTRAINT
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c0ffee0001"
down_revision = None
branch_labels = None
depends_on = None


def _lookup_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("igdb_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        *extra,
        sa.UniqueConstraint("igdb_id", name=f"uq_{name}_igdb_id"),
        sa.UniqueConstraint("name", name=f"uq_{name}_name"),
        sa.UniqueConstraint("slug", name=f"uq_{name}_slug"),
    )
    op.create_index(f"{name}_name_idx", name, ["name"])
    op.create_index(f"{name}_igdb_idx", name, ["igdb_id"])


def _junction_table(name: str, other_column: str, other_table: str) -> None:
    op.create_table(
        name,
        sa.Column(
            "game_id",
            sa.String(36),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            other_column,
            sa.String(36),
            sa.ForeignKey(f"{other_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index(f"{name}_game_idx", name, ["game_id"])
    op.create_index(f"{name}_{other_column.removesuffix('_id')}_idx", name, [other_column])


def upgrade() -> None:
    """Create all catalog tables."""
    op.create_table(
        "games",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("igdb_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("release_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cover_url", sa.Text(), nullable=True),
        # User-review aggregate, never written by the sync
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        # IGDB total_rating, 0-100
        sa.Column("igdb_rating", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("igdb_id", name="uq_games_igdb_id"),
    )
    op.create_index("games_name_idx", "games", ["name"])
    op.create_index("games_igdb_idx", "games", ["igdb_id"])
    op.create_index("ix_games_slug", "games", ["slug"])

    _lookup_table("genres")
    _lookup_table("platforms", sa.Column("abbreviation", sa.Text(), nullable=True))
    _lookup_table("keywords")

    _junction_table("game_genres", "genre_id", "genres")
    _junction_table("game_platforms", "platform_id", "platforms")
    _junction_table("game_keywords", "keyword_id", "keywords")

    op.create_table(
        "game_images",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "game_id",
            sa.String(36),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("igdb_image_id", sa.Text(), nullable=True),
        # image_type: "screenshot", "artwork", "cover"
        sa.Column("image_type", sa.String(20), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("game_images_game_idx", "game_images", ["game_id"])
    op.create_index("game_images_type_idx", "game_images", ["game_id", "image_type"])

    op.create_table(
        "game_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "game_id",
            sa.String(36),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        # category: official, steam, gog, epic, itch, wikipedia, twitter,
        # reddit, youtube, twitch, discord, other
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("label", sa.Text(), nullable=True),
    )
    op.create_index("game_links_game_idx", "game_links", ["game_id"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    """Drop all catalog tables (children first)."""
    op.drop_table("app_settings")
    op.drop_table("game_links")
    op.drop_table("game_images")
    op.drop_table("game_keywords")
    op.drop_table("game_platforms")
    op.drop_table("game_genres")
    op.drop_table("keywords")
    op.drop_table("platforms")
    op.drop_table("genres")
    op.drop_table("games")
