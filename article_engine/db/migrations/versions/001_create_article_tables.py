"""create article tables

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="author"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_categories_slug", "categories", ["slug"], unique=True)

    op.create_table(
        "tags",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tags_slug", "tags", ["slug"], unique=True)

    op.create_table(
        "articles",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("excerpt", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum("draft", "published", "archived", name="article_status"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("featured", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("lang", sa.String(length=10), nullable=False, server_default="vi"),
        sa.Column("meta_title", sa.String(length=255), nullable=True),
        sa.Column("meta_description", sa.Text, nullable=True),
        sa.Column("focus_keyword", sa.String(length=255), nullable=True),
        sa.Column("cover_image", sa.Text, nullable=True),
        sa.Column("cover_image_alt", sa.String(length=255), nullable=True),
        sa.Column("author_id", sa.String(length=128), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("category_id", sa.String(length=128), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("word_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reading_time", sa.Integer, nullable=False, server_default="0"),
        sa.Column("internal_links", sa.JSON, nullable=False),
        sa.Column("external_links", sa.JSON, nullable=False),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_articles_slug", "articles", ["slug"], unique=True)
    op.create_index("ix_articles_status", "articles", ["status"])
    op.create_index("ix_articles_author_id", "articles", ["author_id"])
    op.create_index("ix_articles_created_at", "articles", ["created_at"])
    op.create_index("ix_articles_status_created_at", "articles", ["status", "created_at"])

    op.create_table(
        "article_categories",
        sa.Column("article_id", sa.String(length=128), sa.ForeignKey("articles.id"), primary_key=True),
        sa.Column("category_id", sa.String(length=128), sa.ForeignKey("categories.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "article_tags",
        sa.Column("article_id", sa.String(length=128), sa.ForeignKey("articles.id"), primary_key=True),
        sa.Column("tag_id", sa.String(length=128), sa.ForeignKey("tags.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("article_tags")
    op.drop_table("article_categories")
    op.drop_index("ix_articles_status_created_at", table_name="articles")
    op.drop_index("ix_articles_created_at", table_name="articles")
    op.drop_index("ix_articles_author_id", table_name="articles")
    op.drop_index("ix_articles_status", table_name="articles")
    op.drop_index("ix_articles_slug", table_name="articles")
    op.drop_table("articles")
    op.drop_index("ix_tags_slug", table_name="tags")
    op.drop_table("tags")
    op.drop_index("ix_categories_slug", table_name="categories")
    op.drop_table("categories")
    op.drop_table("user_profiles")
    sa.Enum(name="article_status").drop(op.get_bind(), checkfirst=True)
