"""
SQLAlchemy models for the article engine.

Articles reference a primary category and an author by scalar columns; the
full category and tag sets live in join tables keyed by the (article, entity)
pair. Join rows carry no ON DELETE cascade: the engine removes them itself
before deleting an article.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from ulid import ULID

from .base import Base


def generate_id() -> str:
    """Generate a lexicographically sortable ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def tag_name_key(name: str) -> str:
    """Case-insensitive lookup key for a tag name.

    Folded in Python so matching does not depend on the database's
    ``lower()``, which on SQLite only folds ASCII.
    """
    return name.strip().casefold()


def _default_name_key(context) -> str:
    return tag_name_key(context.get_current_parameters()["name"])


# =============================================================================
# Join Tables for Many-to-Many Relationships
# =============================================================================

article_categories = Table(
    "article_categories",
    Base.metadata,
    Column("article_id", String(128), ForeignKey("articles.id"), primary_key=True),
    Column("category_id", String(128), ForeignKey("categories.id"), primary_key=True),
    Column("created_at", DateTime(timezone=True), default=utc_now),
)

article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article_id", String(128), ForeignKey("articles.id"), primary_key=True),
    Column("tag_id", String(128), ForeignKey("tags.id"), primary_key=True),
    Column("created_at", DateTime(timezone=True), default=utc_now),
)


article_status_enum = Enum("draft", "published", "archived", name="article_status")


class UserProfileModel(Base):
    """Author profile, read for list enrichment."""

    __tablename__ = "user_profiles"

    id = Column(String(128), primary_key=True, default=generate_id)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default="author")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
        }


class CategoryModel(Base):
    """Named category."""

    __tablename__ = "categories"

    id = Column(String(128), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
        }


class TagModel(Base):
    """Named tag; name, casefolded name and slug are all unique."""

    __tablename__ = "tags"

    id = Column(String(128), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, unique=True)
    name_key = Column(String(255), nullable=False, unique=True, default=_default_name_key)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
        }


class ArticleModel(Base):
    """SQLAlchemy model for articles."""

    __tablename__ = "articles"

    # Primary fields
    id = Column(String(128), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    status = Column(article_status_enum, nullable=False, default="draft", index=True)
    featured = Column(Boolean, nullable=False, default=False)
    lang = Column(String(10), nullable=False, default="vi")

    # SEO
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    focus_keyword = Column(String(255), nullable=True)
    cover_image = Column(Text, nullable=True)
    cover_image_alt = Column(String(255), nullable=True)

    # References
    author_id = Column(String(128), ForeignKey("user_profiles.id"), nullable=True, index=True)
    category_id = Column(String(128), ForeignKey("categories.id"), nullable=True)

    # Derived content metrics
    word_count = Column(Integer, nullable=False, default=0)
    reading_time = Column(Integer, nullable=False, default=0)
    internal_links = Column(JSON, nullable=False, default=list)
    external_links = Column(JSON, nullable=False, default=list)
    view_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    published_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_articles_status_created_at", "status", "created_at"),
        Index("ix_articles_created_at", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "excerpt": self.excerpt,
            "status": self.status,
            "featured": self.featured,
            "lang": self.lang,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "focus_keyword": self.focus_keyword,
            "cover_image": self.cover_image,
            "cover_image_alt": self.cover_image_alt,
            "author_id": self.author_id,
            "category_id": self.category_id,
            "word_count": self.word_count,
            "reading_time": self.reading_time,
            "internal_links": self.internal_links or [],
            "external_links": self.external_links or [],
            "view_count": self.view_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "published_at": _iso(self.published_at),
        }
