"""
Canonical enums for articles.
"""

from enum import Enum


class ArticleStatus(str, Enum):
    """Article lifecycle status. Every transition between values is allowed."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class SortField(str, Enum):
    """Fields the article list can be ordered by."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    PUBLISHED_AT = "published_at"
    TITLE = "title"
    READING_TIME = "reading_time"
    VIEWS = "views"

    @property
    def column_name(self) -> str:
        """Name of the article column backing this sort field."""
        return "view_count" if self is SortField.VIEWS else self.value


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
