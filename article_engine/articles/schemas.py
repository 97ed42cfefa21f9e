"""
Typed payloads and results for the article engine.

Editors submit ``ArticleInput``/``ArticleUpdate`` which accept almost anything;
only the validator turns them into the frozen ``ValidatedArticle`` and
``ValidatedUpdate`` that the rest of the engine accepts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ArticleEngineError
from ..errors import ValidationError as ArticleValidationError
from .enums import ArticleStatus, SortField, SortOrder

T = TypeVar("T")

# Scalar columns an editor may set directly on the article row.
EDITABLE_FIELDS = (
    "title",
    "content",
    "excerpt",
    "status",
    "featured",
    "lang",
    "meta_title",
    "meta_description",
    "focus_keyword",
    "cover_image",
    "cover_image_alt",
)

# Editable columns that may not be set to NULL.
NON_NULLABLE_FIELDS = ("title", "content", "status", "featured", "lang")


# =============================================================================
# Inputs
# =============================================================================


class ArticleInput(BaseModel):
    """Raw create payload as submitted by an editor."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    content: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    status: ArticleStatus = ArticleStatus.DRAFT
    featured: bool = False
    lang: str = "vi"

    # SEO
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    focus_keyword: Optional[str] = None
    cover_image: Optional[str] = None
    cover_image_alt: Optional[str] = None

    # Relationships
    author_id: Optional[str] = None
    category_id: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class ArticleUpdate(BaseModel):
    """Partial update payload. Only fields explicitly sent are applied."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    content: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    status: Optional[ArticleStatus] = None
    featured: Optional[bool] = None
    lang: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    focus_keyword: Optional[str] = None
    cover_image: Optional[str] = None
    cover_image_alt: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class ValidatedArticle(BaseModel):
    """A create payload that passed validation, with title and content trimmed."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    status: ArticleStatus = ArticleStatus.DRAFT
    featured: bool = False
    lang: str = "vi"
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    focus_keyword: Optional[str] = None
    cover_image: Optional[str] = None
    cover_image_alt: Optional[str] = None
    author_id: Optional[str] = None
    category_id: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    def row_fields(self) -> Dict[str, Any]:
        """Scalar column values for the article row, minus derived fields."""
        values = {name: getattr(self, name) for name in EDITABLE_FIELDS}
        values["status"] = self.status.value
        values["category_id"] = self.category_ids[0] if self.category_ids else None
        return values

    @property
    def category_ids(self) -> List[str]:
        """Desired category set with the primary category first."""
        ordered: List[str] = []
        for category_id in [self.category_id, *(self.categories or [])]:
            if category_id and category_id not in ordered:
                ordered.append(category_id)
        return ordered


class ValidatedUpdate(BaseModel):
    """A partial update that passed validation.

    ``fields`` holds only the scalar columns the caller sent; relationship
    lists stay ``None`` when they were not part of the update.
    """

    model_config = ConfigDict(frozen=True)

    fields: Dict[str, Any] = Field(default_factory=dict)
    slug: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @property
    def is_empty(self) -> bool:
        return not self.fields and self.slug is None and self.categories is None and self.tags is None


class ArticleFilters(BaseModel):
    """Filters and ordering for the article list."""

    search: Optional[str] = None
    status: Optional[Union[ArticleStatus, Literal["all"]]] = None
    author_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    def cache_key(self, page: int, limit: int) -> str:
        status = self.status.value if isinstance(self.status, ArticleStatus) else self.status or "all"
        return ":".join(
            [
                "articles",
                str(page),
                str(limit),
                self.search or "",
                status,
                self.author_id or "",
                self.date_from.isoformat() if self.date_from else "",
                self.date_to.isoformat() if self.date_to else "",
                self.sort_by.value,
                self.sort_order.value,
            ]
        )


# =============================================================================
# Content analysis
# =============================================================================


class LinkInfo(BaseModel):
    """A hyperlink found in article content."""

    model_config = ConfigDict(frozen=True)

    url: str
    text: str
    domain: Optional[str] = None


class LinkAnalysis(BaseModel):
    internal_links: List[LinkInfo] = Field(default_factory=list)
    external_links: List[LinkInfo] = Field(default_factory=list)

    @property
    def total_links(self) -> int:
        return len(self.internal_links) + len(self.external_links)

    def summary(self) -> Dict[str, Any]:
        return {
            "internal_links": [link.model_dump(exclude_none=True) for link in self.internal_links],
            "external_links": [link.model_dump(exclude_none=True) for link in self.external_links],
            "total_links": self.total_links,
            "internal_count": len(self.internal_links),
            "external_count": len(self.external_links),
        }


class ContentMetrics(BaseModel):
    """Everything derived from an article body."""

    model_config = ConfigDict(frozen=True)

    word_count: int
    reading_time: int
    links: LinkAnalysis

    def row_fields(self) -> Dict[str, Any]:
        summary = self.links.summary()
        return {
            "word_count": self.word_count,
            "reading_time": self.reading_time,
            "internal_links": summary["internal_links"],
            "external_links": summary["external_links"],
        }


# =============================================================================
# Results
# =============================================================================


class ArticlePage(BaseModel):
    """One page of the article list plus pagination math."""

    articles: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, articles: List[Dict[str, Any]], total: int, page: int, limit: int) -> "ArticlePage":
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            articles=articles,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ArticleStats(BaseModel):
    total: int = 0
    published: int = 0
    draft: int = 0
    archived: int = 0
    total_views: int = 0
    avg_reading_time: float = 0.0
    recent_articles: int = 0


@dataclass
class ValidationResult(Generic[T]):
    """Outcome of validation. ``value`` is set only when ``ok``."""

    ok: bool
    value: Optional[T] = None
    error: Optional[ArticleValidationError] = None


@dataclass
class ReconcileOutcome:
    """What a reconciliation call actually wrote."""

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    primary_updated: bool = False
    touched: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.primary_updated)

    @property
    def writes(self) -> int:
        return len(self.added) + len(self.removed) + int(self.primary_updated) + int(self.touched)


@dataclass
class RecalculationReport:
    processed: int = 0
    updated: int = 0
    failed_batches: int = 0


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (ReconcileOutcome, RecalculationReport)):
        data = dict(value.__dict__)
        if isinstance(value, ReconcileOutcome):
            data["changed"] = value.changed
        return data
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


@dataclass
class ServiceResult(Generic[T]):
    """Uniform ``{data, error}`` shape returned by every service operation."""

    data: Optional[T] = None
    error: Optional[ArticleEngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": _dump(self.data),
            "error": self.error.to_dict() if self.error is not None else None,
        }
