"""
Articles: validation, content processing, slugs, queries and relationships.
"""

from .cache import ArticlesChanged, CacheInvalidationBus, QueryCache
from .enums import ArticleStatus, SortField, SortOrder
from .schemas import (
    ArticleFilters,
    ArticleInput,
    ArticlePage,
    ArticleStats,
    ArticleUpdate,
    ServiceResult,
)
from .service import ArticleService

__all__ = [
    "ArticleService",
    "ArticleStatus",
    "SortField",
    "SortOrder",
    "ArticleFilters",
    "ArticleInput",
    "ArticlePage",
    "ArticleStats",
    "ArticleUpdate",
    "ServiceResult",
    "ArticlesChanged",
    "CacheInvalidationBus",
    "QueryCache",
]
