"""
Database package for the article engine.
"""

from .base import Base, get_engine, get_session_local, init_database
from .models import (
    ArticleModel,
    CategoryModel,
    TagModel,
    UserProfileModel,
    article_categories,
    article_tags,
)
from .store import Store

__all__ = [
    "Base",
    "get_engine",
    "get_session_local",
    "init_database",
    "Store",
    "ArticleModel",
    "CategoryModel",
    "TagModel",
    "UserProfileModel",
    "article_categories",
    "article_tags",
]
