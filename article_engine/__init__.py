"""
Article Engine

Persistence and relationship reconciliation for CMS articles.
"""

import importlib.metadata

__version__ = importlib.metadata.version("article-engine")

from .articles.service import ArticleService
from .errors import (
    ArticleEngineError,
    ErrorCode,
    NotFoundError,
    PartialFailureError,
    PersistenceError,
    UnexpectedError,
    ValidationError,
)

__all__ = [
    "ArticleService",
    "ArticleEngineError",
    "ErrorCode",
    "NotFoundError",
    "PartialFailureError",
    "PersistenceError",
    "UnexpectedError",
    "ValidationError",
]
