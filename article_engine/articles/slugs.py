"""
Slug generation.

Slugs are built with python-slugify (which transliterates Vietnamese and
other non-ASCII text) and made unique by checking ``base``, ``base-1``,
``base-2`` and so on. The number of checks is bounded: once
``max_attempts`` suffixes are taken the slug gets a microsecond timestamp
suffix instead, without another check.
"""

import time
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Set

import structlog
from slugify import slugify

from ..config import get_settings

logger = structlog.get_logger()

ARTICLE_FALLBACK_SLUG = "article"
TAG_FALLBACK_SLUG = "tag"
SLUG_MAX_LENGTH = 200

# (candidate_slug, exclude_id) -> exists
SlugExists = Callable[[str, Optional[str]], Awaitable[bool]]


def make_slug(text: Optional[str], fallback: str = ARTICLE_FALLBACK_SLUG) -> str:
    """Normalize free text to a URL-safe base slug.

    Returns ``fallback`` when nothing URL-safe is left.
    """
    slug = slugify(text or "", max_length=SLUG_MAX_LENGTH, word_boundary=True, separator="-")
    return slug or fallback


def timestamp_suffix() -> str:
    return str(time.time_ns() // 1000)


def suffixed_candidates(base: str, max_attempts: int) -> List[str]:
    """``base`` followed by ``base-1`` .. ``base-max_attempts``."""
    return [base] + [f"{base}-{counter}" for counter in range(1, max_attempts + 1)]


class SlugGenerator:
    """Finds a slug not used by any other article.

    The result is unique when checked, not when persisted: two concurrent
    callers with the same title can both receive the same slug, and the
    unique index on ``articles.slug`` rejects the second insert.
    """

    def __init__(self, exists: SlugExists, max_attempts: Optional[int] = None):
        self.exists = exists
        self.max_attempts = max_attempts or get_settings().slug_max_attempts

    async def generate_unique_slug(self, source_text: Optional[str], exclude_id: Optional[str] = None) -> str:
        base = make_slug(source_text)
        for candidate in suffixed_candidates(base, self.max_attempts):
            if not await self.exists(candidate, exclude_id):
                return candidate

        slug = f"{base}-{timestamp_suffix()}"
        logger.warning(
            "slug_attempts_exhausted",
            base=base,
            attempts=self.max_attempts + 1,
            slug=slug,
        )
        return slug


def allocate_slugs(bases: Sequence[str], taken: Iterable[str], max_attempts: int) -> List[str]:
    """Resolve a batch of base slugs against known slugs without I/O.

    ``taken`` must contain every stored slug equal to or prefixed by one of
    the bases. Slugs handed out earlier in the batch count as taken for the
    later ones.
    """
    used: Set[str] = set(taken)
    allocated: List[str] = []
    for base in bases:
        slug = next(
            (candidate for candidate in suffixed_candidates(base, max_attempts) if candidate not in used),
            None,
        )
        if slug is None:
            slug = f"{base}-{timestamp_suffix()}"
            while slug in used:
                slug = f"{base}-{timestamp_suffix()}"
        used.add(slug)
        allocated.append(slug)
    return allocated
