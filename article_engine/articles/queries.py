"""
Query layer for articles.

Listing issues one query for the page (rows, primary category and total
count in the same round trip), then loads categories, tags and authors for
exactly the ids on the page with up to three ``IN`` queries run concurrently.
Relations are joined in memory; nothing is fetched per row.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import Select, case, delete, func, or_, select, update
from sqlalchemy.orm import Session

from ..db.models import (
    ArticleModel,
    CategoryModel,
    TagModel,
    UserProfileModel,
    article_categories,
    article_tags,
    utc_now,
)
from ..db.store import Store
from .enums import ArticleStatus, SortOrder
from .schemas import ArticleFilters, ArticleStats

logger = structlog.get_logger()

RECENT_WINDOW = timedelta(days=7)
LIKE_ESCAPE = "\\"

# An article row paired with its primary category, both as plain dicts.
ArticleRow = Tuple[Dict[str, Any], Optional[Dict[str, Any]]]


# =============================================================================
# Statement builders
# =============================================================================


def like_pattern(text: str) -> str:
    """Substring pattern matching ``text`` literally, wildcards included."""
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


def apply_filters(stmt: Select, filters: ArticleFilters) -> Select:
    if filters.search:
        pattern = like_pattern(filters.search)
        stmt = stmt.where(
            or_(
                ArticleModel.title.ilike(pattern, escape=LIKE_ESCAPE),
                ArticleModel.content.ilike(pattern, escape=LIKE_ESCAPE),
                ArticleModel.excerpt.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    if filters.status and filters.status != "all":
        stmt = stmt.where(ArticleModel.status == ArticleStatus(filters.status).value)
    if filters.author_id:
        stmt = stmt.where(ArticleModel.author_id == filters.author_id)
    if filters.date_from:
        stmt = stmt.where(ArticleModel.created_at >= filters.date_from)
    if filters.date_to:
        stmt = stmt.where(ArticleModel.created_at <= filters.date_to)
    return stmt


def apply_ordering(stmt: Select, filters: ArticleFilters) -> Select:
    column = getattr(ArticleModel, filters.sort_by.column_name)
    if filters.sort_order == SortOrder.ASC:
        return stmt.order_by(column.asc(), ArticleModel.id.asc())
    return stmt.order_by(column.desc(), ArticleModel.id.desc())


def _with_primary_category(*columns: Any) -> Select:
    return select(ArticleModel, CategoryModel, *columns).outerjoin(
        CategoryModel, CategoryModel.id == ArticleModel.category_id
    )


def _row(article: ArticleModel, category: Optional[CategoryModel]) -> ArticleRow:
    return article.to_dict(), category.to_dict() if category is not None else None


# =============================================================================
# Session work (runs inside Store.run)
# =============================================================================


def _fetch_page(session: Session, filters: ArticleFilters, page: int, limit: int) -> Tuple[List[ArticleRow], int]:
    stmt = _with_primary_category(func.count().over().label("total_count"))
    stmt = apply_ordering(apply_filters(stmt, filters), filters)
    stmt = stmt.offset((page - 1) * limit).limit(limit)

    result = session.execute(stmt).all()
    rows = [_row(article, category) for article, category, _ in result]
    total = result[0].total_count if result else 0
    return rows, total


def _count(session: Session, filters: ArticleFilters) -> int:
    stmt = apply_filters(select(func.count()).select_from(ArticleModel), filters)
    return session.execute(stmt).scalar_one()


def _fetch_one(session: Session, column_name: str, value: str) -> Optional[ArticleRow]:
    column = getattr(ArticleModel, column_name)
    found = session.execute(_with_primary_category().where(column == value)).first()
    if found is None:
        return None
    return _row(*found)


def _categories_for(session: Session, article_ids: Sequence[str]) -> Dict[str, List[Dict[str, Any]]]:
    stmt = (
        select(article_categories.c.article_id, CategoryModel)
        .join(CategoryModel, CategoryModel.id == article_categories.c.category_id)
        .where(article_categories.c.article_id.in_(article_ids))
        .order_by(CategoryModel.name)
    )
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for article_id, category in session.execute(stmt):
        grouped.setdefault(article_id, []).append(category.to_dict())
    return grouped


def _tags_for(session: Session, article_ids: Sequence[str]) -> Dict[str, List[Dict[str, Any]]]:
    stmt = (
        select(article_tags.c.article_id, TagModel)
        .join(TagModel, TagModel.id == article_tags.c.tag_id)
        .where(article_tags.c.article_id.in_(article_ids))
        .order_by(TagModel.name)
    )
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for article_id, tag in session.execute(stmt):
        grouped.setdefault(article_id, []).append(tag.to_dict())
    return grouped


def _authors_for(session: Session, author_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    stmt = select(UserProfileModel).where(UserProfileModel.id.in_(author_ids))
    return {author.id: author.to_dict() for author in session.scalars(stmt)}


def _slug_exists(session: Session, slug: str, exclude_id: Optional[str]) -> bool:
    stmt = select(func.count()).select_from(ArticleModel).where(ArticleModel.slug == slug)
    if exclude_id:
        stmt = stmt.where(ArticleModel.id != exclude_id)
    return session.execute(stmt).scalar_one() > 0


def _insert_article(session: Session, values: Dict[str, Any]) -> Dict[str, Any]:
    article = ArticleModel(**values)
    session.add(article)
    session.flush()
    return article.to_dict()


def _update_article(session: Session, article_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    article = session.get(ArticleModel, article_id)
    if article is None:
        return None

    now = utc_now()
    entering_published = (
        values.get("status") == ArticleStatus.PUBLISHED.value and article.status != ArticleStatus.PUBLISHED.value
    )
    for name, value in values.items():
        setattr(article, name, value)
    if entering_published:
        article.published_at = now
    article.updated_at = now
    session.flush()
    return article.to_dict()


def _existing_ids(session: Session, article_ids: Sequence[str]) -> List[str]:
    """The subset of ``article_ids`` that exist, in the given order."""
    found = set(session.scalars(select(ArticleModel.id).where(ArticleModel.id.in_(article_ids))))
    return [article_id for article_id in article_ids if article_id in found]


def _bulk_update_fields(session: Session, article_ids: Sequence[str], values: Dict[str, Any]) -> int:
    """One UPDATE for every listed article; returns the matched row count."""
    stmt = (
        update(ArticleModel)
        .where(ArticleModel.id.in_(article_ids))
        .values(**values, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount or 0


def _bulk_update_status(session: Session, article_ids: Sequence[str], status: str) -> int:
    values: Dict[str, Any] = {"status": status}
    if status == ArticleStatus.PUBLISHED.value:
        values["published_at"] = case(
            (ArticleModel.status != ArticleStatus.PUBLISHED.value, utc_now()),
            else_=ArticleModel.published_at,
        )
    return _bulk_update_fields(session, article_ids, values)


def _delete_associations(session: Session, article_ids: Sequence[str]) -> None:
    session.execute(delete(article_categories).where(article_categories.c.article_id.in_(article_ids)))
    session.execute(delete(article_tags).where(article_tags.c.article_id.in_(article_ids)))


def _delete_articles(session: Session, article_ids: Sequence[str]) -> int:
    stmt = delete(ArticleModel).where(ArticleModel.id.in_(article_ids)).execution_options(synchronize_session=False)
    return session.execute(stmt).rowcount or 0


def _fetch_content_batch(session: Session, after_id: Optional[str], limit: int) -> List[Dict[str, Any]]:
    stmt = select(
        ArticleModel.id,
        ArticleModel.content,
        ArticleModel.word_count,
        ArticleModel.reading_time,
    ).order_by(ArticleModel.id).limit(limit)
    if after_id is not None:
        stmt = stmt.where(ArticleModel.id > after_id)
    return [dict(row._mapping) for row in session.execute(stmt)]


def _apply_metrics_batch(session: Session, rows: List[Dict[str, Any]]) -> int:
    # ORM bulk UPDATE by primary key: one executemany for the whole batch
    session.execute(update(ArticleModel), rows)
    return len(rows)


def _stats(session: Session, since: datetime) -> ArticleStats:
    def status_count(status: ArticleStatus):
        return func.coalesce(func.sum(case((ArticleModel.status == status.value, 1), else_=0)), 0)

    stmt = select(
        func.count(ArticleModel.id),
        status_count(ArticleStatus.PUBLISHED),
        status_count(ArticleStatus.DRAFT),
        status_count(ArticleStatus.ARCHIVED),
        func.coalesce(func.sum(ArticleModel.view_count), 0),
        func.coalesce(func.avg(ArticleModel.reading_time), 0),
        func.coalesce(func.sum(case((ArticleModel.created_at >= since, 1), else_=0)), 0),
    )
    total, published, draft, archived, views, avg_reading, recent = session.execute(stmt).one()
    return ArticleStats(
        total=total,
        published=published,
        draft=draft,
        archived=archived,
        total_views=views,
        avg_reading_time=round(float(avg_reading), 1),
        recent_articles=recent,
    )


# =============================================================================
# Enrichment
# =============================================================================


def merge_categories(
    primary: Optional[Dict[str, Any]], linked: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Primary category first, then junction categories not already present."""
    merged = [primary] if primary else []
    seen = {category["id"] for category in merged}
    for category in linked:
        if category["id"] not in seen:
            seen.add(category["id"])
            merged.append(category)
    return merged


def enrich_article(
    article: Dict[str, Any],
    primary: Optional[Dict[str, Any]],
    categories: List[Dict[str, Any]],
    tags: List[Dict[str, Any]],
    author: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    categories = merge_categories(primary, categories)
    article.update(
        category=primary,
        categories=categories,
        category_ids=[category["id"] for category in categories],
        category_names=[category["name"] for category in categories],
        tags=tags,
        tag_names=[tag["name"] for tag in tags],
        author=author,
        author_name=author["full_name"] if author else None,
    )
    return article


class ArticleQueries:
    """Article reads and writes, each one store round trip."""

    def __init__(self, store: Store):
        self.store = store

    async def list_articles(
        self, page: int, limit: int, filters: ArticleFilters
    ) -> Tuple[List[Dict[str, Any]], int]:
        rows, total = await self.store.run("list_articles", _fetch_page, filters, page, limit)
        if not rows:
            if page > 1:
                # Past the last page the windowed count has no row to ride on
                total = await self.store.run("count_articles", _count, filters)
            return [], total

        return await self.attach_relations(rows), total

    async def attach_relations(self, rows: List[ArticleRow]) -> List[Dict[str, Any]]:
        """Load categories, tags and authors for a set of rows in batch."""
        if not rows:
            return []

        article_ids = [article["id"] for article, _ in rows]
        author_ids = sorted({article["author_id"] for article, _ in rows if article["author_id"]})

        loads = [
            self.store.run("load_article_categories", _categories_for, article_ids),
            self.store.run("load_article_tags", _tags_for, article_ids),
        ]
        if author_ids:
            loads.append(self.store.run("load_authors", _authors_for, author_ids))
        results = await asyncio.gather(*loads)

        categories_by_article, tags_by_article = results[0], results[1]
        authors = results[2] if author_ids else {}

        return [
            enrich_article(
                article,
                primary,
                categories_by_article.get(article["id"], []),
                tags_by_article.get(article["id"], []),
                authors.get(article["author_id"]),
            )
            for article, primary in rows
        ]

    async def get_by_id(self, article_id: str) -> Optional[Dict[str, Any]]:
        row = await self.store.run("get_article", _fetch_one, "id", article_id)
        if row is None:
            return None
        return (await self.attach_relations([row]))[0]

    async def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        row = await self.store.run("get_article_by_slug", _fetch_one, "slug", slug)
        if row is None:
            return None
        return (await self.attach_relations([row]))[0]

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return await self.store.run("check_slug", _slug_exists, slug, exclude_id)

    async def insert_article(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return await self.store.run("insert_article", _insert_article, values)

    async def update_article(self, article_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply scalar changes; stamps ``updated_at`` and ``published_at`` on publish."""
        return await self.store.run("update_article", _update_article, article_id, values)

    async def bulk_update_status(self, article_ids: Sequence[str], status: ArticleStatus) -> int:
        return await self.store.run("bulk_update_status", _bulk_update_status, list(article_ids), status.value)

    async def bulk_update_fields(self, article_ids: Sequence[str], values: Dict[str, Any]) -> int:
        return await self.store.run("bulk_update_articles", _bulk_update_fields, list(article_ids), values)

    async def existing_ids(self, article_ids: Sequence[str]) -> List[str]:
        return await self.store.run("find_articles", _existing_ids, list(article_ids))

    async def delete_associations(self, article_ids: Sequence[str]) -> None:
        await self.store.run("delete_article_associations", _delete_associations, list(article_ids))

    async def delete_articles(self, article_ids: Sequence[str]) -> int:
        return await self.store.run("delete_articles", _delete_articles, list(article_ids))

    async def fetch_content_batch(self, after_id: Optional[str], limit: int) -> List[Dict[str, Any]]:
        """Next ``limit`` articles ordered by id, strictly after ``after_id``."""
        return await self.store.run("fetch_content_batch", _fetch_content_batch, after_id, limit)

    async def apply_metrics_batch(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        return await self.store.run("apply_metrics_batch", _apply_metrics_batch, rows)

    async def stats(self) -> ArticleStats:
        return await self.store.run("article_stats", _stats, utc_now() - RECENT_WINDOW)
