"""
Article API routes.

REST endpoints over the article service. All endpoints are prefixed with
/articles and answer with the service's ``{data, error}`` body.
"""

from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..errors import ErrorCode
from .cache import STATS_KEY, QueryCache, article_key
from .enums import ArticleStatus, SortField, SortOrder
from .schemas import ArticleFilters, ArticleInput, ArticleUpdate, ServiceResult
from .service import ArticleService

router = APIRouter(prefix="/articles", tags=["articles"])

HTTP_STATUS_BY_CODE = {
    ErrorCode.TITLE_REQUIRED: 422,
    ErrorCode.TITLE_TOO_SHORT: 422,
    ErrorCode.TITLE_TOO_LONG: 422,
    ErrorCode.CONTENT_REQUIRED: 422,
    ErrorCode.CONTENT_TOO_SHORT: 422,
    ErrorCode.INVALID_STATUS: 422,
    ErrorCode.ARTICLE_NOT_FOUND: 404,
    ErrorCode.PARTIAL_FAILURE: 207,
    ErrorCode.PERSISTENCE_FAILED: 500,
    ErrorCode.UNEXPECTED_ERROR: 500,
}


def get_article_service(request: Request) -> ArticleService:
    return request.app.state.article_service


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def respond(result: ServiceResult, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.ok else HTTP_STATUS_BY_CODE.get(result.error.code, 500)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))


async def cached(cache: QueryCache, key: str, load: Callable[[], Awaitable[ServiceResult]]) -> JSONResponse:
    """Serve ``key`` from the cache, or load it and cache a successful body."""
    body = cache.get(key)
    if body is not None:
        return JSONResponse(content=body)

    result = await load()
    if result.ok:
        body = jsonable_encoder(result.to_dict())
        cache.set(key, body)
        return JSONResponse(content=body)
    return respond(result)


# =============================================================================
# Request bodies
# =============================================================================


class StatusChange(BaseModel):
    status: ArticleStatus


class BulkStatusChange(BaseModel):
    ids: List[str] = Field(default_factory=list)
    status: ArticleStatus


class BulkDelete(BaseModel):
    ids: List[str] = Field(default_factory=list)


class TagsChange(BaseModel):
    tags: List[str] = Field(default_factory=list)


class CategoriesChange(BaseModel):
    category_ids: List[str] = Field(default_factory=list)


class CategoryChange(BaseModel):
    category_id: Optional[str] = None


class AuthorChange(BaseModel):
    author_id: Optional[str] = None


class BulkCategoryChange(BaseModel):
    ids: List[str] = Field(default_factory=list)
    category_id: Optional[str] = None


class BulkAuthorChange(BaseModel):
    ids: List[str] = Field(default_factory=list)
    author_id: Optional[str] = None


class BulkFeaturedChange(BaseModel):
    ids: List[str] = Field(default_factory=list)
    featured: bool


# =============================================================================
# Reads
# =============================================================================


@router.get("")
async def list_articles(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(draft|published|archived|all)$"),
    author_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    service: ArticleService = Depends(get_article_service),
    cache: QueryCache = Depends(get_query_cache),
) -> JSONResponse:
    """List articles with filters, sorting and pagination."""
    filters = ArticleFilters(
        search=search,
        status=status,
        author_id=author_id,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    key = filters.cache_key(page, limit or 0)
    return await cached(cache, key, lambda: service.list_articles(page, limit, filters))


@router.get("/stats")
async def get_stats(
    service: ArticleService = Depends(get_article_service),
    cache: QueryCache = Depends(get_query_cache),
) -> JSONResponse:
    return await cached(cache, STATS_KEY, service.get_stats)


@router.get("/tags")
async def list_tags(service: ArticleService = Depends(get_article_service)) -> JSONResponse:
    return respond(await service.list_tags())


@router.get("/slug-available")
async def slug_available(
    slug: str = Query(..., min_length=1),
    exclude_id: Optional[str] = None,
    service: ArticleService = Depends(get_article_service),
) -> JSONResponse:
    return respond(await service.validate_slug(slug, exclude_id))


@router.get("/by-slug/{slug}")
async def get_article_by_slug(slug: str, service: ArticleService = Depends(get_article_service)) -> JSONResponse:
    return respond(await service.get_by_slug(slug))


@router.get("/{article_id}")
async def get_article(
    article_id: str,
    service: ArticleService = Depends(get_article_service),
    cache: QueryCache = Depends(get_query_cache),
) -> JSONResponse:
    return await cached(cache, article_key(article_id), lambda: service.get_by_id(article_id))


# =============================================================================
# Writes
# =============================================================================


@router.post("")
async def create_article(
    article: ArticleInput,
    author_id: Optional[str] = None,
    service: ArticleService = Depends(get_article_service),
) -> JSONResponse:
    """Create an article; ``author_id`` overrides the one in the body."""
    return respond(await service.create(article, author_id), success_status=201)


@router.patch("/{article_id}")
async def update_article(
    article_id: str,
    update: ArticleUpdate,
    service: ArticleService = Depends(get_article_service),
) -> JSONResponse:
    return respond(await service.update(article_id, update))


@router.put("/{article_id}/status")
async def change_status(
    article_id: str, change: StatusChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.update_status(article_id, change.status))


@router.post("/bulk/status")
async def bulk_change_status(
    change: BulkStatusChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.bulk_update_status(change.ids, change.status))


@router.post("/bulk/category")
async def bulk_change_category(
    change: BulkCategoryChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.bulk_update_category(change.ids, change.category_id))


@router.post("/bulk/author")
async def bulk_change_author(
    change: BulkAuthorChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.bulk_update_author(change.ids, change.author_id))


@router.post("/bulk/featured")
async def bulk_toggle_featured(
    change: BulkFeaturedChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.bulk_toggle_featured(change.ids, change.featured))


@router.post("/bulk/delete")
async def bulk_delete(change: BulkDelete, service: ArticleService = Depends(get_article_service)) -> JSONResponse:
    return respond(await service.bulk_delete(change.ids))


@router.delete("/{article_id}")
async def delete_article(article_id: str, service: ArticleService = Depends(get_article_service)) -> JSONResponse:
    return respond(await service.delete(article_id))


@router.put("/{article_id}/tags")
async def change_tags(
    article_id: str, change: TagsChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.update_tags(article_id, change.tags))


@router.put("/{article_id}/categories")
async def change_categories(
    article_id: str, change: CategoriesChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.update_categories(article_id, change.category_ids))


@router.put("/{article_id}/category")
async def change_category(
    article_id: str, change: CategoryChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.update_category(article_id, change.category_id))


@router.put("/{article_id}/author")
async def change_author(
    article_id: str, change: AuthorChange, service: ArticleService = Depends(get_article_service)
) -> JSONResponse:
    return respond(await service.update_author(article_id, change.author_id))


@router.post("/{article_id}/analyze-links")
async def analyze_links(article_id: str, service: ArticleService = Depends(get_article_service)) -> JSONResponse:
    return respond(await service.analyze_links(article_id))


@router.post("/maintenance/recalculate-reading-time")
async def recalculate_reading_time(
    batch_size: Optional[int] = Query(None, ge=1),
    service: ArticleService = Depends(get_article_service),
) -> JSONResponse:
    return respond(await service.recalculate_reading_time(batch_size))
