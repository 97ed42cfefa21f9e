"""
Article service: the public operations of the engine.

Every operation returns a ``ServiceResult``. Validation and not-found
outcomes come back as typed errors, store failures as ``PersistenceError``,
multi-step writes that stopped halfway as ``PartialFailureError``, and
anything else is wrapped in ``UnexpectedError``. Nothing raises across this
boundary.
"""

from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar, Union

import structlog

from ..config import Settings, get_settings
from ..db.models import utc_now
from ..db.store import Store
from ..errors import (
    ArticleEngineError,
    NotFoundError,
    PartialFailureError,
    PersistenceError,
    UnexpectedError,
)
from .cache import ArticlesChanged, CacheInvalidationBus
from .enums import ArticleStatus
from .processing import ContentProcessor, count_words, reading_time
from .queries import ArticleQueries
from .relationships import RelationshipReconciler
from .saga import Saga
from .schemas import (
    ArticleFilters,
    ArticleInput,
    ArticlePage,
    ArticleUpdate,
    RecalculationReport,
    ReconcileOutcome,
    ServiceResult,
)
from .slugs import SlugGenerator
from .validation import validate_article, validate_status, validate_update

logger = structlog.get_logger()

T = TypeVar("T")


def _wrote(outcome: ReconcileOutcome) -> bool:
    return outcome.writes > 0


class ArticleService:
    """Orchestrates validation, processing, slugs, persistence and relationships."""

    def __init__(
        self,
        store: Optional[Store] = None,
        bus: Optional[CacheInvalidationBus] = None,
        processor: Optional[ContentProcessor] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or Store()
        self.bus = bus or CacheInvalidationBus()
        self.processor = processor or ContentProcessor()
        self.queries = ArticleQueries(self.store)
        self.reconciler = RelationshipReconciler(self.store, self.settings.slug_max_attempts)
        self.slugs = SlugGenerator(self.queries.slug_exists, self.settings.slug_max_attempts)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _guard(self, operation: str, action: Awaitable[Union[T, ServiceResult]]) -> ServiceResult:
        try:
            data = await action
        except NotFoundError as exc:
            logger.info("article_not_found", operation=operation, key=exc.key, lookup=exc.lookup)
            return ServiceResult(error=exc)
        except PartialFailureError as exc:
            logger.error(
                "article_partially_updated",
                operation=operation,
                article_id=exc.entity_id,
                completed_steps=exc.completed_steps,
                retry_steps=exc.retry_steps,
            )
            return ServiceResult(error=exc)
        except ArticleEngineError as exc:
            logger.error("article_operation_failed", operation=operation, error=exc.code.value, message=exc.message)
            return ServiceResult(error=exc)
        except Exception as exc:
            logger.exception("article_operation_crashed", operation=operation)
            return ServiceResult(error=UnexpectedError(operation, exc))

        if isinstance(data, ServiceResult):
            return data
        return ServiceResult(data=data)

    def _notify(self, reason: str, article_ids: Sequence[str] = ()) -> None:
        try:
            self.bus.publish(ArticlesChanged(reason=reason, article_ids=tuple(article_ids)))
        except Exception:
            logger.exception("cache_invalidation_failed", reason=reason)

    def _page_limit(self, limit: Optional[int]) -> int:
        if not limit or limit < 1:
            return self.settings.default_page_size
        return min(limit, self.settings.max_page_size)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_articles(
        self, page: int = 1, limit: Optional[int] = None, filters: Optional[ArticleFilters] = None
    ) -> ServiceResult:
        return await self._guard("list_articles", self._list_articles(page, limit, filters))

    async def _list_articles(self, page: int, limit: Optional[int], filters: Optional[ArticleFilters]) -> ArticlePage:
        page = max(page, 1)
        limit = self._page_limit(limit)
        articles, total = await self.queries.list_articles(page, limit, filters or ArticleFilters())
        return ArticlePage.build(articles, total, page, limit)

    async def get_by_id(self, article_id: str) -> ServiceResult:
        return await self._guard("get_article", self._require(article_id))

    async def _require(self, article_id: str) -> Dict[str, Any]:
        article = await self.queries.get_by_id(article_id)
        if article is None:
            raise NotFoundError("article", article_id)
        return article

    async def get_by_slug(self, slug: str) -> ServiceResult:
        return await self._guard("get_article_by_slug", self._require_slug(slug))

    async def _require_slug(self, slug: str) -> Dict[str, Any]:
        article = await self.queries.get_by_slug(slug)
        if article is None:
            raise NotFoundError("article", slug, lookup="slug")
        return article

    async def validate_slug(self, slug: str, exclude_id: Optional[str] = None) -> ServiceResult:
        """``data`` is True when the slug is free."""
        return await self._guard("validate_slug", self._slug_available(slug, exclude_id))

    async def _slug_available(self, slug: str, exclude_id: Optional[str]) -> bool:
        return not await self.queries.slug_exists(slug, exclude_id)

    async def get_stats(self) -> ServiceResult:
        return await self._guard("get_stats", self.queries.stats())

    async def list_tags(self) -> ServiceResult:
        return await self._guard("list_tags", self.reconciler.list_tag_names())

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create(self, payload: ArticleInput, author_id: Optional[str] = None) -> ServiceResult:
        return await self._guard("create_article", self._create(payload, author_id))

    async def _create(self, payload: ArticleInput, author_id: Optional[str]) -> Union[Dict[str, Any], ServiceResult]:
        validation = validate_article(payload)
        if not validation.ok:
            return ServiceResult(error=validation.error)
        article = validation.value

        metrics = self.processor.process(article.content)
        slug = await self.slugs.generate_unique_slug(article.slug or article.title)

        values = {
            **article.row_fields(),
            **metrics.row_fields(),
            "slug": slug,
            "author_id": author_id or article.author_id,
        }
        if article.status == ArticleStatus.PUBLISHED:
            values["published_at"] = utc_now()

        saga = Saga("create_article", ["insert_article"])
        if article.category_ids:
            saga.plan("reconcile_categories")
        if article.tags:
            saga.plan("reconcile_tags")
        saga.plan("load_article")

        created = await saga.step("insert_article", lambda: self.queries.insert_article(values))
        article_id = saga.entity_id = created["id"]
        logger.info("article_created", article_id=article_id, slug=slug, status=created["status"])

        try:
            if article.category_ids:
                await saga.step(
                    "reconcile_categories",
                    lambda: self.reconciler.update_categories(article_id, article.category_ids),
                    writes=_wrote,
                )
            if article.tags:
                await saga.step(
                    "reconcile_tags", lambda: self.reconciler.update_tags(article_id, article.tags), writes=_wrote
                )
            return await saga.step("load_article", lambda: self._require(article_id), writes=False)
        finally:
            self._notify("created", [article_id])

    async def update(self, article_id: str, payload: ArticleUpdate) -> ServiceResult:
        return await self._guard("update_article", self._update(article_id, payload))

    async def _update(self, article_id: str, payload: ArticleUpdate) -> Union[Dict[str, Any], ServiceResult]:
        validation = validate_update(payload)
        if not validation.ok:
            return ServiceResult(error=validation.error)
        change = validation.value
        if change.is_empty:
            return await self._require(article_id)

        fields = dict(change.fields)
        if "content" in fields:
            fields.update(self.processor.process(fields["content"]).row_fields())
        if change.slug is not None:
            fields["slug"] = await self.slugs.generate_unique_slug(change.slug, exclude_id=article_id)

        saga = Saga("update_article", entity_id=article_id)
        if fields:
            saga.plan("update_row")
        if change.categories is not None:
            saga.plan("reconcile_categories")
        if change.tags is not None:
            saga.plan("reconcile_tags")
        saga.plan("load_article")

        try:
            if fields:
                updated = await saga.step(
                    "update_row",
                    lambda: self.queries.update_article(article_id, fields),
                    writes=lambda row: row is not None,
                )
                if updated is None:
                    raise NotFoundError("article", article_id)
            if change.categories is not None:
                await saga.step(
                    "reconcile_categories",
                    lambda: self.reconciler.update_categories(article_id, change.categories),
                    writes=_wrote,
                )
            if change.tags is not None:
                await saga.step(
                    "reconcile_tags", lambda: self.reconciler.update_tags(article_id, change.tags), writes=_wrote
                )
            result = await saga.step("load_article", lambda: self._require(article_id), writes=False)
        finally:
            if saga.committed:
                self._notify("updated", [article_id])

        logger.info("article_updated", article_id=article_id, fields=sorted(fields))
        return result

    async def update_status(self, article_id: str, status: ArticleStatus) -> ServiceResult:
        return await self._guard("update_status", self._update_status(article_id, status))

    async def _update_status(self, article_id: str, status: ArticleStatus) -> Union[Dict[str, Any], ServiceResult]:
        validation = validate_status(status)
        if not validation.ok:
            return ServiceResult(error=validation.error)
        status = validation.value
        updated = await self.queries.update_article(article_id, {"status": status.value})
        if updated is None:
            raise NotFoundError("article", article_id)
        self._notify("status_changed", [article_id])
        logger.info("article_status_changed", article_id=article_id, status=status.value)
        return updated

    async def bulk_update_status(self, article_ids: Sequence[str], status: ArticleStatus) -> ServiceResult:
        return await self._guard("bulk_update_status", self._bulk_update_status(article_ids, status))

    async def _bulk_update_status(self, article_ids: Sequence[str], status: ArticleStatus) -> Union[int, ServiceResult]:
        validation = validate_status(status)
        if not validation.ok:
            return ServiceResult(error=validation.error)
        status = validation.value
        ids = list(dict.fromkeys(article_ids))
        if not ids:
            return 0
        updated = await self.queries.bulk_update_status(ids, status)
        self._notify("status_changed", ids)
        logger.info("articles_status_changed", count=updated, status=status.value)
        return updated

    async def update_author(self, article_id: str, author_id: Optional[str]) -> ServiceResult:
        return await self._guard("update_author", self._update_author(article_id, author_id))

    async def _update_author(self, article_id: str, author_id: Optional[str]) -> Dict[str, Any]:
        updated = await self.queries.update_article(article_id, {"author_id": author_id})
        if updated is None:
            raise NotFoundError("article", article_id)
        self._notify("author_changed", [article_id])
        return updated

    async def bulk_update_author(self, article_ids: Sequence[str], author_id: Optional[str]) -> ServiceResult:
        """Reassign (or clear) the author of many articles; ``data`` is the count updated."""
        return await self._guard(
            "bulk_update_author", self._bulk_update_fields("author_changed", article_ids, {"author_id": author_id})
        )

    async def bulk_toggle_featured(self, article_ids: Sequence[str], featured: bool) -> ServiceResult:
        return await self._guard(
            "bulk_toggle_featured",
            self._bulk_update_fields("featured_changed", article_ids, {"featured": bool(featured)}),
        )

    async def _bulk_update_fields(self, reason: str, article_ids: Sequence[str], values: Dict[str, Any]) -> int:
        ids = list(dict.fromkeys(article_ids))
        if not ids:
            return 0
        updated = await self.queries.bulk_update_fields(ids, values)
        if updated:
            self._notify(reason, ids)
        logger.info("articles_bulk_updated", reason=reason, fields=sorted(values), count=updated)
        return updated

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    async def update_tags(self, article_id: str, tags: Sequence[str]) -> ServiceResult:
        return await self._guard(
            "update_tags", self._reconciled(article_id, self.reconciler.update_tags(article_id, list(tags)))
        )

    async def update_categories(self, article_id: str, category_ids: Sequence[str]) -> ServiceResult:
        return await self._guard(
            "update_categories",
            self._reconciled(article_id, self.reconciler.update_categories(article_id, list(category_ids))),
        )

    async def update_category(self, article_id: str, category_id: Optional[str]) -> ServiceResult:
        return await self.update_categories(article_id, [category_id] if category_id else [])

    async def bulk_update_category(self, article_ids: Sequence[str], category_id: Optional[str]) -> ServiceResult:
        """Give many articles the same single category; ``data`` is the count of articles found.

        Each article is reconciled on its own, so a failure partway leaves the
        earlier articles updated and reports the rest as retryable steps.
        """
        return await self._guard("bulk_update_category", self._bulk_update_category(article_ids, category_id))

    async def _bulk_update_category(self, article_ids: Sequence[str], category_id: Optional[str]) -> int:
        ids = list(dict.fromkeys(article_ids))
        if not ids:
            return 0
        found = await self.queries.existing_ids(ids)
        desired = [category_id] if category_id else []

        saga = Saga(
            "bulk_update_category",
            [f"reconcile_categories:{article_id}" for article_id in found],
            entity_id=",".join(found),
        )
        changed: List[str] = []
        try:
            for article_id in found:
                outcome = await saga.step(
                    f"reconcile_categories:{article_id}",
                    lambda: self.reconciler.update_categories(article_id, desired),
                    writes=_wrote,
                )
                if outcome.changed:
                    changed.append(article_id)
        except PartialFailureError:
            self._notify("relationships_changed", found)
            raise
        if changed:
            self._notify("relationships_changed", changed)

        logger.info("articles_category_changed", category_id=category_id, count=len(found), changed=len(changed))
        return len(found)

    async def _reconciled(self, article_id: str, reconciliation: Awaitable[ReconcileOutcome]) -> ReconcileOutcome:
        try:
            outcome = await reconciliation
        except PartialFailureError:
            self._notify("relationships_changed", [article_id])
            raise
        if outcome.changed:
            self._notify("relationships_changed", [article_id])
        return outcome

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, article_id: str) -> ServiceResult:
        return await self._guard("delete_article", self._delete([article_id], single=True))

    async def bulk_delete(self, article_ids: Sequence[str]) -> ServiceResult:
        return await self._guard("bulk_delete", self._delete(list(dict.fromkeys(article_ids)), single=False))

    async def _delete(self, article_ids: List[str], single: bool) -> Union[int, Dict[str, Any]]:
        if not article_ids:
            return 0

        # Associations go first so no reader sees a link to a deleted row
        saga = Saga("delete_articles", ["delete_associations", "delete_rows"], entity_id=",".join(article_ids))
        await saga.step("delete_associations", lambda: self.queries.delete_associations(article_ids))
        deleted = await saga.step("delete_rows", lambda: self.queries.delete_articles(article_ids))

        if single and not deleted:
            raise NotFoundError("article", article_ids[0])
        if deleted:
            self._notify("deleted", article_ids)
        logger.info("articles_deleted", count=deleted)
        return {"id": article_ids[0], "deleted": True} if single else deleted

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def analyze_links(self, article_id: str) -> ServiceResult:
        return await self._guard("analyze_links", self._analyze_links(article_id))

    async def _analyze_links(self, article_id: str) -> Dict[str, Any]:
        article = await self._require(article_id)
        analysis = self.processor.analyze_links(article["content"] or "")
        summary = analysis.summary()
        await self.queries.update_article(
            article_id,
            {"internal_links": summary["internal_links"], "external_links": summary["external_links"]},
        )
        self._notify("links_analyzed", [article_id])
        return summary

    async def recalculate_reading_time(self, batch_size: Optional[int] = None) -> ServiceResult:
        return await self._guard("recalculate_reading_time", self._recalculate(batch_size))

    async def _recalculate(self, batch_size: Optional[int]) -> RecalculationReport:
        size = batch_size or self.settings.recalculate_batch_size
        report = RecalculationReport()
        after_id: Optional[str] = None

        while True:
            batch = await self.queries.fetch_content_batch(after_id, size)
            if not batch:
                break
            after_id = batch[-1]["id"]
            report.processed += len(batch)

            changes = []
            for row in batch:
                words = count_words(row["content"] or "")
                minutes = reading_time(words)
                if (words, minutes) != (row["word_count"], row["reading_time"]):
                    changes.append({"id": row["id"], "word_count": words, "reading_time": minutes})

            try:
                report.updated += await self.queries.apply_metrics_batch(changes)
            except PersistenceError as exc:
                report.failed_batches += 1
                logger.warning("recalculate_batch_failed", after_id=after_id, size=len(changes), error=str(exc))

            if len(batch) < size:
                break

        if report.updated:
            self._notify("reading_time_recalculated")
        logger.info(
            "reading_time_recalculated",
            processed=report.processed,
            updated=report.updated,
            failed_batches=report.failed_batches,
        )
        return report

