"""
Relationship reconciliation for article categories and tags.

Associations are replaced by diff: the current set is read, and only the
rows in ``desired - current`` are inserted and those in ``current - desired``
deleted. Inserts ignore duplicate (article, entity) pairs so two concurrent
reconciliations of the same article do not fail on each other. A second call
with the same desired set finds an empty diff and writes nothing.

Each write commits on its own; a failure after the first committed write is
reported as a ``PartialFailureError`` by the saga.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog
from sqlalchemy import Table, delete, or_, select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import (
    ArticleModel,
    TagModel,
    article_categories,
    article_tags,
    generate_id,
    tag_name_key,
    utc_now,
)
from ..db.store import Store, insert_ignore
from ..errors import NotFoundError, PersistenceError
from .saga import Saga
from .schemas import ReconcileOutcome
from .slugs import TAG_FALLBACK_SLUG, allocate_slugs, make_slug

logger = structlog.get_logger()


@dataclass(frozen=True)
class AssociationLink:
    """A join table linking articles to one kind of entity."""

    name: str
    table: Table
    entity_column: str

    @property
    def article_key(self):
        return self.table.c.article_id

    @property
    def entity_key(self):
        return self.table.c[self.entity_column]


CATEGORY_LINK = AssociationLink("categories", article_categories, "category_id")
TAG_LINK = AssociationLink("tags", article_tags, "tag_id")


@dataclass(frozen=True)
class PrimaryFieldUpdate:
    """A scalar article column that mirrors the first desired entity."""

    column: str
    value: Optional[str]


def unique_ids(ids: Iterable[Optional[str]]) -> List[str]:
    ordered: List[str] = []
    for entity_id in ids:
        if entity_id and entity_id not in ordered:
            ordered.append(entity_id)
    return ordered


def normalize_tag_names(names: Iterable[Optional[str]]) -> List[str]:
    """Trim names, drop empty ones and collapse case-insensitive duplicates."""
    normalized: List[str] = []
    seen: Set[str] = set()
    for name in names:
        name = (name or "").strip()
        if not name or tag_name_key(name) in seen:
            continue
        seen.add(tag_name_key(name))
        normalized.append(name)
    return normalized


# =============================================================================
# Session work (runs inside Store.run)
# =============================================================================


def _write_primary_field(session: Session, article_id: str, field: PrimaryFieldUpdate) -> Optional[bool]:
    """Returns None when the article is missing, else whether a write happened."""
    article = session.get(ArticleModel, article_id)
    if article is None:
        return None
    if getattr(article, field.column) == field.value:
        return False
    setattr(article, field.column, field.value)
    article.updated_at = utc_now()
    return True


def _current_entity_ids(session: Session, article_id: str, link: AssociationLink) -> Optional[Set[str]]:
    """Returns None when the article is missing."""
    found = session.execute(select(ArticleModel.id).where(ArticleModel.id == article_id)).first()
    if found is None:
        return None
    stmt = select(link.entity_key).where(link.article_key == article_id)
    return set(session.scalars(stmt))


def _remove_links(session: Session, article_id: str, link: AssociationLink, entity_ids: List[str]) -> None:
    session.execute(
        delete(link.table).where(link.article_key == article_id, link.entity_key.in_(entity_ids))
    )


def _add_links(session: Session, article_id: str, link: AssociationLink, entity_ids: List[str]) -> int:
    now = utc_now()
    rows = [{"article_id": article_id, link.entity_column: entity_id, "created_at": now} for entity_id in entity_ids]
    return insert_ignore(session, link.table, rows)


def _touch(session: Session, article_id: str) -> bool:
    article = session.get(ArticleModel, article_id)
    if article is None:
        return False
    article.updated_at = utc_now()
    return True


def _article_exists(session: Session, article_id: str) -> bool:
    return session.execute(select(ArticleModel.id).where(ArticleModel.id == article_id)).first() is not None


def _tag_ids_by_key(session: Session, names: Sequence[str]) -> Dict[str, str]:
    keys = [tag_name_key(name) for name in names]
    stmt = select(TagModel.id, TagModel.name_key).where(TagModel.name_key.in_(keys))
    return {name_key: tag_id for tag_id, name_key in session.execute(stmt)}


def _resolve_tags(session: Session, names: List[str], max_attempts: int) -> Tuple[List[str], int]:
    """Tag ids for ``names`` in order, plus how many tags were created.

    Raises:
        PersistenceError: a name could not be created or read back.
    """
    ids_by_key = _tag_ids_by_key(session, names)
    missing = [name for name in names if tag_name_key(name) not in ids_by_key]

    created = 0
    if missing:
        bases = [make_slug(name, fallback=TAG_FALLBACK_SLUG) for name in missing]
        # One query for every stored slug that could collide with any base
        taken = session.scalars(
            select(TagModel.slug).where(
                or_(*[or_(TagModel.slug == base, TagModel.slug.like(f"{base}-%")) for base in set(bases)])
            )
        )
        slugs = allocate_slugs(bases, taken, max_attempts)
        now = utc_now()
        created = insert_ignore(
            session,
            TagModel.__table__,
            [
                {"id": generate_id(), "name": name, "name_key": tag_name_key(name), "slug": slug, "created_at": now}
                for name, slug in zip(missing, slugs)
            ],
        )
        # Re-read so a tag created concurrently under the same name wins
        ids_by_key.update(_tag_ids_by_key(session, missing))

    unresolved = [name for name in names if tag_name_key(name) not in ids_by_key]
    if unresolved:
        # Raising skips the commit, so tags inserted above roll back
        logger.warning("tags_not_resolved", names=unresolved)
        raise PersistenceError("resolve_tags", ValueError(f"Could not create tags {unresolved}"))

    return [ids_by_key[tag_name_key(name)] for name in names], created


def _tag_names(session: Session) -> List[str]:
    return list(session.scalars(select(TagModel.name).order_by(TagModel.name)))


class RelationshipReconciler:
    """Applies the minimal association changes to reach a desired set."""

    def __init__(self, store: Store, slug_max_attempts: Optional[int] = None):
        self.store = store
        self.slug_max_attempts = slug_max_attempts or get_settings().slug_max_attempts

    async def reconcile(
        self,
        article_id: str,
        desired_ids: Sequence[str],
        link: AssociationLink,
        primary: Optional[PrimaryFieldUpdate] = None,
        saga: Optional[Saga] = None,
    ) -> ReconcileOutcome:
        """Make the article's ``link`` associations equal ``desired_ids``.

        Raises:
            NotFoundError: the article does not exist.
            PersistenceError: the first write failed, nothing was committed.
            PartialFailureError: a later write failed after earlier ones committed.
        """
        desired = unique_ids(desired_ids)
        outcome = ReconcileOutcome()

        saga = saga or Saga(f"reconcile_{link.name}", entity_id=article_id)
        primary_step = f"set_primary_{primary.column}" if primary else None
        load_step = f"load_{link.name}"
        remove_step, add_step, touch_step = f"remove_{link.name}", f"add_{link.name}", "touch_updated_at"
        saga.plan(*([primary_step] if primary_step else []), load_step, remove_step, add_step, touch_step)

        if primary is not None:
            written = await saga.step(
                primary_step,
                lambda: self.store.run("set_primary_field", _write_primary_field, article_id, primary),
                writes=bool,
            )
            if written is None:
                raise NotFoundError("article", article_id)
            outcome.primary_updated = written

        current = await saga.step(
            load_step,
            lambda: self.store.run(load_step, _current_entity_ids, article_id, link),
            writes=False,
        )
        if current is None:
            raise NotFoundError("article", article_id)

        to_add = [entity_id for entity_id in desired if entity_id not in current]
        to_remove = sorted(current - set(desired))

        if not to_remove:
            saga.skip(remove_step)
        if not to_add:
            saga.skip(add_step)
        if outcome.primary_updated or not (to_add or to_remove):
            saga.skip(touch_step)

        if to_remove:
            await saga.step(
                remove_step,
                lambda: self.store.run(remove_step, _remove_links, article_id, link, to_remove),
            )
            outcome.removed = to_remove
        if to_add:
            await saga.step(
                add_step,
                lambda: self.store.run(add_step, _add_links, article_id, link, to_add),
            )
            outcome.added = to_add
        if touch_step in saga.pending:
            outcome.touched = await saga.step(
                touch_step, lambda: self.store.run("touch_article", _touch, article_id), writes=bool
            )

        logger.info(
            "relationships_reconciled",
            article_id=article_id,
            link=link.name,
            added=len(outcome.added),
            removed=len(outcome.removed),
            primary_updated=outcome.primary_updated,
        )
        return outcome

    async def update_categories(self, article_id: str, category_ids: Sequence[str]) -> ReconcileOutcome:
        """Replace the category set; the first id becomes the primary category."""
        desired = unique_ids(category_ids)
        primary = PrimaryFieldUpdate("category_id", desired[0] if desired else None)
        return await self.reconcile(article_id, desired, CATEGORY_LINK, primary=primary)

    async def update_tags(self, article_id: str, tag_names: Sequence[str]) -> ReconcileOutcome:
        """Replace the tag set by name, creating tags that do not exist yet.

        The article is checked first so a missing article creates no tags.
        """
        names = normalize_tag_names(tag_names)
        saga = Saga("update_tags", ["check_article", "resolve_tags"], entity_id=article_id)
        exists = await saga.step(
            "check_article",
            lambda: self.store.run("check_article", _article_exists, article_id),
            writes=False,
        )
        if not exists:
            raise NotFoundError("article", article_id)

        tag_ids: List[str] = []
        if names:
            tag_ids, _ = await saga.step(
                "resolve_tags",
                lambda: self._resolve(names),
                writes=lambda resolved: resolved[1] > 0,
            )
        else:
            saga.skip("resolve_tags")
        return await self.reconcile(article_id, tag_ids, TAG_LINK, saga=saga)

    async def resolve_tag_ids(self, names: Sequence[str]) -> List[str]:
        """Ids for tag names, creating the missing tags."""
        names = normalize_tag_names(names)
        if not names:
            return []
        tag_ids, _ = await self._resolve(names)
        return tag_ids

    async def _resolve(self, names: List[str]) -> Tuple[List[str], int]:
        return await self.store.run("resolve_tags", _resolve_tags, names, self.slug_max_attempts)

    async def list_tag_names(self) -> List[str]:
        return await self.store.run("list_tags", _tag_names)
