"""Test configuration and fixtures."""

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import event

from article_engine.articles.cache import CacheInvalidationBus
from article_engine.articles.processing import ContentProcessor
from article_engine.articles.service import ArticleService
from article_engine.db.base import Base, create_db_engine, get_session_local
from article_engine.db.models import (
    ArticleModel,
    CategoryModel,
    TagModel,
    UserProfileModel,
    article_categories,
    article_tags,
)
from article_engine.db.store import Store

BASE_DOMAIN = "example.com"
SAMPLE_CONTENT = "Intelligence tests measure reasoning, memory and speed."


@pytest.fixture
def engine(tmp_path):
    """A fresh on-disk SQLite database per test.

    On disk rather than in memory so concurrent store calls each get their
    own connection.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'articles.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_local(engine)


@pytest.fixture
def store(session_factory) -> Store:
    return Store(session_factory)


@pytest.fixture
def bus() -> CacheInvalidationBus:
    return CacheInvalidationBus()


@pytest.fixture
def service(store, bus) -> ArticleService:
    return ArticleService(store=store, bus=bus, processor=ContentProcessor(base_domain=BASE_DOMAIN))


class StatementLog:
    """SQL statements sent to the database, in order."""

    def __init__(self):
        self.statements: List[str] = []

    def record(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    def clear(self) -> None:
        self.statements.clear()

    def selects(self) -> List[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith("SELECT")]

    def writes(self) -> List[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith(("INSERT", "UPDATE", "DELETE"))]


@pytest.fixture
def statements(engine) -> StatementLog:
    log = StatementLog()
    event.listen(engine, "before_cursor_execute", log.record)
    yield log
    event.remove(engine, "before_cursor_execute", log.record)


class Seeder:
    """Writes fixture rows straight through the ORM."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = 0

    def _add(self, obj):
        with self.session_factory() as session:
            session.add(obj)
            session.commit()
            return obj

    def author(self, full_name: str = "Nguyen Van A") -> UserProfileModel:
        return self._add(UserProfileModel(full_name=full_name, email=None))

    def category(self, name: str, slug: Optional[str] = None) -> CategoryModel:
        return self._add(CategoryModel(name=name, slug=slug or name.lower().replace(" ", "-")))

    def tag(self, name: str, slug: Optional[str] = None) -> TagModel:
        return self._add(TagModel(name=name, slug=slug or name.lower().replace(" ", "-")))

    def article(self, title: Optional[str] = None, **fields: Any) -> ArticleModel:
        self._counter += 1
        values: Dict[str, Any] = {
            "title": title or f"Article {self._counter}",
            "slug": fields.pop("slug", None) or f"article-{self._counter}",
            "content": SAMPLE_CONTENT,
            "word_count": 7,
            "reading_time": 1,
            "internal_links": [],
            "external_links": [],
        }
        values.update(fields)
        return self._add(ArticleModel(**values))

    def link_categories(self, article_id: str, *category_ids: str) -> None:
        with self.session_factory() as session:
            session.execute(
                article_categories.insert(),
                [{"article_id": article_id, "category_id": cid} for cid in category_ids],
            )
            session.commit()

    def link_tags(self, article_id: str, *tag_ids: str) -> None:
        with self.session_factory() as session:
            session.execute(
                article_tags.insert(),
                [{"article_id": article_id, "tag_id": tid} for tid in tag_ids],
            )
            session.commit()

    def linked(self, table, article_id: str) -> set:
        column = "category_id" if table is article_categories else "tag_id"
        with self.session_factory() as session:
            rows = session.execute(table.select().where(table.c.article_id == article_id))
            return {row._mapping[column] for row in rows}

    def get(self, article_id: str) -> Optional[ArticleModel]:
        with self.session_factory() as session:
            return session.get(ArticleModel, article_id)


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
