"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from article_engine.api import app
from article_engine.articles import relationships
from article_engine.articles.cache import QueryCache
from article_engine.articles.routes import get_article_service, get_query_cache

BODY = "Fluid intelligence is the capacity to reason and solve novel problems."


@pytest.fixture
def query_cache(bus):
    cache = QueryCache()
    bus.subscribe(cache.handle)
    return cache


@pytest.fixture
def client(service, query_cache):
    app.dependency_overrides[get_article_service] = lambda: service
    app.dependency_overrides[get_query_cache] = lambda: query_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, **fields):
    body = {"title": "IQ basics", "content": BODY, **fields}
    response = client.post("/articles", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_version(client):
    """The version is read from package metadata."""
    response = client.get("/version")

    assert response.status_code == 200
    assert isinstance(response.json()["version"], str)


def test_create_and_fetch(client):
    article = create(client, tags=["Logic"])

    by_id = client.get(f"/articles/{article['id']}")
    by_slug = client.get("/articles/by-slug/iq-basics")

    assert by_id.status_code == 200
    assert by_id.json()["data"]["tag_names"] == ["Logic"]
    assert by_slug.json()["data"]["id"] == article["id"]
    assert by_id.json()["error"] is None


def test_validation_error_is_422(client):
    response = client.post("/articles", json={"title": "ab", "content": BODY})

    assert response.status_code == 422
    assert response.json()["data"] is None
    assert response.json()["error"]["error"] == "TITLE_TOO_SHORT"


def test_missing_article_is_404(client):
    response = client.get("/articles/missing")

    assert response.status_code == 404
    assert response.json()["error"]["error"] == "ARTICLE_NOT_FOUND"


def test_partial_failure_is_207(client, seed, monkeypatch):
    category = seed.category("Logic")
    article = seed.article()

    def broken(*args):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(relationships, "_add_links", broken)

    response = client.put(f"/articles/{article.id}/categories", json={"category_ids": [category.id]})

    assert response.status_code == 207
    assert response.json()["error"]["retry_steps"] == ["add_categories"]


def test_list_is_cached_until_a_write(client, seed):
    assert client.get("/articles").json()["data"]["total"] == 0

    # Written behind the service's back, so nothing invalidates the cache
    seed.article()
    assert client.get("/articles").json()["data"]["total"] == 0

    create(client)
    listing = client.get("/articles").json()["data"]
    assert listing["total"] == 2
    assert listing["total_pages"] == 1


def test_list_rejects_unknown_status(client):
    assert client.get("/articles", params={"status": "scheduled"}).status_code == 422


def test_patch_and_status(client):
    article = create(client)

    patched = client.patch(f"/articles/{article['id']}", json={"excerpt": "Short intro"})
    published = client.put(f"/articles/{article['id']}/status", json={"status": "published"})

    assert patched.json()["data"]["excerpt"] == "Short intro"
    assert published.json()["data"]["status"] == "published"
    assert published.json()["data"]["published_at"] is not None


def test_bulk_operations(client, seed):
    ids = [seed.article().id for _ in range(3)]

    status = client.post("/articles/bulk/status", json={"ids": ids, "status": "archived"})
    deleted = client.post("/articles/bulk/delete", json={"ids": ids[:2]})

    assert status.json()["data"] == 3
    assert deleted.json()["data"] == 2


def test_delete(client):
    article = create(client)

    assert client.delete(f"/articles/{article['id']}").json()["data"] == {"id": article["id"], "deleted": True}
    assert client.delete(f"/articles/{article['id']}").status_code == 404


def test_relationship_endpoints(client, seed):
    category = seed.category("Logic")
    author = seed.author("Le Van C")
    article = create(client)

    tags = client.put(f"/articles/{article['id']}/tags", json={"tags": ["Speed", "speed"]})
    primary = client.put(f"/articles/{article['id']}/category", json={"category_id": category.id})
    owner = client.put(f"/articles/{article['id']}/author", json={"author_id": author.id})

    assert tags.json()["data"]["changed"] is True
    assert len(tags.json()["data"]["added"]) == 1
    assert primary.json()["data"]["primary_updated"] is True
    assert owner.json()["data"]["author_id"] == author.id
    assert client.get("/articles/tags").json()["data"] == ["Speed"]


def test_slug_available(client):
    create(client)

    assert client.get("/articles/slug-available", params={"slug": "iq-basics"}).json()["data"] is False
    assert client.get("/articles/slug-available", params={"slug": "other"}).json()["data"] is True


def test_maintenance_endpoints(client, seed):
    article = seed.article(word_count=0, content='Go <a href="/x">x</a> now please')

    links = client.post(f"/articles/{article.id}/analyze-links")
    recalculated = client.post("/articles/maintenance/recalculate-reading-time", params={"batch_size": 10})
    stats = client.get("/articles/stats")

    assert links.json()["data"]["internal_count"] == 1
    assert recalculated.json()["data"] == {"processed": 1, "updated": 1, "failed_batches": 0}
    assert stats.json()["data"]["total"] == 1


def test_stats_and_article_are_cached_until_a_write(client, seed):
    article = create(client)
    assert client.get("/articles/stats").json()["data"]["total"] == 1
    assert client.get(f"/articles/{article['id']}").json()["data"]["title"] == "IQ basics"

    # Written behind the service's back, so nothing invalidates the cache
    seed.article()
    assert client.get("/articles/stats").json()["data"]["total"] == 1

    client.patch(f"/articles/{article['id']}", json={"title": "IQ basics revisited"})

    assert client.get("/articles/stats").json()["data"]["total"] == 2
    assert client.get(f"/articles/{article['id']}").json()["data"]["title"] == "IQ basics revisited"


def test_write_keeps_other_articles_cached(client, query_cache):
    first, second = create(client), create(client, title="Memory span")
    client.get(f"/articles/{first['id']}")
    client.get(f"/articles/{second['id']}")

    client.put(f"/articles/{first['id']}/status", json={"status": "archived"})

    keys = query_cache.stats()["keys"]
    assert f"article:{first['id']}" not in keys
    assert f"article:{second['id']}" in keys


def test_missing_article_is_not_cached(client, query_cache):
    client.get("/articles/missing")

    assert query_cache.stats()["keys"] == []


def test_bulk_edit_endpoints(client, seed):
    category = seed.category("Logic")
    author = seed.author()
    ids = [seed.article().id for _ in range(2)]

    categorized = client.post("/articles/bulk/category", json={"ids": ids, "category_id": category.id})
    reassigned = client.post("/articles/bulk/author", json={"ids": ids, "author_id": author.id})
    featured = client.post("/articles/bulk/featured", json={"ids": ids[:1], "featured": True})

    assert categorized.json()["data"] == 2
    assert reassigned.json()["data"] == 2
    assert featured.json()["data"] == 1
    article = client.get(f"/articles/{ids[0]}").json()["data"]
    assert article["category_id"] == category.id
    assert article["author_id"] == author.id
    assert article["featured"] is True
    assert client.post("/articles/bulk/featured", json={"ids": ids}).status_code == 422
