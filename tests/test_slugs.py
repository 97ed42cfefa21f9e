"""
Tests for slug normalization and the bounded uniqueness check.
"""

import pytest

from article_engine.articles.slugs import (
    ARTICLE_FALLBACK_SLUG,
    TAG_FALLBACK_SLUG,
    SlugGenerator,
    allocate_slugs,
    make_slug,
)


class FakeSlugLookup:
    """Existence check over a fixed set of taken slugs, recording each call."""

    def __init__(self, taken=(), owner=None):
        self.taken = set(taken)
        self.owner = owner or {}
        self.calls = []

    async def __call__(self, candidate, exclude_id):
        self.calls.append((candidate, exclude_id))
        if candidate not in self.taken:
            return False
        return self.owner.get(candidate) != exclude_id or exclude_id is None


class TestMakeSlug:
    """Tests for make_slug()."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Hello World", "hello-world"),
            ("  Lots   of   space  ", "lots-of-space"),
            ("Lập trình JavaScript", "lap-trinh-javascript"),
            ("Đào tạo Node.js", "dao-tao-node-js"),
            ("--Trim--separators--", "trim-separators"),
        ],
    )
    def test_normalizes_text(self, text, expected):
        assert make_slug(text) == expected

    def test_empty_result_uses_fallback(self):
        assert make_slug("!!!") == ARTICLE_FALLBACK_SLUG
        assert make_slug(None) == ARTICLE_FALLBACK_SLUG
        assert make_slug("", fallback=TAG_FALLBACK_SLUG) == TAG_FALLBACK_SLUG


class TestSlugGenerator:
    """Tests for SlugGenerator.generate_unique_slug()."""

    async def test_free_base_is_used_as_is(self):
        lookup = FakeSlugLookup()
        generator = SlugGenerator(lookup, max_attempts=5)

        assert await generator.generate_unique_slug("IQ Test Basics") == "iq-test-basics"
        assert lookup.calls == [("iq-test-basics", None)]

    async def test_collisions_get_numeric_suffix(self):
        lookup = FakeSlugLookup(taken={"iq-test", "iq-test-1"})
        generator = SlugGenerator(lookup, max_attempts=5)

        assert await generator.generate_unique_slug("IQ Test") == "iq-test-2"
        assert [c for c, _ in lookup.calls] == ["iq-test", "iq-test-1", "iq-test-2"]

    async def test_exclude_id_is_passed_to_lookup(self):
        lookup = FakeSlugLookup(taken={"iq-test"}, owner={"iq-test": "article-1"})
        generator = SlugGenerator(lookup, max_attempts=5)

        assert await generator.generate_unique_slug("IQ Test", exclude_id="article-1") == "iq-test"
        assert lookup.calls == [("iq-test", "article-1")]

    async def test_attempts_are_bounded_then_fall_back_to_timestamp(self):
        taken = {"iq"} | {f"iq-{n}" for n in range(1, 4)}
        lookup = FakeSlugLookup(taken=taken)
        generator = SlugGenerator(lookup, max_attempts=3)

        slug = await generator.generate_unique_slug("IQ")

        assert len(lookup.calls) == 4
        assert slug.startswith("iq-")
        assert slug not in taken
        assert slug.split("-", 1)[1].isdigit()

    async def test_empty_source_checks_fallback(self):
        lookup = FakeSlugLookup()
        generator = SlugGenerator(lookup, max_attempts=2)

        assert await generator.generate_unique_slug("   ") == ARTICLE_FALLBACK_SLUG


class TestAllocateSlugs:
    """Tests for in-memory batch allocation."""

    def test_batch_members_do_not_collide_with_each_other(self):
        assert allocate_slugs(["ai", "ai", "ml"], taken=set(), max_attempts=5) == ["ai", "ai-1", "ml"]

    def test_taken_slugs_are_skipped(self):
        assert allocate_slugs(["ai"], taken={"ai", "ai-1"}, max_attempts=5) == ["ai-2"]

    def test_exhausted_suffixes_fall_back_to_timestamp(self):
        slugs = allocate_slugs(["ai"], taken={"ai", "ai-1", "ai-2"}, max_attempts=2)

        assert slugs[0] not in {"ai", "ai-1", "ai-2"}
        assert slugs[0].startswith("ai-")
