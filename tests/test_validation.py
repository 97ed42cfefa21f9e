"""
Tests for article validation rules.
"""

import pytest

from article_engine.articles.enums import ArticleStatus
from article_engine.articles.schemas import ArticleInput, ArticleUpdate
from article_engine.articles.validation import validate_article, validate_status, validate_update
from article_engine.errors import ErrorCode

CONTENT = "Ten chars!"


class TestValidateArticle:
    """Tests for validate_article()."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            (None, ErrorCode.TITLE_REQUIRED),
            ("", ErrorCode.TITLE_REQUIRED),
            ("   ", ErrorCode.TITLE_REQUIRED),
            ("ab", ErrorCode.TITLE_TOO_SHORT),
            ("  ab  ", ErrorCode.TITLE_TOO_SHORT),
            ("x" * 201, ErrorCode.TITLE_TOO_LONG),
        ],
    )
    def test_title_rules(self, title, expected):
        result = validate_article(ArticleInput(title=title, content=CONTENT))

        assert not result.ok
        assert result.value is None
        assert result.error.code == expected
        assert result.error.field == "title"

    @pytest.mark.parametrize("title", ["abc", "x" * 200, "  abc  "])
    def test_title_boundaries_pass(self, title):
        assert validate_article(ArticleInput(title=title, content=CONTENT)).ok

    @pytest.mark.parametrize(
        "content,expected",
        [
            (None, ErrorCode.CONTENT_REQUIRED),
            ("  \n ", ErrorCode.CONTENT_REQUIRED),
            ("123456789", ErrorCode.CONTENT_TOO_SHORT),
            ("   123456789   ", ErrorCode.CONTENT_TOO_SHORT),
        ],
    )
    def test_content_rules(self, content, expected):
        result = validate_article(ArticleInput(title="Valid title", content=content))

        assert not result.ok
        assert result.error.code == expected
        assert result.error.field == "content"

    def test_content_of_exactly_ten_characters_passes(self):
        assert validate_article(ArticleInput(title="Valid title", content="1234567890")).ok

    def test_title_is_checked_before_content(self):
        result = validate_article(ArticleInput(title="", content=""))

        assert result.error.code == ErrorCode.TITLE_REQUIRED

    def test_valid_payload_is_trimmed(self):
        result = validate_article(
            ArticleInput(
                title="  IQ basics  ",
                content="  Some long enough content  ",
                excerpt="   ",
                slug="  ",
                status=ArticleStatus.PUBLISHED,
            )
        )

        assert result.ok
        article = result.value
        assert article.title == "IQ basics"
        assert article.content == "Some long enough content"
        assert article.excerpt is None
        assert article.slug is None
        assert article.status == ArticleStatus.PUBLISHED

    def test_error_message_is_user_facing(self):
        result = validate_article(ArticleInput(title="ab", content=CONTENT))

        assert result.error.message == "Title must be at least 3 characters"
        assert result.error.to_dict() == {
            "error": "TITLE_TOO_SHORT",
            "message": "Title must be at least 3 characters",
            "field": "title",
        }

    def test_primary_category_leads_category_ids(self):
        result = validate_article(
            ArticleInput(title="Valid title", content=CONTENT, category_id="c2", categories=["c1", "c2", "c1"])
        )

        assert result.value.category_ids == ["c2", "c1"]
        assert result.value.row_fields()["category_id"] == "c2"

    def test_no_relationships(self):
        result = validate_article(ArticleInput(title="Valid title", content=CONTENT))

        assert result.value.category_ids == []
        assert result.value.row_fields()["category_id"] is None


class TestValidateUpdate:
    """Tests for validate_update()."""

    def test_only_sent_fields_are_checked(self):
        result = validate_update(ArticleUpdate(excerpt="New excerpt"))

        assert result.ok
        assert result.value.fields == {"excerpt": "New excerpt"}
        assert result.value.categories is None
        assert result.value.tags is None

    def test_sent_title_is_validated(self):
        result = validate_update(ArticleUpdate(title="ab"))

        assert not result.ok
        assert result.error.code == ErrorCode.TITLE_TOO_SHORT

    def test_sent_content_is_validated(self):
        result = validate_update(ArticleUpdate(content="short"))

        assert result.error.code == ErrorCode.CONTENT_TOO_SHORT

    def test_explicit_null_title_is_required_error(self):
        result = validate_update(ArticleUpdate(title=None))

        assert result.error.code == ErrorCode.TITLE_REQUIRED

    def test_null_for_non_nullable_column_is_dropped(self):
        result = validate_update(ArticleUpdate(status=None, featured=None, meta_title=None))

        assert result.ok
        assert result.value.fields == {"meta_title": None}

    def test_status_is_stored_as_string(self):
        result = validate_update(ArticleUpdate(status=ArticleStatus.ARCHIVED))

        assert result.value.fields == {"status": "archived"}

    def test_relationship_lists_are_kept_when_sent(self):
        result = validate_update(ArticleUpdate(tags=[], categories=["c1"]))

        assert result.value.tags == []
        assert result.value.categories == ["c1"]
        assert not result.value.is_empty

    def test_empty_update(self):
        result = validate_update(ArticleUpdate())

        assert result.ok
        assert result.value.is_empty

    def test_blank_slug_is_ignored(self):
        result = validate_update(ArticleUpdate(slug="   "))

        assert result.value.slug is None
        assert result.value.is_empty


class TestValidateStatus:
    @pytest.mark.parametrize("status", ["draft", "published", ArticleStatus.ARCHIVED])
    def test_lifecycle_statuses_pass(self, status):
        result = validate_status(status)

        assert result.ok
        assert result.value == ArticleStatus(status)

    @pytest.mark.parametrize("status", ["scheduled", "", None, "PUBLISHED"])
    def test_unknown_status_is_rejected(self, status):
        result = validate_status(status)

        assert not result.ok
        assert result.error.code == ErrorCode.INVALID_STATUS
        assert result.error.field == "status"
