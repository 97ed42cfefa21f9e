"""
Tests for content processing: word count, reading time, link analysis.
"""

import pytest

from article_engine.articles import processing
from article_engine.articles.processing import (
    ContentProcessor,
    analyze_links,
    count_words,
    get_base_domain,
    reading_time,
)
from article_engine.config import settings


class TestWordCount:
    """Tests for count_words() and reading_time()."""

    def test_400_words_read_in_two_minutes(self):
        body = " ".join(["word"] * 400)

        assert count_words(body) == 400
        assert reading_time(count_words(body)) == 2

    def test_single_word_reads_in_one_minute(self):
        assert count_words("word") == 1
        assert reading_time(1) == 1

    def test_empty_body_counts_one_empty_token(self):
        # "".split on whitespace yields [""], which is counted
        assert count_words("") == 1
        assert reading_time(count_words("")) == 1

    def test_surrounding_whitespace_adds_empty_tokens(self):
        assert count_words(" hello ") == 3

    def test_whitespace_runs_are_one_separator(self):
        assert count_words("a \n\t b   c") == 3

    def test_201_words_round_up(self):
        assert reading_time(201) == 2


class TestLinkAnalysis:
    """Tests for analyze_links()."""

    def test_internal_and_external_classification(self):
        body = '<a href="/about">x</a><a href="https://other.com">y</a>'

        analysis = analyze_links(body, "example.com")

        assert [link.url for link in analysis.internal_links] == ["/about"]
        assert analysis.internal_links[0].text == "x"
        assert analysis.internal_links[0].domain is None
        assert len(analysis.external_links) == 1
        assert analysis.external_links[0].domain == "other.com"
        assert analysis.external_links[0].text == "y"

    def test_absolute_url_on_base_domain_is_internal(self):
        body = '<a href="https://example.com/iq-test">Take the test</a>'

        analysis = analyze_links(body, "example.com")

        assert len(analysis.internal_links) == 1
        assert analysis.external_links == []

    def test_attributes_quotes_and_case(self):
        body = "<A class='btn' HREF='https://News.Site.org/a?b=1' target=\"_blank\">News</A>"

        analysis = analyze_links(body, "example.com")

        assert analysis.external_links[0].domain == "news.site.org"

    def test_links_without_host_are_dropped(self):
        body = (
            '<a href="relative/page.html">rel</a>'
            '<a href="mailto:team@iq.org">mail</a>'
            '<a href="http://[broken">bad</a>'
            '<a href="https://ok.org">ok</a>'
        )

        analysis = analyze_links(body, "example.com")

        assert [link.url for link in analysis.external_links] == ["https://ok.org"]
        assert analysis.internal_links == []

    def test_summary_counts(self):
        body = '<a href="/a">a</a><a href="/b">b</a><a href="https://x.io">x</a>'

        summary = analyze_links(body, "example.com").summary()

        assert summary["total_links"] == 3
        assert summary["internal_count"] == 2
        assert summary["external_count"] == 1
        assert summary["external_links"] == [{"url": "https://x.io", "text": "x", "domain": "x.io"}]
        assert summary["internal_links"][0] == {"url": "/a", "text": "a"}


class TestBaseDomain:
    """Tests for get_base_domain()."""

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        get_base_domain.cache_clear()
        yield
        get_base_domain.cache_clear()

    def test_bare_host_is_used_as_is(self, monkeypatch):
        monkeypatch.setattr(settings, "site_url", "localhost:4321")

        assert get_base_domain() == "localhost:4321"

    def test_full_url_is_reduced_to_host(self, monkeypatch):
        monkeypatch.setattr(settings, "site_url", "https://iq.example.org/blog")

        assert get_base_domain() == "iq.example.org"

    def test_value_is_memoized(self, monkeypatch):
        monkeypatch.setattr(settings, "site_url", "first.org")
        assert get_base_domain() == "first.org"

        monkeypatch.setattr(settings, "site_url", "second.org")
        assert get_base_domain() == "first.org"


class TestContentProcessor:
    """Tests for ContentProcessor.process()."""

    def test_process_combines_metrics(self):
        processor = ContentProcessor(base_domain="example.com")
        body = "Read <a href=\"/guide\">the guide</a> first"

        metrics = processor.process(body)

        assert metrics.word_count == 5
        assert metrics.reading_time == 1
        row = metrics.row_fields()
        assert row["internal_links"] == [{"url": "/guide", "text": "the guide"}]
        assert row["external_links"] == []

    def test_default_base_domain_comes_from_settings(self, monkeypatch):
        monkeypatch.setattr(processing, "get_base_domain", lambda: "mysite.vn")

        assert ContentProcessor().base_domain == "mysite.vn"
