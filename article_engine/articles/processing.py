"""
Content processing: word count, reading time and link classification.

Everything here is a pure function of the article body, except the base
domain which is read from settings once per process.
"""

import math
import re
from functools import lru_cache
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from ..config import get_settings
from .schemas import ContentMetrics, LinkAnalysis, LinkInfo

WORDS_PER_MINUTE = 200

_WHITESPACE = re.compile(r"\s+")
_ANCHOR = re.compile(r"""<a[^>]+href=["']([^"']+)["'][^>]*>([^<]*)</a>""", re.IGNORECASE)


@lru_cache(maxsize=1)
def get_base_domain() -> str:
    """Deployment base domain, derived from ``SITE_URL``.

    A bare host such as ``localhost:4321`` is used as-is; a full URL is
    reduced to its network location.
    """
    site_url = get_settings().site_url.strip()
    if "://" in site_url:
        return urlsplit(site_url).netloc or site_url
    return site_url.split("/", 1)[0]


def count_words(content: str) -> int:
    """Number of tokens after splitting on whitespace runs.

    Leading or trailing whitespace yields empty tokens that are counted, so
    an empty body counts as one word.
    """
    return len(_WHITESPACE.split(content))


def reading_time(word_count: int) -> int:
    return math.ceil(word_count / WORDS_PER_MINUTE)


def extract_links(content: str) -> List[Tuple[str, str]]:
    """All ``(href, text)`` pairs of anchor tags, in document order."""
    return _ANCHOR.findall(content)


def _hostname(url: str) -> Optional[str]:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def analyze_links(content: str, base_domain: str) -> LinkAnalysis:
    """Split anchors into internal and external links.

    A link is internal when it mentions the base domain or is site-relative.
    External links carry their hostname; those without one are dropped.
    """
    internal: List[LinkInfo] = []
    external: List[LinkInfo] = []
    for url, text in extract_links(content):
        if base_domain in url or url.startswith("/"):
            internal.append(LinkInfo(url=url, text=text))
            continue

        domain = _hostname(url)
        if domain:
            external.append(LinkInfo(url=url, text=text, domain=domain))

    return LinkAnalysis(internal_links=internal, external_links=external)


class ContentProcessor:
    """Derives metrics from article bodies for one base domain."""

    def __init__(self, base_domain: Optional[str] = None):
        self._base_domain = base_domain

    @property
    def base_domain(self) -> str:
        return self._base_domain or get_base_domain()

    def process(self, content: str) -> ContentMetrics:
        words = count_words(content)
        return ContentMetrics(
            word_count=words,
            reading_time=reading_time(words),
            links=analyze_links(content, self.base_domain),
        )

    def analyze_links(self, content: str) -> LinkAnalysis:
        return analyze_links(content, self.base_domain)
