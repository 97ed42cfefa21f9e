"""
Cache invalidation channel and a process-local query cache.

The query cache holds article list pages, the stats summary and single
articles by id, each under its own key prefix.

The service publishes ``ArticlesChanged`` after every successful write;
whatever caches exist subscribe to the bus. Publishing never fails the
write that triggered it.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

import structlog

logger = structlog.get_logger()

LIST_PREFIX = "articles:"
STATS_KEY = "stats"
ARTICLE_PREFIX = "article:"


def article_key(article_id: str) -> str:
    return f"{ARTICLE_PREFIX}{article_id}"


@dataclass(frozen=True)
class ArticlesChanged:
    """The article list changed; ``article_ids`` names the rows touched."""

    reason: str
    article_ids: Tuple[str, ...] = ()


Subscriber = Callable[[ArticlesChanged], Union[None, Awaitable[None]]]


class CacheInvalidationBus:
    """Fire-and-forget fan-out of ``ArticlesChanged`` events."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ArticlesChanged) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception:
                logger.exception("cache_subscriber_failed", reason=event.reason)

    def _schedule(self, awaitable: Awaitable[None], event: ArticlesChanged) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning("cache_subscriber_skipped", reason=event.reason, detail="no running event loop")
            return

        task = loop.create_task(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("cache_subscriber_failed", error=str(task.exception()))

    async def drain(self) -> None:
        """Wait for scheduled async subscribers; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


@dataclass
class _Entry:
    value: Any
    stored_at: float
    ttl: float


class QueryCache:
    """TTL cache with a size bound; evicts the oldest fifth when full."""

    def __init__(self, ttl_seconds: float = 300, max_entries: int = 100):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, _Entry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if time.monotonic() - entry.stored_at > entry.ttl:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._evict_oldest()
        self._entries[key] = _Entry(value, time.monotonic(), self.ttl_seconds if ttl is None else ttl)

    def _evict_oldest(self) -> None:
        ordered = sorted(self._entries.items(), key=lambda item: item[1].stored_at)
        for key, _ in ordered[: max(1, len(ordered) // 5)]:
            del self._entries[key]

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop entries whose key starts with ``prefix``, or everything."""
        if prefix is None:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def handle(self, event: ArticlesChanged) -> None:
        """Bus subscriber: drop lists, stats and the articles the event names.

        An event naming no articles drops every cached article.
        """
        self.invalidate(LIST_PREFIX)
        self.invalidate(STATS_KEY)
        if not event.article_ids:
            self.invalidate(ARTICLE_PREFIX)
        for article_id in event.article_ids:
            self._entries.pop(article_key(article_id), None)

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}
