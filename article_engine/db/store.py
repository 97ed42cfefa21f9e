"""
Store adapter over the relational database.

Each call to :meth:`Store.run` is one unit of work: a fresh session is opened,
the callable runs on the default executor, the session commits and is closed.
Nothing spans two calls, so multi-step operations commit step by step.
"""

import asyncio
from functools import partial
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

import structlog
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import PersistenceError
from .base import get_session_local

logger = structlog.get_logger()

T = TypeVar("T")


class Store:
    """Runs blocking ORM work off the event loop, one session per call."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or get_session_local()

    async def run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """Execute ``fn(session, *args)`` in its own session.

        Raises:
            PersistenceError: when the database rejects the work.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._call, operation, fn, *args))

    def _call(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        with self.session_factory() as session:
            try:
                result = fn(session, *args)
                session.commit()
                return result
            except SQLAlchemyError as exc:
                session.rollback()
                logger.warning("store_call_failed", operation=operation, error=str(exc))
                raise PersistenceError(operation, exc) from exc


def insert_ignore(session: Session, table: Table, rows: Iterable[Dict[str, Any]]) -> int:
    """Insert rows, silently skipping any that hit a unique constraint.

    Returns the number of rows actually inserted where the driver reports it.
    """
    rows = list(rows)
    if not rows:
        return 0

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(rows).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(rows).on_conflict_do_nothing()
    else:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")

    result = session.execute(stmt)
    return max(result.rowcount or 0, 0)

