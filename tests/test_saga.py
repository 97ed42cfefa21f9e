"""
Tests for step-by-step write bookkeeping.
"""

import pytest

from article_engine.articles.saga import Saga
from article_engine.errors import PartialFailureError, PersistenceError


async def ok(value=None):
    return value


def failing(error):
    async def action():
        raise error

    return action


class TestSaga:
    """Tests for Saga.step()."""

    async def test_steps_complete_in_order(self):
        saga = Saga("update", ["first", "second"], entity_id="a1")

        assert await saga.step("first", lambda: ok(1)) == 1
        assert await saga.step("second", lambda: ok(2)) == 2

        assert saga.completed == ["first", "second"]
        assert saga.pending == []
        assert saga.committed

    async def test_failure_before_any_write_propagates_original_error(self):
        saga = Saga("update", ["load", "write"], entity_id="a1")
        await saga.step("load", lambda: ok(), writes=False)

        with pytest.raises(PersistenceError):
            await saga.step("write", failing(PersistenceError("write")))

        assert not saga.committed

    async def test_failure_after_write_is_partial(self):
        saga = Saga("create", ["insert", "link", "touch"], entity_id="a1")
        await saga.step("insert", lambda: ok())

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.step("link", failing(PersistenceError("link")))

        error = exc_info.value
        assert error.completed_steps == ["insert"]
        assert error.failed_step == "link"
        assert error.retry_steps == ["link", "touch"]
        assert error.entity_id == "a1"
        assert isinstance(error.cause, PersistenceError)

    async def test_step_that_wrote_nothing_does_not_commit(self):
        saga = Saga("update", ["update_row", "link"], entity_id="missing")
        await saga.step("update_row", lambda: ok(None), writes=lambda row: row is not None)

        assert not saga.committed
        with pytest.raises(PersistenceError):
            await saga.step("link", failing(PersistenceError("link")))

    async def test_write_predicate_sees_the_result(self):
        saga = Saga("update", ["update_row", "link"], entity_id="a1")
        await saga.step("update_row", lambda: ok({"id": "a1"}), writes=lambda row: row is not None)

        assert saga.committed
        with pytest.raises(PartialFailureError) as exc_info:
            await saga.step("link", failing(PersistenceError("link")))
        assert exc_info.value.completed_steps == ["update_row"]

    async def test_skipped_steps_are_not_retried(self):
        saga = Saga("tags", ["write", "remove", "add", "touch"], entity_id="a1")
        await saga.step("write", lambda: ok())
        saga.skip("remove")

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.step("add", failing(RuntimeError("boom")))

        assert exc_info.value.retry_steps == ["add", "touch"]

    async def test_failed_step_can_be_retried(self):
        saga = Saga("create", ["insert", "link"])
        await saga.step("insert", lambda: ok())

        with pytest.raises(PartialFailureError):
            await saga.step("link", failing(RuntimeError("boom")))

        assert saga.pending == ["link"]
        await saga.step("link", lambda: ok())
        assert saga.pending == []

    async def test_plan_rejects_duplicates(self):
        saga = Saga("create", ["insert"])

        with pytest.raises(ValueError):
            saga.plan("insert")

    async def test_unplanned_step_is_rejected(self):
        saga = Saga("create", ["insert"])

        with pytest.raises(ValueError):
            await saga.step("other", lambda: ok())

    def test_partial_failure_serializes_steps(self):
        error = PartialFailureError("create", "a1", ["insert"], "link", ["link", "touch"], RuntimeError("x"))

        data = error.to_dict()
        assert data["error"] == "PARTIAL_FAILURE"
        assert data["retry_steps"] == ["link", "touch"]
        assert data["cause"] == "x"
