"""Tests for CrawlSession lifecycle bookkeeping."""

from __future__ import annotations

import pytest

from paper_crawler.application.crawl import SessionTracker
from paper_crawler.core.exceptions import CrawlError
from paper_crawler.models import QueryStatus, SessionStatus


class TestSessionTracker:
    async def test_start_persists_running_state(self, store, query):
        tracker = SessionTracker(store)

        session = await tracker.start(query)

        assert session.status is SessionStatus.RUNNING
        assert (await store.get_session(session.id)).query_id == query.id
        assert (await store.get_query(query.id)).status is QueryStatus.RUNNING

    async def test_progress_and_errors(self, store, query):
        tracker = SessionTracker(store)
        session = await tracker.start(query)

        await tracker.record_progress(session, papers_found=12)
        await tracker.record_error(session, "scopus: HTTP error 500")
        await tracker.record_progress(session, papers_analyzed=4)

        stored = await store.get_session(session.id)
        assert (stored.papers_found, stored.papers_analyzed) == (12, 4)
        assert stored.errors == ["scopus: HTTP error 500"]
        assert stored.status is SessionStatus.RUNNING

    async def test_complete(self, store, query):
        tracker = SessionTracker(store)
        session = await tracker.start(query)
        await tracker.record_progress(session, papers_found=9)

        await tracker.complete(session, query)

        stored = await store.get_session(session.id)
        assert stored.status is SessionStatus.COMPLETED
        assert stored.completed_at is not None
        stored_query = await store.get_query(query.id)
        assert stored_query.status is QueryStatus.COMPLETED
        assert stored_query.paper_count == 9

    async def test_fail_records_message(self, store, query):
        tracker = SessionTracker(store)
        session = await tracker.start(query)

        await tracker.fail(session, query, RuntimeError("database locked"))

        stored = await store.get_session(session.id)
        assert stored.status is SessionStatus.FAILED
        assert stored.errors == ["database locked"]
        assert (await store.get_query(query.id)).status is QueryStatus.FAILED

    async def test_fail_without_message_uses_type_name(self, store, query):
        tracker = SessionTracker(store)
        session = await tracker.start(query)

        await tracker.fail(session, query, KeyError())

        assert session.errors == ["KeyError"]

    @pytest.mark.parametrize("finish", ["complete", "fail"])
    async def test_terminal_states_are_final(self, store, query, finish):
        tracker = SessionTracker(store)
        session = await tracker.start(query)
        if finish == "complete":
            await tracker.complete(session, query)
        else:
            await tracker.fail(session, query, RuntimeError("x"))

        with pytest.raises(CrawlError):
            await tracker.complete(session, query)
        with pytest.raises(CrawlError):
            await tracker.fail(session, query, RuntimeError("again"))
        with pytest.raises(CrawlError):
            await tracker.record_progress(session, papers_found=1)
