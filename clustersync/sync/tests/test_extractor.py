"""
Tests for scroll cursor extraction.
"""

import math

import pytest

from ..error_tracker import CursorError
from ..extractor import CursorExtractor
from .fake_clusters import FakeSourceCluster, FakeTransportError


def make_source(total):
    return FakeSourceCluster({f"doc-{i}": {"n": i} for i in range(total)})


async def drain(extractor, page_size=3):
    cursor, page = await extractor.open("source-index", page_size, "1m")
    pages = []
    while page:
        pages.append(page)
        page = await extractor.advance(cursor)
    return cursor, pages


class TestCursorExtractor:
    """Test pagination, cursor renewal and release."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total,page_size", [(10, 3), (9, 3), (1, 5), (0, 4)])
    async def test_every_document_read_once(self, total, page_size):
        """T documents with page size P arrive in ceil(T/P) non-empty pages then one empty page."""
        source = make_source(total)
        extractor = CursorExtractor(source)

        cursor, pages = await drain(extractor, page_size)

        ids = [record.id for page in pages for record in page]
        assert len(pages) == math.ceil(total / page_size)
        assert sorted(ids) == sorted(source.documents)
        assert len(ids) == len(set(ids))
        assert cursor.exhausted
        assert cursor.documents_read == total

    @pytest.mark.asyncio
    async def test_advance_tracks_renewed_cursor_id(self):
        source = make_source(5)
        extractor = CursorExtractor(source)
        cursor, _ = await extractor.open("source-index", 2, "1m")
        first_id = cursor.cursor_id

        await extractor.advance(cursor)

        assert cursor.cursor_id != first_id
        assert cursor.cursor_id in source.open_cursors

    @pytest.mark.asyncio
    async def test_exhausted_cursor_does_not_call_source(self):
        source = make_source(2)
        extractor = CursorExtractor(source)
        cursor, _ = await drain(extractor, 5)
        calls = source.advance_calls

        assert await extractor.advance(cursor) == []
        assert source.advance_calls == calls

    @pytest.mark.asyncio
    async def test_close_releases_once(self):
        """Closing twice releases the server-side context only once."""
        source = make_source(4)
        extractor = CursorExtractor(source)
        cursor, _ = await drain(extractor, 2)

        await extractor.close(cursor)
        await extractor.close(cursor)

        assert source.closed_cursors == [cursor.cursor_id]
        assert cursor.closed
        assert source.open_cursors == {}

    @pytest.mark.asyncio
    async def test_close_failure_is_not_raised(self):
        source = make_source(4)
        source.fail_close = FakeTransportError("cluster unavailable")
        extractor = CursorExtractor(source)
        cursor, _ = await extractor.open("source-index", 2, "1m")

        await extractor.close(cursor)

        assert cursor.closed

    @pytest.mark.asyncio
    async def test_close_none_is_noop(self):
        await CursorExtractor(make_source(0)).close(None)

    @pytest.mark.asyncio
    async def test_open_failure_raises_cursor_error(self):
        source = make_source(3)
        source.fail_open = FakeTransportError("index_not_found_exception")
        extractor = CursorExtractor(source)

        with pytest.raises(CursorError):
            await extractor.open("source-index", 2, "1m")

    @pytest.mark.asyncio
    async def test_advance_failure_raises_cursor_error(self):
        source = make_source(6)
        source.fail_advance_on_call = 1
        extractor = CursorExtractor(source)
        cursor, _ = await extractor.open("source-index", 2, "1m")

        with pytest.raises(CursorError):
            await extractor.advance(cursor)

    @pytest.mark.asyncio
    async def test_advance_closed_cursor_raises(self):
        source = make_source(6)
        extractor = CursorExtractor(source)
        cursor, _ = await extractor.open("source-index", 2, "1m")
        await extractor.close(cursor)

        with pytest.raises(CursorError):
            await extractor.advance(cursor)
