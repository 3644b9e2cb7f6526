"""
Cursor-based extraction of every document in a source index.

One scroll cursor per pass: `open` takes a snapshot and returns the first
page, `advance` renews the lease and returns the next page (an empty page
means the snapshot is exhausted), `close` releases the server-side context.
"""

from typing import List, Optional, Tuple

from .clients import SourceCluster
from .error_tracker import CursorError
from .logging_manager import get_logger
from .models import Cursor, SourceRecord

logger = get_logger(__name__)


class CursorExtractor:
    """Forward-only, bounded-memory pagination over a source index."""

    def __init__(self, source: SourceCluster):
        self.source = source

    async def open(self, index: str, page_size: int, lease: str) -> Tuple[Cursor, List[SourceRecord]]:
        """
        Start a match-all scroll over the index.

        Raises:
            CursorError: if the scroll search cannot be started
        """
        try:
            cursor_id, page = await self.source.open_cursor(index, None, page_size, lease)
        except Exception as e:
            logger.error(f"Error initializing scroll search on {index}: {e}")
            raise CursorError(f"Failed to open cursor on {index}: {e}") from e

        cursor = Cursor(index=index, cursor_id=cursor_id, lease=lease)
        self._record_page(cursor, page)
        return cursor, page

    async def advance(self, cursor: Cursor) -> List[SourceRecord]:
        """
        Fetch the next page, renewing the cursor lease.

        Returns:
            The next page; empty exactly when the snapshot is exhausted

        Raises:
            CursorError: on scroll failure or when the cursor is no longer usable
        """
        if cursor.closed:
            raise CursorError(f"Cursor on {cursor.index} is already closed")
        if cursor.exhausted:
            return []
        if not cursor.cursor_id:
            raise CursorError(f"Cursor on {cursor.index} has no scroll id to advance")

        try:
            cursor_id, page = await self.source.advance_cursor(cursor.cursor_id, cursor.lease)
        except Exception as e:
            logger.error(f"Error during scroll on {cursor.index}: {e}")
            raise CursorError(f"Failed to advance cursor on {cursor.index}: {e}") from e

        cursor.cursor_id = cursor_id or cursor.cursor_id
        self._record_page(cursor, page)
        return page

    async def close(self, cursor: Optional[Cursor]) -> None:
        """Release the scroll context. Safe to call more than once; never raises."""
        if cursor is None or cursor.closed:
            return
        cursor.closed = True
        if not cursor.cursor_id:
            return
        try:
            await self.source.close_cursor(cursor.cursor_id)
            logger.debug(f"Cleared scroll on {cursor.index} after {cursor.pages_read} pages")
        except Exception as e:
            logger.error(f"Error clearing scroll on {cursor.index}: {e}")

    @staticmethod
    def _record_page(cursor: Cursor, page: List[SourceRecord]) -> None:
        if not page:
            cursor.exhausted = True
            logger.debug(f"Scroll on {cursor.index} exhausted after {cursor.documents_read} documents")
            return
        cursor.pages_read += 1
        cursor.documents_read += len(page)
        logger.debug(f"Retrieved page {cursor.pages_read} ({len(page)} documents), scroll id: {cursor.cursor_id}")
