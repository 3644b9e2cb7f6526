"""
Detects documents that already match their stored version on the target.

Every check is a round trip to the target, so gated writes trade bulk volume
for read volume. Unconditional upserts are the faster mode.
"""

from typing import Any, Dict, List, Tuple

from .clients import TargetCluster
from .error_tracker import DocumentNotFound
from .logging_manager import get_logger
from .models import SyncDocument

logger = get_logger(__name__)


class ChangeDetector:
    """
    Compares candidates with the target's stored documents.
    """

    def __init__(self, target: TargetCluster):
        self.target = target

    async def has_changed(self, index: str, doc_id: str, candidate: Dict[str, Any]) -> bool:
        """
        Check whether a candidate differs from what the target holds.

        Returns:
            True when the document is missing, differs, or cannot be fetched
        """
        try:
            existing = await self.target.get(index, doc_id)
        except DocumentNotFound:
            return True
        except Exception as e:
            # Fail open: a redundant write is preferable to a dropped update
            logger.warning(f"Existence check failed for document {doc_id}, treating as changed: {e}")
            return True
        return existing != candidate

    async def partition(self, index: str, documents: List[SyncDocument]) -> Tuple[List[SyncDocument], List[SyncDocument]]:
        """Split documents into (changed, unchanged), checking one at a time."""
        changed: List[SyncDocument] = []
        unchanged: List[SyncDocument] = []
        for document in documents:
            if await self.has_changed(index, document.id, document.fields):
                changed.append(document)
            else:
                unchanged.append(document)
        if unchanged:
            logger.debug(f"{len(unchanged)} of {len(documents)} documents unchanged on {index}")
        return changed, unchanged
