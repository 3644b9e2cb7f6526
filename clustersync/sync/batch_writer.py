"""
Idempotent bulk writes to the target index.

Every action is keyed by the source document id, so replaying a batch leaves
the target in the same state. A bulk call that fails as a whole is retried
with exponential backoff; item-level errors inside a successful call are
counted per document and do not trigger a retry.
"""

import asyncio
from typing import Any, Dict, List

from .clients import TargetCluster
from .logging_manager import get_logger
from .models import BatchResult, DocumentError, SyncDocument
from .resilience import RetryExhausted, RetryPolicy, SleepFn, with_retry

logger = get_logger(__name__)


def build_operations(index: str, documents: List[SyncDocument], detect_changes: bool = False) -> List[Dict[str, Any]]:
    """
    Build the bulk body: an action line followed by its payload for each document.

    Unconditional mode indexes (full replace) each document; detector-gated
    mode sends partial updates that insert when the document is absent.
    """
    operations: List[Dict[str, Any]] = []
    for document in documents:
        if detect_changes:
            operations.append({"update": {"_index": index, "_id": document.id}})
            operations.append({"doc": document.fields, "doc_as_upsert": True})
        else:
            operations.append({"index": {"_index": index, "_id": document.id}})
            operations.append(document.fields)
    return operations


class BatchWriter:
    """Applies batches to the target with bounded retries."""

    def __init__(self, target: TargetCluster, policy: RetryPolicy, *, refresh: bool = True, timeout: str = "2m", sleep: SleepFn = asyncio.sleep):
        self.target = target
        self.policy = policy
        self.refresh = refresh
        self.timeout = timeout
        self.sleep = sleep

    async def write(self, index: str, documents: List[SyncDocument], detect_changes: bool = False) -> BatchResult:
        """
        Write one batch.

        Returns:
            BatchResult; when every attempt failed, all documents are counted
            failed and `transport_error` carries the final cause
        """
        result = BatchResult(attempted=len(documents))
        if not documents:
            return result

        operations = build_operations(index, documents, detect_changes)

        async def _send():
            result.attempts += 1
            return await self.target.bulk_write(operations, refresh=self.refresh, timeout=self.timeout)

        try:
            response = await with_retry(
                _send,
                policy=self.policy,
                sleep=self.sleep,
                description=f"Bulk write of {len(documents)} documents to {index}",
            )
        except RetryExhausted as e:
            cause = repr(e.last_exception)
            logger.error(
                f"Error during bulk indexing to {index} (all {e.attempts} attempts failed): {cause}",
                extra={'details': {'index': index, 'documents': len(documents), 'attempts': e.attempts}},
            )
            result.failed = len(documents)
            result.transport_error = cause
            result.errors = [DocumentError(document_id=d.id, cause=cause, stage="bulk_transport") for d in documents]
            return result

        self._tally_items(result, response.get("items", []), documents)
        if response.get("errors"):
            logger.error(
                f"Bulk operation to {index} had {result.failed} item errors",
                extra={'details': {'errors': [e.cause for e in result.errors[:10]]}},
            )
        return result

    @staticmethod
    def _tally_items(result: BatchResult, items: List[Dict[str, Any]], documents: List[SyncDocument]) -> None:
        for position, item in enumerate(items):
            outcome = next(iter(item.values()), {}) if item else {}
            doc_id = outcome.get("_id") or (documents[position].id if position < len(documents) else None)
            error = outcome.get("error")
            if error:
                result.failed += 1
                reason = error.get("reason", error) if isinstance(error, dict) else error
                result.errors.append(DocumentError(document_id=doc_id, cause=str(reason), stage="bulk_item"))
            elif outcome.get("result") == "created":
                result.created += 1
            elif outcome.get("result") == "noop":
                result.skipped += 1
            else:
                result.updated += 1
