"""
Data structures passed between the stages of a replication pass.

Records, documents and batch results live for one page; the cursor and the
pass metrics live for one pass. Nothing here outlives a pass.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class SourceRecord:
    """A hit read from the source index."""
    id: str
    fields: Dict[str, Any]


@dataclass
class SyncDocument:
    """A transformed, write-ready document keyed by the source identifier."""
    id: str
    fields: Dict[str, Any]


@dataclass
class Cursor:
    """Server-side scroll over a snapshot of the source index."""
    index: str
    cursor_id: Optional[str]
    lease: str
    pages_read: int = 0
    documents_read: int = 0
    exhausted: bool = False
    closed: bool = False


@dataclass
class DocumentError:
    """Why a single document did not reach the target."""
    document_id: Optional[str]
    cause: str
    stage: str  # transform, bulk_item, bulk_transport


@dataclass
class BatchResult:
    """Outcome of applying one batch to the target."""
    attempted: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[DocumentError] = field(default_factory=list)
    attempts: int = 0
    transport_error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return self.created + self.updated

    @property
    def applied(self) -> bool:
        """True when the bulk call went through, even with item-level errors."""
        return self.transport_error is None


class PassStage(str, Enum):
    """Stages of a single pass, in order."""
    INIT = "init"
    PROVISION_INDEX = "provision_index"
    COUNT_SOURCE = "count_source"
    STREAM_BATCHES = "stream_batches"
    FINALIZE = "finalize"
    DONE = "done"


class PassStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class PassMetrics:
    """Totals accumulated across the batches of one pass."""
    total_documents: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    batches: int = 0
    failed_batches: int = 0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    @property
    def succeeded(self) -> int:
        return self.created + self.updated

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def record_batch(self, result: BatchResult) -> None:
        self.batches += 1
        self.created += result.created
        self.updated += result.updated
        self.skipped += result.skipped
        self.failed += result.failed
        if not result.applied:
            self.failed_batches += 1

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = time.monotonic()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_documents": self.total_documents,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "batches": self.batches,
            "failed_batches": self.failed_batches,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class PassResult:
    """What a finished pass reports back to the scheduler."""
    status: PassStatus
    metrics: PassMetrics
    stage_reached: PassStage
    error: Optional[str] = None
    error_report: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status != PassStatus.FAILED
