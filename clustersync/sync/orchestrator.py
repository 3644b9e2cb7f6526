"""
Single-pass Sync Orchestration

This module drives one complete replication pass from the source index to the
target index:
- Target index provisioning from the source mapping
- Source document counting for progress reporting
- Page by page extraction, transformation, optional change detection and bulk write
- Metrics accumulation, cursor release and final reporting

Any error raised during a pass is caught at the pass boundary and reported in
the returned PassResult, so the scheduler can always start the next pass.
"""

import asyncio
from typing import List, Optional

from ..config import SourceClusterConfig, TargetClusterConfig
from .batch_writer import BatchWriter
from .change_detector import ChangeDetector
from .clients import SourceCluster, TargetCluster
from .config import BatchFailurePolicy, SyncSettings
from .error_tracker import BatchWriteError, ErrorSeverity, ErrorTracker
from .extractor import CursorExtractor
from .logging_manager import get_logger
from .models import Cursor, DocumentError, PassMetrics, PassResult, PassStage, PassStatus, SourceRecord
from .provisioning import IndexProvisioner
from .resilience import SleepFn
from .transformer import DocumentTransformer

logger = get_logger(__name__)


class SyncOrchestrator:
    """
    Runs replication passes for one source/target index pair.

    A pass moves through INIT -> PROVISION_INDEX -> COUNT_SOURCE ->
    STREAM_BATCHES -> FINALIZE -> DONE. Pages are processed strictly one after
    another on a single cursor.
    """

    def __init__(self, source: SourceCluster, target: TargetCluster, settings: SyncSettings, *,
                 extractor: Optional[CursorExtractor] = None,
                 transformer: Optional[DocumentTransformer] = None,
                 detector: Optional[ChangeDetector] = None,
                 writer: Optional[BatchWriter] = None,
                 provisioner: Optional[IndexProvisioner] = None,
                 sleep: SleepFn = asyncio.sleep):
        """
        Initialize the sync orchestrator.

        Args:
            source: Source cluster collaborator
            target: Target cluster collaborator
            settings: Tunables for this index pair
            sleep: Coroutine used for throttle pauses and retry backoff
        """
        self.source = source
        self.target = target
        self.settings = settings
        self.sleep = sleep
        self.retry_policy = settings.retry_policy()

        self.extractor = extractor or CursorExtractor(source)
        self.transformer = transformer or DocumentTransformer(settings.payload_fields)
        self.detector = detector or ChangeDetector(target)
        self.writer = writer or BatchWriter(
            target,
            self.retry_policy,
            refresh=settings.bulk_refresh,
            timeout=settings.bulk_timeout,
            sleep=sleep,
        )
        self.provisioner = provisioner or IndexProvisioner(source, target, settings.mapping_adjustments)

        self.stage = PassStage.INIT
        self.error_tracker = ErrorTracker()

    async def run_pass(self) -> PassResult:
        """
        Run one full pass.

        Returns:
            PassResult with metrics; failures are reported, never raised
        """
        source_index = self.settings.source_index
        target_index = self.settings.target_index
        metrics = PassMetrics()
        self.error_tracker = ErrorTracker()
        self.stage = PassStage.INIT
        status = PassStatus.SUCCESS
        error_message = None
        cursor: Optional[Cursor] = None

        logger.info(f"🚀 Starting sync from {source_index} to {target_index}")

        try:
            self.stage = PassStage.PROVISION_INDEX
            await self.provisioner.ensure_target_index(source_index, target_index)

            self.stage = PassStage.COUNT_SOURCE
            metrics.total_documents = await self.source.count(source_index)
            logger.info(f"Total documents to sync: {metrics.total_documents}")

            if metrics.total_documents == 0:
                status = PassStatus.EMPTY
            else:
                self.stage = PassStage.STREAM_BATCHES
                cursor, page = await self.extractor.open(source_index, self.settings.page_size, self.settings.scroll_lease)
                while page:
                    await self._process_page(page, metrics)
                    page = await self.extractor.advance(cursor)

        except Exception as e:
            status = PassStatus.FAILED
            error_message = f"{type(e).__name__}: {e}"
            self.error_tracker.report(
                f"Sync pass failed during {self.stage.value}: {e}",
                severity=ErrorSeverity.CRITICAL,
                details={'stage': self.stage.value, 'exception': type(e).__name__},
                recovery_suggestion=getattr(e, 'recovery_suggestion', None),
            )
            logger.error(f"Error during sync ({self.stage.value}): {e}", exc_info=True)

        failed_stage = self.stage
        self.stage = PassStage.FINALIZE
        await self.extractor.close(cursor)
        metrics.finish()
        self._log_metrics(metrics, status)
        self.stage = PassStage.DONE

        return PassResult(
            status=status,
            metrics=metrics,
            stage_reached=failed_stage if status == PassStatus.FAILED else PassStage.DONE,
            error=error_message,
            error_report=self.error_tracker.generate_report(),
        )

    async def _process_page(self, page: List[SourceRecord], metrics: PassMetrics) -> None:
        """Transform, filter and write one page, folding the outcome into metrics."""
        target_index = self.settings.target_index
        metrics.processed += len(page)
        logger.info(f"Processing batch of {len(page)} documents ({metrics.processed}/{metrics.total_documents})")

        documents, transform_errors = self.transformer.transform_page(page)
        metrics.failed += len(transform_errors)
        self._report_document_errors(transform_errors)

        if self.settings.detect_changes and documents:
            documents, unchanged = await self.detector.partition(target_index, documents)
            metrics.skipped += len(unchanged)

        if not documents:
            logger.debug("Nothing to write for this page")
            return

        result = await self.writer.write(target_index, documents, detect_changes=self.settings.detect_changes)
        metrics.record_batch(result)
        self._report_document_errors(result.errors)

        if not result.applied:
            if self.settings.on_batch_failure == BatchFailurePolicy.ABORT:
                raise BatchWriteError(
                    f"Bulk write of {len(documents)} documents to {target_index} failed after {result.attempts} attempts: {result.transport_error}",
                    attempts=result.attempts,
                )
            logger.error(f"Dropped batch of {len(documents)} documents, continuing with the next page")
        elif self.settings.throttle:
            await self.sleep(self.retry_policy.base_delay_seconds)

    def _report_document_errors(self, errors: List[DocumentError]) -> None:
        for error in errors:
            self.error_tracker.report(
                error.cause,
                document_id=error.document_id,
                severity=ErrorSeverity.ERROR,
                details={'stage': error.stage},
            )

    @staticmethod
    def _log_metrics(metrics: PassMetrics, status: PassStatus) -> None:
        summary = metrics.to_dict()
        logger.info(
            f"Sync cycle finished ({status.value}) in {metrics.duration_seconds:.2f} seconds.",
            extra={'details': summary},
        )
        logger.info(f"Total records processed: {metrics.processed}")
        logger.info(f"Total records succeeded: {metrics.succeeded} (created {metrics.created}, updated {metrics.updated})")
        logger.info(f"Total records skipped: {metrics.skipped}")
        logger.info(f"Total records failed: {metrics.failed}")

    async def aclose(self) -> None:
        """Close both cluster connections."""
        for client in (self.source, self.target):
            try:
                await client.close()
            except Exception as e:
                logger.error(f"Error closing {client.name} cluster connection: {e}")


def create_sync_orchestrator(settings: SyncSettings, source_config: SourceClusterConfig, target_config: TargetClusterConfig, sleep: SleepFn = asyncio.sleep) -> SyncOrchestrator:
    """
    Build the cluster clients once and wire them into an orchestrator.
    """
    source = SourceCluster.from_config(source_config)
    target = TargetCluster.from_config(target_config)
    return SyncOrchestrator(source, target, settings, sleep=sleep)


async def run_single_pass(settings: SyncSettings, source_config: SourceClusterConfig, target_config: TargetClusterConfig) -> PassResult:
    """
    Convenience function: run exactly one pass and release the connections.
    """
    orchestrator = create_sync_orchestrator(settings, source_config, target_config)
    try:
        return await orchestrator.run_pass()
    finally:
        await orchestrator.aclose()
